"""Formula AST for auditable confidence derivations.

A small expression tree that records how a Derived confidence was computed.
It renders to a readable string and can be re-evaluated against a fresh
binding of input names to numbers.

Identity conventions are kept as-is rather than special-cased:
empty Product = 1, empty Sum = 0, empty Min = +inf, empty Max = -inf.
"""

from __future__ import annotations

import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal

from credence.foundation.errors import (
    ErrorCode,
    MissingBindingError,
    validation_error,
)

FormulaKind = Literal["min", "max", "product", "sum"]


@dataclass(frozen=True, slots=True)
class Value:
    """Reference to a named input."""

    name: str


@dataclass(frozen=True, slots=True)
class Min:
    children: tuple[FormulaNode, ...] = ()


@dataclass(frozen=True, slots=True)
class Max:
    children: tuple[FormulaNode, ...] = ()


@dataclass(frozen=True, slots=True)
class Product:
    children: tuple[FormulaNode, ...] = ()


@dataclass(frozen=True, slots=True)
class Sum:
    children: tuple[FormulaNode, ...] = ()


@dataclass(frozen=True, slots=True)
class Scale:
    """Constant multiple of a sub-formula."""

    factor: float
    child: FormulaNode


FormulaNode = Value | Min | Max | Product | Sum | Scale

_NARY: dict[str, type] = {"min": Min, "max": Max, "product": Product, "sum": Sum}


def evaluate_formula(node: FormulaNode, bindings: Mapping[str, float]) -> float:
    """Evaluate a formula against a name -> number binding.

    Raises:
        MissingBindingError: If a referenced name is not bound.
    """
    match node:
        case Value(name=name):
            if name not in bindings:
                raise MissingBindingError(
                    ErrorCode.FORMULA_MISSING_BINDING, context={"field": name},
                )
            return float(bindings[name])
        case Min(children=children):
            return min((evaluate_formula(c, bindings) for c in children), default=math.inf)
        case Max(children=children):
            return max((evaluate_formula(c, bindings) for c in children), default=-math.inf)
        case Product(children=children):
            result = 1.0
            for child in children:
                result *= evaluate_formula(child, bindings)
            return result
        case Sum(children=children):
            return math.fsum(evaluate_formula(c, bindings) for c in children)
        case Scale(factor=factor, child=child):
            return factor * evaluate_formula(child, bindings)
        case _:
            raise validation_error(
                ErrorCode.FORMULA_INVALID_NODE, field=type(node).__name__, detail="not a formula node",
            )


def formula_to_string(node: FormulaNode) -> str:
    """Render a formula as a human-readable expression."""
    match node:
        case Value(name=name):
            return name
        case Min(children=children):
            return f"min({', '.join(formula_to_string(c) for c in children)})"
        case Max(children=children):
            return f"max({', '.join(formula_to_string(c) for c in children)})"
        case Product(children=children):
            if not children:
                return "1"
            if len(children) == 1:
                return formula_to_string(children[0])
            return " * ".join(formula_to_string(c) for c in children)
        case Sum(children=children):
            if not children:
                return "0"
            if len(children) == 1:
                return formula_to_string(children[0])
            return f"({' + '.join(formula_to_string(c) for c in children)})"
        case Scale(factor=factor, child=child):
            return f"{factor:g} * {formula_to_string(child)}"
        case _:
            raise validation_error(
                ErrorCode.FORMULA_INVALID_NODE, field=type(node).__name__, detail="not a formula node",
            )


def create_formula(kind: FormulaKind, names: Sequence[str]) -> FormulaNode:
    """Build an n-ary node over Value references, e.g. ``min(a, b, c)``."""
    cls = _NARY.get(kind)
    if cls is None:
        raise validation_error(
            ErrorCode.FORMULA_INVALID_NODE, field="kind",
            detail=f"expected one of {', '.join(_NARY)}, got {kind!r}",
        )
    return cls(tuple(Value(name) for name in names))


def formula_names(node: FormulaNode) -> list[str]:
    """Names referenced by a formula, in first-appearance order."""
    seen: dict[str, None] = {}
    stack: list[FormulaNode] = [node]
    while stack:
        current = stack.pop()
        match current:
            case Value(name=name):
                seen.setdefault(name, None)
            case Scale(child=child):
                stack.append(child)
            case Min(children=children) | Max(children=children) | Product(children=children) | Sum(children=children):
                stack.extend(reversed(children))
    return list(seen)


def is_formula_node(obj: object) -> bool:
    """Type guard for formula nodes."""
    return isinstance(obj, (Value, Min, Max, Product, Sum, Scale))


def formula_to_dict(node: FormulaNode) -> dict[str, Any]:
    """Serialize a formula to its tagged JSON shape."""
    match node:
        case Value(name=name):
            return {"type": "value", "name": name}
        case Scale(factor=factor, child=child):
            return {"type": "scale", "factor": factor, "child": formula_to_dict(child)}
        case Min() | Max() | Product() | Sum():
            kind = next(k for k, cls in _NARY.items() if isinstance(node, cls))
            return {"type": kind, "children": [formula_to_dict(c) for c in node.children]}
        case _:
            raise validation_error(
                ErrorCode.FORMULA_INVALID_NODE, field=type(node).__name__, detail="not a formula node",
            )


def formula_from_dict(data: Mapping[str, Any]) -> FormulaNode:
    """Parse a formula from its tagged JSON shape."""
    kind = data.get("type")
    if kind == "value":
        return Value(str(data["name"]))
    if kind == "scale":
        return Scale(float(data["factor"]), formula_from_dict(data["child"]))
    if kind in _NARY:
        return _NARY[kind](tuple(formula_from_dict(c) for c in data.get("children", ())))
    raise validation_error(
        ErrorCode.FORMULA_INVALID_NODE, field="type", detail=f"unknown formula node {kind!r}",
    )
