"""Tests for the formula AST."""

import math

import pytest

from credence.confidence.formula import (
    Max,
    Min,
    Product,
    Scale,
    Sum,
    Value,
    create_formula,
    evaluate_formula,
    formula_from_dict,
    formula_names,
    formula_to_dict,
    formula_to_string,
    is_formula_node,
)
from credence.foundation.errors import ErrorCode, MissingBindingError, ValidationError


class TestEvaluate:
    """evaluate_formula over bindings."""

    def test_nested_expression(self) -> None:
        """min(a, b) * 0.5 evaluates against bindings."""
        node = Scale(0.5, Min((Value("a"), Value("b"))))

        assert evaluate_formula(node, {"a": 0.8, "b": 0.6}) == pytest.approx(0.3)

    def test_product_and_sum(self) -> None:
        """Product multiplies, Sum adds."""
        bindings = {"a": 0.5, "b": 0.4}

        assert evaluate_formula(Product((Value("a"), Value("b"))), bindings) == pytest.approx(0.2)
        assert evaluate_formula(Sum((Value("a"), Value("b"))), bindings) == pytest.approx(0.9)
        assert evaluate_formula(Max((Value("a"), Value("b"))), bindings) == 0.5

    def test_empty_identities(self) -> None:
        """Empty n-ary nodes evaluate to their identity element."""
        assert evaluate_formula(Product(), {}) == 1.0
        assert evaluate_formula(Sum(), {}) == 0.0
        assert evaluate_formula(Min(), {}) == math.inf
        assert evaluate_formula(Max(), {}) == -math.inf

    def test_missing_binding(self) -> None:
        """An unbound name raises MissingBindingError naming it."""
        with pytest.raises(MissingBindingError) as exc_info:
            evaluate_formula(Min((Value("a"), Value("ghost"))), {"a": 1.0})

        assert exc_info.value.code == ErrorCode.FORMULA_MISSING_BINDING
        assert exc_info.value.field == "ghost"

    def test_not_a_node(self) -> None:
        """Foreign objects are rejected."""
        with pytest.raises(ValidationError):
            evaluate_formula("a", {"a": 1.0})  # type: ignore[arg-type]


class TestRender:
    """formula_to_string rendering."""

    def test_min_and_product(self) -> None:
        """N-ary nodes render with their conventional syntax."""
        assert formula_to_string(Min((Value("step_0"), Value("step_1")))) == "min(step_0, step_1)"
        assert formula_to_string(Product((Value("branch_0"), Value("branch_1")))) == "branch_0 * branch_1"

    def test_sum_and_scale(self) -> None:
        """Sums are parenthesized and scales use %g."""
        node = Scale(2.0, Sum((Value("a"), Value("b"))))

        assert formula_to_string(node) == "2 * (a + b)"

    def test_degenerate_nodes(self) -> None:
        """Empty and single-child nodes collapse."""
        assert formula_to_string(Product()) == "1"
        assert formula_to_string(Sum()) == "0"
        assert formula_to_string(Product((Value("x"),))) == "x"


class TestBuildAndInspect:
    """create_formula, formula_names and serialization."""

    def test_create_formula(self) -> None:
        """create_formula builds an n-ary node over Value references."""
        node = create_formula("max", ["a", "b"])

        assert node == Max((Value("a"), Value("b")))

    def test_create_formula_bad_kind(self) -> None:
        """Unknown kinds raise."""
        with pytest.raises(ValidationError, match="kind"):
            create_formula("median", ["a"])  # type: ignore[arg-type]

    def test_formula_names_order_and_dedup(self) -> None:
        """Names come back once each in first-appearance order."""
        node = Sum((Value("b"), Scale(0.5, Min((Value("a"), Value("b")))), Value("c")))

        assert formula_names(node) == ["b", "a", "c"]

    def test_is_formula_node(self) -> None:
        """Type guard accepts nodes only."""
        assert is_formula_node(Value("a"))
        assert not is_formula_node({"type": "value"})

    def test_dict_round_trip(self) -> None:
        """A nested formula survives to_dict/from_dict."""
        node = Scale(0.25, Product((Value("a"), Max((Value("b"), Value("c"))))))

        data = formula_to_dict(node)

        assert data["type"] == "scale"
        assert data["child"]["children"][1]["type"] == "max"
        assert formula_from_dict(data) == node

    def test_from_dict_unknown_type(self) -> None:
        """Unknown tags raise."""
        with pytest.raises(ValidationError):
            formula_from_dict({"type": "median", "children": []})
