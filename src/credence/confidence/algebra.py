"""Confidence algebra: composition operators over ConfidenceValue.

Operators:
- sequence: a pipeline is as strong as its weakest stage (min)
- parallel_all: independent conjunction (product)
- parallel_any: independent disjunction (noisy-or), optionally blended
  with max for correlated branches

Every operator returns a Derived value with a provenance chain, or Absent
when there is nothing to compose. Absent is never read as zero here;
effective_confidence() is the only place that does, and it exists for
gating decisions, not composition.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any, Literal, TypeVar

from credence.confidence.formula import (
    Max,
    Min,
    Product,
    Value,
    evaluate_formula,
    formula_to_string,
)
from credence.confidence.types import (
    Absent,
    Bounded,
    CalibrationStatus,
    ConfidenceInput,
    ConfidenceValue,
    Derived,
    Deterministic,
    Measured,
    unknown_type_error,
)
from credence.foundation.errors import ErrorCode, validation_error

logger = logging.getLogger(__name__)

AbsentHandling = Literal["relaxed", "strict"]

T = TypeVar("T")


def numeric_value(confidence: ConfidenceValue) -> float | None:
    """Point value of a confidence, or None when Absent.

    Bounded confidence maps to the midpoint of its interval.
    """
    match confidence:
        case Deterministic(value=v):
            return v
        case Bounded(low=low, high=high):
            return (low + high) / 2
        case Measured(accuracy=accuracy):
            return accuracy
        case Derived(value=v):
            return v
        case Absent():
            return None
        case _:
            raise unknown_type_error(confidence)


def compute_calibration_status(inputs: Sequence[ConfidenceValue]) -> CalibrationStatus:
    """Whether a combination of these inputs keeps calibration guarantees.

    Preserved only when every input is Deterministic, Measured, or a Derived
    that is itself preserved. Bounded and Absent inputs degrade it, and so
    does an empty input list.
    """
    if not inputs:
        return "degraded"
    for item in inputs:
        match item:
            case Deterministic() | Measured():
                continue
            case Derived(calibration_status="preserved"):
                continue
            case Derived() | Bounded() | Absent():
                return "degraded"
            case _:
                raise unknown_type_error(item)
    return "preserved"


def _named(values: Sequence[ConfidenceValue], prefix: str) -> tuple[ConfidenceInput, ...]:
    return tuple(ConfidenceInput(f"{prefix}_{i}", v) for i, v in enumerate(values))


def _present(values: Sequence[ConfidenceValue]) -> list[tuple[ConfidenceValue, float]]:
    present = []
    for v in values:
        n = numeric_value(v)
        if n is not None:
            present.append((v, n))
    return present


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def _check_correlation(correlation: float) -> float:
    if isinstance(correlation, bool) or not isinstance(correlation, (int, float)) or not 0.0 <= correlation <= 1.0:
        raise validation_error(
            ErrorCode.ALGEBRA_INVALID_ARGUMENT, field="correlation",
            detail=f"must be in [0, 1], got {correlation!r}",
        )
    return float(correlation)


def sequence(values: Sequence[ConfidenceValue]) -> ConfidenceValue:
    """Confidence that every stage of a pipeline succeeds: min of stages.

    Any Absent stage makes the whole sequence Absent.
    """
    if not values:
        return Absent("insufficient_data")
    present = _present(values)
    if len(present) < len(values):
        return Absent("uncalibrated")

    inputs = _named(values, "step")
    ast = Min(tuple(Value(i.name) for i in inputs))
    return Derived(
        value=min(n for _, n in present),
        formula=formula_to_string(ast),
        inputs=inputs,
        calibration_status=compute_calibration_status(values),
        formula_ast=ast,
    )


def parallel_all(values: Sequence[ConfidenceValue]) -> ConfidenceValue:
    """Confidence that every independent branch succeeds: product.

    Preserved calibration here assumes the branches really are independent;
    callers must justify that. There is no relaxed Absent mode for AND.
    """
    if not values:
        return Absent("insufficient_data")
    present = _present(values)
    if len(present) < len(values):
        return Absent("uncalibrated")

    inputs = _named(values, "branch")
    ast = Product(tuple(Value(i.name) for i in inputs))
    product = 1.0
    for _, n in present:
        product *= n
    return Derived(
        value=product,
        formula=formula_to_string(ast),
        inputs=inputs,
        calibration_status=compute_calibration_status(values),
        formula_ast=ast,
    )


def parallel_all_correlated(
    values: Sequence[ConfidenceValue],
    *,
    correlation: float,
) -> ConfidenceValue:
    """Conjunction of correlated branches: ``(1 - rho) * product + rho * min``."""
    rho = _check_correlation(correlation)
    if rho == 0.0:
        return parallel_all(values)
    if not values:
        return Absent("insufficient_data")
    present = _present(values)
    if len(present) < len(values):
        return Absent("uncalibrated")

    numbers = [n for _, n in present]
    product = math.prod(numbers)
    return Derived(
        value=_clamp((1 - rho) * product + rho * min(numbers)),
        formula=f"correlation_adjusted_product(rho={rho:.2f})",
        inputs=_named(values, "branch"),
        calibration_status="degraded",
    )


def parallel_any(
    values: Sequence[ConfidenceValue],
    *,
    correlation: float = 0.0,
    absent_handling: AbsentHandling = "relaxed",
) -> ConfidenceValue:
    """Confidence that at least one branch succeeds.

    Independent branches combine by noisy-or, ``1 - prod(1 - p_i)``. With
    ``correlation`` rho the result is ``(1 - rho) * noisy_or + rho * max``.

    In relaxed mode Absent branches are dropped and the formula records how
    many were used; dropping OR branches can only lower the result, so it
    stays a conservative bound. Strict mode returns Absent if any branch is.
    All-Absent input is Absent in both modes.
    """
    rho = _check_correlation(correlation)
    if absent_handling not in ("relaxed", "strict"):
        raise validation_error(
            ErrorCode.ALGEBRA_INVALID_ARGUMENT, field="absent_handling",
            detail=f"expected 'relaxed' or 'strict', got {absent_handling!r}",
        )
    if not values:
        return Absent("insufficient_data")

    present = _present(values)
    if not present:
        logger.warning("parallel_any: all %d branches are absent", len(values))
        return Absent("uncalibrated")
    has_absent = len(present) < len(values)
    if has_absent and absent_handling == "strict":
        return Absent("uncalibrated")

    numbers = [n for _, n in present]
    failure = 1.0
    for n in numbers:
        failure *= 1 - n
    noisy_or = 1 - failure
    result = (1 - rho) * noisy_or + rho * max(numbers)

    if rho == 0.0:
        formula = "1 - product(1 - present_branches)" if has_absent else "1 - product(1 - branches)"
    else:
        formula = f"correlation_adjusted_noisy_or(rho={rho:.2f})"
    if has_absent:
        formula += f" [{len(present)}/{len(values)} branches]"
        logger.debug("parallel_any: using %d of %d branches", len(present), len(values))

    status = compute_calibration_status([v for v, _ in present])
    if has_absent or rho > 0.0:
        status = "degraded"

    return Derived(
        value=_clamp(result),
        formula=formula,
        inputs=_named(values, "branch"),
        calibration_status=status,
    )


def re_evaluate(derived: Derived, bindings: Mapping[str, float]) -> float:
    """Re-run a derivation's formula against a fresh binding.

    Raises:
        ValidationError: If the derivation carries no formula AST.
        MissingBindingError: If the binding lacks a referenced name.
    """
    if derived.formula_ast is None:
        raise validation_error(
            ErrorCode.FORMULA_INVALID_NODE, field="formula_ast",
            detail=f"derivation '{derived.formula}' has no typed formula",
        )
    return evaluate_formula(derived.formula_ast, bindings)


def input_bindings(derived: Derived) -> dict[str, float]:
    """Numeric bindings of a derivation's present inputs."""
    bindings = {}
    for item in derived.inputs:
        n = numeric_value(item.confidence)
        if n is not None:
            bindings[item.name] = n
    return bindings


def weighted_average(
    inputs: Sequence[tuple[str, ConfidenceValue, float]],
) -> ConfidenceValue:
    """Weighted mean of named confidences. Absent inputs are skipped."""
    if not inputs:
        return Absent("insufficient_data")
    for name, _, weight in inputs:
        if weight < 0:
            raise validation_error(
                ErrorCode.ALGEBRA_INVALID_ARGUMENT, field="weight",
                detail=f"weight for '{name}' must be non-negative, got {weight}",
            )

    present = [(name, c, w, numeric_value(c)) for name, c, w in inputs]
    present = [p for p in present if p[3] is not None]
    if not present:
        return Absent("uncalibrated")

    total = sum(w for _, _, w, _ in present)
    if total == 0:
        return Absent("insufficient_data")
    value = sum(n * w for _, _, w, n in present) / total
    return Derived(
        value=_clamp(value),
        formula="weighted_average",
        inputs=tuple(ConfidenceInput(name, c) for name, c, _, _ in present),
        calibration_status="degraded",
    )


def apply_decay(
    confidence: ConfidenceValue,
    age_seconds: float,
    half_life_seconds: float,
) -> ConfidenceValue:
    """Exponential decay with the given half-life. Absent passes through."""
    if half_life_seconds <= 0:
        raise validation_error(
            ErrorCode.ALGEBRA_INVALID_ARGUMENT, field="half_life_seconds",
            detail=f"must be positive, got {half_life_seconds}",
        )
    if age_seconds < 0:
        raise validation_error(
            ErrorCode.ALGEBRA_INVALID_ARGUMENT, field="age_seconds",
            detail=f"must be non-negative, got {age_seconds}",
        )
    current = numeric_value(confidence)
    if current is None:
        return confidence

    factor = 0.5 ** (age_seconds / half_life_seconds)
    return Derived(
        value=current * factor,
        formula=f"decay({factor:.4f})",
        inputs=(
            ConfidenceInput("original", confidence),
            ConfidenceInput(
                "decay_factor",
                Deterministic(
                    1.0 if factor >= 0.5 else 0.0,
                    f"age_{age_seconds:g}s_halflife_{half_life_seconds:g}s",
                ),
            ),
        ),
        calibration_status="degraded",
    )


def and_confidence(a: ConfidenceValue, b: ConfidenceValue) -> ConfidenceValue:
    """Binary AND: min of both sides. Absent on either side wins."""
    if isinstance(a, Absent):
        return a
    if isinstance(b, Absent):
        return b
    ast = Min((Value("a"), Value("b")))
    return Derived(
        value=min(numeric_value(a), numeric_value(b)),
        formula=formula_to_string(ast),
        inputs=(ConfidenceInput("a", a), ConfidenceInput("b", b)),
        calibration_status=compute_calibration_status([a, b]),
        formula_ast=ast,
    )


def or_confidence(a: ConfidenceValue, b: ConfidenceValue) -> ConfidenceValue:
    """Binary OR: max of both sides. An Absent side yields the other."""
    a_val, b_val = numeric_value(a), numeric_value(b)
    if a_val is None and b_val is None:
        return Absent("insufficient_data")
    if b_val is None:
        return a
    if a_val is None:
        return b
    ast = Max((Value("a"), Value("b")))
    return Derived(
        value=max(a_val, b_val),
        formula=formula_to_string(ast),
        inputs=(ConfidenceInput("a", a), ConfidenceInput("b", b)),
        calibration_status="degraded",
        formula_ast=ast,
    )


# =============================================================================
# Gating helpers
# =============================================================================


def effective_confidence(confidence: ConfidenceValue) -> float:
    """Conservative scalar for gating: Bounded uses its low end, Absent is 0."""
    match confidence:
        case Deterministic(value=v) | Derived(value=v):
            return v
        case Measured(accuracy=accuracy):
            return accuracy
        case Bounded(low=low):
            return low
        case Absent():
            return 0.0
        case _:
            raise unknown_type_error(confidence)


def confidence_type(confidence: ConfidenceValue) -> str:
    """Serialized type tag of a confidence value."""
    match confidence:
        case Deterministic():
            return "deterministic"
        case Bounded():
            return "bounded"
        case Measured():
            return "measured"
        case Derived():
            return "derived"
        case Absent():
            return "absent"
        case _:
            raise unknown_type_error(confidence)


@dataclass(frozen=True, slots=True)
class ThresholdCheck:
    """Outcome of gating an action on a confidence threshold."""

    allowed: bool
    effective: float
    confidence_type: str
    reason: str = ""
    mitigation: str = ""


def check_threshold(confidence: ConfidenceValue, minimum: float) -> ThresholdCheck:
    """Allow or block an action on the conservative confidence value."""
    effective = effective_confidence(confidence)
    kind = confidence_type(confidence)
    if effective >= minimum:
        return ThresholdCheck(allowed=True, effective=effective, confidence_type=kind)
    return ThresholdCheck(
        allowed=False,
        effective=effective,
        confidence_type=kind,
        reason=f"Confidence {effective:.2f} below threshold {minimum}",
        mitigation=(
            "Run calibration suite to obtain confidence data"
            if kind == "absent"
            else "Use a higher-confidence primitive"
        ),
    )


def meets_threshold(confidence: ConfidenceValue, minimum: float) -> bool:
    return effective_confidence(confidence) >= minimum


@dataclass(frozen=True, slots=True)
class ConfidenceStatusReport:
    type: str
    numeric_value: float | None
    is_calibrated: bool
    explanation: str


def describe_confidence(confidence: ConfidenceValue) -> ConfidenceStatusReport:
    """Human-readable summary of where a confidence came from."""
    match confidence:
        case Deterministic(reason=reason):
            explanation = f"Logically certain ({reason})"
        case Derived(formula=formula, inputs=inputs):
            explanation = f"Computed via {formula} from {len(inputs)} inputs"
        case Measured(sample_size=n, accuracy=accuracy):
            explanation = f"Calibrated from {n} samples ({accuracy * 100:.1f}% accuracy)"
        case Bounded(low=low, high=high, basis=basis, citation=citation):
            explanation = f"Bounded [{low}, {high}] based on {basis}: {citation}"
        case Absent(reason=reason):
            explanation = f"Unknown confidence ({reason})"
        case _:
            raise unknown_type_error(confidence)
    return ConfidenceStatusReport(
        type=confidence_type(confidence),
        numeric_value=numeric_value(confidence),
        is_calibrated=isinstance(confidence, Measured),
        explanation=explanation,
    )


def select_with_degradation(
    items: Sequence[T],
    confidence_of: Callable[[T], ConfidenceValue] = lambda item: item.confidence,
    id_of: Callable[[T], Any] = lambda item: item.id,
) -> T | None:
    """Pick the most trustworthy option, degrading gracefully.

    Options with confidence data win by effective confidence. When none has
    data, the lowest id is chosen so the pick stays deterministic.
    """
    if not items:
        return None
    with_data = [item for item in items if not isinstance(confidence_of(item), Absent)]
    if not with_data:
        return min(items, key=id_of)
    return max(with_data, key=lambda item: effective_confidence(confidence_of(item)))
