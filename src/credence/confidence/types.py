"""Confidence value types.

A ConfidenceValue is one of five immutable variants. Raw floats are never
used as confidence: every value says where it came from.

- Deterministic: logically certain (a parser succeeded or it did not)
- Bounded: an interval estimate with a cited basis, no point value
- Measured: accuracy measured on a labeled dataset
- Derived: the result of composing other confidence values
- Absent: explicitly no confidence available (never a numeric 0)

Serialized shapes use the camelCase field names shared with the evidence
ledger (datasetId, sampleSize, ci95, formulaAst, calibrationStatus).
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from credence.confidence.formula import FormulaNode, formula_from_dict, formula_to_dict
from credence.foundation.errors import CredenceError, ErrorCode, validation_error

BoundedBasis = Literal["theoretical", "literature"]
AbsentReason = Literal["uncalibrated", "insufficient_data"]
CalibrationStatus = Literal["preserved", "degraded"]

_BASES = ("theoretical", "literature")
_ABSENT_REASONS = ("uncalibrated", "insufficient_data")
_CALIBRATION_STATUSES = ("preserved", "degraded")


def _check_probability(value: float, name: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
        raise validation_error(
            ErrorCode.CONFIDENCE_INVALID_VALUE, field=name, detail=f"expected a number, got {value!r}",
        )
    if not 0.0 <= value <= 1.0:
        raise validation_error(
            ErrorCode.CONFIDENCE_INVALID_VALUE, field=name, detail=f"{value} is outside [0, 1]",
        )


def _check_choice(value: str, name: str, choices: tuple[str, ...]) -> None:
    if value not in choices:
        raise validation_error(
            ErrorCode.CONFIDENCE_INVALID_VALUE,
            field=name,
            detail=f"expected one of {', '.join(choices)}, got {value!r}",
        )


@dataclass(frozen=True, slots=True)
class Deterministic:
    """A logically certain outcome: 1.0 on success, 0.0 on failure."""

    value: float
    """Either 0.0 or 1.0."""

    reason: str
    """Why the outcome is certain."""

    def __post_init__(self) -> None:
        if not isinstance(self.value, (int, float)) or self.value not in (0.0, 1.0):
            raise validation_error(
                ErrorCode.CONFIDENCE_INVALID_VALUE, field="value",
                detail=f"deterministic confidence must be 0 or 1, got {self.value!r}",
            )
        object.__setattr__(self, "value", float(self.value))


@dataclass(frozen=True, slots=True)
class Bounded:
    """An interval estimate without a point value."""

    low: float
    high: float
    basis: BoundedBasis
    """Where the bound comes from: 'theoretical' or 'literature'."""

    citation: str

    def __post_init__(self) -> None:
        _check_probability(self.low, "low")
        _check_probability(self.high, "high")
        if not self.low < self.high:
            raise validation_error(
                ErrorCode.CONFIDENCE_INVALID_BOUNDS, field="low",
                detail=f"low ({self.low}) must be strictly less than high ({self.high})",
            )
        _check_choice(self.basis, "basis", _BASES)

    @property
    def midpoint(self) -> float:
        return (self.low + self.high) / 2


@dataclass(frozen=True, slots=True)
class Measured:
    """Accuracy measured on a labeled dataset."""

    dataset_id: str
    sample_size: int
    accuracy: float
    ci95: tuple[float, float]
    """95% confidence interval (lo, hi) around accuracy."""

    measured_at: str = ""
    """ISO timestamp of the measurement, if known."""

    def __post_init__(self) -> None:
        if isinstance(self.sample_size, bool) or not isinstance(self.sample_size, int) or self.sample_size <= 0:
            raise validation_error(
                ErrorCode.CONFIDENCE_INVALID_VALUE, field="sample_size",
                detail=f"must be a positive integer, got {self.sample_size!r}",
            )
        _check_probability(self.accuracy, "accuracy")
        if len(self.ci95) != 2:
            raise validation_error(
                ErrorCode.CONFIDENCE_INVALID_BOUNDS, field="ci95", detail="expected a (lo, hi) pair",
            )
        lo, hi = self.ci95
        _check_probability(lo, "ci95")
        _check_probability(hi, "ci95")
        if lo > hi:
            raise validation_error(
                ErrorCode.CONFIDENCE_INVALID_BOUNDS, field="ci95", detail=f"lo ({lo}) exceeds hi ({hi})",
            )
        object.__setattr__(self, "ci95", (float(lo), float(hi)))

    @property
    def value(self) -> float:
        return self.accuracy


@dataclass(frozen=True, slots=True)
class ConfidenceInput:
    """A named input in a derivation's provenance chain."""

    name: str
    confidence: ConfidenceValue


@dataclass(frozen=True, slots=True)
class Derived:
    """The result of composing other confidence values."""

    value: float
    formula: str
    """Human-readable description of the computation."""

    inputs: tuple[ConfidenceInput, ...] = ()
    """Provenance chain, used for auditing and undo."""

    calibration_status: CalibrationStatus = "degraded"
    formula_ast: FormulaNode | None = None
    """Typed formula, when the derivation is expressible as one."""

    def __post_init__(self) -> None:
        _check_probability(self.value, "value")
        _check_choice(self.calibration_status, "calibration_status", _CALIBRATION_STATUSES)
        object.__setattr__(self, "value", float(self.value))
        object.__setattr__(self, "inputs", tuple(self.inputs))

    def input_named(self, name: str) -> ConfidenceValue | None:
        """Look up an input by name."""
        for item in self.inputs:
            if item.name == name:
                return item.confidence
        return None


@dataclass(frozen=True, slots=True)
class Absent:
    """No confidence available. Not the same as zero."""

    reason: AbsentReason = "uncalibrated"

    def __post_init__(self) -> None:
        _check_choice(self.reason, "reason", _ABSENT_REASONS)


ConfidenceValue = Deterministic | Bounded | Measured | Derived | Absent


# =============================================================================
# Factories
# =============================================================================


def deterministic(success: bool, reason: str) -> Deterministic:
    """Confidence for an outcome that either certainly held or certainly did not."""
    return Deterministic(1.0 if success else 0.0, reason)


def syntactic(success: bool) -> Deterministic:
    """Deterministic confidence for a syntactic operation (parse, tokenize)."""
    return deterministic(success, "syntactic_operation" if success else "syntactic_failure")


def bounded(low: float, high: float, basis: BoundedBasis, citation: str) -> Bounded:
    return Bounded(low, high, basis, citation)


def measured(
    dataset_id: str,
    sample_size: int,
    accuracy: float,
    ci95: tuple[float, float],
) -> Measured:
    """Measured confidence stamped with the current UTC time."""
    return Measured(
        dataset_id=dataset_id,
        sample_size=sample_size,
        accuracy=accuracy,
        ci95=ci95,
        measured_at=datetime.now(UTC).isoformat(),
    )


def absent(reason: AbsentReason = "uncalibrated") -> Absent:
    return Absent(reason)


def is_confidence_value(obj: object) -> bool:
    """Type guard for the confidence union."""
    return isinstance(obj, (Deterministic, Bounded, Measured, Derived, Absent))


def unknown_type_error(obj: object) -> CredenceError:
    """Error for a value outside the confidence union."""
    return CredenceError(
        ErrorCode.CONFIDENCE_UNKNOWN_TYPE, context={"detail": type(obj).__name__},
    )


# =============================================================================
# Serialization
# =============================================================================


def confidence_to_dict(value: ConfidenceValue) -> dict[str, Any]:
    """Serialize to the tagged JSON shape stored in the evidence ledger."""
    match value:
        case Deterministic(value=v, reason=reason):
            return {"type": "deterministic", "value": v, "reason": reason}
        case Bounded(low=low, high=high, basis=basis, citation=citation):
            return {"type": "bounded", "low": low, "high": high, "basis": basis, "citation": citation}
        case Measured():
            data: dict[str, Any] = {
                "type": "measured",
                "datasetId": value.dataset_id,
                "sampleSize": value.sample_size,
                "accuracy": value.accuracy,
                "ci95": list(value.ci95),
            }
            if value.measured_at:
                data["measuredAt"] = value.measured_at
            return data
        case Derived():
            data = {
                "type": "derived",
                "value": value.value,
                "formula": value.formula,
                "inputs": [
                    {"name": item.name, "confidence": confidence_to_dict(item.confidence)}
                    for item in value.inputs
                ],
                "calibrationStatus": value.calibration_status,
            }
            if value.formula_ast is not None:
                data["formulaAst"] = formula_to_dict(value.formula_ast)
            return data
        case Absent(reason=reason):
            return {"type": "absent", "reason": reason}
        case _:
            raise unknown_type_error(value)


def confidence_from_dict(data: Mapping[str, Any]) -> ConfidenceValue:
    """Parse the tagged JSON shape. Validates every field."""
    kind = data.get("type")
    try:
        match kind:
            case "deterministic":
                return Deterministic(float(data["value"]), str(data.get("reason", "")))
            case "bounded":
                return Bounded(
                    float(data["low"]), float(data["high"]), data["basis"], str(data.get("citation", "")),
                )
            case "measured":
                lo, hi = data["ci95"]
                return Measured(
                    dataset_id=str(data["datasetId"]),
                    sample_size=data["sampleSize"],
                    accuracy=float(data["accuracy"]),
                    ci95=(float(lo), float(hi)),
                    measured_at=str(data.get("measuredAt", "")),
                )
            case "derived":
                ast = data.get("formulaAst")
                return Derived(
                    value=float(data["value"]),
                    formula=str(data["formula"]),
                    inputs=tuple(
                        ConfidenceInput(item["name"], confidence_from_dict(item["confidence"]))
                        for item in data.get("inputs", ())
                    ),
                    calibration_status=data.get("calibrationStatus", "degraded"),
                    formula_ast=formula_from_dict(ast) if ast is not None else None,
                )
            case "absent":
                return Absent(data.get("reason", "uncalibrated"))
    except KeyError as e:
        raise validation_error(
            ErrorCode.CONFIDENCE_INVALID_VALUE, field=str(e.args[0]), detail="missing required field", cause=e,
        ) from e
    raise CredenceError(ErrorCode.CONFIDENCE_UNKNOWN_TYPE, context={"detail": repr(kind)})
