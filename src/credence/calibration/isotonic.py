"""Isotonic calibration via Pool-Adjacent-Violators.

Fits the non-decreasing step function from raw score to probability that
minimizes squared error, without assuming a parametric shape.
"""

from __future__ import annotations

import bisect
import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from typing import Any

from credence.foundation.errors import ErrorCode, validation_error

logger = logging.getLogger(__name__)

__all__ = [
    "CalibratedMapping",
    "CalibrationPoint",
    "Prediction",
    "apply_isotonic_mapping",
    "check_outcome_pair",
    "coerce_predictions",
    "isotonic_calibration",
]


@dataclass(frozen=True, slots=True)
class Prediction:
    """A predicted probability and the observed outcome (0 or 1)."""

    predicted: float
    actual: int


@dataclass(frozen=True, slots=True)
class CalibrationPoint:
    raw: float
    calibrated: float


@dataclass(frozen=True, slots=True)
class CalibratedMapping:
    """Monotone raw -> calibrated mapping produced by PAV."""

    points: tuple[CalibrationPoint, ...]
    min_raw: float
    max_raw: float
    sample_size: int
    is_strictly_monotonic: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "points": [{"raw": p.raw, "calibrated": p.calibrated} for p in self.points],
            "minRaw": self.min_raw,
            "maxRaw": self.max_raw,
            "sampleSize": self.sample_size,
            "isStrictlyMonotonic": self.is_strictly_monotonic,
        }


def check_outcome_pair(
    score: Any,
    outcome: Any,
    index: int,
    *,
    score_field: str = "predicted",
    outcome_field: str = "actual",
    clamp_score: bool = False,
) -> tuple[float, float]:
    """Validate one (score, outcome) observation.

    The score must be a finite number in [0, 1] (or is clamped into it when
    ``clamp_score`` is set) and the outcome must be 0 or 1.

    Raises:
        ValidationError: Naming ``score_field`` or ``outcome_field``.
    """
    try:
        value = float(score)
    except (TypeError, ValueError) as e:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field=score_field,
            detail=f"item {index}: expected a number, got {score!r}", cause=e,
        ) from e
    if not math.isfinite(value):
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field=score_field,
            detail=f"item {index}: must be finite, got {score!r}",
        )
    if clamp_score:
        value = min(1.0, max(0.0, value))
    elif not 0.0 <= value <= 1.0:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field=score_field,
            detail=f"item {index}: must be in [0, 1], got {score!r}",
        )

    if isinstance(outcome, str) or outcome not in (0, 1):
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field=outcome_field,
            detail=f"item {index}: must be 0 or 1, got {outcome!r}",
        )
    return value, float(outcome)


def coerce_predictions(
    predictions: Sequence[Prediction | Mapping[str, Any] | tuple[float, int]],
    *,
    clamp_scores: bool = False,
) -> list[tuple[float, float]]:
    """Normalize and validate predictions as (predicted, actual) pairs."""
    pairs = []
    for index, item in enumerate(predictions):
        match item:
            case Prediction(predicted=p, actual=a) | {"predicted": p, "actual": a} | (p, a):
                pairs.append(check_outcome_pair(p, a, index, clamp_score=clamp_scores))
            case _:
                raise validation_error(
                    ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="predictions",
                    detail=f"expected (predicted, actual), got {item!r}",
                )
    return pairs


@dataclass(slots=True)
class _Block:
    total: float
    count: int
    min_raw: float
    max_raw: float

    @property
    def mean(self) -> float:
        return self.total / self.count


def isotonic_calibration(
    predictions: Sequence[Prediction | Mapping[str, Any] | tuple[float, int]],
) -> CalibratedMapping:
    """Fit a monotone calibration map with Pool-Adjacent-Violators.

    Predictions sharing a raw score are pooled first, since a step function
    can only give them one value. Each resulting block contributes a point at
    its lowest raw score and, when it spans a range, one at its highest.

    Raises:
        ValidationError: If predictions is empty.
    """
    pairs = coerce_predictions(predictions)
    if not pairs:
        raise validation_error(
            ErrorCode.CALIBRATION_EMPTY_INPUT, field="predictions", detail="predictions array is empty",
        )
    pairs.sort(key=lambda pair: pair[0])

    # Stack-based PAV: push each tie group, then merge while the top two violate order.
    blocks: list[_Block] = []
    for raw, actual in pairs:
        if blocks and blocks[-1].max_raw == raw:
            blocks[-1].total += actual
            blocks[-1].count += 1
        else:
            blocks.append(_Block(actual, 1, raw, raw))
        while len(blocks) > 1 and blocks[-2].mean > blocks[-1].mean:
            top = blocks.pop()
            below = blocks[-1]
            below.total += top.total
            below.count += top.count
            below.max_raw = top.max_raw

    points: list[CalibrationPoint] = []
    strictly = True
    previous: float | None = None
    for block in blocks:
        calibrated = block.mean
        points.append(CalibrationPoint(block.min_raw, calibrated))
        if block.max_raw > block.min_raw:
            points.append(CalibrationPoint(block.max_raw, calibrated))
        if previous is not None and calibrated <= previous:
            strictly = False
        previous = calibrated

    logger.debug("Isotonic fit: %d samples pooled into %d blocks", len(pairs), len(blocks))
    return CalibratedMapping(
        points=tuple(points),
        min_raw=pairs[0][0],
        max_raw=pairs[-1][0],
        sample_size=len(pairs),
        is_strictly_monotonic=strictly,
    )


def apply_isotonic_mapping(mapping: CalibratedMapping, raw: float) -> float:
    """Map a raw score through a fitted isotonic calibration.

    Interpolates linearly between bracketing points and clamps to the end
    values outside [min_raw, max_raw]. An empty mapping returns the raw
    score; a single-point mapping returns that point's value.
    """
    points = mapping.points
    if not points:
        return raw
    if len(points) == 1:
        return points[0].calibrated
    if raw <= mapping.min_raw:
        return points[0].calibrated
    if raw >= mapping.max_raw:
        return points[-1].calibrated

    raws = [p.raw for p in points]
    right = bisect.bisect_right(raws, raw)
    right = min(max(right, 1), len(points) - 1)
    p1, p2 = points[right - 1], points[right]
    if p2.raw == p1.raw:
        return p1.calibrated
    t = (raw - p1.raw) / (p2.raw - p1.raw)
    return p1.calibrated + t * (p2.calibrated - p1.calibrated)
