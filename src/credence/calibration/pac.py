"""PAC sample-size bounds for calibration (Hoeffding).

To estimate a probability within epsilon of the truth with probability at
least 1 - delta, Hoeffding's inequality needs

    n >= ln(2 / delta) / (2 * epsilon**2)

With k bins that must all hold at once, a union bound replaces delta by
delta / k, and each bin needs that many samples.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from credence.foundation.errors import ErrorCode, validation_error

__all__ = [
    "CalibrationRequirements",
    "PACThreshold",
    "check_calibration_requirements",
    "compute_achievable_accuracy",
    "compute_min_samples_for_calibration",
]


@dataclass(frozen=True, slots=True)
class PACThreshold:
    min_samples: int
    """Total samples required across all bins."""

    samples_per_bin: int
    epsilon: float
    confidence: float
    num_bins: int
    rationale: str


@dataclass(frozen=True, slots=True)
class CalibrationRequirements:
    meets: bool
    required: int
    actual: int
    deficit: int
    achievable_accuracy: float


def _check_open_unit(value: float, name: str, hint: str) -> None:
    if isinstance(value, bool) or not isinstance(value, (int, float)) or not 0 < value < 1:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field=name,
            detail=f"must be in (0, 1), got {value!r}. {hint}",
        )


def _check_bins(num_bins: int | None) -> int:
    if num_bins is None:
        return 1
    if isinstance(num_bins, bool) or not isinstance(num_bins, int) or num_bins < 1:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="num_bins",
            detail=f"must be a positive integer, got {num_bins!r}",
        )
    return num_bins


def compute_min_samples_for_calibration(
    epsilon: float,
    confidence: float,
    num_bins: int | None = None,
) -> PACThreshold:
    """Samples needed to calibrate within ``epsilon`` at the given confidence.

    Example:
        >>> compute_min_samples_for_calibration(0.05, 0.95).min_samples
        738
    """
    _check_open_unit(epsilon, "epsilon", 'Use 0.05 for "within 5 percentage points".')
    _check_open_unit(confidence, "confidence", 'Use 0.95 for "95% confident".')
    k = _check_bins(num_bins)

    delta = 1 - confidence
    per_bin = math.log(2 * k / delta) / (2 * epsilon * epsilon)
    total = math.ceil(k * per_bin)

    if k == 1:
        rationale = (
            f"Hoeffding bound: to estimate a probability within eps={epsilon:.3f} with "
            f"probability >= {confidence:.3f}, n >= ln(2/delta)/(2 eps^2) = "
            f"ln({2 / delta:.2f})/(2 x {epsilon:.3f}^2) ~ {math.ceil(per_bin)} samples."
        )
    else:
        rationale = (
            f"Hoeffding bound with a union bound over {k} bins: each bin needs "
            f"n >= ln(2k/delta)/(2 eps^2) = ln({2 * k / delta:.2f})/(2 x {epsilon:.3f}^2) "
            f"~ {math.ceil(per_bin)} samples. Total across {k} bins: {total} samples."
        )

    return PACThreshold(
        min_samples=total,
        samples_per_bin=math.ceil(per_bin),
        epsilon=epsilon,
        confidence=confidence,
        num_bins=k,
        rationale=rationale,
    )


def compute_achievable_accuracy(
    sample_size: int,
    confidence: float,
    num_bins: int | None = None,
) -> float:
    """Epsilon guaranteed by ``sample_size`` samples, capped at 1."""
    if sample_size <= 0:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="sample_size",
            detail=f"must be positive, got {sample_size}",
        )
    _check_open_unit(confidence, "confidence", 'Use 0.95 for "95% confident".')
    k = _check_bins(num_bins)

    delta = 1 - confidence
    per_bin = sample_size / k
    return min(1.0, math.sqrt(math.log(2 * k / delta) / (2 * per_bin)))


def check_calibration_requirements(
    sample_size: int,
    epsilon: float,
    confidence: float,
    num_bins: int | None = None,
) -> CalibrationRequirements:
    """Compare an actual sample count against the Hoeffding requirement."""
    required = compute_min_samples_for_calibration(epsilon, confidence, num_bins).min_samples
    return CalibrationRequirements(
        meets=sample_size >= required,
        required=required,
        actual=sample_size,
        deficit=max(0, required - sample_size),
        achievable_accuracy=compute_achievable_accuracy(sample_size, confidence, num_bins),
    )
