"""Bucketed calibration curves and reports.

A calibration curve compares stated confidence with observed accuracy in
equal-width buckets:

- ECE: sample-weighted mean gap across non-empty buckets
- MCE: the worst single-bucket gap
- overconfidence ratio: share of samples sitting in buckets whose stated
  mean exceeds their accuracy

A CalibrationReport packages a curve with a per-bucket adjustment table
that adjust_confidence_score() uses to correct future raw scores.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

import numpy as np

from credence.calibration.isotonic import check_outcome_pair
from credence.confidence.algebra import numeric_value
from credence.confidence.types import ConfidenceInput, ConfidenceValue, Derived
from credence.foundation.errors import ErrorCode, validation_error

logger = logging.getLogger(__name__)

__all__ = [
    "CalibrationAdjustment",
    "CalibrationBucket",
    "CalibrationCurve",
    "CalibrationReport",
    "CalibrationSample",
    "ConfidenceAdjustment",
    "adjust_confidence_score",
    "adjust_confidence_value",
    "build_calibration_report",
    "compute_calibration_curve",
    "format_bucket_range",
    "report_from_dict",
    "report_to_dict",
]


@dataclass(frozen=True, slots=True)
class CalibrationSample:
    """A stated confidence and whether the claim turned out correct."""

    confidence: float
    outcome: int
    """1 if the claim was correct, 0 otherwise."""


@dataclass(frozen=True, slots=True)
class CalibrationBucket:
    """One equal-width confidence bucket."""

    confidence_bucket: float
    """Upper edge of the bucket, used as its label."""

    range: tuple[float, float]
    """[low, high) bounds; the last bucket includes 1.0."""

    stated_mean: float
    empirical_accuracy: float
    sample_size: int
    standard_error: float
    """Binomial standard error sqrt(p(1-p)/n)."""

    calibration_error: float
    """|stated_mean - empirical_accuracy|."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "confidenceBucket": self.confidence_bucket,
            "range": list(self.range),
            "statedMean": self.stated_mean,
            "empiricalAccuracy": self.empirical_accuracy,
            "sampleSize": self.sample_size,
            "standardError": self.standard_error,
            "calibrationError": self.calibration_error,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CalibrationBucket:
        low, high = data["range"]
        return cls(
            confidence_bucket=float(data["confidenceBucket"]),
            range=(float(low), float(high)),
            stated_mean=float(data["statedMean"]),
            empirical_accuracy=float(data["empiricalAccuracy"]),
            sample_size=int(data["sampleSize"]),
            standard_error=float(data["standardError"]),
            calibration_error=float(data["calibrationError"]),
        )


@dataclass(frozen=True, slots=True)
class CalibrationCurve:
    buckets: tuple[CalibrationBucket, ...]
    ece: float
    mce: float
    overconfidence_ratio: float
    sample_size: int


def _coerce_sample(
    sample: CalibrationSample | Mapping[str, Any] | tuple[float, int], index: int,
) -> tuple[float, float]:
    match sample:
        case CalibrationSample(confidence=c, outcome=o) | {"confidence": c, "outcome": o} | (c, o):
            return check_outcome_pair(c, o, index, score_field="confidence", outcome_field="outcome")
        case _:
            raise validation_error(
                ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="samples",
                detail=f"expected (confidence, outcome), got {sample!r}",
            )


def compute_calibration_curve(
    samples: Sequence[CalibrationSample | Mapping[str, Any] | tuple[float, int]],
    bucket_count: int = 10,
) -> CalibrationCurve:
    """Bucket samples by stated confidence and compare against outcomes.

    Empty buckets are reported with zeros and do not count toward ECE or MCE.

    Raises:
        ValidationError: If bucket_count is not a positive integer, a
            confidence is not a finite number in [0, 1] or an outcome is not
            0 or 1.
    """
    if isinstance(bucket_count, bool) or not isinstance(bucket_count, int) or bucket_count <= 0:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="bucket_count",
            detail=f"must be a positive integer, got {bucket_count!r}",
        )

    pairs = [_coerce_sample(s, i) for i, s in enumerate(samples)]
    confidences = np.array([c for c, _ in pairs], dtype=float)
    outcomes = np.array([o for _, o in pairs], dtype=float)

    indices = np.minimum(bucket_count - 1, np.floor(confidences * bucket_count).astype(int))
    total = len(pairs)
    width = 1.0 / bucket_count

    buckets: list[CalibrationBucket] = []
    ece_sum = 0.0
    mce = 0.0
    over_weight = 0
    for i in range(bucket_count):
        low = round(i * width, 4)
        high = 1.0 if i == bucket_count - 1 else round((i + 1) * width, 4)
        mask = indices == i
        n = int(mask.sum())
        if n == 0:
            buckets.append(CalibrationBucket(high, (low, high), 0.0, 0.0, 0, 0.0, 0.0))
            continue

        stated = float(confidences[mask].mean())
        accuracy = float(outcomes[mask].mean())
        gap = abs(stated - accuracy)
        ece_sum += n * gap
        mce = max(mce, gap)
        if stated > accuracy:
            over_weight += n
        buckets.append(CalibrationBucket(
            confidence_bucket=high,
            range=(low, high),
            stated_mean=stated,
            empirical_accuracy=accuracy,
            sample_size=n,
            standard_error=math.sqrt(accuracy * (1 - accuracy) / n),
            calibration_error=gap,
        ))

    curve = CalibrationCurve(
        buckets=tuple(buckets),
        ece=ece_sum / total if total else 0.0,
        mce=mce,
        overconfidence_ratio=over_weight / total if total else 0.0,
        sample_size=total,
    )
    logger.debug("Calibration curve: n=%d ece=%.4f mce=%.4f", total, curve.ece, curve.mce)
    return curve


def format_bucket_range(bounds: tuple[float, float]) -> str:
    """Label a bucket, e.g. ``[0.00, 0.20)``."""
    low, high = bounds
    return f"[{low:.2f}, {high:.2f})"


@dataclass(frozen=True, slots=True)
class CalibrationReport:
    """A calibration curve packaged for later score adjustment."""

    dataset_id: str
    computed_at: str
    expected_calibration_error: float
    maximum_calibration_error: float
    overconfidence_ratio: float
    sample_size: int
    buckets: tuple[CalibrationBucket, ...]
    adjustments: dict[str, tuple[float, float]] = field(default_factory=dict)
    """Bucket label -> (raw stated mean, calibrated accuracy)."""

    @property
    def calibration_curve(self) -> dict[float, float]:
        """Bucket upper edge -> empirical accuracy."""
        return {b.confidence_bucket: b.empirical_accuracy for b in self.buckets}


def build_calibration_report(
    dataset_id: str,
    curve: CalibrationCurve,
    computed_at: datetime | None = None,
) -> CalibrationReport:
    """Package a curve with its per-bucket adjustment table."""
    when = computed_at or datetime.now(UTC)
    return CalibrationReport(
        dataset_id=dataset_id,
        computed_at=when.isoformat(),
        expected_calibration_error=curve.ece,
        maximum_calibration_error=curve.mce,
        overconfidence_ratio=curve.overconfidence_ratio,
        sample_size=curve.sample_size,
        buckets=curve.buckets,
        adjustments={
            format_bucket_range(b.range): (b.stated_mean, b.empirical_accuracy)
            for b in curve.buckets
        },
    )


def report_to_dict(report: CalibrationReport) -> dict[str, Any]:
    """Snapshot a report for storage."""
    return {
        "datasetId": report.dataset_id,
        "computedAt": report.computed_at,
        "expectedCalibrationError": report.expected_calibration_error,
        "maximumCalibrationError": report.maximum_calibration_error,
        "overconfidenceRatio": report.overconfidence_ratio,
        "sampleSize": report.sample_size,
        "bucketCount": len(report.buckets),
        "buckets": [b.to_dict() for b in report.buckets],
        "calibrationCurve": [
            {"bucket": k, "accuracy": v} for k, v in report.calibration_curve.items()
        ],
        "adjustments": [
            {"bucket": label, "raw": raw, "calibrated": calibrated}
            for label, (raw, calibrated) in report.adjustments.items()
        ],
    }


def report_from_dict(data: Mapping[str, Any]) -> CalibrationReport:
    """Restore a report from a snapshot."""
    return CalibrationReport(
        dataset_id=str(data["datasetId"]),
        computed_at=str(data["computedAt"]),
        expected_calibration_error=float(data["expectedCalibrationError"]),
        maximum_calibration_error=float(data["maximumCalibrationError"]),
        overconfidence_ratio=float(data.get("overconfidenceRatio", 0.0)),
        sample_size=int(data["sampleSize"]),
        buckets=tuple(CalibrationBucket.from_dict(b) for b in data.get("buckets", ())),
        adjustments={
            a["bucket"]: (float(a["raw"]), float(a["calibrated"]))
            for a in data.get("adjustments", ())
        },
    )


# =============================================================================
# Adjustment
# =============================================================================


@dataclass(frozen=True, slots=True)
class CalibrationAdjustment:
    raw: float
    calibrated: float
    weight: float
    """How strongly the bucket accuracy replaced the raw score (0 to 1)."""

    bucket: CalibrationBucket | None = None


def _find_bucket(buckets: Sequence[CalibrationBucket], value: float) -> CalibrationBucket | None:
    last = len(buckets) - 1
    for i, bucket in enumerate(buckets):
        low, high = bucket.range
        if low <= value < high or (i == last and low <= value <= high):
            return bucket
    return None


def adjust_confidence_score(
    raw: float,
    report: CalibrationReport,
    min_samples_for_adjustment: int = 3,
    min_samples_for_full_weight: int = 20,
) -> CalibrationAdjustment:
    """Pull a raw score toward its bucket's observed accuracy.

    Buckets with fewer than ``min_samples_for_adjustment`` samples leave
    the score alone; the pull grows linearly until
    ``min_samples_for_full_weight`` samples.
    """
    clamped = 0.0 if math.isnan(raw) else min(1.0, max(0.0, raw))
    bucket = _find_bucket(report.buckets, clamped)
    if bucket is None:
        return CalibrationAdjustment(raw=clamped, calibrated=clamped, weight=0.0)
    if bucket.sample_size < min_samples_for_adjustment:
        return CalibrationAdjustment(raw=clamped, calibrated=clamped, weight=0.0, bucket=bucket)

    weight = min(1.0, bucket.sample_size / min_samples_for_full_weight)
    calibrated = bucket.empirical_accuracy * weight + clamped * (1 - weight)
    return CalibrationAdjustment(
        raw=clamped,
        calibrated=min(1.0, max(0.0, calibrated)),
        weight=weight,
        bucket=bucket,
    )


@dataclass(frozen=True, slots=True)
class ConfidenceAdjustment:
    confidence: ConfidenceValue
    raw: float | None
    calibrated: float | None
    weight: float
    status: Literal["uncalibrated", "calibrating", "calibrated"]
    dataset_id: str


def adjust_confidence_value(
    confidence: ConfidenceValue,
    report: CalibrationReport,
    min_samples_for_adjustment: int = 3,
    min_samples_for_full_weight: int = 20,
) -> ConfidenceAdjustment:
    """Apply a report's adjustment to a confidence value.

    Absent values pass through untouched. Everything else becomes a Derived
    tagged ``calibration_curve:<dataset_id>`` with the raw value as input.
    """
    raw = numeric_value(confidence)
    if raw is None:
        return ConfidenceAdjustment(confidence, None, None, 0.0, "uncalibrated", report.dataset_id)

    adjustment = adjust_confidence_score(
        raw, report, min_samples_for_adjustment, min_samples_for_full_weight,
    )
    if report.sample_size <= 0:
        status = "uncalibrated"
    elif adjustment.weight >= 1:
        status = "calibrated"
    else:
        status = "calibrating"

    adjusted = Derived(
        value=adjustment.calibrated,
        formula=f"calibration_curve:{report.dataset_id}",
        inputs=(ConfidenceInput("raw_confidence", confidence),),
        calibration_status="preserved" if status == "calibrated" else "degraded",
    )
    return ConfidenceAdjustment(
        confidence=adjusted,
        raw=raw,
        calibrated=adjustment.calibrated,
        weight=adjustment.weight,
        status=status,
        dataset_id=report.dataset_id,
    )
