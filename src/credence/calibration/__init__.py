"""Calibration engine.

Measures and corrects the gap between stated confidence and observed
accuracy: bucketed curves (ECE/MCE), isotonic regression, small-sample
bootstrap tiers, Hoeffding sample bounds and kernel-smoothed ECE.
"""

from credence.calibration.bootstrap import (
    BetaPrior,
    BucketCounts,
    CalibrationConfig,
    apply_bootstrap_calibration,
    bayesian_smooth,
    bootstrap_calibration,
)
from credence.calibration.curves import (
    CalibrationAdjustment,
    CalibrationBucket,
    CalibrationCurve,
    CalibrationReport,
    CalibrationSample,
    ConfidenceAdjustment,
    adjust_confidence_score,
    adjust_confidence_value,
    build_calibration_report,
    compute_calibration_curve,
    format_bucket_range,
    report_from_dict,
    report_to_dict,
)
from credence.calibration.isotonic import (
    CalibratedMapping,
    CalibrationPoint,
    Prediction,
    apply_isotonic_mapping,
    check_outcome_pair,
    coerce_predictions,
    isotonic_calibration,
)
from credence.calibration.pac import (
    CalibrationRequirements,
    PACThreshold,
    check_calibration_requirements,
    compute_achievable_accuracy,
    compute_min_samples_for_calibration,
)
from credence.calibration.scoring import (
    compute_brier_score,
    compute_log_loss,
    compute_wilson_interval,
)
from credence.calibration.smooth_ece import compute_smooth_ece, silverman_bandwidth

__all__ = [
    # Curves
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
    # Isotonic
    "CalibratedMapping",
    "CalibrationPoint",
    "Prediction",
    "apply_isotonic_mapping",
    "check_outcome_pair",
    "coerce_predictions",
    "isotonic_calibration",
    # Bootstrap
    "BetaPrior",
    "BucketCounts",
    "CalibrationConfig",
    "apply_bootstrap_calibration",
    "bayesian_smooth",
    "bootstrap_calibration",
    # PAC
    "CalibrationRequirements",
    "PACThreshold",
    "check_calibration_requirements",
    "compute_achievable_accuracy",
    "compute_min_samples_for_calibration",
    # Scoring
    "compute_brier_score",
    "compute_log_loss",
    "compute_smooth_ece",
    "compute_wilson_interval",
    "silverman_bandwidth",
]
