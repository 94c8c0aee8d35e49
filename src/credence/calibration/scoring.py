"""Proper scoring rules and binomial intervals."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from typing import Any

import numpy as np
from scipy import stats

from credence.calibration.isotonic import Prediction, coerce_predictions
from credence.foundation.errors import ErrorCode, validation_error

__all__ = [
    "compute_brier_score",
    "compute_log_loss",
    "compute_wilson_interval",
]

LOG_LOSS_EPSILON = 1e-15

PredictionLike = Prediction | Mapping[str, Any] | tuple[float, int]


def _arrays(predictions: Sequence[PredictionLike], metric: str) -> tuple[np.ndarray, np.ndarray]:
    pairs = coerce_predictions(predictions)
    if not pairs:
        raise validation_error(
            ErrorCode.CALIBRATION_EMPTY_INPUT, field="predictions",
            detail=f"cannot compute {metric} from an empty predictions array",
        )
    return (
        np.array([p for p, _ in pairs], dtype=float),
        np.array([a for _, a in pairs], dtype=float),
    )


def compute_brier_score(predictions: Sequence[PredictionLike]) -> float:
    """Mean squared error between predicted probability and outcome (0 is perfect)."""
    predicted, actual = _arrays(predictions, "Brier score")
    return float(np.mean((predicted - actual) ** 2))


def compute_log_loss(predictions: Sequence[PredictionLike]) -> float:
    """Mean negative log-likelihood; probabilities clipped away from 0 and 1."""
    predicted, actual = _arrays(predictions, "log loss")
    p = np.clip(predicted, LOG_LOSS_EPSILON, 1 - LOG_LOSS_EPSILON)
    return float(-np.mean(np.where(actual >= 0.5, np.log(p), np.log(1 - p))))


def compute_wilson_interval(
    successes: int,
    total: int,
    confidence: float = 0.95,
) -> tuple[float, float]:
    """Wilson score interval for a binomial proportion.

    Better behaved than the normal approximation near 0 and 1 and for small
    samples.
    """
    if total <= 0:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_COUNTS, field="total", detail=f"must be positive, got {total}",
        )
    if successes < 0 or successes > total:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_COUNTS, field="successes",
            detail=f"must be between 0 and total ({total}), got {successes}",
        )
    if not 0 < confidence < 1:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="confidence",
            detail=f"must be in (0, 1), got {confidence}",
        )

    z = float(stats.norm.ppf(1 - (1 - confidence) / 2))
    n = total
    p = successes / n
    z2 = z * z
    denominator = 1 + z2 / n
    center = (p + z2 / (2 * n)) / denominator
    margin = (z / denominator) * np.sqrt(p * (1 - p) / n + z2 / (4 * n * n))
    return max(0.0, float(center - margin)), min(1.0, float(center + margin))
