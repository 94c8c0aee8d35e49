"""Kernel-smoothed Expected Calibration Error.

Binned ECE depends on where bucket edges fall. Smooth ECE replaces the bins
with a kernel: at each grid point p in [0, 1] it estimates

- f(p): density of predicted scores
- m(p): smoothed mean predicted score (Nadaraya-Watson)
- r(p): smoothed empirical accuracy (Nadaraya-Watson)

and integrates |m(p) - r(p)| weighted by f(p), normalized by the total
density on the grid.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from typing import Any, Literal

import numpy as np

from credence.calibration.isotonic import Prediction, coerce_predictions
from credence.foundation.errors import ErrorCode, validation_error

logger = logging.getLogger(__name__)

__all__ = [
    "KernelType",
    "compute_smooth_ece",
    "silverman_bandwidth",
]

KernelType = Literal["gaussian", "epanechnikov"]

_MIN_BANDWIDTH = 0.01
_MAX_BANDWIDTH = 0.5


def _gaussian(u: np.ndarray) -> np.ndarray:
    return np.exp(-0.5 * u * u) / np.sqrt(2 * np.pi)


def _epanechnikov(u: np.ndarray) -> np.ndarray:
    return np.where(np.abs(u) <= 1, 0.75 * (1 - u * u), 0.0)


_KERNELS = {"gaussian": _gaussian, "epanechnikov": _epanechnikov}


def silverman_bandwidth(scores: np.ndarray) -> float:
    """Silverman's rule of thumb, clamped to a sensible range for [0, 1] data."""
    n = len(scores)
    if n == 0:
        return 0.1
    std = float(np.std(scores, ddof=1)) if n > 1 else 0.0
    return float(np.clip(1.06 * std * n ** -0.2, _MIN_BANDWIDTH, _MAX_BANDWIDTH))


def compute_smooth_ece(
    predictions: Sequence[Prediction | Mapping[str, Any] | tuple[float, int]],
    bandwidth: float | None = None,
    kernel_type: KernelType = "gaussian",
    num_eval_points: int = 100,
) -> float:
    """Smooth ECE of a set of predictions.

    Predicted scores are clamped to [0, 1]; they must still be finite and
    outcomes must be 0 or 1. A single prediction returns its absolute error
    directly.

    Raises:
        ValidationError: On empty predictions, an unknown kernel, a
            non-positive bandwidth, fewer than one evaluation interval or a
            malformed prediction.
    """
    pairs = coerce_predictions(predictions, clamp_scores=True)
    if not pairs:
        raise validation_error(
            ErrorCode.CALIBRATION_EMPTY_INPUT, field="predictions", detail="predictions array is empty",
        )
    kernel = _KERNELS.get(kernel_type)
    if kernel is None:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="kernel_type",
            detail=f"expected gaussian or epanechnikov, got {kernel_type!r}",
        )
    if bandwidth is not None and not bandwidth > 0:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="bandwidth",
            detail=f"must be positive, got {bandwidth}",
        )
    if isinstance(num_eval_points, bool) or not isinstance(num_eval_points, int) or num_eval_points < 1:
        raise validation_error(
            ErrorCode.CALIBRATION_INVALID_ARGUMENT, field="num_eval_points",
            detail=f"must be a positive integer, got {num_eval_points!r}",
        )

    scores = np.array([p for p, _ in pairs], dtype=float)
    outcomes = np.array([a for _, a in pairs], dtype=float)
    if len(pairs) == 1:
        return float(abs(scores[0] - outcomes[0]))

    h = bandwidth if bandwidth is not None else silverman_bandwidth(scores)
    grid = np.linspace(0.0, 1.0, num_eval_points + 1)

    # weights[j, i]: kernel weight of sample i at grid point j
    weights = kernel((grid[:, None] - scores[None, :]) / h)
    kernel_sum = weights.sum(axis=1)
    density = kernel_sum / (len(pairs) * h)

    covered = kernel_sum > 0
    safe = np.where(covered, kernel_sum, 1.0)
    smoothed_pred = np.where(covered, weights @ scores / safe, grid)
    smoothed_acc = np.where(covered, weights @ outcomes / safe, grid)

    total_density = float(density.sum())
    if total_density <= 0:
        logger.warning("Smooth ECE: zero density on the evaluation grid (bandwidth=%.4f)", h)
        return 0.0
    ece = float((np.abs(smoothed_pred - smoothed_acc) * density).sum() / total_density)
    logger.debug("Smooth ECE: n=%d bandwidth=%.4f kernel=%s ece=%.4f", len(pairs), h, kernel_type, ece)
    return ece
