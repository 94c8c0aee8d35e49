"""Tests for small-sample bootstrap calibration."""

import pytest

from credence.calibration import (
    BucketCounts,
    apply_bootstrap_calibration,
    bayesian_smooth,
    bootstrap_calibration,
)
from credence.calibration.bootstrap import bucket_index
from credence.foundation.errors import ErrorCode, ValidationError


class TestTiers:
    """bootstrap_calibration picks a tier by sample size."""

    def test_too_few(self) -> None:
        """Under ten samples nothing is adjusted."""
        config = bootstrap_calibration(5)

        assert config.calibration_weight == 0.0
        assert config.bucket_count == 1
        assert not config.use_isotonic

    def test_limited(self) -> None:
        """Ten to fifty samples use wide buckets and a Beta(2, 2) prior."""
        config = bootstrap_calibration(30)

        assert config.calibration_weight == 0.3
        assert config.bucket_count == 3
        assert (config.prior.alpha, config.prior.beta) == (2, 2)
        assert not config.use_isotonic

    def test_moderate(self) -> None:
        """Fifty to two hundred enable isotonic with a uniform prior."""
        config = bootstrap_calibration(100)

        assert config.calibration_weight == 0.6
        assert config.bucket_count == 6
        assert config.use_isotonic
        assert config.prior.mean == 0.5

    def test_sufficient(self) -> None:
        """Two hundred or more use full weight and the Jeffreys prior."""
        config = bootstrap_calibration(1000)

        assert config.calibration_weight == 1.0
        assert config.bucket_count == 15
        assert (config.prior.alpha, config.prior.beta) == (0.5, 0.5)

    @pytest.mark.parametrize(
        ("n", "weight", "buckets"),
        [(9, 0.0, 1), (10, 0.3, 2), (49, 0.3, 4), (50, 0.6, 3), (199, 0.6, 10), (200, 1.0, 10)],
    )
    def test_boundaries(self, n: int, weight: float, buckets: int) -> None:
        """Tier edges are inclusive on the lower side."""
        config = bootstrap_calibration(n)

        assert config.calibration_weight == weight
        assert config.bucket_count == buckets

    def test_negative(self) -> None:
        """Negative sample sizes are rejected."""
        with pytest.raises(ValidationError, match="sample_size"):
            bootstrap_calibration(-1)

    def test_to_dict(self) -> None:
        """Serialized config carries the prior."""
        assert bootstrap_calibration(30).to_dict()["prior"] == {"alpha": 2, "beta": 2}


class TestBayesianSmooth:
    """Beta-Binomial posterior mean."""

    def test_posterior_mean(self) -> None:
        """(s + a) / (n + a + b)."""
        assert bayesian_smooth(7, 10, 1, 1) == pytest.approx(8 / 12)

    def test_no_data_is_prior_mean(self) -> None:
        """Zero observations return the prior mean."""
        assert bayesian_smooth(0, 0, 2, 6) == pytest.approx(0.25)

    def test_bad_counts(self) -> None:
        """More successes than trials is rejected."""
        with pytest.raises(ValidationError) as exc_info:
            bayesian_smooth(11, 10, 1, 1)

        assert exc_info.value.code == ErrorCode.CALIBRATION_INVALID_COUNTS

    def test_bad_prior(self) -> None:
        """Non-positive prior parameters are rejected."""
        with pytest.raises(ValidationError) as exc_info:
            bayesian_smooth(1, 2, 0, 1)

        assert exc_info.value.code == ErrorCode.CALIBRATION_INVALID_PRIOR


class TestApplyBootstrap:
    """Blending raw scores with bucket estimates."""

    def test_bucket_index(self) -> None:
        """Scores map to equal-width buckets, clamped at the ends."""
        assert bucket_index(0.0, 3) == 0
        assert bucket_index(0.5, 3) == 1
        assert bucket_index(1.0, 3) == 2

    def test_well_sampled_bucket(self) -> None:
        """A full bucket blends with its smoothed accuracy."""
        config = bootstrap_calibration(30)

        result = apply_bootstrap_calibration(0.9, {2: BucketCounts(8, 10)}, config)

        assert result == pytest.approx(0.7 * 0.9 + 0.3 * (10 / 14))

    def test_under_sampled_bucket_uses_prior(self) -> None:
        """Sparse or missing buckets fall back to the prior mean."""
        config = bootstrap_calibration(30)
        expected = 0.7 * 0.9 + 0.3 * 0.5

        assert apply_bootstrap_calibration(0.9, {2: (1, 2)}, config) == pytest.approx(expected)
        assert apply_bootstrap_calibration(0.9, {}, config) == pytest.approx(expected)

    def test_zero_weight_is_identity(self) -> None:
        """The smallest tier returns the raw score."""
        assert apply_bootstrap_calibration(0.42, {}, bootstrap_calibration(3)) == pytest.approx(0.42)
