"""Tests for the Beta-Binomial win-probability estimator.

Tests cover:
- BetaBinomial construction, update and posterior summaries
- Gamma-ratio posterior sampling with an injected generator
- Invalid inputs falling back to the neutral 0.5
- Normal-approximation path: exactness, symmetry, agreement with scipy
- Monte Carlo path: tolerance-based agreement with the exact integral
- The 30/31-visit switch between the two paths
"""

import logging
import math

import numpy as np
import pytest
from scipy import integrate
from scipy import stats as sp_stats

from abdash.stats import bayesian
from abdash.stats.bayesian import (
    MONTE_CARLO_SAMPLES,
    NORMAL_APPROX_MIN_VISITS,
    BetaBinomial,
    estimate_probability_variant_better,
    gamma_ratio_sample,
    monte_carlo_probability,
    normal_approx_probability,
)


def exact_probability(control_visits, control_conversions, variant_visits, variant_conversions):
    """P(variant > control) for Beta(1,1) posteriors by numerical integration."""
    control = sp_stats.beta(1 + control_conversions, 1 + control_visits - control_conversions)
    variant = sp_stats.beta(1 + variant_conversions, 1 + variant_visits - variant_conversions)
    value, _ = integrate.quad(lambda x: variant.pdf(x) * control.cdf(x), 0, 1)
    return value


# ======================================================================
# BetaBinomial Tests
# ======================================================================


class TestBetaBinomialBasics:
    """Construction, update and posterior summaries."""

    def test_default_prior_is_uniform(self):
        model = BetaBinomial()
        assert model.alpha == 1.0
        assert model.beta == 1.0
        assert model.posterior_mean() == pytest.approx(0.5, abs=1e-12)

    def test_invalid_prior_raises(self):
        with pytest.raises(ValueError):
            BetaBinomial(prior_alpha=0, prior_beta=1)
        with pytest.raises(ValueError):
            BetaBinomial(prior_alpha=1, prior_beta=-1)

    def test_update_returns_new_instance(self):
        prior = BetaBinomial()
        posterior = prior.update(5, 100)
        assert prior.alpha == 1.0
        assert prior.beta == 1.0
        assert posterior.alpha == 6.0  # 1 + 5
        assert posterior.beta == 96.0  # 1 + 95
        assert posterior is not prior

    def test_posterior_mean_is_smoothed_rate(self):
        model = BetaBinomial().update(5, 100)
        assert model.posterior_mean() == pytest.approx(6 / 102)

    def test_update_validation(self):
        model = BetaBinomial()
        with pytest.raises(ValueError, match="non-negative"):
            model.update(-1, 10)
        with pytest.raises(ValueError, match="non-negative"):
            model.update(0, -1)
        with pytest.raises(ValueError, match="cannot exceed"):
            model.update(11, 10)

    def test_posterior_variance_formula(self):
        model = BetaBinomial().update(5, 100)
        a, b = model.alpha, model.beta
        expected = (a * b) / ((a + b) ** 2 * (a + b + 1))
        assert model.posterior_variance() == pytest.approx(expected, abs=1e-15)

    def test_credible_interval_contains_mean(self):
        model = BetaBinomial().update(3, 50)
        lo, hi = model.credible_interval(0.95)
        assert lo < model.posterior_mean() < hi

    def test_credible_interval_invalid_width(self):
        model = BetaBinomial()
        with pytest.raises(ValueError):
            model.credible_interval(0.0)
        with pytest.raises(ValueError):
            model.credible_interval(1.0)

    def test_repr(self):
        assert repr(BetaBinomial().update(2, 10)) == "BetaBinomial(alpha=3.000, beta=9.000)"


class TestGammaRatioSampling:
    """Posterior draws via X / (X + Y) with Gamma-distributed sums."""

    def test_sample_shape_and_range(self):
        model = BetaBinomial().update(5, 20)
        samples = model.sample(1000, np.random.default_rng(42))
        assert samples.shape == (1000,)
        assert np.all(samples > 0)
        assert np.all(samples < 1)

    def test_sample_reproducible_with_same_seed(self):
        model = BetaBinomial().update(5, 20)
        s1 = model.sample(100, np.random.default_rng(42))
        s2 = model.sample(100, np.random.default_rng(42))
        np.testing.assert_array_equal(s1, s2)

    def test_sample_moments_match_beta(self):
        samples = gamma_ratio_sample(3.0, 9.0, 200_000, np.random.default_rng(1))
        assert np.mean(samples) == pytest.approx(3.0 / 12.0, abs=0.002)
        assert np.var(samples) == pytest.approx(
            BetaBinomial(3.0, 9.0).posterior_variance(), rel=0.03
        )

    def test_sample_without_rng(self):
        samples = BetaBinomial().sample(10)
        assert samples.shape == (10,)


# ======================================================================
# Invalid input fallback
# ======================================================================


class TestInvalidInputs:
    """Malformed counts return exactly 0.5 and never raise."""

    @pytest.mark.parametrize(
        "counts",
        [
            (0, 0, 100, 10),  # no control visits
            (100, 10, 0, 0),  # no variant visits
            (-5, 0, 100, 10),  # negative visits
            (100, -1, 100, 10),  # negative conversions
            (100, 10, 100, -1),
            (100, 150, 100, 10),  # conversions exceed visits
            (100, 10, 100, 101),
        ],
    )
    def test_returns_neutral_probability(self, counts):
        assert estimate_probability_variant_better(*counts) == 0.5

    def test_logs_warning(self, caplog):
        with caplog.at_level(logging.WARNING, logger="abdash.stats.bayesian"):
            estimate_probability_variant_better(100, 150, 100, 10)
        assert "Invalid Bayesian inputs" in caplog.text


# ======================================================================
# Normal approximation path
# ======================================================================


class TestNormalApproximation:
    """Both arms with more than 30 visits use the closed form."""

    def test_identical_arms_exactly_half(self):
        assert estimate_probability_variant_better(31, 5, 31, 5) == 0.5
        assert estimate_probability_variant_better(5000, 250, 5000, 250) == 0.5

    def test_symmetry_is_exact(self):
        p = estimate_probability_variant_better(1000, 50, 1200, 72)
        q = estimate_probability_variant_better(1200, 72, 1000, 50)
        assert p + q == pytest.approx(1.0, abs=1e-12)

    def test_matches_scipy_closed_form(self):
        control = BetaBinomial().update(40, 800)
        variant = BetaBinomial().update(55, 820)
        diff_mean = variant.posterior_mean() - control.posterior_mean()
        diff_std = math.sqrt(control.posterior_variance() + variant.posterior_variance())
        expected = sp_stats.norm.cdf(diff_mean / diff_std)
        assert estimate_probability_variant_better(800, 40, 820, 55) == pytest.approx(expected, abs=1e-6)

    def test_close_to_exact_posterior_probability(self):
        p = estimate_probability_variant_better(2000, 100, 2000, 125)
        assert p == pytest.approx(exact_probability(2000, 100, 2000, 125), abs=0.01)

    def test_clearly_better_variant(self):
        assert estimate_probability_variant_better(1000, 50, 1000, 150) > 0.999

    def test_clearly_worse_variant(self):
        assert estimate_probability_variant_better(1000, 150, 1000, 50) < 0.001

    def test_zero_combined_std_returns_half(self, monkeypatch):
        monkeypatch.setattr(BetaBinomial, "posterior_variance", lambda self: 0.0)
        assert normal_approx_probability(BetaBinomial(2.0, 3.0), BetaBinomial(5.0, 1.0)) == 0.5

    def test_all_or_nothing_conversions(self):
        """Extreme rates stay inside [0, 1]."""
        p = estimate_probability_variant_better(100, 0, 100, 100)
        assert 0.99 < p <= 1.0
        q = estimate_probability_variant_better(100, 100, 100, 0)
        assert 0.0 <= q < 0.01


# ======================================================================
# Monte Carlo path
# ======================================================================


class TestMonteCarlo:
    """Either arm with 30 or fewer visits is simulated."""

    def test_identical_arms_near_half(self):
        p = estimate_probability_variant_better(
            20, 3, 20, 3, rng=np.random.default_rng(42), n_samples=100_000
        )
        assert p == pytest.approx(0.5, abs=0.01)

    def test_symmetry_within_tolerance(self):
        p = estimate_probability_variant_better(
            25, 4, 28, 9, rng=np.random.default_rng(1), n_samples=100_000
        )
        q = estimate_probability_variant_better(
            28, 9, 25, 4, rng=np.random.default_rng(2), n_samples=100_000
        )
        # each estimate has a standard error of about 0.0016 at 100k trials
        assert p + q == pytest.approx(1.0, abs=0.01)

    def test_agrees_with_exact_integral(self):
        p = estimate_probability_variant_better(30, 1, 30, 3, rng=np.random.default_rng(7))
        assert p == pytest.approx(exact_probability(30, 1, 30, 3), abs=0.02)

    def test_one_large_arm_one_small_arm(self):
        """A large control with a small variant still simulates efficiently."""
        p = estimate_probability_variant_better(10_000, 500, 20, 5, rng=np.random.default_rng(3))
        assert p == pytest.approx(exact_probability(10_000, 500, 20, 5), abs=0.02)

    def test_reproducible_with_injected_rng(self):
        p1 = estimate_probability_variant_better(12, 2, 15, 5, rng=np.random.default_rng(99))
        p2 = estimate_probability_variant_better(12, 2, 15, 5, rng=np.random.default_rng(99))
        assert p1 == p2

    def test_result_is_fraction_of_trials(self):
        p = estimate_probability_variant_better(
            10, 2, 10, 4, rng=np.random.default_rng(5), n_samples=400
        )
        assert (p * 400) == pytest.approx(round(p * 400), abs=1e-9)

    def test_default_sample_count(self):
        assert MONTE_CARLO_SAMPLES == 10_000
        assert NORMAL_APPROX_MIN_VISITS == 30

    def test_non_positive_sample_count_raises(self):
        with pytest.raises(ValueError):
            monte_carlo_probability(BetaBinomial(), BetaBinomial(), n_samples=0)


# ======================================================================
# Path selection
# ======================================================================


class TestPathSelection:
    """Normal approximation iff both arms have more than 30 visits."""

    @staticmethod
    def _fail(*args, **kwargs):
        raise AssertionError("wrong computation path")

    def test_31_visits_uses_normal_path(self, monkeypatch):
        monkeypatch.setattr(bayesian, "monte_carlo_probability", self._fail)
        p = estimate_probability_variant_better(31, 5, 31, 8)
        control = BetaBinomial().update(5, 31)
        variant = BetaBinomial().update(8, 31)
        assert p == normal_approx_probability(control, variant)

    def test_30_visits_uses_monte_carlo(self, monkeypatch):
        monkeypatch.setattr(bayesian, "normal_approx_probability", self._fail)
        p = estimate_probability_variant_better(30, 5, 30, 8, rng=np.random.default_rng(11))
        assert p == pytest.approx(exact_probability(30, 5, 30, 8), abs=0.02)

    @pytest.mark.parametrize("counts", [(30, 5, 31, 8), (31, 5, 30, 8)])
    def test_one_small_arm_uses_monte_carlo(self, monkeypatch, counts):
        monkeypatch.setattr(bayesian, "normal_approx_probability", self._fail)
        p = estimate_probability_variant_better(*counts, rng=np.random.default_rng(0))
        assert 0.0 <= p <= 1.0

    def test_configurable_cutoff(self, monkeypatch):
        monkeypatch.setattr(bayesian, "monte_carlo_probability", self._fail)
        p = estimate_probability_variant_better(20, 5, 20, 5, normal_approx_min_visits=10)
        assert p == 0.5


# ======================================================================
# Range property
# ======================================================================


class TestRange:
    def test_probability_in_unit_interval(self):
        rng = np.random.default_rng(2024)
        for _ in range(50):
            cv, vv = (int(x) for x in rng.integers(1, 200, size=2))
            cc = int(rng.integers(0, cv + 1))
            vc = int(rng.integers(0, vv + 1))
            p = estimate_probability_variant_better(cv, cc, vv, vc, n_samples=500, rng=rng)
            assert 0.0 <= p <= 1.0
