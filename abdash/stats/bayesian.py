"""Beta-Binomial win probability for a control/variant pair.

Both arms start from a uniform Beta(1, 1) prior and are updated with the
observed conversions.  The probability that the variant's true rate exceeds
the control's is computed in closed form (normal approximation) when both
arms are large, and by Monte Carlo simulation otherwise.

Malformed counts never raise here: the estimator answers ``0.5`` ("no
information") so a dashboard can keep rendering.
"""

from __future__ import annotations

import logging
import math

import numpy as np
from scipy import stats as sp_stats

from abdash.stats.normal import normal_cdf

logger = logging.getLogger(__name__)

MONTE_CARLO_SAMPLES = 10_000
NORMAL_APPROX_MIN_VISITS = 30
NEUTRAL_PROBABILITY = 0.5


def gamma_ratio_sample(
    alpha: float,
    beta: float,
    size: int,
    rng: np.random.Generator,
) -> np.ndarray:
    """Draw Beta(alpha, beta) samples as ``X / (X + Y)``.

    ``X`` is a sum of ``alpha`` unit exponentials and ``Y`` a sum of
    ``beta`` of them.  A sum of ``k`` Exponential(1) draws is exactly
    Gamma(k, 1), so each sum is drawn in one go.
    """
    x = rng.standard_gamma(alpha, size=size)
    y = rng.standard_gamma(beta, size=size)
    return x / (x + y)


class BetaBinomial:
    """Posterior over one arm's conversion rate.

    Starts from a uniform Beta(1, 1) prior, so a fresh arm says nothing
    about its rate and the posterior after ``update`` is driven entirely
    by the dashboard's visit and conversion counts.  Instances never
    change; ``update`` hands back a new one.
    """

    __slots__ = ("alpha", "beta")

    def __init__(self, prior_alpha: float = 1.0, prior_beta: float = 1.0) -> None:
        if prior_alpha <= 0 or prior_beta <= 0:
            raise ValueError("Alpha and beta must be positive")
        self.alpha = prior_alpha
        self.beta = prior_beta

    def update(self, conversions: int, visits: int) -> BetaBinomial:
        """Add ``conversions`` successes and ``visits - conversions`` failures."""
        if conversions < 0:
            raise ValueError("conversions must be non-negative")
        if visits < 0:
            raise ValueError("visits must be non-negative")
        if conversions > visits:
            raise ValueError("conversions cannot exceed visits")
        return BetaBinomial(self.alpha + conversions, self.beta + visits - conversions)

    def posterior_mean(self) -> float:
        """Smoothed conversion rate, (conversions + 1) / (visits + 2) under the uniform prior."""
        return self.alpha / (self.alpha + self.beta)

    def posterior_variance(self) -> float:
        # used by the normal approximation of the win probability
        n = self.alpha + self.beta
        return self.alpha * self.beta / (n * n * (n + 1))

    def credible_interval(self, width: float = 0.95) -> tuple[float, float]:
        """Central interval holding ``width`` of the rate's posterior mass."""
        if not 0 < width < 1:
            raise ValueError("width must be between 0 and 1 exclusive")
        tail = (1 - width) / 2
        posterior = sp_stats.beta(self.alpha, self.beta)
        return float(posterior.ppf(tail)), float(posterior.ppf(1 - tail))

    def sample(self, n: int, rng: np.random.Generator | None = None) -> np.ndarray:
        """Draw *n* posterior samples using the Gamma-ratio construction."""
        if rng is None:
            rng = np.random.default_rng()
        return gamma_ratio_sample(self.alpha, self.beta, n, rng)

    def __repr__(self) -> str:
        return f"BetaBinomial(alpha={self.alpha:.3f}, beta={self.beta:.3f})"


# ======================================================================
# Win probability
# ======================================================================

def normal_approx_probability(control: BetaBinomial, variant: BetaBinomial) -> float:
    """P(variant > control) with each posterior approximated by a Gaussian.

    The difference of two independent Gaussians is Gaussian with the mean
    difference and the summed variance.  A zero combined standard deviation
    carries no information and yields ``0.5``.
    """
    diff_mean = variant.posterior_mean() - control.posterior_mean()
    diff_std = math.sqrt(control.posterior_variance() + variant.posterior_variance())
    if diff_std == 0:
        return NEUTRAL_PROBABILITY
    return normal_cdf(diff_mean / diff_std)


def monte_carlo_probability(
    control: BetaBinomial,
    variant: BetaBinomial,
    n_samples: int = MONTE_CARLO_SAMPLES,
    rng: np.random.Generator | None = None,
) -> float:
    """Fraction of paired posterior draws in which the variant beats the control.

    The standard error is about ``sqrt(p * (1 - p) / n_samples)``, i.e. at
    most 0.005 with the default 10,000 trials.
    """
    if n_samples <= 0:
        raise ValueError("n_samples must be positive")
    if rng is None:
        rng = np.random.default_rng()
    samples_control = control.sample(n_samples, rng)
    samples_variant = variant.sample(n_samples, rng)
    return float(np.mean(samples_variant > samples_control))


def is_valid_sample(visits: int, conversions: int) -> bool:
    return visits > 0 and 0 <= conversions <= visits


def estimate_probability_variant_better(
    control_visits: int,
    control_conversions: int,
    variant_visits: int,
    variant_conversions: int,
    *,
    rng: np.random.Generator | None = None,
    n_samples: int = MONTE_CARLO_SAMPLES,
    normal_approx_min_visits: int = NORMAL_APPROX_MIN_VISITS,
) -> float:
    """Probability that the variant's true conversion rate exceeds the control's.

    Parameters
    ----------
    control_visits, control_conversions : int
        Observed control arm.
    variant_visits, variant_conversions : int
        Observed variant arm.
    rng : np.random.Generator | None
        Random source for the Monte Carlo path.  A fresh generator is
        created per call when omitted.
    n_samples : int
        Monte Carlo trials.
    normal_approx_min_visits : int
        The normal approximation is used only when *both* arms have more
        visits than this.

    Returns
    -------
    float
        Probability in [0, 1]; exactly 0.5 for invalid inputs.
    """
    if not (
        is_valid_sample(control_visits, control_conversions)
        and is_valid_sample(variant_visits, variant_conversions)
    ):
        logger.warning(
            "Invalid Bayesian inputs: control=%s/%s variant=%s/%s",
            control_conversions,
            control_visits,
            variant_conversions,
            variant_visits,
        )
        return NEUTRAL_PROBABILITY

    prior = BetaBinomial()
    control = prior.update(control_conversions, control_visits)
    variant = prior.update(variant_conversions, variant_visits)

    if control_visits > normal_approx_min_visits and variant_visits > normal_approx_min_visits:
        logger.debug("Using normal approximation for %r vs %r", control, variant)
        return normal_approx_probability(control, variant)

    logger.debug("Using %d Monte Carlo trials for %r vs %r", n_samples, control, variant)
    return monte_carlo_probability(control, variant, n_samples=n_samples, rng=rng)
