"""Standard normal CDF shared by the Bayesian estimator and the SRM detector.

``erf`` is the Abramowitz & Stegun 7.1.26 rational approximation, accurate
to about 1.5e-7 in absolute error over the whole real line.
"""

from __future__ import annotations

import math

# Abramowitz & Stegun 7.1.26 coefficients
_A1 = 0.254829592
_A2 = -0.284496736
_A3 = 1.421413741
_A4 = -1.453152027
_A5 = 1.061405429
_P = 0.3275911


def erf(x: float) -> float:
    """Approximate the error function (odd, so only |x| is evaluated)."""
    if x == 0:
        return 0.0
    sign = 1.0 if x >= 0 else -1.0
    x = abs(x)
    t = 1.0 / (1.0 + _P * x)
    poly = ((((_A5 * t + _A4) * t + _A3) * t + _A2) * t + _A1) * t
    return sign * (1.0 - poly * math.exp(-x * x))


def normal_cdf(x: float) -> float:
    """Standard normal cumulative distribution function Phi(x)."""
    return 0.5 * (1.0 + erf(x / math.sqrt(2.0)))
