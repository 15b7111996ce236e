"""Sample Ratio Mismatch (SRM) detection with a chi-squared test.

Checks whether observed control/variant visit counts are consistent with
the intended 50/50 split.  A mismatch usually points at broken
randomisation or instrumentation rather than a real treatment effect, so
the result feeds a warning next to the experiment rather than the
verdict itself.

Results are plain dicts.  Non-positive counts yield an error-flagged,
non-significant record instead of an exception, so callers can render
"no warning" without special-casing failures.
"""

from __future__ import annotations

import enum
import logging
import math
from typing import Any

from abdash.stats.normal import normal_cdf

logger = logging.getLogger(__name__)

SRM_WARNING_LEVEL = 0.05
SRM_CRITICAL_LEVEL = 0.001

# Chi-squared critical values with 1 degree of freedom
CHI_SQUARED_WARNING = 3.841  # p = 0.05
CHI_SQUARED_CRITICAL = 10.828  # p = 0.001

INVALID_COUNTS_ERROR = "Invalid counts"


class Severity(str, enum.Enum):
    NONE = "none"
    WARNING = "warning"
    CRITICAL = "critical"


def severity_for(p_value: float) -> Severity:
    if p_value < SRM_CRITICAL_LEVEL:
        return Severity.CRITICAL
    if p_value < SRM_WARNING_LEVEL:
        return Severity.WARNING
    return Severity.NONE


def calculate_p_value(chi_squared: float) -> float:
    """Two-tailed p-value for a 1-d.o.f. chi-squared statistic.

    With one degree of freedom ``sqrt(chi2)`` is a standard normal deviate,
    so ``p = 2 * (1 - Phi(sqrt(chi2)))``.
    """
    if chi_squared <= 0:
        return 1.0
    z = math.sqrt(chi_squared)
    p_value = 2 * (1 - normal_cdf(z))
    return max(0.0, min(1.0, p_value))


def calculate_chi_squared(control_count: int, variant_count: int) -> dict[str, Any]:
    """Pearson chi-squared test of the observed counts against a 50/50 split.

    Returns
    -------
    dict
        chi_squared, p_value, is_significant, is_warning, is_critical,
        severity, control_count, variant_count, total, expected_control,
        expected_variant.  Invalid counts add ``error`` and report
        ``chi_squared=0``, ``p_value=1``.
    """
    if control_count <= 0 or variant_count <= 0:
        return {
            "chi_squared": 0.0,
            "p_value": 1.0,
            "is_significant": False,
            "is_warning": False,
            "is_critical": False,
            "severity": Severity.NONE,
            "control_count": control_count,
            "variant_count": variant_count,
            "error": INVALID_COUNTS_ERROR,
        }

    total = control_count + variant_count
    expected = total / 2

    # sum of (observed - expected)^2 / expected over both arms
    chi_squared = (
        (control_count - expected) ** 2 / expected
        + (variant_count - expected) ** 2 / expected
    )

    p_value = calculate_p_value(chi_squared)
    severity = severity_for(p_value)

    return {
        "chi_squared": chi_squared,
        "p_value": p_value,
        "is_significant": severity is not Severity.NONE,
        "is_warning": p_value < SRM_WARNING_LEVEL,
        "is_critical": severity is Severity.CRITICAL,
        "severity": severity,
        "control_count": control_count,
        "variant_count": variant_count,
        "total": total,
        "expected_control": expected,
        "expected_variant": expected,
    }


def is_significant_mismatch(control_count: int, variant_count: int) -> bool:
    """True when the split deviates from 50/50 at p < 0.05."""
    return calculate_chi_squared(control_count, variant_count)["is_significant"]


def analyze_sample_ratio(control_count: int, variant_count: int) -> dict[str, Any]:
    """Chi-squared result plus descriptive ratios and a recommendation.

    Adds ``control_ratio`` / ``variant_ratio`` (percent of total, 2 d.p.),
    the absolute ``difference``, ``percent_difference`` (percent of total,
    1 d.p.) and a plain-English ``recommendation``.  Error-flagged results
    are returned as-is.
    """
    result = calculate_chi_squared(control_count, variant_count)
    if "error" in result:
        return result

    total = result["total"]
    difference = abs(control_count - variant_count)

    if result["is_significant"]:
        recommendation = (
            "Sample ratio mismatch detected. Consider investigating data "
            "collection or randomisation issues."
        )
        logger.info(
            "SRM detected: control=%d variant=%d p=%.6g severity=%s",
            control_count,
            variant_count,
            result["p_value"],
            result["severity"].value,
        )
    else:
        recommendation = "Sample ratios are within acceptable range."

    return {
        **result,
        "control_ratio": round(control_count / total * 100, 2),
        "variant_ratio": round(variant_count / total * 100, 2),
        "difference": difference,
        "percent_difference": round(difference / total * 100, 1),
        "recommendation": recommendation,
    }
