"""Traffic-light categories for Bayesian win probabilities.

Primary metrics need stronger evidence in the middle bands than the
favorable/unfavorable extremes of secondary metrics, so the two metric
kinds use different cut points.  The rendering layer maps each category to
a colour.
"""

from __future__ import annotations

import enum
import math


class CellCategory(str, enum.Enum):
    UNFAVORABLE = "unfavorable"
    INCONCLUSIVE = "inconclusive"
    FAVORABLE = "favorable"
    NONE = "none"


# (unfavorable_max, low_inconclusive_max, high_inconclusive_min, favorable_min).
# Compared as fractions so that literal inputs such as 0.95 land on the boundary.
PRIMARY_THRESHOLDS = (0.05, 0.15, 0.85, 0.95)
SECONDARY_THRESHOLDS = (0.02, 0.10, 0.90, 0.98)


def classify(probability: float | None, is_primary_metric: bool) -> CellCategory:
    """Map a win probability in [0, 1] to a :class:`CellCategory`.

    In percent:

    - primary: [0,5] unfavorable, (5,15] and [85,95) inconclusive, [95,100] favorable
    - secondary: [0,2] unfavorable, (2,10] and [90,98) inconclusive, [98,100] favorable

    Anything else, including out-of-range input, is ``NONE``.
    """
    if probability is None or math.isnan(probability):
        return CellCategory.NONE

    unfavorable_max, low_max, high_min, favorable_min = (
        PRIMARY_THRESHOLDS if is_primary_metric else SECONDARY_THRESHOLDS
    )

    if 0 <= probability <= unfavorable_max:
        return CellCategory.UNFAVORABLE
    if unfavorable_max < probability <= low_max:
        return CellCategory.INCONCLUSIVE
    if high_min <= probability < favorable_min:
        return CellCategory.INCONCLUSIVE
    if favorable_min <= probability <= 1:
        return CellCategory.FAVORABLE
    return CellCategory.NONE
