"""Completion-date projection for a running experiment.

The slowest arm decides when the experiment reaches its target sample
size, so the current sample size is the minimum visit count across arms.
The daily rate is a straight-line average since the start date.

Revenue impact applies the primary metric's uplift to revenue per visitor
and extrapolates it over a year of the observed daily traffic.
"""

from __future__ import annotations

import math
from collections.abc import Iterable, Mapping
from datetime import date, timedelta
from typing import Any


def round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def percentage_change(control: float, variant: float) -> float | None:
    """Relative change of ``variant`` over ``control`` in percent; None if either is zero."""
    if not control or not variant:
        return None
    return (variant - control) / control * 100


def project_completion(
    start_date: date | None,
    visits: Iterable[int],
    target_sample_size: int | None = None,
    today: date | None = None,
) -> dict[str, Any]:
    """Estimate when an experiment will reach ``target_sample_size`` per arm.

    Parameters
    ----------
    start_date : date | None
        Experiment start.  Without it nothing can be projected.
    visits : Iterable[int]
        Visit counts for every arm (control included).
    target_sample_size : int | None
        Required visits per arm.
    today : date | None
        Reference date, defaults to ``date.today()``.

    Returns
    -------
    dict
        days_running, daily_traffic_rate, current_sample_size,
        projected_end_date, projected_end_date_week_cycle.  The week-cycle
        date rounds the projection up to a whole number of weeks since the
        start so weekday effects are covered evenly.
    """
    analytics: dict[str, Any] = {
        "days_running": None,
        "daily_traffic_rate": None,
        "current_sample_size": None,
        "projected_end_date": None,
        "projected_end_date_week_cycle": None,
    }
    if start_date is None:
        return analytics

    if today is None:
        today = date.today()

    days_running = (today - start_date).days
    analytics["days_running"] = days_running
    if days_running <= 0:
        return analytics

    counts = list(visits)
    if not counts:
        return analytics

    current = min(counts)
    daily_rate = current / days_running
    analytics["current_sample_size"] = current
    analytics["daily_traffic_rate"] = round_half_up(daily_rate)

    if not target_sample_size or daily_rate <= 0:
        return analytics

    remaining = target_sample_size - current
    if remaining <= 0:
        analytics["projected_end_date"] = today
        analytics["projected_end_date_week_cycle"] = today
        return analytics

    projected_end = today + timedelta(days=math.ceil(remaining / daily_rate))
    days_since_start = (projected_end - start_date).days
    week_cycle_end = start_date + timedelta(days=math.ceil(days_since_start / 7) * 7)

    analytics["projected_end_date"] = projected_end
    analytics["projected_end_date_week_cycle"] = week_cycle_end
    return analytics


def project_revenue_impact(
    main_control: float,
    main_variant: float,
    control_revenue: float,
    visits: Mapping[str, int],
    variant_key: str,
    days_running: int | None,
    control_key: str = "control",
    is_continuous: bool = False,
) -> dict[str, Any] | None:
    """Annualised revenue impact of shipping one variant.

    The uplift of the primary metric is assumed to carry over to revenue:
    control revenue per visitor is scaled by it and the difference is
    applied to the observed daily traffic of all arms.

    Parameters
    ----------
    main_control, main_variant : float
        Primary metric totals for the control and the variant.
    control_revenue : float
        Revenue total of the control arm.
    visits : Mapping[str, int]
        Visitors per arm, keyed by variant key.
    variant_key : str
        Arm whose impact is projected.
    days_running : int | None
        Whole days since the start; no projection without it.
    is_continuous : bool
        Continuous metrics (averages, revenue) compare totals directly
        instead of per-visitor rates.

    Returns
    -------
    dict | None
        annual_revenue, daily_impact, main_metric_change and
        revenue_change (percent).  ``main_metric_change`` is ``inf`` when
        the control never converted but the variant did, and ``None`` when
        a continuous change is undefined.
    """
    if not days_running:
        return None

    control_visits = visits.get(control_key, 0)
    variant_visits = visits.get(variant_key, 0)
    has_visits = control_visits > 0 and variant_visits > 0

    main_metric_change: float | None
    if not is_continuous and has_visits:
        control_rate = main_control / control_visits
        variant_rate = main_variant / variant_visits
        if control_rate > 0:
            main_metric_change = (variant_rate - control_rate) / control_rate * 100
        elif variant_rate > 0:
            main_metric_change = math.inf
        else:
            main_metric_change = 0.0
    else:
        main_metric_change = percentage_change(main_control, main_variant)

    daily_impact = 0.0
    if has_visits:
        control_revenue_rate = control_revenue / control_visits
        uplift = (main_metric_change or 0.0) / 100
        daily_visitors = sum(visits.values()) / days_running
        if control_revenue_rate == 0:
            # no revenue to scale, whatever the uplift
            daily_impact = 0.0
        else:
            daily_impact = daily_visitors * control_revenue_rate * uplift

    annual = daily_impact * 365
    return {
        "annual_revenue": round_half_up(annual) if math.isfinite(annual) else annual,
        "daily_impact": daily_impact,
        "main_metric_change": _round_change(main_metric_change),
        "revenue_change": _round_change(main_metric_change),
    }


def _round_change(change: float | None) -> float | None:
    if change is None or not math.isfinite(change):
        return change
    return round(change, 2)
