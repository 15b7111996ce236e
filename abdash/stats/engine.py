"""StatsEngine — orchestrator that runs SRM checks, Bayesian win
probabilities, cell classification, completion projection and revenue
impact for a whole experiment in a single ``analyze_experiment`` call.

Every non-control variant is compared against the control arm.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

import numpy as np

from abdash.stats.bayesian import (
    MONTE_CARLO_SAMPLES,
    NORMAL_APPROX_MIN_VISITS,
    BetaBinomial,
    estimate_probability_variant_better,
    is_valid_sample,
)
from abdash.stats.classify import classify
from abdash.stats.projection import percentage_change, project_completion, project_revenue_impact
from abdash.stats.srm import analyze_sample_ratio

logger = logging.getLogger(__name__)


class StatsEngine:
    """Orchestrates the statistical analysis of one experiment.

    Parameters
    ----------
    n_samples : int
        Monte Carlo trials for small-sample win probabilities.
    normal_approx_min_visits : int
        Both arms need more visits than this for the normal approximation.
    rng : np.random.Generator | None
        Random source shared by the Monte Carlo comparisons of this engine.
        Each comparison creates its own generator when omitted.
    """

    def __init__(
        self,
        n_samples: int = MONTE_CARLO_SAMPLES,
        normal_approx_min_visits: int = NORMAL_APPROX_MIN_VISITS,
        rng: np.random.Generator | None = None,
    ) -> None:
        self.n_samples = n_samples
        self.normal_approx_min_visits = normal_approx_min_visits
        self.rng = rng

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def analyze_experiment(
        self,
        visits: dict[str, int],
        metrics: list[dict[str, Any]],
        control_key: str = "control",
        start_date: date | None = None,
        target_sample_size: int | None = None,
        today: date | None = None,
        sample_size_metric: str | None = None,
        revenue_metric: str | None = None,
    ) -> dict[str, Any]:
        """Run the full analysis of an experiment.

        Steps:
        1. Sample ratio mismatch check of each variant against control
        2. Per-metric conversion rates, credible intervals and percentage change
        3. Bayesian win probability and cell category for Bayesian metrics
        4. Completion projection when a start date is known
        5. Annualised revenue impact per variant when a revenue metric is named

        Parameters
        ----------
        visits : dict[str, int]
            Visitors per arm, keyed by variant key.
        metrics : list[dict]
            Each with ``label``, ``conversions`` (per arm) and optionally
            ``is_primary`` (default False), ``visits`` (per-arm override of
            the experiment visits), ``bayesian`` (default True) and
            ``continuous`` (default False, totals rather than per-visitor
            rates when projecting revenue impact).
        control_key : str
            Key of the control arm in ``visits``.
        sample_size_metric : str | None
            Label of the metric whose per-arm values measure progress
            towards ``target_sample_size``.  Visits are used when omitted.
        revenue_metric : str | None
            Label of the revenue metric.  The primary metric's uplift is
            applied to it to project business impact.

        Returns
        -------
        dict
            Complete analysis results.

        Raises
        ------
        ValueError
            If ``control_key`` is missing from ``visits`` or a named metric
            is not among ``metrics``.
        """
        if control_key not in visits:
            raise ValueError(f"visits has no control arm {control_key!r}")

        metrics_by_label = {metric["label"]: metric for metric in metrics}
        for label in (sample_size_metric, revenue_metric):
            if label is not None and label not in metrics_by_label:
                raise ValueError(f"metrics has no metric labelled {label!r}")

        variant_keys = [key for key in visits if key != control_key]
        control_visits = visits[control_key]

        # ----------------------------------------------------------
        # 1. Sample ratio mismatch
        # ----------------------------------------------------------
        srm: dict[str, dict[str, Any]] = {}
        srm_analysis_results: list[dict[str, Any]] = []

        for variant_key in variant_keys:
            analysis = analyze_sample_ratio(control_visits, visits[variant_key])
            srm[variant_key] = analysis
            if analysis["is_significant"]:
                srm_analysis_results.append(
                    {
                        "variant": variant_key,
                        "control_ratio": analysis["control_ratio"],
                        "variant_ratio": analysis["variant_ratio"],
                        "p_value": analysis["p_value"],
                        "severity": analysis["severity"],
                    }
                )

        srm_variants = [r["variant"] for r in srm_analysis_results]
        if srm_variants:
            logger.info("SRM detected in variants: %s", ", ".join(srm_variants))

        # ----------------------------------------------------------
        # 2 & 3. Metrics
        # ----------------------------------------------------------
        metric_results = [
            self._analyze_metric(metric, visits, control_key, variant_keys)
            for metric in metrics
        ]

        # ----------------------------------------------------------
        # 4. Projection
        # ----------------------------------------------------------
        projection: dict[str, Any] | None = None
        if start_date is not None:
            progress = visits
            if sample_size_metric is not None:
                progress = metrics_by_label[sample_size_metric]["conversions"]
            projection = project_completion(
                start_date,
                progress.values(),
                target_sample_size=target_sample_size,
                today=today,
            )

        # ----------------------------------------------------------
        # 5. Business impact
        # ----------------------------------------------------------
        business_impact: dict[str, dict[str, Any] | None] | None = None
        best_impact_variant: str | None = None
        primary = next((m for m in metrics if m.get("is_primary")), None)

        if revenue_metric is not None and primary is not None:
            days_running = projection["days_running"] if projection else None
            main = primary["conversions"]
            revenue = metrics_by_label[revenue_metric]["conversions"]
            business_impact = {
                variant_key: project_revenue_impact(
                    main.get(control_key, 0),
                    main.get(variant_key, 0),
                    revenue.get(control_key, 0),
                    visits,
                    variant_key,
                    days_running,
                    control_key=control_key,
                    is_continuous=bool(primary.get("continuous", False)),
                )
                for variant_key in variant_keys
            }
            best_impact = 0.0
            for variant_key, impact in business_impact.items():
                if impact and abs(impact["annual_revenue"]) > abs(best_impact):
                    best_impact = impact["annual_revenue"]
                    best_impact_variant = variant_key

        return {
            "control_key": control_key,
            "variant_keys": variant_keys,
            "total_visitors": sum(visits.values()),
            "srm": srm,
            "has_sample_ratio_mismatch": bool(srm_variants),
            "srm_variants": srm_variants,
            "srm_analysis_results": srm_analysis_results,
            "metrics": metric_results,
            "projection": projection,
            "business_impact": business_impact,
            "best_impact_variant": best_impact_variant,
        }

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _analyze_metric(
        self,
        metric: dict[str, Any],
        experiment_visits: dict[str, int],
        control_key: str,
        variant_keys: list[str],
    ) -> dict[str, Any]:
        is_primary = bool(metric.get("is_primary", False))
        run_bayesian = bool(metric.get("bayesian", True))
        conversions: dict[str, int] = metric.get("conversions", {})
        visits = {**experiment_visits, **(metric.get("visits") or {})}

        control_rate = _conversion_rate(visits.get(control_key, 0), conversions.get(control_key, 0))

        variants: list[dict[str, Any]] = [
            self._variant_summary(control_key, visits, conversions)
        ]
        for variant_key in variant_keys:
            summary = self._variant_summary(variant_key, visits, conversions)
            variant_rate = _conversion_rate(visits.get(variant_key, 0), conversions.get(variant_key, 0))
            summary["percentage_change"] = percentage_change(control_rate, variant_rate)

            if run_bayesian and variant_key in conversions:
                probability = estimate_probability_variant_better(
                    visits.get(control_key, 0),
                    conversions.get(control_key, 0),
                    visits.get(variant_key, 0),
                    conversions[variant_key],
                    rng=self.rng,
                    n_samples=self.n_samples,
                    normal_approx_min_visits=self.normal_approx_min_visits,
                )
                summary["probability_variant_better"] = round(probability, 4)
                summary["category"] = classify(probability, is_primary)
            variants.append(summary)

        return {
            "label": metric["label"],
            "is_primary": is_primary,
            "has_bayesian_data": run_bayesian,
            "variants": variants,
        }

    @staticmethod
    def _variant_summary(
        variant_key: str,
        visits: dict[str, int],
        conversions: dict[str, int],
    ) -> dict[str, Any]:
        n_visits = visits.get(variant_key, 0)
        n_conversions = conversions.get(variant_key, 0)

        credible_interval: tuple[float, float] | None = None
        if is_valid_sample(n_visits, n_conversions):
            model = BetaBinomial().update(n_conversions, n_visits)
            credible_interval = tuple(round(x, 6) for x in model.credible_interval())

        return {
            "variant_key": variant_key,
            "visits": n_visits,
            "conversions": n_conversions,
            "conversion_rate": round(_conversion_rate(n_visits, n_conversions), 6),
            "credible_interval": credible_interval,
            "percentage_change": None,
            "probability_variant_better": None,
            "category": None,
        }


def _conversion_rate(visits: int, conversions: int) -> float:
    return conversions / visits if visits > 0 else 0.0
