"""Stats router — exposes win probabilities, SRM checks and full experiment
analysis over HTTP.

Statistically invalid counts are not HTTP errors: they come back as the
neutral probability or the error-flagged SRM record, exactly as the
statistics layer returns them.
"""

import math
from datetime import date
from typing import Any

from fastapi import APIRouter, HTTPException, status
from pydantic import BaseModel, Field

from abdash.core.config import settings
from abdash.stats.bayesian import estimate_probability_variant_better
from abdash.stats.classify import CellCategory, classify
from abdash.stats.engine import StatsEngine
from abdash.stats.srm import Severity, analyze_sample_ratio

router = APIRouter(tags=["stats"])


def _finite_or_none(value: Any) -> Any:
    """Replace inf/nan floats, which JSON cannot carry, with None."""
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if isinstance(value, dict):
        return {k: _finite_or_none(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_finite_or_none(v) for v in value]
    return value


# ---------------------------------------------------------------------------
# Schemas
# ---------------------------------------------------------------------------


class ProbabilityRequest(BaseModel):
    control_visits: int
    control_conversions: int
    variant_visits: int
    variant_conversions: int
    is_primary_metric: bool = True


class ProbabilityResponse(BaseModel):
    probability: float
    category: CellCategory


class SampleRatioRequest(BaseModel):
    control_count: int
    variant_count: int


class SampleRatioResponse(BaseModel):
    chi_squared: float
    p_value: float
    is_significant: bool
    is_warning: bool
    is_critical: bool
    severity: Severity
    control_count: int
    variant_count: int
    total: int | None = None
    expected_control: float | None = None
    expected_variant: float | None = None
    control_ratio: float | None = None
    variant_ratio: float | None = None
    difference: int | None = None
    percent_difference: float | None = None
    recommendation: str | None = None
    error: str | None = None


class MetricInput(BaseModel):
    label: str
    conversions: dict[str, int | float]
    visits: dict[str, int] | None = None
    is_primary: bool = False
    bayesian: bool = True
    continuous: bool = False


class ExperimentRequest(BaseModel):
    visits: dict[str, int]
    metrics: list[MetricInput] = Field(default_factory=list)
    control_key: str = "control"
    start_date: date | None = None
    target_sample_size: int | None = None
    sample_size_metric: str | None = None
    revenue_metric: str | None = None


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


@router.post("/bayesian/probability", response_model=ProbabilityResponse)
async def get_probability(body: ProbabilityRequest) -> ProbabilityResponse:
    """Probability that the variant converts better than the control."""
    probability = estimate_probability_variant_better(
        body.control_visits,
        body.control_conversions,
        body.variant_visits,
        body.variant_conversions,
        n_samples=settings.MONTE_CARLO_SAMPLES,
        normal_approx_min_visits=settings.NORMAL_APPROX_MIN_VISITS,
    )
    return ProbabilityResponse(
        probability=probability,
        category=classify(probability, body.is_primary_metric),
    )


@router.post("/srm", response_model=SampleRatioResponse)
async def get_sample_ratio(body: SampleRatioRequest) -> SampleRatioResponse:
    """Sample ratio mismatch check against a 50/50 split."""
    return SampleRatioResponse(**analyze_sample_ratio(body.control_count, body.variant_count))


@router.post("/experiments/analyze")
async def analyze_experiment(body: ExperimentRequest) -> dict[str, Any]:
    """Full analysis: SRM per variant, per-metric win probabilities, projection."""
    engine = StatsEngine(
        n_samples=settings.MONTE_CARLO_SAMPLES,
        normal_approx_min_visits=settings.NORMAL_APPROX_MIN_VISITS,
    )
    try:
        analysis = engine.analyze_experiment(
            body.visits,
            [metric.model_dump() for metric in body.metrics],
            control_key=body.control_key,
            start_date=body.start_date,
            target_sample_size=body.target_sample_size,
            sample_size_metric=body.sample_size_metric,
            revenue_metric=body.revenue_metric,
        )
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return _finite_or_none(analysis)
