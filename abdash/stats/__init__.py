"""ABDash statistics core.

Public API:
- estimate_probability_variant_better: Beta-Binomial P(variant beats control)
- BetaBinomial: Conjugate Beta-Binomial posterior model
- classify / CellCategory: Traffic-light category for a win probability
- analyze_sample_ratio: Sample Ratio Mismatch chi-squared check with ratios
- normal_cdf: Shared standard normal CDF
- project_completion: Completion-date projection for a running experiment
- project_revenue_impact: Annualised revenue impact of shipping a variant
- StatsEngine: Orchestrator that ties everything together per experiment
"""

from abdash.stats.bayesian import BetaBinomial, estimate_probability_variant_better
from abdash.stats.classify import CellCategory, classify
from abdash.stats.engine import StatsEngine
from abdash.stats.normal import normal_cdf
from abdash.stats.projection import project_completion, project_revenue_impact
from abdash.stats.srm import Severity, analyze_sample_ratio, calculate_chi_squared, is_significant_mismatch

__all__ = [
    "BetaBinomial",
    "estimate_probability_variant_better",
    "CellCategory",
    "classify",
    "StatsEngine",
    "normal_cdf",
    "project_completion",
    "project_revenue_impact",
    "Severity",
    "analyze_sample_ratio",
    "calculate_chi_squared",
    "is_significant_mismatch",
]
