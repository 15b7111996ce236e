"""ABDash statistics core: Bayesian win probabilities and SRM detection."""

__version__ = "0.1.0"
