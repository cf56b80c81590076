"""Historical data access and parameter estimation"""

from .history import (
    HistoricalDataSource, InMemoryHistoricalDataSource, RetryingHistoricalDataSource,
    price_ratio_series, utilization_from_totals
)
from .estimators import (
    estimate_utilization, estimate_bad_debt, estimate_log_return_parameters,
    assess_bad_debt_risk, bad_debt_parameters
)
from .synthetic import SyntheticHistoricalDataSource

__all__ = [
    "HistoricalDataSource", "InMemoryHistoricalDataSource", "RetryingHistoricalDataSource",
    "price_ratio_series", "utilization_from_totals",
    "estimate_utilization", "estimate_bad_debt", "estimate_log_return_parameters",
    "assess_bad_debt_risk", "bad_debt_parameters",
    "SyntheticHistoricalDataSource"
]
