#!/usr/bin/env python3
"""
Historical Statistics Estimator

Reduces raw historical series to the distributional inputs of the yield
models: utilization moments, log-return drift and volatility, and bad-debt
frequency/severity.
"""

import math
from typing import Dict, List, Optional, Sequence, Union

import numpy as np
import pandas as pd

from ..core.interest_rates import categorize_asset
from ..core.models import (
    AssetCategory, BadDebtEvent, BadDebtRiskLevel, BadDebtStatistics,
    LogReturnParameters, SeriesPoint, UtilizationStatistics
)
from ..exceptions import DataUnavailable, InsufficientData, ValidationError

SeriesLike = Union[Sequence[SeriesPoint], Sequence[float], pd.Series, np.ndarray]


BLUECHIP_PROTOCOLS = ("aave", "compound", "venus")

BAD_DEBT_CAUSES = [
    "Flash crash liquidation failure",
    "Network congestion during volatility",
    "Oracle price manipulation",
    "Insufficient liquidation incentives",
    "Recursive leverage unwinding",
]


class BadDebtProfiles:
    """Category priors: event frequency and base severity (fraction of TVL)"""
    PROFILES: Dict[BadDebtRiskLevel, Dict[str, float]] = {
        BadDebtRiskLevel.LOW: {"events_per_year": 0.5, "base_severity": 0.0001},
        BadDebtRiskLevel.MEDIUM: {"events_per_year": 2.0, "base_severity": 0.001},
        BadDebtRiskLevel.HIGH: {"events_per_year": 6.0, "base_severity": 0.01},
    }

    @classmethod
    def get(cls, level: BadDebtRiskLevel) -> Dict[str, float]:
        return cls.PROFILES[level]


def _to_values(series: SeriesLike) -> np.ndarray:
    if series is None:
        return np.array([], dtype=float)
    if isinstance(series, pd.Series):
        return series.dropna().to_numpy(dtype=float)
    values = [p.value if isinstance(p, SeriesPoint) else p for p in series]
    return np.asarray(values, dtype=float)


def estimate_utilization(series: SeriesLike) -> UtilizationStatistics:
    """Moments of a utilization series; an empty series is DataUnavailable"""
    values = _to_values(series)
    if values.size == 0:
        raise DataUnavailable("No utilization observations supplied")
    if np.any(values < 0) or np.any(values > 1):
        raise ValidationError("Utilization observations must lie in [0, 1]")

    ordered = np.sort(values)
    return UtilizationStatistics(
        mean=float(np.mean(values)),
        std=float(np.std(values)),
        min=float(ordered[0]),
        max=float(ordered[-1]),
        median=float(ordered[len(ordered) // 2]),
    )


def estimate_log_return_parameters(price_series: SeriesLike) -> LogReturnParameters:
    """Daily and annualised drift/volatility of log returns"""
    prices = _to_values(price_series)
    if prices.size < 2:
        raise InsufficientData(f"Need at least 2 prices for log returns, got {prices.size}")
    if np.any(prices <= 0):
        raise InsufficientData("Prices must be positive to take log returns")

    returns = np.diff(np.log(prices))
    daily_mu = float(np.mean(returns))
    daily_sigma = float(np.std(returns))

    return LogReturnParameters(
        daily_mu=daily_mu,
        daily_sigma=daily_sigma,
        annualized_mu=daily_mu * 365,
        annualized_sigma=daily_sigma * math.sqrt(365),
        sample_size=int(returns.size),
    )


def assess_bad_debt_risk(protocol: str, asset: str) -> BadDebtRiskLevel:
    """
    Stablecoin or major asset on a bluechip venue is low risk. Off the bluechip
    venues only majors drop to medium; stablecoins there stay high.
    """
    category = categorize_asset(asset)
    name = protocol.lower()
    bluechip = any(venue in name for venue in BLUECHIP_PROTOCOLS)

    if bluechip and category in (AssetCategory.STABLECOIN, AssetCategory.MAJOR):
        return BadDebtRiskLevel.LOW
    if bluechip or category == AssetCategory.MAJOR:
        return BadDebtRiskLevel.MEDIUM
    return BadDebtRiskLevel.HIGH


def estimate_bad_debt(
    category: BadDebtRiskLevel,
    window_days: float,
    reference_tvl: float,
    events: Optional[List[BadDebtEvent]] = None
) -> BadDebtStatistics:
    """
    Bad-debt frequency and severity over a window.

    With observed events the rates are empirical. Without them the category
    prior is returned: the profile's event frequency, and its base severity
    as the per-event loss fraction.
    """
    if window_days <= 0:
        raise ValidationError(f"Window must be positive, got {window_days}")
    if reference_tvl < 0:
        raise ValidationError(f"Reference TVL must be non-negative, got {reference_tvl}")

    if events is None:
        profile = BadDebtProfiles.get(category)
        return BadDebtStatistics(
            event_count=0,
            total_loss=0.0,
            mean_loss_per_event=profile["base_severity"] * reference_tvl,
            annualized_rate=profile["base_severity"],
            events_per_year=profile["events_per_year"],
            events=[],
        )

    loss_fractions = [event.loss_fraction for event in events]
    total_loss = sum(fraction * reference_tvl for fraction in loss_fractions)
    count = len(events)

    return BadDebtStatistics(
        event_count=count,
        total_loss=total_loss,
        mean_loss_per_event=total_loss / count if count else 0.0,
        annualized_rate=sum(loss_fractions) / window_days * 365,
        events_per_year=count / window_days * 365,
        events=sorted(events, key=lambda e: e.timestamp),
    )


def bad_debt_parameters(stats: BadDebtStatistics) -> Dict[str, float]:
    """Drift-style summary: expected annual loss rate and its dispersion"""
    fractions = [event.loss_fraction for event in stats.events]
    delta_std = 0.0
    if len(fractions) >= 2:
        delta_std = float(np.std(fractions)) * math.sqrt(stats.events_per_year)
    return {"delta": stats.annualized_rate, "delta_std": delta_std}
