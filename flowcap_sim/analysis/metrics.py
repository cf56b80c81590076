#!/usr/bin/env python3
"""
Risk & Statistics Aggregator

Reduces a set of Monte Carlo scenarios to summary statistics: percentiles,
probability of loss, Value-at-Risk and Sharpe ratio.
"""

import math
from typing import Dict, List, Sequence

import numpy as np
from scipy import stats

from ..core.models import SimulationResult, SimulationScenario
from ..exceptions import ValidationError

MIN_SIMULATIONS = 100


class SimulationMetricsCalculator:
    """Outcome distribution metrics for one simulation run"""

    def __init__(self, min_scenarios: int = MIN_SIMULATIONS):
        self.min_scenarios = min_scenarios

    @staticmethod
    def percentile(sorted_values: Sequence[float], fraction: float) -> float:
        """Lower nearest-rank percentile: sorted[floor(n * fraction)]"""
        index = min(len(sorted_values) - 1, int(math.floor(len(sorted_values) * fraction)))
        return float(sorted_values[index])

    @staticmethod
    def sharpe_ratio(returns_pct: np.ndarray) -> float:
        # Identical outcomes: std is zero up to rounding
        if returns_pct.size == 0 or np.ptp(returns_pct) == 0:
            return 0.0
        std = float(np.std(returns_pct))
        if std == 0 or not math.isfinite(std):
            return 0.0
        return float(np.mean(returns_pct)) / std

    @staticmethod
    def distribution_params(final_values: np.ndarray, returns_pct: np.ndarray) -> Dict[str, float]:
        std = float(np.std(returns_pct))
        if np.ptp(returns_pct) > 0:
            skewness = float(stats.skew(returns_pct))
            kurtosis = float(stats.kurtosis(returns_pct))
        else:
            skewness = 0.0
            kurtosis = 0.0
        return {
            "return_pct_mean": float(np.mean(returns_pct)),
            "return_pct_std": std,
            "skewness": skewness,
            "kurtosis": kurtosis,
            "min_final_value": float(np.min(final_values)),
            "max_final_value": float(np.max(final_values)),
        }

    def aggregate(
        self,
        scenarios: List[SimulationScenario],
        initial_value: float,
        extra_metrics: Dict[str, float] = None
    ) -> SimulationResult:
        if len(scenarios) < self.min_scenarios:
            raise ValidationError(
                f"Need at least {self.min_scenarios} scenarios, got {len(scenarios)}"
            )
        if initial_value <= 0:
            raise ValidationError(f"Initial value must be positive, got {initial_value}")

        final_values = np.array([s.final_value for s in scenarios], dtype=float)
        returns_pct = (final_values - initial_value) / initial_value * 100
        ordered = np.sort(final_values)
        p5 = self.percentile(ordered, 0.05)

        return SimulationResult(
            initial_value=initial_value,
            mean=float(np.mean(final_values)),
            median=self.percentile(ordered, 0.50),
            std=float(np.std(final_values)),
            percentile_5=p5,
            percentile_25=self.percentile(ordered, 0.25),
            percentile_75=self.percentile(ordered, 0.75),
            percentile_95=self.percentile(ordered, 0.95),
            probability_of_loss=float(np.mean(final_values < initial_value)),
            value_at_risk_5=initial_value - p5,
            sharpe_ratio=self.sharpe_ratio(returns_pct),
            num_simulations=len(scenarios),
            distribution_params=self.distribution_params(final_values, returns_pct),
            extra_metrics=dict(extra_metrics or {}),
            scenarios=list(scenarios),
        )

    def breakdown_means(self, scenarios: List[SimulationScenario]) -> Dict[str, float]:
        """Mean of each component across scenarios"""
        keys = set()
        for scenario in scenarios:
            keys.update(scenario.component_breakdown)
        return {
            key: float(np.mean([s.component_breakdown.get(key, 0.0) for s in scenarios]))
            for key in sorted(keys)
        }
