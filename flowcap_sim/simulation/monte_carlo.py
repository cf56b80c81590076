#!/usr/bin/env python3
"""
Monte Carlo Simulation Engine

Draws N scenarios for a lending or LP position, evaluates the matching yield
model on each, and aggregates the outcome distribution. All randomness comes
from an injected BoxMullerSampler, so a fixed seed reproduces a run exactly.
"""

import math
from typing import Dict, List, Optional, Tuple

import numpy as np

from .sampling import BoxMullerSampler
from ..analysis.metrics import MIN_SIMULATIONS, SimulationMetricsCalculator
from ..core.lending_math import LendingDefaults, LendingMath, simulate_lending_scenario
from ..core.lp_math import LPMath, LPVenueDefaults
from ..core.models import (
    BadDebtStatistics, ExogenousParams, InterestRateModel, LogReturnParameters,
    SimulationResult, SimulationScenario, UtilizationStatistics
)
from ..exceptions import ValidationError
from ..utils.logging import get_logger

logger = get_logger(__name__)


class MonteCarloEngine:
    """Shared plumbing: sampler injection, sizing checks, aggregation"""

    def __init__(self, seed: Optional[int] = None, sampler: Optional[BoxMullerSampler] = None):
        self.sampler = sampler if sampler is not None else BoxMullerSampler(seed)
        self.metrics = SimulationMetricsCalculator()

    @staticmethod
    def validate_simulation_count(num_simulations: int):
        if num_simulations < MIN_SIMULATIONS:
            raise ValidationError(
                f"num_simulations must be at least {MIN_SIMULATIONS}, got {num_simulations}"
            )


class LPMonteCarloSimulator(MonteCarloEngine):
    """Log-normal price-ratio scenarios for a farmed LP position"""

    def draw_price_ratios(self, log_params: LogReturnParameters, days: float, num_simulations: int) -> np.ndarray:
        z = self.sampler.standard_normals(num_simulations)
        return np.exp(log_params.daily_mu * days + log_params.daily_sigma * math.sqrt(days) * z)

    def run(
        self,
        v_initial: float,
        total_apy: float,
        days: float,
        log_params: LogReturnParameters,
        market: ExogenousParams,
        num_simulations: int = LPVenueDefaults.NUM_SIMULATIONS,
        harvest_hours: Optional[float] = None
    ) -> SimulationResult:
        """
        Simulate final LP value across price-ratio draws.

        Args:
            total_apy: fee + farming APY in percent
            harvest_hours: fixed cadence; optimised per scenario when None
        """
        LPMath.validate_inputs(v_initial, 1.0, market.tvl_lp)
        if days <= 0:
            raise ValidationError(f"Holding period must be positive, got {days}")
        self.validate_simulation_count(num_simulations)

        ratios = self.draw_price_ratios(log_params, days, num_simulations)
        scenarios: List[SimulationScenario] = []

        for ratio in ratios:
            ratio = float(ratio)
            if harvest_hours is None:
                hours, final_value, _ = LPMath.optimize_harvest_frequency(
                    v_initial, ratio, total_apy, days, market.gas_price_gwei, market.native_price
                )
                gas = LPMath.gas_cost(days, hours, market.gas_price_gwei, market.native_price)
            else:
                hours = harvest_hours
                gas = LPMath.gas_cost(days, hours, market.gas_price_gwei, market.native_price)
                final_value = LPMath.final_value(v_initial, ratio, total_apy, days, hours, gas)

            scenarios.append(SimulationScenario(
                scenario_input=ratio,
                final_value=final_value,
                return_value=final_value - v_initial,
                component_breakdown={
                    "price_ratio": ratio,
                    "impermanent_loss_pct": LPMath.impermanent_loss_pct(ratio),
                    "hold_value": (v_initial / 2) * (ratio + 1),
                    "harvest_hours": float(hours),
                    "gas_cost": gas,
                },
            ))

        means = self.metrics.breakdown_means(scenarios)
        mean_final = float(np.mean([s.final_value for s in scenarios]))
        mean_return_pct = (mean_final - v_initial) / v_initial * 100
        extra = {
            "total_apy": total_apy,
            "mean_price_ratio": means["price_ratio"],
            "mean_impermanent_loss_pct": means["impermanent_loss_pct"],
            "mean_harvest_hours": means["harvest_hours"],
            "mean_gas_cost": means["gas_cost"],
            "mean_return_pct": mean_return_pct,
            "annualized_apy": LPMath.simple_annualized_apy(mean_return_pct, days),
        }

        result = self.metrics.aggregate(scenarios, v_initial, extra)
        logger.info(
            "lp_monte_carlo_complete",
            simulations=num_simulations,
            mean=round(result.mean, 4),
            probability_of_loss=round(result.probability_of_loss, 4),
        )
        return result


class LendingMonteCarloSimulator(MonteCarloEngine):
    """Utilization and bad-debt scenarios for a lending supply position"""

    def _run_scenarios(
        self,
        v_initial: float,
        period_days: float,
        harvest_days: float,
        rate_model: InterestRateModel,
        utilization: UtilizationStatistics,
        bad_debt: BadDebtStatistics,
        num_simulations: int,
        gas_cost: float
    ) -> List[SimulationScenario]:
        return [
            simulate_lending_scenario(
                v_initial, period_days, harvest_days, rate_model,
                utilization, bad_debt, self.sampler, gas_cost
            )
            for _ in range(num_simulations)
        ]

    def optimize_harvest_frequency(
        self,
        v_initial: float,
        period_days: float,
        rate_model: InterestRateModel,
        utilization: UtilizationStatistics,
        bad_debt: BadDebtStatistics,
        num_simulations: int = LendingDefaults.NUM_SIMULATIONS,
        gas_price_gwei: float = LendingDefaults.GAS_PRICE_GWEI,
        native_price: float = LendingDefaults.NATIVE_PRICE,
        candidates: List[float] = None
    ) -> Tuple[float, Dict[float, float]]:
        """Pick the cadence with the best mean return using N/4 scenarios each"""
        LendingMath.validate_inputs(v_initial, period_days)
        reduced = max(1, num_simulations // 4)
        best_days = LendingDefaults.DEFAULT_HARVEST_DAYS
        best_return = -math.inf
        mean_returns = {}

        for harvest_days in candidates or LendingDefaults.HARVEST_CANDIDATES_DAYS:
            gas = LendingMath.total_gas_cost(period_days, harvest_days, gas_price_gwei, native_price)
            scenarios = self._run_scenarios(
                v_initial, period_days, harvest_days, rate_model,
                utilization, bad_debt, reduced, gas
            )
            mean_return = float(np.mean([s.return_value for s in scenarios]))
            mean_returns[harvest_days] = mean_return
            if mean_return > best_return:
                best_return = mean_return
                best_days = harvest_days

        logger.debug("lending_harvest_optimized", best_days=best_days, mean_returns=mean_returns)
        return best_days, mean_returns

    def run(
        self,
        v_initial: float,
        period_days: float,
        rate_model: InterestRateModel,
        utilization: UtilizationStatistics,
        bad_debt: BadDebtStatistics,
        num_simulations: int = LendingDefaults.NUM_SIMULATIONS,
        harvest_days: Optional[float] = None,
        gas_price_gwei: float = LendingDefaults.GAS_PRICE_GWEI,
        native_price: float = LendingDefaults.NATIVE_PRICE
    ) -> SimulationResult:
        LendingMath.validate_inputs(v_initial, period_days, harvest_days)
        self.validate_simulation_count(num_simulations)

        harvest_comparison = {}
        if harvest_days is None:
            harvest_days, harvest_comparison = self.optimize_harvest_frequency(
                v_initial, period_days, rate_model, utilization, bad_debt,
                num_simulations, gas_price_gwei, native_price
            )

        gas = LendingMath.total_gas_cost(period_days, harvest_days, gas_price_gwei, native_price)
        scenarios = self._run_scenarios(
            v_initial, period_days, harvest_days, rate_model,
            utilization, bad_debt, num_simulations, gas
        )

        returns = np.array([s.return_value for s in scenarios])
        means = self.metrics.breakdown_means(scenarios)
        mean_final = float(np.mean([s.final_value for s in scenarios]))
        extra = {
            "max_drawdown": float(np.min(returns)),
            "max_drawdown_pct": float(np.min(returns)) / v_initial * 100,
            "annualized_apy": LendingMath.compound_annualized_apy(mean_final, v_initial, period_days),
            "mean_supply_apy": means["mean_supply_apy"],
            "mean_utilization": means["mean_utilization"],
            "mean_bad_debt_events": means["bad_debt_events"],
            "mean_bad_debt_loss": means["bad_debt_loss"],
            "mean_interest_earned": means["interest_earned"],
            "optimal_harvest_frequency_days": float(harvest_days),
            "harvest_count": float(LendingMath.harvest_count(period_days, harvest_days)),
            "total_gas_cost": gas,
        }
        for candidate, mean_return in harvest_comparison.items():
            extra[f"harvest_{candidate}d_mean_return"] = mean_return

        result = self.metrics.aggregate(scenarios, v_initial, extra)
        logger.info(
            "lending_monte_carlo_complete",
            simulations=num_simulations,
            harvest_days=harvest_days,
            mean=round(result.mean, 4),
            annualized_apy=round(extra["annualized_apy"], 4),
        )
        return result
