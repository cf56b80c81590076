#!/usr/bin/env python3
"""
Lending Yield Model

Per-harvest-period dynamics of a supply position in a pooled lending market:
stochastic utilization drives the supply rate, and socialised bad-debt events
cut capital before the period's interest accrues.
"""

import math
from typing import Dict

from .interest_rates import supply_apy
from .models import (
    BadDebtStatistics, InterestRateModel, SimulationScenario, UtilizationStatistics
)
from ..exceptions import ValidationError


class LendingDefaults:
    """Lending model constants"""
    GAS_UNITS_PER_TX = 200_000
    GAS_PRICE_GWEI = 3.0
    NATIVE_PRICE = 600.0
    NUM_SIMULATIONS = 1000
    HARVEST_CANDIDATES_DAYS = [1, 7, 14, 30]
    DEFAULT_HARVEST_DAYS = 30
    UTILIZATION_FLOOR = 0.05
    UTILIZATION_CEILING = 0.98
    SEVERITY_LOW = 0.5
    SEVERITY_HIGH = 1.5


class LendingMath:
    """Pure functions for lending positions"""

    @staticmethod
    def validate_inputs(v_initial: float, period_days: float, harvest_days: float = None):
        if v_initial <= 0:
            raise ValidationError(f"Initial capital must be positive, got {v_initial}")
        if period_days <= 0:
            raise ValidationError(f"Holding period must be positive, got {period_days}")
        if harvest_days is not None and harvest_days <= 0:
            raise ValidationError(f"Harvest frequency must be positive, got {harvest_days}")

    @staticmethod
    def harvest_count(period_days: float, harvest_days: float) -> int:
        return int(math.floor(period_days / harvest_days))

    @staticmethod
    def total_gas_cost(
        period_days: float,
        harvest_days: float,
        gas_price_gwei: float = LendingDefaults.GAS_PRICE_GWEI,
        native_price: float = LendingDefaults.NATIVE_PRICE,
        gas_units: float = LendingDefaults.GAS_UNITS_PER_TX
    ) -> float:
        """Entry + one transaction per harvest + exit"""
        num_transactions = 2 + LendingMath.harvest_count(period_days, harvest_days)
        return num_transactions * gas_units * gas_price_gwei / 1e9 * native_price

    @staticmethod
    def clamp_utilization(utilization: float) -> float:
        return min(LendingDefaults.UTILIZATION_CEILING, max(LendingDefaults.UTILIZATION_FLOOR, utilization))

    @staticmethod
    def bad_debt_probability(events_per_year: float, period_days: float) -> float:
        return events_per_year / 365 * period_days

    @staticmethod
    def compound_annualized_apy(mean_final_value: float, v_initial: float, period_days: float) -> float:
        """Geometric annualisation used for lending positions (percent)"""
        if mean_final_value <= 0:
            return -100.0
        return ((mean_final_value / v_initial) ** (365 / period_days) - 1) * 100


def simulate_lending_scenario(
    v_initial: float,
    period_days: float,
    harvest_days: float,
    rate_model: InterestRateModel,
    utilization: UtilizationStatistics,
    bad_debt: BadDebtStatistics,
    sampler,
    gas_cost: float
) -> SimulationScenario:
    """
    Evaluate one path of a lending position.

    Each harvest period draws a utilization, applies any bad-debt hit to the
    current capital, then accrues that period's interest on what is left.
    Gas is subtracted once at the end.
    """
    capital = v_initial
    interest_earned = 0.0
    bad_debt_loss = 0.0
    bad_debt_events = 0
    supply_rates = []
    utilizations = []

    num_harvests = LendingMath.harvest_count(period_days, harvest_days)
    for i in range(num_harvests + 1):
        days_in_period = min(harvest_days, period_days - i * harvest_days)
        if days_in_period <= 0:
            break

        u = LendingMath.clamp_utilization(sampler.normal(utilization.mean, utilization.std))
        rate = supply_apy(u, rate_model)
        utilizations.append(u)
        supply_rates.append(rate)

        probability = LendingMath.bad_debt_probability(bad_debt.events_per_year, days_in_period)
        if sampler.bernoulli(probability):
            severity = bad_debt.annualized_rate * sampler.uniform(
                LendingDefaults.SEVERITY_LOW, LendingDefaults.SEVERITY_HIGH
            )
            loss = capital * min(severity, 1.0)
            capital -= loss
            bad_debt_loss += loss
            bad_debt_events += 1

        period_interest = capital * rate * days_in_period / 365
        capital += period_interest
        interest_earned += period_interest

    final_value = capital - gas_cost
    breakdown: Dict[str, float] = {
        "interest_earned": interest_earned,
        "bad_debt_loss": bad_debt_loss,
        "bad_debt_events": float(bad_debt_events),
        "gas_cost": gas_cost,
        "mean_supply_apy": sum(supply_rates) / len(supply_rates) * 100 if supply_rates else 0.0,
        "mean_utilization": sum(utilizations) / len(utilizations) if utilizations else 0.0,
    }
    return SimulationScenario(
        scenario_input=breakdown["mean_utilization"],
        final_value=final_value,
        return_value=final_value - v_initial,
        component_breakdown=breakdown,
    )
