#!/usr/bin/env python3
"""
Lending Yield Model Test Suite

1. Bad debt hits capital before the period's interest accrues
2. Harvest gas: entry + harvests + exit
3. Compound annualisation used for lending results
"""

import pytest

from flowcap_sim.core.lending_math import LendingDefaults, LendingMath, simulate_lending_scenario
from flowcap_sim.core.models import (
    BadDebtStatistics, InterestRateModel, ModelType, UtilizationStatistics
)
from flowcap_sim.exceptions import ValidationError


class FixedSampler:
    """Deterministic draws: utilization at its mean, bad debt every period, mid severity"""

    def __init__(self, bad_debt: bool = True):
        self.bad_debt = bad_debt
        self.bernoulli_calls = []

    def normal(self, mean, std):
        return mean

    def bernoulli(self, probability):
        self.bernoulli_calls.append(probability)
        return self.bad_debt

    def uniform(self, low, high):
        return (low + high) / 2


class TestLendingScenario:

    def setup_method(self):
        self.model = InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.04, 0.6, 0.8, 0.1)
        self.utilization = UtilizationStatistics(mean=0.5, std=0.05, min=0.4, max=0.6, median=0.5)
        self.bad_debt = BadDebtStatistics(
            event_count=1, total_loss=0.0, mean_loss_per_event=0.0,
            annualized_rate=0.1, events_per_year=2.0,
        )

    def test_bad_debt_applied_before_interest(self):
        """Loss is taken on the pre-interest capital; interest accrues on what is left"""
        scenario = simulate_lending_scenario(
            1000, 365, 365, self.model, self.utilization, self.bad_debt, FixedSampler(), 0.0
        )
        rate = 0.5 * 0.04 * 0.5 * 0.9
        breakdown = scenario.component_breakdown

        assert breakdown["bad_debt_loss"] == pytest.approx(100.0), "10% of the untouched $1000"
        assert breakdown["interest_earned"] == pytest.approx(900 * rate)
        assert breakdown["bad_debt_events"] == 1.0
        assert scenario.final_value == pytest.approx(900 * (1 + rate))

    def test_gas_subtracted_once_at_end(self):
        sampler = FixedSampler(bad_debt=False)
        without_gas = simulate_lending_scenario(1000, 30, 7, self.model, self.utilization, self.bad_debt, sampler, 0.0)
        with_gas = simulate_lending_scenario(1000, 30, 7, self.model, self.utilization, self.bad_debt, sampler, 2.5)
        assert with_gas.final_value == pytest.approx(without_gas.final_value - 2.5)
        assert with_gas.component_breakdown["interest_earned"] == pytest.approx(
            without_gas.component_breakdown["interest_earned"]
        )

    def test_partial_last_period(self):
        """30 days at a 7-day cadence: four full periods and one 2-day stub"""
        sampler = FixedSampler(bad_debt=False)
        simulate_lending_scenario(1000, 30, 7, self.model, self.utilization, self.bad_debt, sampler, 0.0)
        expected = [LendingMath.bad_debt_probability(2.0, d) for d in (7, 7, 7, 7, 2)]
        assert sampler.bernoulli_calls == pytest.approx(expected)

    def test_exact_multiple_has_no_empty_period(self):
        sampler = FixedSampler(bad_debt=False)
        simulate_lending_scenario(1000, 28, 7, self.model, self.utilization, self.bad_debt, sampler, 0.0)
        assert len(sampler.bernoulli_calls) == 4

    def test_severity_capped_at_full_loss(self):
        wipeout = BadDebtStatistics(1, 0.0, 0.0, annualized_rate=5.0, events_per_year=365.0)
        scenario = simulate_lending_scenario(
            1000, 1, 1, self.model, self.utilization, wipeout, FixedSampler(), 0.0
        )
        assert scenario.final_value == 0.0

    def test_utilization_is_clamped(self):
        extreme = UtilizationStatistics(mean=1.5, std=0.0, min=1.5, max=1.5, median=1.5)
        scenario = simulate_lending_scenario(
            1000, 30, 30, self.model, extreme, self.bad_debt, FixedSampler(bad_debt=False), 0.0
        )
        assert scenario.component_breakdown["mean_utilization"] == LendingDefaults.UTILIZATION_CEILING


class TestLendingMath:

    def test_total_gas_cost(self):
        """30 days, monthly harvest: entry + 1 harvest + exit"""
        per_tx = 200_000 * 3.0 / 1e9 * 600.0
        assert LendingMath.total_gas_cost(30, 30) == pytest.approx(3 * per_tx)
        assert LendingMath.total_gas_cost(30, 7) == pytest.approx(6 * per_tx)

    def test_harvest_count_rounds_down(self):
        assert LendingMath.harvest_count(30, 7) == 4
        assert LendingMath.harvest_count(30, 1) == 30

    def test_compound_annualization(self):
        apy = LendingMath.compound_annualized_apy(1010, 1000, 30)
        assert apy == pytest.approx(((1010 / 1000) ** (365 / 30) - 1) * 100)
        assert apy > 1.0 / 30 * 365, "Compounding beats simple extrapolation for gains"

    def test_compound_annualization_total_loss(self):
        assert LendingMath.compound_annualized_apy(0.0, 1000, 30) == -100.0

    def test_bad_debt_probability_scales_with_period(self):
        assert LendingMath.bad_debt_probability(6, 365) == pytest.approx(6.0)
        assert LendingMath.bad_debt_probability(6, 1) == pytest.approx(6 / 365)

    @pytest.mark.parametrize("v,period,harvest", [(0, 30, 7), (1000, 0, 7), (1000, 30, 0)])
    def test_validation(self, v, period, harvest):
        with pytest.raises(ValidationError):
            LendingMath.validate_inputs(v, period, harvest)
