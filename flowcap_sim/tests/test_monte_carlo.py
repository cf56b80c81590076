#!/usr/bin/env python3
"""
Monte Carlo Engine Test Suite

1. Seeded runs reproduce exactly
2. Scenario count floor
3. Lending: bad-debt event frequency over a full year, compound annualisation
4. LP: flat market degenerates to the point estimate, simple annualisation
"""

import pytest

from flowcap_sim.analysis.metrics import SimulationMetricsCalculator
from flowcap_sim.core.lending_math import LendingDefaults, LendingMath
from flowcap_sim.core.lp_math import LPMath
from flowcap_sim.core.models import (
    BadDebtStatistics, ExogenousParams, InterestRateModel, LogReturnParameters, ModelType,
    SimulationScenario, UtilizationStatistics
)
from flowcap_sim.exceptions import ValidationError
from flowcap_sim.simulation.monte_carlo import LendingMonteCarloSimulator, LPMonteCarloSimulator
from flowcap_sim.simulation.sampling import BoxMullerSampler


class TestSampler:

    def test_seeded_draws_repeat(self):
        first = BoxMullerSampler(seed=11)
        second = BoxMullerSampler(seed=11)
        assert [first.normal(0, 1) for _ in range(5)] == [second.normal(0, 1) for _ in range(5)]

    def test_standard_normals_moments(self):
        draws = BoxMullerSampler(seed=3).standard_normals(20_000)
        assert abs(draws.mean()) < 0.05
        assert draws.std() == pytest.approx(1.0, abs=0.05)

    def test_bernoulli_extremes(self):
        sampler = BoxMullerSampler(seed=1)
        assert not any(sampler.bernoulli(0.0) for _ in range(100))
        assert all(sampler.bernoulli(1.0) for _ in range(100))


class TestLendingMonteCarlo:

    def setup_method(self):
        self.model = InterestRateModel(ModelType.JUMP_RATE, 0.0, 0.048, 0.69, 0.80, 0.05)
        self.utilization = UtilizationStatistics(mean=0.75, std=0.03, min=0.7, max=0.8, median=0.75)
        self.no_bad_debt = BadDebtStatistics(0, 0.0, 0.0, annualized_rate=0.0, events_per_year=0.0)

    def test_seed_reproduces_result(self):
        bad_debt = BadDebtStatistics(0, 0.0, 0.0, annualized_rate=0.001, events_per_year=2.0)
        first = LendingMonteCarloSimulator(seed=42).run(
            10_000, 30, self.model, self.utilization, bad_debt, num_simulations=200
        )
        second = LendingMonteCarloSimulator(seed=42).run(
            10_000, 30, self.model, self.utilization, bad_debt, num_simulations=200
        )
        assert first.to_dict() == second.to_dict()

    def test_minimum_scenarios(self):
        with pytest.raises(ValidationError):
            LendingMonteCarloSimulator(seed=1).run(
                1000, 30, self.model, self.utilization, self.no_bad_debt, num_simulations=99
            )

    def test_yearly_bad_debt_event_count(self):
        """Six events per year over 365 days averages between 4 and 8"""
        bad_debt = BadDebtStatistics(0, 0.0, 0.0, annualized_rate=0.001, events_per_year=6.0)
        result = LendingMonteCarloSimulator(seed=7).run(
            1000, 365, self.model, self.utilization, bad_debt,
            num_simulations=1000, harvest_days=1,
        )
        assert 4 <= result.extra_metrics["mean_bad_debt_events"] <= 8

    def test_compound_annualization_reported(self):
        result = LendingMonteCarloSimulator(seed=5).run(
            10_000, 30, self.model, self.utilization, self.no_bad_debt,
            num_simulations=100, harvest_days=30,
        )
        expected = LendingMath.compound_annualized_apy(result.mean, 10_000, 30)
        assert result.extra_metrics["annualized_apy"] == pytest.approx(expected)
        assert result.extra_metrics["harvest_count"] == 1.0
        assert result.extra_metrics["total_gas_cost"] == pytest.approx(LendingMath.total_gas_cost(30, 30))

    def test_no_risk_no_loss(self):
        result = LendingMonteCarloSimulator(seed=5).run(
            10_000, 30, self.model, self.utilization, self.no_bad_debt,
            num_simulations=100, harvest_days=30,
        )
        assert result.probability_of_loss == 0.0
        assert result.extra_metrics["mean_bad_debt_events"] == 0.0
        assert result.percentile_5 <= result.median <= result.percentile_95

    def test_harvest_optimization(self):
        result = LendingMonteCarloSimulator(seed=9).run(
            10_000, 30, self.model, self.utilization, self.no_bad_debt, num_simulations=100
        )
        best = result.extra_metrics["optimal_harvest_frequency_days"]
        assert best in LendingDefaults.HARVEST_CANDIDATES_DAYS
        for days in LendingDefaults.HARVEST_CANDIDATES_DAYS:
            assert f"harvest_{days}d_mean_return" in result.extra_metrics


class TestLPMonteCarlo:

    def setup_method(self):
        self.market = ExogenousParams(volume_24h=50_000, tvl_lp=1_000_000)
        self.flat = LogReturnParameters(0.0, 0.0, 0.0, 0.0, 30)

    def test_flat_market_matches_point_estimate(self):
        result = LPMonteCarloSimulator(seed=1).run(
            1000, 10.0, 30, self.flat, self.market, num_simulations=100, harvest_hours=24
        )
        gas = LPMath.gas_cost(30, 24, self.market.gas_price_gwei, self.market.native_price)
        expected = LPMath.final_value(1000, 1.0, 10.0, 30, 24, gas)
        assert result.mean == pytest.approx(expected)
        assert result.sharpe_ratio == 0.0, "Identical scenarios have no dispersion"
        assert result.extra_metrics["mean_impermanent_loss_pct"] == pytest.approx(0.0)

    def test_simple_annualization_reported(self):
        result = LPMonteCarloSimulator(seed=1).run(
            1000, 10.0, 30, self.flat, self.market, num_simulations=100, harvest_hours=24
        )
        mean_return_pct = (result.mean - 1000) / 1000 * 100
        assert result.extra_metrics["annualized_apy"] == pytest.approx(mean_return_pct / 30 * 365)

    def test_volatility_produces_losses(self):
        volatile = LogReturnParameters(0.0, 0.08, 0.0, 0.08 * 365 ** 0.5, 30)
        result = LPMonteCarloSimulator(seed=2).run(
            1000, 0.0, 30, volatile, self.market, num_simulations=200
        )
        assert result.probability_of_loss > 0.3
        assert result.percentile_5 < 1000
        assert result.extra_metrics["mean_impermanent_loss_pct"] > 0

    def test_seed_reproduces_result(self):
        volatile = LogReturnParameters(0.001, 0.05, 0.365, 0.05 * 365 ** 0.5, 30)
        first = LPMonteCarloSimulator(seed=3).run(1000, 20.0, 30, volatile, self.market, num_simulations=100)
        second = LPMonteCarloSimulator(seed=3).run(1000, 20.0, 30, volatile, self.market, num_simulations=100)
        assert first.to_dict() == second.to_dict()


class TestMetricsCalculator:

    def setup_method(self):
        self.calculator = SimulationMetricsCalculator()

    def _scenarios(self, values):
        return [SimulationScenario(v, v, v - 100.0) for v in values]

    def test_percentiles_and_var(self):
        result = self.calculator.aggregate(self._scenarios([float(v) for v in range(100)]), 100.0)
        assert result.percentile_5 == 5.0
        assert result.percentile_25 == 25.0
        assert result.median == 50.0
        assert result.percentile_95 == 95.0
        assert result.value_at_risk_5 == 95.0
        assert result.probability_of_loss == 1.0

    def test_percentile_order_independent(self):
        values = [float(v) for v in reversed(range(100, 200))]
        result = self.calculator.aggregate(self._scenarios(values), 100.0)
        assert result.percentile_5 == 105.0
        assert result.probability_of_loss == 0.0

    def test_zero_dispersion_sharpe(self):
        result = self.calculator.aggregate(self._scenarios([101.0] * 100), 100.0)
        assert result.sharpe_ratio == 0.0
        assert result.distribution_params["skewness"] == 0.0

    def test_sharpe_ratio(self):
        values = [100.0 + (v % 4) for v in range(100)]
        result = self.calculator.aggregate(self._scenarios(values), 100.0)
        returns = [(v - 100.0) for v in values]
        mean = sum(returns) / len(returns)
        std = (sum((r - mean) ** 2 for r in returns) / len(returns)) ** 0.5
        assert result.sharpe_ratio == pytest.approx(mean / std)

    def test_too_few_scenarios(self):
        with pytest.raises(ValidationError):
            self.calculator.aggregate(self._scenarios([100.0] * 99), 100.0)

    def test_to_dict_drops_non_finite(self):
        result = self.calculator.aggregate(
            self._scenarios([100.0] * 100), 100.0, {"break_even_days": float("inf")}
        )
        assert result.to_dict()["extra_metrics"]["break_even_days"] is None
