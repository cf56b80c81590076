#!/usr/bin/env python3
"""
Per-pool analysis

Routes a pool to the lending or LP pipeline: pull history, estimate
parameters, compute the point-estimate APY used for ranking, and run the
Monte Carlo simulation for the outcome distribution.
"""

from typing import Optional

from .config import StrategyConfig
from ..core.interest_rates import InterestRateResolver, describe_model, supply_apy
from ..core.lending_math import LendingDefaults
from ..core.lp_math import analyze_lp_position
from ..core.models import PoolAnalysis, PoolDescriptor, PoolType
from ..data.estimators import (
    assess_bad_debt_risk, estimate_bad_debt, estimate_log_return_parameters, estimate_utilization
)
from ..data.history import HistoricalDataSource
from ..exceptions import ValidationError
from ..simulation.monte_carlo import LendingMonteCarloSimulator, LPMonteCarloSimulator
from ..simulation.sampling import BoxMullerSampler


class PoolAnalyzer:
    """Point estimate plus simulated outcome for one pool"""

    def __init__(
        self,
        data_source: HistoricalDataSource,
        config: StrategyConfig = None,
        resolver: InterestRateResolver = None
    ):
        self.data_source = data_source
        self.config = config or StrategyConfig()
        self.resolver = resolver or InterestRateResolver()

    def analyze(self, pool: PoolDescriptor, amount: float, sampler: Optional[BoxMullerSampler] = None) -> PoolAnalysis:
        sampler = sampler or BoxMullerSampler()
        if pool.pool_type == PoolType.LENDING:
            return self.analyze_lending(pool, amount, sampler)
        if pool.pool_type == PoolType.LP:
            return self.analyze_lp(pool, amount, sampler)
        raise ValidationError(f"Pool type {pool.pool_type.value} is not modelled ({pool.pool_id})")

    def analyze_lending(self, pool: PoolDescriptor, amount: float, sampler: BoxMullerSampler) -> PoolAnalysis:
        config = self.config
        asset = pool.primary_asset
        resolved = self.resolver.resolve(pool.protocol, asset)

        utilization = estimate_utilization(
            self.data_source.utilization_series(pool.protocol, asset, config.history_window_days)
        )
        events = self.data_source.bad_debt_events(pool.protocol, asset, config.bad_debt_window_days)
        bad_debt = estimate_bad_debt(
            assess_bad_debt_risk(pool.protocol, asset), config.bad_debt_window_days, amount, events
        )

        gas_price = LendingDefaults.GAS_PRICE_GWEI
        native_price = LendingDefaults.NATIVE_PRICE
        if pool.exogenous_params is not None:
            gas_price = pool.exogenous_params.gas_price_gwei
            native_price = pool.exogenous_params.native_price

        simulation = LendingMonteCarloSimulator(sampler=sampler).run(
            amount, config.holding_period_days, resolved.model, utilization, bad_debt,
            num_simulations=config.lending_simulations,
            gas_price_gwei=gas_price,
            native_price=native_price,
        )

        return PoolAnalysis(
            pool=pool,
            apy=supply_apy(utilization.mean, resolved.model) * 100,
            simulated_apy=simulation.extra_metrics["annualized_apy"],
            simulation=simulation,
            details={
                "rate_model": describe_model(resolved.model),
                "rate_model_provenance": resolved.provenance.value,
                "utilization_mean": utilization.mean,
                "utilization_std": utilization.std,
                "bad_debt_events_per_year": bad_debt.events_per_year,
                "bad_debt_annualized_rate": bad_debt.annualized_rate,
            },
        )

    def analyze_lp(self, pool: PoolDescriptor, amount: float, sampler: BoxMullerSampler) -> PoolAnalysis:
        config = self.config
        market = pool.exogenous_params
        if market is None:
            raise ValidationError(f"Pool {pool.pool_id} has no market snapshot for LP analysis")
        if len(pool.assets) != 2:
            raise ValidationError(f"LP pool {pool.pool_id} must have exactly two assets")

        # Net of gas at the optimal cadence, no price move
        point = analyze_lp_position(pool, amount, config.holding_period_days)

        ratio_series = self.data_source.price_ratio_series(
            pool.assets[0], pool.assets[1], config.history_window_days
        )
        log_params = estimate_log_return_parameters(ratio_series)

        simulation = LPMonteCarloSimulator(sampler=sampler).run(
            amount, point.total_apy, config.holding_period_days, log_params, market,
            num_simulations=config.lp_simulations,
        )

        return PoolAnalysis(
            pool=pool,
            apy=point.annualized_apy,
            simulated_apy=simulation.extra_metrics["annualized_apy"],
            simulation=simulation,
            details={
                "trading_fee_apy": point.trading_fee_apy,
                "farming_apy": point.farming_apy,
                "gross_apy": point.total_apy,
                "optimal_harvest_hours": point.optimal_harvest_hours,
                "daily_mu": log_params.daily_mu,
                "daily_sigma": log_params.daily_sigma,
                "risk_score": point.risk.score,
                "risk_level": point.risk.level,
            },
        )
