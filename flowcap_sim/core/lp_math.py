#!/usr/bin/env python3
"""
LP Yield Model

Constant-product liquidity-pool math for a farmed LP position: impermanent
loss, trading-fee and farming-reward yield, harvest gas, compounded final
value, harvest-frequency search, risk scoring and price sensitivity.

All APY figures are percentages (5.0 == 5%). Price ratio r is P_final/P_initial
of the volatile leg relative to the other leg.
"""

import math
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from .interest_rates import categorize_asset
from .models import AssetCategory, ExogenousParams, PoolDescriptor
from ..exceptions import ValidationError


class LPVenueDefaults:
    """PancakeSwap V2 farm constants"""
    FEE_TIER = 0.0017
    ANNUAL_EMISSIONS = 14_500 * 365
    OPEN_POSITION_GAS_UNITS = 550_000
    CLOSE_POSITION_GAS_UNITS = 550_000
    HARVEST_GAS_UNITS = 730
    HOLDING_PERIOD_DAYS = 30
    HARVEST_CANDIDATES_HOURS = [1, 2, 4, 6, 8, 12, 24, 48, 72, 168]
    DEFAULT_HARVEST_HOURS = 24
    SENSITIVITY_RATIOS = [1.0, 1.1, 0.9, 1.25, 0.75]
    NUM_SIMULATIONS = 1000


class LPMath:
    """Pure functions for farmed LP positions"""

    @staticmethod
    def validate_inputs(v_initial: float, price_ratio: float = 1.0, tvl_lp: Optional[float] = None):
        if v_initial <= 0:
            raise ValidationError(f"Initial capital must be positive, got {v_initial}")
        if price_ratio <= 0:
            raise ValidationError(f"Price ratio must be positive, got {price_ratio}")
        if tvl_lp is not None and tvl_lp <= 0:
            raise ValidationError(f"Pool TVL must be positive, got {tvl_lp}")

    @staticmethod
    def impermanent_loss_factor(price_ratio: float) -> float:
        """Pooled value / held value for a 50/50 constant-product pool"""
        if price_ratio <= 0:
            raise ValidationError(f"Price ratio must be positive, got {price_ratio}")
        return 2 * math.sqrt(price_ratio) / (1 + price_ratio)

    @staticmethod
    def impermanent_loss_pct(price_ratio: float) -> float:
        return (1 - LPMath.impermanent_loss_factor(price_ratio)) * 100

    @staticmethod
    def trading_fee_apy(
        volume_24h: float,
        tvl_lp: float,
        v_initial: float,
        fee_tier: float = LPVenueDefaults.FEE_TIER
    ) -> float:
        if tvl_lp <= 0:
            raise ValidationError(f"Pool TVL must be positive, got {tvl_lp}")
        daily_fees = volume_24h * fee_tier
        return daily_fees / (tvl_lp + v_initial) * 365 * 100

    @staticmethod
    def farming_apy(
        pair_weight_ratio: float,
        reward_token_price: float,
        tvl_staked: float,
        v_initial: float,
        annual_emissions: float = LPVenueDefaults.ANNUAL_EMISSIONS
    ) -> float:
        # No staking program: no weight and nothing staked
        if pair_weight_ratio <= 0 and tvl_staked <= 0:
            return 0.0
        annual_rewards_usd = annual_emissions * pair_weight_ratio * reward_token_price
        return annual_rewards_usd / (tvl_staked + v_initial) * 100

    @staticmethod
    def gas_cost_per_tx(gas_units: float, gas_price_gwei: float, native_price: float) -> float:
        return gas_units * gas_price_gwei / 1e9 * native_price

    @staticmethod
    def harvest_count(days: float, harvest_hours: float) -> int:
        return math.ceil(days * 24 / harvest_hours)

    @staticmethod
    def gas_cost(
        days: float,
        harvest_hours: float,
        gas_price_gwei: float,
        native_price: float,
        harvest_gas_units: float = LPVenueDefaults.HARVEST_GAS_UNITS,
        open_gas_units: float = LPVenueDefaults.OPEN_POSITION_GAS_UNITS,
        close_gas_units: float = LPVenueDefaults.CLOSE_POSITION_GAS_UNITS
    ) -> float:
        """Open + close + one harvest transaction per harvest interval"""
        if harvest_hours <= 0:
            raise ValidationError(f"Harvest frequency must be positive, got {harvest_hours}")
        fixed = LPMath.gas_cost_per_tx(open_gas_units + close_gas_units, gas_price_gwei, native_price)
        per_harvest = LPMath.gas_cost_per_tx(harvest_gas_units, gas_price_gwei, native_price)
        return fixed + LPMath.harvest_count(days, harvest_hours) * per_harvest

    @staticmethod
    def final_value(
        v_initial: float,
        price_ratio: float,
        total_apy: float,
        days: float,
        harvest_hours: float,
        gas_cost: float
    ) -> float:
        """Hold value through r, converted to pooled value, compounded per harvest, less gas"""
        LPMath.validate_inputs(v_initial, price_ratio)
        if days <= 0:
            raise ValidationError(f"Holding period must be positive, got {days}")

        harvest_days = harvest_hours / 24
        rate_per_harvest = (total_apy / 100 / 365) * harvest_days
        num_periods = days / harvest_days

        hold_value = (v_initial / 2) * (price_ratio + 1)
        pooled_value = hold_value * LPMath.impermanent_loss_factor(price_ratio)
        return pooled_value * (1 + rate_per_harvest) ** num_periods - gas_cost

    @staticmethod
    def optimize_harvest_frequency(
        v_initial: float,
        price_ratio: float,
        total_apy: float,
        days: float,
        gas_price_gwei: float,
        native_price: float,
        candidates: List[float] = None
    ) -> Tuple[float, float, Dict[float, float]]:
        """
        Discrete search over harvest cadences.

        Returns:
            (best_hours, best_final_value, final value per candidate)
        """
        candidates = candidates or LPVenueDefaults.HARVEST_CANDIDATES_HOURS
        best_hours = LPVenueDefaults.DEFAULT_HARVEST_HOURS
        best_value = -math.inf
        by_candidate = {}

        for hours in candidates:
            gas = LPMath.gas_cost(days, hours, gas_price_gwei, native_price)
            value = LPMath.final_value(v_initial, price_ratio, total_apy, days, hours, gas)
            by_candidate[hours] = value
            if value > best_value:
                best_value = value
                best_hours = hours

        return best_hours, best_value, by_candidate

    @staticmethod
    def break_even_days(
        v_initial: float,
        total_apy: float,
        harvest_hours: float,
        gas_per_harvest: float
    ) -> float:
        """Days of un-compounded yield needed to pay for one harvest"""
        daily_yield = v_initial * total_apy / 100 / 365
        if daily_yield <= 0:
            return math.inf
        return max(harvest_hours / 24, gas_per_harvest / daily_yield)

    @staticmethod
    def simple_annualized_apy(total_return_pct: float, days: float) -> float:
        """Linear extrapolation used for LP positions"""
        return total_return_pct / days * 365


@dataclass
class LPRiskAssessment:
    score: float
    level: str
    factors: List[str] = field(default_factory=list)


def assess_lp_risk(assets: List[str], params: ExogenousParams) -> LPRiskAssessment:
    """Heuristic 0-100 safety score for a farmed pair"""
    score = 100.0
    factors = []

    if params.tvl_lp < 100_000:
        score -= 40
        factors.append("Very low TVL (< $100k)")
    elif params.tvl_lp < 1_000_000:
        score -= 20
        factors.append("Low TVL (< $1M)")
    elif params.tvl_lp < 10_000_000:
        score -= 5
        factors.append("Moderate TVL (< $10M)")

    volume_to_tvl = params.volume_24h / params.tvl_lp if params.tvl_lp > 0 else 0.0
    if volume_to_tvl < 0.01:
        score -= 15
        factors.append("Very low trading activity")
    elif volume_to_tvl > 2.0:
        score -= 10
        factors.append("Unusually high volume relative to TVL")

    stable_flags = [categorize_asset(asset) == AssetCategory.STABLECOIN for asset in assets]
    if stable_flags and all(stable_flags):
        score += 15
        factors.append("Stablecoin pair")
    elif not any(stable_flags):
        score -= 10
        factors.append("No stablecoin leg")

    if params.tvl_staked < params.tvl_lp * 0.1:
        score -= 10
        factors.append("Low farm participation")

    score = max(0.0, min(100.0, score))
    if score >= 80:
        level = "low"
    elif score >= 60:
        level = "medium"
    elif score >= 40:
        level = "high"
    else:
        level = "critical"

    return LPRiskAssessment(score=score, level=level, factors=factors)


def lp_recommendation(risk_level: str, annualized_apy: float, net_profit: float) -> str:
    profitable = net_profit > 0
    if risk_level == "low" and annualized_apy > 15 and profitable:
        return "ENTER"
    if risk_level in ("low", "medium") and annualized_apy > 10 and profitable:
        return "CONSIDER"
    return "AVOID"


@dataclass
class LPAnalysis:
    """Point-estimate evaluation of one LP position"""
    pool_id: str
    v_initial: float
    days: float
    trading_fee_apy: float
    farming_apy: float
    total_apy: float
    expected_price_ratio: float
    impermanent_loss_pct: float
    optimal_harvest_hours: float
    final_value: float
    net_profit: float
    total_return_pct: float
    annualized_apy: float
    gas_cost: float
    break_even_days: float
    risk: LPRiskAssessment
    recommendation: str
    sensitivity: List[Dict[str, float]] = field(default_factory=list)


def sensitivity_analysis(
    v_initial: float,
    total_apy: float,
    days: float,
    harvest_hours: float,
    gas_cost: float,
    ratios: List[float] = None
) -> List[Dict[str, float]]:
    rows = []
    for ratio in ratios or LPVenueDefaults.SENSITIVITY_RATIOS:
        value = LPMath.final_value(v_initial, ratio, total_apy, days, harvest_hours, gas_cost)
        rows.append({
            "price_ratio": ratio,
            "impermanent_loss_pct": LPMath.impermanent_loss_pct(ratio),
            "final_value": value,
            "net_profit": value - v_initial,
            "total_return_pct": (value - v_initial) / v_initial * 100,
        })
    return rows


def analyze_lp_position(
    pool: PoolDescriptor,
    v_initial: float,
    days: float = LPVenueDefaults.HOLDING_PERIOD_DAYS,
    expected_price_ratio: float = 1.0
) -> LPAnalysis:
    params = pool.exogenous_params
    if params is None:
        raise ValidationError(f"Pool {pool.pool_id} has no market snapshot for LP analysis")
    LPMath.validate_inputs(v_initial, expected_price_ratio, params.tvl_lp)
    if days <= 0:
        raise ValidationError(f"Holding period must be positive, got {days}")

    fee_apy = LPMath.trading_fee_apy(params.volume_24h, params.tvl_lp, v_initial)
    farm_apy = LPMath.farming_apy(
        params.pair_weight_ratio, params.reward_token_price, params.tvl_staked, v_initial
    )
    total_apy = fee_apy + farm_apy

    best_hours, best_value, _ = LPMath.optimize_harvest_frequency(
        v_initial, expected_price_ratio, total_apy, days,
        params.gas_price_gwei, params.native_price
    )
    gas = LPMath.gas_cost(days, best_hours, params.gas_price_gwei, params.native_price)
    gas_per_harvest = LPMath.gas_cost_per_tx(
        LPVenueDefaults.HARVEST_GAS_UNITS, params.gas_price_gwei, params.native_price
    )

    net_profit = best_value - v_initial
    total_return_pct = net_profit / v_initial * 100
    annualized = LPMath.simple_annualized_apy(total_return_pct, days)
    risk = assess_lp_risk(pool.assets, params)

    return LPAnalysis(
        pool_id=pool.pool_id,
        v_initial=v_initial,
        days=days,
        trading_fee_apy=fee_apy,
        farming_apy=farm_apy,
        total_apy=total_apy,
        expected_price_ratio=expected_price_ratio,
        impermanent_loss_pct=LPMath.impermanent_loss_pct(expected_price_ratio),
        optimal_harvest_hours=best_hours,
        final_value=best_value,
        net_profit=net_profit,
        total_return_pct=total_return_pct,
        annualized_apy=annualized,
        gas_cost=gas,
        break_even_days=LPMath.break_even_days(v_initial, total_apy, best_hours, gas_per_harvest),
        risk=risk,
        recommendation=lp_recommendation(risk.level, annualized, net_profit),
        sensitivity=sensitivity_analysis(v_initial, total_apy, days, best_hours, gas),
    )
