#!/usr/bin/env python3
"""
Parameter definitions and risk profiles

Plain configuration classes and constant tables. Everything here is passed
explicitly into the components; nothing reads the environment.
"""

from typing import Dict, List, Optional

from ..core.lending_math import LendingDefaults
from ..core.lp_math import LPVenueDefaults
from ..core.models import PoolDescriptor
from ..exceptions import ValidationError


class ReallocationGas:
    """Gas units per reallocation step"""
    WITHDRAW = 200_000
    SWAP = 300_000
    APPROVE = 50_000
    SUPPLY = 200_000


class RiskProfileSettings:
    """Per-profile policy thresholds and pool eligibility"""

    FILTER_STABLECOINS = ["USDT", "USDC", "BUSD", "DAI", "USD1"]
    LENDING_PROTOCOLS = ["venus", "lista-lending"]

    PROFILES: Dict[str, Dict] = {
        "low": {
            "min_apy_improvement_pct": 2.0,
            "min_holding_period_days": 7,
            "max_slippage_pct": 0.5,
        },
        "medium": {
            "min_apy_improvement_pct": 1.5,
            "min_holding_period_days": 3,
            "max_slippage_pct": 1.0,
        },
        "high": {
            "min_apy_improvement_pct": 1.0,
            "min_holding_period_days": 1,
            "max_slippage_pct": 2.0,
        },
    }

    @classmethod
    def get(cls, profile: str) -> Dict:
        if profile not in cls.PROFILES:
            raise ValidationError(f"Unknown risk profile: {profile}")
        return cls.PROFILES[profile]

    @classmethod
    def is_pool_allowed(cls, pool: PoolDescriptor, profile: str) -> bool:
        cls.get(profile)
        protocol = pool.protocol.lower()
        assets = [a.upper() for a in pool.assets]
        all_stable = all(a in cls.FILTER_STABLECOINS for a in assets)
        is_lista_staking = protocol == "lista-staking"

        if profile == "low":
            return (protocol in cls.LENDING_PROTOCOLS and all_stable) or is_lista_staking

        if profile == "medium":
            lending_ok = protocol in cls.LENDING_PROTOCOLS and (all_stable or "BNB" in assets)
            stable_lp = protocol == "pancakeswap" and all(
                a in cls.FILTER_STABLECOINS or a == "WBNB" for a in assets
            )
            return lending_ok or stable_lp or is_lista_staking

        return True

    @classmethod
    def filter_pools(cls, pools: List[PoolDescriptor], profile: str) -> List[PoolDescriptor]:
        return [pool for pool in pools if cls.is_pool_allowed(pool, profile)]


class StrategyConfig:
    """Decision policy configuration"""

    def __init__(self, risk_profile: Optional[str] = None):
        self.risk_profile = risk_profile

        # Gates
        self.min_apy_improvement_pct = 1.0
        self.min_holding_period_days = 7.0
        self.evaluation_horizon_days = 7
        self.max_break_even_days = 7.0
        self.marginal_break_even_days = 30.0
        self.max_gas_price_gwei = 10.0
        self.max_slippage_pct = 1.0

        # Behaviour
        self.auto_enter = False
        self.scan_interval_seconds = 300
        self.max_workers = 4

        # Simulation sizing
        self.lending_simulations = LendingDefaults.NUM_SIMULATIONS
        self.lp_simulations = LPVenueDefaults.NUM_SIMULATIONS
        self.holding_period_days = 30
        self.history_window_days = 30
        self.bad_debt_window_days = 365

        if risk_profile is not None:
            settings = RiskProfileSettings.get(risk_profile)
            self.min_apy_improvement_pct = settings["min_apy_improvement_pct"]
            self.min_holding_period_days = settings["min_holding_period_days"]
            self.max_slippage_pct = settings["max_slippage_pct"]

    def to_dict(self) -> Dict:
        return dict(vars(self))
