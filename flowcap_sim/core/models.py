#!/usr/bin/env python3
"""
Flowcap Value Types

Plain dataclasses and enums shared across the rate resolver, the yield models,
the Monte Carlo engine and the reallocation decision engine.
"""

import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Any

from ..exceptions import ValidationError


class ModelType(Enum):
    """Interest rate curve families"""
    JUMP_RATE = "JumpRate"
    TWO_SLOPE = "TwoSlope"
    LINEAR = "Linear"
    CUSTOM = "Custom"


class AssetCategory(Enum):
    """Asset classes used for default rate curves"""
    STABLECOIN = "stablecoin"
    MAJOR = "major"
    VOLATILE = "volatile"


class Provenance(Enum):
    """Where a resolved rate model came from"""
    SPECIFIC = "specific"
    DEFAULT = "default"


class PoolType(Enum):
    LENDING = "lending"
    LP = "lp"
    STAKING = "staking"


class BadDebtRiskLevel(Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class StepType(Enum):
    """Reallocation step types, in mandatory plan order"""
    WITHDRAW = "withdraw"
    SWAP = "swap"
    APPROVE = "approve"
    SUPPLY = "supply"


STEP_ORDER = {
    StepType.WITHDRAW: 0,
    StepType.SWAP: 1,
    StepType.APPROVE: 2,
    StepType.SUPPLY: 3,
}


class ScanAction(Enum):
    NONE = "none"
    REALLOCATED = "reallocated"
    ERROR = "error"


@dataclass(frozen=True)
class InterestRateModel:
    """Parametric borrow-rate curve for one lending market"""
    model_type: ModelType
    base_rate: float
    multiplier: float
    jump_multiplier: float
    kink: float
    reserve_factor: float

    def __post_init__(self):
        if not 0.0 < self.kink < 1.0:
            raise ValidationError(f"kink must be in (0, 1), got {self.kink}")
        if not 0.0 <= self.reserve_factor <= 1.0:
            raise ValidationError(f"reserve_factor must be in [0, 1], got {self.reserve_factor}")
        if min(self.base_rate, self.multiplier, self.jump_multiplier) < 0:
            raise ValidationError("rate parameters must be non-negative")


@dataclass(frozen=True)
class ResolvedRateModel:
    model: InterestRateModel
    provenance: Provenance
    category: AssetCategory


@dataclass(frozen=True)
class SeriesPoint:
    """One observation of a historical series"""
    timestamp: datetime
    value: float


@dataclass(frozen=True)
class UtilizationStatistics:
    mean: float
    std: float
    min: float
    max: float
    median: float


@dataclass(frozen=True)
class BadDebtEvent:
    timestamp: datetime
    loss_fraction: float
    cause: str

    def __post_init__(self):
        if not 0.0 <= self.loss_fraction <= 1.0:
            raise ValidationError(f"loss_fraction must be in [0, 1], got {self.loss_fraction}")


@dataclass(frozen=True)
class BadDebtStatistics:
    event_count: int
    total_loss: float
    mean_loss_per_event: float
    annualized_rate: float
    events_per_year: float
    events: List[BadDebtEvent] = field(default_factory=list)


@dataclass(frozen=True)
class LogReturnParameters:
    daily_mu: float
    daily_sigma: float
    annualized_mu: float
    annualized_sigma: float
    sample_size: int


@dataclass(frozen=True)
class ExogenousParams:
    """Market snapshot needed by the LP yield model"""
    volume_24h: float
    tvl_lp: float
    pair_weight_ratio: float = 0.0
    reward_token_price: float = 0.0
    tvl_staked: float = 0.0
    gas_price_gwei: float = 3.0
    native_price: float = 600.0


@dataclass(frozen=True)
class PoolDescriptor:
    pool_id: str
    protocol: str
    assets: List[str]
    pool_type: PoolType
    version: Optional[str] = None
    exogenous_params: Optional[ExogenousParams] = None

    @property
    def primary_asset(self) -> str:
        return self.assets[0]


@dataclass
class SimulationScenario:
    """One Monte Carlo draw and its outcome"""
    scenario_input: float
    final_value: float
    return_value: float
    component_breakdown: Dict[str, float] = field(default_factory=dict)


def _finite_or_none(value):
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


@dataclass
class SimulationResult:
    """Aggregate statistics over all scenarios of one Monte Carlo run"""
    initial_value: float
    mean: float
    median: float
    std: float
    percentile_5: float
    percentile_25: float
    percentile_75: float
    percentile_95: float
    probability_of_loss: float
    value_at_risk_5: float
    sharpe_ratio: float
    num_simulations: int
    distribution_params: Dict[str, float] = field(default_factory=dict)
    extra_metrics: Dict[str, float] = field(default_factory=dict)
    scenarios: List[SimulationScenario] = field(default_factory=list)

    @property
    def mean_return_pct(self) -> float:
        return (self.mean - self.initial_value) / self.initial_value * 100

    def to_dict(self, include_scenarios: bool = False) -> Dict[str, Any]:
        """Numeric-only, JSON-safe representation for audit storage"""
        data = {
            "initial_value": self.initial_value,
            "mean": self.mean,
            "median": self.median,
            "std": self.std,
            "percentile_5": self.percentile_5,
            "percentile_25": self.percentile_25,
            "percentile_75": self.percentile_75,
            "percentile_95": self.percentile_95,
            "probability_of_loss": self.probability_of_loss,
            "value_at_risk_5": self.value_at_risk_5,
            "sharpe_ratio": self.sharpe_ratio,
            "num_simulations": self.num_simulations,
            "distribution_params": {k: _finite_or_none(float(v)) for k, v in self.distribution_params.items()},
            "extra_metrics": {k: _finite_or_none(float(v)) for k, v in self.extra_metrics.items()},
        }
        if include_scenarios:
            data["scenarios"] = [
                {
                    "input": s.scenario_input,
                    "final_value": s.final_value,
                    "return": s.return_value,
                    "breakdown": {k: _finite_or_none(float(v)) for k, v in s.component_breakdown.items()},
                }
                for s in self.scenarios
            ]
        return {k: _finite_or_none(v) for k, v in data.items()}


@dataclass(frozen=True)
class Position:
    """Capital currently deployed for one account; replaced whole, never edited"""
    position_id: str
    pool_id: str
    protocol: str
    asset: str
    apy: float
    entry_date: datetime
    amount: float

    def days_since(self, now: datetime) -> float:
        return (now - self.entry_date).total_seconds() / 86400.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["entry_date"] = self.entry_date.isoformat()
        return data


@dataclass(frozen=True)
class PlanStep:
    step_type: StepType
    protocol: str
    target: str
    token: Optional[str] = None
    amount: Optional[float] = None


@dataclass(frozen=True)
class ReallocationPlan:
    """Ordered steps moving a position into a target pool"""
    steps: tuple
    source_pool_id: Optional[str]
    target_pool_id: str
    target_protocol: str
    target_asset: str
    target_apy: float
    amount: float

    def __post_init__(self):
        order = [STEP_ORDER[step.step_type] for step in self.steps]
        if order != sorted(order):
            raise ValidationError("plan steps must follow withdraw, swap, approve, supply order")
        if not self.steps or self.steps[-1].step_type != StepType.SUPPLY:
            raise ValidationError("plan must end with a supply step")


@dataclass(frozen=True)
class StepResult:
    """What the execution collaborator reports back for one step"""
    success: bool
    tx_hash: Optional[str] = None
    error: Optional[str] = None


@dataclass
class ScanResult:
    action: ScanAction
    details: Dict[str, Any] = field(default_factory=dict)
    tx_hash: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"action": self.action.value, "details": self.details, "tx_hash": self.tx_hash}


@dataclass
class PoolAnalysis:
    """Outcome of analysing one candidate pool during a scan"""
    pool: PoolDescriptor
    apy: float
    simulated_apy: Optional[float] = None
    simulation: Optional[SimulationResult] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def pool_id(self) -> str:
        return self.pool.pool_id

    def to_dict(self) -> Dict[str, Any]:
        return {
            "pool_id": self.pool.pool_id,
            "protocol": self.pool.protocol,
            "assets": list(self.pool.assets),
            "type": self.pool.pool_type.value,
            "apy": self.apy,
            "simulated_apy": _finite_or_none(self.simulated_apy),
            "simulation": self.simulation.to_dict() if self.simulation else None,
        }
