"""Core yield models and shared value types"""

from .models import (
    InterestRateModel, ModelType, AssetCategory, Provenance, PoolType,
    UtilizationStatistics, BadDebtEvent, BadDebtStatistics, LogReturnParameters,
    ExogenousParams, PoolDescriptor, SimulationScenario, SimulationResult,
    Position, PlanStep, ReallocationPlan, StepType, StepResult, PoolAnalysis,
    ScanAction, ScanResult
)
from .interest_rates import InterestRateResolver, borrow_apy, supply_apy, categorize_asset
from .lp_math import LPMath, LPVenueDefaults, analyze_lp_position
from .lending_math import LendingMath, LendingDefaults

__all__ = [
    "InterestRateModel", "ModelType", "AssetCategory", "Provenance", "PoolType",
    "UtilizationStatistics", "BadDebtEvent", "BadDebtStatistics", "LogReturnParameters",
    "ExogenousParams", "PoolDescriptor", "SimulationScenario", "SimulationResult",
    "Position", "PlanStep", "ReallocationPlan", "StepType", "StepResult", "PoolAnalysis",
    "ScanAction", "ScanResult",
    "InterestRateResolver", "borrow_apy", "supply_apy", "categorize_asset",
    "LPMath", "LPVenueDefaults", "analyze_lp_position",
    "LendingMath", "LendingDefaults"
]
