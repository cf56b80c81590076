"""
Flowcap Yield Simulation

Monte Carlo yield models for DeFi lending and liquidity-pool positions, and a
gated decision engine that recommends moving capital to a better pool.
"""

__version__ = "1.0.0"
__author__ = "Flowcap Team"

# Core
from .core.models import (
    InterestRateModel, PoolDescriptor, ExogenousParams, Position,
    SimulationResult, ReallocationPlan, ScanResult
)
from .core.interest_rates import InterestRateResolver, borrow_apy, supply_apy
from .core.lp_math import LPMath, analyze_lp_position

# Data
from .data.history import HistoricalDataSource, RetryingHistoricalDataSource
from .data.estimators import estimate_utilization, estimate_bad_debt, estimate_log_return_parameters

# Simulation
from .simulation.monte_carlo import LPMonteCarloSimulator, LendingMonteCarloSimulator

# Agents
from .agents.position_store import PositionStore
from .agents.reallocation_agent import ReallocationAgent, ExecutionCollaborator

# Engine
from .engine.config import StrategyConfig
from .engine.pool_analyzer import PoolAnalyzer
from .engine.scanner import ScanCycle

__all__ = [
    # Core
    "InterestRateModel", "PoolDescriptor", "ExogenousParams", "Position",
    "SimulationResult", "ReallocationPlan", "ScanResult",
    "InterestRateResolver", "borrow_apy", "supply_apy",
    "LPMath", "analyze_lp_position",

    # Data
    "HistoricalDataSource", "RetryingHistoricalDataSource",
    "estimate_utilization", "estimate_bad_debt", "estimate_log_return_parameters",

    # Simulation
    "LPMonteCarloSimulator", "LendingMonteCarloSimulator",

    # Decision
    "PositionStore", "ReallocationAgent", "ExecutionCollaborator",
    "StrategyConfig", "PoolAnalyzer", "ScanCycle"
]
