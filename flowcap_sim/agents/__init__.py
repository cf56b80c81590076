"""Position bookkeeping and the reallocation decision engine"""

from .position_store import PositionStore
from .reallocation_agent import (
    ReallocationAgent, ReallocationDecision, DecisionAction, ExecutionCollaborator,
    check_profitability, build_plan
)

__all__ = [
    "PositionStore", "ReallocationAgent", "ReallocationDecision", "DecisionAction",
    "ExecutionCollaborator", "check_profitability", "build_plan"
]
