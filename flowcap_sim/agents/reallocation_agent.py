#!/usr/bin/env python3
"""
Reallocation Decision Engine

Compares a held position with the top-ranked candidate pool and applies the
policy gates in order: holding period, APY improvement, then profitability
after gas. A passing decision carries a ReallocationPlan; the engine never
executes it itself. Positions are replaced only after the execution
collaborator confirms every step.
"""

import math
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .position_store import PositionStore
from ..core.models import (
    PlanStep, PoolAnalysis, Position, ReallocationPlan, StepResult, StepType
)
from ..engine.config import ReallocationGas, StrategyConfig
from ..exceptions import ExecutionError
from ..utils.logging import get_logger

logger = get_logger(__name__)

DEFAULT_POSITION_ID = "primary"


class DecisionAction(Enum):
    NO_ACTION = "none"
    REALLOCATE = "reallocate"
    ENTER = "enter"


@dataclass
class ReallocationDecision:
    action: DecisionAction
    reason: str
    position_id: Optional[str] = None
    plan: Optional[ReallocationPlan] = None
    details: Dict[str, Any] = field(default_factory=dict)

    @property
    def has_plan(self) -> bool:
        return self.plan is not None


@dataclass
class ProfitabilityCheck:
    profitable: bool
    net_gain: float
    break_even_days: float
    daily_gain: float
    gas_cost: float
    recommendation: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "profitable": self.profitable,
            "net_gain": self.net_gain,
            "break_even_days": self.break_even_days if math.isfinite(self.break_even_days) else None,
            "daily_gain": self.daily_gain,
            "gas_cost": self.gas_cost,
            "recommendation": self.recommendation,
        }


class ExecutionCollaborator(ABC):
    """Signs and submits plan steps; owns its own retry policy"""

    @abstractmethod
    def execute_step(self, step: PlanStep) -> StepResult:
        """Execute one step and report the outcome"""
        pass


STEP_GAS_UNITS = {
    StepType.WITHDRAW: ReallocationGas.WITHDRAW,
    StepType.SWAP: ReallocationGas.SWAP,
    StepType.APPROVE: ReallocationGas.APPROVE,
    StepType.SUPPLY: ReallocationGas.SUPPLY,
}


def estimate_plan_gas_cost(steps, gas_price_gwei: float, native_price: float) -> float:
    gas_units = sum(STEP_GAS_UNITS[step.step_type] for step in steps)
    return gas_units * gas_price_gwei / 1e9 * native_price


def check_profitability(
    amount: float,
    current_apy: float,
    target_apy: float,
    gas_cost: float,
    horizon_days: float = 7,
    max_break_even_days: float = 7,
    marginal_break_even_days: float = 30
) -> ProfitabilityCheck:
    """Does the yield gain over the horizon pay for the move, fast enough?"""
    apy_difference = target_apy - current_apy
    daily_gain = amount * apy_difference / 100 / 365
    break_even = gas_cost / daily_gain if daily_gain > 0 else math.inf

    horizon_gain = daily_gain * horizon_days
    net_gain = horizon_gain - gas_cost
    profitable = net_gain > 0 and break_even < max_break_even_days

    if profitable:
        recommendation = (
            f"Swap recommended. Net gain over {horizon_days:g} days: ${net_gain:.2f} "
            f"(breaks even in {break_even:.1f} days)"
        )
    elif break_even < marginal_break_even_days:
        recommendation = (
            f"Marginal benefit. Breaks even in {break_even:.1f} days, "
            f"but doesn't meet {max_break_even_days:g}-day threshold."
        )
    else:
        recommendation = "Not recommended. Gas costs outweigh yield gains at current levels."

    return ProfitabilityCheck(
        profitable=profitable,
        net_gain=net_gain,
        break_even_days=break_even,
        daily_gain=daily_gain,
        gas_cost=gas_cost,
        recommendation=recommendation,
    )


def build_plan(position: Optional[Position], candidate: PoolAnalysis, amount: float) -> ReallocationPlan:
    """withdraw -> swap (asset change only) -> approve -> supply"""
    target = candidate.pool
    target_asset = target.primary_asset
    steps: List[PlanStep] = []

    if position is not None:
        steps.append(PlanStep(StepType.WITHDRAW, position.protocol, position.pool_id, position.asset, amount))
        if position.asset.upper() != target_asset.upper():
            steps.append(PlanStep(
                StepType.SWAP, "pancakeswap", f"{position.asset}/{target_asset}", position.asset, amount
            ))

    steps.append(PlanStep(StepType.APPROVE, target.protocol, target.pool_id, target_asset, amount))
    steps.append(PlanStep(StepType.SUPPLY, target.protocol, target.pool_id, target_asset, amount))

    return ReallocationPlan(
        steps=tuple(steps),
        source_pool_id=position.pool_id if position else None,
        target_pool_id=target.pool_id,
        target_protocol=target.protocol,
        target_asset=target_asset,
        target_apy=candidate.apy,
        amount=amount,
    )


class ReallocationAgent:
    """Gated reallocation policy over an injected PositionStore"""

    def __init__(self, store: PositionStore, config: StrategyConfig = None):
        self.store = store
        self.config = config or StrategyConfig()

    def _no_action(self, reason: str, position: Optional[Position], **details) -> ReallocationDecision:
        logger.info("reallocation_gate_rejected", reason=reason,
                    position_id=position.position_id if position else None)
        return ReallocationDecision(
            action=DecisionAction.NO_ACTION,
            reason=reason,
            position_id=position.position_id if position else None,
            details=details,
        )

    def decide(
        self,
        position: Position,
        best: PoolAnalysis,
        gas_price_gwei: float,
        native_price: float,
        now: datetime
    ) -> ReallocationDecision:
        """Apply the gates to one position; pure, no state changes"""
        config = self.config

        # 1. Holding period
        days_held = position.days_since(now)
        if days_held < config.min_holding_period_days:
            return self._no_action(
                f"Position too new ({days_held:.1f} days held, minimum {config.min_holding_period_days:g})",
                position, days_held=days_held,
            )

        if best.pool_id == position.pool_id:
            return self._no_action("Position is already in the top-ranked pool", position)

        # 2. APY improvement
        apy_difference = best.apy - position.apy
        if apy_difference < config.min_apy_improvement_pct:
            return self._no_action(
                f"APY improvement too small: +{apy_difference:.2f}% "
                f"(need +{config.min_apy_improvement_pct:g}%)",
                position, apy_difference=apy_difference,
            )

        if gas_price_gwei > config.max_gas_price_gwei:
            return self._no_action(
                f"Gas price {gas_price_gwei:g} gwei above limit {config.max_gas_price_gwei:g}",
                position, gas_price_gwei=gas_price_gwei,
            )

        # 3. Profitability after gas
        plan = build_plan(position, best, position.amount)
        gas_cost = estimate_plan_gas_cost(plan.steps, gas_price_gwei, native_price)
        check = check_profitability(
            position.amount, position.apy, best.apy, gas_cost,
            config.evaluation_horizon_days, config.max_break_even_days,
            config.marginal_break_even_days,
        )
        if not check.profitable:
            return self._no_action(check.recommendation, position,
                                   apy_difference=apy_difference, profitability=check.to_dict())

        logger.info(
            "reallocation_recommended",
            position_id=position.position_id,
            source=position.pool_id,
            target=best.pool_id,
            apy_difference=round(apy_difference, 4),
            net_gain=round(check.net_gain, 2),
        )
        return ReallocationDecision(
            action=DecisionAction.REALLOCATE,
            reason=check.recommendation,
            position_id=position.position_id,
            plan=plan,
            details={"apy_difference": apy_difference, "profitability": check.to_dict()},
        )

    def decide_entry(self, best: PoolAnalysis, amount: float) -> ReallocationDecision:
        if not self.config.auto_enter:
            return self._no_action(
                f"No existing position. Best pool: {best.pool_id} at {best.apy:.2f}% APY", None
            )
        return ReallocationDecision(
            action=DecisionAction.ENTER,
            reason=f"Entering {best.pool_id} at {best.apy:.2f}% APY",
            position_id=DEFAULT_POSITION_ID,
            plan=build_plan(None, best, amount),
        )

    def apply_execution(
        self,
        account_id: str,
        decision: ReallocationDecision,
        collaborator: ExecutionCollaborator,
        now: datetime = None
    ) -> Optional[str]:
        """
        Run the plan steps in order and record the new position.

        The first failing step raises ExecutionError and the stored position is
        left untouched. Returns the last transaction hash.
        """
        plan = decision.plan
        tx_hash = None
        for index, step in enumerate(plan.steps):
            try:
                result = collaborator.execute_step(step)
            except Exception as exc:
                raise ExecutionError(index, step, str(exc)) from exc
            if not result.success:
                logger.error("plan_step_failed", step_index=index, step=step.step_type.value, error=result.error)
                raise ExecutionError(index, step, result.error or "unknown error")
            tx_hash = result.tx_hash or tx_hash

        new_position = Position(
            position_id=decision.position_id,
            pool_id=plan.target_pool_id,
            protocol=plan.target_protocol,
            asset=plan.target_asset,
            apy=plan.target_apy,
            entry_date=now or datetime.now(timezone.utc),
            amount=plan.amount,
        )
        self.store.put(account_id, new_position)
        logger.info("position_replaced", account_id=account_id, position_id=new_position.position_id,
                    pool_id=new_position.pool_id, tx_hash=tx_hash)
        return tx_hash

    def run_pass(
        self,
        account_id: str,
        position_id: str,
        candidates: List[PoolAnalysis],
        gas_price_gwei: float,
        native_price: float,
        now: datetime = None,
        collaborator: Optional[ExecutionCollaborator] = None,
        entry_amount: float = 0.0
    ):
        """
        One exclusive decision pass for a position.

        Returns (decision, tx_hash). tx_hash is set only when a collaborator
        executed the plan successfully.
        """
        now = now or datetime.now(timezone.utc)
        if not candidates:
            return self._no_action("No candidate pools analysed", None), None
        best = candidates[0]

        with self.store.exclusive(account_id, position_id, blocking=False) as acquired:
            if not acquired:
                return self._no_action("Decision pass already in progress for this position", None), None

            position = self.store.get(account_id, position_id)
            if position is None:
                decision = self.decide_entry(best, entry_amount)
                decision.position_id = position_id
            else:
                decision = self.decide(position, best, gas_price_gwei, native_price, now)

            if not decision.has_plan or collaborator is None:
                return decision, None
            return decision, self.apply_execution(account_id, decision, collaborator, now)
