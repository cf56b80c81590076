#!/usr/bin/env python3
"""
Scan cycle

One evaluation pass: list pools, filter by risk profile, analyse every pool
in parallel, rank by point-estimate APY, run the reallocation decision and
hand any plan to the execution collaborator.
"""

import threading
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple

import numpy as np

from .config import RiskProfileSettings, StrategyConfig
from .pool_analyzer import PoolAnalyzer
from ..agents.reallocation_agent import (
    DEFAULT_POSITION_ID, ExecutionCollaborator, ReallocationAgent
)
from ..core.lending_math import LendingDefaults
from ..core.models import PoolAnalysis, PoolDescriptor, ScanAction, ScanResult
from ..exceptions import ExecutionError, FlowcapError
from ..simulation.sampling import BoxMullerSampler
from ..utils.logging import get_logger

logger = get_logger(__name__)


class PoolProvider(ABC):
    """Source of candidate pool descriptors"""

    @abstractmethod
    def list_pools(self) -> List[PoolDescriptor]:
        pass


class StaticPoolProvider(PoolProvider):
    def __init__(self, pools: List[PoolDescriptor]):
        self.pools = list(pools)

    def list_pools(self) -> List[PoolDescriptor]:
        return list(self.pools)


class ScanCycle:
    """Periodic scan for one or more delegated accounts"""

    def __init__(
        self,
        pool_provider: PoolProvider,
        analyzer: PoolAnalyzer,
        agent: ReallocationAgent,
        config: StrategyConfig = None,
        collaborator: Optional[ExecutionCollaborator] = None,
        results_manager=None,
        seed: Optional[int] = None
    ):
        self.pool_provider = pool_provider
        self.analyzer = analyzer
        self.agent = agent
        self.config = config or agent.config
        self.collaborator = collaborator
        self.results_manager = results_manager
        self.seed = seed

    def analyze_pools(self, pools: List[PoolDescriptor], amount: float) -> Tuple[List[PoolAnalysis], Dict[str, str]]:
        """
        Analyse pools concurrently.

        Each pool gets its own child seed, so results do not depend on thread
        scheduling. A failing pool is logged and excluded.
        """
        children = np.random.SeedSequence(self.seed).spawn(len(pools))
        analyses: List[PoolAnalysis] = []
        failures: Dict[str, str] = {}

        with ThreadPoolExecutor(max_workers=self.config.max_workers) as executor:
            futures = {
                pool.pool_id: executor.submit(
                    self.analyzer.analyze, pool, amount, BoxMullerSampler.from_seed_sequence(child)
                )
                for pool, child in zip(pools, children)
            }
            for pool_id, future in futures.items():
                try:
                    analyses.append(future.result())
                except FlowcapError as exc:
                    logger.warning("pool_analysis_failed", pool_id=pool_id, error=str(exc))
                    failures[pool_id] = str(exc)
                except Exception as exc:
                    logger.warning("pool_analysis_failed", pool_id=pool_id,
                                   error=f"{type(exc).__name__}: {exc}", exc_info=True)
                    failures[pool_id] = f"{type(exc).__name__}: {exc}"

        return rank_pools(analyses), failures

    def run_once(
        self,
        account_id: str,
        position_id: str = DEFAULT_POSITION_ID,
        entry_amount: float = 0.0,
        gas_price_gwei: float = LendingDefaults.GAS_PRICE_GWEI,
        native_price: float = LendingDefaults.NATIVE_PRICE,
        now: datetime = None
    ) -> ScanResult:
        now = now or datetime.now(timezone.utc)
        pools = self.pool_provider.list_pools()
        if self.config.risk_profile:
            pools = RiskProfileSettings.filter_pools(pools, self.config.risk_profile)
        logger.info("scan_started", account_id=account_id, pools=len(pools),
                    risk_profile=self.config.risk_profile)

        position = self.agent.store.get(account_id, position_id)
        amount = position.amount if position else entry_amount
        if amount <= 0:
            return ScanResult(ScanAction.ERROR, {"reason": "No capital to analyse: no position and no entry amount"})

        analyses, failures = self.analyze_pools(pools, amount)
        if not analyses:
            return ScanResult(ScanAction.ERROR, {"reason": "Could not analyze any pools", "failures": failures})

        ranking = [{"pool_id": a.pool_id, "apy": a.apy, "simulated_apy": a.simulated_apy} for a in analyses]
        try:
            decision, tx_hash = self.agent.run_pass(
                account_id, position_id, analyses, gas_price_gwei, native_price,
                now=now, collaborator=self.collaborator, entry_amount=amount,
            )
        except ExecutionError as exc:
            logger.error("reallocation_execution_failed", account_id=account_id,
                         step_index=exc.step_index, error=exc.message)
            return ScanResult(ScanAction.ERROR, {
                "reason": "Execution failed",
                "step_index": exc.step_index,
                "step": exc.step.step_type.value,
                "error": exc.message,
                "ranking": ranking,
            })

        details = {
            "reason": decision.reason,
            "decision": decision.action.value,
            "best_pool": analyses[0].pool_id,
            "ranking": ranking,
            "failures": failures,
            **decision.details,
        }

        if decision.has_plan and self.collaborator is not None:
            details["plan"] = [step.step_type.value for step in decision.plan.steps]
            if self.results_manager is not None:
                self.results_manager.append_reallocation_log(
                    account_id,
                    source=decision.plan.source_pool_id,
                    target=decision.plan.target_pool_id,
                    apy_gain=decision.details.get("apy_difference", 0.0),
                    tx_hash=tx_hash,
                )
            return ScanResult(ScanAction.REALLOCATED, details, tx_hash)

        if decision.has_plan:
            details["plan"] = [step.step_type.value for step in decision.plan.steps]
            details["pending_execution"] = True
        return ScanResult(ScanAction.NONE, details)

    def run_forever(self, account_id: str, stop_event: threading.Event, **kwargs):
        """Repeat run_once every scan interval until stop_event is set"""
        while not stop_event.is_set():
            try:
                result = self.run_once(account_id, **kwargs)
                logger.info("scan_finished", account_id=account_id, action=result.action.value,
                            reason=result.details.get("reason"))
            except Exception as exc:
                logger.error("scan_failed", account_id=account_id, error=str(exc), exc_info=True)
            stop_event.wait(self.config.scan_interval_seconds)


def rank_pools(analyses: List[PoolAnalysis]) -> List[PoolAnalysis]:
    """Highest point-estimate APY first"""
    return sorted(analyses, key=lambda a: a.apy, reverse=True)
