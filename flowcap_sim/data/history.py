#!/usr/bin/env python3
"""
Historical Data Sources

Abstract access to utilization, price and bad-debt history. Concrete sources
raise UpstreamUnavailable for transient failures; RetryingHistoricalDataSource
adds bounded exponential backoff and turns exhaustion into DataUnavailable.
"""

import threading
import time
from datetime import timedelta
from abc import ABC, abstractmethod
from typing import Callable, Dict, List, Optional, Tuple

import pandas as pd
from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    stop_after_delay,
    stop_when_event_set,
    wait_exponential,
)

from ..core.models import BadDebtEvent, SeriesPoint
from ..exceptions import DataUnavailable, UpstreamUnavailable
from ..utils.logging import get_logger

logger = get_logger(__name__)


class HistoricalDataSource(ABC):
    """Provider of ordered historical series"""

    @abstractmethod
    def utilization_series(self, protocol: str, asset: str, days: int) -> List[SeriesPoint]:
        """Utilization observations (0-1) for a lending market"""
        pass

    @abstractmethod
    def price_series(self, asset: str, days: int) -> List[SeriesPoint]:
        """USD price observations for an asset"""
        pass

    @abstractmethod
    def bad_debt_events(self, protocol: str, asset: str, days: int) -> List[BadDebtEvent]:
        """Bad-debt events realised by a lending market over the window"""
        pass

    def price_ratio_series(self, asset_a: str, asset_b: str, days: int) -> List[SeriesPoint]:
        return price_ratio_series(self.price_series(asset_a, days), self.price_series(asset_b, days))


class InMemoryHistoricalDataSource(HistoricalDataSource):
    """Serves pre-loaded series; a missing key is DataUnavailable"""

    def __init__(
        self,
        utilization: Dict[Tuple[str, str], List[SeriesPoint]] = None,
        prices: Dict[str, List[SeriesPoint]] = None,
        bad_debt: Dict[Tuple[str, str], List[BadDebtEvent]] = None
    ):
        self.utilization = {(p.lower(), a.upper()): s for (p, a), s in (utilization or {}).items()}
        self.prices = {a.upper(): s for a, s in (prices or {}).items()}
        self.bad_debt = {(p.lower(), a.upper()): e for (p, a), e in (bad_debt or {}).items()}

    def utilization_series(self, protocol: str, asset: str, days: int) -> List[SeriesPoint]:
        key = (protocol.lower(), asset.upper())
        if key not in self.utilization:
            raise DataUnavailable(f"No utilization history for {protocol} {asset}")
        return _trim_to_window(self.utilization[key], days)

    def price_series(self, asset: str, days: int) -> List[SeriesPoint]:
        if asset.upper() not in self.prices:
            raise DataUnavailable(f"No price history for {asset}")
        return _trim_to_window(self.prices[asset.upper()], days)

    def bad_debt_events(self, protocol: str, asset: str, days: int) -> List[BadDebtEvent]:
        key = (protocol.lower(), asset.upper())
        if key not in self.bad_debt:
            raise DataUnavailable(f"No bad-debt history for {protocol} {asset}")
        return list(self.bad_debt[key])


class RetryingHistoricalDataSource(HistoricalDataSource):
    """
    Wraps a source with bounded exponential backoff.

    Waits start at initial_wait seconds and double up to max_wait; retrying
    stops after max_total_seconds, max_attempts, or when cancel_event is set.
    Only UpstreamUnavailable is retried.
    """

    def __init__(
        self,
        inner: HistoricalDataSource,
        initial_wait: float = 5.0,
        max_wait: float = 60.0,
        max_total_seconds: float = 180.0,
        max_attempts: int = 6,
        cancel_event: Optional[threading.Event] = None,
        sleep: Callable[[float], None] = time.sleep
    ):
        self.inner = inner
        self.initial_wait = initial_wait
        self.max_wait = max_wait
        self.max_total_seconds = max_total_seconds
        self.max_attempts = max_attempts
        self.cancel_event = cancel_event or threading.Event()
        self.sleep = sleep

    def _log_retry(self, retry_state: RetryCallState):
        logger.warning(
            "historical_fetch_retry",
            attempt=retry_state.attempt_number,
            wait_seconds=retry_state.next_action.sleep if retry_state.next_action else None,
            error=str(retry_state.outcome.exception()),
        )

    def _call(self, description: str, fn, *args):
        retryer = Retrying(
            stop=(
                stop_after_attempt(self.max_attempts)
                | stop_after_delay(self.max_total_seconds)
                | stop_when_event_set(self.cancel_event)
            ),
            wait=wait_exponential(multiplier=self.initial_wait, min=self.initial_wait, max=self.max_wait),
            retry=retry_if_exception_type(UpstreamUnavailable),
            before_sleep=self._log_retry,
            sleep=self.sleep,
        )
        try:
            return retryer(fn, *args)
        except RetryError as exc:
            last_error = exc.last_attempt.exception()
            logger.error(
                "historical_fetch_exhausted",
                series=description,
                attempts=exc.last_attempt.attempt_number,
                error=str(last_error),
            )
            raise DataUnavailable(
                f"{description} unavailable after {exc.last_attempt.attempt_number} attempts: {last_error}"
            ) from last_error

    def utilization_series(self, protocol: str, asset: str, days: int) -> List[SeriesPoint]:
        return self._call(f"utilization {protocol}/{asset}", self.inner.utilization_series, protocol, asset, days)

    def price_series(self, asset: str, days: int) -> List[SeriesPoint]:
        return self._call(f"price {asset}", self.inner.price_series, asset, days)

    def bad_debt_events(self, protocol: str, asset: str, days: int) -> List[BadDebtEvent]:
        return self._call(f"bad debt {protocol}/{asset}", self.inner.bad_debt_events, protocol, asset, days)


def _trim_to_window(series: List[SeriesPoint], days: int) -> List[SeriesPoint]:
    if not series:
        return []
    ordered = sorted(series, key=lambda p: p.timestamp)
    cutoff = ordered[-1].timestamp - timedelta(days=days)
    return [p for p in ordered if p.timestamp >= cutoff]


def price_ratio_series(series_a: List[SeriesPoint], series_b: List[SeriesPoint]) -> List[SeriesPoint]:
    """Align two price series on timestamp and return a/b"""
    frame = pd.DataFrame({
        "a": pd.Series({p.timestamp: p.value for p in series_a}, dtype=float),
        "b": pd.Series({p.timestamp: p.value for p in series_b}, dtype=float),
    }).dropna()
    frame = frame[frame["b"] > 0].sort_index()
    ratio = frame["a"] / frame["b"]
    return [SeriesPoint(pd.Timestamp(ts).to_pydatetime(), float(value)) for ts, value in ratio.items()]


def utilization_from_totals(total_borrowed: float, total_supplied: float) -> float:
    """Borrowed / supplied, 0 for an empty market"""
    if total_supplied <= 0:
        return 0.0
    return total_borrowed / total_supplied
