#!/usr/bin/env python3
"""
Historical Data Source Test Suite

1. In-memory source: key normalisation, window trimming, missing keys
2. Retrying wrapper: exponential backoff, exhaustion, cancellation
3. Price-ratio alignment and utilization from totals
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from flowcap_sim.core.models import BadDebtEvent, SeriesPoint
from flowcap_sim.data.history import (
    HistoricalDataSource, InMemoryHistoricalDataSource, RetryingHistoricalDataSource,
    price_ratio_series, utilization_from_totals
)
from flowcap_sim.data.synthetic import SyntheticHistoricalDataSource
from flowcap_sim.exceptions import DataUnavailable, UpstreamUnavailable

START = datetime(2025, 1, 1, tzinfo=timezone.utc)


def _points(values, offset=0):
    return [SeriesPoint(START + timedelta(days=offset + i), v) for i, v in enumerate(values)]


class FlakySource(HistoricalDataSource):
    """Fails with UpstreamUnavailable a fixed number of times, then succeeds"""

    def __init__(self, failures: int, error=UpstreamUnavailable):
        self.failures = failures
        self.error = error
        self.calls = 0

    def _maybe_fail(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error(f"upstream failure #{self.calls}")

    def utilization_series(self, protocol, asset, days):
        self._maybe_fail()
        return _points([0.7, 0.75])

    def price_series(self, asset, days):
        self._maybe_fail()
        return _points([1.0, 1.0])

    def bad_debt_events(self, protocol, asset, days):
        self._maybe_fail()
        return []


class TestInMemorySource:

    def setup_method(self):
        self.source = InMemoryHistoricalDataSource(
            utilization={("Venus", "usdt"): _points([0.1 * i for i in range(10)])},
            prices={"cake": _points([2.0, 2.5])},
            bad_debt={("venus", "USDT"): [BadDebtEvent(START, 0.001, "Oracle price manipulation")]},
        )

    def test_keys_are_normalised(self):
        assert len(self.source.utilization_series("VENUS", "USDT", 30)) == 10
        assert self.source.price_series("CAKE", 30)[-1].value == 2.5
        assert len(self.source.bad_debt_events("venus", "usdt", 365)) == 1

    def test_window_trimming(self):
        series = self.source.utilization_series("venus", "USDT", 3)
        assert [round(p.value, 1) for p in series] == [0.6, 0.7, 0.8, 0.9]

    def test_missing_key_is_unavailable(self):
        with pytest.raises(DataUnavailable):
            self.source.utilization_series("venus", "BNB", 30)
        with pytest.raises(DataUnavailable):
            self.source.price_series("WBNB", 30)


class TestRetryingSource:

    def setup_method(self):
        self.sleeps = []

    def _wrap(self, inner, **kwargs):
        return RetryingHistoricalDataSource(inner, sleep=self.sleeps.append, **kwargs)

    def test_recovers_after_transient_failures(self):
        inner = FlakySource(failures=2)
        series = self._wrap(inner).utilization_series("venus", "USDT", 30)
        assert [p.value for p in series] == [0.7, 0.75]
        assert inner.calls == 3
        assert self.sleeps == [5, 10], "Backoff starts at 5s and doubles"

    def test_backoff_capped_at_max_wait(self):
        inner = FlakySource(failures=10)
        with pytest.raises(DataUnavailable):
            self._wrap(inner, max_attempts=7).price_series("CAKE", 30)
        assert self.sleeps == [5, 10, 20, 40, 60, 60]
        assert inner.calls == 7

    def test_exhaustion_becomes_data_unavailable(self):
        inner = FlakySource(failures=100)
        with pytest.raises(DataUnavailable) as excinfo:
            self._wrap(inner, max_attempts=3).bad_debt_events("venus", "USDT", 365)
        assert "after 3 attempts" in str(excinfo.value)
        assert isinstance(excinfo.value.__cause__, UpstreamUnavailable)

    def test_non_transient_errors_not_retried(self):
        inner = FlakySource(failures=1, error=DataUnavailable)
        with pytest.raises(DataUnavailable):
            self._wrap(inner).utilization_series("venus", "USDT", 30)
        assert inner.calls == 1
        assert self.sleeps == []

    def test_cancellation_stops_retrying(self):
        cancel = threading.Event()
        cancel.set()
        inner = FlakySource(failures=5)
        with pytest.raises(DataUnavailable):
            self._wrap(inner, cancel_event=cancel).utilization_series("venus", "USDT", 30)
        assert inner.calls == 1
        assert self.sleeps == []

    def test_price_ratio_through_wrapper(self):
        ratios = self._wrap(FlakySource(failures=0)).price_ratio_series("USDT", "WBNB", 30)
        assert [p.value for p in ratios] == [1.0, 1.0]


class TestPriceRatioSeries:

    def test_aligns_on_timestamp(self):
        a = _points([10.0, 20.0, 30.0])
        b = _points([2.0, 4.0, 8.0], offset=1)
        ratios = price_ratio_series(a, b)
        assert [p.timestamp for p in ratios] == [START + timedelta(days=1), START + timedelta(days=2)]
        assert [p.value for p in ratios] == pytest.approx([10.0, 7.5])

    def test_no_overlap(self):
        assert price_ratio_series(_points([1.0]), _points([1.0], offset=5)) == []

    def test_utilization_from_totals(self):
        assert utilization_from_totals(750, 1000) == 0.75
        assert utilization_from_totals(0, 0) == 0.0


class TestSyntheticSource:

    def setup_method(self):
        self.end = datetime(2025, 6, 1, tzinfo=timezone.utc)

    def test_reproducible(self):
        first = SyntheticHistoricalDataSource(seed=7, end=self.end)
        second = SyntheticHistoricalDataSource(seed=7, end=self.end)
        assert first.utilization_series("venus", "USDT", 30) == second.utilization_series("venus", "USDT", 30)
        assert first.price_series("CAKE", 30) == second.price_series("CAKE", 30)

    def test_series_shape(self):
        source = SyntheticHistoricalDataSource(seed=7, end=self.end)
        utilization = source.utilization_series("venus", "USDT", 30)
        assert len(utilization) == 31
        assert all(0.30 <= p.value <= 0.95 for p in utilization)
        assert utilization[-1].timestamp == self.end

    def test_bad_debt_events_within_window(self):
        source = SyntheticHistoricalDataSource(seed=7, end=self.end)
        events = source.bad_debt_events("lista-lending", "CAKE", 365)
        assert all(self.end - timedelta(days=365) < e.timestamp <= self.end for e in events)
        assert all(0 <= e.loss_fraction <= 1 for e in events)
