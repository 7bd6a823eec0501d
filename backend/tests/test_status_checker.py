"""Tests for the outcome pass (StatusCheckService)."""

import pytest
from datetime import timedelta

from app.services import StatusCheckService
from core.models.candle import CandleSeries
from core.models.signal import SignalStatus, SignalType

from factories import (
    INTERVAL_MS,
    T0,
    FakeFeed,
    InMemorySignalRepository,
    make_candle,
    make_persisted,
)

NOW = T0 + timedelta(hours=48)
NOW_MS = int(NOW.timestamp() * 1000)

# Inside the default window [NOW - 36h, NOW - 12h]
DECIDED = NOW - timedelta(hours=28)
DECIDED_MS = int(DECIDED.timestamp() * 1000)


def candles_after_decision(*bars) -> CandleSeries:
    """One candle per (close, high, low) tuple, starting at the decision instant."""
    return CandleSeries.from_candles(
        make_candle(DECIDED_MS + i * INTERVAL_MS, close, high=high, low=low)
        for i, (close, high, low) in enumerate(bars)
    )


def pending(**kwargs):
    defaults = dict(created_at=DECIDED - timedelta(hours=4), signal_time=DECIDED)
    defaults.update(kwargs)
    return make_persisted(**defaults)


class TestStatusCheck:
    """Tests for StatusCheckService.run."""

    @pytest.mark.asyncio
    async def test_take_profit_marks_done(self):
        signal = pending()
        repo = InMemorySignalRepository([signal])
        feed = FakeFeed(ranges={"BTC": candles_after_decision(
            ("50200", "50300", "50100"),
            ("50950", "51000", "50800"),
        )})

        summary = await StatusCheckService(feed, repo).run(now=NOW)

        stored = list(repo.signals.values())[0]
        assert summary.checked == 1
        assert summary.done == 1
        assert stored.status == SignalStatus.DONE
        assert feed.calls == [("range", "BTCUSDT", "15m", DECIDED_MS, NOW_MS)]

    @pytest.mark.asyncio
    async def test_sell_stop_loss_marks_missed(self):
        repo = InMemorySignalRepository([pending(type=SignalType.SELL, symbol="ETHUSDT")])
        feed = FakeFeed(ranges={"ETH": candles_after_decision(("51100", "51150", "50900"))})

        summary = await StatusCheckService(feed, repo).run(now=NOW)

        assert summary.missed == 1
        assert list(repo.signals.values())[0].status == SignalStatus.MISSED

    @pytest.mark.asyncio
    async def test_unresolved_marked_processing_once(self):
        repo = InMemorySignalRepository([pending()])
        feed = FakeFeed(ranges={"BTC": candles_after_decision(("50000", "50100", "49900"))})
        service = StatusCheckService(feed, repo)

        first = await service.run(now=NOW)
        second = await service.run(now=NOW)

        assert first.processing == 1
        assert second.processing == 1
        # PROCESSING -> PROCESSING is not rewritten
        assert len(repo.status_updates) == 1
        assert list(repo.signals.values())[0].status == SignalStatus.PROCESSING

    @pytest.mark.asyncio
    async def test_fetch_failure_leaves_status(self):
        repo = InMemorySignalRepository([pending()])
        feed = FakeFeed(failing={"BTC"})

        summary = await StatusCheckService(feed, repo).run(now=NOW)

        assert summary.fetch_failures == 1
        assert summary.processing == 1
        assert repo.status_updates == []
        assert list(repo.signals.values())[0].status is None

    @pytest.mark.asyncio
    async def test_only_pending_in_window(self):
        repo = InMemorySignalRepository([
            pending(symbol="ETHUSDT", signal_time=NOW - timedelta(hours=6)),
            pending(symbol="SOLUSDT", signal_time=NOW - timedelta(hours=40)),
            pending(symbol="XRPUSDT", status=SignalStatus.DONE),
            pending(symbol="BNBUSDT", type=SignalType.HOLD),
        ])
        feed = FakeFeed()

        summary = await StatusCheckService(feed, repo).run(now=NOW)

        assert summary.checked == 0
        assert feed.calls == []

    @pytest.mark.asyncio
    async def test_window_arguments(self):
        repo = InMemorySignalRepository([pending(signal_time=NOW - timedelta(hours=3))])
        feed = FakeFeed()

        summary = await StatusCheckService(feed, repo).run(hours=2, range_hours=4, now=NOW)

        assert summary.start == NOW - timedelta(hours=6)
        assert summary.end == NOW - timedelta(hours=2)
        assert summary.checked == 1

    @pytest.mark.asyncio
    async def test_error_isolated(self):
        class BrokenFeed(FakeFeed):
            async def get_candle_range(self, symbol, *args, **kwargs):
                if symbol == "ETHUSDT":
                    raise RuntimeError("boom")
                return await super().get_candle_range(symbol, *args, **kwargs)

        repo = InMemorySignalRepository([
            pending(symbol="ETHUSDT", signal_time=DECIDED + timedelta(minutes=1)),
            pending(symbol="BTCUSDT"),
        ])
        feed = BrokenFeed(ranges={"BTC": candles_after_decision(("49000", "49100", "48000"))})

        summary = await StatusCheckService(feed, repo).run(now=NOW)

        assert summary.errors == 1
        assert summary.checked == 1
        assert summary.missed == 1

    @pytest.mark.asyncio
    async def test_rows(self):
        summary = await StatusCheckService(FakeFeed(), InMemorySignalRepository()).run(now=NOW)

        assert summary.rows() == [("DONE", 0), ("MISSED", 0), ("PROCESSING", 0), ("ERRORS", 0)]
