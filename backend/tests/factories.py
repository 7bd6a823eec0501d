"""Builders and in-memory collaborators shared by the test modules."""

from datetime import datetime, timezone
from decimal import Decimal

from app.clients.binance_rest import UpstreamError, normalize_symbol
from app.storage.signal_repo import build_stats
from core.models.candle import Candle, CandleSeries
from core.models.signal import (
    ClassifiedSignal,
    PersistedSignal,
    SignalStatus,
    SignalType,
    Strength,
)

MINUTE_MS = 60_000
INTERVAL_MS = 15 * MINUTE_MS

T0 = datetime(2025, 6, 1, 0, 0, tzinfo=timezone.utc)
T0_MS = int(T0.timestamp() * 1000)


# ---------------------------------------------------------------------------
# Candles
# ---------------------------------------------------------------------------

def make_candle(
    open_time: int = T0_MS,
    close: str = "50000",
    high: str | None = None,
    low: str | None = None,
    open: str | None = None,
    interval_ms: int = INTERVAL_MS,
) -> Candle:
    """Build a candle; high/low default to close +/- 10."""
    c = Decimal(close)
    return Candle(
        open_time=open_time,
        close_time=open_time + interval_ms - 1,
        open=Decimal(open) if open is not None else c,
        high=Decimal(high) if high is not None else c + 10,
        low=Decimal(low) if low is not None else c - 10,
        close=c,
        volume=Decimal("100"),
    )


def make_series(
    closes: list, start_ms: int = T0_MS, interval_ms: int = INTERVAL_MS
) -> CandleSeries:
    """Consecutive candles with the given closes."""
    return CandleSeries.from_candles(
        make_candle(start_ms + i * interval_ms, str(close), interval_ms=interval_ms)
        for i, close in enumerate(closes)
    )


def binance_row(candle: Candle) -> list:
    """Binance kline row layout for a candle."""
    return [
        candle.open_time,
        str(candle.open),
        str(candle.high),
        str(candle.low),
        str(candle.close),
        str(candle.volume),
        candle.close_time,
        "0",
        10,
        "0",
        "0",
        "0",
    ]


# ---------------------------------------------------------------------------
# Signals
# ---------------------------------------------------------------------------

def make_signal(
    type: SignalType = SignalType.BUY,
    strength: Strength = Strength.STRONG,
    price: str = "50000",
    rsi: str = "55",
    long_probability: int | None = None,
    reason: str = "test",
) -> ClassifiedSignal:
    """Classified signal with ATR 500 and levels at 2.3x / 2.0x ATR."""
    p = Decimal(price)
    atr = Decimal("500")
    if type == SignalType.BUY:
        stop_loss, take_profit = p - atr * Decimal("2.3"), p + atr * 2
        long_prob = 80 if long_probability is None else long_probability
    elif type == SignalType.SELL:
        stop_loss, take_profit = p + atr * Decimal("2.3"), p - atr * 2
        long_prob = 20 if long_probability is None else long_probability
    else:
        stop_loss = take_profit = None
        long_prob = 50 if long_probability is None else long_probability

    return ClassifiedSignal(
        type=type,
        strength=strength,
        price=p,
        ema_fast=p - 100,
        ema_slow=p - 300,
        rsi=Decimal(rsi),
        macd_line=Decimal("50"),
        macd_signal=Decimal("40"),
        macd_histogram=Decimal("10"),
        atr=atr,
        long_score=long_prob,
        short_score=100 - long_prob,
        long_probability=long_prob,
        short_probability=100 - long_prob,
        stop_loss=stop_loss,
        take_profit=take_profit,
        reason=reason,
    )


def make_persisted(
    type: SignalType = SignalType.BUY,
    symbol: str = "BTCUSDT",
    strength: Strength = Strength.STRONG,
    created_at: datetime = T0,
    signal_time: datetime | None = T0,
    status: SignalStatus | None = None,
    sent_to_telegram: bool = False,
    strategy: str = "EMA+RSI+MACD",
    rsi: str = "55",
    id: int | None = None,
) -> PersistedSignal:
    signal = make_signal(type=type, strength=strength, rsi=rsi)
    return PersistedSignal(
        **signal.model_dump(),
        id=id,
        flow_id="flow-1",
        symbol=symbol,
        strategy=strategy,
        interval="15m",
        limit=200,
        created_at=created_at,
        signal_time=signal_time,
        status=status,
        sent_to_telegram=sent_to_telegram,
    )


# ---------------------------------------------------------------------------
# In-memory collaborators
# ---------------------------------------------------------------------------

class InMemorySignalRepository:
    """Dict-backed signal store with the PostgreSQL repository's semantics."""

    def __init__(self, signals: list[PersistedSignal] | None = None):
        self.signals: dict[int, PersistedSignal] = {}
        self.status_updates: list[tuple[int, SignalStatus]] = []
        self.fail_find_recent = False
        self._next_id = 1
        for signal in signals or []:
            self._store(signal)

    def _store(self, signal: PersistedSignal) -> PersistedSignal:
        if signal.id is None:
            signal = signal.model_copy(update={"id": self._next_id})
        self._next_id = max(self._next_id, signal.id) + 1
        self.signals[signal.id] = signal
        return signal

    async def create(self, signal: PersistedSignal) -> PersistedSignal:
        return self._store(signal.model_copy(update={"id": None}))

    async def update_status(self, signal_id: int, status: SignalStatus) -> bool:
        current = self.signals.get(signal_id)
        if current is None or (current.status is not None and current.status.is_terminal):
            return False
        self.signals[signal_id] = current.model_copy(update={"status": status})
        self.status_updates.append((signal_id, status))
        return True

    async def find_recent(
        self,
        symbol,
        signal_type,
        since,
        strategy=None,
        strength=None,
        sent_to_telegram=None,
    ) -> list[PersistedSignal]:
        if self.fail_find_recent:
            raise RuntimeError("database unavailable")
        found = [
            s
            for s in self.signals.values()
            if s.symbol == symbol
            and s.type == signal_type
            and s.created_at >= since
            and (strategy is None or s.strategy == strategy)
            and (strength is None or s.strength == strength)
            and (sent_to_telegram is None or s.sent_to_telegram == sent_to_telegram)
        ]
        return sorted(found, key=lambda s: s.created_at, reverse=True)

    async def get_pending(self, start, end) -> list[PersistedSignal]:
        found = [
            s
            for s in self.signals.values()
            if (s.status is None or s.status == SignalStatus.PROCESSING)
            and s.is_evaluable
            and start <= s.decision_time <= end
        ]
        return sorted(found, key=lambda s: s.decision_time)

    async def get_by_id(self, signal_id: int) -> PersistedSignal | None:
        return self.signals.get(signal_id)

    async def get_recent(self, limit=100, symbol=None, signal_type=None, status=None):
        found = [
            s
            for s in self.signals.values()
            if (symbol is None or s.symbol == symbol)
            and (signal_type is None or s.type == signal_type)
            and (status is None or s.status == status)
        ]
        return sorted(found, key=lambda s: s.created_at, reverse=True)[:limit]

    async def get_stats(self, symbol=None) -> dict:
        counts = {status.value: 0 for status in SignalStatus}
        unchecked = 0
        for s in self.signals.values():
            if symbol is not None and s.symbol != symbol:
                continue
            if s.status is None:
                unchecked += 1
            else:
                counts[s.status.value] += 1
        return build_stats(counts, unchecked)


class FakeFeed:
    """Price feed serving prepared series keyed by full pair name."""

    def __init__(
        self,
        latest: dict[str, CandleSeries] | None = None,
        ranges: dict[str, CandleSeries] | None = None,
        failing: set[str] | None = None,
    ):
        self.latest = {normalize_symbol(k): v for k, v in (latest or {}).items()}
        self.ranges = {normalize_symbol(k): v for k, v in (ranges or {}).items()}
        self.failing = {normalize_symbol(s) for s in failing or set()}
        self.calls: list[tuple] = []

    async def get_candles(self, symbol, interval, limit, min_candles=None) -> CandleSeries:
        pair = normalize_symbol(symbol)
        self.calls.append(("latest", pair, interval, limit, min_candles))
        if pair in self.failing:
            raise UpstreamError(f"{pair}: HTTP 503")
        if pair not in self.latest:
            raise UpstreamError(f"Insufficient data for {pair}: got 0 candles")
        return self.latest[pair]

    async def get_candle_range(
        self, symbol, interval, start_ms, end_ms, page_limit=None
    ) -> CandleSeries:
        pair = normalize_symbol(symbol)
        self.calls.append(("range", pair, interval, start_ms, end_ms))
        if pair in self.failing:
            raise UpstreamError(f"{pair}: HTTP 503")
        series = self.ranges.get(pair, CandleSeries())
        return CandleSeries.from_candles(
            c for c in series if start_ms <= c.open_time <= end_ms
        )


class FakeNotifier:
    """Records sent signals; ``result`` decides what send() returns."""

    def __init__(self, result: bool = True):
        self.result = result
        self.sent: list[tuple[str, SignalType, Strength, str]] = []

    async def send(self, signal, symbol, strategy) -> bool:
        if self.result:
            self.sent.append((symbol, signal.type, signal.strength, strategy))
        return self.result


class StubClassifier:
    """Returns prepared signals in call order, ignoring the candles."""

    def __init__(self, signals: list[ClassifiedSignal], profile_name: str = "ema_rsi_macd"):
        self.signals = list(signals)
        self.profile_name = profile_name
        self.series_seen: list[CandleSeries] = []

    @property
    def profile(self):
        from core.strategy import get_profile

        return get_profile(self.profile_name)

    @property
    def strategy_label(self) -> str:
        return self.profile.label

    def classify_series(self, series: CandleSeries) -> ClassifiedSignal:
        self.series_seen.append(series)
        return self.signals.pop(0)
