"""Duplicate suppression for persistence and dispatch.

Both gates are pure predicates over prior signal records; the caller
fetches the records (see ``persist_since`` / ``dispatch_since`` for the
lookback each gate needs).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Iterable

from core.models.signal import ClassifiedSignal, PersistedSignal, SignalType, Strength

PERSIST_WINDOW = timedelta(minutes=30)

DISPATCH_WINDOWS = {
    Strength.STRONG: timedelta(minutes=90),
    Strength.MEDIUM: timedelta(minutes=120),
}
DEFAULT_DISPATCH_WINDOW = timedelta(minutes=180)

RSI_OVERSOLD = Decimal("30")
RSI_OVERBOUGHT = Decimal("70")
RSI_TOLERANCE = Decimal("5")


class DuplicateSuppressor:
    def __init__(
        self,
        persist_window: timedelta = PERSIST_WINDOW,
        dispatch_windows: dict[Strength, timedelta] | None = None,
        default_dispatch_window: timedelta = DEFAULT_DISPATCH_WINDOW,
    ):
        self.persist_window = persist_window
        self.dispatch_windows = dispatch_windows or dict(DISPATCH_WINDOWS)
        self.default_dispatch_window = default_dispatch_window

    def dispatch_window(self, strength: Strength) -> timedelta:
        return self.dispatch_windows.get(strength, self.default_dispatch_window)

    def persist_since(self, now: datetime) -> datetime:
        return now - self.persist_window

    def dispatch_since(self, strength: Strength, now: datetime) -> datetime:
        return now - self.dispatch_window(strength)

    def should_persist(
        self,
        symbol: str,
        signal_type: SignalType,
        recent: Iterable[PersistedSignal],
        now: datetime,
    ) -> bool:
        """False if a same symbol/type signal was stored in the last 30 minutes."""
        cutoff = self.persist_since(now)
        for record in recent:
            if (
                record.symbol == symbol
                and record.type == signal_type
                and record.created_at >= cutoff
            ):
                return False
        return True

    def should_dispatch(
        self,
        signal: ClassifiedSignal,
        symbol: str,
        strategy: str,
        recent: Iterable[PersistedSignal],
        now: datetime,
    ) -> bool:
        """
        False if an identical signal was already sent inside its window.

        Identity is (symbol, type, strategy, strength) among records marked
        sent. When the new RSI is extreme (<= 30 or >= 70), a prior record
        only counts if its RSI is within 5 points of the new one.
        """
        cutoff = self.dispatch_since(signal.strength, now)
        extreme = signal.rsi <= RSI_OVERSOLD or signal.rsi >= RSI_OVERBOUGHT

        for record in recent:
            if not record.sent_to_telegram:
                continue
            if (
                record.symbol != symbol
                or record.type != signal.type
                or record.strategy != strategy
                or record.strength != signal.strength
            ):
                continue
            if record.created_at < cutoff:
                continue
            if extreme and abs(record.rsi - signal.rsi) > RSI_TOLERANCE:
                continue
            return False
        return True
