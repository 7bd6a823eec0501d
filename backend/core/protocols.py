"""Collaborator protocols for the analysis and status-check passes.

Any price feed, signal store or notifier (live HTTP/PostgreSQL, or the
in-memory fakes used in tests) can implement these to be injected into
the services in ``app.services``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol, runtime_checkable

from core.models.candle import CandleSeries
from core.models.signal import (
    ClassifiedSignal,
    PersistedSignal,
    SignalStatus,
    SignalType,
    Strength,
)


@runtime_checkable
class PriceFeed(Protocol):
    """Source of candles for one symbol."""

    async def get_candles(
        self,
        symbol: str,
        interval: str,
        limit: int,
        min_candles: int | None = None,
    ) -> CandleSeries:
        """Latest ``limit`` candles; raises UpstreamError below ``min_candles``."""
        ...

    async def get_candle_range(
        self,
        symbol: str,
        interval: str,
        start_ms: int,
        end_ms: int,
        page_limit: int | None = None,
    ) -> CandleSeries:
        """Candles with open time in [start_ms, end_ms], fetched page by page."""
        ...


@runtime_checkable
class SignalRepository(Protocol):
    """Protocol that signal storage backends must implement."""

    async def create(self, signal: PersistedSignal) -> PersistedSignal:
        """Persist a new signal and return it with its id."""
        ...

    async def update_status(self, signal_id: int, status: SignalStatus) -> bool:
        """Set the status unless it is already terminal. True if a row changed."""
        ...

    async def find_recent(
        self,
        symbol: str,
        signal_type: SignalType,
        since: datetime,
        strategy: str | None = None,
        strength: Strength | None = None,
        sent_to_telegram: bool | None = None,
    ) -> list[PersistedSignal]:
        """Signals of one symbol/type created at or after ``since``."""
        ...

    async def get_pending(self, start: datetime, end: datetime) -> list[PersistedSignal]:
        """Evaluable signals with null/PROCESSING status decided in [start, end]."""
        ...

    async def get_by_id(self, signal_id: int) -> PersistedSignal | None:
        """Get a single signal by its ID."""
        ...


@runtime_checkable
class Notifier(Protocol):
    """Outbound channel for dispatched signals."""

    async def send(self, signal: ClassifiedSignal, symbol: str, strategy: str) -> bool:
        """Send one signal; False on failure, never raises."""
        ...
