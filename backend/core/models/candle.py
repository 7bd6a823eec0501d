"""Candle (kline) data models."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import Iterable, Iterator, Sequence

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Candle(BaseModel):
    """Fixed-interval OHLCV price bar.

    Times are epoch milliseconds, as delivered by the exchange.
    """

    model_config = ConfigDict(frozen=True)

    open_time: int
    close_time: int
    open: Decimal
    high: Decimal
    low: Decimal
    close: Decimal
    volume: Decimal = Decimal("0")

    @model_validator(mode="after")
    def _check_times(self) -> "Candle":
        if self.close_time <= self.open_time:
            raise ValueError(
                f"close_time ({self.close_time}) must be after open_time ({self.open_time})"
            )
        return self

    @classmethod
    def from_binance(cls, row: Sequence) -> "Candle":
        """Build a candle from a Binance kline row.

        Row layout: [openTime, open, high, low, close, volume, closeTime, ...]
        """
        return cls(
            open_time=int(row[0]),
            open=Decimal(str(row[1])),
            high=Decimal(str(row[2])),
            low=Decimal(str(row[3])),
            close=Decimal(str(row[4])),
            volume=Decimal(str(row[5])),
            close_time=int(row[6]),
        )

    @property
    def opened_at(self) -> datetime:
        return datetime.fromtimestamp(self.open_time / 1000, tz=timezone.utc)

    @property
    def closed_at(self) -> datetime:
        return datetime.fromtimestamp(self.close_time / 1000, tz=timezone.utc)

    @property
    def range_size(self) -> Decimal:
        """Get the full range (high - low) of the candle."""
        return self.high - self.low


class CandleSeries(BaseModel):
    """Ordered candles, ascending by open_time, one candle per open_time."""

    model_config = ConfigDict(frozen=True)

    candles: tuple[Candle, ...] = Field(default_factory=tuple)

    @classmethod
    def from_candles(cls, candles: Iterable[Candle]) -> "CandleSeries":
        """Deduplicate by open_time (last one wins) and sort ascending."""
        by_open: dict[int, Candle] = {}
        for candle in candles:
            by_open[candle.open_time] = candle
        return cls(candles=tuple(by_open[t] for t in sorted(by_open)))

    @classmethod
    def from_binance(cls, rows: Iterable[Sequence]) -> "CandleSeries":
        return cls.from_candles(Candle.from_binance(row) for row in rows)

    def closed(self, now_ms: int) -> "CandleSeries":
        """Drop candles that have not closed yet at ``now_ms``."""
        return CandleSeries(candles=tuple(c for c in self.candles if c.close_time < now_ms))

    def tail(self, count: int) -> "CandleSeries":
        if count <= 0:
            return CandleSeries()
        return CandleSeries(candles=self.candles[-count:])

    def closes(self) -> list[Decimal]:
        """Get list of close prices."""
        return [c.close for c in self.candles]

    def highs(self) -> list[Decimal]:
        """Get list of high prices."""
        return [c.high for c in self.candles]

    def lows(self) -> list[Decimal]:
        """Get list of low prices."""
        return [c.low for c in self.candles]

    @property
    def last(self) -> Candle | None:
        return self.candles[-1] if self.candles else None

    def __len__(self) -> int:
        return len(self.candles)

    def __iter__(self) -> Iterator[Candle]:  # type: ignore[override]
        return iter(self.candles)

    def __getitem__(self, index: int) -> Candle:
        return self.candles[index]
