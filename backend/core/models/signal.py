"""Signal data models."""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class SignalType(str, Enum):
    """Directional call."""

    BUY = "BUY"
    SELL = "SELL"
    HOLD = "HOLD"

    @property
    def is_directional(self) -> bool:
        return self is not SignalType.HOLD


class Strength(str, Enum):
    """Confidence label derived from the probability spread."""

    STRONG = "STRONG"
    MEDIUM = "MEDIUM"
    WEAK = "WEAK"


class SignalStatus(str, Enum):
    """Outcome status of a persisted signal."""

    PROCESSING = "PROCESSING"  # Neither level hit yet
    DONE = "DONE"  # Take profit hit first
    MISSED = "MISSED"  # Stop loss hit first (or both on one candle)

    @property
    def is_terminal(self) -> bool:
        return self is not SignalStatus.PROCESSING


class IndicatorSnapshot(BaseModel):
    """Indicator values as of the last closed candle of a series."""

    model_config = ConfigDict(frozen=True)

    ema_fast: Decimal
    ema_slow: Decimal
    rsi: Decimal
    macd_line: Decimal
    macd_signal: Decimal
    macd_histogram: Decimal
    atr: Decimal


class ClassifiedSignal(BaseModel):
    """Output of the signal classifier. No identity, no persistence state."""

    model_config = ConfigDict(frozen=True)

    type: SignalType
    strength: Strength
    price: Decimal

    ema_fast: Decimal
    ema_slow: Decimal
    rsi: Decimal
    macd_line: Decimal
    macd_signal: Decimal
    macd_histogram: Decimal
    atr: Decimal  # Effective ATR (after the zero guard)

    long_score: int = 0
    short_score: int = 0
    long_probability: int = 50
    short_probability: int = 50

    stop_loss: Decimal | None = None
    take_profit: Decimal | None = None

    # ATR-normalised diagnostics
    macd_hist_atr: Decimal = Decimal("0")
    ema_distance_atr: Decimal = Decimal("0")
    atr_pct: Decimal = Decimal("0")
    score_diff: int = 0

    reason: str = ""

    @model_validator(mode="after")
    def _check_levels(self):
        has_levels = self.stop_loss is not None and self.take_profit is not None
        if self.type.is_directional != has_levels:
            raise ValueError(
                f"{self.type.value} signal must {'' if self.type.is_directional else 'not '}"
                "carry stop_loss/take_profit"
            )
        if self.type == SignalType.BUY and not (self.stop_loss < self.price < self.take_profit):
            raise ValueError("BUY levels must satisfy stop_loss < price < take_profit")
        if self.type == SignalType.SELL and not (self.take_profit < self.price < self.stop_loss):
            raise ValueError("SELL levels must satisfy take_profit < price < stop_loss")
        if self.long_probability + self.short_probability != 100:
            raise ValueError("long_probability + short_probability must equal 100")
        return self

    @property
    def snapshot(self) -> IndicatorSnapshot:
        return IndicatorSnapshot(
            ema_fast=self.ema_fast,
            ema_slow=self.ema_slow,
            rsi=self.rsi,
            macd_line=self.macd_line,
            macd_signal=self.macd_signal,
            macd_histogram=self.macd_histogram,
            atr=self.atr,
        )


class PersistedSignal(ClassifiedSignal):
    """A classified signal as stored, with identity and lifecycle fields."""

    model_config = ConfigDict(frozen=False)

    id: int | None = None
    flow_id: str
    symbol: str
    strategy: str
    interval: str = "15m"
    limit: int = 200  # Candle count used for the indicators
    created_at: datetime
    signal_time: datetime | None = None
    status: SignalStatus | None = None
    sent_to_telegram: bool = False

    @classmethod
    def from_classified(
        cls,
        signal: ClassifiedSignal,
        *,
        flow_id: str,
        symbol: str,
        strategy: str,
        interval: str,
        limit: int,
        created_at: datetime,
        signal_time_offset: timedelta,
        sent_to_telegram: bool = False,
    ) -> "PersistedSignal":
        """Wrap a classifier output; signal_time is fixed here, once."""
        return cls(
            **signal.model_dump(),
            flow_id=flow_id,
            symbol=symbol,
            strategy=strategy,
            interval=interval,
            limit=limit,
            created_at=created_at,
            signal_time=created_at + signal_time_offset,
            sent_to_telegram=sent_to_telegram,
        )

    @property
    def decision_time(self) -> datetime:
        """Instant from which outcome evaluation begins."""
        return self.signal_time or self.created_at

    @property
    def is_evaluable(self) -> bool:
        return (
            self.type.is_directional
            and self.stop_loss is not None
            and self.take_profit is not None
        )
