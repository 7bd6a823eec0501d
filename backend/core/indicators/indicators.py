"""Technical indicators for signal classification.

All functions work on Decimal sequences ordered oldest to newest and
return the value as of the last element. Short histories resolve to
documented fallback values instead of raising:

- EMA: last value when fewer than ``period`` points
- RSI: 50 (neutral) when fewer than ``period + 1`` points
- MACD: all zero when fewer than ``slow + signal`` points
- ATR: 0 when fewer than ``period + 1`` points
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Sequence

from core.models.candle import CandleSeries
from core.models.config import StrategyConfig
from core.models.signal import IndicatorSnapshot

ZERO = Decimal("0")
HUNDRED = Decimal("100")
RSI_NEUTRAL = Decimal("50")


@dataclass(frozen=True)
class MacdResult:
    """MACD line, signal line and histogram."""

    macd: Decimal = ZERO
    signal: Decimal = ZERO
    histogram: Decimal = ZERO


def ema_multiplier(period: int) -> Decimal:
    """Smoothing factor k = 2 / (period + 1)."""
    return Decimal(2) / Decimal(period + 1)


def ema_step(previous: Decimal, value: Decimal, period: int) -> Decimal:
    """Advance an EMA by one data point."""
    k = ema_multiplier(period)
    return value * k + previous * (1 - k)


def ema(values: Sequence[Decimal], period: int) -> Decimal:
    """
    Calculate Exponential Moving Average.

    Seeded with the simple average of the first ``period`` values, then
    advanced with the standard recurrence over the rest of the series.

    Args:
        values: Sequence of price values
        period: EMA period

    Returns:
        EMA as of the last value (the last value itself on short history)
    """
    if not values:
        raise ValueError("ema() requires at least one value")
    if len(values) < period:
        return values[-1]

    result = sum(values[:period], ZERO) / Decimal(period)
    for value in values[period:]:
        result = ema_step(result, value, period)
    return result


def rsi(closes: Sequence[Decimal], period: int = 14) -> Decimal:
    """
    Calculate Relative Strength Index with Wilder smoothing.

    avg = (avg * (period - 1) + new) / period after an SMA seed of the
    first ``period`` gains/losses.

    Returns:
        RSI in [0, 100]; 50 when history is too short, 100 with no losses
    """
    if len(closes) < period + 1:
        return RSI_NEUTRAL

    deltas = [closes[i] - closes[i - 1] for i in range(1, len(closes))]
    gains = [max(ZERO, d) for d in deltas]
    losses = [max(ZERO, -d) for d in deltas]

    p = Decimal(period)
    avg_gain = sum(gains[:period], ZERO) / p
    avg_loss = sum(losses[:period], ZERO) / p

    for i in range(period, len(deltas)):
        avg_gain = (avg_gain * (p - 1) + gains[i]) / p
        avg_loss = (avg_loss * (p - 1) + losses[i]) / p

    if avg_loss == 0:
        return HUNDRED

    rs = avg_gain / avg_loss
    return HUNDRED - HUNDRED / (1 + rs)


def macd(
    closes: Sequence[Decimal],
    fast_period: int = 12,
    slow_period: int = 26,
    signal_period: int = 9,
) -> MacdResult:
    """
    Calculate MACD (Moving Average Convergence Divergence).

    The signal line is the EMA of the historical MACD series, where the
    MACD at each index i >= slow_period is recomputed from scratch on the
    prefix closes[0..i]. This is quadratic in the series length but gives
    exactly the values an observer would have seen at each bar.

    Returns:
        MacdResult (all zero when history is too short)
    """
    if len(closes) < slow_period + signal_period:
        return MacdResult()

    macd_line = ema(closes, fast_period) - ema(closes, slow_period)

    history = []
    for i in range(slow_period, len(closes)):
        prefix = closes[: i + 1]
        history.append(ema(prefix, fast_period) - ema(prefix, slow_period))

    signal_line = ema(history, signal_period) if len(history) >= signal_period else ZERO

    return MacdResult(
        macd=macd_line,
        signal=signal_line,
        histogram=macd_line - signal_line,
    )


def true_range(
    highs: Sequence[Decimal],
    lows: Sequence[Decimal],
    closes: Sequence[Decimal],
) -> list[Decimal]:
    """
    Calculate True Range for every bar after the first.

    TR = max(high - low, abs(high - prev_close), abs(low - prev_close))
    """
    result = []
    for i in range(1, len(highs)):
        hl = highs[i] - lows[i]
        hc = abs(highs[i] - closes[i - 1])
        lc = abs(lows[i] - closes[i - 1])
        result.append(max(hl, hc, lc))
    return result


def atr(
    highs: Sequence[Decimal],
    lows: Sequence[Decimal],
    closes: Sequence[Decimal],
    period: int = 14,
) -> Decimal:
    """
    Calculate Average True Range.

    Plain arithmetic mean of the last ``period`` true ranges (not Wilder
    smoothed, unlike RSI).

    Returns:
        ATR >= 0; 0 when history is too short
    """
    if len(highs) < period + 1:
        return ZERO

    tr = true_range(highs, lows, closes)
    return sum(tr[-period:], ZERO) / Decimal(period)


# =============================================================================
# IndicatorCalculator class
# =============================================================================

class IndicatorCalculator:
    """Calculator for all indicators the classifier consumes."""

    def __init__(self, config: StrategyConfig | None = None):
        self.config = config or StrategyConfig()

    @property
    def min_history(self) -> int:
        """Candles needed before no indicator falls back."""
        c = self.config
        return max(
            c.ema_slow_period,
            c.rsi_period + 1,
            c.macd_slow_period + c.macd_signal_period,
            c.atr_period + 1,
        )

    def calculate(self, series: CandleSeries) -> IndicatorSnapshot:
        """
        Calculate the indicator snapshot as of the last candle of ``series``.

        Raises:
            ValueError: if the series is empty
        """
        if len(series) == 0:
            raise ValueError("Cannot calculate indicators on an empty series")

        c = self.config
        closes = series.closes()
        macd_result = macd(
            closes, c.macd_fast_period, c.macd_slow_period, c.macd_signal_period
        )

        return IndicatorSnapshot(
            ema_fast=ema(closes, c.ema_fast_period),
            ema_slow=ema(closes, c.ema_slow_period),
            rsi=rsi(closes, c.rsi_period),
            macd_line=macd_result.macd,
            macd_signal=macd_result.signal,
            macd_histogram=macd_result.histogram,
            atr=atr(series.highs(), series.lows(), closes, c.atr_period),
        )
