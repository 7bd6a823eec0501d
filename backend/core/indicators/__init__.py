"""Technical indicators (pure math, no I/O)."""

from core.indicators.indicators import (
    ema,
    ema_multiplier,
    ema_step,
    rsi,
    macd,
    atr,
    true_range,
    MacdResult,
    IndicatorCalculator,
)

__all__ = [
    "ema",
    "ema_multiplier",
    "ema_step",
    "rsi",
    "macd",
    "atr",
    "true_range",
    "MacdResult",
    "IndicatorCalculator",
]
