"""Strategy configuration models."""

from __future__ import annotations

from decimal import Decimal

from pydantic import BaseModel, Field, model_validator


class AtrGateConfig(BaseModel):
    """Thresholds of the strict ATR-normalised gate.

    Every condition must hold for a BUY (or SELL) to be issued.
    """

    buy_rsi_min: Decimal = Decimal("48")
    buy_rsi_max: Decimal = Decimal("60")
    sell_rsi_min: Decimal = Decimal("40")
    sell_rsi_max: Decimal = Decimal("52")

    # MACD histogram in ATR units
    macd_hist_atr_min: Decimal = Decimal("0.25")

    # |price - EMA fast| in ATR units
    ema_distance_atr_min: Decimal = Decimal("0.5")
    ema_distance_atr_max: Decimal = Decimal("1.5")

    # ATR as % of price
    atr_pct_min: Decimal = Decimal("0.3")
    atr_pct_max: Decimal = Decimal("3.0")

    # Score difference in favour of the direction
    score_diff_min: int = 10
    score_diff_max: int = 20


class StrategyConfig(BaseModel):
    """Indicator periods and protective-level parameters."""

    # Indicator periods
    ema_fast_period: int = Field(default=20, ge=1)
    ema_slow_period: int = Field(default=50, ge=1)
    rsi_period: int = Field(default=14, ge=1)
    macd_fast_period: int = Field(default=12, ge=1)
    macd_slow_period: int = Field(default=26, ge=1)
    macd_signal_period: int = Field(default=9, ge=1)
    atr_period: int = Field(default=14, ge=1)

    # SL/TP multipliers (based on ATR)
    stop_loss_multiplier: Decimal = Field(default=Decimal("2.3"), gt=0)
    take_profit_multiplier: Decimal = Field(default=Decimal("2.0"), gt=0)

    # ATR substitute when ATR <= 0, as a fraction of price
    atr_fallback_fraction: Decimal = Field(default=Decimal("0.01"), gt=0)

    atr_gate: AtrGateConfig = AtrGateConfig()

    @model_validator(mode="after")
    def _check_periods(self):
        if self.ema_fast_period >= self.ema_slow_period:
            raise ValueError("ema_fast_period must be shorter than ema_slow_period")
        if self.macd_fast_period >= self.macd_slow_period:
            raise ValueError("macd_fast_period must be shorter than macd_slow_period")
        return self
