"""Built-in scoring profiles.

EMA+RSI+MACD weights:

    LONG                                   SHORT
    price > EMA20 > EMA50         +30      price < EMA20 < EMA50         +30
    MACD > 0 and hist > 0         +30      MACD < 0 and hist < 0         +30
    48 <= RSI <= 60               +20      40 <= RSI <= 52               +20
    hist > 0 and MACD > signal    +20      hist < 0 and MACD < signal    +20

Two profiles share this table and differ only in how the type is gated:
``ema_rsi_macd`` issues the majority-probability direction (canonical),
``ema_rsi_macd_atr`` requires every ATR-normalised condition at once.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from core.strategy.registry import register_profile
from core.strategy.rules import ScoreRule, Side, cond

EMA_RSI_MACD_LABEL = "EMA+RSI+MACD"


class GatePolicy(str, Enum):
    """How long/short scores turn into a BUY/SELL/HOLD decision."""

    MAJORITY = "majority"
    ATR_GATED = "atr_gated"


class ScoringProfile(BaseModel):
    """A named rule table plus the gate policy that reads its scores."""

    model_config = ConfigDict(frozen=True)

    name: str
    label: str
    rules: tuple[ScoreRule, ...]
    gate: GatePolicy = GatePolicy.MAJORITY


EMA_RSI_MACD_RULES: tuple[ScoreRule, ...] = (
    ScoreRule(
        name="trend_up",
        side=Side.LONG,
        weight=30,
        conditions=(cond("price", ">", "ema_fast"), cond("ema_fast", ">", "ema_slow")),
    ),
    ScoreRule(
        name="macd_positive",
        side=Side.LONG,
        weight=30,
        conditions=(cond("macd_line", ">", 0), cond("macd_histogram", ">", 0)),
    ),
    ScoreRule(
        name="rsi_long_band",
        side=Side.LONG,
        weight=20,
        conditions=(cond("rsi", ">=", 48), cond("rsi", "<=", 60)),
    ),
    ScoreRule(
        name="macd_above_signal",
        side=Side.LONG,
        weight=20,
        conditions=(cond("macd_histogram", ">", 0), cond("macd_line", ">", "macd_signal")),
    ),
    ScoreRule(
        name="trend_down",
        side=Side.SHORT,
        weight=30,
        conditions=(cond("price", "<", "ema_fast"), cond("ema_fast", "<", "ema_slow")),
    ),
    ScoreRule(
        name="macd_negative",
        side=Side.SHORT,
        weight=30,
        conditions=(cond("macd_line", "<", 0), cond("macd_histogram", "<", 0)),
    ),
    ScoreRule(
        name="rsi_short_band",
        side=Side.SHORT,
        weight=20,
        conditions=(cond("rsi", ">=", 40), cond("rsi", "<=", 52)),
    ),
    ScoreRule(
        name="macd_below_signal",
        side=Side.SHORT,
        weight=20,
        conditions=(cond("macd_histogram", "<", 0), cond("macd_line", "<", "macd_signal")),
    ),
)

EMA_RSI_MACD = register_profile(
    ScoringProfile(
        name="ema_rsi_macd",
        label=EMA_RSI_MACD_LABEL,
        rules=EMA_RSI_MACD_RULES,
        gate=GatePolicy.MAJORITY,
    )
)

EMA_RSI_MACD_ATR = register_profile(
    ScoringProfile(
        name="ema_rsi_macd_atr",
        label=EMA_RSI_MACD_LABEL,
        rules=EMA_RSI_MACD_RULES,
        gate=GatePolicy.ATR_GATED,
    )
)
