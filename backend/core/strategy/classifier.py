"""Rule-based signal classifier.

Turns an indicator snapshot and the current price into a directional
call with a strength label and ATR-based protective levels:

- BUY:  SL = price - ATR * sl_mult, TP = price + ATR * tp_mult
- SELL: SL = price + ATR * sl_mult, TP = price - ATR * tp_mult

This module is pure business logic with no I/O dependencies.
"""

from __future__ import annotations

import logging
from decimal import ROUND_HALF_UP, Decimal

from core.indicators import IndicatorCalculator
from core.models.candle import CandleSeries
from core.models.config import StrategyConfig
from core.models.signal import ClassifiedSignal, IndicatorSnapshot, SignalType, Strength
from core.strategy.profiles import EMA_RSI_MACD, GatePolicy, ScoringProfile
from core.strategy.rules import score

logger = logging.getLogger(__name__)

STRONG_SPREAD = 20
MEDIUM_SPREAD = 10


def probabilities(long_score: int, short_score: int) -> tuple[int, int]:
    """Normalise scores to integer percentages summing to 100.

    Rounds half away from zero; 50/50 when both scores are zero.
    """
    total = long_score + short_score
    if total <= 0:
        return 50, 50
    long_prob = int(
        (Decimal(100 * long_score) / Decimal(total)).quantize(Decimal(1), rounding=ROUND_HALF_UP)
    )
    return long_prob, 100 - long_prob


def strength_for(long_probability: int, short_probability: int) -> Strength:
    spread = abs(long_probability - short_probability)
    if spread > STRONG_SPREAD:
        return Strength.STRONG
    if spread > MEDIUM_SPREAD:
        return Strength.MEDIUM
    return Strength.WEAK


class SignalClassifier:
    """Classify a snapshot into BUY/SELL/HOLD using a scoring profile."""

    def __init__(
        self,
        profile: ScoringProfile | None = None,
        config: StrategyConfig | None = None,
    ):
        self.profile = profile or EMA_RSI_MACD
        self.config = config or StrategyConfig()
        self.calculator = IndicatorCalculator(self.config)

    @property
    def strategy_label(self) -> str:
        return self.profile.label

    def classify_series(self, series: CandleSeries) -> ClassifiedSignal:
        """Compute indicators on ``series`` and classify its last close."""
        if series.last is None:
            raise ValueError("Cannot classify an empty series")
        snapshot = self.calculator.calculate(series)
        return self.classify(series.last.close, snapshot)

    def classify(self, price: Decimal, snapshot: IndicatorSnapshot) -> ClassifiedSignal:
        """
        Classify one snapshot.

        Args:
            price: Current price (last close)
            snapshot: Indicator values as of the same candle

        Returns:
            ClassifiedSignal (levels only for BUY/SELL)
        """
        if price <= 0:
            raise ValueError(f"price must be positive, got {price}")

        # Guard: zero ATR would divide by zero below and give zero-width stops
        atr_value = snapshot.atr
        if atr_value <= 0:
            atr_value = price * self.config.atr_fallback_fraction

        values = {
            "price": price,
            "ema_fast": snapshot.ema_fast,
            "ema_slow": snapshot.ema_slow,
            "rsi": snapshot.rsi,
            "macd_line": snapshot.macd_line,
            "macd_signal": snapshot.macd_signal,
            "macd_histogram": snapshot.macd_histogram,
        }
        long_score, short_score = score(self.profile.rules, values)
        long_prob, short_prob = probabilities(long_score, short_score)
        score_diff = long_score - short_score

        macd_hist_atr = snapshot.macd_histogram / atr_value
        ema_distance_atr = abs(price - snapshot.ema_fast) / atr_value
        atr_pct = atr_value / price * 100

        if self.profile.gate == GatePolicy.ATR_GATED:
            signal_type = self._atr_gate(
                snapshot.rsi, macd_hist_atr, ema_distance_atr, atr_pct, score_diff
            )
        else:
            signal_type = self._majority_gate(long_prob, short_prob)

        stop_loss, take_profit = self._levels(signal_type, price, atr_value)

        return ClassifiedSignal(
            type=signal_type,
            strength=strength_for(long_prob, short_prob),
            price=price,
            ema_fast=snapshot.ema_fast,
            ema_slow=snapshot.ema_slow,
            rsi=snapshot.rsi,
            macd_line=snapshot.macd_line,
            macd_signal=snapshot.macd_signal,
            macd_histogram=snapshot.macd_histogram,
            atr=atr_value,
            long_score=long_score,
            short_score=short_score,
            long_probability=long_prob,
            short_probability=short_prob,
            stop_loss=stop_loss,
            take_profit=take_profit,
            macd_hist_atr=macd_hist_atr,
            ema_distance_atr=ema_distance_atr,
            atr_pct=atr_pct,
            score_diff=score_diff,
            reason=self._reason(
                price, snapshot, macd_hist_atr, ema_distance_atr, atr_pct, score_diff
            ),
        )

    # ------------------------------------------------------------------
    # Gate policies
    # ------------------------------------------------------------------

    @staticmethod
    def _majority_gate(long_prob: int, short_prob: int) -> SignalType:
        if long_prob > short_prob and long_prob > 50:
            return SignalType.BUY
        if short_prob > long_prob and short_prob > 50:
            return SignalType.SELL
        return SignalType.HOLD

    def _atr_gate(
        self,
        rsi_value: Decimal,
        macd_hist_atr: Decimal,
        ema_distance_atr: Decimal,
        atr_pct: Decimal,
        score_diff: int,
    ) -> SignalType:
        g = self.config.atr_gate
        common = (
            g.ema_distance_atr_min <= ema_distance_atr <= g.ema_distance_atr_max
            and g.atr_pct_min <= atr_pct <= g.atr_pct_max
        )
        if not common:
            return SignalType.HOLD

        # BUY requires a positive histogram; SELL reads its magnitude
        if (
            g.buy_rsi_min <= rsi_value <= g.buy_rsi_max
            and macd_hist_atr >= g.macd_hist_atr_min
            and g.score_diff_min <= score_diff <= g.score_diff_max
        ):
            return SignalType.BUY
        if (
            g.sell_rsi_min <= rsi_value <= g.sell_rsi_max
            and abs(macd_hist_atr) >= g.macd_hist_atr_min
            and g.score_diff_min <= -score_diff <= g.score_diff_max
        ):
            return SignalType.SELL
        return SignalType.HOLD

    # ------------------------------------------------------------------
    # Levels and description
    # ------------------------------------------------------------------

    def _levels(
        self, signal_type: SignalType, price: Decimal, atr_value: Decimal
    ) -> tuple[Decimal | None, Decimal | None]:
        sl_dist = atr_value * self.config.stop_loss_multiplier
        tp_dist = atr_value * self.config.take_profit_multiplier
        if signal_type == SignalType.BUY:
            return price - sl_dist, price + tp_dist
        if signal_type == SignalType.SELL:
            return price + sl_dist, price - tp_dist
        return None, None

    def _reason(
        self,
        price: Decimal,
        snapshot: IndicatorSnapshot,
        macd_hist_atr: Decimal,
        ema_distance_atr: Decimal,
        atr_pct: Decimal,
        score_diff: int,
    ) -> str:
        trend = "Bullish" if snapshot.ema_fast > snapshot.ema_slow else "Bearish"
        price_vs_ema = "above" if price > snapshot.ema_fast else "below"
        return (
            f"RSI: {snapshot.rsi:.2f} | MACD Hist/ATR: {macd_hist_atr:.3f} | "
            f"EMA Dist/ATR: {ema_distance_atr:.3f} | ATR%: {atr_pct:.2f} | "
            f"Score Diff: {score_diff} | Trend: {trend} | "
            f"Price {price_vs_ema} EMA{self.config.ema_fast_period}"
        )
