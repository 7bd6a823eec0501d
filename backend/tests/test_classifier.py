"""Tests for the rule-based signal classifier."""

import pytest
from decimal import Decimal

from pydantic import ValidationError

from core.models.candle import CandleSeries
from core.models.signal import IndicatorSnapshot, SignalType, Strength
from core.strategy import (
    EMA_RSI_MACD,
    EMA_RSI_MACD_ATR,
    SignalClassifier,
    get_profile,
    list_profiles,
    probabilities,
    strength_for,
)
from core.strategy.rules import ScoreRule, Side, cond, score

from factories import make_series


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def snapshot(
    ema_fast="49800",
    ema_slow="49500",
    rsi="55",
    macd_line="50",
    macd_signal="40",
    macd_histogram="10",
    atr="500",
) -> IndicatorSnapshot:
    """Snapshot that scores 100/0 for LONG at price 50000."""
    return IndicatorSnapshot(
        ema_fast=Decimal(ema_fast),
        ema_slow=Decimal(ema_slow),
        rsi=Decimal(rsi),
        macd_line=Decimal(macd_line),
        macd_signal=Decimal(macd_signal),
        macd_histogram=Decimal(macd_histogram),
        atr=Decimal(atr),
    )


def bearish_snapshot(**overrides) -> IndicatorSnapshot:
    values = dict(
        ema_fast="50200",
        ema_slow="50500",
        rsi="45",
        macd_line="-50",
        macd_signal="-40",
        macd_histogram="-10",
    )
    values.update(overrides)
    return snapshot(**values)


PRICE = Decimal("50000")


class TestProbabilities:
    """Tests for score normalisation."""

    def test_zero_scores(self):
        assert probabilities(0, 0) == (50, 50)

    def test_proportional(self):
        assert probabilities(70, 30) == (70, 30)
        assert probabilities(50, 70) == (42, 58)

    def test_round_half_up(self):
        # 100 * 1 / 8 = 12.5
        assert probabilities(1, 7) == (13, 87)

    def test_sum_is_always_100(self):
        for long_score in range(0, 101, 10):
            for short_score in range(0, 101, 10):
                lp, sp = probabilities(long_score, short_score)
                assert lp + sp == 100


class TestStrength:
    """Tests for strength thresholds."""

    @pytest.mark.parametrize(
        "long_prob,expected",
        [
            (61, Strength.STRONG),
            (60, Strength.MEDIUM),
            (56, Strength.MEDIUM),
            (55, Strength.WEAK),
            (50, Strength.WEAK),
            (39, Strength.STRONG),
        ],
    )
    def test_strength_for_spread(self, long_prob, expected):
        assert strength_for(long_prob, 100 - long_prob) == expected


class TestRules:
    """Tests for declarative scoring rules."""

    def test_default_table_full_long(self):
        values = snapshot().model_dump() | {"price": PRICE}
        assert score(EMA_RSI_MACD.rules, values) == (100, 0)

    def test_rsi_band_overlap_scores_both_sides(self):
        values = {
            "price": PRICE,
            "ema_fast": PRICE,
            "ema_slow": PRICE,
            "rsi": Decimal("50"),
            "macd_line": Decimal("0"),
            "macd_signal": Decimal("0"),
            "macd_histogram": Decimal("0"),
        }
        assert score(EMA_RSI_MACD.rules, values) == (20, 20)

    def test_custom_rule(self):
        rule = ScoreRule(side=Side.SHORT, weight=15, conditions=(cond("rsi", ">", 70),))
        assert score([rule], {"rsi": Decimal("75")}) == (0, 15)
        assert score([rule], {"rsi": Decimal("70")}) == (0, 0)

    def test_unknown_field_rejected(self):
        with pytest.raises(ValidationError):
            cond("volume", ">", 0)


class TestRegistry:
    """Tests for the profile registry."""

    def test_builtin_profiles_registered(self):
        assert "ema_rsi_macd" in list_profiles()
        assert "ema_rsi_macd_atr" in list_profiles()
        assert get_profile("ema_rsi_macd") is EMA_RSI_MACD

    def test_unknown_profile(self):
        with pytest.raises(KeyError):
            get_profile("nope")


class TestMajorityGate:
    """Tests for the canonical majority-probability gate."""

    def test_buy_levels(self):
        signal = SignalClassifier().classify(PRICE, snapshot())

        assert signal.type == SignalType.BUY
        assert signal.strength == Strength.STRONG
        assert (signal.long_probability, signal.short_probability) == (100, 0)
        assert signal.stop_loss == Decimal("48850")
        assert signal.take_profit == Decimal("51000")

    def test_sell_levels(self):
        signal = SignalClassifier().classify(PRICE, bearish_snapshot())

        assert signal.type == SignalType.SELL
        assert signal.short_probability == 100
        assert signal.stop_loss == Decimal("51150")
        assert signal.take_profit == Decimal("49000")

    def test_balanced_scores_hold(self):
        flat = snapshot(
            ema_fast="50000",
            ema_slow="50000",
            rsi="50",
            macd_line="0",
            macd_signal="0",
            macd_histogram="0",
        )
        signal = SignalClassifier().classify(PRICE, flat)

        assert signal.type == SignalType.HOLD
        assert signal.strength == Strength.WEAK
        assert signal.stop_loss is None
        assert signal.take_profit is None

    def test_no_rule_matches_hold(self):
        idle = snapshot(
            ema_fast="50000",
            ema_slow="50000",
            rsi="75",
            macd_line="0",
            macd_signal="0",
            macd_histogram="0",
        )
        signal = SignalClassifier().classify(PRICE, idle)

        assert (signal.long_score, signal.short_score) == (0, 0)
        assert (signal.long_probability, signal.short_probability) == (50, 50)
        assert signal.type == SignalType.HOLD

    def test_zero_atr_falls_back_to_one_percent(self):
        signal = SignalClassifier().classify(PRICE, snapshot(atr="0"))

        assert signal.atr == Decimal("500")
        assert signal.stop_loss == Decimal("48850")
        assert signal.take_profit == Decimal("51000")

    def test_diagnostics_and_reason(self):
        signal = SignalClassifier().classify(PRICE, snapshot())

        assert signal.macd_hist_atr == Decimal("0.02")
        assert signal.ema_distance_atr == Decimal("0.4")
        assert signal.atr_pct == Decimal("1")
        assert signal.score_diff == 100
        assert signal.reason == (
            "RSI: 55.00 | MACD Hist/ATR: 0.020 | EMA Dist/ATR: 0.400 | ATR%: 1.00 | "
            "Score Diff: 100 | Trend: Bullish | Price above EMA20"
        )

    def test_non_positive_price_rejected(self):
        with pytest.raises(ValueError):
            SignalClassifier().classify(Decimal("0"), snapshot())


class TestAtrGate:
    """Tests for the strict ATR-normalised gate."""

    def gated_buy(self, **overrides) -> IndicatorSnapshot:
        # long 40 (RSI band + MACD above signal), short 20 (RSI band): diff 20
        values = dict(
            ema_fast="49600",
            ema_slow="49700",
            rsi="50",
            macd_line="-100",
            macd_signal="-250",
            macd_histogram="150",
        )
        values.update(overrides)
        return snapshot(**values)

    def test_all_conditions_buy(self):
        signal = SignalClassifier(EMA_RSI_MACD_ATR).classify(PRICE, self.gated_buy())

        assert signal.score_diff == 20
        assert signal.type == SignalType.BUY
        assert signal.stop_loss == Decimal("48850")

    def test_price_too_far_from_ema_holds(self):
        far = self.gated_buy(ema_fast="49000")

        gated = SignalClassifier(EMA_RSI_MACD_ATR).classify(PRICE, far)
        majority = SignalClassifier(EMA_RSI_MACD).classify(PRICE, far)

        assert gated.type == SignalType.HOLD
        assert majority.type == SignalType.BUY

    def test_weak_histogram_holds(self):
        signal = SignalClassifier(EMA_RSI_MACD_ATR).classify(
            PRICE, self.gated_buy(macd_signal="-150", macd_histogram="50")
        )
        assert signal.type == SignalType.HOLD

    def test_all_conditions_sell(self):
        # long 20 (RSI band), short 40 (RSI band + MACD below signal): diff -20
        bearish = snapshot(
            ema_fast="50400",
            ema_slow="50300",
            rsi="50",
            macd_line="100",
            macd_signal="250",
            macd_histogram="-150",
        )
        signal = SignalClassifier(EMA_RSI_MACD_ATR).classify(PRICE, bearish)

        assert signal.score_diff == -20
        assert signal.type == SignalType.SELL
        assert signal.take_profit == Decimal("49000")


class TestClassifySeries:
    """Tests for classify_series."""

    def test_uses_last_close(self):
        series = make_series([100 + i % 9 for i in range(120)])
        signal = SignalClassifier().classify_series(series)

        assert signal.price == series.last.close
        assert signal.long_probability + signal.short_probability == 100
        assert signal.strength in Strength

    def test_empty_series_raises(self):
        with pytest.raises(ValueError):
            SignalClassifier().classify_series(CandleSeries())
