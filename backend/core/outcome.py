"""Candle-based outcome determination for persisted signals.

Replays the candles that follow a signal's decision instant and decides
whether its take profit or its stop loss was reached first.

Rules:
- BUY:  high >= take_profit -> DONE,   low <= stop_loss  -> MISSED
- SELL: low <= take_profit  -> DONE,   high >= stop_loss -> MISSED
- Both hit on the same candle -> MISSED (pessimistic assumption)
- Candles that closed before the decision instant are ignored
- No resolving candle -> PROCESSING (open position, not an error)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.models.candle import Candle, CandleSeries
from core.models.signal import PersistedSignal, SignalStatus, SignalType

logger = logging.getLogger(__name__)

HIT_TAKE_PROFIT = "take_profit"
HIT_STOP_LOSS = "stop_loss"
HIT_BOTH = "both"


@dataclass(frozen=True)
class OutcomeResult:
    """Result of replaying one signal against a candle series."""

    status: SignalStatus
    candle: Candle | None = None  # Candle that resolved the signal
    hit: str | None = None  # HIT_TAKE_PROFIT / HIT_STOP_LOSS / HIT_BOTH
    candles_checked: int = 0
    no_data: bool = False  # Series was empty (feed unavailable)

    @property
    def resolved(self) -> bool:
        return self.status.is_terminal


class OutcomeEvaluator:
    """Deterministic SL/TP replay; holds no state between calls."""

    def evaluate(self, signal: PersistedSignal, series: CandleSeries) -> OutcomeResult:
        """
        Decide the status of ``signal`` from ``series``.

        Args:
            signal: Persisted BUY/SELL signal with both levels set
            series: Candles from the decision instant onwards, ascending

        Returns:
            OutcomeResult; status is PROCESSING when nothing resolved

        Raises:
            ValueError: If the signal is HOLD or lacks stop_loss/take_profit
        """
        if not signal.is_evaluable:
            raise ValueError(
                f"Signal {signal.id} ({signal.type.value}) has no levels to evaluate"
            )

        # Terminal statuses never change
        if signal.status is not None and signal.status.is_terminal:
            return OutcomeResult(status=signal.status)

        if len(series) == 0:
            logger.warning(f"Signal {signal.id} {signal.symbol}: no candles, status unchanged")
            return OutcomeResult(status=SignalStatus.PROCESSING, no_data=True)

        decision_ms = int(signal.decision_time.timestamp() * 1000)
        checked = 0

        for candle in series:
            if candle.close_time < decision_ms:
                continue
            checked += 1

            hit = self._check_candle(signal, candle)
            if hit is None:
                continue

            if hit == HIT_BOTH:
                logger.info(
                    f"Signal {signal.id} {signal.symbol}: SL and TP on one candle "
                    f"at {candle.opened_at:%Y-%m-%d %H:%M}, resolved MISSED"
                )
                status = SignalStatus.MISSED
            elif hit == HIT_STOP_LOSS:
                status = SignalStatus.MISSED
            else:
                status = SignalStatus.DONE

            logger.info(
                f"Signal {signal.id} {signal.symbol} {signal.type.value}: {status.value} "
                f"({hit}) on candle {candle.opened_at:%Y-%m-%d %H:%M} "
                f"after {checked} candles"
            )
            return OutcomeResult(status=status, candle=candle, hit=hit, candles_checked=checked)

        return OutcomeResult(status=SignalStatus.PROCESSING, candles_checked=checked)

    @staticmethod
    def _check_candle(signal: PersistedSignal, candle: Candle) -> str | None:
        """Check whether a candle touches the signal's levels.

        Pessimistic rule: if both levels are touched, report both so the
        caller resolves to the stop loss.
        """
        if signal.type == SignalType.BUY:
            sl_hit = candle.low <= signal.stop_loss
            tp_hit = candle.high >= signal.take_profit
        else:  # SELL
            sl_hit = candle.high >= signal.stop_loss
            tp_hit = candle.low <= signal.take_profit

        if sl_hit and tp_hit:
            return HIT_BOTH
        if sl_hit:
            return HIT_STOP_LOSS
        if tp_hit:
            return HIT_TAKE_PROFIT
        return None
