"""Benchmark-based market context filter.

Looks at the two most recent closed candles of a benchmark asset (BTC by
default) and vetoes signals while the benchmark is moving abnormally:

- any signal, when |close1 - close0| / close0 > 3%
- SELL on other symbols, when the benchmark dropped more than 1%

Missing or short benchmark data never blocks a signal (fail-open).
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from core.models.candle import CandleSeries
from core.models.signal import SignalType


@dataclass(frozen=True)
class MarketContext:
    """Filter verdict with a human-readable reason."""

    allowed: bool
    reason: str
    change_pct: Decimal | None = None

    @classmethod
    def fail_open(cls, reason: str) -> "MarketContext":
        return cls(allowed=True, reason=reason)


class MarketContextFilter:
    def __init__(
        self,
        benchmark_symbol: str = "BTC",
        quote_asset: str = "USDT",
        max_volatility_pct: Decimal = Decimal("3.0"),
        max_drop_pct: Decimal = Decimal("-1.0"),
    ):
        self.benchmark_symbol = benchmark_symbol.upper()
        self.quote_asset = quote_asset.upper()
        self.max_volatility_pct = max_volatility_pct
        self.max_drop_pct = max_drop_pct

    def is_benchmark(self, symbol: str) -> bool:
        symbol = symbol.upper()
        return symbol in (self.benchmark_symbol, self.benchmark_symbol + self.quote_asset)

    def check(
        self,
        symbol: str,
        signal_type: SignalType,
        benchmark: CandleSeries | None,
    ) -> MarketContext:
        """
        Decide whether a signal on ``symbol`` may be dispatched.

        Args:
            symbol: Symbol of the signal (base or full pair)
            signal_type: BUY/SELL/HOLD
            benchmark: Closed benchmark candles, ascending; None if the
                fetch failed

        Returns:
            MarketContext; ``allowed`` is True unless a veto applies
        """
        if benchmark is None or len(benchmark) < 2:
            return MarketContext.fail_open(f"Insufficient {self.benchmark_symbol} data")

        previous = benchmark[-2].close
        current = benchmark[-1].close
        if previous == 0:
            return MarketContext.fail_open(f"{self.benchmark_symbol} previous close is zero")

        change_pct = (current - previous) / previous * 100
        volatility = abs(change_pct)

        if volatility > self.max_volatility_pct:
            return MarketContext(
                allowed=False,
                reason=f"{self.benchmark_symbol} volatility too high: {volatility:.2f}%",
                change_pct=change_pct,
            )

        if (
            signal_type == SignalType.SELL
            and not self.is_benchmark(symbol)
            and change_pct < self.max_drop_pct
        ):
            return MarketContext(
                allowed=False,
                reason=(
                    f"{self.benchmark_symbol} dropping: {change_pct:.2f}%, "
                    "blocking SELL signals for alts"
                ),
                change_pct=change_pct,
            )

        return MarketContext(allowed=True, reason="Market context OK", change_pct=change_pct)
