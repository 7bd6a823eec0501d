"""Classification pass: fetch candles, classify, dispatch and persist signals.

One run:
1. New flow_id; candle cache cleared
2. Per symbol (sequential): latest candles -> closed candles -> snapshot -> signal
3. Dispatch (optional): STRONG/MEDIUM BUY/SELL only, market context,
   duplicate gate, notifier
4. Persistence: probability filter, 30-minute duplicate gate, insert

A failure on one symbol or one signal is logged and counted; the run
always completes.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from app.clients.binance_rest import CandleCache, RateLimiter, UpstreamError, normalize_symbol
from core.dedup import DuplicateSuppressor
from core.market_context import MarketContext, MarketContextFilter
from core.models.candle import CandleSeries
from core.models.signal import ClassifiedSignal, PersistedSignal, Strength
from core.protocols import Notifier, PriceFeed, SignalRepository
from core.strategy import SignalClassifier

logger = logging.getLogger(__name__)

DISPATCH_STRENGTHS = (Strength.STRONG, Strength.MEDIUM)

SKIP_STRENGTH = "strength"
SKIP_MARKET_CONTEXT = "market_context"
SKIP_DUPLICATE = "duplicate"


@dataclass
class SymbolResult:
    """Classified signal of one symbol and what happened to it."""

    symbol: str
    signal: ClassifiedSignal
    sent: bool = False
    skip_reason: str | None = None
    persisted: PersistedSignal | None = None


@dataclass
class AnalysisSummary:
    """Aggregate counts of one classification run."""

    flow_id: str
    results: list[SymbolResult] = field(default_factory=list)
    errors_by_symbol: dict[str, str] = field(default_factory=dict)

    analysed: int = 0
    errors: int = 0

    sent: int = 0
    skipped_strength: int = 0
    skipped_market_context: int = 0
    skipped_duplicate: int = 0
    notifier_errors: int = 0

    saved: int = 0
    skipped_probability: int = 0
    skipped_recent: int = 0  # Same symbol/type stored within 30 minutes
    save_errors: int = 0

    elapsed_seconds: float = 0.0

    @property
    def skipped(self) -> int:
        return self.skipped_strength + self.skipped_market_context + self.skipped_duplicate


class SignalAnalysisService:
    """Runs the classification pass over a list of symbols."""

    def __init__(
        self,
        feed: PriceFeed,
        repo: SignalRepository,
        notifier: Notifier | None = None,
        classifier: SignalClassifier | None = None,
        market_filter: MarketContextFilter | None = None,
        suppressor: DuplicateSuppressor | None = None,
        rate_limiter: RateLimiter | None = None,
        cache: CandleCache | None = None,
        quote_asset: str = "USDT",
        signal_time_offset: timedelta = timedelta(hours=4),
        persist_min_probability: int = 0,
        benchmark_limit: int = 3,
    ):
        self.feed = feed
        self.repo = repo
        self.notifier = notifier
        self.classifier = classifier or SignalClassifier()
        self.market_filter = market_filter or MarketContextFilter(quote_asset=quote_asset)
        self.suppressor = suppressor or DuplicateSuppressor()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.cache = cache
        self.quote_asset = quote_asset
        self.signal_time_offset = signal_time_offset
        self.persist_min_probability = persist_min_probability
        self.benchmark_limit = benchmark_limit

    @property
    def strategy_label(self) -> str:
        return self.classifier.strategy_label

    async def run(
        self,
        symbols: list[str],
        interval: str = "15m",
        limit: int = 200,
        notify: bool = False,
        now: datetime | None = None,
    ) -> AnalysisSummary:
        """
        Run one classification pass.

        Args:
            symbols: Symbols to analyse ("BTC" or "BTCUSDT")
            interval: Candle interval
            limit: Number of candles per symbol
            notify: Dispatch qualifying signals through the notifier
            now: Reference time (defaults to current UTC time)

        Returns:
            AnalysisSummary with per-symbol results and counts
        """
        started = time.monotonic()
        now = now or datetime.now(timezone.utc)
        summary = AnalysisSummary(flow_id=str(uuid.uuid4()))
        if self.cache is not None:
            self.cache.clear()

        logger.info(
            f"Analysis started: flow={summary.flow_id} symbols={len(symbols)} "
            f"interval={interval} limit={limit} strategy={self.classifier.profile.name}"
        )

        for symbol in symbols:
            await self.rate_limiter.acquire()
            pair = normalize_symbol(symbol, self.quote_asset)
            try:
                signal = await self.analyse_symbol(pair, interval, limit, now)
            except Exception as e:
                summary.errors += 1
                summary.errors_by_symbol[pair] = str(e)
                logger.error(f"Error analysing {pair}: {e}", exc_info=True)
                continue

            summary.analysed += 1
            summary.results.append(SymbolResult(symbol=pair, signal=signal))
            logger.info(
                f"{pair}: {signal.type.value} {signal.strength.value} price={signal.price} "
                f"rsi={signal.rsi:.2f} long={signal.long_probability}% "
                f"short={signal.short_probability}%"
            )

        if notify:
            await self._dispatch(summary, interval, now)

        await self._persist(summary, interval, limit, now)

        summary.elapsed_seconds = round(time.monotonic() - started, 2)
        logger.info(
            f"Analysis completed: flow={summary.flow_id} analysed={summary.analysed} "
            f"errors={summary.errors} sent={summary.sent} skipped={summary.skipped} "
            f"notifier_errors={summary.notifier_errors} saved={summary.saved} "
            f"skipped_recent={summary.skipped_recent} save_errors={summary.save_errors} "
            f"in {summary.elapsed_seconds}s"
        )
        return summary

    async def analyse_symbol(
        self, pair: str, interval: str, limit: int, now: datetime
    ) -> ClassifiedSignal:
        """Classify the last closed candle of one symbol."""
        series = await self.feed.get_candles(pair, interval, limit)
        closed = series.closed(_to_ms(now))
        return self.classifier.classify_series(closed)

    # ------------------------------------------------------------------
    # Dispatch phase
    # ------------------------------------------------------------------

    async def _dispatch(self, summary: AnalysisSummary, interval: str, now: datetime) -> None:
        benchmark: CandleSeries | None = None
        benchmark_error: str | None = None
        benchmark_loaded = False

        for result in summary.results:
            signal = result.signal
            if not signal.type.is_directional or signal.strength not in DISPATCH_STRENGTHS:
                result.skip_reason = SKIP_STRENGTH
                summary.skipped_strength += 1
                logger.debug(
                    f"{result.symbol}: skipped ({signal.type.value} {signal.strength.value})"
                )
                continue

            if not benchmark_loaded:
                benchmark, benchmark_error = await self._load_benchmark(interval, now)
                benchmark_loaded = True

            if benchmark_error is not None:
                context = MarketContext.fail_open(f"Error checking market context: {benchmark_error}")
            else:
                context = self.market_filter.check(result.symbol, signal.type, benchmark)
            if not context.allowed:
                result.skip_reason = SKIP_MARKET_CONTEXT
                summary.skipped_market_context += 1
                logger.info(f"{result.symbol}: skipped ({context.reason})")
                continue

            if not await self._dispatch_allowed(result, now):
                result.skip_reason = SKIP_DUPLICATE
                summary.skipped_duplicate += 1
                logger.info(
                    f"{result.symbol}: skipped duplicate {signal.type.value} {signal.strength.value}"
                )
                continue

            if self.notifier is None:
                summary.notifier_errors += 1
                logger.error(f"{result.symbol}: no notifier configured")
                continue

            try:
                sent = await self.notifier.send(signal, result.symbol, self.strategy_label)
            except Exception as e:
                sent = False
                logger.error(f"{result.symbol}: notifier raised {e!r}", exc_info=True)

            if sent:
                result.sent = True
                summary.sent += 1
                logger.info(f"{result.symbol}: sent {signal.type.value} {signal.strength.value}")
            else:
                summary.notifier_errors += 1
                logger.error(f"{result.symbol}: failed to send signal")

    async def _load_benchmark(
        self, interval: str, now: datetime
    ) -> tuple[CandleSeries | None, str | None]:
        """Latest closed benchmark candles; (None, error) on fetch failure."""
        symbol = self.market_filter.benchmark_symbol
        try:
            series = await self.feed.get_candles(
                symbol, interval, self.benchmark_limit, min_candles=0
            )
        except (UpstreamError, ValueError) as e:
            logger.warning(f"Benchmark {symbol} unavailable, market context fails open: {e}")
            return None, str(e)
        return series.closed(_to_ms(now)).tail(2), None

    async def _dispatch_allowed(self, result: SymbolResult, now: datetime) -> bool:
        signal = result.signal
        try:
            recent = await self.repo.find_recent(
                result.symbol,
                signal.type,
                since=self.suppressor.dispatch_since(signal.strength, now),
                strategy=self.strategy_label,
                strength=signal.strength,
                sent_to_telegram=True,
            )
        except Exception as e:
            # Store unavailable: send anyway
            logger.error(f"{result.symbol}: duplicate check failed: {e}", exc_info=True)
            return True
        return self.suppressor.should_dispatch(
            signal, result.symbol, self.strategy_label, recent, now
        )

    # ------------------------------------------------------------------
    # Persistence phase
    # ------------------------------------------------------------------

    async def _persist(
        self, summary: AnalysisSummary, interval: str, limit: int, now: datetime
    ) -> None:
        for result in summary.results:
            signal = result.signal
            top_probability = max(signal.long_probability, signal.short_probability)
            if top_probability < self.persist_min_probability:
                summary.skipped_probability += 1
                logger.debug(f"{result.symbol}: not stored (probability {top_probability}%)")
                continue

            try:
                recent = await self.repo.find_recent(
                    result.symbol,
                    signal.type,
                    since=self.suppressor.persist_since(now),
                )
                if not self.suppressor.should_persist(result.symbol, signal.type, recent, now):
                    summary.skipped_recent += 1
                    logger.debug(
                        f"{result.symbol}: not stored ({signal.type.value} within 30 minutes)"
                    )
                    continue

                record = PersistedSignal.from_classified(
                    signal,
                    flow_id=summary.flow_id,
                    symbol=result.symbol,
                    strategy=self.strategy_label,
                    interval=interval,
                    limit=limit,
                    created_at=now,
                    signal_time_offset=self.signal_time_offset,
                    sent_to_telegram=result.sent,
                )
                result.persisted = await self.repo.create(record)
                summary.saved += 1
            except Exception as e:
                summary.save_errors += 1
                logger.error(f"{result.symbol}: error saving signal: {e}", exc_info=True)


def _to_ms(moment: datetime) -> int:
    return int(moment.timestamp() * 1000)
