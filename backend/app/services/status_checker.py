"""Outcome pass: resolve stored BUY/SELL signals against later price action."""

import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

from app.clients.binance_rest import RateLimiter, UpstreamError
from core.models.candle import CandleSeries
from core.models.signal import PersistedSignal, SignalStatus
from core.outcome import OutcomeEvaluator, OutcomeResult
from core.protocols import PriceFeed, SignalRepository

logger = logging.getLogger(__name__)


@dataclass
class StatusCheckSummary:
    """Aggregate counts of one status-check run."""

    start: datetime
    end: datetime
    checked: int = 0
    done: int = 0
    missed: int = 0
    processing: int = 0
    errors: int = 0
    fetch_failures: int = 0
    elapsed_seconds: float = 0.0
    outcomes: list[tuple[PersistedSignal, OutcomeResult]] = field(default_factory=list)

    def count(self, status: SignalStatus) -> None:
        if status == SignalStatus.DONE:
            self.done += 1
        elif status == SignalStatus.MISSED:
            self.missed += 1
        else:
            self.processing += 1

    def rows(self) -> list[tuple[str, int]]:
        """(status, count) rows for console output."""
        return [
            ("DONE", self.done),
            ("MISSED", self.missed),
            ("PROCESSING", self.processing),
            ("ERRORS", self.errors),
        ]


class StatusCheckService:
    """Evaluates pending signals whose decision instant lies in a lookback window."""

    def __init__(
        self,
        feed: PriceFeed,
        repo: SignalRepository,
        evaluator: OutcomeEvaluator | None = None,
        rate_limiter: RateLimiter | None = None,
        default_interval: str = "15m",
        page_limit: int = 1000,
    ):
        self.feed = feed
        self.repo = repo
        self.evaluator = evaluator or OutcomeEvaluator()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.default_interval = default_interval
        self.page_limit = page_limit

    async def run(
        self,
        hours: int = 12,
        range_hours: int = 24,
        now: datetime | None = None,
    ) -> StatusCheckSummary:
        """
        Check signals decided between ``now - (hours + range_hours)`` and ``now - hours``.

        Returns:
            StatusCheckSummary with per-status counts
        """
        started = time.monotonic()
        now = now or datetime.now(timezone.utc)
        end = now - timedelta(hours=hours)
        start = end - timedelta(hours=range_hours)
        summary = StatusCheckSummary(start=start, end=end)

        logger.info(f"Status check started: {start:%Y-%m-%d %H:%M} .. {end:%Y-%m-%d %H:%M}")
        pending = await self.repo.get_pending(start, end)
        if not pending:
            logger.info("Status check: no signals in range")

        for signal in pending:
            await self.rate_limiter.acquire()
            try:
                result = await self.check_signal(signal, now)
            except Exception as e:
                summary.errors += 1
                logger.error(
                    f"Error checking signal {signal.id} {signal.symbol}: {e}", exc_info=True
                )
                continue

            summary.checked += 1
            if result.no_data:
                summary.fetch_failures += 1
            summary.count(result.status)
            summary.outcomes.append((signal, result))

        summary.elapsed_seconds = round(time.monotonic() - started, 2)
        logger.info(
            f"Status check completed: checked={summary.checked} done={summary.done} "
            f"missed={summary.missed} processing={summary.processing} "
            f"errors={summary.errors} fetch_failures={summary.fetch_failures} "
            f"in {summary.elapsed_seconds}s"
        )
        return summary

    async def check_signal(self, signal: PersistedSignal, now: datetime) -> OutcomeResult:
        """Fetch candles from the decision instant to ``now``, evaluate, store."""
        start_ms = int(signal.decision_time.timestamp() * 1000)
        end_ms = int(now.timestamp() * 1000)

        try:
            series = await self.feed.get_candle_range(
                signal.symbol,
                signal.interval or self.default_interval,
                start_ms,
                end_ms,
                page_limit=self.page_limit,
            )
        except UpstreamError as e:
            logger.warning(f"Signal {signal.id} {signal.symbol}: candle fetch failed: {e}")
            series = CandleSeries()

        result = self.evaluator.evaluate(signal, series)

        # No data: leave the stored status untouched
        if result.no_data or result.status == signal.status:
            return result

        updated = await self.repo.update_status(signal.id, result.status)
        if updated:
            logger.info(
                f"Signal {signal.id} {signal.symbol}: "
                f"{signal.status.value if signal.status else 'NULL'} -> {result.status.value}"
            )
        else:
            logger.debug(f"Signal {signal.id}: status already terminal, not updated")
        return result
