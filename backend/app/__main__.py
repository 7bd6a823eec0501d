"""CLI entry point for the signal passes.

Usage:
    python -m app analyze
    python -m app analyze --symbol BTC,ETH --interval 15m --limit 200 --telegram
    python -m app analyze --telegram-only --config signals.yaml
    python -m app check-status --hours 12 --range 24
    python -m app init-db
    python -m app serve

Scheduling (cron or similar, one instance at a time):
    */15 * * * *   python -m app analyze --telegram-only
    0 */12 * * *   python -m app check-status
"""

import argparse
import asyncio
import logging
import sys
from datetime import timedelta
from pathlib import Path

from app.clients import BinanceRestClient, CandleCache, RateLimiter
from app.config import Settings, get_settings
from app.main import configure_logging
from app.notifier import TelegramNotifier
from app.services import (
    AnalysisSummary,
    SignalAnalysisService,
    StatusCheckService,
    SymbolResult,
)
from app.storage import Database, SignalRepository
from app.symbols_config import SignalsConfig, load_signals_config, parse_symbols
from core.dedup import DuplicateSuppressor
from core.market_context import MarketContextFilter
from core.models.signal import SignalType
from core.strategy import SignalClassifier, get_profile

logger = logging.getLogger(__name__)

_TYPE_ICON = {SignalType.BUY: "🟢", SignalType.SELL: "🔴", SignalType.HOLD: "⚪"}


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="python -m app",
        description="EMA+RSI+MACD crypto signals: analysis and outcome checks",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose logging")
    sub = parser.add_subparsers(dest="command", required=True)

    analyze = sub.add_parser("analyze", help="Classify symbols, dispatch and store signals")
    analyze.add_argument(
        "--symbol",
        action="append",
        default=None,
        help="Symbol(s) to analyse; repeatable or comma-separated (BTC,ETH)",
    )
    analyze.add_argument("--interval", type=str, default=None, help="Candle interval (default 15m)")
    analyze.add_argument("--limit", type=int, default=None, help="Number of candles (default 200)")
    analyze.add_argument("--telegram", action="store_true", help="Send signals to Telegram")
    analyze.add_argument(
        "--telegram-only",
        action="store_true",
        help="Send to Telegram without console output",
    )
    analyze.add_argument("--config", type=Path, default=None, help="Path to signals.yaml")

    check = sub.add_parser("check-status", help="Resolve stored signals to DONE/MISSED")
    check.add_argument("--hours", type=int, default=None, help="Hours back (default 12)")
    check.add_argument("--range", type=int, default=None, help="Range in hours (default 24)")

    sub.add_parser("init-db", help="Create the crypto_signals table")
    sub.add_parser("serve", help="Run the read-only HTTP API")

    return parser.parse_args(argv)


def build_feed(settings: Settings, cache: CandleCache | None = None) -> BinanceRestClient:
    return BinanceRestClient(
        base_url=settings.binance_base_url,
        timeout=settings.http_timeout_seconds,
        history_timeout=settings.history_timeout_seconds,
        quote_asset=settings.quote_asset,
        min_candles=settings.min_candles,
        page_limit=settings.history_page_limit,
        cache=cache,
        rate_limiter=RateLimiter(settings.page_delay_seconds),
    )


def print_signal(result: SymbolResult) -> None:
    signal = result.signal
    print(
        f"  {_TYPE_ICON[signal.type]} {result.symbol}: {signal.type.value} ({signal.strength.value})"
    )
    print(f"     Price: ${signal.price:,.2f} | RSI: {signal.rsi:.2f}")
    print(
        f"     Probabilities: BUY {signal.long_probability}% | "
        f"SELL {signal.short_probability}%"
    )
    if signal.stop_loss is not None and signal.take_profit is not None:
        print(f"     SL: ${signal.stop_loss:,.2f} | TP: ${signal.take_profit:,.2f}")
    print(f"     Reason: {signal.reason}")
    print()


def print_summary(summary: AnalysisSummary, notify: bool) -> None:
    print(f"Analysed: {summary.analysed}, errors: {summary.errors}")
    for symbol, error in summary.errors_by_symbol.items():
        print(f"  {symbol}: {error}")
    if notify:
        print(
            f"Sent: {summary.sent}, skipped: {summary.skipped} "
            f"(strength {summary.skipped_strength}, market {summary.skipped_market_context}, "
            f"duplicate {summary.skipped_duplicate}), notifier errors: {summary.notifier_errors}"
        )
    print(f"Saved: {summary.saved}")
    if summary.skipped_recent:
        print(f"Skipped duplicates (last 30 minutes): {summary.skipped_recent}")
    if summary.save_errors:
        print(f"Save errors: {summary.save_errors}")
    print(f"Elapsed: {summary.elapsed_seconds}s")


def load_analysis_config(path: Path | None = None) -> tuple[SignalsConfig, Settings]:
    """signals.yaml plus the settings it may extend through a sibling .env."""
    config = load_signals_config(path)
    return config, get_settings()


async def cmd_analyze(
    args: argparse.Namespace, config: SignalsConfig, settings: Settings, db: Database
) -> int:
    symbols = parse_symbols(args.symbol) or config.resolve_symbols(settings)
    if not symbols:
        print("Error: no symbols to analyse")
        return 1

    interval = args.interval or config.resolve_interval(settings)
    limit = args.limit or config.resolve_limit(settings)
    notify = args.telegram or args.telegram_only
    profile = get_profile(config.resolve_profile(settings))

    if not args.telegram_only:
        print(f"Symbols: {', '.join(symbols)}")
        print(f"Interval: {interval} | Candles: {limit} | Profile: {profile.name}\n")

    cache = CandleCache()
    feed = build_feed(settings, cache)
    notifier = None
    if notify:
        notifier = TelegramNotifier(
            settings.telegram_bot_token,
            settings.telegram_chat_id,
            timeout=settings.http_timeout_seconds,
            ema_period=config.strategy.ema_fast_period,
        )

    service = SignalAnalysisService(
        feed=feed,
        repo=SignalRepository(db),
        notifier=notifier,
        classifier=SignalClassifier(profile, config.strategy),
        market_filter=MarketContextFilter(
            benchmark_symbol=settings.benchmark_symbol, quote_asset=settings.quote_asset
        ),
        suppressor=DuplicateSuppressor(),
        rate_limiter=RateLimiter(settings.symbol_delay_seconds),
        cache=cache,
        quote_asset=settings.quote_asset,
        signal_time_offset=timedelta(hours=settings.signal_time_offset_hours),
        persist_min_probability=settings.persist_min_probability,
    )

    try:
        summary = await service.run(symbols, interval=interval, limit=limit, notify=notify)
    finally:
        await feed.close()
        if notifier:
            await notifier.close()

    if not args.telegram_only:
        for result in summary.results:
            print_signal(result)
        print_summary(summary, notify)
    return 0


async def cmd_check_status(args: argparse.Namespace, settings: Settings, db: Database) -> int:
    hours = args.hours if args.hours is not None else settings.status_check_hours
    range_hours = args.range if args.range is not None else settings.status_check_range_hours

    feed = build_feed(settings)
    service = StatusCheckService(
        feed=feed,
        repo=SignalRepository(db),
        rate_limiter=RateLimiter(settings.signal_check_delay_seconds),
        default_interval=settings.interval,
        page_limit=settings.history_page_limit,
    )
    try:
        summary = await service.run(hours=hours, range_hours=range_hours)
    finally:
        await feed.close()

    print(f"Checked signals from {summary.start:%Y-%m-%d %H:%M} to {summary.end:%Y-%m-%d %H:%M}")
    print(f"\n{'Status':<12} {'Count':>6}")
    print("-" * 19)
    for status, count in summary.rows():
        print(f"{status:<12} {count:>6}")
    if summary.fetch_failures:
        print(f"\nCandle fetch failures: {summary.fetch_failures}")
    print(f"Elapsed: {summary.elapsed_seconds}s")
    return 0


async def run(args: argparse.Namespace) -> int:
    config = None
    if args.command == "analyze":
        config, settings = load_analysis_config(args.config)
    else:
        settings = get_settings()
    db = Database(settings.database_url)
    try:
        if args.command == "init-db":
            await db.create_tables()
            print("Table crypto_signals ready")
            return 0
        if args.command == "analyze":
            return await cmd_analyze(args, config, settings, db)
        return await cmd_check_status(args, settings, db)
    finally:
        await db.close()


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    configure_logging(args.verbose)

    if args.command == "serve":
        from app.main import main as serve

        serve(args.verbose)
        return 0

    return asyncio.run(run(args))


if __name__ == "__main__":
    sys.exit(main())
