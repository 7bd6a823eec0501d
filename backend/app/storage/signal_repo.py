"""Signal repository (PostgreSQL)."""

import logging
from datetime import datetime

from pydantic import ValidationError
from sqlalchemy import func, or_, select, update

from app.storage.database import CryptoSignalTable, Database, get_database
from core.models.signal import PersistedSignal, SignalStatus, SignalType, Strength

logger = logging.getLogger(__name__)

_OPEN_STATUS = or_(
    CryptoSignalTable.status.is_(None),
    CryptoSignalTable.status == SignalStatus.PROCESSING.value,
)


class SignalRepository:
    """Repository for crypto_signals operations."""

    def __init__(self, db: Database | None = None):
        self._db = db

    @property
    def db(self) -> Database:
        return self._db or get_database()

    async def create(self, signal: PersistedSignal) -> PersistedSignal:
        """Insert a new signal; returns a copy carrying the generated id."""
        async with self.db.session() as session:
            row = CryptoSignalTable(
                flow_id=signal.flow_id,
                symbol=signal.symbol,
                strategy=signal.strategy,
                type=signal.type.value,
                strength=signal.strength.value,
                price=signal.price,
                ema=signal.ema_fast,
                ema_slow=signal.ema_slow,
                rsi=signal.rsi,
                macd=signal.macd_line,
                macd_signal=signal.macd_signal,
                macd_histogram=signal.macd_histogram,
                atr=signal.atr,
                stop_loss=signal.stop_loss,
                take_profit=signal.take_profit,
                long_score=signal.long_score,
                short_score=signal.short_score,
                long_probability=signal.long_probability,
                short_probability=signal.short_probability,
                macd_hist_atr=signal.macd_hist_atr,
                ema_distance_atr=signal.ema_distance_atr,
                atr_pct=signal.atr_pct,
                score_diff=signal.score_diff,
                interval=signal.interval,
                limit=signal.limit,
                reason=signal.reason,
                sent_to_telegram=signal.sent_to_telegram,
                created_at=signal.created_at,
                signal_time=signal.signal_time,
                status=signal.status.value if signal.status else None,
            )
            session.add(row)
            await session.flush()
            return signal.model_copy(update={"id": row.id})

    async def update_status(self, signal_id: int, status: SignalStatus) -> bool:
        """Set status on a row whose status is still NULL or PROCESSING.

        Returns:
            True if a row was updated
        """
        async with self.db.session() as session:
            stmt = (
                update(CryptoSignalTable)
                .where(CryptoSignalTable.id == signal_id, _OPEN_STATUS)
                .values(status=status.value)
            )
            result = await session.execute(stmt)
            return result.rowcount > 0

    async def find_recent(
        self,
        symbol: str,
        signal_type: SignalType,
        since: datetime,
        strategy: str | None = None,
        strength: Strength | None = None,
        sent_to_telegram: bool | None = None,
    ) -> list[PersistedSignal]:
        """Signals of one symbol/type created at or after ``since``."""
        async with self.db.session() as session:
            stmt = select(CryptoSignalTable).where(
                CryptoSignalTable.symbol == symbol,
                CryptoSignalTable.type == signal_type.value,
                CryptoSignalTable.created_at >= since,
            )
            if strategy is not None:
                stmt = stmt.where(CryptoSignalTable.strategy == strategy)
            if strength is not None:
                stmt = stmt.where(CryptoSignalTable.strength == strength.value)
            if sent_to_telegram is not None:
                stmt = stmt.where(CryptoSignalTable.sent_to_telegram == sent_to_telegram)
            stmt = stmt.order_by(CryptoSignalTable.created_at.desc())

            result = await session.execute(stmt)
            return self._rows_to_signals(result.scalars().all())

    async def get_pending(self, start: datetime, end: datetime) -> list[PersistedSignal]:
        """Evaluable signals with open status decided inside [start, end].

        The decision instant is signal_time, or created_at when it is NULL.
        """
        decision_time = func.coalesce(CryptoSignalTable.signal_time, CryptoSignalTable.created_at)
        async with self.db.session() as session:
            stmt = (
                select(CryptoSignalTable)
                .where(
                    _OPEN_STATUS,
                    CryptoSignalTable.type.in_([SignalType.BUY.value, SignalType.SELL.value]),
                    CryptoSignalTable.stop_loss.is_not(None),
                    CryptoSignalTable.take_profit.is_not(None),
                    decision_time >= start,
                    decision_time <= end,
                )
                .order_by(decision_time.asc())
            )
            result = await session.execute(stmt)
            return self._rows_to_signals(result.scalars().all())

    async def get_recent(
        self,
        limit: int = 100,
        symbol: str | None = None,
        signal_type: SignalType | None = None,
        status: SignalStatus | None = None,
    ) -> list[PersistedSignal]:
        """Get recent signals, newest first."""
        async with self.db.session() as session:
            stmt = select(CryptoSignalTable)
            if symbol:
                stmt = stmt.where(CryptoSignalTable.symbol == symbol)
            if signal_type:
                stmt = stmt.where(CryptoSignalTable.type == signal_type.value)
            if status:
                stmt = stmt.where(CryptoSignalTable.status == status.value)
            stmt = stmt.order_by(CryptoSignalTable.created_at.desc()).limit(limit)

            result = await session.execute(stmt)
            return self._rows_to_signals(result.scalars().all())

    async def get_by_id(self, signal_id: int) -> PersistedSignal | None:
        """Get a signal by ID."""
        async with self.db.session() as session:
            stmt = select(CryptoSignalTable).where(CryptoSignalTable.id == signal_id)
            result = await session.execute(stmt)
            row = result.scalar_one_or_none()

            if row is None:
                return None
            return self._row_to_signal(row)

    async def get_stats(self, symbol: str | None = None) -> dict:
        """Get outcome statistics.

        Args:
            symbol: Optional symbol filter

        Returns:
            Dict with done/missed/processing/unchecked counts and win_rate
        """
        async with self.db.session() as session:
            stmt = select(
                CryptoSignalTable.status,
                func.count().label("count"),
            ).group_by(CryptoSignalTable.status)

            if symbol:
                stmt = stmt.where(CryptoSignalTable.symbol == symbol)

            result = await session.execute(stmt)
            rows = result.all()

        counts = {status.value: 0 for status in SignalStatus}
        unchecked = 0
        for row in rows:
            if row.status is None:
                unchecked = row.count
            else:
                counts[row.status] = row.count
        return build_stats(counts, unchecked)

    @classmethod
    def _rows_to_signals(cls, rows) -> list[PersistedSignal]:
        """Convert rows, skipping any that no longer validate.

        Levels stored at NUMERIC(20, 8) can round onto the price for very
        low-priced pairs; one such row must not fail the whole query.
        """
        signals = []
        for row in rows:
            try:
                signals.append(cls._row_to_signal(row))
            except ValidationError as e:
                logger.warning(f"Skipping signal {row.id} ({row.symbol}): {e}")
        return signals

    @staticmethod
    def _row_to_signal(row: CryptoSignalTable) -> PersistedSignal:
        """Convert database row to PersistedSignal."""
        return PersistedSignal(
            id=row.id,
            flow_id=row.flow_id or "",
            symbol=row.symbol,
            strategy=row.strategy,
            type=SignalType(row.type),
            strength=Strength(row.strength),
            price=row.price,
            ema_fast=row.ema,
            ema_slow=row.ema_slow,
            rsi=row.rsi,
            macd_line=row.macd,
            macd_signal=row.macd_signal,
            macd_histogram=row.macd_histogram,
            atr=row.atr,
            stop_loss=row.stop_loss,
            take_profit=row.take_profit,
            long_score=row.long_score,
            short_score=row.short_score,
            long_probability=row.long_probability,
            short_probability=row.short_probability,
            macd_hist_atr=row.macd_hist_atr if row.macd_hist_atr is not None else 0,
            ema_distance_atr=row.ema_distance_atr if row.ema_distance_atr is not None else 0,
            atr_pct=row.atr_pct if row.atr_pct is not None else 0,
            score_diff=row.score_diff or 0,
            interval=row.interval,
            limit=row.limit,
            reason=row.reason or "",
            sent_to_telegram=row.sent_to_telegram,
            created_at=row.created_at,
            signal_time=row.signal_time,
            status=SignalStatus(row.status) if row.status else None,
        )


def build_stats(counts: dict[str, int], unchecked: int = 0) -> dict:
    """Shape status counts into the stats payload."""
    done = counts.get(SignalStatus.DONE.value, 0)
    missed = counts.get(SignalStatus.MISSED.value, 0)
    processing = counts.get(SignalStatus.PROCESSING.value, 0)
    resolved = done + missed
    return {
        "done_count": done,
        "missed_count": missed,
        "processing_count": processing,
        "unchecked_count": unchecked,
        "total_count": resolved + processing + unchecked,
        "win_rate": done / resolved if resolved > 0 else 0.0,
    }
