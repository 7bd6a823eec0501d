"""Database connection and table definitions."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    text,
)
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import declarative_base

from app.config import get_settings

logger = logging.getLogger(__name__)

Base = declarative_base()


class CryptoSignalTable(Base):
    """Classified signals, one row per symbol per analysis run."""

    __tablename__ = "crypto_signals"

    id = Column(BigInteger, primary_key=True, autoincrement=True)
    flow_id = Column(String(36), nullable=True)  # UUID of the analysis run

    symbol = Column(String(20), nullable=False)
    strategy = Column(String(50), nullable=False, default="EMA+RSI+MACD")
    type = Column(String(4), nullable=False)  # BUY / SELL / HOLD
    strength = Column(String(6), nullable=False)  # STRONG / MEDIUM / WEAK

    price = Column(Numeric(20, 8), nullable=False)

    # Indicators
    ema = Column(Numeric(20, 8), nullable=True)  # Fast EMA
    ema_slow = Column(Numeric(20, 8), nullable=True)
    rsi = Column(Numeric(8, 4), nullable=True)
    macd = Column(Numeric(20, 8), nullable=True)
    macd_signal = Column(Numeric(20, 8), nullable=True)
    macd_histogram = Column(Numeric(20, 8), nullable=True)
    atr = Column(Numeric(20, 8), nullable=True)

    # Protective levels (BUY/SELL only)
    stop_loss = Column(Numeric(20, 8), nullable=True)
    take_profit = Column(Numeric(20, 8), nullable=True)

    # Scoring
    long_score = Column(Integer, nullable=False, default=0)
    short_score = Column(Integer, nullable=False, default=0)
    long_probability = Column(Integer, nullable=False, default=0)
    short_probability = Column(Integer, nullable=False, default=0)

    # ATR-normalised diagnostics
    macd_hist_atr = Column(Numeric(20, 8), nullable=True)
    ema_distance_atr = Column(Numeric(20, 8), nullable=True)
    atr_pct = Column(Numeric(12, 6), nullable=True)
    score_diff = Column(Integer, nullable=True)

    # Request parameters
    interval = Column(String(10), nullable=False, default="15m")
    limit = Column(Integer, nullable=False, default=200)

    reason = Column(Text, nullable=True)
    sent_to_telegram = Column(Boolean, nullable=False, default=False)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=text("NOW()"))
    updated_at = Column(
        DateTime(timezone=True), server_default=text("NOW()"), onupdate=text("NOW()")
    )
    signal_time = Column(DateTime(timezone=True), nullable=True)  # created_at + 4h
    status = Column(String(10), nullable=True)  # NULL / PROCESSING / DONE / MISSED

    __table_args__ = (
        Index("idx_crypto_signals_symbol_type_strength_created", "symbol", "type", "strength", "created_at"),
        Index("idx_crypto_signals_symbol_strategy_created", "symbol", "strategy", "created_at"),
        Index("idx_crypto_signals_status_signal_time", "status", "signal_time"),
        Index("idx_crypto_signals_flow_id", "flow_id"),
        Index("idx_crypto_signals_sent", "sent_to_telegram"),
    )


class Database:
    """Async engine plus a session factory for one PostgreSQL database.

    ``database_url`` must name an async driver (``postgresql+asyncpg://``);
    ``Settings`` rewrites plain PostgreSQL URLs accordingly.
    """

    def __init__(self, database_url: str | None = None, echo: bool | None = None):
        settings = get_settings()
        # Batch passes run sequentially; a small pool is enough
        self.engine = create_async_engine(
            database_url or settings.database_url,
            echo=settings.debug if echo is None else echo,
            pool_size=5,
            max_overflow=5,
            pool_pre_ping=True,
            pool_recycle=3600,
        )
        self.session_factory = async_sessionmaker(
            self.engine, class_=AsyncSession, expire_on_commit=False
        )

    async def create_tables(self) -> None:
        """Create crypto_signals and its indexes if missing."""
        async with self.engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info(f"Table {CryptoSignalTable.__tablename__} ready")

    @asynccontextmanager
    async def session(self) -> AsyncGenerator[AsyncSession, None]:
        """Session committed on success, rolled back on any error."""
        async with self.session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    async def close(self) -> None:
        await self.engine.dispose()


_db: Database | None = None


def get_database() -> Database:
    """Process-wide Database built from Settings on first use."""
    global _db
    if _db is None:
        _db = Database()
    return _db


async def init_database() -> Database:
    db = get_database()
    await db.create_tables()
    return db
