"""REST API routes (read-only)."""

import logging
from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel

from app.config import get_settings
from app.storage import SignalRepository
from core.models.signal import PersistedSignal, SignalStatus, SignalType
from core.strategy import list_profiles

logger = logging.getLogger(__name__)

router = APIRouter()


# Response models
class SignalResponse(BaseModel):
    """Signal response model."""

    id: int
    flow_id: str
    symbol: str
    strategy: str
    type: str
    strength: str
    price: float
    rsi: float
    ema_fast: float
    ema_slow: float
    macd_line: float
    macd_signal: float
    macd_histogram: float
    atr: float
    stop_loss: Optional[float] = None
    take_profit: Optional[float] = None
    long_probability: int
    short_probability: int
    interval: str
    reason: str
    sent_to_telegram: bool
    created_at: datetime
    signal_time: Optional[datetime] = None
    status: Optional[str] = None

    @classmethod
    def from_signal(cls, s: PersistedSignal) -> "SignalResponse":
        return cls(
            id=s.id,
            flow_id=s.flow_id,
            symbol=s.symbol,
            strategy=s.strategy,
            type=s.type.value,
            strength=s.strength.value,
            price=float(s.price),
            rsi=float(s.rsi),
            ema_fast=float(s.ema_fast),
            ema_slow=float(s.ema_slow),
            macd_line=float(s.macd_line),
            macd_signal=float(s.macd_signal),
            macd_histogram=float(s.macd_histogram),
            atr=float(s.atr),
            stop_loss=float(s.stop_loss) if s.stop_loss is not None else None,
            take_profit=float(s.take_profit) if s.take_profit is not None else None,
            long_probability=s.long_probability,
            short_probability=s.short_probability,
            interval=s.interval,
            reason=s.reason,
            sent_to_telegram=s.sent_to_telegram,
            created_at=s.created_at,
            signal_time=s.signal_time,
            status=s.status.value if s.status else None,
        )


class SystemStatus(BaseModel):
    """System status response."""

    status: str
    version: str
    symbols: list[str]
    interval: str
    strategy: str
    profiles: list[str]


# Dependency for signal repository
def get_signal_repo() -> SignalRepository:
    return SignalRepository()


@router.get("/status", response_model=SystemStatus)
async def get_status():
    """Get system status."""
    settings = get_settings()
    return SystemStatus(
        status="running",
        version="0.1.0",
        symbols=settings.symbols,
        interval=settings.interval,
        strategy=settings.strategy,
        profiles=list_profiles(),
    )


@router.get("/signals", response_model=list[SignalResponse])
async def get_signals(
    symbol: Optional[str] = Query(None, description="Filter by symbol (e.g. BTCUSDT)"),
    type: Optional[SignalType] = Query(None, description="Filter by type (BUY, SELL, HOLD)"),
    status: Optional[SignalStatus] = Query(None, description="Filter by status"),
    limit: int = Query(100, ge=1, le=1000, description="Maximum signals to return"),
    repo: SignalRepository = Depends(get_signal_repo),
):
    """Get recent signals, newest first."""
    signals = await repo.get_recent(
        limit=limit,
        symbol=symbol.upper() if symbol else None,
        signal_type=type,
        status=status,
    )
    return [SignalResponse.from_signal(s) for s in signals]


@router.get("/signals/stats")
async def get_stats(
    symbol: Optional[str] = Query(None, description="Filter by symbol"),
    repo: SignalRepository = Depends(get_signal_repo),
):
    """Get outcome statistics (DONE / MISSED / PROCESSING)."""
    stats = await repo.get_stats(symbol=symbol.upper() if symbol else None)
    stats["win_rate"] = round(stats["win_rate"] * 100, 2)
    return stats


@router.get("/signals/{signal_id}", response_model=SignalResponse)
async def get_signal(signal_id: int, repo: SignalRepository = Depends(get_signal_repo)):
    """Get a specific signal by ID."""
    signal = await repo.get_by_id(signal_id)

    if signal is None:
        raise HTTPException(status_code=404, detail="Signal not found")

    return SignalResponse.from_signal(signal)
