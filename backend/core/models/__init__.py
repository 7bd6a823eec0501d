"""Data models shared by the live passes and the API."""

from core.models.candle import Candle, CandleSeries
from core.models.config import AtrGateConfig, StrategyConfig
from core.models.signal import (
    ClassifiedSignal,
    IndicatorSnapshot,
    PersistedSignal,
    SignalStatus,
    SignalType,
    Strength,
)

__all__ = [
    "Candle",
    "CandleSeries",
    "AtrGateConfig",
    "StrategyConfig",
    "ClassifiedSignal",
    "IndicatorSnapshot",
    "PersistedSignal",
    "SignalStatus",
    "SignalType",
    "Strength",
]
