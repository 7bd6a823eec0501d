"""Data storage layer."""

from app.storage.database import CryptoSignalTable, Database, get_database, init_database
from app.storage.signal_repo import SignalRepository, build_stats

__all__ = [
    "CryptoSignalTable",
    "Database",
    "get_database",
    "init_database",
    "SignalRepository",
    "build_stats",
]
