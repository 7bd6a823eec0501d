"""Business services."""

from app.services.signal_analysis import AnalysisSummary, SignalAnalysisService, SymbolResult
from app.services.status_checker import StatusCheckService, StatusCheckSummary

__all__ = [
    "AnalysisSummary",
    "SignalAnalysisService",
    "SymbolResult",
    "StatusCheckService",
    "StatusCheckSummary",
]
