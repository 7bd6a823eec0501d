"""API endpoints."""

from app.api.routes import get_signal_repo, router

__all__ = [
    "get_signal_repo",
    "router",
]
