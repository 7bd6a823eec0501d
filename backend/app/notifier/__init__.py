"""Outbound notification channels."""

from app.notifier.telegram import TelegramNotifier, format_signal_message

__all__ = ["TelegramNotifier", "format_signal_message"]
