"""Telegram Bot API notifier."""

import html
import logging
from decimal import Decimal

import httpx

from core.models.signal import ClassifiedSignal, SignalType, Strength

logger = logging.getLogger(__name__)

API_URL = "https://api.telegram.org"

_STRENGTH_ICON = {
    Strength.STRONG: "🔥",
    Strength.MEDIUM: "⚡",
    Strength.WEAK: "💡",
}


def _money(value: Decimal | None) -> str:
    return "N/A" if value is None else f"${value:,.2f}"


def format_signal_message(
    signal: ClassifiedSignal, symbol: str, strategy: str, ema_period: int = 20
) -> str:
    """Render a signal as a Telegram HTML message."""
    icon = "🟢" if signal.type == SignalType.BUY else "🔴"
    lines = [
        f"<b>{icon} {signal.type.value} Signal - {html.escape(symbol)}</b>",
        f"<b>Strategy:</b> {html.escape(strategy)}",
        f"<b>Strength:</b> {_STRENGTH_ICON.get(signal.strength, '📊')} {signal.strength.value}",
        "",
        f"<b>Price:</b> {_money(signal.price)}",
        f"<b>RSI:</b> {signal.rsi:.2f}",
        f"<b>EMA({ema_period}):</b> {_money(signal.ema_fast)}",
        f"<b>MACD:</b> {signal.macd_line:.4f}",
        f"<b>MACD Histogram:</b> {signal.macd_histogram:.4f}",
        "",
        f"<b>Stop Loss:</b> {_money(signal.stop_loss)}",
        f"<b>Take Profit:</b> {_money(signal.take_profit)}",
        "",
        "<b>Probabilities:</b>",
        f"  BUY: {signal.long_probability}%",
        f"  SELL: {signal.short_probability}%",
    ]
    if signal.reason:
        lines += ["", f"<b>Reason:</b> {html.escape(signal.reason)}"]
    return "\n".join(lines) + "\n"


class TelegramNotifier:
    """Send signals to one chat. Failures return False and never raise."""

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        timeout: float = 10.0,
        api_url: str = API_URL,
        ema_period: int = 20,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.bot_token = bot_token
        self.chat_id = chat_id
        self.timeout = timeout
        self.api_url = api_url
        self.ema_period = ema_period
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    @property
    def configured(self) -> bool:
        return bool(self.bot_token and self.chat_id)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_url,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    async def close(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()
            self._client = None

    async def send(self, signal: ClassifiedSignal, symbol: str, strategy: str) -> bool:
        if not self.configured:
            logger.warning("Telegram credentials not configured")
            return False

        payload = {
            "chat_id": self.chat_id,
            "text": format_signal_message(signal, symbol, strategy, self.ema_period),
            "parse_mode": "HTML",
        }
        try:
            client = await self._get_client()
            response = await client.post(f"/bot{self.bot_token}/sendMessage", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"Exception sending Telegram message for {symbol}: {e!r}")
            return False

        if response.is_success:
            return True

        logger.error(
            f"Failed to send Telegram message for {symbol}: "
            f"HTTP {response.status_code} {response.text[:200]}"
        )
        return False
