"""Alert side effects: webhook / Telegram messages and opening the product page.

Transports:
- DiscordNotifier: POST {"content": text} to DISCORD_WEBHOOK.
- TelegramNotifier: python-telegram-bot >= 20 (async based), enabled when
  both TELEGRAM_BOT_TOKEN and TELEGRAM_CHAT_ID are set.

Every transport is best-effort. Errors are logged and swallowed here; an alert
counts as sent once it has been attempted. NotificationDispatcher runs the
sends on a worker thread so a slow webhook never holds up the poll loop.
"""
from __future__ import annotations

import asyncio
import logging
import webbrowser
from concurrent.futures import Future, ThreadPoolExecutor
from typing import List, Optional, Protocol

import requests
from telegram import Bot

from config import MonitorConfig
from stock_checker import AlertIntent

logger = logging.getLogger(__name__)

WEBHOOK_TIMEOUT = 10


class Notifier(Protocol):
    def send(self, text: str) -> None: ...


def format_alert_message(alert: AlertIntent, tcin: str, product_url: str) -> str:
    return (
        f"🚨 **Available!** Status: {alert.shipping_status} | TCIN {tcin} "
        f"| Qty: {alert.quantity_label} | [PDP]({product_url})"
    )


class DiscordNotifier:
    def __init__(self, webhook_url: str, session: Optional[requests.Session] = None) -> None:
        self.webhook_url = webhook_url
        self._http = session or requests

    def send(self, text: str) -> None:
        if not self.webhook_url:
            return
        try:
            resp = self._http.post(self.webhook_url, json={"content": text}, timeout=WEBHOOK_TIMEOUT)
            resp.raise_for_status()
            logger.info("Sent Discord alert")
        except requests.RequestException as e:
            logger.error("Discord webhook error: %s", e)


class TelegramNotifier:
    def __init__(self, token: Optional[str], chat_id: Optional[str]) -> None:
        self.token = token
        self.chat_id = chat_id
        self._bot: Bot | None = Bot(self.token) if self.token else None

    @property
    def active(self) -> bool:
        return self._bot is not None and bool(self.chat_id)

    async def _send_async(self, text: str) -> None:
        if not self.active:
            logger.debug("Telegram notifier inactive; skipping send: %s", text)
            return
        try:
            async with self._bot:
                await self._bot.send_message(chat_id=self.chat_id, text=text, disable_web_page_preview=True)
            logger.info("Sent Telegram alert")
        except Exception as e:  # telegram.error.* plus transport errors
            logger.error("Error sending Telegram message: %s", e)

    def send(self, text: str) -> None:
        """Sync wrapper; called from the dispatcher thread, which has no running loop."""
        asyncio.run(self._send_async(text))


def build_notifiers(config: MonitorConfig) -> List[Notifier]:
    notifiers: List[Notifier] = []
    if config.discord_webhook:
        notifiers.append(DiscordNotifier(config.discord_webhook))
    if config.telegram_token and config.telegram_chat_id:
        notifiers.append(TelegramNotifier(config.telegram_token, config.telegram_chat_id))
    return notifiers


class NotificationDispatcher:
    """Fire-and-forget fan-out of alert text to every configured notifier."""

    def __init__(self, notifiers: List[Notifier]) -> None:
        self.notifiers = notifiers
        self._executor: ThreadPoolExecutor | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.notifiers)

    def _get_executor(self) -> ThreadPoolExecutor:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notify")
        return self._executor

    def _deliver(self, text: str) -> None:
        for notifier in self.notifiers:
            try:
                notifier.send(text)
            except Exception:
                logger.exception("Notifier %s failed", type(notifier).__name__)

    def submit(self, text: str) -> Future | None:
        if not self.notifiers:
            logger.debug("No notifier configured; alert not sent")
            return None
        return self._get_executor().submit(self._deliver, text)

    def shutdown(self, wait: bool = True) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None


def open_product_page(url: str) -> bool:
    """Open the product page for manual checkout. Nothing is automated past this."""
    try:
        opened = webbrowser.open(url)
    except (webbrowser.Error, OSError) as e:
        logger.error("Could not open %s: %s", url, e)
        return False
    if not opened:
        logger.warning("No browser available to open %s", url)
    return opened


__all__ = [
    "Notifier",
    "DiscordNotifier",
    "TelegramNotifier",
    "NotificationDispatcher",
    "build_notifiers",
    "format_alert_message",
    "open_product_page",
]
