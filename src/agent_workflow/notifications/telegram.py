"""Telegram Bot API transport with bounded retry."""

import logging
import time
from typing import Any, Callable, Dict, Optional, Tuple

import requests

from ..core.config import TelegramConfig

logger = logging.getLogger(__name__)

TELEGRAM_API_URL = "https://api.telegram.org/bot"


def parse_chat_id(raw: str) -> Tuple[str, Optional[int]]:
    """Split "chatId:threadId" (topic supergroups) into its parts."""
    head, sep, tail = raw.rpartition(":")
    if sep and head and tail.isdigit():
        return head, int(tail)
    return raw, None


class TelegramClient:
    """
    Sends HTML messages to the admin (actionable) and info channels.

    Failed sends are retried max_retries times with a doubling delay, then
    logged and reported as False. Nothing here raises into a workflow.
    """

    def __init__(
        self,
        config: TelegramConfig,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.config = config
        self.session = session or requests.Session()
        self._sleep = sleep

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    def _send(self, raw_chat_id: Optional[str], message: str, parse_mode: str, reply_markup: Optional[Dict[str, Any]]) -> bool:
        if not self.config.enabled:
            return True
        if not self.config.bot_token:
            logger.warning("Telegram notification skipped: missing TELEGRAM_BOT_TOKEN")
            return False
        if not raw_chat_id:
            logger.warning("Telegram notification skipped: AGENT_TELEGRAM_CHAT_ID not configured")
            return False

        chat_id, thread_id = parse_chat_id(raw_chat_id)
        payload: Dict[str, Any] = {
            "chat_id": chat_id,
            "text": message,
            "parse_mode": parse_mode,
            "disable_web_page_preview": True,
        }
        if thread_id:
            payload["message_thread_id"] = thread_id
        if reply_markup:
            payload["reply_markup"] = reply_markup

        url = f"{TELEGRAM_API_URL}{self.config.bot_token}/sendMessage"
        attempts = max(1, self.config.max_retries)
        delay = self.config.retry_delay_seconds
        for attempt in range(1, attempts + 1):
            try:
                response = self.session.post(url, json=payload, timeout=self.config.request_timeout)
                if response.status_code != 200:
                    raise requests.exceptions.HTTPError(
                        f"Telegram API error {response.status_code}: {response.text[:200]}"
                    )
                logger.debug(f"Telegram notification sent to {raw_chat_id}")
                return True
            except requests.exceptions.RequestException as e:
                logger.warning(
                    f"Telegram notification attempt {attempt}/{attempts} failed (chat_id: {raw_chat_id}): {e}"
                )
                if attempt < attempts:
                    self._sleep(delay)
                    delay *= 2

        logger.error(f"All retry attempts exhausted. Telegram notification not sent. (chat_id: {raw_chat_id})")
        return False

    def send_to_admin(
        self,
        message: str,
        parse_mode: str = "HTML",
        inline_keyboard: Optional[Dict[str, Any]] = None,
    ) -> bool:
        return self._send(self.config.admin_chat_id, message, parse_mode, inline_keyboard)

    def send_to_info_channel(
        self,
        message: str,
        parse_mode: str = "HTML",
        inline_keyboard: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Non-actionable updates. Falls back to the admin chat when no info chat is set."""
        chat_id = self.config.info_chat_id or self.config.admin_chat_id
        return self._send(chat_id, message, parse_mode, inline_keyboard)
