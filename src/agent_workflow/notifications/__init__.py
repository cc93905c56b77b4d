"""Telegram notifications for workflow transitions."""

from .notifier import WorkflowNotifier, escape_html
from .telegram import TelegramClient, parse_chat_id

__all__ = ["WorkflowNotifier", "escape_html", "TelegramClient", "parse_chat_id"]
