"""Tests for the Telegram client and workflow notifier."""

from unittest.mock import MagicMock

import pytest
import requests

from agent_workflow.core.config import TelegramConfig
from agent_workflow.core.models import PhaseProgress, ReviewDecision
from agent_workflow.notifications import TelegramClient, WorkflowNotifier, escape_html, parse_chat_id


def _response(status_code=200, text="ok"):
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    return response


def _client(session, sleeps=None, **config):
    config.setdefault("bot_token", "123:abc")
    config.setdefault("admin_chat_id", "-100200")
    recorded = sleeps if sleeps is not None else []
    return TelegramClient(TelegramConfig(**config), session=session, sleep=recorded.append)


# ---- Chat ids ----

@pytest.mark.parametrize("raw, expected", [
    ("-1001234", ("-1001234", None)),
    ("-1001234:42", ("-1001234", 42)),
    ("@channel", ("@channel", None)),
    ("-1001234:general", ("-1001234:general", None)),
])
def test_parse_chat_id(raw, expected):
    assert parse_chat_id(raw) == expected


# ---- TelegramClient ----

class TestTelegramClient:
    def test_sends_html_message(self):
        session = MagicMock()
        session.post.return_value = _response()

        assert _client(session).send_to_admin("<b>hi</b>") is True

        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == "https://api.telegram.org/bot123:abc/sendMessage"
        assert payload["chat_id"] == "-100200"
        assert payload["parse_mode"] == "HTML"
        assert "message_thread_id" not in payload

    def test_thread_id_and_keyboard(self):
        session = MagicMock()
        session.post.return_value = _response()
        keyboard = {"inline_keyboard": [[{"text": "x", "url": "https://example.com"}]]}

        _client(session, admin_chat_id="-100200:7").send_to_admin("hi", inline_keyboard=keyboard)

        payload = session.post.call_args.kwargs["json"]
        assert payload["chat_id"] == "-100200"
        assert payload["message_thread_id"] == 7
        assert payload["reply_markup"] == keyboard

    def test_retries_with_doubling_delay(self):
        session = MagicMock()
        session.post.side_effect = [_response(500, "boom"), requests.exceptions.ConnectionError("down"), _response()]
        sleeps = []

        assert _client(session, sleeps, retry_delay_seconds=2.0).send_to_admin("hi") is True

        assert session.post.call_count == 3
        assert sleeps == [2.0, 4.0]

    def test_gives_up_after_max_retries(self):
        session = MagicMock()
        session.post.return_value = _response(429, "Too Many Requests")
        sleeps = []

        assert _client(session, sleeps, max_retries=2).send_to_admin("hi") is False

        assert session.post.call_count == 2
        assert sleeps == [3.0]

    def test_disabled_sends_nothing(self):
        session = MagicMock()
        assert _client(session, enabled=False).send_to_admin("hi") is True
        session.post.assert_not_called()

    def test_missing_token_or_chat(self):
        session = MagicMock()
        assert _client(session, bot_token=None).send_to_admin("hi") is False
        assert _client(session, admin_chat_id=None).send_to_admin("hi") is False
        session.post.assert_not_called()

    def test_info_channel_falls_back_to_admin(self):
        session = MagicMock()
        session.post.return_value = _response()

        _client(session).send_to_info_channel("fyi")
        assert session.post.call_args.kwargs["json"]["chat_id"] == "-100200"

        _client(session, info_chat_id="-100300").send_to_info_channel("fyi")
        assert session.post.call_args.kwargs["json"]["chat_id"] == "-100300"


# ---- WorkflowNotifier ----

def _notifier():
    client = MagicMock(spec=TelegramClient)
    client.send_to_admin.return_value = True
    client.send_to_info_channel.return_value = True
    return WorkflowNotifier(client, repo_full_name="acme/app"), client


class TestWorkflowNotifier:
    def test_escape_html(self):
        assert escape_html("<script> & co") == "&lt;script&gt; &amp; co"
        assert escape_html(None) == ""

    def test_design_ready_has_review_buttons(self):
        notifier, client = _notifier()

        notifier.tech_design_ready("Add <dark> mode", 42)

        message = client.send_to_admin.call_args.args[0]
        keyboard = client.send_to_admin.call_args.kwargs["inline_keyboard"]
        assert "Technical Design Ready for Review!" in message
        assert "Add &lt;dark&gt; mode" in message
        assert "https://github.com/acme/app/issues/42" in message
        assert {"text": "✅ Approve", "callback_data": "approve:42"} in keyboard["inline_keyboard"][1]

    def test_pr_ready_mentions_phase(self):
        notifier, client = _notifier()

        notifier.pr_ready("Add dark mode", 42, 77, phase=PhaseProgress(current=2, total=3))

        message = client.send_to_admin.call_args.args[0]
        assert "Implementation Complete - PR Ready (Phase 2/3)!" in message
        assert "https://github.com/acme/app/pull/77" in message

    def test_pr_review_complete(self):
        notifier, client = _notifier()

        notifier.pr_review_complete("t", 42, 77, ReviewDecision.REQUEST_CHANGES, "Missing tests")

        message = client.send_to_admin.call_args.args[0]
        assert "Changes Requested" in message
        assert "Missing tests" in message

    def test_agent_error_truncates(self):
        notifier, client = _notifier()

        notifier.agent_error("Implementation", "t", 42, "x" * 500)

        message = client.send_to_admin.call_args.args[0]
        assert "x" * 200 in message
        assert "x" * 201 not in message

    def test_progress_goes_to_info_channel(self):
        notifier, client = _notifier()

        notifier.agent_started("Product Design", "t", 42, "new")
        notifier.triage_complete("t", 42, {"domain": "auth", "size": None})

        assert client.send_to_info_channel.call_count == 2
        assert "domain: auth" in client.send_to_info_channel.call_args.args[0]
        assert "size" not in client.send_to_info_channel.call_args.args[0]
        client.send_to_admin.assert_not_called()

    def test_phase_complete_names_next_phase(self):
        notifier, client = _notifier()

        notifier.phase_complete("t", 42, PhaseProgress(current=1, total=3), pr_number=101)

        assert "Starting Phase 2/3" in client.send_to_admin.call_args.args[0]

    def test_transport_error_is_reported_not_raised(self):
        notifier, client = _notifier()
        client.send_to_admin.side_effect = RuntimeError("network")

        assert notifier.batch_complete("Implementation", 3, 2, 1) is False

    def test_disabled_notifier(self):
        notifier = WorkflowNotifier(None)
        assert notifier.enabled is False
        assert notifier.needs_clarification("Tech Design", "t", 42, "Which DB?") is True
