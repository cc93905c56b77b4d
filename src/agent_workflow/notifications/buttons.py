"""Inline keyboard markup for Telegram notifications."""

from typing import Any, Dict


def view_pr_button(pr_url: str) -> Dict[str, Any]:
    return {"inline_keyboard": [[{"text": "🔀 View PR", "url": pr_url}]]}


def view_issue_button(issue_url: str) -> Dict[str, Any]:
    return {"inline_keyboard": [[{"text": "📋 View Issue", "url": issue_url}]]}


def issue_review_buttons(issue_number: int, issue_url: str) -> Dict[str, Any]:
    """View Issue plus approve / request changes / reject callbacks."""
    return {
        "inline_keyboard": [
            [{"text": "📋 View Issue", "url": issue_url}],
            [
                {"text": "✅ Approve", "callback_data": f"approve:{issue_number}"},
                {"text": "📝 Request Changes", "callback_data": f"changes:{issue_number}"},
                {"text": "❌ Reject", "callback_data": f"reject:{issue_number}"},
            ],
        ]
    }


def pr_review_buttons(issue_number: int, pr_url: str) -> Dict[str, Any]:
    return {
        "inline_keyboard": [
            [{"text": "🔀 View PR", "url": pr_url}],
            [
                {"text": "✅ Approve", "callback_data": f"approve:{issue_number}"},
                {"text": "📝 Request Changes", "callback_data": f"changes:{issue_number}"},
            ],
        ]
    }


def clarification_buttons(issue_number: int, issue_url: str) -> Dict[str, Any]:
    return {
        "inline_keyboard": [
            [{"text": "💬 Answer on Issue", "url": issue_url}],
            [{"text": "✅ Clarification Received", "callback_data": f"clarified:{issue_number}"}],
        ]
    }
