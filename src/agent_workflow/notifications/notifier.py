"""Workflow notifications: one call per significant transition."""

import html
import logging
from typing import Any, Dict, Optional

from .buttons import clarification_buttons, issue_review_buttons, pr_review_buttons, view_issue_button, view_pr_button
from .telegram import TelegramClient
from ..core.models import PhaseProgress, ReviewDecision

logger = logging.getLogger(__name__)

ERROR_PREVIEW_CHARS = 200


def escape_html(text: Optional[str]) -> str:
    return html.escape(text or "", quote=False)


class WorkflowNotifier:
    """
    Formats and sends workflow notifications.

    Every method returns True when the message was sent (or notifications
    are disabled) and False when delivery failed. Delivery failures never
    raise.
    """

    def __init__(self, client: Optional[TelegramClient], repo_full_name: str = "", enabled: bool = True):
        self.client = client
        self.repo_url = f"https://github.com/{repo_full_name}" if repo_full_name else ""
        self.enabled = enabled and client is not None

    def issue_url(self, issue_number: int) -> str:
        return f"{self.repo_url}/issues/{issue_number}"

    def pr_url(self, pr_number: int) -> str:
        return f"{self.repo_url}/pull/{pr_number}"

    def _issue_line(self, issue_number: int) -> str:
        return f'🔗 <a href="{self.issue_url(issue_number)}">Issue #{issue_number}</a>'

    def _admin(self, message: str, keyboard: Optional[Dict[str, Any]] = None) -> bool:
        if not self.enabled:
            return True
        try:
            return self.client.send_to_admin(message, inline_keyboard=keyboard)
        except Exception as e:
            logger.warning(f"Notification failed: {e}")
            return False

    def _info(self, message: str, keyboard: Optional[Dict[str, Any]] = None) -> bool:
        if not self.enabled:
            return True
        try:
            return self.client.send_to_info_channel(message, inline_keyboard=keyboard)
        except Exception as e:
            logger.warning(f"Notification failed: {e}")
            return False

    # -- Progress --

    def agent_started(self, phase: str, title: str, issue_number: int, mode: str) -> bool:
        label = {"new": "Starting", "feedback": "Addressing feedback for"}.get(mode, "Continuing")
        emoji = "🚀" if mode == "new" else "🔄"
        return self._info(
            f"{emoji} <b>{label}: {escape_html(phase)}</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}"
        )

    def batch_complete(self, phase: str, processed: int, succeeded: int, failed: int) -> bool:
        emoji = "✅" if failed == 0 else "⚠️"
        lines = [
            f"{emoji} <b>{escape_html(phase)} Batch Complete</b>",
            "",
            f"📊 Processed: {processed}",
            f"✅ Succeeded: {succeeded}",
        ]
        if failed:
            lines.append(f"❌ Failed: {failed}")
        lines.append("")
        lines.append("Check logs for failed items." if failed else "All items processed successfully.")
        return self._admin("\n".join(lines))

    # -- Ready for review --

    def _design_ready(self, name: str, next_step: str, emoji: str, title: str, issue_number: int, is_revision: bool) -> bool:
        heading = f"{name} {'Revised' if is_revision else 'Ready for Review'}!"
        revision_note = "Design has been updated based on your feedback.\n" if is_revision else ""
        return self._admin(
            f"{'🔄' if is_revision else emoji} <b>{heading}</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}\n"
            f"📊 Status: {name} (Waiting for Review)\n\n"
            f"{revision_note}Review and approve to proceed to {next_step}.",
            issue_review_buttons(issue_number, self.issue_url(issue_number)),
        )

    def product_development_ready(self, title: str, issue_number: int, is_revision: bool = False) -> bool:
        return self._design_ready("Product Development", "Product Design", "📄", title, issue_number, is_revision)

    def product_design_ready(self, title: str, issue_number: int, is_revision: bool = False) -> bool:
        return self._design_ready("Product Design", "Technical Design", "📝", title, issue_number, is_revision)

    def tech_design_ready(self, title: str, issue_number: int, is_revision: bool = False) -> bool:
        return self._design_ready("Technical Design", "Implementation", "🔧", title, issue_number, is_revision)

    def bug_investigation_ready(self, title: str, issue_number: int, is_revision: bool = False) -> bool:
        return self._design_ready("Bug Investigation", "Technical Design", "🔍", title, issue_number, is_revision)

    def pr_ready(
        self,
        title: str,
        issue_number: int,
        pr_number: int,
        is_revision: bool = False,
        phase: Optional[PhaseProgress] = None,
    ) -> bool:
        heading = "PR Updated" if is_revision else "Implementation Complete - PR Ready"
        if phase and phase.total > 1:
            heading += f" (Phase {phase})"
        revision_note = "Changes have been made based on your review feedback.\n" if is_revision else ""
        pr_url = self.pr_url(pr_number)
        return self._admin(
            f"{'🔄' if is_revision else '🚀'} <b>{heading}!</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}\n"
            f'🔀 <a href="{pr_url}">Pull Request #{pr_number}</a>\n'
            "📊 Status: PR Review (Waiting for Review)\n\n"
            f"{revision_note}Review and merge to complete.",
            view_pr_button(pr_url),
        )

    def pr_review_complete(self, title: str, issue_number: int, pr_number: int, decision: ReviewDecision, summary: str = "") -> bool:
        if decision == ReviewDecision.APPROVED:
            emoji, label = "✅", "Approved"
        else:
            emoji, label = "📝", "Changes Requested"
        pr_url = self.pr_url(pr_number)
        message = (
            f"{emoji} <b>PR Review: {label}</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}\n"
            f'🔀 <a href="{pr_url}">Pull Request #{pr_number}</a>'
        )
        if summary:
            message += f"\n\n{escape_html(summary[:500])}"
        return self._admin(message, pr_review_buttons(issue_number, pr_url))

    # -- Blocked / failed --

    def needs_clarification(self, phase: str, title: str, issue_number: int, question: str) -> bool:
        return self._admin(
            f"🤔 <b>Agent Needs Clarification: {escape_html(phase)}</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}\n\n"
            f"{escape_html(question[:1000])}\n\n"
            "Answer on the issue, then mark the clarification as received.",
            clarification_buttons(issue_number, self.issue_url(issue_number)),
        )

    def agent_error(self, phase: str, title: str, issue_number: Optional[int], error: str) -> bool:
        issue_line = f"\n{self._issue_line(issue_number)}" if issue_number else ""
        return self._admin(
            f"❌ <b>Agent Error: {escape_html(phase)}</b>\n\n"
            f"📋 {escape_html(title)}{issue_line}\n"
            f"⚠️ Error: {escape_html(error[:ERROR_PREVIEW_CHARS])}\n\n"
            "Please check the logs for more details."
        )

    # -- Phases --

    def phase_complete(self, title: str, issue_number: int, completed: PhaseProgress, pr_number: Optional[int] = None) -> bool:
        pr_line = f'\n🔀 <a href="{self.pr_url(pr_number)}">PR #{pr_number}</a> merged' if pr_number else ""
        return self._admin(
            f"✅ <b>Phase {completed} Complete</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}{pr_line}\n\n"
            f"🔄 Starting Phase {completed.next()}...",
            view_issue_button(self.issue_url(issue_number)),
        )

    def all_phases_complete(self, title: str, issue_number: int, total: int, pr_number: Optional[int] = None) -> bool:
        pr_line = f'\n🔀 <a href="{self.pr_url(pr_number)}">PR #{pr_number}</a> merged' if pr_number else ""
        heading = f"All {total} phases complete!" if total > 1 else "Implementation merged!"
        return self._admin(
            f"🎉 <b>{heading}</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}{pr_line}\n"
            "📊 Status: Done",
            view_issue_button(self.issue_url(issue_number)),
        )

    # -- Side workflows --

    def triage_complete(self, title: str, issue_number: int, fields: Dict[str, Any]) -> bool:
        details = "\n".join(f"• {escape_html(k)}: {escape_html(str(v))}" for k, v in fields.items() if v)
        return self._info(
            f"🏷️ <b>Triaged</b>\n\n📋 {escape_html(title)}\n{self._issue_line(issue_number)}\n\n{details}"
        )

    def workflow_review_complete(self, title: str, issue_number: int, summary: str) -> bool:
        return self._info(
            f"🔎 <b>Workflow Review Complete</b>\n\n"
            f"📋 {escape_html(title)}\n{self._issue_line(issue_number)}\n\n"
            f"{escape_html(summary[:1000])}"
        )
