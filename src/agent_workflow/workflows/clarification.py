"""Pausing a workflow on a clarification question, and resuming with the answer."""

import logging
from typing import List, Optional, Tuple

from .types import ItemResult
from ..core.models import Comment, ReviewStatus, WorkflowItem
from ..errors import InvalidItemStateError
from ..execution_log import LogContext
from ..parsing import find_clarification_exchange, format_clarification_comment

logger = logging.getLogger(__name__)


def agent_prefix(workflow: str) -> str:
    return f"[{workflow}]"


def add_agent_prefix(workflow: str, body: str) -> str:
    """Mark an agent-authored comment so it is not read back as a human reply."""
    return f"{agent_prefix(workflow)} {body}"


def handle_clarification_request(runner, item: WorkflowItem, log_ctx: LogContext, request: str) -> ItemResult:
    """Post the question, set Waiting for Clarification and notify.

    The item then sits in the blocked flow until an admin answers and sets
    Clarification Received.
    """
    runner.console.print("  🤔 Agent needs clarification")
    if runner.dry_run:
        runner.preview("post clarification request:")
        runner.console.print(request)
        runner.preview(f"set Review Status to {ReviewStatus.WAITING_FOR_CLARIFICATION.value}")
        return ItemResult(success=True)

    project = runner.ctx.project
    project.add_issue_comment(
        item.issue_number, format_clarification_comment(request, agent_prefix(runner.workflow.value)),
    )
    runner.ctx.exec_logger.log_github_action(log_ctx, "comment", "Posted clarification request")
    runner.set_review_status(item, ReviewStatus.WAITING_FOR_CLARIFICATION, log_ctx)
    runner.ctx.notifier.needs_clarification(runner.phase_name, item.title, item.issue_number, request)
    runner.ctx.exec_logger.log_info(log_ctx, "Paused: waiting for clarification")
    return ItemResult(success=True)


def resolve_clarification(comments: List[Comment]) -> Tuple[Optional[str], str]:
    """(question, answer) for Flow C.

    Falls back to the latest comment as the answer when no clarification
    comment can be found. Raises InvalidItemStateError with no comments.
    """
    question, answer = find_clarification_exchange(comments)
    if answer:
        return question, answer
    if not comments:
        raise InvalidItemStateError("No clarification comment found")
    logger.debug("No clarification exchange found, using latest comment as the answer")
    return question, comments[-1].body
