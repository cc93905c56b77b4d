"""The one catch-block routine every workflow uses."""

import logging
from typing import Callable, Optional

from rich.console import Console

from .types import ItemResult
from ..execution_log import ExecutionLogger, LogContext
from ..notifications import WorkflowNotifier

logger = logging.getLogger(__name__)


def describe_error(error: BaseException) -> str:
    return str(error) or type(error).__name__


def handle_agent_error(
    error: BaseException,
    log_ctx: LogContext,
    phase_name: str,
    issue_title: str,
    issue_number: Optional[int],
    dry_run: bool,
    notifier: WorkflowNotifier,
    exec_logger: ExecutionLogger,
    cleanup: Optional[Callable[[], None]] = None,
    console: Optional[Console] = None,
) -> ItemResult:
    """
    Record a failed item and report it.

    Order matters: the fatal entry is logged before cleanup runs, the
    failed phase result is written after it, and the operator is notified
    last (skipped in dry-run). Cleanup errors are logged and swallowed.
    """
    error_msg = describe_error(error)
    if console is not None:
        console.print(f"  [red]Error:[/] {error_msg}")

    exec_logger.log_error(log_ctx, error, is_fatal=True)

    if cleanup is not None:
        try:
            cleanup()
        except Exception as cleanup_error:
            logger.warning(f"Cleanup failed during error handling: {cleanup_error}")

    exec_logger.log_execution_end(log_ctx, success=False)

    if not dry_run:
        notifier.agent_error(phase_name, issue_title, issue_number, error_msg)

    return ItemResult(success=False, error=error_msg)
