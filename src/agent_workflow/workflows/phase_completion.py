"""Advance a multi-phase item after its phase PR is merged.

Mid-phase merges move the item back to Implementation with the next
phase set and the review status cleared, so the implementation workflow
picks it up as new work. The final merge (or a single-PR item) moves the
item to Done.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from ..artifacts import ImplementationStatus, parse_artifact_comment, update_implementation_phase_artifact
from ..core.models import PhaseProgress, Status, WorkflowItem
from ..execution_log import LogContext
from ..parsing import parse_phase_string
from ..utils.error_handling import log_and_ignore

logger = logging.getLogger(__name__)


@dataclass
class PhaseCompletion:
    completed: Optional[PhaseProgress]
    next_phase: Optional[PhaseProgress]

    @property
    def done(self) -> bool:
        return self.next_phase is None


def format_phase_complete_comment(completed: PhaseProgress, pr_number: Optional[int]) -> str:
    merged = f" - Merged PR #{pr_number}" if pr_number else ""
    return (
        f"✅ **Phase {completed}** complete{merged}\n\n"
        f"🔄 Starting Phase {completed.next()}..."
    )


def format_all_phases_complete_comment(completed: PhaseProgress, pr_number: Optional[int]) -> str:
    merged = f" - Merged PR #{pr_number}" if pr_number else ""
    return (
        f"✅ **Phase {completed}** complete{merged}\n\n"
        f"🎉 **All {completed.total} phases complete!** Issue is now Done."
    )


def _phase_name(ctx, issue_number: int, order: int) -> str:
    artifact = parse_artifact_comment(ctx.project.get_issue_comments(issue_number))
    row = next((p for p in artifact.phases if p.phase == order), None) if artifact else None
    return row.name if row else f"Phase {order}"


def complete_phase(ctx, item: WorkflowItem, pr_number: Optional[int] = None) -> PhaseCompletion:
    """Record a merged PR for `item` and move it to its next state.

    `ctx` is a WorkflowContext. In dry-run nothing is written and no
    notification is sent; the returned PhaseCompletion still says what
    would have happened.
    """
    project = ctx.project
    dry_run = ctx.options.dry_run
    console = ctx.console
    progress = parse_phase_string(item.implementation_phase or project.get_implementation_phase(item.id))
    log_ctx = LogContext(issue_number=item.issue_number, workflow="phase-completion", phase="PR Merge", issue_title=item.title)
    write_log = not dry_run and ctx.exec_logger.log_exists(item.issue_number)

    if progress is None or progress.total <= 1:
        console.print(f"  PR merged for #{item.issue_number}, moving to {Status.DONE.value}")
        if dry_run:
            console.print(f"  [yellow][DRY RUN][/] Would set Status to {Status.DONE.value}")
            return PhaseCompletion(completed=progress, next_phase=None)
        if progress is not None:
            project.clear_implementation_phase(item.id)
        project.update_item_status(item.id, Status.DONE.value)
        if write_log:
            ctx.exec_logger.log_status_transition(log_ctx, item.status, Status.DONE.value)
        ctx.notifier.all_phases_complete(item.title, item.issue_number, 1, pr_number)
        return PhaseCompletion(completed=progress, next_phase=None)

    if dry_run:
        if progress.is_final:
            console.print(f"  [yellow][DRY RUN][/] Would clear the phase and set Status to {Status.DONE.value}")
            return PhaseCompletion(completed=progress, next_phase=None)
        console.print(f"  [yellow][DRY RUN][/] Would set phase {progress.next()} and Status to {Status.IMPLEMENTATION.value}")
        return PhaseCompletion(completed=progress, next_phase=progress.next())

    try:
        update_implementation_phase_artifact(
            project, item.issue_number, progress.current, progress.total,
            _phase_name(ctx, item.issue_number, progress.current), ImplementationStatus.MERGED, pr_number,
        )
    except Exception as e:
        log_and_ignore(e, f"Failed to mark phase {progress} merged on #{item.issue_number}")

    if progress.is_final:
        console.print(f"  🎉 All {progress.total} phases complete for #{item.issue_number}")
        project.add_issue_comment(item.issue_number, format_all_phases_complete_comment(progress, pr_number))
        project.clear_implementation_phase(item.id)
        project.update_item_status(item.id, Status.DONE.value)
        if write_log:
            ctx.exec_logger.log_github_action(log_ctx, "issue_updated", f"All {progress.total} phases complete")
            ctx.exec_logger.log_status_transition(log_ctx, item.status, Status.DONE.value)
        ctx.notifier.all_phases_complete(item.title, item.issue_number, progress.total, pr_number)
        return PhaseCompletion(completed=progress, next_phase=None)

    next_phase = progress.next()
    console.print(f"  Phase {progress} complete for #{item.issue_number}, starting phase {next_phase}")
    project.add_issue_comment(item.issue_number, format_phase_complete_comment(progress, pr_number))
    project.set_implementation_phase(item.id, str(next_phase))
    project.update_item_status(item.id, Status.IMPLEMENTATION.value)
    if project.has_review_status_field() and item.review_status:
        project.clear_item_review_status(item.id)
    if write_log:
        ctx.exec_logger.log_github_action(log_ctx, "issue_updated", f"Phase {progress} complete, next phase {next_phase}")
        ctx.exec_logger.log_status_transition(log_ctx, item.status, Status.IMPLEMENTATION.value)
    ctx.notifier.phase_complete(item.title, item.issue_number, progress, pr_number)
    logger.info(f"Issue #{item.issue_number} advanced to phase {next_phase}")
    return PhaseCompletion(completed=progress, next_phase=next_phase)
