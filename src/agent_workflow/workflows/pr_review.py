"""PR Review: an agent reviews the open PR of each item waiting for review."""

from typing import List, Optional

from .base import DEFAULT_LIST_LIMIT, EligibilityPartition, WorkflowRunner
from .clarification import add_agent_prefix
from .output_schemas import PR_REVIEW_OUTPUT_FORMAT
from .prompts import build_pr_review_prompt
from .types import ItemResult, ProcessableItem
from ..artifacts import ImplementationStatus, update_implementation_phase_artifact
from ..core.models import ProcessingMode, ReviewDecision, ReviewStatus, Status, WorkflowItem, WorkflowName
from ..errors import WorkflowError
from ..execution_log import LogContext
from ..parsing import (
    SectionName,
    extract_json,
    extract_review,
    parse_issue_body,
    parse_phase_string,
    parse_review_decision,
)
from ..utils.error_handling import log_and_ignore


def format_review_status_comment(decision: ReviewDecision, pr_number: int, phase_label: Optional[str] = None) -> str:
    """One-line issue comment recording the review outcome."""
    prefix = f"**Phase {phase_label}**: " if phase_label else ""
    if decision == ReviewDecision.APPROVED:
        return f"✅ {prefix}PR approved - ready for merge (#{pr_number})"
    return f"⚠️ {prefix}Changes requested on PR (#{pr_number})"


class PRReviewWorkflow(WorkflowRunner):
    workflow = WorkflowName.PR_REVIEW
    phase_name = "PR Review"
    status = Status.PR_REVIEW

    def mode_for(self, item: WorkflowItem) -> Optional[ProcessingMode]:
        if item.review_status == ReviewStatus.WAITING_FOR_REVIEW.value:
            return ProcessingMode.NEW
        return None

    def list_candidates(self) -> List[WorkflowItem]:
        return self.ctx.project.list_items(
            status=self.status.value,
            review_status=ReviewStatus.WAITING_FOR_REVIEW.value,
            limit=self.options.limit or DEFAULT_LIST_LIMIT,
        )

    def partition(self, items: List[WorkflowItem]) -> EligibilityPartition:
        partition = EligibilityPartition()
        partition.new = [
            item for item in items
            if item.status == self.status.value and item.review_status == ReviewStatus.WAITING_FOR_REVIEW.value
        ]
        return partition

    def prepare(self, items: List[ProcessableItem]) -> List[ProcessableItem]:
        kept = []
        for processable in items:
            pr = self.ctx.project.find_open_pr_for_issue(processable.item.issue_number)
            if pr is None:
                self.log.info(f"⏭️  Skipping #{processable.item.issue_number}: no open PR found")
                continue
            processable.extra["pr"] = pr
            kept.append(processable)
        return kept

    def phase_label(self, item: WorkflowItem) -> Optional[str]:
        progress = parse_phase_string(item.implementation_phase)
        if progress and progress.total > 1:
            return str(progress)
        return None

    def read_decision(self, result) -> tuple:
        """(decision, summary, review_text) from structured output or review text."""
        output = result.trusted_output() or extract_json(result.content) or {}
        decision_value = output.get("decision")
        if decision_value in (ReviewDecision.APPROVED.value, ReviewDecision.REQUEST_CHANGES.value):
            review_text = output.get("reviewText") or result.content or ""
            return ReviewDecision(decision_value), output.get("summary") or "", review_text

        review_text = extract_review(result.content)
        if not review_text:
            raise WorkflowError("Could not extract a review decision from agent output")
        decision = parse_review_decision(review_text)
        if decision == ReviewDecision.COMMENT:
            decision = ReviewDecision.REQUEST_CHANGES
        return decision, "", review_text

    async def execute(self, processable: ProcessableItem, log_ctx: LogContext) -> ItemResult:
        item = processable.item
        project = self.ctx.project
        pr = processable.extra["pr"]
        phase_label = self.phase_label(item)
        self.console.print(f"  Reviewing PR #{pr.number}" + (f" (Phase {phase_label})" if phase_label else ""))

        diff = project.get_pr_diff(pr.number)
        if not diff.strip():
            raise WorkflowError(f"PR #{pr.number} has an empty diff")

        prompt = build_pr_review_prompt(
            item,
            pr.number,
            diff,
            phase_label=phase_label,
            tech_design=parse_issue_body(item.content.body).get(SectionName.TECH_DESIGN),
            pr_comments=project.get_pr_comments(pr.number),
        )
        result = await self.run_agent(log_ctx, prompt, output_format=PR_REVIEW_OUTPUT_FORMAT, progress_label="Reviewing PR")

        decision, summary, review_text = self.read_decision(result)
        approved = decision == ReviewDecision.APPROVED
        self.console.print(f"  Review decision: {'APPROVED ✓' if approved else 'REQUEST CHANGES'}")

        new_review_status = ReviewStatus.APPROVED if approved else ReviewStatus.REQUEST_CHANGES
        if self.dry_run:
            self.preview(f"post review on PR #{pr.number}")
            self.preview(f"set Review Status to {new_review_status.value}")
            return ItemResult(success=True, pr_number=pr.number)

        project.add_pr_comment(pr.number, add_agent_prefix(self.workflow.value, review_text))
        self.ctx.exec_logger.log_github_action(log_ctx, "comment", f"Posted review on PR #{pr.number}")
        project.add_issue_comment(
            item.issue_number,
            add_agent_prefix(self.workflow.value, format_review_status_comment(decision, pr.number, phase_label)),
        )

        progress = parse_phase_string(item.implementation_phase)
        if progress and progress.total > 1:
            try:
                update_implementation_phase_artifact(
                    project, item.issue_number, progress.current, progress.total, "",
                    ImplementationStatus.APPROVED if approved else ImplementationStatus.CHANGES_REQUESTED,
                    pr.number,
                )
            except Exception as e:
                log_and_ignore(e, f"Failed to update phase artifact on #{item.issue_number}")

        self.set_review_status(item, new_review_status, log_ctx)
        self.ctx.notifier.pr_review_complete(item.title, item.issue_number, pr.number, decision, summary)
        return ItemResult(success=True, pr_number=pr.number)
