"""Workflow Review: a retrospective on how the agents handled a finished issue."""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from .base import EligibilityPartition, WorkflowRunner
from .output_schemas import WORKFLOW_REVIEW_OUTPUT_FORMAT
from .prompts import build_workflow_review_prompt
from .types import ItemResult, ProcessableItem
from ..core.models import ProcessingMode, Status, WorkflowItem, WorkflowName
from ..errors import ParsingError
from ..execution_log import REVIEW_TAG, LogContext
from ..parsing import extract_json

LOG_TAIL_CHARS = 30000


def log_tail(log: str, limit: int = LOG_TAIL_CHARS) -> str:
    return log if len(log) <= limit else "... (truncated)\n" + log[-limit:]


def format_review_section(output: Dict[str, Any]) -> str:
    summary = output.get("executiveSummary") or {}
    lines = [
        f"**Status:** {summary.get('status', 'unknown')}",
        f"**Total cost:** {summary.get('totalCost', 'n/a')}",
        f"**Duration:** {summary.get('duration', 'n/a')}",
        "",
        summary.get("overallAssessment", "").strip(),
    ]

    findings = output.get("findings") or []
    if findings:
        lines += ["", "### Findings", ""]
        for finding in findings:
            severity = finding.get("severity", "medium")
            category = f" ({finding['category']})" if finding.get("category") else ""
            lines.append(f"- **[{severity}] {finding.get('title', 'Finding')}**{category}: {finding.get('description', '')}")

    improvements = output.get("systemicImprovements") or []
    if improvements:
        lines += ["", "### Systemic Improvements", ""]
        for improvement in improvements:
            target = f" (`{improvement['targetFile']}`)" if improvement.get("targetFile") else ""
            lines.append(f"- {improvement.get('recommendation', '')}{target}")
    return "\n".join(lines)


class WorkflowReviewWorkflow(WorkflowRunner):
    workflow = WorkflowName.WORKFLOW_REVIEW
    phase_name = "Workflow Review"
    status = Status.DONE
    uses_review_status = False

    def already_reviewed(self, item: WorkflowItem) -> bool:
        record = self.ctx.store.get(item.issue_number)
        return record is not None and record.workflow_reviewed_at is not None

    def mode_for(self, item: WorkflowItem) -> Optional[ProcessingMode]:
        return ProcessingMode.NEW

    def partition(self, items: List[WorkflowItem]) -> EligibilityPartition:
        partition = EligibilityPartition()
        partition.new = [item for item in items if item.status == self.status.value and not self.already_reviewed(item)]
        return partition

    def prepare(self, items: List[ProcessableItem]) -> List[ProcessableItem]:
        kept = []
        for processable in items:
            issue_number = processable.item.issue_number
            if not self.ctx.exec_logger.log_exists(issue_number):
                self.log.info(f"⏭️  Skipping #{issue_number}: no execution log")
                continue
            kept.append(processable)
        return kept

    async def execute(self, processable: ProcessableItem, log_ctx: LogContext) -> ItemResult:
        item = processable.item
        exec_logger = self.ctx.exec_logger
        log = exec_logger.read_log(item.issue_number)
        if not log.strip():
            self.console.print("  No execution log content, skipping")
            return ItemResult(success=True, skipped=True)
        if REVIEW_TAG in log_tail(log):
            self.console.print("  Log already has a workflow review, skipping")
            if not self.dry_run:
                self.ctx.store.update(item.issue_number, workflow_reviewed_at=datetime.now(timezone.utc))
            return ItemResult(success=True, skipped=True)

        record = self.ctx.store.get(item.issue_number)
        prompt = build_workflow_review_prompt(item, record, exec_logger.log_location(item.issue_number))
        prompt += f"\n\n## Log Tail\n\n```\n{log_tail(log)}\n```"
        result = await self.run_agent(
            log_ctx, prompt, output_format=WORKFLOW_REVIEW_OUTPUT_FORMAT, progress_label="Reviewing workflow",
        )

        output = result.trusted_output() or extract_json(result.content) or {}
        summary = (output.get("executiveSummary") or {}).get("overallAssessment")
        if not summary:
            raise ParsingError("Workflow review output has no executive summary")
        findings = output.get("findings") or []
        self.console.print(f"  {len(findings)} finding(s)")

        if self.dry_run:
            self.preview("append review section to the execution log")
            self.preview("store review summary")
            return ItemResult(success=True)

        exec_logger.append_review(item.issue_number, format_review_section(output))
        self.ctx.store.update(
            item.issue_number,
            workflow_review_summary=summary,
            workflow_reviewed_at=datetime.now(timezone.utc),
        )
        self.ctx.notifier.workflow_review_complete(item.title, item.issue_number, summary)
        return ItemResult(success=True)
