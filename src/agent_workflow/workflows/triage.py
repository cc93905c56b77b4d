"""Triage: classify backlog items that have no domain yet.

Only fields that are still empty are written, so a human's earlier
priority or size is never overwritten. Triage does not use review status.
"""

from typing import Any, Dict, List, Optional

from .base import EligibilityPartition, WorkflowRunner
from .clarification import add_agent_prefix
from .output_schemas import TRIAGE_OUTPUT_FORMAT
from .prompts import build_triage_prompt
from .types import ItemResult, ProcessableItem
from ..core.models import ProcessingMode, Status, WorkflowItem, WorkflowName
from ..core.state_store import WorkflowItemRecord
from ..errors import ParsingError
from ..execution_log import LogContext
from ..parsing import extract_json

TRIAGE_FIELDS = ("priority", "size", "complexity")


def missing_field_updates(record: WorkflowItemRecord, output: Dict[str, Any]) -> Dict[str, Any]:
    """Fields to write: the domain, the summary, and any triage field still unset."""
    updates: Dict[str, Any] = {"domain": output["domain"].strip().lower()}
    for name in TRIAGE_FIELDS:
        value = output.get(name)
        if value and not getattr(record, name):
            updates[name] = value
    if output.get("triageSummary"):
        updates["triage_summary"] = output["triageSummary"]
    return updates


def format_triage_comment(updates: Dict[str, Any], output: Dict[str, Any]) -> str:
    lines = ["🏷️ **Triage**", ""]
    for name in ("domain",) + TRIAGE_FIELDS:
        if name in updates:
            lines.append(f"- **{name.capitalize()}:** {updates[name]}")
    if output.get("stillRelevant") is False:
        lines += ["", "⚠️ This item may no longer be relevant."]
    if output.get("triageSummary"):
        lines += ["", output["triageSummary"]]
    if output.get("reasoning"):
        lines += ["", f"_Reasoning: {output['reasoning']}_"]
    return "\n".join(lines)


class TriageWorkflow(WorkflowRunner):
    workflow = WorkflowName.TRIAGE
    phase_name = "Triage"
    status = Status.BACKLOG
    uses_review_status = False

    def needs_triage(self, item: WorkflowItem) -> bool:
        record = self.ctx.store.get(item.issue_number)
        return record is None or not record.domain

    def mode_for(self, item: WorkflowItem) -> Optional[ProcessingMode]:
        return ProcessingMode.NEW

    def partition(self, items: List[WorkflowItem]) -> EligibilityPartition:
        partition = EligibilityPartition()
        partition.new = [item for item in items if item.status == self.status.value and self.needs_triage(item)]
        return partition

    async def execute(self, processable: ProcessableItem, log_ctx: LogContext) -> ItemResult:
        item = processable.item
        store = self.ctx.store
        record = store.get_or_create(item.issue_number)
        if record.domain:
            self.console.print(f"  Already triaged (domain: {record.domain}), skipping")
            return ItemResult(success=True, skipped=True)

        prompt = build_triage_prompt(item, record, store.known_domains())
        result = await self.run_agent(log_ctx, prompt, output_format=TRIAGE_OUTPUT_FORMAT, progress_label="Triaging")

        output = result.trusted_output() or extract_json(result.content) or {}
        if not isinstance(output.get("domain"), str) or not output["domain"].strip():
            raise ParsingError("Triage output has no domain")

        updates = missing_field_updates(record, output)
        for name, value in updates.items():
            self.console.print(f"  {name}: {value}")

        if self.dry_run:
            self.preview(f"store triage fields: {', '.join(updates)}")
            self.preview("post triage comment")
            return ItemResult(success=True)

        store.update(item.issue_number, **updates)
        self.ctx.exec_logger.log_info(log_ctx, f"Stored triage fields: {', '.join(updates)}")
        self.ctx.project.add_issue_comment(
            item.issue_number, add_agent_prefix(self.workflow.value, format_triage_comment(updates, output)),
        )
        self.ctx.exec_logger.log_github_action(log_ctx, "comment", "Posted triage comment")
        self.ctx.notifier.triage_complete(
            item.title, item.issue_number, {k: v for k, v in updates.items() if k != "triage_summary"},
        )
        return ItemResult(success=True)
