"""Bug Investigation: root cause analysis posted as a marker comment on the bug."""

from typing import Any, Dict, List, Optional

from .clarification import add_agent_prefix, agent_prefix
from .design import DesignWorkflowRunner
from .output_schemas import BUG_INVESTIGATION_OUTPUT_FORMAT
from .prompts import build_bug_investigation_prompt
from ..core.models import Comment, Status, WorkflowItem, WorkflowName
from ..errors import WorkflowError
from ..execution_log import LogContext

INVESTIGATION_MARKER = "<!-- BUG_INVESTIGATION_V1 -->"

CONFIDENCE_EMOJI = {"high": "🟢", "medium": "🟡", "low": "🔴"}


def is_investigation_comment(body: str) -> bool:
    return INVESTIGATION_MARKER in body


def format_investigation_comment(output: Dict[str, Any]) -> str:
    confidence = (output.get("confidence") or "low").lower()
    lines = [
        INVESTIGATION_MARKER,
        "## 🔍 Bug Investigation",
        "",
        f"**Root Cause Found:** {'Yes' if output.get('rootCauseFound') else 'No'}",
        f"**Confidence:** {CONFIDENCE_EMOJI.get(confidence, '⚪')} {confidence.capitalize()}",
        "",
        "### Root Cause Analysis",
        "",
        output["rootCauseAnalysis"].strip(),
    ]

    options = output.get("fixOptions") or []
    if options:
        lines += ["", "### Fix Options", ""]
        for index, option in enumerate(options, start=1):
            star = " ⭐ Recommended" if option.get("recommended") else ""
            complexity = f" ({option['complexity']})" if option.get("complexity") else ""
            lines.append(f"{index}. **{option.get('title', 'Option')}**{complexity}{star}")
            if option.get("description"):
                lines.append(f"   - {option['description']}")

    files = output.get("filesExamined") or []
    if files:
        lines += ["", "### Files Examined", ""]
        lines += [f"- `{path}`" for path in files]
    return "\n".join(lines)


def find_investigation(comments: List[Comment]) -> Optional[str]:
    """The latest investigation, without its marker and agent prefix."""
    prefix = agent_prefix(WorkflowName.BUG_INVESTIGATION.value)
    for comment in reversed(comments):
        if is_investigation_comment(comment.body):
            body = comment.body.strip()
            if body.startswith(prefix):
                body = body[len(prefix):]
            return body.replace(INVESTIGATION_MARKER, "").strip()
    return None


class BugInvestigationWorkflow(DesignWorkflowRunner):
    workflow = WorkflowName.BUG_INVESTIGATION
    phase_name = "Bug Investigation"
    status = Status.BUG_INVESTIGATION
    document_name = "Bug Investigation"
    output_format = BUG_INVESTIGATION_OUTPUT_FORMAT
    output_field = "rootCauseAnalysis"
    # The summary goes to the notification; the investigation is the comment
    comment_field = None

    def existing_document(self, item: WorkflowItem) -> Optional[str]:
        return find_investigation(self.ctx.project.get_issue_comments(item.issue_number))

    def context_comments(self, comments: List[Comment]) -> List[Comment]:
        return [c for c in comments if not is_investigation_comment(c.body)]

    def build_new_prompt(self, item: WorkflowItem, comments: List[Comment], context: Dict[str, str]) -> str:
        return build_bug_investigation_prompt(item, comments)

    def extract_document(self, output: Dict[str, Any], content: Optional[str]) -> Optional[str]:
        if not isinstance(output.get("rootCauseAnalysis"), str) or not output["rootCauseAnalysis"].strip():
            return None
        return format_investigation_comment(output)

    def validate_output(self, output: Dict[str, Any]) -> None:
        if not output.get("fixOptions"):
            raise WorkflowError("Investigation did not produce any fix options")

    def preview_extra(self, output: Dict[str, Any]) -> None:
        self.console.print(f"  Root cause found: {bool(output.get('rootCauseFound'))}")
        self.console.print(f"  Confidence: {output.get('confidence') or 'unknown'}")
        for option in output.get("fixOptions") or []:
            star = " ⭐" if option.get("recommended") else ""
            self.console.print(f"    - {option.get('title')} ({option.get('complexity') or '?'}){star}")

    def save_document(self, item: WorkflowItem, document: str, log_ctx: LogContext) -> None:
        self.ctx.project.add_issue_comment(item.issue_number, add_agent_prefix(self.workflow.value, document))
        self.ctx.exec_logger.log_github_action(log_ctx, "comment", "Posted bug investigation comment")
        self.console.print("  Investigation comment posted on issue")

    def notify_ready(self, item: WorkflowItem, is_revision: bool) -> None:
        self.ctx.notifier.bug_investigation_ready(item.title, item.issue_number, is_revision)
