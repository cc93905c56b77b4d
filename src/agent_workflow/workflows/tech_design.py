"""Technical Design: the engineering plan, plus implementation phases for large work."""

from typing import Any, Dict, List

from .design import DesignWorkflowRunner
from .output_schemas import TECH_DESIGN_OUTPUT_FORMAT
from .prompts import build_tech_design_prompt
from ..artifacts import initialize_implementation_phases
from ..core.models import Comment, ImplementationPhase, Status, WorkflowItem, WorkflowName
from ..execution_log import LogContext
from ..parsing import SectionName, parse_issue_body
from ..phases import format_phases_comment, has_phase_comment, phases_from_output, validate_phases
from ..utils.error_handling import log_and_ignore
from .bug_investigation import find_investigation


class TechDesignWorkflow(DesignWorkflowRunner):
    workflow = WorkflowName.TECH_DESIGN
    phase_name = "Technical Design"
    status = Status.TECH_DESIGN
    document_name = "Technical Design"
    design_type = "tech"
    section = SectionName.TECH_DESIGN
    artifact_type = "tech-design"
    output_format = TECH_DESIGN_OUTPUT_FORMAT

    def context_documents(self, item: WorkflowItem) -> Dict[str, str]:
        context = {}
        product_design = parse_issue_body(item.content.body).get(SectionName.PRODUCT_DESIGN)
        if product_design:
            context["Approved Product Design"] = product_design
        if item.issue_type == "bug":
            investigation = find_investigation(self.ctx.project.get_issue_comments(item.issue_number))
            if investigation:
                context["Bug Investigation"] = investigation
            else:
                self.console.print("  [yellow]⚠️  No bug investigation found; the design may be incomplete[/]")
        return context

    def build_new_prompt(self, item: WorkflowItem, comments: List[Comment], context: Dict[str, str]) -> str:
        prompt = build_tech_design_prompt(item, comments, context.get("Approved Product Design"))
        if "Bug Investigation" in context:
            prompt += f"\n\n## Bug Investigation\n\n{context['Bug Investigation']}"
        return prompt

    def phases_in(self, output: Dict[str, Any]) -> List[ImplementationPhase]:
        """Validated phases from the output; empty for single-PR work."""
        phases = phases_from_output(output.get("phases"))
        if len(phases) < 2:
            return []
        return validate_phases(phases)

    def validate_output(self, output: Dict[str, Any]) -> None:
        self.phases_in(output)

    def preview_extra(self, output: Dict[str, Any]) -> None:
        phases = self.phases_in(output)
        if phases:
            self.preview(f"post phases comment ({len(phases)} phases):")
            for phase in phases:
                self.console.print(f"    {phase.order}. {phase.title} ({phase.estimated_size or '?'})")

    def after_save(self, item: WorkflowItem, output: Dict[str, Any], comments: List[Comment], log_ctx: LogContext) -> None:
        phases = self.phases_in(output)
        if not phases:
            return

        self.ctx.store.set_phases(item.issue_number, phases)
        if has_phase_comment(comments):
            self.console.print("  Phases comment already exists, skipping")
        else:
            self.ctx.project.add_issue_comment(item.issue_number, format_phases_comment(phases))
            self.ctx.exec_logger.log_github_action(log_ctx, "comment", f"Posted {len(phases)} implementation phases")
            self.console.print(f"  Implementation phases comment posted ({len(phases)} phases)")

        try:
            initialize_implementation_phases(self.ctx.project, item.issue_number, phases)
        except Exception as e:
            log_and_ignore(e, f"Failed to initialize phase artifacts on #{item.issue_number}")

    def notify_ready(self, item: WorkflowItem, is_revision: bool) -> None:
        self.ctx.notifier.tech_design_ready(item.title, item.issue_number, is_revision)
