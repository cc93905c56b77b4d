"""Shared processing for document-producing workflows.

Product development, product design, tech design and bug investigation
all follow the same steps: gather context, prompt (new / revise /
continue), run read-only, save the document, comment, set Waiting for
Review, notify.
"""

from abc import abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional

from .base import WorkflowRunner
from .clarification import add_agent_prefix, handle_clarification_request, resolve_clarification
from .prompts import build_clarification_prompt, build_revision_prompt
from .types import ItemResult, ProcessableItem
from ..artifacts import DesignArtifact, get_design_doc_relative_path, read_design_doc, update_design_artifact, write_design_doc
from ..core.models import Comment, ProcessingMode, ReviewStatus, WorkflowItem
from ..errors import InvalidItemStateError, ParsingError
from ..execution_log import LogContext
from ..parsing import SectionName, build_updated_issue_body, extract_json, extract_markdown, parse_issue_body
from ..parsing import extract_clarification_from_result
from ..utils.error_handling import log_and_ignore

PROGRESS_LABELS = {
    ProcessingMode.NEW: "Generating",
    ProcessingMode.FEEDBACK: "Revising",
    ProcessingMode.CLARIFICATION: "Continuing with clarification",
}


class DesignWorkflowRunner(WorkflowRunner):
    """Base for workflows whose output is one markdown document per issue."""

    document_name: str = ""
    # design-docs/ file key; None when the document is not mirrored to a file
    design_type: Optional[str] = None
    # Issue body section holding the document; None when the file is canonical
    section: Optional[SectionName] = None
    # Artifact comment row type ("product-design" / "tech-design")
    artifact_type: Optional[str] = None
    output_format: Dict[str, Any] = {}
    output_field: str = "design"
    comment_field: Optional[str] = "comment"
    skip_bugs: bool = False

    def prepare(self, items: List[ProcessableItem]) -> List[ProcessableItem]:
        if not self.skip_bugs:
            return items
        kept = []
        for processable in items:
            if processable.item.issue_type == "bug":
                self.log.info(
                    f"⏭️  Skipping bug #{processable.item.issue_number}: bugs bypass {self.phase_name}"
                )
                continue
            kept.append(processable)
        return kept

    # -- Document storage --

    @property
    def workspace(self) -> Path:
        return Path(self.ctx.config.workspace)

    def existing_document(self, item: WorkflowItem) -> Optional[str]:
        if self.section is not None:
            return parse_issue_body(item.content.body).get(self.section)
        if self.design_type is not None:
            return read_design_doc(self.workspace, item.issue_number, self.design_type)
        return None

    def save_document(self, item: WorkflowItem, document: str, log_ctx: LogContext) -> None:
        project = self.ctx.project
        if self.section is not None:
            body = build_updated_issue_body(item.content.body, self.section, document)
            project.update_issue_body(item.issue_number, body)
            self.ctx.exec_logger.log_github_action(log_ctx, "issue_updated", f"Updated issue body with {self.document_name}")
            self.console.print("  Issue body updated")

        if self.design_type is not None:
            path = write_design_doc(self.workspace, item.issue_number, self.design_type, document)
            self.ctx.exec_logger.log_info(log_ctx, f"Wrote {self.document_name} to {path}")

        if self.artifact_type is not None and self.design_type is not None:
            artifact = DesignArtifact(
                type=self.artifact_type,
                path=get_design_doc_relative_path(item.issue_number, self.design_type),
            )
            try:
                update_design_artifact(project, item.issue_number, artifact)
            except Exception as e:
                log_and_ignore(e, f"Failed to update artifact comment on #{item.issue_number}")

    # -- Prompts --

    def context_documents(self, item: WorkflowItem) -> Dict[str, str]:
        """Upstream documents handed to every prompt for this workflow."""
        return {}

    @abstractmethod
    def build_new_prompt(self, item: WorkflowItem, comments: List[Comment], context: Dict[str, str]) -> str:
        pass

    def build_prompt(self, processable: ProcessableItem, comments: List[Comment], existing: Optional[str]) -> str:
        item = processable.item
        context = self.context_documents(item)
        if processable.mode != ProcessingMode.CLARIFICATION:
            comments = self.context_comments(comments)
        if processable.mode == ProcessingMode.NEW:
            return self.build_new_prompt(item, comments, context)
        if processable.mode == ProcessingMode.FEEDBACK:
            if not existing:
                raise InvalidItemStateError(f"No existing {self.document_name} found to revise")
            if not comments:
                raise InvalidItemStateError("No feedback comments found")
            return build_revision_prompt(self.document_name, item, existing, comments, context)

        question, answer = resolve_clarification(comments)
        if existing:
            context = {**context, f"Current {self.document_name}": existing}
        return build_clarification_prompt(self.phase_name, item, comments, question, answer, context)

    # -- Hooks --

    def context_comments(self, comments: List[Comment]) -> List[Comment]:
        """Comments shown to the agent as context or feedback."""
        return comments

    def after_save(self, item: WorkflowItem, output: Dict[str, Any], comments: List[Comment], log_ctx: LogContext) -> None:
        pass

    def validate_output(self, output: Dict[str, Any]) -> None:
        """Raise to fail the item before anything is saved."""
        pass

    def preview_extra(self, output: Dict[str, Any]) -> None:
        pass

    @abstractmethod
    def notify_ready(self, item: WorkflowItem, is_revision: bool) -> None:
        pass

    def extract_document(self, output: Dict[str, Any], content: Optional[str]) -> Optional[str]:
        document = output.get(self.output_field)
        if isinstance(document, str) and document.strip():
            return document
        return extract_markdown(content)

    # -- Processing --

    async def execute(self, processable: ProcessableItem, log_ctx: LogContext) -> ItemResult:
        item = processable.item
        comments = self.ctx.project.get_issue_comments(item.issue_number)
        if comments:
            self.console.print(f"  Found {len(comments)} comment(s) on issue")

        existing = self.existing_document(item)
        if processable.mode == ProcessingMode.NEW and existing:
            self.console.print(f"  ⚠️  {self.document_name} already exists, skipping to avoid duplication")
            return ItemResult(success=False, error=f"{self.document_name} already exists (idempotency check)")

        prompt = self.build_prompt(processable, comments, existing)
        result = await self.run_agent(
            log_ctx,
            prompt,
            output_format=self.output_format,
            progress_label=f"{PROGRESS_LABELS[processable.mode]} {self.document_name.lower()}",
        )

        request = extract_clarification_from_result(result)
        if request:
            return handle_clarification_request(self, item, log_ctx, request)

        output = result.trusted_output() or extract_json(result.content) or {}
        document = self.extract_document(output, result.content)
        if not document:
            raise ParsingError(f"Could not extract {self.document_name} from agent output")
        comment = output.get(self.comment_field) if self.comment_field else None
        self.validate_output(output)

        self.console.print(f"  {self.document_name} generated: {len(document)} chars")
        self.console.print(f"  Preview: {document[:100].replace(chr(10), ' ')}...")

        if self.dry_run:
            self.preview(f"save {self.document_name}")
            if comment:
                self.preview("post comment:")
                self.console.print(comment)
            self.preview_extra(output)
            self.preview(f"set Review Status to {ReviewStatus.WAITING_FOR_REVIEW.value}")
            self.preview("send notification")
            return ItemResult(success=True)

        self.save_document(item, document, log_ctx)
        if comment:
            self.ctx.project.add_issue_comment(item.issue_number, add_agent_prefix(self.workflow.value, comment))
            self.ctx.exec_logger.log_github_action(log_ctx, "comment", "Posted summary comment")
            self.console.print("  Summary comment posted")

        self.after_save(item, output, comments, log_ctx)
        self.set_review_status(item, ReviewStatus.WAITING_FOR_REVIEW, log_ctx)
        self.notify_ready(item, is_revision=processable.mode == ProcessingMode.FEEDBACK)
        return ItemResult(success=True)
