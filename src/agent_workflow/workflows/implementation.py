"""
Implementation: code changes on a feature branch, delivered as a pull request.

Flow A implements the issue (or its current phase) on a fresh branch and
opens a PR. Flow B checks out the open PR's branch and addresses review
feedback; it picks up items in Implementation or PR Review whose review
status is Request Changes. Flow C continues after a clarification answer.
"""

from pathlib import Path
from typing import Callable, Dict, List, Optional

from .base import DEFAULT_LIST_LIMIT, EligibilityPartition, WorkflowRunner, partition_items
from .clarification import add_agent_prefix, handle_clarification_request, resolve_clarification
from .output_schemas import IMPLEMENTATION_OUTPUT_FORMAT
from .prompts import (
    build_clarification_prompt,
    build_implementation_prompt,
    build_pr_revision_prompt,
    format_phase_context,
)
from .types import ItemResult, ProcessableItem
from ..artifacts import ImplementationStatus, update_implementation_phase_artifact
from ..core.git import GitRepo
from ..core.models import (
    ImplementationPhase,
    OpenPullRequest,
    PhaseProgress,
    ProcessingMode,
    ReviewStatus,
    Status,
    WorkflowItem,
    WorkflowName,
)
from ..errors import ConfigurationError, GitOperationError, InvalidItemStateError, PhaseResolutionError, WorkflowError
from ..execution_log import LogContext
from ..parsing import SectionName, extract_clarification_from_result, extract_json, parse_issue_body, parse_phase_string
from ..phases import generate_implementation_branch_name, resolve_phase_details
from ..utils.error_handling import log_and_ignore
from ..utils.subprocess_utils import run_command

TEST_TIMEOUT_SECONDS = 900


class ImplementationWorkflow(WorkflowRunner):
    workflow = WorkflowName.IMPLEMENTATION
    phase_name = "Implementation"
    status = Status.IMPLEMENTATION

    def __init__(self, ctx):
        super().__init__(ctx)
        self._default_branch: Optional[str] = None

    # -- Repository --

    @property
    def git(self) -> GitRepo:
        if self.ctx.git is None:
            raise ConfigurationError(f"Workspace is not a git repository: {self.ctx.config.workspace}")
        return self.ctx.git

    @property
    def default_branch(self) -> str:
        if self._default_branch is None:
            self._default_branch = self.ctx.config.github.default_branch or self.git.detect_default_branch()
        return self._default_branch

    def dirty_files(self) -> List[str]:
        ignored = self.ctx.config.implementation.ignore_dirty_paths
        return [path for path in self.git.changed_files() if not any(path.startswith(prefix) for prefix in ignored)]

    def preflight(self) -> None:
        dirty = self.dirty_files()
        if dirty:
            listed = ", ".join(dirty[:5]) + (" ..." if len(dirty) > 5 else "")
            raise GitOperationError(
                f"Working tree has uncommitted changes ({listed}). Commit or stash them before running implement."
            )

    # -- Eligibility --

    def list_candidates(self) -> List[WorkflowItem]:
        limit = self.options.limit or DEFAULT_LIST_LIMIT
        items = super().list_candidates()
        if self.ctx.project.has_review_status_field():
            items += self.ctx.project.list_items(
                status=Status.PR_REVIEW.value, review_status=ReviewStatus.REQUEST_CHANGES.value, limit=limit,
            )
        return items

    def _is_rejected_pr(self, item: WorkflowItem) -> bool:
        return item.status == Status.PR_REVIEW.value and item.review_status == ReviewStatus.REQUEST_CHANGES.value

    def accepts(self, item: WorkflowItem) -> bool:
        return super().accepts(item) or self._is_rejected_pr(item)

    def partition(self, items: List[WorkflowItem]) -> EligibilityPartition:
        partition = partition_items(items, self.status)
        partition.feedback += [item for item in items if self._is_rejected_pr(item)]
        return partition

    # -- Phases --

    def resolve_phase(self, item: WorkflowItem, comments, tech_design: Optional[str]):
        """(progress, phase) for multi-phase work, (None, None) for a single PR.

        Fails the item when the board's N/M total disagrees with the phases
        on record.
        """
        progress = parse_phase_string(item.implementation_phase)
        resolution = resolve_phase_details(
            item.issue_number,
            comments,
            tech_design,
            progress.current if progress else 1,
            store=self.ctx.store,
        )
        if resolution is None or len(resolution.phases) < 2:
            if progress and progress.total > 1:
                raise PhaseResolutionError(
                    f"Item is at phase {progress} but no phase details were found"
                )
            return None, None

        total = len(resolution.phases)
        if progress is None:
            progress = PhaseProgress(current=1, total=total)
        elif progress.total != total:
            raise PhaseResolutionError(
                f"Item is at phase {progress} but {resolution.source} lists {total} phases"
            )
        if resolution.current_phase_details is None:
            raise PhaseResolutionError(f"Phase {progress.current} not found in {resolution.source}")
        self.console.print(f"  📋 Phase {progress}: {resolution.current_phase_details.title} (from {resolution.source})")
        return progress, resolution.current_phase_details

    # -- Prompt --

    def build_prompt(
        self,
        processable: ProcessableItem,
        comments,
        branch: str,
        pr: Optional[OpenPullRequest],
        designs: Dict[str, Optional[str]],
        phase: Optional[ImplementationPhase],
    ) -> str:
        item = processable.item
        if processable.mode == ProcessingMode.FEEDBACK:
            return build_pr_revision_prompt(
                item,
                pr.number,
                branch,
                self.ctx.project.get_pr_comments(pr.number),
                self.ctx.project.get_pr_review_comments(pr.number),
                designs.get("Technical Design"),
            )
        if processable.mode == ProcessingMode.NEW:
            return build_implementation_prompt(
                item, comments, branch, designs.get("Product Design"), designs.get("Technical Design"), phase,
            )

        question, answer = resolve_clarification(comments)
        context = {name: text for name, text in designs.items() if text}
        if phase:
            context["Current Phase"] = format_phase_context(phase)
        prompt = build_clarification_prompt(self.phase_name, item, comments, question, answer, context)
        return prompt + f"\n\nYou are on branch `{branch}`. Make your changes in the working tree; do not commit or push."

    # -- Processing --

    def cleanup_callback(self, processable: ProcessableItem) -> Optional[Callable[[], None]]:
        if self.ctx.git is None:
            return None

        def leave_branch() -> None:
            if "return_branch" in processable.extra:
                self.reset_workspace(processable)

        return leave_branch

    def reset_workspace(self, processable: ProcessableItem) -> None:
        """Drop the agent's uncommitted work and go back to the starting branch."""
        self.git.discard_changes(keep=self.ctx.config.implementation.ignore_dirty_paths)
        self.git.return_to(processable.extra["return_branch"])

    def run_local_tests(self, log_ctx: LogContext) -> None:
        command = self.ctx.config.implementation.test_command
        if not command or self.options.skip_local_test:
            return
        self.console.print(f"  Running local tests: {' '.join(command)}")
        result = run_command(command, cwd=Path(self.ctx.config.workspace), check=False, timeout=TEST_TIMEOUT_SECONDS)
        if result.returncode != 0:
            output = (result.stdout + result.stderr).strip()[-2000:]
            self.ctx.exec_logger.log_info(log_ctx, f"Local tests failed:\n{output}")
            raise WorkflowError(f"Local tests failed (exit code {result.returncode})")
        self.ctx.exec_logger.log_info(log_ctx, "Local tests passed")

    def pr_title(self, item: WorkflowItem, progress: Optional[PhaseProgress]) -> str:
        prefix = "fix" if item.issue_type == "bug" else "feat"
        suffix = f" (Phase {progress})" if progress else ""
        return f"{prefix}: {item.title}{suffix}"

    def pr_body(self, item: WorkflowItem, summary: str, progress: Optional[PhaseProgress]) -> str:
        link = f"Part of #{item.issue_number}" if progress and not progress.is_final else f"Closes #{item.issue_number}"
        return f"{summary.strip()}\n\n{link}"

    async def execute(self, processable: ProcessableItem, log_ctx: LogContext) -> ItemResult:
        item = processable.item
        project = self.ctx.project
        git = self.git

        comments = project.get_issue_comments(item.issue_number)
        sections = parse_issue_body(item.content.body)
        designs = {
            "Product Design": sections.get(SectionName.PRODUCT_DESIGN),
            "Technical Design": sections.get(SectionName.TECH_DESIGN),
        }
        progress, phase = self.resolve_phase(item, comments, designs["Technical Design"])

        pr = None
        if processable.mode != ProcessingMode.NEW:
            pr = project.find_open_pr_for_issue(item.issue_number)
        if processable.mode == ProcessingMode.FEEDBACK and pr is None:
            raise InvalidItemStateError(f"No open PR found for issue #{item.issue_number} to address feedback on")

        if pr is not None:
            branch = pr.branch
            self.console.print(f"  Using PR #{pr.number} branch: {branch}")
        else:
            branch = generate_implementation_branch_name(
                item.issue_number, item.issue_type,
                phase.order if phase else None, progress.total if progress else None,
            )

        processable.extra["return_branch"] = git.current_branch()
        if not self.options.skip_pull:
            git.fetch()
        created = git.checkout_or_create(branch, self.default_branch)
        self.console.print(f"  {'Created' if created else 'Checked out'} branch: {branch}")
        if not created and not self.options.skip_pull and not git.merge_from_origin(self.default_branch):
            self.log.warning(f"Could not merge {self.default_branch} into {branch}; continuing on the branch as is")

        prompt = self.build_prompt(processable, comments, branch, pr, designs, phase)
        result = await self.run_agent(
            log_ctx,
            prompt,
            output_format=IMPLEMENTATION_OUTPUT_FORMAT,
            allow_write=True,
            progress_label="Addressing review feedback" if pr else "Implementing",
        )

        request = extract_clarification_from_result(result)
        if request:
            self.reset_workspace(processable)
            return handle_clarification_request(self, item, log_ctx, request)

        output = result.trusted_output() or extract_json(result.content) or {}
        summary = output.get("prSummary") or result.content or ""
        comment = output.get("comment")

        changed = git.changed_files()
        if not changed:
            raise WorkflowError("Agent made no changes")
        self.console.print(f"  {len(changed)} file(s) changed")
        self.ctx.exec_logger.log_info(log_ctx, "Changed files:\n" + "\n".join(f"- {path}" for path in changed))

        if self.dry_run:
            self.preview(f"commit {len(changed)} file(s) on {branch}")
            self.preview(f"push {branch}")
            self.preview(f"comment on PR #{pr.number}" if pr else f"create PR: {self.pr_title(item, progress)}")
            self.preview(f"set Status to {Status.PR_REVIEW.value} and Review Status to {ReviewStatus.WAITING_FOR_REVIEW.value}")
            self.reset_workspace(processable)
            return ItemResult(success=True, pr_number=pr.number if pr else None)

        self.run_local_tests(log_ctx)

        message = self.pr_title(item, progress) if pr is None else f"fix: address review feedback (#{item.issue_number})"
        git.commit_all(f"{message}\n\nRefs #{item.issue_number}")
        self.ctx.exec_logger.log_github_action(log_ctx, "commit", f"Committed {len(changed)} file(s) on {branch}")

        if self.options.skip_push:
            self.console.print("  [yellow]Skipping push (--skip-push)[/]")
        else:
            git.push(branch)
            self.ctx.exec_logger.log_github_action(log_ctx, "push", f"Pushed {branch}")

        pr_number = None
        if pr is not None:
            pr_number = pr.number
            if comment:
                project.add_pr_comment(pr.number, add_agent_prefix(self.workflow.value, comment))
                self.ctx.exec_logger.log_github_action(log_ctx, "comment", f"Replied on PR #{pr.number}")
        elif not self.options.skip_push:
            created_pr = project.create_pull_request(
                branch, self.default_branch, self.pr_title(item, progress), self.pr_body(item, summary, progress),
            )
            pr_number = created_pr.number
            self.console.print(f"  PR created: #{pr_number}")
            self.ctx.exec_logger.log_github_action(log_ctx, "pr_created", f"Created PR #{pr_number}")

        git.return_to(processable.extra["return_branch"])

        if progress:
            project.set_implementation_phase(item.id, str(progress))
            try:
                update_implementation_phase_artifact(
                    project, item.issue_number, progress.current, progress.total,
                    phase.title, ImplementationStatus.IN_REVIEW, pr_number,
                )
            except Exception as e:
                log_and_ignore(e, f"Failed to update phase artifact on #{item.issue_number}")

        if item.status != Status.PR_REVIEW.value:
            self.set_status(item, Status.PR_REVIEW, log_ctx)
        self.set_review_status(item, ReviewStatus.WAITING_FOR_REVIEW, log_ctx)

        if pr_number:
            self.ctx.notifier.pr_ready(item.title, item.issue_number, pr_number, is_revision=pr is not None, phase=progress)
        return ItemResult(success=True, pr_number=pr_number)
