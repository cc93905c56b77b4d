"""Eligibility, single-item lifecycle and the batch loop shared by all workflows.

Every workflow lists items at its board status and splits them by review
status into new (empty), feedback (Request Changes) and clarification
(Clarification Received) flows. Items waiting for clarification are
blocked and never reach the agent.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

from rich.console import Console
from rich.table import Table

from .error_handler import handle_agent_error
from .types import BatchResults, ItemResult, ProcessableItem, RunOptions
from ..adapters import AdapterFactory, AgentRunOptions, AgentRunResult, get_library_for_workflow
from ..core.config import WorkflowSettings
from ..core.git import GitRepo
from ..core.locks import LockManager
from ..core.models import ProcessingMode, ReviewStatus, Status, WorkflowItem, WorkflowName
from ..core.state_store import WorkflowItemStore
from ..errors import AdapterError, InvalidItemStateError
from ..execution_log import ExecutionLogger, LogContext, get_log_backend
from ..integrations.project_adapter import ProjectManagementAdapter
from ..notifications import TelegramClient, WorkflowNotifier
from ..utils.rich_logging import get_context_logger

logger = logging.getLogger(__name__)

DEFAULT_LIST_LIMIT = 50

MODE_LABELS = {
    ProcessingMode.NEW: "New",
    ProcessingMode.FEEDBACK: "Address feedback",
    ProcessingMode.CLARIFICATION: "Clarification",
}


# -- Eligibility --

@dataclass
class EligibilityPartition:
    new: List[WorkflowItem] = field(default_factory=list)
    feedback: List[WorkflowItem] = field(default_factory=list)
    clarification: List[WorkflowItem] = field(default_factory=list)
    blocked: List[WorkflowItem] = field(default_factory=list)

    def processable(self) -> List[ProcessableItem]:
        """Flow A, then B, then C, each in listing order."""
        return (
            [ProcessableItem(item, ProcessingMode.NEW) for item in self.new]
            + [ProcessableItem(item, ProcessingMode.FEEDBACK) for item in self.feedback]
            + [ProcessableItem(item, ProcessingMode.CLARIFICATION) for item in self.clarification]
        )


def mode_for_review_status(review_status: Optional[str]) -> Optional[ProcessingMode]:
    if not review_status:
        return ProcessingMode.NEW
    if review_status == ReviewStatus.REQUEST_CHANGES.value:
        return ProcessingMode.FEEDBACK
    if review_status == ReviewStatus.CLARIFICATION_RECEIVED.value:
        return ProcessingMode.CLARIFICATION
    return None


def partition_items(items: List[WorkflowItem], status: Status) -> EligibilityPartition:
    """Split items at `status` into the four flows.

    Items at any other status, or in a review state no flow handles
    (Waiting for Review, Approved, Rejected), are left out.
    """
    partition = EligibilityPartition()
    for item in items:
        if item.status != status.value:
            continue
        if item.review_status == ReviewStatus.WAITING_FOR_CLARIFICATION.value:
            partition.blocked.append(item)
            continue
        mode = mode_for_review_status(item.review_status)
        if mode == ProcessingMode.NEW:
            partition.new.append(item)
        elif mode == ProcessingMode.FEEDBACK:
            partition.feedback.append(item)
        elif mode == ProcessingMode.CLARIFICATION:
            partition.clarification.append(item)
    return partition


# -- Context --

@dataclass
class WorkflowContext:
    """Collaborators a workflow needs, built once per CLI invocation."""
    config: WorkflowSettings
    project: ProjectManagementAdapter
    agents: AdapterFactory
    notifier: WorkflowNotifier
    exec_logger: ExecutionLogger
    store: WorkflowItemStore
    locks: LockManager
    options: RunOptions = field(default_factory=RunOptions)
    git: Optional[GitRepo] = None
    console: Console = field(default_factory=Console)

    @classmethod
    def from_config(
        cls,
        config: WorkflowSettings,
        options: RunOptions,
        project: Optional[ProjectManagementAdapter] = None,
    ) -> "WorkflowContext":
        if project is None:
            from ..integrations.github.board import GitHubBoardAdapter
            project = GitHubBoardAdapter(config.github)
        workspace = Path(config.workspace)
        git = GitRepo(workspace) if (workspace / ".git").exists() else None
        return cls(
            config=config,
            project=project,
            agents=AdapterFactory(config),
            notifier=WorkflowNotifier(
                TelegramClient(config.telegram),
                config.github.full_name,
                enabled=config.telegram.enabled,
            ),
            exec_logger=ExecutionLogger(get_log_backend(config.execution_log, workspace), config.budget),
            store=WorkflowItemStore(config.resolve_path(config.state.state_dir)),
            locks=LockManager(config.resolve_path(config.locks.lock_dir), config.locks.ttl_seconds),
            options=options,
            git=git,
        )


# -- Runner --

class WorkflowRunner(ABC):
    """
    One workflow: which items it takes, and what it does to each.

    Subclasses set workflow/phase_name/status and implement execute().
    process_item() wraps execute() with the execution log, the start
    notification and the shared error handler, so no workflow formats
    its own failures.
    """

    workflow: WorkflowName
    phase_name: str = ""
    status: Status
    uses_review_status: bool = True

    def __init__(self, ctx: WorkflowContext):
        self.ctx = ctx
        self.log = get_context_logger(self.workflow.value)

    @property
    def options(self) -> RunOptions:
        return self.ctx.options

    @property
    def dry_run(self) -> bool:
        return self.ctx.options.dry_run

    @property
    def console(self) -> Console:
        return self.ctx.console

    def preview(self, action: str) -> None:
        """Print what a dry run skipped."""
        self.console.print(f"  [yellow][DRY RUN][/] Would {action}")

    # -- Item collection --

    def list_candidates(self) -> List[WorkflowItem]:
        return self.ctx.project.list_items(
            status=self.status.value, limit=self.options.limit or DEFAULT_LIST_LIMIT,
        )

    def accepts(self, item: WorkflowItem) -> bool:
        return item.status == self.status.value

    def mode_for(self, item: WorkflowItem) -> Optional[ProcessingMode]:
        return mode_for_review_status(item.review_status)

    def partition(self, items: List[WorkflowItem]) -> EligibilityPartition:
        return partition_items(items, self.status)

    def collect_items(self) -> List[ProcessableItem]:
        partition = self.partition(self.list_candidates())
        if not self.ctx.project.has_review_status_field():
            partition.feedback, partition.clarification = [], []

        self.console.print(f"  Found {len(partition.new)} new item(s)")
        if partition.feedback:
            self.console.print(f"  Found {len(partition.feedback)} item(s) needing revision")
        if partition.clarification:
            self.console.print(f"  Found {len(partition.clarification)} item(s) with clarification received")
        for item in partition.blocked:
            self.log.info(f"⏳ Skipping #{item.issue_number}: waiting for clarification")

        items = self.prepare(partition.processable())
        if self.options.limit:
            items = items[:self.options.limit]
        return items

    def preflight(self) -> None:
        """Checks that must pass before any item is touched. Raise to abort the batch."""
        pass

    def prepare(self, items: List[ProcessableItem]) -> List[ProcessableItem]:
        """Hook to attach flow context or drop items before processing."""
        return items

    def resolve_single_item(self, item_id: str) -> Optional[ProcessableItem]:
        """Look up one item for --id. Returns None for a blocked item.

        Raises InvalidItemStateError when the item is missing or in a
        state this workflow does not handle.
        """
        item = self.ctx.project.get_item(item_id)
        if item is None:
            raise InvalidItemStateError(f"Item not found: {item_id}")
        if not self.accepts(item):
            raise InvalidItemStateError(
                f"Item {item_id} is in '{item.status}', expected '{self.status.value}'"
            )
        if self.uses_review_status and item.review_status == ReviewStatus.WAITING_FOR_CLARIFICATION.value:
            self.console.print("  ⏳ Waiting for clarification from admin, skipping")
            return None
        mode = self.mode_for(item)
        if mode is None:
            raise InvalidItemStateError(
                f"Item {item_id} has review status '{item.review_status}', which {self.phase_name} does not process"
            )
        prepared = self.prepare([ProcessableItem(item, mode)])
        return prepared[0] if prepared else None

    def items_to_process(self) -> List[ProcessableItem]:
        if self.options.item_id:
            single = self.resolve_single_item(self.options.item_id)
            return [single] if single else []
        return self.collect_items()

    # -- Single item --

    def new_log_context(self, processable: ProcessableItem) -> LogContext:
        item = processable.item
        return LogContext(
            issue_number=item.issue_number,
            workflow=self.workflow.value,
            phase=self.phase_name,
            issue_title=item.title,
            mode=MODE_LABELS[processable.mode],
            issue_type=item.issue_type,
            library=get_library_for_workflow(self.workflow, self.ctx.config).value,
            model=self.ctx.agents.get_model_for_workflow(self.workflow),
        )

    async def process_item(self, processable: ProcessableItem) -> ItemResult:
        item = processable.item
        log_ctx = self.new_log_context(processable)
        self.ctx.exec_logger.log_execution_start(log_ctx)
        self.log.item_started(item.issue_number, item.title, processable.mode.value)

        if not self.dry_run:
            self.ctx.notifier.agent_started(self.phase_name, item.title, item.issue_number, processable.mode.value)

        try:
            result = await self.execute(processable, log_ctx)
        except Exception as e:
            self.log.item_failed(str(e) or type(e).__name__)
            return handle_agent_error(
                e,
                log_ctx,
                self.phase_name,
                item.title,
                item.issue_number,
                self.dry_run,
                self.ctx.notifier,
                self.ctx.exec_logger,
                cleanup=self.cleanup_callback(processable),
                console=self.console,
            )

        if not log_ctx.ended:
            self.ctx.exec_logger.log_execution_end(log_ctx, success=result.success)
        if result.success:
            self.log.item_completed(log_ctx.elapsed_seconds(), log_ctx.total_cost_usd)
        return result

    @abstractmethod
    async def execute(self, processable: ProcessableItem, log_ctx: LogContext) -> ItemResult:
        """Do the workflow's work for one item. Raise to fail the item."""
        pass

    def cleanup_callback(self, processable: ProcessableItem) -> Optional[Callable[[], None]]:
        """Cleanup the error handler runs after a failure (e.g. leave the feature branch)."""
        return None

    # -- Shared steps --

    async def run_agent(
        self,
        log_ctx: LogContext,
        prompt: str,
        *,
        output_format: Optional[Dict[str, Any]] = None,
        allow_write: bool = False,
        allowed_tools: Optional[List[str]] = None,
        progress_label: Optional[str] = None,
    ) -> AgentRunResult:
        """Run the workflow's agent with logging attached. Raises AdapterError on failure."""
        adapter = await self.ctx.agents.get_agent_library(self.workflow)
        log_ctx.library = adapter.name or log_ctx.library
        options = AgentRunOptions(
            prompt=prompt,
            allowed_tools=allowed_tools,
            allow_write=allow_write,
            timeout=self.options.timeout,
            output_format=output_format,
            stream=self.options.stream,
            verbose=self.options.verbose,
            progress_label=progress_label,
            workflow=self.workflow.value,
            cwd=Path(self.ctx.config.workspace),
        )
        self.ctx.exec_logger.log_prompt(
            log_ctx, prompt, model=log_ctx.model, tools=options.resolved_tools(), timeout=options.timeout,
        )
        self.ctx.exec_logger.attach(log_ctx, options)

        result = await adapter.run(options)
        if not result.success:
            raise AdapterError(result.error or "No content generated")
        if result.content:
            self.ctx.exec_logger.log_text_response(log_ctx, result.content)
        return result

    def set_review_status(self, item: WorkflowItem, review_status: ReviewStatus, log_ctx: LogContext) -> None:
        if not self.uses_review_status or not self.ctx.project.has_review_status_field():
            return
        self.ctx.project.update_item_review_status(item.id, review_status.value)
        self.ctx.exec_logger.log_github_action(log_ctx, "issue_updated", f"Set Review Status to {review_status.value}")
        self.console.print(f"  Review Status updated to: {review_status.value}")

    def set_status(self, item: WorkflowItem, status: Status, log_ctx: LogContext) -> None:
        self.ctx.project.update_item_status(item.id, status.value)
        self.ctx.exec_logger.log_status_transition(log_ctx, item.status, status.value)
        self.console.print(f"  Status updated to: {status.value}")


# -- Batch --

def print_summary(console: Console, phase_name: str, results: BatchResults) -> None:
    table = Table(title=f"{phase_name} Summary")
    table.add_column("Processed", justify="right")
    table.add_column("Succeeded", justify="right", style="green")
    table.add_column("Failed", justify="right", style="red")
    table.add_column("Skipped", justify="right", style="yellow")
    table.add_row(str(results.processed), str(results.succeeded), str(results.failed), str(results.skipped))
    console.print(table)


async def run_batch(runner: WorkflowRunner) -> BatchResults:
    """
    Process every eligible item in listing order.

    Each item runs under its agent lock; a locked item is skipped, and the
    lock is released on every exit path. One batch notification is sent
    when more than one item was processed (never in dry-run).
    """
    console = runner.console
    console.rule(f"[bold]{runner.phase_name}[/]")
    if runner.dry_run:
        console.print("  [yellow]Mode: DRY RUN (no changes will be saved)[/]")

    runner.preflight()
    items = runner.items_to_process()
    results = BatchResults()
    if not items:
        console.print("\nNo items to process.")
        return results

    console.print(f"\nProcessing {len(items)} item(s)...")
    for index, processable in enumerate(items, start=1):
        item = processable.item
        console.print(f"\n[bold][{index}/{len(items)}] {item.title}[/]")
        console.print(f"  Item ID: {item.id}  Status: {item.status}  Mode: {MODE_LABELS[processable.mode]}")

        lock = runner.ctx.locks.for_item(item.id)
        if not lock.acquire():
            runner.log.info(f"🔒 Skipping #{item.issue_number}: locked by another run")
            results.record(item.title, ItemResult(success=True, skipped=True))
            continue

        try:
            result = await runner.process_item(processable)
        except Exception as e:
            # process_item routes failures through the error handler; this
            # only catches errors raised by the handler itself
            logger.exception(f"Unhandled error processing #{item.issue_number}")
            result = ItemResult(success=False, error=str(e) or type(e).__name__)
        finally:
            lock.release()

        results.record(item.title, result)
        if not result.success and not result.skipped:
            console.print(f"  [red]Failed:[/] {result.error}")

    print_summary(console, runner.phase_name, results)

    if results.processed > 1 and not runner.dry_run:
        runner.ctx.notifier.batch_complete(runner.phase_name, results.processed, results.succeeded, results.failed)
    return results
