"""Result and option types shared by every workflow."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ..core.models import ProcessingMode, WorkflowItem


@dataclass
class RunOptions:
    """CLI options for one batch run."""
    item_id: Optional[str] = None
    dry_run: bool = False
    stream: bool = False
    verbose: bool = False
    limit: Optional[int] = None
    timeout: Optional[int] = None
    # implementation only
    skip_push: bool = False
    skip_pull: bool = False
    skip_local_test: bool = False


@dataclass
class ProcessableItem:
    item: WorkflowItem
    mode: ProcessingMode
    # Flow-specific context found during eligibility (e.g. the open PR for feedback)
    extra: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ItemResult:
    success: bool
    error: Optional[str] = None
    pr_number: Optional[int] = None
    skipped: bool = False


@dataclass
class BatchResults:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    skipped: int = 0
    failures: List[Tuple[str, str]] = field(default_factory=list)

    def record(self, title: str, result: ItemResult) -> None:
        if result.skipped:
            self.skipped += 1
            return
        self.processed += 1
        if result.success:
            self.succeeded += 1
        else:
            self.failed += 1
            self.failures.append((title, result.error or "Unknown error"))
