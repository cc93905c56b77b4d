"""Core models and configuration."""

from .config import WorkflowSettings, clear_config_cache, load_config
from .locks import AgentLock, LockManager
from .models import (
    Comment,
    ImplementationPhase,
    ItemContent,
    LibraryId,
    OpenPullRequest,
    PhaseProgress,
    ProcessingMode,
    ReviewDecision,
    ReviewStatus,
    Status,
    WorkflowItem,
    WorkflowName,
)
from .state_store import WorkflowItemRecord, WorkflowItemStore

__all__ = [
    "WorkflowSettings",
    "clear_config_cache",
    "load_config",
    "AgentLock",
    "LockManager",
    "Comment",
    "ImplementationPhase",
    "ItemContent",
    "LibraryId",
    "OpenPullRequest",
    "PhaseProgress",
    "ProcessingMode",
    "ReviewDecision",
    "ReviewStatus",
    "Status",
    "WorkflowItem",
    "WorkflowName",
    "WorkflowItemRecord",
    "WorkflowItemStore",
]
