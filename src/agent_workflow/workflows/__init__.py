"""Workflow runners and the batch loop that drives them."""

from .base import (
    EligibilityPartition,
    WorkflowContext,
    WorkflowRunner,
    mode_for_review_status,
    partition_items,
    print_summary,
    run_batch,
)
from .bug_investigation import BugInvestigationWorkflow
from .error_handler import handle_agent_error
from .implementation import ImplementationWorkflow
from .phase_completion import PhaseCompletion, complete_phase
from .pr_review import PRReviewWorkflow
from .product_design import ProductDesignWorkflow
from .product_development import ProductDevelopmentWorkflow
from .tech_design import TechDesignWorkflow
from .triage import TriageWorkflow
from .types import BatchResults, ItemResult, ProcessableItem, RunOptions
from .workflow_review import WorkflowReviewWorkflow

__all__ = [
    "EligibilityPartition",
    "WorkflowContext",
    "WorkflowRunner",
    "mode_for_review_status",
    "partition_items",
    "print_summary",
    "run_batch",
    "BugInvestigationWorkflow",
    "handle_agent_error",
    "ImplementationWorkflow",
    "PhaseCompletion",
    "complete_phase",
    "PRReviewWorkflow",
    "ProductDesignWorkflow",
    "ProductDevelopmentWorkflow",
    "TechDesignWorkflow",
    "TriageWorkflow",
    "BatchResults",
    "ItemResult",
    "ProcessableItem",
    "RunOptions",
    "WorkflowReviewWorkflow",
]
