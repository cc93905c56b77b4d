"""Deterministic branch names.

Re-running a workflow for the same issue (and phase) always lands on the
same branch, so an interrupted run resumes instead of forking.
"""

from typing import Optional

from ..utils.validators import validate_branch_name


def generate_task_branch_name(issue_number: int, issue_type: str = "feature") -> str:
    prefix = "fix" if issue_type == "bug" else "feature"
    return validate_branch_name(f"{prefix}/task-{issue_number}")


def generate_phase_branch_name(issue_number: int, phase_order: int, issue_type: str = "feature") -> str:
    prefix = "fix" if issue_type == "bug" else "feature"
    return validate_branch_name(f"{prefix}/task-{issue_number}-phase-{phase_order}")


def generate_implementation_branch_name(
    issue_number: int,
    issue_type: str = "feature",
    phase_order: Optional[int] = None,
    phase_total: Optional[int] = None,
) -> str:
    """Phase branch for a multi-phase item, the task branch otherwise."""
    if phase_order is not None and phase_total is not None and phase_total > 1:
        return generate_phase_branch_name(issue_number, phase_order, issue_type)
    return generate_task_branch_name(issue_number, issue_type)
