"""Shared utility functions for the workflow engine."""

from .atomic_io import atomic_write_text
from .error_handling import log_and_ignore
from .subprocess_utils import SubprocessError, run_command, run_git_command
from .process_utils import kill_process_tree
from .validators import validate_branch_name

__all__ = [
    # Atomic I/O
    "atomic_write_text",
    # Error handling
    "log_and_ignore",
    # Subprocess utilities
    "SubprocessError",
    "run_command",
    "run_git_command",
    # Process management
    "kill_process_tree",
    # Validators
    "validate_branch_name",
]
