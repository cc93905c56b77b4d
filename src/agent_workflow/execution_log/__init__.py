"""Per-issue execution logs with local or S3 storage."""

from .backends import LocalLogBackend, LogBackend, S3LogBackend, get_log_backend, issue_log_name
from .cost_summary import update_cost_summary
from .logger import REVIEW_TAG, ExecutionLogger, escape_code_block
from .types import ExecutionSummary, LogContext, PhaseCost

__all__ = [
    "LocalLogBackend",
    "LogBackend",
    "S3LogBackend",
    "get_log_backend",
    "issue_log_name",
    "update_cost_summary",
    "REVIEW_TAG",
    "ExecutionLogger",
    "escape_code_block",
    "ExecutionSummary",
    "LogContext",
    "PhaseCost",
]
