"""Console logging with workflow and issue context."""

import logging
import sys
from datetime import datetime
from typing import Optional


class WorkflowLogFormatter(logging.Formatter):
    """Formatter that prefixes records with [workflow] [#issue] context."""

    def __init__(self, use_colors: bool = True):
        super().__init__()
        self.use_colors = use_colors

    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")

        workflow_context = ""
        if hasattr(record, "workflow"):
            workflow_context = f"[{record.workflow}] "

        issue_context = ""
        if hasattr(record, "issue_number"):
            issue_context = f"[#{record.issue_number}] "

        if self.use_colors:
            level_colors = {
                "DEBUG": "\033[36m",      # Cyan
                "INFO": "\033[32m",       # Green
                "WARNING": "\033[33m",    # Yellow
                "ERROR": "\033[31m",      # Red
                "CRITICAL": "\033[35m",   # Magenta
            }
            reset = "\033[0m"
            level_color = level_colors.get(record.levelname, "")
        else:
            level_color = ""
            reset = ""

        message = (
            f"{timestamp} {level_color}{record.levelname:8s}{reset} "
            f"{workflow_context}{issue_context}{record.getMessage()}"
        )
        if record.exc_info:
            message += "\n" + self.formatException(record.exc_info)
        return message


class ContextLogger(logging.LoggerAdapter):
    """Logger adapter that stamps workflow and issue onto every record."""

    def __init__(self, logger: logging.Logger, workflow: str):
        super().__init__(logger, {})
        self.workflow = workflow
        self.issue_number: Optional[int] = None

    def set_issue(self, issue_number: Optional[int]) -> None:
        self.issue_number = issue_number

    def process(self, msg, kwargs):
        extra = kwargs.get("extra", {})
        extra["workflow"] = self.workflow
        if self.issue_number is not None:
            extra["issue_number"] = self.issue_number
        kwargs["extra"] = extra
        return msg, kwargs

    def item_started(self, issue_number: int, title: str, mode: str) -> None:
        self.set_issue(issue_number)
        self.info(f"📋 Processing: {title} ({mode})")

    def item_completed(self, duration_seconds: float, cost_usd: Optional[float] = None) -> None:
        msg = f"✅ Completed in {duration_seconds:.1f}s"
        if cost_usd:
            msg += f" (${cost_usd:.4f})"
        self.info(msg)
        self.set_issue(None)

    def item_failed(self, error: str) -> None:
        self.error(f"❌ Failed: {error}")
        self.set_issue(None)


def get_context_logger(workflow: str) -> ContextLogger:
    return ContextLogger(logging.getLogger(f"agent_workflow.{workflow}"), workflow)


def setup_logging(log_level: str = "INFO", verbose: bool = False) -> None:
    """Configure the root logger for CLI runs.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
        verbose: Force DEBUG regardless of log_level
    """
    root = logging.getLogger()
    level = logging.DEBUG if verbose else getattr(logging, log_level.upper())
    root.setLevel(level)

    # Close existing handlers before clearing (prevents file descriptor leak)
    for handler in root.handlers[:]:
        handler.close()
        root.removeHandler(handler)

    use_colors = sys.stderr.isatty() if hasattr(sys.stderr, "isatty") else False
    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(WorkflowLogFormatter(use_colors=use_colors))
    root.addHandler(handler)

    # Third-party HTTP chatter drowns out workflow output at DEBUG
    for noisy in ("urllib3", "github", "botocore", "boto3"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
