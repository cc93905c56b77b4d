"""Best-effort side effects that must not fail a workflow item."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


def log_and_ignore(
    error: Exception,
    message: str,
    *,
    logger_instance: Optional[logging.Logger] = None,
    level: int = logging.WARNING,
) -> None:
    """Log `error` under `message` and carry on.

    Used for artifact comments, cost summaries and cleanup. The traceback is
    only attached when debug logging is on.
    """
    log = logger_instance or logger
    log.log(level, f"{message}: {error}", exc_info=log.isEnabledFor(logging.DEBUG))
