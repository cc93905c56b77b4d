"""Detached background work with its own error channel.

Remote log writes and the cost summary are submitted here. Callers get a
Future back immediately; failures are reported to the logger (and to an
optional on_error callback), never raised into the caller.
"""

import atexit
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Callable, Optional

logger = logging.getLogger(__name__)

_executor: Optional[ThreadPoolExecutor] = None


def _get_executor() -> ThreadPoolExecutor:
    global _executor
    if _executor is None:
        # Single worker keeps appends to the same object in submission order
        _executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="agent-detached")
    return _executor


def submit_detached(
    func: Callable[..., object],
    *args,
    description: str = "background task",
    on_error: Optional[Callable[[BaseException], None]] = None,
    **kwargs,
) -> Future:
    """Run func in the background and report failures as warnings."""
    future = _get_executor().submit(func, *args, **kwargs)

    def _report(done: Future) -> None:
        error = done.exception()
        if error is None:
            return
        logger.warning(f"{description} failed: {error}")
        if on_error is not None:
            try:
                on_error(error)
            except Exception as callback_error:
                logger.debug(f"on_error callback for {description} raised: {callback_error}")

    future.add_done_callback(_report)
    return future


def flush_detached() -> None:
    """Wait for all submitted work to finish. Called at CLI exit and in tests."""
    global _executor
    if _executor is None:
        return
    _executor.shutdown(wait=True)
    _executor = None


atexit.register(flush_detached)
