"""Context and summary records for the per-issue execution log."""

import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional


@dataclass
class LogContext:
    """Correlation object for one workflow invocation on one item.

    Created at workflow start, passed explicitly to every logging call,
    and discarded after log_execution_end. The counters are filled in by
    the logger as tool calls and usage are recorded.
    """
    issue_number: int
    workflow: str
    phase: str
    issue_title: str = ""
    mode: Optional[str] = None
    issue_type: Optional[str] = None
    library: Optional[str] = None
    model: Optional[str] = None
    start_time: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    started_monotonic: float = field(default_factory=time.monotonic)

    tool_call_count: int = 0
    input_tokens: int = 0
    output_tokens: int = 0
    total_cost_usd: float = 0.0
    ended: bool = False

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens

    def elapsed_seconds(self) -> float:
        return time.monotonic() - self.started_monotonic


@dataclass
class ExecutionSummary:
    """Numbers written into the "Phase Result" block."""
    success: bool
    duration_seconds: float = 0.0
    tool_calls: int = 0
    total_tokens: int = 0
    total_cost_usd: float = 0.0

    @classmethod
    def from_context(cls, ctx: LogContext, success: bool) -> "ExecutionSummary":
        return cls(
            success=success,
            duration_seconds=ctx.elapsed_seconds(),
            tool_calls=ctx.tool_call_count,
            total_tokens=ctx.total_tokens,
            total_cost_usd=ctx.total_cost_usd,
        )


@dataclass
class PhaseCost:
    """One row of the cumulative cost summary."""
    name: str
    workflow: str
    duration_seconds: float
    tool_calls: int
    total_tokens: int
    total_cost_usd: float
    success: bool
    recorded_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
