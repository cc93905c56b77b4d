"""Human-readable markdown execution log, one file per issue.

Each workflow invocation writes a "## Phase:" block bracketed by
log_execution_start / log_execution_end. The LogContext is passed to every
call; the logger keeps no per-issue state of its own.
"""

import json
import logging
import re
import traceback
from datetime import datetime
from typing import Any, Dict, List, Optional

from .backends import LogBackend, issue_log_name
from .cost_summary import format_cost, format_duration, update_cost_summary
from .types import ExecutionSummary, LogContext, PhaseCost
from ..adapters.base import AgentRunOptions, AgentUsage
from ..core.config import BudgetConfig
from ..utils.detached import submit_detached

logger = logging.getLogger(__name__)

REVIEW_TAG = "[LOG:REVIEW]"
TOOL_RESULT_MAX_CHARS = 5000

GITHUB_ACTION_EMOJI = {
    "comment": "💬",
    "pr_created": "🔀",
    "issue_updated": "📝",
}

# Credentials that show up in Bash tool inputs
_REDACTION_PATTERNS = [
    (re.compile(r"(Authorization:\s*(?:Bearer|Basic|Token)\s+)\S+", re.IGNORECASE), r"\1***"),
    (re.compile(r"((?:GITHUB_TOKEN|TELEGRAM_BOT_TOKEN|AWS_SECRET_ACCESS_KEY|ANTHROPIC_API_KEY)=)\S+"), r"\1***"),
]


def escape_code_block(content: str) -> str:
    """Replace ``` with ```` so embedded fences cannot close the log's own block."""
    return content.replace("```", "````")


def _redact(text: str) -> str:
    for pattern, replacement in _REDACTION_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


def _now() -> str:
    return datetime.now().strftime("%H:%M:%S")


def _to_text(value: Any) -> str:
    if isinstance(value, str):
        return value
    return json.dumps(value, indent=2, default=str)


class ExecutionLogger:
    """Writes execution log entries through a LogBackend."""

    def __init__(self, backend: LogBackend, budget: Optional[BudgetConfig] = None):
        self.backend = backend
        self.budget = budget

    def _append(self, ctx: LogContext, content: str, header: Optional[str] = None) -> None:
        self.backend.append(issue_log_name(ctx.issue_number), content, header)

    def log_exists(self, issue_number: int) -> bool:
        return self.backend.exists(issue_log_name(issue_number))

    def log_location(self, issue_number: int) -> str:
        return self.backend.location(issue_log_name(issue_number))

    def read_log(self, issue_number: int) -> str:
        return self.backend.read(issue_log_name(issue_number))

    def append_review(self, issue_number: int, content: str):
        """Append a workflow review section, tagged so it is found again."""
        return self.backend.append(issue_log_name(issue_number), f"---\n\n## Workflow Review {REVIEW_TAG}\n\n{content.strip()}\n\n")

    def log_execution_start(self, ctx: LogContext) -> None:
        """Write the phase header, creating the issue header on first use."""
        header = (
            f"# Issue #{ctx.issue_number}: {ctx.issue_title}\n\n"
            f"**Type:** {ctx.issue_type or 'Unknown'}\n"
            f"**Started:** {ctx.start_time.isoformat()}\n\n"
            "---\n\n"
        )
        lines = [f"## Phase: {ctx.phase}", "", f"**Agent:** {ctx.workflow}"]
        if ctx.mode:
            lines.append(f"**Mode:** {ctx.mode}")
        if ctx.library:
            lines.append(f"**Library:** {ctx.library}" + (f" ({ctx.model})" if ctx.model else ""))
        lines.append(f"**Started:** {ctx.start_time.astimezone().strftime('%H:%M:%S')}")
        self._append(ctx, "\n".join(lines) + "\n\n", header=header)
        logger.debug(f"Agent log: {self.log_location(ctx.issue_number)}")

    def log_prompt(
        self,
        ctx: LogContext,
        prompt: str,
        model: Optional[str] = None,
        tools: Optional[List[str]] = None,
        timeout: Optional[int] = None,
    ) -> None:
        tools_list = ", ".join(tools) if tools else "None"
        timeout_str = f"{timeout}s" if timeout else "None"
        self._append(
            ctx,
            "### Prompt\n\n"
            f"**Model:** {model or 'Unknown'} | **Tools:** {tools_list} | **Timeout:** {timeout_str}\n\n"
            f"```\n{escape_code_block(prompt)}\n```\n\n"
            "### Agent Execution\n\n",
        )

    def log_tool_call(self, ctx: LogContext, tool_id: str, tool_name: str, tool_input: Any) -> None:
        ctx.tool_call_count += 1
        input_str = _redact(_to_text(tool_input))
        self._append(
            ctx,
            f"**[{_now()}]** 🔧 Tool: {tool_name} (ID: {tool_id})\n\n"
            f"```json\n{escape_code_block(input_str)}\n```\n\n",
        )

    def log_tool_result(self, ctx: LogContext, tool_id: str, tool_name: str, output: Any) -> None:
        output_str = _to_text(output)
        if len(output_str) > TOOL_RESULT_MAX_CHARS:
            output_str = output_str[:TOOL_RESULT_MAX_CHARS] + "\n\n... (truncated)"
        self._append(
            ctx,
            f"**[{_now()}]** ✅ Tool Result: {tool_name} (ID: {tool_id})\n\n"
            f"```\n{escape_code_block(output_str)}\n```\n\n",
        )

    def log_text_response(self, ctx: LogContext, text: str) -> None:
        self._append(ctx, f"**[{_now()}]** 📝 Response:\n\n{text}\n\n")

    def log_info(self, ctx: LogContext, message: str) -> None:
        self._append(ctx, f"**[{_now()}]** ℹ️ {message}\n\n")

    def log_status_transition(self, ctx: LogContext, from_status: Optional[str], to_status: Optional[str]) -> None:
        self._append(
            ctx,
            f"**[{_now()}]** 🔄 Status changed: {from_status or '(none)'} → {to_status or '(none)'}\n\n",
        )

    def log_github_action(self, ctx: LogContext, action: str, details: str) -> None:
        emoji = GITHUB_ACTION_EMOJI.get(action, "🏷️")
        self._append(ctx, f"**[{_now()}]** {emoji} GitHub: {action.replace('_', ' ')} - {details}\n\n")

    def log_error(self, ctx: LogContext, error: Any, is_fatal: bool = False) -> None:
        """Record an error. [LOG:FATAL]/[LOG:ERROR] tags make errors greppable."""
        if isinstance(error, BaseException):
            message = str(error) or type(error).__name__
            stack = "".join(traceback.format_exception(type(error), error, error.__traceback__))
        else:
            message = str(error)
            stack = None
        tag = "[LOG:FATAL]" if is_fatal else "[LOG:ERROR]"
        body = escape_code_block(message)
        if stack and error.__traceback__ is not None:
            body += f"\n\nStack trace:\n{escape_code_block(stack)}"
        self._append(
            ctx,
            f"**[{_now()}]** ❌ {'FATAL ' if is_fatal else ''}Error: {tag}\n\n```\n{body}\n```\n\n",
        )

    def log_token_usage(self, ctx: LogContext, usage: AgentUsage) -> None:
        ctx.input_tokens += usage.input_tokens
        ctx.output_tokens += usage.output_tokens
        if usage.total_cost_usd:
            ctx.total_cost_usd += usage.total_cost_usd
        cost_str = f" | **Cost:** {format_cost(usage.total_cost_usd)}" if usage.total_cost_usd else ""
        self._append(
            ctx,
            f"**[{_now()}]** 📊 Tokens: {usage.input_tokens} in / {usage.output_tokens} out "
            f"({usage.total_tokens} total){cost_str}\n\n",
        )

    def log_execution_end(self, ctx: LogContext, summary: Optional[ExecutionSummary] = None, success: bool = False):
        """Write the Phase Result block and queue the cumulative cost update.

        Returns the Future of the detached cost update. Its failures are
        logged as warnings and never reach the caller.
        """
        if summary is None:
            summary = ExecutionSummary.from_context(ctx, success=success)
        self._append(
            ctx,
            "---\n\n### Phase Result\n\n"
            f"**Duration:** {format_duration(summary.duration_seconds)}\n"
            f"**Tool calls:** {summary.tool_calls}\n"
            f"**Tokens:** {summary.total_tokens}\n"
            f"**Cost:** {format_cost(summary.total_cost_usd) if summary.total_cost_usd else '$0.00'}\n"
            f"**Status:** {'✅ Success' if summary.success else '❌ Failed'}\n\n",
        )
        ctx.ended = True

        phase = PhaseCost(
            name=ctx.phase,
            workflow=ctx.workflow,
            duration_seconds=summary.duration_seconds,
            tool_calls=summary.tool_calls,
            total_tokens=summary.total_tokens,
            total_cost_usd=summary.total_cost_usd,
            success=summary.success,
        )
        logger.info(f"📝 Agent log saved: {self.log_location(ctx.issue_number)}")
        return submit_detached(
            update_cost_summary, self.backend, ctx, phase, self.budget,
            description=f"Cost summary update for issue #{ctx.issue_number}",
        )

    def attach(self, ctx: LogContext, options: AgentRunOptions) -> AgentRunOptions:
        """Route an adapter's event callbacks into this log.

        Existing callbacks on options are kept and called first.
        """
        tool_names: Dict[str, str] = {}
        prev_call, prev_result, prev_usage = options.on_tool_call, options.on_tool_result, options.on_usage

        def on_tool_call(name: str, tool_input: dict, tool_id: str) -> None:
            if prev_call:
                prev_call(name, tool_input, tool_id)
            tool_names[tool_id] = name
            self.log_tool_call(ctx, tool_id, name, tool_input)

        def on_tool_result(tool_id: str, output: str) -> None:
            if prev_result:
                prev_result(tool_id, output)
            self.log_tool_result(ctx, tool_id, tool_names.get(tool_id, "unknown"), output)

        def on_usage(usage: AgentUsage) -> None:
            if prev_usage:
                prev_usage(usage)
            self.log_token_usage(ctx, usage)

        options.on_tool_call = on_tool_call
        options.on_tool_result = on_tool_result
        options.on_usage = on_usage
        return options
