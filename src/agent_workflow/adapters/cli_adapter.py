"""Common run loop for adapters that wrap a streaming agent CLI."""

import logging
import shutil
import time
from abc import abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from .base import (
    AgentLibraryAdapter,
    AgentRunOptions,
    AgentRunResult,
    AgentUsage,
    output_format_instructions,
)
from .subprocess_runner import StreamingCLIProcess, build_env
from ..parsing.extract import extract_json

logger = logging.getLogger(__name__)


@dataclass
class StreamState:
    """Accumulates normalized data from a CLI's event stream."""
    text_chunks: List[str] = field(default_factory=list)
    usage: Dict[str, float] = field(default_factory=dict)
    result_text: Optional[str] = None
    structured_output: Optional[dict] = None
    is_error: bool = False
    error_message: Optional[str] = None
    files_examined: List[str] = field(default_factory=list)
    tool_names: Dict[str, str] = field(default_factory=dict)
    tool_call_count: int = 0
    session_id: Optional[str] = None

    def record_file(self, path: Optional[str]) -> None:
        if path and path not in self.files_examined:
            self.files_examined.append(path)

    def to_usage(self) -> AgentUsage:
        return AgentUsage(
            input_tokens=int(self.usage.get("input_tokens", 0)),
            output_tokens=int(self.usage.get("output_tokens", 0)),
            cache_read_input_tokens=int(self.usage.get("cache_read_input_tokens", 0)),
            cache_creation_input_tokens=int(self.usage.get("cache_creation_input_tokens", 0)),
            total_cost_usd=self.usage.get("total_cost_usd"),
        )


class StreamingCLIAdapter(AgentLibraryAdapter):
    """
    Base for CLI-backed adapters.

    Subclasses supply the command line and a per-line event parser; this
    class owns timeout enforcement, result normalization and cancel().
    """

    executable: str = ""
    timeout_seconds: int = 600

    def __init__(self):
        super().__init__()
        self._process: Optional[StreamingCLIProcess] = None

    async def init(self) -> None:
        if shutil.which(self.executable) is None:
            raise RuntimeError(f"'{self.executable}' executable not found on PATH")
        self._initialized = True

    @abstractmethod
    def build_command(self, options: AgentRunOptions) -> List[str]:
        pass

    @abstractmethod
    def process_line(self, line: str, state: StreamState, options: AgentRunOptions) -> None:
        pass

    def prompt_via_stdin(self) -> bool:
        return True

    def full_prompt(self, options: AgentRunOptions) -> str:
        return options.prompt + output_format_instructions(options.output_format)

    async def run(self, options: AgentRunOptions) -> AgentRunResult:
        start_time = time.time()
        timeout = options.timeout or self.timeout_seconds
        state = StreamState()

        process = StreamingCLIProcess(
            self.build_command(options),
            on_line=lambda line: self.process_line(line, state, options),
            cwd=options.cwd,
            env=build_env(),
        )
        self._process = process
        try:
            outcome = await process.run(
                timeout=timeout,
                stdin_text=self.full_prompt(options) if self.prompt_via_stdin() else None,
            )
        finally:
            self._process = None

        duration = time.time() - start_time
        usage = state.to_usage()
        if options.on_usage:
            options.on_usage(usage)
        content = state.result_text or "".join(state.text_chunks)

        if outcome.error:
            return AgentRunResult(success=False, error=outcome.error, duration_seconds=duration)

        if outcome.timed_out:
            return AgentRunResult(
                success=False,
                content=content or None,
                usage=usage,
                error=f"Timed out after {timeout} seconds",
                files_examined=state.files_examined,
                duration_seconds=duration,
            )

        if outcome.returncode != 0 or state.is_error:
            error_parts = [f"{self.name} exited with code {outcome.returncode}"]
            if state.error_message:
                error_parts.append(state.error_message[:1000])
            if outcome.stderr.strip():
                error_parts.append(f"STDERR: {outcome.stderr.strip()[:1000]}")
            error = " | ".join(error_parts)
            logger.error(f"Agent run failed: {error}")
            return AgentRunResult(
                success=False,
                content=content or None,
                usage=usage,
                error=error,
                files_examined=state.files_examined,
                duration_seconds=duration,
            )

        structured = state.structured_output
        if structured is None and options.output_format:
            structured = extract_json(content)

        return AgentRunResult(
            success=True,
            content=content,
            structured_output=structured,
            usage=usage,
            files_examined=state.files_examined,
            duration_seconds=duration,
        )

    def cancel(self) -> None:
        if self._process:
            self._process.kill()
