"""OpenAI Codex adapter driving `codex exec --json`."""

import json
import logging
from typing import List, Optional

from .base import AdapterCapabilities, AgentRunOptions
from .cli_adapter import StreamState, StreamingCLIAdapter
from ..core.config import CodexConfig

logger = logging.getLogger(__name__)


def _process_codex_line(line: str, state: StreamState, options: Optional[AgentRunOptions] = None) -> None:
    """Parse one JSONL event from codex exec --json."""
    line = line.strip()
    if not line:
        return
    try:
        event = json.loads(line)
    except (json.JSONDecodeError, ValueError):
        logger.debug(f"Ignoring non-JSON codex output: {line[:200]}")
        return

    event_type = event.get("type", "")
    item = event.get("item", {}) or {}
    item_type = item.get("type")
    item_id = item.get("id", "")

    if event_type == "thread.started":
        state.session_id = event.get("thread_id")

    elif event_type == "item.started" and item_type == "command_execution":
        state.tool_call_count += 1
        state.tool_names[item_id] = "Bash"
        if options and options.on_tool_call:
            options.on_tool_call("Bash", {"command": item.get("command", "")}, item_id)

    elif event_type == "item.completed":
        if item_type == "agent_message":
            text = item.get("text", "")
            state.text_chunks.append(text)
            # The last agent message is the final answer
            state.result_text = text
            if options and options.on_text:
                options.on_text(text)
        elif item_type == "command_execution":
            if options and options.on_tool_result:
                options.on_tool_result(item_id, item.get("aggregated_output", ""))
        elif item_type == "file_change":
            for change in item.get("changes", []) or []:
                if options and options.on_tool_call:
                    options.on_tool_call("Edit", change, item_id)
        elif item_type == "reasoning":
            logger.debug(f"codex reasoning: {item.get('text', '')[:200]}")

    elif event_type == "turn.completed":
        usage = event.get("usage", {}) or {}
        state.usage["input_tokens"] = state.usage.get("input_tokens", 0) + usage.get("input_tokens", 0)
        state.usage["output_tokens"] = state.usage.get("output_tokens", 0) + usage.get("output_tokens", 0)
        state.usage["cache_read_input_tokens"] = (
            state.usage.get("cache_read_input_tokens", 0) + usage.get("cached_input_tokens", 0)
        )

    elif event_type in ("turn.failed", "error"):
        state.is_error = True
        error = event.get("error") or {}
        state.error_message = error.get("message") if isinstance(error, dict) else event.get("message")


class CodexAdapter(StreamingCLIAdapter):
    """Agent library backed by the OpenAI Codex CLI (prompt read from stdin via '-')."""

    name = "openai-codex"
    capabilities = AdapterCapabilities(
        streaming=True,
        structured_output=False,
        tool_use=True,
        file_read=True,
        file_write=True,
        web_fetch=False,
        custom_tools=False,
    )

    def __init__(self, config: Optional[CodexConfig] = None):
        super().__init__()
        self.config = config or CodexConfig()
        self.executable = self.config.executable
        self.timeout_seconds = self.config.timeout_seconds

    def default_model(self) -> Optional[str]:
        return self.config.model

    def build_command(self, options: AgentRunOptions) -> List[str]:
        cmd = [self.executable, "exec", "--json", "--skip-git-repo-check"]
        model = options.model or self.config.model
        if model:
            cmd.extend(["--model", model])
        cmd.extend(["--sandbox", "workspace-write" if options.allow_write else "read-only"])
        cmd.append("-")
        return cmd

    def full_prompt(self, options: AgentRunOptions) -> str:
        prompt = super().full_prompt(options)
        if options.system_prompt:
            prompt = f"{options.system_prompt}\n\n{prompt}"
        return prompt

    def process_line(self, line: str, state: StreamState, options: AgentRunOptions) -> None:
        _process_codex_line(line, state, options)
