"""Claude Code adapter driving the claude CLI in stream-json mode."""

import json
import logging
from typing import List, Optional

from .base import AdapterCapabilities, AgentRunOptions
from .cli_adapter import StreamState, StreamingCLIAdapter
from ..core.config import ClaudeCodeConfig

logger = logging.getLogger(__name__)


def _process_stream_line(line: str, state: StreamState, options: Optional[AgentRunOptions] = None) -> None:
    """Parse a single JSON line from --output-format stream-json.

    Assistant text goes to on_text, tool_use blocks to on_tool_call,
    tool_result blocks to on_tool_result; the final result event carries
    usage and cost.
    """
    line = line.strip()
    if not line:
        return

    try:
        event = json.loads(line)
    except (json.JSONDecodeError, ValueError):
        # Not JSON; CLI version mismatch or plain output, keep as text
        state.text_chunks.append(line + "\n")
        if options and options.on_text:
            options.on_text(line + "\n")
        return

    event_type = event.get("type")

    if event_type == "assistant":
        message = event.get("message", {})

        # Per-turn usage as fallback when the result event never arrives
        msg_usage = message.get("usage", {})
        for key in ("input_tokens", "output_tokens"):
            if msg_usage.get(key):
                state.usage[key] = state.usage.get(key, 0) + msg_usage[key]

        for block in message.get("content", []):
            block_type = block.get("type")
            if block_type == "text":
                text = block.get("text", "")
                state.text_chunks.append(text)
                if options and options.on_text:
                    options.on_text(text)
            elif block_type == "tool_use":
                tool_name = block.get("name", "unknown")
                tool_input = block.get("input", {}) or {}
                tool_id = block.get("id", "")
                state.tool_call_count += 1
                state.tool_names[tool_id] = tool_name
                if tool_name == "Read":
                    state.record_file(tool_input.get("file_path") or tool_input.get("path"))
                if options and options.on_tool_call:
                    options.on_tool_call(tool_name, tool_input, tool_id)

    elif event_type == "user":
        for block in event.get("message", {}).get("content", []) or []:
            if not isinstance(block, dict) or block.get("type") != "tool_result":
                continue
            content = block.get("content", "")
            if isinstance(content, list):
                content = "".join(part.get("text", "") for part in content if isinstance(part, dict))
            if options and options.on_tool_result:
                options.on_tool_result(block.get("tool_use_id", ""), str(content))

    elif event_type == "result":
        # Result usage may only cover the final turn; keep the larger value
        usage = event.get("usage", {}) or {}
        for key in ("input_tokens", "output_tokens"):
            state.usage[key] = max(state.usage.get(key, 0), usage.get(key, 0))
        for key in ("cache_read_input_tokens", "cache_creation_input_tokens"):
            if usage.get(key) is not None:
                state.usage[key] = usage[key]
        if event.get("total_cost_usd") is not None:
            state.usage["total_cost_usd"] = event["total_cost_usd"]
        if event.get("result"):
            state.result_text = event["result"]
        if isinstance(event.get("structured_output"), dict):
            state.structured_output = event["structured_output"]
        if event.get("is_error"):
            state.is_error = True
            state.error_message = event.get("result") or event.get("subtype")

    elif event_type == "system":
        if event.get("subtype") == "init":
            state.session_id = event.get("session_id")

    else:
        logger.debug(f"Unknown stream-json event type: {event_type}")


class ClaudeCodeAdapter(StreamingCLIAdapter):
    """
    Agent library backed by the Claude Code CLI.

    Spawns: claude --print --output-format stream-json --verbose --model M --max-turns N
    with the prompt on stdin.
    """

    name = "claude-code-sdk"
    capabilities = AdapterCapabilities(
        streaming=True,
        structured_output=True,
        tool_use=True,
        file_read=True,
        file_write=True,
        web_fetch=True,
        custom_tools=True,
    )

    def __init__(self, config: Optional[ClaudeCodeConfig] = None):
        super().__init__()
        self.config = config or ClaudeCodeConfig()
        self.executable = self.config.executable
        self.timeout_seconds = self.config.timeout_seconds

    def default_model(self) -> Optional[str]:
        return self.config.model

    def build_command(self, options: AgentRunOptions) -> List[str]:
        cmd = [
            self.executable,
            "--print",
            "--output-format", "stream-json",
            "--verbose",
            "--model", options.model or self.config.model,
            "--max-turns", str(self.config.max_turns),
            "--allowedTools", ",".join(options.resolved_tools()),
        ]
        if options.allow_write:
            cmd.extend(["--permission-mode", "acceptEdits"])
        if options.system_prompt:
            cmd.extend(["--append-system-prompt", options.system_prompt])
        return cmd

    def process_line(self, line: str, state: StreamState, options: AgentRunOptions) -> None:
        _process_stream_line(line, state, options)
