"""Cursor adapter driving the cursor-agent CLI."""

import json
import logging
from typing import List, Optional

from .base import AdapterCapabilities, AgentRunOptions
from .cli_adapter import StreamState, StreamingCLIAdapter
from ..core.config import CursorConfig

logger = logging.getLogger(__name__)

# cursor-agent reports tool calls as {"<kind>ToolCall": {"args": {...}}}
_CURSOR_TOOL_NAMES = {
    "readToolCall": "Read",
    "writeToolCall": "Write",
    "editToolCall": "Edit",
    "shellToolCall": "Bash",
    "grepToolCall": "Grep",
    "globToolCall": "Glob",
    "lsToolCall": "LS",
}


def _process_cursor_line(line: str, state: StreamState, options: Optional[AgentRunOptions] = None) -> None:
    """Parse one line of cursor-agent --output-format stream-json."""
    line = line.strip()
    if not line:
        return
    try:
        event = json.loads(line)
    except (json.JSONDecodeError, ValueError):
        state.text_chunks.append(line + "\n")
        return

    event_type = event.get("type")

    if event_type == "assistant":
        for block in event.get("message", {}).get("content", []) or []:
            if block.get("type") == "text":
                text = block.get("text", "")
                state.text_chunks.append(text)
                if options and options.on_text:
                    options.on_text(text)

    elif event_type == "tool_call":
        call_id = event.get("call_id", "")
        tool_call = event.get("tool_call", {}) or {}
        kind = next(iter(tool_call), "unknownToolCall")
        tool_name = _CURSOR_TOOL_NAMES.get(kind, kind.replace("ToolCall", ""))
        payload = tool_call.get(kind, {}) or {}
        if event.get("subtype") == "started":
            args = payload.get("args", {}) or {}
            state.tool_call_count += 1
            state.tool_names[call_id] = tool_name
            if tool_name == "Read":
                state.record_file(args.get("path"))
            if options and options.on_tool_call:
                options.on_tool_call(tool_name, args, call_id)
        elif event.get("subtype") == "completed":
            if options and options.on_tool_result:
                options.on_tool_result(call_id, json.dumps(payload.get("result", {}), default=str))

    elif event_type == "result":
        if event.get("result"):
            state.result_text = event["result"]
        if event.get("is_error"):
            state.is_error = True
            state.error_message = event.get("result")
        usage = event.get("usage") or {}
        for key in ("input_tokens", "output_tokens"):
            if usage.get(key) is not None:
                state.usage[key] = usage[key]

    elif event_type == "system":
        state.session_id = event.get("session_id") or state.session_id


class CursorAdapter(StreamingCLIAdapter):
    """Agent library backed by the Cursor agent CLI (prompt passed as argument)."""

    name = "cursor"
    capabilities = AdapterCapabilities(
        streaming=True,
        structured_output=False,
        tool_use=True,
        file_read=True,
        file_write=True,
        web_fetch=False,
        custom_tools=False,
    )

    def __init__(self, config: Optional[CursorConfig] = None):
        super().__init__()
        self.config = config or CursorConfig()
        self.executable = self.config.executable
        self.timeout_seconds = self.config.timeout_seconds

    def default_model(self) -> Optional[str]:
        return self.config.model

    def prompt_via_stdin(self) -> bool:
        return False

    def build_command(self, options: AgentRunOptions) -> List[str]:
        cmd = [self.executable, "-p", "--output-format", "stream-json"]
        model = options.model or self.config.model
        if model:
            cmd.extend(["--model", model])
        if options.allow_write:
            cmd.append("--force")
        prompt = self.full_prompt(options)
        if options.system_prompt:
            prompt = f"{options.system_prompt}\n\n{prompt}"
        cmd.append(prompt)
        return cmd

    def process_line(self, line: str, state: StreamState, options: AgentRunOptions) -> None:
        _process_cursor_line(line, state, options)
