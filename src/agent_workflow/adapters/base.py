"""Base agent library adapter interface."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

READ_ONLY_TOOLS = ["Read", "Glob", "Grep", "WebFetch"]
WRITE_TOOLS = ["Edit", "Write", "Bash"]


@dataclass
class AdapterCapabilities:
    """What a backend can do; workflows check this before relying on a feature."""
    streaming: bool = False
    structured_output: bool = False
    tool_use: bool = False
    file_read: bool = False
    file_write: bool = False
    web_fetch: bool = False
    custom_tools: bool = False
    read_only: bool = False


@dataclass
class AgentUsage:
    """Token usage and cost reported by a backend."""
    input_tokens: int = 0
    output_tokens: int = 0
    cache_read_input_tokens: int = 0
    cache_creation_input_tokens: int = 0
    total_cost_usd: Optional[float] = None

    @property
    def total_tokens(self) -> int:
        return self.input_tokens + self.output_tokens


@dataclass
class AgentRunOptions:
    """A single run request, independent of backend."""
    prompt: str
    system_prompt: Optional[str] = None
    allowed_tools: Optional[List[str]] = None  # None = derive from allow_write
    allow_write: bool = False
    model: Optional[str] = None  # None = adapter's configured model
    timeout: Optional[int] = None  # seconds; None = adapter default
    output_format: Optional[Dict[str, Any]] = None  # JSON schema for structured output
    stream: bool = False
    verbose: bool = False
    progress_label: Optional[str] = None
    workflow: Optional[str] = None
    cwd: Optional[Path] = None
    # Event callbacks: text chunk, (tool_name, tool_input, tool_use_id),
    # (tool_use_id, output), and final usage
    on_text: Optional[Callable[[str], None]] = None
    on_tool_call: Optional[Callable[[str, dict, str], None]] = None
    on_tool_result: Optional[Callable[[str, str], None]] = None
    on_usage: Optional[Callable[["AgentUsage"], None]] = None

    def resolved_tools(self) -> List[str]:
        if self.allowed_tools is not None:
            return list(self.allowed_tools)
        return READ_ONLY_TOOLS + (WRITE_TOOLS if self.allow_write else [])


@dataclass
class AgentRunResult:
    """Normalized outcome of one adapter call. Never mutated after creation."""
    success: bool
    content: Optional[str] = None
    structured_output: Optional[Dict[str, Any]] = None
    usage: Optional[AgentUsage] = None
    error: Optional[str] = None
    files_examined: List[str] = field(default_factory=list)
    duration_seconds: float = 0.0

    def trusted_output(self) -> Optional[Dict[str, Any]]:
        """structured_output, but only when the run succeeded."""
        return self.structured_output if self.success else None


class AgentLibraryAdapter(ABC):
    """Abstract base class for agent libraries."""

    name: str = ""
    capabilities: AdapterCapabilities = AdapterCapabilities()

    def __init__(self):
        self._initialized = False

    @property
    def is_initialized(self) -> bool:
        return self._initialized

    async def init(self) -> None:
        """Verify the backend is usable. Raise to signal construction failure."""
        self._initialized = True

    @abstractmethod
    async def run(self, options: AgentRunOptions) -> AgentRunResult:
        """
        Run the agent once.

        Must not raise for backend failures: timeouts, crashes and bad output
        are reported as AgentRunResult(success=False, error=...).
        """
        pass

    def cancel(self) -> None:
        """Abort an in-flight run. Default no-op for backends without processes."""
        pass

    async def dispose(self) -> None:
        self.cancel()
        self._initialized = False

    def default_model(self) -> Optional[str]:
        return None


def output_format_instructions(output_format: Optional[Dict[str, Any]]) -> str:
    """Prompt suffix asking the agent to finish with JSON matching the schema."""
    if not output_format:
        return ""
    schema = output_format.get("schema", output_format)
    return (
        "\n\n## Output Format\n\n"
        "When you are done, end your response with a single ```json fenced block "
        "containing an object that matches this JSON schema:\n\n"
        f"```json\n{json.dumps(schema, indent=2)}\n```\n"
    )
