"""Agent library adapters."""

from .base import (
    AdapterCapabilities,
    AgentLibraryAdapter,
    AgentRunOptions,
    AgentRunResult,
    AgentUsage,
)
from .claude_code import ClaudeCodeAdapter
from .codex import CodexAdapter
from .cursor import CursorAdapter
from .factory import AdapterFactory, get_library_for_workflow
from .gemini import GeminiAdapter

__all__ = [
    "AdapterCapabilities",
    "AgentLibraryAdapter",
    "AgentRunOptions",
    "AgentRunResult",
    "AgentUsage",
    "AdapterFactory",
    "ClaudeCodeAdapter",
    "CodexAdapter",
    "CursorAdapter",
    "GeminiAdapter",
    "get_library_for_workflow",
]
