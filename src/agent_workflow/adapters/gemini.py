"""Gemini adapter stub.

Declares capabilities so configuration and the factory treat it like any
other library, but every run fails with "not implemented".
"""

from typing import Optional

from .base import AdapterCapabilities, AgentLibraryAdapter, AgentRunOptions, AgentRunResult
from ..core.config import GeminiConfig


class GeminiAdapter(AgentLibraryAdapter):
    name = "gemini"
    capabilities = AdapterCapabilities(
        streaming=True,
        structured_output=True,
        tool_use=True,
        file_read=True,
        file_write=False,
        web_fetch=True,
        custom_tools=False,
        read_only=True,
    )

    def __init__(self, config: Optional[GeminiConfig] = None):
        super().__init__()
        self.config = config or GeminiConfig()

    def default_model(self) -> Optional[str]:
        return self.config.model

    async def run(self, options: AgentRunOptions) -> AgentRunResult:
        return AgentRunResult(success=False, error="not implemented")
