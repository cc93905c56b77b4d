"""Agent library selection per workflow, with cached adapter instances."""

import asyncio
import logging
from typing import Callable, Dict, Optional, Union

from .base import AgentLibraryAdapter, AgentRunOptions, AgentRunResult
from .claude_code import ClaudeCodeAdapter
from .codex import CodexAdapter
from .cursor import CursorAdapter
from .gemini import GeminiAdapter
from ..core.config import FALLBACK_LIBRARY, WorkflowSettings
from ..core.models import LibraryId, WorkflowName
from ..errors import AdapterInitError

logger = logging.getLogger(__name__)

AdapterBuilder = Callable[[WorkflowSettings], AgentLibraryAdapter]

# Closed registry: one builder per known library
ADAPTER_REGISTRY: Dict[LibraryId, AdapterBuilder] = {
    LibraryId.CLAUDE_CODE_SDK: lambda cfg: ClaudeCodeAdapter(cfg.claude),
    LibraryId.CURSOR: lambda cfg: CursorAdapter(cfg.cursor),
    LibraryId.GEMINI: lambda cfg: GeminiAdapter(cfg.gemini),
    LibraryId.OPENAI_CODEX: lambda cfg: CodexAdapter(cfg.codex),
}


def get_library_for_workflow(
    workflow: Union[WorkflowName, str, None],
    config: WorkflowSettings,
) -> LibraryId:
    """Resolve library: per-workflow override, then global default, then fallback."""
    if workflow is not None:
        try:
            key = WorkflowName(workflow)
        except ValueError:
            logger.warning(f"Unknown workflow '{workflow}', using default library")
            key = None
        if key is not None and key in config.agent_library.workflow_overrides:
            return config.agent_library.workflow_overrides[key]
    return config.agent_library.default_library or FALLBACK_LIBRARY


class AdapterFactory:
    """
    Builds and caches one initialized adapter per library id.

    Construction is serialized per library id so concurrent callers for the
    same library share one instance; different libraries never share state.
    """

    def __init__(self, config: WorkflowSettings, registry: Optional[Dict[LibraryId, AdapterBuilder]] = None):
        self.config = config
        self.registry = dict(registry or ADAPTER_REGISTRY)
        self._instances: Dict[LibraryId, AgentLibraryAdapter] = {}
        self._locks: Dict[LibraryId, asyncio.Lock] = {}

    def _lock_for(self, library: LibraryId) -> asyncio.Lock:
        if library not in self._locks:
            self._locks[library] = asyncio.Lock()
        return self._locks[library]

    async def _build(self, library: LibraryId) -> AgentLibraryAdapter:
        async with self._lock_for(library):
            cached = self._instances.get(library)
            if cached is not None and cached.is_initialized:
                return cached
            builder = self.registry.get(library)
            if builder is None:
                raise ValueError(f"No adapter registered for library '{library.value}'")
            adapter = builder(self.config)
            await adapter.init()
            self._instances[library] = adapter
            return adapter

    async def get_agent_library(self, workflow: Union[WorkflowName, str, None] = None) -> AgentLibraryAdapter:
        """Return the initialized adapter for a workflow.

        If the configured library fails to construct, retries once with the
        fallback library before raising AdapterInitError.
        """
        library = get_library_for_workflow(workflow, self.config)
        try:
            return await self._build(library)
        except Exception as e:
            if library == FALLBACK_LIBRARY:
                raise AdapterInitError(library.value, str(e)) from e
            logger.error(
                f"Failed to initialize agent library '{library.value}' for {workflow}: {e}. "
                f"Falling back to '{FALLBACK_LIBRARY.value}'"
            )

        try:
            return await self._build(FALLBACK_LIBRARY)
        except Exception as e:
            raise AdapterInitError(FALLBACK_LIBRARY.value, str(e)) from e

    async def run_agent(self, options: AgentRunOptions) -> AgentRunResult:
        adapter = await self.get_agent_library(options.workflow)
        return await adapter.run(options)

    def get_model_for_workflow(self, workflow: Union[WorkflowName, str, None]) -> str:
        """Model name for logging, without constructing the adapter."""
        library = get_library_for_workflow(workflow, self.config)
        cached = self._instances.get(library)
        if cached is not None:
            return cached.default_model() or "default"
        builder = self.registry.get(library)
        return (builder(self.config).default_model() if builder else None) or "default"

    async def dispose_all(self) -> None:
        for library, adapter in list(self._instances.items()):
            try:
                await adapter.dispose()
            except Exception as e:
                logger.warning(f"Failed to dispose adapter {library.value}: {e}")
        self._instances.clear()
