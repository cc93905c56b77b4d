"""Exceptions raised by the workflow engine."""


class WorkflowError(Exception):
    """Base class for workflow engine errors."""


class ConfigurationError(WorkflowError):
    """Missing or invalid configuration. Fatal at startup."""


class AdapterError(WorkflowError):
    """An agent library adapter could not be used."""


class AdapterInitError(AdapterError):
    """Adapter construction or init failed, including the fallback attempt."""

    def __init__(self, library: str, reason: str):
        self.library = library
        self.reason = reason
        super().__init__(f"Failed to initialize agent library '{library}': {reason}")


class ParsingError(WorkflowError):
    """Agent output did not contain the expected structure."""


class PhaseResolutionError(WorkflowError):
    """Phase metadata is inconsistent (gaps, duplicates, or a changed total)."""


class GitOperationError(WorkflowError):
    """A git command needed by a workflow failed."""


class InvalidItemStateError(WorkflowError):
    """An item requested with --id is not in a state the workflow can process."""
