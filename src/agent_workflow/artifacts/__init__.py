"""Design document files and the issue artifact comment that points at them."""

from .comment import (
    ARTIFACT_COMMENT_MARKER,
    ArtifactComment,
    DesignArtifact,
    DesignStatus,
    ImplementationStatus,
    PhaseArtifact,
    find_artifact_comment,
    format_artifact_comment,
    initialize_implementation_phases,
    parse_artifact_comment,
    save_artifact_comment,
    update_design_artifact,
    update_implementation_phase_artifact,
)
from .design_files import get_design_doc_relative_path, read_design_doc, write_design_doc

__all__ = [
    "ARTIFACT_COMMENT_MARKER",
    "ArtifactComment",
    "DesignArtifact",
    "DesignStatus",
    "ImplementationStatus",
    "PhaseArtifact",
    "find_artifact_comment",
    "format_artifact_comment",
    "initialize_implementation_phases",
    "parse_artifact_comment",
    "save_artifact_comment",
    "update_design_artifact",
    "update_implementation_phase_artifact",
    "get_design_doc_relative_path",
    "read_design_doc",
    "write_design_doc",
]
