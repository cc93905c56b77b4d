"""Implementation phase metadata: storage format, resolution and branch naming."""

from .branches import (
    generate_implementation_branch_name,
    generate_phase_branch_name,
    generate_task_branch_name,
)
from .format import (
    PHASES_COMMENT_MARKER,
    extract_phases_from_tech_design,
    format_phases_comment,
    has_phase_comment,
    parse_phases_from_comment,
    phases_from_output,
    validate_phases,
)
from .resolution import PHASE_RESOLVERS, PhaseResolution, resolve_phase_details

__all__ = [
    "generate_implementation_branch_name",
    "generate_phase_branch_name",
    "generate_task_branch_name",
    "PHASES_COMMENT_MARKER",
    "extract_phases_from_tech_design",
    "format_phases_comment",
    "has_phase_comment",
    "parse_phases_from_comment",
    "phases_from_output",
    "validate_phases",
    "PHASE_RESOLVERS",
    "PhaseResolution",
    "resolve_phase_details",
]
