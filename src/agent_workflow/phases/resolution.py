"""Resolve implementation phases from the first source that has them.

Sources are tried in PHASE_RESOLVERS order: the state store (authoritative
once populated), the phases issue comment, then the raw tech-design
markdown. New sources are appended to the list.
"""

import logging
from dataclasses import dataclass
from typing import Callable, List, Optional, Tuple

from .format import extract_phases_from_tech_design, parse_phases_from_comment, validate_phases
from ..core.models import Comment, ImplementationPhase
from ..core.state_store import WorkflowItemStore

logger = logging.getLogger(__name__)


@dataclass
class PhaseSources:
    """Everything a resolver may look at for one issue."""
    issue_number: int
    comments: List[Comment]
    tech_design: Optional[str] = None
    store: Optional[WorkflowItemStore] = None


@dataclass
class PhaseResolution:
    phases: List[ImplementationPhase]
    current_phase_details: Optional[ImplementationPhase]
    source: str


PhaseResolver = Callable[[PhaseSources], Optional[List[ImplementationPhase]]]


def from_state_store(sources: PhaseSources) -> Optional[List[ImplementationPhase]]:
    if sources.store is None:
        return None
    return sources.store.get_phases(sources.issue_number)


def from_issue_comment(sources: PhaseSources) -> Optional[List[ImplementationPhase]]:
    return parse_phases_from_comment(sources.comments)


def from_tech_design(sources: PhaseSources) -> Optional[List[ImplementationPhase]]:
    return extract_phases_from_tech_design(sources.tech_design)


PHASE_RESOLVERS: List[Tuple[str, PhaseResolver]] = [
    ("state-store", from_state_store),
    ("comment", from_issue_comment),
    ("tech-design", from_tech_design),
]


def resolve_phase_details(
    issue_number: int,
    comments: List[Comment],
    tech_design: Optional[str],
    current_phase_order: int,
    store: Optional[WorkflowItemStore] = None,
    resolvers: Optional[List[Tuple[str, PhaseResolver]]] = None,
    validate: bool = True,
) -> Optional[PhaseResolution]:
    """Return phases from the first source with a non-empty list, or None.

    With validate=True the winning list must be contiguous 1..total, else
    PhaseResolutionError is raised. A failing resolver is logged and skipped.
    """
    sources = PhaseSources(issue_number, comments, tech_design, store)
    for name, resolver in resolvers or PHASE_RESOLVERS:
        try:
            phases = resolver(sources)
        except Exception as e:
            logger.warning(f"Phase source '{name}' failed for issue #{issue_number}: {e}")
            continue
        if not phases:
            continue
        if validate:
            phases = validate_phases(phases)
        current = next((p for p in phases if p.order == current_phase_order), None)
        logger.debug(f"Resolved {len(phases)} phases for issue #{issue_number} from {name}")
        return PhaseResolution(phases=phases, current_phase_details=current, source=name)
    return None
