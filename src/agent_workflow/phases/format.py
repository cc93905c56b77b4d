"""The implementation-phases issue comment and tech-design phase parsing."""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from ..core.models import Comment, ImplementationPhase
from ..errors import PhaseResolutionError

logger = logging.getLogger(__name__)

PHASES_COMMENT_MARKER = "<!-- AGENT_PHASES_V1 -->"

_SIZE_SUFFIX = r"(?:\s+\((XS|S|M|L|XL)\))?"
_COMMENT_PHASE_HEADING = re.compile(rf"^###\s+Phase\s+(\d+):\s*(.+?){_SIZE_SUFFIX}\s*$", re.MULTILINE)
# Tech-design headings: "## Phase 1: Title", "### Phase 2 - Title", "**Phase 3: Title**"
_MARKDOWN_PHASE_HEADING = re.compile(
    r"^(?:#{2,4}\s+|\*\*)Phase\s+(\d+)\s*[:\-–]\s*(.+?)(?:\*\*)?\s*$",
    re.MULTILINE | re.IGNORECASE,
)
_FILE_ITEM = re.compile(r"^\s*[-*]\s+`([^`]+)`", re.MULTILINE)
_SIZE_LINE = re.compile(r"\*\*(?:Size|Estimated size):\*\*\s*(XS|S|M|L|XL)\b", re.IGNORECASE)


def format_phases_comment(phases: List[ImplementationPhase]) -> str:
    lines = [
        PHASES_COMMENT_MARKER,
        "## 📋 Implementation Phases",
        "",
        f"This feature will be implemented in {len(phases)} sequential PRs:",
        "",
    ]
    for phase in sorted(phases, key=lambda p: p.order):
        size = f" ({phase.estimated_size})" if phase.estimated_size else ""
        lines.append(f"### Phase {phase.order}: {phase.title}{size}")
        lines.append("")
        if phase.description:
            lines.append(phase.description.strip())
            lines.append("")
        if phase.files_affected:
            lines.append("**Files:**")
            lines.extend(f"- `{path}`" for path in phase.files_affected)
            lines.append("")
    lines.append("---")
    lines.append("*Phase tracking managed by agents*")
    return "\n".join(lines)


def has_phase_comment(comments: Iterable[Comment]) -> bool:
    return any(PHASES_COMMENT_MARKER in comment.body for comment in comments)


def _split_sections(text: str, pattern: re.Pattern) -> List[Dict[str, Any]]:
    matches = list(pattern.finditer(text))
    sections = []
    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        sections.append({"match": match, "body": text[match.end():end]})
    return sections


def _section_description(body: str) -> str:
    lines = []
    for line in body.strip().splitlines():
        stripped = line.strip()
        if stripped in ("---", "**Files:**") or stripped.startswith("*Phase tracking"):
            break
        lines.append(line)
    return "\n".join(lines).strip()


def parse_phases_from_comment(comments: Iterable[Comment]) -> Optional[List[ImplementationPhase]]:
    """Phases from the first marker comment, or None when absent or empty."""
    for comment in comments:
        if PHASES_COMMENT_MARKER not in comment.body:
            continue
        sections = _split_sections(comment.body, _COMMENT_PHASE_HEADING)
        if not sections:
            logger.warning(f"Phases comment {comment.id} has no phase headings")
            return None
        total = len(sections)
        phases = []
        for section in sections:
            match = section["match"]
            phases.append(ImplementationPhase(
                order=int(match.group(1)),
                total=max(total, int(match.group(1))),
                title=match.group(2).strip(),
                description=_section_description(section["body"]),
                files_affected=_FILE_ITEM.findall(section["body"]),
                estimated_size=match.group(3),
            ))
        return phases
    return None


def extract_phases_from_tech_design(markdown: Optional[str]) -> Optional[List[ImplementationPhase]]:
    """Best-effort recovery of phases from tech-design headings.

    Needs at least two phase headings; a single-phase design is not a
    multi-phase plan.
    """
    if not markdown:
        return None
    sections = _split_sections(markdown, _MARKDOWN_PHASE_HEADING)
    if len(sections) < 2:
        return None

    # A heading may repeat in a summary table of contents; keep the first
    seen = set()
    unique = []
    for section in sections:
        order = int(section["match"].group(1))
        if order not in seen:
            seen.add(order)
            unique.append(section)

    total = max(len(unique), max(seen))
    phases = []
    for section in unique:
        match = section["match"]
        body = section["body"]
        size = _SIZE_LINE.search(body)
        phases.append(ImplementationPhase(
            order=int(match.group(1)),
            total=total,
            title=match.group(2).strip().rstrip("*").strip(),
            description=_section_description(body),
            files_affected=_FILE_ITEM.findall(body),
            estimated_size=size.group(1).upper() if size else None,
        ))
    return phases


def phases_from_output(raw_phases: Optional[List[Dict[str, Any]]]) -> List[ImplementationPhase]:
    """Build phases from a tech-design structured output list.

    Entries may omit "order" (list position is used) and may name the
    title "name" or "title" and the files "files" or "filesAffected".
    """
    if not raw_phases:
        return []
    total = len(raw_phases)
    phases = []
    for index, raw in enumerate(raw_phases, start=1):
        phases.append(ImplementationPhase(
            order=int(raw.get("order") or index),
            total=total,
            title=str(raw.get("title") or raw.get("name") or f"Phase {index}"),
            description=str(raw.get("description") or ""),
            files_affected=list(raw.get("filesAffected") or raw.get("files") or []),
            estimated_size=raw.get("estimatedSize"),
        ))
    return phases


def validate_phases(phases: List[ImplementationPhase]) -> List[ImplementationPhase]:
    """Check that phases form exactly 1..total with one consistent total.

    Returns the phases sorted by order; raises PhaseResolutionError otherwise.
    """
    if not phases:
        raise PhaseResolutionError("No phases to validate")
    ordered = sorted(phases, key=lambda p: p.order)
    orders = [p.order for p in ordered]
    expected = list(range(1, len(ordered) + 1))
    if orders != expected:
        raise PhaseResolutionError(f"Phase orders must be contiguous 1..{len(ordered)}, got {orders}")
    totals = {p.total for p in ordered}
    if totals != {len(ordered)}:
        raise PhaseResolutionError(
            f"Phase totals {sorted(totals)} do not match phase count {len(ordered)}"
        )
    return ordered
