"""The issue artifact comment.

One marker comment per issue lists design documents (stored as repository
files) and implementation pull requests. It is always rewritten in full
from parsed data, and saved by editing the existing comment when one
exists.
"""

import logging
import re
from datetime import date
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from ..core.models import Comment
from ..integrations.project_adapter import ProjectManagementAdapter

logger = logging.getLogger(__name__)

ARTIFACT_COMMENT_MARKER = "<!-- ISSUE_ARTIFACT_V1 -->"
ARTIFACT_FOOTER = "---\n*Maintained by agents. Do not edit manually.*"


class DesignStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"


class ImplementationStatus(str, Enum):
    PENDING = "pending"
    IN_REVIEW = "in-review"
    APPROVED = "approved"
    CHANGES_REQUESTED = "changes-requested"
    MERGED = "merged"


DESIGN_STATUS_DISPLAY: Dict[DesignStatus, str] = {
    DesignStatus.PENDING: "⏳ Pending",
    DesignStatus.APPROVED: "✅ Approved",
}

IMPLEMENTATION_STATUS_DISPLAY: Dict[ImplementationStatus, str] = {
    ImplementationStatus.PENDING: "⏳ Pending",
    ImplementationStatus.IN_REVIEW: "🔄 In Review",
    ImplementationStatus.APPROVED: "✅ Approved",
    ImplementationStatus.CHANGES_REQUESTED: "📝 Changes Requested",
    ImplementationStatus.MERGED: "🎉 Merged",
}
_EMOJI_TO_IMPLEMENTATION_STATUS = {
    display.split(" ", 1)[0]: status for status, display in IMPLEMENTATION_STATUS_DISPLAY.items()
}

DESIGN_LABELS = {"product-design": "Product Design", "tech-design": "Technical Design"}


class DesignArtifact(BaseModel):
    type: str  # "product-design" | "tech-design"
    path: str
    status: DesignStatus = DesignStatus.PENDING
    last_updated: str = Field(default_factory=lambda: date.today().isoformat())
    pr_number: Optional[int] = None


class PhaseArtifact(BaseModel):
    phase: int
    total_phases: int
    name: str = ""
    status: ImplementationStatus = ImplementationStatus.PENDING
    pr_number: Optional[int] = None


class ArtifactComment(BaseModel):
    product_design: Optional[DesignArtifact] = None
    tech_design: Optional[DesignArtifact] = None
    phases: List[PhaseArtifact] = Field(default_factory=list)


_DESIGN_ROW = re.compile(
    r"^\|\s*\[(Product Design|Technical Design)\]\(([^)]+)\)\s*\|\s*(✅|⏳)\s*\w+\s*\|\s*([^|]+?)\s*\|\s*(?:#(\d+)|-)?\s*\|",
    re.MULTILINE,
)
_PHASE_ROW = re.compile(
    r"^\|\s*Phase\s+(\d+)/(\d+)(?::\s*([^|]+?))?\s*\|\s*(⏳|🔄|✅|📝|🎉)\s*[^|]*\|\s*(?:#(\d+)|-)?\s*\|",
    re.MULTILINE,
)


def find_artifact_comment(comments: List[Comment]) -> Optional[Comment]:
    for comment in comments:
        if ARTIFACT_COMMENT_MARKER in comment.body:
            return comment
    return None


def parse_artifact_comment(comments: List[Comment]) -> Optional[ArtifactComment]:
    """Parsed artifact data, or None when the issue has no artifact comment."""
    comment = find_artifact_comment(comments)
    if comment is None:
        return None

    artifact = ArtifactComment()
    for match in _DESIGN_ROW.finditer(comment.body):
        design = DesignArtifact(
            type="product-design" if match.group(1) == "Product Design" else "tech-design",
            path=match.group(2),
            status=DesignStatus.APPROVED if match.group(3) == "✅" else DesignStatus.PENDING,
            last_updated=match.group(4).strip(),
            pr_number=int(match.group(5)) if match.group(5) else None,
        )
        if design.type == "product-design":
            artifact.product_design = design
        else:
            artifact.tech_design = design

    for match in _PHASE_ROW.finditer(comment.body):
        artifact.phases.append(PhaseArtifact(
            phase=int(match.group(1)),
            total_phases=int(match.group(2)),
            name=(match.group(3) or "").strip(),
            status=_EMOJI_TO_IMPLEMENTATION_STATUS.get(match.group(4), ImplementationStatus.PENDING),
            pr_number=int(match.group(5)) if match.group(5) else None,
        ))
    return artifact


def _design_row(design: DesignArtifact) -> str:
    pr_link = f"#{design.pr_number}" if design.pr_number else "-"
    return (
        f"| [{DESIGN_LABELS[design.type]}]({design.path}) | {DESIGN_STATUS_DISPLAY[design.status]} "
        f"| {design.last_updated} | {pr_link} |"
    )


def _phase_row(phase: PhaseArtifact) -> str:
    name = f"Phase {phase.phase}/{phase.total_phases}"
    if phase.name:
        name += f": {phase.name}"
    pr_link = f"#{phase.pr_number}" if phase.pr_number else "-"
    return f"| {name} | {IMPLEMENTATION_STATUS_DISPLAY[phase.status]} | {pr_link} |"


def format_artifact_comment(artifact: ArtifactComment) -> str:
    sections = []
    designs = [d for d in (artifact.product_design, artifact.tech_design) if d is not None]
    if designs:
        sections.append(
            "## Design Documents\n\n"
            "| Document | Status | Updated | PR |\n"
            "|----------|--------|---------|-----|\n"
            + "\n".join(_design_row(d) for d in designs)
        )
    if artifact.phases:
        sections.append(
            "## Pull Requests\n\n"
            "| Phase | Status | PR |\n"
            "|-------|--------|-----|\n"
            + "\n".join(_phase_row(p) for p in sorted(artifact.phases, key=lambda p: p.phase))
        )
    if not sections:
        sections.append(
            "## Issue Artifacts\n\n"
            "*No artifacts yet. Design documents and implementation PRs will appear here.*"
        )
    return f"{ARTIFACT_COMMENT_MARKER}\n" + "\n\n".join(sections) + f"\n\n{ARTIFACT_FOOTER}"


def save_artifact_comment(adapter: ProjectManagementAdapter, issue_number: int, artifact: ArtifactComment) -> int:
    """Update the existing artifact comment in place, or create it. Returns the comment id."""
    body = format_artifact_comment(artifact)
    existing = adapter.find_issue_comment_by_marker(issue_number, ARTIFACT_COMMENT_MARKER)
    if existing is not None:
        adapter.update_issue_comment(issue_number, existing.id, body)
        logger.debug(f"Updated artifact comment {existing.id} on #{issue_number}")
        return existing.id
    comment_id = adapter.add_issue_comment(issue_number, body)
    logger.debug(f"Created artifact comment {comment_id} on #{issue_number}")
    return comment_id


def _load(adapter: ProjectManagementAdapter, issue_number: int) -> ArtifactComment:
    return parse_artifact_comment(adapter.get_issue_comments(issue_number)) or ArtifactComment()


def update_design_artifact(adapter: ProjectManagementAdapter, issue_number: int, design: DesignArtifact) -> None:
    artifact = _load(adapter, issue_number)
    if design.type == "product-design":
        artifact.product_design = design
    else:
        artifact.tech_design = design
    save_artifact_comment(adapter, issue_number, artifact)


def update_implementation_phase_artifact(
    adapter: ProjectManagementAdapter,
    issue_number: int,
    phase: int,
    total_phases: int,
    name: str,
    status: ImplementationStatus,
    pr_number: Optional[int] = None,
) -> None:
    """Set one phase row; keeps the existing name and PR when not given."""
    artifact = _load(adapter, issue_number)
    existing = next((p for p in artifact.phases if p.phase == phase), None)
    row = PhaseArtifact(
        phase=phase,
        total_phases=total_phases,
        name=name or (existing.name if existing else ""),
        status=status,
        pr_number=pr_number or (existing.pr_number if existing else None),
    )
    artifact.phases = [p for p in artifact.phases if p.phase != phase] + [row]
    artifact.phases.sort(key=lambda p: p.phase)
    save_artifact_comment(adapter, issue_number, artifact)


def initialize_implementation_phases(adapter: ProjectManagementAdapter, issue_number: int, phases) -> None:
    """Replace the PR table with every phase pending."""
    artifact = _load(adapter, issue_number)
    total = len(phases)
    artifact.phases = [
        PhaseArtifact(phase=p.order, total_phases=total, name=p.title) for p in phases
    ]
    save_artifact_comment(adapter, issue_number, artifact)
    logger.info(f"Initialized {total} implementation phases in artifact comment")
