"""File-backed workflow item records.

One JSON document per issue under {state_dir}/workflow-items/issue-{N}.json.
Holds the fields workflows read and write outside the board itself: stored
implementation phases, triage fields, and the workflow-review summary.
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field, ValidationError

from .models import ImplementationPhase
from ..utils.atomic_io import atomic_write_text

logger = logging.getLogger(__name__)


class WorkflowItemRecord(BaseModel):
    """Persisted per-issue workflow data."""
    issue_number: int
    phases: List[ImplementationPhase] = Field(default_factory=list)
    domain: Optional[str] = None
    priority: Optional[str] = None
    size: Optional[str] = None
    complexity: Optional[str] = None
    triage_summary: Optional[str] = None
    workflow_review_summary: Optional[str] = None
    workflow_reviewed_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class WorkflowItemStore:
    """Read/update access to WorkflowItemRecord documents."""

    def __init__(self, state_dir: Path):
        self.items_dir = state_dir / "workflow-items"

    def _path(self, issue_number: int) -> Path:
        return self.items_dir / f"issue-{issue_number}.json"

    def get(self, issue_number: int) -> Optional[WorkflowItemRecord]:
        path = self._path(issue_number)
        if not path.exists():
            return None
        try:
            return WorkflowItemRecord(**json.loads(path.read_text()))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable workflow record {path}: {e}")
            return None

    def get_or_create(self, issue_number: int) -> WorkflowItemRecord:
        return self.get(issue_number) or WorkflowItemRecord(issue_number=issue_number)

    def save(self, record: WorkflowItemRecord) -> None:
        record.updated_at = datetime.now(timezone.utc)
        atomic_write_text(self._path(record.issue_number), record.model_dump_json(indent=2))

    def update(self, issue_number: int, **fields) -> WorkflowItemRecord:
        """Set the given fields and persist."""
        record = self.get_or_create(issue_number)
        updated = WorkflowItemRecord.model_validate({**record.model_dump(), **fields})
        self.save(updated)
        return updated

    def get_phases(self, issue_number: int) -> Optional[List[ImplementationPhase]]:
        record = self.get(issue_number)
        if record is None or not record.phases:
            return None
        return list(record.phases)

    def set_phases(self, issue_number: int, phases: List[ImplementationPhase]) -> None:
        self.update(issue_number, phases=list(phases))

    def all(self) -> List[WorkflowItemRecord]:
        if not self.items_dir.exists():
            return []
        records = []
        for path in sorted(self.items_dir.glob("issue-*.json")):
            record = self.get(int(path.stem.split("-", 1)[1]))
            if record is not None:
                records.append(record)
        return records

    def known_domains(self) -> List[str]:
        return sorted({record.domain for record in self.all() if record.domain})
