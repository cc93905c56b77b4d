"""Workflow item model and the status values the board moves items through."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator


class Status(str, Enum):
    """Main board column for a workflow item."""
    BACKLOG = "Backlog"
    PRODUCT_DEVELOPMENT = "Product Development"
    PRODUCT_DESIGN = "Product Design"
    BUG_INVESTIGATION = "Bug Investigation"
    TECH_DESIGN = "Technical Design"
    IMPLEMENTATION = "Ready for development"
    PR_REVIEW = "PR Review"
    DONE = "Done"


class ReviewStatus(str, Enum):
    """Sub-state within a column. An empty review status is represented as None."""
    WAITING_FOR_REVIEW = "Waiting for Review"
    APPROVED = "Approved"
    REQUEST_CHANGES = "Request Changes"
    REJECTED = "Rejected"
    WAITING_FOR_CLARIFICATION = "Waiting for Clarification"
    CLARIFICATION_RECEIVED = "Clarification Received"


class WorkflowName(str, Enum):
    """Named workflows that can be routed to different agent libraries."""
    PRODUCT_DEVELOPMENT = "product-development"
    PRODUCT_DESIGN = "product-design"
    TECH_DESIGN = "tech-design"
    IMPLEMENTATION = "implementation"
    PR_REVIEW = "pr-review"
    BUG_INVESTIGATION = "bug-investigation"
    TRIAGE = "triage"
    WORKFLOW_REVIEW = "workflow-review"


class LibraryId(str, Enum):
    """Agent libraries known at build time."""
    CLAUDE_CODE_SDK = "claude-code-sdk"
    CURSOR = "cursor"
    GEMINI = "gemini"
    OPENAI_CODEX = "openai-codex"


class ProcessingMode(str, Enum):
    """Flow A / B / C selection for a single item."""
    NEW = "new"
    FEEDBACK = "feedback"
    CLARIFICATION = "clarification"


class ReviewDecision(str, Enum):
    APPROVED = "approved"
    REQUEST_CHANGES = "request_changes"
    COMMENT = "comment"


class ItemContent(BaseModel):
    """The issue (or draft) behind a board item."""
    number: int
    title: str
    body: str = ""
    labels: List[str] = Field(default_factory=list)
    type: str = "Issue"
    url: Optional[str] = None
    state: str = "OPEN"


class WorkflowItem(BaseModel):
    """A board item under automation."""
    id: str
    content: ItemContent
    status: Optional[str] = None
    review_status: Optional[str] = None
    implementation_phase: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _blank_to_none(cls, data):
        # Board fields come back as "" when unset
        if isinstance(data, dict):
            for key in ("review_status", "implementation_phase", "status"):
                if data.get(key) == "":
                    data[key] = None
        return data

    @property
    def issue_number(self) -> int:
        return self.content.number

    @property
    def title(self) -> str:
        return self.content.title

    @property
    def issue_type(self) -> str:
        """'bug' when the issue carries a bug label, 'feature' otherwise."""
        labels = [label.lower() for label in self.content.labels]
        return "bug" if "bug" in labels else "feature"


class Comment(BaseModel):
    """An issue or PR comment."""
    id: int
    body: str
    author: str = ""
    created_at: Optional[datetime] = None


class OpenPullRequest(BaseModel):
    """The open PR linked to an issue."""
    number: int
    branch: str
    url: Optional[str] = None
    title: str = ""


class PhaseProgress(BaseModel):
    """Parsed form of the "N/M" implementation phase field."""
    current: int
    total: int

    def __str__(self) -> str:
        return f"{self.current}/{self.total}"

    @property
    def is_final(self) -> bool:
        return self.current >= self.total

    def next(self) -> "PhaseProgress":
        return PhaseProgress(current=self.current + 1, total=self.total)


class ImplementationPhase(BaseModel):
    """One slice of a multi-phase feature."""
    order: int = Field(ge=1)
    total: int = Field(ge=1)
    title: str
    description: str = ""
    files_affected: List[str] = Field(default_factory=list)
    estimated_size: Optional[str] = None

    @model_validator(mode="after")
    def _order_within_total(self) -> "ImplementationPhase":
        if self.order > self.total:
            raise ValueError(f"phase order {self.order} exceeds total {self.total}")
        return self
