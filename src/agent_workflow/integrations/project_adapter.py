"""Interface to the project-management system that holds workflow items.

Workflows change item state only through these setters. There is no
version check at this layer; the per-item agent lock is what keeps two
runs from racing on the same item.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.models import Comment, OpenPullRequest, WorkflowItem


class ProjectManagementAdapter(ABC):
    """Board, issue and pull request operations used by the workflows."""

    @abstractmethod
    def init(self) -> None:
        """Connect and verify access. Raises on failure."""

    # -- Board items --

    @abstractmethod
    def list_items(
        self,
        status: Optional[str] = None,
        review_status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[WorkflowItem]:
        """Items in board order, optionally filtered by status and review status."""

    @abstractmethod
    def get_item(self, item_id: str) -> Optional[WorkflowItem]:
        pass

    @abstractmethod
    def update_item_status(self, item_id: str, status: str) -> None:
        pass

    @abstractmethod
    def update_item_review_status(self, item_id: str, review_status: str) -> None:
        pass

    @abstractmethod
    def clear_item_review_status(self, item_id: str) -> None:
        pass

    def has_review_status_field(self) -> bool:
        return True

    # -- Implementation phase --

    @abstractmethod
    def set_implementation_phase(self, item_id: str, phase: str) -> None:
        pass

    @abstractmethod
    def clear_implementation_phase(self, item_id: str) -> None:
        pass

    @abstractmethod
    def get_implementation_phase(self, item_id: str) -> Optional[str]:
        pass

    # -- Issues --

    @abstractmethod
    def update_issue_body(self, issue_number: int, body: str) -> None:
        pass

    @abstractmethod
    def add_issue_comment(self, issue_number: int, body: str) -> int:
        """Post a comment and return its id."""

    @abstractmethod
    def update_issue_comment(self, issue_number: int, comment_id: int, body: str) -> None:
        pass

    @abstractmethod
    def get_issue_comments(self, issue_number: int) -> List[Comment]:
        """Comments oldest first."""

    def find_issue_comment_by_marker(self, issue_number: int, marker: str) -> Optional[Comment]:
        for comment in self.get_issue_comments(issue_number):
            if marker in comment.body:
                return comment
        return None

    # -- Pull requests --

    @abstractmethod
    def find_open_pr_for_issue(self, issue_number: int) -> Optional[OpenPullRequest]:
        pass

    @abstractmethod
    def create_pull_request(
        self,
        head_branch: str,
        base_branch: str,
        title: str,
        body: str,
    ) -> OpenPullRequest:
        pass

    @abstractmethod
    def get_pr_comments(self, pr_number: int) -> List[Comment]:
        """Conversation comments on the PR."""

    @abstractmethod
    def get_pr_review_comments(self, pr_number: int) -> List[Comment]:
        """Inline review comments on the PR diff."""

    @abstractmethod
    def add_pr_comment(self, pr_number: int, body: str) -> int:
        pass

    @abstractmethod
    def get_pr_diff(self, pr_number: int) -> str:
        pass

    @abstractmethod
    def get_default_branch(self) -> str:
        pass
