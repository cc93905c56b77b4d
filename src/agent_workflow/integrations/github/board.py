"""GitHub-backed project board using issue labels for workflow state."""

import logging
import re
from typing import List, Optional

from github import Github, GithubException
from github.Issue import Issue
from github.Repository import Repository

from ..project_adapter import ProjectManagementAdapter
from ...core.config import GitHubConfig
from ...core.models import Comment, ItemContent, OpenPullRequest, Status, WorkflowItem
from ...errors import ConfigurationError

logger = logging.getLogger(__name__)

STATUS_PREFIX = "status:"
REVIEW_PREFIX = "review:"
PHASE_PREFIX = "phase:"


def _label_value(labels: List[str], prefix: str) -> Optional[str]:
    for label in labels:
        if label.startswith(prefix):
            return label[len(prefix):].strip() or None
    return None


class GitHubBoardAdapter(ProjectManagementAdapter):
    """
    Board state stored as labels on repository issues.

    status:<Status>, review:<ReviewStatus> and phase:<N/M> labels hold the
    three board fields. Item ids are issue numbers as strings. Moving an
    item to Done also closes the issue.
    """

    def __init__(self, config: GitHubConfig, client: Optional[Github] = None):
        self.config = config
        self._gh = client
        self._repo: Optional[Repository] = None

    @property
    def repo(self) -> Repository:
        if self._repo is None:
            self.init()
        return self._repo

    def init(self) -> None:
        if not self.config.owner or not self.config.repo:
            raise ConfigurationError("github.owner and github.repo must be set")
        if self._gh is None:
            if not self.config.token:
                raise ConfigurationError("GITHUB_TOKEN (or github.token) is required")
            self._gh = Github(self.config.token)
        self._repo = self._gh.get_repo(self.config.full_name)

    # -- Board items --

    def _to_item(self, issue: Issue) -> WorkflowItem:
        labels = [label.name for label in issue.labels]
        return WorkflowItem(
            id=str(issue.number),
            content=ItemContent(
                number=issue.number,
                title=issue.title,
                body=issue.body or "",
                labels=[label for label in labels if not label.startswith((STATUS_PREFIX, REVIEW_PREFIX, PHASE_PREFIX))],
                url=issue.html_url,
                state=issue.state.upper(),
            ),
            status=_label_value(labels, STATUS_PREFIX),
            review_status=_label_value(labels, REVIEW_PREFIX),
            implementation_phase=_label_value(labels, PHASE_PREFIX),
        )

    def list_items(
        self,
        status: Optional[str] = None,
        review_status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[WorkflowItem]:
        kwargs = {"state": "all" if status == Status.DONE.value else "open", "sort": "created", "direction": "asc"}
        if status:
            kwargs["labels"] = [f"{STATUS_PREFIX}{status}"]
        items = []
        for issue in self.repo.get_issues(**kwargs):
            if issue.pull_request is not None:
                continue
            item = self._to_item(issue)
            if review_status is not None and item.review_status != review_status:
                continue
            items.append(item)
            if limit and len(items) >= limit:
                break
        return items

    def _issue(self, item_id: str) -> Issue:
        return self.repo.get_issue(int(item_id))

    def get_item(self, item_id: str) -> Optional[WorkflowItem]:
        try:
            issue = self._issue(item_id)
        except (GithubException, ValueError) as e:
            logger.warning(f"Could not load item {item_id}: {e}")
            return None
        if issue.pull_request is not None:
            return None
        return self._to_item(issue)

    def _replace_label(self, item_id: str, prefix: str, value: Optional[str]) -> None:
        issue = self._issue(item_id)
        for label in issue.labels:
            if label.name.startswith(prefix) and label.name != f"{prefix}{value}":
                issue.remove_from_labels(label.name)
        if value:
            issue.add_to_labels(f"{prefix}{value}")

    def update_item_status(self, item_id: str, status: str) -> None:
        self._replace_label(item_id, STATUS_PREFIX, status)
        issue = self._issue(item_id)
        if status == Status.DONE.value and issue.state == "open":
            issue.edit(state="closed")
        logger.debug(f"Item {item_id} status -> {status}")

    def update_item_review_status(self, item_id: str, review_status: str) -> None:
        self._replace_label(item_id, REVIEW_PREFIX, review_status)

    def clear_item_review_status(self, item_id: str) -> None:
        self._replace_label(item_id, REVIEW_PREFIX, None)

    # -- Implementation phase --

    def set_implementation_phase(self, item_id: str, phase: str) -> None:
        self._replace_label(item_id, PHASE_PREFIX, phase)

    def clear_implementation_phase(self, item_id: str) -> None:
        self._replace_label(item_id, PHASE_PREFIX, None)

    def get_implementation_phase(self, item_id: str) -> Optional[str]:
        return _label_value([label.name for label in self._issue(item_id).labels], PHASE_PREFIX)

    # -- Issues --

    def update_issue_body(self, issue_number: int, body: str) -> None:
        self.repo.get_issue(issue_number).edit(body=body)

    def add_issue_comment(self, issue_number: int, body: str) -> int:
        return self.repo.get_issue(issue_number).create_comment(body).id

    def update_issue_comment(self, issue_number: int, comment_id: int, body: str) -> None:
        self.repo.get_issue(issue_number).get_comment(comment_id).edit(body)

    @staticmethod
    def _to_comment(raw) -> Comment:
        return Comment(
            id=raw.id,
            body=raw.body or "",
            author=raw.user.login if raw.user else "",
            created_at=raw.created_at,
        )

    def get_issue_comments(self, issue_number: int) -> List[Comment]:
        return [self._to_comment(c) for c in self.repo.get_issue(issue_number).get_comments()]

    # -- Pull requests --

    def find_open_pr_for_issue(self, issue_number: int) -> Optional[OpenPullRequest]:
        """Most recent open PR that references #N or lives on a task-N branch."""
        reference = re.compile(rf"#{issue_number}\b")
        branch_pattern = re.compile(rf"task-{issue_number}(?:\b|-)")
        for pr in self.repo.get_pulls(state="open", sort="created", direction="desc"):
            if branch_pattern.search(pr.head.ref) or reference.search(pr.body or "") or reference.search(pr.title):
                return OpenPullRequest(number=pr.number, branch=pr.head.ref, url=pr.html_url, title=pr.title)
        return None

    def create_pull_request(self, head_branch: str, base_branch: str, title: str, body: str) -> OpenPullRequest:
        pr = self.repo.create_pull(title=title, body=body, head=head_branch, base=base_branch)
        if self.config.pr_labels:
            pr.add_to_labels(*self.config.pr_labels)
        return OpenPullRequest(number=pr.number, branch=head_branch, url=pr.html_url, title=title)

    def get_pr_comments(self, pr_number: int) -> List[Comment]:
        return [self._to_comment(c) for c in self.repo.get_pull(pr_number).get_issue_comments()]

    def get_pr_review_comments(self, pr_number: int) -> List[Comment]:
        comments = []
        for raw in self.repo.get_pull(pr_number).get_review_comments():
            comment = self._to_comment(raw)
            comment.body = f"`{raw.path}`: {comment.body}" if raw.path else comment.body
            comments.append(comment)
        return comments

    def add_pr_comment(self, pr_number: int, body: str) -> int:
        return self.repo.get_pull(pr_number).create_issue_comment(body).id

    def get_pr_diff(self, pr_number: int) -> str:
        parts = []
        for changed in self.repo.get_pull(pr_number).get_files():
            parts.append(f"diff --git a/{changed.filename} b/{changed.filename}\n{changed.patch or ''}")
        return "\n".join(parts)

    def get_default_branch(self) -> str:
        return self.config.default_branch or self.repo.default_branch
