"""Local git working-tree operations used by the implementation workflow."""

import logging
from pathlib import Path
from typing import List, Optional, Sequence

from ..errors import GitOperationError
from ..utils.subprocess_utils import SubprocessError, run_git_command
from ..utils.validators import validate_branch_name

logger = logging.getLogger(__name__)


class GitRepo:
    """Thin wrapper over the git CLI for one working tree."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _git(self, args: List[str], check: bool = True, timeout: int = 60):
        try:
            return run_git_command(args, cwd=self.path, check=check, timeout=timeout)
        except SubprocessError as e:
            raise GitOperationError(f"git {' '.join(args)} failed: {e.stderr.strip() or e}") from e

    def current_branch(self) -> str:
        return self._git(["rev-parse", "--abbrev-ref", "HEAD"]).stdout.strip()

    def has_uncommitted_changes(self) -> bool:
        status = self._git(["status", "--porcelain"])
        return bool(status.stdout.strip())

    def detect_default_branch(self) -> str:
        """Detect the default branch (main/master) for origin."""
        result = self._git(["symbolic-ref", "refs/remotes/origin/HEAD"], check=False, timeout=10)
        if result.returncode == 0 and result.stdout.strip():
            return result.stdout.strip().split("/")[-1]

        for branch in ["main", "master"]:
            remote_ref = self._git(["rev-parse", "--verify", f"origin/{branch}"], check=False, timeout=10)
            if remote_ref.returncode == 0:
                return branch
        return "main"

    def fetch(self) -> None:
        self._git(["fetch", "origin"], timeout=120)

    def checkout_or_create(self, branch: str, base: str) -> bool:
        """Switch to branch, creating it from origin/base if missing.

        Returns True when the branch was newly created. Re-running for the
        same branch name resumes the existing branch.
        """
        validate_branch_name(branch)
        if self.current_branch() == branch:
            return False

        checkout = self._git(["checkout", branch], check=False)
        if checkout.returncode == 0:
            return False

        tracking = self._git(["checkout", "-b", branch, "--track", f"origin/{branch}"], check=False)
        if tracking.returncode == 0:
            return False

        self._git(["checkout", "-b", branch, f"origin/{base}"])
        return True

    def merge_from_origin(self, base: str) -> bool:
        """Merge origin/base into the current branch. Returns False on conflict (merge aborted)."""
        result = self._git(["merge", f"origin/{base}", "--no-edit"], check=False, timeout=120)
        if result.returncode != 0:
            logger.warning(f"Merge of origin/{base} failed, aborting: {result.stderr.strip()}")
            self._git(["merge", "--abort"], check=False)
            return False
        return True

    def changed_files(self) -> List[str]:
        status = self._git(["status", "--porcelain"])
        files = []
        for line in status.stdout.splitlines():
            if len(line) > 3:
                files.append(line[3:].strip())
        return files

    def commit_all(self, message: str) -> bool:
        """Stage everything and commit. Returns False when there is nothing to commit."""
        if not self.has_uncommitted_changes():
            return False
        self._git(["add", "-A"])
        self._git(["commit", "-m", message])
        return True

    def push(self, branch: str) -> None:
        self._git(["push", "-u", "origin", branch], timeout=180)

    def discard_changes(self, keep: Sequence[str] = ()) -> None:
        """Drop uncommitted changes and untracked files, except under the `keep` paths."""
        self._git(["checkout", "--", "."] + [f":(exclude){path}" for path in keep], check=False)
        clean = ["clean", "-fd"]
        for path in keep:
            clean += ["-e", path]
        self._git(clean, check=False)

    def return_to(self, branch: Optional[str]) -> None:
        if branch:
            self._git(["checkout", branch], check=False)
