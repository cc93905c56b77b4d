"""Validation for generated git branch names."""

import re

BRANCH_NAME_RE = re.compile(r"^[A-Za-z0-9][A-Za-z0-9/_.-]*$")
MAX_BRANCH_NAME_LENGTH = 255


def validate_branch_name(branch_name: str) -> str:
    """
    Check a branch name against the subset of git ref rules our names use.

    Returns the name unchanged so callers can validate inline.

    Raises:
        ValueError: If branch name is invalid
    """
    if not branch_name:
        raise ValueError("Branch name cannot be empty")
    if len(branch_name) > MAX_BRANCH_NAME_LENGTH:
        raise ValueError(f"Branch name too long ({len(branch_name)} chars)")
    if not BRANCH_NAME_RE.match(branch_name):
        raise ValueError(f"Invalid branch name: {branch_name}")

    for bad in ("..", "//", "@{"):
        if bad in branch_name:
            raise ValueError(f"Branch name {branch_name!r} contains {bad!r}")
    if branch_name.endswith(("/", ".", ".lock")):
        raise ValueError(f"Branch name {branch_name!r} has an invalid ending")

    return branch_name
