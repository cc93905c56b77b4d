"""Clarification comments posted on an issue when an agent is blocked."""

import re
from typing import List, Optional

from .extract import CLARIFICATION_MARKER
from ..core.models import Comment

CLARIFICATION_FOOTER = (
    "---\n_Please respond with your answer in a comment below, then set "
    "Review Status to \"Clarification Received\"._"
)
ANSWER_HEADER = "## ✅ Clarification Provided"

_AGENT_PREFIX = re.compile(r"^\[[^\]]*\]\s*")
_FOOTER_PATTERN = re.compile(r"---\s*_Please respond with your answer.*$", re.DOTALL)


def format_clarification_comment(request: str, agent_prefix: Optional[str] = None) -> str:
    body = f"{CLARIFICATION_MARKER}\n\n{request.strip()}\n\n{CLARIFICATION_FOOTER}"
    if agent_prefix:
        body = f"{agent_prefix}\n\n{body}"
    return body


def is_clarification_comment(body: Optional[str]) -> bool:
    return bool(body) and "🤔 Agent Needs Clarification" in body


def extract_clarification_from_comment(body: str) -> str:
    """Strip agent prefix, header and footer, leaving just the question."""
    content = _AGENT_PREFIX.sub("", body, count=1)
    content = content.replace(CLARIFICATION_MARKER, "")
    content = _FOOTER_PATTERN.sub("", content)
    return content.strip()


def find_clarification_exchange(comments: List[Comment]):
    """Return (question, answer) from the latest clarification comment.

    The answer is everything humans wrote after the question, oldest first.
    Either element is None when missing.
    """
    question_index = None
    for index in range(len(comments) - 1, -1, -1):
        if is_clarification_comment(comments[index].body):
            question_index = index
            break
    if question_index is None:
        return None, None

    question = extract_clarification_from_comment(comments[question_index].body)
    replies = [
        comment.body.replace(ANSWER_HEADER, "").strip()
        for comment in comments[question_index + 1:]
        if comment.body.strip() and not _AGENT_PREFIX.match(comment.body)
    ]
    return question, ("\n\n".join(replies) or None)
