"""Pull structured pieces out of free-form agent output.

Every function here is total: malformed or missing structure yields None
(or the safest enum value), never an exception.
"""

import json
import logging
import re
from typing import Any, Dict, Optional

from ..core.models import PhaseProgress, ReviewDecision

logger = logging.getLogger(__name__)

_JSON_FENCE_PATTERN = re.compile(r"```json\s*\n(.*?)\n?\s*```", re.DOTALL)
_REVIEW_FENCE_PATTERN = re.compile(r"```review\s*(.*?)\s*```", re.DOTALL)
_CLARIFICATION_FENCE_PATTERN = re.compile(r"```clarification\s*\n(.*?)\n?\s*```", re.DOTALL)
_FENCE_OPEN_WITH_LANG = re.compile(r"^```[a-z][\w+-]*\s*$")
_PHASE_STRING_PATTERN = re.compile(r"^\s*(\d+)\s*/\s*(\d+)\s*$")

_BOLD_PATTERN = re.compile(r"\*{1,2}([^*]+)\*{1,2}")
_APPROVED_PATTERN = re.compile(r"DECISION:\s*APPROVED?\b", re.IGNORECASE)
_REQUEST_CHANGES_PATTERN = re.compile(r"DECISION:\s*REQUEST[\s_]?CHANGES?", re.IGNORECASE)
_COMMENT_PATTERN = re.compile(r"DECISION:\s*COMMENT", re.IGNORECASE)

CLARIFICATION_MARKER = "## 🤔 Agent Needs Clarification"


def _looks_like_design(text: str) -> bool:
    return "# " in text and ("Overview" in text or "Design" in text)


def extract_markdown(text: Optional[str]) -> Optional[str]:
    """Extract a markdown document from agent output.

    Looks for a ```markdown fence first. Nested fences inside it are
    tracked by depth: a fence line carrying a language id opens a level,
    a bare fence line closes one. Falls back to a plain ``` block that
    looks like a design doc, then to the whole text.
    """
    if not text:
        return None

    lines = text.split("\n")
    for start, line in enumerate(lines):
        if line.strip() not in ("```markdown", "```md"):
            continue
        depth = 0
        for end in range(start + 1, len(lines)):
            stripped = lines[end].strip()
            if _FENCE_OPEN_WITH_LANG.match(stripped):
                depth += 1
            elif stripped.startswith("```"):
                if depth == 0:
                    return "\n".join(lines[start + 1:end]).strip()
                depth -= 1
        # Unterminated fence: take everything after the opener
        return "\n".join(lines[start + 1:]).strip() or None

    for match in re.finditer(r"```\s*\n(.*?)\n```", text, re.DOTALL):
        content = match.group(1)
        if _looks_like_design(content):
            return content.strip()

    if _looks_like_design(text):
        return text.strip()
    return None


def extract_json(text: Optional[str]) -> Optional[Dict[str, Any]]:
    """Return the first JSON object found in text, or None.

    ```json fences are tried in order; if none parses to an object, the
    text is scanned for the first balanced bare object.
    """
    if not text:
        return None

    for raw in _JSON_FENCE_PATTERN.findall(text):
        try:
            parsed = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            continue
        if isinstance(parsed, dict):
            return parsed

    decoder = json.JSONDecoder()
    position = text.find("{")
    while position != -1:
        try:
            parsed, _ = decoder.raw_decode(text, position)
        except json.JSONDecodeError:
            parsed = None
        if isinstance(parsed, dict):
            return parsed
        position = text.find("{", position + 1)
    return None


def extract_review(text: Optional[str]) -> Optional[str]:
    """Extract review content from a ```review fence or a decision block."""
    if not text:
        return None
    match = _REVIEW_FENCE_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()
    if "## Review Decision" in text or "DECISION:" in text:
        return text.strip()
    return None


def parse_review_decision(review: Optional[str]) -> ReviewDecision:
    """Map review text to a decision.

    Handles DECISION: APPROVED / APPROVE / REQUEST_CHANGES / REQUEST CHANGES /
    COMMENT, with or without bold markup. Anything unrecognized is treated
    as REQUEST_CHANGES so a garbled review never approves a PR.
    """
    if not review:
        return ReviewDecision.REQUEST_CHANGES
    cleaned = _BOLD_PATTERN.sub(r"\1", review)
    if _REQUEST_CHANGES_PATTERN.search(cleaned):
        return ReviewDecision.REQUEST_CHANGES
    if _APPROVED_PATTERN.search(cleaned):
        return ReviewDecision.APPROVED
    if _COMMENT_PATTERN.search(cleaned):
        return ReviewDecision.COMMENT
    return ReviewDecision.REQUEST_CHANGES


def _clarification_from_structured(output: Optional[Dict[str, Any]]) -> Optional[str]:
    if not isinstance(output, dict) or output.get("needsClarification") is not True:
        return None
    request = output.get("clarificationRequest")
    if isinstance(request, str) and request.strip():
        return request.strip()
    logger.warning("Agent set needsClarification without a clarificationRequest")
    return "The agent requested clarification but did not say what it needs."


def extract_clarification(text: Optional[str]) -> Optional[str]:
    """Return the clarification request in agent text, or None.

    Only explicit signals count: a ```clarification fence, the
    clarification header, or a JSON object with needsClarification=true.
    Prose like "I have a question" is not enough.
    """
    if not text:
        return None

    match = _CLARIFICATION_FENCE_PATTERN.search(text)
    if match and match.group(1).strip():
        return match.group(1).strip()

    marker_index = text.find(CLARIFICATION_MARKER)
    if marker_index != -1:
        request = text[marker_index + len(CLARIFICATION_MARKER):].strip()
        if request:
            return request

    return _clarification_from_structured(extract_json(text))


def extract_clarification_from_result(result) -> Optional[str]:
    """Check structured output first, then the raw text of an AgentRunResult."""
    request = _clarification_from_structured(result.structured_output)
    if request:
        return request
    return extract_clarification(result.content)


def parse_phase_string(value: Optional[str]) -> Optional[PhaseProgress]:
    """Parse "N/M" into PhaseProgress; None for anything malformed or N > M."""
    if not value or not isinstance(value, str):
        return None
    match = _PHASE_STRING_PATTERN.match(value)
    if not match:
        return None
    current, total = int(match.group(1)), int(match.group(2))
    if current < 1 or total < 1 or current > total:
        return None
    return PhaseProgress(current=current, total=total)
