"""Parsing of agent output and of the marker formats stored on issues."""

from .clarification import (
    extract_clarification_from_comment,
    find_clarification_exchange,
    format_clarification_comment,
    is_clarification_comment,
)
from .extract import (
    extract_clarification,
    extract_clarification_from_result,
    extract_json,
    extract_markdown,
    extract_review,
    parse_phase_string,
    parse_review_decision,
)
from .sections import (
    IssueBodySections,
    SectionName,
    build_updated_issue_body,
    extract_original_description,
    extract_product_design,
    extract_tech_design,
    parse_issue_body,
    render_issue_body,
)

__all__ = [
    "extract_clarification",
    "extract_clarification_from_result",
    "extract_json",
    "extract_markdown",
    "extract_review",
    "parse_phase_string",
    "parse_review_decision",
    "IssueBodySections",
    "SectionName",
    "build_updated_issue_body",
    "extract_original_description",
    "extract_product_design",
    "extract_tech_design",
    "parse_issue_body",
    "render_issue_body",
    "extract_clarification_from_comment",
    "find_clarification_exchange",
    "format_clarification_comment",
    "is_clarification_comment",
]
