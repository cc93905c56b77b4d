"""Prompt builders.

Every builder is a pure function of the item and the context gathered for
it (designs, comments, diffs), so the same inputs always give the same
prompt.
"""

from typing import Dict, List, Optional

from ..core.models import Comment, ImplementationPhase, WorkflowItem
from ..core.state_store import WorkflowItemRecord
from ..parsing import extract_original_description

AMBIGUITY_INSTRUCTIONS = """
CRITICAL - Handling Ambiguity:

If anything ambiguous or missing prevents you from completing the task correctly,
do NOT guess. Set `needsClarification` to true, leave the other fields empty, and put
your question in `clarificationRequest` using this format:

## Context
[What is unclear]

## Question
[Your specific question]

## Options

✅ Option 1: [Recommended option]
   - [Reason]

⚠️ Option 2: [Alternative]
   - [Drawback]

## Recommendation
I recommend Option 1 because [reasoning].

Your work pauses until an admin answers, then you are re-run with the answer.
"""

MARKDOWN_INSTRUCTIONS = """
Markdown formatting: do not use tables. Use bulleted or numbered lists with
sub-bullets instead, so the document reads well on mobile.
"""

READ_ONLY_NOTE = "You are in read-only mode: explore the codebase with Read, Glob and Grep, do not modify files."


def format_comments(comments: Optional[List[Comment]], limit: int = 20) -> str:
    if not comments:
        return "(no comments)"
    recent = comments[-limit:]
    return "\n\n".join(f"**{c.author or 'unknown'}:**\n{c.body.strip()}" for c in recent)


def _issue_block(item: WorkflowItem) -> str:
    description = extract_original_description(item.content.body) or "(no description)"
    labels = ", ".join(item.content.labels) or "none"
    return (
        f"## Issue #{item.issue_number}: {item.title}\n\n"
        f"**Labels:** {labels}\n\n"
        f"### Description\n\n{description}"
    )


def _section(heading: str, content: Optional[str]) -> str:
    return f"## {heading}\n\n{content.strip()}" if content else ""


def _join(*parts: str) -> str:
    return "\n\n".join(part.strip("\n") for part in parts if part)


# -- Design phases --

def build_product_development_prompt(item: WorkflowItem, comments: List[Comment]) -> str:
    return _join(
        "You are a product manager turning a raw feature request into a Product Development "
        "Document (PDD): the problem, target users, goals, scope, non-goals and acceptance criteria.",
        READ_ONLY_NOTE,
        _issue_block(item),
        _section("Comments", format_comments(comments)),
        AMBIGUITY_INSTRUCTIONS,
        MARKDOWN_INSTRUCTIONS,
        "Return the PDD in `document` and a short overview in `comment`.",
    )


def build_product_design_prompt(
    item: WorkflowItem,
    comments: List[Comment],
    product_development_doc: Optional[str] = None,
) -> str:
    return _join(
        "You are a product designer. Write the Product Design for this feature: user flows, "
        "screens and states, copy, edge cases and empty/error states. Stay at the product level; "
        "no implementation details.",
        READ_ONLY_NOTE,
        _issue_block(item),
        _section("Product Development Document", product_development_doc),
        _section("Comments", format_comments(comments)),
        AMBIGUITY_INSTRUCTIONS,
        MARKDOWN_INSTRUCTIONS,
        "Return the design in `design` and a short overview in `comment`.",
    )


def build_tech_design_prompt(
    item: WorkflowItem,
    comments: List[Comment],
    product_design: Optional[str] = None,
) -> str:
    return _join(
        "You are a senior engineer writing the Technical Design for this change: architecture, "
        "data model changes, files to create or modify, API changes, testing strategy and risks.",
        READ_ONLY_NOTE,
        _issue_block(item),
        _section("Approved Product Design", product_design),
        _section("Comments", format_comments(comments)),
        "## Implementation Phases\n\n"
        "If the work is size L or XL, split it into 2 or more phases that can each ship as an "
        "independent, reviewable PR. Number them from 1 with no gaps, list the files each one "
        "touches, and return them in `phases`. For smaller work, omit `phases`.",
        AMBIGUITY_INSTRUCTIONS,
        MARKDOWN_INSTRUCTIONS,
        "Return the design in `design` and a short implementation plan in `comment`.",
    )


def build_bug_investigation_prompt(item: WorkflowItem, comments: List[Comment]) -> str:
    return _join(
        "You are investigating a bug report. Find the root cause in the codebase before anyone "
        "designs a fix. Trace the failing path, cite the files and lines involved, and propose "
        "fix options with their complexity. Do not fix anything.",
        READ_ONLY_NOTE,
        _issue_block(item),
        _section("Comments", format_comments(comments)),
        AMBIGUITY_INSTRUCTIONS,
        "Set `rootCauseFound` honestly. Return a short summary for the issue in `summary`.",
    )


def build_revision_prompt(
    document_name: str,
    item: WorkflowItem,
    existing: str,
    comments: List[Comment],
    context: Optional[Dict[str, str]] = None,
) -> str:
    """Flow B: revise an existing document to address review feedback."""
    context_sections = [_section(name, text) for name, text in (context or {}).items()]
    return _join(
        f"You are revising the {document_name} for this issue. An admin reviewed it and "
        "requested changes. Address every point of feedback and keep everything else intact.",
        READ_ONLY_NOTE,
        _issue_block(item),
        *context_sections,
        _section(f"Current {document_name}", existing),
        _section("Feedback (Comments)", format_comments(comments)),
        AMBIGUITY_INSTRUCTIONS,
        MARKDOWN_INSTRUCTIONS,
        "Return the complete revised document (not a diff), and list what you changed in `comment`.",
    )


def build_clarification_prompt(
    phase_name: str,
    item: WorkflowItem,
    comments: List[Comment],
    question: Optional[str],
    answer: str,
    context: Optional[Dict[str, str]] = None,
) -> str:
    """Flow C: continue a paused run with the admin's answer."""
    context_sections = [_section(name, text) for name, text in (context or {}).items()]
    return _join(
        f"You are continuing the {phase_name} work for this issue. You previously paused to ask "
        "a question; the admin has answered. Complete the task using the answer.",
        _issue_block(item),
        *context_sections,
        _section("Your Question", question),
        _section("Admin's Answer", answer),
        _section("Comments", format_comments(comments)),
        AMBIGUITY_INSTRUCTIONS,
        MARKDOWN_INSTRUCTIONS,
    )


# -- Implementation --

def format_phase_context(phase: ImplementationPhase) -> str:
    files = "\n".join(f"- `{path}`" for path in phase.files_affected) or "- (not specified)"
    return (
        f"## Current Phase: {phase.order}/{phase.total} - {phase.title}\n\n"
        f"{phase.description}\n\n"
        f"**Files in scope:**\n{files}\n\n"
        f"Implement ONLY this phase. Earlier phases are already merged; later phases "
        f"will follow in separate PRs."
    )


def build_implementation_prompt(
    item: WorkflowItem,
    comments: List[Comment],
    branch_name: str,
    product_design: Optional[str] = None,
    tech_design: Optional[str] = None,
    phase: Optional[ImplementationPhase] = None,
) -> str:
    return _join(
        "You are implementing this issue. Write production-quality code that follows the "
        "existing patterns of the codebase, with tests where the codebase has them.",
        f"You are on branch `{branch_name}`. Make your changes in the working tree; do not commit, "
        "push, or open a PR. That is handled for you.",
        _issue_block(item),
        _section("Product Design", product_design),
        _section("Technical Design", tech_design),
        format_phase_context(phase) if phase else "",
        _section("Comments", format_comments(comments)),
        AMBIGUITY_INSTRUCTIONS,
        "Return the PR description in `prSummary` and a short summary of what you did in `comment`.",
    )


def build_pr_revision_prompt(
    item: WorkflowItem,
    pr_number: int,
    branch_name: str,
    pr_comments: List[Comment],
    review_comments: List[Comment],
    tech_design: Optional[str] = None,
) -> str:
    return _join(
        f"You are addressing review feedback on PR #{pr_number} for this issue. You are on the "
        f"PR branch `{branch_name}`. Fix every point raised, and nothing else. Do not commit or push.",
        _issue_block(item),
        _section("Technical Design", tech_design),
        _section("PR Conversation", format_comments(pr_comments)),
        _section("Inline Review Comments", format_comments(review_comments, limit=50)),
        AMBIGUITY_INSTRUCTIONS,
        "Return an updated PR description in `prSummary` and list what you changed in `comment`.",
    )


# -- Review and side workflows --

def build_pr_review_prompt(
    item: WorkflowItem,
    pr_number: int,
    diff: str,
    phase_label: Optional[str] = None,
    tech_design: Optional[str] = None,
    pr_comments: Optional[List[Comment]] = None,
    max_diff_chars: int = 60000,
) -> str:
    if len(diff) > max_diff_chars:
        diff = diff[:max_diff_chars] + "\n\n... (diff truncated)"
    scope = f" (Phase {phase_label})" if phase_label else ""
    return _join(
        f"You are reviewing PR #{pr_number}{scope}. Check correctness, adherence to the technical "
        "design, tests, security and consistency with the codebase. Only request changes for real "
        "problems; style nits alone are not a reason to block. If the intent of the change is unclear, request "
        "changes and ask your question in the review.",
        READ_ONLY_NOTE,
        _issue_block(item),
        _section("Technical Design", tech_design),
        _section("Previous Review Discussion", format_comments(pr_comments) if pr_comments else None),
        f"## Diff\n\n```diff\n{diff}\n```",
        "Finish with `decision` (approved or request_changes), a one-paragraph `summary`, and the "
        "full review in `reviewText`.",
    )


def build_triage_prompt(item: WorkflowItem, record: WorkflowItemRecord, known_domains: List[str]) -> str:
    missing = []
    if not record.priority:
        missing.append("priority (critical | high | medium | low)")
    if not record.size:
        missing.append("size (XS | S | M | L | XL)")
    if not record.complexity:
        missing.append("complexity (High | Medium | Low)")
    if missing:
        missing_note = "These fields are not set yet; suggest values:\n" + "\n".join(f"- {m}" for m in missing)
    else:
        missing_note = "Priority, size and complexity are already set. Do not include them."
    domains = "\n".join(f"- {d}" for d in known_domains) or "(none yet; propose a short lowercase name)"
    return _join(
        "You are a triage agent. Classify this backlog item into a single domain.",
        _issue_block(item),
        _section("Known Domains", domains),
        missing_note,
        "Also say whether the item is still relevant (`stillRelevant`), give a two-sentence "
        "`triageSummary`, and brief `reasoning`.",
    )


def build_workflow_review_prompt(item: WorkflowItem, record: Optional[WorkflowItemRecord], log_location: str) -> str:
    phases = record.phases if record else []
    phases_info = "\n".join(f"- Phase {p.order}: {p.title} ({p.estimated_size or '?'})" for p in phases) or "- (no phases)"
    return _join(
        "You are a senior engineer reviewing how an AI agent pipeline handled a completed issue. "
        "Find errors, inefficiencies and systemic improvements.",
        _issue_block(item),
        _section("Phases", phases_info),
        f"## Execution Log\n\nThe log is at `{log_location}`. It can be large: read the header and "
        "tail first, then grep for `[LOG:ERROR]`, `[LOG:FATAL]` and `### Phase Result` and read "
        "around what you find.",
        "Return an `executiveSummary`, concrete `findings`, and `systemicImprovements`.",
    )
