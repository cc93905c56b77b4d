"""JSON schemas for each workflow's structured agent output."""

from typing import Any, Dict

_CLARIFICATION_PROPERTIES = {
    "needsClarification": {
        "type": "boolean",
        "description": "Set to true only when ambiguity blocks the task. Leave other fields empty.",
    },
    "clarificationRequest": {
        "type": "string",
        "description": "Context, question, options and recommendation, in markdown.",
    },
}

_SUMMARY_COMMENT = {
    "type": "string",
    "description": (
        "High-level summary to post as a GitHub comment. For new work: "
        "\"Here's the overview: 1. ... 2. ...\" (3-5 items). For revisions: "
        "\"Here's what I changed: 1. ... 2. ...\"."
    ),
}


def _output_format(properties: Dict[str, Any], required, clarifiable: bool = True) -> Dict[str, Any]:
    if clarifiable:
        properties = {**properties, **_CLARIFICATION_PROPERTIES}
    return {
        "type": "json_schema",
        "schema": {
            "type": "object",
            "properties": properties,
            "required": list(required),
        },
    }


PRODUCT_DEVELOPMENT_OUTPUT_FORMAT = _output_format(
    {
        "document": {"type": "string", "description": "Product development document in markdown"},
        "comment": _SUMMARY_COMMENT,
    },
    ["document", "comment"],
)

PRODUCT_DESIGN_OUTPUT_FORMAT = _output_format(
    {
        "design": {"type": "string", "description": "Complete product design document in markdown"},
        "comment": _SUMMARY_COMMENT,
    },
    ["design", "comment"],
)

_PHASE_SCHEMA = {
    "type": "object",
    "properties": {
        "order": {"type": "integer", "description": "1-based phase number"},
        "name": {"type": "string"},
        "description": {"type": "string"},
        "files": {"type": "array", "items": {"type": "string"}},
        "estimatedSize": {"type": "string", "enum": ["XS", "S", "M", "L", "XL"]},
    },
    "required": ["order", "name", "description"],
}

TECH_DESIGN_OUTPUT_FORMAT = _output_format(
    {
        "design": {"type": "string", "description": "Complete technical design document in markdown"},
        "comment": _SUMMARY_COMMENT,
        "phases": {
            "type": "array",
            "items": _PHASE_SCHEMA,
            "description": "Implementation phases for L/XL work (2 or more), one PR each. Omit for small work.",
        },
    },
    ["design", "comment"],
)

IMPLEMENTATION_OUTPUT_FORMAT = _output_format(
    {
        "prSummary": {"type": "string", "description": "Complete PR description in markdown"},
        "comment": _SUMMARY_COMMENT,
    },
    ["prSummary", "comment"],
)

BUG_INVESTIGATION_OUTPUT_FORMAT = _output_format(
    {
        "rootCauseFound": {"type": "boolean"},
        "confidence": {"type": "string", "enum": ["low", "medium", "high"]},
        "rootCauseAnalysis": {"type": "string", "description": "Root cause with file references"},
        "fixOptions": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "description": {"type": "string"},
                    "complexity": {"type": "string", "enum": ["S", "M", "L", "XL"]},
                    "recommended": {"type": "boolean"},
                },
                "required": ["title", "description"],
            },
        },
        "filesExamined": {"type": "array", "items": {"type": "string"}},
        "summary": _SUMMARY_COMMENT,
    },
    ["rootCauseFound", "rootCauseAnalysis", "summary"],
)

PR_REVIEW_OUTPUT_FORMAT = _output_format(
    {
        "decision": {"type": "string", "enum": ["approved", "request_changes"]},
        "summary": {"type": "string", "description": "One-paragraph verdict"},
        "reviewText": {"type": "string", "description": "Full review in markdown, posted on the PR"},
    },
    ["decision", "summary", "reviewText"],
    # Reviews never pause for clarification; unclear PRs get request_changes
    clarifiable=False,
)

TRIAGE_OUTPUT_FORMAT = _output_format(
    {
        "domain": {"type": "string"},
        "priority": {"type": "string", "enum": ["critical", "high", "medium", "low"]},
        "size": {"type": "string", "enum": ["XS", "S", "M", "L", "XL"]},
        "complexity": {"type": "string", "enum": ["High", "Medium", "Low"]},
        "triageSummary": {"type": "string"},
        "stillRelevant": {"type": "boolean"},
        "reasoning": {"type": "string"},
    },
    ["domain", "reasoning"],
)

WORKFLOW_REVIEW_OUTPUT_FORMAT = _output_format(
    {
        "executiveSummary": {
            "type": "object",
            "properties": {
                "status": {"type": "string"},
                "totalCost": {"type": "string"},
                "duration": {"type": "string"},
                "overallAssessment": {"type": "string"},
            },
            "required": ["status", "overallAssessment"],
        },
        "findings": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "title": {"type": "string"},
                    "category": {"type": "string"},
                    "severity": {"type": "string", "enum": ["critical", "high", "medium", "low"]},
                    "description": {"type": "string"},
                },
                "required": ["title", "description"],
            },
        },
        "systemicImprovements": {
            "type": "array",
            "items": {
                "type": "object",
                "properties": {
                    "type": {"type": "string"},
                    "targetFile": {"type": "string"},
                    "recommendation": {"type": "string"},
                },
                "required": ["recommendation"],
            },
        },
    },
    ["executiveSummary", "findings"],
)
