"""Cumulative per-issue cost summary.

The raw data lives in cost-summary.json next to the issue logs; a
cost-summary.md rendering with one "## Cost Summary" table per issue is
rewritten on every update. Updates run detached from the workflow.
"""

import json
import logging
from dataclasses import asdict
from typing import Any, Dict, List, Optional

from .backends import LogBackend, issue_log_name
from .types import LogContext, PhaseCost
from ..core.config import BudgetConfig

logger = logging.getLogger(__name__)

COST_DATA_NAME = "cost-summary.json"
COST_REPORT_NAME = "cost-summary.md"


def format_duration(seconds: float) -> str:
    seconds = int(seconds)
    if seconds < 60:
        return f"{seconds}s"
    return f"{seconds // 60}m {seconds % 60}s"


def format_cost(cost: float) -> str:
    return f"${cost:.4f}"


def _load(backend: LogBackend) -> Dict[str, Any]:
    raw = backend.read(COST_DATA_NAME)
    if not raw.strip():
        return {"issues": {}}
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning(f"Corrupt {COST_DATA_NAME}, starting a new cost summary")
        return {"issues": {}}
    data.setdefault("issues", {})
    return data


def render_cost_report(data: Dict[str, Any]) -> str:
    lines = ["# Agent Cost Summary", ""]
    for issue_key in sorted(data["issues"], key=int):
        entry = data["issues"][issue_key]
        phases: List[Dict[str, Any]] = entry.get("phases", [])
        lines.append(f"## Issue #{issue_key}: {entry.get('title', '')}")
        lines.append("")
        lines.append("### Cost Summary")
        lines.append("")
        lines.append("| Phase | Workflow | Duration | Tools | Tokens | Cost | Status |")
        lines.append("|-------|----------|----------|-------|--------|------|--------|")
        for phase in phases:
            status = "✅" if phase.get("success") else "❌"
            lines.append(
                f"| {phase['name']} | {phase['workflow']} | {format_duration(phase['duration_seconds'])} "
                f"| {phase['tool_calls']} | {phase['total_tokens']} | {format_cost(phase['total_cost_usd'])} "
                f"| {status} |"
            )
        lines.append(
            f"| **Total** | | **{format_duration(sum(p['duration_seconds'] for p in phases))}** "
            f"| **{sum(p['tool_calls'] for p in phases)}** | **{sum(p['total_tokens'] for p in phases)}** "
            f"| **{format_cost(issue_total_cost(entry))}** | |"
        )
        lines.append("")
    return "\n".join(lines)


def issue_total_cost(entry: Dict[str, Any]) -> float:
    return sum(phase.get("total_cost_usd", 0.0) for phase in entry.get("phases", []))


def budget_warnings(previous_total: float, new_total: float, budget: BudgetConfig) -> List[str]:
    """Lines for each threshold crossed by this update (not ones already crossed)."""
    warnings = []
    if previous_total < budget.warning_threshold_usd <= new_total:
        warnings.append(
            f"⚠️ Budget warning: cumulative cost {format_cost(new_total)} "
            f"passed {format_cost(budget.warning_threshold_usd)}"
        )
    if previous_total < budget.alert_threshold_usd <= new_total:
        warnings.append(
            f"🚨 Budget alert: cumulative cost {format_cost(new_total)} "
            f"passed {format_cost(budget.alert_threshold_usd)}"
        )
    return warnings


def update_cost_summary(
    backend: LogBackend,
    ctx: LogContext,
    phase: PhaseCost,
    budget: Optional[BudgetConfig] = None,
) -> float:
    """Record one phase and return the issue's new cumulative cost.

    Threshold crossings are appended to the issue log.
    """
    data = _load(backend)
    key = str(ctx.issue_number)
    entry = data["issues"].setdefault(key, {"title": ctx.issue_title, "phases": []})
    if ctx.issue_title:
        entry["title"] = ctx.issue_title

    previous_total = issue_total_cost(entry)
    entry["phases"].append(asdict(phase))
    new_total = issue_total_cost(entry)

    backend.write(COST_DATA_NAME, json.dumps(data, indent=2))
    backend.write(COST_REPORT_NAME, render_cost_report(data))

    if budget is not None:
        for warning in budget_warnings(previous_total, new_total, budget):
            logger.warning(f"Issue #{ctx.issue_number}: {warning}")
            backend.append(issue_log_name(ctx.issue_number), f"**{warning}**\n\n")
    return new_total
