"""Tests for the implementation phases comment, phase resolution and branch names."""

import pytest

from agent_workflow.core.models import Comment, ImplementationPhase
from agent_workflow.core.state_store import WorkflowItemStore
from agent_workflow.errors import PhaseResolutionError
from agent_workflow.phases import (
    PHASES_COMMENT_MARKER,
    extract_phases_from_tech_design,
    format_phases_comment,
    generate_implementation_branch_name,
    has_phase_comment,
    parse_phases_from_comment,
    phases_from_output,
    resolve_phase_details,
    validate_phases,
)


def _phases(*titles: str) -> list:
    return [
        ImplementationPhase(order=index, total=len(titles), title=title, estimated_size="M")
        for index, title in enumerate(titles, start=1)
    ]


TECH_DESIGN = """# Technical Design

## Overview
Split the work.

## Phase 1: Data model
**Size:** S

- `models/theme.py`

## Phase 2: API endpoints
**Size:** M

## Phase 3: UI toggle
"""


class TestPhasesComment:
    def test_comment_parses_back(self):
        phases = _phases("Data model", "API", "UI")
        phases[0] = phases[0].model_copy(update={"description": "Add the theme table.", "files_affected": ["models/theme.py"]})
        body = format_phases_comment(phases)

        assert body.startswith(PHASES_COMMENT_MARKER)
        parsed = parse_phases_from_comment([Comment(id=1, body="unrelated"), Comment(id=2, body=body)])
        assert [p.title for p in parsed] == ["Data model", "API", "UI"]
        assert [p.total for p in parsed] == [3, 3, 3]
        assert parsed[0].estimated_size == "M"
        assert parsed[0].description == "Add the theme table."
        assert parsed[0].files_affected == ["models/theme.py"]

    def test_has_phase_comment(self):
        assert has_phase_comment([Comment(id=1, body=format_phases_comment(_phases("A", "B")))])
        assert not has_phase_comment([Comment(id=1, body="### Phase 1: A")])

    def test_marker_without_headings(self):
        assert parse_phases_from_comment([Comment(id=1, body=PHASES_COMMENT_MARKER + "\nnothing")]) is None


class TestTechDesignPhases:
    def test_extracts_headings(self):
        phases = extract_phases_from_tech_design(TECH_DESIGN)
        assert [p.order for p in phases] == [1, 2, 3]
        assert phases[0].title == "Data model"
        assert phases[0].estimated_size == "S"
        assert phases[0].files_affected == ["models/theme.py"]
        assert all(p.total == 3 for p in phases)

    def test_single_phase_is_not_a_plan(self):
        assert extract_phases_from_tech_design("## Phase 1: Everything\n\nDo it all") is None

    def test_empty(self):
        assert extract_phases_from_tech_design(None) is None


class TestPhasesFromOutput:
    def test_defaults_order_and_aliases(self):
        phases = phases_from_output([
            {"name": "Schema", "files": ["a.py"], "estimatedSize": "S"},
            {"title": "Endpoints", "filesAffected": ["b.py"]},
        ])
        assert [(p.order, p.total, p.title) for p in phases] == [(1, 2, "Schema"), (2, 2, "Endpoints")]
        assert phases[0].files_affected == ["a.py"]
        assert phases[1].files_affected == ["b.py"]

    def test_none(self):
        assert phases_from_output(None) == []


class TestValidatePhases:
    def test_sorts(self):
        phases = list(reversed(_phases("A", "B", "C")))
        assert [p.order for p in validate_phases(phases)] == [1, 2, 3]

    def test_gap_rejected(self):
        phases = [
            ImplementationPhase(order=1, total=3, title="A"),
            ImplementationPhase(order=3, total=3, title="C"),
        ]
        with pytest.raises(PhaseResolutionError):
            validate_phases(phases)

    def test_inconsistent_total_rejected(self):
        phases = [
            ImplementationPhase(order=1, total=2, title="A"),
            ImplementationPhase(order=2, total=3, title="B"),
        ]
        with pytest.raises(PhaseResolutionError):
            validate_phases(phases)

    def test_empty_rejected(self):
        with pytest.raises(PhaseResolutionError):
            validate_phases([])

    def test_order_beyond_total_is_invalid(self):
        with pytest.raises(ValueError):
            ImplementationPhase(order=4, total=3, title="Too far")


class TestResolvePhaseDetails:
    def test_state_store_wins(self, tmp_path):
        """The stored phases are authoritative over the comment and the design."""
        store = WorkflowItemStore(tmp_path)
        store.set_phases(42, _phases("Stored 1", "Stored 2"))
        comments = [Comment(id=1, body=format_phases_comment(_phases("Comment 1", "Comment 2", "Comment 3")))]

        resolution = resolve_phase_details(42, comments, TECH_DESIGN, 2, store=store)

        assert resolution.source == "state-store"
        assert resolution.current_phase_details.title == "Stored 2"
        assert len(resolution.phases) == 2

    def test_comment_before_tech_design(self, tmp_path):
        comments = [Comment(id=1, body=format_phases_comment(_phases("Comment 1", "Comment 2")))]
        resolution = resolve_phase_details(42, comments, TECH_DESIGN, 1, store=WorkflowItemStore(tmp_path))
        assert resolution.source == "comment"
        assert resolution.current_phase_details.title == "Comment 1"

    def test_falls_back_to_tech_design(self):
        resolution = resolve_phase_details(42, [], TECH_DESIGN, 3)
        assert resolution.source == "tech-design"
        assert resolution.current_phase_details.title == "UI toggle"

    def test_nothing_found(self):
        assert resolve_phase_details(42, [], "# Design without phases", 1) is None

    def test_failing_resolver_is_skipped(self):
        def broken(sources):
            raise RuntimeError("boom")

        def fixed(sources):
            return _phases("Only", "Two")

        resolution = resolve_phase_details(42, [], None, 1, resolvers=[("broken", broken), ("fixed", fixed)])
        assert resolution.source == "fixed"

    def test_current_phase_out_of_range(self):
        resolution = resolve_phase_details(42, [], TECH_DESIGN, 7)
        assert resolution.current_phase_details is None


class TestBranchNames:
    def test_single_pr_branch(self):
        assert generate_implementation_branch_name(42) == "feature/task-42"
        assert generate_implementation_branch_name(42, "bug") == "fix/task-42"

    def test_phase_branch(self):
        assert generate_implementation_branch_name(42, "feature", 2, 3) == "feature/task-42-phase-2"

    def test_single_phase_uses_task_branch(self):
        assert generate_implementation_branch_name(42, "feature", 1, 1) == "feature/task-42"
