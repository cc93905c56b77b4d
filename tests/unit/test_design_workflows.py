"""Tests for the document-producing workflows (product development, product/tech design, bug investigation)."""

import pytest

from agent_workflow.adapters import AgentRunResult
from agent_workflow.artifacts import ARTIFACT_COMMENT_MARKER, ImplementationStatus, parse_artifact_comment, read_design_doc
from agent_workflow.core.models import ReviewStatus, Status
from agent_workflow.parsing import SectionName, build_updated_issue_body, format_clarification_comment, parse_issue_body
from agent_workflow.phases import PHASES_COMMENT_MARKER
from agent_workflow.workflows import (
    BugInvestigationWorkflow,
    ProductDesignWorkflow,
    ProductDevelopmentWorkflow,
    TechDesignWorkflow,
    run_batch,
)
from agent_workflow.workflows.bug_investigation import INVESTIGATION_MARKER, find_investigation

from workflow_fixtures import FakeProject, ScriptedAgent, make_context, make_item, structured

DESIGN = "# Product Design\n\n## Overview\nA dark theme toggle in settings."
TECH = "# Technical Design\n\n## Overview\nCSS variables plus a stored preference."


def _run(ctx, runner_class):
    return run_batch(runner_class(ctx))


# ---- Product Design ----

class TestProductDesign:
    @pytest.mark.asyncio
    async def test_new_design_saved_everywhere(self, tmp_path):
        item = make_item(status=Status.PRODUCT_DESIGN.value)
        project = FakeProject([item])
        agent = ScriptedAgent([structured(design=DESIGN, comment="Here is the design.")])
        ctx = make_context(tmp_path, project, agent)

        results = await _run(ctx, ProductDesignWorkflow)

        assert results.succeeded == 1
        updated = project.get_item(item.id)
        assert parse_issue_body(updated.content.body).product_design == DESIGN
        assert read_design_doc(tmp_path, 42, "product").strip() == DESIGN
        assert updated.review_status == ReviewStatus.WAITING_FOR_REVIEW.value

        bodies = [c.body for c in project.get_issue_comments(42)]
        assert "[product-design] Here is the design." in bodies
        artifact = parse_artifact_comment(project.get_issue_comments(42))
        assert artifact.product_design.path == "design-docs/issue-42/product-design.md"
        ctx.notifier.product_design_ready.assert_called_once_with(item.title, 42, False)

        run = agent.runs[0]
        assert run.allow_write is False
        assert run.workflow == "product-design"
        assert item.content.body in run.prompt

    @pytest.mark.asyncio
    async def test_dry_run_touches_nothing(self, tmp_path):
        item = make_item(status=Status.PRODUCT_DESIGN.value)
        project = FakeProject([item])
        agent = ScriptedAgent([structured(design=DESIGN, comment="Summary")])
        ctx = make_context(tmp_path, project, agent, dry_run=True)

        results = await _run(ctx, ProductDesignWorkflow)

        assert results.succeeded == 1
        assert len(agent.runs) == 1
        assert project.writes() == []
        assert read_design_doc(tmp_path, 42, "product") is None
        ctx.notifier.product_design_ready.assert_not_called()

    @pytest.mark.asyncio
    async def test_existing_design_is_not_regenerated(self, tmp_path):
        body = build_updated_issue_body("Original", SectionName.PRODUCT_DESIGN, DESIGN)
        project = FakeProject([make_item(status=Status.PRODUCT_DESIGN.value, body=body)])
        agent = ScriptedAgent()
        ctx = make_context(tmp_path, project, agent)

        results = await _run(ctx, ProductDesignWorkflow)

        assert agent.runs == []
        assert results.failed == 1
        assert project.writes() == []

    @pytest.mark.asyncio
    async def test_feedback_revises_existing_design(self, tmp_path):
        body = build_updated_issue_body("Original", SectionName.PRODUCT_DESIGN, DESIGN)
        item = make_item(status=Status.PRODUCT_DESIGN.value, review_status=ReviewStatus.REQUEST_CHANGES.value, body=body)
        project = FakeProject([item])
        project.add_comment(42, "Please add a high-contrast variant.")
        revised = DESIGN + "\n\n## High contrast\nAlso supported."
        agent = ScriptedAgent([structured(design=revised)])
        ctx = make_context(tmp_path, project, agent)

        await _run(ctx, ProductDesignWorkflow)

        prompt = agent.last_prompt
        assert "high-contrast" in prompt
        assert DESIGN in prompt
        assert parse_issue_body(project.get_item(item.id).content.body).product_design == revised.strip()
        ctx.notifier.product_design_ready.assert_called_once_with(item.title, 42, True)

    @pytest.mark.asyncio
    async def test_feedback_without_design_fails(self, tmp_path):
        item = make_item(status=Status.PRODUCT_DESIGN.value, review_status=ReviewStatus.REQUEST_CHANGES.value)
        project = FakeProject([item])
        project.add_comment(42, "Change it")
        agent = ScriptedAgent()
        ctx = make_context(tmp_path, project, agent)

        results = await _run(ctx, ProductDesignWorkflow)

        assert results.failed == 1
        assert agent.runs == []
        assert "No existing Product Design" in results.failures[0][1]

    @pytest.mark.asyncio
    async def test_clarification_request_pauses_item(self, tmp_path):
        item = make_item(status=Status.PRODUCT_DESIGN.value)
        project = FakeProject([item])
        agent = ScriptedAgent([structured(needsClarification=True, clarificationRequest="Light or system default?")])
        ctx = make_context(tmp_path, project, agent)

        results = await _run(ctx, ProductDesignWorkflow)

        assert results.succeeded == 1
        updated = project.get_item(item.id)
        assert updated.review_status == ReviewStatus.WAITING_FOR_CLARIFICATION.value
        assert parse_issue_body(updated.content.body).product_design is None
        comment = project.get_issue_comments(42)[-1].body
        assert comment.startswith("[product-design]")
        assert "Light or system default?" in comment
        ctx.notifier.needs_clarification.assert_called_once_with("Product Design", item.title, 42, "Light or system default?")

    @pytest.mark.asyncio
    async def test_clarification_answer_is_in_prompt(self, tmp_path):
        item = make_item(status=Status.PRODUCT_DESIGN.value, review_status=ReviewStatus.CLARIFICATION_RECEIVED.value)
        project = FakeProject([item])
        project.add_comment(42, format_clarification_comment("Light or system default?", "[product-design]"))
        project.add_comment(42, "Follow the system default.")
        agent = ScriptedAgent([structured(design=DESIGN)])
        ctx = make_context(tmp_path, project, agent)

        await _run(ctx, ProductDesignWorkflow)

        assert "Light or system default?" in agent.last_prompt
        assert "Follow the system default." in agent.last_prompt
        assert project.get_item(item.id).review_status == ReviewStatus.WAITING_FOR_REVIEW.value

    @pytest.mark.asyncio
    async def test_bugs_are_skipped(self, tmp_path):
        project = FakeProject([make_item(status=Status.PRODUCT_DESIGN.value, labels=["bug"])])
        agent = ScriptedAgent()
        results = await _run(make_context(tmp_path, project, agent), ProductDesignWorkflow)
        assert agent.runs == []
        assert results.processed == 0

    @pytest.mark.asyncio
    async def test_agent_failure_is_reported(self, tmp_path):
        item = make_item(status=Status.PRODUCT_DESIGN.value)
        project = FakeProject([item])
        agent = ScriptedAgent([AgentRunResult(success=False, error="Timed out after 600s")])
        ctx = make_context(tmp_path, project, agent)

        results = await _run(ctx, ProductDesignWorkflow)

        assert results.failures == [(item.title, "Timed out after 600s")]
        ctx.notifier.agent_error.assert_called_once_with("Product Design", item.title, 42, "Timed out after 600s")
        assert project.writes() == []


# ---- Product Development ----

@pytest.mark.asyncio
async def test_product_development_writes_file_only(tmp_path):
    item = make_item(status=Status.PRODUCT_DEVELOPMENT.value)
    project = FakeProject([item])
    agent = ScriptedAgent([structured(document="# Product Development\n\n## Overview\nWhy dark mode.")])
    ctx = make_context(tmp_path, project, agent)

    await _run(ctx, ProductDevelopmentWorkflow)

    assert "Why dark mode." in read_design_doc(tmp_path, 42, "product-dev")
    assert not any(call[0] == "update_issue_body" for call in project.calls)
    ctx.notifier.product_development_ready.assert_called_once_with(item.title, 42, False)


# ---- Technical Design ----

class TestTechDesign:
    @pytest.mark.asyncio
    async def test_multi_phase_design(self, tmp_path):
        body = build_updated_issue_body("Original", SectionName.PRODUCT_DESIGN, DESIGN)
        item = make_item(status=Status.TECH_DESIGN.value, body=body)
        project = FakeProject([item])
        phases = [
            {"order": 1, "name": "Theme tokens", "description": "CSS variables", "files": ["theme.css"], "estimatedSize": "S"},
            {"order": 2, "name": "Settings toggle", "description": "UI switch", "estimatedSize": "M"},
        ]
        agent = ScriptedAgent([structured(design=TECH, phases=phases, comment="Two phases.")])
        ctx = make_context(tmp_path, project, agent)

        await _run(ctx, TechDesignWorkflow)

        assert DESIGN in agent.last_prompt
        sections = parse_issue_body(project.get_item(item.id).content.body)
        assert sections.product_design == DESIGN
        assert sections.tech_design == TECH
        assert [p.title for p in ctx.store.get_phases(42)] == ["Theme tokens", "Settings toggle"]

        comments = project.get_issue_comments(42)
        assert sum(PHASES_COMMENT_MARKER in c.body for c in comments) == 1
        artifact = parse_artifact_comment(comments)
        assert [(p.phase, p.status) for p in artifact.phases] == [
            (1, ImplementationStatus.PENDING),
            (2, ImplementationStatus.PENDING),
        ]
        assert artifact.tech_design is not None
        ctx.notifier.tech_design_ready.assert_called_once()

    @pytest.mark.asyncio
    async def test_single_phase_posts_no_phase_comment(self, tmp_path):
        item = make_item(status=Status.TECH_DESIGN.value)
        project = FakeProject([item])
        agent = ScriptedAgent([structured(design=TECH, phases=[{"order": 1, "name": "All", "description": "x"}])])
        ctx = make_context(tmp_path, project, agent)

        await _run(ctx, TechDesignWorkflow)

        assert not any(PHASES_COMMENT_MARKER in c.body for c in project.get_issue_comments(42))
        assert ctx.store.get_phases(42) is None

    @pytest.mark.asyncio
    async def test_invalid_phases_fail_before_saving(self, tmp_path):
        item = make_item(status=Status.TECH_DESIGN.value)
        project = FakeProject([item])
        phases = [{"order": 1, "name": "A"}, {"order": 3, "name": "C"}]
        agent = ScriptedAgent([structured(design=TECH, phases=phases)])
        ctx = make_context(tmp_path, project, agent)

        results = await _run(ctx, TechDesignWorkflow)

        assert results.failed == 1
        assert project.writes() == []

    @pytest.mark.asyncio
    async def test_bug_uses_investigation(self, tmp_path):
        item = make_item(status=Status.TECH_DESIGN.value, labels=["bug"])
        project = FakeProject([item])
        project.add_comment(42, f"[bug-investigation] {INVESTIGATION_MARKER}\n## 🔍 Bug Investigation\n\nNull theme crashes render")
        agent = ScriptedAgent([structured(design=TECH)])
        ctx = make_context(tmp_path, project, agent)

        await _run(ctx, TechDesignWorkflow)

        assert "Null theme crashes render" in agent.last_prompt


# ---- Bug Investigation ----

INVESTIGATION_OUTPUT = {
    "rootCauseFound": True,
    "confidence": "high",
    "rootCauseAnalysis": "The theme lookup returns None for new users.",
    "fixOptions": [
        {"title": "Default the theme", "description": "Fall back to light", "complexity": "S", "recommended": True},
        {"title": "Migrate users", "description": "Backfill the column", "complexity": "M"},
    ],
    "filesExamined": ["theme.py"],
    "summary": "Missing default",
}


class TestBugInvestigation:
    @pytest.mark.asyncio
    async def test_posts_investigation_comment(self, tmp_path):
        item = make_item(status=Status.BUG_INVESTIGATION.value, labels=["bug"])
        project = FakeProject([item])
        agent = ScriptedAgent([structured(**INVESTIGATION_OUTPUT)])
        ctx = make_context(tmp_path, project, agent)

        await _run(ctx, BugInvestigationWorkflow)

        comments = project.get_issue_comments(42)
        assert len([c for c in comments if ARTIFACT_COMMENT_MARKER not in c.body]) == 1
        investigation = find_investigation(comments)
        assert "The theme lookup returns None" in investigation
        assert "⭐ Recommended" in investigation
        assert "`theme.py`" in investigation
        assert project.get_item(item.id).review_status == ReviewStatus.WAITING_FOR_REVIEW.value
        ctx.notifier.bug_investigation_ready.assert_called_once_with(item.title, 42, False)

    @pytest.mark.asyncio
    async def test_no_fix_options_fails(self, tmp_path):
        item = make_item(status=Status.BUG_INVESTIGATION.value, labels=["bug"])
        project = FakeProject([item])
        output = dict(INVESTIGATION_OUTPUT, fixOptions=[])
        ctx = make_context(tmp_path, project, ScriptedAgent([structured(**output)]))

        results = await _run(ctx, BugInvestigationWorkflow)

        assert results.failed == 1
        assert project.writes() == []
