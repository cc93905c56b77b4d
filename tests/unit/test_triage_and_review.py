"""Tests for the triage and workflow-review workflows."""

import pytest

from agent_workflow.core.models import Status
from agent_workflow.core.state_store import WorkflowItemRecord
from agent_workflow.execution_log import REVIEW_TAG, LogContext
from agent_workflow.workflows import TriageWorkflow, WorkflowReviewWorkflow, run_batch
from agent_workflow.workflows.triage import missing_field_updates
from agent_workflow.workflows.workflow_review import log_tail

from workflow_fixtures import FakeProject, ScriptedAgent, make_context, make_item, structured


# ---- Triage ----

class TestMissingFieldUpdates:
    def test_only_empty_fields_are_set(self):
        """A human's earlier priority is never overwritten."""
        record = WorkflowItemRecord(issue_number=1, priority="high")
        output = {"domain": " Billing ", "priority": "low", "size": "M", "complexity": "Medium", "triageSummary": "Invoices"}

        updates = missing_field_updates(record, output)

        assert updates == {"domain": "billing", "size": "M", "complexity": "Medium", "triage_summary": "Invoices"}


class TestTriageWorkflow:
    @pytest.mark.asyncio
    async def test_triages_untriaged_backlog_items(self, tmp_path):
        untriaged = make_item(number=1, status=Status.BACKLOG.value)
        triaged = make_item(number=2, status=Status.BACKLOG.value)
        project = FakeProject([untriaged, triaged])
        agent = ScriptedAgent([structured(domain="Auth", priority="high", size="S", triageSummary="Login bug")])
        ctx = make_context(tmp_path, project, agent)
        ctx.store.update(2, domain="billing")

        results = await run_batch(TriageWorkflow(ctx))

        assert results.succeeded == 1
        assert len(agent.runs) == 1
        assert "billing" in agent.last_prompt
        record = ctx.store.get(1)
        assert (record.domain, record.priority, record.size) == ("auth", "high", "S")
        assert project.get_issue_comments(1)[0].body.startswith("[triage]")
        ctx.notifier.triage_complete.assert_called_once_with(
            untriaged.title, 1, {"domain": "auth", "priority": "high", "size": "S"},
        )
        assert not any(call[0] == "update_item_review_status" for call in project.calls)

    @pytest.mark.asyncio
    async def test_missing_domain_fails(self, tmp_path):
        project = FakeProject([make_item(number=1, status=Status.BACKLOG.value)])
        ctx = make_context(tmp_path, project, ScriptedAgent([structured(priority="low")]))

        results = await run_batch(TriageWorkflow(ctx))

        assert results.failed == 1
        assert ctx.store.get(1) is None

    @pytest.mark.asyncio
    async def test_dry_run_stores_nothing(self, tmp_path):
        project = FakeProject([make_item(number=1, status=Status.BACKLOG.value)])
        ctx = make_context(tmp_path, project, ScriptedAgent([structured(domain="auth")]), dry_run=True)

        await run_batch(TriageWorkflow(ctx))

        assert ctx.store.get(1) is None
        assert project.writes() == []


# ---- Workflow Review ----

REVIEW_OUTPUT = {
    "executiveSummary": {
        "status": "completed",
        "totalCost": "$1.20",
        "duration": "14m",
        "overallAssessment": "Smooth run with one redundant design revision.",
    },
    "findings": [
        {"severity": "low", "category": "efficiency", "title": "Repeated reads", "description": "Read the same file 6 times"},
    ],
    "systemicImprovements": [{"recommendation": "Cache file reads", "targetFile": "prompts.py"}],
}


def _seed_log(ctx, issue_number: int) -> None:
    log_ctx = LogContext(issue_number=issue_number, workflow="implementation", phase="Implementation", issue_title="t")
    ctx.exec_logger.log_execution_start(log_ctx)
    ctx.exec_logger.log_info(log_ctx, "Changed files: theme.css")


class TestWorkflowReview:
    @pytest.mark.asyncio
    async def test_appends_review_and_records_summary(self, tmp_path):
        item = make_item(number=5, status=Status.DONE.value)
        project = FakeProject([item])
        agent = ScriptedAgent([structured(**REVIEW_OUTPUT)])
        ctx = make_context(tmp_path, project, agent)
        _seed_log(ctx, 5)

        results = await run_batch(WorkflowReviewWorkflow(ctx))

        assert results.succeeded == 1
        assert "Changed files: theme.css" in agent.last_prompt
        log = ctx.exec_logger.read_log(5)
        assert REVIEW_TAG in log
        assert "Repeated reads" in log
        assert "Cache file reads (`prompts.py`)" in log
        record = ctx.store.get(5)
        assert record.workflow_review_summary == "Smooth run with one redundant design revision."
        assert record.workflow_reviewed_at is not None
        ctx.notifier.workflow_review_complete.assert_called_once()
        assert project.writes() == []

    @pytest.mark.asyncio
    async def test_reviewed_items_are_not_listed(self, tmp_path):
        project = FakeProject([make_item(number=5, status=Status.DONE.value)])
        agent = ScriptedAgent()
        ctx = make_context(tmp_path, project, agent)
        _seed_log(ctx, 5)
        ctx.store.update(5, workflow_review_summary="done before")
        ctx.store.update(5, workflow_reviewed_at="2026-01-01T00:00:00+00:00")

        results = await run_batch(WorkflowReviewWorkflow(ctx))

        assert agent.runs == []
        assert results.processed == 0

    @pytest.mark.asyncio
    async def test_items_without_log_are_skipped(self, tmp_path):
        project = FakeProject([make_item(number=5, status=Status.DONE.value)])
        agent = ScriptedAgent()

        await run_batch(WorkflowReviewWorkflow(make_context(tmp_path, project, agent)))

        assert agent.runs == []

    @pytest.mark.asyncio
    async def test_existing_review_tag_marks_reviewed(self, tmp_path):
        project = FakeProject([make_item(number=5, status=Status.DONE.value)])
        agent = ScriptedAgent()
        ctx = make_context(tmp_path, project, agent)
        _seed_log(ctx, 5)
        ctx.exec_logger.append_review(5, "Reviewed by hand")

        results = await run_batch(WorkflowReviewWorkflow(ctx))

        assert agent.runs == []
        assert results.skipped == 1
        assert ctx.store.get(5).workflow_reviewed_at is not None


def test_log_tail_truncates_from_the_front():
    log = "a" * 10 + "b" * 10
    assert log_tail(log, limit=10) == "... (truncated)\n" + "b" * 10
    assert log_tail("short", limit=10) == "short"
