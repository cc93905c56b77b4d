"""Tests for the PR review workflow."""

import pytest

from agent_workflow.adapters import AgentRunResult
from agent_workflow.artifacts import ImplementationStatus, parse_artifact_comment
from agent_workflow.core.models import OpenPullRequest, ReviewDecision, ReviewStatus, Status
from agent_workflow.workflows import PRReviewWorkflow, run_batch
from agent_workflow.workflows.output_schemas import PR_REVIEW_OUTPUT_FORMAT
from agent_workflow.workflows.pr_review import format_review_status_comment

from workflow_fixtures import FakeProject, ScriptedAgent, make_context, make_item, structured

DIFF = "diff --git a/theme.css b/theme.css\n+:root { --bg: #111; }"


def _waiting_item(phase=None):
    return make_item(
        status=Status.PR_REVIEW.value,
        review_status=ReviewStatus.WAITING_FOR_REVIEW.value,
        implementation_phase=phase,
    )


def _project_with_pr(item, diff=DIFF):
    project = FakeProject([item])
    project.open_prs[42] = OpenPullRequest(number=77, branch="feature/task-42")
    project.diffs[77] = diff
    return project


def test_status_comment_format():
    assert format_review_status_comment(ReviewDecision.APPROVED, 77) == "✅ PR approved - ready for merge (#77)"
    assert format_review_status_comment(ReviewDecision.REQUEST_CHANGES, 77, "2/3") == (
        "⚠️ **Phase 2/3**: Changes requested on PR (#77)"
    )


@pytest.mark.asyncio
async def test_approval(tmp_path):
    item = _waiting_item()
    project = _project_with_pr(item)
    agent = ScriptedAgent([structured(decision="approved", summary="LGTM", reviewText="Looks good to me.")])
    ctx = make_context(tmp_path, project, agent)

    results = await run_batch(PRReviewWorkflow(ctx))

    assert results.succeeded == 1
    assert DIFF in agent.last_prompt
    assert agent.runs[0].allow_write is False
    assert project.get_pr_comments(77)[-1].body == "[pr-review] Looks good to me."
    assert project.get_issue_comments(42)[-1].body == "[pr-review] ✅ PR approved - ready for merge (#77)"
    assert project.get_item(item.id).review_status == ReviewStatus.APPROVED.value
    assert project.get_item(item.id).status == Status.PR_REVIEW.value
    ctx.notifier.pr_review_complete.assert_called_once_with(item.title, 42, 77, ReviewDecision.APPROVED, "LGTM")


@pytest.mark.asyncio
async def test_changes_requested_on_phase(tmp_path):
    item = _waiting_item("2/3")
    project = _project_with_pr(item)
    agent = ScriptedAgent([structured(decision="request_changes", summary="Missing tests", reviewText="Add tests.")])
    ctx = make_context(tmp_path, project, agent)

    await run_batch(PRReviewWorkflow(ctx))

    assert project.get_item(item.id).review_status == ReviewStatus.REQUEST_CHANGES.value
    assert "**Phase 2/3**: Changes requested on PR (#77)" in project.get_issue_comments(42)[0].body
    row = parse_artifact_comment(project.get_issue_comments(42)).phases[0]
    assert (row.phase, row.status, row.pr_number) == (2, ImplementationStatus.CHANGES_REQUESTED, 77)


@pytest.mark.asyncio
async def test_comment_decision_in_text_counts_as_request_changes(tmp_path):
    item = _waiting_item()
    project = _project_with_pr(item)
    agent = ScriptedAgent([AgentRunResult(success=True, content="```review\nDECISION: COMMENT\nA few nits\n```")])
    ctx = make_context(tmp_path, project, agent)

    await run_batch(PRReviewWorkflow(ctx))

    assert project.get_item(item.id).review_status == ReviewStatus.REQUEST_CHANGES.value
    assert "A few nits" in project.get_pr_comments(77)[-1].body


@pytest.mark.asyncio
async def test_item_without_open_pr_is_skipped(tmp_path):
    project = FakeProject([_waiting_item()])
    agent = ScriptedAgent()

    results = await run_batch(PRReviewWorkflow(make_context(tmp_path, project, agent)))

    assert agent.runs == []
    assert results.processed == 0


@pytest.mark.asyncio
async def test_empty_diff_fails(tmp_path):
    item = _waiting_item()
    project = _project_with_pr(item, diff="")
    agent = ScriptedAgent()
    ctx = make_context(tmp_path, project, agent)

    results = await run_batch(PRReviewWorkflow(ctx))

    assert results.failed == 1
    assert agent.runs == []


@pytest.mark.asyncio
async def test_unreadable_review_fails(tmp_path):
    item = _waiting_item()
    project = _project_with_pr(item)
    ctx = make_context(tmp_path, project, ScriptedAgent([AgentRunResult(success=True, content="I looked at it.")]))

    results = await run_batch(PRReviewWorkflow(ctx))

    assert results.failed == 1
    assert project.writes() == []


@pytest.mark.asyncio
async def test_dry_run(tmp_path):
    item = _waiting_item()
    project = _project_with_pr(item)
    ctx = make_context(tmp_path, project, ScriptedAgent([structured(decision="approved", reviewText="ok")]), dry_run=True)

    await run_batch(PRReviewWorkflow(ctx))

    assert project.writes() == []
    ctx.notifier.pr_review_complete.assert_not_called()


@pytest.mark.asyncio
async def test_other_review_states_are_ignored(tmp_path):
    project = FakeProject([
        make_item(status=Status.PR_REVIEW.value, review_status=ReviewStatus.APPROVED.value),
        make_item(number=43, status=Status.PR_REVIEW.value, review_status=ReviewStatus.REQUEST_CHANGES.value),
    ])
    agent = ScriptedAgent()

    await run_batch(PRReviewWorkflow(make_context(tmp_path, project, agent)))

    assert agent.runs == []


@pytest.mark.asyncio
async def test_review_never_pauses_for_clarification(tmp_path):
    """A review that only asks a question fails instead of parking the item where no workflow picks it up."""
    item = _waiting_item()
    project = _project_with_pr(item)
    agent = ScriptedAgent([structured(needsClarification=True, clarificationRequest="## Question\nWhich theme?")])
    ctx = make_context(tmp_path, project, agent)

    results = await run_batch(PRReviewWorkflow(ctx))

    assert results.failed == 1
    assert project.get_item(item.id).review_status != ReviewStatus.WAITING_FOR_CLARIFICATION.value
    assert project.get_pr_comments(77) == []
    assert "needsClarification" not in PR_REVIEW_OUTPUT_FORMAT["schema"]["properties"]
