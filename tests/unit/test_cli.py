"""Tests for the click command line."""

from unittest.mock import MagicMock

import pytest
from click.testing import CliRunner

from agent_workflow.cli import main as cli_main
from agent_workflow.core.config import WorkflowSettings
from agent_workflow.core.git import GitRepo
from agent_workflow.core.models import ReviewStatus, Status
from agent_workflow.errors import ConfigurationError
from agent_workflow.execution_log import LocalLogBackend
from agent_workflow.workflows import RunOptions, WorkflowContext

from workflow_fixtures import FakeProject, ScriptedAgent, make_context, make_item, structured


@pytest.fixture
def runner():
    return CliRunner()


def _patch_context(monkeypatch, ctx, seen=None):
    def fake_load_context(click_ctx, options):
        if seen is not None:
            seen.append(options)
        ctx.options = options
        return ctx
    monkeypatch.setattr(cli_main, "_load_context", fake_load_context)


def test_help_lists_workflows(runner):
    result = runner.invoke(cli_main.cli, ["--help"])

    assert result.exit_code == 0
    for command in ["product-dev", "product-design", "tech-design", "implement", "pr-review",
                    "bug-investigate", "triage", "workflow-review", "complete-phase"]:
        assert command in result.output


def test_triage_command_runs_batch(runner, monkeypatch, tmp_path):
    project = FakeProject([make_item(number=3, status=Status.BACKLOG.value)])
    ctx = make_context(tmp_path, project, ScriptedAgent([structured(domain="auth")]))
    seen = []
    _patch_context(monkeypatch, ctx, seen)

    result = runner.invoke(cli_main.cli, ["triage", "--limit", "5", "--dry-run"], obj={})

    assert result.exit_code == 0, result.output
    assert seen == [RunOptions(limit=5, dry_run=True)]


def test_implement_flags(runner, monkeypatch, tmp_path):
    # A parked item resolves to nothing to do, so only option parsing and preflight run
    item = make_item(
        number=1, status=Status.IMPLEMENTATION.value, review_status=ReviewStatus.WAITING_FOR_CLARIFICATION.value,
    )
    git = MagicMock(spec=GitRepo)
    git.changed_files.return_value = []
    ctx = make_context(tmp_path, FakeProject([item]), git=git)
    seen = []
    _patch_context(monkeypatch, ctx, seen)

    result = runner.invoke(cli_main.cli, ["implement", "--skip-push", "--skip-local-test", "--id", "PVTI_1"], obj={})

    assert result.exit_code == 0, result.output
    assert seen[0].skip_push and seen[0].skip_local_test and not seen[0].skip_pull
    assert seen[0].item_id == "PVTI_1"
    git.changed_files.assert_called_once()


def test_workflow_error_exits_1(runner, monkeypatch):
    def broken(click_ctx, options):
        raise ConfigurationError("GITHUB_TOKEN is not set")
    monkeypatch.setattr(cli_main, "_load_context", broken)

    result = runner.invoke(cli_main.cli, ["tech-design"], obj={})

    assert result.exit_code == 1
    assert "GITHUB_TOKEN is not set" in result.output


class TestCompletePhase:
    def test_advances_phase(self, runner, monkeypatch, tmp_path):
        item = make_item(
            status=Status.PR_REVIEW.value, review_status=ReviewStatus.APPROVED.value, implementation_phase="1/2",
        )
        project = FakeProject([item])
        _patch_context(monkeypatch, make_context(tmp_path, project))

        result = runner.invoke(cli_main.cli, ["complete-phase", "--id", item.id, "--pr", "101"], obj={})

        assert result.exit_code == 0, result.output
        assert "2/2" in result.output
        assert project.get_item(item.id).implementation_phase == "2/2"

    def test_unknown_item(self, runner, monkeypatch, tmp_path):
        _patch_context(monkeypatch, make_context(tmp_path, FakeProject()))

        result = runner.invoke(cli_main.cli, ["complete-phase", "--id", "PVTI_missing"], obj={})

        assert result.exit_code == 1
        assert "Item not found" in result.output


def test_context_from_config(tmp_path):
    config = WorkflowSettings(workspace=tmp_path)

    ctx = WorkflowContext.from_config(config, RunOptions(), project=FakeProject())

    assert ctx.git is None
    assert isinstance(ctx.exec_logger.backend, LocalLogBackend)
    assert ctx.exec_logger.backend.logs_dir == tmp_path / "agent-logs"
    assert ctx.store.items_dir == tmp_path / ".agent-state" / "workflow-items"
