"""Tests for the execution log, its backends and the cost summary."""

import json
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from agent_workflow.adapters import AgentRunOptions, AgentUsage
from agent_workflow.core.config import BudgetConfig, ExecutionLogConfig
from agent_workflow.execution_log import (
    REVIEW_TAG,
    ExecutionLogger,
    LocalLogBackend,
    LogContext,
    S3LogBackend,
    escape_code_block,
    get_log_backend,
)
from agent_workflow.execution_log.cost_summary import budget_warnings, format_duration
from agent_workflow.utils.detached import flush_detached


def _ctx(**kwargs):
    kwargs.setdefault("issue_number", 42)
    kwargs.setdefault("workflow", "tech-design")
    kwargs.setdefault("phase", "Technical Design")
    kwargs.setdefault("issue_title", "Add dark mode")
    return LogContext(**kwargs)


@pytest.fixture
def exec_logger(tmp_path):
    return ExecutionLogger(LocalLogBackend(tmp_path / "agent-logs"))


# ---- Log content ----

class TestExecutionLogger:
    def test_issue_header_written_once(self, exec_logger):
        exec_logger.log_execution_start(_ctx())
        exec_logger.log_execution_start(_ctx(workflow="implementation", phase="Implementation"))

        log = exec_logger.read_log(42)
        assert log.count("# Issue #42: Add dark mode") == 1
        assert "## Phase: Technical Design" in log
        assert "## Phase: Implementation" in log

    def test_phase_block_lists_library(self, exec_logger):
        exec_logger.log_execution_start(_ctx(mode="new", library="cursor", model="gpt-5"))

        log = exec_logger.read_log(42)
        assert "**Mode:** new" in log
        assert "**Library:** cursor (gpt-5)" in log

    def test_prompt_fences_are_escaped(self, exec_logger):
        exec_logger.log_prompt(_ctx(), "Use ```python blocks", model="sonnet", tools=["Read"], timeout=600)

        log = exec_logger.read_log(42)
        assert "Use ````python blocks" in log
        assert "**Tools:** Read" in log
        assert "**Timeout:** 600s" in log

    def test_error_tags(self, exec_logger):
        ctx = _ctx()
        exec_logger.log_error(ctx, "rate limited")
        try:
            raise ValueError("bad output")
        except ValueError as e:
            exec_logger.log_error(ctx, e, is_fatal=True)

        log = exec_logger.read_log(42)
        assert "[LOG:ERROR]" in log
        assert "FATAL Error: [LOG:FATAL]" in log
        assert "Stack trace:" in log

    def test_tool_calls_are_redacted_and_counted(self, exec_logger):
        ctx = _ctx()
        exec_logger.log_tool_call(ctx, "t1", "Bash", {"command": "GITHUB_TOKEN=ghp_secret gh pr list"})

        log = exec_logger.read_log(42)
        assert "ghp_secret" not in log
        assert "GITHUB_TOKEN=***" in log
        assert ctx.tool_call_count == 1

    def test_long_tool_result_truncated(self, exec_logger):
        exec_logger.log_tool_result(_ctx(), "t1", "Read", "x" * 6000)
        assert "... (truncated)" in exec_logger.read_log(42)

    def test_attach_routes_callbacks(self, exec_logger):
        ctx = _ctx()
        seen = []
        options = exec_logger.attach(ctx, AgentRunOptions(prompt="p", on_usage=seen.append))

        options.on_tool_call("Read", {"path": "a.py"}, "t1")
        options.on_tool_result("t1", "contents")
        options.on_usage(AgentUsage(input_tokens=100, output_tokens=20, total_cost_usd=0.5))

        log = exec_logger.read_log(42)
        assert "Tool Result: Read (ID: t1)" in log
        assert ctx.total_tokens == 120
        assert ctx.total_cost_usd == 0.5
        assert len(seen) == 1

    def test_execution_end_records_result_and_cost(self, exec_logger, tmp_path):
        ctx = _ctx()
        ctx.total_cost_usd = 1.25

        future = exec_logger.log_execution_end(ctx, success=True)
        assert future.result(timeout=5) == 1.25

        assert "**Status:** ✅ Success" in exec_logger.read_log(42)
        assert ctx.ended
        data = json.loads((tmp_path / "agent-logs" / "cost-summary.json").read_text())
        assert data["issues"]["42"]["phases"][0]["name"] == "Technical Design"
        assert "## Issue #42: Add dark mode" in (tmp_path / "agent-logs" / "cost-summary.md").read_text()

    def test_budget_crossing_written_to_log(self, tmp_path):
        exec_logger = ExecutionLogger(LocalLogBackend(tmp_path), budget=BudgetConfig(warning_threshold_usd=1, alert_threshold_usd=2))
        first = _ctx()
        first.total_cost_usd = 0.8
        exec_logger.log_execution_end(first, success=True).result(timeout=5)
        second = _ctx()
        second.total_cost_usd = 0.5
        exec_logger.log_execution_end(second, success=True).result(timeout=5)

        assert "Budget warning" in exec_logger.read_log(42)
        assert "Budget alert" not in exec_logger.read_log(42)

    def test_append_review(self, exec_logger):
        exec_logger.log_execution_start(_ctx())
        exec_logger.append_review(42, "All good\n")

        log = exec_logger.read_log(42)
        assert f"## Workflow Review {REVIEW_TAG}" in log
        assert log.rstrip().endswith("All good")


def test_escape_code_block():
    assert escape_code_block("a ``` b") == "a ```` b"


def test_format_duration():
    assert format_duration(42.7) == "42s"
    assert format_duration(125) == "2m 5s"


def test_budget_warnings_fire_once():
    budget = BudgetConfig(warning_threshold_usd=5, alert_threshold_usd=10)
    assert len(budget_warnings(4, 11, budget)) == 2
    assert budget_warnings(6, 7, budget) == []


# ---- Backends ----

class NoSuchKey(Exception):
    pass


def _s3_client(existing=None):
    client = MagicMock()
    client.exceptions.NoSuchKey = NoSuchKey
    if existing is None:
        client.get_object.side_effect = NoSuchKey()
    else:
        body = MagicMock()
        body.read.return_value = existing.encode("utf-8")
        client.get_object.return_value = {"Body": body}
    return client


class TestS3Backend:
    def test_append_to_new_object_writes_header(self):
        client = _s3_client()
        backend = S3LogBackend("logs", prefix="agent-logs/", client=client)

        backend.append("issue-42.md", "entry\n", header="# Header\n")
        flush_detached()

        kwargs = client.put_object.call_args.kwargs
        assert kwargs["Bucket"] == "logs"
        assert kwargs["Key"] == "agent-logs/issue-42.md"
        assert kwargs["Body"] == b"# Header\nentry\n"

    def test_append_to_existing_object(self):
        client = _s3_client("old\n")
        backend = S3LogBackend("logs", client=client)

        backend.append("issue-42.md", "new\n", header="# Header\n")
        flush_detached()

        assert client.put_object.call_args.kwargs["Body"] == b"old\nnew\n"

    def test_exists_without_round_trip(self):
        client = _s3_client()
        assert S3LogBackend("logs", client=client).exists("issue-1.md") is True
        client.get_object.assert_not_called()

    def test_failed_write_falls_back_to_local(self, tmp_path):
        client = _s3_client()
        client.put_object.side_effect = RuntimeError("access denied")
        fallback = LocalLogBackend(tmp_path)
        backend = S3LogBackend("logs", client=client, fallback=fallback)

        future = backend.append("issue-42.md", "entry\n", header="# H\n")
        with pytest.raises(RuntimeError):
            future.result(timeout=5)
        flush_detached()

        assert fallback.read("issue-42.md") == "# H\nentry\n"

    def test_location(self):
        assert S3LogBackend("logs", prefix="p").location("issue-1.md") == "s3://logs/p/issue-1.md"


def test_get_log_backend(tmp_path):
    local = get_log_backend(ExecutionLogConfig(), tmp_path)
    assert isinstance(local, LocalLogBackend)
    assert local.logs_dir == tmp_path / "agent-logs"

    remote = get_log_backend(ExecutionLogConfig(s3_bucket="logs"), tmp_path)
    assert isinstance(remote, S3LogBackend)
    assert remote.fallback.logs_dir == tmp_path / "agent-logs"


def test_local_backend_read_missing(tmp_path):
    backend = LocalLogBackend(tmp_path / "none")
    assert backend.read("issue-1.md") == ""
    assert not backend.exists("issue-1.md")
    assert backend.location("issue-1.md") == str(Path(tmp_path / "none" / "issue-1.md"))
