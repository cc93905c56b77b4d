"""Tests for YAML + environment configuration loading."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from agent_workflow.core.config import BudgetConfig, ClaudeCodeConfig, load_config
from agent_workflow.core.models import LibraryId, WorkflowName


def _write_config(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "agent-workflow.yaml"
    path.write_text(text)
    return path


def test_missing_file_gives_defaults(tmp_path):
    config = load_config(tmp_path / "nope.yaml", workspace=tmp_path)

    assert config.workspace == tmp_path
    assert config.agent_library.default_library == LibraryId.CLAUDE_CODE_SDK
    assert config.telegram.enabled is True
    assert config.locks.ttl_seconds == 7200


def test_yaml_values(tmp_path):
    path = _write_config(tmp_path, """
agent_library:
  default_library: cursor
  workflow_overrides:
    tech-design: openai-codex
github:
  owner: acme
  repo: app
telegram:
  admin_chat_id: "-100200:7"
""")

    config = load_config(path)

    assert config.agent_library.default_library == LibraryId.CURSOR
    assert config.agent_library.workflow_overrides == {WorkflowName.TECH_DESIGN: LibraryId.OPENAI_CODEX}
    assert config.github.full_name == "acme/app"
    assert config.telegram.admin_chat_id == "-100200:7"


def test_env_library_overrides_win(tmp_path, monkeypatch):
    path = _write_config(tmp_path, "agent_library:\n  default_library: cursor\n")
    monkeypatch.setenv("AGENT_DEFAULT_LIBRARY", "gemini")
    monkeypatch.setenv("AGENT_PR_REVIEW_LIBRARY", "openai-codex")

    config = load_config(path)

    assert config.agent_library.default_library == LibraryId.GEMINI
    assert config.agent_library.workflow_overrides[WorkflowName.PR_REVIEW] == LibraryId.OPENAI_CODEX


def test_env_fills_missing_secrets_only(tmp_path, monkeypatch):
    path = _write_config(tmp_path, "telegram:\n  admin_chat_id: '-1'\n")
    monkeypatch.setenv("TELEGRAM_BOT_TOKEN", "123:abc")
    monkeypatch.setenv("AGENT_TELEGRAM_CHAT_ID", "-999")
    monkeypatch.setenv("GITHUB_TOKEN", "ghp_x")
    monkeypatch.setenv("AWS_S3_LOG_BUCKET", "logs-bucket")

    config = load_config(path)

    assert config.telegram.bot_token == "123:abc"
    assert config.telegram.admin_chat_id == "-1"
    assert config.github.token == "ghp_x"
    assert config.execution_log.s3_bucket == "logs-bucket"


def test_env_var_references_are_expanded(tmp_path, monkeypatch):
    monkeypatch.setenv("MY_REPO", "widgets")
    path = _write_config(tmp_path, "github:\n  repo: ${MY_REPO}\n  owner: ${UNSET_OWNER_VAR}\n")

    config = load_config(path)

    assert config.github.repo == "widgets"
    assert config.github.owner == "${UNSET_OWNER_VAR}"


def test_unknown_library_is_rejected(tmp_path):
    path = _write_config(tmp_path, "agent_library:\n  default_library: copilot\n")

    with pytest.raises(ValidationError):
        load_config(path)


class TestValidators:
    def test_budget_order(self):
        with pytest.raises(ValidationError, match="alert_threshold_usd"):
            BudgetConfig(warning_threshold_usd=10, alert_threshold_usd=5)
        assert BudgetConfig(warning_threshold_usd=5, alert_threshold_usd=5).alert_threshold_usd == 5

    def test_claude_timeout_positive(self):
        with pytest.raises(ValidationError):
            ClaudeCodeConfig(timeout_seconds=0)

    def test_resolve_path(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml", workspace=tmp_path)
        assert config.resolve_path(Path("agent-logs")) == tmp_path / "agent-logs"
        assert config.resolve_path(Path("/var/log")) == Path("/var/log")
