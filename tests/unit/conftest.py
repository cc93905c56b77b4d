"""Shared fixtures for unit tests."""

import pytest

from agent_workflow.core.config import clear_config_cache
from agent_workflow.utils.detached import flush_detached

from workflow_fixtures import FakeProject, ScriptedAgent, make_context


@pytest.fixture(autouse=True)
def _drain_detached_work():
    """Background log writes must finish inside the test that queued them."""
    yield
    flush_detached()


@pytest.fixture(autouse=True)
def _isolated_config(monkeypatch):
    clear_config_cache()
    for name in (
        "AGENT_DEFAULT_LIBRARY",
        "AGENT_TELEGRAM_CHAT_ID",
        "AGENT_INFO_TELEGRAM_CHAT_ID",
        "TELEGRAM_BOT_TOKEN",
        "GITHUB_TOKEN",
        "AWS_S3_LOG_BUCKET",
    ):
        monkeypatch.delenv(name, raising=False)
    yield
    clear_config_cache()


@pytest.fixture
def project():
    return FakeProject()


@pytest.fixture
def agent():
    return ScriptedAgent()


@pytest.fixture
def ctx(tmp_path, project, agent):
    return make_context(tmp_path, project, agent)


@pytest.fixture
def dry_ctx(tmp_path, project, agent):
    return make_context(tmp_path, project, agent, dry_run=True)
