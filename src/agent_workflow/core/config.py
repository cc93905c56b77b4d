"""Configuration loading and validation."""

import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings

from .models import LibraryId, WorkflowName

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("agent-workflow.yaml")
FALLBACK_LIBRARY = LibraryId.CLAUDE_CODE_SDK

# Env var names for per-workflow library overrides, e.g. AGENT_TECH_DESIGN_LIBRARY
_WORKFLOW_LIBRARY_ENV = {
    workflow: f"AGENT_{workflow.value.replace('-', '_').upper()}_LIBRARY"
    for workflow in WorkflowName
}


class AgentLibraryConfig(BaseModel):
    """Which agent library runs which workflow."""
    default_library: LibraryId = FALLBACK_LIBRARY
    workflow_overrides: Dict[WorkflowName, LibraryId] = Field(default_factory=dict)


class ClaudeCodeConfig(BaseModel):
    """Claude Code CLI settings."""
    executable: str = "claude"
    model: str = "sonnet"
    max_turns: int = 100
    timeout_seconds: int = 600

    @field_validator("timeout_seconds", "max_turns")
    @classmethod
    def validate_positive(cls, v: int) -> int:
        if v <= 0:
            raise ValueError(f"must be positive, got {v}")
        return v


class CursorConfig(BaseModel):
    """Cursor agent CLI settings."""
    executable: str = "cursor-agent"
    model: Optional[str] = None
    timeout_seconds: int = 600


class CodexConfig(BaseModel):
    """OpenAI Codex CLI settings."""
    executable: str = "codex"
    model: Optional[str] = None
    timeout_seconds: int = 600


class GeminiConfig(BaseModel):
    model: str = "gemini-2.5-pro"


class ExecutionLogConfig(BaseModel):
    """Per-issue execution log storage."""
    logs_dir: Path = Field(default=Path("agent-logs"))
    s3_bucket: Optional[str] = None
    s3_prefix: str = "agent-logs"
    s3_region: Optional[str] = None


class TelegramConfig(BaseModel):
    """Telegram notification settings. Chat ids accept the "chatId:threadId" form."""
    enabled: bool = True
    bot_token: Optional[str] = None
    admin_chat_id: Optional[str] = None
    info_chat_id: Optional[str] = None
    max_retries: int = 3
    retry_delay_seconds: float = 3.0
    request_timeout: int = 10


class BudgetConfig(BaseModel):
    """Cumulative per-issue cost thresholds in USD."""
    warning_threshold_usd: float = 5.0
    alert_threshold_usd: float = 10.0

    @model_validator(mode="after")
    def validate_order(self) -> "BudgetConfig":
        if self.alert_threshold_usd < self.warning_threshold_usd:
            raise ValueError("alert_threshold_usd must be >= warning_threshold_usd")
        return self


class GitHubConfig(BaseModel):
    """GitHub repository backing the project board."""
    token: Optional[str] = None
    owner: str = ""
    repo: str = ""
    default_branch: Optional[str] = None
    pr_labels: List[str] = Field(default_factory=lambda: ["agent-pr"])

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


class LockConfig(BaseModel):
    """Per-item agent lock settings."""
    lock_dir: Path = Field(default=Path(".agent-locks"))
    ttl_seconds: int = 7200


class StateConfig(BaseModel):
    state_dir: Path = Field(default=Path(".agent-state"))


class ImplementationConfig(BaseModel):
    """Working-tree rules for the implementation workflow."""
    test_command: Optional[List[str]] = None
    # Paths allowed to be dirty before a run starts
    ignore_dirty_paths: List[str] = Field(default_factory=lambda: ["agent-logs/", "design-docs/"])


class WorkflowSettings(BaseSettings):
    """Main workflow configuration."""
    workspace: Path = Field(default=Path("."))
    agent_library: AgentLibraryConfig = Field(default_factory=AgentLibraryConfig)
    claude: ClaudeCodeConfig = Field(default_factory=ClaudeCodeConfig)
    cursor: CursorConfig = Field(default_factory=CursorConfig)
    codex: CodexConfig = Field(default_factory=CodexConfig)
    gemini: GeminiConfig = Field(default_factory=GeminiConfig)
    execution_log: ExecutionLogConfig = Field(default_factory=ExecutionLogConfig)
    telegram: TelegramConfig = Field(default_factory=TelegramConfig)
    budget: BudgetConfig = Field(default_factory=BudgetConfig)
    github: GitHubConfig = Field(default_factory=GitHubConfig)
    locks: LockConfig = Field(default_factory=LockConfig)
    state: StateConfig = Field(default_factory=StateConfig)
    implementation: ImplementationConfig = Field(default_factory=ImplementationConfig)

    class Config:
        env_prefix = "AGENT_"
        env_file = ".env"
        extra = "allow"

    def resolve_path(self, path: Path) -> Path:
        """Anchor a relative config path at the workspace."""
        return path if path.is_absolute() else self.workspace / path


# Module-level mtime-based config cache: path -> (parsed_config, file_mtime)
_config_cache: Dict[str, tuple] = {}


def _get_cached_or_load(resolved_path: Path, loader):
    """Return cached config if file mtime unchanged, else reload."""
    key = str(resolved_path)
    try:
        current_mtime = resolved_path.stat().st_mtime
    except FileNotFoundError:
        _config_cache.pop(key, None)
        return None

    cached = _config_cache.get(key)
    if cached is not None:
        cached_result, cached_mtime = cached
        if cached_mtime == current_mtime:
            return cached_result

    result = loader(resolved_path)
    _config_cache[key] = (result, current_mtime)
    return result


def _load_config_from_file(config_path: Path) -> Dict[str, Any]:
    """Internal loader returning expanded YAML data (no caching)."""
    with open(config_path) as f:
        data = yaml.safe_load(f) or {}
    return _expand_env_vars(data)


def _apply_env_overrides(data: Dict[str, Any]) -> Dict[str, Any]:
    """Layer the well-known environment variables over YAML data.

    Env always wins so that a scheduled run can be re-routed without
    editing the config file.
    """
    library = dict(data.get("agent_library") or {})
    overrides = dict(library.get("workflow_overrides") or {})

    default_lib = os.environ.get("AGENT_DEFAULT_LIBRARY")
    if default_lib:
        library["default_library"] = default_lib
    for workflow, env_name in _WORKFLOW_LIBRARY_ENV.items():
        value = os.environ.get(env_name)
        if value:
            overrides[workflow.value] = value
    library["workflow_overrides"] = overrides
    data["agent_library"] = library

    telegram = dict(data.get("telegram") or {})
    for key, env_name in (
        ("bot_token", "TELEGRAM_BOT_TOKEN"),
        ("admin_chat_id", "AGENT_TELEGRAM_CHAT_ID"),
        ("info_chat_id", "AGENT_INFO_TELEGRAM_CHAT_ID"),
    ):
        if not telegram.get(key) and os.environ.get(env_name):
            telegram[key] = os.environ[env_name]
    data["telegram"] = telegram

    github = dict(data.get("github") or {})
    if not github.get("token") and os.environ.get("GITHUB_TOKEN"):
        github["token"] = os.environ["GITHUB_TOKEN"]
    data["github"] = github

    log_cfg = dict(data.get("execution_log") or {})
    if not log_cfg.get("s3_bucket") and os.environ.get("AWS_S3_LOG_BUCKET"):
        log_cfg["s3_bucket"] = os.environ["AWS_S3_LOG_BUCKET"]
    data["execution_log"] = log_cfg
    return data


def load_config(
    config_path: Path = DEFAULT_CONFIG_PATH,
    workspace: Optional[Path] = None,
) -> WorkflowSettings:
    """Load workflow configuration from YAML file plus environment.

    Uses mtime-based caching for the YAML part. Raises pydantic's
    ValidationError for invalid values.
    """
    data: Dict[str, Any] = {}
    if config_path.exists():
        cached = _get_cached_or_load(config_path.resolve(), _load_config_from_file)
        data = dict(cached or {})
    else:
        logger.warning(
            f"Config file not found: {config_path}. Using default configuration."
        )

    data = _apply_env_overrides(data)
    if workspace is not None:
        data["workspace"] = workspace
    return WorkflowSettings(**data)


def clear_config_cache() -> None:
    """Clear the module-level config cache. Useful for tests."""
    _config_cache.clear()


def _expand_env_vars(data: Any, _path: str = "") -> Any:
    """Recursively expand ${VAR} references in config data.

    Args:
        data: Config data to process
        _path: Internal tracking for error messages (e.g., "telegram.bot_token")
    """
    if isinstance(data, dict):
        return {k: _expand_env_vars(v, f"{_path}.{k}" if _path else k) for k, v in data.items()}
    elif isinstance(data, list):
        return [_expand_env_vars(item, f"{_path}[{i}]") for i, item in enumerate(data)]
    elif isinstance(data, str) and data.startswith("${") and data.endswith("}"):
        env_var = data[2:-1]
        value = os.environ.get(env_var)
        if value is None:
            logger.warning(
                f"Environment variable '{env_var}' not set (referenced at config path: {_path or 'root'}). "
                f"The literal string '{data}' will be used, which may cause errors."
            )
            return data
        return value
    return data
