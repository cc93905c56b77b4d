"""Storage backends for execution logs.

Both backends expose the same write contract. The local backend writes
synchronously. The S3 backend hands every write to a detached worker and
returns immediately; failures surface as warnings, never as exceptions in
the calling workflow.
"""

import logging
from abc import ABC, abstractmethod
from concurrent.futures import Future
from pathlib import Path
from typing import Optional

from ..core.config import ExecutionLogConfig
from ..utils.detached import submit_detached

logger = logging.getLogger(__name__)


def issue_log_name(issue_number: int) -> str:
    return f"issue-{issue_number}.md"


class LogBackend(ABC):
    """Named text objects: append, overwrite, read and existence check."""

    @abstractmethod
    def append(self, name: str, content: str, header: Optional[str] = None) -> Optional[Future]:
        """Append content. header is written first when the object is new or empty."""
        pass

    @abstractmethod
    def write(self, name: str, content: str) -> Optional[Future]:
        pass

    @abstractmethod
    def read(self, name: str) -> str:
        """Full content, or "" when the object does not exist."""
        pass

    @abstractmethod
    def exists(self, name: str) -> bool:
        pass

    @abstractmethod
    def location(self, name: str) -> str:
        """Human-readable location, for console messages."""
        pass


class LocalLogBackend(LogBackend):
    """Append-only markdown files under a logs directory."""

    def __init__(self, logs_dir: Path):
        self.logs_dir = Path(logs_dir)

    def _path(self, name: str) -> Path:
        return self.logs_dir / name

    def append(self, name: str, content: str, header: Optional[str] = None) -> None:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        path = self._path(name)
        if header and (not path.exists() or path.stat().st_size == 0):
            content = header + content
        with open(path, "a", encoding="utf-8") as f:
            f.write(content)

    def write(self, name: str, content: str) -> None:
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self._path(name).write_text(content, encoding="utf-8")

    def read(self, name: str) -> str:
        path = self._path(name)
        if not path.exists():
            return ""
        return path.read_text(encoding="utf-8")

    def exists(self, name: str) -> bool:
        return self._path(name).exists()

    def location(self, name: str) -> str:
        return str(self._path(name))


class S3LogBackend(LogBackend):
    """
    Logs stored as S3 objects under a key prefix.

    S3 has no append, so an append is a read-modify-write of the object.
    All writes run on the single detached worker, which keeps them in
    submission order.

    log_exists cannot be answered without a round trip, so exists() always
    returns True. The log header is still written exactly once because
    append() checks for an empty object inside the detached write.
    """

    def __init__(
        self,
        bucket: str,
        prefix: str = "agent-logs",
        region: Optional[str] = None,
        client=None,
        fallback: Optional[LocalLogBackend] = None,
    ):
        self.bucket = bucket
        self.prefix = prefix.strip("/")
        self.region = region
        self.fallback = fallback
        self._client = client

    @property
    def client(self):
        if self._client is None:
            import boto3
            self._client = boto3.client("s3", region_name=self.region)
        return self._client

    def _key(self, name: str) -> str:
        return f"{self.prefix}/{name}" if self.prefix else name

    def _get(self, name: str) -> str:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=self._key(name))
        except self.client.exceptions.NoSuchKey:
            return ""
        return response["Body"].read().decode("utf-8")

    def _put(self, name: str, content: str) -> None:
        self.client.put_object(
            Bucket=self.bucket,
            Key=self._key(name),
            Body=content.encode("utf-8"),
            ContentType="text/markdown",
        )

    def _append_now(self, name: str, content: str, header: Optional[str] = None) -> None:
        existing = self._get(name)
        if header and not existing:
            existing = header
        self._put(name, existing + content)

    def _fallback_handler(self, name: str, content: str, header: Optional[str] = None):
        if self.fallback is None:
            return None

        def _write_locally(error: BaseException) -> None:
            logger.warning(f"S3 logging failed, writing to {self.fallback.location(name)} instead")
            self.fallback.append(name, content, header)

        return _write_locally

    def append(self, name: str, content: str, header: Optional[str] = None) -> Future:
        return submit_detached(
            self._append_now, name, content, header,
            description=f"S3 log append to s3://{self.bucket}/{self._key(name)}",
            on_error=self._fallback_handler(name, content, header),
        )

    def write(self, name: str, content: str) -> Future:
        return submit_detached(
            self._put, name, content,
            description=f"S3 log write to s3://{self.bucket}/{self._key(name)}",
        )

    def read(self, name: str) -> str:
        return self._get(name)

    def exists(self, name: str) -> bool:
        return True

    def location(self, name: str) -> str:
        return f"s3://{self.bucket}/{self._key(name)}"


def get_log_backend(config: ExecutionLogConfig, workspace: Path = Path(".")) -> LogBackend:
    """S3 when a bucket is configured, local files otherwise."""
    logs_dir = config.logs_dir if config.logs_dir.is_absolute() else workspace / config.logs_dir
    if config.s3_bucket:
        logger.debug(f"Execution logs go to s3://{config.s3_bucket}/{config.s3_prefix}")
        return S3LogBackend(
            config.s3_bucket, config.s3_prefix, config.s3_region,
            fallback=LocalLogBackend(logs_dir),
        )
    return LocalLogBackend(logs_dir)
