"""Per-item agent lock published by atomic directory rename.

A lock directory holds a small JSON metadata file with the owning PID and
acquisition time. A lock is stale when its owner is gone, its metadata is
missing or unreadable, or it is older than the TTL; stale locks are
reclaimed so a crashed run cannot block an item forever.
"""

import json
import logging
import os
import re
import shutil
import time
import uuid
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_TTL_SECONDS = 7200


def _lock_key(item_id: str) -> str:
    # Project item ids are opaque (e.g. "PVTI_lADO..."), keep them path-safe
    return re.sub(r"[^A-Za-z0-9_.-]", "_", item_id)


class AgentLock:
    """
    Mutual exclusion for one workflow item across processes.

    - the lock directory is built aside with its metadata, then renamed into
      place; rename onto a non-empty directory fails, so one contender wins
    - metadata carries PID + acquired_at for stale detection and a token
      identifying this acquisition
    - stale locks are renamed to a tombstone and checked before removal, so a
      lock re-acquired in the meantime survives
    - release() only removes a lock this instance acquired
    """

    METADATA_FILE = "owner.json"

    def __init__(self, lock_dir: Path, item_id: str, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.lock_dir = lock_dir
        self.item_id = item_id
        self.ttl_seconds = ttl_seconds
        self.lock_path = lock_dir / f"{_lock_key(item_id)}.lock"
        self.metadata_file = self.lock_path / self.METADATA_FILE
        self._acquired = False
        self._token: Optional[str] = None

    @property
    def acquired(self) -> bool:
        return self._acquired

    def acquire(self) -> bool:
        """
        Attempt to acquire the lock.

        Returns True if lock acquired, False if another live run holds it.
        """
        if self.lock_path.exists():
            snapshot = self._read_raw(self.lock_path)
            if not self._is_stale_lock(snapshot):
                logger.debug(f"Lock for {self.item_id} is held by another process")
                return False
            logger.warning(f"Reclaiming stale agent lock for item {self.item_id}")
            if not self._reclaim(snapshot):
                return False

        token = uuid.uuid4().hex
        metadata = {"pid": os.getpid(), "acquired_at": time.time(), "item_id": self.item_id, "token": token}
        staging = self.lock_dir / f".{self.lock_path.name}.{token}"
        staging.mkdir(parents=True)
        (staging / self.METADATA_FILE).write_text(json.dumps(metadata))
        try:
            os.rename(staging, self.lock_path)
        except OSError:
            shutil.rmtree(staging, ignore_errors=True)
            logger.debug(f"Lock for {self.item_id} already exists (race condition)")
            return False

        self._token = token
        self._acquired = True
        logger.debug(f"Acquired lock for {self.item_id} (PID: {os.getpid()})")
        return True

    def release(self) -> None:
        """Release the lock if this instance holds it."""
        if not self._acquired:
            return
        metadata = self._parse(self._read_raw(self.lock_path))
        if metadata and metadata.get("token") == self._token:
            self._remove_lock()
        else:
            logger.warning(f"Lock for {self.item_id} was taken over before release, leaving it")
        self._acquired = False
        self._token = None

    def _reclaim(self, snapshot: Optional[str]) -> bool:
        """Move a stale lock out of the way; False if it changed since it was judged stale."""
        tombstone = self.lock_dir / f".{self.lock_path.name}.stale.{uuid.uuid4().hex}"
        try:
            os.rename(self.lock_path, tombstone)
        except FileNotFoundError:
            return True
        except OSError as e:
            logger.warning(f"Failed to move stale lock {self.lock_path}: {e}")
            return False

        if self._read_raw(tombstone) != snapshot:
            # Another run reclaimed and re-acquired between the check and the rename
            try:
                os.rename(tombstone, self.lock_path)
            except OSError as e:
                logger.warning(f"Could not restore lock for {self.item_id}: {e}")
            return False

        shutil.rmtree(tombstone, ignore_errors=True)
        return True

    def _read_raw(self, lock_path: Path) -> Optional[str]:
        try:
            return (lock_path / self.METADATA_FILE).read_text()
        except OSError:
            return None

    @staticmethod
    def _parse(raw: Optional[str]) -> Optional[dict]:
        if raw is None:
            return None
        try:
            metadata = json.loads(raw)
        except ValueError:
            return None
        return metadata if isinstance(metadata, dict) else None

    def _is_stale_lock(self, snapshot: Optional[str]) -> bool:
        """Check if the lock holder recorded in `snapshot` is gone or expired."""
        metadata = self._parse(snapshot)
        if metadata is None:
            # Directory without metadata: give its creator a short grace period
            age = self._lock_age()
            if age is not None and age < 5:
                return False
            logger.warning(f"Lock for {self.item_id} has no readable metadata (stale)")
            return True

        acquired_at = metadata.get("acquired_at")
        if not isinstance(acquired_at, (int, float)):
            logger.warning(f"Lock for {self.item_id} has invalid timestamp (stale)")
            return True
        if time.time() - acquired_at > self.ttl_seconds:
            logger.warning(
                f"Lock for {self.item_id} is older than {self.ttl_seconds}s TTL (stale)"
            )
            return True

        pid = metadata.get("pid")
        if not isinstance(pid, int):
            logger.warning(f"Lock for {self.item_id} has invalid PID (stale)")
            return True
        try:
            os.kill(pid, 0)
            return False
        except ProcessLookupError:
            logger.warning(f"Lock for {self.item_id} held by dead PID {pid} (stale)")
            return True
        except PermissionError:
            # Process exists under another user; assume it is live
            return False

    def _lock_age(self) -> Optional[float]:
        try:
            return time.time() - self.lock_path.stat().st_mtime
        except OSError:
            return None

    def _remove_lock(self) -> None:
        if self.lock_path.exists():
            try:
                shutil.rmtree(self.lock_path)
            except OSError as e:
                logger.warning(f"Failed to remove lock directory {self.lock_path}: {e}")

    def __enter__(self):
        if not self.acquire():
            raise RuntimeError(f"Could not acquire agent lock for item {self.item_id}")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
        return False


class LockManager:
    """Creates AgentLock instances sharing one directory and TTL."""

    def __init__(self, lock_dir: Path, ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.lock_dir = lock_dir
        self.ttl_seconds = ttl_seconds

    def for_item(self, item_id: str) -> AgentLock:
        return AgentLock(self.lock_dir, item_id, ttl_seconds=self.ttl_seconds)
