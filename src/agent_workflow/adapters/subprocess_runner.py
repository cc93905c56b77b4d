"""Shared asyncio runner for agent CLIs that stream line-delimited output."""

import asyncio
import logging
import os
import signal
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, List, Optional

from ..utils.process_utils import kill_process_tree

logger = logging.getLogger(__name__)

# Stripped from agent subprocesses so the agent's shell tool cannot read them
_SENSITIVE_ENV_VARS = frozenset({"TELEGRAM_BOT_TOKEN", "AWS_SECRET_ACCESS_KEY"})


@dataclass
class CLIRunOutcome:
    """Exit information for one CLI invocation."""
    returncode: Optional[int]
    timed_out: bool = False
    stderr: str = ""
    stdout_lines: int = 0
    error: Optional[str] = None


@dataclass
class _ReaderState:
    stderr_chunks: List[str] = field(default_factory=list)
    line_count: int = 0


def build_env(extra: Optional[Dict[str, str]] = None) -> Dict[str, str]:
    env = os.environ.copy()
    for key in _SENSITIVE_ENV_VARS:
        env.pop(key, None)
    if extra:
        env.update(extra)
    return env


class StreamingCLIProcess:
    """
    One CLI subprocess with a wall-clock timeout.

    stdout is split into lines and handed to on_line as they arrive. On
    timeout (or cancel()) the whole process group is killed and reaped, so
    no child outlives the call.
    """

    def __init__(
        self,
        cmd: List[str],
        on_line: Callable[[str], None],
        cwd: Optional[Path] = None,
        env: Optional[Dict[str, str]] = None,
    ):
        self.cmd = cmd
        self.on_line = on_line
        self.cwd = cwd
        self.env = env
        self._process: Optional[asyncio.subprocess.Process] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    async def run(self, timeout: float, stdin_text: Optional[str] = None) -> CLIRunOutcome:
        state = _ReaderState()
        try:
            process = await asyncio.create_subprocess_exec(
                *self.cmd,
                stdin=asyncio.subprocess.PIPE if stdin_text is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.cwd) if self.cwd else None,
                env=self.env,
                start_new_session=True,
            )
        except (FileNotFoundError, PermissionError) as e:
            return CLIRunOutcome(returncode=None, error=f"Failed to start {self.cmd[0]}: {e}")

        self._process = process
        try:
            try:
                await asyncio.wait_for(
                    asyncio.gather(
                        self._feed_stdin(process.stdin, stdin_text),
                        self._read_stdout(process.stdout, state),
                        self._read_stderr(process.stderr, state),
                        process.wait(),
                    ),
                    timeout=timeout,
                )
            except asyncio.TimeoutError:
                logger.warning(f"{self.cmd[0]} timed out after {timeout}s, killing process group")
                await self._terminate(process)
                return CLIRunOutcome(
                    returncode=process.returncode,
                    timed_out=True,
                    stderr="".join(state.stderr_chunks),
                    stdout_lines=state.line_count,
                )

            return CLIRunOutcome(
                returncode=process.returncode,
                stderr="".join(state.stderr_chunks),
                stdout_lines=state.line_count,
            )
        except asyncio.CancelledError:
            await self._terminate(process)
            raise
        finally:
            self._process = None

    async def _feed_stdin(self, stream: Optional[asyncio.StreamWriter], text: Optional[str]) -> None:
        """Write the prompt, then close stdin. Runs under the timeout with the readers."""
        if stream is None or text is None:
            return
        try:
            stream.write(text.encode())
            await stream.drain()
            stream.close()
        except (BrokenPipeError, ConnectionResetError):
            # CLI exited before reading the prompt; the exit code is reported instead
            logger.debug(f"{self.cmd[0]} closed stdin before the prompt was written")

    async def _terminate(self, process: asyncio.subprocess.Process) -> None:
        if process.returncode is None:
            kill_process_tree(process.pid, signal.SIGKILL)
            try:
                await asyncio.wait_for(process.wait(), timeout=5)
            except asyncio.TimeoutError:
                logger.error(f"{self.cmd[0]} (PID {process.pid}) did not exit after SIGKILL")

    def kill(self) -> None:
        process = self._process
        if process and process.returncode is None:
            kill_process_tree(process.pid, signal.SIGKILL)

    async def _read_stdout(self, stream: asyncio.StreamReader, state: _ReaderState) -> None:
        buffer = b""
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                if buffer:
                    self._dispatch(buffer, state)
                break
            buffer += chunk
            while b"\n" in buffer:
                line_bytes, buffer = buffer.split(b"\n", 1)
                self._dispatch(line_bytes, state)

    def _dispatch(self, line_bytes: bytes, state: _ReaderState) -> None:
        line = line_bytes.decode(errors="replace")
        if not line.strip():
            return
        state.line_count += 1
        try:
            self.on_line(line)
        except Exception as e:
            # A parser bug must not wedge the reader and leak the process
            logger.debug(f"Stream line handler failed: {e}")

    async def _read_stderr(self, stream: asyncio.StreamReader, state: _ReaderState) -> None:
        while True:
            chunk = await stream.read(4096)
            if not chunk:
                break
            state.stderr_chunks.append(chunk.decode(errors="replace"))
