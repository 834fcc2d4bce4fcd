"""
Command executor bridge for pwsh-mcp.

Runs one execution request as a child process to completion and classifies
the result:

- launch or wait failed (interpreter missing, timeout): failure, the error
  message is the failure's text
- anything written to stderr: failure, the error text is stderr verbatim,
  even when the exit status is 0
- non-zero exit with empty stderr: failure
- otherwise: success, stdout verbatim

One process per call, no reuse, no retries. Output is read in chunks while
the child runs, so a capped stream never holds more than the cap in memory.
"""

from __future__ import annotations

import codecs
from dataclasses import dataclass
import logging
from pathlib import Path
import shlex
import subprocess
import threading
import time
from typing import IO, TYPE_CHECKING, Union

if TYPE_CHECKING:
    from pwsh_mcp.config import PwshMcpConfig

logger = logging.getLogger("pwsh-mcp.executor")

CHUNK_SIZE = 64 * 1024
# How long to wait for the pipes after killing a timed-out child
KILL_GRACE_SECONDS = 1.0


@dataclass(frozen=True)
class ShellCommand:
    """A command line handed to the system shell as-is."""

    command_line: str

    def describe(self) -> str:
        return self.command_line


@dataclass(frozen=True)
class ArgvCommand:
    """A direct executable + argument vector, no shell involved."""

    executable: str
    arguments: tuple[str, ...] = ()

    def argv(self) -> list[str]:
        return [self.executable, *self.arguments]

    def describe(self) -> str:
        return shlex.join(self.argv())


ExecutionRequest = Union[ShellCommand, ArgvCommand]


@dataclass
class ExecutionOutcome:
    """Result from running one execution request."""

    succeeded: bool
    stdout: str
    stderr: str
    exit_failure: bool
    exit_code: int
    error: str | None = None
    timed_out: bool = False

    @property
    def error_text(self) -> str:
        """Text reported to the caller on failure."""
        if self.error is not None:
            return self.error
        return self.stderr


def classify(
    request: ExecutionRequest, stdout: str, stderr: str, exit_code: int
) -> ExecutionOutcome:
    """Turn a completed process's output into an outcome."""
    exit_failure = exit_code != 0
    if stderr:
        return ExecutionOutcome(
            succeeded=False,
            stdout=stdout,
            stderr=stderr,
            exit_failure=exit_failure,
            exit_code=exit_code,
        )
    if exit_failure:
        return ExecutionOutcome(
            succeeded=False,
            stdout=stdout,
            stderr=stderr,
            exit_failure=True,
            exit_code=exit_code,
            error=f"Command failed: {request.describe()}",
        )
    return ExecutionOutcome(
        succeeded=True,
        stdout=stdout,
        stderr=stderr,
        exit_failure=False,
        exit_code=exit_code,
    )


class _StreamCapture:
    """Drains one pipe to EOF on a daemon thread, keeping at most `limit` bytes."""

    def __init__(self, pipe: IO[bytes], limit: int | None):
        self.pipe = pipe
        self.limit = limit
        self.data = bytearray()
        self.total = 0
        self.thread = threading.Thread(target=self._read, daemon=True)
        self.thread.start()

    def _read(self) -> None:
        with self.pipe:
            for chunk in iter(lambda: self.pipe.read(CHUNK_SIZE), b""):
                self.total += len(chunk)
                if self.limit is None:
                    self.data += chunk
                elif len(self.data) < self.limit:
                    self.data += chunk[: self.limit - len(self.data)]

    @property
    def truncated(self) -> bool:
        return self.limit is not None and self.total > self.limit

    def join(self, timeout: float | None = None) -> bool:
        """Wait for EOF. Returns False if the pipe is still open."""
        self.thread.join(timeout)
        return not self.thread.is_alive()


class CommandExecutor:
    """
    Runs execution requests with optional time and output bounds.

    Args:
        timeout: Max execution time in seconds (None or 0 = unbounded)
        max_output_bytes: Per-stream capture cap in bytes (None or 0 = unbounded)
        encoding: Text encoding of the child's output streams
        cwd: Working directory for the child (None = inherit)
        env: Environment for the child (None = inherit)
    """

    def __init__(
        self,
        timeout: int | None = None,
        max_output_bytes: int | None = None,
        encoding: str = "utf-8",
        cwd: Path | str | None = None,
        env: dict[str, str] | None = None,
    ):
        self.timeout = timeout or None
        self.max_output_bytes = max_output_bytes or None
        self.encoding = encoding
        self.cwd = str(cwd) if cwd is not None else None
        self.env = env

    @classmethod
    def from_config(cls, config: PwshMcpConfig) -> CommandExecutor:
        return cls(
            timeout=config.limits.exec_timeout,
            max_output_bytes=config.limits.max_output_bytes,
            encoding=config.interpreter.encoding,
            cwd=config.interpreter.working_dir,
        )

    def _decode(self, capture: _StreamCapture, stream: str) -> str:
        if capture.truncated:
            logger.warning(
                f"Truncated {stream} from {capture.total} to {self.max_output_bytes} bytes"
            )
        decoder = codecs.getincrementaldecoder(self.encoding)(errors="replace")
        # A multi-byte character cut by the cap is dropped, not replaced
        return decoder.decode(bytes(capture.data), final=not capture.truncated)

    def _timed_out(
        self, proc: subprocess.Popen, request: ExecutionRequest, captures: list[_StreamCapture]
    ) -> ExecutionOutcome:
        proc.kill()
        proc.wait()
        for capture in captures:
            capture.join(KILL_GRACE_SECONDS)
        logger.warning(f"Command timed out after {self.timeout}s: {request.describe()}")
        return ExecutionOutcome(
            succeeded=False,
            stdout="",
            stderr="",
            exit_failure=True,
            exit_code=-1,
            error=f"Command timed out after {self.timeout}s",
            timed_out=True,
        )

    def run(self, request: ExecutionRequest) -> ExecutionOutcome:
        """Run the request to completion and classify the result."""
        logger.debug(f"Running: {request.describe()}")

        if isinstance(request, ShellCommand):
            args: str | list[str] = request.command_line
            shell = True
        else:
            args = request.argv()
            shell = False

        deadline = time.monotonic() + self.timeout if self.timeout else None
        try:
            proc = subprocess.Popen(
                args,
                shell=shell,
                cwd=self.cwd,
                env=self.env,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
            )
        except (OSError, ValueError, subprocess.SubprocessError) as e:
            logger.warning(f"Failed to launch {request.describe()}: {e}")
            return ExecutionOutcome(
                succeeded=False,
                stdout="",
                stderr="",
                exit_failure=True,
                exit_code=-1,
                error=str(e),
            )

        stdout = _StreamCapture(proc.stdout, self.max_output_bytes)
        stderr = _StreamCapture(proc.stderr, self.max_output_bytes)
        captures = [stdout, stderr]

        try:
            exit_code = proc.wait(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            return self._timed_out(proc, request, captures)

        for capture in captures:
            remaining = None if deadline is None else max(0.0, deadline - time.monotonic())
            if not capture.join(remaining):
                # The child exited but something it started still holds the pipe
                return self._timed_out(proc, request, captures)

        return classify(
            request,
            stdout=self._decode(stdout, "stdout"),
            stderr=self._decode(stderr, "stderr"),
            exit_code=exit_code,
        )
