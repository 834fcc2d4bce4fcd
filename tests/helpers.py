"""Shared test doubles for pwsh-mcp tests."""

from __future__ import annotations

import re

from pwsh_mcp.tools.executor import ExecutionOutcome, ExecutionRequest


class RecordingExecutor:
    """Executor double: records requests, replays queued outcomes."""

    def __init__(self, *outcomes: ExecutionOutcome):
        self.requests: list[ExecutionRequest] = []
        self._outcomes = list(outcomes)

    def queue(self, outcome: ExecutionOutcome) -> None:
        self._outcomes.append(outcome)

    def run(self, request: ExecutionRequest) -> ExecutionOutcome:
        self.requests.append(request)
        if self._outcomes:
            return self._outcomes.pop(0)
        return ok_outcome("")


def ok_outcome(stdout: str) -> ExecutionOutcome:
    return ExecutionOutcome(
        succeeded=True, stdout=stdout, stderr="", exit_failure=False, exit_code=0
    )


def stderr_outcome(stderr: str, exit_code: int = 0) -> ExecutionOutcome:
    return ExecutionOutcome(
        succeeded=False, stdout="", stderr=stderr, exit_failure=exit_code != 0, exit_code=exit_code
    )


def launch_failure(message: str) -> ExecutionOutcome:
    return ExecutionOutcome(
        succeeded=False, stdout="", stderr="", exit_failure=True, exit_code=-1, error=message
    )




CMD_OPERATORS = "&|<>"


def through_cmd(line: str) -> str:
    """
    Model cmd.exe's pass over a command line: `%NAME%` expansion, then the
    quote toggle on every `"` and caret removal outside quotes. Fails if an
    operator or variable would be acted on.
    """
    assert not re.search(r"%[^%^]+%", line), f"cmd.exe would expand a variable in {line!r}"
    out: list[str] = []
    quoted = False
    chars = iter(line)
    for ch in chars:
        if ch == '"':
            quoted = not quoted
        elif not quoted and ch == "^":
            ch = next(chars)
        elif not quoted and ch in CMD_OPERATORS:
            raise AssertionError(f"cmd.exe would run {ch!r} as an operator in {line!r}")
        out.append(ch)
    return "".join(out)
