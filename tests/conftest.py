"""Pytest fixtures for pwsh-mcp."""

from __future__ import annotations

import os
from pathlib import Path
import stat
import sys
import textwrap

import pytest

from pwsh_mcp.config import InterpreterConfig, PwshMcpConfig
from helpers import RecordingExecutor

# Stand-in for PowerShell: echoes -Command text, reads -File scripts.
FAKE_PWSH = textwrap.dedent(
    """\
    import json
    import sys
    import time

    args = sys.argv[1:]
    if "-Command" in args:
        text = args[args.index("-Command") + 1]
        if text.startswith("Write-Error "):
            sys.stderr.write(text[len("Write-Error "):])
        elif text.startswith("exit "):
            sys.exit(int(text.split()[1]))
        elif text.startswith("Start-Sleep "):
            time.sleep(float(text.split()[1]))
        else:
            sys.stdout.write(text)
    elif "-File" in args:
        i = args.index("-File")
        with open(args[i + 1], encoding="utf-8") as f:
            sys.stdout.write(f.read())
        if args[i + 2:]:
            sys.stdout.write(json.dumps(args[i + 2:]))
    else:
        sys.stderr.write("unexpected arguments: %r" % (args,))
        sys.exit(64)
    """
)


@pytest.fixture(autouse=True)
def hermetic_env(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Autouse: each test runs in its own tmp cwd with no PWSH_MCP_* overrides."""
    monkeypatch.chdir(tmp_path)
    for key in list(os.environ):
        if key.startswith("PWSH_MCP_"):
            monkeypatch.delenv(key)
    return tmp_path


@pytest.fixture
def fake_pwsh(tmp_path: Path) -> Path:
    """Executable fake interpreter script."""
    if os.name == "nt":
        pytest.skip("fake interpreter relies on a shebang")
    path = tmp_path / "bin" / "fake-pwsh"
    path.parent.mkdir()
    path.write_text(f"#!{sys.executable}\n{FAKE_PWSH}", encoding="utf-8")
    path.chmod(path.stat().st_mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
    return path


@pytest.fixture
def make_config():
    """Factory for configs with a given interpreter and POSIX quoting."""

    def _make(executable: str | Path = "pwsh", **interpreter) -> PwshMcpConfig:
        interpreter.setdefault("shell_dialect", "posix")
        cfg = PwshMcpConfig(
            interpreter=InterpreterConfig(executable=str(executable), **interpreter)
        )
        cfg.limits.exec_timeout = 30
        return cfg

    return _make


@pytest.fixture
def recorder() -> RecordingExecutor:
    return RecordingExecutor()
