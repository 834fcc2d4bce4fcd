"""pwsh-mcp configuration loader - reads from pwsh-mcp.toml with ENV overrides."""  # noqa: I001

from __future__ import annotations

import codecs
from dataclasses import dataclass, field
import os
from pathlib import Path
import tomllib
from typing import Any, cast

from pwsh_mcp.errors import ConfigError

LOG_LEVELS = ("debug", "info", "warning", "error")


def _default_executable() -> str:
    return "powershell" if os.name == "nt" else "pwsh"


@dataclass
class ServerConfig:
    """Server identity and transport settings."""

    name: str = "PowerShell MCP Server"
    version: str = "1.0.0"
    transport: str = "stdio"
    log_level: str = "info"

    def validate(self) -> None:
        if self.transport != "stdio":
            raise ConfigError(f"Invalid transport: {self.transport}")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level: {self.log_level}")


@dataclass
class InterpreterConfig:
    """How the PowerShell interpreter is launched."""

    executable: str = field(default_factory=_default_executable)
    extra_args: list[str] = field(default_factory=list)
    invocation: str = "shell"  # "shell" | "argv"
    shell_dialect: str = "auto"  # "auto" | "posix" | "cmd"
    encoding: str = "utf-8"
    working_dir: str | None = None

    def validate(self) -> None:
        if not self.executable or not self.executable.strip():
            raise ConfigError("executable must not be empty")
        if self.invocation not in ("shell", "argv"):
            raise ConfigError(f"Invalid invocation: {self.invocation}")
        if self.shell_dialect not in ("auto", "posix", "cmd"):
            raise ConfigError(f"Invalid shell_dialect: {self.shell_dialect}")
        if self.working_dir is not None and not Path(self.working_dir).is_dir():
            raise ConfigError(f"working_dir does not exist: {self.working_dir}")
        try:
            codecs.lookup(self.encoding)
        except LookupError:
            raise ConfigError(f"Unknown encoding: {self.encoding}") from None

    def resolved_dialect(self) -> str:
        if self.shell_dialect != "auto":
            return self.shell_dialect
        return "cmd" if os.name == "nt" else "posix"


@dataclass
class LimitsConfig:
    """Per-call execution bounds. 0 disables a bound."""

    exec_timeout: int = 300
    max_output_bytes: int = 10 * 1024 * 1024

    def validate(self) -> None:
        if self.exec_timeout < 0:
            raise ConfigError("exec_timeout must not be negative")
        if self.max_output_bytes < 0:
            raise ConfigError("max_output_bytes must not be negative")


@dataclass
class ObservabilityConfig:
    """Logging and metrics settings."""

    enabled: bool = False
    log_format: str = "text"  # "json" | "text"
    log_level: str = "info"
    include_correlation_id: bool = True

    def validate(self) -> None:
        if self.log_format not in ("json", "text"):
            raise ConfigError(f"Invalid log_format: {self.log_format}")
        if self.log_level.lower() not in LOG_LEVELS:
            raise ConfigError(f"Invalid log_level: {self.log_level}")


@dataclass
class PwshMcpConfig:
    """Root configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    interpreter: InterpreterConfig = field(default_factory=InterpreterConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    def validate(self) -> None:
        self.server.validate()
        self.interpreter.validate()
        self.limits.validate()
        self.observability.validate()


def _truthy(value: str) -> bool:
    return value.lower() in ("1", "true", "yes")


def _int_env(name: str, current: int) -> int:
    raw = os.getenv(name)
    if not raw:
        return current
    try:
        return int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}") from None


def _apply_env_overrides(cfg: PwshMcpConfig) -> PwshMcpConfig:
    """Apply environment variable overrides. ENV beats TOML."""
    if os.getenv("PWSH_MCP_LOG_LEVEL"):
        cfg.server.log_level = os.getenv("PWSH_MCP_LOG_LEVEL", cfg.server.log_level)

    if os.getenv("PWSH_MCP_EXECUTABLE"):
        cfg.interpreter.executable = os.getenv("PWSH_MCP_EXECUTABLE", cfg.interpreter.executable)
    if os.getenv("PWSH_MCP_INVOCATION"):
        cfg.interpreter.invocation = os.getenv("PWSH_MCP_INVOCATION", cfg.interpreter.invocation)

    cfg.limits.exec_timeout = _int_env("PWSH_MCP_EXEC_TIMEOUT", cfg.limits.exec_timeout)
    cfg.limits.max_output_bytes = _int_env(
        "PWSH_MCP_MAX_OUTPUT_BYTES", cfg.limits.max_output_bytes
    )

    if os.getenv("PWSH_MCP_OBS_ENABLED"):
        cfg.observability.enabled = _truthy(os.getenv("PWSH_MCP_OBS_ENABLED", ""))
    if os.getenv("PWSH_MCP_OBS_LOG_FORMAT"):
        cfg.observability.log_format = os.getenv(
            "PWSH_MCP_OBS_LOG_FORMAT", cfg.observability.log_format
        )

    return cfg


def _section(data: dict[str, Any], key: str) -> dict[str, Any]:
    value = data.get(key, {})
    if not isinstance(value, dict):
        raise ConfigError(f"[pwsh_mcp.{key}] must be a table")
    return value


_TYPE_NAMES = {str: "a string", int: "an integer", bool: "a boolean", list: "an array"}


def _value(table: dict[str, Any], section: str, key: str, current: Any, kind: type) -> Any:
    """Return table[key] if it has the expected TOML type, current if absent."""
    if key not in table:
        return current
    value = table[key]
    # bool is an int subclass
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise ConfigError(
            f"[pwsh_mcp.{section}] {key} must be {_TYPE_NAMES[kind]}, got {value!r}"
        )
    return value


def load_config(config_path: str | Path | None = None) -> PwshMcpConfig:
    """
    Load config from pwsh-mcp.toml with ENV overrides.

    Precedence: ENV → TOML → defaults

    Args:
        config_path: Path to the TOML file. If None, searches:
            1. PWSH_MCP_CONFIG env var
            2. ./pwsh-mcp.toml

    Returns:
        PwshMcpConfig dataclass with merged settings.

    Raises:
        ConfigError: If the file is unreadable TOML or a value is invalid.
    """
    if config_path is None:
        if os.getenv("PWSH_MCP_CONFIG"):
            config_path = Path(cast(str, os.getenv("PWSH_MCP_CONFIG")))
        else:
            config_path = Path("pwsh-mcp.toml")
    else:
        config_path = Path(config_path)

    cfg = PwshMcpConfig()

    if config_path.exists():
        try:
            with open(config_path, "rb") as f:
                data = tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigError(f"Invalid TOML in {config_path}: {e}") from None

        root = _section(data, "pwsh_mcp")

        srv = _section(root, "server")
        cfg.server.name = _value(srv, "server", "name", cfg.server.name, str)
        cfg.server.version = _value(srv, "server", "version", cfg.server.version, str)
        cfg.server.transport = _value(srv, "server", "transport", cfg.server.transport, str)
        cfg.server.log_level = _value(srv, "server", "log_level", cfg.server.log_level, str)

        interp = _section(root, "interpreter")
        cfg.interpreter.executable = _value(
            interp, "interpreter", "executable", cfg.interpreter.executable, str
        )
        extra_args = _value(interp, "interpreter", "extra_args", cfg.interpreter.extra_args, list)
        if not all(isinstance(arg, str) for arg in extra_args):
            raise ConfigError(
                f"[pwsh_mcp.interpreter] extra_args must be strings, got {extra_args!r}"
            )
        cfg.interpreter.extra_args = list(extra_args)
        cfg.interpreter.invocation = _value(
            interp, "interpreter", "invocation", cfg.interpreter.invocation, str
        )
        cfg.interpreter.shell_dialect = _value(
            interp, "interpreter", "shell_dialect", cfg.interpreter.shell_dialect, str
        )
        cfg.interpreter.encoding = _value(
            interp, "interpreter", "encoding", cfg.interpreter.encoding, str
        )
        cfg.interpreter.working_dir = _value(
            interp, "interpreter", "working_dir", cfg.interpreter.working_dir, str
        )

        limits = _section(root, "limits")
        cfg.limits.exec_timeout = _value(
            limits, "limits", "exec_timeout", cfg.limits.exec_timeout, int
        )
        cfg.limits.max_output_bytes = _value(
            limits, "limits", "max_output_bytes", cfg.limits.max_output_bytes, int
        )

        obs = _section(root, "observability")
        cfg.observability.enabled = _value(
            obs, "observability", "enabled", cfg.observability.enabled, bool
        )
        cfg.observability.log_format = _value(
            obs, "observability", "log_format", cfg.observability.log_format, str
        )
        cfg.observability.log_level = _value(
            obs, "observability", "log_level", cfg.observability.log_level, str
        )
        cfg.observability.include_correlation_id = _value(
            obs,
            "observability",
            "include_correlation_id",
            cfg.observability.include_correlation_id,
            bool,
        )

    # Apply ENV overrides (highest precedence)
    cfg = _apply_env_overrides(cfg)

    cfg.validate()

    return cfg
