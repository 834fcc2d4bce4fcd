"""
pwsh-mcp error types.

Custom exceptions with MCP-friendly error codes.
"""

from __future__ import annotations


class PwshMcpError(Exception):
    """Base error for pwsh-mcp."""

    code: str = "PWSH_MCP_ERROR"

    def __init__(self, message: str, *, code: str | None = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class ConfigError(PwshMcpError):
    """Invalid configuration value."""

    code = "CONFIG_INVALID"


class ToolRegistrationError(PwshMcpError):
    """Tool registered twice, or registered after the registry was frozen."""

    code = "TOOL_REGISTRATION_FAILED"


class UnknownToolError(PwshMcpError):
    """No tool with the requested name."""

    code = "UNKNOWN_TOOL"

    def __init__(self, name: str):
        super().__init__(f"Unknown tool: {name}")
        self.name = name


class ToolArgumentError(PwshMcpError):
    """Arguments do not match the tool's declared parameters."""

    code = "INVALID_ARGUMENT"


class ToolCallError(PwshMcpError):
    """Raised inside the MCP call handler to surface an error envelope."""

    code = "TOOL_CALL_FAILED"
