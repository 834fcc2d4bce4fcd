"""pwsh-mcp tools - executor bridge, quoting, and the PowerShell tool set."""

from pwsh_mcp.tools.executor import (  # noqa: F401
    ArgvCommand,
    CommandExecutor,
    ExecutionOutcome,
    ExecutionRequest,
    ShellCommand,
)
from pwsh_mcp.tools.quoting import double_quote, escape_double_quoted, ps_literal  # noqa: F401
