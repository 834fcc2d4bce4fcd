"""pwsh-mcp - Model Context Protocol server for PowerShell."""

__version__ = "1.0.0"
