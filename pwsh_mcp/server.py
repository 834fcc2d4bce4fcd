#!/usr/bin/env python3
"""
pwsh-mcp - Model Context Protocol server for PowerShell.

Supports stdio transport for Claude Desktop integration.
Run with: python -m pwsh_mcp.server

Tools:
- execute_ps: Run a PowerShell command
- get_system_info: System facts as JSON
- list_modules: Available modules as JSON
- get_command_help: Help for a command as JSON
- find_commands: Search commands by name
- run_script: Run a script file
"""  # noqa: I001

from __future__ import annotations

import asyncio
import json
import logging
import sys
import time
from typing import Any

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from pwsh_mcp.config import PwshMcpConfig, load_config
from pwsh_mcp.envelope import ToolResponse
from pwsh_mcp.errors import ConfigError, ToolArgumentError, ToolCallError, UnknownToolError
from pwsh_mcp.observability import TEXT_FORMAT, ObservabilityContext, setup_logging
from pwsh_mcp.registry import ToolRegistry
from pwsh_mcp.tools.powershell import build_registry

# Configure logging to stderr (stdout is the protocol channel)
logging.basicConfig(level=logging.INFO, format=TEXT_FORMAT, stream=sys.stderr)
logger = logging.getLogger("pwsh-mcp")

# Error text longer than this is cut in the call log line
ERROR_LOG_CHARS = 500


class PwshMcpServer:
    """One registry, one executor and one MCP server for the process lifetime."""

    def __init__(self, config: PwshMcpConfig, registry: ToolRegistry | None = None):
        self.config = config
        self.registry = registry or build_registry(config)
        self.server = Server(config.server.name, version=config.server.version)
        self.obs = ObservabilityContext(config.observability)

        self._register_handlers()
        logger.info(
            f"{config.server.name} initialized ({config.server.version}, "
            f"interpreter={config.interpreter.executable}, invocation={config.interpreter.invocation})"
        )

    def _register_handlers(self):
        """Register MCP protocol handlers."""

        @self.server.list_tools()
        async def list_tools() -> list[Tool]:
            logger.debug("list_tools called")
            return self.registry.mcp_tools()

        @self.server.call_tool()
        async def call_tool(name: str, arguments: dict) -> list[TextContent]:
            response = await self.handle_call(name, arguments)
            if response.is_error:
                # The SDK reports exceptions raised here as isError results
                raise ToolCallError(response.text)
            return response.content

    async def handle_call(self, name: str, arguments: dict[str, Any] | None) -> ToolResponse:
        """Check arguments, dispatch off the event loop, and record the call."""
        cid = self.obs.correlation_id()
        start_time = time.time()

        logger.info(f"call_tool: {name}", extra={"correlation_id": cid, "tool": name})

        try:
            args = self.registry.check_arguments(name, arguments)
            response = await asyncio.to_thread(self.registry.dispatch, name, args)
        except (UnknownToolError, ToolArgumentError) as e:
            response = ToolResponse.error(str(e))

        latency_ms = (time.time() - start_time) * 1000
        self.obs.record(
            correlation_id=cid, tool=name, latency_ms=latency_ms, success=not response.is_error
        )
        extra: dict[str, Any] = {
            "correlation_id": cid,
            "tool": name,
            "latency_ms": round(latency_ms, 2),
            "status": "error" if response.is_error else "ok",
        }
        if response.is_error:
            extra["error"] = response.text[:ERROR_LOG_CHARS]
        logger.info(f"call_tool done: {name}", extra=extra)
        return response

    async def run(self):
        """Run the server with stdio transport."""
        logger.info(f"Starting {self.config.server.name} (stdio transport)")
        try:
            async with stdio_server() as (read_stream, write_stream):
                # Always written, whatever the log level
                print(
                    f"{self.config.server.name} started and ready for connections.",
                    file=sys.stderr,
                    flush=True,
                )
                await self.server.run(
                    read_stream,
                    write_stream,
                    self.server.create_initialization_options(),
                )
        finally:
            if self.obs.enabled:
                logger.info(f"Metrics: {json.dumps(self.obs.get_stats())}")


def configure_logging(config: PwshMcpConfig) -> logging.Logger:
    """Apply the configured log level/format to the pwsh-mcp logger."""
    global logger  # noqa: PLW0603
    if config.observability.enabled:
        logger = setup_logging(config.observability, "pwsh-mcp")
    else:
        log_level = getattr(logging, config.server.log_level.upper(), logging.INFO)
        logging.getLogger().setLevel(log_level)
        logger.setLevel(log_level)
    return logger


def serve(config: PwshMcpConfig) -> int:
    """Run the stdio server until the client disconnects. Returns an exit code."""
    try:
        server = PwshMcpServer(config)
        asyncio.run(server.run())
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
    except Exception:
        logger.exception(f"Failed to start {config.server.name}")
        return 1
    return 0


def main():
    """Entry point for the pwsh-mcp stdio server."""
    import argparse

    parser = argparse.ArgumentParser(description="PowerShell MCP Server")
    parser.add_argument(
        "--config",
        "-c",
        help="Path to pwsh-mcp.toml config file",
        default=None,
    )
    parser.add_argument(
        "--log-level",
        "-l",
        choices=["debug", "info", "warning", "error"],
        default=None,
        help="Override log level",
    )
    args = parser.parse_args()

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error(f"Invalid configuration: {e}")
        sys.exit(1)

    if args.log_level:
        config.server.log_level = args.log_level
        config.observability.log_level = args.log_level

    configure_logging(config)
    sys.exit(serve(config))


if __name__ == "__main__":
    main()
