"""CLI for running and poking at the pwsh-mcp server."""

from __future__ import annotations

from dataclasses import asdict
import json
from pathlib import Path
from typing import Optional

from rich.console import Console
from rich.markup import escape
from rich.table import Table
import typer

from pwsh_mcp.config import PwshMcpConfig, load_config
from pwsh_mcp.errors import ConfigError, ToolArgumentError, UnknownToolError

app = typer.Typer(
    name="pwsh-mcp",
    help="PowerShell MCP Server CLI",
    add_completion=False,
)
console = Console()
err_console = Console(stderr=True)

ConfigOption = typer.Option(None, "--config", "-c", help="Path to pwsh-mcp.toml")


def _load(config_path: Path | None) -> PwshMcpConfig:
    try:
        return load_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]✗[/] Invalid configuration: {escape(str(e))}")
        raise typer.Exit(1) from None


def _parse_args(pairs: list[str]) -> dict[str, str]:
    args: dict[str, str] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep or not key:
            err_console.print(f"[red]✗[/] Expected key=value, got {pair!r}")
            raise typer.Exit(2)
        args[key] = value
    return args


@app.command()
def serve(
    config_path: Optional[Path] = ConfigOption,
    log_level: Optional[str] = typer.Option(None, "--log-level", "-l", help="Override log level"),
) -> None:
    """Run the MCP server on stdio."""
    from pwsh_mcp.server import configure_logging
    from pwsh_mcp.server import serve as run_server

    config = _load(config_path)
    if log_level:
        config.server.log_level = log_level
        config.observability.log_level = log_level
    configure_logging(config)
    raise typer.Exit(run_server(config))


@app.command()
def tools(config_path: Optional[Path] = ConfigOption) -> None:
    """List the registered tools and their parameters."""
    from pwsh_mcp.tools.powershell import build_registry

    registry = build_registry(_load(config_path))

    table = Table(title="PowerShell MCP tools")
    table.add_column("Tool", style="bold", no_wrap=True)
    table.add_column("Parameters", no_wrap=True)
    table.add_column("Description")
    for definition in registry:
        params = ", ".join(
            p.name if p.required else f"{p.name}?" for p in definition.parameters
        )
        table.add_row(definition.name, params or "-", definition.description)
    console.print(table)


@app.command()
def call(
    name: str = typer.Argument(..., help="Tool name"),
    arg: list[str] = typer.Option([], "--arg", "-a", help="Tool argument as key=value"),
    config_path: Optional[Path] = ConfigOption,
) -> None:
    """Invoke one tool locally and print its response envelope as JSON."""
    from pwsh_mcp.tools.powershell import build_registry

    registry = build_registry(_load(config_path))
    try:
        arguments = registry.check_arguments(name, _parse_args(arg))
    except (UnknownToolError, ToolArgumentError) as e:
        err_console.print(f"[red]✗[/] {escape(str(e))}")
        raise typer.Exit(2) from None

    response = registry.dispatch(name, arguments)
    console.print_json(json.dumps(response.to_dict()))
    if response.is_error:
        raise typer.Exit(1)


@app.command(name="config")
def show_config(config_path: Optional[Path] = ConfigOption) -> None:
    """Show the effective configuration (TOML + ENV + defaults)."""
    console.print_json(json.dumps(asdict(_load(config_path))))


def main() -> None:
    """Entry point for pwsh-mcp CLI."""
    app()


if __name__ == "__main__":
    main()
