"""
PowerShell tools for pwsh-mcp.

Six tools, each a thin command builder over the executor:

- execute_ps: run a command verbatim
- get_system_info: computer/OS/CPU/memory/PowerShell facts as JSON
- list_modules: available modules as JSON
- get_command_help: help record for a command as JSON
- find_commands: commands matching *search* as JSON
- run_script: run a script file with optional raw parameters
"""

from __future__ import annotations

import logging
import os
import shlex
from typing import Any

from pwsh_mcp.config import InterpreterConfig, PwshMcpConfig
from pwsh_mcp.envelope import ToolResponse
from pwsh_mcp.registry import ParamKind, ToolDefinition, ToolParameter, ToolRegistry
from pwsh_mcp.tools.executor import ArgvCommand, CommandExecutor, ExecutionRequest, ShellCommand
from pwsh_mcp.tools.quoting import double_quote, ps_literal, quote_word

logger = logging.getLogger("pwsh-mcp.tools")

NO_COMMANDS_FOUND = "No commands found matching the search term."
SCRIPT_NO_OUTPUT = "Script executed successfully with no output."

# Statements end with ';' so the scripts survive line folding on cmd.exe.
SYSTEM_INFO_SCRIPT = """
$ComputerInfo = Get-ComputerInfo;
$PSVersion = $PSVersionTable;
$Output = [PSCustomObject]@{
  ComputerName = $ComputerInfo.CsName;
  OSName = $ComputerInfo.WindowsProductName;
  OSVersion = $ComputerInfo.OsVersion;
  OSBuild = $ComputerInfo.OsBuildNumber;
  ProcessorName = $ComputerInfo.CsProcessors.Name;
  TotalMemory = "$([math]::Round($ComputerInfo.CsTotalPhysicalMemory / 1GB, 2)) GB";
  PSVersion = "$($PSVersion.PSVersion)";
  PSEdition = "$($PSVersion.PSEdition)";
  PSBuildVersion = "$($PSVersion.BuildVersion)";
  CLRVersion = "$($PSVersion.CLRVersion)"
};
ConvertTo-Json -InputObject $Output -Depth 3
"""

LIST_MODULES_SCRIPT = """
Get-Module -ListAvailable |
Select-Object Name, Version, ModuleType, Path |
Sort-Object Name |
ConvertTo-Json
"""

COMMAND_HELP_SCRIPT = """
$Help = Get-Help -Name {name} -Full;
$Output = [PSCustomObject]@{{
  Name = $Help.Name;
  Synopsis = $Help.Synopsis;
  Syntax = $Help.Syntax | Out-String;
  Description = $Help.Description | Out-String;
  Parameters = $Help.Parameters.Parameter | ForEach-Object {{
    [PSCustomObject]@{{
      Name = $_.Name;
      Type = $_.Type.Name;
      Required = $_.Required;
      Description = $_.Description | Out-String
    }}
  }};
  Examples = $Help.Examples.Example | ForEach-Object {{
    [PSCustomObject]@{{
      Title = $_.Title;
      Code = $_.Code;
      Remarks = $_.Remarks | Out-String
    }}
  }}
}};
ConvertTo-Json -InputObject $Output -Depth 5
"""

FIND_COMMANDS_SCRIPT = """
Get-Command -Name {pattern} -ErrorAction SilentlyContinue |
Select-Object Name, CommandType, Version, Source |
Sort-Object Name |
ConvertTo-Json
"""


def command_help_script(command: str) -> str:
    return COMMAND_HELP_SCRIPT.format(name=ps_literal(command))


def find_commands_script(search: str) -> str:
    return FIND_COMMANDS_SCRIPT.format(pattern=ps_literal(f"*{search}*"))


class PowerShellTools:
    """Builds interpreter invocations and turns their outcomes into responses."""

    def __init__(self, interpreter: InterpreterConfig, executor: CommandExecutor):
        self.interpreter = interpreter
        self.executor = executor
        self.dialect = interpreter.resolved_dialect()

    # -- invocation builders -------------------------------------------------

    def _shell_prefix(self) -> list[str]:
        return [
            quote_word(word, self.dialect)
            for word in (self.interpreter.executable, *self.interpreter.extra_args)
        ]

    def command_request(self, script: str) -> ExecutionRequest:
        """Invocation running script text through -Command."""
        if self.interpreter.invocation == "argv":
            return ArgvCommand(
                self.interpreter.executable,
                (*self.interpreter.extra_args, "-Command", script),
            )
        parts = [*self._shell_prefix(), "-Command", double_quote(script, self.dialect)]
        return ShellCommand(" ".join(parts))

    def file_request(self, script_path: str, parameters: str | None = None) -> ExecutionRequest:
        """Invocation running a script file through -File, parameters appended raw."""
        if self.interpreter.invocation == "argv":
            extra = shlex.split(parameters, posix=os.name != "nt") if parameters else []
            return ArgvCommand(
                self.interpreter.executable,
                (*self.interpreter.extra_args, "-File", script_path, *extra),
            )
        command_line = " ".join(
            [*self._shell_prefix(), "-File", double_quote(script_path, self.dialect)]
        )
        if parameters:
            command_line = f"{command_line} {parameters}"
        return ShellCommand(command_line)

    # -- handlers --------------------------------------------------------------

    def execute_ps(self, args: dict[str, Any]) -> ToolResponse:
        outcome = self.executor.run(self.command_request(args["command"]))
        return ToolResponse.from_outcome(outcome, "Error executing PowerShell command: ")

    def get_system_info(self, args: dict[str, Any]) -> ToolResponse:
        outcome = self.executor.run(self.command_request(SYSTEM_INFO_SCRIPT))
        return ToolResponse.from_outcome(outcome, "Error retrieving system information: ")

    def list_modules(self, args: dict[str, Any]) -> ToolResponse:
        outcome = self.executor.run(self.command_request(LIST_MODULES_SCRIPT))
        return ToolResponse.from_outcome(outcome, "Error listing PowerShell modules: ")

    def get_command_help(self, args: dict[str, Any]) -> ToolResponse:
        outcome = self.executor.run(self.command_request(command_help_script(args["command"])))
        return ToolResponse.from_outcome(outcome, "Error retrieving help: ")

    def find_commands(self, args: dict[str, Any]) -> ToolResponse:
        outcome = self.executor.run(self.command_request(find_commands_script(args["search"])))
        return ToolResponse.from_outcome(
            outcome, "Error finding commands: ", empty_text=NO_COMMANDS_FOUND
        )

    def run_script(self, args: dict[str, Any]) -> ToolResponse:
        try:
            request = self.file_request(args["scriptPath"], args.get("parameters"))
        except ValueError as e:
            # shlex rejects unbalanced quotes in argv mode
            return ToolResponse.error(f"Error running script: Invalid parameters: {e}")
        outcome = self.executor.run(request)
        return ToolResponse.from_outcome(
            outcome, "Error running script: ", empty_text=SCRIPT_NO_OUTPUT
        )

    def definitions(self) -> list[ToolDefinition]:
        required = ParamKind.REQUIRED_STRING
        return [
            ToolDefinition(
                name="execute_ps",
                description="Execute a PowerShell command and return its output.",
                parameters=(
                    ToolParameter("command", required, "PowerShell command to execute"),
                ),
                handler=self.execute_ps,
            ),
            ToolDefinition(
                name="get_system_info",
                description="Get computer, OS, processor, memory and PowerShell version information as JSON.",
                parameters=(),
                handler=self.get_system_info,
            ),
            ToolDefinition(
                name="list_modules",
                description="List available PowerShell modules (name, version, type, path) as JSON.",
                parameters=(),
                handler=self.list_modules,
            ),
            ToolDefinition(
                name="get_command_help",
                description="Get help (synopsis, syntax, parameters, examples) for a PowerShell command as JSON.",
                parameters=(
                    ToolParameter("command", required, "PowerShell command to get help for"),
                ),
                handler=self.get_command_help,
            ),
            ToolDefinition(
                name="find_commands",
                description="Find PowerShell commands whose name contains the search term.",
                parameters=(
                    ToolParameter("search", required, "Search term for PowerShell commands"),
                ),
                handler=self.find_commands,
            ),
            ToolDefinition(
                name="run_script",
                description="Run a PowerShell script file with optional parameters.",
                parameters=(
                    ToolParameter("scriptPath", required, "Path to the PowerShell script file"),
                    ToolParameter(
                        "parameters",
                        ParamKind.OPTIONAL_STRING,
                        "Optional parameters to pass to the script",
                    ),
                ),
                handler=self.run_script,
            ),
        ]


def build_registry(
    config: PwshMcpConfig, executor: CommandExecutor | None = None
) -> ToolRegistry:
    """Build the frozen registry of the six PowerShell tools."""
    tools = PowerShellTools(config.interpreter, executor or CommandExecutor.from_config(config))
    registry = ToolRegistry()
    for definition in tools.definitions():
        registry.register(definition)
    logger.info(f"{len(registry)} tools registered")
    return registry.freeze()
