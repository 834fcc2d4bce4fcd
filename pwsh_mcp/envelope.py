"""Uniform success/error response returned for every tool call."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from mcp.types import TextContent

from pwsh_mcp.tools.executor import ExecutionOutcome


@dataclass
class ToolResponse:
    """One tool call's result: text content plus an error flag."""

    content: list[TextContent] = field(default_factory=list)
    is_error: bool = False

    @classmethod
    def ok(cls, text: str) -> ToolResponse:
        return cls(content=[TextContent(type="text", text=text)])

    @classmethod
    def error(cls, text: str) -> ToolResponse:
        return cls(content=[TextContent(type="text", text=text)], is_error=True)

    @classmethod
    def from_outcome(
        cls,
        outcome: ExecutionOutcome,
        error_prefix: str,
        empty_text: str | None = None,
    ) -> ToolResponse:
        """
        Build the response for an execution outcome.

        Args:
            outcome: Classified result from the executor
            error_prefix: Prepended to stderr / failure text on error
            empty_text: Returned instead of empty stdout on success, if given
        """
        if not outcome.succeeded:
            return cls.error(f"{error_prefix}{outcome.error_text}")
        if not outcome.stdout and empty_text is not None:
            return cls.ok(empty_text)
        return cls.ok(outcome.stdout)

    @property
    def text(self) -> str:
        return "".join(item.text for item in self.content)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "content": [{"type": item.type, "text": item.text} for item in self.content]
        }
        if self.is_error:
            data["isError"] = True
        return data
