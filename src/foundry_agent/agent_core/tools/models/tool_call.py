"""Data models for tool execution."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, Optional


@dataclass(frozen=True)
class ToolCallRequest:
    """Represents one pending tool call surfaced by the runtime while a run requires action."""

    call_id: str
    name: str
    arguments: Any = None


@dataclass(frozen=True)
class ToolCallResult:
    """Represents the outcome of resolving a tool call, success or failure payload."""

    call_id: str
    name: str
    output: Any
    success: bool = True

    def serialized(self) -> str:
        """Render the output as the JSON text submitted back to the runtime."""
        if isinstance(self.output, str):
            return self.output
        return json.dumps(self.output, ensure_ascii=False, default=str)


def failure_payload(function: str, error: str, how_to_fix: Optional[str] = None) -> dict[str, Any]:
    """Build the structured failure payload the model receives instead of an exception.

    Args:
        function: Name of the tool that failed.
        error: Human readable failure message.
        how_to_fix: Optional guidance, e.g. the setting to change.

    Returns:
        ``{"success": False, "function": ..., "error": ..., "howToFix": ...}``
    """
    payload: dict[str, Any] = {"success": False, "function": function, "error": error}
    if how_to_fix:
        payload["howToFix"] = how_to_fix
    return payload


def is_failure_payload(output: Any) -> bool:
    """Check whether a tool output has the failure payload shape."""
    return isinstance(output, dict) and output.get("success") is False and "error" in output
