"""Tool-related data models."""

from .models import ToolDefinition
from .tool_call import ToolCallRequest, ToolCallResult, failure_payload, is_failure_payload

__all__ = ["ToolDefinition", "ToolCallRequest", "ToolCallResult", "failure_payload", "is_failure_payload"]
