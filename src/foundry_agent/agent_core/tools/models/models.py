from typing import Any, Dict, List

from pydantic import BaseModel, ConfigDict, Field


class ToolDefinition(BaseModel):
    """
    Represents a tool the model may call through the MCP gateway.

    Attributes:
        name: The unique name of the tool, as known to the gateway.
        description: What the tool does, shown to the model.
        parameters: JSON schema (``type: object``) describing the tool arguments.
        enabled: Whether the tool is advertised to the conversation runtime.
    """

    model_config = ConfigDict(frozen=True)

    name: str
    description: str
    parameters: Dict[str, Any] = Field(default_factory=lambda: {"type": "object", "properties": {}})
    enabled: bool = True

    @property
    def required(self) -> List[str]:
        """Names of the required parameters."""
        return list(self.parameters.get("required", []))

    def with_enabled(self, enabled: bool) -> "ToolDefinition":
        """Return a copy of this definition with a different ``enabled`` flag."""
        return self.model_copy(update={"enabled": enabled})
