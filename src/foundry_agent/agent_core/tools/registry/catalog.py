"""Immutable catalog of the tools advertised to the conversation runtime."""

from typing import Any, Dict, Iterable, Iterator, List, Optional

from mcp.types import ListToolsResult, Tool as MCPTool

from ..models import ToolDefinition
from ..schema import SchemaValidator
from ...exceptions import ToolNotFoundError, ToolRegistrationError
from ...logger import get_logger

logger = get_logger(__name__)


class ToolCatalog:
    """
    A read-only registry of the tools the model may call.

    The catalog is built once at startup and shared by every orchestrator. It is
    used both to advertise tools when a transient agent is created and to look up
    tool names when a run requests a call. Order is insertion order.
    """

    def __init__(self, tools: Iterable[ToolDefinition] = ()) -> None:
        """Initialize the catalog.

        Args:
            tools: Tool definitions, in the order they should be advertised.

        Raises:
            ToolRegistrationError: If two tools share a name.
            ToolValidationError: If a tool's parameter schema is invalid.
        """
        self._tools: Dict[str, ToolDefinition] = {}
        for tool in tools:
            if tool.name in self._tools:
                msg = f"Tool '{tool.name}' is already registered."
                logger.error(msg)
                raise ToolRegistrationError(msg)
            SchemaValidator.validate_parameters(tool.name, tool.parameters)
            self._tools[tool.name] = tool
        logger.debug("Tool catalog built with %d tool(s).", len(self._tools))

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)

    def __iter__(self) -> Iterator[ToolDefinition]:
        return iter(self._tools.values())

    def list(self) -> List[ToolDefinition]:
        """Return every tool in insertion order."""
        return list(self._tools.values())

    def names(self) -> List[str]:
        """Return every tool name in insertion order."""
        return list(self._tools)

    def enabled(self) -> List[ToolDefinition]:
        """Return the tools that are advertised to the runtime."""
        return [tool for tool in self._tools.values() if tool.enabled]

    def get(self, name: str) -> ToolDefinition:
        """Look up a tool by name.

        Args:
            name: The tool name.

        Returns:
            The tool definition.

        Raises:
            ToolNotFoundError: If the tool is not in the catalog.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise ToolNotFoundError(f"Tool '{name}' not found in the catalog.") from None

    def with_allowed(self, allowed: Optional[Iterable[str]]) -> "ToolCatalog":
        """Return a catalog in which only the allowed tools are enabled.

        Args:
            allowed: Tool names to keep enabled. None or empty keeps the catalog as is.

        Returns:
            A new catalog; this one is left untouched.
        """
        allowed_names = {name.strip() for name in allowed or () if name and name.strip()}
        if not allowed_names:
            return self

        unknown = allowed_names.difference(self._tools)
        if unknown:
            logger.warning("Allowed tool list names unknown tool(s): %s", ", ".join(sorted(unknown)))

        return ToolCatalog(tool.with_enabled(tool.enabled and tool.name in allowed_names) for tool in self._tools.values())

    def disabled(self) -> "ToolCatalog":
        """Return a copy of the catalog with every tool disabled."""
        return ToolCatalog(tool.with_enabled(False) for tool in self._tools.values())

    def to_function_tools(self) -> List[Dict[str, Any]]:
        """Render the enabled tools as function-tool definitions.

        Returns:
            ``[{"type": "function", "function": {"name", "description", "parameters"}}, ...]``
        """
        return [
            {
                "type": "function",
                "function": {
                    "name": tool.name,
                    "description": tool.description,
                    "parameters": SchemaValidator.sanitize_schema(tool.parameters),
                },
            }
            for tool in self.enabled()
        ]

    def discovery_document(self, request_id: int | str = 1) -> Dict[str, Any]:
        """Render the enabled tools as a JSON-RPC 2.0 ``tools/list`` response.

        Args:
            request_id: JSON-RPC id echoed in the response.

        Returns:
            The response as a plain dictionary.
        """
        result = ListToolsResult(
            tools=[
                MCPTool(name=tool.name, description=tool.description, inputSchema=tool.parameters)
                for tool in self.enabled()
            ]
        )
        return {
            "jsonrpc": "2.0",
            "id": request_id,
            "result": result.model_dump(mode="json", by_alias=True, exclude_none=True),
        }
