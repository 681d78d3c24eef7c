"""Foundry MCP Agent - tool-call orchestration for hosted agent runs backed by an MCP gateway."""

from .agent_core import (
    FoundrySettings,
    RunOrchestrator,
    ToolCatalog,
    ToolDefinition,
    ToolInvoker,
    ArgumentNormalizer,
    ResponseExtractor,
    TurnResult,
    TurnUpdate,
    get_logger,
    setup_logging,
)
from .mcp_gateway import McpGatewayClient, github_tool_catalog
from .factory import FoundryAgentService

__all__ = [
    "FoundrySettings",
    "RunOrchestrator",
    "ToolCatalog",
    "ToolDefinition",
    "ToolInvoker",
    "ArgumentNormalizer",
    "ResponseExtractor",
    "TurnResult",
    "TurnUpdate",
    "get_logger",
    "setup_logging",
    "McpGatewayClient",
    "github_tool_catalog",
    "FoundryAgentService",
]
