"""Access to the remote MCP gateway and the tools it serves."""

from .client import McpGatewayClient
from .github_tools import GITHUB_TOOLS, github_tool_catalog

__all__ = ["McpGatewayClient", "GITHUB_TOOLS", "github_tool_catalog"]
