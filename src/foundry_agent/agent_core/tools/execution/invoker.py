"""Dispatch of normalized tool calls to the MCP gateway."""

from __future__ import annotations

from typing import Any, Optional

from .gateway import ToolGateway
from ..models import failure_payload
from ..registry import ToolCatalog
from ...exceptions import GatewayError, MissingCredentialError
from ...logger import get_logger

logger = get_logger(__name__)

FALLBACK_CREDENTIAL_KEY = "GITHUB_COPILOT_MCP_TOKEN"


def missing_credential_error(credential_key: str) -> str:
    """The stable error message returned when the gateway credential is absent."""
    return f"Upstream credential missing: {credential_key} is not configured."


def missing_credential_fix(credential_key: str) -> str:
    """Guidance returned alongside ``missing_credential_error``."""
    return (
        f"Set the {credential_key} environment variable (or {FALLBACK_CREDENTIAL_KEY}) to a GitHub token "
        "with access to the MCP gateway, then restart the application."
    )


class ToolInvoker:
    """Executes tool calls and folds every expected failure into a result payload.

    The runtime needs exactly one output per pending call, whatever happened, so
    an unknown tool, a missing credential, an HTTP error or a timeout becomes a
    ``{"success": False, ...}`` payload that the model reads and reacts to.
    """

    def __init__(self, *, catalog: ToolCatalog, gateway: ToolGateway) -> None:
        """Initialize the invoker.

        Args:
            catalog: Catalog used to reject unknown tool names.
            gateway: Transport that executes tools upstream.
        """
        self._catalog = catalog
        self._gateway = gateway

    async def invoke(self, tool_name: str, arguments: Any, *, call_id: Optional[str] = None) -> Any:
        """Invoke a tool with already normalized arguments.

        Args:
            tool_name: Name of the tool requested by the model.
            arguments: Normalized JSON arguments.
            call_id: Runtime call identifier, only used for log correlation.

        Returns:
            The tool's JSON result, or a failure payload.
        """
        if tool_name not in self._catalog:
            self._log_call(tool_name, "unknown-tool", call_id)
            return failure_payload(
                tool_name,
                f"Unknown tool '{tool_name}'.",
                f"Call one of the available tools: {', '.join(self._catalog.names()) or 'none'}.",
            )

        key = self._gateway.credential_key
        if not self._gateway.has_credentials:
            self._log_call(tool_name, "missing-credential", call_id)
            return failure_payload(tool_name, missing_credential_error(key), missing_credential_fix(key))

        try:
            response = await self._gateway.call_tool(tool_name, arguments)
        except MissingCredentialError:
            self._log_call(tool_name, "missing-credential", call_id)
            return failure_payload(tool_name, missing_credential_error(key), missing_credential_fix(key))
        except GatewayError as exc:
            self._log_call(tool_name, exc.label, call_id)
            logger.warning("Tool '%s' failed upstream: %s", tool_name, exc)
            return failure_payload(tool_name, str(exc), self._how_to_fix(exc))

        self._log_call(tool_name, str(response.status_code), call_id)
        return response.content

    @staticmethod
    def _log_call(tool_name: str, status: str, call_id: Optional[str]) -> None:
        if call_id:
            logger.info("MCP tools/call %s => %s (call %s)", tool_name, status, call_id)
        else:
            logger.info("MCP tools/call %s => %s", tool_name, status)

    @staticmethod
    def _how_to_fix(exc: GatewayError) -> Optional[str]:
        if exc.status in (401, 403):
            return "Check that the MCP gateway token is valid and has access to the requested resource."
        if exc.status == 404:
            return "Check the owner, repository and path arguments."
        if exc.status == 422 or exc.label == "tool-error":
            return "Adjust the tool arguments and try again."
        if exc.label == "timeout":
            return "Retry the call with a narrower query."
        return None
