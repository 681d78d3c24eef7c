"""JSON-RPC client for a remote MCP gateway reached over streamable HTTP."""

import itertools
import json
from types import TracebackType
from typing import Any, Dict, List, Optional, Type

import httpx
from mcp.types import CallToolResult, JSONRPCRequest, TextContent
from pydantic import ValidationError

from foundry_agent.agent_core.exceptions import GatewayError, MissingCredentialError
from foundry_agent.agent_core.logger import get_logger
from foundry_agent.agent_core.tools.execution import GatewayResponse

logger = get_logger(__name__)

__all__ = ["McpGatewayClient"]

DEFAULT_ENDPOINT = "https://api.githubcopilot.com/mcp/"
DEFAULT_TIMEOUT = 60.0
ACCEPT_HEADER = "application/json, text/event-stream"


class McpGatewayClient:
    """Calls tools on an MCP server through single JSON-RPC ``tools/call`` POSTs.

    The gateway may answer with a plain JSON body or with a server-sent event
    stream whose ``data:`` lines carry the JSON-RPC response; both are accepted.
    Every failure is raised as ``GatewayError`` so the invoker can turn it into a
    tool-output payload.
    """

    def __init__(
        self,
        endpoint: str = DEFAULT_ENDPOINT,
        token: Optional[str] = None,
        timeout: float = DEFAULT_TIMEOUT,
        credential_key: str = "COPILOT_MCP_TOKEN",
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the client.

        Args:
            endpoint: URL of the MCP endpoint.
            token: Bearer token; calls fail with ``MissingCredentialError`` without one.
            timeout: Timeout of one call, in seconds.
            credential_key: Name of the setting the token comes from, used in error messages.
            client: Optional pre-configured httpx client. It is not closed by ``aclose``.
        """
        self._endpoint = endpoint
        self._token = token
        self._timeout = timeout
        self._credential_key = credential_key
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._ids = itertools.count(1)

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def has_credentials(self) -> bool:
        return bool(self._token)

    @property
    def credential_key(self) -> str:
        return self._credential_key

    async def __aenter__(self) -> "McpGatewayClient":
        return self

    async def __aexit__(
        self, exc_type: Optional[Type[BaseException]], exc_val: Optional[BaseException], exc_tb: Optional[TracebackType]
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Closes the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._client.aclose()

    async def call_tool(self, name: str, arguments: Any) -> GatewayResponse:
        """Executes a tool on the gateway.

        Args:
            name: Tool name.
            arguments: JSON arguments of the call.

        Returns:
            The HTTP status and the decoded tool result.

        Raises:
            MissingCredentialError: If no token is configured.
            GatewayError: On transport errors, timeouts, HTTP errors, JSON-RPC errors
                or results flagged with ``isError``.
        """
        if not self._token:
            raise MissingCredentialError(f"{self._credential_key} is not configured.", label="missing-credential")

        request_id = next(self._ids)
        request = JSONRPCRequest(
            jsonrpc="2.0",
            id=request_id,
            method="tools/call",
            params={"name": name, "arguments": arguments if arguments is not None else {}},
        )
        headers = {
            "Authorization": f"Bearer {self._token}",
            "Accept": ACCEPT_HEADER,
            "Content-Type": "application/json",
        }

        try:
            response = await self._client.post(
                self._endpoint,
                json=request.model_dump(mode="json", by_alias=True, exclude_none=True),
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.TimeoutException as e:
            raise GatewayError(f"MCP gateway timed out after {self._timeout}s.", label="timeout") from e
        except httpx.RequestError as e:
            raise GatewayError(f"MCP gateway request failed: {e}") from e

        if response.status_code >= 400:
            raise GatewayError(
                f"MCP gateway returned HTTP {response.status_code}: {self._short(response.text)}",
                status=response.status_code,
            )

        message = self._parse_body(response, request_id)
        if "error" in message:
            raise GatewayError(self._rpc_error_text(message["error"]), status=response.status_code, label="rpc-error")

        try:
            result = CallToolResult.model_validate(message.get("result") or {})
        except ValidationError as e:
            raise GatewayError(f"Malformed tools/call result: {e}", status=response.status_code, label="protocol-error") from e

        if result.isError:
            raise GatewayError(
                self._texts(result) or f"Tool '{name}' reported an error.",
                status=response.status_code,
                label="tool-error",
            )

        return GatewayResponse(status_code=response.status_code, content=self._decode(result))

    def _parse_body(self, response: httpx.Response, request_id: int) -> Dict[str, Any]:
        content_type = response.headers.get("content-type", "")
        body = response.text
        candidates: List[str]
        if "text/event-stream" in content_type or body.lstrip().startswith(("event:", "data:")):
            candidates = [line[5:].strip() for line in body.splitlines() if line.startswith("data:")]
        else:
            candidates = [body]

        for raw in reversed(candidates):
            if not raw:
                continue
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict) and message.get("id") == request_id:
                return message

        raise GatewayError(
            f"No JSON-RPC response for request {request_id} in gateway reply: {self._short(body)}",
            status=response.status_code,
            label="protocol-error",
        )

    @staticmethod
    def _rpc_error_text(error: Any) -> str:
        # Servers are expected to send an error object, but some send a bare string
        if not isinstance(error, dict):
            return f"MCP error: {error or 'unknown error'}"
        code = error.get("code")
        prefix = "MCP error" if code is None else f"MCP error {code}"
        return f"{prefix}: {error.get('message') or 'unknown error'}"

    @classmethod
    def _decode(cls, result: CallToolResult) -> Any:
        if result.structuredContent is not None:
            return result.structuredContent
        if not result.content:
            return "Success"

        texts = [c.text for c in result.content if isinstance(c, TextContent)]
        if len(texts) == 1 and len(result.content) == 1:
            try:
                return json.loads(texts[0])
            except json.JSONDecodeError:
                return texts[0]

        parts = []
        for c in result.content:
            if isinstance(c, TextContent):
                parts.append(c.text)
            else:
                parts.append(f"[{c.type} content]")
        return "\n".join(parts)

    @staticmethod
    def _texts(result: CallToolResult) -> str:
        return "\n".join(c.text for c in result.content if isinstance(c, TextContent))

    @staticmethod
    def _short(text: str, limit: int = 200) -> str:
        return text[:limit] + "..." if len(text) > limit else text
