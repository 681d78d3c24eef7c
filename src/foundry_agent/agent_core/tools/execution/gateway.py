"""Protocol for the upstream gateway that actually executes tools."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Protocol


@dataclass(frozen=True)
class GatewayResponse:
    """Successful outcome of a gateway call.

    Attributes:
        status_code: HTTP status of the gateway response.
        content: The tool result, decoded to JSON when possible.
    """

    status_code: int
    content: Any


class ToolGateway(Protocol):
    """
    Protocol for the transport that executes a named tool with JSON arguments.
    """

    @property
    def has_credentials(self) -> bool:
        """Whether a bearer credential is configured."""
        ...

    @property
    def credential_key(self) -> str:
        """Name of the setting / environment variable that holds the credential."""
        ...

    async def call_tool(self, name: str, arguments: Any) -> GatewayResponse:
        """Execute the tool and return its result.

        Raises:
            MissingCredentialError: If no credential is configured.
            GatewayError: On HTTP, protocol, timeout or tool-level failures.
        """
        ...
