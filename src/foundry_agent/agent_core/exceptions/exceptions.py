"""
Custom exception classes for the foundry agent core.

Two families live here. Tool errors (registration, validation, lookup, argument
parsing, gateway failures) are raised inside the tool pipeline and are folded into
tool-output payloads before they can reach a caller. Turn errors (invalid request,
no tools available, failed run) are the only ones ``RunOrchestrator.run_turn``
lets escape.
"""


class FoundryAgentError(Exception):
    """Base exception for all errors raised by this package."""

    pass


class ConfigurationError(FoundryAgentError):
    """Raised when a required setting is missing or invalid."""

    pass


class ToolRegistrationError(FoundryAgentError):
    """Raised when a tool cannot be added to the catalog."""

    pass


class ToolValidationError(FoundryAgentError):
    """Raised when a tool definition or its parameter schema is invalid."""

    pass


class ToolNotFoundError(FoundryAgentError):
    """Raised when a requested tool is not found in the catalog."""

    pass


class InvalidArgumentsError(FoundryAgentError):
    """Raised when raw tool-call arguments cannot be parsed."""

    pass


class GatewayError(FoundryAgentError):
    """Raised when the upstream MCP gateway rejects or fails a call.

    Attributes:
        status: HTTP status code, or None when the failure happened before a response.
        label: Short status label for logs, e.g. "502", "timeout" or "transport-error".
    """

    def __init__(self, message: str, status: int | None = None, label: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.label = label or (str(status) if status is not None else "transport-error")


class MissingCredentialError(GatewayError):
    """Raised when no bearer token is configured for the MCP gateway."""

    pass


class InvalidRequestError(FoundryAgentError):
    """Raised when a caller submits a turn with nothing to send."""

    pass


class ServiceUnavailableError(FoundryAgentError):
    """Raised when a turn requires tools but none are enabled."""

    pass


class UpstreamFailureError(FoundryAgentError):
    """Raised when the conversation runtime reports a failed run."""

    def __init__(self, message: str, run_id: str | None = None) -> None:
        super().__init__(message)
        self.run_id = run_id
