"""Export the exception hierarchy shared by the tool pipeline and the run orchestrator."""

from .exceptions import (
    FoundryAgentError,
    ConfigurationError,
    ToolRegistrationError,
    ToolValidationError,
    ToolNotFoundError,
    InvalidArgumentsError,
    GatewayError,
    MissingCredentialError,
    InvalidRequestError,
    ServiceUnavailableError,
    UpstreamFailureError,
)

__all__ = [
    "FoundryAgentError",
    "ConfigurationError",
    "ToolRegistrationError",
    "ToolValidationError",
    "ToolNotFoundError",
    "InvalidArgumentsError",
    "GatewayError",
    "MissingCredentialError",
    "InvalidRequestError",
    "ServiceUnavailableError",
    "UpstreamFailureError",
]
