"""Public exports for the tool pipeline, the run orchestrator and shared utilities."""

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
from .logger import get_logger, setup_logging
from .config import FoundrySettings
from .tools import (
    ToolDefinition,
    ToolCallRequest,
    ToolCallResult,
    ToolCatalog,
    SchemaValidator,
    ArgumentNormalizer,
    GatewayResponse,
    ToolGateway,
    ToolInvoker,
)
from .runs import (
    Citation,
    RunAdapter,
    RunOrchestrator,
    RunState,
    RunStatus,
    ResponseExtractor,
    ThreadMessage,
    TurnResult,
    TurnUpdate,
    NO_TOOLS_CONFIGURED_MESSAGE,
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
    "get_logger",
    "setup_logging",
    "FoundrySettings",
    "ToolDefinition",
    "ToolCallRequest",
    "ToolCallResult",
    "ToolCatalog",
    "SchemaValidator",
    "ArgumentNormalizer",
    "GatewayResponse",
    "ToolGateway",
    "ToolInvoker",
    "Citation",
    "RunAdapter",
    "RunOrchestrator",
    "RunState",
    "RunStatus",
    "ResponseExtractor",
    "ThreadMessage",
    "TurnResult",
    "TurnUpdate",
    "NO_TOOLS_CONFIGURED_MESSAGE",
]
