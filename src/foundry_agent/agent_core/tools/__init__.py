from .models import ToolDefinition, ToolCallRequest, ToolCallResult, failure_payload, is_failure_payload
from .registry import ToolCatalog
from .schema import SchemaValidator
from .execution import ArgumentNormalizer, GatewayResponse, ToolGateway, ToolInvoker

__all__ = [
    "ToolDefinition",
    "ToolCallRequest",
    "ToolCallResult",
    "failure_payload",
    "is_failure_payload",
    "ToolCatalog",
    "SchemaValidator",
    "ArgumentNormalizer",
    "GatewayResponse",
    "ToolGateway",
    "ToolInvoker",
]
