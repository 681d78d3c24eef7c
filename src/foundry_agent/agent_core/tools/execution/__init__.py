"""Tool call normalization and dispatch."""

from .gateway import GatewayResponse, ToolGateway
from .normalizer import ArgumentNormalizer, DEFAULT_RECENCY_DAYS, DEFAULT_SORT_ONLY_TOKENS, SEARCH_REPOSITORIES_TOOL
from .invoker import ToolInvoker, missing_credential_error

__all__ = [
    "GatewayResponse",
    "ToolGateway",
    "ArgumentNormalizer",
    "DEFAULT_RECENCY_DAYS",
    "DEFAULT_SORT_ONLY_TOKENS",
    "SEARCH_REPOSITORIES_TOOL",
    "ToolInvoker",
    "missing_credential_error",
]
