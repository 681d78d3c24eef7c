"""Wiring of settings, tool catalog, gateway and runtime into a ready-to-use service."""

from contextlib import aclosing
from types import TracebackType
from typing import Any, AsyncGenerator, Dict, Optional, Sequence, Type

from foundry_agent.agent_core.config import FoundrySettings
from foundry_agent.agent_core.logger import get_logger
from foundry_agent.agent_core.runs import RunAdapter, RunOrchestrator, TurnResult, TurnUpdate
from foundry_agent.agent_core.tools import ArgumentNormalizer, ToolCatalog, ToolGateway, ToolInvoker
from foundry_agent.mcp_gateway import McpGatewayClient, github_tool_catalog

logger = get_logger(__name__)

__all__ = ["FoundryAgentService", "build_run_adapter", "build_gateway"]

SERVER_FEATURES = (
    "Remote MCP Server Connection",
    "Automatic Tool Approval",
    "Concurrent Tool Calls",
    "Tool Argument Repair",
    "Streaming Responses",
)


def build_run_adapter(settings: FoundrySettings) -> RunAdapter:
    """Create the run adapter selected by ``settings.runtime``.

    Raises:
        ConfigurationError: If the selected runtime is not fully configured.
    """
    if settings.runtime == "openai-assistants":
        from foundry_agent.runtime_impl.openai_assistants import OpenAIAssistantsRunAdapter

        return OpenAIAssistantsRunAdapter.from_settings(settings)

    from foundry_agent.runtime_impl.azure_agents import AzureAgentsRunAdapter

    return AzureAgentsRunAdapter.from_settings(settings)


def build_gateway(settings: FoundrySettings) -> McpGatewayClient:
    """Create the MCP gateway client from the settings."""
    return McpGatewayClient(endpoint=settings.mcp_endpoint, token=settings.mcp_token, timeout=settings.mcp_timeout)


class FoundryAgentService:
    """
    Process-wide composition root.

    Holds the shared catalog, normalizer, gateway and invoker, and creates a fresh
    ``RunOrchestrator`` for every turn.
    """

    def __init__(
        self,
        settings: FoundrySettings,
        *,
        adapter: RunAdapter,
        gateway: ToolGateway,
        catalog: Optional[ToolCatalog] = None,
        normalizer: Optional[ArgumentNormalizer] = None,
    ):
        """
        Initializes the service.

        Args:
            settings: The validated settings.
            adapter: Conversation runtime adapter.
            gateway: Transport that executes tools.
            catalog: Tool catalog; defaults to the GitHub tools filtered by the settings.
            normalizer: Argument normalizer; defaults to one using ``settings.recency_days``.
        """
        self.settings = settings
        self.adapter = adapter
        self.gateway = gateway
        if catalog is None:
            catalog = github_tool_catalog(settings.allowed_tools, enabled=settings.mcp_enabled)
        self.catalog = catalog
        self.normalizer = normalizer or ArgumentNormalizer(recency_days=settings.recency_days)
        self.invoker = ToolInvoker(catalog=self.catalog, gateway=gateway)

    @classmethod
    def from_settings(cls, settings: Optional[FoundrySettings] = None) -> "FoundryAgentService":
        """
        Builds the service and its clients.

        Args:
            settings: Settings to use; read from the environment when omitted.

        Raises:
            ConfigurationError: If the settings are invalid or the runtime is not configured.
        """
        settings = settings or FoundrySettings.from_env()
        service = cls(settings, adapter=build_run_adapter(settings), gateway=build_gateway(settings))
        logger.info(
            "Agent service ready: runtime=%s, %d of %d tool(s) enabled.",
            settings.runtime,
            len(service.catalog.enabled()),
            len(service.catalog),
        )
        return service

    async def __aenter__(self) -> "FoundryAgentService":
        return self

    async def __aexit__(
        self, exc_type: Optional[Type[BaseException]], exc_val: Optional[BaseException], exc_tb: Optional[TracebackType]
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Closes the gateway and runtime clients."""
        for resource in (self.gateway, self.adapter):
            close = getattr(resource, "aclose", None)
            if close is not None:
                await close()

    def orchestrator(self) -> RunOrchestrator:
        """Creates a request-scoped orchestrator sharing this service's components."""
        return RunOrchestrator(
            adapter=self.adapter,
            catalog=self.catalog,
            normalizer=self.normalizer,
            invoker=self.invoker,
            instructions=self.settings.instructions,
            agent_name=self.settings.agent_name,
            server_label=self.settings.mcp_server_label,
            poll_interval=self.settings.poll_interval,
            max_polls=self.settings.max_polls,
        )

    async def run_turn(
        self,
        message: str,
        thread_handle: Optional[str] = None,
        auto_approve: bool = True,
        *,
        attachments: Optional[Sequence[str]] = None,
        require_tools: bool = False,
    ) -> TurnResult:
        """Runs one conversational turn. See ``RunOrchestrator.run_turn``."""
        return await self.orchestrator().run_turn(
            message, thread_handle, auto_approve, attachments=attachments, require_tools=require_tools
        )

    async def stream_turn(
        self,
        message: str,
        thread_handle: Optional[str] = None,
        auto_approve: bool = True,
        *,
        attachments: Optional[Sequence[str]] = None,
        require_tools: bool = False,
    ) -> AsyncGenerator[TurnUpdate, None]:
        """Runs one conversational turn with progress updates. See ``RunOrchestrator.stream_turn``."""
        async with aclosing(
            self.orchestrator().stream_turn(
                message, thread_handle, auto_approve, attachments=attachments, require_tools=require_tools
            )
        ) as updates:
            async for update in updates:
                yield update

    def server_info(self) -> Dict[str, Any]:
        """Describes the configured MCP server and the supported features, without secrets."""
        server = {
            "label": self.settings.mcp_server_label,
            "url": self.settings.mcp_endpoint,
            "enabled": self.settings.mcp_enabled,
            "hasCredentials": self.gateway.has_credentials,
            "allowedTools": [tool.name for tool in self.catalog.enabled()],
        }
        return {"servers": [server], "features": list(SERVER_FEATURES)}

    def discovery_document(self) -> Dict[str, Any]:
        """The JSON-RPC ``tools/list`` response for the enabled tools."""
        return self.catalog.discovery_document()
