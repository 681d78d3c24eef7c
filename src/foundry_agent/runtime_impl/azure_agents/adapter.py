"""Run adapter backed by the Azure AI Foundry Agents service."""

from types import TracebackType
from typing import Any, List, Optional, Sequence, Type

from azure.ai.agents.aio import AgentsClient
from azure.ai.agents.models import (
    FunctionDefinition,
    FunctionToolDefinition,
    ListSortOrder,
    MessageRole,
    ToolOutput,
)
from azure.identity.aio import AzureCliCredential, DefaultAzureCredential

from foundry_agent.agent_core.config import FoundrySettings
from foundry_agent.agent_core.logger import get_logger
from foundry_agent.agent_core.runs import RunAdapter, RunState, ThreadMessage
from foundry_agent.agent_core.tools.models import ToolCallResult, ToolDefinition
from foundry_agent.agent_core.tools.schema import SchemaValidator
from ..common import to_run_state, to_thread_message

logger = get_logger(__name__)


class AzureAgentsRunAdapter(RunAdapter):
    """Adapter for agents, threads and runs of an Azure AI Foundry project."""

    def __init__(self, client: AgentsClient, model: str, credential: Optional[Any] = None):
        """Initialize the Azure agents adapter.

        Args:
            client: The async agents client of the project.
            model: Model deployment name used for the transient agents.
            credential: Async credential owned by this adapter and closed with it.
        """
        self.client = client
        self.model = model
        self._credential = credential

    @classmethod
    def from_settings(cls, settings: FoundrySettings) -> "AzureAgentsRunAdapter":
        """Create an adapter and its client from the settings.

        Raises:
            ConfigurationError: If the project endpoint or deployment is missing.
        """
        settings.require_runtime()
        credential = DefaultAzureCredential() if settings.use_default_azure_credential else AzureCliCredential()
        client = AgentsClient(endpoint=settings.project_endpoint, credential=credential)
        logger.info("Using Azure AI Foundry project %s.", settings.project_endpoint)
        return cls(client, settings.deployment_name or "", credential)

    async def __aenter__(self) -> "AzureAgentsRunAdapter":
        return self

    async def __aexit__(
        self, exc_type: Optional[Type[BaseException]], exc_val: Optional[BaseException], exc_tb: Optional[TracebackType]
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        """Close the client and the credential."""
        await self.client.close()
        if self._credential is not None:
            await self._credential.close()

    async def create_agent(self, *, name: str, instructions: str, tools: Sequence[ToolDefinition]) -> str:
        agent = await self.client.create_agent(
            model=self.model,
            name=name,
            instructions=instructions,
            tools=[self._function_tool(tool) for tool in tools],
        )
        return agent.id

    async def delete_agent(self, agent_id: str) -> None:
        await self.client.delete_agent(agent_id)

    async def create_thread(self) -> str:
        thread = await self.client.threads.create()
        return thread.id

    async def delete_thread(self, thread_id: str) -> None:
        await self.client.threads.delete(thread_id)

    async def create_message(self, thread_id: str, content: str) -> None:
        await self.client.messages.create(thread_id=thread_id, role=MessageRole.USER, content=content)

    async def create_run(self, thread_id: str, agent_id: str) -> RunState:
        run = await self.client.runs.create(thread_id=thread_id, agent_id=agent_id)
        return to_run_state(run, thread_id)

    async def get_run(self, thread_id: str, run_id: str) -> RunState:
        run = await self.client.runs.get(thread_id=thread_id, run_id=run_id)
        return to_run_state(run, thread_id)

    async def submit_tool_outputs(self, thread_id: str, run_id: str, results: Sequence[ToolCallResult]) -> RunState:
        outputs = [ToolOutput(tool_call_id=result.call_id, output=result.serialized()) for result in results]
        run = await self.client.runs.submit_tool_outputs(thread_id=thread_id, run_id=run_id, tool_outputs=outputs)
        return to_run_state(run, thread_id)

    async def cancel_run(self, thread_id: str, run_id: str) -> None:
        await self.client.runs.cancel(thread_id=thread_id, run_id=run_id)

    async def list_messages(self, thread_id: str) -> List[ThreadMessage]:
        messages = []
        async for message in self.client.messages.list(thread_id=thread_id, order=ListSortOrder.ASCENDING):
            messages.append(to_thread_message(message))
        return messages

    @staticmethod
    def _function_tool(tool: ToolDefinition) -> FunctionToolDefinition:
        return FunctionToolDefinition(
            function=FunctionDefinition(
                name=tool.name,
                description=tool.description,
                parameters=SchemaValidator.sanitize_schema(tool.parameters),
            )
        )
