"""Run adapter backed by the OpenAI (or Azure OpenAI) Assistants API."""

from types import TracebackType
from typing import Any, Dict, List, Optional, Sequence, Type

from openai import AsyncAzureOpenAI, AsyncOpenAI

from foundry_agent.agent_core.config import FoundrySettings
from foundry_agent.agent_core.logger import get_logger
from foundry_agent.agent_core.runs import RunAdapter, RunState, ThreadMessage
from foundry_agent.agent_core.tools.models import ToolCallResult, ToolDefinition
from foundry_agent.agent_core.tools.schema import SchemaValidator
from ..common import to_run_state, to_thread_message

logger = get_logger(__name__)


class OpenAIAssistantsRunAdapter(RunAdapter):
    """Adapter for assistants, threads and runs of the Assistants API."""

    def __init__(self, client: AsyncOpenAI, model: str):
        """Initialize the Assistants adapter.

        Args:
            client: The initialized AsyncOpenAI (or AsyncAzureOpenAI) client.
            model: Model (or deployment) used for the transient assistants.
        """
        self.client = client
        self.model = model

    @classmethod
    def from_settings(cls, settings: FoundrySettings) -> "OpenAIAssistantsRunAdapter":
        """Create an adapter and its client from the settings.

        An ``openai_api_version`` selects Azure OpenAI with ``project_endpoint`` as
        the resource endpoint; otherwise ``project_endpoint`` is an optional base URL.

        Raises:
            ConfigurationError: If the API key or deployment is missing.
        """
        settings.require_runtime()
        client: AsyncOpenAI
        if settings.openai_api_version and settings.project_endpoint:
            client = AsyncAzureOpenAI(
                api_key=settings.openai_api_key,
                api_version=settings.openai_api_version,
                azure_endpoint=settings.project_endpoint,
            )
            logger.info("Using Azure OpenAI Assistants at %s.", settings.project_endpoint)
        else:
            client = AsyncOpenAI(api_key=settings.openai_api_key, base_url=settings.project_endpoint)
            logger.info("Using OpenAI Assistants.")
        return cls(client, settings.deployment_name or "")

    async def __aenter__(self) -> "OpenAIAssistantsRunAdapter":
        return self

    async def __aexit__(
        self, exc_type: Optional[Type[BaseException]], exc_val: Optional[BaseException], exc_tb: Optional[TracebackType]
    ) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self.client.close()

    async def create_agent(self, *, name: str, instructions: str, tools: Sequence[ToolDefinition]) -> str:
        assistant = await self.client.beta.assistants.create(
            model=self.model,
            name=name,
            instructions=instructions,
            tools=[self._function_tool(tool) for tool in tools],  # type: ignore[misc]
        )
        return assistant.id

    async def delete_agent(self, agent_id: str) -> None:
        await self.client.beta.assistants.delete(agent_id)

    async def create_thread(self) -> str:
        thread = await self.client.beta.threads.create()
        return thread.id

    async def delete_thread(self, thread_id: str) -> None:
        await self.client.beta.threads.delete(thread_id)

    async def create_message(self, thread_id: str, content: str) -> None:
        await self.client.beta.threads.messages.create(thread_id, role="user", content=content)

    async def create_run(self, thread_id: str, agent_id: str) -> RunState:
        run = await self.client.beta.threads.runs.create(thread_id=thread_id, assistant_id=agent_id)
        return to_run_state(run, thread_id)

    async def get_run(self, thread_id: str, run_id: str) -> RunState:
        run = await self.client.beta.threads.runs.retrieve(run_id, thread_id=thread_id)
        return to_run_state(run, thread_id)

    async def submit_tool_outputs(self, thread_id: str, run_id: str, results: Sequence[ToolCallResult]) -> RunState:
        outputs = [{"tool_call_id": result.call_id, "output": result.serialized()} for result in results]
        run = await self.client.beta.threads.runs.submit_tool_outputs(
            run_id, thread_id=thread_id, tool_outputs=outputs  # type: ignore[arg-type]
        )
        return to_run_state(run, thread_id)

    async def cancel_run(self, thread_id: str, run_id: str) -> None:
        await self.client.beta.threads.runs.cancel(run_id, thread_id=thread_id)

    async def list_messages(self, thread_id: str) -> List[ThreadMessage]:
        messages = []
        async for message in self.client.beta.threads.messages.list(thread_id, order="asc"):
            messages.append(to_thread_message(message))
        return messages

    @staticmethod
    def _function_tool(tool: ToolDefinition) -> Dict[str, Any]:
        return {
            "type": "function",
            "function": {
                "name": tool.name,
                "description": tool.description,
                "parameters": SchemaValidator.sanitize_schema(tool.parameters),
            },
        }
