"""Protocol for adapting a provider-specific conversation runtime to the run orchestrator."""

from __future__ import annotations

from typing import Protocol, Sequence

from .models import RunState, ThreadMessage
from ..tools.models import ToolCallResult, ToolDefinition


class RunAdapter(Protocol):
    """
    Protocol for the conversation runtime that hosts agents, threads and runs.

    Implementations translate provider objects into ``RunState`` and
    ``ThreadMessage`` so the orchestrator never sees provider types.
    """

    async def create_agent(self, *, name: str, instructions: str, tools: Sequence[ToolDefinition]) -> str:
        """Creates a transient agent advertising the given tools and returns its id."""
        ...

    async def delete_agent(self, agent_id: str) -> None:
        """Deletes an agent created by ``create_agent``."""
        ...

    async def create_thread(self) -> str:
        """Creates a conversation thread and returns its id."""
        ...

    async def delete_thread(self, thread_id: str) -> None:
        """Deletes a conversation thread."""
        ...

    async def create_message(self, thread_id: str, content: str) -> None:
        """Appends a user message to the thread."""
        ...

    async def create_run(self, thread_id: str, agent_id: str) -> RunState:
        """Starts a run of the agent on the thread."""
        ...

    async def get_run(self, thread_id: str, run_id: str) -> RunState:
        """Fetches the current state of a run."""
        ...

    async def submit_tool_outputs(self, thread_id: str, run_id: str, results: Sequence[ToolCallResult]) -> RunState:
        """Submits one output per pending call, as a single batch."""
        ...

    async def cancel_run(self, thread_id: str, run_id: str) -> None:
        """Asks the runtime to stop a run that is not terminal yet."""
        ...

    async def list_messages(self, thread_id: str) -> Sequence[ThreadMessage]:
        """Returns the thread messages in chronological order."""
        ...
