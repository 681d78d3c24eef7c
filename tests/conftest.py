import asyncio
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

import pytest

from foundry_agent.agent_core.runs import RunState, RunStatus, ThreadMessage
from foundry_agent.agent_core.runs import orchestrator as orchestrator_module
from foundry_agent.agent_core.tools import ArgumentNormalizer, GatewayResponse, ToolCallResult, ToolDefinition
from foundry_agent.mcp_gateway import github_tool_catalog

FIXED_NOW = datetime(2026, 3, 31, 12, 0, tzinfo=timezone.utc)
THREAD_ID = "thread_1"
RUN_ID = "run_1"


class FakeGateway:
    """In-memory tool gateway that records calls and answers through a responder."""

    def __init__(self, has_token: bool = True, responder: Optional[Callable[[str, Any], Any]] = None) -> None:
        self._has_token = has_token
        self._responder = responder or (lambda name, arguments: {"tool": name, "arguments": arguments})
        self.calls: List[Tuple[str, Any]] = []

    @property
    def has_credentials(self) -> bool:
        return self._has_token

    @property
    def credential_key(self) -> str:
        return "COPILOT_MCP_TOKEN"

    async def call_tool(self, name: str, arguments: Any) -> GatewayResponse:
        self.calls.append((name, arguments))
        return GatewayResponse(status_code=200, content=self._responder(name, arguments))


class FakeRunAdapter:
    """Run adapter scripted with the sequence of states returned by create_run and get_run.

    Every call is appended to ``events`` so tests can assert on ordering.
    """

    def __init__(
        self,
        states: Sequence[RunState],
        messages: Optional[Callable[["FakeRunAdapter"], List[ThreadMessage]]] = None,
        block_polls_after: Optional[int] = None,
    ) -> None:
        self.states = list(states)
        self.messages = messages or (lambda adapter: [])
        self.block_polls_after = block_polls_after
        self.events: List[Tuple[Any, ...]] = []
        self.submitted: List[List[ToolCallResult]] = []
        self.agent_tools: List[ToolDefinition] = []
        self.polling = asyncio.Event()
        self._polls = 0

    def names(self) -> List[str]:
        return [event[0] for event in self.events]

    async def create_agent(self, *, name: str, instructions: str, tools: Sequence[ToolDefinition]) -> str:
        self.events.append(("create_agent", name))
        self.agent_tools = list(tools)
        return "agent_1"

    async def delete_agent(self, agent_id: str) -> None:
        self.events.append(("delete_agent", agent_id))

    async def create_thread(self) -> str:
        self.events.append(("create_thread",))
        return THREAD_ID

    async def delete_thread(self, thread_id: str) -> None:
        self.events.append(("delete_thread", thread_id))

    async def create_message(self, thread_id: str, content: str) -> None:
        self.events.append(("create_message", thread_id, content))

    async def create_run(self, thread_id: str, agent_id: str) -> RunState:
        self.events.append(("create_run", thread_id, agent_id))
        return self.states.pop(0)

    async def get_run(self, thread_id: str, run_id: str) -> RunState:
        self.events.append(("get_run", run_id))
        self._polls += 1
        if self.block_polls_after is not None and self._polls > self.block_polls_after:
            self.polling.set()
            await asyncio.Event().wait()
        return self.states.pop(0)

    async def submit_tool_outputs(self, thread_id: str, run_id: str, results: Sequence[ToolCallResult]) -> RunState:
        self.events.append(("submit_tool_outputs", [result.call_id for result in results]))
        self.submitted.append(list(results))
        return RunState(run_id=run_id, thread_id=thread_id, status=RunStatus.IN_PROGRESS)

    async def cancel_run(self, thread_id: str, run_id: str) -> None:
        self.events.append(("cancel_run", run_id))

    async def list_messages(self, thread_id: str) -> List[ThreadMessage]:
        self.events.append(("list_messages", thread_id))
        return self.messages(self)


def run_state(status: RunStatus, pending: Sequence[Any] = (), last_error: Optional[str] = None) -> RunState:
    return RunState(
        run_id=RUN_ID, thread_id=THREAD_ID, status=status, pending_calls=list(pending), last_error=last_error
    )


@pytest.fixture
def fast_sleep(monkeypatch: pytest.MonkeyPatch) -> List[float]:
    """Replaces the poll delay with a zero-length sleep and records the requested delays."""
    real_sleep = asyncio.sleep
    delays: List[float] = []

    async def _sleep(delay: float, *args: Any, **kwargs: Any) -> None:
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(orchestrator_module.asyncio, "sleep", _sleep)
    return delays


@pytest.fixture
def catalog() -> Any:
    return github_tool_catalog()


@pytest.fixture
def normalizer() -> ArgumentNormalizer:
    return ArgumentNormalizer(clock=lambda: FIXED_NOW)


@pytest.fixture
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture
def make_adapter() -> Callable[..., FakeRunAdapter]:
    def _make(states: Sequence[RunState], **kwargs: Any) -> FakeRunAdapter:
        return FakeRunAdapter(states, **kwargs)

    return _make


@pytest.fixture
def mcp_env() -> Dict[str, str]:
    return {
        "FOUNDRY_PROJECT_ENDPOINT": "https://example.services.ai.azure.com/api/projects/demo",
        "FOUNDRY_DEPLOYMENT_NAME": "gpt-4o",
        "COPILOT_MCP_TOKEN": "ghp_test",
    }
