"""Run-polling state machine that resolves tool calls for one conversational turn."""

from __future__ import annotations

import asyncio
from contextlib import aclosing, asynccontextmanager
from typing import AsyncGenerator, AsyncIterator, Awaitable, Callable, Dict, List, Optional, Sequence

from .adapter import RunAdapter
from .extractor import ResponseExtractor
from .models import ExtractedResponse, RunState, RunStatus, ThreadMessage, TurnResult, TurnUpdate
from ..exceptions import (
    ConfigurationError,
    InvalidArgumentsError,
    InvalidRequestError,
    ServiceUnavailableError,
    UpstreamFailureError,
)
from ..logger import get_logger
from ..tools.execution import ArgumentNormalizer, ToolInvoker
from ..tools.models import ToolCallRequest, ToolCallResult, ToolDefinition, failure_payload, is_failure_payload
from ..tools.registry import ToolCatalog

logger = get_logger(__name__)

NO_TOOLS_CONFIGURED_MESSAGE = (
    "No MCP servers are configured or enabled. "
    "Please configure at least one MCP server and enable its tools before asking for tool use."
)
ATTACHMENTS_ONLY_MESSAGE = "Please analyze the attached file(s)."
DEFAULT_AGENT_NAME = "McpAgent"
DEFAULT_POLL_INTERVAL = 0.5
MIN_POLL_INTERVAL = 0.2
MAX_POLL_INTERVAL = 1.0
DEFAULT_MAX_POLLS = 600


def default_instructions(server_label: str, tools: Sequence[ToolDefinition]) -> str:
    """Build the agent instructions used when none are configured.

    Args:
        server_label: Label of the MCP server the tools come from.
        tools: The tools advertised to the agent.

    Returns:
        The instruction text.
    """
    tool_lines = "\n".join(f"- {tool.name}: {tool.description}" for tool in tools)
    return (
        "You are a helpful AI assistant powered by Azure AI Foundry with access to "
        "MCP (Model Context Protocol) tools.\n\n"
        f"You have access to the following MCP server: {server_label}\n"
        f"Available tools:\n{tool_lines}\n\n"
        "When using MCP tools:\n"
        "- Always provide accurate information based on tool responses\n"
        "- Cite sources when available, including repository URLs\n"
        "- Never pass sort-only strings such as 'sort:updated-desc' as a search query\n"
        "- If a tool fails or returns no results (success: false), explain what happened "
        "and suggest alternatives\n\n"
        "Be helpful, concise, and accurate in your responses."
    )


class RunOrchestrator:
    """Drives a single turn from message submission to a terminal run.

    The orchestrator creates a transient agent advertising the enabled tools,
    posts the message, and polls the run. Whenever the run requires action it
    resolves every pending call (normalize, then invoke), submits the whole
    batch, and resumes polling. A completed run yields the extracted answer; a
    failed run raises ``UpstreamFailureError``. The agent is deleted on every
    exit path, including cancellation. ``stream_turn`` runs the same machine and
    reports status changes and answer text while the run is in progress.

    Instances are cheap; the catalog, normalizer and invoker are shared.
    """

    def __init__(
        self,
        *,
        adapter: RunAdapter,
        catalog: ToolCatalog,
        normalizer: ArgumentNormalizer,
        invoker: ToolInvoker,
        instructions: Optional[str] = None,
        agent_name: str = DEFAULT_AGENT_NAME,
        server_label: str = "github",
        poll_interval: float = DEFAULT_POLL_INTERVAL,
        max_polls: int = DEFAULT_MAX_POLLS,
        extractor: Optional[ResponseExtractor] = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            adapter: Conversation runtime adapter.
            catalog: Shared tool catalog; its enabled tools are advertised.
            normalizer: Shared argument normalizer.
            invoker: Shared tool invoker.
            instructions: Agent instructions. Defaults to ``default_instructions``.
            agent_name: Name given to the transient agent.
            server_label: MCP server label mentioned in the default instructions.
            poll_interval: Seconds between two polls, between 0.2 and 1.0.
            max_polls: Upper bound on polls before the run is abandoned.
            extractor: Response extractor; a default one is used when omitted.

        Raises:
            ConfigurationError: If ``poll_interval`` or ``max_polls`` is out of range.
        """
        if not MIN_POLL_INTERVAL <= poll_interval <= MAX_POLL_INTERVAL:
            raise ConfigurationError(
                f"poll_interval must be between {MIN_POLL_INTERVAL} and {MAX_POLL_INTERVAL} seconds, got {poll_interval}."
            )
        if max_polls < 1:
            raise ConfigurationError(f"max_polls must be at least 1, got {max_polls}.")

        self._adapter = adapter
        self._catalog = catalog
        self._normalizer = normalizer
        self._invoker = invoker
        self._instructions = instructions
        self._agent_name = agent_name
        self._server_label = server_label
        self._poll_interval = poll_interval
        self._max_polls = max_polls
        self._extractor = extractor or ResponseExtractor()

    async def run_turn(
        self,
        message: str,
        thread_handle: Optional[str] = None,
        auto_approve: bool = True,
        *,
        attachments: Optional[Sequence[str]] = None,
        require_tools: bool = False,
    ) -> TurnResult:
        """Run one conversational turn.

        Args:
            message: The user message.
            thread_handle: Thread of a previous turn to continue, or None for a new thread.
            auto_approve: Execute requested tool calls without confirmation. When False,
                every requested call is answered with a "not approved" failure payload.
            attachments: Names of files attached to the message.
            require_tools: Raise instead of answering with a fixed message when no tool is enabled.

        Returns:
            The final text, citations and the thread handle for the next turn.

        Raises:
            InvalidRequestError: If there is neither a message nor an attachment.
            ServiceUnavailableError: If ``require_tools`` is set and no tool is enabled.
            UpstreamFailureError: If the run fails or does not finish within ``max_polls``.
        """
        content = self._compose_message(message, attachments)
        tools = self._enabled_tools(require_tools)
        if not tools:
            return TurnResult(text=NO_TOOLS_CONFIGURED_MESSAGE, citations=[], thread_handle=thread_handle or "")

        async with self._transient_agent(tools) as agent_id, self._turn_thread(thread_handle) as thread_id:
            run = await self._start_run(thread_id, agent_id, content)
            run = await self._wait_for_completion(run, auto_approve)
            self._raise_if_failed(run)
            messages = await self._adapter.list_messages(thread_id)

        extracted = self._extractor.extract(messages)
        return TurnResult(
            text=extracted.text,
            citations=extracted.citations,
            thread_handle=thread_id,
            run_id=run.run_id,
            agent_id=agent_id,
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
        """Run one conversational turn and report its progress while it runs.

        Tool calls are resolved exactly as in ``run_turn``. An update is produced
        whenever the run status changes or the assistant's answer grows; the
        answer is read from the thread while the run is in progress, so ``delta``
        carries the text that appeared since the previous update. The last update
        carries the complete ``TurnResult`` and is produced after the agent is
        released.

        Closing the iterator early abandons the turn: an active run is cancelled,
        a thread created for the turn is deleted and the agent is released.

        Args:
            message: The user message.
            thread_handle: Thread of a previous turn to continue, or None for a new thread.
            auto_approve: Execute requested tool calls without confirmation.
            attachments: Names of files attached to the message.
            require_tools: Raise instead of answering with a fixed message when no tool is enabled.

        Yields:
            Progress updates, the last one with ``result`` set.

        Raises:
            InvalidRequestError: If there is neither a message nor an attachment.
            ServiceUnavailableError: If ``require_tools`` is set and no tool is enabled.
            UpstreamFailureError: If the run fails or does not finish within ``max_polls``.
        """
        content = self._compose_message(message, attachments)
        tools = self._enabled_tools(require_tools)
        if not tools:
            result = TurnResult(text=NO_TOOLS_CONFIGURED_MESSAGE, citations=[], thread_handle=thread_handle or "")
            yield TurnUpdate(status=RunStatus.COMPLETED, delta=result.text, result=result)
            return

        async with self._transient_agent(tools) as agent_id, self._turn_thread(thread_handle) as thread_id:
            run = await self._start_run(thread_id, agent_id, content)
            streamed = ""
            last_status: Optional[RunStatus] = None
            extracted: Optional[ExtractedResponse] = None
            async with aclosing(self._poll(run, auto_approve)) as states:
                async for run in states:
                    delta = ""
                    if run.status in (RunStatus.IN_PROGRESS, RunStatus.COMPLETED):
                        messages = await self._adapter.list_messages(thread_id)
                        extracted = self._extractor.extract(self._current_turn(messages))
                        if extracted.text.startswith(streamed):
                            delta = extracted.text[len(streamed) :]
                            streamed = extracted.text
                    if run.status.is_terminal:
                        break
                    if delta or run.status is not last_status:
                        yield TurnUpdate(status=run.status, delta=delta, run_id=run.run_id)
                    last_status = run.status
            self._raise_if_failed(run)

        final_text = extracted.text if extracted is not None else ""
        result = TurnResult(
            text=final_text,
            citations=extracted.citations if extracted is not None else [],
            thread_handle=thread_id,
            run_id=run.run_id,
            agent_id=agent_id,
        )
        yield TurnUpdate(status=RunStatus.COMPLETED, delta=delta, run_id=run.run_id, result=result)

    async def resolve_tool_calls(
        self, calls: Sequence[ToolCallRequest], auto_approve: bool = True
    ) -> List[ToolCallResult]:
        """Resolve a batch of pending calls concurrently.

        Args:
            calls: The calls of one ``requires_action`` state.
            auto_approve: Whether the calls may be executed.

        Returns:
            Exactly one result per distinct call id, in request order.
        """
        unique: Dict[str, ToolCallRequest] = {}
        for call in calls:
            if call.call_id in unique:
                logger.warning("Ignoring duplicate tool call id %s.", call.call_id)
                continue
            unique[call.call_id] = call

        results = await asyncio.gather(*(self._resolve_call(call, auto_approve) for call in unique.values()))
        return list(results)

    async def _resolve_call(self, call: ToolCallRequest, auto_approve: bool) -> ToolCallResult:
        if not auto_approve:
            logger.info("Declining tool call '%s' (%s): auto-approve is off.", call.name, call.call_id)
            payload = failure_payload(
                call.name,
                f"Tool call '{call.name}' was not approved.",
                "Ask the user to approve tool use, or answer without calling this tool.",
            )
            return ToolCallResult(call_id=call.call_id, name=call.name, output=payload, success=False)

        try:
            arguments = self._normalizer.normalize(call.name, call.arguments)
            output = await self._invoker.invoke(call.name, arguments, call_id=call.call_id)
        except InvalidArgumentsError as exc:
            payload = failure_payload(
                call.name, str(exc), "Send the arguments as a JSON object matching the tool's parameter schema."
            )
            return ToolCallResult(call_id=call.call_id, name=call.name, output=payload, success=False)
        except Exception as exc:
            # Every pending call must get an output, otherwise the run cannot continue
            logger.error("Tool call '%s' (%s) raised %s: %s", call.name, call.call_id, type(exc).__name__, exc)
            payload = failure_payload(call.name, f"Tool call failed unexpectedly: {exc}", "Try again later.")
            return ToolCallResult(call_id=call.call_id, name=call.name, output=payload, success=False)

        return ToolCallResult(call_id=call.call_id, name=call.name, output=output, success=not is_failure_payload(output))

    def _enabled_tools(self, require_tools: bool) -> List[ToolDefinition]:
        tools = list(self._catalog.enabled())
        if not tools:
            if require_tools:
                msg = "No MCP tools are enabled; cannot run a tool-enabled turn."
                logger.error(msg)
                raise ServiceUnavailableError(msg)
            logger.warning("No MCP tools enabled; returning the informational response without creating a run.")
        return tools

    async def _start_run(self, thread_id: str, agent_id: str, content: str) -> RunState:
        await self._adapter.create_message(thread_id, content)
        run = await self._adapter.create_run(thread_id, agent_id)
        logger.info("Started run: %s, status: %s", run.run_id, run.status.value)
        return run

    @staticmethod
    def _raise_if_failed(run: RunState) -> None:
        if run.status is RunStatus.FAILED:
            msg = run.last_error or "Run failed without an error message."
            logger.error("Run %s failed: %s", run.run_id, msg)
            raise UpstreamFailureError(msg, run_id=run.run_id)

    @staticmethod
    def _current_turn(messages: Sequence[ThreadMessage]) -> List[ThreadMessage]:
        """Messages after the latest user message, i.e. the answer being written."""
        for index in range(len(messages) - 1, -1, -1):
            if messages[index].role.lower() == "user":
                return list(messages[index + 1 :])
        return list(messages)

    async def _wait_for_completion(self, run: RunState, auto_approve: bool) -> RunState:
        """Poll until the run is terminal, resolving tool calls on the way."""
        async with aclosing(self._poll(run, auto_approve)) as states:
            async for run in states:
                pass
        return run

    async def _poll(self, run: RunState, auto_approve: bool) -> AsyncGenerator[RunState, None]:
        """Yield every observed state of the run, the terminal one last.

        A ``requires_action`` batch is resolved and submitted before the next
        poll. Leaving early through an error, a cancellation or ``aclose()``
        cancels a run that is not terminal yet.
        """
        polls = 0
        try:
            yield run
            while not run.status.is_terminal:
                if run.status is RunStatus.REQUIRES_ACTION and run.pending_calls:
                    logger.info("Run %s requires action: %d tool call(s).", run.run_id, len(run.pending_calls))
                    results = await self.resolve_tool_calls(run.pending_calls, auto_approve)
                    await self._adapter.submit_tool_outputs(run.thread_id, run.run_id, results)
                    logger.info("Submitted %d tool output(s) for run %s.", len(results), run.run_id)

                if polls >= self._max_polls:
                    msg = f"Run {run.run_id} did not finish after {polls} polls."
                    logger.error(msg)
                    raise UpstreamFailureError(msg, run_id=run.run_id)

                await asyncio.sleep(self._poll_interval)
                run = await self._adapter.get_run(run.thread_id, run.run_id)
                polls += 1
                logger.debug("Run %s status: %s", run.run_id, run.status.value)
                yield run
        except BaseException:
            if not run.status.is_terminal:
                thread_id, run_id = run.thread_id, run.run_id
                await self._release(f"run {run_id}", lambda: self._adapter.cancel_run(thread_id, run_id))
            raise

    @asynccontextmanager
    async def _turn_thread(self, thread_handle: Optional[str]) -> AsyncIterator[str]:
        if thread_handle:
            yield thread_handle
            return

        thread_id = await self._adapter.create_thread()
        logger.info("Created thread: %s", thread_id)
        try:
            yield thread_id
        except BaseException:
            # A thread created here is only handed to the caller when the turn succeeds
            await self._release(f"thread {thread_id}", lambda: self._adapter.delete_thread(thread_id))
            raise

    @asynccontextmanager
    async def _transient_agent(self, tools: Sequence[ToolDefinition]) -> AsyncIterator[str]:
        instructions = self._instructions or default_instructions(self._server_label, tools)
        agent_id = await self._adapter.create_agent(name=self._agent_name, instructions=instructions, tools=tools)
        logger.info("Created MCP agent: %s with %d tool(s).", agent_id, len(tools))
        try:
            yield agent_id
        finally:
            await self._release(f"agent {agent_id}", lambda: self._adapter.delete_agent(agent_id))

    @staticmethod
    async def _release(description: str, action: Callable[[], Awaitable[None]]) -> None:
        """Best-effort cleanup that survives the cancellation of the calling task."""
        try:
            await asyncio.shield(action())
            logger.info("Released %s.", description)
        except asyncio.CancelledError:
            logger.warning("Cancelled while releasing %s; the release continues in the background.", description)
            raise
        except Exception as exc:
            logger.warning("Failed to release %s: %s", description, exc)

    @staticmethod
    def _compose_message(message: Optional[str], attachments: Optional[Sequence[str]]) -> str:
        names = [name for name in attachments or () if name]
        text = (message or "").strip()
        if not text and not names:
            msg = "Message or attachments are required."
            logger.error(msg)
            raise InvalidRequestError(msg)

        if not names:
            return text
        if not text:
            text = ATTACHMENTS_ONLY_MESSAGE
        return f"{text}\n\n[Note: {len(names)} file(s) attached: {', '.join(names)}]"
