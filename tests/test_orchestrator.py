import asyncio
import json
from typing import Any, Callable, List

import httpx
import pytest

from foundry_agent.agent_core.exceptions import (
    ConfigurationError,
    InvalidRequestError,
    ServiceUnavailableError,
    UpstreamFailureError,
)
from foundry_agent.agent_core.runs import (
    NO_TOOLS_CONFIGURED_MESSAGE,
    Annotation,
    RunOrchestrator,
    RunStatus,
    ThreadMessage,
)
from foundry_agent.agent_core.runs.models import MessageContent
from foundry_agent.agent_core.tools import ArgumentNormalizer, ToolCallRequest, ToolCatalog, ToolInvoker
from foundry_agent.mcp_gateway import McpGatewayClient, github_tool_catalog

from conftest import RUN_ID, THREAD_ID, FakeGateway, FakeRunAdapter, run_state

QUEUED = RunStatus.QUEUED
IN_PROGRESS = RunStatus.IN_PROGRESS
REQUIRES_ACTION = RunStatus.REQUIRES_ACTION
COMPLETED = RunStatus.COMPLETED
FAILED = RunStatus.FAILED


def answer(text: str, *urls: str) -> Callable[[FakeRunAdapter], List[ThreadMessage]]:
    def _messages(adapter: FakeRunAdapter) -> List[ThreadMessage]:
        return [
            ThreadMessage(role="user", content=[MessageContent(text="question")]),
            ThreadMessage(
                role="assistant",
                content=[MessageContent(text=text, annotations=[Annotation(url=url) for url in urls])],
            ),
        ]

    return _messages


def build(
    adapter: FakeRunAdapter,
    catalog: ToolCatalog,
    normalizer: ArgumentNormalizer,
    gateway: FakeGateway,
    **kwargs: Any,
) -> RunOrchestrator:
    return RunOrchestrator(
        adapter=adapter,
        catalog=catalog,
        normalizer=normalizer,
        invoker=ToolInvoker(catalog=catalog, gateway=gateway),
        **kwargs,
    )


@pytest.mark.asyncio
async def test_batch_is_submitted_before_next_poll(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    calls = [
        ToolCallRequest(call_id="call_1", name="list_issues", arguments='{"owner": "octo", "repo": "hello"}'),
        ToolCallRequest(call_id="call_2", name="search_repositories", arguments='{"query": "language:go"}'),
    ]
    adapter = make_adapter(
        [
            run_state(QUEUED),
            run_state(IN_PROGRESS),
            run_state(REQUIRES_ACTION, calls),
            run_state(IN_PROGRESS),
            run_state(COMPLETED),
        ],
        messages=answer("Done."),
    )

    result = await build(adapter, catalog, normalizer, gateway).run_turn("List issues and Go repos")

    assert result.text == "Done."
    assert result.thread_handle == THREAD_ID
    assert result.run_id == RUN_ID

    names = adapter.names()
    submit_index = names.index("submit_tool_outputs")
    assert names[:submit_index] == [
        "create_agent",
        "create_thread",
        "create_message",
        "create_run",
        "get_run",
        "get_run",
    ]
    assert names[submit_index + 1 :] == ["get_run", "get_run", "list_messages", "delete_agent"]
    assert adapter.events[submit_index] == ("submit_tool_outputs", ["call_1", "call_2"])
    assert len(adapter.submitted) == 1
    assert {name for name, _ in gateway.calls} == {"list_issues", "search_repositories"}
    # A thread handed back to the caller is kept for the next turn
    assert "delete_thread" not in names


@pytest.mark.asyncio
async def test_text_is_only_read_after_completion(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter(
        [run_state(QUEUED), run_state(IN_PROGRESS), run_state(IN_PROGRESS), run_state(COMPLETED)],
        messages=answer("final"),
    )

    await build(adapter, catalog, normalizer, gateway).run_turn("hello")

    names = adapter.names()
    assert names.count("list_messages") == 1
    assert names.index("list_messages") > max(i for i, name in enumerate(names) if name == "get_run")
    assert fast_sleep == [0.5, 0.5, 0.5]


@pytest.mark.asyncio
async def test_empty_catalog_makes_no_runtime_calls(
    make_adapter: Any, normalizer: ArgumentNormalizer, gateway: FakeGateway
) -> None:
    catalog = github_tool_catalog(enabled=False)
    adapter = make_adapter([])

    result = await build(adapter, catalog, normalizer, gateway).run_turn("find repos", thread_handle="thread_x")

    assert result.text == NO_TOOLS_CONFIGURED_MESSAGE
    assert result.citations == []
    assert result.thread_handle == "thread_x"
    assert adapter.events == []
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_empty_catalog_can_be_an_error(
    make_adapter: Any, normalizer: ArgumentNormalizer, gateway: FakeGateway
) -> None:
    adapter = make_adapter([])
    orchestrator = build(adapter, ToolCatalog(), normalizer, gateway)

    with pytest.raises(ServiceUnavailableError):
        await orchestrator.run_turn("find repos", require_tools=True)
    assert adapter.events == []


@pytest.mark.asyncio
async def test_missing_credential_still_completes_run(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, fast_sleep: Any
) -> None:
    gateway = FakeGateway(has_token=False)
    calls = [ToolCallRequest(call_id="call_1", name="search_repositories", arguments='{"query": "azure"}')]
    adapter = make_adapter(
        [run_state(QUEUED), run_state(REQUIRES_ACTION, calls), run_state(COMPLETED)],
        messages=answer("I could not reach GitHub: the token is missing."),
    )

    result = await build(adapter, catalog, normalizer, gateway).run_turn("find repos")

    [submitted] = adapter.submitted
    [output] = submitted
    assert output.call_id == "call_1"
    assert output.success is False
    payload = json.loads(output.serialized())
    assert payload["success"] is False
    assert "missing" in payload["error"]
    assert "COPILOT_MCP_TOKEN" in payload["error"]
    assert result.text == "I could not reach GitHub: the token is missing."
    assert gateway.calls == []


@pytest.mark.asyncio
async def test_search_scenario_returns_repository_url(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, fast_sleep: Any
) -> None:
    def search(name: str, arguments: Any) -> Any:
        assert arguments == {"query": "pushed:>=2026-03-01"}
        return {"total_count": 1, "items": [{"full_name": "octo/fresh", "html_url": "https://github.com/octo/fresh"}]}

    def summarize(adapter: FakeRunAdapter) -> List[ThreadMessage]:
        # The assistant answers from the submitted tool output
        output = json.loads(adapter.submitted[0][0].serialized())
        url = output["items"][0]["html_url"]
        return answer(f"The most recently updated repository is {url}.", url)(adapter)

    gateway = FakeGateway(responder=search)
    calls = [ToolCallRequest(call_id="call_1", name="search_repositories", arguments='{"query": "sort:updated-desc"}')]
    adapter = make_adapter(
        [run_state(QUEUED), run_state(REQUIRES_ACTION, calls), run_state(IN_PROGRESS), run_state(COMPLETED)],
        messages=summarize,
    )

    result = await build(adapter, catalog, normalizer, gateway).run_turn(
        "Find the most recently updated GitHub repositories"
    )

    assert "https://github.com/octo/fresh" in result.text
    assert [c.url for c in result.citations] == ["https://github.com/octo/fresh"]
    assert gateway.calls == [("search_repositories", {"query": "pushed:>=2026-03-01"})]


@pytest.mark.asyncio
async def test_invalid_arguments_become_failure_output(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    calls = [
        ToolCallRequest(call_id="bad", name="list_issues", arguments="{owner: octo"),
        ToolCallRequest(call_id="good", name="list_issues", arguments='{"owner": "octo", "repo": "r"}'),
    ]
    adapter = make_adapter(
        [run_state(REQUIRES_ACTION, calls), run_state(COMPLETED)],
        messages=answer("ok"),
    )

    await build(adapter, catalog, normalizer, gateway).run_turn("issues")

    outputs = {result.call_id: result for result in adapter.submitted[0]}
    assert outputs["bad"].success is False
    assert "Failed to parse arguments" in outputs["bad"].output["error"]
    assert outputs["good"].success is True
    assert gateway.calls == [("list_issues", {"owner": "octo", "repo": "r"})]


@pytest.mark.asyncio
async def test_unknown_tool_gets_failure_output(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    calls = [ToolCallRequest(call_id="call_1", name="delete_repository", arguments="{}")]
    adapter = make_adapter([run_state(REQUIRES_ACTION, calls), run_state(COMPLETED)], messages=answer("no"))

    await build(adapter, catalog, normalizer, gateway).run_turn("delete it")

    [[output]] = adapter.submitted
    assert output.success is False
    assert "Unknown tool" in output.output["error"]


@pytest.mark.asyncio
async def test_declined_calls_when_auto_approve_is_off(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    calls = [ToolCallRequest(call_id="call_1", name="create_issue", arguments='{"owner": "o", "repo": "r", "title": "t"}')]
    adapter = make_adapter([run_state(REQUIRES_ACTION, calls), run_state(COMPLETED)], messages=answer("skipped"))

    result = await build(adapter, catalog, normalizer, gateway).run_turn("open an issue", auto_approve=False)

    [[output]] = adapter.submitted
    assert output.success is False
    assert "not approved" in output.output["error"]
    assert gateway.calls == []
    assert result.text == "skipped"


@pytest.mark.asyncio
async def test_duplicate_call_ids_get_one_output(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway
) -> None:
    orchestrator = build(make_adapter([]), catalog, normalizer, gateway)
    call = ToolCallRequest(call_id="call_1", name="list_issues", arguments="{}")

    results = await orchestrator.resolve_tool_calls([call, call])

    assert [result.call_id for result in results] == ["call_1"]


@pytest.mark.asyncio
async def test_calls_of_one_batch_run_concurrently(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer
) -> None:
    started = 0
    both_started = asyncio.Event()

    class SlowGateway(FakeGateway):
        async def call_tool(self, name: str, arguments: Any) -> Any:
            nonlocal started
            started += 1
            if started == 2:
                both_started.set()
            await asyncio.wait_for(both_started.wait(), timeout=1)
            return await super().call_tool(name, arguments)

    orchestrator = build(make_adapter([]), catalog, normalizer, SlowGateway())
    calls = [
        ToolCallRequest(call_id="a", name="list_issues", arguments="{}"),
        ToolCallRequest(call_id="b", name="create_issue", arguments="{}"),
    ]

    results = await orchestrator.resolve_tool_calls(calls)

    assert [result.call_id for result in results] == ["a", "b"]
    assert all(result.success for result in results)


@pytest.mark.asyncio
async def test_failed_run_raises_and_cleans_up(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(QUEUED), run_state(FAILED, last_error="rate_limit_exceeded: slow down")])

    with pytest.raises(UpstreamFailureError, match="rate_limit_exceeded") as exc_info:
        await build(adapter, catalog, normalizer, gateway).run_turn("hello")

    assert exc_info.value.run_id == RUN_ID
    names = adapter.names()
    assert "list_messages" not in names
    assert "cancel_run" not in names
    assert names[-2:] == ["delete_thread", "delete_agent"]


@pytest.mark.asyncio
async def test_caller_thread_is_reused_and_kept_on_failure(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(QUEUED), run_state(FAILED, last_error="boom")])

    with pytest.raises(UpstreamFailureError):
        await build(adapter, catalog, normalizer, gateway).run_turn("hello", thread_handle="thread_prev")

    names = adapter.names()
    assert "create_thread" not in names
    assert "delete_thread" not in names
    assert ("create_message", "thread_prev", "hello") in adapter.events
    assert names[-1] == "delete_agent"


@pytest.mark.asyncio
async def test_poll_limit_cancels_run(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(QUEUED), run_state(IN_PROGRESS), run_state(IN_PROGRESS)])

    with pytest.raises(UpstreamFailureError, match="did not finish"):
        await build(adapter, catalog, normalizer, gateway, max_polls=2).run_turn("hello")

    names = adapter.names()
    assert names.count("get_run") == 2
    assert names[-3:] == ["cancel_run", "delete_thread", "delete_agent"]


@pytest.mark.asyncio
async def test_cancellation_cancels_run_and_deletes_agent(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(QUEUED), run_state(IN_PROGRESS)], block_polls_after=1)
    orchestrator = build(adapter, catalog, normalizer, gateway)

    task = asyncio.create_task(orchestrator.run_turn("hello"))
    await asyncio.wait_for(adapter.polling.wait(), timeout=1)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    names = adapter.names()
    assert names[-3:] == ["cancel_run", "delete_thread", "delete_agent"]


@pytest.mark.asyncio
async def test_agent_delete_failure_does_not_hide_result(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(COMPLETED)], messages=answer("fine"))

    async def broken_delete(agent_id: str) -> None:
        raise RuntimeError("service unavailable")

    adapter.delete_agent = broken_delete  # type: ignore[method-assign]

    result = await build(adapter, catalog, normalizer, gateway).run_turn("hello")

    assert result.text == "fine"


@pytest.mark.asyncio
async def test_agent_advertises_only_enabled_tools(
    make_adapter: Any, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    catalog = github_tool_catalog(allowed=["search_repositories"])
    adapter = make_adapter([run_state(COMPLETED)], messages=answer("fine"))

    await build(adapter, catalog, normalizer, gateway, agent_name="GitHubAgent").run_turn("hello")

    assert adapter.events[0] == ("create_agent", "GitHubAgent")
    assert [tool.name for tool in adapter.agent_tools] == ["search_repositories"]


@pytest.mark.asyncio
async def test_attachments_are_noted_in_message(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(COMPLETED)], messages=answer("read"))

    await build(adapter, catalog, normalizer, gateway).run_turn("", attachments=["a.txt", "b.md"])

    [content] = [event[2] for event in adapter.events if event[0] == "create_message"]
    assert content == "Please analyze the attached file(s).\n\n[Note: 2 file(s) attached: a.txt, b.md]"


@pytest.mark.asyncio
async def test_empty_message_is_rejected(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway
) -> None:
    adapter = make_adapter([])
    with pytest.raises(InvalidRequestError):
        await build(adapter, catalog, normalizer, gateway).run_turn("   ")
    assert adapter.events == []


@pytest.mark.parametrize("interval", [0.1, 1.5])
def test_poll_interval_is_bounded(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, interval: float
) -> None:
    with pytest.raises(ConfigurationError):
        build(make_adapter([]), catalog, normalizer, gateway, poll_interval=interval)


@pytest.mark.asyncio
async def test_malformed_rpc_error_becomes_failure_output(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, fast_sleep: Any
) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"jsonrpc": "2.0", "id": json.loads(request.content)["id"], "error": "boom"})

    gateway = McpGatewayClient(token="ghp_test", client=httpx.AsyncClient(transport=httpx.MockTransport(handler)))
    calls = [ToolCallRequest(call_id="call_1", name="list_issues", arguments='{"owner": "octo", "repo": "hello"}')]
    adapter = make_adapter([run_state(REQUIRES_ACTION, calls), run_state(COMPLETED)], messages=answer("sorry"))

    async with gateway:
        result = await build(adapter, catalog, normalizer, gateway).run_turn("issues")

    [[output]] = adapter.submitted
    assert output.call_id == "call_1"
    assert output.success is False
    assert "boom" in output.output["error"]
    assert result.text == "sorry"
    assert "cancel_run" not in adapter.names()


@pytest.mark.asyncio
async def test_unexpected_gateway_exception_becomes_failure_output(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, fast_sleep: Any
) -> None:
    def responder(name: str, arguments: Any) -> Any:
        if name == "create_issue":
            raise RuntimeError("connection pool exhausted")
        return {"ok": True}

    gateway = FakeGateway(responder=responder)
    calls = [
        ToolCallRequest(call_id="a", name="create_issue", arguments='{"owner": "o", "repo": "r", "title": "t"}'),
        ToolCallRequest(call_id="b", name="list_issues", arguments='{"owner": "o", "repo": "r"}'),
    ]
    adapter = make_adapter([run_state(REQUIRES_ACTION, calls), run_state(COMPLETED)], messages=answer("partly"))

    await build(adapter, catalog, normalizer, gateway).run_turn("do both")

    outputs = {result.call_id: result for result in adapter.submitted[0]}
    assert set(outputs) == {"a", "b"}
    assert outputs["a"].success is False
    assert "connection pool exhausted" in outputs["a"].output["error"]
    assert outputs["b"].output == {"ok": True}


def growing_answer(*texts: str) -> Callable[[FakeRunAdapter], List[ThreadMessage]]:
    """Messages whose assistant answer grows with every listing, as seen while a run writes it."""

    def _messages(adapter: FakeRunAdapter) -> List[ThreadMessage]:
        listing = adapter.names().count("list_messages")
        text = texts[min(listing, len(texts)) - 1]
        return answer(text, "https://github.com/octo/fresh")(adapter)

    return _messages


@pytest.mark.asyncio
async def test_stream_reports_progress_and_text_deltas(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    calls = [ToolCallRequest(call_id="call_1", name="search_repositories", arguments='{"query": "azure"}')]
    adapter = make_adapter(
        [run_state(QUEUED), run_state(REQUIRES_ACTION, calls), run_state(IN_PROGRESS), run_state(COMPLETED)],
        messages=growing_answer("The newest", "The newest repository is octo/fresh."),
    )

    updates = [update async for update in build(adapter, catalog, normalizer, gateway).stream_turn("newest repo?")]

    assert [update.status for update in updates] == [QUEUED, REQUIRES_ACTION, IN_PROGRESS, COMPLETED]
    assert [update.delta for update in updates] == ["", "", "The newest", " repository is octo/fresh."]
    assert all(update.result is None for update in updates[:-1])

    result = updates[-1].result
    assert result is not None
    assert result.text == "".join(update.delta for update in updates)
    assert [c.url for c in result.citations] == ["https://github.com/octo/fresh"]
    assert result.thread_handle == THREAD_ID
    assert len(adapter.submitted) == 1
    names = adapter.names()
    assert names[-1] == "delete_agent"
    assert "delete_thread" not in names


@pytest.mark.asyncio
async def test_stream_does_not_repeat_previous_answer(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    def history(adapter: FakeRunAdapter) -> List[ThreadMessage]:
        messages = [
            ThreadMessage(role="user", content=[MessageContent(text="first question")]),
            ThreadMessage(role="assistant", content=[MessageContent(text="old answer")]),
            ThreadMessage(role="user", content=[MessageContent(text="second question")]),
        ]
        if adapter.names().count("list_messages") > 1:
            messages.append(ThreadMessage(role="assistant", content=[MessageContent(text="new answer")]))
        return messages

    adapter = make_adapter([run_state(IN_PROGRESS), run_state(COMPLETED)], messages=history)

    updates = [
        update
        async for update in build(adapter, catalog, normalizer, gateway).stream_turn(
            "second question", thread_handle="thread_prev"
        )
    ]

    assert [update.delta for update in updates] == ["", "new answer"]
    assert updates[-1].result is not None
    assert updates[-1].result.text == "new answer"
    assert updates[-1].result.thread_handle == "thread_prev"


@pytest.mark.asyncio
async def test_closing_stream_early_cancels_run_and_cleans_up(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(QUEUED), run_state(IN_PROGRESS), run_state(COMPLETED)])
    stream = build(adapter, catalog, normalizer, gateway).stream_turn("hello")

    first = await anext(stream)
    await stream.aclose()

    assert first.status is QUEUED
    names = adapter.names()
    assert "get_run" not in names
    assert names[-3:] == ["cancel_run", "delete_thread", "delete_agent"]


@pytest.mark.asyncio
async def test_stream_of_failed_run_raises_and_cleans_up(
    make_adapter: Any, catalog: ToolCatalog, normalizer: ArgumentNormalizer, gateway: FakeGateway, fast_sleep: Any
) -> None:
    adapter = make_adapter([run_state(QUEUED), run_state(FAILED, last_error="server_error: oops")])
    seen: List[RunStatus] = []

    with pytest.raises(UpstreamFailureError, match="server_error"):
        async for update in build(adapter, catalog, normalizer, gateway).stream_turn("hello"):
            seen.append(update.status)

    assert seen == [QUEUED]
    names = adapter.names()
    assert "cancel_run" not in names
    assert names[-2:] == ["delete_thread", "delete_agent"]


@pytest.mark.asyncio
async def test_stream_with_empty_catalog_yields_the_fixed_message(
    make_adapter: Any, normalizer: ArgumentNormalizer, gateway: FakeGateway
) -> None:
    adapter = make_adapter([])

    updates = [update async for update in build(adapter, ToolCatalog(), normalizer, gateway).stream_turn("hi")]

    [update] = updates
    assert update.status is COMPLETED
    assert update.delta == NO_TOOLS_CONFIGURED_MESSAGE
    assert update.result is not None
    assert update.result.text == NO_TOOLS_CONFIGURED_MESSAGE
    assert adapter.events == []
