"""Translation of provider run and message objects into the orchestrator's models.

Azure AI Agents and OpenAI Assistants return objects of the same shape (``status``,
``required_action.submit_tool_outputs.tool_calls``, ``content[].text.value``), so
both adapters share these helpers and read the objects by attribute.
"""

from typing import Any, List, Optional

from foundry_agent.agent_core.logger import get_logger
from foundry_agent.agent_core.runs import Annotation, MessageContent, RunState, RunStatus, ThreadMessage
from foundry_agent.agent_core.tools.models import ToolCallRequest

logger = get_logger(__name__)


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value) or "")


def _error_message(error: Any) -> Optional[str]:
    if error is None:
        return None
    if isinstance(error, dict):
        message, code = error.get("message"), error.get("code")
    else:
        message, code = getattr(error, "message", None), getattr(error, "code", None)
    if message and code:
        return f"{code}: {message}"
    return message or (str(code) if code else None)


def pending_calls(run: Any) -> List[ToolCallRequest]:
    """Extract the function calls a run is waiting for.

    Args:
        run: Provider run object.

    Returns:
        The pending calls; non-function tool calls are skipped.
    """
    action = getattr(run, "required_action", None)
    submit = getattr(action, "submit_tool_outputs", None)
    tool_calls = getattr(submit, "tool_calls", None) or []

    calls = []
    for tool_call in tool_calls:
        function = getattr(tool_call, "function", None)
        if function is None:
            logger.warning("Skipping non-function tool call %s.", getattr(tool_call, "id", "?"))
            continue
        calls.append(ToolCallRequest(call_id=tool_call.id, name=function.name, arguments=function.arguments))
    return calls


def to_run_state(run: Any, thread_id: str) -> RunState:
    """Translate a provider run into a ``RunState``.

    Args:
        run: Provider run object.
        thread_id: Thread the run belongs to, used when the run does not carry it.

    Returns:
        The run state with its pending calls and last error.
    """
    status, reason = RunStatus.from_runtime(getattr(run, "status", None))
    if reason:
        logger.warning("Run %s: %s", run.id, reason)

    last_error = _error_message(getattr(run, "last_error", None))
    if status is RunStatus.FAILED and not last_error:
        last_error = reason

    return RunState(
        run_id=run.id,
        thread_id=getattr(run, "thread_id", None) or thread_id,
        status=status,
        pending_calls=pending_calls(run) if status is RunStatus.REQUIRES_ACTION else [],
        last_error=last_error,
    )


def _annotation(raw: Any) -> Annotation:
    kind = _enum_value(getattr(raw, "type", "")) or "url_citation"
    citation = getattr(raw, "url_citation", None)
    if citation is not None:
        return Annotation(type=kind, url=getattr(citation, "url", None), title=getattr(citation, "title", None))
    return Annotation(type=kind, url=getattr(raw, "url", None), title=getattr(raw, "title", None))


def to_thread_message(message: Any) -> ThreadMessage:
    """Translate a provider thread message into a ``ThreadMessage``."""
    items = []
    for content in getattr(message, "content", None) or []:
        kind = _enum_value(getattr(content, "type", ""))
        text = getattr(content, "text", None)
        if text is None:
            items.append(MessageContent(type=kind))
            continue
        value = text if isinstance(text, str) else getattr(text, "value", None)
        annotations = [] if isinstance(text, str) else getattr(text, "annotations", None) or []
        items.append(MessageContent(type=kind, text=value, annotations=[_annotation(a) for a in annotations]))

    return ThreadMessage(
        role=_enum_value(getattr(message, "role", "")),
        content=items,
        id=getattr(message, "id", None),
        run_id=getattr(message, "run_id", None),
    )
