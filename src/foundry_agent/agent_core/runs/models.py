"""Provider-agnostic models of a run and of the conversation it produces."""

from __future__ import annotations

from enum import Enum
from typing import List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..tools.models import ToolCallRequest


class RunStatus(str, Enum):
    """The five run statuses the orchestrator distinguishes."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    REQUIRES_ACTION = "requires_action"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)

    @classmethod
    def from_runtime(cls, value: object) -> Tuple["RunStatus", Optional[str]]:
        """Map a runtime status onto the five known statuses.

        Runtimes report a few more states than the orchestrator cares about.
        ``cancelling`` is still transient; ``cancelled``, ``expired`` and
        ``incomplete`` end the run and are treated as failures.

        Args:
            value: Status as reported by the runtime (enum or string).

        Returns:
            The mapped status and, for mapped failures, a reason.
        """
        raw = str(getattr(value, "value", value) or "").strip().lower().replace("-", "_")
        try:
            return cls(raw), None
        except ValueError:
            pass
        if raw == "cancelling":
            return cls.IN_PROGRESS, None
        if raw in ("cancelled", "canceled", "expired", "incomplete"):
            return cls.FAILED, f"Run ended with status '{raw}'."
        return cls.FAILED, f"Run reported an unknown status '{raw}'."


class RunState(BaseModel):
    """The orchestrator's view of one run.

    Attributes:
        run_id: Runtime identifier of the run.
        thread_id: Thread the run belongs to.
        status: Current status.
        pending_calls: Tool calls awaiting output; only set while ``requires_action``.
        last_error: Error reported by the runtime for failed runs.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True)

    run_id: str
    thread_id: str
    status: RunStatus
    pending_calls: List[ToolCallRequest] = Field(default_factory=list)
    last_error: Optional[str] = None


class Annotation(BaseModel):
    """An annotation attached to a text content item, e.g. a URL citation."""

    type: str = "url_citation"
    url: Optional[str] = None
    title: Optional[str] = None


class MessageContent(BaseModel):
    """One content item of a thread message."""

    type: str = "text"
    text: Optional[str] = None
    annotations: List[Annotation] = Field(default_factory=list)


class ThreadMessage(BaseModel):
    """A message of the conversation thread, in chronological order."""

    role: str
    content: List[MessageContent] = Field(default_factory=list)
    id: Optional[str] = None
    run_id: Optional[str] = None


class Citation(BaseModel):
    """A source cited by the assistant."""

    title: str = ""
    url: str


class ExtractedResponse(BaseModel):
    """Text and citations of the final assistant message."""

    text: str
    citations: List[Citation] = Field(default_factory=list)


class TurnResult(BaseModel):
    """What a caller gets back from one conversational turn.

    Attributes:
        text: Final assistant text.
        citations: Cited sources, in order of appearance.
        thread_handle: Thread to pass back for the next turn.
        run_id: Identifier of the run, when one was created.
        agent_id: Identifier of the transient agent, when one was created.
    """

    text: str
    citations: List[Citation] = Field(default_factory=list)
    thread_handle: str = ""
    run_id: Optional[str] = None
    agent_id: Optional[str] = None


class TurnUpdate(BaseModel):
    """One increment of a streamed turn.

    Attributes:
        status: Run status observed when the update was produced.
        delta: Assistant text added since the previous update.
        run_id: Identifier of the run, when one was created.
        result: The complete turn; only set on the last update.
    """

    status: RunStatus
    delta: str = ""
    run_id: Optional[str] = None
    result: Optional[TurnResult] = None
