"""Run orchestration: models, runtime protocol, polling state machine and answer extraction."""

from .models import (
    Annotation,
    Citation,
    ExtractedResponse,
    MessageContent,
    RunState,
    RunStatus,
    ThreadMessage,
    TurnResult,
    TurnUpdate,
)
from .adapter import RunAdapter
from .extractor import ResponseExtractor
from .orchestrator import (
    DEFAULT_AGENT_NAME,
    DEFAULT_MAX_POLLS,
    DEFAULT_POLL_INTERVAL,
    NO_TOOLS_CONFIGURED_MESSAGE,
    RunOrchestrator,
    default_instructions,
)

__all__ = [
    "Annotation",
    "Citation",
    "ExtractedResponse",
    "MessageContent",
    "RunState",
    "RunStatus",
    "ThreadMessage",
    "TurnResult",
    "TurnUpdate",
    "RunAdapter",
    "ResponseExtractor",
    "DEFAULT_AGENT_NAME",
    "DEFAULT_MAX_POLLS",
    "DEFAULT_POLL_INTERVAL",
    "NO_TOOLS_CONFIGURED_MESSAGE",
    "RunOrchestrator",
    "default_instructions",
]
