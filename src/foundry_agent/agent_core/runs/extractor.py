"""Extraction of the final answer from a terminal conversation state."""

from typing import List, Sequence

from .models import Citation, ExtractedResponse, ThreadMessage

ASSISTANT_ROLES = frozenset({"assistant", "agent"})
CITATION_TYPE = "url_citation"


class ResponseExtractor:
    """Pulls the final assistant text and its citations out of the thread messages.

    Only the most recent assistant message counts. Its text items are joined
    with newlines in encounter order; every ``url_citation`` annotation with a
    URL becomes a citation, duplicates included. File citations are skipped.
    """

    @staticmethod
    def extract(messages: Sequence[ThreadMessage]) -> ExtractedResponse:
        """Extract text and citations.

        Args:
            messages: Thread messages in chronological order.

        Returns:
            The extracted response; empty text when no assistant message exists.
        """
        latest = next((m for m in reversed(messages) if m.role.lower() in ASSISTANT_ROLES), None)
        if latest is None:
            return ExtractedResponse(text="", citations=[])

        text_parts: List[str] = []
        citations: List[Citation] = []
        for item in latest.content:
            if item.type not in ("text", "output_text"):
                continue
            if item.text:
                text_parts.append(item.text)
            for annotation in item.annotations:
                if annotation.type == CITATION_TYPE and annotation.url:
                    citations.append(Citation(title=annotation.title or "", url=annotation.url))

        return ExtractedResponse(text="\n".join(text_parts), citations=citations)
