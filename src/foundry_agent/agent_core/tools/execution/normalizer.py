"""Repair and validation of raw tool-call arguments before dispatch."""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, Optional, Pattern

from ...exceptions import InvalidArgumentsError
from ...logger import get_logger

logger = get_logger(__name__)

SEARCH_REPOSITORIES_TOOL = "search_repositories"
DEFAULT_RECENCY_DAYS = 30
DEFAULT_SORT_ONLY_TOKENS = ("sort:updated-desc", "sort:updated-asc", "sort:updated")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ArgumentNormalizer:
    """Turns the raw argument payload of a tool call into a JSON value ready for the invoker.

    Every payload is parsed; text that is not JSON is rejected with
    ``InvalidArgumentsError`` so it never reaches the gateway. Tool specific
    repair rules run afterwards; tools without a rule pass through unchanged.

    The repository search rule exists because some completions send a query that
    only contains a sort qualifier, which the search endpoint rejects. Those tokens
    are removed, and an empty query is replaced by a recency filter.
    """

    def __init__(
        self,
        *,
        recency_days: int = DEFAULT_RECENCY_DAYS,
        sort_only_tokens: Iterable[str] = DEFAULT_SORT_ONLY_TOKENS,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        """Initialize the normalizer.

        Args:
            recency_days: Window of the default ``pushed:>=`` query, in days.
            sort_only_tokens: Query tokens stripped from repository searches (case-insensitive).
            clock: Returns the current UTC time. Defaults to ``datetime.now(timezone.utc)``.
        """
        self._recency_days = recency_days
        self._sort_only_tokens = frozenset(token.lower() for token in sort_only_tokens)
        # A token only matches as a whole word; its leading gap goes with it
        alternatives = "|".join(re.escape(token) for token in sorted(self._sort_only_tokens, key=len, reverse=True))
        self._sort_only_pattern: Optional[Pattern[str]] = None
        if alternatives:
            self._sort_only_pattern = re.compile(rf"(?:^|\s+)(?:{alternatives})(?=\s|$)", re.IGNORECASE)
        self._clock = clock or _utc_now
        self._rules: Dict[str, Callable[[Any], Any]] = {
            SEARCH_REPOSITORIES_TOOL: self._repair_repository_search,
        }

    def normalize(self, tool_name: str, raw_arguments: Any) -> Any:
        """Parse and repair the arguments of one tool call.

        Args:
            tool_name: Name of the tool being called. Unknown names are allowed.
            raw_arguments: JSON text, an already decoded mapping, or None.

        Returns:
            The normalized JSON value (usually a dictionary).

        Raises:
            InvalidArgumentsError: If the payload is text that is not valid JSON.
        """
        arguments = self._parse(tool_name, raw_arguments)

        rule = self._rules.get(tool_name)
        if rule is None:
            return arguments
        return rule(arguments)

    def default_search_query(self) -> str:
        """Return the recency filter used in place of an empty repository query."""
        since = (self._clock().astimezone(timezone.utc) - timedelta(days=self._recency_days)).date()
        return f"pushed:>={since.isoformat()}"

    def _parse(self, tool_name: str, raw_arguments: Any) -> Any:
        if raw_arguments is None:
            return {}

        if isinstance(raw_arguments, (bytes, bytearray)):
            raw_arguments = raw_arguments.decode("utf-8", errors="replace")

        if isinstance(raw_arguments, str):
            if not raw_arguments.strip():
                return {}
            try:
                return json.loads(raw_arguments)
            except json.JSONDecodeError as exc:
                msg = f"Failed to parse arguments for tool '{tool_name}': {exc}"
                logger.warning(msg)
                raise InvalidArgumentsError(msg) from exc

        if isinstance(raw_arguments, dict):
            return dict(raw_arguments)

        # Lists, numbers and booleans are already decoded JSON values
        try:
            json.dumps(raw_arguments)
        except (TypeError, ValueError) as exc:
            msg = f"Arguments for tool '{tool_name}' are not JSON serializable: {exc}"
            logger.warning(msg)
            raise InvalidArgumentsError(msg) from exc
        return raw_arguments

    def _repair_repository_search(self, arguments: Any) -> Any:
        if not isinstance(arguments, dict):
            return arguments

        query = arguments.get("query")
        if query is not None and not isinstance(query, str):
            return arguments

        remainder, removed = query or "", 0
        if self._sort_only_pattern is not None:
            remainder, removed = self._sort_only_pattern.subn("", remainder)
        remainder = remainder.strip()

        if not remainder:
            repaired = self.default_search_query()
            logger.info("Replaced empty or sort-only query for '%s' with a recency filter.", SEARCH_REPOSITORIES_TOOL)
        elif removed:
            repaired = remainder
            logger.info("Stripped sort-only tokens from '%s' query.", SEARCH_REPOSITORIES_TOOL)
        else:
            return arguments

        return {**arguments, "query": repaired}
