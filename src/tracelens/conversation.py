"""Bounded conversation context used to assemble follow-up prompts."""

from __future__ import annotations

import threading
from collections import deque

from tracelens.config import DEFAULT_WINDOW_SIZE
from tracelens.core.exceptions import ValidationError
from tracelens.core.models import FailureContext, UserQuery
from tracelens.logging import get_logger

logger = get_logger(__name__)

FAILURE_CONTEXT_HEADER = "### Test Failure Context ###"
CONVERSATION_HEADER = "### Recent Conversation Context ###"


def _require_text(text: str | None, what: str) -> str:
    if text is None or not text.strip():
        raise ValidationError(f"{what} cannot be empty")
    return text


class ConversationContext:
    """Current failure context plus a sliding window of recent user queries.

    The window is a fixed-capacity FIFO: adding past capacity evicts the
    oldest query. All mutations and reads take the same lock, so prompt
    building always sees a consistent snapshot.
    """

    def __init__(self, window_size: int = DEFAULT_WINDOW_SIZE) -> None:
        if window_size <= 0:
            raise ValidationError("Window size must be positive")
        self._queries: deque[UserQuery] = deque(maxlen=window_size)
        self._failure_context: FailureContext | None = None
        self._lock = threading.Lock()

    @property
    def window_size(self) -> int:
        return self._queries.maxlen

    @property
    def queries(self) -> tuple[UserQuery, ...]:
        """Snapshot of the window, oldest first."""
        with self._lock:
            return tuple(self._queries)

    @property
    def failure_context(self) -> FailureContext | None:
        with self._lock:
            return self._failure_context

    @property
    def query_count(self) -> int:
        with self._lock:
            return len(self._queries)

    @property
    def has_failure_context(self) -> bool:
        return self.failure_context is not None

    @property
    def is_empty(self) -> bool:
        with self._lock:
            return self._failure_context is None and not self._queries

    def set_failure_context(self, text: str) -> None:
        """Replace the failure context and stamp it with the current time."""
        _require_text(text, "Failure context")
        with self._lock:
            self._failure_context = FailureContext(text=text.strip())
        logger.debug("failure_context_set", chars=len(text))

    def add_user_query(self, text: str) -> UserQuery:
        """Append a trimmed query, evicting the oldest one when the window is full."""
        query = UserQuery(text=_require_text(text, "Query text"))
        with self._lock:
            self._queries.append(query)
            size = len(self._queries)
        logger.debug("user_query_added", window=size, window_size=self.window_size)
        return query

    def set_window_size(self, size: int) -> None:
        """Resize the window, dropping the oldest queries that no longer fit."""
        if size <= 0:
            raise ValidationError("Window size must be positive")
        with self._lock:
            # deque(maxlen=...) keeps the rightmost (newest) items
            self._queries = deque(self._queries, maxlen=size)

    def build_context_string(self, current_query_text: str) -> str:
        """
        Render the failure context and recent queries for a prompt.

        The failure block always comes first and the queries are listed
        oldest to newest. Either block is omitted when empty.

        Args:
            current_query_text: The query being answered; must not be blank.

        Returns:
            The rendered context, or an empty string if there is nothing to show.
        """
        _require_text(current_query_text, "Query text")
        with self._lock:
            failure_context = self._failure_context
            queries = tuple(self._queries)

        blocks = []
        if failure_context is not None:
            blocks.append(f"{FAILURE_CONTEXT_HEADER}\n{failure_context.text}\n")
        if queries:
            lines = "\n".join(f"User: {query.text}" for query in queries)
            blocks.append(f"{CONVERSATION_HEADER}\n{lines}\n")
        return "\n".join(blocks)

    def clear(self) -> None:
        """Forget the failure context and every query."""
        with self._lock:
            self._queries.clear()
            self._failure_context = None
        logger.debug("conversation_cleared")
