"""
Append-only conversation history with explicit rollback.

The history is the single source of truth for the context passed to every planner call.  Turns are
never edited in place: a failed user turn is undone with :meth:`ConversationHistory.rollback_last`
and an unrecoverable failure wipes everything with :meth:`ConversationHistory.clear`.
"""

import logging
from typing import (
    Iterator,
    List,
    Tuple,
    Union,
)

from wayfarer.core.schema import (
    ToolCall,
    ToolResult,
    Turn,
    TurnRole,
)

logger = logging.getLogger(__name__)

TurnContent = Union[str, ToolCall, ToolResult]


class HistoryInvariantError(RuntimeError):
    """Raised when an append would break the ordering/pairing rules of the history."""


class ConversationHistory:
    """Ordered, append-only sequence of :class:`Turn` objects."""

    def __init__(self) -> None:
        self._turns: List[Turn] = []
        self._next_index = 0

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def append(self, role: TurnRole, content: TurnContent) -> Turn:
        """Add a turn at the end and return it with its sequence index."""
        self._check_append(role, content)
        turn = Turn(index=self._next_index, role=role, content=content)
        self._turns.append(turn)
        self._next_index += 1
        logger.debug("History +%s #%d", role.value, turn.index)
        return turn

    def snapshot(self) -> Tuple[Turn, ...]:
        """Return the current turns; the tuple is detached from later appends."""
        return tuple(self._turns)

    def rollback_last(self, n: int) -> None:
        """Remove the *n* most recent turns."""
        if n < 0 or n > len(self._turns):
            raise ValueError(f"Cannot roll back {n} turns from a history of {len(self._turns)}")
        if n:
            del self._turns[-n:]
            logger.debug("History rolled back %d turn(s), %d left", n, len(self._turns))

    def clear(self) -> None:
        """Drop every turn."""
        self._turns.clear()
        logger.debug("History cleared")

    def last(self) -> Turn | None:
        """Return the most recent turn, if any."""
        return self._turns[-1] if self._turns else None

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.snapshot())

    # ------------------------------------------------------------------ #
    # Invariants
    # ------------------------------------------------------------------ #
    def _check_append(self, role: TurnRole, content: TurnContent) -> None:
        previous = self.last()
        if (
            previous is not None
            and previous.role is TurnRole.TOOL_REQUEST
            and role is not TurnRole.TOOL_RESULT
        ):
            raise HistoryInvariantError("a tool_request must be followed by its tool_result")

        if role is TurnRole.TOOL_REQUEST:
            if not isinstance(content, ToolCall):
                raise HistoryInvariantError("tool_request turns must carry a ToolCall")
            return

        if role is TurnRole.TOOL_RESULT:
            if not isinstance(content, ToolResult):
                raise HistoryInvariantError("tool_result turns must carry a ToolResult")
            if (
                previous is None
                or previous.role is not TurnRole.TOOL_REQUEST
                or not isinstance(previous.content, ToolCall)
                or previous.content.id != content.call_id
            ):
                raise HistoryInvariantError(
                    f"tool_result for '{content.call_id}' does not follow its tool_request"
                )
            return

        if not isinstance(content, str):
            raise HistoryInvariantError(f"{role.value} turns must carry text")
