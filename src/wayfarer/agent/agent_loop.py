"""
Main orchestration loop for Wayfarer.

One user turn runs through the states::

    AWAITING_INPUT -> REASONING -> {DISPATCHING -> OBSERVING -> REASONING}* -> ANSWERED | FAILED

Recoverable tool problems are folded back into the history as observations.  Loop-level failures
(malformed planner output, too many iterations) undo the turn; a transport failure towards the
planner wipes the whole history.
"""

from __future__ import annotations

import logging
import threading
from enum import Enum
from typing import (
    List,
    Tuple,
)

from wayfarer.agent.planner_interface import (
    BasePlanner,
    MalformedResponseError,
    PlannerTransportError,
)
from wayfarer.agent.tool_executor import execute_tools
from wayfarer.config import settings
from wayfarer.core.schema import (
    FinalAnswer,
    ToolCall,
    ToolCallRequest,
    ToolDescriptor,
    Turn,
    TurnRole,
)
from wayfarer.memory.history import (
    ConversationHistory,
    HistoryInvariantError,
)
from wayfarer.tools import ToolRegistry

logger = logging.getLogger(__name__)


class LoopState(str, Enum):
    """States of the per-turn reason/act/observe machine."""

    AWAITING_INPUT = "awaiting_input"
    REASONING = "reasoning"
    DISPATCHING = "dispatching"
    OBSERVING = "observing"
    ANSWERED = "answered"
    FAILED = "failed"


class FailureKind(str, Enum):
    """User-visible failure classes of a turn."""

    MALFORMED_RESPONSE = "malformed_response"
    EXHAUSTED_ITERATIONS = "exhausted_iterations"
    TRANSPORT_FATAL = "transport_fatal"
    INTERNAL_FATAL = "internal_fatal"

    @property
    def fatal(self) -> bool:
        return self in (FailureKind.TRANSPORT_FATAL, FailureKind.INTERNAL_FATAL)


class TurnFailedError(RuntimeError):
    """Raised by :meth:`AgentSession.handle_turn` when no answer could be produced."""

    def __init__(self, kind: FailureKind, message: str):
        super().__init__(message)
        self.kind = kind
        self.message = message


# ---------------------------------------------------------------------------
# Agent session
# ---------------------------------------------------------------------------
class AgentSession:
    """
    Owns the conversation history, the frozen tool catalog and the planner for one conversation.

    Turns are processed strictly one at a time.
    """

    def __init__(
        self,
        planner: BasePlanner,
        registry: ToolRegistry,
        max_iterations: int | None = None,
        max_parallel_tools: int | None = None,
    ):
        if not registry.frozen:
            registry.freeze()
        self.planner = planner
        self.registry = registry
        self.max_iterations = max_iterations or settings.MAX_ITERATIONS
        self.max_parallel_tools = max_parallel_tools or settings.MAX_PARALLEL_TOOLS
        self._history = ConversationHistory()
        self._catalog: Tuple[ToolDescriptor, ...] = tuple(registry.catalog())
        self._lock = threading.Lock()
        self.state = LoopState.AWAITING_INPUT

    # ------------------------------------------------------------------ #
    # Read-only views
    # ------------------------------------------------------------------ #
    @property
    def history(self) -> Tuple[Turn, ...]:
        """Snapshot of the conversation so far."""
        return self._history.snapshot()

    @property
    def catalog(self) -> Tuple[ToolDescriptor, ...]:
        return self._catalog

    def last_exchange(self) -> Tuple[Turn, ...]:
        """Turns of the most recent user turn, from the user message onwards."""
        turns = self._history.snapshot()
        for pos in range(len(turns) - 1, -1, -1):
            if turns[pos].role is TurnRole.USER:
                return turns[pos:]
        return ()

    def tools_used(self) -> List[str]:
        """Names of the tools called during the most recent user turn, in call order."""
        names: List[str] = []
        for turn in self.last_exchange():
            if isinstance(turn.content, ToolCall) and turn.content.name not in names:
                names.append(turn.content.name)
        return names

    def reset(self) -> None:
        """Forget the conversation."""
        with self._lock:
            self._history.clear()

    # ------------------------------------------------------------------ #
    # Turn handling
    # ------------------------------------------------------------------ #
    def handle_turn(self, user_msg: str) -> str:
        """
        Run the reason/act/observe loop for one user message.

        Returns
        -------
        str
            The final answer, already recorded in the history.

        Raises
        ------
        TurnFailedError
            If the turn ended in ``FAILED``.  For non-fatal kinds the history is exactly as it was
            before the call; for fatal kinds it is empty.
        """
        with self._lock:
            return self._handle_turn(user_msg)

    def handle_turn_with_tools(self, user_msg: str) -> Tuple[str, List[str]]:
        """Like :meth:`handle_turn`, also returning the tools called, read under the same lock."""
        with self._lock:
            reply = self._handle_turn(user_msg)
            return reply, self.tools_used()

    def _handle_turn(self, user_msg: str) -> str:
        start_len = len(self._history)
        try:
            self._history.append(TurnRole.USER, user_msg)
            return self._run_loop()
        except MalformedResponseError as exc:
            self._fail_turn(start_len)
            raise TurnFailedError(
                FailureKind.MALFORMED_RESPONSE,
                "The assistant produced an unusable response. Please try rephrasing.",
            ) from exc
        except _IterationsExhausted as exc:
            self._fail_turn(start_len)
            raise TurnFailedError(
                FailureKind.EXHAUSTED_ITERATIONS,
                f"No answer after {self.max_iterations} reasoning steps. "
                "Please retry or rephrase your question.",
            ) from exc
        except PlannerTransportError as exc:
            self._fail_fatal(exc)
            raise TurnFailedError(
                FailureKind.TRANSPORT_FATAL, f"Agent failure: {exc}. History has been cleared."
            ) from exc
        except HistoryInvariantError as exc:
            self._fail_fatal(exc)
            raise TurnFailedError(
                FailureKind.INTERNAL_FATAL,
                f"Internal agent error: {exc}. History has been cleared.",
            ) from exc
        except Exception as exc:
            self._fail_fatal(exc)
            raise
        finally:
            self._transition(LoopState.AWAITING_INPUT)

    def _run_loop(self) -> str:
        for iteration in range(1, self.max_iterations + 1):
            self._transition(LoopState.REASONING, iteration)
            response = self.planner.plan(self._history.snapshot(), self._catalog)

            if isinstance(response, FinalAnswer):
                self._history.append(TurnRole.ASSISTANT, response.text)
                self._transition(LoopState.ANSWERED, iteration)
                return response.text

            if isinstance(response, ToolCallRequest):
                self._dispatch(response)
                continue

            raise MalformedResponseError(f"Unexpected planner response type: {type(response)!r}")

        raise _IterationsExhausted()

    def _dispatch(self, request: ToolCallRequest) -> None:
        self._transition(LoopState.DISPATCHING)
        results = execute_tools(self.registry, request.calls, self.max_parallel_tools)
        for call, result in zip(request.calls, results):
            self._history.append(TurnRole.TOOL_REQUEST, call)
            self._history.append(TurnRole.TOOL_RESULT, result)
            if result.ok:
                logger.info("Tool '%s' returned %d chars", call.name, len(result.content))
            else:
                logger.info("Tool '%s' degraded: %s", call.name, result.error.value)
        self._transition(LoopState.OBSERVING)

    # ------------------------------------------------------------------ #
    # Failure handling
    # ------------------------------------------------------------------ #
    def _fail_turn(self, start_len: int) -> None:
        self._transition(LoopState.FAILED)
        appended = len(self._history) - start_len
        self._history.rollback_last(appended)
        logger.warning("Turn failed; rolled back %d turn(s)", appended)

    def _fail_fatal(self, exc: BaseException) -> None:
        self._transition(LoopState.FAILED)
        logger.exception("Fatal agent failure, clearing history: %s", exc)
        self._history.clear()

    def _transition(self, state: LoopState, iteration: int | None = None) -> None:
        self.state = state
        if iteration is None:
            logger.debug("Agent state -> %s", state.value)
        else:
            logger.debug("Agent state -> %s (iteration %d)", state.value, iteration)


class _IterationsExhausted(Exception):
    """Internal signal: the loop ran out of reasoning steps."""

