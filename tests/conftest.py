"""Shared fakes for the Wayfarer test-suite."""

import json
import time
from typing import (
    Any,
    Dict,
    List,
    Sequence,
)

import pytest
from pydantic import BaseModel

from wayfarer.agent.agent_loop import AgentSession
from wayfarer.agent.planner_interface import BasePlanner
from wayfarer.tools import (
    Tool,
    ToolRegistry,
)


def answer(text: str) -> str:
    """Raw model reply carrying a final answer."""
    return json.dumps({"answer": text})


def tool_calls(*calls: tuple) -> str:
    """Raw model reply requesting ``(name, args)`` tool calls."""
    return json.dumps({"tool_calls": [{"name": name, "args": args} for name, args in calls]})


class ScriptedPlanner(BasePlanner):
    """Planner whose model replies are scripted strings (or exceptions to raise)."""

    def __init__(self, replies: Sequence[Any]):
        self.replies = list(replies)
        self.requests: List[List[Dict[str, str]]] = []

    def _complete(self, system_prompt: str, messages: List[Dict[str, str]]) -> str | None:
        self.requests.append(messages)
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return reply


class FakeRetriever:
    """In-memory stand-in for the travel-guide index."""

    def __init__(self, passages: List[str] | None = None, error: Exception | None = None):
        self.passages = passages or []
        self.error = error
        self.queries: List[tuple] = []

    def query(self, text: str, k: int = 4) -> List[str]:
        self.queries.append((text, k))
        if self.error is not None:
            raise self.error
        return self.passages[:k]


class EchoArgs(BaseModel):
    label: str
    delay: float = 0.0


class EchoTool(Tool):
    """Returns its label after an optional delay; records completion order."""

    name = "echo"
    description = "Echo the label back."
    args_model = EchoArgs

    def __init__(self) -> None:
        self.completed: List[str] = []

    def run(self, args: EchoArgs) -> str:
        time.sleep(args.delay)
        self.completed.append(args.label)
        return f"echo:{args.label}"


@pytest.fixture
def echo_tool() -> EchoTool:
    return EchoTool()


@pytest.fixture
def registry(echo_tool: EchoTool) -> ToolRegistry:
    reg = ToolRegistry()
    reg.register(echo_tool)
    reg.freeze()
    return reg


@pytest.fixture
def make_session(registry: ToolRegistry):
    """Factory building an AgentSession around scripted model replies."""

    def _make(replies: Sequence[Any], max_iterations: int = 4) -> AgentSession:
        return AgentSession(
            planner=ScriptedPlanner(replies), registry=registry, max_iterations=max_iterations
        )

    return _make
