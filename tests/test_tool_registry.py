"""
Tests for tool validation, the registry and ordered dispatch.

Run with:
$ pytest -q
"""

import pytest
from conftest import EchoTool

from wayfarer.agent.tool_executor import execute_tools
from wayfarer.core.schema import (
    ToolCall,
    ToolErrorKind,
)
from wayfarer.tools import (
    RegistryFrozenError,
    ToolRegistry,
)


def test_dispatch_success(registry: ToolRegistry) -> None:
    """Dispatch should return the tool's observation when the call is valid."""
    call = ToolCall(name="echo", args={"label": "hi"})
    result = registry.dispatch(call)

    assert result.ok
    assert result.content == "echo:hi"
    assert result.call_id == call.id


def test_dispatch_unknown_tool(registry: ToolRegistry) -> None:
    """An unknown name becomes an unknown_capability observation, not an exception."""
    result = registry.dispatch(ToolCall(name="not_a_tool"))

    assert result.error is ToolErrorKind.UNKNOWN_CAPABILITY
    assert "not_a_tool" in result.content
    assert "echo" in result.content


def test_dispatch_bad_args_never_runs_tool(registry: ToolRegistry, echo_tool: EchoTool) -> None:
    """Missing arguments yield invalid_arguments naming the field; the tool body is skipped."""
    result = registry.dispatch(ToolCall(name="echo", args={"delay": "soon"}))

    assert result.error is ToolErrorKind.INVALID_ARGUMENTS
    assert result.fields == ["label", "delay"]
    assert "label" in result.content
    assert echo_tool.completed == []


def test_invalid_arguments_are_deterministic(registry: ToolRegistry) -> None:
    """The same malformed call always reports the same fields."""
    first = registry.dispatch(ToolCall(name="echo", args={}))
    second = registry.dispatch(ToolCall(name="echo", args={}))

    assert first.fields == second.fields == ["label"]
    assert first.content == second.content


def test_unexpected_tool_exception_is_folded() -> None:
    """A crashing tool degrades to an upstream_error observation."""

    class Boom(EchoTool):
        name = "boom"

        def run(self, args):  # type: ignore[override]
            raise KeyError("kaput")

    reg = ToolRegistry()
    reg.register(Boom())
    result = reg.dispatch(ToolCall(name="boom", args={"label": "x"}))

    assert result.error is ToolErrorKind.UPSTREAM_ERROR
    assert "kaput" in result.content


def test_observation_is_bounded() -> None:
    class Chatty(EchoTool):
        name = "chatty"
        max_observation_chars = 50

        def run(self, args):  # type: ignore[override]
            return "x" * 500

    reg = ToolRegistry()
    reg.register(Chatty())
    result = reg.dispatch(ToolCall(name="chatty", args={"label": "x"}))

    assert len(result.content) == 50
    assert result.content.endswith("[truncated]")


def test_duplicate_names_rejected() -> None:
    reg = ToolRegistry()
    reg.register(EchoTool())

    with pytest.raises(ValueError):
        reg.register(EchoTool())


def test_frozen_registry_rejects_registration(registry: ToolRegistry) -> None:
    class Other(EchoTool):
        name = "other"

    with pytest.raises(RegistryFrozenError):
        registry.register(Other())


def test_catalog_describes_parameters(registry: ToolRegistry) -> None:
    (descriptor,) = registry.catalog()
    params = {p.name: p for p in descriptor.parameters}

    assert descriptor.name == "echo"
    assert params["label"].required and params["label"].type == "string"
    assert not params["delay"].required and params["delay"].type == "number"


def test_execute_tools_preserves_request_order(
    registry: ToolRegistry, echo_tool: EchoTool
) -> None:
    """Results come back in request order even when completion order differs."""
    calls = [
        ToolCall(name="echo", args={"label": "A", "delay": 0.3}),
        ToolCall(name="echo", args={"label": "B", "delay": 0.15}),
        ToolCall(name="echo", args={"label": "C"}),
    ]

    results = execute_tools(registry, calls, max_workers=3)

    assert [r.content for r in results] == ["echo:A", "echo:B", "echo:C"]
    assert [r.call_id for r in results] == [c.id for c in calls]
    assert echo_tool.completed == ["C", "B", "A"]


def test_execute_tools_empty(registry: ToolRegistry) -> None:
    assert execute_tools(registry, []) == []
