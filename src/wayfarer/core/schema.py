"""
Schema definitions for planner <-> agent <-> tool messages.

These data models serve as the contract between the planner LLM, the orchestration loop, the
conversation history and individual tools.  We keep them separate from runtime logic so they can be
imported anywhere without side-effects.
"""

import uuid
from enum import Enum
from typing import (
    Annotated,
    Any,
    Dict,
    List,
    Literal,
    Optional,
    Union,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)


def new_call_id() -> str:
    """Return a fresh id used to pair a tool request with its result."""
    return f"call_{uuid.uuid4().hex[:12]}"


# ---------------------------------------------------------------------------
# Tool calls and results
# ---------------------------------------------------------------------------
class ToolCall(BaseModel):
    """A call that the planner wants the agent to execute."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=new_call_id, description="Pairs the request with its result")
    name: str = Field(..., description="Registered tool name")
    args: Dict[str, Any] = Field(
        default_factory=dict, description="Raw keyword arguments, not yet validated"
    )


class ToolErrorKind(str, Enum):
    """Recoverable failure classes; all of them are folded back into the conversation."""

    INVALID_ARGUMENTS = "invalid_arguments"
    UNKNOWN_CAPABILITY = "unknown_capability"
    UPSTREAM_ERROR = "upstream_error"


class ToolResult(BaseModel):
    """Outcome of one tool call: an observation, or a failure rendered as one."""

    model_config = ConfigDict(frozen=True)

    call_id: str
    name: str
    content: str = Field(..., min_length=1, description="Observation text fed to the planner")
    error: Optional[ToolErrorKind] = None
    fields: List[str] = Field(
        default_factory=list, description="Offending argument names for invalid_arguments"
    )

    @property
    def ok(self) -> bool:
        """True when the tool produced a regular observation."""
        return self.error is None

    @classmethod
    def failure(
        cls,
        call: ToolCall,
        kind: ToolErrorKind,
        message: str,
        fields: List[str] | None = None,
    ) -> "ToolResult":
        """Build a failure result whose message doubles as the observation."""
        return cls(
            call_id=call.id,
            name=call.name,
            content=f"Error ({kind.value}): {message}",
            error=kind,
            fields=fields or [],
        )


# ---------------------------------------------------------------------------
# Tool catalog
# ---------------------------------------------------------------------------
class ParameterSpec(BaseModel):
    """One named, typed argument of a tool."""

    name: str
    type: str
    required: bool
    description: str = ""


class ToolDescriptor(BaseModel):
    """Static metadata the planner uses to pick and parameterise a tool."""

    name: str
    description: str
    parameters: List[ParameterSpec] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Planner responses
# ---------------------------------------------------------------------------
class FinalAnswer(BaseModel):
    """The planner is done and replies to the user."""

    kind: Literal["answer"] = "answer"
    text: str = Field(..., min_length=1)


class ToolCallRequest(BaseModel):
    """The planner wants one or more tools executed before reasoning again."""

    kind: Literal["tool_calls"] = "tool_calls"
    calls: List[ToolCall] = Field(..., min_length=1)


PlannerResponse = Annotated[Union[FinalAnswer, ToolCallRequest], Field(discriminator="kind")]


# ---------------------------------------------------------------------------
# Conversation turns
# ---------------------------------------------------------------------------
class TurnRole(str, Enum):
    """Who produced a turn."""

    USER = "user"
    ASSISTANT = "assistant"
    TOOL_REQUEST = "tool_request"
    TOOL_RESULT = "tool_result"


class Turn(BaseModel):
    """A single, immutable step of the conversation history."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., ge=0, description="Sequence index assigned at append time")
    role: TurnRole
    content: Union[str, ToolCall, ToolResult]

    @property
    def text(self) -> str:
        """Plain-text rendering of the turn content."""
        if isinstance(self.content, ToolCall):
            return f"{self.content.name}({self.content.args})"
        if isinstance(self.content, ToolResult):
            return self.content.content
        return self.content
