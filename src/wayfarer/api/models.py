"""
Pydantic models for Wayfarer API requests and responses.
This module defines the request and response schemas used by the Wayfarer API.
"""

from typing import (
    List,
)

from pydantic import (
    BaseModel,
    Field,
)

from wayfarer.core.schema import Turn


# ---------------------------------------------------------------------------
# Pydantic request / response schema
# ---------------------------------------------------------------------------
class MessageRequest(BaseModel):
    """Incoming user message."""

    message: str = Field(..., min_length=1, description="User message for Wayfarer")


class MessageResponse(BaseModel):
    """API response returned to the caller."""

    reply: str
    tools_used: List[str] = Field(default_factory=list)


class FailureDetail(BaseModel):
    """Body of the ``detail`` field when a turn fails."""

    kind: str
    message: str


class HistoryResponse(BaseModel):
    """Current conversation history."""

    turns: List[Turn]
