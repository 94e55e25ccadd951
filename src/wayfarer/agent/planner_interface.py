"""
Planner interface for Wayfarer.

This module is the only place that *directly* calls an LLM.  Everything else (agent loop, tools,
memory) stays model-agnostic.

A planner receives the conversation so far plus the frozen tool catalog and returns exactly one of:

1. :class:`~wayfarer.core.schema.FinalAnswer` - a reply for the user, or
2. :class:`~wayfarer.core.schema.ToolCallRequest` - tools to run before the next planning step.

We support two back-ends out of the box, OpenAI and Anthropic.  Additional providers can be added by
subclassing :class:`BasePlanner`, implementing :meth:`BasePlanner._complete` and registering via
:func:`register_planner`.
"""

import json
import logging
import re
from abc import (
    ABC,
    abstractmethod,
)
from datetime import date
from typing import (
    Any,
    Callable,
    ClassVar,
    Dict,
    List,
    Optional,
    Sequence,
    Type,
)

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    model_validator,
)

from wayfarer.config import settings
from wayfarer.core.schema import (
    FinalAnswer,
    PlannerResponse,
    ToolCall,
    ToolCallRequest,
    ToolDescriptor,
    ToolResult,
    Turn,
    TurnRole,
    new_call_id,
)

logger = logging.getLogger(__name__)


class PlannerError(RuntimeError):
    """Base class for planner failures."""


class MalformedResponseError(PlannerError):
    """The model replied, but with neither a usable answer nor usable tool calls."""


class PlannerTransportError(PlannerError):
    """The model service could not be reached (network, auth, timeout, HTTP status)."""


# ---------------------------------------------------------------------------
# Pydantic models for response validation
# ---------------------------------------------------------------------------
class _WireToolCall(BaseModel):
    """One tool call as emitted by the model."""

    id: Optional[str] = None
    name: str = Field(..., min_length=1)
    args: Dict[str, Any] = Field(default_factory=dict)


class PlannerReply(BaseModel):
    """Validates planner replies from LLMs."""

    model_config = ConfigDict(extra="ignore")

    tool_calls: Optional[List[_WireToolCall]] = None
    answer: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def _single_tool_form(cls, data: Any) -> Any:
        # Models sometimes fall back to {"tool": "<name>", "args": {...}}
        if isinstance(data, dict) and "tool" in data and "tool_calls" not in data:
            data = dict(data)
            data["tool_calls"] = [{"name": data.pop("tool"), "args": data.pop("args", {})}]
        return data


_REPLY_KEYS = {"answer", "tool_calls", "tool"}


# ---------------------------------------------------------------------------
# Registry helpers
# ---------------------------------------------------------------------------
_PLANNER_REGISTRY: dict[str, Type["BasePlanner"]] = {}


def register_planner(name: str) -> Callable:
    """Decorator to register a planner class under *name*."""

    def wrapper(cls: Type["BasePlanner"]) -> Type["BasePlanner"]:
        _PLANNER_REGISTRY[name] = cls
        return cls

    return wrapper


def load_planner(name: str | None = None, **kwargs: Any) -> "BasePlanner":
    """
    Factory that returns an instantiated planner.

    Fallback order:
    1. *name* arg
    2. ``settings.PLANNER`` env option
    """

    target = name or settings.PLANNER
    cls = _PLANNER_REGISTRY.get(target.lower())
    if cls is None:
        raise ValueError(f"Planner '{target}' is not registered.")
    return cls(**kwargs)


# ---------------------------------------------------------------------------
# Base class
# ---------------------------------------------------------------------------
class BasePlanner(ABC):
    """Abstract planner that converts conversation turns -> tool calls / answer."""

    # Common system prompt for all planners
    SYSTEM_PROMPT: ClassVar[
        str
    ] = """\
You are Wayfarer, a helpful travel assistant that can THINK and ACT.
Today's date is {today}. Convert relative dates such as "this Friday" to YYYY-MM-DD before
passing them to a tool.
Always respond to the user in the same language they used.
When you need to use tools, respond with JSON like:
{{"tool_calls": [{{"name": "<tool>", "args": {{ ... }}}}]}}
If no tool is needed, respond with:
{{"answer": "<final reply to user>"}}
Only one object, no extra text. Only use the tools listed below.
"""

    def _build_prompt(self, catalog: Sequence[ToolDescriptor], today: date | None = None) -> str:
        """Build the system prompt with the available tools and their parameters."""
        prompt = self.SYSTEM_PROMPT.format(today=(today or date.today()).isoformat())
        if not catalog:
            return prompt + "\nNo tools are available; answer directly."

        tools_info = []
        for tool in catalog:
            param_desc = ", ".join(
                f"{p.name}{'' if p.required else '?'}: {p.type}" for p in tool.parameters
            )
            lines = [f"- {tool.name}({param_desc}): {tool.description}"]
            lines.extend(
                f"    {p.name}: {p.description}" for p in tool.parameters if p.description
            )
            tools_info.append("\n".join(lines))

        return prompt + "\nAvailable tools:\n" + "\n".join(tools_info)

    @staticmethod
    def _render_messages(turns: Sequence[Turn]) -> List[Dict[str, str]]:
        """Turn the history into alternating chat messages."""
        messages: List[Dict[str, str]] = []
        for turn in turns:
            content = turn.content
            if turn.role is TurnRole.TOOL_REQUEST and isinstance(content, ToolCall):
                payload = {"tool_calls": [content.model_dump()]}
                messages.append({"role": "assistant", "content": json.dumps(payload)})
            elif turn.role is TurnRole.TOOL_RESULT and isinstance(content, ToolResult):
                messages.append(
                    {
                        "role": "user",
                        "content": f"[tool_result {content.name} id={content.call_id}]\n"
                        + content.content,
                    }
                )
            elif turn.role is TurnRole.ASSISTANT:
                messages.append({"role": "assistant", "content": turn.text})
            else:
                messages.append({"role": "user", "content": turn.text})
        return messages

    def _parse_response(self, content: str | None) -> PlannerResponse:
        """Parse and validate the LLM response using Pydantic."""
        content = (content or "").strip()
        if not content:
            raise MalformedResponseError("Planner returned an empty response")

        if "{" not in content:
            # Plain prose: the model skipped the JSON envelope but did answer.
            return FinalAnswer(text=content)

        # Prose may mention braces; only a reply that leads with JSON must parse as one
        json_shaped = content.startswith("{") or "```" in content
        cleaned = _sanitize_json_string(content)
        try:
            data = json.loads(cleaned)
        except json.JSONDecodeError as exc:
            if not json_shaped:
                return FinalAnswer(text=content)
            logger.error("Failed to parse LLM response: %s", exc)
            raise MalformedResponseError(f"Unparseable planner response: {content!r}") from exc

        if not json_shaped and not (isinstance(data, dict) and _REPLY_KEYS & data.keys()):
            return FinalAnswer(text=content)
        try:
            parsed = PlannerReply.model_validate(data)
        except ValidationError as exc:
            logger.error("Failed to parse LLM response: %s", exc)
            raise MalformedResponseError(f"Unparseable planner response: {content!r}") from exc

        if parsed.tool_calls and parsed.answer:
            raise MalformedResponseError("Planner returned both tool calls and an answer")
        if parsed.tool_calls:
            return ToolCallRequest(
                calls=[
                    ToolCall(id=call.id or new_call_id(), name=call.name, args=call.args)
                    for call in parsed.tool_calls
                ]
            )
        if parsed.answer and parsed.answer.strip():
            return FinalAnswer(text=parsed.answer.strip())
        raise MalformedResponseError(
            f"Planner returned neither tool calls nor an answer: {content!r}"
        )

    def plan(self, turns: Sequence[Turn], catalog: Sequence[ToolDescriptor]) -> PlannerResponse:
        """
        Ask the model for the next step.

        Raises
        ------
        PlannerTransportError
            If the model service cannot be reached.
        MalformedResponseError
            If the reply is neither a final answer nor well-formed tool calls.
        """
        system_prompt = self._build_prompt(catalog)
        content = self._complete(system_prompt, self._render_messages(turns))
        logger.debug("%s planner response: %s", type(self).__name__, content)
        return self._parse_response(content)

    def ensure_ready(self) -> None:
        """Fail fast at startup when the back-end cannot be used (e.g. no API key)."""

    @abstractmethod
    def _complete(self, system_prompt: str, messages: List[Dict[str, str]]) -> str | None:
        """Send one request to the model and return its raw text."""


# ---------------------------------------------------------------------------
# Concrete planners
# ---------------------------------------------------------------------------
@register_planner("openai")
class OpenAIPlanner(BasePlanner):
    """OpenAI-based planner using JSON mode."""

    def __init__(self, client: Any = None, model: str | None = None):
        self._client = client
        self._model = model or settings.OPENAI_MODEL

    def ensure_ready(self) -> None:
        self._get_client()

    def _get_client(self) -> Any:
        if self._client is None:
            import openai  # pylint: disable=import-outside-toplevel

            if not settings.OPENAI_API_KEY:
                raise PlannerTransportError("OPENAI_API_KEY is not set")
            self._client = openai.OpenAI(
                api_key=settings.OPENAI_API_KEY, timeout=settings.REQUEST_TIMEOUT
            )
        return self._client

    def _complete(self, system_prompt: str, messages: List[Dict[str, str]]) -> str | None:
        import openai  # pylint: disable=import-outside-toplevel

        client = self._get_client()
        try:
            resp = client.chat.completions.create(
                model=self._model,
                messages=[{"role": "system", "content": system_prompt}, *messages],
                temperature=settings.TEMPERATURE,
                response_format={"type": "json_object"},
            )
        except openai.OpenAIError as exc:
            logger.error("OpenAI planner error: %s", exc)
            raise PlannerTransportError(f"Error calling OpenAI: {exc}") from exc

        if not resp.choices:
            return None
        return resp.choices[0].message.content


def _sanitize_json_string(content: str) -> str:
    """Clean up JSON strings returned by LLMs."""
    # Strip markdown code blocks if present
    if "```" in content:
        match = re.search(r"```(?:json)?\s*(.+?)```", content, re.DOTALL)
        if match:
            content = match.group(1).strip()

    # Remove control characters except whitespace
    content = "".join(ch for ch in content if ch >= " " or ch in "\n\r\t")

    # Keep only the outermost {...} object, skipping braces inside strings
    open_idx = content.find("{")
    if open_idx < 0:
        return content
    depth = 0
    in_string = False
    escaped = False
    for i in range(open_idx, len(content)):
        ch = content[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
            if depth == 0:
                return content[open_idx : i + 1]
    return content[open_idx:]


@register_planner("anthropic")
class AnthropicPlanner(BasePlanner):
    """Anthropic Claude-based planner."""

    def __init__(self, client: Any = None, model: str | None = None):
        self._client = client
        self._model = model or settings.ANTHROPIC_MODEL

    def ensure_ready(self) -> None:
        self._get_client()

    def _get_client(self) -> Any:
        if self._client is None:
            import anthropic  # pylint: disable=import-outside-toplevel

            if not settings.ANTHROPIC_API_KEY:
                raise PlannerTransportError("ANTHROPIC_API_KEY is not set")
            self._client = anthropic.Anthropic(
                api_key=settings.ANTHROPIC_API_KEY, timeout=settings.REQUEST_TIMEOUT
            )
        return self._client

    def _complete(self, system_prompt: str, messages: List[Dict[str, str]]) -> str | None:
        import anthropic  # pylint: disable=import-outside-toplevel

        client = self._get_client()
        try:
            response = client.messages.create(
                model=self._model,
                max_tokens=4096,
                system=system_prompt,
                messages=messages,
                temperature=settings.TEMPERATURE,
            )
        except anthropic.AnthropicError as exc:
            logger.error("Anthropic planner error: %s", exc)
            raise PlannerTransportError(f"Error calling Anthropic: {exc}") from exc

        # Concatenate text blocks; other block types carry no answer text
        return "".join(
            block.text for block in response.content if getattr(block, "type", None) == "text"
        )
