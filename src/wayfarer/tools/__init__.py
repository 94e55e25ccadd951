"""
Tool registry for Wayfarer.

A tool wraps one external capability behind a uniform contract: a name, a description, a pydantic
model describing its arguments and a :meth:`Tool.run` method producing an observation.  Calling a
tool never raises for capability-level problems; bad arguments, unknown names and upstream failures
all come back as a :class:`~wayfarer.core.schema.ToolResult` the planner can read and react to.

Tools are collected in a :class:`ToolRegistry`, which is frozen before the agent loop starts:
    registry = ToolRegistry()
    registry.register(FlightSearchTool())
    registry.freeze()
"""

import logging
from abc import (
    ABC,
    abstractmethod,
)
from typing import (
    Any,
    ClassVar,
    Dict,
    List,
    Type,
)

from pydantic import (
    BaseModel,
    ValidationError,
)

from wayfarer.config import settings
from wayfarer.core.schema import (
    ParameterSpec,
    ToolCall,
    ToolDescriptor,
    ToolErrorKind,
    ToolResult,
)

logger = logging.getLogger(__name__)

_TRUNCATION_MARK = "\n...[truncated]"


class ToolUpstreamError(RuntimeError):
    """Raised inside :meth:`Tool.run` when the service behind a tool reports a failure."""


class RegistryFrozenError(RuntimeError):
    """Raised when a tool is registered after the catalog was frozen."""


# ---------------------------------------------------------------------------
# Tool base class
# ---------------------------------------------------------------------------
class Tool(ABC):
    """Abstract tool: validate arguments, run, return a bounded observation."""

    name: ClassVar[str]
    description: ClassVar[str]
    args_model: ClassVar[Type[BaseModel]]

    max_observation_chars: int | None = None

    @abstractmethod
    def run(self, args: Any) -> str:
        """Execute the tool with validated *args* (an ``args_model`` instance)."""

    def descriptor(self) -> ToolDescriptor:
        """Describe the tool and its typed parameters from ``args_model``."""
        schema = self.args_model.model_json_schema()
        required = set(schema.get("required", []))
        params: List[ParameterSpec] = []
        for field_name, info in schema.get("properties", {}).items():
            params.append(
                ParameterSpec(
                    name=field_name,
                    type=_json_type(info),
                    required=field_name in required,
                    description=info.get("description", ""),
                )
            )
        return ToolDescriptor(name=self.name, description=self.description, parameters=params)

    def __call__(self, call: ToolCall) -> ToolResult:
        try:
            args = self.args_model.model_validate(call.args)
        except ValidationError as exc:
            missing, malformed = _offending_fields(exc)
            logger.warning("Tool '%s' got invalid arguments: %s", self.name, call.args)
            return ToolResult.failure(
                call,
                ToolErrorKind.INVALID_ARGUMENTS,
                _describe_invalid(self.name, missing, malformed),
                fields=missing + [name for name, _ in malformed],
            )

        try:
            logger.debug("Executing tool '%s' with args=%s", self.name, args)
            observation = self.run(args)
        except ToolUpstreamError as exc:
            logger.warning("Tool '%s' upstream failure: %s", self.name, exc)
            return ToolResult.failure(call, ToolErrorKind.UPSTREAM_ERROR, str(exc))
        except Exception as exc:  # pylint: disable=broad-except
            logger.exception("Unhandled error in tool '%s'", self.name)
            return ToolResult.failure(
                call, ToolErrorKind.UPSTREAM_ERROR, f"Tool '{self.name}' raised an error: {exc}"
            )

        return ToolResult(call_id=call.id, name=self.name, content=self._bound(observation))

    def _bound(self, observation: str) -> str:
        limit = self.max_observation_chars or settings.MAX_OBSERVATION_CHARS
        if not observation:
            return f"Tool '{self.name}' returned no output."
        if len(observation) <= limit:
            return observation
        return observation[: max(limit - len(_TRUNCATION_MARK), 0)] + _TRUNCATION_MARK


def _json_type(info: Dict[str, Any]) -> str:
    """Collapse a JSON-schema property to a short type name (``Optional[str]`` -> ``string``)."""
    if "type" in info:
        return str(info["type"])
    variants = [v.get("type") for v in info.get("anyOf", []) if v.get("type") != "null"]
    return str(variants[0]) if len(variants) == 1 else "any"


def _offending_fields(exc: ValidationError) -> tuple[List[str], List[tuple[str, str]]]:
    """Split validation errors into missing field names and (field, reason) for malformed ones."""
    missing: List[str] = []
    malformed: List[tuple[str, str]] = []
    for err in exc.errors():
        field_name = ".".join(str(part) for part in err["loc"]) or "<arguments>"
        if err["type"] == "missing":
            if field_name not in missing:
                missing.append(field_name)
        elif field_name not in (name for name, _ in malformed):
            malformed.append((field_name, err["msg"]))
    return missing, malformed


def _describe_invalid(
    tool_name: str, missing: List[str], malformed: List[tuple[str, str]]
) -> str:
    parts = []
    if missing:
        parts.append("missing required field(s): " + ", ".join(missing))
    if malformed:
        parts.append(
            "malformed field(s): " + "; ".join(f"{name} ({msg})" for name, msg in malformed)
        )
    return (
        f"Invalid arguments for tool '{tool_name}': "
        + "; ".join(parts)
        + ". Ask the user for the missing details or retry with corrected arguments."
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
class ToolRegistry:
    """Ordered collection of tools keyed by unique name."""

    def __init__(self) -> None:
        self._tools: Dict[str, Tool] = {}
        self._frozen = False

    def register(self, tool: Tool) -> Tool:
        """
        Register *tool* under its ``name``.

        Raises
        ------
        ValueError
            If a tool with the same name is already registered.
        RegistryFrozenError
            If the registry has been frozen.
        """
        if self._frozen:
            raise RegistryFrozenError(f"Cannot register '{tool.name}': the catalog is frozen.")
        if tool.name in self._tools:
            raise ValueError(f"Tool '{tool.name}' is already registered.")
        logger.debug("Registering tool '%s'", tool.name)
        self._tools[tool.name] = tool
        return tool

    def freeze(self) -> None:
        """Make the catalog read-only."""
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def resolve(self, name: str) -> Tool | None:
        """Return the tool registered under *name*, if any."""
        return self._tools.get(name)

    def names(self) -> List[str]:
        return list(self._tools)

    def catalog(self) -> List[ToolDescriptor]:
        """Descriptors for every tool, in registration order."""
        return [tool.descriptor() for tool in self._tools.values()]

    def dispatch(self, call: ToolCall) -> ToolResult:
        """Run *call* against the matching tool; unknown names become an observation."""
        tool = self.resolve(call.name)
        if tool is None:
            logger.warning("Planner requested unknown tool '%s'", call.name)
            return ToolResult.failure(
                call,
                ToolErrorKind.UNKNOWN_CAPABILITY,
                f"Tool '{call.name}' is not registered. Available tools: "
                + ", ".join(self._tools),
            )
        return tool(call)

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
