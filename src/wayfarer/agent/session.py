"""Builds the process-wide :class:`AgentSession` once its external services are confirmed up."""

import logging

from wayfarer.agent.agent_loop import AgentSession
from wayfarer.agent.planner_interface import (
    BasePlanner,
    load_planner,
)
from wayfarer.memory.vector_memory import VectorMemory
from wayfarer.tools import ToolRegistry
from wayfarer.tools.flight_search import FlightSearchTool
from wayfarer.tools.guide_search import (
    GuideSearchTool,
    Retriever,
)

logger = logging.getLogger(__name__)


def build_registry(retriever: Retriever) -> ToolRegistry:
    """Register the flight and guide tools, in that order, and freeze the catalog."""
    registry = ToolRegistry()
    registry.register(FlightSearchTool())
    registry.register(GuideSearchTool(retriever))
    registry.freeze()
    return registry


def build_session(
    planner: BasePlanner | None = None,
    retriever: Retriever | None = None,
) -> AgentSession:
    """
    Create the agent session.

    When no *retriever* is given, the travel-guide index is connected first, so a missing Chroma
    server or collection stops startup with
    :class:`~wayfarer.memory.vector_memory.RetrievalUnavailableError`.
    """
    if retriever is None:
        memory = VectorMemory()
        memory.connect()
        retriever = memory

    if planner is None:
        planner = load_planner()
    planner.ensure_ready()

    registry = build_registry(retriever)
    logger.info(
        "Agent ready with planner %s and tools %s", type(planner).__name__, registry.names()
    )
    return AgentSession(planner=planner, registry=registry)
