"""Dispatches tool calls against a :class:`~wayfarer.tools.ToolRegistry`."""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import (
    List,
    Sequence,
)

from wayfarer.config import settings
from wayfarer.core.schema import (
    ToolCall,
    ToolResult,
)
from wayfarer.tools import ToolRegistry

logger = logging.getLogger(__name__)


def execute_tools(
    registry: ToolRegistry,
    calls: Sequence[ToolCall],
    max_workers: int | None = None,
) -> List[ToolResult]:
    """
    Run every call in *calls* and return one result per call.

    Parameters
    ----------
    registry:
        The frozen tool catalog to dispatch against.
    calls:
        Calls in the order the planner requested them.
    max_workers:
        Upper bound on calls running at the same time (default from settings).

    Returns
    -------
    List[ToolResult]
        Results in request order, regardless of which call finished first.  Tool failures are
        returned as results; this function does not raise for them.
    """
    if not calls:
        return []

    logger.info("Executing %d tool call(s): %s", len(calls), [call.name for call in calls])
    if len(calls) == 1:
        return [registry.dispatch(calls[0])]

    workers = min(max_workers or settings.MAX_PARALLEL_TOOLS, len(calls))
    with ThreadPoolExecutor(max_workers=max(workers, 1), thread_name_prefix="tool") as pool:
        # map() yields in submission order
        return list(pool.map(registry.dispatch, calls))
