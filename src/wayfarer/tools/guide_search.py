"""Retrieval tool over the traveller's guide index."""

import logging
from typing import (
    List,
    Protocol,
)

from pydantic import (
    BaseModel,
    Field,
    field_validator,
)

from wayfarer.config import settings
from wayfarer.tools import (
    Tool,
    ToolUpstreamError,
)

logger = logging.getLogger(__name__)

NO_PASSAGES_MESSAGE = "No matching passages found in the travel guide."
PASSAGE_SEPARATOR = "\n\n"


class Retriever(Protocol):
    """Anything that can run a similarity search (e.g. :class:`VectorMemory`)."""

    def query(self, text: str, k: int = 4) -> List[str]:
        ...


class GuideSearchArgs(BaseModel):
    """Arguments accepted by :class:`GuideSearchTool`."""

    query: str = Field(..., description="Free-text question to look up in the travel guide.")

    @field_validator("query")
    @classmethod
    def _not_blank(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value


class GuideSearchTool(Tool):
    """Similarity search against the travel-guide vector index."""

    name = "search_travel_guide"
    description = (
        "Searches the traveller's guide to retrieve information about general travel advice, "
        "tips, and best practices. Use this for questions NOT related to specific flight bookings."
    )
    args_model = GuideSearchArgs

    def __init__(self, retriever: Retriever, k: int | None = None):
        self._retriever = retriever
        self._k = k or settings.RETRIEVAL_K

    def run(self, args: GuideSearchArgs) -> str:
        try:
            passages = self._retriever.query(args.query, k=self._k)
        except Exception as exc:  # pylint: disable=broad-except
            raise ToolUpstreamError(f"Travel guide search failed: {exc}") from exc

        passages = [p.strip() for p in passages if p and p.strip()]
        logger.info("Guide search for %r returned %d passage(s)", args.query, len(passages))
        if not passages:
            return NO_PASSAGES_MESSAGE
        return PASSAGE_SEPARATOR.join(passages)
