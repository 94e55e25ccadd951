"""
Thin wrapper around Chroma for querying the travel-guide index.

The index is built out of band (one document chunk per Chroma document).  At startup we only check
that the server answers and that the collection exists; afterwards the agent issues similarity
queries against it.
"""

import logging
from typing import (
    List,
    cast,
)

import chromadb
from chromadb.api import ClientAPI
from chromadb.api.types import EmbeddingFunction
from chromadb.utils import embedding_functions

from wayfarer.config import settings

logger = logging.getLogger(__name__)


class RetrievalUnavailableError(RuntimeError):
    """Raised when the vector store or its collection cannot be reached."""


class VectorMemory:
    """
    Chroma wrapper for querying text chunks.
    """

    def __init__(
        self,
        collection_name: str | None = None,
        host: str | None = None,
        port: int | None = None,
        embed_model: str | None = None,
    ):
        self.collection_name = collection_name or settings.COLLECTION_NAME
        self._host = host or settings.VECTOR_DB_HOST
        self._port = port or settings.VECTOR_DB_PORT
        self._embed_model = embed_model or settings.EMBED_MODEL
        self._client: ClientAPI | None = None
        self._col = None

    # ------------------------------------------------------------------ #
    # Lifecycle
    # ------------------------------------------------------------------ #
    def connect(self) -> None:
        """Check the server is reachable and bind to the existing collection."""
        try:
            self._client = chromadb.HttpClient(host=self._host, port=self._port)
            self._client.heartbeat()
        except Exception as exc:  # pylint: disable=broad-except
            raise RetrievalUnavailableError(
                f"Chroma is not reachable at {self._host}:{self._port}: {exc}"
            ) from exc

        embed_fn: EmbeddingFunction = embedding_functions.SentenceTransformerEmbeddingFunction(
            model_name=self._embed_model
        )
        try:
            self._col = self._client.get_collection(
                name=self.collection_name, embedding_function=cast(EmbeddingFunction, embed_fn)
            )
        except Exception as exc:  # pylint: disable=broad-except
            raise RetrievalUnavailableError(
                f"Collection '{self.collection_name}' does not exist; index the travel guide first"
            ) from exc

        logger.info(
            "Connected to collection '%s' (%d documents)", self.collection_name, self.count()
        )

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #
    def query(self, text: str, k: int = 4) -> List[str]:
        """Return top-k docs (raw text) similar to `text`, best match first."""
        if self._col is None:
            raise RetrievalUnavailableError("VectorMemory.connect() has not been called")
        res = self._col.query(
            query_texts=[text],
            n_results=k,
            include=["documents"],
        )
        logger.debug("Guide query results: '%s'", res)
        if res and res.get("documents"):
            return [doc for doc in res["documents"][0] if doc]
        return []

    def count(self) -> int:
        """Return number of documents in the collection."""
        if self._col is None:
            return 0
        return self._col.count()
