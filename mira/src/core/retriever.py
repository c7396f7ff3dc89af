"""
Mira - Retriever
=================
Top-K semantic search: embed the query with the *same* embedder used at
index time, then rank the current corpus by cosine similarity.
"""

from __future__ import annotations

import time

from mira.src.core.embeddings import Embedder
from mira.src.core.errors import EmbeddingFailureError
from mira.src.database.vector_store import Chunk, ScoredChunk, VectorIndex
from mira.src.utils.logger import get_logger

logger = get_logger(__name__)


class Retriever:
    """
    Parameters
    ----------
    embedder
        The index-time ``Embedder``.
    index
        Any ``VectorIndex`` (``InMemoryVectorStore`` by default).
    """

    __slots__ = ("_embedder", "_index")

    def __init__(self, embedder: Embedder, index: VectorIndex) -> None:
        self._embedder = embedder
        self._index = index


    def retrieve(self, query: str, k: int) -> list[Chunk]:
        """Return at most *k* chunks, most similar first."""
        return [chunk for chunk, _ in self.retrieve_scored(query, k)]


    def retrieve_scored(self, query: str, k: int) -> list[ScoredChunk]:
        """
        Like ``retrieve`` but keeps the similarity score of every hit.

        Raises
        ------
        EmbeddingFailureError
            If the query cannot be embedded or its dimension does not
            match the corpus.
        """
        if k <= 0 or self._index.count() == 0:
            return []

        t_start = time.perf_counter()
        try:
            vector = self._embedder.embed_query(query)
        except Exception as exc:
            raise EmbeddingFailureError(f"Query embedding failed: {exc}") from exc

        try:
            hits = self._index.search(vector, k)
        except ValueError as exc:
            raise EmbeddingFailureError(str(exc)) from exc

        logger.debug("[RAG] Retrieved %d chunk(s) in %.1fms: %s", len(hits), (time.perf_counter() - t_start) * 1000, [chunk.id for chunk, _ in hits])
        return hits


    @property
    def chunk_count(self) -> int:
        return self._index.count()
