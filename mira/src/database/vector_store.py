"""
Mira - In-Memory Vector Store
==============================
Holds the indexed ``Corpus`` and answers nearest-neighbour queries by
exhaustive cosine similarity (one numpy matrix product, O(N·D)).

Design decisions:
  • **Immutable corpus** — a ``Corpus`` is built once by the indexer
    and never mutated; re-indexing builds a new one.
  • **Atomic swap** — ``replace()`` installs a new corpus under a
    ``threading.Lock``.  A search takes one reference to the current
    corpus, so it sees either the old one or the new one, never a mix.
  • **Stable ranking** — ties keep corpus order (stable sort).
  • **Swappable index** — callers depend on the ``VectorIndex``
    protocol only; an ANN index can replace this class.

Usage:
    store = InMemoryVectorStore()
    store.replace(corpus)
    hits = store.search(query_vector, k=3)   # [(Chunk, score), …]
"""

from __future__ import annotations

import threading
from dataclasses import dataclass
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from mira.src.utils.logger import get_logger

logger = get_logger(__name__)

ScoredChunk = tuple["Chunk", float]


@dataclass(frozen=True, slots=True)
class Chunk:
    """One indexed piece of a source document."""

    id: str
    content: str
    embedding: tuple[float, ...]
    source_id: str
    index: int


class Corpus:
    """
    Ordered, immutable collection of chunks plus their embedding matrix.

    Raises
    ------
    ValueError
        If chunk embeddings do not all share one dimension.
    """

    __slots__ = ("_chunks", "_matrix", "_dimension")

    def __init__(self, chunks: Sequence[Chunk]) -> None:
        self._chunks: tuple[Chunk, ...] = tuple(chunks)
        dimensions = {len(chunk.embedding) for chunk in self._chunks}
        if len(dimensions) > 1:
            raise ValueError(f"Corpus chunks have mixed embedding dimensions: {sorted(dimensions)}")

        self._dimension = dimensions.pop() if dimensions else 0
        if self._chunks:
            matrix = np.asarray([chunk.embedding for chunk in self._chunks], dtype=np.float64)
        else:
            matrix = np.zeros((0, 0), dtype=np.float64)
        matrix.setflags(write=False)
        self._matrix = matrix


    @classmethod
    def empty(cls) -> "Corpus":
        return cls(())


    @property
    def chunks(self) -> tuple[Chunk, ...]:
        return self._chunks


    @property
    def matrix(self) -> np.ndarray:
        return self._matrix


    @property
    def dimension(self) -> int:
        return self._dimension


    def __len__(self) -> int:
        return len(self._chunks)


    def __repr__(self) -> str:
        return f"Corpus(chunks={len(self._chunks)}, dimension={self._dimension})"


# ── Index Protocol ────────────────────────────────────────────────────

@runtime_checkable
class VectorIndex(Protocol):
    def search(self, vector: Sequence[float], k: int) -> list[ScoredChunk]: ...

    def count(self) -> int: ...


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between *a* and *b*; 0.0 if either norm is zero."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    norm_a = np.linalg.norm(va)
    norm_b = np.linalg.norm(vb)
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0
    return float(np.dot(va, vb) / (norm_a * norm_b))


class InMemoryVectorStore:
    """Brute-force cosine index over the current ``Corpus``."""

    __slots__ = ("_corpus", "_lock")

    def __init__(self, corpus: Corpus | None = None) -> None:
        self._corpus: Corpus = corpus or Corpus.empty()
        self._lock = threading.Lock()


    @property
    def corpus(self) -> Corpus:
        with self._lock:
            return self._corpus


    def replace(self, corpus: Corpus) -> None:
        """Atomically install *corpus* as the searchable set."""
        with self._lock:
            previous = len(self._corpus)
            self._corpus = corpus
        logger.info("[INDEX] Corpus swapped: %d → %d chunk(s).", previous, len(corpus))


    def search(self, vector: Sequence[float], k: int) -> list[ScoredChunk]:
        """
        Return up to *k* ``(chunk, score)`` pairs, best first.

        ``k <= 0`` or an empty corpus yields ``[]``.

        Raises
        ------
        ValueError
            If *vector* does not match the corpus dimension.
        """
        corpus = self.corpus
        if k <= 0 or len(corpus) == 0:
            return []

        query = np.asarray(vector, dtype=np.float64)
        if query.shape != (corpus.dimension,):
            raise ValueError(f"Query dimension {query.shape[-1] if query.ndim else 0} does not match corpus dimension {corpus.dimension}")

        query_norm = np.linalg.norm(query)
        if query_norm == 0.0:
            scores = np.zeros(len(corpus), dtype=np.float64)
        else:
            row_norms = np.linalg.norm(corpus.matrix, axis=1)
            safe_norms = np.where(row_norms == 0.0, 1.0, row_norms)
            scores = (corpus.matrix @ query) / (safe_norms * query_norm)

        order = np.argsort(-scores, kind="stable")[:k]
        return [(corpus.chunks[i], float(scores[i])) for i in order]


    def count(self) -> int:
        return len(self.corpus)


    def __repr__(self) -> str:
        return f"InMemoryVectorStore(chunks={self.count()})"
