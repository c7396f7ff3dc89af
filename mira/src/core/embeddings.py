"""
Mira - Embedding Functions
===========================
Deterministic text → fixed-dimension vector maps behind one
LangChain-compatible ``Embedder`` protocol::

    embed_documents(texts) -> list[list[float]]
    embed_query(text)      -> list[float]

Implementations:
    • ``HashingEmbedder``     — offline lexical feature hashing (default).
    • ``NormalizedEmbedder``  — wraps any LangChain embedding model
      (``GoogleGenerativeAIEmbeddings``) and L2-normalises its output.

Every implementation returns unit vectors for non-empty input and the
zero vector for empty / whitespace-only input.

Usage:
    from mira.src.core.embeddings import build_embedder
    embedder = build_embedder(settings)
    vector = embedder.embed_query("office hours")
"""

from __future__ import annotations

import hashlib
import re
from typing import Protocol, Sequence, runtime_checkable

import numpy as np

from mira.config.settings import Settings
from mira.src.utils.logger import get_logger
from mira.src.utils.text_utils import normalize_whitespace

logger = get_logger(__name__)

Vector = list[float]

_WORD_RE = re.compile(r"\w+")
_NGRAM = 3


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class Embedder(Protocol):
    """Structural type for any LangChain-compatible embedding model."""

    def embed_documents(self, texts: list[str]) -> list[list[float]]: ...

    def embed_query(self, text: str) -> list[float]: ...


def l2_normalize(vector: Sequence[float]) -> np.ndarray:
    """Scale *vector* to unit length; the zero vector is returned unchanged."""
    array = np.asarray(vector, dtype=np.float64)
    norm = np.linalg.norm(array)
    if norm == 0.0:
        return array
    return array / norm


# ══════════════════════════════════════════════════════════════════════
#  HASHING EMBEDDER
# ══════════════════════════════════════════════════════════════════════


class HashingEmbedder:
    """
    Feature-hashing embedding over word tokens and character trigrams.

    Each feature is mapped to one of ``dimension`` buckets by a stable
    ``blake2b`` digest (independent of ``PYTHONHASHSEED``), so the same
    text always yields the same vector across processes.  Counts are
    non-negative, which keeps every non-empty text off the zero vector.
    """

    __slots__ = ("_dimension",)

    def __init__(self, dimension: int = 384) -> None:
        if dimension <= 0:
            raise ValueError(f"dimension must be positive, got {dimension}")
        self._dimension = dimension


    @property
    def dimension(self) -> int:
        return self._dimension


    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        return [self._embed(text) for text in texts]


    def embed_query(self, text: str) -> list[float]:
        return self._embed(text)


    def _embed(self, text: str) -> Vector:
        normalized = normalize_whitespace(text)
        vector = np.zeros(self._dimension, dtype=np.float64)
        if not normalized:
            return vector.tolist()

        for feature in self._features(normalized):
            vector[self._bucket(feature)] += 1.0

        return l2_normalize(vector).tolist()


    @staticmethod
    def _features(normalized: str) -> list[str]:
        words = [f"w:{token}" for token in _WORD_RE.findall(normalized)]
        padded = f" {normalized} "
        grams = [f"c:{padded[i:i + _NGRAM]}" for i in range(len(padded) - _NGRAM + 1)]
        return words + grams


    def _bucket(self, feature: str) -> int:
        digest = hashlib.blake2b(feature.encode("utf-8"), digest_size=8).digest()
        return int.from_bytes(digest, "big") % self._dimension


    def __repr__(self) -> str:
        return f"HashingEmbedder(dimension={self._dimension})"


# ══════════════════════════════════════════════════════════════════════
#  MODEL-BACKED EMBEDDER
# ══════════════════════════════════════════════════════════════════════


class NormalizedEmbedder:
    """Delegate to a LangChain embedding model and L2-normalise its vectors."""

    __slots__ = ("_inner",)

    def __init__(self, inner: Embedder) -> None:
        self._inner = inner


    def embed_documents(self, texts: list[str]) -> list[list[float]]:
        non_empty = [i for i, text in enumerate(texts) if text.strip()]
        vectors = self._inner.embed_documents([texts[i] for i in non_empty]) if non_empty else []

        results: list[Vector | None] = [None] * len(texts)
        for i, vector in zip(non_empty, vectors):
            results[i] = l2_normalize(vector).tolist()

        dimension = len(vectors[0]) if vectors else 0
        return [vector if vector is not None else [0.0] * dimension for vector in results]


    def embed_query(self, text: str) -> list[float]:
        if not text.strip():
            # Dimension is only known after one model call.
            probe = self._inner.embed_query("dimension probe")
            return [0.0] * len(probe)
        return l2_normalize(self._inner.embed_query(text)).tolist()


    def __repr__(self) -> str:
        return f"NormalizedEmbedder(inner={type(self._inner).__name__})"


def build_embedder(config: Settings) -> Embedder:
    """Return the embedder named by ``EMBEDDING_BACKEND``."""
    if config.EMBEDDING_BACKEND == "gemini":
        from langchain_google_genai import GoogleGenerativeAIEmbeddings

        logger.info("Using Gemini embeddings (model=%s).", config.EMBEDDING_MODEL)
        inner = GoogleGenerativeAIEmbeddings(model=config.EMBEDDING_MODEL, google_api_key=config.GOOGLE_API_KEY.get_secret_value())
        return NormalizedEmbedder(inner)

    logger.info("Using hashing embeddings (dimension=%d).", config.EMBEDDING_DIMENSION)
    return HashingEmbedder(config.EMBEDDING_DIMENSION)
