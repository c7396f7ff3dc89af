"""
Mira - IngestionPipeline
=========================
Reads the knowledge-base documents, cleans and chunks them by
paragraph, embeds every chunk once and installs the resulting
``Corpus`` in the vector store.

Key design decisions:
    • **Dependency Injection** – receives the embedder and the store.
    • **Paragraph packing** – paragraphs are greedily joined with a
      blank line while the joined text fits ``CHUNK_SIZE``; a single
      paragraph longer than the budget is kept whole.
    • **All-or-nothing per document** – if embedding a document fails
      (or returns the wrong count / dimension) none of its chunks enter
      the corpus; the other documents are unaffected.
    • **Concurrency** – documents are embedded in parallel via
      ``ThreadPoolExecutor``; the corpus keeps input document order.

Usage:
    from mira.src.core.ingestor import IngestionPipeline
    pipeline = IngestionPipeline(embedder, store)
    summary  = pipeline.run()
"""

from __future__ import annotations

import time
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Iterable

from mira.config.settings import settings
from mira.src.core.embeddings import Embedder
from mira.src.core.errors import EmbeddingFailureError
from mira.src.database.vector_store import Chunk, Corpus, InMemoryVectorStore
from mira.src.utils.logger import get_logger
from mira.src.utils.text_utils import clean_text, split_paragraphs

logger = get_logger(__name__)

# File extensions the pipeline knows how to read
_SUPPORTED_EXTENSIONS = {".md", ".txt"}

_PARAGRAPH_JOINER = "\n\n"

_EMBED_BATCH_SIZE = 64

Document = tuple[str, str]


def chunk_paragraphs(text: str, chunk_size: int) -> list[str]:
    """
    Greedily pack the paragraphs of *text* into chunks.

    The ``"\\n\\n"`` joiner counts toward *chunk_size*, so a chunk made
    of several paragraphs never exceeds the budget.  Joining the chunks
    with ``"\\n\\n"`` reproduces the paragraph sequence exactly.
    """
    paragraphs = split_paragraphs(text)
    if not paragraphs:
        return []

    chunks: list[str] = []
    current = paragraphs[0]

    for paragraph in paragraphs[1:]:
        candidate = current + _PARAGRAPH_JOINER + paragraph
        if len(candidate) <= chunk_size:
            current = candidate
        else:
            chunks.append(current)
            current = paragraph

    chunks.append(current)
    return chunks


class IngestionPipeline:
    """
    End-to-end indexing: read → clean → chunk → embed → install.

    Parameters
    ----------
    embedder
        Any object satisfying the ``Embedder`` protocol.
    store
        The ``InMemoryVectorStore`` that receives the finished corpus.
    source_dir
        Override the documents directory. Defaults to ``settings.DOCUMENTS_DIR``.
    chunk_size
        Character budget per chunk. Defaults to ``settings.CHUNK_SIZE``.
    max_workers
        Number of parallel threads for document embedding.
    """

    def __init__(self, embedder: Embedder, store: InMemoryVectorStore, source_dir: Path | None = None, chunk_size: int | None = None, max_workers: int | None = None) -> None:
        self._embedder = embedder
        self._store = store
        self._source_dir = Path(source_dir or settings.DOCUMENTS_DIR)
        self._chunk_size = chunk_size or settings.CHUNK_SIZE
        self._max_workers = max_workers or settings.MAX_WORKERS

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINTS
    # ══════════════════════════════════════════════════════════════════

    def run(self) -> dict[str, Any]:
        """
        Index every supported file in the source directory and install
        the corpus in the store.

        Returns
        -------
        dict
            Execution summary with keys:
            ``total_files``, ``files_indexed``, ``files_failed``,
            ``total_chunks``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()
        source = self._source_dir

        if not source.exists():
            logger.warning("[INDEX] Source directory does not exist: %s", source)
            self._store.replace(Corpus.empty())
            return self._summary(0, 0, 0, 0, time.perf_counter() - t_start)

        files = sorted(f for f in source.iterdir() if f.is_file() and f.suffix.lower() in _SUPPORTED_EXTENSIONS)
        if not files:
            logger.warning("[INDEX] No supported files found in %s", source)

        documents: list[Document] = []
        unreadable = 0
        for filepath in files:
            try:
                documents.append((filepath.name, self._read_file(filepath)))
            except OSError:
                logger.exception("[INDEX] Failed to read file: %s", filepath.name)
                unreadable += 1

        corpus, failed = self._build_corpus(documents)
        self._store.replace(corpus)

        elapsed = time.perf_counter() - t_start
        indexed = len(documents) - len(failed)
        logger.info("[INDEX] Indexing complete — %d file(s) indexed, %d failed, %d chunk(s) in %.2fs.", indexed, len(failed) + unreadable, len(corpus), elapsed)
        return self._summary(len(files), indexed, len(failed) + unreadable, len(corpus), elapsed)


    def index_corpus(self, documents: Iterable[Document]) -> Corpus:
        """Build a ``Corpus`` from ``(source_id, raw_text)`` pairs without touching the store."""
        corpus, _ = self._build_corpus(list(documents))
        return corpus

    # ══════════════════════════════════════════════════════════════════
    #  CORPUS CONSTRUCTION
    # ══════════════════════════════════════════════════════════════════

    def _build_corpus(self, documents: list[Document]) -> tuple[Corpus, list[str]]:
        """Embed *documents* in parallel; return the corpus and the failed source ids."""
        if not documents:
            return Corpus.empty(), []

        # pool.map yields results in submission order, so the corpus keeps document order.
        with ThreadPoolExecutor(max_workers=self._max_workers) as pool:
            outcomes = list(pool.map(self._safe_index_document, documents))

        chunks: list[Chunk] = []
        failed: list[str] = []
        for (source_id, _), outcome in zip(documents, outcomes):
            if outcome is None:
                failed.append(source_id)
            else:
                chunks.extend(outcome)

        return Corpus(chunks), failed


    def _safe_index_document(self, document: Document) -> list[Chunk] | None:
        source_id = document[0]
        try:
            return self._index_document(document)
        except EmbeddingFailureError as exc:
            logger.error("[INDEX] Skipping '%s': %s", source_id, exc.message)
            return None


    def _index_document(self, document: Document) -> list[Chunk]:
        """
        Clean, chunk and embed a single document.

        Raises
        ------
        EmbeddingFailureError
            If the embedder raises or returns vectors of the wrong
            count or dimension.
        """
        source_id, raw_text = document
        t_doc = time.perf_counter()

        texts = chunk_paragraphs(clean_text(raw_text), self._chunk_size)
        if not texts:
            logger.warning("[INDEX] Skipping empty document: %s", source_id)
            return []

        vectors = self._embed(source_id, texts)

        chunks = [
            Chunk(id=f"{source_id}_chunk_{idx}", content=text, embedding=tuple(vector), source_id=source_id, index=idx)
            for idx, (text, vector) in enumerate(zip(texts, vectors))
        ]

        logger.info("[INDEX] Document '%s' → %d chunk(s) in %.1fms.", source_id, len(chunks), (time.perf_counter() - t_doc) * 1000)
        return chunks


    def _embed(self, source_id: str, texts: list[str]) -> list[list[float]]:
        vectors: list[list[float]] = []
        for i in range(0, len(texts), _EMBED_BATCH_SIZE):
            batch = texts[i : i + _EMBED_BATCH_SIZE]
            try:
                vectors.extend(self._embedder.embed_documents(batch))
            except Exception as exc:
                raise EmbeddingFailureError(f"Embedding failed for '{source_id}': {exc}") from exc

        if len(vectors) != len(texts):
            raise EmbeddingFailureError(f"Embedder returned {len(vectors)} vector(s) for {len(texts)} chunk(s) of '{source_id}'")
        dimensions = {len(vector) for vector in vectors}
        if len(dimensions) != 1 or 0 in dimensions:
            raise EmbeddingFailureError(f"Embedder returned inconsistent dimensions {sorted(dimensions)} for '{source_id}'")
        return vectors

    # ══════════════════════════════════════════════════════════════════
    #  FILE READING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _read_file(filepath: Path) -> str:
        """Read a text document (UTF-8, latin-1 fallback)."""
        try:
            return filepath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            return filepath.read_text(encoding="latin-1")

    # ── Summary helper ─────────────────────────────────────────────────

    @staticmethod
    def _summary(total: int, indexed: int, failed: int, chunks: int, elapsed: float) -> dict[str, Any]:
        return {
            "total_files": total,
            "files_indexed": indexed,
            "files_failed": failed,
            "total_chunks": chunks,
            "elapsed_seconds": round(elapsed, 2),
        }
