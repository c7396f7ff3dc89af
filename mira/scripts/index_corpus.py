"""
Mira - Corpus Indexing Script
==============================
CLI entry point that builds the knowledge-base corpus outside the
server, for checking documents and chunking before deployment:

    1. Load settings (fail-fast on a bad ``.env``).
    2. Build the configured embedder and an in-memory store.
    3. Run the ``IngestionPipeline`` over ``--source``.
    4. Optionally run a retrieval check with ``--query``.
    5. Print a structured execution summary with timing breakdown.

Usage:
    python -m mira.scripts.index_corpus
    python -m mira.scripts.index_corpus --source ./docs
    python -m mira.scripts.index_corpus --query "office hours" --top-k 5
"""

from __future__ import annotations

import argparse
import sys
import time
from pathlib import Path


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="index_corpus", description="Mira — Index the knowledge-base documents and optionally test retrieval.")
    parser.add_argument("--source", type=Path, default=None, help="Directory of .md/.txt documents (defaults to DOCUMENTS_DIR).")
    parser.add_argument("--query", type=str, default=None, help="Run a retrieval check against the fresh corpus.")
    parser.add_argument("--top-k", type=int, default=None, help="Chunks to show for --query (defaults to SEARCH_RESULTS_LIMIT).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from mira.config.settings import settings
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from mira.src.core.embeddings import build_embedder
    from mira.src.core.ingestor import IngestionPipeline
    from mira.src.core.retriever import Retriever
    from mira.src.database.vector_store import InMemoryVectorStore
    from mira.src.utils.logger import get_logger

    logger = get_logger(__name__)
    logger.info("Settings loaded in %.1fms", settings_ms)

    source = args.source or settings.DOCUMENTS_DIR
    _print_header(settings, source)

    # ── 1. Embedder (timed) ────────────────────────────────────────────
    t_embedder = time.perf_counter()
    try:
        embedder = build_embedder(settings)
    except Exception:
        logger.exception("Failed to initialise embedder.")
        return 1
    embedder_ms = (time.perf_counter() - t_embedder) * 1000

    # ── 2. Index ───────────────────────────────────────────────────────
    store = InMemoryVectorStore()
    pipeline = IngestionPipeline(embedder, store, source_dir=source, chunk_size=settings.CHUNK_SIZE, max_workers=settings.MAX_WORKERS)
    summary = pipeline.run()

    # ── 3. Optional retrieval check ────────────────────────────────────
    if args.query:
        top_k = args.top_k if args.top_k is not None else settings.SEARCH_RESULTS_LIMIT
        _print_hits(args.query, Retriever(embedder, store).retrieve_scored(args.query, top_k))

    _print_footer(summary, settings_ms, embedder_ms, time.perf_counter() - t_start)
    return 0 if summary["files_failed"] == 0 else 2


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object, source: Path) -> None:
    print()
    print("=" * 60)
    print("  MIRA — Corpus Indexing")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                   # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_BACKEND}")     # type: ignore[attr-defined]
    print(f"  Source dir   : {source}")
    print(f"  Chunk size   : {settings.CHUNK_SIZE} chars")      # type: ignore[attr-defined]
    print(f"  Workers      : {settings.MAX_WORKERS}")           # type: ignore[attr-defined]
    print("=" * 60)
    print()


def _print_hits(query: str, hits: list) -> None:
    print()
    print(f"  Query: {query!r}")
    print("-" * 60)
    if not hits:
        print("  (no chunks)")
    for rank, (chunk, score) in enumerate(hits, 1):
        preview = chunk.content.replace("\n", " ")[:70]
        print(f"  {rank}. [{score:.3f}] {chunk.id}: {preview}")


def _print_footer(summary: dict, settings_ms: float, embedder_ms: float, elapsed: float) -> None:
    print()
    print("=" * 60)
    print("  EXECUTION SUMMARY")
    print("-" * 60)
    print(f"  Total files scanned  : {summary['total_files']}")
    print(f"  Files indexed        : {summary['files_indexed']}")
    print(f"  Files failed         : {summary['files_failed']}")
    print(f"  Total chunks         : {summary['total_chunks']}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    print(f"  Settings + .env load : {settings_ms:>8.1f}ms")
    print(f"  Embedder init        : {embedder_ms:>8.1f}ms")
    print(f"  Indexing             : {summary['elapsed_seconds']:>8.2f}s")
    print(f"  Total elapsed        : {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    sys.exit(main())
