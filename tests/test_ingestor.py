"""Tests for paragraph chunking and corpus indexing."""

import pytest

from conftest import DIMENSION, SAMPLE_DOCUMENTS, FailingEmbedder
from mira.src.core.embeddings import HashingEmbedder
from mira.src.core.ingestor import IngestionPipeline, chunk_paragraphs
from mira.src.database.vector_store import InMemoryVectorStore
from mira.src.utils.text_utils import clean_text, split_paragraphs

LONG_TEXT = "\n\n".join(f"Paragraph {i} " + "word " * (i * 7) for i in range(1, 12))


class TestChunkParagraphs:
    """Greedy paragraph packing."""

    @pytest.mark.parametrize("chunk_size", [50, 120, 300, 2000])
    def test_content_is_preserved(self, chunk_size) -> None:
        text = clean_text(LONG_TEXT)
        chunks = chunk_paragraphs(text, chunk_size)

        assert "\n\n".join(chunks) == "\n\n".join(split_paragraphs(text))

    @pytest.mark.parametrize("chunk_size", [50, 120, 300])
    def test_budget_respected_unless_single_paragraph(self, chunk_size) -> None:
        for chunk in chunk_paragraphs(clean_text(LONG_TEXT), chunk_size):
            assert len(chunk) <= chunk_size or "\n\n" not in chunk

    def test_long_paragraph_kept_whole(self) -> None:
        paragraph = "x" * 80
        assert chunk_paragraphs(f"short\n\n{paragraph}\n\ntail", 50) == ["short", paragraph, "tail"]

    def test_paragraphs_are_packed(self) -> None:
        assert chunk_paragraphs("aaa\n\nbbb\n\nccc", 8) == ["aaa\n\nbbb", "ccc"]

    def test_separator_counts_toward_budget(self) -> None:
        assert chunk_paragraphs("aaa\n\nbbb", 7) == ["aaa", "bbb"]

    def test_empty_text(self) -> None:
        assert chunk_paragraphs("", 100) == []
        assert chunk_paragraphs("\n\n  \n\n", 100) == []


class TestIndexCorpus:
    """IngestionPipeline.index_corpus."""

    def test_chunk_ids_and_order(self) -> None:
        pipeline = IngestionPipeline(HashingEmbedder(DIMENSION), InMemoryVectorStore(), chunk_size=60, max_workers=4)
        corpus = pipeline.index_corpus(SAMPLE_DOCUMENTS)

        sources = [chunk.source_id for chunk in corpus.chunks]
        assert sources == sorted(sources, key=[doc for doc, _ in SAMPLE_DOCUMENTS].index)
        assert corpus.chunks[0].id == "weather-guide.md_chunk_0"
        for chunk in corpus.chunks:
            assert chunk.id == f"{chunk.source_id}_chunk_{chunk.index}"
            assert len(chunk.embedding) == DIMENSION

    def test_every_chunk_is_embedded_once(self) -> None:
        calls = []

        class CountingEmbedder(HashingEmbedder):
            def embed_documents(self, texts):
                calls.extend(texts)
                return super().embed_documents(texts)

        corpus = IngestionPipeline(CountingEmbedder(DIMENSION), InMemoryVectorStore(), chunk_size=60).index_corpus(SAMPLE_DOCUMENTS)
        assert sorted(calls) == sorted(chunk.content for chunk in corpus.chunks)

    def test_failed_document_is_excluded_entirely(self) -> None:
        documents = [("good.md", "Alpha paragraph.\n\nBeta paragraph."), ("bad.md", "Fine paragraph.\n\nThis one will FAIL."), ("also-good.md", "Gamma paragraph.")]
        corpus = IngestionPipeline(FailingEmbedder(), InMemoryVectorStore(), chunk_size=20).index_corpus(documents)

        assert {chunk.source_id for chunk in corpus.chunks} == {"good.md", "also-good.md"}
        assert [chunk.source_id for chunk in corpus.chunks][-1] == "also-good.md"

    def test_wrong_vector_count_excludes_document(self) -> None:
        class ShortEmbedder(HashingEmbedder):
            def embed_documents(self, texts):
                return super().embed_documents(texts)[:-1]

        corpus = IngestionPipeline(ShortEmbedder(DIMENSION), InMemoryVectorStore(), chunk_size=20).index_corpus([("doc.md", "one\n\ntwo")])
        assert len(corpus) == 0

    def test_empty_document_contributes_nothing(self) -> None:
        corpus = IngestionPipeline(HashingEmbedder(DIMENSION), InMemoryVectorStore()).index_corpus([("empty.md", "   \n\n ")])
        assert len(corpus) == 0


class TestRun:
    """IngestionPipeline.run over a directory."""

    def test_indexes_supported_files(self, tmp_path) -> None:
        (tmp_path / "a.md").write_text("# A\n\nFirst document.", encoding="utf-8")
        (tmp_path / "b.txt").write_text("Second document.", encoding="utf-8")
        (tmp_path / "c.pdf").write_bytes(b"%PDF-1.4")
        store = InMemoryVectorStore()

        summary = IngestionPipeline(HashingEmbedder(DIMENSION), store, source_dir=tmp_path, chunk_size=500).run()

        assert summary["total_files"] == 2
        assert summary["files_indexed"] == 2
        assert summary["files_failed"] == 0
        assert summary["total_chunks"] == store.count() == 2
        assert [chunk.source_id for chunk in store.corpus.chunks] == ["a.md", "b.txt"]

    def test_failed_file_is_counted(self, tmp_path) -> None:
        (tmp_path / "ok.md").write_text("Fine.", encoding="utf-8")
        (tmp_path / "broken.md").write_text("FAIL here.", encoding="utf-8")

        summary = IngestionPipeline(FailingEmbedder(), InMemoryVectorStore(), source_dir=tmp_path).run()

        assert summary["files_indexed"] == 1
        assert summary["files_failed"] == 1

    def test_missing_directory(self, tmp_path) -> None:
        store = InMemoryVectorStore()
        summary = IngestionPipeline(HashingEmbedder(DIMENSION), store, source_dir=tmp_path / "missing").run()

        assert summary["total_files"] == 0
        assert summary["total_chunks"] == 0
        assert store.count() == 0
