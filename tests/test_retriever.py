"""Tests for cosine similarity, the vector store and the retriever."""

from concurrent.futures import ThreadPoolExecutor

import pytest

from conftest import DIMENSION, FailingEmbedder
from mira.src.core.embeddings import HashingEmbedder
from mira.src.core.errors import EmbeddingFailureError
from mira.src.core.retriever import Retriever
from mira.src.database.vector_store import Chunk, Corpus, InMemoryVectorStore, VectorIndex, cosine_similarity


def _chunk(idx: int, embedding, source: str = "doc.md") -> Chunk:
    return Chunk(id=f"{source}_chunk_{idx}", content=f"chunk {idx}", embedding=tuple(embedding), source_id=source, index=idx)


class TestCosineSimilarity:
    """Symmetry, self-similarity and zero vectors."""

    def test_self_similarity_is_one(self) -> None:
        vector = [0.3, -1.2, 4.0]
        assert cosine_similarity(vector, vector) == pytest.approx(1.0)

    def test_symmetric(self) -> None:
        a, b = [1.0, 2.0, 3.0], [-2.0, 0.5, 1.0]
        assert cosine_similarity(a, b) == pytest.approx(cosine_similarity(b, a))

    def test_zero_vector(self) -> None:
        assert cosine_similarity([0.0, 0.0], [1.0, 2.0]) == 0.0
        assert cosine_similarity([0.0, 0.0], [0.0, 0.0]) == 0.0

    def test_orthogonal_and_opposite(self) -> None:
        assert cosine_similarity([1.0, 0.0], [0.0, 1.0]) == pytest.approx(0.0)
        assert cosine_similarity([1.0, 0.0], [-1.0, 0.0]) == pytest.approx(-1.0)


class TestVectorStore:
    """InMemoryVectorStore search and corpus swapping."""

    def test_stable_order_for_ties(self) -> None:
        store = InMemoryVectorStore(Corpus([_chunk(i, [1.0, 0.0]) for i in range(5)]))
        hits = store.search([1.0, 0.0], 3)
        assert [chunk.index for chunk, _ in hits] == [0, 1, 2]

    def test_ranked_by_similarity(self) -> None:
        store = InMemoryVectorStore(Corpus([_chunk(0, [0.0, 1.0]), _chunk(1, [1.0, 0.0]), _chunk(2, [0.7, 0.7])]))
        hits = store.search([1.0, 0.1], 3)

        assert [chunk.index for chunk, _ in hits] == [1, 2, 0]
        assert hits[0][1] == pytest.approx(cosine_similarity([1.0, 0.0], [1.0, 0.1]))

    def test_replace_swaps_corpus(self) -> None:
        store = InMemoryVectorStore()
        assert store.count() == 0

        store.replace(Corpus([_chunk(0, [1.0, 0.0]), _chunk(1, [0.0, 1.0])]))
        assert store.count() == 2

    def test_dimension_mismatch(self) -> None:
        store = InMemoryVectorStore(Corpus([_chunk(0, [1.0, 0.0])]))
        with pytest.raises(ValueError):
            store.search([1.0, 0.0, 0.0], 1)

    def test_mixed_dimensions_rejected(self) -> None:
        with pytest.raises(ValueError):
            Corpus([_chunk(0, [1.0, 0.0]), _chunk(1, [1.0, 0.0, 0.0])])

    def test_satisfies_protocol(self) -> None:
        assert isinstance(InMemoryVectorStore(), VectorIndex)


class TestRetriever:
    """Top-K retrieval over an indexed corpus."""

    def test_k_zero_returns_nothing(self, embedder, indexed_store) -> None:
        assert Retriever(embedder, indexed_store).retrieve("weather", 0) == []
        assert Retriever(embedder, indexed_store).retrieve("weather", -1) == []

    def test_empty_corpus_returns_nothing(self, embedder) -> None:
        assert Retriever(embedder, InMemoryVectorStore()).retrieve("weather", 3) == []

    def test_at_most_k(self, embedder, indexed_store) -> None:
        assert len(Retriever(embedder, indexed_store).retrieve("markdown headings", 2)) == 2
        assert len(Retriever(embedder, indexed_store).retrieve("markdown headings", 500)) == indexed_store.count()

    def test_idempotent(self, embedder, indexed_store) -> None:
        retriever = Retriever(embedder, indexed_store)
        first = retriever.retrieve("how do I boil pasta", 3)
        assert retriever.retrieve("how do I boil pasta", 3) == first

    def test_most_relevant_first(self, embedder, indexed_store) -> None:
        top = Retriever(embedder, indexed_store).retrieve("boiled pasta in salted water", 1)[0]
        assert top.source_id == "cooking.md"

    def test_scores_descend(self, embedder, indexed_store) -> None:
        scores = [score for _, score in Retriever(embedder, indexed_store).retrieve_scored("weather plugin humidity", 5)]
        assert scores == sorted(scores, reverse=True)

    def test_query_embedding_failure(self, indexed_store) -> None:
        with pytest.raises(EmbeddingFailureError):
            Retriever(FailingEmbedder(), indexed_store).retrieve("this will FAIL", 3)

    def test_query_dimension_mismatch(self, indexed_store) -> None:
        with pytest.raises(EmbeddingFailureError):
            Retriever(HashingEmbedder(DIMENSION // 2), indexed_store).retrieve("weather", 3)


def test_search_sees_one_corpus_while_it_is_swapped(embedder) -> None:
    texts = [f"note {i} about weather and pasta" for i in range(6)]
    vectors = embedder.embed_documents(texts)
    corpora = [Corpus([_chunk(i, vector, source) for i, vector in enumerate(vectors)]) for source in ("old.md", "new.md")]
    store = InMemoryVectorStore(corpora[0])
    retriever = Retriever(embedder, store)

    def swap() -> None:
        for i in range(300):
            store.replace(corpora[i % 2])

    def search_many() -> list[set[str]]:
        return [{chunk.source_id for chunk in retriever.retrieve("weather and pasta", 6)} for _ in range(200)]

    with ThreadPoolExecutor(max_workers=4) as pool:
        swapper = pool.submit(swap)
        batches = [pool.submit(search_many) for _ in range(3)]
        swapper.result()
        sources = [result for batch in batches for result in batch.result()]

    assert all(len(result) == 1 for result in sources)
    assert {next(iter(result)) for result in sources} <= {"old.md", "new.md"}
