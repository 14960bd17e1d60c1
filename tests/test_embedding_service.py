from __future__ import annotations

import math

import pytest

from app.config import EmbeddingSettings
from app.services.embedding_service import (
    DocumentEmbedder,
    MockEmbeddingAdapter,
    chunk_text,
    get_embedding_adapter,
)


class TestChunkText:
    def test_empty_text_has_no_chunks(self) -> None:
        assert chunk_text("   ") == []

    def test_short_text_is_one_chunk(self) -> None:
        assert chunk_text("hello world", chunk_size=100, overlap=10) == ["hello world"]

    def test_chunks_overlap(self) -> None:
        chunks = chunk_text("abcdefghij", chunk_size=4, overlap=2)

        assert chunks == ["abcd", "cdef", "efgh", "ghij"]

    def test_overlap_must_be_smaller_than_size(self) -> None:
        with pytest.raises(ValueError):
            chunk_text("abc", chunk_size=2, overlap=2)


class TestEmbedding:
    def test_mock_vectors_are_deterministic_unit_vectors(self) -> None:
        adapter = MockEmbeddingAdapter(dimensions=8)
        first = adapter.embed("release notes")

        assert first == adapter.embed("release notes")
        assert first != adapter.embed("pricing")
        assert len(first) == 8
        assert math.isclose(math.sqrt(sum(value * value for value in first)), 1.0, abs_tol=1e-4)

    def test_embedder_skips_empty_documents(self) -> None:
        embedder = DocumentEmbedder(MockEmbeddingAdapter())

        assert embedder.embed_document("Title", "") is None

    def test_embedder_embeds_title_and_first_chunk(self) -> None:
        adapter = MockEmbeddingAdapter()
        embedder = DocumentEmbedder(adapter, chunk_size=5, chunk_overlap=1)

        assert embedder.embed_document("T", "abcdefgh") == adapter.embed("T\n\nabcde")

    def test_adapter_selection(self) -> None:
        assert isinstance(get_embedding_adapter(EmbeddingSettings(adapter="mock")), MockEmbeddingAdapter)
        with pytest.raises(ValueError, match="Unknown embedding adapter"):
            get_embedding_adapter(EmbeddingSettings(adapter="faiss"))
