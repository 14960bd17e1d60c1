"""Embedding adapters for document versions.

Provides a base interface, an adapter for OpenAI-compatible embedding
APIs and a deterministic mock for testing.
"""

from __future__ import annotations

import hashlib
import math
from abc import ABC, abstractmethod
from typing import Optional

from app.config import EmbeddingSettings, get_embedding_settings

MOCK_DIMENSIONS = 16


def chunk_text(text: str, *, chunk_size: int = 1000, overlap: int = 200) -> list[str]:
    """Split text into overlapping character windows.

    Args:
        text: Cleaned document content.
        chunk_size: Maximum characters per chunk.
        overlap: Characters shared between consecutive chunks.

    Returns:
        Non-empty chunks in document order. Empty input yields an empty list.
    """
    cleaned = (text or "").strip()
    if not cleaned:
        return []
    if overlap >= chunk_size:
        raise ValueError("overlap must be smaller than chunk_size")

    step = chunk_size - overlap
    chunks: list[str] = []
    for start in range(0, len(cleaned), step):
        chunk = cleaned[start : start + chunk_size].strip()
        if chunk:
            chunks.append(chunk)
        if start + chunk_size >= len(cleaned):
            break
    return chunks


class BaseEmbeddingAdapter(ABC):
    """Abstract base for all embedding adapters."""

    @abstractmethod
    def embed(self, text: str) -> list[float]:
        """Return one retrieval vector for the given text."""


class OpenAIEmbeddingAdapter(BaseEmbeddingAdapter):
    """Adapter for OpenAI-compatible embedding APIs."""

    def __init__(
        self,
        model: str = "text-embedding-3-small",
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
    ) -> None:
        try:
            from openai import OpenAI  # type: ignore[import-untyped]
        except ImportError as exc:
            raise ImportError(
                "openai package is required for OpenAIEmbeddingAdapter. "
                "Install it with: pip install openai"
            ) from exc

        client_kwargs: dict = {"api_key": api_key or ""}
        if base_url:
            client_kwargs["base_url"] = base_url

        self._client = OpenAI(**client_kwargs)
        self._model = model

    def embed(self, text: str) -> list[float]:
        response = self._client.embeddings.create(model=self._model, input=text)
        return list(response.data[0].embedding)


class MockEmbeddingAdapter(BaseEmbeddingAdapter):
    """Deterministic adapter deriving a unit vector from a SHA-256 digest.

    Used for local testing and CI pipelines where no embedding API
    is available. Equal inputs always map to equal vectors.
    """

    def __init__(self, dimensions: int = MOCK_DIMENSIONS) -> None:
        self._dimensions = dimensions

    def embed(self, text: str) -> list[float]:
        digest = hashlib.sha256(text.encode("utf-8")).digest()
        raw = [(digest[i % len(digest)] / 255.0) - 0.5 for i in range(self._dimensions)]
        norm = math.sqrt(sum(value * value for value in raw)) or 1.0
        return [round(value / norm, 6) for value in raw]


class DocumentEmbedder:
    """Embeds the first chunk of a document's content."""

    def __init__(self, adapter: BaseEmbeddingAdapter, *, chunk_size: int = 1000, chunk_overlap: int = 200) -> None:
        self._adapter = adapter
        self._chunk_size = chunk_size
        self._chunk_overlap = chunk_overlap

    def embed_document(self, title: str, content: str) -> list[float] | None:
        chunks = chunk_text(content, chunk_size=self._chunk_size, overlap=self._chunk_overlap)
        if not chunks:
            return None
        head = f"{title}\n\n{chunks[0]}" if title else chunks[0]
        return self._adapter.embed(head)


def get_embedding_adapter(settings: EmbeddingSettings | None = None) -> BaseEmbeddingAdapter:
    resolved = settings or get_embedding_settings()
    if resolved.adapter == "openai":
        return OpenAIEmbeddingAdapter(model=resolved.model, api_key=resolved.api_key)
    if resolved.adapter == "mock":
        return MockEmbeddingAdapter()
    raise ValueError(f"Unknown embedding adapter: {resolved.adapter!r}")


def build_document_embedder(settings: EmbeddingSettings | None = None) -> DocumentEmbedder:
    resolved = settings or get_embedding_settings()
    return DocumentEmbedder(
        get_embedding_adapter(resolved),
        chunk_size=resolved.chunk_size,
        chunk_overlap=resolved.chunk_overlap,
    )
