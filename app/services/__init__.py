"""
app/services package marker.
"""

from app.services.crawl_job_service import CrawlJobDefinition, CrawlJobService, get_crawl_job_service
from app.services.embedding_service import (
    BaseEmbeddingAdapter,
    DocumentEmbedder,
    MockEmbeddingAdapter,
    OpenAIEmbeddingAdapter,
    build_document_embedder,
    get_embedding_adapter,
)

__all__ = [
    "BaseEmbeddingAdapter",
    "CrawlJobDefinition",
    "CrawlJobService",
    "DocumentEmbedder",
    "MockEmbeddingAdapter",
    "OpenAIEmbeddingAdapter",
    "build_document_embedder",
    "get_crawl_job_service",
    "get_embedding_adapter",
]
