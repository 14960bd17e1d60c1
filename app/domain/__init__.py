"""
app/domain package marker.
"""

from app.domain.crawling import (
    AuthAttempts,
    CrawlErrorEntry,
    CrawlResult,
    CrawlSummary,
    Heading,
    PageMetadata,
    ScrapedPage,
)

__all__ = [
    "AuthAttempts",
    "CrawlErrorEntry",
    "CrawlResult",
    "CrawlSummary",
    "Heading",
    "PageMetadata",
    "ScrapedPage",
]
