"""
app/domain/crawling.py

Domain models for crawl results.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any


@dataclass(frozen=True)
class Heading:
    level: int
    text: str

    def label(self) -> str:
        return f"H{self.level}: {self.text}"


@dataclass(frozen=True)
class PageMetadata:
    """
    Structured metadata pulled from one page.
    """

    depth: int
    parent_url: str | None = None
    description: str | None = None
    keywords: list[str] = field(default_factory=list)
    author: str | None = None
    published_date: str | None = None
    modified_date: str | None = None
    language: str | None = None
    links: list[str] = field(default_factory=list)
    images: list[str] = field(default_factory=list)
    headings: list[Heading] = field(default_factory=list)
    word_count: int = 0
    reading_time_minutes: int = 0
    status_code: int | None = None


@dataclass(frozen=True)
class ScrapedPage:
    """
    In-memory result of fetching and extracting one URL.
    """

    url: str
    title: str
    content: str
    content_hash: str
    metadata: PageMetadata
    auth_method: str = "none"
    fetched_at: datetime | None = None

    @property
    def depth(self) -> int:
        return self.metadata.depth

    def metadata_payload(self) -> dict[str, Any]:
        """
        JSON-ready metadata stored alongside a document version.
        """

        payload = asdict(self.metadata)
        payload["headings"] = [heading.label() for heading in self.metadata.headings]
        payload["auth_method"] = self.auth_method
        return payload


@dataclass(frozen=True)
class CrawlErrorEntry:
    """
    One structured per-URL failure recorded in a run's log.
    """

    url: str
    error: str
    needs_credentials: bool = False
    login_method: str | None = None

    def to_log(self) -> dict[str, Any]:
        entry: dict[str, Any] = {"url": self.url, "error": self.error}
        if self.needs_credentials:
            entry["needsCredentials"] = True
        if self.login_method:
            entry["loginMethod"] = self.login_method
        return entry


@dataclass
class AuthAttempts:
    sso: int = 0
    credentials: int = 0
    failed: int = 0


@dataclass(frozen=True)
class CrawlSummary:
    base_url: str
    total_pages: int
    successful_pages: int
    failed_pages: int
    total_words: int
    average_words_per_page: int
    content_type: str
    auth_attempts: AuthAttempts
    started_at: datetime
    finished_at: datetime
    seed_error: str | None = None
    skipped_duplicates: int = 0

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class CrawlResult:
    pages: list[ScrapedPage]
    errors: list[CrawlErrorEntry]
    summary: CrawlSummary
