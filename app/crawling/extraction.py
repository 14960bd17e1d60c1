"""
Template-driven content and metadata extraction from rendered HTML.
"""

from __future__ import annotations

import hashlib
import math
import re
from datetime import datetime, timezone
from urllib.parse import urldefrag, urljoin, urlparse

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from app.crawling.templates import WebsiteTemplate
from app.domain.crawling import Heading, PageMetadata, ScrapedPage

MIN_PRIORITY_CONTENT_CHARS = 100
WORDS_PER_MINUTE = 200

DEFAULT_EXCLUDE_ELEMENTS = (
    "script",
    "style",
    "noscript",
    "nav",
    "header",
    "footer",
    "aside",
    ".nav",
    ".navigation",
    ".menu",
    ".advertisement",
    ".ads",
    ".cookie-banner",
)

DEFAULT_CONTENT_PRIORITY = (
    "main",
    "article",
    ".content",
    ".main-content",
    "#content",
    ".post-content",
    ".entry-content",
)

# First match wins within each chain; entries are (selector, attribute or None for text).
DESCRIPTION_SOURCES = (
    ('meta[name="description"]', "content"),
    ('meta[property="og:description"]', "content"),
    ('meta[name="twitter:description"]', "content"),
    ('meta[property="article:description"]', "content"),
    ('[itemprop="description"]', "content"),
)
AUTHOR_SOURCES = (
    ('meta[name="author"]', "content"),
    ('meta[property="article:author"]', "content"),
    ('meta[name="twitter:creator"]', "content"),
    ('[itemprop="author"]', None),
    ('[rel="author"]', None),
)
PUBLISHED_SOURCES = (
    ('meta[property="article:published_time"]', "content"),
    ('meta[name="date"]', "content"),
    ('[itemprop="datePublished"]', "content"),
    ("time[datetime]", "datetime"),
    ('meta[property="og:updated_time"]', "content"),
)
MODIFIED_SOURCES = (
    ('meta[property="article:modified_time"]', "content"),
    ('meta[property="og:updated_time"]', "content"),
    ('[itemprop="dateModified"]', "content"),
    ('meta[name="last-modified"]', "content"),
)
LANGUAGE_SOURCES = (
    ("html[lang]", "lang"),
    ('meta[http-equiv="content-language"]', "content"),
    ('meta[name="language"]', "content"),
)

_WHITESPACE_RE = re.compile(r"\s+")
_HEADING_RE = re.compile(r"^h[1-6]$")
_SKIPPED_LINK_PREFIXES = ("#", "javascript:", "mailto:", "tel:", "data:")


def normalize_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text or "").strip()


def compute_content_hash(content: str) -> str:
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def _safe_select(soup: BeautifulSoup | Tag, selector: str) -> list[Tag]:
    try:
        return soup.select(selector)
    except SelectorSyntaxError:
        return []


def _safe_select_one(soup: BeautifulSoup | Tag, selector: str) -> Tag | None:
    try:
        return soup.select_one(selector)
    except SelectorSyntaxError:
        return None


def _first_value(soup: BeautifulSoup, sources: tuple[tuple[str, str | None], ...]) -> str | None:
    for selector, attribute in sources:
        for tag in _safe_select(soup, selector):
            if attribute is not None and tag.get(attribute):
                value = normalize_whitespace(str(tag.get(attribute)))
            else:
                value = normalize_whitespace(tag.get_text(" "))
            if value:
                return value
    return None


def _absolute_http_url(base_url: str, raw: str | None) -> str | None:
    """
    Resolve `raw` against `base_url`; None for non-http(s) or malformed values.
    """

    candidate = (raw or "").strip()
    if not candidate or candidate.lower().startswith(_SKIPPED_LINK_PREFIXES):
        return None
    try:
        resolved, _fragment = urldefrag(urljoin(base_url, candidate))
        parsed = urlparse(resolved)
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            return None
    except ValueError:
        return None
    return resolved


def _dedupe(values: list[str]) -> list[str]:
    return list(dict.fromkeys(values))


class ContentExtractor:
    """
    Pulls primary content, title and structured metadata out of page HTML.

    Extraction never raises on empty or malformed markup: the worst case is a
    page with empty content, which the caller records as low-value.
    """

    def extract(
        self,
        *,
        url: str,
        html: str,
        depth: int,
        parent_url: str | None = None,
        template: WebsiteTemplate | None = None,
        page_title: str | None = None,
        auth_method: str = "none",
        status_code: int | None = None,
        extract_images: bool = True,
    ) -> ScrapedPage:
        soup = BeautifulSoup(html or "", "html.parser")
        content = self.extract_content(html, template)
        word_count = len(content.split())

        flags = template.metadata if template is not None else None
        metadata = PageMetadata(
            depth=depth,
            parent_url=parent_url,
            description=self._description(soup, template),
            keywords=self._keywords(soup) if flags is None or flags.extract_tags else [],
            author=_first_value(soup, AUTHOR_SOURCES) if flags is None or flags.extract_authors else None,
            published_date=_first_value(soup, PUBLISHED_SOURCES) if flags is None or flags.extract_dates else None,
            modified_date=_first_value(soup, MODIFIED_SOURCES) if flags is None or flags.extract_dates else None,
            language=_first_value(soup, LANGUAGE_SOURCES),
            links=self._links(soup, url),
            images=self._images(soup, url) if extract_images else [],
            headings=self._headings(soup),
            word_count=word_count,
            reading_time_minutes=math.ceil(word_count / WORDS_PER_MINUTE) if word_count else 0,
            status_code=status_code,
        )
        return ScrapedPage(
            url=url,
            title=self._title(soup, template, page_title),
            content=content,
            content_hash=compute_content_hash(content),
            metadata=metadata,
            auth_method=auth_method,
            fetched_at=datetime.now(timezone.utc),
        )

    def extract_content(self, html: str, template: WebsiteTemplate | None = None) -> str:
        soup = BeautifulSoup(html or "", "html.parser")
        excluded = DEFAULT_EXCLUDE_ELEMENTS
        priority = DEFAULT_CONTENT_PRIORITY
        if template is not None:
            excluded = tuple(dict.fromkeys(("script", "style", "noscript") + template.selectors.exclude_elements))
            priority = template.selectors.content_priority

        for selector in excluded:
            for tag in _safe_select(soup, selector):
                tag.decompose()

        for selector in priority:
            for tag in _safe_select(soup, selector):
                text = normalize_whitespace(tag.get_text(" "))
                if len(text) > MIN_PRIORITY_CONTENT_CHARS:
                    return text

        root = soup.body or soup
        return normalize_whitespace(root.get_text(" "))

    @staticmethod
    def _title(soup: BeautifulSoup, template: WebsiteTemplate | None, page_title: str | None) -> str:
        if page_title and page_title.strip():
            return normalize_whitespace(page_title)
        selectors = template.selectors.title_selectors if template is not None else ("title", "h1")
        for selector in selectors:
            tag = _safe_select_one(soup, selector)
            if tag is not None:
                text = normalize_whitespace(tag.get_text(" "))
                if text:
                    return text
        return "Untitled"

    @staticmethod
    def _description(soup: BeautifulSoup, template: WebsiteTemplate | None) -> str | None:
        value = _first_value(soup, DESCRIPTION_SOURCES)
        if value or template is None:
            return value
        for selector in template.selectors.description_selectors:
            tag = _safe_select_one(soup, selector)
            if tag is None:
                continue
            text = normalize_whitespace(str(tag.get("content") or tag.get_text(" ")))
            if text:
                return text
        return None

    @staticmethod
    def _keywords(soup: BeautifulSoup) -> list[str]:
        meta = _safe_select_one(soup, 'meta[name="keywords"]')
        if meta is not None and meta.get("content"):
            return _dedupe([item.strip() for item in str(meta["content"]).split(",") if item.strip()])
        tags = [
            normalize_whitespace(str(tag.get("content", "")))
            for tag in _safe_select(soup, 'meta[property="article:tag"]')
        ]
        return _dedupe([tag for tag in tags if tag])

    @staticmethod
    def _links(soup: BeautifulSoup, base_url: str) -> list[str]:
        links = [_absolute_http_url(base_url, anchor.get("href")) for anchor in soup.find_all("a", href=True)]
        return _dedupe([link for link in links if link])

    @staticmethod
    def _images(soup: BeautifulSoup, base_url: str) -> list[str]:
        images: list[str] = []
        for image in soup.find_all("img"):
            source = image.get("src") or image.get("data-src") or image.get("data-lazy-src")
            resolved = _absolute_http_url(base_url, source)
            if resolved:
                images.append(resolved)
        return _dedupe(images)

    @staticmethod
    def _headings(soup: BeautifulSoup) -> list[Heading]:
        headings: list[Heading] = []
        for tag in soup.find_all(_HEADING_RE):
            text = normalize_whitespace(tag.get_text(" "))
            if text:
                headings.append(Heading(level=int(tag.name[1]), text=text))
        return headings
