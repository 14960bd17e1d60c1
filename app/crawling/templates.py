"""
app/crawling/templates.py

Static catalog of crawling profiles.

Each template bundles crawl limits, extraction selectors, URL filters and
behaviour flags tuned for one category of site. Templates are immutable and
are never mutated at runtime; job-level overrides are merged into a separate
``CrawlOptions`` value (see ``app.crawling.options``).
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from urllib.parse import urlparse

TEMPLATE_CATEGORIES = (
    "documentation",
    "ecommerce",
    "news",
    "corporate",
    "blog",
    "wiki",
    "social",
    "custom",
)

DEFAULT_TEMPLATE_ID = "corporate-comprehensive"


@dataclass(frozen=True)
class TemplateCrawlLimits:
    max_depth: int
    max_pages: int
    timeout_ms: int
    delay_ms: int
    wait_for_dynamic: bool = True
    respect_robots: bool = True
    save_content: bool = True
    enable_credential_prompting: bool = True
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class TemplateSelectors:
    content_priority: tuple[str, ...]
    exclude_elements: tuple[str, ...]
    link_patterns: tuple[str, ...]
    title_selectors: tuple[str, ...]
    description_selectors: tuple[str, ...]


@dataclass(frozen=True)
class TemplateUrlPatterns:
    include: tuple[str, ...] = ()
    exclude: tuple[str, ...] = ()
    follow_patterns: tuple[str, ...] = ()


@dataclass(frozen=True)
class TemplateMetadataFlags:
    detect_articles: bool = True
    extract_authors: bool = True
    extract_dates: bool = True
    extract_categories: bool = True
    extract_tags: bool = True


@dataclass(frozen=True)
class TemplateBehaviors:
    respect_robots: bool = True
    delay_ms: int = 1000
    retry_failed_pages: bool = True
    skip_duplicate_content: bool = True
    extract_images: bool = True
    extract_downloads: bool = True


@dataclass(frozen=True)
class WebsiteTemplate:
    """
    Named bundle of extraction selectors and traversal limits.
    """

    id: str
    name: str
    description: str
    category: str
    crawl: TemplateCrawlLimits
    selectors: TemplateSelectors
    url_patterns: TemplateUrlPatterns = field(default_factory=TemplateUrlPatterns)
    metadata: TemplateMetadataFlags = field(default_factory=TemplateMetadataFlags)
    behaviors: TemplateBehaviors = field(default_factory=TemplateBehaviors)


def _follow(*segments: str) -> tuple[str, ...]:
    return tuple(f"*/{segment}/*" for segment in segments)


def _links(*segments: str) -> tuple[str, ...]:
    return tuple(f"/{segment}/" for segment in segments)


_DOCS_SEGMENTS = ("docs", "documentation", "guide", "api", "reference", "tutorial", "help", "manual", "wiki")
_CORPORATE_SEGMENTS = ("products", "services", "solutions", "about", "news", "press", "resources", "support", "careers")
_NEWS_SEGMENTS = ("article", "post", "news", "blog", "story", "category", "tag")
_SHOP_SEGMENTS = ("product", "item", "catalog", "category", "shop", "store", "collection")
_WIKI_SEGMENTS = ("wiki", "page", "article", "entry", "topic", "category")
_SOCIAL_SEGMENTS = ("post", "status", "profile", "user", "topic", "discussion", "thread")


WEBSITE_TEMPLATES: tuple[WebsiteTemplate, ...] = (
    WebsiteTemplate(
        id="documentation-deep",
        name="Documentation Deep Dive",
        description="Comprehensive crawling for documentation sites, APIs, guides, and technical content",
        category="documentation",
        crawl=TemplateCrawlLimits(max_depth=5, max_pages=100, timeout_ms=30000, delay_ms=1000),
        selectors=TemplateSelectors(
            content_priority=(
                "main",
                "article",
                ".content",
                ".documentation",
                ".docs-content",
                ".guide-content",
                ".api-docs",
                ".markdown-body",
                "#content",
                ".post-content",
            ),
            exclude_elements=(
                "nav",
                "header",
                "footer",
                ".sidebar",
                ".navigation",
                ".breadcrumb",
                ".table-of-contents",
                ".search",
                ".comments",
                ".social-share",
            ),
            link_patterns=_links(*_DOCS_SEGMENTS),
            title_selectors=("h1", ".page-title", ".doc-title", "title"),
            description_selectors=('meta[name="description"]', ".description", ".summary", ".lead"),
        ),
        url_patterns=TemplateUrlPatterns(
            include=_DOCS_SEGMENTS,
            exclude=("login", "register", "admin", "dashboard", "profile", "settings"),
            follow_patterns=_follow(*_DOCS_SEGMENTS),
        ),
        behaviors=TemplateBehaviors(delay_ms=1000),
    ),
    WebsiteTemplate(
        id="corporate-comprehensive",
        name="Corporate Site Complete",
        description="Full corporate website analysis including products, services, news, and resources",
        category="corporate",
        crawl=TemplateCrawlLimits(max_depth=4, max_pages=150, timeout_ms=45000, delay_ms=2000),
        selectors=TemplateSelectors(
            content_priority=(
                "main",
                "article",
                ".content",
                ".page-content",
                ".main-content",
                ".hero-content",
                ".product-info",
                ".service-description",
                ".news-content",
                "#content",
            ),
            exclude_elements=(
                "nav",
                "header",
                "footer",
                ".cookie-banner",
                ".chat-widget",
                ".social-media",
                ".advertisement",
                ".popup",
                ".modal",
            ),
            link_patterns=_links(*_CORPORATE_SEGMENTS, "contact"),
            title_selectors=("h1", ".page-title", ".hero-title", "title"),
            description_selectors=(
                'meta[name="description"]',
                ".page-description",
                ".hero-description",
                ".summary",
            ),
        ),
        url_patterns=TemplateUrlPatterns(
            include=_CORPORATE_SEGMENTS,
            exclude=("login", "register", "admin", "checkout", "cart", "account"),
            follow_patterns=_follow(*_CORPORATE_SEGMENTS),
        ),
        metadata=TemplateMetadataFlags(extract_tags=False),
        behaviors=TemplateBehaviors(delay_ms=2000),
    ),
    WebsiteTemplate(
        id="news-blog-aggressive",
        name="News & Blog Aggressive",
        description="Comprehensive news site and blog crawling with article extraction",
        category="news",
        crawl=TemplateCrawlLimits(
            max_depth=3,
            max_pages=200,
            timeout_ms=20000,
            delay_ms=800,
            enable_credential_prompting=False,
        ),
        selectors=TemplateSelectors(
            content_priority=(
                "article",
                ".article-content",
                ".post-content",
                ".entry-content",
                ".news-content",
                ".blog-content",
                "main",
                ".content",
            ),
            exclude_elements=(
                "nav",
                "header",
                "footer",
                ".sidebar",
                ".comments",
                ".social-share",
                ".related-articles",
                ".advertisement",
                ".newsletter-signup",
            ),
            link_patterns=_links(*_NEWS_SEGMENTS, "archive"),
            title_selectors=("h1", ".article-title", ".post-title", ".headline"),
            description_selectors=('meta[name="description"]', ".article-summary", ".excerpt", ".lead"),
        ),
        url_patterns=TemplateUrlPatterns(
            include=_NEWS_SEGMENTS,
            exclude=("login", "register", "subscribe", "newsletter", "admin"),
            follow_patterns=_follow(*_NEWS_SEGMENTS),
        ),
        behaviors=TemplateBehaviors(delay_ms=800, extract_downloads=False),
    ),
    WebsiteTemplate(
        id="ecommerce-catalog",
        name="E-commerce Catalog",
        description="Product catalog crawling with pricing, descriptions, and specifications",
        category="ecommerce",
        crawl=TemplateCrawlLimits(
            max_depth=4,
            max_pages=300,
            timeout_ms=30000,
            delay_ms=1500,
            enable_credential_prompting=False,
        ),
        selectors=TemplateSelectors(
            content_priority=(
                ".product-content",
                ".product-description",
                ".product-details",
                ".item-description",
                "main",
                ".content",
                ".catalog-content",
            ),
            exclude_elements=(
                "nav",
                "header",
                "footer",
                ".cart",
                ".checkout",
                ".reviews",
                ".recommendations",
                ".social-share",
                ".advertisement",
            ),
            link_patterns=_links(*_SHOP_SEGMENTS),
            title_selectors=("h1", ".product-title", ".item-title", ".product-name"),
            description_selectors=(
                'meta[name="description"]',
                ".product-description",
                ".product-summary",
                ".item-description",
            ),
        ),
        url_patterns=TemplateUrlPatterns(
            include=_SHOP_SEGMENTS,
            exclude=("cart", "checkout", "payment", "account", "login", "register"),
            follow_patterns=_follow(*_SHOP_SEGMENTS),
        ),
        metadata=TemplateMetadataFlags(detect_articles=False, extract_authors=False, extract_dates=False),
        behaviors=TemplateBehaviors(delay_ms=1500, extract_downloads=False),
    ),
    WebsiteTemplate(
        id="wiki-knowledge",
        name="Wiki Knowledge Base",
        description="Comprehensive wiki and knowledge base crawling with cross-references",
        category="wiki",
        crawl=TemplateCrawlLimits(
            max_depth=6,
            max_pages=500,
            timeout_ms=25000,
            delay_ms=500,
            wait_for_dynamic=False,
        ),
        selectors=TemplateSelectors(
            content_priority=(
                ".mw-content-text",
                ".wiki-content",
                "#content",
                "main",
                "article",
                ".page-content",
                ".entry-content",
            ),
            exclude_elements=(
                "nav",
                "header",
                "footer",
                ".sidebar",
                ".navigation",
                ".toc",
                ".references",
                ".infobox",
                ".navbox",
            ),
            link_patterns=_links(*_WIKI_SEGMENTS, "namespace"),
            title_selectors=("h1", ".firstHeading", ".page-title", "title"),
            description_selectors=('meta[name="description"]', ".page-summary", ".description"),
        ),
        url_patterns=TemplateUrlPatterns(
            include=_WIKI_SEGMENTS,
            exclude=("talk", "user", "special", "help", "template"),
            follow_patterns=_follow(*_WIKI_SEGMENTS),
        ),
        behaviors=TemplateBehaviors(delay_ms=500),
    ),
    WebsiteTemplate(
        id="social-platform",
        name="Social Platform",
        description="Social media and community platform crawling (public content only)",
        category="social",
        crawl=TemplateCrawlLimits(max_depth=3, max_pages=100, timeout_ms=15000, delay_ms=2000),
        selectors=TemplateSelectors(
            content_priority=(
                ".post-content",
                ".message-content",
                ".comment-content",
                ".status-content",
                "main",
                ".content",
                "article",
            ),
            exclude_elements=(
                "nav",
                "header",
                "footer",
                ".sidebar",
                ".advertisement",
                ".suggested-content",
                ".social-actions",
                ".share-buttons",
            ),
            link_patterns=_links(*_SOCIAL_SEGMENTS),
            title_selectors=("h1", ".post-title", ".status-title", "title"),
            description_selectors=('meta[name="description"]', ".post-summary", ".description"),
        ),
        url_patterns=TemplateUrlPatterns(
            include=_SOCIAL_SEGMENTS,
            exclude=("login", "register", "settings", "private", "admin"),
            follow_patterns=_follow(*_SOCIAL_SEGMENTS),
        ),
        metadata=TemplateMetadataFlags(extract_categories=False),
        behaviors=TemplateBehaviors(
            delay_ms=2000,
            retry_failed_pages=False,
            extract_images=False,
            extract_downloads=False,
        ),
    ),
    WebsiteTemplate(
        id="custom-aggressive",
        name="Custom Aggressive",
        description="Maximum depth crawling for unknown sites; use with caution",
        category="custom",
        crawl=TemplateCrawlLimits(
            max_depth=8,
            max_pages=1000,
            timeout_ms=60000,
            delay_ms=3000,
            respect_robots=False,
        ),
        selectors=TemplateSelectors(
            content_priority=(
                "main",
                "article",
                ".content",
                ".main-content",
                ".page-content",
                "#content",
                ".entry-content",
                ".post-content",
                "body",
            ),
            exclude_elements=(
                "nav",
                "header",
                "footer",
                "script",
                "style",
                ".advertisement",
                ".popup",
                ".modal",
                ".cookie-banner",
            ),
            link_patterns=("*",),
            title_selectors=("h1", ".title", ".page-title", "title"),
            description_selectors=('meta[name="description"]', ".description", ".summary"),
        ),
        url_patterns=TemplateUrlPatterns(
            include=("*",),
            exclude=("javascript:", "mailto:", "tel:", "data:"),
            follow_patterns=("*",),
        ),
        behaviors=TemplateBehaviors(respect_robots=False, delay_ms=3000),
    ),
)

_TEMPLATES_BY_ID: dict[str, WebsiteTemplate] = {template.id: template for template in WEBSITE_TEMPLATES}


def get_template_by_id(template_id: str) -> WebsiteTemplate | None:
    return _TEMPLATES_BY_ID.get(template_id)


def get_templates_by_category(category: str) -> list[WebsiteTemplate]:
    return [template for template in WEBSITE_TEMPLATES if template.category == category]


# Evaluated top to bottom; the first rule whose domain or path markers match wins.
_SUGGESTION_RULES: tuple[tuple[str, tuple[str, ...], tuple[str, ...]], ...] = (
    ("documentation-deep", ("docs", "documentation"), ("/docs/", "/documentation/")),
    ("wiki-knowledge", ("wiki", "wikipedia", "confluence"), ("/wiki/",)),
    (
        "ecommerce-catalog",
        ("shop", "store", "amazon", "ebay", "etsy", "shopify"),
        ("/product/", "/catalog/"),
    ),
    ("news-blog-aggressive", ("news", "blog"), ("/blog/", "/news/", "/article/", "/post/")),
    ("social-platform", ("reddit", "forum", "community", "discord"), ("/forum/", "/community/")),
)


def suggest_template_for_url(url: str) -> WebsiteTemplate:
    """
    Pick the best-fitting template for `url`.

    Always returns a template: unparseable URLs and sites that match no rule
    fall back to the corporate profile.
    """

    try:
        parsed = urlparse(url)
        domain = (parsed.hostname or "").lower()
        path = parsed.path.lower()
    except ValueError:
        return _TEMPLATES_BY_ID[DEFAULT_TEMPLATE_ID]

    for template_id, domain_markers, path_markers in _SUGGESTION_RULES:
        if any(marker in domain for marker in domain_markers) or any(
            marker in path for marker in path_markers
        ):
            return _TEMPLATES_BY_ID[template_id]
    return _TEMPLATES_BY_ID[DEFAULT_TEMPLATE_ID]


def create_custom_template(
    name: str,
    max_depth: int,
    max_pages: int,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
) -> WebsiteTemplate:
    """
    Build an ad-hoc template with generic selectors and the given limits.
    """

    include = tuple(include_patterns or ())
    exclude = tuple(exclude_patterns or ())
    follow = include or ("*",)
    return WebsiteTemplate(
        id=f"custom-{int(time.time() * 1000)}",
        name=name,
        description=f"Custom template: {name}",
        category="custom",
        crawl=TemplateCrawlLimits(
            max_depth=max_depth,
            max_pages=max_pages,
            timeout_ms=30000,
            delay_ms=1500,
            include_patterns=include,
            exclude_patterns=exclude,
        ),
        selectors=TemplateSelectors(
            content_priority=("main", "article", ".content", "#content", "body"),
            exclude_elements=("nav", "header", "footer", "script", "style"),
            link_patterns=follow,
            title_selectors=("h1", ".title", "title"),
            description_selectors=('meta[name="description"]', ".description"),
        ),
        url_patterns=TemplateUrlPatterns(include=include, exclude=exclude, follow_patterns=follow),
        behaviors=TemplateBehaviors(delay_ms=1500),
    )
