"""
app/scheduler/planning.py

Resolve a stored job definition into the template and options a crawl uses.

Precedence: catalog template (or CrawlSettings defaults) -> job overrides.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Any

from app.config import CrawlSettings
from app.crawling.errors import CrawlConfigurationError
from app.crawling.options import CrawlOptions, build_crawl_options, options_from_template
from app.crawling.templates import WebsiteTemplate, get_template_by_id, suggest_template_for_url

AUTO_TEMPLATE_ID = "auto"


@dataclass(frozen=True)
class CrawlPlan:
    base_url: str
    template: WebsiteTemplate | None
    options: CrawlOptions

    @property
    def template_id(self) -> str | None:
        return self.template.id if self.template is not None else None


def default_options(settings: CrawlSettings) -> CrawlOptions:
    return CrawlOptions(
        max_depth=settings.default_max_depth,
        max_pages=settings.default_max_pages,
        timeout_ms=settings.default_timeout_ms,
        delay_ms=settings.default_delay_ms,
    )


def resolve_template(template_id: str | None, base_url: str) -> WebsiteTemplate | None:
    if not template_id:
        return None
    if template_id == AUTO_TEMPLATE_ID:
        return suggest_template_for_url(base_url)
    template = get_template_by_id(template_id)
    if template is None:
        raise CrawlConfigurationError(f"Unknown template id: {template_id!r}")
    return template


def build_crawl_plan(
    *,
    settings: CrawlSettings,
    base_url: str,
    template_id: str | None,
    scrape_children: bool = True,
    max_depth: int | None = None,
    max_pages: int | None = None,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
    overrides: dict[str, Any] | None = None,
) -> CrawlPlan:
    """
    Raises CrawlConfigurationError for unknown templates, negative limits or
    malformed URL patterns.
    """

    template = resolve_template(template_id, base_url)
    base = options_from_template(template) if template is not None else default_options(settings)

    merged_overrides = dict(overrides or {})
    if max_pages is not None:
        merged_overrides["max_pages"] = max_pages

    options = build_crawl_options(
        base=base,
        max_depth=max_depth,
        include_patterns=include_patterns,
        exclude_patterns=exclude_patterns,
        overrides=merged_overrides,
    )
    if not scrape_children:
        options = replace(options, max_depth=0)
    return CrawlPlan(base_url=base_url, template=template, options=options)
