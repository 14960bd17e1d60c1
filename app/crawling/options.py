"""
Effective crawl options for one traversal.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import Any

from app.crawling.errors import CrawlConfigurationError
from app.crawling.templates import WebsiteTemplate

WILDCARD_PATTERN = "*"


@dataclass(frozen=True)
class CrawlOptions:
    """
    Limits and behaviour flags applied by the traversal engine.
    """

    max_depth: int = 2
    max_pages: int = 100
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    wait_for_dynamic: bool = True
    timeout_ms: int = 30000
    delay_ms: int = 1000
    respect_robots: bool = True
    save_content: bool = True
    enable_credential_prompting: bool = True
    retry_failed_pages: bool = False
    skip_duplicate_content: bool = False
    extract_images: bool = True

    @property
    def timeout_seconds(self) -> float:
        return max(1, self.timeout_ms) / 1000.0

    @property
    def delay_seconds(self) -> float:
        return max(0, self.delay_ms) / 1000.0


_OVERRIDABLE_FIELDS = {
    "max_depth": int,
    "max_pages": int,
    "wait_for_dynamic": bool,
    "timeout_ms": int,
    "delay_ms": int,
    "respect_robots": bool,
    "save_content": bool,
    "enable_credential_prompting": bool,
}


def options_from_template(template: WebsiteTemplate) -> CrawlOptions:
    crawl = template.crawl
    return CrawlOptions(
        max_depth=crawl.max_depth,
        max_pages=crawl.max_pages,
        include_patterns=crawl.include_patterns or template.url_patterns.include,
        exclude_patterns=crawl.exclude_patterns or template.url_patterns.exclude,
        wait_for_dynamic=crawl.wait_for_dynamic,
        timeout_ms=crawl.timeout_ms,
        delay_ms=crawl.delay_ms,
        respect_robots=crawl.respect_robots,
        save_content=crawl.save_content,
        enable_credential_prompting=crawl.enable_credential_prompting,
        retry_failed_pages=template.behaviors.retry_failed_pages,
        skip_duplicate_content=template.behaviors.skip_duplicate_content,
        extract_images=template.behaviors.extract_images,
    )


def build_crawl_options(
    *,
    base: CrawlOptions,
    max_depth: int | None = None,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
    overrides: dict[str, Any] | None = None,
) -> CrawlOptions:
    """
    Merge job-level overrides onto template (or default) options.

    Empty pattern lists keep the base patterns; unknown override keys are ignored.
    """

    changes: dict[str, Any] = {}
    for key, caster in _OVERRIDABLE_FIELDS.items():
        if overrides and overrides.get(key) is not None:
            changes[key] = caster(overrides[key])
    if max_depth is not None:
        changes["max_depth"] = int(max_depth)
    if include_patterns:
        changes["include_patterns"] = tuple(include_patterns)
    if exclude_patterns:
        changes["exclude_patterns"] = tuple(exclude_patterns)

    merged = replace(base, **changes)
    if merged.max_depth < 0:
        raise CrawlConfigurationError("max_depth must be zero or greater.")
    if merged.max_pages < 1:
        raise CrawlConfigurationError("max_pages must be at least 1.")
    compile_patterns(merged.include_patterns)
    compile_patterns(merged.exclude_patterns)
    return merged


def compile_patterns(patterns: tuple[str, ...] | list[str]) -> list[re.Pattern[str] | None]:
    """
    Compile URL filter patterns. The bare wildcard compiles to None (match-all).
    """

    compiled: list[re.Pattern[str] | None] = []
    for pattern in patterns:
        if pattern.strip() == WILDCARD_PATTERN:
            compiled.append(None)
            continue
        try:
            compiled.append(re.compile(pattern))
        except re.error as exc:
            raise CrawlConfigurationError(f"Invalid URL pattern {pattern!r}: {exc}") from exc
    return compiled


def matches_any(url: str, compiled: list[re.Pattern[str] | None]) -> bool:
    return any(pattern is None or pattern.search(url) for pattern in compiled)
