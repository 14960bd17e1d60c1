from __future__ import annotations

import pytest

from app.crawling.errors import CrawlConfigurationError
from app.crawling.options import (
    CrawlOptions,
    build_crawl_options,
    compile_patterns,
    matches_any,
    options_from_template,
)
from app.crawling.templates import get_template_by_id


class TestBuildCrawlOptions:
    def test_overrides_replace_template_values(self) -> None:
        template = get_template_by_id("documentation-deep")
        assert template is not None
        base = options_from_template(template)

        merged = build_crawl_options(
            base=base,
            max_depth=1,
            overrides={"delay_ms": 0, "respect_robots": False, "unknown_key": 3},
        )

        assert merged.max_depth == 1
        assert merged.delay_ms == 0
        assert merged.respect_robots is False
        assert merged.max_pages == template.crawl.max_pages

    def test_template_url_patterns_become_defaults(self) -> None:
        template = get_template_by_id("documentation-deep")
        assert template is not None
        options = options_from_template(template)
        assert "docs" in options.include_patterns
        assert "login" in options.exclude_patterns

    def test_empty_pattern_lists_keep_base_patterns(self) -> None:
        base = CrawlOptions(include_patterns=("/a/",))
        merged = build_crawl_options(base=base, include_patterns=[], exclude_patterns=[])
        assert merged.include_patterns == ("/a/",)

    def test_negative_depth_is_rejected(self) -> None:
        with pytest.raises(CrawlConfigurationError):
            build_crawl_options(base=CrawlOptions(), max_depth=-1)

    def test_zero_pages_is_rejected(self) -> None:
        with pytest.raises(CrawlConfigurationError):
            build_crawl_options(base=CrawlOptions(), overrides={"max_pages": 0})

    def test_malformed_pattern_is_rejected(self) -> None:
        with pytest.raises(CrawlConfigurationError, match="Invalid URL pattern"):
            build_crawl_options(base=CrawlOptions(), include_patterns=["(unclosed"])


class TestPatterns:
    def test_wildcard_matches_everything(self) -> None:
        compiled = compile_patterns(["*"])
        assert matches_any("https://example.com/anything", compiled)

    def test_regex_search_semantics(self) -> None:
        compiled = compile_patterns([r"/docs/", r"\.pdf$"])
        assert matches_any("https://example.com/docs/a", compiled)
        assert matches_any("https://example.com/file.pdf", compiled)
        assert not matches_any("https://example.com/blog/a", compiled)

    def test_delay_and_timeout_seconds(self) -> None:
        options = CrawlOptions(delay_ms=1500, timeout_ms=2000)
        assert options.delay_seconds == 1.5
        assert options.timeout_seconds == 2.0
