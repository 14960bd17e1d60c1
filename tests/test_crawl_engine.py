"""
tests/test_crawl_engine.py

Traversal behaviour of CrawlEngine against a scripted site.

Coverage
--------
- Three-page site yields three pages and no errors
- Cycles, depth and page limits
- Duplicate content, include/exclude filters, off-host links
- Per-URL failures are recorded, never raised
- robots.txt blocks
- Internal domains without credentials short-circuit
- SSO is refused before any fetch
- Form login mid-crawl
- Cancellation
"""

from __future__ import annotations

import pytest

from app.config import CrawlSettings
from app.crawling.auth.config import FormAuth, SSOAuth
from app.crawling.cancellation import CancellationToken
from app.crawling.engine import CrawlEngine, normalize_url
from app.crawling.errors import CrawlCancelledError, CrawlConfigurationError
from app.crawling.options import CrawlOptions
from app.crawling.rate_limiter import DomainRateLimiter
from tests.fakes import AllowAllRobots, FakeContext, FakeSite, html_page

ROOT = "https://example.com/"

LOGIN_HTML = """
<html><head><title>Sign in</title></head><body>
<form><input name="username"><input type="password" name="password"></form></body></html>
"""


def _options(**changes) -> CrawlOptions:
    values = {"max_depth": 2, "max_pages": 10, "delay_ms": 0, "respect_robots": False}
    values.update(changes)
    return CrawlOptions(**values)


class _Harness:
    def __init__(
        self,
        site: FakeSite,
        settings: CrawlSettings,
        rate_limiter: DomainRateLimiter,
        robots: AllowAllRobots | None = None,
    ) -> None:
        self.site = site
        self.contexts: list[FakeContext] = []
        self.engine = CrawlEngine(
            settings=settings,
            context_factory=self._new_context,
            robots_policy=robots or AllowAllRobots(),
            rate_limiter=rate_limiter,
        )

    def _new_context(self, options: CrawlOptions) -> FakeContext:
        context = FakeContext(self.site)
        self.contexts.append(context)
        return context


@pytest.fixture()
def site() -> FakeSite:
    return FakeSite()


@pytest.fixture()
def harness(site: FakeSite, crawl_settings: CrawlSettings, rate_limiter: DomainRateLimiter) -> _Harness:
    return _Harness(site, crawl_settings, rate_limiter)


class TestTraversal:
    def test_three_page_site(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "welcome to the home page", ("/a", "/b")))
        site.add(f"{ROOT}a", html_page("Page A", "first section content"))
        site.add(f"{ROOT}b", html_page("Page B", "second section content"))

        result = harness.engine.crawl(ROOT, _options())

        assert sorted(page.url for page in result.pages) == [ROOT, f"{ROOT}a", f"{ROOT}b"]
        assert result.errors == []
        assert all(page.depth <= 2 for page in result.pages)
        assert result.summary.successful_pages == 3
        assert result.summary.failed_pages == 0
        assert result.summary.content_type == "public"
        assert result.summary.seed_error is None
        assert harness.contexts[0].closed is True

    def test_parent_and_depth_are_tracked(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/a",)))
        site.add(f"{ROOT}a", html_page("Page A", "child", ("/a/deep",)))
        site.add(f"{ROOT}a/deep", html_page("Deep", "grandchild"))

        result = harness.engine.crawl(ROOT, _options())
        by_url = {page.url: page for page in result.pages}

        assert by_url[ROOT].depth == 0
        assert by_url[f"{ROOT}a"].metadata.parent_url == ROOT
        assert by_url[f"{ROOT}a/deep"].depth == 2
        assert by_url[f"{ROOT}a/deep"].metadata.parent_url == f"{ROOT}a"

    def test_cycles_are_visited_once(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/a", "/b")))
        site.add(f"{ROOT}a", html_page("Page A", "alpha", ("/", "/b", "/a#section")))
        site.add(f"{ROOT}b", html_page("Page B", "beta", ("/a", "/")))

        result = harness.engine.crawl(ROOT, _options(max_depth=5))

        assert len(result.pages) == 3
        assert sorted(site.visits) == sorted([ROOT, f"{ROOT}a", f"{ROOT}b"])

    def test_depth_limit(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/1",)))
        site.add(f"{ROOT}1", html_page("One", "one", ("/2",)))
        site.add(f"{ROOT}2", html_page("Two", "two"))

        result = harness.engine.crawl(ROOT, _options(max_depth=1))

        assert [page.url for page in result.pages] == [ROOT, f"{ROOT}1"]

    def test_zero_depth_fetches_only_the_seed(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/a",)))
        site.add(f"{ROOT}a", html_page("Page A", "alpha"))

        result = harness.engine.crawl(ROOT, _options(max_depth=0))

        assert [page.url for page in result.pages] == [ROOT]

    def test_page_limit(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/a", "/b", "/c")))
        for name in ("a", "b", "c"):
            site.add(f"{ROOT}{name}", html_page(f"Page {name}", f"body {name}"))

        result = harness.engine.crawl(ROOT, _options(max_pages=2))

        assert len(result.pages) == 2

    def test_duplicate_content_is_skipped(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/a", "/b")))
        site.add(f"{ROOT}a", html_page("Mirror", "same text"))
        site.add(f"{ROOT}b", html_page("Mirror", "same text"))

        result = harness.engine.crawl(ROOT, _options(skip_duplicate_content=True))

        assert len(result.pages) == 2
        assert result.summary.skipped_duplicates == 1

    def test_off_host_links_are_ignored(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("https://other.example.org/", "https://sub.example.com/")))

        result = harness.engine.crawl(ROOT, _options())

        assert [page.url for page in result.pages] == [ROOT]
        assert site.visits == [ROOT]

    def test_include_patterns_do_not_filter_the_seed(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/docs/start", "/blog/news")))
        site.add(f"{ROOT}docs/start", html_page("Start", "docs"))
        site.add(f"{ROOT}blog/news", html_page("News", "blog"))

        result = harness.engine.crawl(ROOT, _options(include_patterns=("/docs/",)))

        assert sorted(page.url for page in result.pages) == [ROOT, f"{ROOT}docs/start"]

    def test_exclude_patterns(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/public", "/private/area")))
        site.add(f"{ROOT}public", html_page("Public", "open"))
        site.add(f"{ROOT}private/area", html_page("Private", "closed"))

        result = harness.engine.crawl(ROOT, _options(exclude_patterns=("/private",)))

        assert sorted(page.url for page in result.pages) == [ROOT, f"{ROOT}public"]
        assert f"{ROOT}private/area" not in site.visits

    def test_invalid_base_url(self, harness: _Harness) -> None:
        with pytest.raises(CrawlConfigurationError):
            harness.engine.crawl("ftp://example.com/", _options())


class TestFailures:
    def test_page_errors_are_logged_not_raised(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root", ("/missing", "/gone", "/secret")))
        site.add(f"{ROOT}gone", "<html><body>Not here</body></html>", status=404)
        site.add(f"{ROOT}secret", "<html><body>Nope</body></html>", status=403)

        result = harness.engine.crawl(ROOT, _options())
        errors = {entry.url: entry for entry in result.errors}

        assert [page.url for page in result.pages] == [ROOT]
        assert set(errors) == {f"{ROOT}missing", f"{ROOT}gone", f"{ROOT}secret"}
        assert errors[f"{ROOT}gone"].error == "HTTP 404 response"
        assert errors[f"{ROOT}gone"].needs_credentials is False
        assert errors[f"{ROOT}secret"].needs_credentials is True
        assert result.summary.total_pages == 4
        assert result.summary.auth_attempts.failed == 1
        assert result.summary.seed_error is None

    def test_seed_failure_is_reported(self, site: FakeSite, harness: _Harness) -> None:
        result = harness.engine.crawl(ROOT, _options())

        assert result.pages == []
        assert len(result.errors) == 1
        assert result.summary.seed_error is not None
        assert result.errors[0].to_log()["url"] == ROOT

    def test_robots_blocked_urls_are_errors_without_a_fetch(
        self,
        site: FakeSite,
        crawl_settings: CrawlSettings,
        rate_limiter: DomainRateLimiter,
    ) -> None:
        site.add(ROOT, html_page("Home", "root", ("/a", "/b")))
        site.add(f"{ROOT}a", html_page("Page A", "alpha"))
        site.add(f"{ROOT}b", html_page("Page B", "beta"))
        harness = _Harness(site, crawl_settings, rate_limiter, robots=AllowAllRobots(blocked=(f"{ROOT}b",)))

        result = harness.engine.crawl(ROOT, _options(respect_robots=True))

        assert sorted(page.url for page in result.pages) == [ROOT, f"{ROOT}a"]
        assert [entry.error for entry in result.errors] == ["Blocked by robots.txt"]
        assert f"{ROOT}b" not in site.visits

    def test_login_page_without_credentials(self, site: FakeSite, harness: _Harness) -> None:
        site.login_redirects[ROOT] = f"{ROOT}login"
        site.add(f"{ROOT}login", LOGIN_HTML)

        result = harness.engine.crawl(ROOT, _options())

        assert result.pages == []
        entry = result.errors[0]
        assert entry.needs_credentials is True
        assert entry.login_method == "form"
        assert entry.to_log()["needsCredentials"] is True
        assert result.summary.seed_error is not None


class TestAuthentication:
    def test_internal_domain_without_credentials_short_circuits(self, harness: _Harness) -> None:
        seed = "https://wiki.corp.example.com/"

        result = harness.engine.crawl(seed, _options())

        assert harness.contexts == []
        assert result.pages == []
        assert result.errors[0].needs_credentials is True
        assert result.errors[0].login_method == "cookie"
        assert result.summary.content_type == "internal"
        assert "Internal domain detected" in (result.summary.seed_error or "")

    def test_sso_is_refused_before_fetching(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root"))

        result = harness.engine.crawl(ROOT, _options(), auth=SSOAuth(provider="okta"))

        assert result.pages == []
        assert site.visits == []
        assert result.summary.auth_attempts.sso == 1
        assert result.summary.auth_attempts.failed == 1
        assert "Needs manual credential" in result.errors[0].error
        assert harness.contexts[0].closed is True

    def test_form_login_then_crawl(self, site: FakeSite, harness: _Harness) -> None:
        site.login_redirects[ROOT] = f"{ROOT}login"
        site.add(f"{ROOT}login", LOGIN_HTML)
        site.add(ROOT, html_page("Portal", "account overview", ("/reports",)))
        site.add(f"{ROOT}reports", html_page("Reports", "quarterly numbers"))

        result = harness.engine.crawl(ROOT, _options(), auth=FormAuth(username="alice", password="pw"))

        assert sorted(page.url for page in result.pages) == [ROOT, f"{ROOT}reports"]
        assert result.errors == []
        assert result.summary.auth_attempts.credentials == 1
        assert result.summary.content_type == "credential-based"
        assert harness.contexts[0].filled['input[type="password"]'] == "pw"
        assert all(page.auth_method == "credentials" for page in result.pages)


class TestCancellation:
    def test_cancelled_token_stops_the_crawl(self, site: FakeSite, harness: _Harness) -> None:
        site.add(ROOT, html_page("Home", "root"))
        token = CancellationToken()
        token.cancel("operator stop")

        with pytest.raises(CrawlCancelledError, match="operator stop"):
            harness.engine.crawl(ROOT, _options(), cancel_token=token)

        assert site.visits == []
        assert harness.contexts[0].closed is True


def test_normalize_url_drops_fragment() -> None:
    assert normalize_url(" https://example.com/a#top ") == "https://example.com/a"
