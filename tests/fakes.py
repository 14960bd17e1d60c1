"""
tests/fakes.py

Scripted browsing context that stands in for Playwright so crawls run
without a browser or network.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from app.crawling.auth.config import CookieSpec
from app.crawling.errors import PageFetchError


@dataclass
class FakeSite:
    """
    In-memory website keyed by URL.

    ``pages`` maps a URL to ``(status, html)``. A URL listed in
    ``login_redirects`` serves the page at the mapped login URL until a form
    login succeeds; ``login_succeeds`` controls whether submitting the form
    leaves the login page.
    """

    pages: dict[str, tuple[int, str]] = field(default_factory=dict)
    login_redirects: dict[str, str] = field(default_factory=dict)
    login_succeeds: bool = True
    visits: list[str] = field(default_factory=list)
    logged_in: bool = False

    def add(self, url: str, html: str, status: int = 200) -> None:
        self.pages[url] = (status, html)


class FakePage:
    def __init__(self, site: FakeSite, context: "FakeContext") -> None:
        self._site = site
        self._context = context
        self._url = ""
        self._html = ""
        self.filled: dict[str, str] = {}
        self.closed = False

    @property
    def url(self) -> str:
        return self._url

    def goto(self, url: str, *, timeout_ms: int, wait_for_idle: bool = True) -> int | None:
        self._site.visits.append(url)
        target = url
        if url in self._site.login_redirects and not self._site.logged_in:
            target = self._site.login_redirects[url]
        if target not in self._site.pages:
            raise PageFetchError(f"Request failed: connection refused for {url}")
        status, html = self._site.pages[target]
        self._url = target
        self._html = html
        return status

    def wait_for_network_idle(self, *, timeout_ms: int) -> None:
        return None

    def content(self) -> str:
        return self._html

    def title(self) -> str:
        tag = BeautifulSoup(self._html, "html.parser").title
        return tag.get_text(strip=True) if tag is not None else ""

    def has_selector(self, selector: str) -> bool:
        try:
            return BeautifulSoup(self._html, "html.parser").select_one(selector) is not None
        except SelectorSyntaxError:
            return False

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        if not self.has_selector(selector):
            raise PageFetchError(f"Selector {selector!r} not found")

    def fill(self, selector: str, value: str) -> None:
        self.filled[selector] = value
        self._context.filled.update(self.filled)

    def click(self, selector: str) -> None:
        self._submit()

    def press(self, selector: str, key: str) -> None:
        self._submit()

    def close(self) -> None:
        self.closed = True

    def _submit(self) -> None:
        if not self._site.login_succeeds:
            return
        self._site.logged_in = True
        # Post-login landing page.
        origin = self._url.split("/login")[0]
        self._url = f"{origin}/home"


class FakeContext:
    supports_interaction = True

    def __init__(self, site: FakeSite) -> None:
        self.site = site
        self.http_credentials: tuple[str, str] | None = None
        self.headers: dict[str, str] = {}
        self.cookies: list[CookieSpec] = []
        self.filled: dict[str, str] = {}
        self.pages_opened = 0
        self.closed = False

    def set_http_credentials(self, username: str, password: str) -> None:
        self.http_credentials = (username, password)

    def set_extra_headers(self, headers: dict[str, str]) -> None:
        self.headers.update(headers)

    def add_cookies(self, cookies: list[CookieSpec]) -> None:
        self.cookies.extend(cookies)

    def new_page(self) -> FakePage:
        self.pages_opened += 1
        return FakePage(self.site, self)

    def close(self) -> None:
        self.closed = True


class AllowAllRobots:
    def __init__(self, blocked: tuple[str, ...] = ()) -> None:
        self._blocked = blocked

    def can_fetch(self, *, url: str, user_agent: str) -> bool:
        return not any(url.startswith(prefix) for prefix in self._blocked)

    def crawl_delay(self, *, url: str, user_agent: str) -> float | None:
        return None


def html_page(title: str, body: str, links: tuple[str, ...] = ()) -> str:
    anchors = "".join(f'<a href="{link}">{link}</a>' for link in links)
    return (
        f"<html><head><title>{title}</title></head>"
        f"<body><main><h1>{title}</h1><p>{body}</p>{anchors}</main></body></html>"
    )

