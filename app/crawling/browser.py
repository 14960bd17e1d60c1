"""
Browsing contexts used by the fetcher and the authentication adapter.

Two backends share one small protocol:

- ``PlaywrightBrowsingContext`` renders pages in headless Chromium through the
  Playwright sync API and supports interactive form login.
- ``HttpBrowsingContext`` fetches raw HTML through ``requests.Session``; it is
  used for static sites and cannot drive a login form.

Each crawl run owns exactly one context and closes it when the run ends.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import requests
from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright
from soupsieve import SelectorSyntaxError

from app.crawling.errors import PageFetchError, UnsupportedAuthError

if TYPE_CHECKING:
    from app.config import CrawlSettings
    from app.crawling.auth.config import CookieSpec
    from app.crawling.options import CrawlOptions

logger = logging.getLogger(__name__)


class PageHandle(Protocol):
    @property
    def url(self) -> str:
        ...

    def goto(self, url: str, *, timeout_ms: int, wait_for_idle: bool = True) -> int | None:
        ...

    def wait_for_network_idle(self, *, timeout_ms: int) -> None:
        ...

    def content(self) -> str:
        ...

    def title(self) -> str:
        ...

    def has_selector(self, selector: str) -> bool:
        ...

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        ...

    def fill(self, selector: str, value: str) -> None:
        ...

    def click(self, selector: str) -> None:
        ...

    def press(self, selector: str, key: str) -> None:
        ...

    def close(self) -> None:
        ...


class BrowsingContext(Protocol):
    supports_interaction: bool

    def set_http_credentials(self, username: str, password: str) -> None:
        ...

    def set_extra_headers(self, headers: dict[str, str]) -> None:
        ...

    def add_cookies(self, cookies: list[CookieSpec]) -> None:
        ...

    def new_page(self) -> PageHandle:
        ...

    def close(self) -> None:
        ...


# ---------------------------------------------------------------------------
# Playwright backend
# ---------------------------------------------------------------------------


class PlaywrightPage:
    def __init__(self, page: Any) -> None:
        self._page = page

    @property
    def url(self) -> str:
        return self._page.url

    def goto(self, url: str, *, timeout_ms: int, wait_for_idle: bool = True) -> int | None:
        try:
            response = self._page.goto(
                url,
                wait_until="networkidle" if wait_for_idle else "load",
                timeout=timeout_ms,
            )
        except PlaywrightError as exc:
            raise PageFetchError(f"Navigation failed: {exc.message}") from exc
        return response.status if response is not None else None

    def wait_for_network_idle(self, *, timeout_ms: int) -> None:
        try:
            self._page.wait_for_load_state("networkidle", timeout=timeout_ms)
        except PlaywrightError as exc:
            raise PageFetchError(f"Page did not settle: {exc.message}") from exc

    def content(self) -> str:
        return self._page.content()

    def title(self) -> str:
        return self._page.title()

    def has_selector(self, selector: str) -> bool:
        try:
            return self._page.query_selector(selector) is not None
        except PlaywrightError:
            return False

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        try:
            self._page.wait_for_selector(selector, timeout=timeout_ms)
        except PlaywrightError as exc:
            raise PageFetchError(f"Selector {selector!r} not found: {exc.message}") from exc

    def fill(self, selector: str, value: str) -> None:
        try:
            self._page.fill(selector, value)
        except PlaywrightError as exc:
            raise PageFetchError(f"Could not fill {selector!r}: {exc.message}") from exc

    def click(self, selector: str) -> None:
        try:
            self._page.click(selector)
        except PlaywrightError as exc:
            raise PageFetchError(f"Could not click {selector!r}: {exc.message}") from exc

    def press(self, selector: str, key: str) -> None:
        try:
            self._page.press(selector, key)
        except PlaywrightError as exc:
            raise PageFetchError(f"Could not press {key} in {selector!r}: {exc.message}") from exc

    def close(self) -> None:
        try:
            self._page.close()
        except PlaywrightError as exc:
            logger.debug("Ignoring page close failure: %s", exc)


class PlaywrightBrowsingContext:
    """
    Headless Chromium context. The browser starts lazily on the first page.

    HTTP credentials and extra headers must be known before the underlying
    context is created, so they are collected first and applied on launch.
    """

    supports_interaction = True

    def __init__(self, *, user_agent: str, viewport: dict[str, int], headless: bool = True) -> None:
        self._user_agent = user_agent
        self._viewport = viewport
        self._headless = headless
        self._http_credentials: dict[str, str] | None = None
        self._extra_headers: dict[str, str] = {}
        self._pending_cookies: list[dict[str, Any]] = []
        self._playwright: Any = None
        self._browser: Any = None
        self._context: Any = None

    def set_http_credentials(self, username: str, password: str) -> None:
        self._http_credentials = {"username": username, "password": password}

    def set_extra_headers(self, headers: dict[str, str]) -> None:
        self._extra_headers.update(headers)

    def add_cookies(self, cookies: list[CookieSpec]) -> None:
        converted = [
            {"name": cookie.name, "value": cookie.value, "domain": cookie.domain or "", "path": cookie.path or "/"}
            for cookie in cookies
        ]
        if self._context is not None:
            self._context.add_cookies(converted)
        else:
            self._pending_cookies.extend(converted)

    def new_page(self) -> PageHandle:
        self._ensure_context()
        return PlaywrightPage(self._context.new_page())

    def _ensure_context(self) -> None:
        if self._context is not None:
            return
        try:
            self._playwright = sync_playwright().start()
            self._browser = self._playwright.chromium.launch(headless=self._headless)
            context_options: dict[str, Any] = {
                "user_agent": self._user_agent,
                "viewport": self._viewport,
            }
            if self._http_credentials is not None:
                context_options["http_credentials"] = self._http_credentials
            if self._extra_headers:
                context_options["extra_http_headers"] = self._extra_headers
            self._context = self._browser.new_context(**context_options)
            if self._pending_cookies:
                self._context.add_cookies(self._pending_cookies)
                self._pending_cookies = []
        except PlaywrightError as exc:
            self.close()
            raise PageFetchError(f"Browser launch failed: {exc.message}") from exc
        logger.info("Playwright browser context started")

    def close(self) -> None:
        for resource in (self._context, self._browser):
            if resource is not None:
                try:
                    resource.close()
                except PlaywrightError as exc:
                    logger.debug("Ignoring browser close failure: %s", exc)
        if self._playwright is not None:
            self._playwright.stop()
        self._context = None
        self._browser = None
        self._playwright = None


# ---------------------------------------------------------------------------
# Plain HTTP backend
# ---------------------------------------------------------------------------


class HttpPage:
    def __init__(self, session: requests.Session) -> None:
        self._session = session
        self._url = ""
        self._html = ""
        self._soup: BeautifulSoup | None = None

    @property
    def url(self) -> str:
        return self._url

    def goto(self, url: str, *, timeout_ms: int, wait_for_idle: bool = True) -> int | None:
        try:
            response = self._session.get(url, timeout=max(1, timeout_ms) / 1000.0, allow_redirects=True)
        except requests.Timeout as exc:
            raise PageFetchError(f"Timed out after {timeout_ms} ms") from exc
        except requests.RequestException as exc:
            raise PageFetchError(f"Request failed: {exc}") from exc
        self._url = response.url or url
        self._html = response.text or ""
        self._soup = None
        return response.status_code

    def wait_for_network_idle(self, *, timeout_ms: int) -> None:
        return None

    def content(self) -> str:
        return self._html

    def title(self) -> str:
        tag = self._parsed().title
        return tag.get_text(strip=True) if tag is not None else ""

    def has_selector(self, selector: str) -> bool:
        try:
            return self._parsed().select_one(selector) is not None
        except SelectorSyntaxError:
            return False

    def wait_for_selector(self, selector: str, *, timeout_ms: int) -> None:
        if not self.has_selector(selector):
            raise PageFetchError(f"Selector {selector!r} not found")

    def fill(self, selector: str, value: str) -> None:
        raise UnsupportedAuthError("Interactive form login requires the playwright browser backend.")

    def click(self, selector: str) -> None:
        raise UnsupportedAuthError("Interactive form login requires the playwright browser backend.")

    def press(self, selector: str, key: str) -> None:
        raise UnsupportedAuthError("Interactive form login requires the playwright browser backend.")

    def close(self) -> None:
        self._soup = None

    def _parsed(self) -> BeautifulSoup:
        if self._soup is None:
            self._soup = BeautifulSoup(self._html, "html.parser")
        return self._soup


class HttpBrowsingContext:
    """
    `requests`-backed context. Cookies, headers and basic auth live on the session.
    """

    supports_interaction = False

    def __init__(self, *, user_agent: str, session: requests.Session | None = None) -> None:
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = user_agent

    def set_http_credentials(self, username: str, password: str) -> None:
        self.session.auth = (username, password)

    def set_extra_headers(self, headers: dict[str, str]) -> None:
        self.session.headers.update(headers)

    def add_cookies(self, cookies: list[CookieSpec]) -> None:
        for cookie in cookies:
            self.session.cookies.set(
                cookie.name,
                cookie.value,
                domain=cookie.domain or "",
                path=cookie.path or "/",
            )

    def new_page(self) -> PageHandle:
        return HttpPage(self.session)

    def close(self) -> None:
        self.session.close()


def create_browsing_context(settings: CrawlSettings, options: CrawlOptions) -> BrowsingContext:
    """
    Build the context for one run from the configured backend.

    With the ``auto`` backend, templates that wait for dynamic content get a
    real browser and static templates use plain HTTP.
    """

    backend = settings.browser_backend
    if backend == "auto":
        backend = "playwright" if options.wait_for_dynamic else "http"
    if backend == "http":
        return HttpBrowsingContext(user_agent=settings.user_agent)
    return PlaywrightBrowsingContext(
        user_agent=settings.user_agent,
        viewport={"width": settings.viewport_width, "height": settings.viewport_height},
        headless=settings.headless,
    )
