"""
Fetch one URL through a prepared browsing context and extract it.
"""

from __future__ import annotations

import logging
from urllib.parse import urldefrag, urlparse

from app.crawling.auth.adapter import AuthenticationAdapter, PreparedAuth
from app.crawling.auth.config import FormAuth
from app.crawling.auth.login_detection import generate_credential_prompt
from app.crawling.browser import BrowsingContext, PageHandle
from app.crawling.cancellation import CancellationToken
from app.crawling.errors import AuthenticationError, LoginRequiredError, PageFetchError
from app.crawling.extraction import ContentExtractor
from app.crawling.logging_utils import log_event
from app.crawling.options import CrawlOptions
from app.crawling.templates import WebsiteTemplate
from app.domain.crawling import AuthAttempts, ScrapedPage

logger = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {429, 500, 502, 503, 504}


class PageFetcher:
    """
    Sequential page fetcher bound to one run's browsing context.
    """

    def __init__(
        self,
        *,
        context: BrowsingContext,
        auth_adapter: AuthenticationAdapter,
        prepared_auth: PreparedAuth,
        extractor: ContentExtractor | None = None,
        auth_attempts: AuthAttempts | None = None,
        max_retries: int = 2,
        backoff_initial_seconds: float = 1.0,
        backoff_multiplier: float = 2.0,
    ) -> None:
        self._context = context
        self._auth_adapter = auth_adapter
        self._prepared = prepared_auth
        self._extractor = extractor or ContentExtractor()
        self._auth_attempts = auth_attempts if auth_attempts is not None else AuthAttempts()
        self._max_retries = max(0, max_retries)
        self._backoff_initial_seconds = backoff_initial_seconds
        self._backoff_multiplier = backoff_multiplier

    def fetch_and_extract(
        self,
        url: str,
        depth: int,
        parent_url: str | None,
        template: WebsiteTemplate | None,
        *,
        options: CrawlOptions,
        cancel_token: CancellationToken | None = None,
    ) -> ScrapedPage:
        """
        Fetch `url`, handling login pages, and return the extracted page.

        Transient failures (network errors, 429/5xx) are retried with
        exponential backoff when `options.retry_failed_pages` is set.
        Authentication failures are never retried.
        """

        attempts = self._max_retries + 1 if options.retry_failed_pages else 1
        for attempt in range(attempts):
            try:
                return self._fetch_once(url, depth, parent_url, template, options)
            except AuthenticationError:
                raise
            except PageFetchError as exc:
                retryable = exc.status_code is None or exc.status_code in RETRYABLE_STATUS_CODES
                if not retryable or attempt >= attempts - 1:
                    raise
                backoff_seconds = self._backoff_initial_seconds * (self._backoff_multiplier**attempt)
                log_event(
                    logger,
                    logging.WARNING,
                    "page_fetch_retry",
                    url=url,
                    attempt=attempt + 1,
                    backoff_seconds=backoff_seconds,
                    error=str(exc),
                )
                if cancel_token is not None:
                    cancel_token.sleep(backoff_seconds)
        raise PageFetchError(f"Failed to fetch {url}")

    def _fetch_once(
        self,
        url: str,
        depth: int,
        parent_url: str | None,
        template: WebsiteTemplate | None,
        options: CrawlOptions,
    ) -> ScrapedPage:
        page = self._context.new_page()
        try:
            status = self._navigate(page, url, options)
            logged_in_now = self._handle_login(page, url, options)
            if logged_in_now and not self._same_page(page.url, url):
                status = self._navigate(page, url, options)

            return self._extractor.extract(
                url=url,
                html=page.content(),
                depth=depth,
                parent_url=parent_url,
                template=template,
                page_title=page.title(),
                auth_method=self._prepared.method,
                status_code=status,
                extract_images=options.extract_images,
            )
        finally:
            page.close()

    @staticmethod
    def _navigate(page: PageHandle, url: str, options: CrawlOptions) -> int | None:
        status = page.goto(url, timeout_ms=options.timeout_ms, wait_for_idle=options.wait_for_dynamic)
        if status is not None and status >= 400:
            raise PageFetchError(f"HTTP {status} response", status_code=status)
        return status

    def _handle_login(self, page: PageHandle, url: str, options: CrawlOptions) -> bool:
        form = self._prepared.form

        if options.enable_credential_prompting:
            detection = self._auth_adapter.detect_login_page(page, url)
            if detection.is_login_page:
                log_event(
                    logger,
                    logging.INFO,
                    "login_page_detected",
                    url=url,
                    login_method=detection.login_method,
                )
                if detection.login_method == "form" and form is not None:
                    self._login(page, form)
                    return True
                host = urlparse(url).hostname or url
                raise LoginRequiredError(
                    "Login page detected but no matching authentication configured. "
                    + generate_credential_prompt(host, detection.login_method),
                    login_method=detection.login_method or "unknown",
                )

        if form is not None and not self._prepared.logged_in and page.has_selector(form.form_selector):
            self._login(page, form)
            return True
        return False

    def _login(self, page: PageHandle, form: FormAuth) -> None:
        self._auth_attempts.credentials += 1
        self._auth_adapter.perform_form_login(page, form)
        self._prepared.logged_in = True

    @staticmethod
    def _same_page(current: str, requested: str) -> bool:
        return urldefrag(current or "")[0].rstrip("/") == urldefrag(requested)[0].rstrip("/")
