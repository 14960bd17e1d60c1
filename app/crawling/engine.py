"""
Crawl traversal engine.

Walks a bounded, same-host link graph breadth-first from a seed URL. Pages
are fetched strictly one at a time through a single browsing context; every
URL ends up in at most one of the result pages or the error log.
"""

from __future__ import annotations

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timezone
from urllib.parse import urldefrag, urlparse

from app.config import CrawlSettings, get_crawl_settings
from app.crawling.auth.adapter import AuthenticationAdapter, PreparedAuth
from app.crawling.auth.config import AuthConfig, SealedCredential
from app.crawling.auth.domains import (
    is_external_credential_domain,
    is_internal_domain,
    internal_domain_message,
)
from app.crawling.auth.login_detection import generate_credential_prompt
from app.crawling.browser import BrowsingContext, create_browsing_context
from app.crawling.cancellation import CancellationToken
from app.crawling.errors import (
    AuthenticationFailedError,
    CrawlCancelledError,
    CrawlConfigurationError,
    LoginRequiredError,
    UnsupportedAuthError,
)
from app.crawling.extraction import ContentExtractor
from app.crawling.fetcher import PageFetcher
from app.crawling.logging_utils import log_event
from app.crawling.options import CrawlOptions, compile_patterns, matches_any
from app.crawling.rate_limiter import DomainRateLimiter
from app.crawling.robots import RobotsPolicy
from app.crawling.templates import WebsiteTemplate
from app.domain.crawling import AuthAttempts, CrawlErrorEntry, CrawlResult, CrawlSummary, ScrapedPage

logger = logging.getLogger(__name__)

ContextFactory = Callable[[CrawlOptions], BrowsingContext]


@dataclass(frozen=True)
class _QueuedUrl:
    url: str
    depth: int
    parent_url: str | None = None


def normalize_url(url: str) -> str:
    return urldefrag(url.strip())[0]


class CrawlEngine:
    """
    Drives the page fetcher across one site within configured limits.

    One engine may serve many concurrent runs; all per-run state lives in
    ``crawl()`` locals. The rate limiter and robots cache are shared so
    concurrent runs against the same host stay polite.
    """

    def __init__(
        self,
        *,
        settings: CrawlSettings | None = None,
        context_factory: ContextFactory | None = None,
        auth_adapter: AuthenticationAdapter | None = None,
        extractor: ContentExtractor | None = None,
        robots_policy: RobotsPolicy | None = None,
        rate_limiter: DomainRateLimiter | None = None,
    ) -> None:
        self._settings = settings or get_crawl_settings()
        self._context_factory = context_factory or (
            lambda options: create_browsing_context(self._settings, options)
        )
        self._auth_adapter = auth_adapter or AuthenticationAdapter(
            form_timeout_ms=self._settings.form_timeout_ms,
            idle_timeout_ms=self._settings.idle_timeout_ms,
        )
        self._extractor = extractor or ContentExtractor()
        self._robots_policy = robots_policy or RobotsPolicy(
            timeout_seconds=self._settings.robots_timeout_seconds,
            allow_when_unreachable=self._settings.allow_when_robots_unreachable,
        )
        self._rate_limiter = rate_limiter or DomainRateLimiter(
            default_delay_seconds=self._settings.default_delay_ms / 1000.0
        )

    def crawl(
        self,
        base_url: str,
        options: CrawlOptions,
        template: WebsiteTemplate | None = None,
        *,
        auth: AuthConfig | SealedCredential | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> CrawlResult:
        """
        Crawl from `base_url` and return pages, per-URL errors and a summary.

        Raises CrawlConfigurationError for malformed URL patterns and
        CrawlCancelledError when `cancel_token` is cancelled mid-run. Page
        level failures never raise; they are recorded as error entries.
        """

        started_at = datetime.now(timezone.utc)
        token = cancel_token or CancellationToken()
        attempts = AuthAttempts()
        seed = normalize_url(base_url)
        if urlparse(seed).scheme not in {"http", "https"} or not urlparse(seed).hostname:
            raise CrawlConfigurationError(f"Base URL must be an absolute http(s) URL: {base_url!r}")

        include = compile_patterns(options.include_patterns)
        exclude = compile_patterns(options.exclude_patterns)

        if auth is None and is_internal_domain(seed):
            error = CrawlErrorEntry(
                url=seed,
                error=internal_domain_message(seed),
                needs_credentials=True,
                login_method="cookie",
            )
            attempts.failed += 1
            log_event(logger, logging.WARNING, "crawl_internal_domain_without_credentials", base_url=seed)
            return self._result(seed, [], [error], attempts, "internal", started_at, seed_error=error.error)

        log_event(
            logger,
            logging.INFO,
            "crawl_started",
            base_url=seed,
            template_id=template.id if template is not None else None,
            max_depth=options.max_depth,
            max_pages=options.max_pages,
            auth_kind=auth.kind if auth is not None else None,
        )

        auth = self._auth_adapter.open_credential(auth)
        context = self._context_factory(options)
        try:
            prepared = self._auth_adapter.prepare(context, auth)
            if prepared.method == "sso":
                attempts.sso += 1
            elif prepared.method == "credentials" and prepared.form is None:
                attempts.credentials += 1

            if not prepared.supported:
                attempts.failed += 1
                error = CrawlErrorEntry(
                    url=seed,
                    error=prepared.message or "Authentication method is not supported.",
                    needs_credentials=True,
                    login_method=prepared.method,
                )
                return self._result(seed, [], [error], attempts, "internal", started_at, seed_error=error.error)

            fetcher = PageFetcher(
                context=context,
                auth_adapter=self._auth_adapter,
                prepared_auth=prepared,
                extractor=self._extractor,
                auth_attempts=attempts,
                max_retries=self._settings.max_retries,
                backoff_initial_seconds=self._settings.backoff_initial_seconds,
                backoff_multiplier=self._settings.backoff_multiplier,
            )
            pages, errors, skipped = self._traverse(
                seed=seed,
                options=options,
                template=template,
                fetcher=fetcher,
                include=include,
                exclude=exclude,
                attempts=attempts,
                token=token,
            )
        finally:
            context.close()

        seed_error = next((entry.error for entry in errors if entry.url == seed), None)
        result = self._result(
            seed,
            pages,
            errors,
            attempts,
            self._content_type(seed, prepared),
            started_at,
            seed_error=seed_error,
            skipped_duplicates=skipped,
        )
        log_event(
            logger,
            logging.INFO,
            "crawl_completed",
            base_url=seed,
            pages=len(pages),
            errors=len(errors),
            skipped_duplicates=skipped,
            duration_seconds=result.summary.duration_seconds,
        )
        return result

    def _traverse(
        self,
        *,
        seed: str,
        options: CrawlOptions,
        template: WebsiteTemplate | None,
        fetcher: PageFetcher,
        include: list,
        exclude: list,
        attempts: AuthAttempts,
        token: CancellationToken,
    ) -> tuple[list[ScrapedPage], list[CrawlErrorEntry], int]:
        seed_host = urlparse(seed).hostname
        queue: deque[_QueuedUrl] = deque([_QueuedUrl(url=seed, depth=0)])
        queued: set[str] = {seed}
        visited: set[str] = set()
        failed: set[str] = set()
        seen_hashes: set[str] = set()
        pages: list[ScrapedPage] = []
        errors: list[CrawlErrorEntry] = []
        processed_count = 0
        skipped_duplicates = 0

        while queue and processed_count < options.max_pages:
            token.raise_if_cancelled()
            entry = queue.popleft()
            if entry.url in visited or entry.url in failed or entry.depth > options.max_depth:
                continue
            if not self._should_process(entry.url, seed, seed_host, include, exclude):
                continue

            crawl_delay: float | None = None
            if options.respect_robots:
                if not self._robots_policy.can_fetch(url=entry.url, user_agent=self._settings.user_agent):
                    errors.append(CrawlErrorEntry(url=entry.url, error="Blocked by robots.txt"))
                    failed.add(entry.url)
                    log_event(logger, logging.INFO, "page_blocked_by_robots", url=entry.url)
                    continue
                crawl_delay = self._robots_policy.crawl_delay(url=entry.url, user_agent=self._settings.user_agent)

            self._rate_limiter.wait(
                url=entry.url,
                delay_seconds=options.delay_seconds,
                crawl_delay_seconds=crawl_delay,
                cancel_token=token,
            )
            processed_count += 1

            try:
                page = fetcher.fetch_and_extract(
                    entry.url,
                    entry.depth,
                    entry.parent_url,
                    template,
                    options=options,
                    cancel_token=token,
                )
            except CrawlCancelledError:
                raise
            except Exception as exc:  # noqa: BLE001
                error_entry = self._error_entry(entry.url, exc, options)
                errors.append(error_entry)
                failed.add(entry.url)
                if error_entry.needs_credentials:
                    attempts.failed += 1
                log_event(
                    logger,
                    logging.WARNING,
                    "page_crawl_failed",
                    url=entry.url,
                    depth=entry.depth,
                    needs_credentials=error_entry.needs_credentials,
                    error=str(exc),
                )
                continue

            visited.add(entry.url)
            if options.skip_duplicate_content and page.content and page.content_hash in seen_hashes:
                skipped_duplicates += 1
                log_event(logger, logging.INFO, "page_duplicate_skipped", url=entry.url)
                continue
            seen_hashes.add(page.content_hash)
            pages.append(page)
            log_event(
                logger,
                logging.INFO,
                "page_crawled",
                url=entry.url,
                depth=entry.depth,
                words=page.metadata.word_count,
                links=len(page.metadata.links),
            )

            if entry.depth < options.max_depth:
                for link in page.metadata.links:
                    child = normalize_url(link)
                    if urlparse(child).hostname != seed_host:
                        continue
                    if child in queued or child in visited or child in failed:
                        continue
                    queued.add(child)
                    queue.append(_QueuedUrl(url=child, depth=entry.depth + 1, parent_url=entry.url))

        return pages, errors, skipped_duplicates

    @staticmethod
    def _should_process(url: str, seed: str, seed_host: str | None, include: list, exclude: list) -> bool:
        try:
            host = urlparse(url).hostname
        except ValueError:
            return False
        if host != seed_host:
            return False
        # The seed is always fetched so include filters only narrow its children.
        if url != seed and include and not matches_any(url, include):
            return False
        if exclude and matches_any(url, exclude):
            return False
        return True

    def _error_entry(self, url: str, exc: Exception, options: CrawlOptions) -> CrawlErrorEntry:
        message = str(exc) or exc.__class__.__name__
        if isinstance(exc, LoginRequiredError):
            return CrawlErrorEntry(url=url, error=message, needs_credentials=True, login_method=exc.login_method)
        if isinstance(exc, AuthenticationFailedError):
            return CrawlErrorEntry(url=url, error=message, needs_credentials=True, login_method="form")
        if isinstance(exc, UnsupportedAuthError):
            return CrawlErrorEntry(url=url, error=message, needs_credentials=True, login_method="form")

        classification = self._auth_adapter.classify_error(url, message)
        if not classification.is_auth_error:
            return CrawlErrorEntry(url=url, error=message)

        enhanced = message
        if classification.suggestion:
            enhanced = f"{message}\n\n{classification.suggestion}"
        login_method: str | None = None
        if is_internal_domain(url):
            login_method = "cookie"
        elif (
            classification.needs_credentials
            and options.enable_credential_prompting
            and is_external_credential_domain(url)
        ):
            login_method = "form"
            prompt = generate_credential_prompt(urlparse(url).hostname or url, "form")
            if prompt not in enhanced:
                enhanced = f"{enhanced}\n\n{prompt}"
        return CrawlErrorEntry(
            url=url,
            error=enhanced,
            needs_credentials=classification.needs_credentials,
            login_method=login_method,
        )

    @staticmethod
    def _content_type(seed: str, prepared: PreparedAuth) -> str:
        if prepared.method == "credentials":
            return "credential-based"
        if prepared.method == "sso" or is_internal_domain(seed):
            return "internal"
        return "public"

    @staticmethod
    def _result(
        seed: str,
        pages: list[ScrapedPage],
        errors: list[CrawlErrorEntry],
        attempts: AuthAttempts,
        content_type: str,
        started_at: datetime,
        *,
        seed_error: str | None = None,
        skipped_duplicates: int = 0,
    ) -> CrawlResult:
        total_words = sum(page.metadata.word_count for page in pages)
        summary = CrawlSummary(
            base_url=seed,
            total_pages=len(pages) + len(errors),
            successful_pages=len(pages),
            failed_pages=len(errors),
            total_words=total_words,
            average_words_per_page=round(total_words / len(pages)) if pages else 0,
            content_type=content_type,
            auth_attempts=attempts,
            started_at=started_at,
            finished_at=datetime.now(timezone.utc),
            seed_error=seed_error,
            skipped_duplicates=skipped_duplicates,
        )
        return CrawlResult(pages=pages, errors=errors, summary=summary)
