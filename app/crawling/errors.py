"""
Exceptions raised along the crawl path.
"""

from __future__ import annotations


class CrawlError(Exception):
    """Base exception for crawl failures."""


class PageFetchError(CrawlError):
    """Raised when a single page cannot be fetched or rendered."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class AuthenticationError(CrawlError):
    """Base exception for authentication problems on a page or site."""


class AuthenticationFailedError(AuthenticationError):
    """Raised when a login attempt completes but the session is still unauthenticated."""


class LoginRequiredError(AuthenticationError):
    """Raised when a login page is detected and no usable credential is configured."""

    def __init__(self, message: str, *, login_method: str = "unknown") -> None:
        super().__init__(message)
        self.login_method = login_method


class UnsupportedAuthError(AuthenticationError):
    """Raised when an auth kind cannot be performed by the active browsing backend."""


class CrawlConfigurationError(CrawlError):
    """Raised for invalid crawl options such as malformed URL patterns."""


class CrawlCancelledError(CrawlError):
    """Raised when an operator cancels an in-flight crawl."""
