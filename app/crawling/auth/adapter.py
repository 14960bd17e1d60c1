"""
Authentication adapter: turns a typed auth configuration into a prepared
browsing context, drives interactive form logins and explains auth failures.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from app.crawling.auth.config import (
    AuthConfig,
    BasicAuth,
    CookieAuth,
    FormAuth,
    HeaderAuth,
    SealedCredential,
    SSOAuth,
    parse_auth_config,
)
from app.crawling.auth.domains import ErrorClassification, classify_error
from app.crawling.auth.login_detection import HeuristicLoginDetector, LoginDetection, LoginDetector
from app.crawling.browser import BrowsingContext, PageHandle
from app.crawling.errors import AuthenticationFailedError, PageFetchError
from app.crawling.logging_utils import log_event

logger = logging.getLogger(__name__)

LOGIN_LOOP_PATTERN = re.compile(r"/(login|signin|sign-in)\b", re.IGNORECASE)

SSO_UNSUPPORTED_MESSAGE = (
    "SSO authentication cannot be performed server-side without a real session token. "
    "Needs manual credential: copy the session cookies from a logged-in browser "
    "(F12 → Application → Cookies) and configure a cookie credential instead."
)


@dataclass
class PreparedAuth:
    """
    Result of preparing a context for one run.

    `method` is ``none``, ``credentials`` or ``sso``. When `supported` is
    False the run must not proceed; `message` explains what the operator
    needs to configure.
    """

    auth: AuthConfig | None
    method: str = "none"
    supported: bool = True
    message: str | None = None
    logged_in: bool = False

    @property
    def form(self) -> FormAuth | None:
        return self.auth if isinstance(self.auth, FormAuth) else None


class AuthenticationAdapter:
    def __init__(
        self,
        *,
        login_detector: LoginDetector | None = None,
        form_timeout_ms: int = 10000,
        idle_timeout_ms: int = 10000,
    ) -> None:
        self._login_detector = login_detector or HeuristicLoginDetector()
        self._form_timeout_ms = form_timeout_ms
        self._idle_timeout_ms = idle_timeout_ms

    def open_credential(self, credential: AuthConfig | SealedCredential | None) -> AuthConfig | None:
        """
        Decrypt a sealed credential into its typed configuration at use time.

        Typed configurations pass through unchanged.
        """

        if not isinstance(credential, SealedCredential):
            return credential
        auth = parse_auth_config(
            credential.kind,
            credential.cipher.decrypt(credential.ciphertext),
            domain=credential.domain,
        )
        log_event(logger, logging.INFO, "credential_opened", auth_kind=auth.kind, domain=credential.domain)
        return auth

    def prepare(self, context: BrowsingContext, auth: AuthConfig | None) -> PreparedAuth:
        """
        Apply non-interactive credentials to `context` before any page is fetched.
        """

        if auth is None:
            return PreparedAuth(auth=None)

        if isinstance(auth, BasicAuth):
            context.set_http_credentials(auth.username, auth.password)
        elif isinstance(auth, HeaderAuth):
            context.set_extra_headers(dict(auth.headers))
        elif isinstance(auth, CookieAuth):
            context.add_cookies(list(auth.cookies))
        elif isinstance(auth, FormAuth):
            # Login happens per page once a login form is seen.
            pass
        elif isinstance(auth, SSOAuth):
            log_event(
                logger,
                logging.WARNING,
                "sso_auth_unsupported",
                provider=auth.provider,
            )
            return PreparedAuth(auth=auth, method="sso", supported=False, message=SSO_UNSUPPORTED_MESSAGE)

        log_event(logger, logging.INFO, "auth_prepared", auth_kind=auth.kind)
        return PreparedAuth(auth=auth, method="credentials")

    def perform_form_login(self, page: PageHandle, auth: FormAuth) -> None:
        """
        Fill and submit the configured login form, then verify we left the login page.

        Raises AuthenticationFailedError when the form cannot be driven or when
        the post-submit URL is still a login URL.
        """

        try:
            page.wait_for_selector(auth.form_selector, timeout_ms=self._form_timeout_ms)
            page.fill(auth.username_field, auth.username)
            page.fill(auth.password_field, auth.password)
            if auth.submit_button:
                page.click(auth.submit_button)
            else:
                page.press(auth.password_field, "Enter")
            page.wait_for_network_idle(timeout_ms=self._idle_timeout_ms)
        except PageFetchError as exc:
            log_event(logger, logging.WARNING, "form_login_failed", url=page.url, error=str(exc))
            raise AuthenticationFailedError(f"Form authentication failed: {exc}") from exc

        if self.is_login_url(page.url):
            log_event(logger, logging.WARNING, "form_login_loop", url=page.url)
            raise AuthenticationFailedError(
                "Form authentication failed: Authentication failed - still on login page. "
                "Please check credentials."
            )
        log_event(logger, logging.INFO, "form_login_completed", url=page.url)

    def detect_login_page(self, page: PageHandle, url: str) -> LoginDetection:
        return self._login_detector.detect(page, url)

    @staticmethod
    def classify_error(url: str, message: str) -> ErrorClassification:
        return classify_error(url, message)

    @staticmethod
    def is_login_url(url: str) -> bool:
        return bool(LOGIN_LOOP_PATTERN.search(url or ""))
