"""
tests/test_auth_adapter.py

Credential preparation, interactive form login and the cookie path on the
plain HTTP backend.
"""

from __future__ import annotations

import pytest
import requests

from app.crawling.auth.adapter import AuthenticationAdapter
from app.crawling.auth.config import (
    BasicAuth,
    CookieAuth,
    CookieSpec,
    FormAuth,
    HeaderAuth,
    SealedCredential,
    SSOAuth,
    parse_auth_config,
)
from app.crawling.auth.crypto import CredentialCipher, CredentialDecryptionError
from app.crawling.browser import HttpBrowsingContext
from app.crawling.errors import AuthenticationFailedError
from tests.fakes import FakeContext, FakeSite

LOGIN_HTML = """
<html><head><title>Sign in</title></head><body>
<form id="login"><input name="username"><input type="password" name="password">
<button type="submit" id="go">Go</button></form></body></html>
"""


class TestParseAuthConfig:
    def test_cookie_entries_inherit_credential_domain(self) -> None:
        config = parse_auth_config("cookie", {"cookies": [{"name": "sid", "value": "abc"}]}, domain="example.com")

        assert isinstance(config, CookieAuth)
        assert config.cookies == (CookieSpec(name="sid", value="abc", domain="example.com", path="/"),)

    def test_form_defaults(self) -> None:
        config = parse_auth_config("form", {"username": "u", "password": "p"})

        assert isinstance(config, FormAuth)
        assert config.form_selector == "form"
        assert config.submit_button is None

    def test_missing_fields_raise(self) -> None:
        with pytest.raises(ValueError, match="username"):
            parse_auth_config("basic", {"password": "p"})
        with pytest.raises(ValueError, match="headers"):
            parse_auth_config("header", {"headers": {}})

    def test_unknown_kind_raises(self) -> None:
        with pytest.raises(ValueError, match="Unsupported auth kind"):
            parse_auth_config("kerberos", {})


class TestOpenCredential:
    def test_sealed_credential_is_decrypted_at_use(self) -> None:
        cipher = CredentialCipher("test-secret")
        sealed = SealedCredential(
            kind="header",
            domain="example.com",
            ciphertext=cipher.encrypt({"headers": {"X-Api-Key": "k"}}),
            cipher=cipher,
        )

        assert "X-Api-Key" not in repr(sealed)
        assert AuthenticationAdapter().open_credential(sealed) == HeaderAuth(headers={"X-Api-Key": "k"})

    def test_typed_config_passes_through(self) -> None:
        config = BasicAuth(username="u", password="p")

        assert AuthenticationAdapter().open_credential(config) is config
        assert AuthenticationAdapter().open_credential(None) is None

    def test_wrong_key_raises(self) -> None:
        sealed = SealedCredential(
            kind="basic",
            domain=None,
            ciphertext=CredentialCipher("one").encrypt({"username": "u", "password": "p"}),
            cipher=CredentialCipher("two"),
        )

        with pytest.raises(CredentialDecryptionError):
            AuthenticationAdapter().open_credential(sealed)


class TestPrepare:
    def setup_method(self) -> None:
        self.adapter = AuthenticationAdapter()
        self.context = FakeContext(FakeSite())

    def test_no_auth(self) -> None:
        prepared = self.adapter.prepare(self.context, None)
        assert prepared.method == "none"
        assert prepared.supported is True

    def test_basic_sets_http_credentials(self) -> None:
        prepared = self.adapter.prepare(self.context, BasicAuth(username="u", password="p"))

        assert prepared.method == "credentials"
        assert self.context.http_credentials == ("u", "p")

    def test_header_sets_extra_headers(self) -> None:
        self.adapter.prepare(self.context, HeaderAuth(headers={"Authorization": "Bearer t"}))
        assert self.context.headers == {"Authorization": "Bearer t"}

    def test_cookie_adds_cookies(self) -> None:
        cookie = CookieSpec(name="sid", value="abc", domain="example.com")
        self.adapter.prepare(self.context, CookieAuth(cookies=(cookie,)))
        assert self.context.cookies == [cookie]

    def test_form_defers_login_to_first_form(self) -> None:
        prepared = self.adapter.prepare(self.context, FormAuth(username="u", password="p"))

        assert prepared.method == "credentials"
        assert prepared.form is not None
        assert prepared.logged_in is False

    def test_sso_is_unsupported_and_touches_nothing(self) -> None:
        prepared = self.adapter.prepare(self.context, SSOAuth(provider="okta"))

        assert prepared.supported is False
        assert prepared.method == "sso"
        assert "Needs manual credential" in (prepared.message or "")
        assert self.context.headers == {}
        assert self.context.cookies == []


class TestFormLogin:
    def _login_page(self, site: FakeSite):
        context = FakeContext(site)
        page = context.new_page()
        page.goto("https://portal.example.com/login", timeout_ms=1000)
        return context, page

    def test_successful_login_fills_and_submits(self) -> None:
        site = FakeSite()
        site.add("https://portal.example.com/login", LOGIN_HTML)
        context, page = self._login_page(site)
        auth = FormAuth(
            username="alice",
            password="s3cret",
            form_selector="#login",
            username_field='input[name="username"]',
            password_field='input[type="password"]',
            submit_button="#go",
        )

        AuthenticationAdapter().perform_form_login(page, auth)

        assert context.filled == {'input[name="username"]': "alice", 'input[type="password"]': "s3cret"}
        assert page.url == "https://portal.example.com/home"

    def test_login_loop_is_reported(self) -> None:
        site = FakeSite(login_succeeds=False)
        site.add("https://portal.example.com/login", LOGIN_HTML)
        _context, page = self._login_page(site)

        with pytest.raises(AuthenticationFailedError, match="still on login page"):
            AuthenticationAdapter().perform_form_login(page, FormAuth(username="alice", password="wrong"))

    def test_missing_form_is_an_auth_failure(self) -> None:
        site = FakeSite()
        site.add("https://portal.example.com/login", "<html><body>No form here</body></html>")
        _context, page = self._login_page(site)

        with pytest.raises(AuthenticationFailedError, match="Form authentication failed"):
            AuthenticationAdapter().perform_form_login(page, FormAuth(username="alice", password="pw"))


class TestHttpContextCookies:
    def test_cookie_credential_reaches_outgoing_requests(self) -> None:
        config = parse_auth_config("cookie", {"cookies": [{"name": "sid", "value": "abc"}]}, domain="example.com")
        context = HttpBrowsingContext(user_agent="crawl-tests/1.0")
        try:
            AuthenticationAdapter().prepare(context, config)
            prepared = context.session.prepare_request(requests.Request("GET", "https://example.com/"))
        finally:
            context.close()

        assert prepared.headers["Cookie"] == "sid=abc"

    def test_basic_and_header_credentials_on_session(self) -> None:
        context = HttpBrowsingContext(user_agent="crawl-tests/1.0")
        try:
            adapter = AuthenticationAdapter()
            adapter.prepare(context, BasicAuth(username="u", password="p"))
            context.set_extra_headers({"X-Api-Key": "k"})
            prepared = context.session.prepare_request(requests.Request("GET", "https://example.com/"))
        finally:
            context.close()

        assert prepared.headers["Authorization"].startswith("Basic ")
        assert prepared.headers["X-Api-Key"] == "k"
        assert prepared.headers["User-Agent"] == "crawl-tests/1.0"


class TestErrorClassification:
    def test_internal_domain_suggests_cookie_auth(self) -> None:
        result = AuthenticationAdapter.classify_error("https://acme.sharepoint.com/sites/x", "HTTP 403 response")

        assert result.is_auth_error is True
        assert result.needs_credentials is True
        assert "cookie" in (result.suggestion or "").lower()

    def test_external_credential_domain_suggests_form(self) -> None:
        result = AuthenticationAdapter.classify_error("https://acme.zendesk.com/hc", "401 Unauthorized")
        assert "username and password" in (result.suggestion or "")

    def test_non_auth_message(self) -> None:
        result = AuthenticationAdapter.classify_error("https://example.com/", "HTTP 404 response")
        assert result.is_auth_error is False
        assert result.suggestion is None

    def test_login_url_detection(self) -> None:
        assert AuthenticationAdapter.is_login_url("https://x.example.com/login?next=/")
        assert AuthenticationAdapter.is_login_url("https://x.example.com/users/sign-in")
        assert not AuthenticationAdapter.is_login_url("https://x.example.com/loginhelp")
