from __future__ import annotations

from app.crawling.auth.login_detection import HeuristicLoginDetector, generate_credential_prompt

FORM_LOGIN_HTML = """
<html><head><title>Sign in</title></head>
<body>
  <form id="login-form" action="/session">
    <input type="email" name="email">
    <input type="password" name="password">
    <button type="submit">Log in</button>
  </form>
</body></html>
"""

SAML_HTML = """
<html><head><title>Login</title></head>
<body><p>Continue with Single Sign-On through your identity provider.</p></body></html>
"""

OAUTH_HTML = """
<html><head><title>Sign in</title></head>
<body><a href="https://accounts.example.com/oauth/authorize">Continue</a></body></html>
"""

ORDINARY_HTML = """
<html><head><title>Pricing</title></head>
<body><main>Plans start at $10. <a href="/login">Login</a></main></body></html>
"""


class TestHeuristicLoginDetector:
    def setup_method(self) -> None:
        self.detector = HeuristicLoginDetector()

    def test_form_login_page_with_selectors(self) -> None:
        detection = self.detector.detect_html(html=FORM_LOGIN_HTML, title="Sign in", url="https://portal.example.com/")

        assert detection.is_login_page is True
        assert detection.login_method == "form"
        assert detection.error is None
        assert detection.suggested_field_selectors["username"] == '[name="email"]'
        assert detection.suggested_field_selectors["password"] == '[name="password"]'
        assert detection.suggested_field_selectors["submit"] == '[type="submit"]'
        assert detection.suggested_field_selectors["form"] == "#login-form"

    def test_saml_page_is_flagged_unsupported(self) -> None:
        detection = self.detector.detect_html(html=SAML_HTML, title="Login", url="https://intranet.example.com/")

        assert detection.is_login_page is True
        assert detection.login_method == "saml"
        assert detection.error is not None

    def test_oauth_page(self) -> None:
        detection = self.detector.detect_html(html=OAUTH_HTML, title="Sign in", url="https://app.example.com/")

        assert detection.is_login_page is True
        assert detection.login_method == "oauth"

    def test_login_url_alone_is_enough(self) -> None:
        detection = self.detector.detect_html(html="<p>Welcome</p>", title="Welcome", url="https://x.example.com/login")

        assert detection.is_login_page is True
        assert detection.login_method == "unknown"

    def test_ordinary_page_mentioning_login_is_not_flagged(self) -> None:
        detection = self.detector.detect_html(html=ORDINARY_HTML, title="Pricing", url="https://example.com/pricing")

        assert detection.is_login_page is False
        assert detection.login_method is None


class TestCredentialPrompt:
    def test_prompt_varies_by_method(self) -> None:
        assert "username and password" in generate_credential_prompt("portal.example.com", "form")
        assert "SAML" in generate_credential_prompt("portal.example.com", "saml")
        assert "OAuth" in generate_credential_prompt("portal.example.com", "oauth")
        assert generate_credential_prompt("portal.example.com").startswith(
            "Authentication required for portal.example.com."
        )
