"""
Heuristic login-page detection.

The detector works on the rendered HTML of a page, so it runs unchanged
against a Playwright page, a plain HTTP response or a test double.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol
from urllib.parse import urlparse

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

if TYPE_CHECKING:
    from app.crawling.browser import PageHandle

LOGIN_TEXT_INDICATORS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"sign\s*in",
        r"log\s*in",
        r"login",
        r"authentication",
        r"credentials",
        r"username",
        r"password",
        r"email.*password",
    )
)

LOGIN_URL_INDICATORS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (r"/login", r"/signin", r"/sign-in", r"/auth", r"/authentication", r"/sso")
)

SAML_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (r"\bsaml\b", r"single.*sign.*on", r"\bsso\b", r"identity.*provider", r"federation")
)

OAUTH_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern, re.IGNORECASE)
    for pattern in (r"oauth", r"google.*sign.*in", r"microsoft.*sign.*in", r"github.*sign.*in")
)


@dataclass(frozen=True)
class FieldSelectors:
    username: tuple[str, ...]
    password: tuple[str, ...]
    submit: tuple[str, ...]
    form: str | None = None


SITE_SPECIFIC_SELECTORS: dict[str, FieldSelectors] = {
    "launchpad.support.sap.com": FieldSelectors(
        username=("#j_username", '[name="j_username"]', '[name="username"]'),
        password=("#j_password", '[name="j_password"]', '[name="password"]'),
        submit=("#logOnFormSubmit", '[type="submit"]'),
        form="#logonForm",
    ),
    "support.sap.com": FieldSelectors(
        username=("#j_username", '[name="j_username"]', '[name="username"]', "#username"),
        password=("#j_password", '[name="j_password"]', '[name="password"]', "#password"),
        submit=("#logOnFormSubmit", '[type="submit"]', 'button[type="submit"]'),
        form="#logonForm",
    ),
    "me.sap.com": FieldSelectors(
        username=("#j_username", '[name="username"]', "#username"),
        password=("#j_password", '[name="password"]', "#password"),
        submit=('[type="submit"]', 'button[type="submit"]'),
    ),
    "salesforce.com": FieldSelectors(
        username=("#username", '[name="username"]'),
        password=("#password", '[name="password"]'),
        submit=("#Login", '[name="Login"]', '[type="submit"]'),
    ),
    "servicenow.com": FieldSelectors(
        username=("#user_name", '[name="user_name"]', '[name="username"]'),
        password=("#user_password", '[name="user_password"]', '[name="password"]'),
        submit=("#sysverb_login", '[type="submit"]'),
    ),
}

GENERIC_SELECTORS = FieldSelectors(
    username=(
        '[name="username"]',
        '[name="email"]',
        '[name="user"]',
        '[name="login"]',
        '[type="email"]',
        "#username",
        "#email",
        "#user",
        "#login",
        ".username",
        ".email",
        '[placeholder*="username" i]',
        '[placeholder*="email" i]',
        '[aria-label*="username" i]',
        '[aria-label*="email" i]',
    ),
    password=(
        '[name="password"]',
        '[name="passwd"]',
        '[name="pass"]',
        '[type="password"]',
        "#password",
        "#passwd",
        "#pass",
        ".password",
        '[placeholder*="password" i]',
        '[aria-label*="password" i]',
    ),
    submit=(
        '[type="submit"]',
        'button[type="submit"]',
        'input[type="submit"]',
        ".login-button",
        ".signin-button",
        ".submit-button",
    ),
)

_FORM_USERNAME_PROBE = '[type="email"], [name*="username"], [name*="email"], [name*="user"]'


@dataclass(frozen=True)
class LoginDetection:
    is_login_page: bool
    login_method: str | None = None
    suggested_field_selectors: dict[str, str] = field(default_factory=dict)
    error: str | None = None


class LoginDetector(Protocol):
    def detect(self, page: PageHandle, url: str) -> LoginDetection:
        ...


def generate_credential_prompt(domain: str, login_method: str | None = None) -> str:
    base_message = f"Authentication required for {domain}."
    if login_method == "saml":
        return f"{base_message} This site uses SAML/SSO authentication, which cannot be automated; configure cookie credentials copied from a browser session."
    if login_method == "oauth":
        return f"{base_message} This site uses OAuth authentication, which cannot be automated; configure cookie or header credentials."
    if login_method == "form":
        return f"{base_message} Please provide username and password credentials (form login)."
    return f"{base_message} Please configure appropriate credentials for this job."


def _first_match(soup: BeautifulSoup, selectors: tuple[str, ...]) -> str | None:
    for selector in selectors:
        try:
            if soup.select_one(selector) is not None:
                return selector
        except SelectorSyntaxError:
            continue
    return None


class HeuristicLoginDetector:
    """
    Classify a page as a login page from vocabulary, URL and form structure.

    Title or URL indicators are sufficient on their own. Body text indicators
    only count when the page also carries a password input, so ordinary pages
    that merely mention "login" in a footer are not flagged.
    """

    def detect(self, page: PageHandle, url: str) -> LoginDetection:
        html = page.content()
        title = page.title() or ""
        current_url = page.url or url
        return self.detect_html(html=html, title=title, url=current_url)

    def detect_html(self, *, html: str, title: str, url: str) -> LoginDetection:
        soup = BeautifulSoup(html or "", "html.parser")
        body = soup.body or soup
        body_text = body.get_text(" ", strip=True)
        path = urlparse(url).path or ""
        has_password_field = soup.select_one('input[type="password"]') is not None

        title_hit = any(pattern.search(title) for pattern in LOGIN_TEXT_INDICATORS)
        url_hit = any(pattern.search(path) for pattern in LOGIN_URL_INDICATORS)
        body_hit = has_password_field and any(pattern.search(body_text) for pattern in LOGIN_TEXT_INDICATORS)
        if not (title_hit or url_hit or body_hit):
            return LoginDetection(is_login_page=False)

        method = self._login_method(soup, body_text)
        if method != "form":
            return LoginDetection(
                is_login_page=True,
                login_method=method,
                error=f'Login method "{method}" is not supported for automated authentication.',
            )

        host = (urlparse(url).hostname or "").lower()
        selectors = self._field_selectors(soup, host)
        if "username" not in selectors or "password" not in selectors:
            return LoginDetection(
                is_login_page=True,
                login_method=method,
                suggested_field_selectors=selectors,
                error="Could not locate username or password fields on the login form.",
            )
        return LoginDetection(is_login_page=True, login_method=method, suggested_field_selectors=selectors)

    @staticmethod
    def _login_method(soup: BeautifulSoup, body_text: str) -> str:
        for form in soup.find_all("form"):
            if form.select_one('[type="password"]') is not None and form.select_one(_FORM_USERNAME_PROBE) is not None:
                return "form"
        if any(pattern.search(body_text) for pattern in SAML_PATTERNS):
            return "saml"
        hrefs = [anchor.get("href", "") for anchor in soup.find_all("a")]
        if any(pattern.search(body_text) or any(pattern.search(href) for href in hrefs) for pattern in OAUTH_PATTERNS):
            return "oauth"
        return "unknown"

    @staticmethod
    def _field_selectors(soup: BeautifulSoup, host: str) -> dict[str, str]:
        site = next(
            (selectors for domain, selectors in SITE_SPECIFIC_SELECTORS.items() if domain in host),
            None,
        )
        resolved: dict[str, str] = {}
        for role in ("username", "password", "submit"):
            candidates: tuple[str, ...] = ()
            if site is not None:
                candidates += getattr(site, role)
            candidates += getattr(GENERIC_SELECTORS, role)
            match = _first_match(soup, candidates)
            if match is not None:
                resolved[role] = match

        if site is not None and site.form and _first_match(soup, (site.form,)):
            resolved["form"] = site.form
        elif "username" in resolved:
            field_tag = soup.select_one(resolved["username"])
            form = field_tag.find_parent("form") if field_tag is not None else None
            if form is not None:
                if form.get("id"):
                    resolved["form"] = f"#{form['id']}"
                elif form.get("class"):
                    resolved["form"] = f".{form['class'][0]}"
                else:
                    resolved["form"] = "form"
        return resolved
