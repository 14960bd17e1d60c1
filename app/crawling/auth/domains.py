"""
Domain heuristics and auth-error classification.

Internal domains are corporate SSO-fronted sites (intranets, SharePoint,
Atlassian, Google Workspace) that cannot be crawled without a copied browser
session. External credentialed domains are vendor portals that accept a
username/password login.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import urlparse

from app.crawling.auth.login_detection import generate_credential_prompt

INTERNAL_DOMAIN_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"\.company\.com$",
        r"\.sharepoint\.com$",
        r"\.onmicrosoft\.com$",
        r"\.teams\.microsoft\.com$",
        r"\.office\.com$",
        r"\.outlook\.com$",
        r"\.atlassian\.net$",
        r"\.atlassian\.com$",
        r"\.google\.com$",
        r"\.gsuite\.com$",
        r"\.corp\.",
        r"\.internal$",
        r"\.intranet$",
        r"\.local$",
    )
)

WELL_KNOWN_SSO_DOMAINS = (
    "company.com",
    "sharepoint.com",
    "onmicrosoft.com",
    "atlassian.net",
    "atlassian.com",
    "google.com",
)

EXTERNAL_CREDENTIAL_PATTERNS: tuple[re.Pattern[str], ...] = tuple(
    re.compile(pattern)
    for pattern in (
        r"launchpad\.support\.sap\.com$",
        r"\.support\.sap\.com$",
        r"me\.sap\.com$",
        r"\.salesforce\.com$",
        r"\.oracle\.com$",
        r"\.aws\.amazon\.com$",
        r"\.azure\.microsoft\.com$",
        r"\.servicenow\.com$",
        r"\.zendesk\.com$",
        r"\.freshdesk\.com$",
    )
)

AUTH_ERROR_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(r"login", re.IGNORECASE),
    re.compile(r"signin", re.IGNORECASE),
    re.compile(r"authenticat", re.IGNORECASE),
    re.compile(r"unauthorized", re.IGNORECASE),
    re.compile(r"access.*denied", re.IGNORECASE),
    re.compile(r"permission.*denied", re.IGNORECASE),
    re.compile(r"\b401\b"),
    re.compile(r"\b403\b"),
)


@dataclass(frozen=True)
class ErrorClassification:
    is_auth_error: bool
    needs_credentials: bool = False
    suggestion: str | None = None


def _hostname(url: str) -> str:
    try:
        return (urlparse(url).hostname or "").lower()
    except ValueError:
        return ""


def is_internal_domain(url: str) -> bool:
    host = _hostname(url)
    if not host:
        return False
    return any(pattern.search(host) for pattern in INTERNAL_DOMAIN_PATTERNS) or any(
        known in host for known in WELL_KNOWN_SSO_DOMAINS
    )


def is_external_credential_domain(url: str) -> bool:
    host = _hostname(url)
    if not host:
        return False
    return any(pattern.search(host) for pattern in EXTERNAL_CREDENTIAL_PATTERNS)


def internal_auth_guide(host: str) -> str:
    """
    Remediation hint naming which browser cookies to copy for an internal site.
    """

    if "atlassian" in host:
        return (
            "For Atlassian sites: use cookie authentication with session cookies "
            "from your browser (F12 → Application → Cookies)"
        )
    if "sharepoint" in host or "office" in host or "microsoft" in host:
        return "For SharePoint/Office 365: use cookie authentication with FedAuth cookies from your browser"
    if "google" in host:
        return "For Google sites: use cookie authentication with SAPISID/APISID cookies from your browser"
    return (
        "For internal sites: use cookie authentication with session cookies "
        "from your browser (F12 → Developer Tools)"
    )


def internal_domain_message(url: str) -> str:
    host = _hostname(url) or url
    return (
        f"Internal domain detected: {host}. Authentication required but no credentials configured. "
        f"{internal_auth_guide(host)}. Configure a credential for this job."
    )


def classify_error(url: str, message: str) -> ErrorClassification:
    """
    Decide whether `message` is an authentication failure and how to fix it.
    """

    if not any(pattern.search(message or "") for pattern in AUTH_ERROR_PATTERNS):
        return ErrorClassification(is_auth_error=False)

    host = _hostname(url) or url
    if is_internal_domain(url):
        suggestion = (
            f"This appears to be an internal {host} website that requires an authenticated session. "
            f"Server-side SSO is not supported; configure cookie auth. {internal_auth_guide(host)}."
        )
    elif is_external_credential_domain(url):
        suggestion = (
            f"This external website ({host}) requires authentication. "
            f"{generate_credential_prompt(host, 'form')}"
        )
    else:
        suggestion = (
            "This website requires authentication. If this is an internal company website, "
            "configure cookie or header credentials for this job."
        )
    return ErrorClassification(is_auth_error=True, needs_credentials=True, suggestion=suggestion)
