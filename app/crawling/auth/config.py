"""
Typed authentication configurations, one variant per credential kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Union

from app.crawling.auth.crypto import CredentialCipher

AUTH_KINDS = ("basic", "form", "cookie", "header", "sso")

DEFAULT_FORM_SELECTOR = "form"
DEFAULT_USERNAME_FIELD = 'input[name="username"], input[name="email"], input[type="email"]'
DEFAULT_PASSWORD_FIELD = 'input[type="password"]'


@dataclass(frozen=True)
class BasicAuth:
    kind: ClassVar[str] = "basic"

    username: str
    password: str = field(repr=False)


@dataclass(frozen=True)
class HeaderAuth:
    kind: ClassVar[str] = "header"

    headers: dict[str, str] = field(repr=False)


@dataclass(frozen=True)
class CookieSpec:
    name: str
    value: str = field(repr=False)
    domain: str | None = None
    path: str = "/"


@dataclass(frozen=True)
class CookieAuth:
    kind: ClassVar[str] = "cookie"

    cookies: tuple[CookieSpec, ...]


@dataclass(frozen=True)
class FormAuth:
    kind: ClassVar[str] = "form"

    username: str
    password: str = field(repr=False)
    form_selector: str = DEFAULT_FORM_SELECTOR
    username_field: str = DEFAULT_USERNAME_FIELD
    password_field: str = DEFAULT_PASSWORD_FIELD
    submit_button: str | None = None


@dataclass(frozen=True)
class SSOAuth:
    kind: ClassVar[str] = "sso"

    provider: str | None = None


AuthConfig = Union[BasicAuth, HeaderAuth, CookieAuth, FormAuth, SSOAuth]


@dataclass(frozen=True)
class SealedCredential:
    """
    A stored credential whose payload is still encrypted.

    Only the authentication adapter opens it, when the run that uses it starts.
    """

    kind: str
    domain: str | None
    ciphertext: str = field(repr=False)
    cipher: CredentialCipher = field(repr=False, compare=False)


def _require_str(payload: dict[str, Any], key: str, kind: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{kind} credential requires a non-empty '{key}'.")
    return value


def _optional_str(payload: dict[str, Any], key: str) -> str | None:
    value = payload.get(key)
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def parse_auth_config(kind: str, payload: dict[str, Any], *, domain: str | None = None) -> AuthConfig:
    """
    Build the typed variant for `kind` from a decrypted credential payload.

    Cookie entries without a domain are scoped to the credential's domain.
    Raises ValueError on unknown kinds or missing fields.
    """

    normalized = (kind or "").strip().lower()
    if normalized == "basic":
        return BasicAuth(
            username=_require_str(payload, "username", normalized),
            password=_require_str(payload, "password", normalized),
        )

    if normalized == "header":
        headers = payload.get("headers")
        if not isinstance(headers, dict) or not headers:
            raise ValueError("header credential requires a non-empty 'headers' map.")
        return HeaderAuth(headers={str(key): str(value) for key, value in headers.items()})

    if normalized == "cookie":
        raw_cookies = payload.get("cookies")
        if not isinstance(raw_cookies, list) or not raw_cookies:
            raise ValueError("cookie credential requires a non-empty 'cookies' list.")
        cookies: list[CookieSpec] = []
        for index, raw in enumerate(raw_cookies):
            if not isinstance(raw, dict) or not raw.get("name"):
                raise ValueError(f"cookie #{index} must be an object with a 'name'.")
            cookies.append(
                CookieSpec(
                    name=str(raw["name"]),
                    value=str(raw.get("value", "")),
                    domain=_optional_str(raw, "domain") or domain,
                    path=_optional_str(raw, "path") or "/",
                )
            )
        return CookieAuth(cookies=tuple(cookies))

    if normalized == "form":
        return FormAuth(
            username=_require_str(payload, "username", normalized),
            password=_require_str(payload, "password", normalized),
            form_selector=_optional_str(payload, "form_selector") or DEFAULT_FORM_SELECTOR,
            username_field=_optional_str(payload, "username_field") or DEFAULT_USERNAME_FIELD,
            password_field=_optional_str(payload, "password_field") or DEFAULT_PASSWORD_FIELD,
            submit_button=_optional_str(payload, "submit_button"),
        )

    if normalized == "sso":
        return SSOAuth(provider=_optional_str(payload, "provider"))

    raise ValueError(f"Unsupported auth kind '{kind}'. Allowed values: {list(AUTH_KINDS)}.")
