"""
app/config.py

Application-level configuration helpers.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache

from db.config import load_env_files

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)
_ALLOWED_BROWSER_BACKENDS = {"playwright", "http", "auto"}


@lru_cache(maxsize=1)
def _load_env_once() -> None:
    """
    Ensure project `.env` files are loaded once before reading app settings.
    """

    load_env_files()


def _get_bool_env(name: str, default: bool) -> bool:
    """
    Read a boolean from environment variables with safe fallback.
    """

    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    return raw_value.strip().lower() in {"1", "true", "yes", "on"}


def _get_int_env(name: str, default: int) -> int:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return int(raw_value)
    except ValueError:
        return default


def _get_float_env(name: str, default: float) -> float:
    _load_env_once()
    raw_value = os.getenv(name)
    if raw_value is None:
        return default
    try:
        return float(raw_value)
    except ValueError:
        return default


def _get_str_env(name: str, default: str) -> str:
    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return default
    stripped = value.strip()
    return stripped if stripped else default


def _get_optional_str_env(name: str) -> str | None:
    """
    Read an optional string value from environment variables.
    """

    _load_env_once()
    value = os.getenv(name)
    if value is None:
        return None
    stripped = value.strip()
    return stripped if stripped else None


@dataclass(frozen=True)
class CrawlSettings:
    """
    Runtime settings shared by every crawl run.
    """

    user_agent: str = DEFAULT_USER_AGENT
    viewport_width: int = 1920
    viewport_height: int = 1080
    browser_backend: str = "playwright"
    headless: bool = True
    default_timeout_ms: int = 30000
    default_delay_ms: int = 1000
    default_max_pages: int = 100
    default_max_depth: int = 2
    form_timeout_ms: int = 10000
    idle_timeout_ms: int = 10000
    robots_timeout_seconds: float = 10.0
    allow_when_robots_unreachable: bool = True
    max_retries: int = 2
    backoff_initial_seconds: float = 1.0
    backoff_multiplier: float = 2.0


@dataclass(frozen=True)
class SchedulerSettings:
    """
    Runtime settings for the crawl job scheduler.
    """

    enabled: bool = True
    misfire_grace_seconds: int = 3600
    recover_stale_runs: bool = True
    change_threshold_percent: float = 5.0


@dataclass(frozen=True)
class CredentialSettings:
    encryption_key: str | None = None


@dataclass(frozen=True)
class EmbeddingSettings:
    """
    Embedding service adapter selection.
    """

    adapter: str = "mock"
    model: str = "text-embedding-3-small"
    api_key: str | None = None
    chunk_size: int = 1000
    chunk_overlap: int = 200


@lru_cache(maxsize=1)
def get_crawl_settings() -> CrawlSettings:
    """
    Return cached crawl settings from environment variables.
    """

    backend = _get_str_env("CRAWL_BROWSER_BACKEND", "playwright").lower()
    if backend not in _ALLOWED_BROWSER_BACKENDS:
        backend = "playwright"
    return CrawlSettings(
        user_agent=_get_str_env("CRAWL_USER_AGENT", DEFAULT_USER_AGENT),
        viewport_width=max(320, _get_int_env("CRAWL_VIEWPORT_WIDTH", 1920)),
        viewport_height=max(240, _get_int_env("CRAWL_VIEWPORT_HEIGHT", 1080)),
        browser_backend=backend,
        headless=_get_bool_env("CRAWL_HEADLESS", True),
        default_timeout_ms=max(1000, _get_int_env("CRAWL_TIMEOUT_MS", 30000)),
        default_delay_ms=max(0, _get_int_env("CRAWL_DELAY_MS", 1000)),
        default_max_pages=max(1, _get_int_env("CRAWL_MAX_PAGES", 100)),
        default_max_depth=max(0, _get_int_env("CRAWL_MAX_DEPTH", 2)),
        form_timeout_ms=max(1000, _get_int_env("CRAWL_FORM_TIMEOUT_MS", 10000)),
        idle_timeout_ms=max(1000, _get_int_env("CRAWL_IDLE_TIMEOUT_MS", 10000)),
        robots_timeout_seconds=max(1.0, _get_float_env("CRAWL_ROBOTS_TIMEOUT_SECONDS", 10.0)),
        allow_when_robots_unreachable=_get_bool_env("CRAWL_ALLOW_WHEN_ROBOTS_UNREACHABLE", True),
        max_retries=max(0, _get_int_env("CRAWL_MAX_RETRIES", 2)),
        backoff_initial_seconds=max(0.1, _get_float_env("CRAWL_BACKOFF_INITIAL_SECONDS", 1.0)),
        backoff_multiplier=max(1.0, _get_float_env("CRAWL_BACKOFF_MULTIPLIER", 2.0)),
    )


@lru_cache(maxsize=1)
def get_scheduler_settings() -> SchedulerSettings:
    return SchedulerSettings(
        enabled=_get_bool_env("SCHEDULER_ENABLED", True),
        misfire_grace_seconds=max(1, _get_int_env("SCHEDULER_MISFIRE_GRACE_SECONDS", 3600)),
        recover_stale_runs=_get_bool_env("SCHEDULER_RECOVER_STALE_RUNS", True),
        change_threshold_percent=max(0.0, _get_float_env("CHANGE_THRESHOLD_PERCENT", 5.0)),
    )


@lru_cache(maxsize=1)
def get_credential_settings() -> CredentialSettings:
    return CredentialSettings(encryption_key=_get_optional_str_env("CREDENTIAL_ENCRYPTION_KEY"))


@lru_cache(maxsize=1)
def get_embedding_settings() -> EmbeddingSettings:
    """
    Return embedding adapter settings; OPENAI_API_KEY is accepted as a fallback key.
    """

    return EmbeddingSettings(
        adapter=_get_str_env("EMBEDDING_ADAPTER", "mock").lower(),
        model=_get_str_env("EMBEDDING_MODEL", "text-embedding-3-small"),
        api_key=_get_optional_str_env("EMBEDDING_API_KEY") or _get_optional_str_env("OPENAI_API_KEY"),
        chunk_size=max(100, _get_int_env("EMBEDDING_CHUNK_SIZE", 1000)),
        chunk_overlap=max(0, _get_int_env("EMBEDDING_CHUNK_OVERLAP", 200)),
    )
