"""
tests/conftest.py

Shared fixtures: an in-memory SQLite database and zero-delay crawl settings.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

import db.models  # noqa: F401 - registers all ORM models on Base.metadata
from app.config import CrawlSettings, SchedulerSettings
from app.crawling.rate_limiter import DomainRateLimiter
from db.base import Base
from db.session import build_session_factory

TEST_USER_AGENT = "crawl-tests/1.0"


# ---------------------------------------------------------------------------
# Database
# ---------------------------------------------------------------------------


@pytest.fixture()
def engine() -> Iterator[Engine]:
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(test_engine)
    yield test_engine
    Base.metadata.drop_all(test_engine)
    test_engine.dispose()


@pytest.fixture()
def session_factory(engine: Engine) -> sessionmaker[Session]:
    return build_session_factory(engine)


@pytest.fixture()
def session(session_factory: sessionmaker[Session]) -> Iterator[Session]:
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


# ---------------------------------------------------------------------------
# Crawl settings
# ---------------------------------------------------------------------------


@pytest.fixture()
def crawl_settings() -> CrawlSettings:
    return CrawlSettings(
        user_agent=TEST_USER_AGENT,
        browser_backend="http",
        default_delay_ms=0,
        max_retries=0,
        backoff_initial_seconds=0.0,
    )


@pytest.fixture()
def scheduler_settings() -> SchedulerSettings:
    return SchedulerSettings(enabled=False, misfire_grace_seconds=60, recover_stale_runs=True)


@pytest.fixture()
def rate_limiter() -> DomainRateLimiter:
    return DomainRateLimiter(default_delay_seconds=0.0)
