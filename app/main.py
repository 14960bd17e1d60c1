from __future__ import annotations

import atexit
import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI


def _validate_env() -> None:
    """
    Validate all required environment variables at startup.

    Runs before any service or database connection is initialised.
    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - No empty-string values are accepted.
    - A PostgreSQL database URL must be configured.
    - CREDENTIAL_ENCRYPTION_KEY is always required.
    - The embedding API key check is skipped when EMBEDDING_ADAPTER=mock.
    """

    from db.config import load_env_files

    load_env_files()

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    database_url = os.getenv("DATABASE_URL", "").strip()
    cloud_database_url = os.getenv("CLOUD_DATABASE_URL", "").strip()
    local_database_url = os.getenv("LOCAL_DATABASE_URL", "").strip()
    if not database_url and not cloud_database_url and not local_database_url:
        errors.append(
            "No database URL configured. Set DATABASE_URL, CLOUD_DATABASE_URL or LOCAL_DATABASE_URL."
        )

    # --- Credential encryption -----------------------------------------
    if not os.getenv("CREDENTIAL_ENCRYPTION_KEY", "").strip():
        errors.append(
            "CREDENTIAL_ENCRYPTION_KEY is not set. Stored crawl credentials cannot be "
            "encrypted or decrypted without it."
        )

    # --- Embedding adapter ---------------------------------------------
    adapter = os.getenv("EMBEDDING_ADAPTER", "mock").strip().lower()
    if adapter not in {"mock", "openai"}:
        errors.append(f"EMBEDDING_ADAPTER='{adapter}' is not valid. Allowed values: ['mock', 'openai'].")
    elif adapter == "openai":
        if not os.getenv("EMBEDDING_API_KEY", "").strip() and not os.getenv("OPENAI_API_KEY", "").strip():
            errors.append(
                "Embedding API key is not set. Provide EMBEDDING_API_KEY or OPENAI_API_KEY, "
                "or set EMBEDDING_ADAPTER=mock."
            )

    # --- Browser backend -----------------------------------------------
    backend = os.getenv("CRAWL_BROWSER_BACKEND", "playwright").strip().lower()
    if backend not in {"playwright", "http", "auto"}:
        errors.append(
            f"CRAWL_BROWSER_BACKEND='{backend}' is not valid. Allowed values: ['playwright', 'http', 'auto']."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed - missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Compare Base.metadata table names against the live DB schema.

    Every table registered on Base.metadata must exist in the database.
    If any are missing, log a critical error and abort startup so that
    the operator is forced to run migrations before serving traffic.

    Does NOT auto-migrate.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401 - registers all ORM models on Base.metadata
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        log = logging.getLogger(__name__)
        log.critical(
            "Schema mismatch - %d table(s) defined in ORM metadata are absent from "
            "the database: %s. Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


def _build_orchestrator():
    from app.config import get_credential_settings, get_scheduler_settings
    from app.crawling.auth.crypto import CredentialCipher
    from app.scheduler.orchestrator import CrawlOrchestrator
    from app.services.embedding_service import build_document_embedder
    from db.session import get_session_factory

    key = get_credential_settings().encryption_key
    return CrawlOrchestrator(
        session_factory=get_session_factory(),
        cipher=CredentialCipher(key) if key else None,
        embedder=build_document_embedder(),
        scheduler_settings=get_scheduler_settings(),
    )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate DB connectivity and schema, start the crawl scheduler on boot; shut it down on exit."""
    from app.config import get_scheduler_settings

    _check_db()
    logging.getLogger(__name__).info("Database connectivity confirmed")
    _check_schema()
    logging.getLogger(__name__).info("Database schema validated")

    orchestrator = _build_orchestrator()
    orchestrator.initialize(start=get_scheduler_settings().enabled)
    atexit.register(orchestrator.shutdown)
    application.state.orchestrator = orchestrator
    logging.getLogger(__name__).info(
        "Crawl scheduler started with %d job(s)",
        orchestrator.get_status().scheduled_jobs_count,
    )
    try:
        yield
    finally:
        orchestrator.shutdown(wait=True)
        atexit.unregister(orchestrator.shutdown)
        application.state.orchestrator = None


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Crawl Change Pipeline API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import (
        changes_router,
        crawl_jobs_router,
        credentials_router,
        templates_router,
    )

    application.include_router(crawl_jobs_router)
    application.include_router(credentials_router)
    application.include_router(changes_router)
    application.include_router(templates_router)

    @application.get("/health")
    def healthcheck() -> dict[str, object]:
        orchestrator = getattr(application.state, "orchestrator", None)
        status = orchestrator.get_status() if orchestrator is not None else None
        return {
            "status": "ok",
            "scheduler_initialized": bool(status and status.is_initialized),
            "scheduled_jobs": status.scheduled_jobs_count if status else 0,
        }

    return application


app = create_app()
