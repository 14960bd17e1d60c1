"""
app/services/crawl_job_service.py

Operator-facing management of crawl jobs, credentials and change history.

Validation happens here, at save time, so the scheduler never loads a job
with a malformed cron expression, unknown template or broken URL pattern.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any
from urllib.parse import urlparse

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.config import CrawlSettings, get_crawl_settings, get_credential_settings
from app.crawling.auth.config import parse_auth_config
from app.crawling.auth.crypto import CredentialCipher
from app.crawling.errors import CrawlConfigurationError
from app.crawling.logging_utils import log_event
from app.scheduler.cron import InvalidCronExpressionError, next_run_time, validate_cron
from app.scheduler.planning import build_crawl_plan
from db.models.change_record import ChangeRecord
from db.models.credential import AuthKind, CrawlCredential
from db.models.crawl_job import CrawlJob
from db.models.job_run import JobRun
from db.models.versioned_document import VersionedDocument
from db.repositories.crawl_job_repository import CrawlJobRepository
from db.repositories.credential_repository import CredentialRepository
from db.repositories.document_repository import DocumentRepository
from db.repositories.errors import (
    CredentialInactiveError,
    CredentialNotFoundError,
    InvalidJobConfigError,
    JobNotFoundError,
)
from db.repositories.job_run_repository import JobRunRepository

logger = logging.getLogger(__name__)

DEFAULT_RECENT_CHANGES_LIMIT = 50


@dataclass(frozen=True)
class CrawlJobDefinition:
    """
    Editable fields of a crawl job as submitted by an operator.
    """

    name: str
    base_url: str
    template_id: str | None = None
    scrape_children: bool = True
    max_depth: int | None = None
    max_pages: int | None = None
    include_patterns: list[str] = field(default_factory=list)
    exclude_patterns: list[str] = field(default_factory=list)
    options: dict[str, Any] = field(default_factory=dict)
    credential_id: uuid.UUID | None = None
    schedule: str | None = None
    is_active: bool = True


class CrawlJobService:
    def __init__(
        self,
        *,
        cipher: CredentialCipher | None,
        settings: CrawlSettings | None = None,
    ) -> None:
        self._cipher = cipher
        self._settings = settings or get_crawl_settings()

    # ------------------------------------------------------------------
    # Jobs
    # ------------------------------------------------------------------

    def create_job(
        self,
        *,
        db: Session,
        tenant_id: str,
        definition: CrawlJobDefinition,
        created_by: str | None = None,
    ) -> CrawlJob:
        schedule = self._validate_definition(db=db, tenant_id=tenant_id, definition=definition)
        repo = CrawlJobRepository(db)
        try:
            job = repo.create_job(
                tenant_id=tenant_id,
                name=definition.name.strip(),
                base_url=definition.base_url.strip(),
                template_id=definition.template_id,
                scrape_children=definition.scrape_children,
                max_depth=definition.max_depth,
                max_pages=definition.max_pages,
                include_patterns=definition.include_patterns,
                exclude_patterns=definition.exclude_patterns,
                options=definition.options,
                credential_id=definition.credential_id,
                schedule=schedule,
                is_active=definition.is_active,
                next_run_at=next_run_time(schedule) if schedule and definition.is_active else None,
                created_by=created_by,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        log_event(logger, logging.INFO, "crawl_job_created", job_id=job.id, tenant_id=tenant_id, schedule=schedule)
        return job

    def update_job(
        self,
        *,
        db: Session,
        tenant_id: str,
        job_id: uuid.UUID,
        definition: CrawlJobDefinition,
    ) -> CrawlJob:
        job = self.get_job(db=db, tenant_id=tenant_id, job_id=job_id)
        schedule = self._validate_definition(db=db, tenant_id=tenant_id, definition=definition)
        try:
            CrawlJobRepository(db).update_job(
                job,
                name=definition.name.strip(),
                base_url=definition.base_url.strip(),
                template_id=definition.template_id,
                scrape_children=definition.scrape_children,
                max_depth=definition.max_depth,
                max_pages=definition.max_pages,
                include_patterns=list(definition.include_patterns),
                exclude_patterns=list(definition.exclude_patterns),
                options=dict(definition.options),
                credential_id=definition.credential_id,
                schedule=schedule,
                is_active=definition.is_active,
                next_run_at=next_run_time(schedule) if schedule and definition.is_active else None,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        log_event(logger, logging.INFO, "crawl_job_updated", job_id=job.id, tenant_id=tenant_id)
        return job

    def get_job(self, *, db: Session, tenant_id: str, job_id: uuid.UUID) -> CrawlJob:
        job = CrawlJobRepository(db).get_job_for_tenant(tenant_id=tenant_id, job_id=job_id)
        if job is None:
            raise JobNotFoundError(f"Crawl job not found: {job_id}")
        return job

    def list_jobs(self, *, db: Session, tenant_id: str, active_only: bool = False) -> list[CrawlJob]:
        return CrawlJobRepository(db).list_jobs(tenant_id=tenant_id, active_only=active_only)

    def toggle_job(self, *, db: Session, tenant_id: str, job_id: uuid.UUID, is_active: bool) -> CrawlJob:
        job = self.get_job(db=db, tenant_id=tenant_id, job_id=job_id)
        job.is_active = is_active
        job.next_run_at = next_run_time(job.schedule) if is_active and job.schedule else None
        db.commit()
        log_event(logger, logging.INFO, "crawl_job_toggled", job_id=job.id, is_active=is_active)
        return job

    def delete_job(self, *, db: Session, tenant_id: str, job_id: uuid.UUID) -> None:
        job = self.get_job(db=db, tenant_id=tenant_id, job_id=job_id)
        CrawlJobRepository(db).delete_job(job_id=job.id)
        db.commit()
        log_event(logger, logging.INFO, "crawl_job_deleted", job_id=job_id)

    def list_runs(self, *, db: Session, tenant_id: str, job_id: uuid.UUID, limit: int = 20) -> list[JobRun]:
        self.get_job(db=db, tenant_id=tenant_id, job_id=job_id)
        return JobRunRepository(db).list_for_job(job_id=job_id, limit=limit)

    def _validate_definition(
        self,
        *,
        db: Session,
        tenant_id: str,
        definition: CrawlJobDefinition,
    ) -> str | None:
        """
        Collect every problem with the definition and raise one
        InvalidJobConfigError. Returns the normalized schedule.
        """
        problems: list[str] = []

        if not definition.name or not definition.name.strip():
            problems.append("name must not be empty")

        parsed = urlparse((definition.base_url or "").strip())
        if parsed.scheme not in {"http", "https"} or not parsed.hostname:
            problems.append(f"base_url must be an absolute http(s) URL: {definition.base_url!r}")

        schedule: str | None = None
        if definition.schedule and definition.schedule.strip():
            try:
                schedule = validate_cron(definition.schedule)
            except InvalidCronExpressionError as exc:
                problems.append(str(exc))

        try:
            build_crawl_plan(
                settings=self._settings,
                base_url=definition.base_url,
                template_id=definition.template_id,
                scrape_children=definition.scrape_children,
                max_depth=definition.max_depth,
                max_pages=definition.max_pages,
                include_patterns=definition.include_patterns,
                exclude_patterns=definition.exclude_patterns,
                overrides=definition.options,
            )
        except (CrawlConfigurationError, ValueError, TypeError) as exc:
            problems.append(str(exc))

        if definition.credential_id is not None:
            try:
                CredentialRepository(db).require_active(tenant_id=tenant_id, credential_id=definition.credential_id)
            except (CredentialNotFoundError, CredentialInactiveError) as exc:
                problems.append(str(exc))

        if problems:
            raise InvalidJobConfigError("; ".join(problems))
        return schedule

    # ------------------------------------------------------------------
    # Credentials
    # ------------------------------------------------------------------

    def create_credential(
        self,
        *,
        db: Session,
        tenant_id: str,
        name: str,
        domain: str,
        auth_kind: str,
        payload: dict[str, Any],
        created_by: str | None = None,
    ) -> CrawlCredential:
        if self._cipher is None:
            raise ValueError("CREDENTIAL_ENCRYPTION_KEY is not configured; credentials cannot be stored.")
        if auth_kind not in AuthKind.ALL:
            raise ValueError(f"auth_kind must be one of {', '.join(AuthKind.ALL)}")
        if not domain or not domain.strip():
            raise ValueError("domain must not be empty")

        # Raises ValueError for a payload that does not fit the auth kind.
        parse_auth_config(auth_kind, payload, domain=domain.strip())

        try:
            credential = CredentialRepository(db).create_credential(
                tenant_id=tenant_id,
                name=name.strip() or domain.strip(),
                domain=domain.strip().lower(),
                auth_kind=auth_kind,
                encrypted_payload=self._cipher.encrypt(payload),
                created_by=created_by,
            )
            db.commit()
        except SQLAlchemyError:
            db.rollback()
            raise
        log_event(
            logger,
            logging.INFO,
            "crawl_credential_saved",
            record_id=credential.id,
            domain=credential.domain,
            auth_kind=auth_kind,
            payload_fields=sorted(payload),
        )
        return credential

    def list_credentials(self, *, db: Session, tenant_id: str) -> list[CrawlCredential]:
        return CredentialRepository(db).list_credentials(tenant_id=tenant_id)

    def delete_credential(self, *, db: Session, tenant_id: str, credential_id: uuid.UUID) -> None:
        repo = CredentialRepository(db)
        credential = repo.get_credential(credential_id)
        if credential is None or credential.tenant_id != tenant_id:
            raise CredentialNotFoundError(f"Credential not found: {credential_id}")
        repo.delete_credential(credential_id=credential_id)
        db.commit()
        log_event(logger, logging.INFO, "crawl_credential_deleted", record_id=credential_id)

    # ------------------------------------------------------------------
    # Change browser
    # ------------------------------------------------------------------

    def document_changes(self, *, db: Session, tenant_id: str, document_id: uuid.UUID) -> list[ChangeRecord]:
        return [
            record
            for record in DocumentRepository(db).list_changes_for_document(document_id=document_id)
            if record.tenant_id == tenant_id
        ]

    def recent_changes(
        self,
        *,
        db: Session,
        tenant_id: str,
        limit: int = DEFAULT_RECENT_CHANGES_LIMIT,
    ) -> list[ChangeRecord]:
        return DocumentRepository(db).recent_changes(tenant_id=tenant_id, limit=limit)

    def document_versions(self, *, db: Session, tenant_id: str, url: str) -> list[VersionedDocument]:
        return DocumentRepository(db).list_versions(tenant_id=tenant_id, url=url)


@lru_cache(maxsize=1)
def get_crawl_job_service() -> CrawlJobService:
    """
    Build and cache the crawl job service.
    """

    key = get_credential_settings().encryption_key
    return CrawlJobService(cipher=CredentialCipher(key) if key else None)
