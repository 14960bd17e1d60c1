"""
tests/test_crawl_job_service.py

Save-time validation of job definitions and encrypted credential storage.
"""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import CrawlSettings
from app.crawling.auth.crypto import CredentialCipher
from app.services.crawl_job_service import CrawlJobDefinition, CrawlJobService
from db.models.credential import CrawlCredential
from db.repositories.errors import CredentialNotFoundError, InvalidJobConfigError, JobNotFoundError

TENANT = "acme"


@pytest.fixture()
def cipher() -> CredentialCipher:
    return CredentialCipher("test-secret")


@pytest.fixture()
def service(cipher: CredentialCipher, crawl_settings: CrawlSettings) -> CrawlJobService:
    return CrawlJobService(cipher=cipher, settings=crawl_settings)


class TestJobs:
    def test_create_job_with_schedule(self, service: CrawlJobService, session: Session) -> None:
        job = service.create_job(
            db=session,
            tenant_id=TENANT,
            definition=CrawlJobDefinition(
                name="  Docs  ",
                base_url="https://docs.example.com/",
                template_id="documentation-deep",
                schedule=" 0 * * * * ",
            ),
            created_by="ops@example.com",
        )

        assert job.name == "Docs"
        assert job.schedule == "0 * * * *"
        assert job.next_run_at is not None
        assert job.status == "idle"
        assert service.list_jobs(db=session, tenant_id=TENANT) == [job]

    def test_manual_job_has_no_next_run(self, service: CrawlJobService, session: Session) -> None:
        job = service.create_job(
            db=session,
            tenant_id=TENANT,
            definition=CrawlJobDefinition(name="Once", base_url="https://example.com/"),
        )

        assert job.schedule is None
        assert job.next_run_at is None

    def test_all_problems_are_reported_together(self, service: CrawlJobService, session: Session) -> None:
        definition = CrawlJobDefinition(
            name=" ",
            base_url="example.com",
            template_id="does-not-exist",
            schedule="every day",
        )

        with pytest.raises(InvalidJobConfigError) as excinfo:
            service.create_job(db=session, tenant_id=TENANT, definition=definition)

        message = str(excinfo.value)
        assert "name must not be empty" in message
        assert "base_url must be an absolute http(s) URL" in message
        assert "Cron expression must have exactly 5 fields" in message
        assert "Unknown template id" in message
        assert service.list_jobs(db=session, tenant_id=TENANT) == []

    def test_unknown_credential_is_rejected(self, service: CrawlJobService, session: Session) -> None:
        definition = CrawlJobDefinition(name="x", base_url="https://example.com/", credential_id=uuid.uuid4())

        with pytest.raises(InvalidJobConfigError, match="Credential not found"):
            service.create_job(db=session, tenant_id=TENANT, definition=definition)

    def test_update_toggle_and_delete(self, service: CrawlJobService, session: Session) -> None:
        job = service.create_job(
            db=session,
            tenant_id=TENANT,
            definition=CrawlJobDefinition(name="Blog", base_url="https://example.com/blog/"),
        )

        updated = service.update_job(
            db=session,
            tenant_id=TENANT,
            job_id=job.id,
            definition=CrawlJobDefinition(
                name="Blog",
                base_url="https://example.com/blog/",
                max_pages=5,
                schedule="30 6 * * *",
            ),
        )
        assert updated.max_pages == 5
        assert updated.next_run_at is not None

        paused = service.toggle_job(db=session, tenant_id=TENANT, job_id=job.id, is_active=False)
        assert paused.is_active is False
        assert paused.next_run_at is None

        service.delete_job(db=session, tenant_id=TENANT, job_id=job.id)
        with pytest.raises(JobNotFoundError):
            service.get_job(db=session, tenant_id=TENANT, job_id=job.id)

    def test_jobs_are_tenant_scoped(self, service: CrawlJobService, session: Session) -> None:
        job = service.create_job(
            db=session,
            tenant_id=TENANT,
            definition=CrawlJobDefinition(name="Private", base_url="https://example.com/"),
        )

        assert service.list_jobs(db=session, tenant_id="other") == []
        with pytest.raises(JobNotFoundError):
            service.get_job(db=session, tenant_id="other", job_id=job.id)


class TestCredentials:
    def test_payload_is_stored_encrypted(
        self,
        service: CrawlJobService,
        cipher: CredentialCipher,
        session: Session,
    ) -> None:
        credential = service.create_credential(
            db=session,
            tenant_id=TENANT,
            name="portal",
            domain=" Portal.Example.com ",
            auth_kind="form",
            payload={"username": "alice", "password": "hunter2"},
        )

        stored = session.scalars(select(CrawlCredential).where(CrawlCredential.id == credential.id)).one()
        assert stored.domain == "portal.example.com"
        assert "hunter2" not in stored.encrypted_payload
        assert cipher.decrypt(stored.encrypted_payload) == {"username": "alice", "password": "hunter2"}

    def test_payload_must_fit_auth_kind(self, service: CrawlJobService, session: Session) -> None:
        with pytest.raises(ValueError, match="password"):
            service.create_credential(
                db=session,
                tenant_id=TENANT,
                name="portal",
                domain="example.com",
                auth_kind="basic",
                payload={"username": "alice"},
            )

    def test_unknown_auth_kind(self, service: CrawlJobService, session: Session) -> None:
        with pytest.raises(ValueError, match="auth_kind must be one of"):
            service.create_credential(
                db=session,
                tenant_id=TENANT,
                name="x",
                domain="example.com",
                auth_kind="kerberos",
                payload={},
            )

    def test_storing_requires_a_key(self, crawl_settings: CrawlSettings, session: Session) -> None:
        service = CrawlJobService(cipher=None, settings=crawl_settings)

        with pytest.raises(ValueError, match="CREDENTIAL_ENCRYPTION_KEY"):
            service.create_credential(
                db=session,
                tenant_id=TENANT,
                name="x",
                domain="example.com",
                auth_kind="header",
                payload={"headers": {"X-Api-Key": "k"}},
            )

    def test_job_can_reference_credential(self, service: CrawlJobService, session: Session) -> None:
        credential = service.create_credential(
            db=session,
            tenant_id=TENANT,
            name="cookies",
            domain="example.com",
            auth_kind="cookie",
            payload={"cookies": [{"name": "sid", "value": "abc"}]},
        )

        job = service.create_job(
            db=session,
            tenant_id=TENANT,
            definition=CrawlJobDefinition(name="x", base_url="https://example.com/", credential_id=credential.id),
        )

        assert job.credential_id == credential.id

    def test_delete_is_tenant_scoped(self, service: CrawlJobService, session: Session) -> None:
        credential = service.create_credential(
            db=session,
            tenant_id=TENANT,
            name="token",
            domain="example.com",
            auth_kind="header",
            payload={"headers": {"Authorization": "Bearer t"}},
        )

        with pytest.raises(CredentialNotFoundError):
            service.delete_credential(db=session, tenant_id="other", credential_id=credential.id)

        service.delete_credential(db=session, tenant_id=TENANT, credential_id=credential.id)
        assert service.list_credentials(db=session, tenant_id=TENANT) == []
