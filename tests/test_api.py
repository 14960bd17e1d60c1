"""
tests/test_api.py

HTTP surface for jobs, credentials, the change browser, the template
catalog and scheduler status, served over in-memory SQLite.
"""

from __future__ import annotations

import uuid
from collections.abc import Iterator

import pytest
from apscheduler.schedulers.background import BackgroundScheduler
from fastapi import FastAPI
from fastapi.testclient import TestClient
from sqlalchemy import update
from sqlalchemy.orm import Session, sessionmaker

from app.api.routers import changes_router, crawl_jobs_router, credentials_router, templates_router
from app.config import CrawlSettings, SchedulerSettings
from app.crawling.auth.crypto import CredentialCipher
from app.crawling.engine import CrawlEngine
from app.crawling.rate_limiter import DomainRateLimiter
from app.scheduler.orchestrator import CrawlOrchestrator
from app.services.crawl_job_service import CrawlJobService, get_crawl_job_service
from db.models.crawl_job import CrawlJob, CrawlJobStatus
from db.session import get_db
from tests.fakes import AllowAllRobots, FakeContext, FakeSite, html_page

ROOT = "https://example.com/"
TENANT_HEADERS = {"X-Tenant-ID": "acme"}


def _build_app(
    session_factory: sessionmaker[Session],
    service: CrawlJobService,
    orchestrator: CrawlOrchestrator | None,
) -> FastAPI:
    application = FastAPI()
    application.include_router(crawl_jobs_router)
    application.include_router(credentials_router)
    application.include_router(changes_router)
    application.include_router(templates_router)

    def override_get_db() -> Iterator[Session]:
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_crawl_job_service] = lambda: service
    application.state.orchestrator = orchestrator
    return application


@pytest.fixture()
def site() -> FakeSite:
    fake = FakeSite()
    fake.add(ROOT, html_page("Home", "welcome to the example home page", ("/about",)))
    fake.add(f"{ROOT}about", html_page("About", "we build example products"))
    return fake


@pytest.fixture()
def orchestrator(
    session_factory: sessionmaker[Session],
    crawl_settings: CrawlSettings,
    scheduler_settings: SchedulerSettings,
    rate_limiter: DomainRateLimiter,
    site: FakeSite,
) -> Iterator[CrawlOrchestrator]:
    cipher = CredentialCipher("test-secret")
    engine = CrawlEngine(
        settings=crawl_settings,
        context_factory=lambda options: FakeContext(site),
        robots_policy=AllowAllRobots(),
        rate_limiter=rate_limiter,
    )
    instance = CrawlOrchestrator(
        session_factory=session_factory,
        cipher=cipher,
        engine=engine,
        scheduler=BackgroundScheduler(timezone="UTC"),
        crawl_settings=crawl_settings,
        scheduler_settings=scheduler_settings,
    )
    instance.initialize(start=False)
    yield instance
    instance.shutdown()


@pytest.fixture()
def client(
    session_factory: sessionmaker[Session],
    crawl_settings: CrawlSettings,
    orchestrator: CrawlOrchestrator,
) -> TestClient:
    service = CrawlJobService(cipher=CredentialCipher("test-secret"), settings=crawl_settings)
    return TestClient(_build_app(session_factory, service, orchestrator))


def _create_job(client: TestClient, **changes) -> dict:
    body = {"name": "Example", "base_url": ROOT}
    body.update(changes)
    response = client.post("/crawl-jobs", json=body, headers=TENANT_HEADERS)
    assert response.status_code == 201, response.text
    return response.json()


# ---------------------------------------------------------------------------
# Jobs
# ---------------------------------------------------------------------------


class TestCrawlJobs:
    def test_create_schedules_job(self, client: TestClient) -> None:
        job = _create_job(client, schedule="0 * * * *", template_id="auto")

        assert job["tenant_id"] == "acme"
        assert job["status"] == "idle"
        assert job["next_run_at"] is not None
        status = client.get("/scheduler/status").json()
        assert status["scheduled_job_ids"] == [job["id"]]

    def test_invalid_definition_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/crawl-jobs",
            json={"name": "Bad", "base_url": ROOT, "schedule": "hourly"},
            headers=TENANT_HEADERS,
        )

        assert response.status_code == 400
        assert "Cron expression" in response.json()["detail"]

    def test_list_and_get_are_tenant_scoped(self, client: TestClient) -> None:
        job = _create_job(client)

        assert [item["id"] for item in client.get("/crawl-jobs", headers=TENANT_HEADERS).json()] == [job["id"]]
        assert client.get("/crawl-jobs", headers={"X-Tenant-ID": "other"}).json() == []
        assert client.get(f"/crawl-jobs/{job['id']}", headers={"X-Tenant-ID": "other"}).status_code == 404

    def test_update_and_toggle(self, client: TestClient) -> None:
        job = _create_job(client)

        updated = client.put(
            f"/crawl-jobs/{job['id']}",
            json={"name": "Renamed", "base_url": ROOT, "schedule": "15 3 * * *"},
            headers=TENANT_HEADERS,
        )
        assert updated.status_code == 200
        assert updated.json()["name"] == "Renamed"
        assert client.get("/scheduler/status").json()["scheduled_jobs_count"] == 1

        paused = client.patch(f"/crawl-jobs/{job['id']}/active", json={"is_active": False}, headers=TENANT_HEADERS)
        assert paused.json()["is_active"] is False
        assert client.get("/scheduler/status").json()["scheduled_jobs_count"] == 0

    def test_delete(self, client: TestClient) -> None:
        job = _create_job(client, schedule="0 * * * *")

        assert client.delete(f"/crawl-jobs/{job['id']}", headers=TENANT_HEADERS).status_code == 204
        assert client.get(f"/crawl-jobs/{job['id']}", headers=TENANT_HEADERS).status_code == 404
        assert client.get("/scheduler/status").json()["scheduled_jobs_count"] == 0

    def test_unknown_tenant_header_too_long(self, client: TestClient) -> None:
        response = client.get("/crawl-jobs", headers={"X-Tenant-ID": "x" * 65})
        assert response.status_code == 400


class TestRunNow:
    def test_run_inline_and_browse_changes(self, client: TestClient) -> None:
        job = _create_job(client)

        response = client.post(f"/crawl-jobs/{job['id']}/run", params={"wait": "true"}, headers=TENANT_HEADERS)

        assert response.status_code == 200
        body = response.json()
        assert body["queued"] is False
        assert body["status"] == "completed"

        runs = client.get(f"/crawl-jobs/{job['id']}/runs", headers=TENANT_HEADERS).json()
        assert len(runs) == 1
        assert runs[0]["documents_created"] == 2

        changes = client.get("/changes/recent", headers=TENANT_HEADERS).json()
        assert sorted(change["change_type"] for change in changes) == ["created", "created"]
        assert client.get("/changes/recent", headers={"X-Tenant-ID": "other"}).json() == []

        versions = client.get("/documents/versions", params={"url": ROOT}, headers=TENANT_HEADERS).json()
        assert [version["version"] for version in versions] == [1]
        assert versions[0]["content"] is None

        with_content = client.get(
            "/documents/versions",
            params={"url": ROOT, "include_content": "true"},
            headers=TENANT_HEADERS,
        ).json()
        assert "welcome" in with_content[0]["content"]

        history = client.get(f"/documents/{versions[0]['id']}/changes", headers=TENANT_HEADERS).json()
        assert [change["change_type"] for change in history] == ["created"]

    def test_run_queued(self, client: TestClient) -> None:
        job = _create_job(client)

        response = client.post(f"/crawl-jobs/{job['id']}/run", headers=TENANT_HEADERS)

        assert response.status_code == 200
        assert response.json()["queued"] is True
        assert client.get("/scheduler/status").json()["scheduled_job_ids"] == []

    def test_already_running_is_409(self, client: TestClient, session_factory: sessionmaker[Session]) -> None:
        job = _create_job(client)
        with session_factory() as session:
            session.execute(
                update(CrawlJob)
                .where(CrawlJob.id == uuid.UUID(job["id"]))
                .values(status=CrawlJobStatus.RUNNING)
            )
            session.commit()

        response = client.post(f"/crawl-jobs/{job['id']}/run", params={"wait": "true"}, headers=TENANT_HEADERS)

        assert response.status_code == 409

    def test_inactive_job_is_400(self, client: TestClient) -> None:
        job = _create_job(client, is_active=False)

        response = client.post(f"/crawl-jobs/{job['id']}/run", headers=TENANT_HEADERS)

        assert response.status_code == 400

    def test_cancel_without_active_run(self, client: TestClient) -> None:
        job = _create_job(client)

        response = client.post(f"/crawl-jobs/{job['id']}/cancel", headers=TENANT_HEADERS)

        assert response.json() == {"cancelled": False}


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    def test_create_never_echoes_payload(self, client: TestClient) -> None:
        response = client.post(
            "/crawl-credentials",
            json={
                "name": "portal",
                "domain": "example.com",
                "auth_kind": "basic",
                "payload": {"username": "alice", "password": "hunter2"},
            },
            headers=TENANT_HEADERS,
        )

        assert response.status_code == 201
        assert "hunter2" not in response.text
        assert "payload" not in response.json()
        listed = client.get("/crawl-credentials", headers=TENANT_HEADERS).json()
        assert [item["id"] for item in listed] == [response.json()["id"]]

    def test_invalid_payload_is_400(self, client: TestClient) -> None:
        response = client.post(
            "/crawl-credentials",
            json={"domain": "example.com", "auth_kind": "header", "payload": {}},
            headers=TENANT_HEADERS,
        )

        assert response.status_code == 400

    def test_delete(self, client: TestClient) -> None:
        created = client.post(
            "/crawl-credentials",
            json={"domain": "example.com", "auth_kind": "sso", "payload": {"provider": "okta"}},
            headers=TENANT_HEADERS,
        ).json()

        assert client.delete(f"/crawl-credentials/{created['id']}", headers=TENANT_HEADERS).status_code == 204
        assert client.delete(f"/crawl-credentials/{created['id']}", headers=TENANT_HEADERS).status_code == 404


# ---------------------------------------------------------------------------
# Templates and scheduler
# ---------------------------------------------------------------------------


class TestTemplates:
    def test_list_and_filter(self, client: TestClient) -> None:
        everything = client.get("/crawl-templates").json()
        docs = client.get("/crawl-templates", params={"category": "documentation"}).json()

        assert len(everything) > len(docs) >= 1
        assert all(item["category"] == "documentation" for item in docs)

    def test_suggest(self, client: TestClient) -> None:
        response = client.get("/crawl-templates/suggest", params={"url": "https://en.wikipedia.org/wiki/Crawler"})
        assert response.json()["id"] == "wiki-knowledge"

    def test_unknown_template_is_404(self, client: TestClient) -> None:
        assert client.get("/crawl-templates/nope").status_code == 404


class TestScheduler:
    def test_status_and_reload(self, client: TestClient) -> None:
        _create_job(client, schedule="*/5 * * * *")

        status = client.get("/scheduler/status").json()
        assert status["is_initialized"] is True
        assert status["is_running"] is False

        reloaded = client.post("/scheduler/reload").json()
        assert reloaded["scheduled_jobs_count"] == 1

    def test_missing_orchestrator_is_503(
        self,
        session_factory: sessionmaker[Session],
        crawl_settings: CrawlSettings,
    ) -> None:
        service = CrawlJobService(cipher=None, settings=crawl_settings)
        bare = TestClient(_build_app(session_factory, service, None))

        assert bare.get("/scheduler/status").status_code == 503
