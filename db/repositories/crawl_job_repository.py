"""
Repository for crawl job definitions and their run-state transitions.

The caller controls commit/rollback; this repository never commits on its own.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import Select, select, update
from sqlalchemy.orm import Session

from db.models.crawl_job import CrawlJob, CrawlJobStatus


class CrawlJobRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def create_job(
        self,
        *,
        tenant_id: str,
        name: str,
        base_url: str,
        template_id: str | None = None,
        scrape_children: bool = True,
        max_depth: int | None = None,
        max_pages: int | None = None,
        include_patterns: list[str] | None = None,
        exclude_patterns: list[str] | None = None,
        options: dict[str, Any] | None = None,
        credential_id: uuid.UUID | None = None,
        schedule: str | None = None,
        is_active: bool = True,
        next_run_at: datetime | None = None,
        created_by: str | None = None,
    ) -> CrawlJob:
        job = CrawlJob(
            tenant_id=tenant_id,
            name=name,
            base_url=base_url,
            template_id=template_id,
            scrape_children=scrape_children,
            max_depth=max_depth,
            max_pages=max_pages,
            include_patterns=list(include_patterns or []),
            exclude_patterns=list(exclude_patterns or []),
            options=dict(options or {}),
            credential_id=credential_id,
            schedule=schedule,
            is_active=is_active,
            status=CrawlJobStatus.IDLE,
            next_run_at=next_run_at,
            created_by=created_by,
        )
        self._session.add(job)
        self._session.flush()
        self._session.refresh(job)
        return job

    def update_job(self, job: CrawlJob, **changes: Any) -> CrawlJob:
        for key, value in changes.items():
            if not hasattr(CrawlJob, key):
                raise AttributeError(f"CrawlJob has no field {key!r}")
            setattr(job, key, value)
        self._session.flush()
        return job

    def set_active(self, *, job_id: uuid.UUID, is_active: bool) -> CrawlJob | None:
        job = self.get_job(job_id)
        if job is None:
            return None
        job.is_active = is_active
        if not is_active:
            job.next_run_at = None
        return job

    def set_next_run(self, *, job_id: uuid.UUID, next_run_at: datetime | None) -> None:
        self._session.execute(
            update(CrawlJob).where(CrawlJob.id == job_id).values(next_run_at=next_run_at)
        )

    def delete_job(self, *, job_id: uuid.UUID) -> bool:
        job = self.get_job(job_id)
        if job is None:
            return False
        self._session.delete(job)
        self._session.flush()
        return True

    # ------------------------------------------------------------------
    # Run state
    # ------------------------------------------------------------------

    def claim_for_run(self, *, job_id: uuid.UUID) -> bool:
        """
        Atomically move a job into ``running``.

        Returns False when the job is missing, inactive, or already running.
        The guard lives in the UPDATE's WHERE clause so two processes racing
        on the same job cannot both win.
        """
        result = self._session.execute(
            update(CrawlJob)
            .where(
                CrawlJob.id == job_id,
                CrawlJob.status != CrawlJobStatus.RUNNING,
                CrawlJob.is_active.is_(True),
            )
            .values(status=CrawlJobStatus.RUNNING)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    def finish_run(
        self,
        *,
        job_id: uuid.UUID,
        status: str,
        last_run_at: datetime,
        next_run_at: datetime | None,
    ) -> None:
        self._session.execute(
            update(CrawlJob)
            .where(CrawlJob.id == job_id)
            .values(status=status, last_run_at=last_run_at, next_run_at=next_run_at)
            .execution_options(synchronize_session=False)
        )

    def recover_stale(self) -> int:
        """
        Reset jobs left ``running`` by a previous process to ``failed``.
        Only safe to call before any run has been started in this process.
        """
        result = self._session.execute(
            update(CrawlJob)
            .where(CrawlJob.status == CrawlJobStatus.RUNNING)
            .values(status=CrawlJobStatus.FAILED, last_run_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def get_job(self, job_id: uuid.UUID) -> CrawlJob | None:
        return self._session.get(CrawlJob, job_id)

    def get_job_for_tenant(self, *, tenant_id: str, job_id: uuid.UUID) -> CrawlJob | None:
        stmt = select(CrawlJob).where(CrawlJob.id == job_id, CrawlJob.tenant_id == tenant_id)
        return self._session.scalars(stmt).first()

    def list_jobs(
        self,
        *,
        tenant_id: str | None = None,
        active_only: bool = False,
        limit: int = 100,
    ) -> list[CrawlJob]:
        stmt: Select[tuple[CrawlJob]] = select(CrawlJob)

        if tenant_id:
            stmt = stmt.where(CrawlJob.tenant_id == tenant_id)
        if active_only:
            stmt = stmt.where(CrawlJob.is_active.is_(True))

        stmt = stmt.order_by(CrawlJob.created_at.desc()).limit(max(1, limit))
        return list(self._session.scalars(stmt).unique().all())

    def list_schedulable(self) -> list[CrawlJob]:
        stmt = (
            select(CrawlJob)
            .where(CrawlJob.is_active.is_(True), CrawlJob.schedule.is_not(None))
            .order_by(CrawlJob.created_at)
        )
        return list(self._session.scalars(stmt).unique().all())
