"""
Repository for job run lifecycle persistence.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from db.models.job_run import JobRun, JobRunStatus


@dataclass(frozen=True)
class RunTallies:
    """
    Counters recorded when a run completes.
    """

    urls_processed: int = 0
    urls_successful: int = 0
    urls_failed: int = 0
    documents_created: int = 0
    documents_updated: int = 0
    changes_detected: int = 0


class JobRunRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    def create_run(self, *, tenant_id: str, job_id: uuid.UUID) -> JobRun:
        run = JobRun(
            tenant_id=tenant_id,
            job_id=job_id,
            status=JobRunStatus.RUNNING,
            started_at=datetime.now(timezone.utc),
            logs=[],
        )
        self._session.add(run)
        self._session.flush()
        self._session.refresh(run)
        return run

    def get_run(self, run_id: uuid.UUID) -> JobRun | None:
        return self._session.get(JobRun, run_id)

    def mark_completed(
        self,
        *,
        run_id: uuid.UUID,
        tallies: RunTallies,
        logs: list[dict[str, Any]],
        run_metadata: dict[str, Any] | None = None,
    ) -> JobRun | None:
        run = self.get_run(run_id)
        if run is None or run.status in JobRunStatus.TERMINAL:
            return run
        run.status = JobRunStatus.COMPLETED
        run.completed_at = datetime.now(timezone.utc)
        run.urls_processed = tallies.urls_processed
        run.urls_successful = tallies.urls_successful
        run.urls_failed = tallies.urls_failed
        run.documents_created = tallies.documents_created
        run.documents_updated = tallies.documents_updated
        run.changes_detected = tallies.changes_detected
        run.logs = list(logs)
        run.run_metadata = run_metadata
        run.error_message = None
        return run

    def mark_failed(
        self,
        *,
        run_id: uuid.UUID,
        error_message: str,
        logs: list[dict[str, Any]] | None = None,
        tallies: RunTallies | None = None,
        run_metadata: dict[str, Any] | None = None,
    ) -> JobRun | None:
        run = self.get_run(run_id)
        if run is None or run.status in JobRunStatus.TERMINAL:
            return run
        run.status = JobRunStatus.FAILED
        run.completed_at = datetime.now(timezone.utc)
        run.error_message = error_message
        if logs is not None:
            run.logs = list(logs)
        if tallies is not None:
            run.urls_processed = tallies.urls_processed
            run.urls_successful = tallies.urls_successful
            run.urls_failed = tallies.urls_failed
            run.documents_created = tallies.documents_created
            run.documents_updated = tallies.documents_updated
            run.changes_detected = tallies.changes_detected
        if run_metadata is not None:
            run.run_metadata = run_metadata
        return run

    def list_for_job(self, *, job_id: uuid.UUID, limit: int = 20) -> list[JobRun]:
        stmt = (
            select(JobRun)
            .where(JobRun.job_id == job_id)
            .order_by(JobRun.started_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    def recover_stale(self) -> int:
        result = self._session.execute(
            update(JobRun)
            .where(JobRun.status == JobRunStatus.RUNNING)
            .values(
                status=JobRunStatus.FAILED,
                completed_at=datetime.now(timezone.utc),
                error_message="Run interrupted by process restart",
            )
            .execution_options(synchronize_session=False)
        )
        return int(result.rowcount or 0)
