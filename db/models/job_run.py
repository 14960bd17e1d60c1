"""
db/models/job_run.py

One execution of a crawl job. Append-only once terminal.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONType, TenantMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.crawl_job import CrawlJob


class JobRunStatus:
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"

    TERMINAL = frozenset({COMPLETED, FAILED})


class JobRun(Base, UUIDPrimaryKeyMixin, TenantMixin):
    __tablename__ = "job_runs"

    job_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crawl_jobs.id", ondelete="CASCADE"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=JobRunStatus.RUNNING)
    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    urls_processed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    urls_successful: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    urls_failed: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    documents_created: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    documents_updated: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    changes_detected: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    logs: Mapped[list[dict[str, Any]]] = mapped_column(
        JSONType,
        nullable=False,
        default=list,
        comment="Per-URL errors: {url, error, needsCredentials?, loginMethod?}",
    )
    run_metadata: Mapped[dict[str, Any] | None] = mapped_column(
        "metadata",
        JSONType,
        nullable=True,
        comment="Crawl summary: template, auth attempts, content type, duration",
    )

    job: Mapped["CrawlJob"] = relationship("CrawlJob", back_populates="runs")

    __table_args__ = (
        Index("ix_job_runs_job_started", "job_id", "started_at"),
        Index("ix_job_runs_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<JobRun id={self.id} job_id={self.job_id} status={self.status}>"
