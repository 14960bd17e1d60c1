"""
db/models/crawl_job.py

Recurring crawl job definitions and their lifecycle status.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column, relationship

from db.base import Base, JSONType, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from db.models.credential import CrawlCredential
    from db.models.job_run import JobRun


class CrawlJobStatus:
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class CrawlJob(Base, UUIDPrimaryKeyMixin, TenantMixin, TimestampMixin):
    __tablename__ = "crawl_jobs"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    base_url: Mapped[str] = mapped_column(Text, nullable=False)
    template_id: Mapped[str | None] = mapped_column(
        String(64),
        nullable=True,
        comment="Catalog template id, 'auto' to suggest from the URL, NULL for defaults",
    )
    scrape_children: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_depth: Mapped[int | None] = mapped_column(Integer, nullable=True)
    max_pages: Mapped[int | None] = mapped_column(Integer, nullable=True)
    include_patterns: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    exclude_patterns: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    options: Mapped[dict[str, Any]] = mapped_column(
        JSONType,
        nullable=False,
        default=dict,
        comment="Crawl option overrides (timeout_ms, delay_ms, respect_robots, ...)",
    )
    credential_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crawl_credentials.id", ondelete="SET NULL"),
        nullable=True,
    )
    schedule: Mapped[str | None] = mapped_column(
        String(120),
        nullable=True,
        comment="5-field cron expression; NULL for manual-only jobs",
    )
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=CrawlJobStatus.IDLE)
    last_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    next_run_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # ------------------------------------------------------------------
    # Relationships
    # ------------------------------------------------------------------

    credential: Mapped["CrawlCredential | None"] = relationship("CrawlCredential", lazy="joined")
    runs: Mapped[list["JobRun"]] = relationship(
        "JobRun",
        back_populates="job",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="JobRun.started_at.desc()",
    )

    __table_args__ = (
        Index("ix_crawl_jobs_tenant_active", "tenant_id", "is_active"),
        Index("ix_crawl_jobs_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<CrawlJob id={self.id} name={self.name!r} status={self.status}>"
