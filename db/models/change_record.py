"""
db/models/change_record.py

Append-only log of detected content transitions.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import DateTime, Float, ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TenantMixin, UUIDPrimaryKeyMixin


class ChangeType:
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    TITLE_CHANGED = "title_changed"
    CONTENT_CHANGED = "content_changed"


class ChangeRecord(Base, UUIDPrimaryKeyMixin, TenantMixin):
    __tablename__ = "change_records"

    document_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("versioned_documents.id", ondelete="CASCADE"),
        nullable=False,
    )
    job_run_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("job_runs.id", ondelete="SET NULL"),
        nullable=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    change_type: Mapped[str] = mapped_column(String(32), nullable=False)
    old_content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    new_content_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)
    change_percentage: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    change_summary: Mapped[str | None] = mapped_column(Text, nullable=True)
    details: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    detected_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_change_records_tenant_detected", "tenant_id", "detected_at"),
        Index("ix_change_records_document", "document_id"),
    )
