"""
db/models/versioned_document.py

Version chain of crawled page content per (tenant, URL).
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import Boolean, ForeignKey, Index, Integer, String, Text, UniqueConstraint, Uuid, text
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base, JSONType, TenantMixin, TimestampMixin, UUIDPrimaryKeyMixin


class VersionedDocument(Base, UUIDPrimaryKeyMixin, TenantMixin, TimestampMixin):
    __tablename__ = "versioned_documents"

    job_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("crawl_jobs.id", ondelete="SET NULL"),
        nullable=True,
    )
    url: Mapped[str] = mapped_column(Text, nullable=False)
    parent_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    title: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    content_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    depth: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    page_metadata: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSONType, nullable=True)
    embedding: Mapped[list[float] | None] = mapped_column(
        JSONType,
        nullable=True,
        comment="Retrieval vector; filled after the version write and may lag",
    )

    __table_args__ = (
        UniqueConstraint("tenant_id", "url", "version", name="uq_versioned_documents_tenant_url_version"),
        Index(
            "uq_versioned_documents_one_active",
            "tenant_id",
            "url",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("ix_versioned_documents_job", "job_id"),
    )

    def __repr__(self) -> str:
        return f"<VersionedDocument url={self.url!r} version={self.version} active={self.is_active}>"
