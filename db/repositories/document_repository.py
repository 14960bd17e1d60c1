"""
db/repositories/document_repository.py

Persistence for versioned documents and their change records.

The caller controls commit/rollback; this repository never commits on its own.
"""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from db.models.change_record import ChangeRecord
from db.models.versioned_document import VersionedDocument


class DocumentRepository:
    """
    Version chain access keyed by ``(tenant_id, url)``.

    At most one row per key is active; ``deactivate`` must be flushed
    before the next version is inserted so the partial unique index holds.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------

    def get_active(self, *, tenant_id: str, url: str) -> VersionedDocument | None:
        stmt = select(VersionedDocument).where(
            VersionedDocument.tenant_id == tenant_id,
            VersionedDocument.url == url,
            VersionedDocument.is_active.is_(True),
        )
        return self._session.scalars(stmt).first()

    def max_version(self, *, tenant_id: str, url: str) -> int:
        stmt = select(func.max(VersionedDocument.version)).where(
            VersionedDocument.tenant_id == tenant_id,
            VersionedDocument.url == url,
        )
        return int(self._session.scalar(stmt) or 0)

    def deactivate(self, document: VersionedDocument) -> None:
        self._session.execute(
            update(VersionedDocument)
            .where(VersionedDocument.id == document.id)
            .values(is_active=False)
            .execution_options(synchronize_session=False)
        )
        document.is_active = False
        self._session.flush()

    def insert_version(
        self,
        *,
        tenant_id: str,
        job_id: uuid.UUID | None,
        url: str,
        parent_url: str | None,
        title: str,
        content: str,
        content_hash: str,
        version: int,
        depth: int,
        page_metadata: dict[str, Any] | None,
    ) -> VersionedDocument:
        document = VersionedDocument(
            tenant_id=tenant_id,
            job_id=job_id,
            url=url,
            parent_url=parent_url,
            title=title,
            content=content,
            content_hash=content_hash,
            version=version,
            is_active=True,
            depth=depth,
            page_metadata=page_metadata,
        )
        self._session.add(document)
        self._session.flush()
        self._session.refresh(document)
        return document

    def set_embedding(self, *, document_id: uuid.UUID, embedding: list[float]) -> None:
        self._session.execute(
            update(VersionedDocument)
            .where(VersionedDocument.id == document_id)
            .values(embedding=embedding)
            .execution_options(synchronize_session=False)
        )

    def list_versions(self, *, tenant_id: str, url: str) -> list[VersionedDocument]:
        stmt = (
            select(VersionedDocument)
            .where(VersionedDocument.tenant_id == tenant_id, VersionedDocument.url == url)
            .order_by(VersionedDocument.version.desc())
        )
        return list(self._session.scalars(stmt).all())

    def list_active_for_job(self, *, job_id: uuid.UUID, limit: int = 500) -> list[VersionedDocument]:
        stmt = (
            select(VersionedDocument)
            .where(VersionedDocument.job_id == job_id, VersionedDocument.is_active.is_(True))
            .order_by(VersionedDocument.url)
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())

    # ------------------------------------------------------------------
    # Change records
    # ------------------------------------------------------------------

    def add_change(
        self,
        *,
        tenant_id: str,
        document_id: uuid.UUID,
        job_run_id: uuid.UUID | None,
        url: str,
        change_type: str,
        old_content_hash: str | None,
        new_content_hash: str | None,
        change_percentage: float,
        change_summary: str | None,
        details: dict[str, Any] | None = None,
    ) -> ChangeRecord:
        record = ChangeRecord(
            tenant_id=tenant_id,
            document_id=document_id,
            job_run_id=job_run_id,
            url=url,
            change_type=change_type,
            old_content_hash=old_content_hash,
            new_content_hash=new_content_hash,
            change_percentage=change_percentage,
            change_summary=change_summary,
            details=details,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def list_changes_for_document(self, *, document_id: uuid.UUID) -> list[ChangeRecord]:
        stmt = (
            select(ChangeRecord)
            .where(ChangeRecord.document_id == document_id)
            .order_by(ChangeRecord.detected_at.desc())
        )
        return list(self._session.scalars(stmt).all())

    def list_changes_for_run(self, *, job_run_id: uuid.UUID) -> list[ChangeRecord]:
        stmt = (
            select(ChangeRecord)
            .where(ChangeRecord.job_run_id == job_run_id)
            .order_by(ChangeRecord.url)
        )
        return list(self._session.scalars(stmt).all())

    def recent_changes(self, *, tenant_id: str, limit: int = 50) -> list[ChangeRecord]:
        stmt = (
            select(ChangeRecord)
            .where(ChangeRecord.tenant_id == tenant_id)
            .order_by(ChangeRecord.detected_at.desc())
            .limit(max(1, limit))
        )
        return list(self._session.scalars(stmt).all())
