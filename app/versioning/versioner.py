"""
app/versioning/versioner.py

Applies the versioning policy to freshly scraped pages.

One call handles one (tenant, URL) key:
  - no active document       -> version 1, change record "created"
  - significant change       -> version N+1, previous version deactivated,
                                change record "updated"
  - identical / minor change -> no write
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass

from sqlalchemy.orm import Session

from app.crawling.logging_utils import log_event
from app.domain.crawling import ScrapedPage
from app.versioning.detector import DEFAULT_SIGNIFICANCE_THRESHOLD, ChangeAssessment, detect_change
from db.models.change_record import ChangeRecord, ChangeType
from db.models.versioned_document import VersionedDocument
from db.repositories.document_repository import DocumentRepository

logger = logging.getLogger(__name__)


class VersionAction:
    CREATED = "created"
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass(frozen=True)
class VersionOutcome:
    action: str
    document: VersionedDocument
    change: ChangeRecord | None = None
    assessment: ChangeAssessment | None = None

    @property
    def wrote_version(self) -> bool:
        return self.action != VersionAction.UNCHANGED


class DocumentVersioner:
    def __init__(self, *, threshold: float = DEFAULT_SIGNIFICANCE_THRESHOLD) -> None:
        self._threshold = threshold

    def apply(
        self,
        session: Session,
        *,
        tenant_id: str,
        page: ScrapedPage,
        job_id: uuid.UUID | None = None,
        job_run_id: uuid.UUID | None = None,
    ) -> VersionOutcome:
        """
        Write the next version for ``page.url`` when warranted.

        Flushes but does not commit.
        """

        repo = DocumentRepository(session)
        current = repo.get_active(tenant_id=tenant_id, url=page.url)

        if current is None:
            version = repo.max_version(tenant_id=tenant_id, url=page.url) + 1
            document = self._insert(repo, tenant_id=tenant_id, page=page, job_id=job_id, version=version)
            change = repo.add_change(
                tenant_id=tenant_id,
                document_id=document.id,
                job_run_id=job_run_id,
                url=page.url,
                change_type=ChangeType.CREATED,
                old_content_hash=None,
                new_content_hash=page.content_hash,
                change_percentage=100.0,
                change_summary="New document created",
            )
            log_event(logger, logging.INFO, "document_created", url=page.url, version=version)
            return VersionOutcome(action=VersionAction.CREATED, document=document, change=change)

        if current.content_hash == page.content_hash:
            return VersionOutcome(action=VersionAction.UNCHANGED, document=current)

        assessment = detect_change(current.content, page.content, threshold=self._threshold)
        if not assessment.is_significant:
            log_event(
                logger,
                logging.DEBUG,
                "document_change_below_threshold",
                url=page.url,
                change_percentage=assessment.change_percentage,
            )
            return VersionOutcome(action=VersionAction.UNCHANGED, document=current, assessment=assessment)

        previous_hash = current.content_hash
        previous_title = current.title
        next_version = current.version + 1
        repo.deactivate(current)
        document = self._insert(repo, tenant_id=tenant_id, page=page, job_id=job_id, version=next_version)
        change = repo.add_change(
            tenant_id=tenant_id,
            document_id=document.id,
            job_run_id=job_run_id,
            url=page.url,
            change_type=ChangeType.UPDATED,
            old_content_hash=previous_hash,
            new_content_hash=page.content_hash,
            change_percentage=assessment.change_percentage,
            change_summary=assessment.summary,
            details={
                "previous_version": current.version,
                "words_added": assessment.words_added,
                "words_removed": assessment.words_removed,
                "title_changed": previous_title != page.title,
            },
        )
        log_event(
            logger,
            logging.INFO,
            "document_updated",
            url=page.url,
            version=next_version,
            change_percentage=assessment.change_percentage,
        )
        return VersionOutcome(
            action=VersionAction.UPDATED,
            document=document,
            change=change,
            assessment=assessment,
        )

    @staticmethod
    def _insert(
        repo: DocumentRepository,
        *,
        tenant_id: str,
        page: ScrapedPage,
        job_id: uuid.UUID | None,
        version: int,
    ) -> VersionedDocument:
        return repo.insert_version(
            tenant_id=tenant_id,
            job_id=job_id,
            url=page.url,
            parent_url=page.metadata.parent_url,
            title=page.title,
            content=page.content,
            content_hash=page.content_hash,
            version=version,
            depth=page.depth,
            page_metadata=page.metadata_payload(),
        )
