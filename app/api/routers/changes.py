"""
app/api/routers/changes.py

Read-only change and version browser.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.api.dependencies import get_tenant_id
from app.schemas.changes import ChangeRecordResponse, DocumentVersionResponse
from app.services.crawl_job_service import (
    DEFAULT_RECENT_CHANGES_LIMIT,
    CrawlJobService,
    get_crawl_job_service,
)
from db.session import get_db

router = APIRouter(tags=["changes"])


@router.get("/changes/recent", response_model=list[ChangeRecordResponse])
def recent_changes(
    limit: int = Query(default=DEFAULT_RECENT_CHANGES_LIMIT, ge=1, le=500),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> list[ChangeRecordResponse]:
    records = service.recent_changes(db=db, tenant_id=tenant_id, limit=limit)
    return [ChangeRecordResponse.model_validate(record) for record in records]


@router.get("/documents/{document_id}/changes", response_model=list[ChangeRecordResponse])
def document_changes(
    document_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> list[ChangeRecordResponse]:
    records = service.document_changes(db=db, tenant_id=tenant_id, document_id=document_id)
    return [ChangeRecordResponse.model_validate(record) for record in records]


@router.get("/documents/versions", response_model=list[DocumentVersionResponse])
def document_versions(
    url: str = Query(..., min_length=1),
    include_content: bool = Query(default=False),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> list[DocumentVersionResponse]:
    versions = service.document_versions(db=db, tenant_id=tenant_id, url=url)
    responses = [DocumentVersionResponse.model_validate(document) for document in versions]
    if not include_content:
        responses = [response.model_copy(update={"content": None}) for response in responses]
    return responses
