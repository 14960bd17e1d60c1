"""
app/api/routers/credentials.py

Credential management endpoints. Payloads are encrypted on write and never
returned.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_tenant_id
from app.schemas.credentials import CredentialCreateRequest, CredentialResponse
from app.services.crawl_job_service import CrawlJobService, get_crawl_job_service
from db.repositories.errors import CredentialNotFoundError
from db.session import get_db

router = APIRouter(tags=["crawl-credentials"])


@router.post("/crawl-credentials", response_model=CredentialResponse, status_code=status.HTTP_201_CREATED)
def create_credential(
    payload: CredentialCreateRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> CredentialResponse:
    try:
        credential = service.create_credential(
            db=db,
            tenant_id=tenant_id,
            name=payload.name,
            domain=payload.domain,
            auth_kind=payload.auth_kind,
            payload=payload.payload,
        )
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return CredentialResponse.model_validate(credential)


@router.get("/crawl-credentials", response_model=list[CredentialResponse])
def list_credentials(
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> list[CredentialResponse]:
    return [CredentialResponse.model_validate(item) for item in service.list_credentials(db=db, tenant_id=tenant_id)]


@router.delete("/crawl-credentials/{credential_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_credential(
    credential_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> Response:
    try:
        service.delete_credential(db=db, tenant_id=tenant_id, credential_id=credential_id)
    except CredentialNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
