"""
app/api/routers/crawl_jobs.py

Crawl job management, run-now/cancel and scheduler status endpoints.
"""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm import Session

from app.api.dependencies import get_orchestrator, get_tenant_id
from app.scheduler.orchestrator import CrawlOrchestrator
from app.schemas.crawl_jobs import (
    CrawlJobRequest,
    CrawlJobResponse,
    CrawlJobToggleRequest,
    JobRunResponse,
    RunNowResponse,
    SchedulerStatusResponse,
)
from app.services.crawl_job_service import CrawlJobDefinition, CrawlJobService, get_crawl_job_service
from db.repositories.errors import InvalidJobConfigError, JobAlreadyRunningError, JobNotFoundError
from db.session import get_db

router = APIRouter(tags=["crawl-jobs"])


def _definition(payload: CrawlJobRequest) -> CrawlJobDefinition:
    return CrawlJobDefinition(
        name=payload.name,
        base_url=payload.base_url,
        template_id=payload.template_id,
        scrape_children=payload.scrape_children,
        max_depth=payload.max_depth,
        max_pages=payload.max_pages,
        include_patterns=list(payload.include_patterns),
        exclude_patterns=list(payload.exclude_patterns),
        options=dict(payload.options),
        credential_id=payload.credential_id,
        schedule=payload.schedule,
        is_active=payload.is_active,
    )


def _not_found(exc: Exception) -> HTTPException:
    return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))


@router.post("/crawl-jobs", response_model=CrawlJobResponse, status_code=status.HTTP_201_CREATED)
def create_crawl_job(
    payload: CrawlJobRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> CrawlJobResponse:
    try:
        job = service.create_job(db=db, tenant_id=tenant_id, definition=_definition(payload))
    except InvalidJobConfigError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    orchestrator.schedule_job(job)
    db.refresh(job)
    return CrawlJobResponse.model_validate(job)


@router.get("/crawl-jobs", response_model=list[CrawlJobResponse])
def list_crawl_jobs(
    active_only: bool = Query(default=False),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> list[CrawlJobResponse]:
    jobs = service.list_jobs(db=db, tenant_id=tenant_id, active_only=active_only)
    return [CrawlJobResponse.model_validate(job) for job in jobs]


@router.get("/crawl-jobs/{job_id}", response_model=CrawlJobResponse)
def get_crawl_job(
    job_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> CrawlJobResponse:
    try:
        job = service.get_job(db=db, tenant_id=tenant_id, job_id=job_id)
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc
    return CrawlJobResponse.model_validate(job)


@router.put("/crawl-jobs/{job_id}", response_model=CrawlJobResponse)
def update_crawl_job(
    job_id: uuid.UUID,
    payload: CrawlJobRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> CrawlJobResponse:
    try:
        job = service.update_job(db=db, tenant_id=tenant_id, job_id=job_id, definition=_definition(payload))
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc
    except InvalidJobConfigError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    orchestrator.schedule_job(job)
    db.refresh(job)
    return CrawlJobResponse.model_validate(job)


@router.patch("/crawl-jobs/{job_id}/active", response_model=CrawlJobResponse)
def toggle_crawl_job(
    job_id: uuid.UUID,
    payload: CrawlJobToggleRequest,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> CrawlJobResponse:
    try:
        job = service.toggle_job(db=db, tenant_id=tenant_id, job_id=job_id, is_active=payload.is_active)
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc

    orchestrator.schedule_job(job)
    db.refresh(job)
    return CrawlJobResponse.model_validate(job)


@router.delete("/crawl-jobs/{job_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_crawl_job(
    job_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> Response:
    if orchestrator.is_running(job_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Crawl job is running; cancel it first.")
    try:
        service.delete_job(db=db, tenant_id=tenant_id, job_id=job_id)
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc
    orchestrator.unschedule_job(job_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/crawl-jobs/{job_id}/run", response_model=RunNowResponse)
def run_crawl_job_now(
    job_id: uuid.UUID,
    wait: bool = Query(default=False, description="Run inline and return the finished run"),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> RunNowResponse:
    """
    Trigger a job outside its schedule. A job that is already running is
    rejected with 409 rather than started twice.
    """

    try:
        job = service.get_job(db=db, tenant_id=tenant_id, job_id=job_id)
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc
    if not job.is_active:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Crawl job is inactive.")

    try:
        if not wait:
            orchestrator.trigger_now(job_id)
            return RunNowResponse(job_id=job_id, queued=True)
        outcome = orchestrator.execute_job(job_id)
    except JobAlreadyRunningError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc

    if outcome is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Crawl job is inactive.")
    return RunNowResponse(
        job_id=job_id,
        queued=False,
        run_id=outcome.run_id,
        status=outcome.status,
        error_message=outcome.error_message,
        next_run_at=outcome.next_run_at,
    )


@router.post("/crawl-jobs/{job_id}/cancel")
def cancel_crawl_job_run(
    job_id: uuid.UUID,
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> dict[str, bool]:
    try:
        service.get_job(db=db, tenant_id=tenant_id, job_id=job_id)
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc
    return {"cancelled": orchestrator.cancel_run(job_id)}


@router.get("/crawl-jobs/{job_id}/runs", response_model=list[JobRunResponse])
def list_crawl_job_runs(
    job_id: uuid.UUID,
    limit: int = Query(default=20, ge=1, le=200),
    tenant_id: str = Depends(get_tenant_id),
    db: Session = Depends(get_db),
    service: CrawlJobService = Depends(get_crawl_job_service),
) -> list[JobRunResponse]:
    try:
        runs = service.list_runs(db=db, tenant_id=tenant_id, job_id=job_id, limit=limit)
    except JobNotFoundError as exc:
        raise _not_found(exc) from exc
    return [JobRunResponse.model_validate(run) for run in runs]


@router.get("/scheduler/status", response_model=SchedulerStatusResponse)
def scheduler_status(
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> SchedulerStatusResponse:
    current = orchestrator.get_status()
    return SchedulerStatusResponse(
        is_initialized=current.is_initialized,
        is_running=current.is_running,
        scheduled_jobs_count=current.scheduled_jobs_count,
        scheduled_job_ids=current.scheduled_job_ids,
        active_run_job_ids=current.active_run_job_ids,
    )


@router.post("/scheduler/reload", response_model=SchedulerStatusResponse)
def reload_scheduler(
    orchestrator: CrawlOrchestrator = Depends(get_orchestrator),
) -> SchedulerStatusResponse:
    orchestrator.reload_jobs()
    return scheduler_status(orchestrator=orchestrator)
