"""
app/api/dependencies.py

Shared FastAPI dependencies for the crawl management surface.
"""

from __future__ import annotations

from fastapi import Header, HTTPException, Request, status

from app.scheduler.orchestrator import CrawlOrchestrator

DEFAULT_TENANT_ID = "default"


def get_tenant_id(x_tenant_id: str | None = Header(default=None)) -> str:
    """
    Resolve the tenant scope from the ``X-Tenant-ID`` header.
    """

    tenant_id = (x_tenant_id or DEFAULT_TENANT_ID).strip()
    if not tenant_id or len(tenant_id) > 64:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="X-Tenant-ID must be 1-64 characters.",
        )
    return tenant_id


def get_orchestrator(request: Request) -> CrawlOrchestrator:
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Crawl scheduler is not available.",
        )
    return orchestrator
