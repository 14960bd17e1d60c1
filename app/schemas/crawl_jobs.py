"""
app/schemas/crawl_jobs.py

Request/response schemas for crawl job management and scheduler status.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class CrawlJobRequest(BaseModel):
    """
    Create or replace a crawl job definition.
    """

    name: str = Field(..., min_length=1, max_length=255)
    base_url: str = Field(..., min_length=1)
    template_id: str | None = Field(
        default=None,
        description="Catalog template id, 'auto' to suggest from the URL, or null for defaults",
    )
    scrape_children: bool = True
    max_depth: int | None = Field(default=None, ge=0)
    max_pages: int | None = Field(default=None, ge=1)
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    options: dict[str, Any] = Field(
        default_factory=dict,
        description="Overrides: timeout_ms, delay_ms, wait_for_dynamic, respect_robots, ...",
    )
    credential_id: uuid.UUID | None = None
    schedule: str | None = Field(default=None, description="5-field cron expression (UTC)")
    is_active: bool = True


class CrawlJobToggleRequest(BaseModel):
    is_active: bool


class CrawlJobResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: str
    name: str
    base_url: str
    template_id: str | None
    scrape_children: bool
    max_depth: int | None
    max_pages: int | None
    include_patterns: list[str]
    exclude_patterns: list[str]
    options: dict[str, Any]
    credential_id: uuid.UUID | None
    schedule: str | None
    is_active: bool
    status: str
    last_run_at: datetime | None
    next_run_at: datetime | None
    created_at: datetime | None = None
    updated_at: datetime | None = None


class JobRunResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    job_id: uuid.UUID
    status: str
    started_at: datetime
    completed_at: datetime | None
    urls_processed: int = Field(..., ge=0)
    urls_successful: int = Field(..., ge=0)
    urls_failed: int = Field(..., ge=0)
    documents_created: int = Field(..., ge=0)
    documents_updated: int = Field(..., ge=0)
    changes_detected: int = Field(..., ge=0)
    error_message: str | None
    logs: list[dict[str, Any]] = Field(default_factory=list)
    run_metadata: dict[str, Any] | None = None


class RunNowResponse(BaseModel):
    job_id: uuid.UUID
    queued: bool
    run_id: uuid.UUID | None = None
    status: str | None = None
    error_message: str | None = None
    next_run_at: datetime | None = None


class SchedulerStatusResponse(BaseModel):
    is_initialized: bool
    is_running: bool
    scheduled_jobs_count: int = Field(..., ge=0)
    scheduled_job_ids: list[str] = Field(default_factory=list)
    active_run_job_ids: list[str] = Field(default_factory=list)
