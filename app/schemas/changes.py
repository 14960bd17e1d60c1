"""
app/schemas/changes.py

Read-only schemas for the change/version browser.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class ChangeRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    document_id: uuid.UUID
    job_run_id: uuid.UUID | None
    url: str
    change_type: str
    old_content_hash: str | None
    new_content_hash: str | None
    change_percentage: float = Field(..., ge=0, le=100)
    change_summary: str | None
    details: dict[str, Any] | None = None
    detected_at: datetime


class DocumentVersionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    url: str
    parent_url: str | None
    title: str
    content_hash: str
    version: int = Field(..., ge=1)
    is_active: bool
    depth: int
    job_id: uuid.UUID | None
    created_at: datetime | None = None
    content: str | None = None
