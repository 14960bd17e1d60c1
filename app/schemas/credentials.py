"""
app/schemas/credentials.py

Credential schemas. The payload is write-only and never echoed back.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


class CredentialCreateRequest(BaseModel):
    name: str = Field(default="", max_length=255)
    domain: str = Field(..., min_length=1, max_length=255)
    auth_kind: Literal["basic", "form", "cookie", "header", "sso"]
    payload: dict[str, Any] = Field(
        default_factory=dict,
        description=(
            "basic: {username, password}; form: {username, password, form_selector?, "
            "username_field?, password_field?, submit_button?}; cookie: {cookies: [{name, value, "
            "domain?, path?}]}; header: {headers: {...}}; sso: {provider?}"
        ),
    )


class CredentialResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    tenant_id: str
    name: str
    domain: str
    auth_kind: str
    is_active: bool
    created_at: datetime | None = None
