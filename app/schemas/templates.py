"""
app/schemas/templates.py

Response schemas for the website template catalog.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class TemplateSummaryResponse(BaseModel):
    id: str
    name: str
    description: str
    category: str
    max_depth: int = Field(..., ge=0)
    max_pages: int = Field(..., ge=1)
    delay_ms: int = Field(..., ge=0)
    respect_robots: bool
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
