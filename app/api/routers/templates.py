"""
app/api/routers/templates.py

Website template catalog endpoints.
"""

from __future__ import annotations

from fastapi import APIRouter, HTTPException, Query, status

from app.crawling.templates import (
    WEBSITE_TEMPLATES,
    WebsiteTemplate,
    get_template_by_id,
    get_templates_by_category,
    suggest_template_for_url,
)
from app.schemas.templates import TemplateSummaryResponse

router = APIRouter(tags=["crawl-templates"])


def _summary(template: WebsiteTemplate) -> TemplateSummaryResponse:
    return TemplateSummaryResponse(
        id=template.id,
        name=template.name,
        description=template.description,
        category=template.category,
        max_depth=template.crawl.max_depth,
        max_pages=template.crawl.max_pages,
        delay_ms=template.crawl.delay_ms,
        respect_robots=template.crawl.respect_robots,
        include_patterns=list(template.crawl.include_patterns or template.url_patterns.include),
        exclude_patterns=list(template.crawl.exclude_patterns or template.url_patterns.exclude),
    )


@router.get("/crawl-templates", response_model=list[TemplateSummaryResponse])
def list_templates(
    category: str | None = Query(default=None),
) -> list[TemplateSummaryResponse]:
    templates = get_templates_by_category(category) if category else list(WEBSITE_TEMPLATES)
    return [_summary(template) for template in templates]


@router.get("/crawl-templates/suggest", response_model=TemplateSummaryResponse)
def suggest_template(url: str = Query(..., min_length=1)) -> TemplateSummaryResponse:
    return _summary(suggest_template_for_url(url))


@router.get("/crawl-templates/{template_id}", response_model=TemplateSummaryResponse)
def get_template(template_id: str) -> TemplateSummaryResponse:
    template = get_template_by_id(template_id)
    if template is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Template not found: {template_id}")
    return _summary(template)
