"""
app/schemas package marker.
"""

from app.schemas.changes import ChangeRecordResponse, DocumentVersionResponse
from app.schemas.crawl_jobs import (
    CrawlJobRequest,
    CrawlJobResponse,
    CrawlJobToggleRequest,
    JobRunResponse,
    RunNowResponse,
    SchedulerStatusResponse,
)
from app.schemas.credentials import CredentialCreateRequest, CredentialResponse
from app.schemas.templates import TemplateSummaryResponse

__all__ = [
    "ChangeRecordResponse",
    "CrawlJobRequest",
    "CrawlJobResponse",
    "CrawlJobToggleRequest",
    "CredentialCreateRequest",
    "CredentialResponse",
    "DocumentVersionResponse",
    "JobRunResponse",
    "RunNowResponse",
    "SchedulerStatusResponse",
    "TemplateSummaryResponse",
]
