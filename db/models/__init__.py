"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.change_record import ChangeRecord, ChangeType
from db.models.crawl_job import CrawlJob, CrawlJobStatus
from db.models.credential import AuthKind, CrawlCredential
from db.models.job_run import JobRun, JobRunStatus
from db.models.versioned_document import VersionedDocument

__all__ = [
    "AuthKind",
    "ChangeRecord",
    "ChangeType",
    "CrawlCredential",
    "CrawlJob",
    "CrawlJobStatus",
    "JobRun",
    "JobRunStatus",
    "VersionedDocument",
]
