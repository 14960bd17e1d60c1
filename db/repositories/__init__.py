"""
Repository layer exports.
"""

from db.repositories.crawl_job_repository import CrawlJobRepository
from db.repositories.credential_repository import CredentialRepository
from db.repositories.document_repository import DocumentRepository
from db.repositories.errors import (
    CrawlRecordError,
    CredentialInactiveError,
    CredentialNotFoundError,
    InvalidJobConfigError,
    JobAlreadyRunningError,
    JobNotFoundError,
)
from db.repositories.job_run_repository import JobRunRepository, RunTallies

__all__ = [
    "CrawlJobRepository",
    "CredentialRepository",
    "DocumentRepository",
    "JobRunRepository",
    "RunTallies",
    "CrawlRecordError",
    "JobNotFoundError",
    "CredentialNotFoundError",
    "CredentialInactiveError",
    "JobAlreadyRunningError",
    "InvalidJobConfigError",
]
