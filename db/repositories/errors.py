"""
Repository-layer exceptions for crawl job, credential and document flows.
"""

from __future__ import annotations


class CrawlRecordError(Exception):
    """Base exception for crawl persistence failures."""


class JobNotFoundError(CrawlRecordError):
    """Raised when a referenced crawl job does not exist."""


class CredentialNotFoundError(CrawlRecordError):
    """Raised when a referenced credential does not exist."""


class CredentialInactiveError(CrawlRecordError):
    """Raised when a referenced credential is not active."""


class JobAlreadyRunningError(CrawlRecordError):
    """Raised when a job is claimed while another run is in progress."""


class InvalidJobConfigError(CrawlRecordError):
    """Raised when a job definition fails validation at save time."""
