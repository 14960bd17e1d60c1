"""
Cooperative cancellation for in-flight crawl runs.
"""

from __future__ import annotations

import threading

from app.crawling.errors import CrawlCancelledError


class CancellationToken:
    """
    Thread-safe flag checked by the traversal loop between fetches.
    """

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason: str | None = None

    def cancel(self, reason: str = "Cancelled by operator") -> None:
        self.reason = reason
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise CrawlCancelledError(self.reason or "Crawl cancelled")

    def sleep(self, seconds: float) -> None:
        """
        Sleep up to `seconds`, returning early and raising if cancelled meanwhile.
        """

        if seconds > 0:
            self._event.wait(seconds)
        self.raise_if_cancelled()
