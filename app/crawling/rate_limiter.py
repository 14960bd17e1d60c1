"""
Per-domain politeness delay between page fetches.
"""

from __future__ import annotations

import threading
import time
from urllib.parse import urlparse

from app.crawling.cancellation import CancellationToken


class DomainRateLimiter:
    """
    Enforces a minimum delay between requests to the same domain.

    The next free slot for a domain is reserved under the lock and the sleep
    happens outside it, so runs against other domains are never held up.
    Sleeps go through the run's cancellation token when one is supplied.
    """

    def __init__(self, *, default_delay_seconds: float) -> None:
        self._default_delay_seconds = max(0.0, default_delay_seconds)
        self._next_slot_by_domain: dict[str, float] = {}
        self._lock = threading.Lock()

    def wait(
        self,
        *,
        url: str,
        delay_seconds: float | None = None,
        crawl_delay_seconds: float | None = None,
        cancel_token: CancellationToken | None = None,
    ) -> float:
        """
        Block until `url`'s domain may be requested again; return seconds waited.
        """

        parsed = urlparse(url)
        domain = parsed.netloc.lower() or parsed.path.lower()
        if not domain:
            return 0.0

        min_interval = self._default_delay_seconds if delay_seconds is None else max(0.0, delay_seconds)
        if crawl_delay_seconds is not None:
            min_interval = max(min_interval, max(0.0, crawl_delay_seconds))

        with self._lock:
            now = time.monotonic()
            slot = max(now, self._next_slot_by_domain.get(domain, now))
            self._next_slot_by_domain[domain] = slot + min_interval
        wait_seconds = slot - now

        if cancel_token is not None:
            cancel_token.sleep(wait_seconds)
        elif wait_seconds > 0:
            time.sleep(wait_seconds)
        return wait_seconds
