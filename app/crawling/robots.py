"""
robots.txt compliance for crawl runs that respect site policy.
"""

from __future__ import annotations

import logging
import threading
from urllib.parse import urljoin, urlparse
from urllib.robotparser import RobotFileParser

import requests

from app.crawling.logging_utils import log_event

logger = logging.getLogger(__name__)

_ALLOW_ALL = ["User-agent: *", "Allow: /"]
_DENY_ALL = ["User-agent: *", "Disallow: /"]


class RobotsPolicy:
    """
    Lazily loads and caches one robots.txt parser per origin.

    Two runs that miss the cache for the same origin at once may both fetch
    robots.txt; the first parser stored wins.
    """

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout_seconds: float = 10.0,
        allow_when_unreachable: bool = True,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_seconds = timeout_seconds
        self._allow_when_unreachable = allow_when_unreachable
        self._parsers: dict[str, RobotFileParser] = {}
        self._lock = threading.Lock()

    def can_fetch(self, *, url: str, user_agent: str) -> bool:
        return self._parser_for(url).can_fetch(user_agent, url)

    def crawl_delay(self, *, url: str, user_agent: str) -> float | None:
        parser = self._parser_for(url)
        delay = parser.crawl_delay(user_agent)
        if delay is None:
            delay = parser.crawl_delay("*")
        return float(delay) if delay is not None else None

    def _parser_for(self, url: str) -> RobotFileParser:
        parsed = urlparse(url)
        origin = f"{parsed.scheme or 'https'}://{parsed.netloc}"
        with self._lock:
            parser = self._parsers.get(origin)
        if parser is not None:
            return parser

        # Only cache access holds the lock; the fetch does not.
        loaded = self._load(origin)
        with self._lock:
            return self._parsers.setdefault(origin, loaded)

    def _load(self, origin: str) -> RobotFileParser:
        robots_url = urljoin(origin, "/robots.txt")
        parser = RobotFileParser()
        parser.set_url(robots_url)
        fallback = _ALLOW_ALL if self._allow_when_unreachable else _DENY_ALL

        try:
            response = self._session.get(robots_url, timeout=self._timeout_seconds)
        except requests.RequestException as exc:
            parser.parse(fallback)
            log_event(
                logger,
                logging.WARNING,
                "robots_fetch_failed",
                origin=origin,
                fallback_allow=self._allow_when_unreachable,
                error=str(exc),
            )
            return parser

        if response.status_code == 404:
            parser.parse(_ALLOW_ALL)
        elif response.ok:
            parser.parse(response.text.splitlines())
            log_event(logger, logging.INFO, "robots_loaded", origin=origin)
        else:
            parser.parse(fallback)
            log_event(
                logger,
                logging.WARNING,
                "robots_unavailable",
                origin=origin,
                status_code=response.status_code,
                fallback_allow=self._allow_when_unreachable,
            )
        return parser
