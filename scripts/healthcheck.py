"""
Container health check for the crawl API.

Exits 0 when /health answers with status "ok" and, if
HEALTHCHECK_REQUIRE_SCHEDULER is truthy, the crawl scheduler is initialized.
"""

from __future__ import annotations

import json
import os
from urllib.error import URLError
from urllib.request import urlopen


def main() -> int:
    port = os.getenv("PORT", "8000")
    path = os.getenv("HEALTHCHECK_PATH", "/health")
    require_scheduler = os.getenv("HEALTHCHECK_REQUIRE_SCHEDULER", "").strip().lower() in {"1", "true", "yes", "on"}
    url = f"http://127.0.0.1:{port}{path}"

    try:
        with urlopen(url, timeout=2) as response:
            if not 200 <= response.status < 400:
                return 1
            body = json.loads(response.read().decode("utf-8") or "{}")
    except (URLError, TimeoutError, ValueError):
        return 1

    if body.get("status") != "ok":
        return 1
    if require_scheduler and not body.get("scheduler_initialized"):
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
