"""
Structured logging helpers for crawl workflows.
"""

from __future__ import annotations

import json
import logging
from typing import Any

REDACTED = "***"

_SECRET_FIELD_MARKERS = (
    "password",
    "token",
    "cookie",
    "authorization",
    "credential",
    "secret",
    "value",
)


def _is_secret_field(name: str) -> bool:
    lowered = name.lower()
    return any(marker in lowered for marker in _SECRET_FIELD_MARKERS)


def redact(fields: dict[str, Any]) -> dict[str, Any]:
    """
    Replace values of secret-bearing keys with a fixed marker.

    Nested dictionaries are walked so header maps and cookie lists never reach
    the log stream in plaintext.
    """

    cleaned: dict[str, Any] = {}
    for key, value in fields.items():
        if _is_secret_field(key):
            cleaned[key] = REDACTED
        elif isinstance(value, dict):
            cleaned[key] = redact(value)
        elif isinstance(value, (list, tuple)):
            cleaned[key] = [redact(item) if isinstance(item, dict) else item for item in value]
        else:
            cleaned[key] = value
    return cleaned


def log_event(
    logger: logging.Logger,
    level: int,
    event: str,
    **fields: Any,
) -> None:
    """
    Emit one structured log line as compact JSON.
    """

    payload = {"event": event, **redact(fields)}
    logger.log(level, json.dumps(payload, default=str, sort_keys=True))
