"""
app/scheduler/cron.py

Helpers around 5-field cron expressions. All times are UTC.
"""

from __future__ import annotations

from datetime import datetime, timezone

from apscheduler.triggers.cron import CronTrigger


class InvalidCronExpressionError(ValueError):
    """Raised when a schedule is not a valid 5-field cron expression."""


def build_trigger(expression: str) -> CronTrigger:
    text = (expression or "").strip()
    if len(text.split()) != 5:
        raise InvalidCronExpressionError(
            f"Cron expression must have exactly 5 fields, got {expression!r}"
        )
    try:
        return CronTrigger.from_crontab(text, timezone="UTC")
    except ValueError as exc:
        raise InvalidCronExpressionError(f"Invalid cron expression {expression!r}: {exc}") from exc


def validate_cron(expression: str) -> str:
    """Return the stripped expression or raise InvalidCronExpressionError."""
    build_trigger(expression)
    return expression.strip()


def is_valid_cron(expression: str | None) -> bool:
    if not expression:
        return False
    try:
        build_trigger(expression)
    except InvalidCronExpressionError:
        return False
    return True


def next_run_time(expression: str, *, now: datetime | None = None) -> datetime | None:
    """
    Next fire time at or after ``now`` (default: current UTC time).
    """
    trigger = build_trigger(expression)
    reference = now or datetime.now(timezone.utc)
    if reference.tzinfo is None:
        reference = reference.replace(tzinfo=timezone.utc)
    return trigger.get_next_fire_time(None, reference)
