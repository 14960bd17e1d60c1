from __future__ import annotations

from datetime import datetime, timezone

import pytest

from app.scheduler.cron import InvalidCronExpressionError, is_valid_cron, next_run_time, validate_cron


class TestCron:
    def test_validate_strips_whitespace(self) -> None:
        assert validate_cron("  0 * * * *  ") == "0 * * * *"

    @pytest.mark.parametrize("expression", ["", "* * * *", "0 0 * * * *", "61 * * * *", "every hour"])
    def test_invalid_expressions(self, expression: str) -> None:
        assert is_valid_cron(expression) is False
        with pytest.raises(InvalidCronExpressionError):
            validate_cron(expression)

    def test_none_is_not_a_schedule(self) -> None:
        assert is_valid_cron(None) is False

    def test_next_run_is_next_hour_boundary(self) -> None:
        now = datetime(2026, 3, 1, 10, 15, tzinfo=timezone.utc)

        assert next_run_time("0 * * * *", now=now) == datetime(2026, 3, 1, 11, 0, tzinfo=timezone.utc)

    def test_naive_reference_is_treated_as_utc(self) -> None:
        now = datetime(2026, 3, 1, 23, 59)

        assert next_run_time("30 2 * * *", now=now) == datetime(2026, 3, 2, 2, 30, tzinfo=timezone.utc)

    def test_named_weekday(self) -> None:
        # 2026-03-01 is a Sunday.
        now = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)

        assert next_run_time("0 9 * * mon", now=now) == datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc)
