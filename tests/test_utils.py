"""Tests for retry, throttling and timestamp helpers."""
from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from unittest.mock import MagicMock

import pytest

from bgm_scout.errors import TransientApiError
from bgm_scout.utils.logging_config import quiet_third_party
from bgm_scout.utils.rate_limiter import RateLimiter
from bgm_scout.utils.retry import is_retryable, retry_with_backoff
from bgm_scout.utils.time_utils import (
    date_key,
    day_of_year,
    format_rfc3339,
    months_ago,
    parse_timestamp,
)


class TestRetry:
    def test_retries_transient_status(self):
        sleep = MagicMock()
        calls = []

        @retry_with_backoff(max_retries=2, base_delay=1.0, sleep=sleep)
        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise TransientApiError("busy", 503)
            return "ok"

        assert flaky() == "ok"
        assert [c.args[0] for c in sleep.call_args_list] == [1.0, 2.0]

    def test_non_retryable_raised_immediately(self):
        sleep = MagicMock()

        @retry_with_backoff(max_retries=3, sleep=sleep)
        def bad():
            raise ValueError("nope")

        with pytest.raises(ValueError):
            bad()
        sleep.assert_not_called()

    def test_delay_capped(self):
        sleep = MagicMock()

        @retry_with_backoff(max_retries=3, base_delay=10.0, max_delay=15.0, sleep=sleep)
        def always():
            raise TimeoutError("slow")

        with pytest.raises(TimeoutError):
            always()
        assert [c.args[0] for c in sleep.call_args_list] == [10.0, 15.0, 15.0]

    def test_is_retryable(self):
        assert is_retryable(TransientApiError("rate", 429))
        assert is_retryable(ConnectionError())
        assert not is_retryable(TransientApiError("forbidden", 403))


class TestRateLimiter:
    def test_first_call_passes(self):
        sleep = MagicMock()
        RateLimiter(1.0, sleep=sleep, clock=lambda: 100.0).wait_if_needed()
        sleep.assert_not_called()

    def test_waits_remaining_interval(self):
        sleep = MagicMock()
        ticks = iter([100.0, 100.25, 101.0])
        limiter = RateLimiter(1.0, sleep=sleep, clock=lambda: next(ticks))
        limiter.wait_if_needed()
        limiter.wait_if_needed()
        sleep.assert_called_once_with(0.75)
        assert limiter.wait_count == 1

    def test_zero_interval_never_sleeps(self):
        sleep = MagicMock()
        limiter = RateLimiter(0, sleep=sleep)
        for _ in range(3):
            limiter.wait_if_needed()
        sleep.assert_not_called()


class TestTimestamps:
    def test_parse_zulu(self):
        assert parse_timestamp("2024-05-01T12:00:00Z") == datetime(2024, 5, 1, 12, tzinfo=timezone.utc)

    def test_parse_fractional_seconds(self):
        parsed = parse_timestamp("2024-05-01T12:00:00.1234567Z")
        assert parsed.microsecond == 123456

    def test_parse_date_only_and_naive(self):
        assert parse_timestamp("2024-05-01").tzinfo == timezone.utc
        assert parse_timestamp(date(2024, 5, 1)) == datetime(2024, 5, 1, tzinfo=timezone.utc)
        assert parse_timestamp(datetime(2024, 5, 1)).tzinfo == timezone.utc

    def test_parse_garbage(self):
        assert parse_timestamp("yesterday") is None
        assert parse_timestamp("") is None

    def test_format_rfc3339(self):
        tokyo = timezone(timedelta(hours=9))
        assert format_rfc3339(datetime(2024, 5, 1, 9, 0, 0, 500, tzinfo=tokyo)) == "2024-05-01T00:00:00Z"

    def test_months_ago_uses_thirty_days(self):
        now = datetime(2024, 6, 1, tzinfo=timezone.utc)
        assert months_ago(now, 3) == now - timedelta(days=90)

    def test_date_key_and_day_of_year(self):
        when = datetime(2024, 2, 1, 23, 30, tzinfo=timezone.utc)
        assert date_key(when) == "2024-02-01"
        assert day_of_year(when) == 32


class TestQuietLoggers:
    def test_discovery_cache_silenced(self):
        quiet_third_party()
        assert logging.getLogger("googleapiclient.discovery_cache").level == logging.ERROR
        assert logging.getLogger("httplib2").level == logging.WARNING

    def test_overrides_win(self):
        quiet_third_party({"httplib2": logging.DEBUG})
        assert logging.getLogger("httplib2").level == logging.DEBUG
        quiet_third_party()
