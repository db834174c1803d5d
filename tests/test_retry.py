"""Tests for the connection retry decorator."""

import pytest

from apartment_alerts.utils import retry


def flaky_connect(failures):
    """Return a connect function that fails ``failures`` times, then succeeds."""
    calls = 0

    def connect():
        nonlocal calls
        calls += 1
        if calls <= failures:
            raise ConnectionError("database unavailable")
        return "connected"

    def call_count():
        return calls

    return connect, call_count


@pytest.fixture
def sleeps(monkeypatch):
    delays = []
    monkeypatch.setattr(retry.time, "sleep", delays.append)
    return delays


class TestRetryWithBackoff:
    def test_succeeds_after_failures(self, sleeps):
        connect, call_count = flaky_connect(failures=2)
        wrapped = retry.retry_with_backoff(max_retries=3, exceptions=(ConnectionError,))(connect)

        assert wrapped() == "connected"
        assert call_count() == 3
        assert sleeps == [1, 2]

    def test_raises_last_error(self, sleeps):
        connect, call_count = flaky_connect(failures=10)
        wrapped = retry.retry_with_backoff(max_retries=2, exceptions=(ConnectionError,))(connect)

        with pytest.raises(ConnectionError):
            wrapped()
        assert call_count() == 3

    def test_delay_capped(self, sleeps):
        connect, _ = flaky_connect(failures=3)
        wrapped = retry.retry_with_backoff(
            max_retries=3, backoff_factor=10, exceptions=(ConnectionError,), max_delay=15
        )(connect)

        wrapped()

        assert sleeps == [1, 10, 15]

    def test_keeps_function_name(self):
        connect, _ = flaky_connect(failures=0)
        wrapped = retry.retry_with_backoff()(connect)

        assert wrapped.__name__ == "connect"

    def test_other_exceptions_not_retried(self, sleeps):
        def broken():
            raise KeyError("config")

        wrapped = retry.retry_with_backoff(exceptions=(ConnectionError,))(broken)

        with pytest.raises(KeyError):
            wrapped()
        assert sleeps == []
