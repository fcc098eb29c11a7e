from __future__ import annotations

import pytest

from repowatch.utils.retry import retry


def test_returns_after_transient_failures():
    delays: list[float] = []
    calls = {"n": 0}

    @retry(max_attempts=3, base_delay=1.0, backoff_factor=2.0,
           exceptions=(ConnectionError,), sleep=delays.append)
    def flaky():
        calls["n"] += 1
        if calls["n"] < 3:
            raise ConnectionError("nope")
        return "ok"

    assert flaky() == "ok"
    assert delays == [1.0, 2.0]


def test_reraises_last_exception():
    @retry(max_attempts=2, exceptions=(ConnectionError,), sleep=lambda _: None)
    def broken():
        raise ConnectionError("still down")

    with pytest.raises(ConnectionError, match="still down"):
        broken()


def test_other_exceptions_not_retried():
    calls = {"n": 0}

    @retry(max_attempts=3, exceptions=(ConnectionError,), sleep=lambda _: None)
    def wrong():
        calls["n"] += 1
        raise KeyError("x")

    with pytest.raises(KeyError):
        wrong()
    assert calls["n"] == 1
