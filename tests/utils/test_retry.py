from __future__ import annotations

import pytest

import src.utils.retry as retry_module
from src.settlement_engine.services.errors import PersistenceFailure, ValidationError


def test_retries_until_success(monkeypatch: pytest.MonkeyPatch) -> None:
    sleeps = []
    monkeypatch.setattr(retry_module.time, "sleep", sleeps.append)
    calls = {"count": 0}

    def _flaky() -> str:
        calls["count"] += 1
        if calls["count"] < 3:
            raise PersistenceFailure("database unavailable")
        return "ok"

    assert retry_module.with_backoff(_flaky, attempts=3, base_delay=1.0, jitter_ratio=0.0) == "ok"
    assert sleeps == [1.0, 2.0]


def test_gives_up_after_attempts(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(retry_module.time, "sleep", lambda seconds: None)

    def _down() -> None:
        raise PersistenceFailure("database unavailable")

    with pytest.raises(PersistenceFailure):
        retry_module.with_backoff(_down, attempts=2)


def test_does_not_retry_business_errors(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(retry_module.time, "sleep", lambda seconds: pytest.fail("should not sleep"))
    calls = {"count": 0}

    def _invalid() -> None:
        calls["count"] += 1
        raise ValidationError("bad input")

    with pytest.raises(ValidationError):
        retry_module.with_backoff(_invalid)

    assert calls["count"] == 1
