from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import OperationalError

import src.settlement_engine.tasks.missing_reconciliations as missing_module
from src.settlement_engine.services.reconciliation import ReconciliationEngine


class _FakeSession:
    def __init__(self) -> None:
        self.committed = False
        self.rolled_back = False
        self.closed = False

    def commit(self) -> None:
        self.committed = True

    def rollback(self) -> None:
        self.rolled_back = True

    def close(self) -> None:
        self.closed = True


def test_lists_missing_venues_for_given_day(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _FakeSession()
    seen = {}

    class _Engine:
        def missing_reconciliations(self, session: _FakeSession, day: date) -> list:
            seen["day"] = day
            return [SimpleNamespace(store_id="STORE-2"), SimpleNamespace(store_id="STORE-9")]

    monkeypatch.setattr(missing_module, "SessionLocal", lambda: session)
    monkeypatch.setattr(missing_module, "ReconciliationEngine", lambda: _Engine())

    result = missing_module.find_missing_reconciliations(day=date(2026, 3, 9))

    assert seen["day"] == date(2026, 3, 9)
    assert result == {
        "date": "2026-03-09",
        "missing": 2,
        "store_ids": ["STORE-2", "STORE-9"],
    }
    assert session.committed is True
    assert session.rolled_back is False
    assert session.closed is True


def test_defaults_to_previous_business_day(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _FakeSession()

    class _Engine:
        def missing_reconciliations(self, session: _FakeSession, day: date) -> list:
            return []

    monkeypatch.setattr(missing_module, "SessionLocal", lambda: session)
    monkeypatch.setattr(missing_module, "ReconciliationEngine", lambda: _Engine())
    monkeypatch.setattr(missing_module, "business_day", lambda moment, tz: date(2026, 3, 10))

    result = missing_module.find_missing_reconciliations()

    assert result == {"date": "2026-03-09", "missing": 0, "store_ids": []}


def test_task_parses_iso_day(monkeypatch: pytest.MonkeyPatch) -> None:
    captured = {}

    def _fake_find(day: date | None = None) -> dict:
        captured["day"] = day
        return {}

    monkeypatch.setattr(missing_module, "find_missing_reconciliations", _fake_find)

    missing_module.run_missing_reconciliations.run(day="2026-03-01")

    assert captured["day"] == date(2026, 3, 1)


def test_rolls_back_on_error(monkeypatch: pytest.MonkeyPatch) -> None:
    session = _FakeSession()

    class _Engine:
        def missing_reconciliations(self, session: _FakeSession, day: date) -> list:
            raise RuntimeError("boom")

    monkeypatch.setattr(missing_module, "SessionLocal", lambda: session)
    monkeypatch.setattr(missing_module, "ReconciliationEngine", lambda: _Engine())

    with pytest.raises(RuntimeError, match="boom"):
        missing_module.find_missing_reconciliations(day=date(2026, 3, 9))

    assert session.committed is False
    assert session.rolled_back is True
    assert session.closed is True


def test_retries_after_transient_database_error(
    db_session,
    make_store,
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    make_store("STORE-1")
    make_store("STORE-2")
    ReconciliationEngine().submit_daily_reconciliation(
        session=db_session,
        store_id="STORE-1",
        reconciliation_date=date(2026, 3, 9),
        venue_gaming_revenue=Decimal("10000"),
        submitted_by="staff-1",
        now=datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc),
    )
    real_execute = db_session.execute
    calls = {"count": 0}

    def _flaky_execute(*args, **kwargs):
        calls["count"] += 1
        if calls["count"] == 1:
            raise OperationalError("SELECT stores.store_id", {}, Exception("server closed the connection"))
        return real_execute(*args, **kwargs)

    monkeypatch.setattr(db_session, "execute", _flaky_execute)
    monkeypatch.setattr(missing_module, "SessionLocal", lambda: db_session)
    monkeypatch.setattr("src.utils.retry.time.sleep", lambda seconds: None)

    result = missing_module.find_missing_reconciliations(day=date(2026, 3, 9))

    assert calls["count"] == 2
    assert result == {"date": "2026-03-09", "missing": 1, "store_ids": ["STORE-2"]}
