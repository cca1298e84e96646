from __future__ import annotations

from datetime import date, datetime, timedelta, timezone
from decimal import Decimal

import pytest

from src.models.reconciliation_ledger import (
    RECONCILIATION_STATUS_APPROVED,
    RECONCILIATION_STATUS_FLAGGED,
    RECONCILIATION_STATUS_PENDING,
    RECONCILIATION_STATUS_RESOLVED,
    SETTLEMENT_STATUS_DISPUTED,
    SETTLEMENT_STATUS_PARTIAL,
    SETTLEMENT_STATUS_PAYMENT_SENT,
    SETTLEMENT_STATUS_SETTLED,
    SETTLEMENT_STATUS_UNSETTLED,
)
from src.models.stores import Store
from src.settlement_engine.services.errors import (
    DuplicateSubmission,
    InvalidTransition,
    NotFound,
    ValidationError,
)
from src.settlement_engine.services.reconciliation import (
    ReconciliationEngine,
    is_compliant,
    needs_attention,
)

# 11:00 in New York on 2026-03-10.
NOW = datetime(2026, 3, 10, 15, 0, tzinfo=timezone.utc)
YESTERDAY = date(2026, 3, 9)
TODAY = date(2026, 3, 10)


def _submit(engine: ReconciliationEngine, session, day: date = YESTERDAY, revenue: str = "10000", **kwargs):
    params = {"store_id": "STORE-1", "submitted_by": "manager-1", "now": NOW}
    params.update(kwargs)
    return engine.submit_daily_reconciliation(
        session=session,
        reconciliation_date=day,
        venue_gaming_revenue=Decimal(revenue),
        **params,
    )


def test_submit_copies_fee_and_computes_expected(db_session, make_store) -> None:
    make_store(fee_percentage="5")
    engine = ReconciliationEngine()

    row = _submit(engine, db_session, machine_count=12, notes="closing shift")

    assert row.expected_software_fee == Decimal("500.00")
    assert row.software_fee_percentage == Decimal("5")
    assert row.reconciliation_status == RECONCILIATION_STATUS_PENDING
    assert row.settlement_status == SETTLEMENT_STATUS_UNSETTLED
    assert row.actual_software_fee is None
    assert row.compliance_score is None
    assert row.machine_count == 12

    # later fee changes do not rewrite the submitted row
    store = db_session.get(Store, "STORE-1")
    store.fee_percentage = Decimal("8")
    db_session.commit()
    assert engine.get(db_session, row.reconciliation_id).software_fee_percentage == Decimal("5")


def test_duplicate_submission_for_same_day(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()
    _submit(engine, db_session)

    with pytest.raises(DuplicateSubmission):
        _submit(engine, db_session, revenue="9000")

    # another day is fine
    assert _submit(engine, db_session, day=TODAY).reconciliation_date == TODAY


def test_submit_validation(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()

    with pytest.raises(NotFound):
        _submit(engine, db_session, store_id="NOPE")
    with pytest.raises(ValidationError):
        _submit(engine, db_session, revenue="-1")
    with pytest.raises(ValidationError):
        _submit(engine, db_session, day=TODAY + timedelta(days=1))


def test_record_actual_fee_auto_flags_large_variance(db_session, make_store) -> None:
    make_store(fee_percentage="5")
    engine = ReconciliationEngine()
    row = _submit(engine, db_session)

    row = engine.record_actual_fee(
        session=db_session,
        reconciliation_id=row.reconciliation_id,
        actual_software_fee=Decimal("560"),
        actor_id="admin-1",
        now=NOW,
    )

    assert row.variance == Decimal("60.00")
    assert row.variance_percentage == Decimal("12")
    # submitted more than 24h after the business day began: no bonus
    assert row.compliance_score == 88
    assert row.reconciliation_status == RECONCILIATION_STATUS_FLAGGED
    assert row.flagged_reason == "Variance of 12.00% exceeds 10% threshold"
    assert "[Actual Fee] $560.00 recorded by admin-1" in row.notes
    assert needs_attention(row) is True


def test_record_actual_fee_matching_expected(db_session, make_store) -> None:
    make_store(fee_percentage="5")
    engine = ReconciliationEngine()
    row = _submit(engine, db_session, day=TODAY)

    row = engine.record_actual_fee(db_session, row.reconciliation_id, Decimal("500"), "admin-1", now=NOW)

    assert row.variance_percentage == Decimal("0")
    assert row.compliance_score == 100
    assert row.reconciliation_status == RECONCILIATION_STATUS_PENDING


def test_record_actual_fee_rejections(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()
    row = _submit(engine, db_session)

    with pytest.raises(ValidationError):
        engine.record_actual_fee(db_session, row.reconciliation_id, Decimal("-1"), "admin-1", now=NOW)
    with pytest.raises(NotFound):
        engine.record_actual_fee(db_session, 404, Decimal("500"), "admin-1", now=NOW)

    engine.approve(db_session, row.reconciliation_id, "admin-1", now=NOW)
    with pytest.raises(InvalidTransition):
        engine.record_actual_fee(db_session, row.reconciliation_id, Decimal("500"), "admin-1", now=NOW)


def test_approve_from_pending_and_flagged_only(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()
    pending = _submit(engine, db_session, day=YESTERDAY)
    flagged = _submit(engine, db_session, day=TODAY)
    engine.flag(db_session, flagged.reconciliation_id, "Revenue looks low", actor_id="admin-1", now=NOW)

    approved = engine.approve(db_session, pending.reconciliation_id, "admin-1", notes="ok", now=NOW)
    assert approved.reconciliation_status == RECONCILIATION_STATUS_APPROVED
    assert approved.approved_by == "admin-1"
    assert approved.approved_at is not None

    assert engine.approve(db_session, flagged.reconciliation_id, "admin-2", now=NOW).reconciliation_status == (
        RECONCILIATION_STATUS_APPROVED
    )

    with pytest.raises(InvalidTransition):
        engine.approve(db_session, pending.reconciliation_id, "admin-1", now=NOW)


def test_flag_and_resolve(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()
    row = _submit(engine, db_session)

    with pytest.raises(ValidationError):
        engine.flag(db_session, row.reconciliation_id, "   ", now=NOW)
    with pytest.raises(InvalidTransition):
        engine.resolve(db_session, row.reconciliation_id, "admin-1", "nothing to resolve", now=NOW)

    row = engine.flag(db_session, row.reconciliation_id, "Machine count mismatch", actor_id="admin-1", now=NOW)
    assert row.reconciliation_status == RECONCILIATION_STATUS_FLAGGED
    assert row.flagged_reason == "Machine count mismatch"

    with pytest.raises(InvalidTransition):
        engine.flag(db_session, row.reconciliation_id, "again", now=NOW)

    row = engine.resolve(db_session, row.reconciliation_id, "admin-1", "Recounted, revenue confirmed", now=NOW)
    assert row.reconciliation_status == RECONCILIATION_STATUS_RESOLVED
    assert row.resolved_by == "admin-1"
    assert "Resolved by admin-1: Recounted, revenue confirmed" in row.notes
    # every transition appended its own note
    assert len(row.notes.splitlines()) == 2


def test_settlement_payment_flow_with_partial_payment(db_session, make_store) -> None:
    make_store(fee_percentage="5")
    engine = ReconciliationEngine()
    row = _submit(engine, db_session)
    rid = row.reconciliation_id

    with pytest.raises(InvalidTransition):
        engine.confirm_payment(db_session, rid, "admin-1", amount_received=Decimal("500"), now=NOW)

    row = engine.mark_payment_sent(db_session, rid, Decimal("500"), "manager-1", method="wire", now=NOW)
    assert row.settlement_status == SETTLEMENT_STATUS_PAYMENT_SENT
    assert row.payment_method == "wire"

    row = engine.confirm_payment(db_session, rid, "admin-1", amount_received=Decimal("200"), now=NOW)
    assert row.settlement_status == SETTLEMENT_STATUS_PARTIAL
    assert row.amount_received == Decimal("200.00")

    row = engine.confirm_payment(db_session, rid, "admin-1", amount_received=Decimal("100"), now=NOW)
    assert row.settlement_status == SETTLEMENT_STATUS_PARTIAL

    row = engine.confirm_payment(db_session, rid, "admin-1", amount_received=Decimal("200"), now=NOW)
    assert row.settlement_status == SETTLEMENT_STATUS_SETTLED
    assert row.amount_received == Decimal("500.00")
    assert row.payment_confirmed_by == "admin-1"

    with pytest.raises(InvalidTransition):
        engine.dispute_payment(db_session, rid, "admin-1", "late objection", now=NOW)
    with pytest.raises(InvalidTransition):
        engine.mark_payment_sent(db_session, rid, Decimal("10"), "manager-1", now=NOW)

    # independent of the compliance status
    assert row.reconciliation_status == RECONCILIATION_STATUS_PENDING


def test_confirm_defaults_to_amount_sent_and_uses_actual_fee(db_session, make_store) -> None:
    make_store(fee_percentage="5")
    engine = ReconciliationEngine()
    row = _submit(engine, db_session)
    engine.record_actual_fee(db_session, row.reconciliation_id, Decimal("520"), "admin-1", now=NOW)
    engine.mark_payment_sent(db_session, row.reconciliation_id, Decimal("500"), "manager-1", now=NOW)

    row = engine.confirm_payment(db_session, row.reconciliation_id, "admin-1", now=NOW)

    # 500 received against a 520 actual fee
    assert row.settlement_status == SETTLEMENT_STATUS_PARTIAL
    with pytest.raises(ValidationError):
        engine.confirm_payment(db_session, row.reconciliation_id, "admin-1", now=NOW)


def test_dispute_payment(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()
    row = _submit(engine, db_session)

    with pytest.raises(InvalidTransition):
        engine.dispute_payment(db_session, row.reconciliation_id, "admin-1", "nothing sent yet", now=NOW)
    with pytest.raises(ValidationError):
        engine.mark_payment_sent(db_session, row.reconciliation_id, Decimal("500"), "m-1", method="paypal", now=NOW)

    engine.mark_payment_sent(db_session, row.reconciliation_id, Decimal("450"), "manager-1", now=NOW)
    row = engine.dispute_payment(db_session, row.reconciliation_id, "admin-1", "Amount short by $50", now=NOW)

    assert row.settlement_status == SETTLEMENT_STATUS_DISPUTED
    assert "[Payment Disputed] by admin-1: Amount short by $50" in row.notes


def test_is_compliant_requires_approval(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()
    row = _submit(engine, db_session, day=TODAY)
    row = engine.record_actual_fee(db_session, row.reconciliation_id, Decimal("500"), "admin-1", now=NOW)

    assert is_compliant(row) is False
    row = engine.approve(db_session, row.reconciliation_id, "admin-1", now=NOW)
    assert is_compliant(row) is True
    assert needs_attention(row) is False


def test_venue_stats_and_dashboard(db_session, make_store) -> None:
    make_store(fee_percentage="5")
    engine = ReconciliationEngine()
    first = _submit(engine, db_session, day=date(2026, 3, 8))
    second = _submit(engine, db_session, day=YESTERDAY)
    _submit(engine, db_session, day=TODAY)
    engine.record_actual_fee(db_session, first.reconciliation_id, Decimal("500"), "admin-1", now=NOW)
    engine.record_actual_fee(db_session, second.reconciliation_id, Decimal("560"), "admin-1", now=NOW)
    engine.approve(db_session, first.reconciliation_id, "admin-1", now=NOW)

    stats = engine.venue_compliance_stats(db_session, "STORE-1", days=30, now=NOW)

    assert stats.total_reconciliations == 3
    assert stats.average_compliance_score == Decimal("94.00")
    assert stats.total_variance == Decimal("60")
    assert stats.flagged_count == 1
    assert stats.approved_count == 1
    assert stats.total_expected_fees == Decimal("1500")
    assert stats.total_actual_fees == Decimal("1060")
    assert stats.rating == "Good"

    dashboard = engine.venue_dashboard(db_session, "STORE-1", now=NOW)
    assert [row.reconciliation_date for row in dashboard.recent_reconciliations] == [
        TODAY,
        YESTERDAY,
        date(2026, 3, 8),
    ]
    assert dashboard.pending_count == 1
    assert dashboard.compliance_rating == "Good"


def test_system_overview_and_missing_reconciliations(db_session, make_store) -> None:
    make_store("STORE-1")
    make_store("STORE-2")
    make_store("STORE-3")
    make_store("STORE-OLD", status="inactive")
    engine = ReconciliationEngine()
    low = _submit(engine, db_session, day=TODAY, store_id="STORE-1")
    _submit(engine, db_session, day=TODAY, store_id="STORE-2")
    engine.record_actual_fee(db_session, low.reconciliation_id, Decimal("700"), "admin-1", now=NOW)

    overview = engine.system_compliance_overview(db_session, now=NOW)

    assert overview.as_of == TODAY
    assert overview.total_stores == 3
    assert overview.today_submissions == 2
    assert overview.submission_rate == 67
    assert overview.pending_reconciliations == 1
    assert overview.flagged_reconciliations == 1
    assert [venue.store_id for venue in overview.low_compliance_venues] == ["STORE-1"]
    assert overview.system_health == "Needs Attention"
    assert overview.to_dict()["low_compliance_venues"][0]["average_score"] == "65.00"

    missing = engine.missing_reconciliations(db_session, TODAY)
    assert [store.store_id for store in missing] == ["STORE-3"]


def test_list_for_store_filters_by_status(db_session, make_store) -> None:
    make_store()
    engine = ReconciliationEngine()
    _submit(engine, db_session, day=YESTERDAY)
    row = _submit(engine, db_session, day=TODAY)
    engine.flag(db_session, row.reconciliation_id, "Check totals", now=NOW)

    flagged = engine.list_for_store(db_session, "STORE-1", status=RECONCILIATION_STATUS_FLAGGED, now=NOW)

    assert [r.reconciliation_id for r in flagged] == [row.reconciliation_id]
    with pytest.raises(ValidationError):
        engine.list_for_store(db_session, "STORE-1", days=0, now=NOW)


def test_outstanding_lists_unpaid_rows_with_amount_still_owed(db_session, make_store) -> None:
    make_store("STORE-1", fee_percentage="5")
    make_store("STORE-2", fee_percentage="5")
    engine = ReconciliationEngine()

    partial = _submit(engine, db_session, day=YESTERDAY)
    unsettled = _submit(engine, db_session, day=date(2026, 3, 8), revenue="2000")
    settled = _submit(engine, db_session, day=date(2026, 3, 7))
    _submit(engine, db_session, day=YESTERDAY, store_id="STORE-2")

    engine.mark_payment_sent(db_session, partial.reconciliation_id, Decimal("500"), "manager-1", now=NOW)
    engine.confirm_payment(db_session, partial.reconciliation_id, "admin-1", amount_received=Decimal("200"), now=NOW)
    engine.record_actual_fee(db_session, unsettled.reconciliation_id, Decimal("120"), "admin-1", now=NOW)
    engine.mark_payment_sent(db_session, settled.reconciliation_id, Decimal("500"), "manager-1", now=NOW)
    engine.confirm_payment(db_session, settled.reconciliation_id, "admin-1", now=NOW)

    result = engine.outstanding(db_session, "STORE-1")

    assert [row.reconciliation_id for row in result.reconciliations] == [
        partial.reconciliation_id,
        unsettled.reconciliation_id,
    ]
    assert result.count == 2
    # 300 left on the partial payment, 120 actual fee on the unpaid day
    assert result.total_outstanding == Decimal("420.00")


def test_outstanding_for_venue_without_rows(db_session, make_store) -> None:
    make_store()

    result = ReconciliationEngine().outstanding(db_session, "STORE-1")

    assert result.count == 0
    assert result.total_outstanding == Decimal("0.00")
