from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import case, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.models.reconciliation_ledger import (
    PAYMENT_METHOD_VALUES,
    RECONCILIATION_STATUS_APPROVED,
    RECONCILIATION_STATUS_FLAGGED,
    RECONCILIATION_STATUS_PENDING,
    RECONCILIATION_STATUS_RESOLVED,
    SETTLEMENT_STATUS_DISPUTED,
    SETTLEMENT_STATUS_PARTIAL,
    SETTLEMENT_STATUS_PAYMENT_SENT,
    SETTLEMENT_STATUS_SETTLED,
    SETTLEMENT_STATUS_UNSETTLED,
    ReconciliationLedger,
)
from src.models.stores import STORE_STATUS_ACTIVE, Store
from src.settlement_engine import config
from src.utils.helper import as_utc, business_day, round_2_decimals, to_decimal

from .compliance import (
    assess_variance,
    compliance_rating,
    expected_software_fee,
    system_health,
)
from .errors import DuplicateSubmission, InvalidTransition, NotFound, ValidationError
from .unit_of_work import atomic

logger = logging.getLogger("venue_settlement.settlement_engine.reconciliation")

# Compliance status and settlement status move independently of each other.
RECONCILIATION_TRANSITIONS = {
    "approve": {RECONCILIATION_STATUS_PENDING, RECONCILIATION_STATUS_FLAGGED},
    "flag": {RECONCILIATION_STATUS_PENDING},
    "resolve": {RECONCILIATION_STATUS_FLAGGED},
}

SETTLEMENT_TRANSITIONS = {
    SETTLEMENT_STATUS_UNSETTLED: {SETTLEMENT_STATUS_PAYMENT_SENT},
    SETTLEMENT_STATUS_PAYMENT_SENT: {
        SETTLEMENT_STATUS_PARTIAL,
        SETTLEMENT_STATUS_SETTLED,
        SETTLEMENT_STATUS_DISPUTED,
    },
    SETTLEMENT_STATUS_PARTIAL: {SETTLEMENT_STATUS_SETTLED, SETTLEMENT_STATUS_DISPUTED},
    SETTLEMENT_STATUS_SETTLED: set(),
    SETTLEMENT_STATUS_DISPUTED: set(),
}

OUTSTANDING_SETTLEMENT_STATUSES = (
    SETTLEMENT_STATUS_UNSETTLED,
    SETTLEMENT_STATUS_PAYMENT_SENT,
    SETTLEMENT_STATUS_PARTIAL,
)


def is_compliant(row: ReconciliationLedger) -> bool:
    return (
        row.compliance_score is not None
        and row.compliance_score >= config.COMPLIANT_SCORE
        and row.reconciliation_status == RECONCILIATION_STATUS_APPROVED
    )


def needs_attention(row: ReconciliationLedger) -> bool:
    if row.reconciliation_status == RECONCILIATION_STATUS_FLAGGED:
        return True
    return row.compliance_score is not None and row.compliance_score < config.LOW_COMPLIANCE_SCORE


@dataclass(frozen=True)
class VenueComplianceStats:
    store_id: str
    days: int
    total_reconciliations: int
    average_compliance_score: Decimal | None
    total_variance: Decimal
    flagged_count: int
    approved_count: int
    total_expected_fees: Decimal
    total_actual_fees: Decimal

    @property
    def rating(self) -> str:
        return compliance_rating(self.average_compliance_score)

    def to_dict(self) -> dict:
        return {
            "store_id": self.store_id,
            "days": self.days,
            "total_reconciliations": self.total_reconciliations,
            "average_compliance_score": (
                str(self.average_compliance_score)
                if self.average_compliance_score is not None
                else None
            ),
            "total_variance": str(self.total_variance),
            "flagged_count": self.flagged_count,
            "approved_count": self.approved_count,
            "total_expected_fees": str(self.total_expected_fees),
            "total_actual_fees": str(self.total_actual_fees),
            "compliance_rating": self.rating,
        }


@dataclass(frozen=True)
class LowComplianceVenue:
    store_id: str
    average_score: Decimal
    count: int


@dataclass(frozen=True)
class SystemComplianceOverview:
    as_of: date
    total_stores: int
    today_submissions: int
    submission_rate: int
    pending_reconciliations: int
    flagged_reconciliations: int
    low_compliance_venues: list[LowComplianceVenue] = field(default_factory=list)

    @property
    def system_health(self) -> str:
        return system_health(
            self.submission_rate,
            self.flagged_reconciliations,
            self.total_stores,
        )

    def to_dict(self) -> dict:
        return {
            "as_of": self.as_of.isoformat(),
            "total_stores": self.total_stores,
            "today_submissions": self.today_submissions,
            "submission_rate": self.submission_rate,
            "pending_reconciliations": self.pending_reconciliations,
            "flagged_reconciliations": self.flagged_reconciliations,
            "low_compliance_venues": [
                {
                    "store_id": venue.store_id,
                    "average_score": str(venue.average_score),
                    "count": venue.count,
                }
                for venue in self.low_compliance_venues
            ],
            "system_health": self.system_health,
        }


@dataclass(frozen=True)
class VenueDashboard:
    stats: VenueComplianceStats
    recent_reconciliations: list[ReconciliationLedger]
    pending_count: int

    @property
    def compliance_rating(self) -> str:
        return self.stats.rating


@dataclass(frozen=True)
class OutstandingPayments:
    store_id: str
    reconciliations: list[ReconciliationLedger]
    total_outstanding: Decimal

    @property
    def count(self) -> int:
        return len(self.reconciliations)


class ReconciliationEngine:
    """Daily venue revenue reconciliation and fee-settlement tracking."""

    def __init__(self, tz: ZoneInfo | None = None) -> None:
        self._tz = tz or config.SETTLEMENT_TIMEZONE

    # ----- compliance lifecycle -------------------------------------------------

    def submit_daily_reconciliation(
        self,
        session: Session,
        store_id: str,
        reconciliation_date: date,
        venue_gaming_revenue: Decimal,
        submitted_by: str,
        notes: str = "",
        machine_count: int | None = None,
        transaction_count: int | None = None,
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        revenue = to_decimal(venue_gaming_revenue)
        if revenue < 0:
            raise ValidationError("venue_gaming_revenue must be non-negative")
        if reconciliation_date > business_day(now, self._tz):
            raise ValidationError("reconciliation_date cannot be in the future")

        store = session.get(Store, store_id)
        if store is None:
            raise NotFound(f"Store {store_id} not found")

        if self._find(session, store_id, reconciliation_date) is not None:
            raise DuplicateSubmission(
                f"Reconciliation already exists for {store_id} on {reconciliation_date.isoformat()}"
            )

        # Point-in-time copy of the venue's fee; later fee changes do not
        # rewrite submitted rows.
        fee_percentage = to_decimal(store.fee_percentage)
        row = ReconciliationLedger(
            store_id=store_id,
            reconciliation_date=reconciliation_date,
            venue_gaming_revenue=revenue,
            software_fee_percentage=fee_percentage,
            expected_software_fee=expected_software_fee(revenue, fee_percentage),
            reconciliation_status=RECONCILIATION_STATUS_PENDING,
            settlement_status=SETTLEMENT_STATUS_UNSETTLED,
            submitted_by=submitted_by,
            submitted_at=now,
            notes=notes or "",
            machine_count=machine_count,
            transaction_count=transaction_count,
            created_at=now,
            updated_at=now,
        )
        with atomic(session, "submit reconciliation"):
            session.add(row)
            try:
                session.flush()
            except IntegrityError as exc:
                raise DuplicateSubmission(
                    f"Reconciliation already exists for {store_id} on "
                    f"{reconciliation_date.isoformat()}"
                ) from exc
        session.refresh(row)

        logger.info(
            "Reconciliation submitted: %s for %s - $%s gaming revenue (expected fee $%s)",
            store_id,
            reconciliation_date.isoformat(),
            revenue,
            row.expected_software_fee,
        )
        return row

    def record_actual_fee(
        self,
        session: Session,
        reconciliation_id: int,
        actual_software_fee: Decimal,
        actor_id: str,
        notes: str = "",
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        actual = to_decimal(actual_software_fee)
        if actual < 0:
            raise ValidationError("actual_software_fee must be non-negative")

        with atomic(session, "record actual fee"):
            row = self._load_for_update(session, reconciliation_id)
            if row.reconciliation_status in (
                RECONCILIATION_STATUS_APPROVED,
                RECONCILIATION_STATUS_RESOLVED,
            ):
                raise InvalidTransition(
                    f"Cannot change the fee of a {row.reconciliation_status} reconciliation"
                )

            assessment = assess_variance(
                expected_fee=to_decimal(row.expected_software_fee),
                actual_fee=actual,
                submitted_at=row.submitted_at,
                reconciliation_date=row.reconciliation_date,
                tz=self._tz,
            )
            row.actual_software_fee = round_2_decimals(actual)
            row.variance = assessment.variance
            row.variance_percentage = assessment.variance_percentage
            row.compliance_score = assessment.compliance_score
            self._append_note(row, f"[Actual Fee] ${round_2_decimals(actual)} recorded by {actor_id}", now)
            if notes:
                self._append_note(row, notes, now)

            if assessment.should_flag and row.reconciliation_status == RECONCILIATION_STATUS_PENDING:
                row.reconciliation_status = RECONCILIATION_STATUS_FLAGGED
                row.flagged_reason = assessment.flag_reason
                self._append_note(row, f"Auto-flagged: {assessment.flag_reason}", now)
            row.updated_at = now
        session.refresh(row)

        logger.info(
            "Actual software fee recorded: %s/%s - $%s (variance %s, score %s, status %s)",
            row.store_id,
            row.reconciliation_date,
            row.actual_software_fee,
            row.variance,
            row.compliance_score,
            row.reconciliation_status,
        )
        return row

    def approve(
        self,
        session: Session,
        reconciliation_id: int,
        actor_id: str,
        notes: str = "",
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        with atomic(session, "approve reconciliation"):
            row = self._load_for_update(session, reconciliation_id)
            self._require_reconciliation_status(row, "approve")
            row.reconciliation_status = RECONCILIATION_STATUS_APPROVED
            row.approved_by = actor_id
            row.approved_at = now
            self._append_note(
                row,
                f"Approved by {actor_id}" + (f": {notes}" if notes else ""),
                now,
            )
            row.updated_at = now
        session.refresh(row)
        logger.info("Reconciliation approved: %s for %s by %s", row.store_id, row.reconciliation_date, actor_id)
        return row

    def flag(
        self,
        session: Session,
        reconciliation_id: int,
        reason: str,
        actor_id: str | None = None,
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("flagged_reason is required")

        with atomic(session, "flag reconciliation"):
            row = self._load_for_update(session, reconciliation_id)
            self._require_reconciliation_status(row, "flag")
            row.reconciliation_status = RECONCILIATION_STATUS_FLAGGED
            row.flagged_reason = reason
            flagged_by = f" by {actor_id}" if actor_id else ""
            self._append_note(row, f"Flagged{flagged_by}: {reason}", now)
            row.updated_at = now
        session.refresh(row)
        logger.info("Reconciliation flagged: %s - %s", row.store_id, reason)
        return row

    def resolve(
        self,
        session: Session,
        reconciliation_id: int,
        actor_id: str,
        notes: str,
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        notes = (notes or "").strip()
        if not notes:
            raise ValidationError("Resolution notes are required")

        with atomic(session, "resolve reconciliation"):
            row = self._load_for_update(session, reconciliation_id)
            self._require_reconciliation_status(row, "resolve")
            row.reconciliation_status = RECONCILIATION_STATUS_RESOLVED
            row.resolved_by = actor_id
            row.resolved_at = now
            self._append_note(row, f"Resolved by {actor_id}: {notes}", now)
            row.updated_at = now
        session.refresh(row)
        logger.info("Reconciliation resolved: %s for %s by %s", row.store_id, row.reconciliation_date, actor_id)
        return row

    # ----- settlement lifecycle -------------------------------------------------

    def mark_payment_sent(
        self,
        session: Session,
        reconciliation_id: int,
        amount_sent: Decimal,
        actor_id: str,
        method: str = "other",
        sent_at: datetime | None = None,
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        amount = to_decimal(amount_sent)
        if amount <= 0:
            raise ValidationError("amount_sent must be positive")
        if method not in PAYMENT_METHOD_VALUES:
            raise ValidationError(f"Unsupported payment method={method}")

        with atomic(session, "mark payment sent"):
            row = self._load_for_update(session, reconciliation_id)
            self._move_settlement(row, SETTLEMENT_STATUS_PAYMENT_SENT)
            row.payment_method = method
            row.amount_sent = round_2_decimals(amount)
            row.payment_sent_at = as_utc(sent_at) if sent_at else now
            self._append_note(
                row,
                f"[Payment Sent] ${round_2_decimals(amount)} via {method} by {actor_id}",
                now,
            )
            row.updated_at = now
        session.refresh(row)
        logger.info("Payment marked as sent: %s - $%s", row.store_id, row.amount_sent)
        return row

    def confirm_payment(
        self,
        session: Session,
        reconciliation_id: int,
        actor_id: str,
        amount_received: Decimal | None = None,
        received_at: datetime | None = None,
        notes: str = "",
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)

        with atomic(session, "confirm payment"):
            row = self._load_for_update(session, reconciliation_id)
            if row.settlement_status not in (SETTLEMENT_STATUS_PAYMENT_SENT, SETTLEMENT_STATUS_PARTIAL):
                raise InvalidTransition(
                    f"Cannot confirm payment while settlement is {row.settlement_status}"
                )
            if amount_received is None:
                if row.settlement_status == SETTLEMENT_STATUS_PARTIAL:
                    raise ValidationError("amount_received is required for a follow-up payment")
                amount = to_decimal(row.amount_sent)
            else:
                amount = to_decimal(amount_received)
            if amount <= 0:
                raise ValidationError("amount_received must be positive")

            total_received = round_2_decimals(to_decimal(row.amount_received) + amount)
            amount_due = self._amount_due(row)
            target = (
                SETTLEMENT_STATUS_SETTLED
                if total_received >= amount_due
                else SETTLEMENT_STATUS_PARTIAL
            )
            if target != row.settlement_status:
                # a further partial payment leaves the row in partial
                self._move_settlement(row, target)
            row.amount_received = total_received
            row.payment_received_at = as_utc(received_at) if received_at else now
            row.payment_confirmed_by = actor_id
            self._append_note(
                row,
                f"[Payment Confirmed] ${round_2_decimals(amount)} received by {actor_id} "
                f"(total ${total_received} of ${round_2_decimals(amount_due)})",
                now,
            )
            if notes:
                self._append_note(row, notes, now)
            row.updated_at = now
        session.refresh(row)
        logger.info(
            "Payment confirmed: %s - $%s received, settlement %s",
            row.store_id,
            row.amount_received,
            row.settlement_status,
        )
        return row

    def dispute_payment(
        self,
        session: Session,
        reconciliation_id: int,
        actor_id: str,
        reason: str,
        now: datetime | None = None,
    ) -> ReconciliationLedger:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        reason = (reason or "").strip()
        if not reason:
            raise ValidationError("Dispute reason is required")

        with atomic(session, "dispute payment"):
            row = self._load_for_update(session, reconciliation_id)
            self._move_settlement(row, SETTLEMENT_STATUS_DISPUTED)
            self._append_note(row, f"[Payment Disputed] by {actor_id}: {reason}", now)
            row.updated_at = now
        session.refresh(row)
        logger.warning("Payment disputed: %s for %s - %s", row.store_id, row.reconciliation_date, reason)
        return row

    # ----- queries --------------------------------------------------------------

    def get(self, session: Session, reconciliation_id: int) -> ReconciliationLedger:
        row = session.get(ReconciliationLedger, reconciliation_id)
        if row is None:
            raise NotFound(f"Reconciliation {reconciliation_id} not found")
        return row

    def list_for_store(
        self,
        session: Session,
        store_id: str,
        days: int = config.VENUE_STATS_LOOKBACK_DAYS,
        status: str | None = None,
        limit: int = 100,
        now: datetime | None = None,
    ) -> list[ReconciliationLedger]:
        start_day = self._lookback_start(days, now)
        stmt = (
            select(ReconciliationLedger)
            .where(ReconciliationLedger.store_id == store_id)
            .where(ReconciliationLedger.reconciliation_date >= start_day)
            .order_by(ReconciliationLedger.reconciliation_date.desc())
            .limit(limit)
        )
        if status:
            stmt = stmt.where(ReconciliationLedger.reconciliation_status == status)
        return list(session.execute(stmt).scalars().all())

    def venue_compliance_stats(
        self,
        session: Session,
        store_id: str,
        days: int = config.VENUE_STATS_LOOKBACK_DAYS,
        now: datetime | None = None,
    ) -> VenueComplianceStats:
        start_day = self._lookback_start(days, now)
        stmt = select(
            func.count(ReconciliationLedger.reconciliation_id),
            func.avg(ReconciliationLedger.compliance_score),
            func.coalesce(func.sum(ReconciliationLedger.variance), 0),
            func.coalesce(
                func.sum(
                    case(
                        (ReconciliationLedger.reconciliation_status == RECONCILIATION_STATUS_FLAGGED, 1),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(
                func.sum(
                    case(
                        (ReconciliationLedger.reconciliation_status == RECONCILIATION_STATUS_APPROVED, 1),
                        else_=0,
                    )
                ),
                0,
            ),
            func.coalesce(func.sum(ReconciliationLedger.expected_software_fee), 0),
            func.coalesce(func.sum(ReconciliationLedger.actual_software_fee), 0),
        ).where(
            ReconciliationLedger.store_id == store_id,
            ReconciliationLedger.reconciliation_date >= start_day,
        )
        total, avg_score, variance, flagged, approved, expected, actual = session.execute(stmt).one()
        return VenueComplianceStats(
            store_id=store_id,
            days=days,
            total_reconciliations=int(total or 0),
            average_compliance_score=(
                round_2_decimals(avg_score) if avg_score is not None else None
            ),
            total_variance=to_decimal(variance),
            flagged_count=int(flagged or 0),
            approved_count=int(approved or 0),
            total_expected_fees=to_decimal(expected),
            total_actual_fees=to_decimal(actual),
        )

    def venue_dashboard(
        self,
        session: Session,
        store_id: str,
        days: int = config.VENUE_STATS_LOOKBACK_DAYS,
        now: datetime | None = None,
    ) -> VenueDashboard:
        stats = self.venue_compliance_stats(session, store_id, days=days, now=now)
        recent = self.list_for_store(session, store_id, days=days, limit=10, now=now)
        pending_stmt = select(func.count(ReconciliationLedger.reconciliation_id)).where(
            ReconciliationLedger.store_id == store_id,
            ReconciliationLedger.reconciliation_status == RECONCILIATION_STATUS_PENDING,
        )
        return VenueDashboard(
            stats=stats,
            recent_reconciliations=recent,
            pending_count=int(session.execute(pending_stmt).scalar() or 0),
        )

    def system_compliance_overview(
        self,
        session: Session,
        now: datetime | None = None,
    ) -> SystemComplianceOverview:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        today = business_day(now, self._tz)

        total_stores = self._count(session, select(func.count(Store.store_id)).where(
            Store.status == STORE_STATUS_ACTIVE
        ))
        today_submissions = self._count(
            session,
            select(func.count(ReconciliationLedger.reconciliation_id)).where(
                ReconciliationLedger.reconciliation_date == today
            ),
        )
        pending = self._count_status(session, RECONCILIATION_STATUS_PENDING)
        flagged = self._count_status(session, RECONCILIATION_STATUS_FLAGGED)

        average_score = func.avg(ReconciliationLedger.compliance_score)
        low_stmt = (
            select(
                ReconciliationLedger.store_id,
                average_score,
                func.count(ReconciliationLedger.reconciliation_id),
            )
            .where(
                ReconciliationLedger.reconciliation_date
                >= today - timedelta(days=config.LOW_COMPLIANCE_LOOKBACK_DAYS)
            )
            .where(ReconciliationLedger.compliance_score.is_not(None))
            .group_by(ReconciliationLedger.store_id)
            .having(average_score < config.LOW_COMPLIANCE_SCORE)
            .order_by(average_score)
            .limit(10)
        )
        low_venues = [
            LowComplianceVenue(
                store_id=store_id,
                average_score=round_2_decimals(score),
                count=int(count),
            )
            for store_id, score, count in session.execute(low_stmt).all()
        ]

        rate = round(today_submissions / total_stores * 100) if total_stores else 0
        return SystemComplianceOverview(
            as_of=today,
            total_stores=total_stores,
            today_submissions=today_submissions,
            submission_rate=rate,
            pending_reconciliations=pending,
            flagged_reconciliations=flagged,
            low_compliance_venues=low_venues,
        )

    def outstanding(self, session: Session, store_id: str) -> OutstandingPayments:
        """Rows whose software fee has not been fully paid, newest first.

        The amount still owed on a row is the fee due (actual when recorded,
        else expected) less what has been received so far.
        """
        stmt = (
            select(ReconciliationLedger)
            .where(ReconciliationLedger.store_id == store_id)
            .where(ReconciliationLedger.settlement_status.in_(OUTSTANDING_SETTLEMENT_STATUSES))
            .order_by(ReconciliationLedger.reconciliation_date.desc())
        )
        rows = list(session.execute(stmt).scalars().all())
        total = Decimal("0")
        for row in rows:
            total += max(Decimal("0"), self._amount_due(row) - to_decimal(row.amount_received))
        return OutstandingPayments(
            store_id=store_id,
            reconciliations=rows,
            total_outstanding=round_2_decimals(total),
        )

    def missing_reconciliations(self, session: Session, day: date) -> list[Store]:
        submitted = select(ReconciliationLedger.store_id).where(
            ReconciliationLedger.reconciliation_date == day
        )
        stmt = (
            select(Store)
            .where(Store.status == STORE_STATUS_ACTIVE)
            .where(Store.store_id.not_in(submitted))
            .order_by(Store.store_id)
        )
        return list(session.execute(stmt).scalars().all())

    # ----- helpers --------------------------------------------------------------

    def _find(self, session: Session, store_id: str, day: date) -> ReconciliationLedger | None:
        stmt = select(ReconciliationLedger).where(
            ReconciliationLedger.store_id == store_id,
            ReconciliationLedger.reconciliation_date == day,
        )
        return session.execute(stmt).scalars().first()

    def _load_for_update(self, session: Session, reconciliation_id: int) -> ReconciliationLedger:
        stmt = (
            select(ReconciliationLedger)
            .where(ReconciliationLedger.reconciliation_id == reconciliation_id)
            .with_for_update()
        )
        row = session.execute(stmt).scalars().first()
        if row is None:
            raise NotFound(f"Reconciliation {reconciliation_id} not found")
        return row

    def _require_reconciliation_status(self, row: ReconciliationLedger, action: str) -> None:
        allowed = RECONCILIATION_TRANSITIONS[action]
        if row.reconciliation_status not in allowed:
            raise InvalidTransition(
                f"Cannot {action} a reconciliation in {row.reconciliation_status} status"
            )

    def _move_settlement(self, row: ReconciliationLedger, target: str) -> None:
        if target not in SETTLEMENT_TRANSITIONS[row.settlement_status]:
            raise InvalidTransition(
                f"Settlement cannot move from {row.settlement_status} to {target}"
            )
        row.settlement_status = target

    def _amount_due(self, row: ReconciliationLedger) -> Decimal:
        if row.actual_software_fee is not None:
            return to_decimal(row.actual_software_fee)
        return to_decimal(row.expected_software_fee)

    def _append_note(self, row: ReconciliationLedger, text: str, now: datetime) -> None:
        entry = f"[{now.isoformat(timespec='seconds')}] {text}"
        row.notes = f"{row.notes}\n{entry}" if row.notes else entry

    def _lookback_start(self, days: int, now: datetime | None) -> date:
        if days <= 0:
            raise ValidationError("days must be positive")
        now = as_utc(now) if now else datetime.now(timezone.utc)
        return business_day(now, self._tz) - timedelta(days=days)

    def _count_status(self, session: Session, status: str) -> int:
        return self._count(
            session,
            select(func.count(ReconciliationLedger.reconciliation_id)).where(
                ReconciliationLedger.reconciliation_status == status
            ),
        )

    def _count(self, session: Session, stmt) -> int:
        return int(session.execute(stmt).scalar() or 0)
