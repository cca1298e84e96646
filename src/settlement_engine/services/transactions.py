from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from src.models.customers import Customer
from src.models.reconciliation_ledger import ReconciliationLedger
from src.models.settlement_transaction import (
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_TYPE_CASHOUT,
    SettlementTransaction,
)
from src.settlement_engine import config
from src.utils.helper import as_utc, business_day, business_day_bounds, to_decimal

from .errors import NotFound, ValidationError

STATS_PERIOD_DAYS = {"today": 0, "7days": 7, "30days": 30}
MIN_CUSTOMER_SEARCH_LENGTH = 2


@dataclass(frozen=True)
class SettlementResult:
    """Caller-facing view of a committed settlement transaction."""
    transaction_id: int
    reference_id: str
    customer_id: int
    type: str
    status: str
    token_amount: int
    usd_amount: Decimal
    cash_to_customer: Decimal | None
    venue_commission: Decimal | None
    commission_percent: Decimal | None
    exchange_rate: Decimal | None
    balance_before: int | None
    balance_after: int | None
    store_id: str | None
    staff_id: str | None
    original_transaction_id: int | None
    reversal_transaction_id: int | None
    reversed_at: datetime | None
    reversed_by: str | None
    reversal_reason: str | None
    created_at: datetime | None
    replayed: bool = False

    @classmethod
    def from_model(cls, row: SettlementTransaction, replayed: bool = False) -> "SettlementResult":
        return cls(
            transaction_id=int(row.transaction_id),
            reference_id=row.reference_id,
            customer_id=int(row.customer_id),
            type=row.type,
            status=row.status,
            token_amount=int(row.token_amount),
            usd_amount=to_decimal(row.usd_amount),
            cash_to_customer=_optional_decimal(row.cash_to_customer),
            venue_commission=_optional_decimal(row.venue_commission),
            commission_percent=_optional_decimal(row.commission_percent),
            exchange_rate=_optional_decimal(row.exchange_rate_used),
            balance_before=_optional_int(row.balance_before),
            balance_after=_optional_int(row.balance_after),
            store_id=row.store_id,
            staff_id=row.staff_id,
            original_transaction_id=_optional_int(row.original_transaction_id),
            reversal_transaction_id=_optional_int(row.reversal_transaction_id),
            reversed_at=as_utc(row.reversed_at),
            reversed_by=row.reversed_by,
            reversal_reason=row.reversal_reason,
            created_at=as_utc(row.created_at),
            replayed=replayed,
        )


@dataclass(frozen=True)
class CashoutSummary:
    total_transactions: int
    total_tokens_converted: int
    total_cash_paid: Decimal
    total_commission: Decimal

    def to_dict(self) -> dict:
        return {
            "total_transactions": self.total_transactions,
            "total_tokens_converted": self.total_tokens_converted,
            "total_cash_paid": str(self.total_cash_paid),
            "total_commission": str(self.total_commission),
        }


@dataclass(frozen=True)
class CashoutHistoryFilters:
    start_date: datetime | None = None
    end_date: datetime | None = None
    customer_id: int | None = None
    staff_id: str | None = None
    status: str = TRANSACTION_STATUS_COMPLETED
    limit: int = 50
    offset: int = 0


@dataclass(frozen=True)
class CashoutHistory:
    transactions: list[SettlementResult]
    total: int
    limit: int
    offset: int
    summary: CashoutSummary

    @property
    def pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.limit else 0


@dataclass(frozen=True)
class CustomerBalance:
    customer_id: int
    full_name: str
    email: str | None
    phone: str | None
    balance: int
    total_withdrawn: Decimal
    today_cashouts_count: int
    today_cashouts_total: Decimal
    recent_transactions: list[SettlementResult] = field(default_factory=list)


@dataclass(frozen=True)
class DailyCashoutReport:
    store_id: str
    day: date
    cashouts: CashoutSummary
    reported_gaming_revenue: Decimal | None

    @property
    def net_cash_flow(self) -> Decimal | None:
        if self.reported_gaming_revenue is None:
            return None
        return self.reported_gaming_revenue - self.cashouts.total_cash_paid

    def to_dict(self) -> dict:
        net = self.net_cash_flow
        return {
            "store_id": self.store_id,
            "date": self.day.isoformat(),
            "cashouts": self.cashouts.to_dict(),
            "cash_flow": {
                "reported_gaming_revenue": (
                    str(self.reported_gaming_revenue)
                    if self.reported_gaming_revenue is not None
                    else None
                ),
                "cash_paid_out": str(self.cashouts.total_cash_paid),
                "net_cash_flow": str(net) if net is not None else None,
                "commission": str(self.cashouts.total_commission),
            },
        }


def sum_completed_cashouts(
    session: Session,
    start: datetime,
    end: datetime,
    customer_id: int | None = None,
    staff_id: str | None = None,
) -> Decimal:
    """USD total of completed cashouts created in [start, end)."""
    stmt = (
        select(func.coalesce(func.sum(SettlementTransaction.usd_amount), 0))
        .where(SettlementTransaction.type == TRANSACTION_TYPE_CASHOUT)
        .where(SettlementTransaction.status == TRANSACTION_STATUS_COMPLETED)
        .where(SettlementTransaction.created_at >= start)
        .where(SettlementTransaction.created_at < end)
    )
    if customer_id is not None:
        stmt = stmt.where(SettlementTransaction.customer_id == customer_id)
    if staff_id is not None:
        stmt = stmt.where(SettlementTransaction.staff_id == staff_id)
    return to_decimal(session.execute(stmt).scalar())


class SettlementQueryService:
    """Read-only queries over settlement_transactions and customer balances."""

    def __init__(self, tz: ZoneInfo | None = None) -> None:
        self._tz = tz or config.SETTLEMENT_TIMEZONE

    def get_transaction(self, session: Session, transaction_id: int) -> SettlementResult:
        row = session.get(SettlementTransaction, transaction_id)
        if row is None:
            raise NotFound(f"Transaction {transaction_id} not found")
        return SettlementResult.from_model(row)

    def find_by_reference(self, session: Session, reference_id: str) -> SettlementTransaction | None:
        stmt = select(SettlementTransaction).where(
            SettlementTransaction.reference_id == reference_id
        )
        return session.execute(stmt).scalars().first()

    def cashout_history(
        self,
        session: Session,
        store_id: str,
        filters: CashoutHistoryFilters | None = None,
    ) -> CashoutHistory:
        filters = filters or CashoutHistoryFilters()
        if filters.limit <= 0 or filters.offset < 0:
            raise ValidationError("limit must be positive and offset non-negative")

        conditions = [
            SettlementTransaction.store_id == store_id,
            SettlementTransaction.type == TRANSACTION_TYPE_CASHOUT,
        ]
        if filters.status != "all":
            conditions.append(SettlementTransaction.status == filters.status)
        if filters.start_date is not None:
            conditions.append(SettlementTransaction.created_at >= as_utc(filters.start_date))
        if filters.end_date is not None:
            conditions.append(SettlementTransaction.created_at <= as_utc(filters.end_date))
        if filters.customer_id is not None:
            conditions.append(SettlementTransaction.customer_id == filters.customer_id)
        if filters.staff_id is not None:
            conditions.append(SettlementTransaction.staff_id == filters.staff_id)

        rows_stmt = (
            select(SettlementTransaction)
            .where(*conditions)
            .order_by(SettlementTransaction.created_at.desc(), SettlementTransaction.transaction_id.desc())
            .limit(filters.limit)
            .offset(filters.offset)
        )
        rows = session.execute(rows_stmt).scalars().all()

        return CashoutHistory(
            transactions=[SettlementResult.from_model(row) for row in rows],
            total=self._count(session, conditions),
            limit=filters.limit,
            offset=filters.offset,
            summary=self._summarize(session, conditions),
        )

    def customer_balance(
        self,
        session: Session,
        customer_id: int,
        now: datetime | None = None,
    ) -> CustomerBalance:
        customer = session.get(Customer, customer_id)
        if customer is None:
            raise NotFound(f"Customer {customer_id} not found")

        now = as_utc(now) if now else datetime.now(timezone.utc)
        start, end = business_day_bounds(business_day(now, self._tz), self._tz)
        today = self._summarize(
            session,
            [
                SettlementTransaction.customer_id == customer_id,
                SettlementTransaction.type == TRANSACTION_TYPE_CASHOUT,
                SettlementTransaction.status == TRANSACTION_STATUS_COMPLETED,
                SettlementTransaction.created_at >= start,
                SettlementTransaction.created_at < end,
            ],
        )

        recent_stmt = (
            select(SettlementTransaction)
            .where(SettlementTransaction.customer_id == customer_id)
            .order_by(SettlementTransaction.created_at.desc(), SettlementTransaction.transaction_id.desc())
            .limit(5)
        )
        recent = session.execute(recent_stmt).scalars().all()

        full_name = " ".join(
            part for part in (customer.first_name, customer.last_name) if part
        )
        return CustomerBalance(
            customer_id=int(customer.customer_id),
            full_name=full_name,
            email=customer.email,
            phone=customer.phone,
            balance=int(customer.token_balance or 0),
            total_withdrawn=to_decimal(customer.total_withdrawn),
            today_cashouts_count=today.total_transactions,
            today_cashouts_total=today.total_cash_paid,
            recent_transactions=[SettlementResult.from_model(row) for row in recent],
        )

    def search_customers(self, session: Session, query: str, limit: int = 20) -> list[Customer]:
        """Case-insensitive match on email, phone, first or last name."""
        query = (query or "").strip()
        if len(query) < MIN_CUSTOMER_SEARCH_LENGTH:
            raise ValidationError(
                f"Search query must be at least {MIN_CUSTOMER_SEARCH_LENGTH} characters"
            )
        if limit <= 0:
            raise ValidationError("limit must be positive")

        stmt = (
            select(Customer)
            .where(
                or_(
                    Customer.email.icontains(query, autoescape=True),
                    Customer.phone.icontains(query, autoescape=True),
                    Customer.first_name.icontains(query, autoescape=True),
                    Customer.last_name.icontains(query, autoescape=True),
                )
            )
            .order_by(Customer.last_name, Customer.first_name, Customer.customer_id)
            .limit(limit)
        )
        return list(session.execute(stmt).scalars().all())

    def daily_cashout_report(self, session: Session, store_id: str, day: date) -> DailyCashoutReport:
        start, end = business_day_bounds(day, self._tz)
        cashouts = self._summarize(
            session,
            [
                SettlementTransaction.store_id == store_id,
                SettlementTransaction.type == TRANSACTION_TYPE_CASHOUT,
                SettlementTransaction.status == TRANSACTION_STATUS_COMPLETED,
                SettlementTransaction.created_at >= start,
                SettlementTransaction.created_at < end,
            ],
        )
        revenue_stmt = (
            select(ReconciliationLedger.venue_gaming_revenue)
            .where(ReconciliationLedger.store_id == store_id)
            .where(ReconciliationLedger.reconciliation_date == day)
        )
        revenue = session.execute(revenue_stmt).scalar()
        return DailyCashoutReport(
            store_id=store_id,
            day=day,
            cashouts=cashouts,
            reported_gaming_revenue=to_decimal(revenue) if revenue is not None else None,
        )

    def venue_cashout_stats(
        self,
        session: Session,
        store_id: str,
        period: str = "7days",
        now: datetime | None = None,
    ) -> dict:
        if period not in STATS_PERIOD_DAYS:
            raise ValidationError(f"Unsupported period={period}")

        now = as_utc(now) if now else datetime.now(timezone.utc)
        today = business_day(now, self._tz)
        start, _ = business_day_bounds(today - timedelta(days=STATS_PERIOD_DAYS[period]), self._tz)
        summary = self._summarize(
            session,
            [
                SettlementTransaction.store_id == store_id,
                SettlementTransaction.type == TRANSACTION_TYPE_CASHOUT,
                SettlementTransaction.status == TRANSACTION_STATUS_COMPLETED,
                SettlementTransaction.created_at >= start,
                SettlementTransaction.created_at <= now,
            ],
        )
        average = (
            summary.total_cash_paid / summary.total_transactions
            if summary.total_transactions
            else Decimal("0")
        )
        return {
            "store_id": store_id,
            "period": period,
            "start": start.isoformat(),
            "end": now.isoformat(),
            **summary.to_dict(),
            "average_cashout": str(average.quantize(Decimal("0.01"))),
        }

    def _count(self, session: Session, conditions: list) -> int:
        stmt = select(func.count(SettlementTransaction.transaction_id)).where(*conditions)
        return int(session.execute(stmt).scalar() or 0)

    def _summarize(self, session: Session, conditions: list) -> CashoutSummary:
        stmt = select(
            func.count(SettlementTransaction.transaction_id),
            func.coalesce(func.sum(SettlementTransaction.token_amount), 0),
            func.coalesce(func.sum(SettlementTransaction.usd_amount), 0),
            func.coalesce(func.sum(SettlementTransaction.venue_commission), 0),
        ).where(*conditions)
        count, tokens, cash, commission = session.execute(stmt).one()
        return CashoutSummary(
            total_transactions=int(count or 0),
            total_tokens_converted=int(tokens or 0),
            total_cash_paid=to_decimal(cash),
            total_commission=to_decimal(commission),
        )


def _optional_decimal(value) -> Decimal | None:
    return None if value is None else to_decimal(value)


def _optional_int(value) -> int | None:
    return None if value is None else int(value)
