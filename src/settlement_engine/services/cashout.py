from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from zoneinfo import ZoneInfo

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from src.models.customers import Customer
from src.models.settlement_transaction import (
    METADATA_SCHEMA_VERSION,
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_STATUS_FAILED,
    TRANSACTION_TYPE_CASHOUT,
    TRANSACTION_TYPE_CASHOUT_REVERSAL,
    SettlementTransaction,
)
from src.settlement_engine import config
from src.utils.helper import as_utc, business_day, business_day_bounds, round_2_decimals

from .errors import (
    AlreadyReversed,
    DuplicateSubmission,
    InsufficientBalance,
    LimitExceeded,
    NotFound,
    ValidationError,
)
from .rate_config import ExchangeRate, RateConfigStore
from .transactions import SettlementQueryService, SettlementResult, sum_completed_cashouts
from .unit_of_work import atomic

logger = logging.getLogger("venue_settlement.settlement_engine.cashout")


def generate_reference_id(now: datetime) -> str:
    return f"TXN-{int(now.timestamp() * 1000)}-{uuid.uuid4().hex[:8].upper()}"


class CashoutEngine:
    """Converts customer token balances into cash and reverses cashouts.

    The balance debit and the transaction record are one unit of work: the
    debit is a conditional UPDATE (``token_balance >= amount``) so balance
    non-negativity holds under concurrent requests without any read-then-write.
    Daily limits are checked beforehand and are best-effort only.
    """

    def __init__(
        self,
        rate_store: RateConfigStore | None = None,
        queries: SettlementQueryService | None = None,
        tz: ZoneInfo | None = None,
    ) -> None:
        self._rates = rate_store or RateConfigStore()
        self._tz = tz or config.SETTLEMENT_TIMEZONE
        self._queries = queries or SettlementQueryService(tz=self._tz)

    def get_current_exchange_rate(self, session: Session, as_of: datetime | None = None) -> ExchangeRate:
        return self._rates.get_current_exchange_rate(session=session, as_of=as_of)

    def process_cashout(
        self,
        session: Session,
        customer_id: int,
        token_amount: int,
        store_id: str,
        staff_id: str,
        notes: str = "",
        reference_id: str | None = None,
        now: datetime | None = None,
    ) -> SettlementResult:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        try:
            return self._process(
                session=session,
                customer_id=customer_id,
                token_amount=token_amount,
                store_id=store_id,
                staff_id=staff_id,
                notes=notes,
                reference_id=reference_id,
                now=now,
            )
        except (ValidationError, InsufficientBalance, NotFound) as exc:
            logger.warning(
                "Cashout rejected for customer %s at store %s: %s", customer_id, store_id, exc
            )
            raise

    def _process(
        self,
        session: Session,
        customer_id: int,
        token_amount: int,
        store_id: str,
        staff_id: str,
        notes: str,
        reference_id: str | None,
        now: datetime,
    ) -> SettlementResult:
        if reference_id:
            replay = self._replay(session, reference_id, customer_id, token_amount)
            if replay is not None:
                return replay

        rate = self.get_current_exchange_rate(session=session, as_of=now)
        usd_amount = self._validate_amount(token_amount, rate)
        self._ensure_customer(session, customer_id)
        self._check_daily_limits(session, customer_id, staff_id, usd_amount, rate, now)

        commission = round_2_decimals(usd_amount * rate.venue_commission_percent / Decimal("100"))
        cash_to_customer = round_2_decimals(usd_amount - commission)
        reference_id = reference_id or generate_reference_id(now)

        try:
            with atomic(session, "process cashout"):
                balance_after = self._debit(session, customer_id, token_amount, usd_amount, now)
                row = SettlementTransaction(
                    reference_id=reference_id,
                    customer_id=customer_id,
                    type=TRANSACTION_TYPE_CASHOUT,
                    status=TRANSACTION_STATUS_COMPLETED,
                    token_amount=token_amount,
                    usd_amount=usd_amount,
                    metadata_version=METADATA_SCHEMA_VERSION,
                    store_id=store_id,
                    staff_id=staff_id,
                    rate_config_id=rate.config_id,
                    exchange_rate_used=rate.tokens_per_dollar,
                    commission_percent=rate.venue_commission_percent,
                    venue_commission=commission,
                    cash_to_customer=cash_to_customer,
                    balance_before=balance_after + token_amount,
                    balance_after=balance_after,
                    notes=notes or "",
                    created_at=now,
                )
                self._insert(session, row)
        except DuplicateSubmission:
            # Lost a race with a retry carrying the same reference.
            replay = self._replay(session, reference_id, customer_id, token_amount)
            if replay is None:
                raise
            return replay

        result = SettlementResult.from_model(row)
        logger.info(
            "Cashout processed: %s - customer %s - %s tokens -> $%s (staff %s, store %s)",
            result.reference_id,
            customer_id,
            token_amount,
            result.usd_amount,
            staff_id,
            store_id,
        )
        return result

    def reverse_cashout(
        self,
        session: Session,
        transaction_id: int,
        actor_id: str,
        reason: str,
        now: datetime | None = None,
    ) -> SettlementResult:
        now = as_utc(now) if now else datetime.now(timezone.utc)
        reason = (reason or "").strip()
        if len(reason) < config.MIN_REVERSAL_REASON_LENGTH:
            raise ValidationError(
                f"Reason is required (minimum {config.MIN_REVERSAL_REASON_LENGTH} characters)"
            )

        with atomic(session, "reverse cashout"):
            original = session.execute(
                select(SettlementTransaction)
                .where(SettlementTransaction.transaction_id == transaction_id)
                .with_for_update()
            ).scalars().first()
            if original is None:
                raise NotFound(f"Transaction {transaction_id} not found")
            if original.type != TRANSACTION_TYPE_CASHOUT:
                raise ValidationError("Can only reverse cashout transactions")
            if original.reversed_at is not None or original.reversal_transaction_id is not None:
                raise AlreadyReversed(f"Transaction {transaction_id} already reversed")
            if original.status != TRANSACTION_STATUS_COMPLETED:
                raise ValidationError("Can only reverse completed transactions")

            token_amount = int(original.token_amount)
            usd_amount = original.usd_amount
            customer_id = int(original.customer_id)
            original_reference = original.reference_id
            store_id = original.store_id

            # Conditional void: a concurrent reversal that got here first
            # leaves nothing to match.
            voided = session.execute(
                update(SettlementTransaction)
                .where(SettlementTransaction.transaction_id == transaction_id)
                .where(SettlementTransaction.status == TRANSACTION_STATUS_COMPLETED)
                .where(SettlementTransaction.reversed_at.is_(None))
                .values(
                    status=TRANSACTION_STATUS_FAILED,
                    reversed_at=now,
                    reversed_by=actor_id,
                    reversal_reason=reason,
                )
                .execution_options(synchronize_session=False)
            )
            if not voided.rowcount:
                raise AlreadyReversed(f"Transaction {transaction_id} already reversed")

            balance_after = self._credit(session, customer_id, token_amount, usd_amount, now)
            reversal = SettlementTransaction(
                reference_id=f"REV-{original_reference}",
                customer_id=customer_id,
                type=TRANSACTION_TYPE_CASHOUT_REVERSAL,
                status=TRANSACTION_STATUS_COMPLETED,
                token_amount=token_amount,
                usd_amount=usd_amount,
                metadata_version=METADATA_SCHEMA_VERSION,
                store_id=store_id,
                balance_before=balance_after - token_amount,
                balance_after=balance_after,
                original_transaction_id=transaction_id,
                reversed_by=actor_id,
                reversal_reason=reason,
                created_at=now,
            )
            self._insert(session, reversal)
            session.execute(
                update(SettlementTransaction)
                .where(SettlementTransaction.transaction_id == transaction_id)
                .values(reversal_transaction_id=reversal.transaction_id)
                .execution_options(synchronize_session=False)
            )

        session.expire_all()
        result = SettlementResult.from_model(reversal)
        logger.info(
            "Cashout reversed: %s by %s (%s tokens credited to customer %s)",
            original_reference,
            actor_id,
            token_amount,
            customer_id,
        )
        return result

    def _validate_amount(self, token_amount: int, rate: ExchangeRate) -> Decimal:
        if isinstance(token_amount, bool) or not isinstance(token_amount, int):
            raise ValidationError("token_amount must be a whole number of tokens")
        if token_amount <= 0:
            raise ValidationError("token_amount must be positive")

        usd_amount = Decimal(token_amount) / rate.tokens_per_dollar
        if usd_amount < rate.min_cashout:
            raise ValidationError(
                f"Minimum cashout is {rate.min_tokens.normalize():f} tokens (${rate.min_cashout})"
            )
        if usd_amount > rate.max_cashout_per_transaction:
            raise LimitExceeded(
                f"Maximum cashout is {rate.max_tokens.normalize():f} tokens "
                f"(${rate.max_cashout_per_transaction})"
            )
        return usd_amount

    def _ensure_customer(self, session: Session, customer_id: int) -> None:
        row = session.execute(
            select(Customer.customer_id, Customer.is_active).where(
                Customer.customer_id == customer_id
            )
        ).first()
        if row is None:
            raise NotFound(f"Customer {customer_id} not found")
        if row.is_active is False:
            raise ValidationError(f"Customer {customer_id} is not active")

    def _check_daily_limits(
        self,
        session: Session,
        customer_id: int,
        staff_id: str,
        usd_amount: Decimal,
        rate: ExchangeRate,
        now: datetime,
    ) -> None:
        start, end = business_day_bounds(business_day(now, self._tz), self._tz)

        customer_total = sum_completed_cashouts(session, start, end, customer_id=customer_id)
        if customer_total + usd_amount > rate.daily_limit_per_customer:
            raise LimitExceeded(
                f"Daily cashout limit exceeded. Customer limit: ${rate.daily_limit_per_customer}, "
                f"Today's total: ${round_2_decimals(customer_total)}"
            )

        staff_total = sum_completed_cashouts(session, start, end, staff_id=staff_id)
        if staff_total + usd_amount > rate.daily_limit_per_staff:
            raise LimitExceeded(
                f"Staff daily limit exceeded. Limit: ${rate.daily_limit_per_staff}, "
                f"Today's total: ${round_2_decimals(staff_total)}"
            )

    def _debit(
        self,
        session: Session,
        customer_id: int,
        token_amount: int,
        usd_amount: Decimal,
        now: datetime,
    ) -> int:
        stmt = (
            update(Customer)
            .where(Customer.customer_id == customer_id)
            .where(Customer.token_balance >= token_amount)
            .values(
                token_balance=Customer.token_balance - token_amount,
                total_withdrawn=Customer.total_withdrawn + usd_amount,
                balance_updated_at=now,
            )
            .returning(Customer.token_balance)
            .execution_options(synchronize_session=False)
        )
        balance_after = session.execute(stmt).scalar()
        if balance_after is None:
            raise InsufficientBalance(
                f"Insufficient balance for customer {customer_id}: requested {token_amount} tokens"
            )
        return int(balance_after)

    def _credit(
        self,
        session: Session,
        customer_id: int,
        token_amount: int,
        usd_amount: Decimal,
        now: datetime,
    ) -> int:
        stmt = (
            update(Customer)
            .where(Customer.customer_id == customer_id)
            .values(
                token_balance=Customer.token_balance + token_amount,
                total_withdrawn=Customer.total_withdrawn - usd_amount,
                balance_updated_at=now,
            )
            .returning(Customer.token_balance)
            .execution_options(synchronize_session=False)
        )
        balance_after = session.execute(stmt).scalar()
        if balance_after is None:
            raise NotFound(f"Customer {customer_id} not found")
        return int(balance_after)

    def _insert(self, session: Session, row: SettlementTransaction) -> None:
        session.add(row)
        try:
            session.flush()
        except IntegrityError as exc:
            # other constraint failures surface through atomic() as PersistenceFailure
            if "reference_id" not in str(exc.orig):
                raise
            raise DuplicateSubmission(f"Reference {row.reference_id} already recorded") from exc

    def _replay(
        self,
        session: Session,
        reference_id: str,
        customer_id: int,
        token_amount: int,
    ) -> SettlementResult | None:
        existing = self._queries.find_by_reference(session, reference_id)
        if existing is None:
            return None
        if int(existing.customer_id) != customer_id or int(existing.token_amount) != token_amount:
            raise ValidationError(
                f"Reference {reference_id} was already used for a different cashout"
            )
        logger.info("Cashout %s replayed for customer %s", reference_id, customer_id)
        return SettlementResult.from_model(existing, replayed=True)
