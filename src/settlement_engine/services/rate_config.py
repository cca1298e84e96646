from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import Protocol

from sqlalchemy import or_, select, update
from sqlalchemy.orm import Session

from src.models.rate_config import RateConfig
from src.settlement_engine import config
from src.utils.helper import as_utc, to_decimal

from .errors import ValidationError
from .unit_of_work import atomic

logger = logging.getLogger("venue_settlement.settlement_engine.rate_config")


@dataclass(frozen=True)
class ExchangeRate:
    """Rate and limits in force at a point in time (persisted or fallback)."""
    tokens_per_dollar: Decimal
    min_cashout: Decimal
    max_cashout_per_transaction: Decimal
    daily_limit_per_customer: Decimal
    daily_limit_per_staff: Decimal
    venue_commission_percent: Decimal
    is_default: bool
    config_id: int | None = None
    effective_from: datetime | None = None
    effective_to: datetime | None = None

    @classmethod
    def from_model(cls, row: RateConfig) -> "ExchangeRate":
        return cls(
            tokens_per_dollar=to_decimal(row.tokens_per_dollar),
            min_cashout=to_decimal(row.min_cashout),
            max_cashout_per_transaction=to_decimal(row.max_cashout_per_transaction),
            daily_limit_per_customer=to_decimal(row.daily_limit_per_customer),
            daily_limit_per_staff=to_decimal(row.daily_limit_per_staff),
            venue_commission_percent=to_decimal(row.venue_commission_percent),
            is_default=False,
            config_id=int(row.config_id),
            effective_from=as_utc(row.effective_from),
            effective_to=as_utc(row.effective_to),
        )

    @classmethod
    def defaults(cls) -> "ExchangeRate":
        return cls(
            tokens_per_dollar=config.DEFAULT_TOKENS_PER_DOLLAR,
            min_cashout=config.DEFAULT_MIN_CASHOUT,
            max_cashout_per_transaction=config.DEFAULT_MAX_CASHOUT_PER_TRANSACTION,
            daily_limit_per_customer=config.DEFAULT_DAILY_LIMIT_PER_CUSTOMER,
            daily_limit_per_staff=config.DEFAULT_DAILY_LIMIT_PER_STAFF,
            venue_commission_percent=config.DEFAULT_VENUE_COMMISSION_PERCENT,
            is_default=True,
        )

    @property
    def min_tokens(self) -> Decimal:
        return self.min_cashout * self.tokens_per_dollar

    @property
    def max_tokens(self) -> Decimal:
        return self.max_cashout_per_transaction * self.tokens_per_dollar

    def to_dict(self) -> dict:
        return {
            "config_id": self.config_id,
            "tokens_per_dollar": str(self.tokens_per_dollar),
            "min_cashout": str(self.min_cashout),
            "max_cashout_per_transaction": str(self.max_cashout_per_transaction),
            "daily_limit_per_customer": str(self.daily_limit_per_customer),
            "daily_limit_per_staff": str(self.daily_limit_per_staff),
            "venue_commission_percent": str(self.venue_commission_percent),
            "is_default": self.is_default,
            "effective_from": self.effective_from.isoformat() if self.effective_from else None,
            "effective_to": self.effective_to.isoformat() if self.effective_to else None,
        }


@dataclass(frozen=True)
class RateConfigInput:
    """Administrative request for a new rate configuration."""
    tokens_per_dollar: Decimal
    min_cashout: Decimal
    max_cashout_per_transaction: Decimal
    daily_limit_per_customer: Decimal
    daily_limit_per_staff: Decimal
    venue_commission_percent: Decimal = Decimal("0")
    effective_from: datetime | None = None
    notes: str | None = None


class RateConfigRepository(Protocol):
    """Persistence boundary for time-bounded rate configurations."""

    def find_current(self, session: Session, as_of: datetime) -> RateConfig | None:
        raise NotImplementedError

    def deactivate_active(self, session: Session, now: datetime, actor_id: str) -> int:
        raise NotImplementedError

    def add(self, session: Session, row: RateConfig) -> RateConfig:
        raise NotImplementedError

    def list_history(self, session: Session, limit: int) -> list[RateConfig]:
        raise NotImplementedError


class SqlRateConfigRepository:
    """SQLAlchemy repository for the rate_configs table."""

    def find_current(self, session: Session, as_of: datetime) -> RateConfig | None:
        stmt = (
            select(RateConfig)
            .where(RateConfig.is_active.is_(True))
            .where(RateConfig.effective_from <= as_of)
            .where(or_(RateConfig.effective_to.is_(None), RateConfig.effective_to > as_of))
            .order_by(RateConfig.effective_from.desc(), RateConfig.config_id.desc())
            .limit(1)
        )
        return session.execute(stmt).scalars().first()

    def deactivate_active(self, session: Session, now: datetime, actor_id: str) -> int:
        stmt = (
            update(RateConfig)
            .where(RateConfig.is_active.is_(True))
            .values(
                is_active=False,
                effective_to=now,
                updated_by=actor_id,
                updated_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = session.execute(stmt)
        return result.rowcount or 0

    def add(self, session: Session, row: RateConfig) -> RateConfig:
        session.add(row)
        session.flush()
        return row

    def list_history(self, session: Session, limit: int) -> list[RateConfig]:
        stmt = (
            select(RateConfig)
            .order_by(RateConfig.effective_from.desc(), RateConfig.config_id.desc())
            .limit(limit)
        )
        return list(session.execute(stmt).scalars().all())


class RateConfigStore:
    """Current and historical exchange-rate / limit configuration."""

    def __init__(self, repo: RateConfigRepository | None = None) -> None:
        self._repo = repo or SqlRateConfigRepository()

    def get_current(self, session: Session, as_of: datetime | None = None) -> RateConfig | None:
        as_of = as_utc(as_of) if as_of else datetime.now(timezone.utc)
        return self._repo.find_current(session=session, as_of=as_of)

    def get_current_exchange_rate(
        self,
        session: Session,
        as_of: datetime | None = None,
    ) -> ExchangeRate:
        row = self.get_current(session=session, as_of=as_of)
        if row is None:
            logger.warning("No active rate config in force; using built-in defaults")
            return ExchangeRate.defaults()
        return ExchangeRate.from_model(row)

    def create_config(
        self,
        session: Session,
        data: RateConfigInput,
        actor_id: str,
        now: datetime | None = None,
    ) -> RateConfig:
        self._validate(data)
        now = as_utc(now) if now else datetime.now(timezone.utc)

        with atomic(session, "create rate config"):
            deactivated = self._repo.deactivate_active(session=session, now=now, actor_id=actor_id)
            row = self._repo.add(
                session=session,
                row=RateConfig(
                    tokens_per_dollar=data.tokens_per_dollar,
                    min_cashout=data.min_cashout,
                    max_cashout_per_transaction=data.max_cashout_per_transaction,
                    daily_limit_per_customer=data.daily_limit_per_customer,
                    daily_limit_per_staff=data.daily_limit_per_staff,
                    venue_commission_percent=data.venue_commission_percent,
                    is_active=True,
                    effective_from=as_utc(data.effective_from) if data.effective_from else now,
                    effective_to=None,
                    notes=data.notes,
                    created_by=actor_id,
                    updated_by=actor_id,
                    created_at=now,
                    updated_at=now,
                ),
            )
        session.refresh(row)

        logger.info(
            "Rate config %s activated by %s (%s tokens/$, deactivated %s)",
            row.config_id,
            actor_id,
            data.tokens_per_dollar,
            deactivated,
        )
        return row

    def list_history(self, session: Session, limit: int = 50) -> list[RateConfig]:
        return self._repo.list_history(session=session, limit=limit)

    def _validate(self, data: RateConfigInput) -> None:
        positive_fields = {
            "tokens_per_dollar": data.tokens_per_dollar,
            "min_cashout": data.min_cashout,
            "max_cashout_per_transaction": data.max_cashout_per_transaction,
            "daily_limit_per_customer": data.daily_limit_per_customer,
            "daily_limit_per_staff": data.daily_limit_per_staff,
        }
        for name, value in positive_fields.items():
            if value is None or to_decimal(value) <= 0:
                raise ValidationError(f"{name} must be positive")

        commission = to_decimal(data.venue_commission_percent)
        if commission < 0 or commission > 100:
            raise ValidationError("venue_commission_percent must be between 0 and 100")
        if to_decimal(data.min_cashout) > to_decimal(data.max_cashout_per_transaction):
            raise ValidationError("min_cashout cannot exceed max_cashout_per_transaction")
        if data.notes and len(data.notes) > config.MAX_CONFIG_NOTES_LENGTH:
            raise ValidationError(
                f"notes cannot exceed {config.MAX_CONFIG_NOTES_LENGTH} characters"
            )
