from src.api.database.database import Base
from sqlalchemy import Boolean, Column, Index, Integer, Numeric, String, TIMESTAMP, func, text


class RateConfig(Base):
    # Time-bounded token exchange rate and cashout limits. Rows are only ever
    # deactivated (is_active=False, effective_to set), never edited in place.
    __tablename__ = "rate_configs"
    __table_args__ = (
        Index("ix_rate_configs_active_effective_from", "is_active", "effective_from"),
        Index("ix_rate_configs_effective_window", "effective_from", "effective_to"),
        Index(
            "uq_rate_configs_single_active",
            "is_active",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
    )

    config_id = Column(Integer, primary_key=True, nullable=False)
    tokens_per_dollar = Column(Numeric(14, 4), nullable=False)
    min_cashout = Column(Numeric(12, 2), nullable=False)
    max_cashout_per_transaction = Column(Numeric(12, 2), nullable=False)
    daily_limit_per_customer = Column(Numeric(12, 2), nullable=False)
    daily_limit_per_staff = Column(Numeric(12, 2), nullable=False)
    venue_commission_percent = Column(Numeric(5, 2), nullable=False, server_default="0")
    is_active = Column(Boolean, nullable=False, server_default="1")
    effective_from = Column(TIMESTAMP(timezone=True), nullable=False)
    effective_to = Column(TIMESTAMP(timezone=True), nullable=True)
    notes = Column(String(500), nullable=True)
    created_by = Column(String, nullable=True)
    updated_by = Column(String, nullable=True)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
