from src.api.database.database import Base
from sqlalchemy import (
    BigInteger,
    Column,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    TIMESTAMP,
    Enum,
    func,
)

TRANSACTION_TYPE_CASHOUT = "cashout"
TRANSACTION_TYPE_CASHOUT_REVERSAL = "cashout_reversal"
TRANSACTION_TYPE_VALUES = (
    TRANSACTION_TYPE_CASHOUT,
    TRANSACTION_TYPE_CASHOUT_REVERSAL,
)

transaction_type_enum = Enum(
    *TRANSACTION_TYPE_VALUES,
    name="settlement_transaction_type",
    native_enum=False,
)

TRANSACTION_STATUS_COMPLETED = "completed"
TRANSACTION_STATUS_FAILED = "failed"
TRANSACTION_STATUS_VALUES = (
    TRANSACTION_STATUS_COMPLETED,
    TRANSACTION_STATUS_FAILED,
)

transaction_status_enum = Enum(
    *TRANSACTION_STATUS_VALUES,
    name="settlement_transaction_status",
    native_enum=False,
)

# Bump when the audit columns below change shape.
METADATA_SCHEMA_VERSION = 1


class SettlementTransaction(Base):
    # Append-only record of every balance-changing settlement event. Audit
    # metadata lives in typed columns; only the reversal linkage columns are
    # filled in after the row is first written.
    __tablename__ = "settlement_transactions"
    __table_args__ = (
        Index("ix_settlement_transactions_customer_created", "customer_id", "created_at"),
        Index("ix_settlement_transactions_staff_created", "staff_id", "created_at"),
        Index("ix_settlement_transactions_store_created", "store_id", "created_at"),
    )

    transaction_id = Column(Integer, primary_key=True, nullable=False)
    reference_id = Column(String, nullable=False, unique=True)
    customer_id = Column(
        Integer,
        ForeignKey("customers.customer_id", ondelete="RESTRICT"),
        nullable=False,
    )
    type = Column(transaction_type_enum, nullable=False)
    status = Column(transaction_status_enum, nullable=False)
    token_amount = Column(BigInteger, nullable=False)
    usd_amount = Column(Numeric(14, 4), nullable=False)
    metadata_version = Column(Integer, nullable=False, server_default=str(METADATA_SCHEMA_VERSION))

    # cashout audit
    store_id = Column(String, nullable=True)
    staff_id = Column(String, nullable=True)
    rate_config_id = Column(Integer, ForeignKey("rate_configs.config_id"), nullable=True)
    exchange_rate_used = Column(Numeric(14, 4), nullable=True)
    commission_percent = Column(Numeric(5, 2), nullable=True)
    venue_commission = Column(Numeric(12, 2), nullable=True)
    cash_to_customer = Column(Numeric(12, 2), nullable=True)
    balance_before = Column(BigInteger, nullable=True)
    balance_after = Column(BigInteger, nullable=True)
    notes = Column(String, nullable=True)

    # reversal linkage
    original_transaction_id = Column(
        Integer,
        ForeignKey("settlement_transactions.transaction_id"),
        nullable=True,
    )
    reversal_transaction_id = Column(
        Integer,
        ForeignKey("settlement_transactions.transaction_id"),
        nullable=True,
    )
    reversed_at = Column(TIMESTAMP(timezone=True), nullable=True)
    reversed_by = Column(String, nullable=True)
    reversal_reason = Column(String, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
