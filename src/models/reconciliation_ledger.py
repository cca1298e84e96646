from src.api.database.database import Base
from sqlalchemy import (
    Column,
    Date,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    TIMESTAMP,
    UniqueConstraint,
    func,
)

RECONCILIATION_STATUS_PENDING = "pending"
RECONCILIATION_STATUS_APPROVED = "approved"
RECONCILIATION_STATUS_FLAGGED = "flagged"
RECONCILIATION_STATUS_RESOLVED = "resolved"
RECONCILIATION_STATUS_VALUES = (
    RECONCILIATION_STATUS_PENDING,
    RECONCILIATION_STATUS_APPROVED,
    RECONCILIATION_STATUS_FLAGGED,
    RECONCILIATION_STATUS_RESOLVED,
)

reconciliation_status_enum = Enum(
    *RECONCILIATION_STATUS_VALUES,
    name="reconciliation_status",
    native_enum=False,
)

SETTLEMENT_STATUS_UNSETTLED = "unsettled"
SETTLEMENT_STATUS_PAYMENT_SENT = "payment_sent"
SETTLEMENT_STATUS_PARTIAL = "partial"
SETTLEMENT_STATUS_SETTLED = "settled"
SETTLEMENT_STATUS_DISPUTED = "disputed"
SETTLEMENT_STATUS_VALUES = (
    SETTLEMENT_STATUS_UNSETTLED,
    SETTLEMENT_STATUS_PAYMENT_SENT,
    SETTLEMENT_STATUS_PARTIAL,
    SETTLEMENT_STATUS_SETTLED,
    SETTLEMENT_STATUS_DISPUTED,
)

settlement_status_enum = Enum(
    *SETTLEMENT_STATUS_VALUES,
    name="settlement_status",
    native_enum=False,
)

PAYMENT_METHOD_VALUES = ("cash", "check", "wire", "crypto", "zelle", "other")


class ReconciliationLedger(Base):
    # One row per venue per business day comparing reported gaming revenue to
    # the software fee actually remitted. Never deleted; corrections are new
    # status transitions recorded in notes.
    __tablename__ = "reconciliation_ledger"
    __table_args__ = (
        UniqueConstraint(
            "store_id",
            "reconciliation_date",
            name="uq_reconciliation_ledger_store_date",
        ),
        Index("ix_reconciliation_ledger_status_created", "reconciliation_status", "created_at"),
        Index("ix_reconciliation_ledger_store_status", "store_id", "reconciliation_status"),
        Index("ix_reconciliation_ledger_compliance_score", "compliance_score"),
    )

    reconciliation_id = Column(Integer, primary_key=True, nullable=False)
    store_id = Column(
        String,
        ForeignKey("stores.store_id", ondelete="RESTRICT"),
        nullable=False,
    )
    reconciliation_date = Column(Date, nullable=False)

    venue_gaming_revenue = Column(Numeric(14, 2), nullable=False)
    software_fee_percentage = Column(Numeric(5, 2), nullable=False)
    expected_software_fee = Column(Numeric(14, 2), nullable=False)
    actual_software_fee = Column(Numeric(14, 2), nullable=True)
    variance = Column(Numeric(14, 2), nullable=True)
    variance_percentage = Column(Numeric(9, 4), nullable=True)
    compliance_score = Column(Integer, nullable=True)

    reconciliation_status = Column(
        reconciliation_status_enum,
        nullable=False,
        server_default=RECONCILIATION_STATUS_PENDING,
    )
    settlement_status = Column(
        settlement_status_enum,
        nullable=False,
        server_default=SETTLEMENT_STATUS_UNSETTLED,
    )

    submitted_by = Column(String, nullable=False)
    submitted_at = Column(TIMESTAMP(timezone=True), nullable=False)
    approved_by = Column(String, nullable=True)
    approved_at = Column(TIMESTAMP(timezone=True), nullable=True)
    flagged_reason = Column(String, nullable=True)
    resolved_by = Column(String, nullable=True)
    resolved_at = Column(TIMESTAMP(timezone=True), nullable=True)

    payment_method = Column(String, nullable=True)
    payment_sent_at = Column(TIMESTAMP(timezone=True), nullable=True)
    amount_sent = Column(Numeric(14, 2), nullable=True)
    payment_received_at = Column(TIMESTAMP(timezone=True), nullable=True)
    amount_received = Column(Numeric(14, 2), nullable=True)
    payment_confirmed_by = Column(String, nullable=True)

    notes = Column(Text, nullable=False, server_default="")
    machine_count = Column(Integer, nullable=True)
    transaction_count = Column(Integer, nullable=True)

    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
    updated_at = Column(TIMESTAMP(timezone=True), server_default=func.now())
