"""add settlement tables

Revision ID: 8c41d2e7a5f0
Revises:
Create Date: 2026-10-19 09:30:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "8c41d2e7a5f0"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "customers",
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column("first_name", sa.String(), nullable=True),
        sa.Column("last_name", sa.String(), nullable=True),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("phone", sa.String(), nullable=True),
        sa.Column("token_balance", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("total_withdrawn", sa.Numeric(14, 4), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="TRUE"),
        sa.Column("balance_updated_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("customer_id"),
        sa.CheckConstraint(
            "token_balance >= 0",
            name="ck_customers_token_balance_non_negative",
        ),
    )

    op.create_table(
        "stores",
        sa.Column("store_id", sa.String(), nullable=False),
        sa.Column("store_name", sa.String(), nullable=False),
        sa.Column("city", sa.String(), nullable=True),
        sa.Column("state", sa.String(), nullable=True),
        sa.Column("fee_percentage", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("store_id"),
    )
    op.create_index("ix_stores_status", "stores", ["status"], unique=False)

    op.create_table(
        "rate_configs",
        sa.Column("config_id", sa.Integer(), nullable=False),
        sa.Column("tokens_per_dollar", sa.Numeric(14, 4), nullable=False),
        sa.Column("min_cashout", sa.Numeric(12, 2), nullable=False),
        sa.Column("max_cashout_per_transaction", sa.Numeric(12, 2), nullable=False),
        sa.Column("daily_limit_per_customer", sa.Numeric(12, 2), nullable=False),
        sa.Column("daily_limit_per_staff", sa.Numeric(12, 2), nullable=False),
        sa.Column("venue_commission_percent", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="TRUE"),
        sa.Column("effective_from", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("effective_to", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("notes", sa.String(500), nullable=True),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.PrimaryKeyConstraint("config_id"),
    )
    op.create_index(
        "ix_rate_configs_active_effective_from",
        "rate_configs",
        ["is_active", "effective_from"],
        unique=False,
    )
    op.create_index(
        "ix_rate_configs_effective_window",
        "rate_configs",
        ["effective_from", "effective_to"],
        unique=False,
    )
    op.create_index(
        "uq_rate_configs_single_active",
        "rate_configs",
        ["is_active"],
        unique=True,
        postgresql_where=sa.text("is_active"),
    )

    op.create_table(
        "settlement_transactions",
        sa.Column("transaction_id", sa.Integer(), nullable=False),
        sa.Column("reference_id", sa.String(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=False),
        sa.Column(
            "type",
            sa.Enum(
                "cashout",
                "cashout_reversal",
                name="settlement_transaction_type",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column(
            "status",
            sa.Enum(
                "completed",
                "failed",
                name="settlement_transaction_status",
                native_enum=False,
            ),
            nullable=False,
        ),
        sa.Column("token_amount", sa.BigInteger(), nullable=False),
        sa.Column("usd_amount", sa.Numeric(14, 4), nullable=False),
        sa.Column("metadata_version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("store_id", sa.String(), nullable=True),
        sa.Column("staff_id", sa.String(), nullable=True),
        sa.Column("rate_config_id", sa.Integer(), nullable=True),
        sa.Column("exchange_rate_used", sa.Numeric(14, 4), nullable=True),
        sa.Column("commission_percent", sa.Numeric(5, 2), nullable=True),
        sa.Column("venue_commission", sa.Numeric(12, 2), nullable=True),
        sa.Column("cash_to_customer", sa.Numeric(12, 2), nullable=True),
        sa.Column("balance_before", sa.BigInteger(), nullable=True),
        sa.Column("balance_after", sa.BigInteger(), nullable=True),
        sa.Column("notes", sa.String(), nullable=True),
        sa.Column("original_transaction_id", sa.Integer(), nullable=True),
        sa.Column("reversal_transaction_id", sa.Integer(), nullable=True),
        sa.Column("reversed_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("reversed_by", sa.String(), nullable=True),
        sa.Column("reversal_reason", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["customer_id"],
            ["customers.customer_id"],
            ondelete="RESTRICT",
        ),
        sa.ForeignKeyConstraint(["rate_config_id"], ["rate_configs.config_id"]),
        sa.ForeignKeyConstraint(
            ["original_transaction_id"],
            ["settlement_transactions.transaction_id"],
        ),
        sa.ForeignKeyConstraint(
            ["reversal_transaction_id"],
            ["settlement_transactions.transaction_id"],
        ),
        sa.PrimaryKeyConstraint("transaction_id"),
        sa.UniqueConstraint("reference_id"),
    )
    op.create_index(
        "ix_settlement_transactions_customer_created",
        "settlement_transactions",
        ["customer_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_settlement_transactions_staff_created",
        "settlement_transactions",
        ["staff_id", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_settlement_transactions_store_created",
        "settlement_transactions",
        ["store_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "reconciliation_ledger",
        sa.Column("reconciliation_id", sa.Integer(), nullable=False),
        sa.Column("store_id", sa.String(), nullable=False),
        sa.Column("reconciliation_date", sa.Date(), nullable=False),
        sa.Column("venue_gaming_revenue", sa.Numeric(14, 2), nullable=False),
        sa.Column("software_fee_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("expected_software_fee", sa.Numeric(14, 2), nullable=False),
        sa.Column("actual_software_fee", sa.Numeric(14, 2), nullable=True),
        sa.Column("variance", sa.Numeric(14, 2), nullable=True),
        sa.Column("variance_percentage", sa.Numeric(9, 4), nullable=True),
        sa.Column("compliance_score", sa.Integer(), nullable=True),
        sa.Column(
            "reconciliation_status",
            sa.Enum(
                "pending",
                "approved",
                "flagged",
                "resolved",
                name="reconciliation_status",
                native_enum=False,
            ),
            nullable=False,
            server_default="pending",
        ),
        sa.Column(
            "settlement_status",
            sa.Enum(
                "unsettled",
                "payment_sent",
                "partial",
                "settled",
                "disputed",
                name="settlement_status",
                native_enum=False,
            ),
            nullable=False,
            server_default="unsettled",
        ),
        sa.Column("submitted_by", sa.String(), nullable=False),
        sa.Column("submitted_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("approved_by", sa.String(), nullable=True),
        sa.Column("approved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("flagged_reason", sa.String(), nullable=True),
        sa.Column("resolved_by", sa.String(), nullable=True),
        sa.Column("resolved_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("payment_method", sa.String(), nullable=True),
        sa.Column("payment_sent_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("amount_sent", sa.Numeric(14, 2), nullable=True),
        sa.Column("payment_received_at", sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("amount_received", sa.Numeric(14, 2), nullable=True),
        sa.Column("payment_confirmed_by", sa.String(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=False, server_default=""),
        sa.Column("machine_count", sa.Integer(), nullable=True),
        sa.Column("transaction_count", sa.Integer(), nullable=True),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("now()"),
        ),
        sa.ForeignKeyConstraint(
            ["store_id"],
            ["stores.store_id"],
            ondelete="RESTRICT",
        ),
        sa.PrimaryKeyConstraint("reconciliation_id"),
        sa.UniqueConstraint(
            "store_id",
            "reconciliation_date",
            name="uq_reconciliation_ledger_store_date",
        ),
    )
    op.create_index(
        "ix_reconciliation_ledger_status_created",
        "reconciliation_ledger",
        ["reconciliation_status", "created_at"],
        unique=False,
    )
    op.create_index(
        "ix_reconciliation_ledger_store_status",
        "reconciliation_ledger",
        ["store_id", "reconciliation_status"],
        unique=False,
    )
    op.create_index(
        "ix_reconciliation_ledger_compliance_score",
        "reconciliation_ledger",
        ["compliance_score"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_reconciliation_ledger_compliance_score", table_name="reconciliation_ledger")
    op.drop_index("ix_reconciliation_ledger_store_status", table_name="reconciliation_ledger")
    op.drop_index("ix_reconciliation_ledger_status_created", table_name="reconciliation_ledger")
    op.drop_table("reconciliation_ledger")

    op.drop_index("ix_settlement_transactions_store_created", table_name="settlement_transactions")
    op.drop_index("ix_settlement_transactions_staff_created", table_name="settlement_transactions")
    op.drop_index("ix_settlement_transactions_customer_created", table_name="settlement_transactions")
    op.drop_table("settlement_transactions")

    op.drop_index("uq_rate_configs_single_active", table_name="rate_configs")
    op.drop_index("ix_rate_configs_effective_window", table_name="rate_configs")
    op.drop_index("ix_rate_configs_active_effective_from", table_name="rate_configs")
    op.drop_table("rate_configs")

    op.drop_index("ix_stores_status", table_name="stores")
    op.drop_table("stores")

    op.drop_table("customers")
