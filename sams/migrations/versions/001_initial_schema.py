"""Initial schema: clients, billing, transactions, credit and audit tables.

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


BILL_STATUS = sa.Enum("UNPAID", "PARTIAL", "PAID", name="billstatus")


def upgrade() -> None:
    # Create clients table
    op.create_table(
        "clients",
        *_timestamps(),
        sa.Column("code", sa.String(20), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("fiscal_year_start_month", sa.Integer(), nullable=False),
        sa.Column("dues_frequency", sa.String(20), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_clients_code", "clients", ["code"], unique=True)

    # Create units table
    op.create_table(
        "units",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("unit_code", sa.String(50), nullable=False),
        sa.Column("owner_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("monthly_dues", sa.Numeric(12, 2), nullable=False),
        sa.Column("percent_owned", sa.Numeric(8, 6), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "unit_code", name="uq_unit_client_code"),
    )
    op.create_index("ix_units_client_id", "units", ["client_id"])
    op.create_index("idx_unit_client_code", "units", ["client_id", "unit_code"])

    # Create accounts table
    op.create_table(
        "accounts",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("account_type", sa.String(50), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "name", name="uq_account_client_name"),
    )
    op.create_index("ix_accounts_client_id", "accounts", ["client_id"])

    # Create billing_configs table
    op.create_table(
        "billing_configs",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("module", sa.Enum("HOA", "WATER", name="billingmodule"), nullable=False),
        sa.Column("penalty_rate", sa.Numeric(6, 4), nullable=False),
        sa.Column("penalty_days", sa.Integer(), nullable=False),
        sa.Column("rate_per_m3", sa.Numeric(10, 2), nullable=True),
        sa.Column("minimum_charge", sa.Numeric(10, 2), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "module", name="uq_billing_config_module"),
    )
    op.create_index("ix_billing_configs_client_id", "billing_configs", ["client_id"])

    # Create transactions table
    op.create_table(
        "transactions",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=True),
        sa.Column("transaction_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("transaction_type", sa.String(20), nullable=False),
        sa.Column("category_id", sa.String(100), nullable=True),
        sa.Column("category_name", sa.String(255), nullable=True),
        sa.Column("vendor_name", sa.String(255), nullable=True),
        sa.Column("account_name", sa.String(255), nullable=True),
        sa.Column("payment_method", sa.String(100), nullable=True),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.Column("description", sa.String(500), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("legacy_sequence", sa.String(50), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_transactions_client_id", "transactions", ["client_id"])
    op.create_index("ix_transactions_unit_id", "transactions", ["unit_id"])
    op.create_index("ix_transactions_transaction_date", "transactions", ["transaction_date"])
    op.create_index("ix_transactions_legacy_sequence", "transactions", ["legacy_sequence"])
    op.create_index(
        "idx_transaction_client_date", "transactions", ["client_id", "transaction_date"]
    )

    # Create transaction_allocations table
    op.create_table(
        "transaction_allocations",
        *_timestamps(),
        sa.Column("transaction_id", sa.Integer(), nullable=False),
        sa.Column("allocation_id", sa.String(20), nullable=False),
        sa.Column("allocation_type", sa.String(50), nullable=False),
        sa.Column("target_id", sa.String(100), nullable=True),
        sa.Column("target_name", sa.String(255), nullable=True),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("category_id", sa.String(100), nullable=True),
        sa.Column("category_name", sa.String(255), nullable=True),
        sa.Column("data", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_transaction_allocations_transaction_id", "transaction_allocations", ["transaction_id"]
    )

    # Create water_readings table
    op.create_table(
        "water_readings",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("month_index", sa.Integer(), nullable=False),
        sa.Column("reading", sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "client_id", "unit_id", "fiscal_year", "month_index", name="uq_water_reading_period"
        ),
    )
    op.create_index("ix_water_readings_client_id", "water_readings", ["client_id"])
    op.create_index("ix_water_readings_unit_id", "water_readings", ["unit_id"])
    op.create_index(
        "idx_water_reading_period", "water_readings", ["client_id", "fiscal_year", "month_index"]
    )

    # Create water_bills table
    op.create_table(
        "water_bills",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("month_index", sa.Integer(), nullable=False),
        sa.Column("bill_date", sa.Date(), nullable=False),
        sa.Column("due_date", sa.Date(), nullable=False),
        sa.Column("prior_reading", sa.Numeric(12, 2), nullable=False),
        sa.Column("current_reading", sa.Numeric(12, 2), nullable=False),
        sa.Column("consumption", sa.Numeric(12, 2), nullable=False),
        sa.Column("current_charge", sa.Numeric(12, 2), nullable=False),
        sa.Column("penalty_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("base_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("penalty_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("paid_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", BILL_STATUS, nullable=False),
        sa.Column("last_penalty_update", sa.Date(), nullable=True),
        sa.Column("last_payment_date", sa.Date(), nullable=True),
        sa.Column("last_transaction_id", sa.Integer(), nullable=True),
        sa.Column("config_snapshot", sa.JSON(), nullable=True),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "client_id", "unit_id", "fiscal_year", "month_index", name="uq_water_bill_period"
        ),
    )
    op.create_index("ix_water_bills_client_id", "water_bills", ["client_id"])
    op.create_index("ix_water_bills_unit_id", "water_bills", ["unit_id"])
    op.create_index("ix_water_bills_status", "water_bills", ["status"])
    op.create_index(
        "idx_water_bill_period", "water_bills", ["client_id", "fiscal_year", "month_index"]
    )
    op.create_index("idx_water_bill_unit_status", "water_bills", ["unit_id", "status"])

    # Create hoa_dues_years table
    op.create_table(
        "hoa_dues_years",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("fiscal_year", sa.Integer(), nullable=False),
        sa.Column("scheduled_amount", sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "unit_id", "fiscal_year", name="uq_hoa_dues_year"),
    )
    op.create_index("ix_hoa_dues_years_client_id", "hoa_dues_years", ["client_id"])
    op.create_index("ix_hoa_dues_years_unit_id", "hoa_dues_years", ["unit_id"])

    # Create hoa_dues_months table
    op.create_table(
        "hoa_dues_months",
        *_timestamps(),
        sa.Column("dues_year_id", sa.Integer(), nullable=False),
        sa.Column("month_index", sa.Integer(), nullable=False),
        sa.Column("base_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("penalty_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("penalty_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", BILL_STATUS, nullable=False),
        sa.Column("paid_date", sa.Date(), nullable=True),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("last_transaction_id", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["dues_year_id"], ["hoa_dues_years.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dues_year_id", "month_index", name="uq_hoa_dues_month"),
    )
    op.create_index("ix_hoa_dues_months_dues_year_id", "hoa_dues_months", ["dues_year_id"])

    # Create bill_payments table
    op.create_table(
        "bill_payments",
        *_timestamps(),
        sa.Column("transaction_id", sa.Integer(), nullable=False),
        sa.Column("module", sa.String(20), nullable=False),
        sa.Column("water_bill_id", sa.Integer(), nullable=True),
        sa.Column("hoa_month_id", sa.Integer(), nullable=True),
        sa.Column("payment_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("base_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("penalty_paid", sa.Numeric(12, 2), nullable=False),
        sa.Column("payment_method", sa.String(100), nullable=True),
        sa.Column("reference", sa.String(255), nullable=True),
        sa.ForeignKeyConstraint(["transaction_id"], ["transactions.id"]),
        sa.ForeignKeyConstraint(["water_bill_id"], ["water_bills.id"]),
        sa.ForeignKeyConstraint(["hoa_month_id"], ["hoa_dues_months.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bill_payments_transaction_id", "bill_payments", ["transaction_id"])
    op.create_index("ix_bill_payments_water_bill_id", "bill_payments", ["water_bill_id"])
    op.create_index("ix_bill_payments_hoa_month_id", "bill_payments", ["hoa_month_id"])
    op.create_index("idx_bill_payment_module", "bill_payments", ["module", "transaction_id"])

    # Create credit_balances table
    op.create_table(
        "credit_balances",
        *_timestamps(),
        sa.Column("client_id", sa.Integer(), nullable=False),
        sa.Column("unit_id", sa.Integer(), nullable=False),
        sa.Column("balance", sa.Numeric(12, 2), nullable=False),
        sa.ForeignKeyConstraint(["client_id"], ["clients.id"]),
        sa.ForeignKeyConstraint(["unit_id"], ["units.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("client_id", "unit_id", name="uq_credit_balance_unit"),
    )
    op.create_index("ix_credit_balances_client_id", "credit_balances", ["client_id"])
    op.create_index("ix_credit_balances_unit_id", "credit_balances", ["unit_id"])

    # Create credit_balance_entries table
    op.create_table(
        "credit_balance_entries",
        *_timestamps(),
        sa.Column("credit_balance_id", sa.Integer(), nullable=False),
        sa.Column("entry_date", sa.Date(), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("balance_after", sa.Numeric(12, 2), nullable=False),
        sa.Column("transaction_id", sa.Integer(), nullable=True),
        sa.Column("note", sa.String(500), nullable=True),
        sa.Column("source", sa.String(50), nullable=False),
        sa.ForeignKeyConstraint(
            ["credit_balance_id"], ["credit_balances.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_credit_balance_entries_credit_balance_id",
        "credit_balance_entries",
        ["credit_balance_id"],
    )
    op.create_index(
        "ix_credit_balance_entries_transaction_id", "credit_balance_entries", ["transaction_id"]
    )

    # Create audit_logs table
    op.create_table(
        "audit_logs",
        *_timestamps(),
        sa.Column("entity_type", sa.String(50), nullable=False),
        sa.Column("entity_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(50), nullable=False),
        sa.Column("actor", sa.String(255), nullable=True),
        sa.Column("changes", sa.JSON(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )


def downgrade() -> None:
    op.drop_table("audit_logs")
    op.drop_table("credit_balance_entries")
    op.drop_table("credit_balances")
    op.drop_table("bill_payments")
    op.drop_table("hoa_dues_months")
    op.drop_table("hoa_dues_years")
    op.drop_table("water_bills")
    op.drop_table("water_readings")
    op.drop_table("transaction_allocations")
    op.drop_table("transactions")
    op.drop_table("billing_configs")
    op.drop_table("accounts")
    op.drop_table("units")
    op.drop_table("clients")
    sa.Enum(name="billstatus").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="billingmodule").drop(op.get_bind(), checkfirst=True)
