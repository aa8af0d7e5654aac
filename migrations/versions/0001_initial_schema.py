"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-17 09:00:00

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

ACTIVE = "status IN ('CREATED', 'LOADED', 'IN_TRANSIT')"

# Enum types are created once up front; several tables share them
trip_status = postgresql.ENUM(
    "CREATED", "LOADED", "IN_TRANSIT", "REACHED", "COMPLETED", "CANCELLED",
    name="trip_status_enum", create_type=False,
)
trip_event_type = postgresql.ENUM(
    "TRIP_CREATED", "LOAD_COMPLETED", "IN_TRANSIT", "REACHED",
    "TRIP_COMPLETED", "TRIP_CANCELLED", "DRIVER_CHANGED", "TRUCK_CHANGED",
    name="trip_event_type_enum", create_type=False,
)
quantity_unit = postgresql.ENUM(
    "KG", "BAG", "TON", "CRATE", "BOX", "OTHER",
    name="quantity_unit_enum", create_type=False,
)
entry_direction = postgresql.ENUM(
    "DEBIT", "CREDIT", name="entry_direction_enum", create_type=False,
)
reference_type = postgresql.ENUM(
    "INVOICE", "PAYMENT", name="reference_type_enum", create_type=False,
)
invoice_status = postgresql.ENUM(
    "OPEN", "PAID", "VOID", name="invoice_status_enum", create_type=False,
)
payment_tag = postgresql.ENUM(
    "ADVANCE", "PARTIAL", "FINAL", "DUE", "OTHER",
    name="payment_tag_enum", create_type=False,
)
driver_payment_payer = postgresql.ENUM(
    "SOURCE", "DESTINATION", "SPLIT",
    name="driver_payment_payer_enum", create_type=False,
)
driver_payment_status = postgresql.ENUM(
    "PENDING", "PARTIALLY_PAID", "PAID",
    name="driver_payment_status_enum", create_type=False,
)

ENUMS = (
    trip_status, trip_event_type, quantity_unit, entry_direction,
    reference_type, invoice_status, payment_tag, driver_payment_payer,
    driver_payment_status,
)


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ENUMS:
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "drivers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "org_id", sa.Integer(),
            sa.ForeignKey("organizations.id"), nullable=False,
        ),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("phone", sa.String(20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_drivers_org_id", "drivers", ["org_id"])

    op.create_table(
        "trucks",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "org_id", sa.Integer(),
            sa.ForeignKey("organizations.id"), nullable=False,
        ),
        sa.Column(
            "registration_number", sa.String(20),
            nullable=False, unique=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_trucks_org_id", "trucks", ["org_id"])

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column(
            "source_org_id", sa.Integer(),
            sa.ForeignKey("organizations.id"), nullable=False,
        ),
        sa.Column(
            "destination_org_id", sa.Integer(),
            sa.ForeignKey("organizations.id"), nullable=True,
        ),
        sa.Column("receiver_phone", sa.String(20), nullable=True),
        sa.Column(
            "driver_id", sa.Integer(),
            sa.ForeignKey("drivers.id"), nullable=False,
        ),
        sa.Column(
            "truck_id", sa.Integer(),
            sa.ForeignKey("trucks.id"), nullable=False,
        ),
        sa.Column("status", trip_status, nullable=False),
        sa.Column("start_point", sa.String(255), nullable=False),
        sa.Column("end_point", sa.String(255), nullable=False),
        sa.Column("source_address", sa.JSON(), nullable=True),
        sa.Column("destination_address", sa.JSON(), nullable=True),
        sa.Column("estimated_distance_km", sa.Numeric(10, 2), nullable=True),
        sa.Column("estimated_arrival", sa.DateTime(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_by_user_id", sa.String(64), nullable=False),
        sa.Column("cancel_reason", sa.String(500), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_by_user_id", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "(destination_org_id IS NULL) <> (receiver_phone IS NULL)",
            name="ck_trips_single_destination",
        ),
    )
    op.create_index("ix_trips_source_org_id", "trips", ["source_org_id"])
    op.create_index(
        "ix_trips_destination_org_id", "trips", ["destination_org_id"]
    )
    op.create_index("ix_trips_status", "trips", ["status"])
    op.create_index(
        "uq_trips_active_driver", "trips", ["driver_id"],
        unique=True, postgresql_where=sa.text(ACTIVE),
    )
    op.create_index(
        "uq_trips_active_truck", "trips", ["truck_id"],
        unique=True, postgresql_where=sa.text(ACTIVE),
    )

    op.create_table(
        "trip_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "trip_id", sa.Integer(),
            sa.ForeignKey("trips.id"), nullable=False,
        ),
        sa.Column("event_type", trip_event_type, nullable=False),
        sa.Column("description", sa.String(500), nullable=False),
        sa.Column("actor_user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_trip_events_trip_id", "trip_events", ["trip_id"])

    op.create_table(
        "load_cards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "trip_id", sa.Integer(),
            sa.ForeignKey("trips.id"), nullable=False, unique=True,
        ),
        sa.Column("evidence_ids", sa.JSON(), nullable=False),
        sa.Column("remarks", sa.String(500), nullable=True),
        sa.Column("created_by_user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "load_card_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "load_card_id", sa.Integer(),
            sa.ForeignKey("load_cards.id"), nullable=False,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", quantity_unit, nullable=False),
        sa.Column("rate", sa.BigInteger(), nullable=True),
        sa.Column("grade", sa.String(50), nullable=True),
    )
    op.create_index(
        "ix_load_card_items_load_card_id", "load_card_items", ["load_card_id"]
    )

    op.create_table(
        "receive_cards",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "trip_id", sa.Integer(),
            sa.ForeignKey("trips.id"), nullable=False, unique=True,
        ),
        sa.Column("evidence_ids", sa.JSON(), nullable=False),
        sa.Column("remarks", sa.String(500), nullable=True),
        sa.Column("created_by_user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "receive_card_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "receive_card_id", sa.Integer(),
            sa.ForeignKey("receive_cards.id"), nullable=False,
        ),
        sa.Column(
            "load_item_id", sa.Integer(),
            sa.ForeignKey("load_card_items.id"), nullable=False, unique=True,
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("quantity", sa.Numeric(14, 3), nullable=False),
        sa.Column("unit", quantity_unit, nullable=False),
        sa.Column("shortage", sa.Numeric(14, 3), nullable=False),
    )
    op.create_index(
        "ix_receive_card_items_receive_card_id",
        "receive_card_items", ["receive_card_id"],
    )

    op.create_table(
        "driver_payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "trip_id", sa.Integer(),
            sa.ForeignKey("trips.id"), nullable=False, unique=True,
        ),
        sa.Column("total_amount", sa.BigInteger(), nullable=False),
        sa.Column("paid_by", driver_payment_payer, nullable=False),
        sa.Column("split_source_amount", sa.BigInteger(), nullable=True),
        sa.Column("split_dest_amount", sa.BigInteger(), nullable=True),
        sa.Column("paid_amount", sa.BigInteger(), nullable=False),
        sa.Column("status", driver_payment_status, nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("remarks", sa.String(255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "owner_org_id", sa.Integer(),
            sa.ForeignKey("organizations.id"), nullable=False,
        ),
        sa.Column(
            "counterparty_org_id", sa.Integer(),
            sa.ForeignKey("organizations.id"), nullable=False,
        ),
        sa.Column("balance", sa.BigInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "owner_org_id", "counterparty_org_id",
            name="uq_accounts_owner_counterparty",
        ),
    )
    op.create_index("ix_accounts_owner_org_id", "accounts", ["owner_org_id"])
    op.create_index(
        "ix_accounts_counterparty_org_id", "accounts", ["counterparty_org_id"]
    )

    op.create_table(
        "ledger_entries",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("accounts.id"), nullable=False,
        ),
        sa.Column("direction", entry_direction, nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("balance_after", sa.BigInteger(), nullable=False),
        sa.Column("reference_type", reference_type, nullable=False),
        sa.Column("reference_id", sa.Integer(), nullable=False),
        sa.Column("description", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index(
        "ix_ledger_entries_account_id", "ledger_entries", ["account_id"]
    )
    op.create_index(
        "ix_ledger_entries_reference_id", "ledger_entries", ["reference_id"]
    )

    op.create_table(
        "invoices",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("accounts.id"), nullable=False,
        ),
        sa.Column("invoice_number", sa.String(64), nullable=False),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("description", sa.String(255), nullable=True),
        sa.Column("due_date", sa.DateTime(), nullable=True),
        sa.Column(
            "trip_id", sa.Integer(),
            sa.ForeignKey("trips.id"), nullable=True,
        ),
        sa.Column("status", invoice_status, nullable=False),
        sa.Column("void_reason", sa.String(255), nullable=True),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.Column("created_by_user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint(
            "account_id", "invoice_number",
            name="uq_invoices_account_number",
        ),
    )
    op.create_index("ix_invoices_account_id", "invoices", ["account_id"])
    op.create_index("ix_invoices_trip_id", "invoices", ["trip_id"])

    op.create_table(
        "payments",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("external_id", sa.Uuid(), nullable=False, unique=True),
        sa.Column(
            "account_id", sa.Integer(),
            sa.ForeignKey("accounts.id"), nullable=False,
        ),
        sa.Column("amount", sa.BigInteger(), nullable=False),
        sa.Column("tag", payment_tag, nullable=False),
        sa.Column("method", sa.String(50), nullable=False),
        sa.Column("reference", sa.String(100), nullable=True),
        sa.Column("remarks", sa.String(255), nullable=True),
        sa.Column("is_void", sa.Boolean(), nullable=False),
        sa.Column("void_reason", sa.String(255), nullable=True),
        sa.Column("voided_at", sa.DateTime(), nullable=True),
        sa.Column("created_by_user_id", sa.String(64), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_payments_account_id", "payments", ["account_id"])


def downgrade() -> None:
    op.drop_table("payments")
    op.drop_table("invoices")
    op.drop_table("ledger_entries")
    op.drop_table("accounts")
    op.drop_table("driver_payments")
    op.drop_table("receive_card_items")
    op.drop_table("receive_cards")
    op.drop_table("load_card_items")
    op.drop_table("load_cards")
    op.drop_table("trip_events")
    op.drop_table("trips")
    op.drop_table("trucks")
    op.drop_table("drivers")
    op.drop_table("organizations")

    bind = op.get_bind()
    for enum_type in reversed(ENUMS):
        enum_type.drop(bind, checkfirst=True)
