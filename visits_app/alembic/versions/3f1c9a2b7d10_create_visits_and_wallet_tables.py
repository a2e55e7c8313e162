"""create visits and wallet tables

Revision ID: 3f1c9a2b7d10
Revises:
Create Date: 2026-10-17 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID


# revision identifiers, used by Alembic.
revision: str = "3f1c9a2b7d10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


MONEY = sa.Numeric(12, 2)

user_role = sa.Enum("CUSTOMER", "AGENT", "ADMIN", "QUALITY", name="userrole", native_enum=False)
agent_status = sa.Enum(
    "PENDING", "APPROVED", "REJECTED", name="agentapprovalstatus", native_enum=False
)
appointment_status = sa.Enum(
    "PENDING",
    "ACCEPTED",
    "CONFIRMED",
    "COMPLETED",
    "EXPIRED",
    "CANCELLED",
    "REJECTED",
    name="appointmentstatus",
    native_enum=False,
)
payment_status = sa.Enum(
    "PENDING", "COMPLETED", "FAILED", name="paymentstatus", native_enum=False
)
payment_method = sa.Enum(
    "MANUAL", "BANK_TRANSFER", name="paymentmethod", native_enum=False
)
transaction_type = sa.Enum(
    "EARNING", "PAYOUT", name="wallettransactiontype", native_enum=False
)
notification_type = sa.Enum(
    "SYSTEM",
    "APPOINTMENT_REMINDER",
    "AGENT_NEW_REGISTRATION",
    "AGENT_APPROVED",
    "AGENT_REJECTED",
    "WALLET",
    name="notificationtype",
    native_enum=False,
)
notification_channel = sa.Enum(
    "IN_APP", "EMAIL", name="notificationchannel", native_enum=False
)
notification_status = sa.Enum(
    "PENDING", "DELIVERED", "FAILED", name="notificationstatus", native_enum=False
)
event_type = sa.Enum(
    "APPOINTMENT_CREATED",
    "APPOINTMENT_ASSIGNED",
    "APPOINTMENT_STATUS_CHANGED",
    "COMMISSION_CREDITED",
    "PAYOUT_PROCESSED",
    "VISIT_AMOUNT_UPDATED",
    "AGENT_REGISTERED",
    "AGENT_REVIEWED",
    name="domaineventtype",
    native_enum=False,
)
event_status = sa.Enum(
    "PENDING",
    "DISPATCHING",
    "DISPATCHED",
    "FAILED",
    name="domaineventstatus",
    native_enum=False,
)


def _id():
    return sa.Column("id", UUID(as_uuid=True), primary_key=True)


def upgrade():
    op.create_table(
        "users",
        _id(),
        sa.Column("full_name", sa.String(255), nullable=False),
        sa.Column("email", sa.String(255), nullable=False, unique=True),
        sa.Column("phone_number", sa.String(20), nullable=True),
        sa.Column("role", user_role, nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "cities",
        _id(),
        sa.Column("name", sa.String(120), nullable=False, unique=True),
    )

    op.create_table(
        "areas",
        _id(),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column(
            "city_id",
            UUID(as_uuid=True),
            sa.ForeignKey("cities.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.UniqueConstraint("city_id", "name", name="uq_area_city_name"),
    )
    op.create_index("ix_areas_city_id", "areas", ["city_id"])

    op.create_table(
        "agents",
        _id(),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("status", agent_status, nullable=False),
        sa.Column("kyc_notes", sa.Text(), nullable=True),
        sa.Column("visit_amount", MONEY, nullable=True),
        sa.Column("wallet_balance", MONEY, nullable=True),
        sa.Column("total_earned", MONEY, nullable=True),
        sa.Column("total_paid", MONEY, nullable=True),
        sa.Column("completed_appointments", sa.Integer(), nullable=True),
        sa.Column("total_transactions", sa.Integer(), nullable=True),
        sa.Column("last_payout_date", sa.DateTime(), nullable=True),
        sa.Column(
            "updated_by_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_agents_status", "agents", ["status"])

    op.create_table(
        "agent_cities",
        sa.Column(
            "agent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "city_id",
            UUID(as_uuid=True),
            sa.ForeignKey("cities.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )
    op.create_table(
        "agent_areas",
        sa.Column(
            "agent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column(
            "area_id",
            UUID(as_uuid=True),
            sa.ForeignKey("areas.id", ondelete="CASCADE"),
            primary_key=True,
        ),
    )

    op.create_table(
        "properties",
        _id(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("address", sa.String(255), nullable=True),
        sa.Column(
            "city_id", UUID(as_uuid=True), sa.ForeignKey("cities.id"), nullable=False
        ),
        sa.Column("area_id", UUID(as_uuid=True), sa.ForeignKey("areas.id"), nullable=True),
        sa.Column("owner_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_properties_city_id", "properties", ["city_id"])
    op.create_index("ix_properties_area_id", "properties", ["area_id"])

    op.create_table(
        "appointments",
        _id(),
        sa.Column(
            "property_id",
            UUID(as_uuid=True),
            sa.ForeignKey("properties.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "customer_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("agent_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("appointment_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", appointment_status, nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_appointments_property_id", "appointments", ["property_id"])
    op.create_index("ix_appointments_customer_id", "appointments", ["customer_id"])
    op.create_index("ix_appointments_agent_id", "appointments", ["agent_id"])
    op.create_index("ix_appointments_appointment_date", "appointments", ["appointment_date"])
    op.create_index("ix_appointments_status", "appointments", ["status"])
    op.create_index(
        "ix_appointments_customer_property_date",
        "appointments",
        ["customer_id", "property_id", "appointment_date"],
    )

    op.create_table(
        "appointment_status_history",
        _id(),
        sa.Column(
            "appointment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("appointments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("old_status", appointment_status, nullable=False),
        sa.Column("new_status", appointment_status, nullable=False),
        sa.Column("changed_by", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("changed_at", sa.DateTime(), nullable=True),
    )
    op.create_index(
        "ix_appointment_status_history_appointment_id",
        "appointment_status_history",
        ["appointment_id"],
    )

    op.create_table(
        "agent_appointment_requests",
        _id(),
        sa.Column(
            "appointment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("appointments.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "agent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", appointment_status, nullable=False),
        sa.Column("responded_at", sa.DateTime(), nullable=True),
        sa.Column("is_commission_added", sa.Boolean(), nullable=True),
        sa.Column("commission_amount", MONEY, nullable=True),
        sa.Column("commission_added_at", sa.DateTime(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.UniqueConstraint(
            "appointment_id", "agent_id", name="uq_request_appointment_agent"
        ),
    )
    op.create_index(
        "ix_agent_appointment_requests_appointment_id",
        "agent_appointment_requests",
        ["appointment_id"],
    )
    op.create_index(
        "ix_agent_appointment_requests_agent_id",
        "agent_appointment_requests",
        ["agent_id"],
    )
    op.create_index(
        "ix_agent_appointment_requests_status",
        "agent_appointment_requests",
        ["status"],
    )

    op.create_table(
        "agent_earnings",
        _id(),
        sa.Column(
            "agent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("type", sa.String(50), nullable=True),
        sa.Column(
            "agent_appointment_request_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agent_appointment_requests.id"),
            nullable=True,
            unique=True,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("added_by_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_agent_earnings_agent_id", "agent_earnings", ["agent_id"])

    op.create_table(
        "agent_payments",
        _id(),
        sa.Column(
            "agent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("status", payment_status, nullable=False),
        sa.Column("payment_method", payment_method, nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column(
            "processed_by_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column("balance_before", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_agent_payments_agent_id", "agent_payments", ["agent_id"])
    op.create_index("ix_agent_payments_status", "agent_payments", ["status"])

    op.create_table(
        "wallet_transactions",
        _id(),
        sa.Column(
            "agent_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agents.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("status", payment_status, nullable=True),
        sa.Column("transaction_type", transaction_type, nullable=False),
        sa.Column("amount", MONEY, nullable=False),
        sa.Column("balance_before", MONEY, nullable=False),
        sa.Column("balance_after", MONEY, nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "processed_by_id", UUID(as_uuid=True), sa.ForeignKey("users.id"), nullable=True
        ),
        sa.Column(
            "appointment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("appointments.id"),
            nullable=True,
        ),
        sa.Column(
            "agent_appointment_request_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agent_appointment_requests.id"),
            nullable=True,
        ),
        sa.Column(
            "agent_payment_id",
            UUID(as_uuid=True),
            sa.ForeignKey("agent_payments.id"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_wallet_transactions_agent_id", "wallet_transactions", ["agent_id"])
    op.create_index(
        "ix_wallet_transactions_transaction_type",
        "wallet_transactions",
        ["transaction_type"],
    )
    op.create_index(
        "ix_wallet_transactions_created_at", "wallet_transactions", ["created_at"]
    )

    op.create_table(
        "notifications",
        _id(),
        sa.Column(
            "user_id",
            UUID(as_uuid=True),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("channel", notification_channel, nullable=True),
        sa.Column("status", notification_status, nullable=True),
        sa.Column("related_id", UUID(as_uuid=True), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])

    op.create_table(
        "domain_events",
        _id(),
        sa.Column("event_type", event_type, nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("status", event_status, nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("claimed_at", sa.DateTime(), nullable=True),
        sa.Column("notified_at", sa.DateTime(), nullable=True),
        sa.Column("dispatched_at", sa.DateTime(), nullable=True),
    )
    op.create_index("ix_domain_events_status", "domain_events", ["status"])
    op.create_index("ix_domain_events_created_at", "domain_events", ["created_at"])


def downgrade():
    op.drop_table("domain_events")
    op.drop_table("notifications")
    op.drop_table("wallet_transactions")
    op.drop_table("agent_payments")
    op.drop_table("agent_earnings")
    op.drop_table("agent_appointment_requests")
    op.drop_table("appointment_status_history")
    op.drop_table("appointments")
    op.drop_table("properties")
    op.drop_table("agent_areas")
    op.drop_table("agent_cities")
    op.drop_table("agents")
    op.drop_table("areas")
    op.drop_table("cities")
    op.drop_table("users")
