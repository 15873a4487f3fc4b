"""create users, resources, reservations and notifications

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


user_role = sa.Enum("admin", "lecturer", "student", name="user_role")
resource_type = sa.Enum("classroom", "laboratory", "equipment", "facility", "other", name="resource_type")
reservation_status = sa.Enum(
    "pending", "approved", "rejected", "cancelled", "completed", name="reservation_status"
)
notification_type = sa.Enum(
    "resource_booking",
    "resource_approval",
    "resource_rejection",
    "resource_available",
    "system",
    name="notification_type",
)
notification_priority = sa.Enum("low", "medium", "high", name="notification_priority")


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("department", sa.String(length=200), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "resources",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("type", resource_type, nullable=False, server_default="classroom"),
        sa.Column("building", sa.String(length=200), nullable=False),
        sa.Column("floor", sa.String(length=50), nullable=False),
        sa.Column("room_number", sa.String(length=50), nullable=True),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("features", sa.JSON(), nullable=False),
        sa.Column("availability", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("reservation_requires_approval", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("allowed_roles", sa.JSON(), nullable=False),
        sa.Column("created_by_id", sa.String(length=36), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_resources_name", "resources", ["name"], unique=True)
    op.create_index("ix_resources_type_building_floor", "resources", ["type", "building", "floor"], unique=False)

    op.create_table(
        "reservations",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("resource_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("purpose", sa.Text(), nullable=False),
        sa.Column("start_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("attendees_count", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("status", reservation_status, nullable=False, server_default="pending"),
        sa.Column("approved_by_id", sa.String(length=36), nullable=True),
        sa.Column("approval_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("is_recurring", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("recurrence_pattern", sa.JSON(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint("start_time < end_time", name="ck_reservations_window_order"),
    )
    op.create_index("ix_reservations_resource_id", "reservations", ["resource_id"], unique=False)
    op.create_index(
        "ix_reservations_resource_window",
        "reservations",
        ["resource_id", "start_time", "end_time"],
        unique=False,
    )
    op.create_index("ix_reservations_user_status", "reservations", ["user_id", "status"], unique=False)

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=36), primary_key=True, nullable=False),
        sa.Column("user_id", sa.String(length=36), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", notification_type, nullable=False, server_default="system"),
        sa.Column("priority", notification_priority, nullable=False, server_default="medium"),
        sa.Column("related_entity_type", sa.String(length=50), nullable=True),
        sa.Column("related_entity_id", sa.String(length=36), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index(
        "ix_notifications_related",
        "notifications",
        ["related_entity_type", "related_entity_id"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_notifications_related", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_reservations_user_status", table_name="reservations")
    op.drop_index("ix_reservations_resource_window", table_name="reservations")
    op.drop_index("ix_reservations_resource_id", table_name="reservations")
    op.drop_table("reservations")
    op.drop_index("ix_resources_type_building_floor", table_name="resources")
    op.drop_index("ix_resources_name", table_name="resources")
    op.drop_table("resources")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
    for enum_type in (notification_priority, notification_type, reservation_status, resource_type, user_role):
        enum_type.drop(op.get_bind(), checkfirst=True)
