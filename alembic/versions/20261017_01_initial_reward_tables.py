"""Initial reward tables.

Revision ID: 20261017_01
Revises:
Create Date: 2026-10-17
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20261017_01"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False)]


def upgrade() -> None:
    op.create_table(
        "users",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("email", sa.String(), nullable=False, server_default=""),
        sa.Column("display_name", sa.String(), nullable=False, server_default=""),
        sa.Column("role", sa.String(length=16), nullable=False, server_default="user"),
        sa.Column("membership_tier", sa.String(length=16), nullable=False, server_default="basic"),
        sa.Column("available_spins", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("last_spin_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notifications_enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column("push_token", sa.String(length=256), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.CheckConstraint("available_spins >= 0", name="ck_users_available_spins_non_negative"),
        sa.CheckConstraint("membership_tier IN ('basic','premium')", name="ck_users_membership_tier_valid"),
    )

    op.create_table(
        "merchants",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("logo", sa.String(), nullable=True),
        sa.Column("merchant_type", sa.String(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("geofence_radius", sa.Float(), nullable=False, server_default="0.5"),
        *_timestamps(),
    )

    op.create_table(
        "locations",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("merchant_id", sa.String(length=64), sa.ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("place_id", sa.String(), nullable=True),
        sa.Column("name", sa.String(), nullable=False, server_default=""),
        sa.Column("address", sa.Text(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=False),
        sa.Column("longitude", sa.Float(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_locations_merchant_id", "locations", ["merchant_id"])

    op.create_table(
        "deals",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("merchant_id", sa.String(length=64), sa.ForeignKey("merchants.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(), nullable=False, server_default=""),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("terms", sa.Text(), nullable=True),
        sa.Column("image_url", sa.String(), nullable=True),
        sa.Column("location_ids", sa.JSON(), nullable=False),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_deals_merchant_id", "deals", ["merchant_id"])
    op.create_index("ix_deals_active", "deals", ["active"])

    op.create_table(
        "redemptions",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("deal_id", sa.String(length=64), sa.ForeignKey("deals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("merchant_id", sa.String(length=64), nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=False),
        sa.Column("timestamp", sa.DateTime(timezone=True), nullable=False),
        sa.Column("validity_period", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("device_id", sa.String(length=128), nullable=False, server_default=""),
        sa.Column("redemption_latitude", sa.Float(), nullable=False),
        sa.Column("redemption_longitude", sa.Float(), nullable=False),
        sa.Column("notification_sent", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expired_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expiry_reason", sa.String(length=16), nullable=True),
        sa.CheckConstraint("status IN ('pending','completed','expired')", name="ck_redemptions_status_valid"),
    )
    op.create_index(
        "uq_redemptions_user_deal_pending",
        "redemptions",
        ["user_id", "deal_id"],
        unique=True,
        sqlite_where=sa.text("status = 'pending'"),
        postgresql_where=sa.text("status = 'pending'"),
    )
    op.create_index(
        "uq_redemptions_user_deal_completed",
        "redemptions",
        ["user_id", "deal_id"],
        unique=True,
        sqlite_where=sa.text("status = 'completed'"),
        postgresql_where=sa.text("status = 'completed'"),
    )
    op.create_index("ix_redemptions_user_timestamp", "redemptions", ["user_id", "timestamp"])

    op.create_table(
        "spins",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("merchant_id", sa.String(length=64), nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=False),
        sa.Column("won", sa.Boolean(), nullable=False),
        sa.Column("deal_id", sa.String(length=64), sa.ForeignKey("deals.id", ondelete="SET NULL"), nullable=True),
        sa.Column(
            "redemption_id",
            sa.String(length=64),
            sa.ForeignKey("redemptions.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_spins_user_created", "spins", ["user_id", "created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.String(length=64), primary_key=True),
        sa.Column("user_id", sa.String(length=64), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="pending"),
        sa.Column("identifier", sa.String(length=128), nullable=True),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        *_timestamps(),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")
    op.drop_index("ix_spins_user_created", table_name="spins")
    op.drop_table("spins")
    op.drop_index("ix_redemptions_user_timestamp", table_name="redemptions")
    op.drop_index("uq_redemptions_user_deal_completed", table_name="redemptions")
    op.drop_index("uq_redemptions_user_deal_pending", table_name="redemptions")
    op.drop_table("redemptions")
    op.drop_index("ix_deals_active", table_name="deals")
    op.drop_index("ix_deals_merchant_id", table_name="deals")
    op.drop_table("deals")
    op.drop_index("ix_locations_merchant_id", table_name="locations")
    op.drop_table("locations")
    op.drop_table("merchants")
    op.drop_table("users")
