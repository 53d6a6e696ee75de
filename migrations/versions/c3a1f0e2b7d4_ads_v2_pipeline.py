"""ads v2 pipeline: ads, subtype tables, favorites, idempotency and outbox

Revision ID: c3a1f0e2b7d4
Revises:
Create Date: 2026-03-02 09:40:00.000000
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "c3a1f0e2b7d4"
down_revision = None
branch_labels = None
depends_on = None


def _table_exists(bind, table_name: str) -> bool:
    try:
        return sa.inspect(bind).has_table(table_name)
    except Exception:
        return False


def _false():
    return sa.text("false")


def _vehicle_columns() -> list[sa.Column]:
    return [
        sa.Column("vehicle_type", sa.String(length=32), nullable=False),
        sa.Column("manufacturer_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("model_id", sa.String(length=64), nullable=False, index=True),
        sa.Column("variant_id", sa.String(length=64), nullable=True),
        sa.Column("year", sa.Integer(), nullable=True, index=True),
        sa.Column("mileage", sa.Integer(), nullable=True),
        sa.Column("transmission_type_id", sa.String(length=64), nullable=True, index=True),
        sa.Column("fuel_type_id", sa.String(length=64), nullable=True, index=True),
        sa.Column("color", sa.String(length=40), nullable=True),
        sa.Column("is_first_owner", sa.Boolean(), nullable=False, server_default=_false()),
        sa.Column("has_insurance", sa.Boolean(), nullable=False, server_default=_false()),
        sa.Column("has_rc_book", sa.Boolean(), nullable=False, server_default=_false()),
        sa.Column("additional_features_json", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    ]


def _ad_fk() -> sa.Column:
    return sa.Column(
        "ad_id",
        sa.Integer(),
        sa.ForeignKey("ads.id", ondelete="CASCADE"),
        primary_key=True,
    )


def upgrade():
    bind = op.get_bind()

    if not _table_exists(bind, "users"):
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(length=120), nullable=False, server_default=""),
            sa.Column("email", sa.String(length=255), nullable=False, unique=True, index=True),
            sa.Column("phone", sa.String(length=32), nullable=True, unique=True, index=True),
            sa.Column("profile_image_url", sa.String(length=1024), nullable=True),
            sa.Column("role", sa.String(length=32), nullable=False, server_default="user"),
            sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "ads"):
        op.create_table(
            "ads",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
            sa.Column("owner_type", sa.String(length=32), nullable=False, server_default="user"),
            sa.Column("category", sa.String(length=32), nullable=False, index=True),
            sa.Column("title", sa.String(length=200), nullable=False, server_default=""),
            sa.Column("description", sa.Text(), nullable=False),
            sa.Column("price", sa.Float(), nullable=False, server_default="0", index=True),
            sa.Column("images_json", sa.Text(), nullable=True),
            sa.Column("link", sa.String(length=1024), nullable=True),
            sa.Column("location", sa.String(length=255), nullable=False, server_default=""),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.text("true")),
            sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("sold_out", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("view_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(), nullable=False, index=True),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
        )
        op.create_index("ix_ads_visibility", "ads", ["is_active", "is_approved", "is_deleted"])
        op.create_index("ix_ads_category_location", "ads", ["category", "location"])
        op.create_index("ix_ads_coordinates", "ads", ["latitude", "longitude"])

    if not _table_exists(bind, "property_ads"):
        op.create_table(
            "property_ads",
            _ad_fk(),
            sa.Column("property_type", sa.String(length=32), nullable=False, index=True),
            sa.Column("bedrooms", sa.Integer(), nullable=True, index=True),
            sa.Column("bathrooms", sa.Integer(), nullable=True),
            sa.Column("area_sqft", sa.Float(), nullable=True, index=True),
            sa.Column("floor", sa.Integer(), nullable=True),
            sa.Column("is_furnished", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("has_parking", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("has_garden", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("amenities_json", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
        )

    if not _table_exists(bind, "vehicle_ads"):
        op.create_table("vehicle_ads", _ad_fk(), *_vehicle_columns())

    if not _table_exists(bind, "commercial_vehicle_ads"):
        op.create_table(
            "commercial_vehicle_ads",
            _ad_fk(),
            *_vehicle_columns(),
            sa.Column("commercial_vehicle_type", sa.String(length=40), nullable=True, index=True),
            sa.Column("body_type", sa.String(length=40), nullable=True),
            sa.Column("payload_capacity", sa.Float(), nullable=True),
            sa.Column("payload_unit", sa.String(length=16), nullable=True),
            sa.Column("axle_count", sa.Integer(), nullable=True),
            sa.Column("has_fitness", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("has_permit", sa.Boolean(), nullable=False, server_default=_false()),
            sa.Column("seating_capacity", sa.Integer(), nullable=True),
        )

    if not _table_exists(bind, "favorites"):
        op.create_table(
            "favorites",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False, index=True),
            sa.Column("ad_id", sa.Integer(), sa.ForeignKey("ads.id", ondelete="CASCADE"), nullable=False, index=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.UniqueConstraint("user_id", "ad_id", name="uq_favorites_user_ad"),
        )

    if not _table_exists(bind, "idempotency_keys"):
        op.create_table(
            "idempotency_keys",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("key", sa.String(length=128), nullable=False, index=True),
            sa.Column("scope", sa.String(length=128), nullable=False, server_default=""),
            sa.Column("user_id", sa.Integer(), nullable=True),
            sa.Column("request_hash", sa.String(length=64), nullable=False, server_default=""),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="in_progress"),
            sa.Column("response_json", sa.Text(), nullable=True),
            sa.Column("status_code", sa.Integer(), nullable=False, server_default="200"),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("expires_at", sa.DateTime(), nullable=False, index=True),
            sa.UniqueConstraint("scope", "key", name="uq_idempotency_scope_key"),
        )

    if not _table_exists(bind, "outbox_events"):
        op.create_table(
            "outbox_events",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("event_name", sa.String(length=80), nullable=False, index=True),
            sa.Column("payload_json", sa.Text(), nullable=False, server_default="{}"),
            sa.Column("status", sa.String(length=16), nullable=False, server_default="pending", index=True),
            sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("error", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(), nullable=False),
            sa.Column("updated_at", sa.DateTime(), nullable=False),
            sa.Column("processed_at", sa.DateTime(), nullable=True, index=True),
        )
        op.create_index("ix_outbox_events_status_created", "outbox_events", ["status", "created_at"])


def downgrade():
    bind = op.get_bind()
    for table in (
        "outbox_events",
        "idempotency_keys",
        "favorites",
        "commercial_vehicle_ads",
        "vehicle_ads",
        "property_ads",
        "ads",
        "users",
    ):
        if _table_exists(bind, table):
            op.drop_table(table)
