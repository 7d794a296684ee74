from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision = "0001_marketplace_foundations"
down_revision = None
branch_labels = None
depends_on = None


def _audit_columns():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("created_by", sa.String(), nullable=True),
        sa.Column("updated_by", sa.String(), nullable=True),
    ]


def _vehicle_columns():
    return [
        sa.Column("make", sa.String(length=80), nullable=False),
        sa.Column("model", sa.String(length=120), nullable=False),
        sa.Column("year", sa.Integer(), nullable=True),
        sa.Column("price", sa.Numeric(12, 2), nullable=True),
        sa.Column("mileage", sa.Integer(), nullable=True),
        sa.Column("condition", sa.String(length=40), nullable=True),
        sa.Column("fuel_type", sa.String(length=40), nullable=True),
        sa.Column("transmission", sa.String(length=40), nullable=True),
        sa.Column("body_type", sa.String(length=40), nullable=True),
        sa.Column("exterior_color", sa.String(length=40), nullable=True),
        sa.Column("interior_color", sa.String(length=40), nullable=True),
        sa.Column("engine", sa.String(length=80), nullable=True),
        sa.Column("vin", sa.String(length=32), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location_city", sa.String(length=120), nullable=True),
        sa.Column("location_country", sa.String(length=120), nullable=True),
        sa.Column("images", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("features", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column("is_special_offer", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("special_offer_label", sa.String(length=120), nullable=True),
    ]


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("email", sa.String(length=320), nullable=False, unique=True),
        sa.Column("display_name", sa.String(length=200), nullable=True),
        sa.Column("role", sa.String(length=20), nullable=False, server_default="buyer"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_audit_columns(),
    )

    op.create_table(
        "api_keys",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("key_prefix", sa.String(length=16), nullable=False),
        sa.Column("key_hash", sa.Text(), nullable=False, unique=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("rotated_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_api_keys_user_id", "api_keys", ["user_id"])
    op.create_index("ix_api_keys_key_prefix", "api_keys", ["key_prefix"])

    op.create_table(
        "dealerships",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("owner_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False, unique=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("country", sa.String(length=120), nullable=True),
        sa.Column("website_url", sa.String(length=500), nullable=True),
        sa.Column("logo_url", sa.String(length=500), nullable=True),
        *_audit_columns(),
    )

    op.create_table(
        "partner_memberships",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("dealership_id", sa.String(), sa.ForeignKey("dealerships.id"), nullable=True),
        sa.Column("partner_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=False),
        sa.Column("is_approved", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("commission_rate", sa.Numeric(5, 4), nullable=False, server_default="0"),
        sa.Column("business_name", sa.String(length=200), nullable=True),
        sa.Column("contact_name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=320), nullable=True),
        sa.Column("phone", sa.String(length=40), nullable=True),
        *_audit_columns(),
        sa.UniqueConstraint("partner_user_id", "dealership_id", name="uq_membership_partner_dealership"),
        sa.CheckConstraint("commission_rate >= 0 AND commission_rate <= 1", name="ck_membership_rate_range"),
    )
    op.create_index("ix_partner_memberships_dealership_id", "partner_memberships", ["dealership_id"])
    op.create_index("ix_partner_memberships_partner_user_id", "partner_memberships", ["partner_user_id"])
    # NULL dealership ids escape the unique constraint above
    op.create_index(
        "uq_membership_independent_partner",
        "partner_memberships",
        ["partner_user_id"],
        unique=True,
        postgresql_where=sa.text("dealership_id IS NULL"),
    )

    op.create_table(
        "car_listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("dealer_id", sa.String(), sa.ForeignKey("dealerships.id"), nullable=True),
        *_vehicle_columns(),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_shared_with_network", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("source_type", sa.String(length=30), nullable=False),
        sa.Column("source_id", sa.String(), nullable=False),
        *_audit_columns(),
        sa.UniqueConstraint("source_type", "source_id", name="uq_car_listing_source"),
    )
    op.create_index("ix_car_listings_dealer_id", "car_listings", ["dealer_id"])
    op.create_index("ix_car_listings_status", "car_listings", ["status"])
    op.create_index("ix_car_listings_vin", "car_listings", ["vin"])

    op.create_table(
        "pending_listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("dealership_id", sa.String(), sa.ForeignKey("dealerships.id"), nullable=True),
        *_vehicle_columns(),
        sa.Column("approval_status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("is_shared_with_network", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("decided_by", sa.String(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_notes", sa.Text(), nullable=True),
        sa.Column("car_listing_id", sa.String(), sa.ForeignKey("car_listings.id"), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_pending_listings_dealership_id", "pending_listings", ["dealership_id"])
    op.create_index("ix_pending_listings_approval_status", "pending_listings", ["approval_status"])
    op.create_index("ix_pending_listings_vin", "pending_listings", ["vin"])

    op.create_table(
        "partner_listings",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("partner_id", sa.String(), sa.ForeignKey("partner_memberships.id"), nullable=False),
        *_vehicle_columns(),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="available"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_shared_with_network", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_added_to_main_listings", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("car_listing_id", sa.String(), sa.ForeignKey("car_listings.id"), nullable=True),
        sa.Column("content_hash", sa.String(length=80), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_partner_listings_partner_id", "partner_listings", ["partner_id"])
    op.create_index("ix_partner_listings_content_hash", "partner_listings", ["content_hash"])
    op.create_index("ix_partner_listings_vin", "partner_listings", ["vin"])

    op.create_table(
        "leads",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("listing_id", sa.String(), sa.ForeignKey("car_listings.id"), nullable=False),
        sa.Column("from_user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=False),
        sa.Column("email", sa.String(length=320), nullable=False),
        sa.Column("phone", sa.String(length=40), nullable=True),
        sa.Column("city", sa.String(length=120), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("source_type", sa.String(length=20), nullable=False, server_default="organic"),
        sa.Column("source_id", sa.String(), sa.ForeignKey("partner_memberships.id"), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="new"),
        *_audit_columns(),
        sa.CheckConstraint(
            "(source_type = 'tipper' AND source_id IS NOT NULL) OR (source_type = 'organic' AND source_id IS NULL)",
            name="ck_leads_source",
        ),
    )
    op.create_index("ix_leads_listing_id", "leads", ["listing_id"])
    op.create_index("ix_leads_source_id", "leads", ["source_id"])

    op.create_table(
        "transactions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("listing_id", sa.String(), sa.ForeignKey("car_listings.id"), nullable=False),
        sa.Column("buyer_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("seller_id", sa.String(), sa.ForeignKey("dealerships.id"), nullable=True),
        sa.Column("lead_id", sa.String(), sa.ForeignKey("leads.id"), nullable=True),
        sa.Column("agreed_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    # no double-selling: one live transaction per listing
    op.create_index(
        "uq_transactions_listing_not_cancelled",
        "transactions",
        ["listing_id"],
        unique=True,
        postgresql_where=sa.text("status <> 'cancelled'"),
    )

    op.create_table(
        "commissions",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("transaction_id", sa.String(), sa.ForeignKey("transactions.id"), nullable=False, unique=True),
        sa.Column("partner_id", sa.String(), sa.ForeignKey("partner_memberships.id"), nullable=False),
        sa.Column("lead_id", sa.String(), sa.ForeignKey("leads.id"), nullable=True),
        sa.Column("rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="pending"),
        sa.Column("paid_at", sa.DateTime(timezone=True), nullable=True),
        *_audit_columns(),
    )
    op.create_index("ix_commissions_partner_id", "commissions", ["partner_id"])

    op.create_table(
        "outbox",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("aggregate_type", sa.String(length=100), nullable=False),
        sa.Column("aggregate_id", sa.String(length=100), nullable=False),
        sa.Column("event_type", sa.String(length=200), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("dealership_id", sa.String(), nullable=True),
        sa.Column("actor_id", sa.String(), nullable=True),
        sa.Column("action", sa.String(length=120), nullable=False),
        sa.Column("target_type", sa.String(length=120), nullable=True),
        sa.Column("target_id", sa.String(length=200), nullable=True),
        sa.Column("detail", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_audit_logs_target", "audit_logs", ["target_type", "target_id"])

    op.create_table(
        "idempotency_keys",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("scope", sa.String(length=200), nullable=False),
        sa.Column("key", sa.String(length=200), nullable=False),
        sa.Column("request_hash", sa.String(length=80), nullable=False),
        sa.Column("response", postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default=sa.text("'{}'::jsonb")),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("scope", "key", name="uq_idempotency_scope_key"),
    )

    op.create_table(
        "search_intents",
        sa.Column("id", sa.String(), primary_key=True),
        sa.Column("user_id", sa.String(), sa.ForeignKey("users.id"), nullable=True),
        sa.Column("session_id", sa.String(length=120), nullable=True),
        sa.Column("user_input", sa.Text(), nullable=False),
        sa.Column("parsed_filters", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column("confidence", sa.Numeric(5, 4), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="received"),
        sa.Column("last_error", sa.Text(), nullable=True),
        *_audit_columns(),
    )


def downgrade():
    op.drop_table("search_intents")
    op.drop_table("idempotency_keys")
    op.drop_index("ix_audit_logs_target", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_table("outbox")
    op.drop_table("commissions")
    op.drop_index("uq_transactions_listing_not_cancelled", table_name="transactions")
    op.drop_table("transactions")
    op.drop_table("leads")
    op.drop_table("partner_listings")
    op.drop_table("pending_listings")
    op.drop_table("car_listings")
    op.drop_table("partner_memberships")
    op.drop_table("dealerships")
    op.drop_table("api_keys")
    op.drop_table("users")
