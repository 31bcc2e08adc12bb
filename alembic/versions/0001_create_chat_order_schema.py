from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "0001_create_chat_order_schema"
down_revision = None
branch_labels = None
depends_on = None


def _json_type(bind):
    if bind.dialect.name == "sqlite":
        return sa.JSON()
    return postgresql.JSONB(astext_type=sa.Text())


def _customer_columns() -> list[sa.Column]:
    return [
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("customer_phone", sa.String(length=30), nullable=False),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    json_type = _json_type(bind)

    op.create_table(
        "tenants",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("business_type", sa.String(length=40), nullable=False, server_default="generic"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("phone", sa.String(length=30), nullable=True),
        sa.Column("store_address_text", sa.Text(), nullable=True),
        sa.Column("store_lat", sa.Float(), nullable=True),
        sa.Column("store_lng", sa.Float(), nullable=True),
        sa.Column("store_maps_url", sa.String(), nullable=True),
        sa.Column("store_timezone", sa.String(length=64), nullable=True),
        sa.Column("open_time", sa.String(length=8), nullable=True),
        sa.Column("close_time", sa.String(length=8), nullable=True),
        sa.Column("delivery_free_km", sa.Float(), nullable=True),
        sa.Column("delivery_max_km", sa.Float(), nullable=True),
        sa.Column("delivery_fee_type", sa.String(length=20), nullable=True),
        sa.Column("delivery_flat_fee", sa.Float(), nullable=True),
        sa.Column("delivery_per_km_fee", sa.Float(), nullable=True),
        sa.Column("faq_delivery_answer", sa.Text(), nullable=True),
        sa.Column("faq_opening_hours_answer", sa.Text(), nullable=True),
        sa.Column("faq_pricing_answer", sa.Text(), nullable=True),
        sa.Column("faq_delivery_area_answer", sa.Text(), nullable=True),
        sa.Column("payment_qr_url", sa.String(), nullable=True),
        sa.Column("payment_instructions", sa.Text(), nullable=True),
        sa.Column("razorpay_key_id", sa.String(), nullable=True),
        sa.Column("razorpay_key_secret", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )

    op.create_table(
        "catalog_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("canonical_name", sa.String(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=True),
        sa.Column("brand", sa.String(), nullable=True),
        sa.Column("variant", sa.String(), nullable=True),
        sa.Column("category", sa.String(), nullable=True),
        sa.Column("price", sa.Float(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_catalog_items_tenant_id", "catalog_items", ["tenant_id"], unique=False)
    op.create_index("ix_catalog_items_tenant_canonical", "catalog_items", ["tenant_id", "canonical_name"], unique=False)

    op.create_table(
        "product_upsells",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("catalog_items.id"), nullable=False),
        sa.Column("upsell_product_id", sa.Integer(), sa.ForeignKey("catalog_items.id"), nullable=False),
        sa.Column("header", sa.String(), nullable=True),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_product_upsells_tenant_id", "product_upsells", ["tenant_id"], unique=False)
    op.create_index("ix_product_upsells_product_id", "product_upsells", ["product_id"], unique=False)

    op.create_table(
        "conversation_sessions",
        *_customer_columns(),
        sa.Column("state", sa.String(length=40), nullable=False, server_default="idle"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("manual_mode", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("manual_mode_until", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tenant_id", "customer_phone", name="uq_conversation_sessions_customer"),
    )
    op.create_index("ix_conversation_sessions_tenant_id", "conversation_sessions", ["tenant_id"], unique=False)
    op.create_index("ix_conversation_sessions_customer_phone", "conversation_sessions", ["customer_phone"], unique=False)

    op.create_table(
        "working_carts",
        *_customer_columns(),
        sa.Column("item", json_type, nullable=True),
        sa.Column("list", json_type, nullable=True),
        sa.Column("cart", json_type, nullable=True),
        sa.Column("multi_item_queue", json_type, nullable=True),
        sa.Column("current_item_index", sa.Integer(), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tenant_id", "customer_phone", name="uq_working_carts_customer"),
    )
    op.create_index("ix_working_carts_tenant_id", "working_carts", ["tenant_id"], unique=False)
    op.create_index("ix_working_carts_customer_phone", "working_carts", ["customer_phone"], unique=False)

    op.create_table(
        "attempt_counters",
        *_customer_columns(),
        sa.Column("failed_attempts", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.UniqueConstraint("tenant_id", "customer_phone", name="uq_attempt_counters_customer"),
    )
    op.create_index("ix_attempt_counters_tenant_id", "attempt_counters", ["tenant_id"], unique=False)
    op.create_index("ix_attempt_counters_customer_phone", "attempt_counters", ["customer_phone"], unique=False)

    op.create_table(
        "orders",
        *_customer_columns(),
        sa.Column("items", json_type, nullable=False),
        sa.Column("raw_text", sa.Text(), nullable=True),
        sa.Column("total_amount", sa.Float(), nullable=False, server_default="0"),
        sa.Column("status", sa.String(length=40), nullable=False, server_default="awaiting_customer_action"),
        sa.Column("delivery_type", sa.String(length=20), nullable=True),
        sa.Column("delivery_address_text", sa.Text(), nullable=True),
        sa.Column("delivery_lat", sa.Float(), nullable=True),
        sa.Column("delivery_lng", sa.Float(), nullable=True),
        sa.Column("delivery_distance_km", sa.Float(), nullable=True),
        sa.Column("delivery_fee", sa.Float(), nullable=True),
        sa.Column("delivery_status", sa.String(length=30), nullable=True),
        sa.Column("payment_mode", sa.String(length=20), nullable=True),
        sa.Column("payment_status", sa.String(length=20), nullable=False, server_default="unpaid"),
        sa.Column("payment_provider", sa.String(length=30), nullable=True),
        sa.Column("payment_link_id", sa.String(), nullable=True),
        sa.Column("payment_link_url", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index("ix_orders_tenant_id", "orders", ["tenant_id"], unique=False)
    op.create_index(
        "ix_orders_tenant_customer_status",
        "orders",
        ["tenant_id", "customer_phone", "status"],
        unique=False,
    )

    op.create_table(
        "intent_override_rules",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("pattern", sa.String(length=200), nullable=False),
        sa.Column("match_type", sa.String(length=20), nullable=False, server_default="exact"),
        sa.Column("intent", sa.String(length=40), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0.75"),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=20), nullable=False, server_default="system"),
        sa.Column("hits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_intent_override_rules_tenant_id", "intent_override_rules", ["tenant_id"], unique=False)

    op.create_table(
        "intent_events",
        *_customer_columns(),
        sa.Column("raw_text", sa.Text(), nullable=True),
        sa.Column("normalized_text", sa.Text(), nullable=True),
        sa.Column("decided_intent", sa.String(length=40), nullable=False),
        sa.Column("confidence", sa.Float(), nullable=False, server_default="0"),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("state", sa.String(length=40), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_intent_events_tenant_customer", "intent_events", ["tenant_id", "customer_phone"], unique=False)

    op.create_table(
        "ai_configs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("provider", sa.String(), nullable=False, server_default="mock"),
        sa.Column("model", sa.String(), nullable=True),
        sa.Column("temperature", sa.Float(), nullable=True),
        sa.Column("min_confidence", sa.Float(), nullable=False, server_default="0.65"),
        sa.Column("lane_hints", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_ai_configs_tenant_id", "ai_configs", ["tenant_id"], unique=True)

    op.create_table(
        "ai_message_logs",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("customer_phone", sa.String(), nullable=True),
        sa.Column("provider", sa.String(), nullable=False),
        sa.Column("message_text", sa.Text(), nullable=True),
        sa.Column("prompt", sa.Text(), nullable=True),
        sa.Column("raw_response", sa.Text(), nullable=True),
        sa.Column("parsed_json", sa.Text(), nullable=True),
        sa.Column("intent", sa.String(), nullable=True),
        sa.Column("confidence", sa.Float(), nullable=True),
        sa.Column("accepted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("latency_ms", sa.Integer(), nullable=True),
        sa.Column("error", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_ai_message_logs_tenant_id", "ai_message_logs", ["tenant_id"], unique=False)
    op.create_index("ix_ai_message_logs_customer_phone", "ai_message_logs", ["customer_phone"], unique=False)

    op.create_table(
        "processed_messages",
        sa.Column("message_id", sa.String(), primary_key=True),
        sa.Column("tenant_id", sa.Integer(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index("ix_processed_messages_tenant_id", "processed_messages", ["tenant_id"], unique=False)


def downgrade() -> None:
    for table in (
        "processed_messages",
        "ai_message_logs",
        "ai_configs",
        "intent_events",
        "intent_override_rules",
        "orders",
        "attempt_counters",
        "working_carts",
        "conversation_sessions",
        "product_upsells",
        "catalog_items",
        "tenants",
    ):
        op.drop_table(table)
