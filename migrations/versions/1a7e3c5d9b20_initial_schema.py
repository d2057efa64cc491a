"""initial_schema

Revision ID: 1a7e3c5d9b20
Revises:
Create Date: 2026-10-19 09:12:44.318201

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '1a7e3c5d9b20'
down_revision = None
branch_labels = None
depends_on = None


JSON = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _in_check(column, values, name):
    quoted = ",".join(f"'{v}'" for v in values)
    return sa.CheckConstraint(f"{column} in ({quoted})", name=name)


def upgrade():
    # =========================
    # user
    # =========================
    op.create_table(
        "user",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("email", sa.String(length=120), nullable=False),
        sa.Column("role", sa.String(length=20), nullable=False),
        sa.Column("org_id", sa.String(length=64), nullable=True),
        sa.Column("password_hash", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("email", name="uq_user_email"),
        _in_check("role", ("admin", "staff", "client", "partner"), "ck_user_role"),
    )

    # =========================
    # conversation + participants
    # =========================
    op.create_table(
        "conversation",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("last_message_at", sa.DateTime(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _in_check("kind", ("client", "partner", "internal"), "ck_conversation_kind"),
    )
    op.create_index("ix_conversation_last_message_at", "conversation", ["last_message_at"])

    op.create_table(
        "conversation_participant",
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("conversation.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("position", sa.Integer(), nullable=False),
    )
    op.create_index("ix_conversation_participant_user_id", "conversation_participant", ["user_id"])

    # =========================
    # message
    # =========================
    op.create_table(
        "message",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False),
        sa.Column("sender_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("kind", sa.String(length=20), nullable=False),
        sa.Column("text", sa.Text(), nullable=True),
        sa.Column("payload", JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        _in_check("kind", ("text", "quote", "product", "status"), "ck_message_kind"),
    )
    op.create_index("ix_message_conversation_id", "message", ["conversation_id"])
    op.create_index("ix_message_conversation_created", "message", ["conversation_id", "created_at"])

    # =========================
    # shipment
    # one per conversation
    # =========================
    op.create_table(
        "shipment",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False),
        sa.Column("pet_name", sa.String(length=120), nullable=False),
        sa.Column("pet_type", sa.String(length=10), nullable=False),
        sa.Column("pet_breed", sa.String(length=120), nullable=True),
        sa.Column("pet_weight", sa.Float(), nullable=True),
        sa.Column("owner_name", sa.String(length=160), nullable=False),
        sa.Column("owner_email", sa.String(length=120), nullable=True),
        sa.Column("owner_phone", sa.String(length=30), nullable=True),
        sa.Column("route_from", sa.String(length=120), nullable=False),
        sa.Column("route_to", sa.String(length=120), nullable=False),
        sa.Column("status", sa.String(length=30), nullable=False),
        sa.Column("estimated_departure", sa.String(length=40), nullable=True),
        sa.Column("estimated_arrival", sa.String(length=40), nullable=True),
        sa.Column("actual_departure", sa.String(length=40), nullable=True),
        sa.Column("actual_arrival", sa.String(length=40), nullable=True),
        sa.Column("flight_number", sa.String(length=40), nullable=True),
        sa.Column("crate_size", sa.String(length=80), nullable=True),
        sa.Column("special_instructions", sa.Text(), nullable=True),
        sa.Column("total_amount_cents", sa.Integer(), nullable=True),
        sa.Column("paid_amount_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("payment_status", sa.String(length=20), nullable=True),
        sa.Column("payment_due_date", sa.DateTime(), nullable=True),
        sa.Column("line_items", JSON, nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.UniqueConstraint("conversation_id", name="uq_shipment_conversation"),
        _in_check(
            "status",
            (
                "quote_requested", "quote_sent", "booking_confirmed", "documents_pending",
                "documents_approved", "flight_scheduled", "ready_for_pickup", "in_transit",
                "arrived", "delivered", "completed", "cancelled",
            ),
            "ck_shipment_status",
        ),
        _in_check("pet_type", ("dog", "cat", "other"), "ck_shipment_pet_type"),
    )
    op.create_index("ix_shipment_status", "shipment", ["status"])
    op.create_index("ix_shipment_payment_status", "shipment", ["payment_status"])

    op.create_table(
        "payment_history_entry",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("shipment_id", sa.Integer(), sa.ForeignKey("shipment.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("entry_type", sa.String(length=10), nullable=False),
        sa.Column("method", sa.String(length=40), nullable=True),
        sa.Column("transaction_id", sa.String(length=120), nullable=True),
        sa.Column("processed_by", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        _in_check("entry_type", ("payment", "refund"), "ck_payment_entry_type"),
    )
    op.create_index("ix_payment_history_entry_shipment_id", "payment_history_entry", ["shipment_id"])

    # =========================
    # documents
    # =========================
    op.create_table(
        "document",
        sa.Column("id", sa.Uuid(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("storage_key", sa.String(length=500), nullable=False),
        sa.Column("file_sha256", sa.String(length=64), nullable=True),
        sa.Column("content_type", sa.String(length=120), nullable=False),
        sa.Column("size", sa.Integer(), nullable=False),
        sa.Column("uploaded_by", sa.Integer(), sa.ForeignKey("user.id", ondelete="SET NULL"), nullable=True),
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("conversation.id", ondelete="CASCADE"), nullable=True),
        sa.Column("shipment_id", sa.Integer(), sa.ForeignKey("shipment.id", ondelete="CASCADE"), nullable=True),
        sa.Column("category", sa.String(length=30), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _in_check(
            "category",
            ("health_certificate", "vaccination_record", "import_permit", "export_permit", "photo", "other"),
            "ck_document_category",
        ),
        _in_check("status", ("pending", "approved", "rejected"), "ck_document_status"),
    )
    op.create_index("ix_document_uploaded_by", "document", ["uploaded_by"])
    op.create_index("ix_document_conversation_id", "document", ["conversation_id"])
    op.create_index("ix_document_shipment_id", "document", ["shipment_id"])
    op.create_index("ix_document_status", "document", ["status"])

    op.create_table(
        "document_template",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=20), nullable=False),
        sa.Column("requirements", JSON, nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _in_check("category", ("domestic", "international", "special_needs", "general"), "ck_document_template_category"),
    )
    op.create_index("ix_document_template_category", "document_template", ["category"])
    op.create_index("ix_document_template_active", "document_template", ["active"])

    # =========================
    # catalog
    # =========================
    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=160), nullable=False),
        sa.Column("sku", sa.String(length=60), nullable=False),
        sa.Column("price_cents", sa.Integer(), nullable=False),
        sa.Column("active", sa.Boolean(), nullable=False, server_default=sa.true()),
    )
    op.create_index("ix_product_active", "product", ["active"])

    op.create_table(
        "quote_template",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("default_price_cents", sa.Integer(), nullable=False),
    )

    # =========================
    # intake + payment requests
    # =========================
    op.create_table(
        "quote_request",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("customer_user_id", sa.Integer(), sa.ForeignKey("user.id", ondelete="CASCADE"), nullable=False),
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("conversation.id", ondelete="SET NULL"), nullable=True),
        sa.Column("pet_name", sa.String(length=120), nullable=False),
        sa.Column("pet_type", sa.String(length=10), nullable=False),
        sa.Column("pet_breed", sa.String(length=120), nullable=False),
        sa.Column("pet_weight", sa.Float(), nullable=False),
        sa.Column("route_from", sa.String(length=120), nullable=False),
        sa.Column("route_to", sa.String(length=120), nullable=False),
        sa.Column("preferred_travel_date", sa.String(length=40), nullable=False),
        sa.Column("special_requirements", sa.Text(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        _in_check("status", ("pending", "quoted", "accepted", "declined"), "ck_quote_request_status"),
    )
    op.create_index("ix_quote_request_customer_user_id", "quote_request", ["customer_user_id"])
    op.create_index("ix_quote_request_conversation_id", "quote_request", ["conversation_id"])

    op.create_table(
        "payment_request",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("conversation_id", sa.Integer(), sa.ForeignKey("conversation.id", ondelete="CASCADE"), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        _in_check("status", ("pending", "paid", "cancelled"), "ck_payment_request_status"),
    )
    op.create_index("ix_payment_request_conversation_id", "payment_request", ["conversation_id"])


def downgrade():
    op.drop_table("payment_request")
    op.drop_table("quote_request")
    op.drop_table("quote_template")
    op.drop_table("product")
    op.drop_table("document_template")
    op.drop_table("document")
    op.drop_table("payment_history_entry")
    op.drop_table("shipment")
    op.drop_table("message")
    op.drop_table("conversation_participant")
    op.drop_table("conversation")
    op.drop_table("user")
