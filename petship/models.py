# petship/models.py
from __future__ import annotations

import uuid
from datetime import datetime

import sqlalchemy as sa
from flask_login import UserMixin
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.ext.mutable import MutableDict, MutableList

from .extensions import db


# Naive UTC everywhere; columns are "timestamp without time zone".
def utcnow_naive() -> datetime:
    return datetime.utcnow()


# jsonb on Postgres, plain JSON elsewhere (SQLite in tests).
# One instance per column: as_mutable keys its listeners on the type object.
def json_type():
    return sa.JSON().with_variant(JSONB(), "postgresql")


# =========================================================
# Vocabularies
# =========================================================
ROLES = ("admin", "staff", "client", "partner")
STAFF_ROLES = ("admin", "staff")

CONVERSATION_KINDS = ("client", "partner", "internal")
MESSAGE_KINDS = ("text", "quote", "product", "status")

PET_TYPES = ("dog", "cat", "other")

SHIPMENT_STATUSES = (
    "quote_requested",
    "quote_sent",
    "booking_confirmed",
    "documents_pending",
    "documents_approved",
    "flight_scheduled",
    "ready_for_pickup",
    "in_transit",
    "arrived",
    "delivered",
    "completed",
    "cancelled",
)

# Advisory only unless ENFORCE_STATUS_TRANSITIONS is set.
RECOMMENDED_NEXT_STATUSES = {
    "quote_requested": ("quote_sent", "cancelled"),
    "quote_sent": ("booking_confirmed", "cancelled"),
    "booking_confirmed": ("documents_pending", "cancelled"),
    "documents_pending": ("documents_approved", "booking_confirmed"),
    "documents_approved": ("flight_scheduled", "documents_pending"),
    "flight_scheduled": ("ready_for_pickup", "documents_approved"),
    "ready_for_pickup": ("in_transit", "flight_scheduled"),
    "in_transit": ("arrived", "ready_for_pickup"),
    "arrived": ("delivered", "in_transit"),
    "delivered": ("completed",),
    "completed": (),
    "cancelled": (),
}


def can_transition(current: str, target: str) -> bool:
    return target in RECOMMENDED_NEXT_STATUSES.get(current, ())


PAYMENT_STATUSES = ("pending", "partial", "paid", "refunded")
PAYMENT_ENTRY_TYPES = ("payment", "refund")
LINE_ITEM_CATEGORIES = ("shipping", "crate", "documentation", "insurance", "other")

DOCUMENT_CATEGORIES = (
    "health_certificate",
    "vaccination_record",
    "import_permit",
    "export_permit",
    "photo",
    "other",
)
DOCUMENT_STATUSES = ("pending", "approved", "rejected")
TEMPLATE_CATEGORIES = ("domestic", "international", "special_needs", "general")

QUOTE_REQUEST_STATUSES = ("pending", "quoted", "accepted", "declined")
PAYMENT_REQUEST_STATUSES = ("pending", "paid", "cancelled")


def _in_check(column: str, values: tuple[str, ...], name: str) -> sa.CheckConstraint:
    quoted = ",".join(f"'{v}'" for v in values)
    return sa.CheckConstraint(f"{column} in ({quoted})", name=name)


# =========================================================
# User (Authentication + Roles)
# =========================================================
class User(UserMixin, db.Model):
    __tablename__ = "user"

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(120), nullable=False)
    email = db.Column(db.String(120), nullable=False)

    # admin | staff | client | partner
    role = db.Column(db.String(20), nullable=False, default="client")
    org_id = db.Column(db.String(64), nullable=True)

    # Optional: users without a hash log in by email lookup.
    password_hash = db.Column(db.String(255), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (
        db.UniqueConstraint("email", name="uq_user_email"),
        _in_check("role", ROLES, "ck_user_role"),
    )

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    def __repr__(self) -> str:
        return f"<User {self.id} {self.email} {self.role}>"


# =========================================================
# Conversation + ordered participants
# =========================================================
class Conversation(db.Model):
    __tablename__ = "conversation"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    kind = db.Column(db.String(20), nullable=False, default="client")

    # Inbox ordering key; never moves backwards.
    last_message_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, index=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    participants = db.relationship(
        "ConversationParticipant",
        back_populates="conversation",
        order_by="ConversationParticipant.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )
    messages = db.relationship(
        "Message",
        back_populates="conversation",
        order_by="Message.id",
        cascade="all, delete-orphan",
        lazy="select",
    )

    __table_args__ = (_in_check("kind", CONVERSATION_KINDS, "ck_conversation_kind"),)

    @property
    def participant_ids(self) -> list[int]:
        return [p.user_id for p in self.participants]

    def add_participant(self, user_id: int) -> bool:
        if user_id in self.participant_ids:
            return False
        position = len(self.participants)
        self.participants.append(ConversationParticipant(user_id=user_id, position=position))
        return True

    def touch(self, at: datetime | None = None) -> datetime:
        """Bump last_message_at without ever moving it backwards."""
        at = at or utcnow_naive()
        if self.last_message_at is None or at > self.last_message_at:
            self.last_message_at = at
        return self.last_message_at

    def __repr__(self) -> str:
        return f"<Conversation {self.id} {self.kind} {self.title!r}>"


class ConversationParticipant(db.Model):
    __tablename__ = "conversation_participant"

    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey("conversation.id", ondelete="CASCADE"),
        primary_key=True,
    )
    user_id = db.Column(
        db.Integer,
        db.ForeignKey("user.id", ondelete="CASCADE"),
        primary_key=True,
        index=True,
    )
    position = db.Column(db.Integer, nullable=False, default=0)

    conversation = db.relationship("Conversation", back_populates="participants")
    user = db.relationship("User", lazy="joined")


# =========================================================
# Message (append-only)
# =========================================================
class Message(db.Model):
    __tablename__ = "message"

    id = db.Column(db.Integer, primary_key=True)

    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    conversation = db.relationship("Conversation", back_populates="messages")

    # NULL sender means the system itself.
    sender_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True)

    kind = db.Column(db.String(20), nullable=False, default="text")
    text = db.Column(db.Text, nullable=True)
    payload = db.Column(MutableDict.as_mutable(json_type()), nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)

    __table_args__ = (
        _in_check("kind", MESSAGE_KINDS, "ck_message_kind"),
        db.Index("ix_message_conversation_created", "conversation_id", "created_at"),
    )

    @property
    def payload_type(self) -> str | None:
        if not self.payload:
            return None
        return self.payload.get("type")

    def __repr__(self) -> str:
        return f"<Message {self.id} {self.kind} conv={self.conversation_id}>"


# =========================================================
# Shipment (one per conversation) + payment ledger
# =========================================================
class Shipment(db.Model):
    __tablename__ = "shipment"

    id = db.Column(db.Integer, primary_key=True)

    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
    )
    conversation = db.relationship("Conversation", lazy="joined")

    # Pet
    pet_name = db.Column(db.String(120), nullable=False)
    pet_type = db.Column(db.String(10), nullable=False, default="other")
    pet_breed = db.Column(db.String(120), nullable=True)
    pet_weight = db.Column(db.Float, nullable=True)

    # Owner
    owner_name = db.Column(db.String(160), nullable=False)
    owner_email = db.Column(db.String(120), nullable=True)
    owner_phone = db.Column(db.String(30), nullable=True)

    # Route
    route_from = db.Column(db.String(120), nullable=False)
    route_to = db.Column(db.String(120), nullable=False)

    status = db.Column(db.String(30), nullable=False, default="quote_requested", index=True)

    # Logistics
    estimated_departure = db.Column(db.String(40), nullable=True)
    estimated_arrival = db.Column(db.String(40), nullable=True)
    actual_departure = db.Column(db.String(40), nullable=True)
    actual_arrival = db.Column(db.String(40), nullable=True)
    flight_number = db.Column(db.String(40), nullable=True)
    crate_size = db.Column(db.String(80), nullable=True)
    special_instructions = db.Column(db.Text, nullable=True)

    # Billing (integer cents). paid may go negative on over-refund.
    total_amount_cents = db.Column(db.Integer, nullable=True)
    paid_amount_cents = db.Column(db.Integer, nullable=False, default=0)
    payment_status = db.Column(db.String(20), nullable=True, index=True)
    payment_due_date = db.Column(db.DateTime, nullable=True)
    line_items = db.Column(MutableList.as_mutable(json_type()), nullable=True)

    payment_history = db.relationship(
        "PaymentHistoryEntry",
        back_populates="shipment",
        order_by="PaymentHistoryEntry.id",
        cascade="all, delete-orphan",
        lazy="select",
    )

    # Optimistic concurrency for ledger writes.
    version = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        db.UniqueConstraint("conversation_id", name="uq_shipment_conversation"),
        _in_check("status", SHIPMENT_STATUSES, "ck_shipment_status"),
        _in_check("pet_type", PET_TYPES, "ck_shipment_pet_type"),
    )

    @property
    def outstanding_cents(self) -> int:
        return max(0, (self.total_amount_cents or 0) - (self.paid_amount_cents or 0))

    def __repr__(self) -> str:
        return f"<Shipment {self.id} {self.pet_name} {self.status}>"


class PaymentHistoryEntry(db.Model):
    __tablename__ = "payment_history_entry"

    id = db.Column(db.Integer, primary_key=True)

    shipment_id = db.Column(
        db.Integer,
        db.ForeignKey("shipment.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    shipment = db.relationship("Shipment", back_populates="payment_history")

    amount_cents = db.Column(db.Integer, nullable=False)
    entry_type = db.Column(db.String(10), nullable=False)  # payment | refund
    method = db.Column(db.String(40), nullable=True)  # stripe, paypal, manual...
    transaction_id = db.Column(db.String(120), nullable=True)
    processed_by = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True)
    processed_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    notes = db.Column(db.Text, nullable=True)

    __table_args__ = (_in_check("entry_type", PAYMENT_ENTRY_TYPES, "ck_payment_entry_type"),)


# =========================================================
# Documents (uploaded files under review)
# =========================================================
class Document(db.Model):
    __tablename__ = "document"

    id = db.Column(sa.Uuid(as_uuid=True), primary_key=True, default=uuid.uuid4)

    name = db.Column(db.String(255), nullable=False)
    storage_key = db.Column(db.String(500), nullable=False)
    file_sha256 = db.Column(db.String(64), nullable=True)
    content_type = db.Column(db.String(120), nullable=False)
    size = db.Column(db.Integer, nullable=False, default=0)

    uploaded_by = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="SET NULL"), nullable=True, index=True)

    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    shipment_id = db.Column(
        db.Integer,
        db.ForeignKey("shipment.id", ondelete="CASCADE"),
        nullable=True,
        index=True,
    )
    shipment = db.relationship("Shipment", lazy="joined")

    category = db.Column(db.String(30), nullable=False, default="other")
    status = db.Column(db.String(20), nullable=False, default="pending", index=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (
        _in_check("category", DOCUMENT_CATEGORIES, "ck_document_category"),
        _in_check("status", DOCUMENT_STATUSES, "ck_document_status"),
    )

    def __repr__(self) -> str:
        return f"<Document {self.id} {self.category} {self.status}>"


class DocumentTemplate(db.Model):
    __tablename__ = "document_template"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False, default="")
    category = db.Column(db.String(20), nullable=False, index=True)
    requirements = db.Column(MutableList.as_mutable(json_type()), nullable=False, default=list)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (_in_check("category", TEMPLATE_CATEGORIES, "ck_document_template_category"),)


# =========================================================
# Catalog
# =========================================================
class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    sku = db.Column(db.String(60), nullable=False)
    price_cents = db.Column(db.Integer, nullable=False)
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)


class QuoteTemplate(db.Model):
    __tablename__ = "quote_template"

    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False)
    body = db.Column(db.Text, nullable=False)
    default_price_cents = db.Column(db.Integer, nullable=False)


# =========================================================
# QuoteRequest (customer intake form)
# =========================================================
class QuoteRequest(db.Model):
    __tablename__ = "quote_request"

    id = db.Column(db.Integer, primary_key=True)

    customer_user_id = db.Column(db.Integer, db.ForeignKey("user.id", ondelete="CASCADE"), nullable=False, index=True)
    customer = db.relationship("User", foreign_keys=[customer_user_id], lazy="joined")

    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey("conversation.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    pet_name = db.Column(db.String(120), nullable=False)
    pet_type = db.Column(db.String(10), nullable=False)
    pet_breed = db.Column(db.String(120), nullable=False, default="")
    pet_weight = db.Column(db.Float, nullable=False, default=0)
    route_from = db.Column(db.String(120), nullable=False)
    route_to = db.Column(db.String(120), nullable=False)
    preferred_travel_date = db.Column(db.String(40), nullable=False, default="")
    special_requirements = db.Column(db.Text, nullable=False, default="")

    status = db.Column(db.String(20), nullable=False, default="pending")

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive, onupdate=utcnow_naive)

    __table_args__ = (_in_check("status", QUOTE_REQUEST_STATUSES, "ck_quote_request_status"),)


# =========================================================
# PaymentRequest (request lifecycle only; money goes through the ledger)
# =========================================================
class PaymentRequest(db.Model):
    __tablename__ = "payment_request"

    id = db.Column(db.Integer, primary_key=True)

    conversation_id = db.Column(
        db.Integer,
        db.ForeignKey("conversation.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    amount_cents = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(20), nullable=False, default="pending")
    description = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime, nullable=False, default=utcnow_naive)
    paid_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (_in_check("status", PAYMENT_REQUEST_STATUSES, "ck_payment_request_status"),)
