# petship/services/messaging.py
"""
Conversations and messages.

Every message-producing path goes through ``post_message`` so that
conversation activity is bumped and the implicit shipment transitions
are applied in one place. Nothing here commits; the caller owns the
transaction.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app

from petship.errors import NotFoundError, UnauthorizedError, ValidationError
from petship.extensions import db
from petship.models import (
    CONVERSATION_KINDS,
    MESSAGE_KINDS,
    Conversation,
    Message,
    QuoteRequest,
    Shipment,
    User,
    utcnow_naive,
)
from petship.utils.guards import is_staff

# status payload type -> shipment status
STATUS_EVENT_TRANSITIONS = {
    "quote_accepted": "booking_confirmed",
    "payment_completed": "documents_pending",
    "quote_declined": "cancelled",
}
QUOTE_MESSAGE_STATUS = "quote_sent"

# shipment-moving events mirrored onto the intake form
QUOTE_REQUEST_SYNC = {
    "quote": "quoted",
    "quote_accepted": "accepted",
    "quote_declined": "declined",
}

# what a client/partner may post
CUSTOMER_STATUS_TYPES = {"quote_accepted", "quote_declined"}


# =========================================================
# Conversations
# =========================================================
def create_conversation(title: str, participant_ids: list[int], kind: str = "client", *, creator=None) -> Conversation:
    if kind not in CONVERSATION_KINDS:
        raise ValidationError(f"Unknown conversation kind: {kind}")

    ids = list(participant_ids or [])
    # Non-staff creators always land in their own conversation.
    if creator is not None and not is_staff(creator) and creator.id not in ids:
        ids.insert(0, creator.id)

    _require_users_exist(ids)

    conversation = Conversation(title=title, kind=kind, last_message_at=utcnow_naive())
    for user_id in ids:
        conversation.add_participant(user_id)

    db.session.add(conversation)
    db.session.flush()
    return conversation


def update_conversation(conversation_id: int, *, title: str) -> Conversation:
    conversation = get_conversation_or_404(conversation_id)
    conversation.title = title
    return conversation


def add_participant(conversation_id: int, user_id: int) -> Conversation:
    conversation = get_conversation_or_404(conversation_id)
    _require_users_exist([user_id])
    conversation.add_participant(user_id)
    db.session.flush()
    return conversation


def get_conversation_or_404(conversation_id: int) -> Conversation:
    conversation = db.session.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError(f"Conversation {conversation_id} not found.")
    return conversation


def _require_users_exist(user_ids: list[int]) -> None:
    if not user_ids:
        return
    found = {u.id for u in User.query.filter(User.id.in_(user_ids)).all()}
    missing = [uid for uid in user_ids if uid not in found]
    if missing:
        raise ValidationError(f"Unknown participant ids: {missing}")


# =========================================================
# Messages
# =========================================================
def list_messages(conversation: Conversation) -> list[Message]:
    return (
        Message.query.filter_by(conversation_id=conversation.id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )


def check_can_send(user, kind: str, payload: dict | None) -> None:
    """Clients/partners chat and answer quotes; everything else is staff work."""
    if is_staff(user):
        return
    if kind == "text":
        return
    if kind == "status" and (payload or {}).get("type") in CUSTOMER_STATUS_TYPES:
        return
    raise UnauthorizedError(f"Your role cannot send {kind} messages of this type.")


def post_message(
    conversation: Conversation,
    *,
    sender_id: int | None,
    kind: str,
    text: str | None = None,
    payload: dict | None = None,
    at: datetime | None = None,
) -> Message:
    """
    Append a message, bump conversation activity and apply the implicit
    shipment transition for quote / status messages.

    ``sender_id=None`` marks a system message.
    """
    if kind not in MESSAGE_KINDS:
        raise ValidationError(f"Unknown message kind: {kind}")
    if kind == "text" and not (text or "").strip():
        raise ValidationError("Text messages cannot be empty.")

    now = at or utcnow_naive()
    message = Message(
        conversation_id=conversation.id,
        sender_id=sender_id,
        kind=kind,
        text=text,
        payload=dict(payload) if payload is not None else None,
        created_at=now,
    )
    db.session.add(message)
    conversation.touch(now)

    apply_implicit_transition(conversation, kind, payload)

    db.session.flush()
    return message


def send_text(conversation, sender, text: str) -> Message:
    return post_message(conversation, sender_id=sender.id, kind="text", text=text)


def send_quote(conversation, sender, payload: dict, text: str | None = None) -> Message:
    return post_message(conversation, sender_id=sender.id, kind="quote", text=text, payload=payload)


def send_product(conversation, sender, payload: dict, text: str | None = None) -> Message:
    return post_message(conversation, sender_id=sender.id, kind="product", text=text, payload=payload)


def send_status(conversation, sender, payload: dict, text: str | None = None) -> Message:
    sender_id = sender.id if sender is not None else None
    return post_message(conversation, sender_id=sender_id, kind="status", text=text, payload=payload)


# =========================================================
# Implicit shipment transitions
# =========================================================
def shipment_for_conversation(conversation_id: int) -> Shipment | None:
    return Shipment.query.filter_by(conversation_id=conversation_id).one_or_none()


def implicit_target_status(kind: str, payload: dict | None) -> str | None:
    if kind == "quote":
        return QUOTE_MESSAGE_STATUS
    if kind == "status":
        return STATUS_EVENT_TRANSITIONS.get((payload or {}).get("type"))
    return None


def apply_implicit_transition(conversation: Conversation, kind: str, payload: dict | None) -> Shipment | None:
    target = implicit_target_status(kind, payload)
    if target is None:
        return None

    _sync_quote_request(conversation.id, kind, payload)

    shipment = shipment_for_conversation(conversation.id)
    if shipment is None:
        # Not an error: the message still stands.
        current_app.logger.debug(
            "No shipment for conversation %s; skipping transition to %s", conversation.id, target
        )
        return None

    if shipment.status != target:
        current_app.logger.info(
            "Shipment %s status %s -> %s (%s message)", shipment.id, shipment.status, target, kind
        )
        shipment.status = target
    return shipment


def _sync_quote_request(conversation_id: int, kind: str, payload: dict | None) -> None:
    key = kind if kind == "quote" else (payload or {}).get("type")
    new_status = QUOTE_REQUEST_SYNC.get(key)
    if not new_status:
        return
    for qr in QuoteRequest.query.filter_by(conversation_id=conversation_id).all():
        qr.status = new_status
