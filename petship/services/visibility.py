# petship/services/visibility.py
"""
Role-scoped read access.

Admins and staff see every row. Clients and partners see conversations
they participate in, and shipments/documents only through those
conversations. The filter is evaluated in SQL on every call.
"""
from __future__ import annotations

import sqlalchemy as sa

from petship.errors import NotFoundError, UnauthorizedError
from petship.extensions import db
from petship.models import Conversation, ConversationParticipant, Document, Shipment
from petship.utils.guards import is_staff


def _participant_conversation_ids(user):
    return sa.select(ConversationParticipant.conversation_id).where(
        ConversationParticipant.user_id == user.id
    )


def visible_conversations_query(user):
    query = Conversation.query
    if is_staff(user):
        return query
    return query.filter(Conversation.id.in_(_participant_conversation_ids(user)))


def visible_conversations(user) -> list[Conversation]:
    return (
        visible_conversations_query(user)
        .order_by(Conversation.last_message_at.desc(), Conversation.id.desc())
        .all()
    )


def visible_shipments_query(user):
    query = Shipment.query
    if is_staff(user):
        return query
    return query.filter(Shipment.conversation_id.in_(_participant_conversation_ids(user)))


def visible_shipments(user) -> list[Shipment]:
    return visible_shipments_query(user).order_by(Shipment.created_at.desc(), Shipment.id.desc()).all()


def visible_documents(user) -> list[Document]:
    query = Document.query
    if not is_staff(user):
        conv_ids = _participant_conversation_ids(user)
        shipment_ids = sa.select(Shipment.id).where(Shipment.conversation_id.in_(conv_ids))
        query = query.filter(
            sa.or_(
                Document.conversation_id.in_(conv_ids),
                Document.shipment_id.in_(shipment_ids),
                Document.uploaded_by == user.id,
            )
        )
    return query.order_by(Document.created_at.desc()).all()


def list_all_documents(user) -> list[Document]:
    """Unscoped document listing; admin/staff only."""
    if not is_staff(user):
        raise UnauthorizedError("Only admin or staff can list all documents.")
    return Document.query.order_by(Document.created_at.desc()).all()


def can_view_conversation(user, conversation: Conversation) -> bool:
    if is_staff(user):
        return True
    return user.id in conversation.participant_ids


def require_conversation_access(user, conversation_id: int) -> Conversation:
    conversation = db.session.get(Conversation, conversation_id)
    if conversation is None:
        raise NotFoundError(f"Conversation {conversation_id} not found.")
    if not can_view_conversation(user, conversation):
        raise UnauthorizedError("You are not a participant in this conversation.")
    return conversation


def require_shipment_access(user, shipment_id: int) -> Shipment:
    shipment = db.session.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFoundError(f"Shipment {shipment_id} not found.")
    if not can_view_conversation(user, shipment.conversation):
        raise UnauthorizedError("You do not have access to this shipment.")
    return shipment


def can_view_document(user, document: Document) -> bool:
    if is_staff(user) or document.uploaded_by == user.id:
        return True
    if document.conversation_id is not None:
        conversation = db.session.get(Conversation, document.conversation_id)
        if conversation is not None and user.id in conversation.participant_ids:
            return True
    if document.shipment is not None:
        return user.id in document.shipment.conversation.participant_ids
    return False
