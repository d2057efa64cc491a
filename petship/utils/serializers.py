# petship/utils/serializers.py
"""
Plain-dict views of models for JSON responses.

Kept separate from the models so handlers can decide what they expose
(e.g. users never carry their password hash out of the API).
"""

from __future__ import annotations

from datetime import datetime

from petship.models import (
    Conversation,
    Document,
    DocumentTemplate,
    Message,
    PaymentHistoryEntry,
    PaymentRequest,
    Product,
    QuoteRequest,
    QuoteTemplate,
    Shipment,
    User,
)


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt else None


def user_dict(user: User) -> dict:
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "role": user.role,
        "org_id": user.org_id,
    }


def conversation_dict(conversation: Conversation) -> dict:
    return {
        "id": conversation.id,
        "title": conversation.title,
        "kind": conversation.kind,
        "participant_ids": conversation.participant_ids,
        "last_message_at": _iso(conversation.last_message_at),
        "created_at": _iso(conversation.created_at),
    }


def message_dict(message: Message) -> dict:
    return {
        "id": message.id,
        "conversation_id": message.conversation_id,
        "sender_id": message.sender_id if message.sender_id is not None else "system",
        "kind": message.kind,
        "text": message.text,
        "payload": dict(message.payload) if message.payload is not None else None,
        "created_at": _iso(message.created_at),
    }


def payment_entry_dict(entry: PaymentHistoryEntry) -> dict:
    return {
        "id": entry.id,
        "amount_cents": entry.amount_cents,
        "type": entry.entry_type,
        "method": entry.method,
        "transaction_id": entry.transaction_id,
        "processed_by": entry.processed_by,
        "processed_at": _iso(entry.processed_at),
        "notes": entry.notes,
    }


def shipment_dict(shipment: Shipment, *, include_history: bool = True) -> dict:
    data = {
        "id": shipment.id,
        "conversation_id": shipment.conversation_id,
        "pet_name": shipment.pet_name,
        "pet_type": shipment.pet_type,
        "pet_breed": shipment.pet_breed,
        "pet_weight": shipment.pet_weight,
        "owner_name": shipment.owner_name,
        "owner_email": shipment.owner_email,
        "owner_phone": shipment.owner_phone,
        "route": {"from": shipment.route_from, "to": shipment.route_to},
        "status": shipment.status,
        "estimated_departure": shipment.estimated_departure,
        "estimated_arrival": shipment.estimated_arrival,
        "actual_departure": shipment.actual_departure,
        "actual_arrival": shipment.actual_arrival,
        "flight_number": shipment.flight_number,
        "crate_size": shipment.crate_size,
        "special_instructions": shipment.special_instructions,
        "total_amount_cents": shipment.total_amount_cents,
        "paid_amount_cents": shipment.paid_amount_cents,
        "outstanding_cents": shipment.outstanding_cents,
        "payment_status": shipment.payment_status,
        "payment_due_date": _iso(shipment.payment_due_date),
        "line_items": list(shipment.line_items or []),
        "created_at": _iso(shipment.created_at),
        "updated_at": _iso(shipment.updated_at),
    }
    if include_history:
        data["payment_history"] = [payment_entry_dict(e) for e in shipment.payment_history]
    return data


def document_dict(document: Document) -> dict:
    return {
        "id": str(document.id),
        "name": document.name,
        "content_type": document.content_type,
        "size": document.size,
        "sha256": document.file_sha256,
        "uploaded_by": document.uploaded_by,
        "conversation_id": document.conversation_id,
        "shipment_id": document.shipment_id,
        "category": document.category,
        "status": document.status,
        "notes": document.notes,
        "created_at": _iso(document.created_at),
        "updated_at": _iso(document.updated_at),
    }


def document_template_dict(template: DocumentTemplate) -> dict:
    return {
        "id": template.id,
        "title": template.title,
        "description": template.description,
        "category": template.category,
        "requirements": list(template.requirements or []),
        "active": template.active,
        "created_at": _iso(template.created_at),
        "updated_at": _iso(template.updated_at),
    }


def product_dict(product: Product) -> dict:
    return {
        "id": product.id,
        "name": product.name,
        "sku": product.sku,
        "price_cents": product.price_cents,
        "active": product.active,
    }


def quote_template_dict(template: QuoteTemplate) -> dict:
    return {
        "id": template.id,
        "title": template.title,
        "body": template.body,
        "default_price_cents": template.default_price_cents,
    }


def quote_request_dict(qr: QuoteRequest) -> dict:
    return {
        "id": qr.id,
        "customer_user_id": qr.customer_user_id,
        "conversation_id": qr.conversation_id,
        "pet_name": qr.pet_name,
        "pet_type": qr.pet_type,
        "pet_breed": qr.pet_breed,
        "pet_weight": qr.pet_weight,
        "route": {"from": qr.route_from, "to": qr.route_to},
        "preferred_travel_date": qr.preferred_travel_date,
        "special_requirements": qr.special_requirements,
        "status": qr.status,
        "created_at": _iso(qr.created_at),
        "updated_at": _iso(qr.updated_at),
    }


def payment_request_dict(pr: PaymentRequest) -> dict:
    return {
        "id": pr.id,
        "conversation_id": pr.conversation_id,
        "amount_cents": pr.amount_cents,
        "status": pr.status,
        "description": pr.description,
        "created_at": _iso(pr.created_at),
        "paid_at": _iso(pr.paid_at),
    }
