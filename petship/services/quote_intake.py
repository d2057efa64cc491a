# petship/services/quote_intake.py
from __future__ import annotations

from flask import current_app

from petship.errors import NotFoundError, ValidationError
from petship.extensions import db
from petship.models import PET_TYPES, QUOTE_REQUEST_STATUSES, QuoteRequest
from petship.services.messaging import create_conversation, post_message
from petship.services.shipments import create_shipment
from petship.utils.guards import is_staff


def quote_conversation_title(pet_name: str, route_from: str, route_to: str) -> str:
    return f"Quote Request: {pet_name} ({route_from} → {route_to})"


def submit_quote_request(
    customer,
    *,
    pet_name: str,
    pet_type: str,
    route_from: str,
    route_to: str,
    pet_breed: str = "",
    pet_weight: float = 0,
    preferred_travel_date: str = "",
    special_requirements: str = "",
) -> QuoteRequest:
    """
    Customer intake: quote request, its conversation, the shipment and
    the opening status message.

    Everything is flushed into the caller's transaction; a failure at
    any step rolls the whole fan-out back.
    """
    if pet_type not in PET_TYPES:
        raise ValidationError(f"Unknown pet type: {pet_type}")

    qr = QuoteRequest(
        customer_user_id=customer.id,
        pet_name=pet_name,
        pet_type=pet_type,
        pet_breed=pet_breed or "",
        pet_weight=pet_weight or 0,
        route_from=route_from,
        route_to=route_to,
        preferred_travel_date=preferred_travel_date or "",
        special_requirements=special_requirements or "",
        status="pending",
    )
    db.session.add(qr)
    db.session.flush()

    conversation = create_conversation(
        quote_conversation_title(pet_name, route_from, route_to),
        [customer.id],
        kind="client",
    )

    shipment = create_shipment(
        conversation,
        pet_name=pet_name,
        pet_type=pet_type,
        pet_breed=pet_breed or None,
        pet_weight=pet_weight,
        owner_name=customer.name,
        owner_email=customer.email,
        route_from=route_from,
        route_to=route_to,
        status="quote_requested",
        special_instructions=special_requirements or None,
    )

    post_message(
        conversation,
        sender_id=customer.id,
        kind="status",
        text=f"New quote request submitted for {pet_name}",
        payload={
            "type": "quote_requested",
            "quoteRequestId": qr.id,
            "shipmentId": shipment.id,
            "petName": pet_name,
            "petType": pet_type,
            "petBreed": pet_breed or "",
            "petWeight": pet_weight or 0,
            "route": {"from": route_from, "to": route_to},
            "preferredTravelDate": preferred_travel_date or "",
            "specialRequirements": special_requirements or "",
        },
    )

    qr.conversation_id = conversation.id
    db.session.flush()

    current_app.logger.info(
        "Quote request %s from user %s: conversation %s, shipment %s",
        qr.id,
        customer.id,
        conversation.id,
        shipment.id,
    )
    return qr


def list_quote_requests(user) -> list[QuoteRequest]:
    query = QuoteRequest.query
    if not is_staff(user):
        query = query.filter(QuoteRequest.customer_user_id == user.id)
    return query.order_by(QuoteRequest.created_at.desc(), QuoteRequest.id.desc()).all()


def update_quote_request_status(quote_request_id: int, status: str) -> QuoteRequest:
    if status not in QUOTE_REQUEST_STATUSES:
        raise ValidationError(f"Unknown quote request status: {status}")
    qr = db.session.get(QuoteRequest, quote_request_id)
    if qr is None:
        raise NotFoundError(f"Quote request {quote_request_id} not found.")
    qr.status = status
    db.session.flush()
    return qr
