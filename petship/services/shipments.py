# petship/services/shipments.py
from __future__ import annotations

import sqlalchemy as sa
from flask import current_app

from petship.errors import ConflictError, NotFoundError, ValidationError
from petship.extensions import db
from petship.models import (
    PET_TYPES,
    RECOMMENDED_NEXT_STATUSES,
    SHIPMENT_STATUSES,
    Conversation,
    Shipment,
    can_transition,
)
from petship.services.messaging import post_message, shipment_for_conversation

__all__ = [
    "create_shipment",
    "update_shipment",
    "update_status",
    "recommended_next_statuses",
    "shipment_for_conversation",
    "get_shipment_or_404",
]

DETAIL_FIELDS = (
    "pet_name",
    "pet_breed",
    "pet_weight",
    "owner_name",
    "owner_email",
    "owner_phone",
    "estimated_departure",
    "estimated_arrival",
    "actual_departure",
    "actual_arrival",
    "flight_number",
    "crate_size",
    "special_instructions",
)


def locking_select(shipment_id: int):
    """
    SELECT ... FOR UPDATE OF shipment. The joined conversation stays
    unlocked; Postgres refuses FOR UPDATE on the nullable side of the
    eager outer join.
    """
    return (
        sa.select(Shipment)
        .where(Shipment.id == shipment_id)
        .with_for_update(of=Shipment)
        .execution_options(populate_existing=True)
    )


def get_shipment_or_404(shipment_id: int, *, for_update: bool = False) -> Shipment:
    if for_update:
        shipment = db.session.execute(locking_select(shipment_id)).scalar_one_or_none()
    else:
        shipment = db.session.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFoundError(f"Shipment {shipment_id} not found.")
    return shipment


def recommended_next_statuses(status: str) -> list[str]:
    return list(RECOMMENDED_NEXT_STATUSES.get(status, ()))


def create_shipment(
    conversation: Conversation,
    *,
    pet_name: str,
    owner_name: str,
    route_from: str,
    route_to: str,
    pet_type: str = "other",
    status: str = "quote_requested",
    **fields,
) -> Shipment:
    if shipment_for_conversation(conversation.id) is not None:
        raise ConflictError(f"Conversation {conversation.id} already has a shipment.")
    if pet_type not in PET_TYPES:
        raise ValidationError(f"Unknown pet type: {pet_type}")
    if status not in SHIPMENT_STATUSES:
        raise ValidationError(f"Unknown shipment status: {status}")

    shipment = Shipment(
        conversation_id=conversation.id,
        pet_name=pet_name,
        pet_type=pet_type,
        owner_name=owner_name,
        route_from=route_from,
        route_to=route_to,
        status=status,
        paid_amount_cents=0,
    )
    for key, value in fields.items():
        if key in DETAIL_FIELDS:
            setattr(shipment, key, value)

    db.session.add(shipment)
    db.session.flush()
    current_app.logger.info("Created shipment %s for conversation %s", shipment.id, conversation.id)
    return shipment


def update_shipment(shipment: Shipment, **fields) -> Shipment:
    """Update pet/owner/logistics details. Status and billing have their own paths."""
    for key, value in fields.items():
        if key not in DETAIL_FIELDS:
            raise ValidationError(f"Field '{key}' cannot be updated here.")
        setattr(shipment, key, value)
    db.session.flush()
    return shipment


def update_status(shipment_id: int, status: str, actor) -> Shipment:
    """
    Explicit staff overwrite of a shipment's status.

    Free-form by default. With ENFORCE_STATUS_TRANSITIONS only the
    recommended next statuses are accepted.
    """
    if status not in SHIPMENT_STATUSES:
        raise ValidationError(f"Unknown shipment status: {status}")

    shipment = get_shipment_or_404(shipment_id, for_update=True)
    previous = shipment.status
    if previous == status:
        return shipment

    if current_app.config.get("ENFORCE_STATUS_TRANSITIONS") and not can_transition(previous, status):
        raise ValidationError(
            f"Cannot move shipment from {previous} to {status}.",
            details={"allowed": recommended_next_statuses(previous)},
        )

    shipment.status = status
    post_message(
        shipment.conversation,
        sender_id=actor.id if actor is not None else None,
        kind="status",
        text=f"Shipment status updated to {status.replace('_', ' ')}",
        payload={"type": "status_changed", "from": previous, "to": status, "shipmentId": shipment.id},
    )
    current_app.logger.info("Shipment %s status %s -> %s by user %s", shipment.id, previous, status, getattr(actor, "id", None))
    return shipment
