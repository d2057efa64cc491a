# petship/services/payment_requests.py
from __future__ import annotations

from flask import current_app

from petship.errors import ConflictError, NotFoundError, ValidationError
from petship.extensions import db
from petship.models import PaymentRequest, utcnow_naive
from petship.services.ledger import format_dollars, process_payment
from petship.services.messaging import get_conversation_or_404, post_message, shipment_for_conversation


def create_request(conversation_id: int, amount_cents: int, description: str | None = None) -> PaymentRequest:
    if amount_cents <= 0:
        raise ValidationError("Payment request amount must be positive.")
    conversation = get_conversation_or_404(conversation_id)

    pr = PaymentRequest(
        conversation_id=conversation.id,
        amount_cents=amount_cents,
        description=description,
        status="pending",
    )
    db.session.add(pr)
    db.session.flush()
    return pr


def list_requests() -> list[PaymentRequest]:
    return PaymentRequest.query.order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc()).all()


def requests_for_conversation(conversation_id: int) -> list[PaymentRequest]:
    return (
        PaymentRequest.query.filter_by(conversation_id=conversation_id)
        .order_by(PaymentRequest.created_at.desc(), PaymentRequest.id.desc())
        .all()
    )


def get_request_or_404(request_id: int) -> PaymentRequest:
    pr = db.session.get(PaymentRequest, request_id)
    if pr is None:
        raise NotFoundError(f"Payment request {request_id} not found.")
    return pr


def _require_pending(pr: PaymentRequest) -> None:
    if pr.status != "pending":
        raise ConflictError(f"Payment request {pr.id} is already {pr.status}.")


def mark_paid(request_id: int, actor) -> PaymentRequest:
    """
    Settle a payment request. The money itself is booked on the
    conversation's shipment ledger; the request only tracks its own state.
    """
    pr = get_request_or_404(request_id)
    _require_pending(pr)

    shipment = shipment_for_conversation(pr.conversation_id)
    if shipment is not None:
        process_payment(
            shipment.id,
            pr.amount_cents,
            actor,
            method="payment_request",
            transaction_id=f"payreq-{pr.id}",
            notes=pr.description,
        )
    else:
        current_app.logger.warning(
            "Payment request %s paid but conversation %s has no shipment ledger", pr.id, pr.conversation_id
        )

    pr.status = "paid"
    pr.paid_at = utcnow_naive()

    post_message(
        get_conversation_or_404(pr.conversation_id),
        sender_id=actor.id if actor is not None else None,
        kind="status",
        text=f"Payment completed: {format_dollars(pr.amount_cents)}",
        payload={
            "type": "payment_completed",
            "paymentRequestId": pr.id,
            "amount_cents": pr.amount_cents,
        },
    )
    db.session.flush()
    return pr


def cancel(request_id: int) -> PaymentRequest:
    pr = get_request_or_404(request_id)
    _require_pending(pr)
    pr.status = "cancelled"
    db.session.flush()
    return pr
