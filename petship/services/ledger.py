# petship/services/ledger.py
"""
Shipment billing and the payment ledger.

All money is integer cents. ``paid_amount_cents`` is the running sum of
payments minus refunds and may go negative on an over-refund; that is
preserved and surfaces as payment status ``refunded``.

Every write loads the shipment row FOR UPDATE; the mapper's version
column turns any lost update that slips past the lock into a 409.
"""
from __future__ import annotations

from datetime import datetime

from flask import current_app

from petship.errors import ValidationError
from petship.extensions import db
from petship.models import PaymentHistoryEntry, Shipment, utcnow_naive
from petship.services.messaging import post_message
from petship.services.shipments import get_shipment_or_404
from petship.services.visibility import visible_shipments_query

BOOKING_CONFIRMED_TEXT = "Booking confirmed! Payment received and your shipment is now confirmed."


def format_dollars(cents: int) -> str:
    return f"${cents / 100:,.2f}"


def payment_status_for(total_cents: int | None, paid_cents: int, *, refund: bool = False) -> str:
    total = total_cents or 0
    if paid_cents <= 0:
        return "refunded" if refund and paid_cents < 0 else "pending"
    if paid_cents >= total:
        return "paid"
    return "partial"


# =========================================================
# Billing
# =========================================================
def set_billing_info(
    shipment_id: int,
    *,
    line_items: list[dict] | None = None,
    total_amount_cents: int | None = None,
    payment_due_date: datetime | None = None,
) -> Shipment:
    shipment = get_shipment_or_404(shipment_id, for_update=True)

    if line_items:
        if any(int(item["amount_cents"]) < 0 for item in line_items):
            raise ValidationError("Line item amounts cannot be negative.")
        shipment.line_items = [dict(item) for item in line_items]
        shipment.total_amount_cents = sum(int(item["amount_cents"]) for item in line_items)
    elif total_amount_cents is not None:
        if total_amount_cents < 0:
            raise ValidationError("total_amount_cents cannot be negative.")
        shipment.total_amount_cents = total_amount_cents

    if payment_due_date is not None:
        shipment.payment_due_date = payment_due_date

    if shipment.total_amount_cents:
        shipment.payment_status = payment_status_for(shipment.total_amount_cents, shipment.paid_amount_cents or 0)
    else:
        shipment.payment_status = None

    db.session.flush()
    current_app.logger.info(
        "Billing set for shipment %s: total=%s status=%s",
        shipment.id,
        shipment.total_amount_cents,
        shipment.payment_status,
    )
    return shipment


# =========================================================
# Payments / refunds
# =========================================================
def _append_entry(shipment: Shipment, *, amount_cents: int, entry_type: str, actor, method, transaction_id, notes):
    entry = PaymentHistoryEntry(
        shipment=shipment,
        amount_cents=amount_cents,
        entry_type=entry_type,
        method=method,
        transaction_id=transaction_id,
        processed_by=actor.id if actor is not None else None,
        processed_at=utcnow_naive(),
        notes=notes,
    )
    db.session.add(entry)
    return entry


def process_payment(
    shipment_id: int,
    amount_cents: int,
    actor,
    *,
    method: str | None = None,
    transaction_id: str | None = None,
    notes: str | None = None,
) -> Shipment:
    """
    Record a payment. A payment that settles a shipment still at
    ``quote_sent`` confirms the booking as well.
    """
    if amount_cents <= 0:
        raise ValidationError("Payment amount must be positive.")

    shipment = get_shipment_or_404(shipment_id, for_update=True)
    previous_status = shipment.status

    shipment.paid_amount_cents = (shipment.paid_amount_cents or 0) + amount_cents
    shipment.payment_status = payment_status_for(shipment.total_amount_cents, shipment.paid_amount_cents)
    _append_entry(
        shipment,
        amount_cents=amount_cents,
        entry_type="payment",
        actor=actor,
        method=method,
        transaction_id=transaction_id,
        notes=notes,
    )

    conversation = shipment.conversation
    post_message(
        conversation,
        sender_id=actor.id if actor is not None else None,
        kind="status",
        text=f"Payment received: {format_dollars(amount_cents)}",
        payload={
            "type": "payment_received",
            "shipmentId": shipment.id,
            "amount_cents": amount_cents,
            "paid_amount_cents": shipment.paid_amount_cents,
            "payment_status": shipment.payment_status,
            "method": method,
            "transaction_id": transaction_id,
        },
    )

    if shipment.payment_status == "paid" and previous_status == "quote_sent":
        shipment.status = "booking_confirmed"
        post_message(
            conversation,
            sender_id=None,
            kind="status",
            text=BOOKING_CONFIRMED_TEXT,
            payload={"type": "booking_confirmed", "shipmentId": shipment.id},
        )
        current_app.logger.info("Shipment %s fully paid; booking confirmed", shipment.id)

    db.session.flush()
    current_app.logger.info(
        "Payment of %s cents on shipment %s (paid=%s, status=%s)",
        amount_cents,
        shipment.id,
        shipment.paid_amount_cents,
        shipment.payment_status,
    )
    return shipment


def process_refund(
    shipment_id: int,
    amount_cents: int,
    actor,
    *,
    method: str | None = None,
    transaction_id: str | None = None,
    notes: str | None = None,
) -> Shipment:
    if amount_cents <= 0:
        raise ValidationError("Refund amount must be positive.")

    shipment = get_shipment_or_404(shipment_id, for_update=True)

    shipment.paid_amount_cents = (shipment.paid_amount_cents or 0) - amount_cents
    shipment.payment_status = payment_status_for(
        shipment.total_amount_cents, shipment.paid_amount_cents, refund=True
    )
    _append_entry(
        shipment,
        amount_cents=amount_cents,
        entry_type="refund",
        actor=actor,
        method=method,
        transaction_id=transaction_id,
        notes=notes,
    )

    post_message(
        shipment.conversation,
        sender_id=actor.id if actor is not None else None,
        kind="status",
        text=f"Refund processed: {format_dollars(amount_cents)}",
        payload={
            "type": "refund_processed",
            "shipmentId": shipment.id,
            "amount_cents": amount_cents,
            "paid_amount_cents": shipment.paid_amount_cents,
            "payment_status": shipment.payment_status,
        },
    )

    db.session.flush()
    if shipment.paid_amount_cents < 0:
        current_app.logger.warning(
            "Shipment %s over-refunded; paid balance is %s cents", shipment.id, shipment.paid_amount_cents
        )
    else:
        current_app.logger.info("Refund of %s cents on shipment %s", amount_cents, shipment.id)
    return shipment


# =========================================================
# Reporting
# =========================================================
def payment_summary(user) -> dict:
    shipments = visible_shipments_query(user).all()

    summary = {
        "total_shipments": len(shipments),
        "pending_payments": 0,
        "paid_shipments": 0,
        "partial_payments": 0,
        "total_revenue_cents": 0,
        "outstanding_cents": 0,
    }
    for s in shipments:
        if s.payment_status == "pending":
            summary["pending_payments"] += 1
        elif s.payment_status == "paid":
            summary["paid_shipments"] += 1
        elif s.payment_status == "partial":
            summary["partial_payments"] += 1
        summary["total_revenue_cents"] += s.paid_amount_cents or 0
        summary["outstanding_cents"] += s.outstanding_cents
    return summary
