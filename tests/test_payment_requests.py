import pytest

from petship.errors import ConflictError, ValidationError
from petship.models import Message, PaymentHistoryEntry
from petship.services import payment_requests


def test_mark_paid_books_ledger_and_advances_shipment(db, users, make_shipment):
    shipment = make_shipment(participants=[users.client], status="booking_confirmed", total_amount_cents=100000)
    pr = payment_requests.create_request(shipment.conversation_id, 40000, "Deposit")
    db.session.commit()

    payment_requests.mark_paid(pr.id, users.client)
    db.session.commit()

    assert pr.status == "paid"
    assert pr.paid_at is not None
    assert shipment.paid_amount_cents == 40000
    assert shipment.payment_status == "partial"
    assert shipment.status == "documents_pending"

    entry = PaymentHistoryEntry.query.one()
    assert entry.transaction_id == f"payreq-{pr.id}"
    assert entry.method == "payment_request"

    texts = [m.text for m in Message.query.order_by(Message.id).all()]
    assert texts == ["Payment received: $400.00", "Payment completed: $400.00"]


def test_mark_paid_without_shipment_skips_ledger(db, users, make_conversation):
    conv = make_conversation(participants=[users.client])
    pr = payment_requests.create_request(conv.id, 5000)
    db.session.commit()

    payment_requests.mark_paid(pr.id, users.staff)
    db.session.commit()

    assert pr.status == "paid"
    assert PaymentHistoryEntry.query.count() == 0
    assert Message.query.one().payload["type"] == "payment_completed"


def test_only_pending_requests_change_state(db, users, make_conversation):
    conv = make_conversation()
    pr = payment_requests.create_request(conv.id, 5000)
    db.session.commit()

    payment_requests.cancel(pr.id)
    db.session.commit()
    assert pr.status == "cancelled"

    with pytest.raises(ConflictError):
        payment_requests.mark_paid(pr.id, users.staff)
    with pytest.raises(ConflictError):
        payment_requests.cancel(pr.id)


def test_amount_must_be_positive(make_conversation):
    conv = make_conversation()
    with pytest.raises(ValidationError):
        payment_requests.create_request(conv.id, 0)


def test_requests_for_conversation_newest_first(db, make_conversation):
    conv = make_conversation()
    first = payment_requests.create_request(conv.id, 1000)
    second = payment_requests.create_request(conv.id, 2000)
    db.session.commit()

    assert [pr.id for pr in payment_requests.requests_for_conversation(conv.id)] == [second.id, first.id]
