"""
Payment ledger: status function, payment/refund flows and append-only history.
"""
import pytest
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from petship.errors import NotFoundError, ValidationError
from petship.models import Message, PaymentHistoryEntry, Shipment
from petship.services import ledger


def _message_count(conversation_id):
    return Message.query.filter_by(conversation_id=conversation_id).count()


@pytest.mark.parametrize(
    "total,paid,refund,expected",
    [
        (100000, 0, False, "pending"),
        (100000, 40000, False, "partial"),
        (100000, 100000, False, "paid"),
        (100000, 120000, False, "paid"),
        (None, 5000, False, "paid"),
        (100000, -30000, False, "pending"),
        (100000, -30000, True, "refunded"),
        (100000, 0, True, "pending"),
        (100000, 70000, True, "partial"),
    ],
)
def test_payment_status_is_a_function_of_total_and_paid(total, paid, refund, expected):
    assert ledger.payment_status_for(total, paid, refund=refund) == expected


def test_full_payment_on_quoted_shipment_confirms_booking(db, users, make_shipment):
    shipment = make_shipment(participants=[users.client, users.staff], status="quote_sent")
    ledger.set_billing_info(shipment.id, total_amount_cents=100000)
    db.session.commit()

    conv = shipment.conversation
    before_activity = conv.last_message_at
    before_messages = _message_count(conv.id)

    ledger.process_payment(shipment.id, 100000, users.staff, method="stripe", transaction_id="pi_123")
    db.session.commit()

    assert shipment.paid_amount_cents == 100000
    assert shipment.payment_status == "paid"
    assert shipment.status == "booking_confirmed"
    assert len(shipment.payment_history) == 1
    assert _message_count(conv.id) == before_messages + 2
    assert conv.last_message_at >= before_activity

    received, confirmed = (
        Message.query.filter_by(conversation_id=conv.id).order_by(Message.id.desc()).limit(2).all()[::-1]
    )
    assert received.text == "Payment received: $1,000.00"
    assert received.payload["type"] == "payment_received"
    assert received.sender_id == users.staff.id
    assert confirmed.payload["type"] == "booking_confirmed"
    assert confirmed.sender_id is None


def test_payment_without_quote_sent_does_not_change_status(db, users, make_shipment):
    shipment = make_shipment(status="quote_requested")
    ledger.set_billing_info(shipment.id, total_amount_cents=50000)
    ledger.process_payment(shipment.id, 50000, users.staff)
    db.session.commit()

    assert shipment.payment_status == "paid"
    assert shipment.status == "quote_requested"
    assert _message_count(shipment.conversation_id) == 1


def test_partial_then_over_refund(db, users, make_shipment):
    shipment = make_shipment()
    ledger.set_billing_info(shipment.id, total_amount_cents=100000)
    ledger.process_payment(shipment.id, 100000, users.staff)
    db.session.commit()

    ledger.process_refund(shipment.id, 30000, users.staff)
    db.session.commit()
    assert shipment.paid_amount_cents == 70000
    assert shipment.payment_status == "partial"

    ledger.process_refund(shipment.id, 100000, users.staff)
    db.session.commit()
    assert shipment.paid_amount_cents == -30000
    assert shipment.payment_status == "refunded"

    last = Message.query.filter_by(conversation_id=shipment.conversation_id).order_by(Message.id.desc()).first()
    assert last.text == "Refund processed: $1,000.00"
    assert last.payload["type"] == "refund_processed"


def test_history_is_append_only(db, users, make_shipment):
    shipment = make_shipment()
    ledger.set_billing_info(shipment.id, total_amount_cents=90000)
    ledger.process_payment(shipment.id, 30000, users.staff, method="manual")
    db.session.commit()

    first = PaymentHistoryEntry.query.one()
    snapshot = (first.id, first.amount_cents, first.entry_type, first.method, first.processed_at)

    ledger.process_payment(shipment.id, 30000, users.staff)
    ledger.process_refund(shipment.id, 10000, users.staff)
    db.session.commit()

    rows = PaymentHistoryEntry.query.order_by(PaymentHistoryEntry.id).all()
    assert [r.entry_type for r in rows] == ["payment", "payment", "refund"]
    assert (rows[0].id, rows[0].amount_cents, rows[0].entry_type, rows[0].method, rows[0].processed_at) == snapshot


def test_missing_shipment_has_no_side_effects(db, users):
    with pytest.raises(NotFoundError):
        ledger.process_payment(9999, 1000, users.staff)
    db.session.rollback()

    assert PaymentHistoryEntry.query.count() == 0
    assert Message.query.count() == 0


def test_non_positive_amount_rejected(users, make_shipment):
    shipment = make_shipment()
    with pytest.raises(ValidationError):
        ledger.process_payment(shipment.id, 0, users.staff)


def test_line_items_set_the_total(db, make_shipment):
    shipment = make_shipment()
    ledger.set_billing_info(
        shipment.id,
        line_items=[
            {"description": "Flight", "amount_cents": 80000, "category": "shipping"},
            {"description": "Crate", "amount_cents": 25000, "category": "crate"},
        ],
        total_amount_cents=1,
    )
    db.session.commit()

    assert shipment.total_amount_cents == 105000
    assert shipment.payment_status == "pending"
    assert len(shipment.line_items) == 2


def test_billing_without_total_clears_payment_status(db, make_shipment):
    shipment = make_shipment()
    ledger.set_billing_info(shipment.id)
    db.session.commit()

    assert shipment.total_amount_cents is None
    assert shipment.payment_status is None


def test_summary_is_scoped(db, users, make_shipment):
    mine = make_shipment(participants=[users.client])
    theirs = make_shipment(participants=[users.other_client])
    ledger.set_billing_info(mine.id, total_amount_cents=100000)
    ledger.set_billing_info(theirs.id, total_amount_cents=200000)
    ledger.process_payment(mine.id, 40000, users.staff)
    db.session.commit()

    summary = ledger.payment_summary(users.client)
    assert summary["total_shipments"] == 1
    assert summary["partial_payments"] == 1
    assert summary["total_revenue_cents"] == 40000
    assert summary["outstanding_cents"] == 60000

    everything = ledger.payment_summary(users.admin)
    assert everything["total_shipments"] == 2
    assert everything["pending_payments"] == 1
    assert everything["outstanding_cents"] == 260000


def test_negative_line_item_rejected(db, make_shipment):
    shipment = make_shipment()
    with pytest.raises(ValidationError):
        ledger.set_billing_info(
            shipment.id,
            line_items=[
                {"description": "Flight", "amount_cents": 80000},
                {"description": "Discount", "amount_cents": -90000},
            ],
        )


def test_negative_line_item_rejected_over_http(client, login, users, make_shipment):
    shipment = make_shipment()
    login(users.staff)
    resp = client.put(
        f"/api/shipments/{shipment.id}/billing",
        json={"line_items": [{"description": "Discount", "amount_cents": -100}]},
    )
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "validation_error"


# =============================================================================
# Concurrent writers
# =============================================================================

def _pay_elsewhere(db, shipment_id, amount_cents):
    """Commit a payment-sized change from a second, independent session."""
    with Session(db.engine) as other:
        row = other.get(Shipment, shipment_id)
        row.paid_amount_cents += amount_cents
        other.commit()


def test_locked_payment_rereads_concurrent_write(db, users, make_shipment):
    shipment = make_shipment(total_amount_cents=100000)
    assert shipment.paid_amount_cents == 0

    _pay_elsewhere(db, shipment.id, 50000)

    ledger.process_payment(shipment.id, 30000, users.staff)
    db.session.commit()

    assert shipment.paid_amount_cents == 80000
    assert shipment.payment_status == "partial"


def test_stale_write_is_rejected(db, make_shipment):
    shipment = make_shipment(total_amount_cents=100000)
    assert shipment.paid_amount_cents == 0

    _pay_elsewhere(db, shipment.id, 50000)

    shipment.paid_amount_cents = 30000
    with pytest.raises(StaleDataError):
        db.session.commit()
    db.session.rollback()

    assert shipment.paid_amount_cents == 50000


def test_stale_write_maps_to_conflict(client, login, users, make_shipment, monkeypatch):
    shipment = make_shipment(total_amount_cents=100000)

    def lost_race(*args, **kwargs):
        raise StaleDataError("UPDATE statement on table 'shipment' expected to update 1 row(s); 0 were matched.")

    monkeypatch.setattr(ledger, "process_payment", lost_race)
    login(users.staff)

    resp = client.post(f"/api/shipments/{shipment.id}/payments", json={"amount_cents": 1000})
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "conflict"
    assert PaymentHistoryEntry.query.count() == 0
