from datetime import timedelta

import pytest

from petship.errors import UnauthorizedError, ValidationError
from petship.models import Message, QuoteRequest, utcnow_naive
from petship.services import messaging


@pytest.mark.parametrize(
    "kind,payload,expected",
    [
        ("quote", {"price_cents": 125000}, "quote_sent"),
        ("status", {"type": "quote_accepted"}, "booking_confirmed"),
        ("status", {"type": "payment_completed"}, "documents_pending"),
        ("status", {"type": "quote_declined"}, "cancelled"),
    ],
)
def test_implicit_transitions(db, users, make_shipment, kind, payload, expected):
    shipment = make_shipment(participants=[users.client])
    messaging.post_message(shipment.conversation, sender_id=users.staff.id, kind=kind, payload=payload)
    db.session.commit()

    assert shipment.status == expected


def test_text_and_other_status_types_leave_shipment_alone(db, users, make_shipment):
    shipment = make_shipment(participants=[users.client], status="flight_scheduled")
    conv = shipment.conversation
    messaging.send_text(conv, users.client, "Is Bella's flight still on time?")
    messaging.send_status(conv, users.staff, {"type": "flight_delayed"}, text="Delayed 2h")
    db.session.commit()

    assert shipment.status == "flight_scheduled"


def test_transition_skipped_when_conversation_has_no_shipment(db, users, make_conversation):
    conv = make_conversation(participants=[users.client])
    msg = messaging.send_quote(conv, users.staff, {"price_cents": 99000})
    db.session.commit()

    assert msg.id is not None
    assert Message.query.filter_by(conversation_id=conv.id).count() == 1


def test_quote_accept_syncs_quote_request(db, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    qr = QuoteRequest(
        customer_user_id=users.client.id,
        conversation_id=shipment.conversation_id,
        pet_name="Bella",
        pet_type="dog",
        route_from="Guam",
        route_to="Honolulu, HI",
    )
    db.session.add(qr)
    db.session.commit()

    messaging.send_quote(shipment.conversation, users.staff, {"price_cents": 125000})
    db.session.commit()
    assert qr.status == "quoted"

    messaging.send_status(shipment.conversation, users.client, {"type": "quote_accepted"})
    db.session.commit()
    assert qr.status == "accepted"


def test_last_message_at_never_moves_backwards(db, users, make_conversation):
    conv = make_conversation(participants=[users.client])
    messaging.send_text(conv, users.client, "first")
    db.session.commit()
    newest = conv.last_message_at

    # A message stamped in the past (clock skew, imports) must not rewind the inbox.
    messaging.post_message(
        conv, sender_id=users.staff.id, kind="text", text="late", at=newest - timedelta(minutes=5)
    )
    db.session.commit()
    assert conv.last_message_at == newest

    later = utcnow_naive() + timedelta(seconds=1)
    messaging.post_message(conv, sender_id=users.staff.id, kind="text", text="later", at=later)
    db.session.commit()
    assert conv.last_message_at == later


def test_empty_text_rejected(users, make_conversation):
    conv = make_conversation(participants=[users.client])
    with pytest.raises(ValidationError):
        messaging.send_text(conv, users.client, "   ")


@pytest.mark.parametrize(
    "kind,payload,allowed",
    [
        ("text", None, True),
        ("status", {"type": "quote_accepted"}, True),
        ("status", {"type": "quote_declined"}, True),
        ("status", {"type": "payment_completed"}, False),
        ("quote", {"price_cents": 1}, False),
        ("product", {"sku": "CRATE-L-001"}, False),
    ],
)
def test_client_send_permissions(users, kind, payload, allowed):
    if allowed:
        messaging.check_can_send(users.client, kind, payload)
        messaging.check_can_send(users.partner, kind, payload)
    else:
        with pytest.raises(UnauthorizedError):
            messaging.check_can_send(users.client, kind, payload)
    messaging.check_can_send(users.staff, kind, payload)


def test_create_conversation_adds_client_creator(db, users):
    conv = messaging.create_conversation("Moving with Milo", [users.staff.id], creator=users.client)
    db.session.commit()

    assert conv.participant_ids == [users.client.id, users.staff.id]


def test_create_conversation_rejects_unknown_participant(users):
    with pytest.raises(ValidationError):
        messaging.create_conversation("Ghost", [424242], creator=users.staff)


def test_add_participant_is_idempotent(db, users, make_conversation):
    conv = make_conversation(participants=[users.client])
    messaging.add_participant(conv.id, users.partner.id)
    messaging.add_participant(conv.id, users.partner.id)
    db.session.commit()

    assert conv.participant_ids == [users.client.id, users.partner.id]
