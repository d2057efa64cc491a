import os

from petship.models import Conversation, Document, Message, Product, QuoteTemplate, Shipment, User
from petship.services import document_files, maintenance


def test_seed_users_is_idempotent(db):
    assert maintenance.seed_users() == len(maintenance.SEED_USERS)
    db.session.commit()
    assert maintenance.seed_users() == 0
    assert User.query.count() == len(maintenance.SEED_USERS)


def test_seed_all_data_runs_once(db):
    assert maintenance.seed_all_data() is True
    db.session.commit()

    shipment = Shipment.query.one()
    assert shipment.pet_name == "Bella"
    assert shipment.route_to == "Honolulu, HI"
    assert Message.query.count() == 2
    assert Product.query.count() == len(maintenance.SEED_PRODUCTS)
    assert QuoteTemplate.query.count() == len(maintenance.SEED_QUOTE_TEMPLATES)

    assert maintenance.seed_all_data() is False
    assert Conversation.query.count() == 1


def test_backfill_rebuilds_from_quote_request_message(db, users, make_conversation):
    conv = make_conversation(title="Quote Request: Rex", participants=[users.client])
    db.session.add(
        Message(
            conversation_id=conv.id,
            sender_id=users.client.id,
            kind="status",
            text="New quote request submitted for Rex",
            payload={
                "type": "quote_requested",
                "petName": "Rex",
                "petType": "lizard",
                "route": {"from": "LAX"},
            },
        )
    )
    make_conversation(title="Just chatting", participants=[users.client])
    db.session.commit()

    assert maintenance.backfill_missing_shipments() == 1
    db.session.commit()

    shipment = Shipment.query.one()
    assert shipment.conversation_id == conv.id
    assert shipment.pet_name == "Rex"
    assert shipment.pet_type == "other"
    assert (shipment.route_from, shipment.route_to) == ("LAX", "Unknown")
    assert shipment.owner_name == "Sarah Johnson"
    assert shipment.status == "quote_requested"

    assert maintenance.backfill_missing_shipments() == 0


def test_clear_all_data_keeps_users_and_removes_blobs(app, db, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    doc = document_files.create_document(
        users.client,
        data=b"passport scan",
        filename="passport.png",
        content_type="image/png",
        shipment=shipment,
    )
    db.session.commit()
    blob = os.path.join(app.config["DOCUMENT_STORAGE_DIR"], doc.storage_key)
    assert os.path.exists(blob)

    counts = maintenance.clear_all_data()
    db.session.commit()

    assert counts["blobs"] == 1
    assert counts["shipments"] == 1
    assert not os.path.exists(blob)
    assert Document.query.count() == 0
    assert Conversation.query.count() == 0
    assert User.query.count() == 5
