"""
Test configuration and fixtures.

Provides:
- A fresh app on in-memory SQLite per test (tables created/dropped)
- One user per role plus a second client for scoping checks
- Helpers to build conversations/shipments and to log a test client in
"""
from dataclasses import dataclass

import pytest

from petship import create_app
from petship.extensions import db as _db
from petship.models import Conversation, Shipment, User
from petship.settings import TestConfig


# =============================================================================
# App / DB
# =============================================================================

@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config["DOCUMENT_STORAGE_DIR"] = str(tmp_path / "blobs")

    with app.app_context():
        _db.create_all()
        yield app
        _db.session.remove()
        _db.drop_all()


@pytest.fixture
def db(app):
    return _db


@pytest.fixture
def client(app):
    return app.test_client()


# =============================================================================
# Users
# =============================================================================

@dataclass
class Users:
    admin: User
    staff: User
    client: User
    other_client: User
    partner: User


@pytest.fixture
def users(db) -> Users:
    people = Users(
        admin=User(name="Ada Admin", email="ada@petshippers.com", role="admin", org_id="org_petshippers"),
        staff=User(name="Ken Staff", email="ken@petshippers.com", role="staff", org_id="org_petshippers"),
        client=User(name="Sarah Johnson", email="sarah@example.com", role="client"),
        other_client=User(name="Tom Other", email="tom@example.com", role="client"),
        partner=User(name="Hawaii Pet Express", email="contact@hawaiipetexpress.com", role="partner", org_id="org_hawaii_pets"),
    )
    db.session.add_all([people.admin, people.staff, people.client, people.other_client, people.partner])
    db.session.commit()
    return people


# =============================================================================
# Builders
# =============================================================================

@pytest.fixture
def make_conversation(db):
    def _make(title="Bella's Journey", participants=(), kind="client"):
        conv = Conversation(title=title, kind=kind)
        for user in participants:
            conv.add_participant(user.id)
        db.session.add(conv)
        db.session.commit()
        return conv

    return _make


@pytest.fixture
def make_shipment(db, make_conversation):
    def _make(conversation=None, participants=(), status="quote_requested", **fields):
        conv = conversation or make_conversation(participants=participants)
        shipment = Shipment(
            conversation_id=conv.id,
            pet_name=fields.pop("pet_name", "Bella"),
            pet_type=fields.pop("pet_type", "dog"),
            owner_name=fields.pop("owner_name", "Sarah Johnson"),
            route_from=fields.pop("route_from", "Guam"),
            route_to=fields.pop("route_to", "Honolulu, HI"),
            status=status,
            paid_amount_cents=0,
            **fields,
        )
        db.session.add(shipment)
        db.session.commit()
        return shipment

    return _make


@pytest.fixture
def login(client):
    def _login(user):
        resp = client.post("/login", json={"email": user.email})
        assert resp.status_code == 200, resp.get_json()
        return client

    return _login
