# petship/services/maintenance.py
"""
Seeding, clearing and backfill jobs run from the CLI.

Like the rest of the services these only flush; the CLI command commits.
"""
from __future__ import annotations

from datetime import timedelta

from flask import current_app

from petship.extensions import db
from petship.models import (
    Conversation,
    ConversationParticipant,
    Document,
    DocumentTemplate,
    Message,
    PET_TYPES,
    PaymentHistoryEntry,
    PaymentRequest,
    Product,
    QuoteRequest,
    QuoteTemplate,
    Shipment,
    User,
    utcnow_naive,
)
from petship.services.document_files import delete_blob

STAFF_ORG = "org_petshippers"

SEED_USERS = [
    # demo logins
    {"name": "Admin User", "email": "admin@example.com", "role": "admin", "org_id": STAFF_ORG},
    {"name": "Staff User", "email": "staff@example.com", "role": "staff", "org_id": STAFF_ORG},
    {"name": "Client User", "email": "client@example.com", "role": "client", "org_id": None},
    # named accounts
    {"name": "Ada Admin", "email": "ada@petshippers.com", "role": "admin", "org_id": STAFF_ORG},
    {"name": "Ken Staff", "email": "ken@petshippers.com", "role": "staff", "org_id": STAFF_ORG},
    {"name": "Sarah Johnson", "email": "sarah@example.com", "role": "client", "org_id": None},
    {"name": "Hawaii Pet Express", "email": "contact@hawaiipetexpress.com", "role": "partner", "org_id": "org_hawaii_pets"},
]

SEED_PRODUCTS = [
    {"name": "Large IATA Crate (36x25x27)", "sku": "CRATE-L-001", "price_cents": 25000},
    {"name": "Pet Health Certificate Processing", "sku": "HEALTH-CERT-001", "price_cents": 15000},
]

SEED_QUOTE_TEMPLATES = [
    {
        "title": "Standard Pet Shipping - Domestic",
        "body": (
            "This quote includes: IATA-approved crate, health certificate processing, door-to-door pickup "
            "and delivery, flight booking, and 24/7 tracking. All pets travel in climate-controlled cargo "
            "areas with experienced handlers."
        ),
        "default_price_cents": 125000,
    },
    {
        "title": "Premium Pet Shipping - International",
        "body": (
            "Our premium service includes: Custom IATA crate, expedited health certificates, VIP handling, "
            "direct flights when possible, real-time GPS tracking, and dedicated customer support. Perfect "
            "for international relocations."
        ),
        "default_price_cents": 285000,
    },
    {
        "title": "Express Pet Shipping - Same Day",
        "body": (
            "Emergency same-day service includes: Immediate pickup, priority flight booking, expedited "
            "processing, and real-time updates. Available for urgent relocations and emergency situations."
        ),
        "default_price_cents": 450000,
    },
]


# =========================================================
# Seeding
# =========================================================
def seed_users() -> int:
    """Create any missing seed accounts. Returns how many were created."""
    existing = {email for (email,) in db.session.query(User.email).all()}
    created = 0
    for row in SEED_USERS:
        if row["email"] in existing:
            continue
        db.session.add(User(**row))
        created += 1
    db.session.flush()
    current_app.logger.info("Seeded %s users", created)
    return created


def _user(email: str) -> User:
    return User.query.filter_by(email=email).one()


def seed_all_data() -> bool:
    """
    Seed a demo conversation, shipment, products and quote templates.
    Skipped (returns False) when any conversation already exists.
    """
    if db.session.query(Conversation.id).first() is not None:
        current_app.logger.info("Data already exists; clear it first to reseed")
        return False

    seed_users()
    client = _user("sarah@example.com")
    staff = _user("ken@petshippers.com")

    now = utcnow_naive()
    conversation = Conversation(title="Bella's Journey to Hawaii", kind="client", last_message_at=now)
    conversation.add_participant(client.id)
    conversation.add_participant(staff.id)
    db.session.add(conversation)
    db.session.flush()

    db.session.add_all(
        [
            Message(
                conversation_id=conversation.id,
                sender_id=client.id,
                kind="text",
                text="Hi! I need help shipping my dog Bella to Hawaii. Can you help me with a quote?",
                created_at=now - timedelta(hours=1),
            ),
            Message(
                conversation_id=conversation.id,
                sender_id=staff.id,
                kind="text",
                text=(
                    "Of course! I'd be happy to help you with Bella's journey. "
                    "Let me get some details and prepare a quote for you."
                ),
                created_at=now - timedelta(minutes=55),
            ),
        ]
    )

    db.session.add(
        Shipment(
            conversation_id=conversation.id,
            pet_name="Bella",
            pet_type="dog",
            pet_breed="Golden Retriever",
            pet_weight=65,
            owner_name=client.name,
            owner_email=client.email,
            owner_phone="(555) 123-4567",
            route_from="Guam",
            route_to="Honolulu, HI",
            status="quote_requested",
            estimated_departure="2024-09-15",
            estimated_arrival="2024-09-15",
            flight_number="UA154",
            crate_size="Large (36x25x27)",
            special_instructions=(
                "Bella is very friendly but gets anxious during travel. Please handle with extra care."
            ),
            paid_amount_cents=0,
            created_at=now - timedelta(hours=1),
        )
    )

    db.session.add_all([Product(active=True, **p) for p in SEED_PRODUCTS])
    db.session.add_all([QuoteTemplate(**t) for t in SEED_QUOTE_TEMPLATES])

    db.session.flush()
    current_app.logger.info("Seeded demo conversation %s with shipment, products and quote templates", conversation.id)
    return True


# =========================================================
# Clearing
# =========================================================
def clear_all_data() -> dict:
    """Remove everything except users. Document blobs are removed before their rows."""
    counts = {}

    blobs_removed = 0
    for doc in Document.query.all():
        if delete_blob(doc.storage_key):
            blobs_removed += 1
    counts["blobs"] = blobs_removed

    for label, model in (
        ("messages", Message),
        ("payment_history", PaymentHistoryEntry),
        ("documents", Document),
        ("payment_requests", PaymentRequest),
        ("quote_requests", QuoteRequest),
        ("shipments", Shipment),
        ("participants", ConversationParticipant),
        ("conversations", Conversation),
        ("products", Product),
        ("quote_templates", QuoteTemplate),
        ("document_templates", DocumentTemplate),
    ):
        counts[label] = db.session.query(model).delete(synchronize_session=False)

    db.session.flush()
    db.session.expire_all()
    current_app.logger.warning("Cleared all data: %s", counts)
    return counts


# =========================================================
# Backfill
# =========================================================
def backfill_missing_shipments() -> int:
    """
    Rebuild shipments for conversations that have none, from their first
    ``quote_requested`` status message. Returns how many were created.
    """
    with_shipment = {cid for (cid,) in db.session.query(Shipment.conversation_id).all()}
    created = 0

    for conversation in Conversation.query.order_by(Conversation.id.asc()).all():
        if conversation.id in with_shipment:
            continue

        status_messages = (
            Message.query.filter_by(conversation_id=conversation.id, kind="status")
            .order_by(Message.created_at.asc(), Message.id.asc())
            .all()
        )
        source = next((m for m in status_messages if m.payload_type == "quote_requested"), None)
        if source is None:
            continue

        payload = dict(source.payload)
        route = payload.get("route") or {}

        owner_name, owner_email = "Customer", None
        customer_id = next(iter(conversation.participant_ids), None)
        customer = db.session.get(User, customer_id) if customer_id is not None else None
        if customer is not None:
            owner_name, owner_email = customer.name, customer.email

        pet_type = payload.get("petType") or "other"
        stamp = conversation.last_message_at or utcnow_naive()
        db.session.add(
            Shipment(
                conversation_id=conversation.id,
                pet_name=payload.get("petName") or "Pet",
                pet_type=pet_type if pet_type in PET_TYPES else "other",
                pet_breed=payload.get("petBreed") or "",
                pet_weight=payload.get("petWeight") or 0,
                owner_name=owner_name,
                owner_email=owner_email,
                route_from=route.get("from") or "Unknown",
                route_to=route.get("to") or "Unknown",
                status="quote_requested",
                special_instructions=payload.get("specialRequirements") or "",
                paid_amount_cents=0,
                created_at=stamp,
                updated_at=stamp,
            )
        )
        created += 1

    db.session.flush()
    current_app.logger.info("Backfill completed: %s shipment records created", created)
    return created
