import io
import os

import pytest

from petship.errors import UnauthorizedError, ValidationError
from petship.models import Document
from petship.services import document_files


def _blob_path(app, key):
    return os.path.join(app.config["DOCUMENT_STORAGE_DIR"], key)


@pytest.fixture
def health_cert(db, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    doc = document_files.create_document(
        users.client,
        data=b"%PDF-1.4 health certificate",
        filename="health cert.pdf",
        content_type="application/pdf",
        category="health_certificate",
        shipment=shipment,
    )
    db.session.commit()
    return doc


def test_upload_stores_blob_and_record(app, users, health_cert):
    assert health_cert.conversation_id == health_cert.shipment.conversation_id
    assert health_cert.size == len(b"%PDF-1.4 health certificate")
    assert health_cert.status == "pending"
    assert os.path.exists(_blob_path(app, health_cert.storage_key))
    assert document_files.load_blob(health_cert.storage_key) == b"%PDF-1.4 health certificate"


def test_outsider_cannot_upload_into_conversation(users, make_conversation):
    conv = make_conversation(participants=[users.client])
    with pytest.raises(UnauthorizedError):
        document_files.create_document(
            users.other_client,
            data=b"x",
            filename="x.txt",
            content_type="text/plain",
            conversation=conv,
        )


def test_delete_removes_blob_then_record(app, db, users, health_cert, monkeypatch):
    calls = []
    real_delete_blob = document_files.delete_blob

    def tracking_delete_blob(key):
        calls.append(("blob", db.session.get(Document, health_cert.id) is not None))
        return real_delete_blob(key)

    monkeypatch.setattr(document_files, "delete_blob", tracking_delete_blob)

    key = health_cert.storage_key
    doc_id = health_cert.id
    document_files.delete_document(doc_id, users.client)
    db.session.commit()

    # record still present when the blob was removed
    assert calls == [("blob", True)]
    assert not os.path.exists(_blob_path(app, key))
    assert db.session.get(Document, doc_id) is None


def test_only_uploader_or_staff_can_delete(db, users, health_cert):
    with pytest.raises(UnauthorizedError):
        document_files.delete_document(health_cert.id, users.other_client)

    document_files.delete_document(health_cert.id, users.staff)
    db.session.commit()
    assert Document.query.count() == 0


def test_review_and_attach(db, users, health_cert, make_shipment):
    document_files.review_document(health_cert.id, "approved", notes="Looks good")
    db.session.commit()
    assert health_cert.status == "approved"
    assert health_cert.notes == "Looks good"

    with pytest.raises(ValidationError):
        document_files.review_document(health_cert.id, "shredded")

    other = make_shipment(participants=[users.client], pet_name="Milo")
    document_files.attach_to_shipment(health_cert.id, other.id)
    db.session.commit()
    assert health_cert.shipment_id == other.id


def test_visible_documents_follow_conversation(users, health_cert):
    from petship.services.visibility import visible_documents

    assert [d.id for d in visible_documents(users.client)] == [health_cert.id]
    assert visible_documents(users.other_client) == []
    assert len(visible_documents(users.staff)) == 1


def test_signed_url_download(client, login, users, health_cert):
    login(users.client)
    resp = client.get(f"/api/documents/{health_cert.id}/url")
    assert resp.status_code == 200
    url = resp.get_json()["url"]
    path = url.split("localhost", 1)[1]

    client.post("/logout")
    download = client.get(path)
    assert download.status_code == 200
    assert download.data == b"%PDF-1.4 health certificate"
    assert download.mimetype == "application/pdf"


def test_tampered_token_is_not_found(client):
    assert client.get("/files/not-a-real-token").status_code == 404


def test_http_upload(client, login, users, make_shipment):
    shipment = make_shipment(participants=[users.client])
    login(users.client)

    resp = client.post(
        "/api/documents",
        data={
            "file": (io.BytesIO(b"rabies vaccine record"), "rabies.pdf", "application/pdf"),
            "category": "vaccination_record",
            "shipment_id": str(shipment.id),
        },
        content_type="multipart/form-data",
    )
    assert resp.status_code == 201, resp.get_json()
    body = resp.get_json()
    assert body["category"] == "vaccination_record"
    assert body["shipment_id"] == shipment.id
    assert body["conversation_id"] == shipment.conversation_id

    listed = client.get(f"/api/shipments/{shipment.id}/documents").get_json()
    assert [d["id"] for d in listed] == [body["id"]]


def test_admin_listing_forbidden_for_clients(client, login, users):
    login(users.client)
    assert client.get("/admin/documents").status_code == 403


def test_unattached_upload_visible_to_uploader_only(db, users):
    from petship.services.visibility import can_view_document, visible_documents

    doc = document_files.create_document(
        users.client,
        data=b"draft permit",
        filename="permit.pdf",
        content_type="application/pdf",
        category="import_permit",
    )
    db.session.commit()

    assert doc.conversation_id is None
    assert [d.id for d in visible_documents(users.client)] == [doc.id]
    assert can_view_document(users.client, doc)
    assert not can_view_document(users.other_client, doc)
    assert visible_documents(users.other_client) == []
