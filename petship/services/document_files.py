# petship/services/document_files.py
from __future__ import annotations

import hashlib
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from flask import current_app, url_for
from itsdangerous import BadData, SignatureExpired, URLSafeTimedSerializer
from werkzeug.utils import secure_filename

from petship.errors import NotFoundError, UnauthorizedError, ValidationError
from petship.extensions import db
from petship.models import DOCUMENT_CATEGORIES, DOCUMENT_STATUSES, Document, Shipment, utcnow_naive
from petship.services.visibility import can_view_conversation, can_view_document
from petship.utils.guards import is_staff


# =========================================================
# Types
# =========================================================
@dataclass(frozen=True)
class StoredFile:
    storage_key: str
    sha256: str
    size: int


# =========================================================
# Blob store
# =========================================================
def _blob_storage_dir() -> str:
    """
    Local directory blob store.
    Priority:
      1) Flask config DOCUMENT_STORAGE_DIR
      2) Env DOCUMENT_STORAGE_DIR
      3) instance_path/blobs
    """
    base = current_app.config.get("DOCUMENT_STORAGE_DIR") or os.getenv("DOCUMENT_STORAGE_DIR")
    if not base:
        base = os.path.join(current_app.instance_path, "blobs")

    os.makedirs(base, exist_ok=True)
    return base


def _blob_path(storage_key: str) -> str:
    base = os.path.abspath(_blob_storage_dir())
    abs_path = os.path.abspath(os.path.join(base, storage_key))
    if not abs_path.startswith(base + os.sep):
        raise ValidationError("Invalid storage key.")
    return abs_path


def sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def default_storage_key(filename: str) -> str:
    """
    Example:
      documents/20260221/3f2c...e1_health_cert.pdf
    """
    day = datetime.utcnow().strftime("%Y%m%d")
    safe = secure_filename(filename) or "upload"
    return f"documents/{day}/{uuid.uuid4().hex}_{safe}"


def store_blob(data: bytes, *, filename: str = "upload", storage_key: Optional[str] = None) -> StoredFile:
    key = storage_key or default_storage_key(filename)
    abs_path = _blob_path(key)
    os.makedirs(os.path.dirname(abs_path), exist_ok=True)

    with open(abs_path, "wb") as f:
        f.write(data)

    return StoredFile(storage_key=key, sha256=sha256_hex(data), size=len(data))


def load_blob(storage_key: str) -> bytes:
    abs_path = _blob_path(storage_key)
    if not os.path.exists(abs_path):
        raise NotFoundError("File not found.")
    with open(abs_path, "rb") as f:
        return f.read()


def blob_exists(storage_key: str) -> bool:
    return os.path.exists(_blob_path(storage_key))


def delete_blob(storage_key: str) -> bool:
    abs_path = _blob_path(storage_key)
    if not os.path.exists(abs_path):
        return False
    os.remove(abs_path)
    return True


# =========================================================
# Signed download URLs
# =========================================================
_URL_SALT = "petship-document-download"


def _serializer() -> URLSafeTimedSerializer:
    return URLSafeTimedSerializer(current_app.config["SECRET_KEY"], salt=_URL_SALT)


def signed_url_for(document: Document) -> dict:
    max_age = int(current_app.config.get("DOCUMENT_URL_MAX_AGE", 900))
    token = _serializer().dumps({"doc": str(document.id), "key": document.storage_key})
    return {
        "url": url_for("public.download_file", token=token, _external=True),
        "expires_in": max_age,
    }


def resolve_signed_token(token: str) -> Document:
    max_age = int(current_app.config.get("DOCUMENT_URL_MAX_AGE", 900))
    try:
        data = _serializer().loads(token, max_age=max_age)
    except SignatureExpired:
        raise UnauthorizedError("Download link has expired.")
    except BadData:
        raise NotFoundError("File not found.")

    document = _get_by_id(data.get("doc"))
    # A re-uploaded blob invalidates older links.
    if document is None or document.storage_key != data.get("key"):
        raise NotFoundError("File not found.")
    return document


# =========================================================
# Document records
# =========================================================
def _get_by_id(document_id) -> Document | None:
    try:
        doc_uuid = document_id if isinstance(document_id, uuid.UUID) else uuid.UUID(str(document_id))
    except (TypeError, ValueError):
        return None
    return db.session.get(Document, doc_uuid)


def get_document_or_404(document_id) -> Document:
    document = _get_by_id(document_id)
    if document is None:
        raise NotFoundError(f"Document {document_id} not found.")
    return document


def require_document_access(user, document_id) -> Document:
    document = get_document_or_404(document_id)
    if not can_view_document(user, document):
        raise UnauthorizedError("You do not have access to this document.")
    return document


def create_document(
    uploader,
    *,
    data: bytes,
    filename: str,
    content_type: str,
    category: str = "other",
    conversation=None,
    shipment: Shipment | None = None,
    name: str | None = None,
    notes: str | None = None,
) -> Document:
    if category not in DOCUMENT_CATEGORIES:
        raise ValidationError(f"Unknown document category: {category}")
    if not data:
        raise ValidationError("Uploaded file is empty.")

    # Uploads land in a conversation the uploader can see.
    if shipment is not None and conversation is None:
        conversation = shipment.conversation
    if conversation is not None and not can_view_conversation(uploader, conversation):
        raise UnauthorizedError("You are not a participant in this conversation.")
    if shipment is not None and conversation is not None and shipment.conversation_id != conversation.id:
        raise ValidationError("Shipment does not belong to this conversation.")

    stored = store_blob(data, filename=filename)
    document = Document(
        name=name or filename,
        storage_key=stored.storage_key,
        file_sha256=stored.sha256,
        content_type=content_type or "application/octet-stream",
        size=stored.size,
        uploaded_by=uploader.id,
        conversation_id=conversation.id if conversation is not None else None,
        shipment_id=shipment.id if shipment is not None else None,
        category=category,
        status="pending",
        notes=notes,
    )
    db.session.add(document)
    db.session.flush()
    current_app.logger.info("Stored document %s (%s bytes) for user %s", document.id, stored.size, uploader.id)
    return document


def documents_for_shipment(shipment_id: int) -> list[Document]:
    return (
        Document.query.filter_by(shipment_id=shipment_id)
        .order_by(Document.created_at.desc())
        .all()
    )


def documents_for_conversation(conversation_id: int) -> list[Document]:
    return (
        Document.query.filter_by(conversation_id=conversation_id)
        .order_by(Document.created_at.desc())
        .all()
    )


def review_document(document_id, status: str, notes: str | None = None) -> Document:
    if status not in DOCUMENT_STATUSES:
        raise ValidationError(f"Unknown document status: {status}")
    document = get_document_or_404(document_id)
    document.status = status
    if notes is not None:
        document.notes = notes
    document.updated_at = utcnow_naive()
    db.session.flush()
    return document


def attach_to_shipment(document_id, shipment_id: int) -> Document:
    document = get_document_or_404(document_id)
    shipment = db.session.get(Shipment, shipment_id)
    if shipment is None:
        raise NotFoundError(f"Shipment {shipment_id} not found.")
    document.shipment_id = shipment.id
    if document.conversation_id is None:
        document.conversation_id = shipment.conversation_id
    db.session.flush()
    return document


def delete_document(document_id, actor) -> None:
    """Uploader or staff only. The blob goes first, then the record."""
    document = get_document_or_404(document_id)
    if not (is_staff(actor) or document.uploaded_by == actor.id):
        raise UnauthorizedError("Only the uploader or staff can delete this document.")

    if not delete_blob(document.storage_key):
        current_app.logger.warning("Blob %s already missing for document %s", document.storage_key, document.id)

    db.session.delete(document)
    db.session.flush()
