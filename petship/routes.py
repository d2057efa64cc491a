# petship/routes.py
"""
JSON API for the inbox, shipments, billing and documents.

Handlers validate the body, call one service, then commit exactly once.
Services only flush, so a failure anywhere in a multi-step operation
(quote intake, payment + booking confirmation) rolls the whole thing back.
"""
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, make_response, request
from flask_login import current_user, login_required
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from petship.errors import ConflictError, ValidationError
from petship.extensions import db
from petship.schemas import (
    AddParticipantRequest,
    AttachDocumentRequest,
    BillingInfoRequest,
    CreateConversationRequest,
    CreatePaymentRequest,
    CreateShipmentRequest,
    DocumentUploadForm,
    LedgerEntryRequest,
    QuoteRequestStatusUpdate,
    QuoteRequestSubmission,
    SendMessageRequest,
    UpdateConversationRequest,
    UpdateShipmentRequest,
    UpdateStatusRequest,
    parse_body,
)
from petship.services import (
    catalog,
    document_files,
    document_templates,
    ledger,
    messaging,
    payment_requests,
    quote_intake,
    shipments,
    visibility,
)
from petship.utils.guards import staff_required
from petship.utils.invoice_pdf import invoice_number, render_shipment_invoice_pdf
from petship.utils.serializers import (
    conversation_dict,
    document_dict,
    document_template_dict,
    message_dict,
    payment_request_dict,
    product_dict,
    quote_request_dict,
    quote_template_dict,
    shipment_dict,
)

api = Blueprint("api", __name__, url_prefix="/api")


# =========================================================
# Small DB helper
# =========================================================
def _commit_or_rollback(action: str) -> bool:
    try:
        db.session.commit()
        return True
    except StaleDataError:
        db.session.rollback()
        raise
    except IntegrityError:
        db.session.rollback()
        current_app.logger.warning("%s hit a constraint violation", action)
        raise ConflictError(f"{action} conflicts with existing data.")
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        return False


def _failed(action: str):
    return jsonify({"error": "server_error", "message": f"{action} failed. Please try again."}), 500


# =========================================================
# Conversations
# =========================================================
@api.route("/conversations", methods=["GET"])
@login_required
def list_conversations():
    convs = visibility.visible_conversations(current_user)
    return jsonify([conversation_dict(c) for c in convs]), 200


@api.route("/conversations", methods=["POST"])
@login_required
def create_conversation():
    body = parse_body(CreateConversationRequest)
    conv = messaging.create_conversation(body.title, body.participant_ids, body.kind, creator=current_user)
    if not _commit_or_rollback("Create conversation"):
        return _failed("Create conversation")
    return jsonify(conversation_dict(conv)), 201


@api.route("/conversations/<int:conversation_id>", methods=["GET"])
@login_required
def get_conversation(conversation_id: int):
    conv = visibility.require_conversation_access(current_user, conversation_id)
    return jsonify(conversation_dict(conv)), 200


@api.route("/conversations/<int:conversation_id>", methods=["PATCH"])
@staff_required
def update_conversation(conversation_id: int):
    body = parse_body(UpdateConversationRequest)
    conv = messaging.update_conversation(conversation_id, title=body.title)
    if not _commit_or_rollback("Update conversation"):
        return _failed("Update conversation")
    return jsonify(conversation_dict(conv)), 200


@api.route("/conversations/<int:conversation_id>/participants", methods=["POST"])
@staff_required
def add_participant(conversation_id: int):
    body = parse_body(AddParticipantRequest)
    conv = messaging.add_participant(conversation_id, body.user_id)
    if not _commit_or_rollback("Add participant"):
        return _failed("Add participant")
    return jsonify(conversation_dict(conv)), 200


# =========================================================
# Messages
# =========================================================
@api.route("/conversations/<int:conversation_id>/messages", methods=["GET"])
@login_required
def list_messages(conversation_id: int):
    conv = visibility.require_conversation_access(current_user, conversation_id)
    return jsonify([message_dict(m) for m in messaging.list_messages(conv)]), 200


@api.route("/conversations/<int:conversation_id>/messages", methods=["POST"])
@login_required
def send_message(conversation_id: int):
    body = parse_body(SendMessageRequest)
    conv = visibility.require_conversation_access(current_user, conversation_id)
    messaging.check_can_send(current_user, body.kind, body.payload)

    msg = messaging.post_message(
        conv,
        sender_id=current_user.id,
        kind=body.kind,
        text=body.text,
        payload=body.payload,
    )
    if not _commit_or_rollback("Send message"):
        return _failed("Send message")
    return jsonify(message_dict(msg)), 201


@api.route("/conversations/<int:conversation_id>/shipment", methods=["GET"])
@login_required
def conversation_shipment(conversation_id: int):
    visibility.require_conversation_access(current_user, conversation_id)
    shipment = messaging.shipment_for_conversation(conversation_id)
    return jsonify(shipment_dict(shipment) if shipment else None), 200


@api.route("/conversations/<int:conversation_id>/documents", methods=["GET"])
@login_required
def conversation_documents(conversation_id: int):
    visibility.require_conversation_access(current_user, conversation_id)
    docs = document_files.documents_for_conversation(conversation_id)
    return jsonify([document_dict(d) for d in docs]), 200


@api.route("/conversations/<int:conversation_id>/payment-requests", methods=["GET"])
@login_required
def conversation_payment_requests(conversation_id: int):
    visibility.require_conversation_access(current_user, conversation_id)
    reqs = payment_requests.requests_for_conversation(conversation_id)
    return jsonify([payment_request_dict(pr) for pr in reqs]), 200


# =========================================================
# Shipments
# =========================================================
@api.route("/shipments", methods=["GET"])
@login_required
def list_shipments():
    rows = visibility.visible_shipments(current_user)
    return jsonify([shipment_dict(s, include_history=False) for s in rows]), 200


@api.route("/shipments", methods=["POST"])
@staff_required
def create_shipment():
    body = parse_body(CreateShipmentRequest)
    conv = messaging.get_conversation_or_404(body.conversation_id)

    fields = body.model_dump(exclude={"conversation_id", "route"}, exclude_none=True)
    shipment = shipments.create_shipment(
        conv,
        route_from=body.route.from_,
        route_to=body.route.to,
        **fields,
    )
    if not _commit_or_rollback("Create shipment"):
        return _failed("Create shipment")
    return jsonify(shipment_dict(shipment)), 201


@api.route("/shipments/<int:shipment_id>", methods=["GET"])
@login_required
def get_shipment(shipment_id: int):
    shipment = visibility.require_shipment_access(current_user, shipment_id)
    return jsonify(shipment_dict(shipment)), 200


@api.route("/shipments/<int:shipment_id>", methods=["PATCH"])
@staff_required
def update_shipment(shipment_id: int):
    body = parse_body(UpdateShipmentRequest)
    shipment = shipments.get_shipment_or_404(shipment_id)
    shipments.update_shipment(shipment, **body.model_dump(exclude_unset=True))
    if not _commit_or_rollback("Update shipment"):
        return _failed("Update shipment")
    return jsonify(shipment_dict(shipment)), 200


@api.route("/shipments/<int:shipment_id>/status", methods=["POST"])
@staff_required
def update_shipment_status(shipment_id: int):
    body = parse_body(UpdateStatusRequest)
    shipment = shipments.update_status(shipment_id, body.status, current_user)
    if not _commit_or_rollback("Update shipment status"):
        return _failed("Update shipment status")
    return jsonify(shipment_dict(shipment)), 200


@api.route("/shipments/<int:shipment_id>/next-statuses", methods=["GET"])
@login_required
def next_statuses(shipment_id: int):
    shipment = visibility.require_shipment_access(current_user, shipment_id)
    return jsonify(
        {
            "status": shipment.status,
            "recommended": shipments.recommended_next_statuses(shipment.status),
            "enforced": bool(current_app.config.get("ENFORCE_STATUS_TRANSITIONS")),
        }
    ), 200


@api.route("/shipments/<int:shipment_id>/documents", methods=["GET"])
@login_required
def shipment_documents(shipment_id: int):
    visibility.require_shipment_access(current_user, shipment_id)
    docs = document_files.documents_for_shipment(shipment_id)
    return jsonify([document_dict(d) for d in docs]), 200


# =========================================================
# Billing / ledger
# =========================================================
@api.route("/shipments/<int:shipment_id>/billing", methods=["PUT"])
@staff_required
def set_billing(shipment_id: int):
    body = parse_body(BillingInfoRequest)
    line_items = [li.model_dump() for li in body.line_items] if body.line_items else None
    shipment = ledger.set_billing_info(
        shipment_id,
        line_items=line_items,
        total_amount_cents=body.total_amount_cents,
        payment_due_date=body.payment_due_date,
    )
    if not _commit_or_rollback("Set billing"):
        return _failed("Set billing")
    return jsonify(shipment_dict(shipment)), 200


@api.route("/shipments/<int:shipment_id>/payments", methods=["POST"])
@staff_required
def record_payment(shipment_id: int):
    body = parse_body(LedgerEntryRequest)
    shipment = ledger.process_payment(
        shipment_id,
        body.amount_cents,
        current_user,
        method=body.method,
        transaction_id=body.transaction_id,
        notes=body.notes,
    )
    if not _commit_or_rollback("Record payment"):
        return _failed("Record payment")
    return jsonify(shipment_dict(shipment)), 200


@api.route("/shipments/<int:shipment_id>/refunds", methods=["POST"])
@staff_required
def record_refund(shipment_id: int):
    body = parse_body(LedgerEntryRequest)
    shipment = ledger.process_refund(
        shipment_id,
        body.amount_cents,
        current_user,
        method=body.method,
        transaction_id=body.transaction_id,
        notes=body.notes,
    )
    if not _commit_or_rollback("Record refund"):
        return _failed("Record refund")
    return jsonify(shipment_dict(shipment)), 200


@api.route("/shipments/<int:shipment_id>/invoice.pdf", methods=["GET"])
@login_required
def shipment_invoice(shipment_id: int):
    shipment = visibility.require_shipment_access(current_user, shipment_id)
    pdf = render_shipment_invoice_pdf(shipment)
    resp = make_response(pdf)
    resp.headers["Content-Type"] = "application/pdf"
    resp.headers["Content-Disposition"] = f"inline; filename=invoice-{invoice_number(shipment)}.pdf"
    return resp


@api.route("/payments/summary", methods=["GET"])
@login_required
def payments_summary():
    return jsonify(ledger.payment_summary(current_user)), 200


# =========================================================
# Quote requests
# =========================================================
@api.route("/quote-requests", methods=["GET"])
@login_required
def list_quote_requests():
    rows = quote_intake.list_quote_requests(current_user)
    return jsonify([quote_request_dict(qr) for qr in rows]), 200


@api.route("/quote-requests", methods=["POST"])
@login_required
def submit_quote_request():
    body = parse_body(QuoteRequestSubmission)
    qr = quote_intake.submit_quote_request(
        current_user,
        pet_name=body.pet_name,
        pet_type=body.pet_type,
        pet_breed=body.pet_breed,
        pet_weight=body.pet_weight,
        route_from=body.route.from_,
        route_to=body.route.to,
        preferred_travel_date=body.preferred_travel_date,
        special_requirements=body.special_requirements,
    )
    if not _commit_or_rollback("Submit quote request"):
        return _failed("Submit quote request")

    shipment = messaging.shipment_for_conversation(qr.conversation_id)
    return jsonify(
        {
            "quote_request": quote_request_dict(qr),
            "conversation_id": qr.conversation_id,
            "shipment_id": shipment.id if shipment else None,
        }
    ), 201


@api.route("/quote-requests/<int:quote_request_id>/status", methods=["POST"])
@staff_required
def update_quote_request_status(quote_request_id: int):
    body = parse_body(QuoteRequestStatusUpdate)
    qr = quote_intake.update_quote_request_status(quote_request_id, body.status)
    if not _commit_or_rollback("Update quote request"):
        return _failed("Update quote request")
    return jsonify(quote_request_dict(qr)), 200


# =========================================================
# Payment requests
# =========================================================
@api.route("/payment-requests", methods=["GET"])
@staff_required
def list_payment_requests():
    return jsonify([payment_request_dict(pr) for pr in payment_requests.list_requests()]), 200


@api.route("/payment-requests", methods=["POST"])
@staff_required
def create_payment_request():
    body = parse_body(CreatePaymentRequest)
    pr = payment_requests.create_request(body.conversation_id, body.amount_cents, body.description)
    if not _commit_or_rollback("Create payment request"):
        return _failed("Create payment request")
    return jsonify(payment_request_dict(pr)), 201


@api.route("/payment-requests/<int:request_id>/paid", methods=["POST"])
@login_required
def mark_payment_request_paid(request_id: int):
    pr = payment_requests.get_request_or_404(request_id)
    # Customers settle their own requests; staff can settle any.
    visibility.require_conversation_access(current_user, pr.conversation_id)
    pr = payment_requests.mark_paid(request_id, current_user)
    if not _commit_or_rollback("Mark payment request paid"):
        return _failed("Mark payment request paid")
    return jsonify(payment_request_dict(pr)), 200


@api.route("/payment-requests/<int:request_id>/cancel", methods=["POST"])
@staff_required
def cancel_payment_request(request_id: int):
    pr = payment_requests.cancel(request_id)
    if not _commit_or_rollback("Cancel payment request"):
        return _failed("Cancel payment request")
    return jsonify(payment_request_dict(pr)), 200


# =========================================================
# Documents
# =========================================================
@api.route("/documents", methods=["GET"])
@login_required
def list_documents():
    return jsonify([document_dict(d) for d in visibility.visible_documents(current_user)]), 200


@api.route("/documents", methods=["POST"])
@login_required
def upload_document():
    upload = request.files.get("file")
    if upload is None or not upload.filename:
        raise ValidationError("A file is required.")
    form = DocumentUploadForm.model_validate(request.form.to_dict())

    conv = None
    if form.conversation_id is not None:
        conv = visibility.require_conversation_access(current_user, form.conversation_id)
    shipment = None
    if form.shipment_id is not None:
        shipment = visibility.require_shipment_access(current_user, form.shipment_id)

    doc = document_files.create_document(
        current_user,
        data=upload.read(),
        filename=upload.filename,
        content_type=upload.mimetype,
        category=form.category,
        conversation=conv,
        shipment=shipment,
        name=form.name,
        notes=form.notes,
    )
    if not _commit_or_rollback("Upload document"):
        document_files.delete_blob(doc.storage_key)
        return _failed("Upload document")
    return jsonify(document_dict(doc)), 201


@api.route("/documents/<document_id>", methods=["DELETE"])
@login_required
def delete_document(document_id: str):
    document_files.delete_document(document_id, current_user)
    if not _commit_or_rollback("Delete document"):
        return _failed("Delete document")
    return jsonify({"ok": True}), 200


@api.route("/documents/<document_id>/url", methods=["GET"])
@login_required
def document_url(document_id: str):
    doc = document_files.require_document_access(current_user, document_id)
    return jsonify(document_files.signed_url_for(doc)), 200


@api.route("/documents/<document_id>/attach", methods=["POST"])
@staff_required
def attach_document(document_id: str):
    body = parse_body(AttachDocumentRequest)
    doc = document_files.attach_to_shipment(document_id, body.shipment_id)
    if not _commit_or_rollback("Attach document"):
        return _failed("Attach document")
    return jsonify(document_dict(doc)), 200


# =========================================================
# Catalog / templates (read side)
# =========================================================
@api.route("/products", methods=["GET"])
@login_required
def list_products():
    return jsonify([product_dict(p) for p in catalog.list_products()]), 200


@api.route("/products/active", methods=["GET"])
@login_required
def list_active_products():
    return jsonify([product_dict(p) for p in catalog.list_active_products()]), 200


@api.route("/quote-templates", methods=["GET"])
@login_required
def list_quote_templates():
    return jsonify([quote_template_dict(t) for t in catalog.list_quote_templates()]), 200


@api.route("/document-templates", methods=["GET"])
@login_required
def list_document_templates():
    category = (request.args.get("category") or "").strip()
    rows = document_templates.list_by_category(category) if category else document_templates.list_active()
    return jsonify([document_template_dict(t) for t in rows]), 200


@api.route("/document-templates/default", methods=["GET"])
@login_required
def default_document_requirements():
    shipping_type = (request.args.get("shipping_type") or "domestic").strip()
    pet_type = (request.args.get("pet_type") or "").strip() or None
    return jsonify(document_templates.default_requirements(shipping_type, pet_type)), 200
