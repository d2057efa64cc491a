# petship/admin.py
from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from flask_login import current_user
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError

from .errors import ConflictError, NotFoundError, ValidationError
from .extensions import db
from .models import ROLES, User
from .schemas import (
    CreateUserRequest,
    DocumentReviewRequest,
    DocumentTemplateRequest,
    DocumentTemplateUpdate,
    ProductRequest,
    ProductUpdate,
    QuoteTemplateRequest,
    QuoteTemplateUpdate,
    parse_body,
)
from .services import catalog, document_files, document_templates
from .services.visibility import list_all_documents
from .utils.guards import admin_required, staff_required
from .utils.passwords import hash_password, validate_password
from .utils.serializers import (
    document_dict,
    document_template_dict,
    product_dict,
    quote_template_dict,
    user_dict,
)

admin_bp = Blueprint("admin", __name__, url_prefix="/admin")


# -------------------------------------------------------------------
# Helpers
# -------------------------------------------------------------------
def _commit_or_rollback(action: str) -> bool:
    """Commit session; rollback + log on failure. Returns True on success."""
    try:
        db.session.commit()
        return True
    except IntegrityError:
        db.session.rollback()
        raise ConflictError(f"{action} conflicts with existing data.")
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("%s failed", action)
        return False


def _failed(action: str):
    return jsonify({"error": "server_error", "message": f"{action} failed. Please try again."}), 500


def _normalize_role(role: str) -> str:
    return (role or "").strip().lower().replace("-", "_")


# -------------------------------------------------------------------
# Users
# GET /admin/users?role=client&q=sarah
# -------------------------------------------------------------------
@admin_bp.route("/users", methods=["GET"])
@staff_required
def list_users():
    q = (request.args.get("q") or "").strip().lower()
    role = _normalize_role(request.args.get("role") or "")

    qry = User.query
    if q:
        like = f"%{q}%"
        qry = qry.filter(
            or_(
                db.func.lower(User.name).like(like),
                db.func.lower(User.email).like(like),
            )
        )
    if role:
        if role not in ROLES:
            raise ValidationError(f"Unknown role: {role}")
        qry = qry.filter(User.role == role)

    return jsonify([user_dict(u) for u in qry.order_by(User.id.asc()).all()]), 200


@admin_bp.route("/users/<int:user_id>", methods=["GET"])
@staff_required
def get_user(user_id: int):
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found.")
    return jsonify(user_dict(user)), 200


@admin_bp.route("/users", methods=["POST"])
@admin_required
def create_user():
    body = parse_body(CreateUserRequest)
    if not body.password and not current_app.config.get("DEMO_LOGIN_ENABLED"):
        raise ValidationError("Password is required.")

    password_hash = None
    if body.password:
        ok, msg = validate_password(body.password)
        if not ok:
            raise ValidationError(msg)
        password_hash = hash_password(body.password)

    if User.query.filter(db.func.lower(User.email) == body.email).first() is not None:
        raise ConflictError("An account with this email already exists.")

    user = User(
        name=body.name,
        email=body.email,
        role=body.role,
        org_id=body.org_id,
        password_hash=password_hash,
    )
    db.session.add(user)
    if not _commit_or_rollback("Create user"):
        return _failed("Create user")

    current_app.logger.info("Admin %s created %s user %s", current_user.id, user.role, user.email)
    return jsonify(user_dict(user)), 201


# -------------------------------------------------------------------
# Documents (all, unscoped) + review
# -------------------------------------------------------------------
@admin_bp.route("/documents", methods=["GET"])
@staff_required
def all_documents():
    status = (request.args.get("status") or "").strip()
    docs = list_all_documents(current_user)
    if status:
        docs = [d for d in docs if d.status == status]
    return jsonify([document_dict(d) for d in docs]), 200


@admin_bp.route("/documents/<document_id>/review", methods=["POST"])
@staff_required
def review_document(document_id: str):
    body = parse_body(DocumentReviewRequest)
    doc = document_files.review_document(document_id, body.status, body.notes)
    if not _commit_or_rollback("Review document"):
        return _failed("Review document")
    current_app.logger.info("Document %s marked %s by user %s", doc.id, doc.status, current_user.id)
    return jsonify(document_dict(doc)), 200


# -------------------------------------------------------------------
# Products
# -------------------------------------------------------------------
@admin_bp.route("/products", methods=["POST"])
@staff_required
def create_product():
    body = parse_body(ProductRequest)
    product = catalog.create_product(**body.model_dump())
    if not _commit_or_rollback("Create product"):
        return _failed("Create product")
    return jsonify(product_dict(product)), 201


@admin_bp.route("/products/<int:product_id>", methods=["PATCH"])
@staff_required
def update_product(product_id: int):
    body = parse_body(ProductUpdate)
    product = catalog.update_product(product_id, **body.model_dump(exclude_unset=True))
    if not _commit_or_rollback("Update product"):
        return _failed("Update product")
    return jsonify(product_dict(product)), 200


@admin_bp.route("/products/<int:product_id>", methods=["DELETE"])
@staff_required
def delete_product(product_id: int):
    catalog.delete_product(product_id)
    if not _commit_or_rollback("Delete product"):
        return _failed("Delete product")
    return jsonify({"ok": True}), 200


# -------------------------------------------------------------------
# Quote templates
# -------------------------------------------------------------------
@admin_bp.route("/quote-templates", methods=["POST"])
@staff_required
def create_quote_template():
    body = parse_body(QuoteTemplateRequest)
    template = catalog.create_quote_template(**body.model_dump())
    if not _commit_or_rollback("Create quote template"):
        return _failed("Create quote template")
    return jsonify(quote_template_dict(template)), 201


@admin_bp.route("/quote-templates/<int:template_id>", methods=["PATCH"])
@staff_required
def update_quote_template(template_id: int):
    body = parse_body(QuoteTemplateUpdate)
    template = catalog.update_quote_template(template_id, **body.model_dump(exclude_unset=True))
    if not _commit_or_rollback("Update quote template"):
        return _failed("Update quote template")
    return jsonify(quote_template_dict(template)), 200


@admin_bp.route("/quote-templates/<int:template_id>", methods=["DELETE"])
@staff_required
def delete_quote_template(template_id: int):
    catalog.delete_quote_template(template_id)
    if not _commit_or_rollback("Delete quote template"):
        return _failed("Delete quote template")
    return jsonify({"ok": True}), 200


# -------------------------------------------------------------------
# Document templates
# -------------------------------------------------------------------
@admin_bp.route("/document-templates/<int:template_id>", methods=["GET"])
@staff_required
def get_document_template(template_id: int):
    return jsonify(document_template_dict(document_templates.get_template_or_404(template_id))), 200


@admin_bp.route("/document-templates", methods=["POST"])
@staff_required
def create_document_template():
    body = parse_body(DocumentTemplateRequest)
    template = document_templates.create_template(
        title=body.title,
        description=body.description,
        category=body.category,
        requirements=[r.model_dump(exclude_none=True) for r in body.requirements],
    )
    if not _commit_or_rollback("Create document template"):
        return _failed("Create document template")
    return jsonify(document_template_dict(template)), 201


@admin_bp.route("/document-templates/<int:template_id>", methods=["PATCH"])
@staff_required
def update_document_template(template_id: int):
    body = parse_body(DocumentTemplateUpdate)
    fields = body.model_dump(exclude_unset=True)
    if body.requirements is not None:
        fields["requirements"] = [r.model_dump(exclude_none=True) for r in body.requirements]
    template = document_templates.update_template(template_id, **fields)
    if not _commit_or_rollback("Update document template"):
        return _failed("Update document template")
    return jsonify(document_template_dict(template)), 200


@admin_bp.route("/document-templates/<int:template_id>", methods=["DELETE"])
@staff_required
def deactivate_document_template(template_id: int):
    template = document_templates.deactivate_template(template_id)
    if not _commit_or_rollback("Deactivate document template"):
        return _failed("Deactivate document template")
    return jsonify(document_template_dict(template)), 200
