# petship/services/document_templates.py
from __future__ import annotations

from petship.errors import NotFoundError, ValidationError
from petship.extensions import db
from petship.models import TEMPLATE_CATEGORIES, DocumentTemplate, utcnow_naive
from petship.services.documents_scaffold import SHIPPING_TYPE_OPTIONS, make_requirements_scaffold

EDITABLE_FIELDS = ("title", "description", "category", "requirements", "active")


def _check_category(category: str) -> None:
    if category not in TEMPLATE_CATEGORIES:
        raise ValidationError(f"Unknown template category: {category}")


def _newest_first(query):
    return query.order_by(DocumentTemplate.created_at.desc(), DocumentTemplate.id.desc())


def list_active() -> list[DocumentTemplate]:
    return _newest_first(DocumentTemplate.query.filter_by(active=True)).all()


def list_by_category(category: str) -> list[DocumentTemplate]:
    _check_category(category)
    return _newest_first(DocumentTemplate.query.filter_by(category=category, active=True)).all()


def get_template_or_404(template_id: int) -> DocumentTemplate:
    template = db.session.get(DocumentTemplate, template_id)
    if template is None:
        raise NotFoundError(f"Document template {template_id} not found.")
    return template


def create_template(*, title: str, category: str, description: str = "", requirements: list[dict] | None = None) -> DocumentTemplate:
    _check_category(category)
    template = DocumentTemplate(
        title=title,
        description=description or "",
        category=category,
        requirements=[dict(r) for r in (requirements or [])],
        active=True,
    )
    db.session.add(template)
    db.session.flush()
    return template


def update_template(template_id: int, **fields) -> DocumentTemplate:
    template = get_template_or_404(template_id)
    for key, value in fields.items():
        if key not in EDITABLE_FIELDS:
            raise ValidationError(f"Field '{key}' cannot be updated.")
        if key == "category":
            _check_category(value)
        if key == "requirements":
            value = [dict(r) for r in value]
        setattr(template, key, value)
    template.updated_at = utcnow_naive()
    db.session.flush()
    return template


def deactivate_template(template_id: int) -> DocumentTemplate:
    """Templates are never hard-deleted; they just drop out of the active lists."""
    return update_template(template_id, active=False)


def default_requirements(shipping_type: str, pet_type: str | None = None) -> dict:
    """
    Newest active template for the shipping type, else the newest active
    ``general`` template, else the built-in scaffold.
    """
    if shipping_type not in dict(SHIPPING_TYPE_OPTIONS):
        raise ValidationError(f"Unknown shipping type: {shipping_type}")

    for category in (shipping_type, "general"):
        template = _newest_first(DocumentTemplate.query.filter_by(category=category, active=True)).first()
        if template is not None:
            return {
                "source": "template",
                "template_id": template.id,
                "title": template.title,
                "description": template.description,
                "category": template.category,
                "requirements": list(template.requirements or []),
            }

    scaffold = make_requirements_scaffold(shipping_type, pet_type)
    return {
        "source": "builtin",
        "template_id": None,
        "title": scaffold["title"],
        "description": scaffold["description"],
        "category": shipping_type,
        "requirements": scaffold["requirements"],
    }
