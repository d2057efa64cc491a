import pytest

from petship.errors import ConflictError, ValidationError
from petship.services import catalog, document_templates


def test_default_requirements_fall_back_to_builtin(db):
    result = document_templates.default_requirements("international", "dog")
    assert result["source"] == "builtin"
    assert result["template_id"] is None
    assert result["category"] == "international"
    assert result["requirements"]


def test_general_template_used_when_category_has_none(db):
    general = document_templates.create_template(
        title="Basics",
        category="general",
        requirements=[{"name": "Owner ID", "required": True}],
    )
    db.session.commit()

    result = document_templates.default_requirements("domestic")
    assert result["source"] == "template"
    assert result["template_id"] == general.id


def test_category_template_wins_until_deactivated(db):
    document_templates.create_template(title="Basics", category="general")
    domestic = document_templates.create_template(title="Mainland to Hawaii", category="domestic")
    db.session.commit()

    assert document_templates.default_requirements("domestic")["template_id"] == domestic.id

    document_templates.deactivate_template(domestic.id)
    db.session.commit()

    assert domestic.active is False
    assert document_templates.default_requirements("domestic")["title"] == "Basics"
    assert domestic.id not in [t.id for t in document_templates.list_active()]


def test_unknown_shipping_type_or_category(db):
    with pytest.raises(ValidationError):
        document_templates.default_requirements("lunar")
    with pytest.raises(ValidationError):
        document_templates.create_template(title="x", category="lunar")


def test_update_template_rejects_unknown_fields(db):
    template = document_templates.create_template(title="Basics", category="general")
    with pytest.raises(ValidationError):
        document_templates.update_template(template.id, created_at=None)


def test_product_sku_must_be_unique(db):
    crate = catalog.create_product(name="Large crate", sku="CRATE-L-001", price_cents=25000)
    db.session.commit()

    with pytest.raises(ConflictError):
        catalog.create_product(name="Another crate", sku="CRATE-L-001", price_cents=1)

    catalog.update_product(crate.id, sku="CRATE-L-001", price_cents=26000)
    db.session.commit()
    assert crate.price_cents == 26000


def test_active_products_only(db):
    catalog.create_product(name="Crate", sku="C-1", price_cents=100)
    catalog.create_product(name="Retired crate", sku="C-0", price_cents=50, active=False)
    db.session.commit()

    assert [p.sku for p in catalog.list_active_products()] == ["C-1"]
    assert len(catalog.list_products()) == 2
