# petship/services/catalog.py
"""Products and quote templates offered by staff in conversations."""
from __future__ import annotations

from petship.errors import ConflictError, NotFoundError, ValidationError
from petship.extensions import db
from petship.models import Product, QuoteTemplate


def _apply(obj, fields: dict, allowed: tuple[str, ...]):
    for key, value in fields.items():
        if key not in allowed:
            raise ValidationError(f"Field '{key}' cannot be updated.")
        setattr(obj, key, value)


# =========================
# Products
# =========================
PRODUCT_FIELDS = ("name", "sku", "price_cents", "active")


def list_products() -> list[Product]:
    return Product.query.order_by(Product.name.asc()).all()


def list_active_products() -> list[Product]:
    return Product.query.filter_by(active=True).order_by(Product.name.asc()).all()


def get_product_or_404(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found.")
    return product


def _check_sku_free(sku: str, *, exclude_id: int | None = None) -> None:
    query = Product.query.filter(Product.sku == sku)
    if exclude_id is not None:
        query = query.filter(Product.id != exclude_id)
    if query.first() is not None:
        raise ConflictError(f"SKU {sku} is already in use.")


def create_product(*, name: str, sku: str, price_cents: int, active: bool = True) -> Product:
    _check_sku_free(sku)
    product = Product(name=name, sku=sku, price_cents=price_cents, active=active)
    db.session.add(product)
    db.session.flush()
    return product


def update_product(product_id: int, **fields) -> Product:
    product = get_product_or_404(product_id)
    if fields.get("sku"):
        _check_sku_free(fields["sku"], exclude_id=product.id)
    _apply(product, fields, PRODUCT_FIELDS)
    db.session.flush()
    return product


def delete_product(product_id: int) -> None:
    db.session.delete(get_product_or_404(product_id))
    db.session.flush()


# =========================
# Quote templates
# =========================
QUOTE_TEMPLATE_FIELDS = ("title", "body", "default_price_cents")


def list_quote_templates() -> list[QuoteTemplate]:
    return QuoteTemplate.query.order_by(QuoteTemplate.id.asc()).all()


def get_quote_template_or_404(template_id: int) -> QuoteTemplate:
    template = db.session.get(QuoteTemplate, template_id)
    if template is None:
        raise NotFoundError(f"Quote template {template_id} not found.")
    return template


def create_quote_template(*, title: str, body: str, default_price_cents: int) -> QuoteTemplate:
    template = QuoteTemplate(title=title, body=body, default_price_cents=default_price_cents)
    db.session.add(template)
    db.session.flush()
    return template


def update_quote_template(template_id: int, **fields) -> QuoteTemplate:
    template = get_quote_template_or_404(template_id)
    _apply(template, fields, QUOTE_TEMPLATE_FIELDS)
    db.session.flush()
    return template


def delete_quote_template(template_id: int) -> None:
    db.session.delete(get_quote_template_or_404(template_id))
    db.session.flush()
