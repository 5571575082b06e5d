# Overview: Service-layer operations for inventory; catalog intake and conditional stock consumption.

"""
Inventory invariants:
- stock_quantity never goes negative. Sales decrement it only through a
  conditional UPDATE ... WHERE stock_quantity >= :qty, never read-then-write.
- For IMEI-tracked products each unit on hand has slots_per_unit serials in
  product_imeis; selling a unit deletes its serials, receiving adds them.
- A serial exists at most once across the whole catalog.
"""

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..errors import ValidationError, InsufficientStockError, ImeiMismatchError, NotFoundError
from ..models import Product, ProductImei
from ..models.catalog import PRODUCT_CATEGORIES, IMEI_TRACKED_CATEGORIES, SIM_TYPES, SIM_NONE
from ..validation import (
    require_text,
    optional_text,
    coerce_amount,
    coerce_quantity,
    coerce_percent,
    coerce_choice,
)
from .concurrency import run_in_transaction


def get_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise NotFoundError(f"Product {product_id} not found")
    return product


def consume_stock(product: Product, quantity: int, imeis: list[str] | None = None) -> None:
    """
    Take quantity units (and their serials) out of stock inside the
    caller's transaction. Raises InsufficientStockError if another writer
    got there first.
    """
    stmt = (
        update(Product)
        .where(Product.id == product.id, Product.stock_quantity >= quantity)
        .values(
            stock_quantity=Product.stock_quantity - quantity,
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session="fetch")
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        available = (
            db.session.query(Product.stock_quantity)
            .filter(Product.id == product.id)
            .scalar()
        ) or 0
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            available=available,
            requested=quantity,
        )

    if imeis:
        (
            db.session.query(ProductImei)
            .filter(ProductImei.product_id == product.id, ProductImei.imei.in_(imeis))
            .delete(synchronize_session=False)
        )
        db.session.expire(product, ["imeis"])


def _clean_serials(raw) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    serials = [str(v).strip() for v in raw if v is not None and str(v).strip()]
    if len(set(serials)) != len(serials):
        raise ValidationError("Duplicate IMEI in request", details={"field": "imei"})
    return serials


def _add_serials(product: Product, quantity: int, serials: list[str]) -> None:
    if not product.track_imei:
        return
    expected = quantity * product.slots_per_unit
    if len(serials) != expected:
        raise ImeiMismatchError(
            product_id=product.id,
            product_name=product.name,
            expected=expected,
            received=len(serials),
        )
    existing = (
        db.session.query(ProductImei.imei)
        .filter(ProductImei.imei.in_(serials))
        .all()
    )
    if existing:
        raise ValidationError(
            "IMEI already in stock",
            details={"imei": sorted(row.imei for row in existing)},
        )
    for serial in serials:
        db.session.add(ProductImei(product_id=product.id, imei=serial))


def receive_stock(product_id: int, quantity, imeis=None, purchase_price=None) -> Product:
    """Purchase intake: +quantity units and their serials."""
    quantity = coerce_quantity(quantity)
    serials = _clean_serials(imeis)

    def _op():
        product = get_product(product_id)
        _add_serials(product, quantity, serials)
        values = {
            "stock_quantity": Product.stock_quantity + quantity,
            "version_id": Product.version_id + 1,
        }
        if purchase_price is not None:
            values["purchase_price"] = coerce_amount(purchase_price, "purchase_price")
        db.session.execute(
            update(Product)
            .where(Product.id == product.id)
            .values(**values)
            .execution_options(synchronize_session="fetch")
        )
        db.session.commit()
        return product

    return run_in_transaction(_op)


def create_product(data: dict) -> Product:
    category = coerce_choice(data.get("category"), "category", PRODUCT_CATEGORIES, default="Others")
    track_imei = data.get("track_imei")
    if track_imei is None:
        track_imei = category in IMEI_TRACKED_CATEGORIES

    gst = data.get("gst_percent")
    product = Product(
        name=require_text(data.get("name"), "name"),
        brand=require_text(data.get("brand"), "brand"),
        category=category,
        purchase_price=coerce_amount(data.get("purchase_price"), "purchase_price", default=0),
        selling_price=coerce_amount(data.get("selling_price"), "selling_price"),
        gst_percent=coerce_percent(gst, "gst_percent") if gst not in (None, "") else 18,
        stock_quantity=0,
        low_stock_threshold=coerce_amount(data.get("low_stock_threshold"), "low_stock_threshold", default=2),
        track_imei=bool(track_imei),
        sim_type=coerce_choice(data.get("sim_type"), "sim_type", SIM_TYPES, default=SIM_NONE),
        warranty_period=optional_text(data.get("warranty_period")),
        description=optional_text(data.get("description")),
    )

    initial = data.get("stock_quantity")
    quantity = coerce_quantity(initial, "stock_quantity") if initial not in (None, "", 0) else 0
    serials = _clean_serials(data.get("imei"))

    def _op():
        db.session.add(product)
        db.session.flush()
        if quantity:
            _add_serials(product, quantity, serials)
            product.stock_quantity = quantity
        db.session.commit()
        return product

    return run_in_transaction(_op)
