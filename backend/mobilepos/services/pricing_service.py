# Overview: Service-layer operations for line pricing; unit price, GST policy, stock and IMEI checks.

"""
Line-Item Pricer

Prices are tax-inclusive. For a line total T at rate g:
    taxable = round(T / (1 + g/100)),  gst = T - taxable,  cgst = sgst = gst / 2

Catalog lines are validated against the product (stock, serial count) but
never mutate it here; the settlement coordinator consumes stock only after
the whole cart has priced cleanly.
"""

from __future__ import annotations

import re
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal

from flask import current_app

from ..extensions import db
from ..config import PricingSettings
from ..errors import EngineError, ValidationError, InsufficientStockError, ImeiMismatchError
from ..models import Product
from ..money import HUNDRED, to_decimal, round_amount, half
from ..validation import (
    require_text,
    optional_text,
    coerce_amount,
    coerce_quantity,
    coerce_percent,
)
from .offer_service import resolve_offer_price

ADHOC_CATEGORY = "Others"
# Values clients send for "no product selected"
_EMPTY_PRODUCT_REFS = {"", "null", "undefined", "none"}
_CATEGORY_WORDS = re.compile(r"[a-z]+")


@dataclass
class TaxSplit:
    taxable_value: int
    gst_amount: int
    cgst: Decimal
    sgst: Decimal


def split_tax(total: int, gst_percent) -> TaxSplit:
    """Reverse-compute the taxable value of a tax-inclusive whole-unit total."""
    rate = to_decimal(gst_percent)
    taxable = round_amount(to_decimal(total) * HUNDRED / (HUNDRED + rate))
    gst_amount = total - taxable
    return TaxSplit(
        taxable_value=taxable,
        gst_amount=gst_amount,
        cgst=half(gst_amount),
        sgst=half(gst_amount),
    )


@dataclass
class PricedLine:
    position: int
    name: str
    category: str
    quantity: int
    unit_price: int
    original_price: int
    gst_percent: Decimal
    line_discount: int = 0
    product: Product | None = None
    purchase_price: int = 0
    offer_name: str | None = None
    offer_discount: int = 0
    sim_type: str | None = None
    imeis: list[str] = field(default_factory=list)

    # Filled by allocation_service.allocate_document_discount
    total: int | None = None
    discount_share: int = 0
    tax: TaxSplit | None = None

    @property
    def product_id(self) -> int | None:
        return self.product.id if self.product is not None else None

    @property
    def line_total(self) -> int:
        """Pre-document-discount total, floored at zero."""
        return max(0, self.unit_price * self.quantity - self.line_discount)


def is_mobile_category(category: str | None, settings: PricingSettings) -> bool:
    """Whole-word keyword match, plural tolerant: "Mobile Phones" yes, "Earphones" no."""
    words = set(_CATEGORY_WORDS.findall((category or "").lower()))
    words |= {w[:-1] for w in words if w.endswith("s")}
    return any(keyword in words for keyword in settings.mobile_category_keywords)


def resolve_gst_percent(product: Product, requested, settings: PricingSettings) -> Decimal:
    """
    Mobile phones are pinned to the statutory rate whatever the product
    record or the client says. Other categories take the client's rate when
    given, else the product's, else the default.
    """
    if is_mobile_category(product.category, settings):
        return to_decimal(settings.mobile_gst_percent)
    if requested is not None and requested != "":
        return coerce_percent(requested, "gst_percent")
    if product.gst_percent is not None:
        return to_decimal(product.gst_percent)
    return to_decimal(settings.default_gst_percent)


def _product_ref(item: dict):
    ref = item.get("product_id", item.get("product"))
    if ref is None:
        return None
    if isinstance(ref, str) and ref.strip().lower() in _EMPTY_PRODUCT_REFS:
        return None
    if isinstance(ref, bool):
        raise ValidationError("product_id must be an integer", details={"field": "product_id"})
    try:
        return int(ref)
    except (TypeError, ValueError):
        raise ValidationError("product_id must be an integer", details={"field": "product_id", "value": ref})


def _clean_imeis(raw) -> list[str]:
    if raw is None:
        return []
    if isinstance(raw, str):
        raw = [raw]
    return [str(v).strip() for v in raw if v is not None and str(v).strip()]


def _validate_imeis(product: Product, quantity: int, item: dict, settings: PricingSettings) -> list[str]:
    if not product.track_imei:
        return []

    provided = _clean_imeis(item.get("imei", item.get("imeis")))
    if len(set(provided)) != len(provided):
        raise ValidationError(
            f"Duplicate IMEI supplied for {product.name}",
            details={"product_id": product.id},
        )

    expected = quantity * product.slots_per_unit
    if len(provided) != expected:
        raise ImeiMismatchError(
            product_id=product.id,
            product_name=product.name,
            expected=expected,
            received=len(provided),
        )

    unknown = sorted(set(provided) - product.imei_set)
    if unknown:
        if settings.reject_unknown_imeis:
            raise ValidationError(
                f"Unknown IMEI for {product.name}",
                details={"product_id": product.id, "imei": unknown},
            )
        current_app.logger.warning(
            "IMEI not in stock for product %s: %s (recorded as supplied)", product.id, ", ".join(unknown)
        )
    return provided


def price_catalog_line(
    item: dict,
    product: Product,
    position: int,
    settings: PricingSettings,
    as_of: datetime | None = None,
) -> PricedLine:
    quantity = coerce_quantity(item.get("quantity", 1))
    available = product.stock_quantity or 0
    if quantity > available:
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            available=available,
            requested=quantity,
        )

    imeis = _validate_imeis(product, quantity, item, settings)
    gst_percent = resolve_gst_percent(product, item.get("gst_percent"), settings)

    offer_name = None
    offer_discount = 0
    if item.get("price") is not None:
        # Caller override: trusted, no offer lookup
        unit_price = coerce_amount(item.get("price"), "price")
    else:
        resolved = resolve_offer_price(product.id, product.category, product.selling_price, quantity, as_of)
        unit_price = resolved.unit_price
        offer_name = resolved.offer_name
        offer_discount = resolved.discount_amount

    return PricedLine(
        position=position,
        product=product,
        name=product.name,
        category=product.category,
        quantity=quantity,
        unit_price=unit_price,
        original_price=product.selling_price,
        purchase_price=product.purchase_price or 0,
        offer_name=offer_name,
        offer_discount=offer_discount,
        sim_type=product.sim_type,
        imeis=imeis,
        gst_percent=gst_percent,
        line_discount=coerce_amount(item.get("discount"), "discount", default=0),
    )


def price_adhoc_line(item: dict, position: int, settings: PricingSettings) -> PricedLine:
    """Manual entry (second-hand or one-off item). No stock or IMEI effects."""
    name = require_text(item.get("name"), "name")
    unit_price = coerce_amount(item.get("price"), "price")
    requested_gst = item.get("gst_percent")
    if requested_gst is None or requested_gst == "":
        gst_percent = to_decimal(settings.default_gst_percent)
    else:
        gst_percent = coerce_percent(requested_gst, "gst_percent")

    return PricedLine(
        position=position,
        name=name,
        category=optional_text(item.get("category")) or ADHOC_CATEGORY,
        quantity=coerce_quantity(item.get("quantity", 1)),
        unit_price=unit_price,
        original_price=unit_price,
        gst_percent=gst_percent,
        line_discount=coerce_amount(item.get("discount"), "discount", default=0),
    )


def _load_product(product_id: int) -> Product:
    product = db.session.get(Product, product_id)
    if not product:
        raise ValidationError(f"Product {product_id} not found", details={"product_id": product_id})
    return product


def _check_cart_wide_limits(lines: list[PricedLine]) -> list[EngineError]:
    """Same product on several lines: the combined quantity and serials must still fit."""
    errors: list[EngineError] = []
    requested: dict[int, int] = defaultdict(int)
    products: dict[int, Product] = {}
    seen_imeis: set[str] = set()

    for line in lines:
        if line.product is None:
            continue
        requested[line.product_id] += line.quantity
        products[line.product_id] = line.product
        repeated = seen_imeis.intersection(line.imeis)
        if repeated:
            errors.append(ValidationError(
                "IMEI supplied on more than one line",
                details={"imei": sorted(repeated)},
            ))
        seen_imeis.update(line.imeis)

    for product_id, qty in requested.items():
        product = products[product_id]
        if qty > (product.stock_quantity or 0):
            errors.append(InsufficientStockError(
                product_id=product_id,
                product_name=product.name,
                available=product.stock_quantity or 0,
                requested=qty,
            ))
    return errors


def price_cart(items: list[dict], settings: PricingSettings, as_of: datetime | None = None) -> list[PricedLine]:
    """
    Price every cart entry or fail as a whole.

    All line failures are collected; the first one is raised with the full
    list in details["errors"]. Nothing is written either way.
    """
    if not items:
        raise ValidationError("No invoice items")

    lines: list[PricedLine] = []
    errors: list[EngineError] = []

    for position, item in enumerate(items, start=1):
        try:
            if not isinstance(item, dict):
                raise ValidationError("Invoice item must be an object", details={"position": position})
            product_id = _product_ref(item)
            if product_id is None:
                lines.append(price_adhoc_line(item, position, settings))
            else:
                lines.append(price_catalog_line(item, _load_product(product_id), position, settings, as_of))
        except EngineError as exc:
            exc.details.setdefault("position", position)
            errors.append(exc)

    if not errors:
        errors.extend(_check_cart_wide_limits(lines))

    if errors:
        first = errors[0]
        if len(errors) > 1:
            first.details["errors"] = [e.to_dict() for e in errors]
        raise first
    return lines
