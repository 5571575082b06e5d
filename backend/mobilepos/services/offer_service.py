# Overview: Service-layer operations for promotional offers; best-offer resolution and offer upkeep.

"""
Offer Resolver

Search order, first scope with an eligible offer wins:
1. Product-scoped offers targeting the exact product id
2. Category-scoped offers targeting the product's category
3. Global ("All") offers

Within a scope the eligible offer with the highest min_quantity is picked,
so a bulk tier is never shadowed by a lower tier. Resolution never writes.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import or_

from ..extensions import db
from ..errors import NotFoundError, ValidationError
from ..models import Offer
from ..models.catalog import (
    OFFER_PRODUCT,
    OFFER_CATEGORY,
    OFFER_ALL,
    OFFER_TYPES,
    OFFER_TARGET_ALL,
    DISCOUNT_PERCENTAGE,
    DISCOUNT_TYPES,
)
from ..money import ZERO, to_decimal, percent_of, round_amount
from ..validation import (
    require_text,
    optional_text,
    coerce_decimal,
    coerce_quantity,
    coerce_datetime,
    coerce_choice,
)
from mobilepos.time_utils import utcnow


@dataclass(frozen=True)
class OfferPrice:
    unit_price: int
    discount_amount: int
    offer_name: str | None = None

    def to_dict(self) -> dict:
        return {
            "price": self.unit_price,
            "discount": self.discount_amount,
            "offer_name": self.offer_name,
        }


def is_offer_eligible(offer: Offer, quantity: int, as_of: datetime) -> bool:
    if not offer.is_active:
        return False
    if quantity < (offer.min_quantity or 1):
        return False
    if offer.start_date and offer.start_date > as_of:
        return False
    if offer.end_date and offer.end_date < as_of:
        return False
    return True


def pick_offer(offers, quantity: int, as_of: datetime) -> Offer | None:
    """Best eligible offer of one scope: highest min_quantity, then lowest id."""
    eligible = [o for o in offers if is_offer_eligible(o, quantity, as_of)]
    if not eligible:
        return None
    return min(eligible, key=lambda o: (-(o.min_quantity or 1), o.id or 0))


def apply_offer(price: int, offer: Offer | None) -> OfferPrice:
    """Discount is capped at the price, so the net price never drops below zero."""
    if offer is None or price <= 0:
        return OfferPrice(unit_price=max(price, 0), discount_amount=0)

    value = max(to_decimal(offer.discount_value or 0), ZERO)
    if offer.discount_type == DISCOUNT_PERCENTAGE:
        discount = min(to_decimal(price), percent_of(price, value))
    else:
        discount = min(to_decimal(price), value)

    discount_amount = round_amount(discount)
    return OfferPrice(
        unit_price=price - discount_amount,
        discount_amount=discount_amount,
        offer_name=offer.name,
    )


def _scope_candidates(offer_type: str, target_id: str | None, quantity: int, as_of: datetime) -> list[Offer]:
    q = db.session.query(Offer).filter(
        Offer.is_active.is_(True),
        Offer.offer_type == offer_type,
        Offer.min_quantity <= quantity,
        Offer.start_date <= as_of,
        or_(Offer.end_date.is_(None), Offer.end_date >= as_of),
    )
    if target_id is not None:
        q = q.filter(Offer.target_id == target_id)
    return q.order_by(Offer.min_quantity.desc(), Offer.id.asc()).all()


def find_best_offer(product_id: int | None, category: str | None, quantity: int, as_of: datetime | None = None) -> Offer | None:
    as_of = as_of or utcnow()
    scopes = []
    if product_id is not None:
        scopes.append((OFFER_PRODUCT, str(product_id)))
    if category:
        scopes.append((OFFER_CATEGORY, category))
    scopes.append((OFFER_ALL, None))

    for offer_type, target_id in scopes:
        offer = pick_offer(_scope_candidates(offer_type, target_id, quantity, as_of), quantity, as_of)
        if offer is not None:
            return offer
    return None


def resolve_offer_price(
    product_id: int | None,
    category: str | None,
    base_price: int,
    quantity: int,
    as_of: datetime | None = None,
) -> OfferPrice:
    """
    Adjusted unit price for quantity units of a product.

    Returns base_price unchanged with zero discount when nothing matches.
    """
    if base_price is None or base_price <= 0:
        return OfferPrice(unit_price=max(base_price or 0, 0), discount_amount=0)
    offer = find_best_offer(product_id, category, max(1, quantity), as_of)
    return apply_offer(base_price, offer)


# =============================================================================
# OFFER UPKEEP
# =============================================================================

def _validated_fields(data: dict, existing: Offer | None = None) -> dict:
    def current(key, attr=None):
        if key in data:
            return data[key]
        return getattr(existing, attr or key) if existing is not None else None

    name = require_text(current("name"), "name")
    offer_type = coerce_choice(current("offer_type"), "offer_type", OFFER_TYPES, default=OFFER_PRODUCT)

    if offer_type == OFFER_ALL:
        target_id = OFFER_TARGET_ALL
    else:
        target_id = require_text(current("target_id"), "target_id")

    discount_type = coerce_choice(current("discount_type"), "discount_type", DISCOUNT_TYPES, default=DISCOUNT_PERCENTAGE)
    discount_value = coerce_decimal(current("discount_value"), "discount_value")
    if discount_value <= 0:
        raise ValidationError("discount_value must be greater than 0", details={"field": "discount_value"})
    if discount_type == DISCOUNT_PERCENTAGE and discount_value > 100:
        raise ValidationError("Percentage discount cannot exceed 100%", details={"field": "discount_value"})

    min_quantity = current("min_quantity")
    min_quantity = 1 if min_quantity is None else coerce_quantity(min_quantity, "min_quantity")

    start_date = coerce_datetime(current("start_date"), "start_date") or utcnow()
    end_date = coerce_datetime(current("end_date"), "end_date")
    if end_date and end_date < start_date:
        raise ValidationError("end_date cannot be before start_date", details={"field": "end_date"})

    is_active = current("is_active")
    return {
        "name": name,
        "description": optional_text(current("description")),
        "offer_type": offer_type,
        "target_id": target_id,
        "discount_type": discount_type,
        "discount_value": discount_value,
        "min_quantity": min_quantity,
        "start_date": start_date,
        "end_date": end_date,
        "is_active": True if is_active is None else bool(is_active),
    }


def list_offers(active_only: bool = False) -> list[Offer]:
    q = db.session.query(Offer)
    if active_only:
        q = q.filter_by(is_active=True)
    return q.order_by(Offer.created_at.desc(), Offer.id.desc()).all()


def get_offer(offer_id: int) -> Offer:
    offer = db.session.get(Offer, offer_id)
    if not offer:
        raise NotFoundError(f"Offer {offer_id} not found")
    return offer


def create_offer(data: dict) -> Offer:
    offer = Offer(**_validated_fields(data))
    db.session.add(offer)
    db.session.commit()
    return offer


def update_offer(offer_id: int, data: dict) -> Offer:
    offer = get_offer(offer_id)
    for key, value in _validated_fields(data, existing=offer).items():
        setattr(offer, key, value)
    db.session.commit()
    return offer


def delete_offer(offer_id: int) -> None:
    offer = get_offer(offer_id)
    db.session.delete(offer)
    db.session.commit()
