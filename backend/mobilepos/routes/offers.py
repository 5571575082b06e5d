# Overview: Flask API routes for promotional offers and cart price previews.

from flask import Blueprint, request, jsonify, current_app

from ..errors import EngineError, ValidationError
from ..services import offer_service, inventory_service
from ..decorators import require_actor
from ..validation import coerce_amount, coerce_quantity


offers_bp = Blueprint("offers", __name__, url_prefix="/api/offers")


@offers_bp.get("")
@require_actor
def list_offers_route():
    active_only = request.args.get("active_only", "false").lower() == "true"
    offers = offer_service.list_offers(active_only=active_only)
    return jsonify({"offers": [o.to_dict() for o in offers]}), 200


@offers_bp.post("")
@require_actor
def create_offer_route():
    try:
        offer = offer_service.create_offer(request.get_json(silent=True) or {})
        return jsonify({"offer": offer.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create offer")
        return jsonify({"error": "Internal server error"}), 500


@offers_bp.put("/<int:offer_id>")
@require_actor
def update_offer_route(offer_id: int):
    try:
        offer = offer_service.update_offer(offer_id, request.get_json(silent=True) or {})
        return jsonify({"offer": offer.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update offer")
        return jsonify({"error": "Internal server error"}), 500


@offers_bp.delete("/<int:offer_id>")
@require_actor
def delete_offer_route(offer_id: int):
    try:
        offer_service.delete_offer(offer_id)
        return jsonify({"message": "Offer removed"}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code


@offers_bp.get("/preview")
@require_actor
def preview_offer_route():
    """
    Read-only price preview for a cart line.

    Query: product_id (required), quantity (default 1), price (defaults to
    the catalog selling price)
    """
    try:
        product_id = request.args.get("product_id", type=int)
        if not product_id:
            raise ValidationError("product_id required", details={"field": "product_id"})
        product = inventory_service.get_product(product_id)
        quantity = coerce_quantity(request.args.get("quantity", "1"))
        price = request.args.get("price")
        base_price = coerce_amount(price, "price") if price else product.selling_price

        result = offer_service.resolve_offer_price(product.id, product.category, base_price, quantity)
        return jsonify(result.to_dict()), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
