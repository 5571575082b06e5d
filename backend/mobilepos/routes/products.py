# Overview: Flask API routes for catalog intake; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..errors import EngineError
from ..services import inventory_service
from ..decorators import require_actor


products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.post("")
@require_actor
def create_product_route():
    try:
        product = inventory_service.create_product(request.get_json(silent=True) or {})
        return jsonify({"product": product.to_dict()}), 201
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
@require_actor
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code


@products_bp.post("/<int:product_id>/receive")
@require_actor
def receive_stock_route(product_id: int):
    """
    Purchase intake.

    Body: quantity, imei [...] (required for IMEI-tracked products),
    purchase_price (optional)
    """
    try:
        data = request.get_json(silent=True) or {}
        product = inventory_service.receive_stock(
            product_id,
            data.get("quantity"),
            imeis=data.get("imei"),
            purchase_price=data.get("purchase_price"),
        )
        return jsonify({"product": product.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500
