# Overview: Flask API routes for invoices and EMI installments; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..errors import EngineError
from ..services import invoice_service, emi_service
from ..decorators import require_actor
from mobilepos.time_utils import to_utc_z


invoices_bp = Blueprint("invoices", __name__, url_prefix="/api/invoices")


def _customer_info(data: dict) -> dict:
    customer = data.get("customer") if isinstance(data.get("customer"), dict) else {}
    return {
        "name": data.get("customer_name") or customer.get("name"),
        "mobile": data.get("customer_mobile") or customer.get("mobile") or customer.get("phone"),
        "address": customer.get("address"),
    }


def _payment_info(data: dict) -> dict:
    return {
        "mode": data.get("payment_mode"),
        "status": data.get("status"),
        "paid_amount": data.get("paid_amount"),
        "mixed_payments": data.get("mixed_payments"),
        "emi": data.get("emi_details"),
        "details": data.get("payment_details"),
    }


@invoices_bp.post("")
@require_actor
def create_invoice_route():
    """
    Create an invoice from a cart.

    Body: customer {name, mobile, address} (or customer_name/customer_mobile),
    items [...], discount, discount_type, payment_mode, paid_amount, status,
    mixed_payments, emi_details, payment_details
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = invoice_service.create_invoice(
            _customer_info(data),
            data.get("items") or [],
            discount=data.get("discount", 0),
            discount_type=data.get("discount_type") or "Fixed",
            payment=_payment_info(data),
            created_by_user_id=g.actor_id,
        )
        return jsonify({"invoice": invoice.to_dict()}), 201

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create invoice")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("")
@require_actor
def list_invoices_route():
    try:
        invoices = invoice_service.list_invoices(status=request.args.get("status"))
        return jsonify({"invoices": [inv.to_dict(include_lines=False) for inv in invoices]}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code


@invoices_bp.get("/emi-list")
@require_actor
def emi_list_route():
    """EMI-Active invoices ordered by next due date."""
    try:
        rows = emi_service.list_active_emi_plans()
        for row in rows:
            row["next_due_date"] = to_utc_z(row["next_due_date"])
        return jsonify({"plans": rows}), 200
    except Exception:
        current_app.logger.exception("Failed to list EMI plans")
        return jsonify({"error": "Internal server error"}), 500


@invoices_bp.get("/<int:invoice_id>")
@require_actor
def get_invoice_route(invoice_id: int):
    try:
        invoice = invoice_service.get_invoice(invoice_id)
        return jsonify({"invoice": invoice.to_dict()}), 200
    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code


@invoices_bp.post("/<int:invoice_id>/pay-emi")
@require_actor
def pay_emi_route(invoice_id: int):
    """
    Record an EMI installment.

    Body: amount, payment_mode, note
    """
    try:
        data = request.get_json(silent=True) or {}
        invoice = emi_service.pay_emi_installment(
            invoice_id,
            data.get("amount"),
            payment_mode=data.get("payment_mode") or "Cash",
            note=data.get("note"),
            user_id=g.actor_id,
        )
        return jsonify({"invoice": invoice.to_dict()}), 200

    except EngineError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to record EMI payment")
        return jsonify({"error": "Internal server error"}), 500
