# Overview: Flask API routes for sales; parses input and returns JSON responses.

# backend/fieldstock/routes/sales.py
"""Sales API routes"""

from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import sales_service
from ..services.errors import CustodyError
from ..validation import ValidationError, require_json_object, coerce_id
from ..decorators import require_actor


sales_bp = Blueprint("sales", __name__, url_prefix="/api/sales")


def _sale_payload(sale) -> dict:
    payload = sale.to_dict()
    payload["commissions"] = [c.to_dict() for c in sale.commissions]
    return payload


@sales_bp.post("")
@require_actor
def create_sale_route():
    """
    Record a sale by the acting user.

    Device sale:    {"device_id": int, "payment_method": str, ...}
    Accessory sale: {"product_id": int, "quantity": int, "payment_method": str, ...}

    Optional: payment_reference, customer_name, customer_phone,
    customer_email, customer_id_number, source, notes.
    """
    try:
        data = require_json_object(request.get_json(silent=True))

        device_id = data.get("device_id")
        product_id = data.get("product_id")

        sale = sales_service.record_sale(
            g.current_user.id,
            device_id=coerce_id(device_id, "device_id") if device_id is not None else None,
            product_id=coerce_id(product_id, "product_id") if product_id is not None else None,
            quantity=data.get("quantity"),
            payment_method=data.get("payment_method"),
            payment_reference=data.get("payment_reference"),
            customer_name=data.get("customer_name"),
            customer_phone=data.get("customer_phone"),
            customer_email=data.get("customer_email"),
            customer_id_number=data.get("customer_id_number"),
            source=data.get("source"),
            notes=data.get("notes"),
        )

        return jsonify({"sale": _sale_payload(sale)}), 201

    except (CustodyError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to record sale")
        return jsonify({"error": "Internal server error"}), 500


@sales_bp.get("/<int:sale_id>")
@require_actor
def get_sale_route(sale_id: int):
    try:
        sale = sales_service.get_sale(sale_id)
        return jsonify({"sale": _sale_payload(sale)}), 200
    except CustodyError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
