# Overview: Flask API routes for device registration and lookup.

from flask import Blueprint, request, jsonify, g, current_app

from ..constants import ROLE_ADMIN
from ..extensions import db
from ..services import device_service
from ..services.concurrency import commit_with_retry
from ..services.errors import CustodyError
from ..validation import ValidationError, require_json_object, require_fields, coerce_id
from ..decorators import require_actor, require_role


devices_bp = Blueprint("devices", __name__, url_prefix="/api/devices")


@devices_bp.post("")
@require_actor
@require_role(ROLE_ADMIN)
def register_device_route():
    """
    Register a handset into the depot.

    Request body:
    {
        "imei": str (15 digits),
        "imei2": str (optional),
        "product_id": int,
        "price_cents": int (optional),
        "source": "watu" | "mogo" | "onfon" (optional),
        "commission_config": {
            "fo_commission_cents": int,
            "team_leader_commission_cents": int,
            "regional_manager_commission_cents": int
        } (optional),
        "notes": str (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        require_fields(data, "imei", "product_id")

        commission_config = data.get("commission_config")
        if commission_config is not None and not isinstance(commission_config, dict):
            raise ValidationError("commission_config must be an object")

        device = device_service.register_device(
            imei=data["imei"],
            imei2=data.get("imei2"),
            product_id=coerce_id(data["product_id"], "product_id"),
            registered_by_user_id=g.current_user.id,
            price_cents=data.get("price_cents"),
            source=data.get("source") or "watu",
            commission_config=commission_config,
            notes=data.get("notes"),
        )
        commit_with_retry()

        return jsonify({"device": device.to_dict()}), 201

    except (CustodyError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to register device")
        return jsonify({"error": "Internal server error"}), 500


@devices_bp.post("/bulk")
@require_actor
@require_role(ROLE_ADMIN)
def bulk_register_devices_route():
    """
    Register a batch of handsets; each entry succeeds or fails on its own.

    Request body:
    {
        "devices": [{"imei": str, "product_id": int, ...}, ...]
    }

    Each entry takes the same fields as POST /api/devices.
    Response: {"succeeded": [imei, ...], "failed": [{"imei", "reason", "error"}, ...]}
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        items = data.get("devices")
        if not isinstance(items, list) or not items:
            raise ValidationError("devices must be a non-empty list")

        result = device_service.bulk_register_devices(items, g.current_user.id)
        return jsonify(result.to_dict()), 201

    except (CustodyError, ValidationError) as e:
        db.session.rollback()
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to bulk register devices")
        return jsonify({"error": "Internal server error"}), 500


@devices_bp.get("/<int:device_id>")
@require_actor
def get_device_route(device_id: int):
    try:
        device = device_service.get_device(device_id)
    except CustodyError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
    return jsonify({"device": device.to_dict()}), 200
