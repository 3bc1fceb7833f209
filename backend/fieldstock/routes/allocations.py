# Overview: Flask API routes for stock allocation and recall; parses input and returns JSON responses.

# backend/fieldstock/routes/allocations.py
"""
Custody transfer API routes.

The acting user comes from @require_actor; hierarchy rules are enforced by
custody_service, not here.
"""
from flask import Blueprint, request, jsonify, g, current_app

from ..extensions import db
from ..services import custody_service, directory_service
from ..services.concurrency import commit_with_retry
from ..services.errors import CustodyError
from ..validation import (
    ValidationError,
    require_json_object,
    require_fields,
    coerce_id,
    coerce_id_list,
)
from ..decorators import require_actor


allocations_bp = Blueprint("allocations", __name__, url_prefix="/api/stock-allocations")


def _error(e):
    db.session.rollback()
    body = {"error": str(e), "code": e.code}
    if getattr(e, "details", None):
        body["details"] = e.details
    return jsonify(body), e.status_code


def _resolve_recipient(data: dict):
    """Exactly one of to_user_id / to_user_name names the recipient."""
    has_id = data.get("to_user_id") not in (None, "")
    has_name = data.get("to_user_name") not in (None, "")
    if has_id == has_name:
        raise ValidationError("Provide exactly one of to_user_id or to_user_name")
    if has_id:
        return directory_service.resolve_user_by_id(coerce_id(data["to_user_id"], "to_user_id"))
    return directory_service.resolve_user_by_name(data["to_user_name"])


@allocations_bp.post("")
@require_actor
def allocate_route():
    """
    Allocate one device to the next level down.

    Request body:
    {
        "device_id": int,
        "to_user_id": int | "to_user_name": str,
        "notes": str (optional)
    }

    Returns:
        201: Allocation record
        400: Invalid input or device already sold
        403: Hierarchy, holder, region or team rule violated
        404: Device or user not found
        409: Device changed concurrently
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        require_fields(data, "device_id")
        device_id = coerce_id(data["device_id"], "device_id")
        recipient = _resolve_recipient(data)

        record = custody_service.allocate_device(
            device_id,
            g.current_user.id,
            recipient.id,
            notes=data.get("notes"),
        )
        commit_with_retry()

        return jsonify({
            "message": "Stock allocated successfully",
            "allocation": record.to_dict(),
        }), 201

    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to allocate device")
        return jsonify({"error": "Internal server error"}), 500


@allocations_bp.post("/bulk")
@require_actor
def bulk_allocate_route():
    """
    Allocate many devices to one recipient; each device succeeds or fails on its own.

    Returns:
        200: {"succeeded": [imei], "failed": [{device_id, reason, error}]}
        404: Recipient not found (nothing processed)
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        device_ids = coerce_id_list(data.get("device_ids"), "device_ids")
        recipient = _resolve_recipient(data)

        result = custody_service.bulk_allocate(
            device_ids,
            g.current_user.id,
            recipient.id,
            notes=data.get("notes"),
        )

        body = result.to_dict()
        body["message"] = (
            f"Allocated {len(result.succeeded)} device(s), {len(result.failed)} failed"
        )
        return jsonify(body), 200

    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to bulk allocate devices")
        return jsonify({"error": "Internal server error"}), 500


@allocations_bp.post("/recall")
@require_actor
def recall_route():
    """
    Recall one device from a lower-level holder.

    Request body:
    {
        "device_id": int,
        "reason": str (optional)
    }
    """
    try:
        data = require_json_object(request.get_json(silent=True))
        require_fields(data, "device_id")
        device_id = coerce_id(data["device_id"], "device_id")

        record = custody_service.recall_device(
            device_id,
            g.current_user.id,
            reason=data.get("reason"),
        )
        commit_with_retry()

        return jsonify({
            "message": "Stock recalled successfully",
            "recall": record.to_dict(),
        }), 200

    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to recall device")
        return jsonify({"error": "Internal server error"}), 500


@allocations_bp.post("/bulk-recall")
@require_actor
def bulk_recall_route():
    try:
        data = require_json_object(request.get_json(silent=True))
        device_ids = coerce_id_list(data.get("device_ids"), "device_ids")

        result = custody_service.bulk_recall(
            device_ids,
            g.current_user.id,
            reason=data.get("reason"),
        )

        body = result.to_dict()
        body["message"] = (
            f"Recalled {len(result.succeeded)} device(s), {len(result.failed)} failed"
        )
        return jsonify(body), 200

    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to bulk recall devices")
        return jsonify({"error": "Internal server error"}), 500


@allocations_bp.get("/allocatable-users")
@require_actor
def allocatable_users_route():
    users = custody_service.allocatable_users(g.current_user)
    return jsonify({"users": [u.to_dict() for u in users]}), 200


@allocations_bp.get("/available-stock")
@require_actor
def available_stock_route():
    devices = custody_service.available_stock(g.current_user)
    return jsonify({"devices": [d.to_dict() for d in devices]}), 200


@allocations_bp.get("/recallable-stock")
@require_actor
def recallable_stock_route():
    devices = custody_service.recallable_stock(g.current_user)
    return jsonify({"devices": [d.to_dict() for d in devices]}), 200


@allocations_bp.get("/journey/<int:device_id>")
@require_actor
def journey_route(device_id: int):
    try:
        return jsonify(custody_service.stock_journey(device_id)), 200
    except CustodyError as e:
        return _error(e)
