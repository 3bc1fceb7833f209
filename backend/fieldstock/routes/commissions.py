# Overview: Flask API routes for the commission lifecycle.

from flask import Blueprint, request, jsonify, g, current_app

from ..constants import ROLE_ADMIN
from ..extensions import db
from ..services import commission_service
from ..services.concurrency import commit_with_retry
from ..services.errors import CustodyError
from ..validation import ValidationError, require_json_object, coerce_id_list
from ..decorators import require_actor, require_role


commissions_bp = Blueprint("commissions", __name__, url_prefix="/api/commissions")


def _error(e):
    db.session.rollback()
    return jsonify({"error": str(e), "code": e.code}), e.status_code


def _body() -> dict:
    data = request.get_json(silent=True)
    return require_json_object(data) if data is not None else {}


@commissions_bp.put("/<int:commission_id>/approve")
@require_actor
@require_role(ROLE_ADMIN)
def approve_route(commission_id: int):
    try:
        commission = commission_service.approve_commission(commission_id, g.current_user.id)
        commit_with_retry()
        return jsonify({"commission": commission.to_dict()}), 200
    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to approve commission")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.put("/<int:commission_id>/reject")
@require_actor
@require_role(ROLE_ADMIN)
def reject_route(commission_id: int):
    try:
        data = _body()
        commission = commission_service.reject_commission(
            commission_id, g.current_user.id, notes=data.get("notes")
        )
        commit_with_retry()
        return jsonify({"commission": commission.to_dict()}), 200
    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to reject commission")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.put("/<int:commission_id>/pay")
@require_actor
@require_role(ROLE_ADMIN)
def pay_route(commission_id: int):
    try:
        data = _body()
        commission = commission_service.pay_commission(
            commission_id, payment_reference=data.get("payment_reference")
        )
        commit_with_retry()
        return jsonify({"commission": commission.to_dict()}), 200
    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to pay commission")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.put("/bulk-approve")
@require_actor
@require_role(ROLE_ADMIN)
def bulk_approve_route():
    """Approve every PENDING commission among commission_ids."""
    try:
        data = _body()
        ids = coerce_id_list(data.get("commission_ids"), "commission_ids")
        count = commission_service.bulk_approve_commissions(ids, g.current_user.id)
        commit_with_retry()
        current_app.logger.info("Bulk approved %s of %s commission(s)", count, len(ids))
        return jsonify({"message": f"{count} commissions approved", "count": count}), 200
    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to bulk approve commissions")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.put("/bulk-pay")
@require_actor
@require_role(ROLE_ADMIN)
def bulk_pay_route():
    """Mark every PENDING or APPROVED commission among commission_ids as paid."""
    try:
        data = _body()
        ids = coerce_id_list(data.get("commission_ids"), "commission_ids")
        count = commission_service.bulk_pay_commissions(
            ids, payment_reference=data.get("payment_reference")
        )
        commit_with_retry()
        current_app.logger.info("Bulk paid %s of %s commission(s)", count, len(ids))
        return jsonify({"message": f"{count} commissions marked as paid", "count": count}), 200
    except (CustodyError, ValidationError) as e:
        return _error(e)
    except Exception:
        db.session.rollback()
        current_app.logger.exception("Failed to bulk pay commissions")
        return jsonify({"error": "Internal server error"}), 500


@commissions_bp.get("/summary/<int:user_id>")
@require_actor
def summary_route(user_id: int):
    """Admins see anyone's summary; everyone else only their own."""
    if g.current_user.role != ROLE_ADMIN and g.current_user.id != user_id:
        return jsonify({"error": "Not authorized"}), 403
    try:
        return jsonify(commission_service.commission_summary(user_id)), 200
    except CustodyError as e:
        return jsonify({"error": str(e), "code": e.code}), e.status_code
