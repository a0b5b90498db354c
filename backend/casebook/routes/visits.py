# Overview: Flask API routes for the visit ledger; eligibility dry run, record, receipt and invalidation.

"""
Visit Routes

SECURITY: All routes require authentication. Recording (and the dry-run
check) additionally requires the permission for the visit type:
Food -> food_visit_entry, Money -> money_visit_entry,
Voucher -> voucher_creation.

OVERRIDE FLOW: a visit that breaks a limit is answered with 409,
requires_override and the violation messages. The client re-submits the
same body with "confirm_override": true to record it anyway.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, permission_denied_response
from ..services import visit_service
from ..services.permission_service import PermissionDeniedError
from ..services.visit_service import VisitAlreadyInvalidError, VisitRequiresOverride
from ..validation import NotFoundError, ValidationError


visits_bp = Blueprint("visits", __name__, url_prefix="/api/visits")


@visits_bp.post("/eligibility")
@require_auth
def check_eligibility_route():
    """
    Check a proposed visit against the limits without recording it.

    Request body: {"customer_id", "visit_type", "visit_date", "visit_time"} or "visit_at"

    Returns:
        {valid: bool, violations: [str]}
    """
    data = request.get_json(silent=True) or {}

    try:
        visit_request = visit_service.parse_visit_request(data, check_only=True)
        result = visit_service.check_request_eligibility(g.principal, visit_request)
        return jsonify(result.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PermissionDeniedError as e:
        return permission_denied_response(e)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@visits_bp.post("")
@require_auth
def record_visit_route():
    """
    Record a visit.

    Request body:
    {
        "customer_id": 12,
        "visit_type": "Food",             // Food | Money | Voucher
        "visit_date": "2024-01-05",       // optional, defaults to now
        "visit_time": "10:30",            // optional
        "notes": "...",
        "confirm_override": false,
        "voucher_amount": "25.00",        // Voucher visits only, 0.01 - 99999.99
        "expiration_date": "2024-02-05"   // Voucher visits only, optional
    }

    Returns:
        201 with the receipt, 409 with requires_override and violations
    """
    data = request.get_json(silent=True) or {}

    try:
        visit_request = visit_service.parse_visit_request(data)
        visit = visit_service.record_visit_request(g.principal, visit_request)
        return jsonify(visit_service.get_visit_receipt(visit.id)), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except PermissionDeniedError as e:
        return permission_denied_response(e)
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except VisitRequiresOverride as e:
        return jsonify({
            "error": "Visit limits exceeded",
            "requires_override": True,
            "violations": e.violations,
        }), 409
    except Exception:
        current_app.logger.exception("Failed to record visit")
        return jsonify({"error": "Operation failed, please try again"}), 500


@visits_bp.get("/<int:visit_id>")
@require_auth
def get_visit_receipt_route(visit_id: int):
    try:
        return jsonify(visit_service.get_visit_receipt(visit_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@visits_bp.post("/<int:visit_id>/invalidate")
@require_auth
def invalidate_visit_route(visit_id: int):
    """
    Mark a visit invalid (one-way).

    Request body: {"reason": "Entered for the wrong customer"}
    """
    data = request.get_json(silent=True) or {}

    try:
        visit = visit_service.invalidate_visit(visit_id, data.get("reason"), g.principal)
        return jsonify(visit.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except VisitAlreadyInvalidError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to invalidate visit")
        return jsonify({"error": "Operation failed, please try again"}), 500
