# Overview: Flask API routes for runtime settings; visit limits and appearance.

"""
Settings Routes

SECURITY:
- Reading visit limits requires settings_access
- Changing visit limits and anything about appearance is admin-only

Writes go through the app's SettingsCache so the new values are visible
to the next eligibility check without waiting for the TTL.
"""

from flask import Blueprint, jsonify, request, current_app

from ..decorators import require_auth, require_admin, require_permission
from ..permissions import Permission
from ..services import settings_service
from ..validation import ValidationError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/visit-limits")
@require_auth
@require_permission(Permission.SETTINGS_ACCESS)
def get_visit_limits_route():
    return jsonify(settings_service.get_visit_limits().to_dict()), 200


@settings_bp.put("/visit-limits")
@require_auth
@require_admin
def update_visit_limits_route():
    """
    Replace all five visit limits.

    Request body:
    {
        "food_visits_per_month": 2,        // 1-100
        "food_visits_per_year": 12,        // 1-1000
        "food_min_days_between": 14,       // 1-365
        "money_max_lifetime_visits": 3,    // 1-100
        "money_cooldown_years": 1          // 0-10
    }
    """
    data = request.get_json(silent=True)

    try:
        limits = settings_service.update_visit_limits(settings_service.get_settings(), data)
        current_app.logger.info("Visit limits updated: %s", limits.to_dict())
        return jsonify(limits.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update visit limits")
        return jsonify({"error": "Operation failed, please try again"}), 500


@settings_bp.get("/appearance")
@require_auth
@require_admin
def get_appearance_route():
    return jsonify(settings_service.get_appearance()), 200


@settings_bp.put("/appearance")
@require_auth
@require_admin
def update_appearance_route():
    """Request body: {"company_name": "...", "partner_store_name": "..."}"""
    data = request.get_json(silent=True) or {}

    try:
        appearance = settings_service.update_appearance(
            settings_service.get_settings(),
            data.get("company_name"),
            data.get("partner_store_name"),
        )
        return jsonify(appearance), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update appearance")
        return jsonify({"error": "Operation failed, please try again"}), 500
