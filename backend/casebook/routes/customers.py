# Overview: Flask API routes for the customer directory; signup, duplicates, search, detail and edit.

"""
Customer Routes

SECURITY: All routes require authentication.
- Signup, duplicate pre-check and edits require customer_creation
- Search and detail are open to any authenticated employee

SIGNUP: when likely duplicates exist the response is 409 with
requires_confirmation and the matches; the client re-submits the same body
with "confirm_no_duplicate": true to create anyway.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_permission
from ..permissions import Permission
from ..services import customer_service
from ..services.customer_service import DuplicateCustomersFound
from ..validation import NotFoundError, ValidationError, parse_bool


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")


@customers_bp.post("")
@require_auth
@require_permission(Permission.CUSTOMER_CREATION)
def create_customer_route():
    """
    Register a household.

    Request body:
    {
        "name": "Jane Doe",                 // required, 2+ characters
        "address": "12 Main St",            // required, 5+ characters
        "city": "Springfield",              // required
        "state": "IL",                      // required, 2 letters
        "zip_code": "62701",                // required
        "phone": "(555) 123-4567",          // required, 10-15 digits
        "description": "...",
        "previous_application": false,
        "subsidized_housing": false,
        "signup_date": "2024-01-05",        // optional, with "signup_time" "HH:MM"
        "household_members": [{"name": "...", "birthdate": "YYYY-MM-DD", "relationship": "Child"}],
        "household_income": [{"income_type": "Wages", "amount": "1200.00", "description": "..."}],
        "confirm_no_duplicate": false
    }

    Returns:
        201 with the customer detail, or 409 with possible duplicates
    """
    data = request.get_json(silent=True) or {}

    try:
        customer = customer_service.create_customer(
            data,
            g.principal,
            confirm_no_duplicate=parse_bool(data.get("confirm_no_duplicate", False)),
        )
        return jsonify(customer_service.get_customer_detail(customer.id)), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except DuplicateCustomersFound as e:
        return jsonify({
            "error": "Possible duplicate customers found",
            "requires_confirmation": True,
            "duplicates": [c.to_summary_dict() for c in e.duplicates],
        }), 409
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Operation failed, please try again"}), 500


@customers_bp.post("/duplicates")
@require_auth
@require_permission(Permission.CUSTOMER_CREATION)
def find_duplicates_route():
    """
    Duplicate pre-check without creating anything.

    Request body: {"name", "address", "phone", "household_member_names": [...]}
    """
    data = request.get_json(silent=True) or {}

    names = data.get("household_member_names") or []
    if not isinstance(names, list):
        return jsonify({"error": "household_member_names must be a list"}), 400

    _, phone_local = customer_service.parse_phone_number(data.get("phone"))
    duplicates = customer_service.find_duplicate_customers(
        data.get("name"),
        data.get("address"),
        phone_local,
        names,
    )
    return jsonify({
        "items": [c.to_summary_dict() for c in duplicates],
        "count": len(duplicates),
    }), 200


@customers_bp.get("/search")
@require_auth
def search_customers_route():
    """
    Quick search.

    Query parameters:
    - q: at least 2 characters; shorter queries return no items
    """
    q = request.args.get("q", "")
    customers = customer_service.search_customers(q)
    return jsonify({
        "items": [
            dict(
                c.to_summary_dict(),
                phone_display=customer_service.format_phone_number(c.phone_country_code, c.phone_local_number),
            )
            for c in customers
        ],
        "count": len(customers),
    }), 200


@customers_bp.get("/<int:customer_id>")
@require_auth
def get_customer_route(customer_id: int):
    """Customer detail with household, income total, visits and audit trail."""
    try:
        return jsonify(customer_service.get_customer_detail(customer_id)), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404


@customers_bp.patch("/<int:customer_id>")
@require_auth
@require_permission(Permission.CUSTOMER_CREATION)
def update_customer_route(customer_id: int):
    """
    Edit customer fields; only the fields sent are changed.

    Returns:
        The customer detail and the audit rows this edit produced
    """
    data = request.get_json(silent=True) or {}

    try:
        customer, audits = customer_service.update_customer(customer_id, data, g.principal)
        return jsonify({
            "customer": customer_service.get_customer_detail(customer.id),
            "changes": [a.to_dict() for a in audits],
        }), 200
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to update customer")
        return jsonify({"error": "Operation failed, please try again"}), 500
