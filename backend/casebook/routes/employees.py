# Overview: Flask API routes for employee administration (admin allow-list only).

"""
Employee Management Routes

SECURITY: every route requires authentication and an account on the
ADMIN_ACCOUNTS allow-list. New employees and administrator resets always
get password_reset_required, so the temporary password only opens
/api/auth/reset-password.
"""

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth, require_admin
from ..permissions import PERMISSION_DEFINITIONS
from ..services import auth_service
from ..validation import ConflictError, NotFoundError, ValidationError


employees_bp = Blueprint("employees", __name__, url_prefix="/api/employees")


@employees_bp.get("")
@require_auth
@require_admin
def list_employees_route():
    """Employees ordered by username, plus the assignable permissions."""
    employees = auth_service.list_employees()
    return jsonify({
        "items": [e.to_dict() for e in employees],
        "count": len(employees),
        "permissions": [
            {"code": code.value, "name": name, "description": description}
            for code, name, description in PERMISSION_DEFINITIONS
        ],
    }), 200


@employees_bp.post("")
@require_auth
@require_admin
def create_employee_route():
    """
    Create an employee.

    Request body:
    {
        "username": "jdoe",                         // 3-100, letters, digits, underscore
        "password": "temporary1",                   // at least 8 characters
        "permissions": ["customer_creation", ...]   // optional
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        employee = auth_service.create_employee(
            data.get("username"),
            data.get("password") or "",
            data.get("permissions"),
            created_by=g.principal,
        )
        return jsonify(employee.to_dict()), 201
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except ConflictError as e:
        return jsonify({"error": str(e)}), 409
    except Exception:
        current_app.logger.exception("Failed to create employee")
        return jsonify({"error": "Operation failed, please try again"}), 500


@employees_bp.delete("/<int:employee_id>")
@require_auth
@require_admin
def delete_employee_route(employee_id: int):
    try:
        auth_service.delete_employee(employee_id, g.principal)
        return jsonify({"message": "Employee deleted"}), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to delete employee")
        return jsonify({"error": "Operation failed, please try again"}), 500


@employees_bp.post("/<int:employee_id>/reset-password")
@require_auth
@require_admin
def reset_employee_password_route(employee_id: int):
    """
    Set a temporary password. The employee's sessions are revoked and they
    must choose a new password at next login.

    Request body: {"new_password": "..."}
    """
    data = request.get_json(silent=True) or {}

    try:
        employee = auth_service.reset_employee_password(
            employee_id,
            data.get("new_password") or "",
            g.principal,
        )
        return jsonify(employee.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to reset employee password")
        return jsonify({"error": "Operation failed, please try again"}), 500


@employees_bp.put("/<int:employee_id>/permissions")
@require_auth
@require_admin
def set_employee_permissions_route(employee_id: int):
    """
    Replace an employee's permissions.

    Request body: {"permissions": ["food_visit_entry", "report_access"]}
    Unknown codes are ignored.
    """
    data = request.get_json(silent=True) or {}

    try:
        employee = auth_service.set_employee_permissions(
            employee_id,
            data.get("permissions"),
            g.principal,
        )
        return jsonify(employee.to_dict()), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except NotFoundError as e:
        return jsonify({"error": str(e)}), 404
    except Exception:
        current_app.logger.exception("Failed to update employee permissions")
        return jsonify({"error": "Operation failed, please try again"}), 500
