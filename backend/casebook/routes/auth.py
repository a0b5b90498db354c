# Overview: Flask API routes for authentication; login, logout, current employee, own password change.

from flask import Blueprint, request, jsonify, current_app, g

from ..decorators import require_auth_allow_reset
from ..services import auth_service, session_service, login_throttle_service, permission_service
from ..validation import ValidationError, clean_str


auth_bp = Blueprint("auth", __name__, url_prefix="/api/auth")


@auth_bp.post("/login")
def login_route():
    """
    Authenticate and issue a bearer token.

    Request body:
    {
        "username": "jdoe",
        "password": "..."
    }

    Returns:
        token, employee, principal (permissions, is_admin) and
        password_reset_required. An employee who must reset can only call
        the /api/auth endpoints until they do.

    429 after 5 failed attempts within 15 minutes.
    """
    data = request.get_json(silent=True) or {}
    username = clean_str(data.get("username"))
    password = data.get("password") or ""
    ip_address = request.remote_addr
    user_agent = request.headers.get("User-Agent")

    if not username or not password:
        return jsonify({"error": "username and password are required"}), 400

    try:
        locked, seconds_remaining = login_throttle_service.is_account_locked(username)
        if locked:
            permission_service.log_security_event(
                employee_id=None,
                username=username,
                event_type="LOGIN_LOCKED",
                success=False,
                resource=request.path,
                action="LOGIN",
                reason="Too many failed login attempts",
                ip_address=ip_address,
                user_agent=user_agent,
            )
            return jsonify({
                "error": "Too many login attempts. Please try again later.",
                "locked": True,
                "retry_after_seconds": seconds_remaining,
            }), 429

        employee = auth_service.authenticate(username, password)

        if not employee:
            failed_count = login_throttle_service.record_failed_attempt(
                username,
                ip_address=ip_address,
                user_agent=user_agent,
            )
            remaining = login_throttle_service.MAX_FAILED_ATTEMPTS - failed_count

            if remaining <= 0:
                return jsonify({
                    "error": "Too many login attempts. Please try again later.",
                    "locked": True,
                }), 429
            elif remaining <= 2:
                return jsonify({
                    "error": "Invalid credentials",
                    "warning": f"{remaining} attempts remaining before lockout",
                }), 401
            else:
                return jsonify({"error": "Invalid credentials"}), 401

        login_throttle_service.record_successful_login(
            employee_id=employee.id,
            username=username,
            ip_address=ip_address,
            user_agent=user_agent,
        )

        session, token = session_service.create_session(
            employee_id=employee.id,
            user_agent=user_agent,
            ip_address=ip_address,
        )
        principal = permission_service.principal_for(employee)

        return jsonify({
            "token": token,
            "employee": employee.to_dict(),
            "principal": principal.to_dict(),
            "password_reset_required": employee.password_reset_required,
            "session": session.to_dict(),
            "message": "Login successful",
        }), 200

    except Exception:
        current_app.logger.exception("Failed to login employee")
        return jsonify({"error": "Operation failed, please try again"}), 500


@auth_bp.post("/logout")
def logout_route():
    """Revoke the bearer token in the Authorization header."""
    try:
        auth_header = request.headers.get("Authorization")
        if not auth_header or not auth_header.startswith("Bearer "):
            return jsonify({"error": "Authorization header required"}), 401

        token = auth_header.split(" ", 1)[1]
        if not session_service.revoke_session(token, reason="Employee logout"):
            return jsonify({"error": "Invalid or expired token"}), 401

        return jsonify({"message": "Logout successful"}), 200

    except Exception:
        current_app.logger.exception("Failed to logout employee")
        return jsonify({"error": "Operation failed, please try again"}), 500


@auth_bp.get("/me")
@require_auth_allow_reset
def me_route():
    """The authenticated employee, their effective permissions and admin flag."""
    return jsonify({
        "employee": g.current_employee.to_dict(),
        "principal": g.principal.to_dict(),
        "password_reset_required": g.current_employee.password_reset_required,
    }), 200


@auth_bp.post("/reset-password")
@require_auth_allow_reset
def reset_own_password_route():
    """
    Choose a new password (clears password_reset_required).

    Request body:
    {
        "new_password": "...",      // at least 8 characters
        "confirm_password": "..."   // must match
    }
    """
    data = request.get_json(silent=True) or {}

    try:
        employee = auth_service.change_own_password(
            g.principal,
            data.get("new_password") or "",
            data.get("confirm_password") or "",
        )
        return jsonify({
            "employee": employee.to_dict(),
            "message": "Password updated",
        }), 200
    except ValidationError as e:
        return jsonify({"error": str(e)}), 400
    except Exception:
        current_app.logger.exception("Failed to change password")
        return jsonify({"error": "Operation failed, please try again"}), 500
