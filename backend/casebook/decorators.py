# Overview: Request and permission decorators for API routes.

from functools import wraps
from flask import request, jsonify, g

from .services import session_service, permission_service
from .services.permission_service import PermissionDeniedError


def _is_authenticated() -> bool:
    return hasattr(g, "principal")


def _bearer_token() -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header or not auth_header.startswith("Bearer "):
        return None
    return auth_header.split(" ", 1)[1]


def _authenticate(f, *, allow_password_reset: bool):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        token = _bearer_token()
        if not token:
            return jsonify({"error": "Authentication required"}), 401

        context = session_service.validate_session(token)
        if not context:
            return jsonify({"error": "Invalid or expired token"}), 401

        employee = context.employee
        if employee.password_reset_required and not allow_password_reset:
            return jsonify({
                "error": "Password reset required",
                "password_reset_required": True,
            }), 403

        g.current_employee = employee
        g.principal = permission_service.principal_for(employee)
        g.session_context = context

        return f(*args, **kwargs)

    return decorated_function


def require_auth(f):
    """
    Require a valid bearer token.

    Sets the following Flask g attributes:
    - g.current_employee: The authenticated Employee
    - g.principal: The Principal passed into service operations
    - g.session_context: The SessionContext

    Returns 401 without a live token, and 403 while the employee still has
    to choose a new password.
    """
    return _authenticate(f, allow_password_reset=False)


def require_auth_allow_reset(f):
    """require_auth for the auth endpoints an employee needs before resetting."""
    return _authenticate(f, allow_password_reset=True)


def permission_denied_response(e: PermissionDeniedError):
    return jsonify({
        "error": "Permission denied",
        "required_permission": e.permission,
        "message": str(e),
    }), 403


def require_permission(permission_code):
    """Require a specific permission (admins hold them all)."""
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not _is_authenticated():
                return jsonify({"error": "Authentication required"}), 401

            try:
                permission_service.require_permission(
                    g.principal,
                    permission_code,
                    resource=request.path,
                    ip_address=request.remote_addr,
                    user_agent=request.headers.get("User-Agent"),
                )
            except PermissionDeniedError as e:
                return permission_denied_response(e)

            return f(*args, **kwargs)

        return decorated_function
    return decorator


def require_admin(f):
    """Require the employee to be on the ADMIN_ACCOUNTS allow-list."""
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if not _is_authenticated():
            return jsonify({"error": "Authentication required"}), 401

        try:
            permission_service.require_admin(
                g.principal,
                resource=request.path,
                ip_address=request.remote_addr,
                user_agent=request.headers.get("User-Agent"),
            )
        except PermissionDeniedError as e:
            return permission_denied_response(e)

        return f(*args, **kwargs)
    return decorated_function
