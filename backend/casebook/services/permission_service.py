# Overview: Service-layer operations for permissions; resolves principals and logs security events.

"""
Permission Checking and Security Event Logging

The permission model is flat: an employee holds a set of permissions from
the closed Permission enumeration (employee_permissions rows). Usernames in
the ADMIN_ACCOUNTS config allow-list hold every permission regardless of
rows, and are the only accounts that may manage employees and settings.

DESIGN PRINCIPLES:
- Fail closed: Deny by default, require explicit permission grant
- Log denials only: Permission grants are not logged
- The Principal is resolved once per request and passed explicitly into
  every operation that records who did something
"""

from __future__ import annotations

from dataclasses import dataclass, field

from flask import current_app

from ..extensions import db
from ..models import Employee, EmployeePermission, SecurityEvent
from ..permissions import Permission, get_all_permission_codes
from casebook.time_utils import utcnow


class PermissionDeniedError(Exception):
    """Raised when the principal lacks a required permission."""

    def __init__(self, permission: str, message: str | None = None):
        self.permission = permission
        super().__init__(message or f"Permission denied: {permission}")


@dataclass(frozen=True)
class Principal:
    """The authenticated employee acting in a request."""
    employee_id: int | None
    username: str
    is_admin: bool = False
    permissions: frozenset[str] = field(default_factory=frozenset)

    def to_dict(self) -> dict:
        return {
            "employee_id": self.employee_id,
            "username": self.username,
            "is_admin": self.is_admin,
            "permissions": sorted(get_effective_permissions(self)),
        }


def admin_accounts() -> set[str]:
    return set(current_app.config.get("ADMIN_ACCOUNTS") or ())


def is_admin_username(username: str) -> bool:
    return username in admin_accounts()


def get_employee_permissions(employee_id: int) -> set[str]:
    """Permission codes granted by rows (the admin allow-list is not applied here)."""
    rows = db.session.query(EmployeePermission.permission).filter_by(employee_id=employee_id).all()
    return {r[0] for r in rows}


def principal_for(employee: Employee) -> Principal:
    return Principal(
        employee_id=employee.id,
        username=employee.username,
        is_admin=is_admin_username(employee.username),
        permissions=frozenset(get_employee_permissions(employee.id)),
    )


def get_effective_permissions(principal: Principal) -> set[str]:
    if principal.is_admin:
        return set(get_all_permission_codes())
    return set(principal.permissions)


def has_permission(principal: Principal, permission: Permission | str) -> bool:
    if principal.is_admin:
        return True
    code = permission.value if isinstance(permission, Permission) else permission
    return code in principal.permissions


def log_security_event(
    employee_id: int | None,
    event_type: str,
    success: bool,
    resource: str | None = None,
    action: str | None = None,
    reason: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
    username: str | None = None,
    commit: bool = True,
) -> SecurityEvent:
    """
    Append a security event.

    event_type examples:
    - LOGIN_SUCCESS / LOGIN_FAILED / LOGIN_LOCKED
    - PERMISSION_DENIED
    - EMPLOYEE_CREATED / EMPLOYEE_DELETED
    - PASSWORD_RESET / PASSWORD_CHANGED / PERMISSIONS_CHANGED

    Pass commit=False to write the event inside a caller's unit of work.
    """
    event = SecurityEvent(
        employee_id=employee_id,
        username=username,
        event_type=event_type,
        resource=resource,
        action=action,
        success=success,
        reason=reason,
        ip_address=ip_address,
        user_agent=user_agent,
        occurred_at=utcnow(),
    )

    db.session.add(event)
    if commit:
        db.session.commit()
    else:
        db.session.flush()

    return event


def require_permission(
    principal: Principal,
    permission: Permission | str,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    """
    Raise PermissionDeniedError (after logging a PERMISSION_DENIED event)
    unless the principal holds the permission.
    """
    if has_permission(principal, permission):
        return

    code = permission.value if isinstance(permission, Permission) else permission
    log_security_event(
        employee_id=principal.employee_id,
        username=principal.username,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action=code,
        reason=f"Missing permission: {code}",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError(code)


def require_admin(
    principal: Principal,
    resource: str | None = None,
    ip_address: str | None = None,
    user_agent: str | None = None,
) -> None:
    if principal.is_admin:
        return
    log_security_event(
        employee_id=principal.employee_id,
        username=principal.username,
        event_type="PERMISSION_DENIED",
        success=False,
        resource=resource,
        action="ADMIN",
        reason="Administrator access required",
        ip_address=ip_address,
        user_agent=user_agent,
    )
    raise PermissionDeniedError("admin", "Administrator access required")
