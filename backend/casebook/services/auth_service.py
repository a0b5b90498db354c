# Overview: Service-layer operations for employees and passwords; bcrypt hashing and account administration.

"""
Authentication and Employee Service

Every visit, voucher and customer edit must be attributable, so staff log in
with individual accounts. Passwords are hashed with bcrypt.

ACCOUNT LIFECYCLE:
- Created by an administrator with a temporary password and
  password_reset_required=True
- The employee must choose a new password before using anything but the
  auth endpoints
- An administrator reset sets the flag again and revokes every session
- Deletion removes permission rows and sessions; visits, vouchers and audit
  rows keep their history with the employee reference nulled
"""

from __future__ import annotations

from typing import Iterable

import bcrypt
from flask import current_app
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import Employee, EmployeePermission, SessionToken
from ..permissions import Permission, validate_permission_code
from ..validation import (
    ConflictError,
    NotFoundError,
    ValidationError,
    validate_password,
    validate_username,
)
from . import session_service
from .concurrency import unit_of_work
from .permission_service import Principal, log_security_event
from casebook.time_utils import utcnow


def hash_password(password: str) -> str:
    """
    Hash password using bcrypt.

    Cost factor comes from BCRYPT_ROUNDS (12 unless configured lower for tests).
    """
    rounds = current_app.config.get("BCRYPT_ROUNDS", 12)
    salt = bcrypt.gensalt(rounds=rounds)
    hashed = bcrypt.hashpw(password.encode("utf-8"), salt)
    return hashed.decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """
    Verify password against bcrypt hash.

    A malformed stored hash counts as a mismatch.
    """
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        return False


def _normalize_permissions(permissions: Iterable[str] | None) -> list[str]:
    if permissions is None:
        return []
    if isinstance(permissions, str) or not isinstance(permissions, (list, tuple, set, frozenset)):
        raise ValidationError("permissions must be a list")
    unknown = sorted({str(p) for p in permissions if not validate_permission_code(p)})
    if unknown:
        raise ValidationError(f"Unknown permissions: {', '.join(unknown)}")
    return sorted({Permission(p).value for p in permissions})


def get_employee(employee_id: int) -> Employee:
    employee = db.session.query(Employee).filter_by(id=employee_id).first()
    if not employee:
        raise NotFoundError("Employee not found")
    return employee


def list_employees() -> list[Employee]:
    return db.session.query(Employee).order_by(Employee.username.asc()).all()


def create_employee(
    username: str,
    password: str,
    permissions: Iterable[str] | None = None,
    *,
    created_by: Principal | None = None,
    password_reset_required: bool = True,
) -> Employee:
    """
    Create an employee and their permission rows in one transaction.

    Raises:
        ValidationError: bad username, short password, unknown permission
        ConflictError: username already taken
    """
    username = validate_username(username)
    validate_password(password)
    codes = _normalize_permissions(permissions)

    if db.session.query(Employee.id).filter_by(username=username).first():
        raise ConflictError("Username already exists")

    try:
        with unit_of_work():
            employee = Employee(
                username=username,
                password_hash=hash_password(password),
                password_reset_required=password_reset_required,
            )
            db.session.add(employee)
            db.session.flush()

            for code in codes:
                db.session.add(EmployeePermission(employee_id=employee.id, permission=code))

            log_security_event(
                employee_id=created_by.employee_id if created_by else None,
                username=created_by.username if created_by else None,
                event_type="EMPLOYEE_CREATED",
                success=True,
                action=username,
                reason=f"Permissions: {', '.join(codes) or 'none'}",
                commit=False,
            )
    except IntegrityError:
        # Lost a race with another create for the same username
        raise ConflictError("Username already exists")

    current_app.logger.info("Employee %s created with permissions %s", username, codes)
    return employee


def delete_employee(employee_id: int, principal: Principal) -> None:
    """Delete an employee. An employee can never delete their own account."""
    if principal.employee_id == employee_id:
        raise ValidationError("You cannot delete your own account")

    employee = get_employee(employee_id)
    username = employee.username

    with unit_of_work():
        db.session.query(SessionToken).filter_by(employee_id=employee_id).delete()
        db.session.query(EmployeePermission).filter_by(employee_id=employee_id).delete()
        db.session.delete(employee)
        log_security_event(
            employee_id=principal.employee_id,
            username=principal.username,
            event_type="EMPLOYEE_DELETED",
            success=True,
            action=username,
            commit=False,
        )

    current_app.logger.info("Employee %s deleted by %s", username, principal.username)


def reset_employee_password(employee_id: int, new_password: str, principal: Principal | None = None) -> Employee:
    """Administrator reset: new temporary password, flag set, sessions revoked."""
    validate_password(new_password)
    employee = get_employee(employee_id)

    with unit_of_work():
        employee.password_hash = hash_password(new_password)
        employee.password_reset_required = True
        session_service.revoke_all_employee_sessions(employee.id, reason="Password reset", commit=False)
        log_security_event(
            employee_id=principal.employee_id if principal else None,
            username=principal.username if principal else None,
            event_type="PASSWORD_RESET",
            success=True,
            action=employee.username,
            commit=False,
        )
    return employee


def change_own_password(principal: Principal, new_password: str, confirm_password: str) -> Employee:
    """The employee picks their own password; clears password_reset_required."""
    if new_password != confirm_password:
        raise ValidationError("Passwords do not match")
    validate_password(new_password)
    employee = get_employee(principal.employee_id)

    with unit_of_work():
        employee.password_hash = hash_password(new_password)
        employee.password_reset_required = False
        log_security_event(
            employee_id=employee.id,
            username=employee.username,
            event_type="PASSWORD_CHANGED",
            success=True,
            commit=False,
        )
    return employee


def set_employee_permissions(
    employee_id: int,
    permissions: Iterable[str] | None,
    principal: Principal | None = None,
) -> Employee:
    """
    Replace the employee's permission set.

    Values outside the Permission enumeration are dropped, not stored.
    """
    employee = get_employee(employee_id)
    if permissions is not None and (isinstance(permissions, str) or not isinstance(permissions, (list, tuple, set))):
        raise ValidationError("permissions must be a list")
    codes = sorted({Permission(p).value for p in (permissions or []) if validate_permission_code(p)})

    with unit_of_work():
        db.session.query(EmployeePermission).filter_by(employee_id=employee.id).delete()
        for code in codes:
            db.session.add(EmployeePermission(employee_id=employee.id, permission=code))
        log_security_event(
            employee_id=principal.employee_id if principal else None,
            username=principal.username if principal else None,
            event_type="PERMISSIONS_CHANGED",
            success=True,
            action=employee.username,
            reason=f"Permissions: {', '.join(codes) or 'none'}",
            commit=False,
        )

    db.session.refresh(employee)
    return employee


def authenticate(username: str, password: str) -> Employee | None:
    """
    Return the employee when the credentials match, else None.

    Updates last_login_at on success. Throttling is handled by the caller
    (see login_throttle_service).
    """
    employee = db.session.query(Employee).filter_by(username=username).first()
    if not employee:
        return None
    if not verify_password(password, employee.password_hash):
        return None

    employee.last_login_at = utcnow()
    db.session.commit()
    return employee
