from __future__ import annotations

from ..extensions import db
from casebook.time_utils import to_utc_z


class Employee(db.Model):
    """
    Staff accounts for authentication and attribution.

    Every visit, voucher redemption and customer edit records the employee
    who made it. Deleting an employee nulls those references (SET NULL) and
    removes the employee's permission rows and sessions.

    Administrators are not flagged here: the ADMIN_ACCOUNTS config allow-list
    decides who is an admin.
    """
    __tablename__ = "employees"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(100), nullable=False, unique=True, index=True)

    # Bcrypt hashed password
    password_hash = db.Column(db.String(255), nullable=False)

    # New and reset accounts must choose their own password before doing anything else
    password_reset_required = db.Column(db.Boolean, nullable=False, default=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_login_at = db.Column(db.DateTime(timezone=True), nullable=True)

    permissions = db.relationship(
        "EmployeePermission",
        backref="employee",
        lazy=True,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )

    def permission_codes(self) -> list[str]:
        return sorted(p.permission for p in self.permissions)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "username": self.username,
            "password_reset_required": self.password_reset_required,
            "permissions": self.permission_codes(),
            "created_at": to_utc_z(self.created_at),
            "last_login_at": to_utc_z(self.last_login_at) if self.last_login_at else None,
        }


class EmployeePermission(db.Model):
    """
    One granted permission for an employee.

    permission holds a casebook.permissions.Permission value as its literal
    string. Rows for unknown values are never written.
    """
    __tablename__ = "employee_permissions"
    __table_args__ = (
        db.UniqueConstraint("employee_id", "permission", name="uq_employee_permissions"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    permission = db.Column(db.String(64), nullable=False)

    granted_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "permission": self.permission,
            "granted_at": to_utc_z(self.granted_at),
        }


class SessionToken(db.Model):
    """
    Bearer session tokens.

    SECURITY NOTES:
    - Tokens stored hashed in database (SHA-256), plaintext is returned once at login
    - 12-hour absolute timeout
    - 1-hour idle timeout
    - Revocable on logout, password reset and employee deletion
    """
    __tablename__ = "session_tokens"
    __table_args__ = (
        db.Index("ix_session_tokens_employee_active", "employee_id", "is_revoked"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    employee_id = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Token hash (never store plaintext tokens!)
    token_hash = db.Column(db.String(255), nullable=False, unique=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    last_used_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False, index=True)

    is_revoked = db.Column(db.Boolean, nullable=False, default=False, index=True)
    revoked_at = db.Column(db.DateTime(timezone=True), nullable=True)
    revoked_reason = db.Column(db.String(255), nullable=True)

    user_agent = db.Column(db.String(512), nullable=True)
    ip_address = db.Column(db.String(45), nullable=True)

    employee = db.relationship(
        "Employee",
        backref=db.backref("session_tokens", lazy=True, cascade="all, delete-orphan", passive_deletes=True),
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "employee_id": self.employee_id,
            "created_at": to_utc_z(self.created_at),
            "last_used_at": to_utc_z(self.last_used_at),
            "expires_at": to_utc_z(self.expires_at),
            "is_revoked": self.is_revoked,
            "revoked_at": to_utc_z(self.revoked_at) if self.revoked_at else None,
        }
