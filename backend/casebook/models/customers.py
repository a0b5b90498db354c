from __future__ import annotations

from ..extensions import db
from casebook.time_utils import to_local_iso, to_utc_z


INCOME_TYPES = (
    "Child Support",
    "Pension",
    "Wages",
    "SS/SSD/SSI",
    "Unemployment",
    "Food Stamps",
    "Other",
)

SELF_RELATIONSHIP = "Self"


def cents_to_str(cents: int | None) -> str | None:
    if cents is None:
        return None
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"


class Customer(db.Model):
    """
    A registered household, identified to staff by customer_number.

    customer_number is generated (PREFIX-YYYYMMDD-####) and guarded by a
    unique constraint; the pre-insert existence check in identifier_service
    is only an optimization.

    Rows are never hard-deleted. Edits to the protected fields go through
    customer_service.update_customer, which appends CustomerAudit rows.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.Index("ix_customers_name", "name"),
        db.Index("ix_customers_phone_local", "phone_local_number"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_number = db.Column(db.String(64), nullable=False, unique=True, index=True)

    name = db.Column(db.String(255), nullable=False)
    address = db.Column(db.String(255), nullable=False)
    city = db.Column(db.String(100), nullable=False)
    state = db.Column(db.String(2), nullable=False)
    zip_code = db.Column(db.String(10), nullable=False)

    phone_country_code = db.Column(db.String(5), nullable=False, default="1")
    phone_local_number = db.Column(db.String(20), nullable=False)

    description = db.Column(db.Text, nullable=True)
    previous_application = db.Column(db.Boolean, nullable=False, default=False)
    subsidized_housing = db.Column(db.Boolean, nullable=False, default=False)

    # Business time (wall-clock, APP_TIMEZONE)
    signup_date = db.Column(db.DateTime, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    household_members = db.relationship(
        "HouseholdMember",
        backref="customer",
        lazy=True,
        order_by="HouseholdMember.id",
    )
    household_income = db.relationship(
        "HouseholdIncome",
        backref="customer",
        lazy=True,
        order_by="HouseholdIncome.id",
    )

    def to_summary_dict(self) -> dict:
        """Minimal fields for duplicate review and search results."""
        return {
            "id": self.id,
            "customer_number": self.customer_number,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
        }

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_number": self.customer_number,
            "name": self.name,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
            "phone_country_code": self.phone_country_code,
            "phone_local_number": self.phone_local_number,
            "description": self.description,
            "previous_application": self.previous_application,
            "subsidized_housing": self.subsidized_housing,
            "signup_date": to_local_iso(self.signup_date),
            "created_at": to_utc_z(self.created_at),
        }


class HouseholdMember(db.Model):
    """
    A person living in the customer's household.

    The customer is always member #1 with relationship "Self".
    """
    __tablename__ = "household_members"
    __table_args__ = (
        db.Index("ix_household_members_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    name = db.Column(db.String(255), nullable=False)
    birthdate = db.Column(db.Date, nullable=True)
    relationship = db.Column(db.String(100), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "name": self.name,
            "birthdate": self.birthdate.isoformat() if self.birthdate else None,
            "relationship": self.relationship,
        }


class HouseholdIncome(db.Model):
    """
    One income source for a household.

    income_type is one of INCOME_TYPES (compared by literal string).
    The household total is summed on read and never stored.
    """
    __tablename__ = "household_income"
    __table_args__ = (
        db.CheckConstraint("amount_cents >= 0", name="ck_household_income_amount_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    income_type = db.Column(db.String(32), nullable=False)
    amount_cents = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.String(500), nullable=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "income_type": self.income_type,
            "amount_cents": self.amount_cents,
            "amount": cents_to_str(self.amount_cents),
            "description": self.description,
        }


class CustomerAudit(db.Model):
    """
    Field-level change history for customers.

    IMMUTABLE: one row per protected field whose value actually changed
    during an edit. Values are stored as text.
    """
    __tablename__ = "customer_audit"
    __table_args__ = (
        db.Index("ix_customer_audit_customer_changed", "customer_id", "changed_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    field_name = db.Column(db.String(64), nullable=False)
    old_value = db.Column(db.Text, nullable=True)
    new_value = db.Column(db.Text, nullable=True)

    changed_by = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    changed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    employee = db.relationship("Employee", passive_deletes=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "field_name": self.field_name,
            "old_value": self.old_value,
            "new_value": self.new_value,
            "changed_by": self.changed_by,
            "changed_by_username": self.employee.username if self.employee else None,
            "changed_at": to_utc_z(self.changed_at),
        }
