from __future__ import annotations

from ..extensions import db
from casebook.time_utils import to_local_iso, to_utc_z
from .customers import cents_to_str


class Visit(db.Model):
    """
    One service event for a customer (Food, Money or Voucher).

    APPEND-ONLY: visits are never edited or deleted. The only transition is
    a one-way invalidation (is_invalid False -> True) which removes the visit
    from every eligibility count and report while keeping it on file.

    visit_date is business time: naive wall-clock in APP_TIMEZONE.
    """
    __tablename__ = "visits"
    __table_args__ = (
        db.Index("ix_visits_customer_type_date", "customer_id", "visit_type", "visit_date"),
        db.Index("ix_visits_visit_date", "visit_date"),
        db.CheckConstraint(
            "visit_type IN ('Food', 'Money', 'Voucher')",
            name="ck_visits_visit_type",
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    visit_type = db.Column(db.String(16), nullable=False)
    visit_date = db.Column(db.DateTime, nullable=False)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    is_invalid = db.Column(db.Boolean, nullable=False, default=False, index=True)
    invalid_reason = db.Column(db.Text, nullable=True)
    invalidated_by = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    invalidated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    customer = db.relationship("Customer", backref=db.backref("visits", lazy=True))
    creator = db.relationship("Employee", foreign_keys=[created_by], passive_deletes=True)
    invalidator = db.relationship("Employee", foreign_keys=[invalidated_by], passive_deletes=True)
    voucher = db.relationship("Voucher", back_populates="visit", uselist=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "visit_type": self.visit_type,
            "visit_date": to_local_iso(self.visit_date),
            "notes": self.notes,
            "created_by": self.created_by,
            "created_by_username": self.creator.username if self.creator else None,
            "created_at": to_utc_z(self.created_at),
            "is_invalid": self.is_invalid,
            "invalid_reason": self.invalid_reason,
            "invalidated_by": self.invalidated_by,
            "invalidated_at": to_utc_z(self.invalidated_at) if self.invalidated_at else None,
            "voucher_code": self.voucher.voucher_code if self.voucher else None,
        }


class Voucher(db.Model):
    """
    A redeemable voucher issued alongside a Voucher-type visit (1:1).

    STATES: active -> redeemed (terminal). A voucher whose expiration_date
    is before today is expired and cannot be redeemed. Redemption is a
    single conditional UPDATE guarded on is_redeemed = false.
    """
    __tablename__ = "vouchers"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_vouchers_amount_positive"),
        db.Index("ix_vouchers_redeemed_created", "is_redeemed", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    visit_id = db.Column(db.Integer, db.ForeignKey("visits.id"), nullable=False, unique=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    voucher_code = db.Column(db.String(32), nullable=False, unique=True, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)
    expiration_date = db.Column(db.Date, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    is_redeemed = db.Column(db.Boolean, nullable=False, default=False)
    redeemed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    redeemed_by = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )

    created_by = db.Column(
        db.Integer,
        db.ForeignKey("employees.id", ondelete="SET NULL"),
        nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    visit = db.relationship("Visit", back_populates="voucher")
    customer = db.relationship("Customer", backref=db.backref("vouchers", lazy=True))
    redeemer = db.relationship("Employee", foreign_keys=[redeemed_by], passive_deletes=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "visit_id": self.visit_id,
            "customer_id": self.customer_id,
            "voucher_code": self.voucher_code,
            "amount_cents": self.amount_cents,
            "amount": cents_to_str(self.amount_cents),
            "expiration_date": self.expiration_date.isoformat() if self.expiration_date else None,
            "notes": self.notes,
            "is_redeemed": self.is_redeemed,
            "redeemed_at": to_utc_z(self.redeemed_at) if self.redeemed_at else None,
            "redeemed_by": self.redeemed_by,
            "redeemed_by_username": self.redeemer.username if self.redeemer else None,
            "created_at": to_utc_z(self.created_at),
        }
