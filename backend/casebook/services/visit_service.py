# Overview: Service-layer operations for the visit ledger; record, invalidate and receipt.

"""
Visit Service

APPEND-ONLY LEDGER: visits are recorded once and never edited. The only
change a visit can undergo is invalidation (is_invalid False -> True), which
takes it out of eligibility counts and reports.

RECORDING FLOW:
- The principal needs the permission for the visit type
- The customer must exist
- Food and Money visits are checked against the limits; any violation
  raises VisitRequiresOverride unless confirm_override was given
- Visit (+ Voucher with a generated code for Voucher visits) is written in
  one unit of work
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from flask import current_app

from ..extensions import db
from ..models import Customer, Visit, Voucher
from ..permissions import VISIT_TYPE_PERMISSIONS, VisitType, parse_visit_type
from ..validation import (
    NotFoundError,
    ValidationError,
    clean_str,
    optional_str,
    parse_bool,
    parse_int,
    validate_voucher_amount,
)
from . import identifier_service, permission_service
from .concurrency import guarded_update, unit_of_work
from .eligibility_service import EligibilityResult, check_visit_eligibility
from .permission_service import Principal
from .settings_service import SettingsCache, get_appearance
from casebook.time_utils import combine_date_time, local_now, parse_iso_date, parse_local_datetime, utcnow


MAX_NOTES_LENGTH = 5000
MAX_REASON_LENGTH = 500


class VisitRequiresOverride(Exception):
    """The visit breaks one or more limits and was not confirmed."""

    def __init__(self, violations: list[str]):
        self.violations = list(violations)
        super().__init__("; ".join(self.violations))


class VisitAlreadyInvalidError(Exception):
    """The visit was invalidated before."""


@dataclass
class VisitRequest:
    customer_id: int
    visit_type: VisitType
    visit_at: datetime
    notes: str | None = None
    confirm_override: bool = False
    voucher_amount_cents: int | None = None
    expiration_date: date | None = None


def parse_visit_request(data: Any, *, check_only: bool = False) -> VisitRequest:
    """
    Validate a visit payload.

    With check_only the voucher fields are not required (eligibility dry run).

    The visit time comes from "visit_at" (ISO-8601) or "visit_date" +
    optional "visit_time"; with neither it is now in APP_TIMEZONE.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    if data.get("customer_id") in (None, ""):
        raise ValidationError("customer_id is required")
    customer_id = parse_int(data.get("customer_id"), "customer_id")

    visit_type = parse_visit_type(data.get("visit_type"))
    if visit_type is None:
        raise ValidationError("visit_type must be one of Food, Money, Voucher")

    try:
        if data.get("visit_at"):
            visit_at = parse_local_datetime(str(data["visit_at"]))
        elif data.get("visit_date"):
            visit_at = combine_date_time(str(data["visit_date"]), data.get("visit_time"))
        else:
            visit_at = local_now()
    except ValueError:
        raise ValidationError("visit date/time is not valid")

    notes = optional_str(data.get("notes"))
    if notes and len(notes) > MAX_NOTES_LENGTH:
        raise ValidationError(f"notes must be at most {MAX_NOTES_LENGTH} characters")

    request = VisitRequest(
        customer_id=customer_id,
        visit_type=visit_type,
        visit_at=visit_at,
        notes=notes,
        confirm_override=parse_bool(data.get("confirm_override", False)),
    )

    if visit_type is VisitType.VOUCHER and not check_only:
        request.voucher_amount_cents = validate_voucher_amount(data.get("voucher_amount"))
        try:
            request.expiration_date = parse_iso_date(data.get("expiration_date") or None)
        except (TypeError, ValueError):
            raise ValidationError("expiration_date must be YYYY-MM-DD")

    return request


def check_request_eligibility(
    principal: Principal,
    request: VisitRequest,
    settings: SettingsCache | None = None,
) -> EligibilityResult:
    """Dry run: permission and customer checks, then the limits. Writes nothing."""
    permission_service.require_permission(principal, VISIT_TYPE_PERMISSIONS[request.visit_type])
    _get_customer(request.customer_id)
    return check_visit_eligibility(request.customer_id, request.visit_type, request.visit_at, settings)


def _get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def record_visit(
    principal: Principal,
    customer_id: int,
    visit_type: VisitType | str,
    visit_at: datetime,
    notes: str | None = None,
    confirm_override: bool = False,
    voucher_amount: int | None = None,
    expiration_date: date | None = None,
    settings: SettingsCache | None = None,
) -> Visit:
    """
    Record a visit.

    voucher_amount is in cents and required for Voucher visits.

    Raises:
        PermissionDeniedError: principal lacks the visit type's permission
        NotFoundError: unknown customer
        VisitRequiresOverride: limits violated and confirm_override not set
    """
    visit_type = VisitType(visit_type)
    permission_service.require_permission(principal, VISIT_TYPE_PERMISSIONS[visit_type])
    customer = _get_customer(customer_id)

    if visit_type is VisitType.VOUCHER and voucher_amount is None:
        raise ValidationError("voucher_amount is required for Voucher visits")

    eligibility = check_visit_eligibility(customer.id, visit_type, visit_at, settings)
    if not eligibility.valid and not confirm_override:
        raise VisitRequiresOverride(eligibility.violations)

    with unit_of_work():
        visit = Visit(
            customer_id=customer.id,
            visit_type=visit_type.value,
            visit_date=visit_at,
            notes=notes,
            created_by=principal.employee_id,
            is_invalid=False,
        )
        db.session.add(visit)
        db.session.flush()

        if visit_type is VisitType.VOUCHER:
            db.session.add(Voucher(
                visit_id=visit.id,
                customer_id=customer.id,
                voucher_code=identifier_service.generate_voucher_code(),
                amount_cents=voucher_amount,
                expiration_date=expiration_date,
                notes=notes,
                is_redeemed=False,
                created_by=principal.employee_id,
            ))

    if not eligibility.valid:
        current_app.logger.info(
            "%s visit %s for customer %s recorded with override by %s: %s",
            visit_type.value, visit.id, customer.customer_number, principal.username,
            "; ".join(eligibility.violations),
        )
    return visit


def record_visit_request(principal: Principal, request: VisitRequest, settings: SettingsCache | None = None) -> Visit:
    return record_visit(
        principal,
        request.customer_id,
        request.visit_type,
        request.visit_at,
        notes=request.notes,
        confirm_override=request.confirm_override,
        voucher_amount=request.voucher_amount_cents,
        expiration_date=request.expiration_date,
        settings=settings,
    )


def get_visit(visit_id: int) -> Visit:
    visit = db.session.query(Visit).filter_by(id=visit_id).first()
    if not visit:
        raise NotFoundError("Visit not found")
    return visit


def invalidate_visit(visit_id: int, reason: Any, principal: Principal) -> Visit:
    """
    Mark a visit invalid. One-way: a second invalidation raises
    VisitAlreadyInvalidError and leaves the first reason in place.
    """
    reason = clean_str(reason)
    if not reason:
        raise ValidationError("A reason is required to invalidate a visit")
    if len(reason) > MAX_REASON_LENGTH:
        raise ValidationError(f"reason must be at most {MAX_REASON_LENGTH} characters")

    with unit_of_work():
        changed = guarded_update(
            Visit,
            where=[Visit.id == visit_id, Visit.is_invalid.is_(False)],
            values={
                "is_invalid": True,
                "invalid_reason": reason,
                "invalidated_by": principal.employee_id,
                "invalidated_at": utcnow(),
            },
        )

    visit = get_visit(visit_id)
    if changed == 0:
        raise VisitAlreadyInvalidError("Visit is already invalid")

    db.session.refresh(visit)
    current_app.logger.info("Visit %s invalidated by %s: %s", visit_id, principal.username, reason)
    return visit


def get_visit_receipt(visit_id: int) -> dict:
    """Visit, the customer it belongs to and its voucher, ready to print."""
    visit = get_visit(visit_id)
    appearance = get_appearance()
    return {
        "visit": visit.to_dict(),
        "customer": visit.customer.to_summary_dict(),
        "voucher": visit.voucher.to_dict() if visit.voucher else None,
        "company_name": appearance["company_name"],
        "partner_store_name": appearance["partner_store_name"],
    }
