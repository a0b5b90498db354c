# Overview: Service-layer operations for the customer directory; signup, duplicate search, edits with audit.

"""
Customer Service

A customer is a household: the registered person, the other people living
with them (household members) and the household's income sources.

SIGNUP FLOW:
- Validate the form (no writes on failure)
- Search for likely duplicates by name, address, phone and member names
- Duplicates found and not confirmed -> DuplicateCustomersFound (409)
- Otherwise create customer + "Self" member + other members + income rows
  in one unit of work

EDITS: update_customer applies only the fields supplied and writes one
CustomerAudit row per protected field whose value actually changed.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any

from sqlalchemy import func, or_

from ..extensions import db
from ..models import Customer, CustomerAudit, HouseholdIncome, HouseholdMember, Visit
from ..models.customers import SELF_RELATIONSHIP, cents_to_str
from ..permissions import parse_income_type
from ..validation import (
    NotFoundError,
    ValidationError,
    clean_str,
    optional_str,
    parse_bool,
    validate_address,
    validate_birthdate,
    validate_city,
    validate_income_amount,
    validate_person_name,
    validate_phone_digits,
    validate_state,
    validate_zip,
)
from . import identifier_service
from .concurrency import unit_of_work
from .permission_service import Principal
from casebook.time_utils import combine_date_time, local_now, parse_local_datetime


# Fields whose edits are recorded in customer_audit, in this order
AUDITED_FIELDS = (
    "name",
    "address",
    "city",
    "state",
    "zip_code",
    "phone_country_code",
    "phone_local_number",
    "description",
    "previous_application",
    "subsidized_housing",
)

MAX_DESCRIPTION_LENGTH = 5000
MIN_SEARCH_LENGTH = 2
SEARCH_LIMIT = 20

NON_DIGITS = re.compile(r"\D")


class DuplicateCustomersFound(Exception):
    """Signup matched existing customers and was not confirmed."""

    def __init__(self, duplicates: list[Customer]):
        self.duplicates = duplicates
        super().__init__(f"{len(duplicates)} possible duplicate customer(s) found")


@dataclass
class CustomerForm:
    """A validated signup or edit payload."""
    fields: dict[str, Any]
    members: list[dict] = field(default_factory=list)
    incomes: list[dict] = field(default_factory=list)
    signup_date: datetime | None = None

    @property
    def member_names(self) -> list[str]:
        return [m["name"] for m in self.members]


# -- Phone numbers --

def parse_phone_number(raw: Any) -> tuple[str, str]:
    """
    Split a free-form phone number into (country_code, local_number).

    Non-digits are dropped. Ten digits are a NANP number (country code "1");
    longer numbers keep the last ten digits as the local number and the rest
    as the country code.
    """
    digits = NON_DIGITS.sub("", clean_str(raw))
    if len(digits) > 10:
        return digits[:-10], digits[-10:]
    return "1", digits


def format_phone_number(country_code: str | None, local_number: str | None) -> str:
    """(555) 123-4567 for ten-digit NANP numbers, else "<cc> <local>"."""
    local = local_number or ""
    cc = country_code or "1"
    if cc == "1" and len(local) == 10:
        return f"({local[:3]}) {local[3:6]}-{local[6:]}"
    return f"{cc} {local}".strip()


# -- Form parsing --

def _parse_members(raw_members: Any) -> list[dict]:
    if raw_members in (None, ""):
        return []
    if not isinstance(raw_members, list):
        raise ValidationError("household_members must be a list")

    members = []
    for index, raw in enumerate(raw_members):
        if not isinstance(raw, dict):
            raise ValidationError(f"household_members[{index}] must be an object")
        name = clean_str(raw.get("name"))
        if not name:
            continue
        members.append({
            "name": validate_person_name(name, f"household_members[{index}].name"),
            "birthdate": validate_birthdate(raw.get("birthdate")),
            "relationship": optional_str(raw.get("relationship")),
        })
    return members


def _parse_incomes(raw_incomes: Any) -> list[dict]:
    if raw_incomes in (None, ""):
        return []
    if not isinstance(raw_incomes, list):
        raise ValidationError("household_income must be a list")

    incomes = []
    for index, raw in enumerate(raw_incomes):
        if not isinstance(raw, dict):
            raise ValidationError(f"household_income[{index}] must be an object")
        income_type = parse_income_type(raw.get("income_type"))
        if income_type is None:
            raise ValidationError(f"household_income[{index}].income_type is not a known income type")
        description = optional_str(raw.get("description"))
        if description and len(description) > 500:
            raise ValidationError(f"household_income[{index}].description must be at most 500 characters")
        incomes.append({
            "income_type": income_type.value,
            "amount_cents": validate_income_amount(raw.get("amount", 0)),
            "description": description,
        })
    return incomes


def _parse_signup_date(data: dict) -> datetime:
    try:
        if data.get("signup_at"):
            return parse_local_datetime(str(data["signup_at"]))
        if data.get("signup_date"):
            return combine_date_time(str(data["signup_date"]), data.get("signup_time"))
    except ValueError:
        raise ValidationError("signup date/time is not valid")
    return local_now()


def _parse_description(value: Any) -> str | None:
    description = optional_str(value)
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return description


_FIELD_VALIDATORS = {
    "name": validate_person_name,
    "address": validate_address,
    "city": validate_city,
    "state": validate_state,
    "zip_code": validate_zip,
    "description": _parse_description,
    "previous_application": parse_bool,
    "subsidized_housing": parse_bool,
}


def parse_customer_form(data: Any, *, partial: bool = False) -> CustomerForm:
    """
    Validate a signup (partial=False) or edit (partial=True) payload.

    The phone arrives as one free-form "phone" value and is split into
    phone_country_code / phone_local_number.
    """
    if not isinstance(data, dict):
        raise ValidationError("Invalid JSON payload")

    fields: dict[str, Any] = {}
    required = ("name", "address", "city", "state", "zip_code", "phone")
    if not partial:
        missing = [f for f in required if not clean_str(data.get(f))]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    for key, validator in _FIELD_VALIDATORS.items():
        if key in data:
            fields[key] = validator(data[key])
        elif not partial and key in ("previous_application", "subsidized_housing"):
            fields[key] = False

    if "phone" in data:
        validate_phone_digits(NON_DIGITS.sub("", clean_str(data["phone"])))
        country_code, local_number = parse_phone_number(data["phone"])
        fields["phone_country_code"] = country_code
        fields["phone_local_number"] = local_number

    form = CustomerForm(fields=fields)
    if not partial:
        form.members = _parse_members(data.get("household_members"))
        form.incomes = _parse_incomes(data.get("household_income"))
        form.signup_date = _parse_signup_date(data)
    return form


# -- Duplicate detection --

def find_duplicate_customers(
    name: str | None,
    address: str | None,
    phone_local: str | None,
    household_member_names: list[str] | None = None,
) -> list[Customer]:
    """
    Existing customers that look like the candidate household.

    A customer matches when its name or address contains the candidate
    name or address (case-insensitive), its local phone number equals the
    candidate's, or one of its household members has exactly one of the
    candidate member names. Empty candidates are skipped, since they would
    match everyone. Each customer appears once, ordered by id.
    """
    conditions = []
    name = clean_str(name)
    address = clean_str(address)
    phone_local = clean_str(phone_local)

    if name:
        conditions.append(Customer.name.icontains(name, autoescape=True))
    if address:
        conditions.append(Customer.address.icontains(address, autoescape=True))
    if phone_local:
        conditions.append(Customer.phone_local_number == phone_local)

    member_names = sorted({n for n in (clean_str(n) for n in household_member_names or []) if n})
    if member_names:
        member_owner_ids = db.session.query(HouseholdMember.customer_id).filter(
            HouseholdMember.name.in_(member_names)
        )
        conditions.append(Customer.id.in_(member_owner_ids))

    if not conditions:
        return []

    return db.session.query(Customer).filter(or_(*conditions)).order_by(Customer.id.asc()).all()


def find_duplicates_for_form(form: CustomerForm) -> list[Customer]:
    return find_duplicate_customers(
        form.fields.get("name"),
        form.fields.get("address"),
        form.fields.get("phone_local_number"),
        form.member_names,
    )


# -- Create / update --

def create_customer(
    data: Any,
    principal: Principal,
    *,
    confirm_no_duplicate: bool = False,
) -> Customer:
    """
    Register a household.

    Raises:
        ValidationError: malformed form (nothing written)
        DuplicateCustomersFound: likely duplicates and not confirmed
    """
    form = parse_customer_form(data)

    duplicates = find_duplicates_for_form(form)
    if duplicates and not confirm_no_duplicate:
        raise DuplicateCustomersFound(duplicates)

    with unit_of_work():
        customer = Customer(
            customer_number=identifier_service.generate_customer_number(),
            signup_date=form.signup_date,
            **form.fields,
        )
        db.session.add(customer)
        db.session.flush()

        # The customer is always household member #1
        db.session.add(HouseholdMember(
            customer_id=customer.id,
            name=customer.name,
            birthdate=None,
            relationship=SELF_RELATIONSHIP,
        ))
        db.session.flush()

        for member in form.members:
            db.session.add(HouseholdMember(customer_id=customer.id, **member))
        for income in form.incomes:
            db.session.add(HouseholdIncome(customer_id=customer.id, **income))

    return customer


def get_customer(customer_id: int) -> Customer:
    customer = db.session.query(Customer).filter_by(id=customer_id).first()
    if not customer:
        raise NotFoundError("Customer not found")
    return customer


def _audit_text(value: Any) -> str | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def update_customer(customer_id: int, data: Any, principal: Principal) -> tuple[Customer, list[CustomerAudit]]:
    """
    Apply an edit and record what changed.

    Returns the customer and the audit rows written (empty when nothing
    actually changed).
    """
    customer = get_customer(customer_id)
    form = parse_customer_form(data, partial=True)

    audits: list[CustomerAudit] = []
    with unit_of_work():
        for field_name in AUDITED_FIELDS:
            if field_name not in form.fields:
                continue
            old_value = getattr(customer, field_name)
            new_value = form.fields[field_name]
            if old_value == new_value:
                continue
            setattr(customer, field_name, new_value)
            audit = CustomerAudit(
                customer_id=customer.id,
                field_name=field_name,
                old_value=_audit_text(old_value),
                new_value=_audit_text(new_value),
                changed_by=principal.employee_id,
            )
            db.session.add(audit)
            audits.append(audit)

    return customer, audits


# -- Reads --

def total_household_income_cents(customer_id: int) -> int:
    total = db.session.query(
        func.coalesce(func.sum(HouseholdIncome.amount_cents), 0)
    ).filter(HouseholdIncome.customer_id == customer_id).scalar()
    return int(total or 0)


def get_customer_detail(customer_id: int) -> dict:
    """Customer with household, income total, visits and audit trail."""
    customer = get_customer(customer_id)

    visits = db.session.query(Visit).filter(
        Visit.customer_id == customer.id
    ).order_by(Visit.visit_date.desc(), Visit.id.desc()).all()

    audit_rows = db.session.query(CustomerAudit).filter(
        CustomerAudit.customer_id == customer.id
    ).order_by(CustomerAudit.changed_at.desc(), CustomerAudit.id.desc()).all()

    total_cents = total_household_income_cents(customer.id)

    payload = customer.to_dict()
    payload["phone_display"] = format_phone_number(customer.phone_country_code, customer.phone_local_number)
    payload["household_members"] = [m.to_dict() for m in customer.household_members]
    payload["household_income"] = [i.to_dict() for i in customer.household_income]
    payload["total_income_cents"] = total_cents
    payload["total_income"] = cents_to_str(total_cents)
    payload["visits"] = [v.to_dict() for v in visits]
    payload["audit"] = [a.to_dict() for a in audit_rows]
    return payload


def search_customers(query: Any, limit: int = SEARCH_LIMIT) -> list[Customer]:
    """
    Quick search by name, customer number, address, phone, city or
    household member name. Fewer than two characters returns nothing.
    """
    q = clean_str(query)[:100]
    if len(q) < MIN_SEARCH_LENGTH:
        return []

    member_matches = db.session.query(HouseholdMember.customer_id).filter(
        HouseholdMember.name.icontains(q, autoescape=True)
    )

    return db.session.query(Customer).filter(
        or_(
            Customer.name.icontains(q, autoescape=True),
            Customer.customer_number.icontains(q, autoescape=True),
            Customer.address.icontains(q, autoescape=True),
            Customer.phone_local_number.icontains(q, autoescape=True),
            Customer.city.icontains(q, autoescape=True),
            Customer.id.in_(member_matches),
        )
    ).order_by(Customer.name.asc(), Customer.id.asc()).limit(limit).all()
