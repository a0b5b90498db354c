# Overview: Input validation helpers and the shared service error types.

from __future__ import annotations

import re
from datetime import date
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any

from casebook.time_utils import parse_iso_date


# Voucher amount: $0.01 .. $99,999.99
MIN_VOUCHER_CENTS = 1
MAX_VOUCHER_CENTS = 9_999_999

# Household income amount: $0.00 .. $999,999.99
MAX_INCOME_CENTS = 99_999_999

USERNAME_RE = re.compile(r"^[A-Za-z0-9_]+$")
ZIP_RE = re.compile(r"^\d{5}(-\d{4})?$")
STATE_RE = re.compile(r"^[A-Z]{2}$")
NAME_FORBIDDEN = set('<>"\'')

MIN_PASSWORD_LENGTH = 8


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., username already taken)."""


class NotFoundError(LookupError):
    """404-level missing entity."""


def clean_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def optional_str(value: Any) -> str | None:
    s = clean_str(value)
    return s or None


def parse_bool(value: Any) -> bool:
    """
    Form-style booleans: true/false, 1/0, "yes"/"no", "on".

    Anything else raises rather than silently becoming truthy.
    """
    if isinstance(value, bool):
        return value
    if value is None:
        return False
    if isinstance(value, int):
        return value != 0
    s = str(value).strip().lower()
    if s in ("1", "true", "yes", "on"):
        return True
    if s in ("", "0", "false", "no", "off"):
        return False
    raise ValidationError(f"Invalid boolean value: {value}")


def parse_int(value: Any, field: str) -> int:
    """Strict integer: rejects floats, decimals and scientific notation."""
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped or "e" in stripped.lower() or "." in stripped:
            raise ValidationError(f"{field} must be an integer")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    raise ValidationError(f"{field} must be an integer")


def parse_money_to_cents(value: Any, field: str) -> int:
    """
    Parse a dollar amount ("12.50", 12.5, "12") into integer cents.

    At most two decimal places are accepted.
    """
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a number")
    if amount != amount.quantize(Decimal("0.01")):
        raise ValidationError(f"{field} must have at most two decimal places")
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def validate_voucher_amount(value: Any) -> int:
    cents = parse_money_to_cents(value, "voucher_amount")
    if cents < MIN_VOUCHER_CENTS or cents > MAX_VOUCHER_CENTS:
        raise ValidationError("Voucher amount must be between 0.01 and 99999.99")
    return cents


def validate_income_amount(value: Any) -> int:
    cents = parse_money_to_cents(value, "amount")
    if cents < 0 or cents > MAX_INCOME_CENTS:
        raise ValidationError("Income amount must be between 0 and 999999.99")
    return cents


def validate_person_name(value: Any, field: str = "name") -> str:
    name = clean_str(value)
    if len(name) < 2:
        raise ValidationError(f"{field} must be at least 2 characters")
    if len(name) > 255:
        raise ValidationError(f"{field} must be at most 255 characters")
    if NAME_FORBIDDEN & set(name):
        raise ValidationError(f"{field} contains invalid characters")
    return name


def validate_address(value: Any) -> str:
    address = clean_str(value)
    if len(address) < 5:
        raise ValidationError("address must be at least 5 characters")
    if len(address) > 255:
        raise ValidationError("address must be at most 255 characters")
    return address


def validate_city(value: Any) -> str:
    city = clean_str(value)
    if len(city) < 2:
        raise ValidationError("city must be at least 2 characters")
    if len(city) > 100:
        raise ValidationError("city must be at most 100 characters")
    return city


def validate_state(value: Any) -> str:
    state = clean_str(value).upper()
    if not STATE_RE.match(state):
        raise ValidationError("state must be a 2-letter code")
    return state


def validate_zip(value: Any) -> str:
    zip_code = clean_str(value)
    if not ZIP_RE.match(zip_code):
        raise ValidationError("zip_code must be 12345 or 12345-6789")
    return zip_code


def validate_phone_digits(local_number: str) -> None:
    if not (10 <= len(local_number) <= 15):
        raise ValidationError("phone must contain 10 to 15 digits")


def validate_birthdate(value: Any) -> date | None:
    if value is None or clean_str(value) == "":
        return None
    if isinstance(value, date):
        return value
    try:
        return parse_iso_date(str(value))
    except ValueError:
        raise ValidationError("birthdate must be YYYY-MM-DD")


def validate_username(value: Any) -> str:
    username = clean_str(value)
    if len(username) < 3 or len(username) > 100:
        raise ValidationError("Username must be 3 to 100 characters")
    if not USERNAME_RE.match(username):
        raise ValidationError("Username may only contain letters, numbers and underscores")
    return username


def validate_password(value: Any) -> str:
    password = value if isinstance(value, str) else ""
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    return password
