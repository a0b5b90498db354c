# Overview: Service-layer generators for customer numbers and voucher codes.

"""
Identifier Service

Customer numbers: PREFIX-YYYYMMDD-#### (4-digit zero padded random suffix)
Voucher codes:    V-XXXXXXXX (8 uppercase hex characters)

Both generators check a candidate against existing rows and retry on
collision (100 attempts for customer numbers, 50 for voucher codes). When
every attempt collides they append a timestamp-derived suffix and return
that, so they always return a value.

The existence check is best-effort: two requests can still pick the same
value between check and insert. The unique constraints on
customers.customer_number and vouchers.voucher_code are the real guard; an
IntegrityError on insert fails that creation.
"""

from __future__ import annotations

import secrets
import time
from datetime import date
from typing import Callable

from flask import current_app

from ..extensions import db
from ..models import Customer, Voucher
from casebook.time_utils import local_today


CUSTOMER_NUMBER_ATTEMPTS = 100
VOUCHER_CODE_ATTEMPTS = 50

VOUCHER_PREFIX = "V-"


def customer_number_exists(candidate: str) -> bool:
    return db.session.query(
        db.session.query(Customer.id).filter(Customer.customer_number == candidate).exists()
    ).scalar()


def voucher_code_exists(candidate: str) -> bool:
    return db.session.query(
        db.session.query(Voucher.id).filter(Voucher.voucher_code == candidate).exists()
    ).scalar()


def generate_customer_number(
    *,
    today: date | None = None,
    exists: Callable[[str], bool] | None = None,
    prefix: str | None = None,
) -> str:
    if today is None:
        today = local_today()
    if exists is None:
        exists = customer_number_exists
    if prefix is None:
        prefix = current_app.config.get("CUSTOMER_ID_PREFIX", "SVDP")

    base = f"{prefix}-{today.strftime('%Y%m%d')}"
    for _ in range(CUSTOMER_NUMBER_ATTEMPTS):
        candidate = f"{base}-{secrets.randbelow(10000):04d}"
        if not exists(candidate):
            return candidate

    fallback = f"{base}-{int(time.time())}-{100 + secrets.randbelow(900)}"
    current_app.logger.warning(
        "Customer number space exhausted for %s after %d attempts, using %s",
        base, CUSTOMER_NUMBER_ATTEMPTS, fallback,
    )
    return fallback


def generate_voucher_code(*, exists: Callable[[str], bool] | None = None) -> str:
    if exists is None:
        exists = voucher_code_exists

    for _ in range(VOUCHER_CODE_ATTEMPTS):
        candidate = VOUCHER_PREFIX + secrets.token_hex(4).upper()
        if not exists(candidate):
            return candidate

    fallback = f"{VOUCHER_PREFIX}{secrets.token_hex(4).upper()}-{str(int(time.time()))[-4:]}"
    current_app.logger.warning(
        "Voucher code collided %d times, using %s", VOUCHER_CODE_ATTEMPTS, fallback,
    )
    return fallback
