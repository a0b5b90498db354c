# Overview: Service-layer operations for vouchers; lookup, status and exactly-once redemption.

"""
Voucher Service

STATES:
- active:   not redeemed, not past its expiration date
- expired:  not redeemed, expiration_date before today
- redeemed: terminal

Redemption is the only transition (active -> redeemed). It is a single
conditional UPDATE ... WHERE is_redeemed = false, so when two employees
redeem the same voucher at once exactly one succeeds; the other re-reads the
row and gets VoucherAlreadyRedeemedError with the original redemption time.
"""

from __future__ import annotations

from datetime import date

from flask import current_app
from sqlalchemy import or_

from ..extensions import db
from ..models import Voucher
from ..validation import NotFoundError, ValidationError, clean_str
from .concurrency import guarded_update, unit_of_work
from .permission_service import Principal
from casebook.time_utils import local_today, to_utc_z, utcnow


STATUS_ACTIVE = "active"
STATUS_EXPIRED = "expired"
STATUS_REDEEMED = "redeemed"

ACTIVE_LIST_LIMIT = 50


class VoucherNotFoundError(NotFoundError):
    """No voucher with that code or id."""


class VoucherAlreadyRedeemedError(Exception):
    def __init__(self, voucher: Voucher):
        self.voucher = voucher
        self.redeemed_at = voucher.redeemed_at
        super().__init__(f"Voucher {voucher.voucher_code} was already redeemed at {to_utc_z(voucher.redeemed_at)}")


class VoucherExpiredError(Exception):
    def __init__(self, voucher: Voucher):
        self.voucher = voucher
        self.expiration_date = voucher.expiration_date
        super().__init__(f"Voucher {voucher.voucher_code} expired on {voucher.expiration_date.isoformat()}")


def is_expired(voucher: Voucher, today: date | None = None) -> bool:
    if voucher.expiration_date is None:
        return False
    return voucher.expiration_date < (today or local_today())


def get_voucher_status(voucher: Voucher, today: date | None = None) -> str:
    if voucher.is_redeemed:
        return STATUS_REDEEMED
    if is_expired(voucher, today):
        return STATUS_EXPIRED
    return STATUS_ACTIVE


def normalize_code(code) -> str:
    return clean_str(code).upper()


def find_voucher(*, code=None, voucher_id=None) -> Voucher:
    query = db.session.query(Voucher)
    if voucher_id is not None:
        voucher = query.filter(Voucher.id == voucher_id).first()
    elif code:
        voucher = query.filter(Voucher.voucher_code == normalize_code(code)).first()
    else:
        raise ValidationError("A voucher code or id is required")

    if not voucher:
        raise VoucherNotFoundError("Voucher not found")
    return voucher


def voucher_details(voucher: Voucher, today: date | None = None) -> dict:
    payload = voucher.to_dict()
    payload["status"] = get_voucher_status(voucher, today)
    payload["customer"] = voucher.customer.to_summary_dict() if voucher.customer else None
    return payload


def check_voucher(code, today: date | None = None) -> dict:
    """Voucher details plus status; unknown codes raise VoucherNotFoundError."""
    return voucher_details(find_voucher(code=code), today)


def redeem_voucher(
    *,
    code=None,
    voucher_id=None,
    principal: Principal,
    today: date | None = None,
) -> Voucher:
    """
    Redeem a voucher by code or id.

    Raises:
        VoucherNotFoundError: unknown voucher
        VoucherAlreadyRedeemedError: redeemed before (carries redeemed_at)
        VoucherExpiredError: past its expiration date (carries expiration_date)
    """
    today = today or local_today()
    voucher = find_voucher(code=code, voucher_id=voucher_id)

    if voucher.is_redeemed:
        raise VoucherAlreadyRedeemedError(voucher)
    if is_expired(voucher, today):
        raise VoucherExpiredError(voucher)

    with unit_of_work():
        changed = guarded_update(
            Voucher,
            where=[
                Voucher.id == voucher.id,
                Voucher.is_redeemed.is_(False),
                or_(Voucher.expiration_date.is_(None), Voucher.expiration_date >= today),
            ],
            values={
                "is_redeemed": True,
                "redeemed_at": utcnow(),
                "redeemed_by": principal.employee_id,
            },
        )

    db.session.refresh(voucher)
    if changed == 0:
        if voucher.is_redeemed:
            raise VoucherAlreadyRedeemedError(voucher)
        raise VoucherExpiredError(voucher)

    current_app.logger.info(
        "Voucher %s redeemed by %s", voucher.voucher_code, principal.username,
    )
    return voucher


def list_active_vouchers(limit: int = ACTIVE_LIST_LIMIT, today: date | None = None) -> list[Voucher]:
    """Unredeemed, unexpired vouchers, newest first."""
    today = today or local_today()
    return db.session.query(Voucher).filter(
        Voucher.is_redeemed.is_(False),
        or_(Voucher.expiration_date.is_(None), Voucher.expiration_date >= today),
    ).order_by(Voucher.created_at.desc(), Voucher.id.desc()).limit(limit).all()
