"""
Voucher lifecycle tests.

Verifies:
- Voucher visits issue a V-XXXXXXXX voucher with the amount in cents
- Status: active, expired, redeemed (redeemed wins over expired)
- Redemption happens exactly once, including under concurrent attempts
"""

import threading
from datetime import date

import pytest

from casebook import create_app
from casebook.extensions import db
from casebook.models import Voucher
from casebook.permissions import VisitType
from casebook.services import visit_service, voucher_service
from casebook.services.permission_service import principal_for
from casebook.services.voucher_service import (
    VoucherAlreadyRedeemedError,
    VoucherExpiredError,
    VoucherNotFoundError,
)
from casebook.validation import ValidationError

from conftest import TEST_CONFIG, at, customer_payload, make_employee


def issue_voucher(principal, customer, amount_cents=2500, expiration_date=None, when="2024-02-01 10:00"):
    visit = visit_service.record_visit(
        principal,
        customer.id,
        VisitType.VOUCHER,
        at(when),
        voucher_amount=amount_cents,
        expiration_date=expiration_date,
    )
    return visit.voucher


class TestIssue:
    def test_voucher_visit_creates_voucher(self, customer, clerk_principal):
        voucher = issue_voucher(clerk_principal, customer, amount_cents=2550)

        assert voucher.voucher_code.startswith("V-")
        assert len(voucher.voucher_code) == 10
        assert voucher.amount_cents == 2550
        assert voucher.to_dict()["amount"] == "25.50"
        assert voucher.customer_id == customer.id
        assert voucher.created_by == clerk_principal.employee_id
        assert not voucher.is_redeemed

    def test_amount_required(self, customer, clerk_principal):
        with pytest.raises(ValidationError):
            visit_service.record_visit(clerk_principal, customer.id, VisitType.VOUCHER, at("2024-02-01 10:00"))
        assert db.session.query(Voucher).count() == 0

    def test_receipt_includes_voucher(self, customer, clerk_principal):
        voucher = issue_voucher(clerk_principal, customer)

        receipt = visit_service.get_visit_receipt(voucher.visit_id)
        assert receipt["voucher"]["voucher_code"] == voucher.voucher_code
        assert receipt["customer"]["customer_number"] == customer.customer_number
        assert receipt["visit"]["created_by_username"] == "clerk"


class TestStatus:
    def test_active_then_redeemed(self, customer, clerk_principal):
        voucher = issue_voucher(clerk_principal, customer)
        assert voucher_service.get_voucher_status(voucher) == "active"

        redeemed = voucher_service.redeem_voucher(code=voucher.voucher_code.lower(), principal=clerk_principal)

        assert redeemed.is_redeemed
        assert redeemed.redeemed_by == clerk_principal.employee_id
        assert redeemed.redeemed_at is not None
        assert voucher_service.get_voucher_status(redeemed) == "redeemed"

    def test_second_redemption_reports_original_time(self, customer, clerk_principal, caseworker_principal):
        voucher = issue_voucher(clerk_principal, customer)
        first = voucher_service.redeem_voucher(voucher_id=voucher.id, principal=clerk_principal)
        first_redeemed_at = first.redeemed_at

        with pytest.raises(VoucherAlreadyRedeemedError) as exc:
            voucher_service.redeem_voucher(voucher_id=voucher.id, principal=caseworker_principal)

        assert exc.value.redeemed_at == first_redeemed_at
        db.session.refresh(voucher)
        assert voucher.redeemed_by == clerk_principal.employee_id

    def test_expired_voucher_cannot_be_redeemed(self, customer, clerk_principal):
        voucher = issue_voucher(clerk_principal, customer, expiration_date=date(2024, 3, 1))

        assert voucher_service.get_voucher_status(voucher, today=date(2024, 3, 1)) == "active"
        assert voucher_service.get_voucher_status(voucher, today=date(2024, 3, 2)) == "expired"

        with pytest.raises(VoucherExpiredError) as exc:
            voucher_service.redeem_voucher(code=voucher.voucher_code, principal=clerk_principal, today=date(2024, 3, 2))
        assert exc.value.expiration_date == date(2024, 3, 1)
        db.session.refresh(voucher)
        assert not voucher.is_redeemed

    def test_redeemed_status_wins_over_expired(self, customer, clerk_principal):
        voucher = issue_voucher(clerk_principal, customer, expiration_date=date(2024, 3, 1))
        voucher_service.redeem_voucher(code=voucher.voucher_code, principal=clerk_principal, today=date(2024, 2, 20))

        assert voucher_service.get_voucher_status(voucher, today=date(2024, 6, 1)) == "redeemed"

    def test_unknown_code(self, db_session, clerk_principal):
        with pytest.raises(VoucherNotFoundError):
            voucher_service.redeem_voucher(code="V-00000000", principal=clerk_principal)

    def test_code_or_id_required(self, db_session, clerk_principal):
        with pytest.raises(ValidationError):
            voucher_service.redeem_voucher(principal=clerk_principal)


def test_active_list_excludes_redeemed_and_expired(customer, clerk_principal):
    keep_old = issue_voucher(clerk_principal, customer)
    redeemed = issue_voucher(clerk_principal, customer)
    issue_voucher(clerk_principal, customer, expiration_date=date(2024, 1, 31))
    keep_new = issue_voucher(clerk_principal, customer, expiration_date=date(2024, 12, 31))
    voucher_service.redeem_voucher(voucher_id=redeemed.id, principal=clerk_principal, today=date(2024, 6, 1))

    active = voucher_service.list_active_vouchers(today=date(2024, 6, 1))

    assert [v.id for v in active] == [keep_new.id, keep_old.id]
    assert [v.id for v in voucher_service.list_active_vouchers(limit=1, today=date(2024, 6, 1))] == [keep_new.id]


# =============================================================================
# CONCURRENT REDEMPTION
# =============================================================================


@pytest.fixture
def file_app(tmp_path):
    """Separate app on a file database so threads use real connections."""
    config = dict(TEST_CONFIG)
    config.update({
        "SQLALCHEMY_DATABASE_URI": f"sqlite:///{tmp_path / 'race.sqlite3'}",
        "SQLALCHEMY_ENGINE_OPTIONS": {"connect_args": {"timeout": 30, "check_same_thread": False}},
    })
    app = create_app(config)
    with app.app_context():
        db.create_all()
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def test_concurrent_redemption_succeeds_exactly_once(file_app):
    with file_app.app_context():
        employees = [make_employee(f"redeemer_{i}", ["voucher_creation"]) for i in range(8)]
        principals = [principal_for(e) for e in employees]
        from casebook.services import customer_service
        household = customer_service.create_customer(customer_payload(), principals[0])
        code = issue_voucher(principals[0], household).voucher_code

    barrier = threading.Barrier(len(principals))
    outcomes = []
    lock = threading.Lock()

    def attempt(principal):
        with file_app.app_context():
            barrier.wait()
            try:
                voucher_service.redeem_voucher(code=code, principal=principal)
                result = "redeemed"
            except VoucherAlreadyRedeemedError:
                result = "already_redeemed"
            finally:
                db.session.remove()
            with lock:
                outcomes.append(result)

    threads = [threading.Thread(target=attempt, args=(p,)) for p in principals]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=60)

    assert len(outcomes) == len(principals)
    assert outcomes.count("redeemed") == 1
    assert outcomes.count("already_redeemed") == len(principals) - 1

    with file_app.app_context():
        voucher = db.session.query(Voucher).filter_by(voucher_code=code).one()
        assert voucher.is_redeemed
