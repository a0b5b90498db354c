"""Customer number and voucher code generation."""

import re
from datetime import date, timedelta

from casebook.services import identifier_service


CUSTOMER_NUMBER_RE = re.compile(r"^SVDP-\d{8}-\d{4}$")
VOUCHER_CODE_RE = re.compile(r"^V-[0-9A-F]{8}$")


def test_customer_numbers_unique_over_ten_thousand(app):
    seen = set()
    start = date(2024, 1, 1)

    for offset in range(100):
        day = start + timedelta(days=offset)
        for _ in range(100):
            number = identifier_service.generate_customer_number(
                today=day, exists=seen.__contains__, prefix="SVDP"
            )
            assert CUSTOMER_NUMBER_RE.match(number), number
            assert number[5:13] == day.strftime("%Y%m%d")
            seen.add(number)

    assert len(seen) == 10_000


def test_voucher_codes_unique_over_ten_thousand(app):
    seen = set()

    for _ in range(10_000):
        code = identifier_service.generate_voucher_code(exists=seen.__contains__)
        assert VOUCHER_CODE_RE.match(code), code
        seen.add(code)

    assert len(seen) == 10_000


def test_customer_number_uses_configured_prefix(app):
    number = identifier_service.generate_customer_number(today=date(2024, 3, 9), exists=lambda c: False)
    assert number.startswith("SVDP-20240309-")


def test_customer_number_fallback_when_exhausted(app):
    number = identifier_service.generate_customer_number(
        today=date(2024, 3, 9), exists=lambda c: True, prefix="SVDP"
    )
    assert re.match(r"^SVDP-20240309-\d+-\d{3}$", number)


def test_voucher_code_fallback_when_exhausted(app):
    code = identifier_service.generate_voucher_code(exists=lambda c: True)
    assert re.match(r"^V-[0-9A-F]{8}-\d{4}$", code)


def test_existing_rows_are_avoided(customer):
    taken = customer.customer_number
    assert identifier_service.customer_number_exists(taken)
    assert not identifier_service.customer_number_exists("SVDP-19990101-0000")
    assert not identifier_service.voucher_code_exists("V-00000000")
