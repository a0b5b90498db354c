"""
Customer directory tests.

Verifies:
- Signup writes the customer as household member #1 ("Self")
- Duplicate detection on name, address, phone and member names, each match once
- Edits audit only the fields that actually changed
- Income totals, phone parsing and formatting, quick search
"""

import pytest

from casebook.extensions import db
from casebook.models import Customer, CustomerAudit, HouseholdMember
from casebook.services import customer_service
from casebook.services.customer_service import DuplicateCustomersFound
from casebook.validation import NotFoundError, ValidationError

from conftest import count_customers, customer_payload


# =============================================================================
# SIGNUP
# =============================================================================


class TestSignup:
    def test_customer_is_first_household_member(self, customer):
        members = customer.household_members
        assert members[0].name == "Maria Lopez"
        assert members[0].relationship == "Self"
        assert members[0].birthdate is None
        assert [m.name for m in members[1:]] == ["Ana Lopez"]

    def test_customer_number_format(self, customer):
        assert customer.customer_number.startswith("SVDP-")
        prefix, day, suffix = customer.customer_number.split("-")
        assert len(day) == 8 and day.isdigit()
        assert len(suffix) == 4 and suffix.isdigit()

    def test_phone_and_signup_date_stored(self, customer):
        assert customer.phone_country_code == "1"
        assert customer.phone_local_number == "2175550142"
        assert customer.signup_date.isoformat() == "2024-01-01T09:00:00"

    def test_blank_member_names_are_skipped(self, db_session, caseworker_principal):
        payload = customer_payload(
            name="Tom Baker",
            address="9 River Road",
            phone="312-555-0100",
            household_members=[{"name": "  "}, {"name": "Sue Baker", "relationship": "Spouse"}],
            household_income=[],
        )
        created = customer_service.create_customer(payload, caseworker_principal)
        assert [m.name for m in created.household_members] == ["Tom Baker", "Sue Baker"]

    def test_missing_fields_rejected_without_writing(self, db_session, caseworker_principal):
        payload = customer_payload()
        del payload["city"]
        payload["zip_code"] = ""

        with pytest.raises(ValidationError) as exc:
            customer_service.create_customer(payload, caseworker_principal)

        assert "city" in str(exc.value)
        assert "zip_code" in str(exc.value)
        assert count_customers() == 0

    @pytest.mark.parametrize(
        "overrides",
        [
            {"name": "J"},
            {"name": "<script>"},
            {"address": "1 A"},
            {"state": "Illinois"},
            {"zip_code": "6270"},
            {"phone": "555-0142"},
            {"phone": "+1234567890123456"},
            {"household_income": [{"income_type": "Lottery", "amount": "10"}]},
            {"household_income": [{"income_type": "Wages", "amount": "-5"}]},
            {"household_members": [{"name": "Al Lopez", "birthdate": "06/02/2015"}]},
        ],
    )
    def test_invalid_fields_rejected(self, db_session, caseworker_principal, overrides):
        with pytest.raises(ValidationError):
            customer_service.create_customer(customer_payload(**overrides), caseworker_principal)
        assert count_customers() == 0


# =============================================================================
# DUPLICATES
# =============================================================================


class TestDuplicateDetection:
    def test_signup_blocked_until_confirmed(self, customer, caseworker_principal):
        payload = customer_payload(address="200 Elm Street", phone="(217) 555-9999", household_members=[])

        with pytest.raises(DuplicateCustomersFound) as exc:
            customer_service.create_customer(payload, caseworker_principal)
        assert [c.id for c in exc.value.duplicates] == [customer.id]
        assert count_customers() == 1

        created = customer_service.create_customer(payload, caseworker_principal, confirm_no_duplicate=True)
        assert created.id != customer.id
        assert count_customers() == 2

    def test_name_match_is_case_insensitive_substring(self, customer):
        found = customer_service.find_duplicate_customers("maria", None, None)
        assert [c.id for c in found] == [customer.id]

    def test_address_match(self, customer):
        found = customer_service.find_duplicate_customers(None, "ORCHARD LANE", None)
        assert [c.id for c in found] == [customer.id]

    def test_phone_match_is_exact(self, customer):
        assert customer_service.find_duplicate_customers(None, None, "2175550142")
        assert customer_service.find_duplicate_customers(None, None, "555014") == []

    def test_member_name_match_appears_once(self, customer):
        found = customer_service.find_duplicate_customers(
            "Maria Lopez", "14 Orchard Lane", "2175550142", ["Ana Lopez", "Maria Lopez"]
        )
        assert [c.id for c in found] == [customer.id]

    def test_member_name_alone(self, customer):
        found = customer_service.find_duplicate_customers("Zed Quinn", "77 Far Away Blvd", "3125550000", ["Ana Lopez"])
        assert [c.id for c in found] == [customer.id]

    def test_no_candidates_match_nothing(self, customer):
        assert customer_service.find_duplicate_customers("", "  ", None, []) == []

    def test_like_wildcards_are_literal(self, customer):
        assert customer_service.find_duplicate_customers("%", None, None) == []


# =============================================================================
# EDIT AND AUDIT
# =============================================================================


class TestUpdateAudit:
    def test_only_changed_fields_are_audited(self, customer, caseworker_principal):
        updated, audits = customer_service.update_customer(
            customer.id,
            {"name": "Maria Lopez", "city": "Chicago", "phone": "217 555 0143", "subsidized_housing": False},
            caseworker_principal,
        )

        changes = {(a.field_name, a.old_value, a.new_value) for a in audits}
        assert changes == {
            ("city", "Springfield", "Chicago"),
            ("phone_local_number", "2175550142", "2175550143"),
            ("subsidized_housing", "1", "0"),
        }
        assert all(a.changed_by == caseworker_principal.employee_id for a in audits)
        assert updated.city == "Chicago"

    def test_no_change_writes_no_audit(self, customer, caseworker_principal):
        _, audits = customer_service.update_customer(customer.id, {"state": "il"}, caseworker_principal)

        assert audits == []
        assert db.session.query(CustomerAudit).count() == 0

    def test_invalid_edit_changes_nothing(self, customer, caseworker_principal):
        with pytest.raises(ValidationError):
            customer_service.update_customer(customer.id, {"city": "Chicago", "zip_code": "abc"}, caseworker_principal)

        db.session.expire_all()
        assert db.session.get(Customer, customer.id).city == "Springfield"
        assert db.session.query(CustomerAudit).count() == 0

    def test_unknown_customer(self, db_session, caseworker_principal):
        with pytest.raises(NotFoundError):
            customer_service.update_customer(999, {"city": "Chicago"}, caseworker_principal)

    def test_detail_lists_audit_newest_first(self, customer, caseworker_principal):
        customer_service.update_customer(customer.id, {"city": "Chicago"}, caseworker_principal)
        customer_service.update_customer(customer.id, {"city": "Peoria"}, caseworker_principal)

        detail = customer_service.get_customer_detail(customer.id)
        assert [a["new_value"] for a in detail["audit"]] == ["Peoria", "Chicago"]
        assert detail["audit"][0]["changed_by_username"] == "caseworker"


# =============================================================================
# READS
# =============================================================================


def test_total_household_income(customer):
    assert customer_service.total_household_income_cents(customer.id) == 150050

    detail = customer_service.get_customer_detail(customer.id)
    assert detail["total_income"] == "1500.50"
    assert detail["phone_display"] == "(217) 555-0142"
    assert len(detail["household_members"]) == 2


def test_search(customer):
    assert [c.id for c in customer_service.search_customers("lopez")] == [customer.id]
    assert [c.id for c in customer_service.search_customers("Ana")] == [customer.id]
    assert [c.id for c in customer_service.search_customers(customer.customer_number)] == [customer.id]
    assert customer_service.search_customers("L") == []


def test_self_member_name_follows_signup_name_only(customer):
    assert db.session.query(HouseholdMember).filter_by(customer_id=customer.id, relationship="Self").count() == 1


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("(555) 123-4567", ("1", "5551234567")),
        ("+44 20 7946 0958 12", ("4420", "7946095812")),
        ("555.123.4567", ("1", "5551234567")),
        ("", ("1", "")),
    ],
)
def test_parse_phone_number(raw, expected):
    assert customer_service.parse_phone_number(raw) == expected


@pytest.mark.parametrize(
    "country_code,local,expected",
    [
        ("1", "5551234567", "(555) 123-4567"),
        ("44", "2079460958", "44 2079460958"),
        ("1", "55512", "1 55512"),
    ],
)
def test_format_phone_number(country_code, local, expected):
    assert customer_service.format_phone_number(country_code, local) == expected
