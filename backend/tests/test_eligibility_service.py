"""
Eligibility rule tests.

Verifies:
- Food monthly, yearly and minimum-gap limits (including the January scenario)
- Money lifetime limit and cooldown boundaries
- Invalidated visits never count
- Voucher visits are never limited
- The checks are read-only
"""

import pytest

from casebook.extensions import db
from casebook.models import Visit
from casebook.permissions import VisitType
from casebook.services import eligibility_service, visit_service
from casebook.services.eligibility_service import check_visit_eligibility
from casebook.services.settings_service import VisitLimits
from casebook.services.visit_service import VisitRequiresOverride

from conftest import at


def add_visit(customer, visit_type, when, is_invalid=False):
    visit = Visit(
        customer_id=customer.id,
        visit_type=visit_type.value,
        visit_date=at(when),
        is_invalid=is_invalid,
    )
    db.session.add(visit)
    db.session.commit()
    return visit


# =============================================================================
# FOOD
# =============================================================================


class TestFoodLimits:
    def test_first_visit_is_eligible(self, customer):
        result = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-01-05 10:00"))
        assert result.valid
        assert result.violations == []

    def test_january_scenario(self, customer, caseworker_principal):
        first = visit_service.record_visit(caseworker_principal, customer.id, VisitType.FOOD, at("2024-01-05 10:00"))
        assert first.id

        second_check = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-01-10 10:00"))
        assert not any(v.startswith("Monthly limit") for v in second_check.violations)

        with pytest.raises(VisitRequiresOverride):
            visit_service.record_visit(caseworker_principal, customer.id, VisitType.FOOD, at("2024-01-10 10:00"))
        visit_service.record_visit(
            caseworker_principal, customer.id, VisitType.FOOD, at("2024-01-10 10:00"), confirm_override=True
        )

        third = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-01-15 10:00"))
        assert not third.valid
        assert third.violations == [
            "Monthly limit reached (2 visits per month)",
            "Minimum 14 days between visits required (last visit was 5 days ago)",
        ]

    def test_monthly_limit_only_counts_same_calendar_month(self, customer):
        add_visit(customer, VisitType.FOOD, "2024-01-02 09:00")
        add_visit(customer, VisitType.FOOD, "2024-01-20 09:00")

        result = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-02-10 09:00"))
        assert result.valid

    def test_yearly_limit(self, customer):
        for month in range(1, 13):
            add_visit(customer, VisitType.FOOD, f"2023-{month:02d}-01 09:00")

        limits = VisitLimits(food_visits_per_year=12)
        result = eligibility_service.check_food_visit_limits(customer.id, at("2023-12-28 09:00"), limits)
        assert "Yearly limit reached (12 visits per year)" in result.violations

        next_year = eligibility_service.check_food_visit_limits(customer.id, at("2024-01-20 09:00"), limits)
        assert next_year.valid

    def test_gap_counts_whole_elapsed_days(self, customer):
        add_visit(customer, VisitType.FOOD, "2024-03-01 23:30")
        limits = VisitLimits(food_min_days_between=14)

        result = eligibility_service.check_food_visit_limits(customer.id, at("2024-03-15 00:15"), limits)
        assert result.violations == [
            "Minimum 14 days between visits required (last visit was 13 days ago)"
        ]

        result = eligibility_service.check_food_visit_limits(customer.id, at("2024-03-15 23:30"), limits)
        assert result.valid

    def test_gap_ignores_later_visits(self, customer):
        add_visit(customer, VisitType.FOOD, "2024-05-20 10:00")

        result = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-04-01 10:00"))
        assert not any(v.startswith("Minimum") for v in result.violations)

    def test_invalidated_visits_do_not_count(self, customer):
        add_visit(customer, VisitType.FOOD, "2024-01-03 10:00", is_invalid=True)
        add_visit(customer, VisitType.FOOD, "2024-01-04 10:00", is_invalid=True)

        result = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-01-05 10:00"))
        assert result.valid

    def test_invalidating_a_visit_frees_the_monthly_slot(self, customer, caseworker_principal):
        visit_service.record_visit(caseworker_principal, customer.id, VisitType.FOOD, at("2024-01-02 10:00"))
        second = visit_service.record_visit(
            caseworker_principal, customer.id, VisitType.FOOD, at("2024-01-20 10:00"), confirm_override=True
        )
        limits = VisitLimits(food_min_days_between=1)

        at_limit = eligibility_service.check_food_visit_limits(customer.id, at("2024-01-25 10:00"), limits)
        assert at_limit.violations == ["Monthly limit reached (2 visits per month)"]

        visit_service.invalidate_visit(second.id, "Recorded twice", caseworker_principal)

        freed = eligibility_service.check_food_visit_limits(customer.id, at("2024-01-25 10:00"), limits)
        assert freed.valid

    def test_other_visit_types_do_not_count(self, customer):
        add_visit(customer, VisitType.MONEY, "2024-01-03 10:00")
        add_visit(customer, VisitType.VOUCHER, "2024-01-04 10:00")

        result = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-01-05 10:00"))
        assert result.valid


# =============================================================================
# MONEY
# =============================================================================


class TestMoneyLimits:
    def test_cooldown_boundary(self, customer):
        add_visit(customer, VisitType.MONEY, "2023-06-15 16:00")
        limits = VisitLimits(money_cooldown_years=1)

        on_anniversary = eligibility_service.check_money_visit_limits(customer.id, at("2024-06-15 09:00"), limits)
        assert on_anniversary.valid

        day_before = eligibility_service.check_money_visit_limits(customer.id, at("2024-06-14 18:00"), limits)
        assert day_before.violations == ["Cooldown period not met (1 year(s) required between visits)"]

    def test_cooldown_window_start(self):
        assert eligibility_service.cooldown_window_start(at("2024-06-15 09:00"), 1) == at("2023-06-16 00:00")
        assert eligibility_service.cooldown_window_start(at("2024-02-29 09:00"), 1) == at("2023-03-01 00:00")

    def test_zero_cooldown_covers_only_the_proposed_day(self, customer):
        add_visit(customer, VisitType.MONEY, "2024-06-14 09:00")
        limits = VisitLimits(money_cooldown_years=0)

        next_day = eligibility_service.check_money_visit_limits(customer.id, at("2024-06-15 09:00"), limits)
        assert next_day.valid

        add_visit(customer, VisitType.MONEY, "2024-06-15 08:00")
        same_day = eligibility_service.check_money_visit_limits(customer.id, at("2024-06-15 09:00"), limits)
        assert same_day.violations == ["Cooldown period not met (0 year(s) required between visits)"]
        assert eligibility_service.cooldown_window_start(at("2024-06-15 09:00"), 0) == at("2024-06-15 00:00")

    def test_lifetime_limit(self, customer):
        for year in (2015, 2017, 2019):
            add_visit(customer, VisitType.MONEY, f"{year}-01-10 10:00")

        result = check_visit_eligibility(customer.id, VisitType.MONEY, at("2024-01-10 10:00"))
        assert result.violations == ["Lifetime limit reached (3 visits)"]

    def test_lifetime_and_cooldown_both_reported(self, customer):
        for when in ("2020-01-10 10:00", "2022-01-10 10:00", "2023-12-01 10:00"):
            add_visit(customer, VisitType.MONEY, when)

        result = check_visit_eligibility(customer.id, VisitType.MONEY, at("2024-01-10 10:00"))
        assert result.violations == [
            "Lifetime limit reached (3 visits)",
            "Cooldown period not met (1 year(s) required between visits)",
        ]

    def test_invalidated_money_visit_ignored(self, customer):
        add_visit(customer, VisitType.MONEY, "2024-01-02 10:00", is_invalid=True)

        result = check_visit_eligibility(customer.id, VisitType.MONEY, at("2024-01-10 10:00"))
        assert result.valid


# =============================================================================
# VOUCHER AND SIDE EFFECTS
# =============================================================================


def test_voucher_visits_are_never_limited(customer):
    for day in range(1, 10):
        add_visit(customer, VisitType.VOUCHER, f"2024-01-0{day} 10:00")

    result = check_visit_eligibility(customer.id, "Voucher", at("2024-01-10 10:00"))
    assert result.valid


def test_checks_do_not_write(customer):
    add_visit(customer, VisitType.FOOD, "2024-01-05 10:00")
    before = db.session.query(Visit).count()

    check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-01-06 10:00"))
    check_visit_eligibility(customer.id, VisitType.MONEY, at("2024-01-06 10:00"))

    assert db.session.query(Visit).count() == before


def test_limits_follow_settings(app, customer):
    from casebook.services import settings_service

    add_visit(customer, VisitType.FOOD, "2024-01-05 10:00")
    settings = settings_service.get_settings()
    values = VisitLimits().to_dict()
    values["food_visits_per_month"] = 1
    values["food_min_days_between"] = 1
    settings_service.update_visit_limits(settings, values)

    result = check_visit_eligibility(customer.id, VisitType.FOOD, at("2024-01-20 10:00"))
    assert result.violations == ["Monthly limit reached (1 visits per month)"]
