# Overview: Service-layer eligibility rules for proposed visits; read-only, returns violations.

"""
Eligibility Service

Decides whether a proposed visit is within the configured frequency limits.
Nothing here writes: the caller decides what to do with the violations
(record anyway with an override, or stop).

FOOD (all counts exclude invalidated visits):
- month count: Food visits dated inside the proposed visit's calendar month
- year count: Food visits dated inside its calendar year
- last visit: the latest Food visit strictly before the proposed time;
  the gap is counted in calendar days

MONEY (invalidated visits excluded):
- lifetime count of Money visits
- cooldown: any Money visit on or after the day following the anniversary
  (proposed date minus N years). A visit exactly N years earlier is clear.

VOUCHER visits have no frequency limits.

Violations are appended independently, in the order the checks are listed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from sqlalchemy import func

from ..extensions import db
from ..models import Visit
from ..permissions import VisitType
from .settings_service import SettingsCache, VisitLimits, get_visit_limits
from casebook.time_utils import (
    days_between,
    month_bounds,
    next_day,
    start_of_day,
    subtract_years,
    year_bounds,
)


@dataclass
class EligibilityResult:
    valid: bool = True
    violations: list[str] = field(default_factory=list)

    def add(self, message: str) -> None:
        self.violations.append(message)
        self.valid = False

    def to_dict(self) -> dict:
        return {"valid": self.valid, "violations": list(self.violations)}


def _limits(settings: SettingsCache | VisitLimits | None) -> VisitLimits:
    if isinstance(settings, VisitLimits):
        return settings
    return get_visit_limits(settings)


def _valid_visits(customer_id: int, visit_type: VisitType):
    return db.session.query(Visit).filter(
        Visit.customer_id == customer_id,
        Visit.visit_type == visit_type.value,
        Visit.is_invalid.is_(False),
    )


def _count_between(customer_id: int, visit_type: VisitType, start: datetime, end: datetime) -> int:
    return _valid_visits(customer_id, visit_type).filter(
        Visit.visit_date >= start,
        Visit.visit_date <= end,
    ).count()


def last_visit_before(customer_id: int, visit_type: VisitType, visit_at: datetime) -> datetime | None:
    return db.session.query(func.max(Visit.visit_date)).filter(
        Visit.customer_id == customer_id,
        Visit.visit_type == visit_type.value,
        Visit.is_invalid.is_(False),
        Visit.visit_date < visit_at,
    ).scalar()


def check_food_visit_limits(
    customer_id: int,
    visit_at: datetime,
    settings: SettingsCache | VisitLimits | None = None,
) -> EligibilityResult:
    limits = _limits(settings)
    result = EligibilityResult()

    month_count = _count_between(customer_id, VisitType.FOOD, *month_bounds(visit_at))
    year_count = _count_between(customer_id, VisitType.FOOD, *year_bounds(visit_at))
    last_visit = last_visit_before(customer_id, VisitType.FOOD, visit_at)

    if month_count >= limits.food_visits_per_month:
        result.add(f"Monthly limit reached ({limits.food_visits_per_month} visits per month)")

    if year_count >= limits.food_visits_per_year:
        result.add(f"Yearly limit reached ({limits.food_visits_per_year} visits per year)")

    if last_visit is not None:
        days_since = days_between(last_visit, visit_at)
        if days_since < limits.food_min_days_between:
            result.add(
                f"Minimum {limits.food_min_days_between} days between visits required "
                f"(last visit was {days_since} days ago)"
            )

    return result


def cooldown_window_start(visit_at: datetime, years: int) -> datetime:
    """
    First moment that still falls inside the Money cooldown window.

    With zero years the window is the proposed day itself.
    """
    if years <= 0:
        return start_of_day(visit_at.date())
    anniversary = subtract_years(visit_at.date(), years)
    return start_of_day(next_day(anniversary))


def check_money_visit_limits(
    customer_id: int,
    visit_at: datetime,
    settings: SettingsCache | VisitLimits | None = None,
) -> EligibilityResult:
    limits = _limits(settings)
    result = EligibilityResult()

    lifetime_count = _valid_visits(customer_id, VisitType.MONEY).count()

    recent_count = _valid_visits(customer_id, VisitType.MONEY).filter(
        Visit.visit_date >= cooldown_window_start(visit_at, limits.money_cooldown_years),
    ).count()

    if lifetime_count >= limits.money_max_lifetime_visits:
        result.add(f"Lifetime limit reached ({limits.money_max_lifetime_visits} visits)")

    if recent_count > 0:
        result.add(
            f"Cooldown period not met ({limits.money_cooldown_years} year(s) required between visits)"
        )

    return result


def check_visit_eligibility(
    customer_id: int,
    visit_type: VisitType | str,
    visit_at: datetime,
    settings: SettingsCache | VisitLimits | None = None,
) -> EligibilityResult:
    """Dispatch on visit type; Voucher visits are always eligible."""
    visit_type = VisitType(visit_type)
    if visit_type is VisitType.FOOD:
        return check_food_visit_limits(customer_id, visit_at, settings)
    if visit_type is VisitType.MONEY:
        return check_money_visit_limits(customer_id, visit_at, settings)
    return EligibilityResult()
