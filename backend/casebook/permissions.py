"""
Closed enumerations shared by models, services and routes.

Enumerations travel over the API and live in the database as their exact
literal strings ("Food", "SS/SSD/SSI", "money_visit_entry"). Anything outside
these sets is rejected at the boundary, never stored.
"""

from __future__ import annotations

from enum import Enum


class VisitType(str, Enum):
    FOOD = "Food"
    MONEY = "Money"
    VOUCHER = "Voucher"


class IncomeType(str, Enum):
    CHILD_SUPPORT = "Child Support"
    PENSION = "Pension"
    WAGES = "Wages"
    SS_SSD_SSI = "SS/SSD/SSI"
    UNEMPLOYMENT = "Unemployment"
    FOOD_STAMPS = "Food Stamps"
    OTHER = "Other"


class Permission(str, Enum):
    CUSTOMER_CREATION = "customer_creation"
    FOOD_VISIT_ENTRY = "food_visit_entry"
    MONEY_VISIT_ENTRY = "money_visit_entry"
    VOUCHER_CREATION = "voucher_creation"
    SETTINGS_ACCESS = "settings_access"
    REPORT_ACCESS = "report_access"


# Each permission is defined as: (code, name, description)
PERMISSION_DEFINITIONS = [
    (
        Permission.CUSTOMER_CREATION,
        "Customer Creation",
        "Register new customers and edit existing customer records",
    ),
    (
        Permission.FOOD_VISIT_ENTRY,
        "Food Visit Entry",
        "Record Food visits",
    ),
    (
        Permission.MONEY_VISIT_ENTRY,
        "Money Visit Entry",
        "Record Money visits",
    ),
    (
        Permission.VOUCHER_CREATION,
        "Voucher Creation",
        "Record Voucher visits and issue vouchers",
    ),
    (
        Permission.SETTINGS_ACCESS,
        "Settings Access",
        "View visit limit settings",
    ),
    (
        Permission.REPORT_ACCESS,
        "Report Access",
        "View reports and export visit data",
    ),
]

# Permission required to record (or dry-run check) each visit type
VISIT_TYPE_PERMISSIONS = {
    VisitType.FOOD: Permission.FOOD_VISIT_ENTRY,
    VisitType.MONEY: Permission.MONEY_VISIT_ENTRY,
    VisitType.VOUCHER: Permission.VOUCHER_CREATION,
}


def get_all_permission_codes() -> list[str]:
    return [p.value for p in Permission]


def validate_permission_code(code) -> bool:
    if isinstance(code, Permission):
        return True
    return isinstance(code, str) and code in Permission._value2member_map_


def parse_visit_type(value) -> VisitType | None:
    """Exact literal match; "food" or " Food" are not visit types."""
    if isinstance(value, VisitType):
        return value
    if not isinstance(value, str):
        return None
    return VisitType._value2member_map_.get(value)


def parse_income_type(value) -> IncomeType | None:
    if isinstance(value, IncomeType):
        return value
    if not isinstance(value, str):
        return None
    return IncomeType._value2member_map_.get(value)
