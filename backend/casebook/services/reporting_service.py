# Overview: Service-layer operations for reporting; summary counts, monthly trends and CSV export.

from __future__ import annotations

import csv
import io
from datetime import datetime, timedelta

from ..extensions import db
from ..models import Customer, Employee, Visit
from ..permissions import VisitType
from casebook.time_utils import local_now, subtract_months


MONEY_VISIT_CSV_HEADER = [
    "Visit Date",
    "Customer ID",
    "Customer Name",
    "Address",
    "City",
    "State",
    "Notes",
    "Created By",
]


def _valid_visits():
    return db.session.query(Visit).filter(Visit.is_invalid.is_(False))


def summary_stats(now: datetime | None = None) -> dict:
    """Total customers and valid visits in the last 7 and 30 days."""
    now = now or local_now()
    return {
        "total_customers": db.session.query(Customer).count(),
        "visits_last_7_days": _valid_visits().filter(Visit.visit_date >= now - timedelta(days=7)).count(),
        "visits_last_30_days": _valid_visits().filter(Visit.visit_date >= now - timedelta(days=30)).count(),
    }


def monthly_trends(now: datetime | None = None, months: int = 12) -> list[dict]:
    """
    Valid visits per YYYY-MM over the last `months` months, newest first.

    Months without visits are omitted.
    """
    now = now or local_now()
    since = subtract_months(now, months)

    rows = db.session.query(Visit.visit_date, Visit.visit_type).filter(
        Visit.is_invalid.is_(False),
        Visit.visit_date >= since,
    ).all()

    buckets: dict[str, dict] = {}
    for visit_date, visit_type in rows:
        month = visit_date.strftime("%Y-%m")
        bucket = buckets.setdefault(month, {"month": month, "total": 0, "food": 0, "money": 0, "voucher": 0})
        bucket["total"] += 1
        if visit_type == VisitType.FOOD.value:
            bucket["food"] += 1
        elif visit_type == VisitType.MONEY.value:
            bucket["money"] += 1
        elif visit_type == VisitType.VOUCHER.value:
            bucket["voucher"] += 1

    return [buckets[month] for month in sorted(buckets, reverse=True)]


def money_visit_rows() -> list[list[str]]:
    rows = db.session.query(
        Visit.visit_date,
        Customer.customer_number,
        Customer.name,
        Customer.address,
        Customer.city,
        Customer.state,
        Visit.notes,
        Employee.username,
    ).join(
        Customer, Visit.customer_id == Customer.id,
    ).outerjoin(
        Employee, Visit.created_by == Employee.id,
    ).filter(
        Visit.visit_type == VisitType.MONEY.value,
        Visit.is_invalid.is_(False),
    ).order_by(Visit.visit_date.desc(), Visit.id.desc()).all()

    return [
        [
            visit_date.strftime("%Y-%m-%d %H:%M:%S"),
            customer_number,
            name,
            address,
            city,
            state,
            notes or "",
            username or "N/A",
        ]
        for visit_date, customer_number, name, address, city, state, notes, username in rows
    ]


def export_money_visits_csv() -> str:
    """All valid Money visits as CSV text, newest first."""
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(MONEY_VISIT_CSV_HEADER)
    writer.writerows(money_visit_rows())
    return buffer.getvalue()
