# Overview: Service-layer operations for settings; typed access over a TTL-cached key/value store.

"""
Settings Service

Settings are plain key/value rows in the `settings` table. Reads go through a
SettingsCache owned by the Flask app (app.extensions["casebook.settings"]), so
eligibility checks do not hit the table on every visit.

CACHE SEMANTICS:
- Entries expire ttl_seconds after they were loaded (default 300)
- set() writes through to the store and drops the cached entry
- Other processes may serve stale values for up to one TTL
- The clock is injected so expiry can be tested without sleeping
"""

from __future__ import annotations

import time
from dataclasses import dataclass, asdict
from typing import Any, Callable

import sqlalchemy as sa
from flask import current_app

from ..extensions import db
from ..models import Setting
from ..validation import ValidationError, clean_str, parse_int


EXTENSION_KEY = "casebook.settings"

# Visit limit keys and their defaults
FOOD_VISITS_PER_MONTH = "food_visits_per_month"
FOOD_VISITS_PER_YEAR = "food_visits_per_year"
FOOD_MIN_DAYS_BETWEEN = "food_min_days_between"
MONEY_MAX_LIFETIME_VISITS = "money_max_lifetime_visits"
MONEY_COOLDOWN_YEARS = "money_cooldown_years"

# Appearance keys
COMPANY_NAME = "company_name"
PARTNER_STORE_NAME = "partner_store_name"

VISIT_LIMIT_DEFAULTS = {
    FOOD_VISITS_PER_MONTH: 2,
    FOOD_VISITS_PER_YEAR: 12,
    FOOD_MIN_DAYS_BETWEEN: 14,
    MONEY_MAX_LIFETIME_VISITS: 3,
    MONEY_COOLDOWN_YEARS: 1,
}

# Inclusive (min, max) accepted by update_visit_limits
VISIT_LIMIT_RANGES = {
    FOOD_VISITS_PER_MONTH: (1, 100),
    FOOD_VISITS_PER_YEAR: (1, 1000),
    FOOD_MIN_DAYS_BETWEEN: (1, 365),
    MONEY_MAX_LIFETIME_VISITS: (1, 100),
    MONEY_COOLDOWN_YEARS: (0, 10),
}

MAX_APPEARANCE_LENGTH = 255

_MISSING = object()


class SettingsStore:
    """Backing store interface: load returns None for an unknown key."""

    def load(self, key: str) -> str | None:
        raise NotImplementedError

    def save(self, key: str, value: str) -> None:
        raise NotImplementedError


class DatabaseSettingsStore(SettingsStore):
    """The `settings` table, upserting by setting_key."""

    def load(self, key: str) -> str | None:
        row = db.session.query(Setting).filter_by(setting_key=key).first()
        return row.setting_value if row else None

    def save(self, key: str, value: str) -> None:
        row = db.session.query(Setting).filter_by(setting_key=key).first()
        if row is None:
            db.session.add(Setting(setting_key=key, setting_value=value))
        else:
            row.setting_value = value
            row.updated_at = sa.func.now()
        db.session.flush()


class SettingsCache:
    """
    Read-through cache over a SettingsStore.

    Values are cached as the raw strings the store returns. Keys the store
    does not know are cached as misses too, so get() falls back to the
    caller's default without a store round trip.
    """

    def __init__(
        self,
        store: SettingsStore,
        clock: Callable[[], float] = time.monotonic,
        ttl_seconds: float = 300,
    ):
        self.store = store
        self.clock = clock
        self.ttl_seconds = ttl_seconds
        self._entries: dict[str, tuple[Any, float]] = {}

    def get(self, key: str, default: Any = None) -> Any:
        now = self.clock()
        entry = self._entries.get(key)
        if entry is not None and now - entry[1] < self.ttl_seconds:
            value = entry[0]
        else:
            loaded = self.store.load(key)
            value = _MISSING if loaded is None else loaded
            self._entries[key] = (value, now)
        return default if value is _MISSING else value

    def set(self, key: str, value: Any) -> None:
        self.store.save(key, str(value))
        self._entries.pop(key, None)

    def invalidate(self, key: str | None = None) -> None:
        if key is None:
            self._entries.clear()
        else:
            self._entries.pop(key, None)


@dataclass(frozen=True)
class VisitLimits:
    food_visits_per_month: int = 2
    food_visits_per_year: int = 12
    food_min_days_between: int = 14
    money_max_lifetime_visits: int = 3
    money_cooldown_years: int = 1

    def to_dict(self) -> dict:
        return asdict(self)


def init_app(app) -> SettingsCache:
    cache = SettingsCache(
        DatabaseSettingsStore(),
        ttl_seconds=app.config.get("SETTINGS_CACHE_TTL_SECONDS", 300),
    )
    app.extensions[EXTENSION_KEY] = cache
    return cache


def get_settings() -> SettingsCache:
    """The cache belonging to the current Flask app."""
    return current_app.extensions[EXTENSION_KEY]


def _int_setting(settings: SettingsCache, key: str) -> int:
    default = VISIT_LIMIT_DEFAULTS[key]
    raw = settings.get(key, default)
    try:
        return int(float(raw))
    except (TypeError, ValueError, OverflowError):
        current_app.logger.warning("Setting %s has non-numeric value %r, using %s", key, raw, default)
        return default


def get_visit_limits(settings: SettingsCache | None = None) -> VisitLimits:
    settings = settings or get_settings()
    return VisitLimits(**{key: _int_setting(settings, key) for key in VISIT_LIMIT_DEFAULTS})


def validate_visit_limits(values: dict) -> dict[str, int]:
    """
    Validate all five visit limit values.

    Returns the typed values. Raises ValidationError naming every bad field.
    """
    if not isinstance(values, dict):
        raise ValidationError("Invalid JSON payload")

    cleaned: dict[str, int] = {}
    errors: list[str] = []
    for key, (low, high) in VISIT_LIMIT_RANGES.items():
        if key not in values:
            errors.append(f"{key} is required")
            continue
        try:
            value = parse_int(values[key], key)
        except ValidationError as e:
            errors.append(str(e))
            continue
        if value < low or value > high:
            errors.append(f"{key} must be between {low} and {high}")
            continue
        cleaned[key] = value

    if errors:
        raise ValidationError("; ".join(errors))
    return cleaned


def update_visit_limits(settings: SettingsCache, values: dict) -> VisitLimits:
    """Validate then write all five limits in one transaction."""
    cleaned = validate_visit_limits(values)
    try:
        for key, value in cleaned.items():
            settings.set(key, value)
        db.session.commit()
    except Exception:
        db.session.rollback()
        settings.invalidate()
        raise
    return get_visit_limits(settings)


def get_appearance(settings: SettingsCache | None = None) -> dict:
    settings = settings or get_settings()
    return {
        COMPANY_NAME: settings.get(COMPANY_NAME, current_app.config.get("COMPANY_NAME")),
        PARTNER_STORE_NAME: settings.get(PARTNER_STORE_NAME, current_app.config.get("PARTNER_STORE_NAME")),
    }


def update_appearance(settings: SettingsCache, company_name: Any, partner_store_name: Any) -> dict:
    company = clean_str(company_name)
    partner = clean_str(partner_store_name)
    if not company or not partner:
        raise ValidationError("company_name and partner_store_name are required")
    if len(company) > MAX_APPEARANCE_LENGTH or len(partner) > MAX_APPEARANCE_LENGTH:
        raise ValidationError(f"Names must be at most {MAX_APPEARANCE_LENGTH} characters")

    try:
        settings.set(COMPANY_NAME, company)
        settings.set(PARTNER_STORE_NAME, partner)
        db.session.commit()
    except Exception:
        db.session.rollback()
        settings.invalidate()
        raise
    return get_appearance(settings)


def seed_default_settings(settings: SettingsCache) -> int:
    """Write defaults for any visit limit key that has no row yet."""
    added = 0
    for key, default in VISIT_LIMIT_DEFAULTS.items():
        if settings.store.load(key) is None:
            settings.set(key, default)
            added += 1
    db.session.commit()
    return added
