# backend/casebook/config.py
from __future__ import annotations
import os


def _split_csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/casebook.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///casebook.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Usernames granted every permission regardless of employee_permissions rows.
    ADMIN_ACCOUNTS = _split_csv(os.environ.get("ADMIN_ACCOUNTS", "admin"))

    COMPANY_NAME = os.environ.get("COMPANY_NAME", "St. Vincent de Paul")
    PARTNER_STORE_NAME = os.environ.get("PARTNER_STORE_NAME", "Partner Store")

    # Customer numbers look like SVDP-20240105-0042
    CUSTOMER_ID_PREFIX = os.environ.get("CUSTOMER_ID_PREFIX", "SVDP")

    SETTINGS_CACHE_TTL_SECONDS = int(os.environ.get("SETTINGS_CACHE_TTL_SECONDS", "300"))

    # Visit and signup timestamps are stored as naive wall-clock time in this zone.
    APP_TIMEZONE = os.environ.get("APP_TIMEZONE", "America/New_York")

    # bcrypt cost factor for employee passwords
    BCRYPT_ROUNDS = int(os.environ.get("BCRYPT_ROUNDS", "12"))

    # Comma separated origins allowed to call the API from a browser
    CORS_ORIGINS = _split_csv(os.environ.get("CORS_ORIGINS", "http://localhost:5173,http://127.0.0.1:5173"))
