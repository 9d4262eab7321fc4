# backend/venue_orders/config.py
from __future__ import annotations
import os


class Config:
    # Optional "SECRET_KEY", with default dev key
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-secret-key-change-me")

    # SQLite DB stored in backend/instance/venue_orders.sqlite3
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL", #optional alternative location
        "sqlite:///venue_orders.sqlite3", #default local location
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Pricing rates in basis points (1000 = 10%). Tax is charged on subtotal + service charge.
    SERVICE_CHARGE_RATE_BPS = int(os.environ.get("SERVICE_CHARGE_RATE_BPS", "1000"))
    TAX_RATE_BPS = int(os.environ.get("TAX_RATE_BPS", "1200"))

    # Lock contention handling for status transitions
    LOCK_RETRY_ATTEMPTS = int(os.environ.get("LOCK_RETRY_ATTEMPTS", "3"))
    LOCK_RETRY_BACKOFF = float(os.environ.get("LOCK_RETRY_BACKOFF", "0.1"))

    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")
