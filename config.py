"""
Application configuration.
This module defines the configuration settings for the Flask application, including the storage backend,
database connection, secret key and client polling interval. It uses environment variables for sensitive
information and defaults for development. In production, make sure to set the appropriate environment
variables and secure the secret key.
"""

import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


class Config:
    """Base configuration shared by all environments."""

    # IMPORTANT: change this in production
    SECRET_KEY = os.environ.get("SECRET_KEY", "dev-change-me-please")

    # Storage backend: "sql" (relational) or "local" (JSON document)
    PRICING_BACKEND = os.environ.get("PRICING_BACKEND", "sql")

    # Database: SQLite for development (simple file in project folder)
    SQLALCHEMY_DATABASE_URI = os.environ.get(
        "DATABASE_URL",
        f"sqlite:///{BASE_DIR / 'pricedesk.db'}"
    )
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    # Local JSON store location (PRICING_BACKEND=local)
    LOCAL_STORE_PATH = os.environ.get("LOCAL_STORE_PATH", str(BASE_DIR / "pricedesk_store.json"))

    # Seed default coefficients/catalog/users on startup (idempotent)
    SEED_DEFAULTS = _env_bool("SEED_DEFAULTS", True)

    # Clients re-fetch their views on this interval
    POLL_INTERVAL_SECONDS = int(os.environ.get("POLL_INTERVAL_SECONDS", "5"))

    # CSRF protection for mutating requests (X-CSRFToken header)
    WTF_CSRF_ENABLED = _env_bool("WTF_CSRF_ENABLED", True)

    # App UI name
    APP_NAME = "PriceDesk"


class TestingConfig(Config):
    """In-memory database, no CSRF, no seed (tests seed explicitly)."""

    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    LOCAL_STORE_PATH = None
    SEED_DEFAULTS = False
    WTF_CSRF_ENABLED = False
    SECRET_KEY = "test-secret"
