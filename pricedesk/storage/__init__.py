"""
Storage backends.

build_store() picks the backend named by PRICING_BACKEND:
- "sql"   -> SqlStore (Flask-SQLAlchemy, SQLALCHEMY_DATABASE_URI)
- "local" -> LocalStore (JSON document at LOCAL_STORE_PATH)
"""

from __future__ import annotations

from typing import Any, Mapping

from .base import PricingStore
from .local import LocalStore
from .sql import SqlStore

BACKENDS = ("sql", "local")


def build_store(config: Mapping[str, Any]) -> PricingStore:
    """Construct the configured backend (no data is loaded or seeded here)."""
    backend = (config.get("PRICING_BACKEND") or "sql").strip().lower()
    if backend == "local":
        return LocalStore(config.get("LOCAL_STORE_PATH"))
    if backend == "sql":
        return SqlStore()
    raise ValueError(f"Unknown PRICING_BACKEND {backend!r}; expected one of {BACKENDS}.")


__all__ = ["PricingStore", "LocalStore", "SqlStore", "build_store", "BACKENDS"]
