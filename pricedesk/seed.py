"""
pricedesk/seed.py

Seed default master data.

Rules:
- Safe to run multiple times (idempotent).
- Coefficients are written only when none exist, so an admin's tuning is
  never overwritten by a restart.
- The catalog (categories + devices) is seeded only when it is empty.
- Users are seeded only on first start (no user exists yet), like a
  first-admin bootstrap.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from .domain import ROLE_ADMIN, ROLE_EMPLOYEE, Category, CoefficientSet, Device, User
from .storage.base import PricingStore

logger = logging.getLogger(__name__)


DEFAULT_COEFFICIENTS = CoefficientSet(
    D=Decimal("0.38"),
    F=Decimal("1000"),
    CN=Decimal("350000"),
    CD=Decimal("150000"),
    WR=Decimal("0.05"),
    COM=Decimal("0.95"),
    OFF=Decimal("0.95"),
    PF=Decimal("0.65"),
)

DEFAULT_CATEGORIES = [
    "VRF Systems",
    "Chillers",
    "Air Handling Units (AHU)",
]

DEFAULT_DEVICES = [
    # model name, category name, factory price, length, weight
    ("VRF-Outdoor-20HP", "VRF Systems", Decimal("15000"), Decimal("2.5"), Decimal("400")),
    ("VRF-Indoor-Cassette", "VRF Systems", Decimal("800"), Decimal("0.8"), Decimal("30")),
    ("Screw-Chiller-100T", "Chillers", Decimal("45000"), Decimal("4.0"), Decimal("2500")),
    ("Scroll-Chiller-Mini", "Chillers", Decimal("12000"), Decimal("1.5"), Decimal("600")),
    ("AHU-Industrial-5000", "Air Handling Units (AHU)", Decimal("8000"), Decimal("3.0"), Decimal("900")),
    ("AHU-Hygienic-2000", "Air Handling Units (AHU)", Decimal("11000"), Decimal("2.2"), Decimal("750")),
]

DEFAULT_USERS = [
    # username, password, full name, role
    ("admin", "admin", "System Administrator", ROLE_ADMIN),
    ("ali", "123", "Ali Mohammadi", ROLE_EMPLOYEE),
    ("sara", "123", "Sara Rezaei", ROLE_EMPLOYEE),
]


def seed_catalog(store: PricingStore) -> None:
    """Default categories and devices (only used on an empty catalog)."""
    categories = {}
    for name in DEFAULT_CATEGORIES:
        categories[name] = store.save_category(Category(id=None, name=name, is_active=True))

    for model_name, category_name, price, length, weight in DEFAULT_DEVICES:
        store.save_device(
            Device(
                id=None,
                model_name=model_name,
                category_id=categories[category_name].id,
                factory_price=price,
                length=length,
                weight=weight,
                is_active=True,
            )
        )
    logger.info("Seeded %d categories and %d devices", len(DEFAULT_CATEGORIES), len(DEFAULT_DEVICES))


def seed_defaults(store: PricingStore) -> None:
    """Create default coefficients, catalog and users if missing."""
    if store.get_coefficients() is None:
        store.set_coefficients(DEFAULT_COEFFICIENTS)
        logger.info("Seeded default pricing coefficients")

    if not store.list_categories() and not store.list_devices():
        seed_catalog(store)

    if store.is_empty():
        for username, password, full_name, role in DEFAULT_USERS:
            user = User(id=None, username=username, full_name=full_name, role=role, is_active=True)
            user.set_password(password)
            store.save_user(user)
        logger.info("Seeded %d default users", len(DEFAULT_USERS))
