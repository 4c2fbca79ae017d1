# tests/conftest.py
from decimal import Decimal

import pytest

from config import TestingConfig
from pricedesk import create_app
from pricedesk.domain import ROLE_ADMIN, ROLE_EMPLOYEE, Category, Device, User
from pricedesk.seed import DEFAULT_COEFFICIENTS


# -----------------------------
# App per storage backend
# -----------------------------
@pytest.fixture(params=["sql", "local"])
def app(request):
    """Fresh app, empty store. Every test runs once per backend."""

    class _Config(TestingConfig):
        PRICING_BACKEND = request.param

    return create_app(_Config)


@pytest.fixture
def service(app):
    """PricingService with an app context pushed (SqlStore needs one)."""
    with app.app_context():
        yield app.extensions["pricedesk"]


@pytest.fixture
def seeded(service):
    """Default coefficients, catalog and users (admin/admin, ali/123, sara/123)."""
    service.initialize(seed=True)
    return service


# -----------------------------
# Small builders
# -----------------------------
def make_user(service, username, role=ROLE_EMPLOYEE, password="pw", is_active=True, full_name=None):
    user = User(
        id=None,
        username=username,
        full_name=full_name or username.title(),
        role=role,
        is_active=is_active,
    )
    return service.upsert_user(user, password=password)


def make_device(service, model_name="Unit-A", factory_price="15000", length="2.5", weight="400", is_active=True):
    category = service.store.save_category(Category(id=None, name="Cat " + model_name))
    return service.store.save_device(
        Device(
            id=None,
            model_name=model_name,
            category_id=category.id,
            factory_price=Decimal(factory_price),
            length=Decimal(length),
            weight=Decimal(weight),
            is_active=is_active,
        )
    )


@pytest.fixture
def world(service):
    """One admin, one employee with a project, one device, default coefficients."""
    service.set_coefficients(DEFAULT_COEFFICIENTS)
    admin = make_user(service, "boss", role=ROLE_ADMIN)
    employee = make_user(service, "emp")
    device = make_device(service)
    project = service.create_project(employee.id, "Tower A")
    return {"admin": admin, "employee": employee, "device": device, "project": project}


# -----------------------------
# HTTP helpers
# -----------------------------
@pytest.fixture
def client(app):
    with app.app_context():
        app.extensions["pricedesk"].initialize(seed=True)
    return app.test_client()


def login(client, username, password):
    return client.post("/auth/login", json={"username": username, "password": password})
