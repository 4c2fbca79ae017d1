# tests/test_services.py
from dataclasses import replace
from decimal import Decimal

import pytest

from conftest import make_device, make_user
from pricedesk.domain import ROLE_ADMIN, ROLE_EMPLOYEE, STATUS_APPROVED, STATUS_PENDING, STATUS_REJECTED, Category
from pricedesk.errors import ConfigurationError, InvariantViolation, NotFound, ValidationError
from pricedesk.seed import DEFAULT_COEFFICIENTS


# -----------------------------
# Seeding
# -----------------------------
def test_seed_is_idempotent_and_keeps_tuned_coefficients(seeded):
    tuned = replace(DEFAULT_COEFFICIENTS, PF=Decimal("0.5"))
    seeded.set_coefficients(tuned)
    users_before = len(seeded.list_users())
    devices_before = len(seeded.list_devices())

    seeded.initialize(seed=True)

    assert seeded.get_coefficients() == tuned
    assert len(seeded.list_users()) == users_before == 3
    assert len(seeded.list_devices()) == devices_before == 6


def test_seeded_accounts_can_log_in(seeded):
    assert seeded.login("admin", "admin").role == ROLE_ADMIN
    assert seeded.login("ALI", "123").username == "ali"
    assert seeded.login("ali", "wrong") is None
    assert seeded.login("nobody", "123") is None


def test_password_is_stored_hashed(seeded):
    ali = seeded.store.find_user_by_username("ali")
    assert ali.password_hash and ali.password_hash != "123"
    assert "password_hash" not in ali.public_dict()


def test_inactive_user_cannot_log_in(service):
    make_user(service, "ghost", password="pw", is_active=False)
    assert service.login("ghost", "pw") is None


def test_missing_coefficients_is_a_configuration_error(service):
    with pytest.raises(ConfigurationError):
        service.get_coefficients()


# -----------------------------
# Price requests
# -----------------------------
def test_request_price_snapshots_and_hides_price(service, world):
    emp, device, project = world["employee"], world["device"], world["project"]

    status = service.request_price(emp.id, device.id, project.id)

    assert status["status"] == STATUS_PENDING
    assert status["price"] is None
    assert status["model_name"] == "Unit-A"
    assert status["project_name"] == "Tower A"
    stored = service.store.get_inquiry(status["request_id"])
    assert stored.sell_price == 16056
    assert stored.user_full_name == emp.full_name


def test_repeated_request_while_pending_is_deduplicated(service, world):
    emp, device, project = world["employee"], world["device"], world["project"]

    first = service.request_price(emp.id, device.id, project.id)
    service.set_coefficients(replace(DEFAULT_COEFFICIENTS, PF=Decimal("0.1")))
    second = service.request_price(emp.id, device.id, project.id)

    assert first["request_id"] == second["request_id"]
    assert len(service.list_all_inquiries()) == 1
    assert service.store.get_inquiry(first["request_id"]).sell_price == 16056


def test_new_request_allowed_after_decision(service, world):
    emp, device, project = world["employee"], world["device"], world["project"]

    first = service.request_price(emp.id, device.id, project.id)
    assert service.set_inquiry_status(first["request_id"], STATUS_REJECTED)
    second = service.request_price(emp.id, device.id, project.id)

    assert second["request_id"] != first["request_id"]
    assert second["status"] == STATUS_PENDING


def test_status_is_monotonic(service, world):
    emp, device, project = world["employee"], world["device"], world["project"]
    request_id = service.request_price(emp.id, device.id, project.id)["request_id"]

    assert service.set_inquiry_status(request_id, STATUS_APPROVED) is True
    assert service.set_inquiry_status(request_id, STATUS_REJECTED) is False

    stored = service.store.get_inquiry(request_id)
    assert stored.status == STATUS_APPROVED
    assert stored.responded_at is not None
    assert service.list_user_requests(emp.id)[0]["price"] == 16056


def test_status_change_on_unknown_inquiry_is_a_noop(service, world):
    assert service.set_inquiry_status(999, STATUS_APPROVED) is False


def test_pending_is_not_a_decision(service, world):
    with pytest.raises(ValidationError):
        service.set_inquiry_status(1, STATUS_PENDING)


def test_request_on_foreign_project_is_rejected(service, world):
    other = make_user(service, "other")
    with pytest.raises(ValidationError):
        service.request_price(other.id, world["device"].id, world["project"].id)


def test_request_with_unknown_references(service, world):
    emp = world["employee"]
    with pytest.raises(NotFound):
        service.request_price(emp.id, 999, world["project"].id)
    with pytest.raises(NotFound):
        service.request_price(emp.id, world["device"].id, 999)


def test_snapshot_survives_catalog_edits(service, world):
    emp, device, project = world["employee"], world["device"], world["project"]
    request_id = service.request_price(emp.id, device.id, project.id)["request_id"]

    service.upsert_device(replace(device, model_name="Renamed", factory_price=Decimal("1")))
    service.delete_category(device.category_id)

    stored = service.store.get_inquiry(request_id)
    assert stored.model_name == "Unit-A"
    assert stored.category_name == "Cat Unit-A"
    assert stored.sell_price == 16056


# -----------------------------
# Catalog
# -----------------------------
def test_search_is_redacted_and_case_insensitive(service, world):
    make_device(service, "Hidden-Unit", is_active=False)

    results = service.search_active_devices("unit-a", "all")

    assert [d["model_name"] for d in results] == ["Unit-A"]
    assert set(results[0]) == {"id", "model_name", "category_id", "category_name"}


def test_search_filters_by_category(service, world):
    other = make_device(service, "Unit-B")
    results = service.search_active_devices("", str(other.category_id))
    assert [d["id"] for d in results] == [other.id]


def test_device_requires_existing_category(service, world):
    with pytest.raises(ValidationError):
        service.build_device({"model_name": "X", "category_id": 999, "factory_price": 1, "length": 1, "weight": 1})


def test_negative_cost_field_is_rejected(service, world):
    data = {
        "model_name": "X",
        "category_id": world["device"].category_id,
        "factory_price": "-1",
        "length": 1,
        "weight": 1,
    }
    with pytest.raises(ValidationError):
        service.build_device(data)


@pytest.mark.parametrize(
    "field,value",
    [("factory_price", "15000.555"), ("length", "2.123456"), ("weight", "400.00005"), ("factory_price", "1000000000000")],
)
def test_cost_field_the_store_cannot_hold_is_rejected(service, world, field, value):
    data = {
        "model_name": "X",
        "category_id": world["device"].category_id,
        "factory_price": "15000",
        "length": "2.5",
        "weight": "400",
    }
    data[field] = value
    with pytest.raises(ValidationError):
        service.build_device(data)


def test_device_cost_fields_read_back_exactly(service, world):
    saved = service.upsert_device(
        service.build_device(
            {
                "model_name": "Exact",
                "category_id": world["device"].category_id,
                "factory_price": "15000.55",
                "length": "2.1235",
                "weight": "400.0001",
            }
        )
    )

    stored = service.store.get_device(saved.id)
    assert stored.factory_price == Decimal("15000.55")
    assert stored.length == Decimal("2.1235")
    assert stored.weight == Decimal("400.0001")


def test_device_with_deleted_category_shows_placeholder(service, world):
    device = world["device"]
    service.delete_category(device.category_id)
    assert service.device_dict(device)["category_name"] == "(removed)"


def test_category_upsert_with_unknown_id(service):
    with pytest.raises(NotFound):
        service.upsert_category(Category(id=42, name="Ghost"))


# -----------------------------
# Coefficients
# -----------------------------
def test_coefficients_must_be_complete_and_positive(service):
    partial = {k: v for k, v in DEFAULT_COEFFICIENTS.as_dict().items() if k != "PF"}
    with pytest.raises(ValidationError):
        service.set_coefficients(partial)

    zero_pf = dict(DEFAULT_COEFFICIENTS.as_dict(), PF="0")
    with pytest.raises(ValidationError):
        service.set_coefficients(zero_pf)

    negative = dict(DEFAULT_COEFFICIENTS.as_dict(), D="-0.1")
    with pytest.raises(ValidationError):
        service.set_coefficients(negative)


@pytest.mark.parametrize("name,value", [("WR", "0.0512345678912"), ("PF", "0.000000001"), ("CN", "1E+12")])
def test_coefficients_the_store_cannot_hold_are_rejected(service, name, value):
    with pytest.raises(ValidationError):
        service.set_coefficients(dict(DEFAULT_COEFFICIENTS.as_dict(), **{name: value}))
    assert service.store.get_coefficients() is None


def test_coefficients_read_back_exactly(service):
    tuned = dict(DEFAULT_COEFFICIENTS.as_dict(), WR="0.05123457", PF="0.00000001")
    service.set_coefficients(tuned)

    stored = service.store.get_coefficients()
    assert stored.WR == Decimal("0.05123457")
    assert stored.PF == Decimal("0.00000001")
    assert stored.D == DEFAULT_COEFFICIENTS.D


def test_breakdown_for_device(service, world):
    assert service.get_device_breakdown(world["device"].id).sell_price == 16056


# -----------------------------
# Users
# -----------------------------
def test_last_admin_cannot_be_removed(service, world):
    admin = world["admin"]

    with pytest.raises(InvariantViolation):
        service.delete_user(admin.id)
    with pytest.raises(InvariantViolation):
        service.upsert_user(replace(admin, role=ROLE_EMPLOYEE))
    with pytest.raises(InvariantViolation):
        service.upsert_user(replace(admin, is_active=False))

    make_user(service, "second", role=ROLE_ADMIN)
    service.delete_user(admin.id)
    assert service.store.count_active_admins() == 1


def test_inactive_admin_does_not_count(service, world):
    make_user(service, "sleepy", role=ROLE_ADMIN, is_active=False)
    with pytest.raises(InvariantViolation):
        service.delete_user(world["admin"].id)


def test_username_unique_case_insensitive(service, world):
    with pytest.raises(ValidationError):
        make_user(service, "EMP")


def test_blank_password_on_edit_keeps_credential(service, world):
    emp = world["employee"]
    service.upsert_user(replace(emp, full_name="Renamed", password_hash=None), password=None)
    assert service.login("emp", "pw").full_name == "Renamed"


def test_projects_are_owned_by_employees(service, world):
    with pytest.raises(InvariantViolation):
        service.create_project(world["admin"].id, "Admin project")
    with pytest.raises(ValidationError):
        service.create_project(world["employee"].id, "   ")


# -----------------------------
# Chat & unread tracking
# -----------------------------
def test_unread_counts_are_partitioned_by_role(service, world):
    emp, admin, project = world["employee"], world["admin"], world["project"]

    service.add_comment(project.id, emp.id, "hello")
    service.add_comment(project.id, emp.id, "anyone?")
    service.add_comment(project.id, admin.id, "yes")

    assert service.unread_count(project.id, ROLE_ADMIN) == 2
    assert service.unread_count(project.id, ROLE_EMPLOYEE) == 1

    assert service.mark_read(project.id, ROLE_ADMIN) == 2
    assert service.unread_count(project.id, ROLE_ADMIN) == 0
    assert service.unread_count(project.id, ROLE_EMPLOYEE) == 1

    assert service.mark_read(project.id, ROLE_EMPLOYEE) == 1
    assert service.employee_unread_total(emp.id) == 0


def test_comments_listed_oldest_first(service, world):
    project = world["project"]
    for text in ("one", "two", "three"):
        service.add_comment(project.id, world["employee"].id, text)
    assert [c.content for c in service.list_comments(project.id)] == ["one", "two", "three"]


def test_empty_comment_rejected(service, world):
    with pytest.raises(ValidationError):
        service.add_comment(world["project"].id, world["employee"].id, "  ")


def test_project_summaries(service, world):
    emp = world["employee"]
    older = world["project"]
    newer = service.create_project(emp.id, "Tower B")
    service.add_comment(older.id, emp.id, "ping")

    summaries = service.get_project_summaries()

    assert [s["id"] for s in summaries] == [older.id, newer.id]
    assert summaries[0]["unread_count"] == 1
    assert summaries[0]["user_full_name"] == emp.full_name
    assert summaries[1]["unread_count"] == 0
