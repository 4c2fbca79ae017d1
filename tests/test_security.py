# tests/test_security.py
import json

import pytest

from conftest import make_device, make_user
from pricedesk.domain import STATUS_APPROVED, Category
from pricedesk.errors import AccessDenied, NotFound
from pricedesk.security import ADMIN_CAPABILITIES, EMPLOYEE_CAPABILITIES, AccessGate, can
from pricedesk.seed import DEFAULT_COEFFICIENTS


@pytest.fixture
def gates(service, world):
    return {
        "admin": AccessGate(service, world["admin"], ip_address="10.0.0.1"),
        "employee": AccessGate(service, world["employee"], ip_address="10.0.0.2"),
    }


def test_admin_capabilities_are_a_superset():
    assert EMPLOYEE_CAPABILITIES < ADMIN_CAPABILITIES


def test_inactive_or_missing_principal_has_no_capabilities(service, world):
    assert not can(None, "catalog.read")
    ghost = make_user(service, "ghost", is_active=False)
    assert not can(ghost, "catalog.read")


@pytest.mark.parametrize(
    "call",
    [
        lambda g, w: g.set_inquiry_status(1, STATUS_APPROVED),
        lambda g, w: g.set_coefficients(DEFAULT_COEFFICIENTS),
        lambda g, w: g.get_coefficients(),
        lambda g, w: g.get_device_breakdown(w["device"].id),
        lambda g, w: g.list_devices(),
        lambda g, w: g.upsert_category(Category(id=None, name="X")),
        lambda g, w: g.delete_device(w["device"].id),
        lambda g, w: g.list_users(),
        lambda g, w: g.delete_user(w["admin"].id),
        lambda g, w: g.list_all_inquiries(),
        lambda g, w: g.get_project_summaries(),
        lambda g, w: g.admin_overview(),
        lambda g, w: g.list_audit_entries(),
    ],
)
def test_employee_is_rejected_from_admin_operations(gates, world, call):
    with pytest.raises(AccessDenied):
        call(gates["employee"], world)


def test_employee_cannot_act_for_someone_else(service, world, gates):
    other = make_user(service, "other")
    foreign = service.create_project(other.id, "Not yours")
    employee = gates["employee"]

    with pytest.raises(AccessDenied):
        employee.list_user_requests(other.id)
    with pytest.raises(AccessDenied):
        employee.create_project(other.id, "Sneaky")
    with pytest.raises(AccessDenied):
        employee.request_price(world["employee"].id, world["device"].id, foreign.id)
    with pytest.raises(AccessDenied):
        employee.list_comments(foreign.id)
    with pytest.raises(AccessDenied):
        employee.add_comment(foreign.id, "hi")


def test_employee_cannot_request_inactive_device(service, world, gates):
    hidden = make_device(service, "Hidden", is_active=False)
    with pytest.raises(NotFound):
        gates["employee"].request_price(world["employee"].id, hidden.id, world["project"].id)


def test_gate_mark_read_uses_caller_role(service, world, gates):
    project = world["project"]
    gates["employee"].add_comment(project.id, "question")
    gates["admin"].add_comment(project.id, "answer")

    assert gates["admin"].unread_badge() == 1
    assert gates["employee"].unread_badge() == 1
    assert gates["admin"].mark_read(project.id) == 1
    assert gates["admin"].unread_badge() == 0
    assert gates["employee"].unread_badge() == 1


def test_admin_mutations_are_audited(service, world, gates):
    admin = gates["admin"]
    request_id = gates["employee"].request_price(
        world["employee"].id, world["device"].id, world["project"].id
    )["request_id"]

    admin.set_inquiry_status(request_id, STATUS_APPROVED)
    admin.set_coefficients(DEFAULT_COEFFICIENTS)
    admin.delete_device(world["device"].id)

    entries = admin.list_audit_entries()
    actions = {(e.entity_type, e.action) for e in entries}
    assert ("Inquiry", "DECIDE") in actions
    assert ("GlobalSettings", "UPDATE") in actions
    assert ("Device", "DELETE") in actions
    assert all(e.username_snapshot == "boss" for e in entries)
    assert all(e.ip_address == "10.0.0.1" for e in entries)


def test_user_audit_never_contains_password_hash(service, world, gates):
    gates["admin"].upsert_user(world["employee"], password="new-secret")

    entry = gates["admin"].list_audit_entries(limit=1)[0]
    assert entry.entity_type == "User"
    assert "password_hash" not in json.loads(entry.after_data)
    assert "password_hash" not in json.loads(entry.before_data)
