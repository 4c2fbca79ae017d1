"""
Admin console (Admin only).

Routes:
- GET  /admin/settings                      current coefficient set
- PUT  /admin/settings                      replace the whole set
- GET  /admin/devices                       full device list incl. cost fields
- POST /admin/devices                       create / update (id in body)
- DELETE /admin/devices/<id>
- GET  /admin/devices/<id>/breakdown        step-by-step price calculation
- GET  /admin/categories
- POST /admin/categories                    create / update (id in body)
- DELETE /admin/categories/<id>
- GET  /admin/overview                      dashboard payload
- GET  /admin/audit?limit=                  latest audit entries

Audit:
- CREATE / UPDATE / DELETE logged by AccessGate
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...domain import Category
from ...security import admin_required, current_gate
from ...utils import clean_text, parse_bool, parse_optional_int, request_payload


admin_bp = Blueprint("admin", __name__, url_prefix="/admin")

AUDIT_DEFAULT_LIMIT = 100
AUDIT_MAX_LIMIT = 1000


# ============================================================
# SETTINGS (pricing coefficients)
# ============================================================

@admin_bp.route("/settings", methods=["GET"])
@login_required
@admin_required
def get_settings():
    return jsonify(current_gate().get_coefficients().as_dict())


@admin_bp.route("/settings", methods=["PUT"])
@login_required
@admin_required
def update_settings():
    """All eight coefficients are required; partial updates are rejected."""
    updated = current_gate().set_coefficients(request_payload())
    return jsonify(updated.as_dict())


# ============================================================
# DEVICES
# ============================================================

@admin_bp.route("/devices", methods=["GET"])
@login_required
@admin_required
def list_devices():
    return jsonify(current_gate().list_devices())


@admin_bp.route("/devices", methods=["POST"])
@login_required
@admin_required
def upsert_device():
    gate = current_gate()
    saved = gate.upsert_device(request_payload())
    return jsonify(gate.service.device_dict(saved))


@admin_bp.route("/devices/<int:device_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_device(device_id: int):
    removed = current_gate().delete_device(device_id)
    return jsonify({"deleted": removed.id})


@admin_bp.route("/devices/<int:device_id>/breakdown", methods=["GET"])
@login_required
@admin_required
def device_breakdown(device_id: int):
    return jsonify(current_gate().get_device_breakdown(device_id))


# ============================================================
# CATEGORIES
# ============================================================

@admin_bp.route("/categories", methods=["GET"])
@login_required
@admin_required
def list_categories():
    return jsonify(current_gate().list_categories())


@admin_bp.route("/categories", methods=["POST"])
@login_required
@admin_required
def upsert_category():
    data = request_payload()
    category = Category(
        id=parse_optional_int(data.get("id")),
        name=clean_text(data.get("name")),
        is_active=parse_bool(data.get("is_active"), default=True),
    )
    return jsonify(current_gate().upsert_category(category))


@admin_bp.route("/categories/<int:category_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_category(category_id: int):
    removed = current_gate().delete_category(category_id)
    return jsonify({"deleted": removed.id})


# ============================================================
# OVERVIEW & AUDIT
# ============================================================

@admin_bp.route("/overview", methods=["GET"])
@login_required
@admin_required
def overview():
    return jsonify(current_gate().admin_overview())


@admin_bp.route("/audit", methods=["GET"])
@login_required
@admin_required
def audit_log():
    limit = parse_optional_int(request.args.get("limit")) or AUDIT_DEFAULT_LIMIT
    limit = max(1, min(limit, AUDIT_MAX_LIMIT))
    return jsonify(current_gate().list_audit_entries(limit=limit))
