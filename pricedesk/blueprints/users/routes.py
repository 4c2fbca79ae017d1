"""
User Management (Admin only).

Rules enforced server-side:
- username unique (case-insensitive), role in {admin, employee}
- blank password on edit keeps the stored credential
- the last active admin cannot be demoted, deactivated or deleted

A password hash is never accepted from, nor returned to, the client.
"""

from flask import Blueprint, jsonify
from flask_login import login_required

from ...domain import ROLE_EMPLOYEE, User
from ...security import admin_required, current_gate
from ...utils import clean_text, parse_bool, parse_optional_int, request_payload


users_bp = Blueprint("users", __name__, url_prefix="/users")


@users_bp.route("/", methods=["GET"])
@login_required
@admin_required
def list_users():
    return jsonify([u.public_dict() for u in current_gate().list_users()])


@users_bp.route("/", methods=["POST"])
@login_required
@admin_required
def upsert_user():
    """Create (no id) or replace (id given) a user."""
    data = request_payload()
    user = User(
        id=parse_optional_int(data.get("id")),
        username=clean_text(data.get("username")),
        full_name=clean_text(data.get("full_name")),
        role=clean_text(data.get("role")) or ROLE_EMPLOYEE,
        is_active=parse_bool(data.get("is_active"), default=True),
    )
    password = data.get("password")
    password = str(password) if password not in (None, "") else None
    saved = current_gate().upsert_user(user, password=password)
    return jsonify(saved.public_dict())


@users_bp.route("/<int:user_id>", methods=["DELETE"])
@login_required
@admin_required
def delete_user(user_id: int):
    removed = current_gate().delete_user(user_id)
    return jsonify({"deleted": removed.id})
