"""
Price requests (inquiries).

Routes:
- POST /inquiries/                  request a price {device_id, project_id[, user_id]}
- GET  /inquiries/mine              caller's requests (price hidden until approved)
- GET  /inquiries/                  admin: every inquiry, full record
- POST /inquiries/<id>/status       admin: {status: approved|rejected}
"""

from flask import Blueprint, jsonify
from flask_login import current_user, login_required

from ...errors import ValidationError
from ...security import current_gate
from ...utils import parse_optional_int, request_payload


inquiries_bp = Blueprint("inquiries", __name__, url_prefix="/inquiries")


def _required_id(data, key: str) -> int:
    value = parse_optional_int(data.get(key))
    if value is None:
        raise ValidationError(f"{key} is required.")
    return value


@inquiries_bp.route("/", methods=["POST"])
@login_required
def request_price():
    """
    Ask for a price.

    Repeating the request while it is pending returns the same inquiry.
    """
    data = request_payload()
    user_id = parse_optional_int(data.get("user_id"))
    result = current_gate().request_price(
        user_id if user_id is not None else current_user.id,
        _required_id(data, "device_id"),
        _required_id(data, "project_id"),
    )
    return jsonify(result)


@inquiries_bp.route("/mine", methods=["GET"])
@login_required
def my_requests():
    return jsonify(current_gate().list_user_requests(current_user.id))


@inquiries_bp.route("/", methods=["GET"])
@login_required
def list_inquiries():
    return jsonify(current_gate().list_all_inquiries())


@inquiries_bp.route("/<int:inquiry_id>/status", methods=["POST"])
@login_required
def set_status(inquiry_id: int):
    """Approve or reject. Already-decided or unknown ids report changed=false."""
    data = request_payload()
    status = str(data.get("status") or "").strip().lower()
    changed = current_gate().set_inquiry_status(inquiry_id, status)
    return jsonify({"id": inquiry_id, "status": status, "changed": changed})
