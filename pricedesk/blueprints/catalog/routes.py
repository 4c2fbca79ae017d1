"""
Employee-facing catalog (read-only, redacted).

Routes:
- GET /catalog/categories
- GET /catalog/devices?q=&category_id=

Cost fields (factory price, length, weight) never leave this blueprint.
"""

from flask import Blueprint, jsonify, request
from flask_login import login_required

from ...security import current_gate


catalog_bp = Blueprint("catalog", __name__, url_prefix="/catalog")


@catalog_bp.route("/categories", methods=["GET"])
@login_required
def list_categories():
    return jsonify(current_gate().list_active_categories())


@catalog_bp.route("/devices", methods=["GET"])
@login_required
def search_devices():
    """Search active devices by model name and optional category ("all" = any)."""
    devices = current_gate().search_active_devices(
        request.args.get("q", ""),
        request.args.get("category_id"),
    )
    return jsonify(devices)
