"""
Projects and project chat.

Routes:
- GET  /projects/                       own projects (admins may pass ?user_id=)
- POST /projects/                       create {name[, user_id]}
- GET  /projects/summaries              admin: all projects + unread + last activity
- GET  /projects/unread                 unread badge for the caller's role
- GET  /projects/<id>/comments          chat thread, oldest first
- POST /projects/<id>/comments          post {text}
- POST /projects/<id>/comments/read     mark the counterparty's messages read

Ownership checks happen in AccessGate, never here.
"""

from flask import Blueprint, jsonify, request
from flask_login import current_user, login_required

from ...security import current_gate
from ...utils import parse_optional_int, request_payload


projects_bp = Blueprint("projects", __name__, url_prefix="/projects")


def _target_user_id(value) -> int:
    """Explicit user id if given, else the caller."""
    user_id = parse_optional_int(value)
    return user_id if user_id is not None else current_user.id


# ============================================================
# PROJECTS
# ============================================================

@projects_bp.route("/", methods=["GET"])
@login_required
def list_projects():
    gate = current_gate()
    projects = gate.list_user_projects(_target_user_id(request.args.get("user_id")))
    return jsonify([gate.service.project_dict(p) for p in projects])


@projects_bp.route("/", methods=["POST"])
@login_required
def create_project():
    data = request_payload()
    gate = current_gate()
    project = gate.create_project(_target_user_id(data.get("user_id")), data.get("name"))
    return jsonify(gate.service.project_dict(project)), 201


@projects_bp.route("/summaries", methods=["GET"])
@login_required
def project_summaries():
    return jsonify(current_gate().get_project_summaries())


@projects_bp.route("/unread", methods=["GET"])
@login_required
def unread_badge():
    return jsonify({"unread": current_gate().unread_badge()})


# ============================================================
# CHAT
# ============================================================

@projects_bp.route("/<int:project_id>/comments", methods=["GET"])
@login_required
def list_comments(project_id: int):
    return jsonify(current_gate().list_comments(project_id))


@projects_bp.route("/<int:project_id>/comments", methods=["POST"])
@login_required
def add_comment(project_id: int):
    data = request_payload()
    comment = current_gate().add_comment(project_id, data.get("text"))
    return jsonify(comment), 201


@projects_bp.route("/<int:project_id>/comments/read", methods=["POST"])
@login_required
def mark_read(project_id: int):
    """Opening a chat marks everything the other side wrote as read."""
    return jsonify({"marked": current_gate().mark_read(project_id)})
