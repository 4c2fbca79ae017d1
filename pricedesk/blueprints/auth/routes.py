"""
Authentication Routes

Provides:
- POST /auth/login
- POST /auth/logout
- GET  /auth/session

Rules:
- Only active users may log in.
- Unknown user, wrong password and inactive account share one 401 answer.
- The session endpoint hands out the CSRF token for later writes.
"""

from flask import Blueprint, current_app, jsonify
from flask_login import current_user, login_required, login_user, logout_user
from flask_wtf.csrf import generate_csrf

from ...errors import AuthFailure
from ...security import get_service
from ...utils import request_payload


auth_bp = Blueprint("auth", __name__, url_prefix="/auth")


def _session_body():
    user = current_user._get_current_object() if current_user.is_authenticated else None
    return {
        "authenticated": user is not None,
        "user": user.public_dict() if user is not None else None,
        "csrf_token": generate_csrf(),
        "poll_interval_seconds": current_app.config.get("POLL_INTERVAL_SECONDS", 5),
    }


# ============================================================
# LOGIN
# ============================================================

@auth_bp.route("/login", methods=["POST"])
def login():
    """
    Authenticate a user.

    Logic:
    - Credentials validated via password hash
    - Returns the public user record (never the hash)
    """
    data = request_payload()
    username = str(data.get("username") or "").strip()
    password = data.get("password")

    user = get_service().login(username, password)
    if user is None:
        raise AuthFailure()

    login_user(user)
    return jsonify(_session_body())


# ============================================================
# LOGOUT
# ============================================================

@auth_bp.route("/logout", methods=["POST"])
@login_required
def logout():
    """Log out the current user."""
    logout_user()
    return jsonify({"authenticated": False})


# ============================================================
# SESSION
# ============================================================

@auth_bp.route("/session", methods=["GET"])
def session_info():
    """Who is logged in (if anyone) plus a fresh CSRF token."""
    return jsonify(_session_body())
