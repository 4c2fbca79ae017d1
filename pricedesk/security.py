"""
pricedesk/security.py

Access control for the pricing workflow.

Key rules:
- UI is never trusted; all permission checks are server-side.
- Two static capability sets: employee, and admin (a superset).
- An admin-only operation invoked by an employee is REJECTED (AccessDenied),
  never silently filtered.
- Employees only touch their own projects, requests and chats.

AccessGate wraps PricingService for one principal. Blueprints build a gate
per request via current_gate(); tests build one directly.

Admin mutations are written to the audit trail here, where the acting user
is known.
"""

from __future__ import annotations

import logging
from functools import wraps
from typing import Any, Callable, Dict, List, Optional

from flask import current_app, has_request_context, request
from flask_login import current_user

from .audit import (
    ACTION_CREATE,
    ACTION_DECIDE,
    ACTION_DELETE,
    ACTION_UPDATE,
    log_action,
    serialize_record,
)
from .domain import ROLE_ADMIN, ROLE_EMPLOYEE, Category, Comment, Device, Inquiry, Project, User
from .errors import AccessDenied, NotFound
from .pricing import PriceBreakdown
from .services import PricingService

logger = logging.getLogger(__name__)

# -------------------------------------------------------------------
# Capabilities
# -------------------------------------------------------------------
CATALOG_READ = "catalog.read"
PROJECT_CREATE = "project.create"
PROJECT_READ = "project.read"
INQUIRY_REQUEST = "inquiry.request"
INQUIRY_READ = "inquiry.read"
COMMENT_WRITE = "comment.write"
COMMENT_READ = "comment.read"

CATALOG_MANAGE = "catalog.manage"
SETTINGS_MANAGE = "settings.manage"
USERS_MANAGE = "users.manage"
INQUIRY_DECIDE = "inquiry.decide"
INQUIRY_READ_ALL = "inquiry.read_all"
PROJECT_SUMMARIES = "project.summaries"
PRICE_BREAKDOWN = "pricing.breakdown"
AUDIT_READ = "audit.read"

EMPLOYEE_CAPABILITIES = frozenset(
    {
        CATALOG_READ,
        PROJECT_CREATE,
        PROJECT_READ,
        INQUIRY_REQUEST,
        INQUIRY_READ,
        COMMENT_WRITE,
        COMMENT_READ,
    }
)

ADMIN_CAPABILITIES = EMPLOYEE_CAPABILITIES | frozenset(
    {
        CATALOG_MANAGE,
        SETTINGS_MANAGE,
        USERS_MANAGE,
        INQUIRY_DECIDE,
        INQUIRY_READ_ALL,
        PROJECT_SUMMARIES,
        PRICE_BREAKDOWN,
        AUDIT_READ,
    }
)

CAPABILITIES = {
    ROLE_EMPLOYEE: EMPLOYEE_CAPABILITIES,
    ROLE_ADMIN: ADMIN_CAPABILITIES,
}


def can(principal: Optional[User], capability: str) -> bool:
    """Return True if an active principal's role grants `capability`."""
    if principal is None or not getattr(principal, "is_active", False):
        return False
    return capability in CAPABILITIES.get(getattr(principal, "role", None), frozenset())


def require(principal: Optional[User], capability: str) -> None:
    if not can(principal, capability):
        logger.warning("Access denied: user=%s capability=%s", getattr(principal, "id", None), capability)
        raise AccessDenied()


# -------------------------------------------------------------------
# Flask helpers
# -------------------------------------------------------------------
def get_service() -> PricingService:
    """The PricingService constructed by create_app()."""
    return current_app.extensions["pricedesk"]


def current_gate() -> "AccessGate":
    """Gate for the logged-in user of this request."""
    principal = current_user._get_current_object() if current_user.is_authenticated else None
    return AccessGate(get_service(), principal, ip_address=request.remote_addr)


def is_admin() -> bool:
    """Return True if current user is authenticated and admin."""
    return bool(current_user.is_authenticated and getattr(current_user, "is_admin", False))


def admin_required(view_func: Callable[..., Any]) -> Callable[..., Any]:
    """Decorator: admin-only. Rejects with 403, never filters."""
    @wraps(view_func)
    def wrapper(*args: Any, **kwargs: Any):
        if not is_admin():
            raise AccessDenied()
        return view_func(*args, **kwargs)

    return wrapper


# -------------------------------------------------------------------
# Gate
# -------------------------------------------------------------------
class AccessGate:
    """PricingService as seen by one principal."""

    def __init__(self, service: PricingService, principal: Optional[User], ip_address: Optional[str] = None):
        self.service = service
        self.principal = principal
        if ip_address is None and has_request_context():
            ip_address = request.remote_addr
        self.ip_address = ip_address

    # ---------------------------------------------------------------
    # Internal checks
    # ---------------------------------------------------------------
    @property
    def is_admin(self) -> bool:
        return can(self.principal, INQUIRY_DECIDE)

    def _require(self, capability: str) -> User:
        require(self.principal, capability)
        return self.principal

    def _require_self(self, user_id: int) -> None:
        """Employees may only act as themselves."""
        if not self.is_admin and user_id != self.principal.id:
            logger.warning("Access denied: user=%s acting as user=%s", self.principal.id, user_id)
            raise AccessDenied()

    def _own_project(self, project_id: int) -> Project:
        project = self.service.get_project(project_id)
        if not self.is_admin and project.user_id != self.principal.id:
            logger.warning("Access denied: user=%s project=%s", self.principal.id, project_id)
            raise AccessDenied()
        return project

    def _audit(
        self,
        entity: Any,
        action: str,
        before: Optional[Dict] = None,
        after: Optional[Dict] = None,
        entity_type: Optional[str] = None,
    ) -> None:
        log_action(
            self.service.store,
            entity,
            action,
            actor=self.principal,
            before=before,
            after=after,
            ip_address=self.ip_address,
            entity_type=entity_type,
        )

    # ---------------------------------------------------------------
    # Catalog
    # ---------------------------------------------------------------
    def list_active_categories(self) -> List[Category]:
        self._require(CATALOG_READ)
        return self.service.list_active_categories()

    def search_active_devices(self, query: Optional[str] = "", category_id: Any = None) -> List[Dict[str, Any]]:
        self._require(CATALOG_READ)
        return self.service.search_active_devices(query, category_id)

    # ---------------------------------------------------------------
    # Projects
    # ---------------------------------------------------------------
    def create_project(self, user_id: int, name: str) -> Project:
        self._require(PROJECT_CREATE)
        self._require_self(user_id)
        return self.service.create_project(user_id, name)

    def list_user_projects(self, user_id: int) -> List[Project]:
        self._require(PROJECT_READ)
        self._require_self(user_id)
        return self.service.list_user_projects(user_id)

    def get_project_summaries(self) -> List[Dict[str, Any]]:
        self._require(PROJECT_SUMMARIES)
        return self.service.get_project_summaries()

    def unread_badge(self) -> int:
        """Admins: unread employee messages everywhere. Employees: unread admin replies."""
        principal = self._require(COMMENT_READ)
        if self.is_admin:
            return self.service.admin_unread_total()
        return self.service.employee_unread_total(principal.id)

    # ---------------------------------------------------------------
    # Inquiries
    # ---------------------------------------------------------------
    def request_price(self, user_id: int, device_id: int, project_id: int) -> Dict[str, Any]:
        self._require(INQUIRY_REQUEST)
        self._require_self(user_id)
        self._own_project(project_id)
        if not self.is_admin:
            device = self.service.store.get_device(device_id)
            if device is None or not device.is_active:
                raise NotFound("Device not found.")
        return self.service.request_price(user_id, device_id, project_id)

    def list_user_requests(self, user_id: int) -> List[Dict[str, Any]]:
        self._require(INQUIRY_READ)
        self._require_self(user_id)
        return self.service.list_user_requests(user_id)

    def list_all_inquiries(self) -> List[Inquiry]:
        self._require(INQUIRY_READ_ALL)
        return self.service.list_all_inquiries()

    def set_inquiry_status(self, inquiry_id: int, status: str) -> bool:
        self._require(INQUIRY_DECIDE)
        before = self.service.store.get_inquiry(inquiry_id)
        changed = self.service.set_inquiry_status(inquiry_id, status)
        if changed:
            after = self.service.store.get_inquiry(inquiry_id)
            self._audit(after, ACTION_DECIDE, serialize_record(before), serialize_record(after))
        return changed

    # ---------------------------------------------------------------
    # Coefficients & breakdown
    # ---------------------------------------------------------------
    def get_coefficients(self):
        self._require(SETTINGS_MANAGE)
        return self.service.get_coefficients()

    def set_coefficients(self, coefficients):
        self._require(SETTINGS_MANAGE)
        previous = self.service.store.get_coefficients()
        updated = self.service.set_coefficients(coefficients)
        self._audit(
            _SettingsRef(),
            ACTION_UPDATE,
            serialize_record(previous) if previous else None,
            serialize_record(updated),
            entity_type="GlobalSettings",
        )
        return updated

    def get_device_breakdown(self, device_id: int) -> PriceBreakdown:
        self._require(PRICE_BREAKDOWN)
        return self.service.get_device_breakdown(device_id)

    # ---------------------------------------------------------------
    # Devices
    # ---------------------------------------------------------------
    def list_devices(self) -> List[Dict[str, Any]]:
        self._require(CATALOG_MANAGE)
        return [self.service.device_dict(d) for d in self.service.list_devices()]

    def upsert_device(self, data: Dict[str, Any]) -> Device:
        self._require(CATALOG_MANAGE)
        device = self.service.build_device(data)
        before = self.service.store.get_device(device.id) if device.id is not None else None
        saved = self.service.upsert_device(device)
        self._audit(
            saved,
            ACTION_UPDATE if before else ACTION_CREATE,
            serialize_record(before) if before else None,
            serialize_record(saved),
        )
        return saved

    def delete_device(self, device_id: int) -> Device:
        self._require(CATALOG_MANAGE)
        removed = self.service.delete_device(device_id)
        self._audit(removed, ACTION_DELETE, before=serialize_record(removed))
        return removed

    # ---------------------------------------------------------------
    # Categories
    # ---------------------------------------------------------------
    def list_categories(self) -> List[Category]:
        self._require(CATALOG_MANAGE)
        return self.service.list_categories()

    def upsert_category(self, category: Category) -> Category:
        self._require(CATALOG_MANAGE)
        before = self.service.store.get_category(category.id) if category.id is not None else None
        saved = self.service.upsert_category(category)
        self._audit(
            saved,
            ACTION_UPDATE if before else ACTION_CREATE,
            serialize_record(before) if before else None,
            serialize_record(saved),
        )
        return saved

    def delete_category(self, category_id: int) -> Category:
        self._require(CATALOG_MANAGE)
        removed = self.service.delete_category(category_id)
        self._audit(removed, ACTION_DELETE, before=serialize_record(removed))
        return removed

    # ---------------------------------------------------------------
    # Users
    # ---------------------------------------------------------------
    def list_users(self) -> List[User]:
        self._require(USERS_MANAGE)
        return self.service.list_users()

    def upsert_user(self, user: User, password: Optional[str] = None) -> User:
        self._require(USERS_MANAGE)
        before = self.service.store.get_user(user.id) if user.id is not None else None
        saved = self.service.upsert_user(user, password=password)
        self._audit(
            saved,
            ACTION_UPDATE if before else ACTION_CREATE,
            serialize_record(before) if before else None,
            serialize_record(saved),
        )
        return saved

    def delete_user(self, user_id: int) -> User:
        self._require(USERS_MANAGE)
        removed = self.service.delete_user(user_id)
        self._audit(removed, ACTION_DELETE, before=serialize_record(removed))
        return removed

    # ---------------------------------------------------------------
    # Comments
    # ---------------------------------------------------------------
    def add_comment(self, project_id: int, text: str) -> Comment:
        principal = self._require(COMMENT_WRITE)
        self._own_project(project_id)
        return self.service.add_comment(project_id, principal.id, text)

    def list_comments(self, project_id: int) -> List[Comment]:
        self._require(COMMENT_READ)
        self._own_project(project_id)
        return self.service.list_comments(project_id)

    def mark_read(self, project_id: int) -> int:
        """Mark the counterparty's messages as seen by the caller's role."""
        principal = self._require(COMMENT_READ)
        self._own_project(project_id)
        return self.service.mark_read(project_id, principal.role)

    # ---------------------------------------------------------------
    # Admin overview & audit
    # ---------------------------------------------------------------
    def admin_overview(self) -> Dict[str, Any]:
        self._require(USERS_MANAGE)
        self._require(CATALOG_MANAGE)
        return self.service.admin_overview()

    def list_audit_entries(self, limit: int = 100):
        self._require(AUDIT_READ)
        return self.service.store.list_audit_entries(limit=limit)


class _SettingsRef:
    """Audit target for the singleton coefficient set."""

    id = 1

    def __repr__(self):
        return "<GlobalSettings>"
