"""
pricedesk/services.py

Pricing-request workflow over any PricingStore.

PricingService owns the business rules:
- price requests snapshot names and the computed sell price
- one pending inquiry per (user, device, project); repeats return it
- decisions are one-way (pending -> approved | rejected)
- employee projections hide the price until approved
- chat read flags are partitioned by the author's role
- at least one active admin must always remain

It performs NO role checks. Callers go through pricedesk.security.AccessGate,
which decides who may call what.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .domain import (
    DECISION_STATUSES,
    ROLE_ADMIN,
    ROLE_EMPLOYEE,
    ROLES,
    Category,
    CoefficientSet,
    Comment,
    Device,
    Inquiry,
    Project,
    User,
    other_role,
    utcnow,
)
from .errors import ConfigurationError, InvariantViolation, NotFound, ValidationError
from .pricing import PriceBreakdown, breakdown_for_device, calculate_sell_price
from .storage.base import PricingStore
from .utils import check_scale, clean_text, parse_bool, parse_optional_int, to_decimal

logger = logging.getLogger(__name__)

# Placeholders for references that no longer resolve (reads fail open).
UNKNOWN_CATEGORY = "Unknown"
REMOVED_CATEGORY = "(removed)"
UNKNOWN_USER = "Unknown"

LAST_ADMIN_MESSAGE = "Cannot remove the last active admin."


class PricingService:
    """Workflow facade. Construct once per app with an explicit store."""

    def __init__(self, store: PricingStore):
        self.store = store

    def initialize(self, seed: bool = True) -> None:
        """Prepare the backend and, optionally, seed default data."""
        from .seed import seed_defaults

        self.store.prepare()
        if seed:
            seed_defaults(self.store)

    # =================================================================
    # AUTH
    # =================================================================
    def login(self, username: str, password: Optional[str]) -> Optional[User]:
        """
        Return the user for valid credentials, else None.

        Unknown user, wrong password and inactive account are
        indistinguishable to the caller.
        """
        user = self.store.find_user_by_username(username or "")
        if user is None or not user.is_active or not user.check_password(password):
            logger.warning("Failed login for username %r", username)
            return None
        return user

    def get_user(self, user_id: int) -> User:
        user = self.store.get_user(user_id)
        if user is None:
            raise NotFound("User not found.")
        return user

    # =================================================================
    # CATALOG (employee-facing)
    # =================================================================
    def _category_names(self) -> Dict[int, str]:
        return {c.id: c.name for c in self.store.list_categories()}

    def list_active_categories(self) -> List[Category]:
        return self.store.list_categories(active_only=True)

    def search_active_devices(self, query: Optional[str] = "", category_id: Any = None) -> List[Dict[str, Any]]:
        """
        Redacted device search.

        Case-insensitive substring match on model name; category_id of
        None, "" or "all" means every category. Never returns cost fields.
        """
        if category_id == "all":
            category_id = None
        wanted_category = parse_optional_int(category_id)
        needle = (query or "").strip().lower()
        names = self._category_names()

        results = []
        for device in self.store.list_devices(active_only=True, category_id=wanted_category):
            if needle and needle not in device.model_name.lower():
                continue
            results.append(
                {
                    "id": device.id,
                    "model_name": device.model_name,
                    "category_id": device.category_id,
                    "category_name": names.get(device.category_id, UNKNOWN_CATEGORY),
                }
            )
        return results

    # =================================================================
    # PROJECTS
    # =================================================================
    def get_project(self, project_id: int) -> Project:
        project = self.store.get_project(project_id)
        if project is None:
            raise NotFound("Project not found.")
        return project

    def create_project(self, user_id: int, name: str) -> Project:
        """Create a project owned by an employee."""
        name = clean_text(name)
        if not name:
            raise ValidationError("Project name is required.")

        owner = self.get_user(user_id)
        if owner.role != ROLE_EMPLOYEE:
            raise InvariantViolation("Projects can only be owned by employees.")

        project = self.store.create_project(Project(id=None, name=name, user_id=owner.id))
        logger.info("Project %s created for user %s", project.id, owner.id)
        return project

    def list_user_projects(self, user_id: int) -> List[Project]:
        return self.store.list_projects(user_id=user_id)

    def project_dict(self, project: Project, users: Optional[Dict[int, User]] = None) -> Dict[str, Any]:
        if users is None:
            owner = self.store.get_user(project.user_id)
        else:
            owner = users.get(project.user_id)
        return {
            "id": project.id,
            "name": project.name,
            "user_id": project.user_id,
            "user_full_name": owner.full_name if owner else UNKNOWN_USER,
            "created_at": project.created_at,
        }

    # =================================================================
    # INQUIRIES
    # =================================================================
    def request_price(self, user_id: int, device_id: int, project_id: int) -> Dict[str, Any]:
        """
        Ask for a price on (device, project) for a user.

        A pending request for the same triple is returned as-is, so repeated
        clicks never re-price or duplicate. The price is hidden until an
        admin approves.
        """
        user = self.get_user(user_id)
        device = self.store.get_device(device_id)
        if device is None:
            raise NotFound("Device not found.")
        project = self.get_project(project_id)
        if project.user_id != user.id:
            raise ValidationError("Project does not belong to this user.")

        existing = self.store.find_pending_inquiry(user.id, device.id, project.id)
        if existing is not None:
            return existing.status_dict()

        sell_price = calculate_sell_price(device, self.get_coefficients())
        category = self.store.get_category(device.category_id) if device.category_id is not None else None

        inquiry, created = self.store.create_pending_inquiry(
            Inquiry(
                id=None,
                user_id=user.id,
                user_full_name=user.full_name,
                device_id=device.id,
                model_name=device.model_name,
                category_name=category.name if category else UNKNOWN_CATEGORY,
                project_id=project.id,
                project_name=project.name,
                sell_price=sell_price,
            )
        )
        if created:
            logger.info(
                "Price requested: inquiry %s user=%s device=%s project=%s",
                inquiry.id, user.id, device.id, project.id,
            )
        return inquiry.status_dict()

    def list_user_requests(self, user_id: int) -> List[Dict[str, Any]]:
        """Employee projection of a user's inquiries, newest first."""
        return [inquiry.status_dict() for inquiry in self.store.list_inquiries(user_id=user_id)]

    def list_all_inquiries(self) -> List[Inquiry]:
        return self.store.list_inquiries()

    def set_inquiry_status(self, inquiry_id: int, status: str) -> bool:
        """
        Approve or reject a pending inquiry.

        Missing ids and already-decided inquiries are a no-op (False).
        """
        if status not in DECISION_STATUSES:
            raise ValidationError(f"Status must be one of: {', '.join(DECISION_STATUSES)}.")

        changed = self.store.decide_inquiry(inquiry_id, status, utcnow())
        if changed:
            logger.info("Inquiry %s marked %s", inquiry_id, status)
        else:
            logger.warning("Inquiry %s not pending or missing; status %s ignored", inquiry_id, status)
        return changed

    # =================================================================
    # COEFFICIENTS & PRICE BREAKDOWN
    # =================================================================
    def get_coefficients(self) -> CoefficientSet:
        coefficients = self.store.get_coefficients()
        if coefficients is None:
            raise ConfigurationError("No pricing coefficients configured.")
        return coefficients

    def set_coefficients(self, coefficients: CoefficientSet | Dict[str, Any]) -> CoefficientSet:
        """Replace the whole coefficient set."""
        if not isinstance(coefficients, CoefficientSet):
            coefficients = CoefficientSet.from_mapping(coefficients)
        coefficients.validate()
        self.store.set_coefficients(coefficients)
        logger.info("Pricing coefficients replaced")
        return coefficients

    def get_device_breakdown(self, device_id: int) -> PriceBreakdown:
        return breakdown_for_device(self.get_device(device_id), self.get_coefficients())

    # =================================================================
    # DEVICES (admin)
    # =================================================================
    def get_device(self, device_id: int) -> Device:
        device = self.store.get_device(device_id)
        if device is None:
            raise NotFound("Device not found.")
        return device

    def list_devices(self) -> List[Device]:
        return self.store.list_devices()

    def device_dict(self, device: Device, names: Optional[Dict[int, str]] = None) -> Dict[str, Any]:
        """Full admin view, including cost fields."""
        if names is None:
            names = self._category_names()
        return {
            "id": device.id,
            "model_name": device.model_name,
            "category_id": device.category_id,
            "category_name": names.get(device.category_id, REMOVED_CATEGORY),
            "is_active": device.is_active,
            "factory_price": device.factory_price,
            "length": device.length,
            "weight": device.weight,
        }

    def build_device(self, data: Dict[str, Any]) -> Device:
        """Validate a device payload into a Device record."""
        model_name = clean_text(data.get("model_name"))
        if not model_name:
            raise ValidationError("Model name is required.")

        category_id = parse_optional_int(data.get("category_id"))
        if category_id is None or self.store.get_category(category_id) is None:
            raise ValidationError("A valid category is required.")

        values = {}
        for field in Device.PRIVILEGED_FIELDS:
            value = to_decimal(data.get(field), field)
            if value < 0:
                raise ValidationError(f"{field} must not be negative.")
            values[field] = check_scale(value, field, *Device.SCALES[field])

        return Device(
            id=parse_optional_int(data.get("id")),
            model_name=model_name,
            category_id=category_id,
            is_active=parse_bool(data.get("is_active"), default=True),
            **values,
        )

    def upsert_device(self, device: Device) -> Device:
        if device.id is not None and self.store.get_device(device.id) is None:
            raise NotFound("Device not found.")
        return self.store.save_device(device)

    def delete_device(self, device_id: int) -> Device:
        device = self.get_device(device_id)
        self.store.delete_device(device_id)
        logger.info("Device %s deleted", device_id)
        return device

    # =================================================================
    # CATEGORIES (admin)
    # =================================================================
    def get_category(self, category_id: int) -> Category:
        category = self.store.get_category(category_id)
        if category is None:
            raise NotFound("Category not found.")
        return category

    def list_categories(self) -> List[Category]:
        return self.store.list_categories()

    def upsert_category(self, category: Category) -> Category:
        category.name = clean_text(category.name)
        if not category.name:
            raise ValidationError("Category name is required.")
        if category.id is not None:
            self.get_category(category.id)
        return self.store.save_category(category)

    def delete_category(self, category_id: int) -> Category:
        """Delete a category. Devices keep the dangling reference."""
        category = self.get_category(category_id)
        self.store.delete_category(category_id)
        logger.info("Category %s deleted", category_id)
        return category

    # =================================================================
    # USERS (admin)
    # =================================================================
    def list_users(self) -> List[User]:
        return self.store.list_users()

    def _guard_last_admin(self, target: User) -> None:
        """Fail when `target` is the only active admin left."""
        if target.is_active_admin and self.store.count_active_admins(exclude_user_id=target.id) == 0:
            raise InvariantViolation(LAST_ADMIN_MESSAGE)

    def upsert_user(self, user: User, password: Optional[str] = None) -> User:
        """
        Create or replace a user.

        - username is unique (case-insensitive)
        - a blank password on edit keeps the stored credential
        - demoting or deactivating the last active admin is rejected
        """
        user.username = clean_text(user.username)
        user.full_name = clean_text(user.full_name)
        if not user.username:
            raise ValidationError("Username is required.")
        if not user.full_name:
            raise ValidationError("Full name is required.")
        if user.role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")

        clash = self.store.find_user_by_username(user.username)
        if clash is not None and clash.id != user.id:
            raise ValidationError("Username already exists.")

        if user.id is not None:
            current = self.get_user(user.id)
            if not user.is_active_admin:
                self._guard_last_admin(current)
            if user.password_hash is None:
                user.password_hash = current.password_hash

        if password:
            user.set_password(password)

        return self.store.save_user(user)

    def delete_user(self, user_id: int) -> User:
        user = self.get_user(user_id)
        self._guard_last_admin(user)
        self.store.delete_user(user_id)
        logger.info("User %s deleted", user_id)
        return user

    # =================================================================
    # COMMENTS & READ TRACKING
    # =================================================================
    def add_comment(self, project_id: int, user_id: int, text: str) -> Comment:
        content = clean_text(text)
        if not content:
            raise ValidationError("Comment text is required.")
        project = self.get_project(project_id)
        author = self.get_user(user_id)

        return self.store.add_comment(
            Comment(
                id=None,
                project_id=project.id,
                user_id=author.id,
                user_full_name=author.full_name,
                role=author.role,
                content=content,
            )
        )

    def list_comments(self, project_id: int) -> List[Comment]:
        return self.store.list_comments(project_id)

    def mark_read(self, project_id: int, reader_role: str) -> int:
        """Mark the other role's comments in the project as read."""
        if reader_role not in ROLES:
            raise ValidationError(f"Role must be one of: {', '.join(ROLES)}.")
        return self.store.mark_comments_read(project_id, other_role(reader_role))

    def unread_count(self, project_id: int, audience_role: str) -> int:
        """Unread comments a member of `audience_role` has not seen yet."""
        return self.store.count_unread(project_id, other_role(audience_role))

    def admin_unread_total(self) -> int:
        return sum(self.unread_count(p.id, ROLE_ADMIN) for p in self.store.list_projects())

    def employee_unread_total(self, user_id: int) -> int:
        return sum(self.unread_count(p.id, ROLE_EMPLOYEE) for p in self.store.list_projects(user_id=user_id))

    # =================================================================
    # ADMIN SUMMARIES
    # =================================================================
    def get_project_summaries(self) -> List[Dict[str, Any]]:
        """
        Every project with unread-by-admin count and last activity.

        last_activity = max(project creation, last comment, latest inquiry).
        Sorted most recent activity first.
        """
        users = {u.id: u for u in self.store.list_users()}
        latest_inquiry: Dict[int, Any] = {}
        for inquiry in self.store.list_inquiries():
            seen = latest_inquiry.get(inquiry.project_id)
            if seen is None or inquiry.created_at > seen:
                latest_inquiry[inquiry.project_id] = inquiry.created_at

        summaries = []
        for project in self.store.list_projects():
            comments = self.store.list_comments(project.id)
            unread = sum(1 for c in comments if c.role == ROLE_EMPLOYEE and not c.is_read)
            moments = [project.created_at]
            if comments:
                moments.append(comments[-1].created_at)
            if project.id in latest_inquiry:
                moments.append(latest_inquiry[project.id])

            summary = self.project_dict(project, users)
            summary["unread_count"] = unread
            summary["last_activity"] = max(moments)
            summaries.append(summary)

        summaries.sort(key=lambda s: s["last_activity"], reverse=True)
        return summaries

    def admin_overview(self) -> Dict[str, Any]:
        """Everything the admin dashboard renders in one payload."""
        users = self.store.list_users()
        by_id = {u.id: u for u in users}
        names = self._category_names()
        coefficients = self.store.get_coefficients()
        return {
            "users": [u.public_dict() for u in users],
            "categories": self.store.list_categories(),
            "devices": [self.device_dict(d, names) for d in self.store.list_devices()],
            "settings": coefficients.as_dict() if coefficients else None,
            "inquiries": self.store.list_inquiries(),
            "projects": [self.project_dict(p, by_id) for p in self.store.list_projects()],
            "unread_total": self.admin_unread_total(),
        }
