"""
pricedesk/storage/base.py

The storage contract shared by every backend.

The workflow service (pricedesk.services) depends only on this interface.
Concrete backends:
- LocalStore: in-process, persisted as one JSON document.
- SqlStore: relational, via Flask-SQLAlchemy.

Rules every backend must honour:
- Records go in and come out as pricedesk.domain dataclasses.
- save_* inserts when record.id is None (assigning a new id) and replaces
  the whole record otherwise.
- create_pending_inquiry is atomic: at most one pending inquiry per
  (user_id, device_id, project_id) can ever exist.
- decide_inquiry only moves a pending inquiry; anything else is a no-op.
"""

from __future__ import annotations

import abc
from datetime import datetime
from typing import List, Optional, Tuple

from ..domain import AuditEntry, Category, CoefficientSet, Comment, Device, Inquiry, Project, User


class PricingStore(abc.ABC):
    """Abstract storage backend."""

    name = "abstract"

    def prepare(self) -> None:
        """Create schema/files if the backend needs them. Idempotent."""

    def is_empty(self) -> bool:
        """True when no user exists yet (first start)."""
        return not self.list_users()

    # -------------------------------------------------------------
    # Users
    # -------------------------------------------------------------
    @abc.abstractmethod
    def list_users(self) -> List[User]: ...

    @abc.abstractmethod
    def get_user(self, user_id: int) -> Optional[User]: ...

    @abc.abstractmethod
    def find_user_by_username(self, username: str) -> Optional[User]:
        """Case-insensitive username match."""

    @abc.abstractmethod
    def save_user(self, user: User) -> User: ...

    @abc.abstractmethod
    def delete_user(self, user_id: int) -> bool: ...

    def count_active_admins(self, exclude_user_id: Optional[int] = None) -> int:
        return sum(
            1 for u in self.list_users()
            if u.is_active_admin and u.id != exclude_user_id
        )

    # -------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------
    @abc.abstractmethod
    def list_categories(self, active_only: bool = False) -> List[Category]: ...

    @abc.abstractmethod
    def get_category(self, category_id: int) -> Optional[Category]: ...

    @abc.abstractmethod
    def save_category(self, category: Category) -> Category: ...

    @abc.abstractmethod
    def delete_category(self, category_id: int) -> bool: ...

    # -------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------
    @abc.abstractmethod
    def list_devices(self, active_only: bool = False, category_id: Optional[int] = None) -> List[Device]: ...

    @abc.abstractmethod
    def get_device(self, device_id: int) -> Optional[Device]: ...

    @abc.abstractmethod
    def save_device(self, device: Device) -> Device: ...

    @abc.abstractmethod
    def delete_device(self, device_id: int) -> bool: ...

    # -------------------------------------------------------------
    # Coefficients (singleton)
    # -------------------------------------------------------------
    @abc.abstractmethod
    def get_coefficients(self) -> Optional[CoefficientSet]: ...

    @abc.abstractmethod
    def set_coefficients(self, coefficients: CoefficientSet) -> None:
        """Replace the whole coefficient set in one write."""

    # -------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------
    @abc.abstractmethod
    def create_project(self, project: Project) -> Project: ...

    @abc.abstractmethod
    def get_project(self, project_id: int) -> Optional[Project]: ...

    @abc.abstractmethod
    def list_projects(self, user_id: Optional[int] = None) -> List[Project]:
        """Newest first."""

    # -------------------------------------------------------------
    # Inquiries
    # -------------------------------------------------------------
    @abc.abstractmethod
    def create_pending_inquiry(self, inquiry: Inquiry) -> Tuple[Inquiry, bool]:
        """
        Insert `inquiry` unless a pending one exists for the same
        (user_id, device_id, project_id).

        Returns (stored inquiry, created flag). When created is False the
        existing pending inquiry is returned unchanged.
        """

    @abc.abstractmethod
    def find_pending_inquiry(self, user_id: int, device_id: int, project_id: int) -> Optional[Inquiry]: ...

    @abc.abstractmethod
    def get_inquiry(self, inquiry_id: int) -> Optional[Inquiry]: ...

    @abc.abstractmethod
    def list_inquiries(self, user_id: Optional[int] = None, project_id: Optional[int] = None) -> List[Inquiry]:
        """Newest first."""

    @abc.abstractmethod
    def decide_inquiry(self, inquiry_id: int, status: str, responded_at: datetime) -> bool:
        """Move a pending inquiry to `status`. Returns False when nothing changed."""

    # -------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------
    @abc.abstractmethod
    def add_comment(self, comment: Comment) -> Comment: ...

    @abc.abstractmethod
    def list_comments(self, project_id: Optional[int] = None) -> List[Comment]:
        """Oldest first."""

    @abc.abstractmethod
    def mark_comments_read(self, project_id: int, author_role: str) -> int:
        """Flip unread comments of `author_role` in the project. Returns count."""

    def count_unread(self, project_id: int, author_role: str) -> int:
        return sum(
            1 for c in self.list_comments(project_id)
            if c.role == author_role and not c.is_read
        )

    # -------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------
    @abc.abstractmethod
    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry: ...

    @abc.abstractmethod
    def list_audit_entries(self, limit: int = 100) -> List[AuditEntry]:
        """Newest first."""
