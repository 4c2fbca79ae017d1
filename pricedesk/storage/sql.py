"""
pricedesk/storage/sql.py

Relational backend on Flask-SQLAlchemy.

Every public method runs in the current app context and commits its own
transaction, so each call is one request/response unit with no partial
writes left behind on error.

The pending-inquiry race is closed by the partial unique index
uq_inquiry_pending_triple: a losing concurrent insert hits IntegrityError,
rolls back and returns the winner's row.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from .. import models
from ..domain import (
    ROLE_ADMIN,
    STATUS_PENDING,
    AuditEntry,
    Category,
    CoefficientSet,
    Comment,
    Device,
    Inquiry,
    Project,
    User,
)
from ..extensions import db
from .base import PricingStore

logger = logging.getLogger(__name__)


class SqlStore(PricingStore):
    """SQLAlchemy backend (SQLite for development, PostgreSQL-ready)."""

    name = "sql"

    def prepare(self) -> None:
        db.create_all()

    def _upsert(self, model, record):
        row = db.session.get(model, record.id) if record.id is not None else None
        if row is None:
            row = model()
            if record.id is not None:
                row.id = record.id
            db.session.add(row)
        row.apply(record)
        db.session.commit()
        record.id = row.id
        return record

    def _delete(self, model, record_id: int) -> bool:
        row = db.session.get(model, record_id)
        if row is None:
            return False
        db.session.delete(row)
        db.session.commit()
        return True

    # -------------------------------------------------------------
    # Users
    # -------------------------------------------------------------
    def list_users(self) -> List[User]:
        rows = models.User.query.order_by(func.lower(models.User.username).asc()).all()
        return [r.to_domain() for r in rows]

    def is_empty(self) -> bool:
        return models.User.query.count() == 0

    def get_user(self, user_id: int) -> Optional[User]:
        row = db.session.get(models.User, user_id)
        return row.to_domain() if row else None

    def find_user_by_username(self, username: str) -> Optional[User]:
        wanted = (username or "").strip().lower()
        row = models.User.query.filter(func.lower(models.User.username) == wanted).first()
        return row.to_domain() if row else None

    def save_user(self, user: User) -> User:
        return self._upsert(models.User, user)

    def delete_user(self, user_id: int) -> bool:
        return self._delete(models.User, user_id)

    def count_active_admins(self, exclude_user_id: Optional[int] = None) -> int:
        q = models.User.query.filter(
            models.User.role == ROLE_ADMIN,
            models.User.is_active.is_(True),
        )
        if exclude_user_id is not None:
            q = q.filter(models.User.id != exclude_user_id)
        return q.count()

    # -------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------
    def list_categories(self, active_only: bool = False) -> List[Category]:
        q = models.Category.query
        if active_only:
            q = q.filter(models.Category.is_active.is_(True))
        return [r.to_domain() for r in q.order_by(func.lower(models.Category.name).asc()).all()]

    def get_category(self, category_id: int) -> Optional[Category]:
        row = db.session.get(models.Category, category_id)
        return row.to_domain() if row else None

    def save_category(self, category: Category) -> Category:
        return self._upsert(models.Category, category)

    def delete_category(self, category_id: int) -> bool:
        return self._delete(models.Category, category_id)

    # -------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------
    def list_devices(self, active_only: bool = False, category_id: Optional[int] = None) -> List[Device]:
        q = models.Device.query
        if active_only:
            q = q.filter(models.Device.is_active.is_(True))
        if category_id is not None:
            q = q.filter(models.Device.category_id == category_id)
        return [r.to_domain() for r in q.order_by(func.lower(models.Device.model_name).asc()).all()]

    def get_device(self, device_id: int) -> Optional[Device]:
        row = db.session.get(models.Device, device_id)
        return row.to_domain() if row else None

    def save_device(self, device: Device) -> Device:
        return self._upsert(models.Device, device)

    def delete_device(self, device_id: int) -> bool:
        return self._delete(models.Device, device_id)

    # -------------------------------------------------------------
    # Coefficients
    # -------------------------------------------------------------
    def get_coefficients(self) -> Optional[CoefficientSet]:
        row = db.session.get(models.GlobalSettings, models.GlobalSettings.SINGLETON_ID)
        return row.to_domain() if row else None

    def set_coefficients(self, coefficients: CoefficientSet) -> None:
        row = db.session.get(models.GlobalSettings, models.GlobalSettings.SINGLETON_ID)
        if row is None:
            row = models.GlobalSettings(id=models.GlobalSettings.SINGLETON_ID)
            db.session.add(row)
        row.apply(coefficients)
        db.session.commit()

    # -------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------
    def create_project(self, project: Project) -> Project:
        row = models.Project(name=project.name, user_id=project.user_id, created_at=project.created_at)
        db.session.add(row)
        db.session.commit()
        return row.to_domain()

    def get_project(self, project_id: int) -> Optional[Project]:
        row = db.session.get(models.Project, project_id)
        return row.to_domain() if row else None

    def list_projects(self, user_id: Optional[int] = None) -> List[Project]:
        q = models.Project.query
        if user_id is not None:
            q = q.filter(models.Project.user_id == user_id)
        rows = q.order_by(models.Project.created_at.desc(), models.Project.id.desc()).all()
        return [r.to_domain() for r in rows]

    # -------------------------------------------------------------
    # Inquiries
    # -------------------------------------------------------------
    def find_pending_inquiry(self, user_id: int, device_id: int, project_id: int) -> Optional[Inquiry]:
        row = models.Inquiry.query.filter_by(
            user_id=user_id,
            device_id=device_id,
            project_id=project_id,
            status=STATUS_PENDING,
        ).first()
        return row.to_domain() if row else None

    def create_pending_inquiry(self, inquiry: Inquiry) -> Tuple[Inquiry, bool]:
        existing = self.find_pending_inquiry(inquiry.user_id, inquiry.device_id, inquiry.project_id)
        if existing is not None:
            return existing, False

        inquiry.status = STATUS_PENDING
        row = models.Inquiry.from_domain(inquiry)
        db.session.add(row)
        try:
            db.session.commit()
        except IntegrityError:
            # Another request inserted the pending row between our check and insert.
            db.session.rollback()
            existing = self.find_pending_inquiry(inquiry.user_id, inquiry.device_id, inquiry.project_id)
            if existing is None:
                raise
            logger.info("Concurrent price request resolved to inquiry %s", existing.id)
            return existing, False
        return row.to_domain(), True

    def get_inquiry(self, inquiry_id: int) -> Optional[Inquiry]:
        row = db.session.get(models.Inquiry, inquiry_id)
        return row.to_domain() if row else None

    def list_inquiries(self, user_id: Optional[int] = None, project_id: Optional[int] = None) -> List[Inquiry]:
        q = models.Inquiry.query
        if user_id is not None:
            q = q.filter(models.Inquiry.user_id == user_id)
        if project_id is not None:
            q = q.filter(models.Inquiry.project_id == project_id)
        rows = q.order_by(models.Inquiry.created_at.desc(), models.Inquiry.id.desc()).all()
        return [r.to_domain() for r in rows]

    def decide_inquiry(self, inquiry_id: int, status: str, responded_at: datetime) -> bool:
        changed = (
            models.Inquiry.query
            .filter_by(id=inquiry_id, status=STATUS_PENDING)
            .update({"status": status, "responded_at": responded_at}, synchronize_session=False)
        )
        db.session.commit()
        db.session.expire_all()
        return bool(changed)

    # -------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------
    def add_comment(self, comment: Comment) -> Comment:
        row = models.Comment(
            project_id=comment.project_id,
            user_id=comment.user_id,
            user_full_name=comment.user_full_name,
            role=comment.role,
            content=comment.content,
            is_read=comment.is_read,
            created_at=comment.created_at,
        )
        db.session.add(row)
        db.session.commit()
        return row.to_domain()

    def list_comments(self, project_id: Optional[int] = None) -> List[Comment]:
        q = models.Comment.query
        if project_id is not None:
            q = q.filter(models.Comment.project_id == project_id)
        rows = q.order_by(models.Comment.created_at.asc(), models.Comment.id.asc()).all()
        return [r.to_domain() for r in rows]

    def mark_comments_read(self, project_id: int, author_role: str) -> int:
        changed = (
            models.Comment.query
            .filter(
                models.Comment.project_id == project_id,
                models.Comment.role == author_role,
                models.Comment.is_read.is_(False),
            )
            .update({"is_read": True}, synchronize_session=False)
        )
        db.session.commit()
        db.session.expire_all()
        return changed

    def count_unread(self, project_id: int, author_role: str) -> int:
        return models.Comment.query.filter(
            models.Comment.project_id == project_id,
            models.Comment.role == author_role,
            models.Comment.is_read.is_(False),
        ).count()

    # -------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------
    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        row = models.AuditLog(
            user_id=entry.user_id,
            username_snapshot=entry.username_snapshot,
            entity_type=entry.entity_type,
            entity_id=entry.entity_id,
            action=entry.action,
            before_data=entry.before_data,
            after_data=entry.after_data,
            ip_address=entry.ip_address,
            created_at=entry.created_at,
        )
        db.session.add(row)
        db.session.commit()
        return row.to_domain()

    def list_audit_entries(self, limit: int = 100) -> List[AuditEntry]:
        rows = (
            models.AuditLog.query
            .order_by(models.AuditLog.created_at.desc(), models.AuditLog.id.desc())
            .limit(limit)
            .all()
        )
        return [r.to_domain() for r in rows]
