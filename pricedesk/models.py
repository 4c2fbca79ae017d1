"""
PriceDesk – Relational Models

Tables backing SqlStore. Each model converts to/from its storage-neutral
record in pricedesk.domain, so nothing above the storage layer imports
these classes.

Reference rules:
- Inquiry/Comment user, device and project ids are plain indexed columns,
  not foreign keys: the ledger keeps its snapshots after the referenced
  record is edited or deleted.
- Device.category_id is also a plain column; deleting a category leaves
  devices pointing at a missing id ("removed" in admin views).
- One pending inquiry per (user, device, project) is enforced by a partial
  unique index (SQLite and PostgreSQL).
"""

from __future__ import annotations

from decimal import Decimal

from . import domain
from .domain import STATUS_PENDING, utcnow
from .extensions import db


# ---------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------
class User(db.Model):
    """System login user."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)

    username = db.Column(db.String(80), unique=True, nullable=False, index=True)
    password_hash = db.Column(db.String(255), nullable=True)

    full_name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, default=domain.ROLE_EMPLOYEE, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_domain(self) -> domain.User:
        return domain.User(
            id=self.id,
            username=self.username,
            full_name=self.full_name,
            role=self.role,
            is_active=bool(self.is_active),
            password_hash=self.password_hash,
        )

    def apply(self, record: domain.User) -> None:
        self.username = record.username
        self.full_name = record.full_name
        self.role = record.role
        self.is_active = record.is_active
        self.password_hash = record.password_hash

    def __repr__(self):
        return f"<User {self.username}>"


# ---------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------
class Category(db.Model):
    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow)

    def to_domain(self) -> domain.Category:
        return domain.Category(id=self.id, name=self.name, is_active=bool(self.is_active))

    def apply(self, record: domain.Category) -> None:
        self.name = record.name
        self.is_active = record.is_active


class Device(db.Model):
    """Catalog device. Cost fields are admin-only at the API level."""

    __tablename__ = "devices"

    id = db.Column(db.Integer, primary_key=True)

    model_name = db.Column(db.String(200), nullable=False, index=True)
    category_id = db.Column(db.Integer, nullable=True, index=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    factory_price = db.Column(db.Numeric(*domain.Device.SCALES["factory_price"]), nullable=False, default=Decimal("0.00"))
    length = db.Column(db.Numeric(*domain.Device.SCALES["length"]), nullable=False, default=Decimal("0"))
    weight = db.Column(db.Numeric(*domain.Device.SCALES["weight"]), nullable=False, default=Decimal("0"))

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    def to_domain(self) -> domain.Device:
        return domain.Device(
            id=self.id,
            model_name=self.model_name,
            category_id=self.category_id,
            factory_price=Decimal(str(self.factory_price)),
            length=Decimal(str(self.length)),
            weight=Decimal(str(self.weight)),
            is_active=bool(self.is_active),
        )

    def apply(self, record: domain.Device) -> None:
        self.model_name = record.model_name
        self.category_id = record.category_id
        self.is_active = record.is_active
        self.factory_price = record.factory_price
        self.length = record.length
        self.weight = record.weight

    def __repr__(self):
        return f"<Device {self.model_name}>"


# ---------------------------------------------------------------------
# Coefficients (single row, id=1)
# ---------------------------------------------------------------------
COEFFICIENT_NUMERIC = db.Numeric(domain.CoefficientSet.DIGITS, domain.CoefficientSet.PLACES)


class GlobalSettings(db.Model):
    """
    The active coefficient set.

    Stored as one row that is overwritten wholesale.
    """

    __tablename__ = "global_settings"

    SINGLETON_ID = 1

    id = db.Column(db.Integer, primary_key=True)

    discount_multiplier = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # D
    freight_rate_per_length = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # F
    customs_numerator = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # CN
    customs_denominator = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # CD
    warranty_rate = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # WR
    internal_commission_factor = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # COM
    company_cost_factor = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # OFF
    profit_factor = db.Column(COEFFICIENT_NUMERIC, nullable=False)  # PF

    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    COLUMN_FOR = {
        "D": "discount_multiplier",
        "F": "freight_rate_per_length",
        "CN": "customs_numerator",
        "CD": "customs_denominator",
        "WR": "warranty_rate",
        "COM": "internal_commission_factor",
        "OFF": "company_cost_factor",
        "PF": "profit_factor",
    }

    def to_domain(self) -> domain.CoefficientSet:
        return domain.CoefficientSet(
            **{name: Decimal(str(getattr(self, column))) for name, column in self.COLUMN_FOR.items()}
        )

    def apply(self, record: domain.CoefficientSet) -> None:
        for name, column in self.COLUMN_FOR.items():
            setattr(self, column, getattr(record, name))


# ---------------------------------------------------------------------
# Projects, ledger, chat
# ---------------------------------------------------------------------
class Project(db.Model):
    __tablename__ = "projects"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(200), nullable=False)
    user_id = db.Column(db.Integer, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def to_domain(self) -> domain.Project:
        return domain.Project(id=self.id, name=self.name, user_id=self.user_id, created_at=self.created_at)


class Inquiry(db.Model):
    """Price request ledger entry with name/price snapshots."""

    __tablename__ = "inquiries"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, nullable=False, index=True)
    user_full_name = db.Column(db.String(200), nullable=False)

    device_id = db.Column(db.Integer, nullable=False, index=True)
    model_name = db.Column(db.String(200), nullable=False)
    category_name = db.Column(db.String(120), nullable=False)

    project_id = db.Column(db.Integer, nullable=False, index=True)
    project_name = db.Column(db.String(200), nullable=False)

    sell_price = db.Column(db.BigInteger, nullable=False)

    status = db.Column(db.String(20), nullable=False, default=STATUS_PENDING, index=True)
    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)
    responded_at = db.Column(db.DateTime, nullable=True)

    __table_args__ = (
        db.Index(
            "uq_inquiry_pending_triple",
            "user_id",
            "device_id",
            "project_id",
            unique=True,
            sqlite_where=db.text("status = 'pending'"),
            postgresql_where=db.text("status = 'pending'"),
        ),
    )

    @classmethod
    def from_domain(cls, record: domain.Inquiry) -> "Inquiry":
        return cls(
            user_id=record.user_id,
            user_full_name=record.user_full_name,
            device_id=record.device_id,
            model_name=record.model_name,
            category_name=record.category_name,
            project_id=record.project_id,
            project_name=record.project_name,
            sell_price=record.sell_price,
            status=record.status,
            created_at=record.created_at,
            responded_at=record.responded_at,
        )

    def to_domain(self) -> domain.Inquiry:
        return domain.Inquiry(
            id=self.id,
            user_id=self.user_id,
            user_full_name=self.user_full_name,
            device_id=self.device_id,
            model_name=self.model_name,
            category_name=self.category_name,
            project_id=self.project_id,
            project_name=self.project_name,
            sell_price=int(self.sell_price),
            created_at=self.created_at,
            status=self.status,
            responded_at=self.responded_at,
        )


class Comment(db.Model):
    """Project chat message. The author's role is snapshotted."""

    __tablename__ = "comments"

    id = db.Column(db.Integer, primary_key=True)

    project_id = db.Column(db.Integer, nullable=False, index=True)
    user_id = db.Column(db.Integer, nullable=False, index=True)
    user_full_name = db.Column(db.String(200), nullable=False)
    role = db.Column(db.String(20), nullable=False, index=True)

    content = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, default=False, nullable=False, index=True)

    created_at = db.Column(db.DateTime, default=utcnow, nullable=False, index=True)

    def to_domain(self) -> domain.Comment:
        return domain.Comment(
            id=self.id,
            project_id=self.project_id,
            user_id=self.user_id,
            user_full_name=self.user_full_name,
            role=self.role,
            content=self.content,
            created_at=self.created_at,
            is_read=bool(self.is_read),
        )


class AuditLog(db.Model):
    """Audit trail of admin mutations."""

    __tablename__ = "audit_logs"

    id = db.Column(db.Integer, primary_key=True)

    user_id = db.Column(db.Integer, nullable=True, index=True)
    username_snapshot = db.Column(db.String(150), nullable=True)

    entity_type = db.Column(db.String(50), nullable=False, index=True)
    entity_id = db.Column(db.Integer, nullable=False, index=True)

    action = db.Column(db.String(20), nullable=False, index=True)

    before_data = db.Column(db.Text, nullable=True)
    after_data = db.Column(db.Text, nullable=True)

    ip_address = db.Column(db.String(45), nullable=True)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    def to_domain(self) -> domain.AuditEntry:
        return domain.AuditEntry(
            id=self.id,
            user_id=self.user_id,
            username_snapshot=self.username_snapshot,
            entity_type=self.entity_type,
            entity_id=self.entity_id,
            action=self.action,
            before_data=self.before_data,
            after_data=self.after_data,
            ip_address=self.ip_address,
            created_at=self.created_at,
        )
