"""
pricedesk/domain.py

Storage-neutral records shared by both backends.

Both LocalStore and SqlStore accept and return these dataclasses, so the
workflow service never sees an ORM row or a raw JSON dict.

Snapshot fields (Inquiry.*_name, Inquiry.sell_price, Comment.user_full_name,
Comment.role) are copied at creation time and never refreshed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from flask_login import UserMixin
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import ValidationError
from .utils import check_scale, to_decimal

ROLE_ADMIN = "admin"
ROLE_EMPLOYEE = "employee"
ROLES = (ROLE_ADMIN, ROLE_EMPLOYEE)

STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
STATUS_REJECTED = "rejected"
DECISION_STATUSES = (STATUS_APPROVED, STATUS_REJECTED)


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo, so we never store it)."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def other_role(role: str) -> str:
    """The counterparty role in a project chat."""
    return ROLE_EMPLOYEE if role == ROLE_ADMIN else ROLE_ADMIN


# ---------------------------------------------------------------------
# Coefficients
# ---------------------------------------------------------------------
@dataclass
class CoefficientSet:
    """
    Global pricing coefficients (one active instance).

    D    discount multiplier
    F    freight rate per unit length
    CN   customs numerator
    CD   customs denominator
    WR   warranty rate
    COM  internal commission factor (divisor)
    OFF  company/office cost factor (divisor)
    PF   profit factor (divisor)
    """

    D: Decimal
    F: Decimal
    CN: Decimal
    CD: Decimal
    WR: Decimal
    COM: Decimal
    OFF: Decimal
    PF: Decimal

    FIELDS = ("D", "F", "CN", "CD", "WR", "COM", "OFF", "PF")
    DIVISORS = ("CD", "COM", "OFF", "PF")
    # NUMERIC(20, 8) in the relational store
    DIGITS = 20
    PLACES = 8

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "CoefficientSet":
        """Build from a dict; every coefficient is required (wholesale replace)."""
        missing = [name for name in cls.FIELDS if name not in data]
        if missing:
            raise ValidationError(f"Missing coefficients: {', '.join(missing)}.")
        return cls(**{name: to_decimal(data[name], name) for name in cls.FIELDS})

    def validate(self) -> None:
        """Multipliers must be >= 0; divisors strictly > 0; at most 8 decimal places."""
        for name in self.FIELDS:
            value = getattr(self, name)
            if not isinstance(value, Decimal) or not value.is_finite():
                raise ValidationError(f"{name} must be a finite number.")
            check_scale(value, name, self.DIGITS, self.PLACES)
            if value < 0:
                raise ValidationError(f"{name} must not be negative.")
            if name in self.DIVISORS and value == 0:
                raise ValidationError(f"{name} must be greater than zero.")

    def as_dict(self) -> Dict[str, Decimal]:
        return {name: getattr(self, name) for name in self.FIELDS}


# ---------------------------------------------------------------------
# Master data
# ---------------------------------------------------------------------
@dataclass
class Category:
    id: Optional[int]
    name: str
    is_active: bool = True


@dataclass
class Device:
    """Catalog device. factory_price/length/weight are admin-only fields."""

    id: Optional[int]
    model_name: str
    category_id: Optional[int]
    factory_price: Decimal
    length: Decimal
    weight: Decimal
    is_active: bool = True

    PRIVILEGED_FIELDS = ("factory_price", "length", "weight")
    # (digits, places) of each cost column
    SCALES = {
        "factory_price": (14, 2),
        "length": (12, 4),
        "weight": (12, 4),
    }


@dataclass
class User(UserMixin):
    """
    Login user.

    password_hash is None for accounts without a credential; those log in
    by username alone.
    """

    id: Optional[int]
    username: str
    full_name: str
    role: str = ROLE_EMPLOYEE
    is_active: bool = True
    password_hash: Optional[str] = field(default=None, repr=False)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    @property
    def is_active_admin(self) -> bool:
        return self.is_active and self.role == ROLE_ADMIN

    def set_password(self, password: Any) -> None:
        self.password_hash = generate_password_hash(str(password))

    def check_password(self, password: Any) -> bool:
        """JSON clients may send numbers; compare their text form."""
        if self.password_hash is None:
            return True
        return check_password_hash(self.password_hash, "" if password is None else str(password))

    def public_dict(self) -> Dict[str, Any]:
        """User without its credential hash."""
        return {
            "id": self.id,
            "username": self.username,
            "full_name": self.full_name,
            "role": self.role,
            "is_active": self.is_active,
            "has_password": self.password_hash is not None,
        }


# ---------------------------------------------------------------------
# Workflow records
# ---------------------------------------------------------------------
@dataclass
class Project:
    id: Optional[int]
    name: str
    user_id: int
    created_at: datetime = field(default_factory=utcnow)


@dataclass
class Inquiry:
    """Price request ledger entry. Only status/responded_at ever change."""

    id: Optional[int]
    user_id: int
    user_full_name: str
    device_id: int
    model_name: str
    category_name: str
    project_id: int
    project_name: str
    sell_price: int
    created_at: datetime = field(default_factory=utcnow)
    status: str = STATUS_PENDING
    responded_at: Optional[datetime] = None

    def visible_price(self) -> Optional[int]:
        """Employee-facing price: hidden unless approved."""
        return self.sell_price if self.status == STATUS_APPROVED else None

    def status_dict(self) -> Dict[str, Any]:
        """Employee projection (RequestStatus)."""
        return {
            "request_id": self.id,
            "device_id": self.device_id,
            "project_id": self.project_id,
            "model_name": self.model_name,
            "category_name": self.category_name,
            "project_name": self.project_name,
            "status": self.status,
            "price": self.visible_price(),
            "timestamp": self.created_at,
        }


@dataclass
class Comment:
    id: Optional[int]
    project_id: int
    user_id: int
    user_full_name: str
    role: str
    content: str
    created_at: datetime = field(default_factory=utcnow)
    is_read: bool = False


@dataclass
class AuditEntry:
    """WHO did WHAT to WHICH record, with before/after JSON snapshots."""

    id: Optional[int]
    user_id: Optional[int]
    username_snapshot: Optional[str]
    entity_type: str
    entity_id: int
    action: str
    before_data: Optional[str] = None
    after_data: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: datetime = field(default_factory=utcnow)
