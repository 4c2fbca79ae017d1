"""
pricedesk/storage/local.py

In-process store persisted as a single JSON document.

Layout (one key per collection, each a JSON array; settings is one object):

    {
      "users": [...], "categories": [...], "devices": [...],
      "settings": {...}, "projects": [...], "inquiries": [...],
      "comments": [...], "audit_logs": [...],
      "sequences": {"users": 3, ...}
    }

Decimals are written as strings and datetimes as ISO-8601 so a reload
yields byte-identical values.

Concurrency:
- One RLock serialises every read-modify-write, which is what makes
  create_pending_inquiry atomic inside a process.
- The file is rewritten via a temp file + os.replace after each mutation.
- Not safe for several processes sharing one file; use SqlStore for that.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from dataclasses import asdict, fields
from datetime import datetime
from decimal import Decimal
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple, Type, TypeVar

from ..domain import (
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
from .base import PricingStore

logger = logging.getLogger(__name__)

T = TypeVar("T")

COLLECTIONS = {
    "users": User,
    "categories": Category,
    "devices": Device,
    "projects": Project,
    "inquiries": Inquiry,
    "comments": Comment,
    "audit_logs": AuditEntry,
}


# ---------------------------------------------------------------------
# Encoding helpers
# ---------------------------------------------------------------------
def _encode_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def encode_record(record: Any) -> Dict[str, Any]:
    """Dataclass -> JSON-safe dict."""
    return {key: _encode_value(value) for key, value in asdict(record).items()}


def decode_record(cls: Type[T], data: Dict[str, Any]) -> T:
    """JSON dict -> dataclass, restoring Decimal and datetime fields."""
    kwargs = {}
    for f in fields(cls):
        if f.name not in data:
            continue
        value = data[f.name]
        type_name = str(f.type)
        if value is not None and "Decimal" in type_name:
            value = Decimal(value)
        elif value is not None and "datetime" in type_name:
            value = datetime.fromisoformat(value)
        kwargs[f.name] = value
    return cls(**kwargs)


def _empty_document() -> Dict[str, Any]:
    doc: Dict[str, Any] = {name: [] for name in COLLECTIONS}
    doc["settings"] = None
    doc["sequences"] = {name: 0 for name in COLLECTIONS}
    return doc


class LocalStore(PricingStore):
    """JSON-document backend. path=None keeps everything in memory."""

    name = "local"

    def __init__(self, path: Optional[str | os.PathLike] = None):
        self.path = Path(path) if path else None
        self._lock = threading.RLock()
        self._doc = self._load()

    # -------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------
    def _load(self) -> Dict[str, Any]:
        doc = _empty_document()
        if self.path is None or not self.path.exists():
            return doc

        with self.path.open("r", encoding="utf-8") as fh:
            stored = json.load(fh)

        for key in doc:
            if key in stored:
                doc[key] = stored[key]
        # Sequences must never fall behind existing ids.
        for name in COLLECTIONS:
            highest = max((row["id"] for row in doc[name]), default=0)
            doc["sequences"][name] = max(doc["sequences"].get(name, 0), highest)
        logger.info("Loaded local store from %s", self.path)
        return doc

    def _save(self) -> None:
        if self.path is None:
            return
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(self._doc, fh, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
        except Exception:
            os.unlink(tmp_path)
            raise

    def _next_id(self, collection: str) -> int:
        self._doc["sequences"][collection] += 1
        return self._doc["sequences"][collection]

    # -------------------------------------------------------------
    # Generic collection helpers
    # -------------------------------------------------------------
    def _rows(self, collection: str) -> List[Dict[str, Any]]:
        return self._doc[collection]

    def _all(self, collection: str, predicate: Optional[Callable[[Any], bool]] = None) -> List[Any]:
        cls = COLLECTIONS[collection]
        with self._lock:
            records = [decode_record(cls, row) for row in self._rows(collection)]
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        return records

    def _get(self, collection: str, record_id: int) -> Optional[Any]:
        cls = COLLECTIONS[collection]
        with self._lock:
            for row in self._rows(collection):
                if row["id"] == record_id:
                    return decode_record(cls, row)
        return None

    def _upsert(self, collection: str, record: T) -> T:
        with self._lock:
            rows = self._rows(collection)
            if record.id is None:
                record.id = self._next_id(collection)
                rows.append(encode_record(record))
            else:
                for idx, row in enumerate(rows):
                    if row["id"] == record.id:
                        rows[idx] = encode_record(record)
                        break
                else:
                    rows.append(encode_record(record))
                    seq = self._doc["sequences"]
                    seq[collection] = max(seq[collection], record.id)
            self._save()
        return record

    def _delete(self, collection: str, record_id: int) -> bool:
        with self._lock:
            rows = self._rows(collection)
            kept = [row for row in rows if row["id"] != record_id]
            if len(kept) == len(rows):
                return False
            self._doc[collection] = kept
            self._save()
        return True

    # -------------------------------------------------------------
    # Users
    # -------------------------------------------------------------
    def list_users(self) -> List[User]:
        return sorted(self._all("users"), key=lambda u: u.username.lower())

    def get_user(self, user_id: int) -> Optional[User]:
        return self._get("users", user_id)

    def find_user_by_username(self, username: str) -> Optional[User]:
        wanted = (username or "").strip().lower()
        for user in self._all("users"):
            if user.username.lower() == wanted:
                return user
        return None

    def save_user(self, user: User) -> User:
        return self._upsert("users", user)

    def delete_user(self, user_id: int) -> bool:
        return self._delete("users", user_id)

    # -------------------------------------------------------------
    # Categories
    # -------------------------------------------------------------
    def list_categories(self, active_only: bool = False) -> List[Category]:
        records = self._all("categories", (lambda c: c.is_active) if active_only else None)
        return sorted(records, key=lambda c: c.name.lower())

    def get_category(self, category_id: int) -> Optional[Category]:
        return self._get("categories", category_id)

    def save_category(self, category: Category) -> Category:
        return self._upsert("categories", category)

    def delete_category(self, category_id: int) -> bool:
        return self._delete("categories", category_id)

    # -------------------------------------------------------------
    # Devices
    # -------------------------------------------------------------
    def list_devices(self, active_only: bool = False, category_id: Optional[int] = None) -> List[Device]:
        def keep(device: Device) -> bool:
            if active_only and not device.is_active:
                return False
            if category_id is not None and device.category_id != category_id:
                return False
            return True

        return sorted(self._all("devices", keep), key=lambda d: d.model_name.lower())

    def get_device(self, device_id: int) -> Optional[Device]:
        return self._get("devices", device_id)

    def save_device(self, device: Device) -> Device:
        return self._upsert("devices", device)

    def delete_device(self, device_id: int) -> bool:
        return self._delete("devices", device_id)

    # -------------------------------------------------------------
    # Coefficients
    # -------------------------------------------------------------
    def get_coefficients(self) -> Optional[CoefficientSet]:
        with self._lock:
            stored = self._doc["settings"]
            if stored is None:
                return None
            return CoefficientSet(**{name: Decimal(stored[name]) for name in CoefficientSet.FIELDS})

    def set_coefficients(self, coefficients: CoefficientSet) -> None:
        with self._lock:
            self._doc["settings"] = {name: str(value) for name, value in coefficients.as_dict().items()}
            self._save()

    # -------------------------------------------------------------
    # Projects
    # -------------------------------------------------------------
    def create_project(self, project: Project) -> Project:
        project.id = None
        return self._upsert("projects", project)

    def get_project(self, project_id: int) -> Optional[Project]:
        return self._get("projects", project_id)

    def list_projects(self, user_id: Optional[int] = None) -> List[Project]:
        records = self._all("projects", (lambda p: p.user_id == user_id) if user_id is not None else None)
        return sorted(records, key=lambda p: (p.created_at, p.id), reverse=True)

    # -------------------------------------------------------------
    # Inquiries
    # -------------------------------------------------------------
    def find_pending_inquiry(self, user_id: int, device_id: int, project_id: int) -> Optional[Inquiry]:
        with self._lock:
            for row in self._rows("inquiries"):
                if (
                    row["user_id"] == user_id
                    and row["device_id"] == device_id
                    and row["project_id"] == project_id
                    and row["status"] == STATUS_PENDING
                ):
                    return decode_record(Inquiry, row)
        return None

    def create_pending_inquiry(self, inquiry: Inquiry) -> Tuple[Inquiry, bool]:
        with self._lock:
            existing = self.find_pending_inquiry(inquiry.user_id, inquiry.device_id, inquiry.project_id)
            if existing is not None:
                return existing, False
            inquiry.id = None
            inquiry.status = STATUS_PENDING
            return self._upsert("inquiries", inquiry), True

    def get_inquiry(self, inquiry_id: int) -> Optional[Inquiry]:
        return self._get("inquiries", inquiry_id)

    def list_inquiries(self, user_id: Optional[int] = None, project_id: Optional[int] = None) -> List[Inquiry]:
        def keep(inquiry: Inquiry) -> bool:
            if user_id is not None and inquiry.user_id != user_id:
                return False
            if project_id is not None and inquiry.project_id != project_id:
                return False
            return True

        return sorted(self._all("inquiries", keep), key=lambda i: (i.created_at, i.id), reverse=True)

    def decide_inquiry(self, inquiry_id: int, status: str, responded_at: datetime) -> bool:
        with self._lock:
            for row in self._rows("inquiries"):
                if row["id"] != inquiry_id:
                    continue
                if row["status"] != STATUS_PENDING:
                    return False
                row["status"] = status
                row["responded_at"] = responded_at.isoformat()
                self._save()
                return True
        return False

    # -------------------------------------------------------------
    # Comments
    # -------------------------------------------------------------
    def add_comment(self, comment: Comment) -> Comment:
        comment.id = None
        return self._upsert("comments", comment)

    def list_comments(self, project_id: Optional[int] = None) -> List[Comment]:
        records = self._all("comments", (lambda c: c.project_id == project_id) if project_id is not None else None)
        return sorted(records, key=lambda c: (c.created_at, c.id))

    def mark_comments_read(self, project_id: int, author_role: str) -> int:
        changed = 0
        with self._lock:
            for row in self._rows("comments"):
                if row["project_id"] == project_id and row["role"] == author_role and not row["is_read"]:
                    row["is_read"] = True
                    changed += 1
            if changed:
                self._save()
        return changed

    # -------------------------------------------------------------
    # Audit
    # -------------------------------------------------------------
    def add_audit_entry(self, entry: AuditEntry) -> AuditEntry:
        entry.id = None
        return self._upsert("audit_logs", entry)

    def list_audit_entries(self, limit: int = 100) -> List[AuditEntry]:
        records = sorted(self._all("audit_logs"), key=lambda e: (e.created_at, e.id), reverse=True)
        return records[:limit]
