"""
pricedesk/audit.py

Audit logging helper utilities.

Goals:
- Capture WHO did WHAT to WHICH record, with BEFORE/AFTER snapshots.
- Store username snapshot to preserve identity even if username changes later.
- Store IP address for traceability.

IMPORTANT:
- Entries go through the active store, so both backends keep an audit trail.
- Credential hashes are never written into a snapshot.
"""

from __future__ import annotations

import json
from dataclasses import asdict, is_dataclass
from typing import Any, Dict, Optional

from .domain import AuditEntry, User
from .storage.base import PricingStore

ACTION_CREATE = "CREATE"
ACTION_UPDATE = "UPDATE"
ACTION_DELETE = "DELETE"
ACTION_DECIDE = "DECIDE"

REDACTED_KEYS = {"password_hash"}


def _safe_str(value: Any) -> Optional[str]:
    """Stable string form for Decimal/datetime/etc; None stays None."""
    if value is None:
        return None
    return str(value)


def serialize_record(record: Any) -> Dict[str, Optional[str]]:
    """
    Snapshot a domain record as a dict of strings.

    Values are stringified so Decimal and datetime survive json.dumps
    identically on both backends.
    """
    if is_dataclass(record):
        data = asdict(record)
    else:
        data = dict(record)
    return {key: _safe_str(value) for key, value in data.items() if key not in REDACTED_KEYS}


def log_action(
    store: PricingStore,
    entity: Any,
    action: str,
    *,
    actor: Optional[User] = None,
    before: Optional[Dict[str, Any]] = None,
    after: Optional[Dict[str, Any]] = None,
    ip_address: Optional[str] = None,
    entity_type: Optional[str] = None,
) -> AuditEntry:
    """
    Record an audit entry for `entity` (any record with an `id`).

    Parameters:
        store: backend receiving the entry
        entity: domain record with .id (after insert)
        action: CREATE / UPDATE / DELETE / DECIDE
        actor: the acting user (None for system actions such as seeding)
        before/after: dict snapshots (optional)
    """
    entity_id = getattr(entity, "id", None)
    if entity_id is None:
        raise ValueError("log_action entity must have an 'id' attribute (after insert).")

    entry = AuditEntry(
        id=None,
        user_id=actor.id if actor is not None else None,
        username_snapshot=actor.username if actor is not None else None,
        entity_type=entity_type or entity.__class__.__name__,
        entity_id=int(entity_id),
        action=str(action),
        before_data=json.dumps(before, ensure_ascii=False) if before else None,
        after_data=json.dumps(after, ensure_ascii=False) if after else None,
        ip_address=ip_address,
    )
    return store.add_audit_entry(entry)
