"""
JSON rendering for API responses.

- Decimal   -> string (exact; clients must not round-trip through float)
- datetime  -> ISO-8601
- User      -> public_dict() (credential hash never leaves the server)
- PriceBreakdown and other dataclasses -> dict
"""

from __future__ import annotations

from dataclasses import asdict, is_dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from flask.json.provider import DefaultJSONProvider

from .domain import User
from .pricing import PriceBreakdown


def to_jsonable(o: Any) -> Any:
    if isinstance(o, Decimal):
        return str(o)
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    if isinstance(o, User):
        return o.public_dict()
    if isinstance(o, PriceBreakdown):
        return o.as_dict()
    if is_dataclass(o) and not isinstance(o, type):
        return asdict(o)
    raise TypeError(f"Object of type {type(o).__name__} is not JSON serializable")


class PriceDeskJSONProvider(DefaultJSONProvider):
    """Flask JSON provider using to_jsonable for non-native types."""

    default = staticmethod(to_jsonable)
