"""
Utility functions shared across the app. This includes:
- to_decimal: strict Decimal parsing for prices, dimensions and coefficients.
- check_scale: reject Decimals the storage columns cannot hold exactly.
- parse_optional_int: lenient id parsing for query strings and payloads.
- parse_bool: checkbox/JSON boolean parsing.
- clean_text: trimmed text or None.
- request_payload: JSON or form body of the current request as a dict.
"""

from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Optional

from flask import request

from .errors import ValidationError


def to_decimal(value: Any, field: str = "value") -> Decimal:
    """
    Convert user/storage input to a finite Decimal.

    Accepts Decimal, int, float and numeric strings (comma or dot).
    Floats go through str() so 0.38 stays 0.38.
    """
    if isinstance(value, bool) or value is None:
        raise ValidationError(f"{field} must be a number.")
    if isinstance(value, Decimal):
        result = value
    else:
        raw = str(value).strip().replace(",", ".")
        if raw == "":
            raise ValidationError(f"{field} must be a number.")
        try:
            result = Decimal(raw)
        except (InvalidOperation, ValueError):
            raise ValidationError(f"{field} must be a number.") from None
    if not result.is_finite():
        raise ValidationError(f"{field} must be a finite number.")
    return result


def check_scale(value: Decimal, field: str, digits: int, places: int) -> Decimal:
    """
    Fail unless `value` fits NUMERIC(digits, places) without rounding.

    Both backends must hold the exact value an admin entered.
    """
    limit = Decimal(10) ** (digits - places)
    if abs(value) >= limit:
        raise ValidationError(f"{field} must be less than {limit}.")
    if value != value.quantize(Decimal(1).scaleb(-places)):
        raise ValidationError(f"{field} allows at most {places} decimal places.")
    return value


def parse_optional_int(value: Any) -> Optional[int]:
    """Parse an optional int. Returns None if empty/invalid."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    raw = str(value).strip()
    if raw == "":
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def parse_bool(value: Any, default: bool = False) -> bool:
    """Parse JSON booleans and form checkbox values ("on", "1", "true")."""
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "on", "yes"}


def clean_text(value: Any) -> Optional[str]:
    """Strip a text value; empty becomes None."""
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def request_payload() -> Dict[str, Any]:
    """Accept JSON or form posts."""
    if request.is_json:
        data = request.get_json(silent=True)
        if data is None:
            data = {}
        if not isinstance(data, dict):
            raise ValidationError("Request body must be a JSON object.")
    else:
        data = request.form.to_dict()
    return data
