"""
Tolerant field accessors for upstream payloads.

None of these raise on malformed input: absent or unparseable numbers become
zero, absent references become None.
"""

from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Any

from dateutil import parser as date_parser

ZERO = Decimal("0")


def parse_amount(value: Any) -> Decimal:
    """
    Parse a monetary or numeric value.

    Examples:
        >>> parse_amount("1,234.50")
        Decimal('1234.50')
        >>> parse_amount(None)
        Decimal('0')
        >>> parse_amount("n/a")
        Decimal('0')
    """
    if value is None or isinstance(value, bool):
        return ZERO
    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        return Decimal(value)
    elif isinstance(value, float):
        result = Decimal(str(value))
    else:
        text = str(value).strip().replace(",", "")
        if not text:
            return ZERO
        try:
            result = Decimal(text)
        except InvalidOperation:
            return ZERO
    if not result.is_finite():
        return ZERO
    return result


def parse_optional_amount(value: Any) -> Decimal | None:
    """Like parse_amount but keeps absence distinct from zero."""
    if value is None or value == "":
        return None
    return parse_amount(value)


def parse_bool(value: Any) -> bool | None:
    if value is None:
        return None
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "t", "yes", "y", "1"):
        return True
    if text in ("false", "f", "no", "n", "0"):
        return False
    return None


def to_str(value: Any) -> str | None:
    """Stringify ids and codes; empty strings become None."""
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return None
    text = str(value)
    return text if text != "" else None


def ref_name(value: Any) -> str | None:
    """Display name of an ERP reference object ({"id": ..., "refName": ...})."""
    if isinstance(value, dict):
        return to_str(value.get("refName"))
    return None


def ref_id(value: Any) -> str | None:
    """Identifier of an ERP reference object."""
    if isinstance(value, dict):
        return to_str(value.get("id"))
    return None


def parse_datetime(value: Any) -> datetime | None:
    """
    Parse a date or timestamp leniently.

    Naive values are taken as UTC. Returns None when the value is absent or
    cannot be parsed.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        try:
            parsed = date_parser.isoparse(text)
        except (ValueError, OverflowError):
            try:
                parsed = date_parser.parse(text)
            except (ValueError, OverflowError):
                return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed
