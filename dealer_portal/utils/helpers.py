"""Shared input-parsing helpers for service-layer validation.

parse_date_input:  ISO / DD.MM.YYYY string → date, raises ValueError on bad input
parse_decimal:     number or numeric string → Decimal, raises ValueError on bad input
parse_bool:        JSON bool or common string spellings → bool
"""
from datetime import date, datetime
from decimal import Decimal, InvalidOperation


def parse_date_input(value):
    """Parse a date string, raising ValueError on bad input.

    Supports: YYYY-MM-DD, YYYY-MM-DDTHH:MM:SS, DD.MM.YYYY, date objects.
    Empty input returns None.
    """
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value))
    except ValueError:
        pass
    try:
        return datetime.fromisoformat(str(value)).date()
    except ValueError:
        pass
    try:
        return datetime.strptime(str(value), "%d.%m.%Y").date()
    except ValueError as exc:
        raise ValueError(
            "Invalid date format. Use YYYY-MM-DD or DD.MM.YYYY."
        ) from exc


def parse_datetime_input(value):
    """Parse an ISO datetime (or bare date, as midnight).  None for empty input."""
    if value in (None, ""):
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise ValueError("Invalid datetime format. Use ISO 8601.") from exc


def parse_decimal(value):
    """Coerce a JSON number or numeric string to Decimal.

    Floats go through ``str()`` so 12.333 stays 12.333 instead of its
    binary expansion.  Booleans are rejected.
    """
    if isinstance(value, bool):
        raise ValueError("Expected a number")
    if isinstance(value, Decimal):
        return value
    try:
        result = Decimal(str(value).strip())
    except (InvalidOperation, ValueError) as exc:
        raise ValueError("Expected a number") from exc
    if not result.is_finite():
        raise ValueError("Expected a finite number")
    return result


def parse_bool(value):
    """Parse a JSON bool or 'true'/'false'/'1'/'0' string."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "1", "yes", "on"):
        return True
    if isinstance(value, str) and value.strip().lower() in ("false", "0", "no", "off"):
        return False
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    raise ValueError("Expected a boolean")
