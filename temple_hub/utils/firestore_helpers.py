"""
Firestore query and document helpers.

NOTE: For firebase_admin SDK, we use positional arguments for where() which
still work. The deprecation warning is just a warning.
"""

from datetime import date, datetime, timezone
from typing import Any, Dict, Optional, Union


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "role", "==", "volunteer")
        query = where_filter(query, "isActive", "==", True)
    """
    return query.where(field_path, op_string, value)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_datetime(value: Any) -> Optional[datetime]:
    """
    Normalize a stored timestamp to an aware UTC datetime.

    Firestore returns DatetimeWithNanoseconds (a datetime subclass); older
    records may carry naive datetimes or ISO strings.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if hasattr(value, "to_datetime"):
        return to_datetime(value.to_datetime())
    if isinstance(value, str):
        try:
            return to_datetime(datetime.fromisoformat(value.replace("Z", "+00:00")))
        except ValueError:
            return None
    return None


def snapshot_to_dict(doc) -> Optional[Dict[str, Any]]:
    """Convert a document snapshot to a plain dict with its ``id`` included."""
    if doc is None or not doc.exists:
        return None
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def normalize_date(value: Union[str, date, datetime]) -> str:
    """
    Reduce a date-like value to its ISO calendar date (``YYYY-MM-DD``).

    Follow-ups, sessions and attendance are keyed by calendar date, so
    "2025-03-02", "2025-03-02T18:30:00Z" and date(2025, 3, 2) all collapse to
    the same key.
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    text = str(value).strip()
    if not text:
        raise ValueError("Date is required")
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return date.fromisoformat(text[:10]).isoformat()
