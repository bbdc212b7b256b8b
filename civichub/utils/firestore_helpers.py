"""
Firestore helpers shared by the services.

NOTE: For firebase_admin SDK, we use positional arguments which still work.
The deprecation warning is just a warning - the functionality is still supported.
"""

from datetime import datetime, timezone
from typing import Any, Dict, Optional


def where_filter(query, field_path: str, op_string: str, value):
    """
    Helper function for Firestore queries.

    Usage:
        query = where_filter(collection, "department", "==", "water")
        query = where_filter(query, "status", "==", "working")
    """
    return query.where(field_path, op_string, value)


def snapshot_to_dict(doc) -> Optional[Dict[str, Any]]:
    """Document snapshot → dict with its id, or None if the document is missing."""
    if not doc.exists:
        return None
    data = doc.to_dict() or {}
    data["id"] = doc.id
    return data


def parse_timestamp(value) -> Optional[datetime]:
    """Parse various timestamp formats to timezone-aware datetime (UTC)."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, str):
        try:
            dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt
    # Firestore Timestamp interface
    if hasattr(value, "timestamp"):
        return datetime.fromtimestamp(value.timestamp(), tz=timezone.utc)
    return None
