"""
Result-row normalization for JSON responses and publish payloads.

Integers outside the safe-integer range (|v| > 2**53 - 1, the largest
integer a JSON consumer can hold in a double) are carried as their exact
decimal string; everything else is turned into a JSON-safe primitive.
"""

import uuid
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from typing import Any

MAX_SAFE_INTEGER = 2**53 - 1


def normalize_int(value: int) -> int | str:
    if -MAX_SAFE_INTEGER <= value <= MAX_SAFE_INTEGER:
        return value
    return str(value)


def normalize_value(obj: Any) -> Any:
    """Recursively convert a column value to a JSON-safe primitive.

    Handles: int (safe-integer bound), datetime, date, time, timedelta,
    Decimal, UUID, bytes, sets, nested dicts and lists.
    """
    if obj is None or isinstance(obj, (bool, float, str)):
        return obj
    if isinstance(obj, int):
        return normalize_int(obj)
    if isinstance(obj, datetime):
        return obj.isoformat()
    if isinstance(obj, date):
        return obj.isoformat()
    if isinstance(obj, time):
        return obj.isoformat()
    if isinstance(obj, timedelta):
        return obj.total_seconds()
    if isinstance(obj, Decimal):
        # Integral decimals follow the integer rule, otherwise float
        if obj.is_finite() and obj == obj.to_integral_value():
            return normalize_int(int(obj))
        return float(obj)
    if isinstance(obj, uuid.UUID):
        return str(obj)
    if isinstance(obj, (bytes, bytearray, memoryview)):
        return bytes(obj).decode("utf-8", errors="replace")
    if isinstance(obj, dict):
        return {k: normalize_value(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [normalize_value(item) for item in obj]
    if isinstance(obj, set):
        return [normalize_value(item) for item in sorted(obj, key=str)]
    # Anything else (e.g. driver-specific types) as text
    return str(obj)


def normalize_rows(rows: list[dict[str, Any]]) -> list[dict[str, Any]]:
    """Apply :func:`normalize_value` to every column of every row."""
    return [{k: normalize_value(v) for k, v in row.items()} for row in rows]
