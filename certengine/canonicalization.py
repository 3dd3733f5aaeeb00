"""
Canonical JSON Encoding

Two encodings are provided:

- canonicalize(): keys sorted lexicographically at every level. Used for
  configuration and framework fingerprints.
- canonicalize_fields(): keys emitted in the exact order supplied. Used for
  the certificate integrity hash, whose field order is part of the format.

Both are compact (no whitespace), UTF-8 encoded and leave non-ASCII
characters unescaped.
"""

import json
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Tuple, Union


SEPARATORS = (',', ':')
TIMESTAMP_FORMAT = '%Y-%m-%dT%H:%M:%S'


def canonicalize(obj: Any) -> bytes:
    """
    Convert an object to canonical JSON bytes with sorted keys.

    Rules:
    - Object keys sorted lexicographically (Unicode code point order)
    - No whitespace between tokens
    - UTF-8 encoding, no BOM
    - Arrays preserve order
    - datetimes rendered with format_timestamp()
    """
    canonical = _canonicalize_value(obj)
    return json.dumps(canonical, separators=SEPARATORS, ensure_ascii=False).encode('utf-8')


def canonicalize_str(obj: Any) -> str:
    """Return canonical JSON as string."""
    return canonicalize(obj).decode('utf-8')


def canonicalize_fields(fields: Iterable[Tuple[str, Any]]) -> bytes:
    """
    Encode (key, value) pairs as a JSON object preserving the given order.

    Values are canonicalized recursively; only the top-level key order is
    caller-controlled.
    """
    ordered = {}
    for key, value in fields:
        if key in ordered:
            raise ValueError(f"Duplicate canonical field: {key}")
        ordered[key] = _canonicalize_value(value)
    return json.dumps(ordered, separators=SEPARATORS, ensure_ascii=False).encode('utf-8')


def format_timestamp(value: datetime) -> str:
    """
    Render a datetime as RFC 3339 UTC with millisecond precision.

    Naive datetimes are taken to be UTC.
    """
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return f"{value.strftime(TIMESTAMP_FORMAT)}.{value.microsecond // 1000:03d}Z"


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """Parse an RFC 3339 timestamp into an aware UTC datetime."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith('Z') or text.endswith('z'):
            text = text[:-1] + '+00:00'
        dt = datetime.fromisoformat(text)
    else:
        raise ValueError(f"Cannot parse timestamp from {type(value)}")
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def truncate_to_millis(value: datetime) -> datetime:
    """Drop sub-millisecond precision so a timestamp round-trips through format_timestamp()."""
    return value.replace(microsecond=(value.microsecond // 1000) * 1000)


def _canonicalize_value(value: Any) -> Any:
    """Recursively canonicalize a value."""
    if value is None:
        return None
    elif isinstance(value, bool):
        return value
    elif isinstance(value, (int, float)):
        return value
    elif isinstance(value, str):
        return value
    elif isinstance(value, datetime):
        return format_timestamp(value)
    elif isinstance(value, dict):
        return _canonicalize_object(value)
    elif isinstance(value, (list, tuple)):
        return _canonicalize_array(value)
    else:
        raise ValueError(f"Cannot canonicalize type: {type(value)}")


def _canonicalize_object(obj: Dict[str, Any]) -> Dict[str, Any]:
    sorted_keys = sorted(obj.keys())
    return {k: _canonicalize_value(obj[k]) for k in sorted_keys}


def _canonicalize_array(arr: Union[List, tuple]) -> List:
    return [_canonicalize_value(item) for item in arr]
