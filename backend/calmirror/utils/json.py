from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

import orjson as _orjson


def _default(o: Any):
    # Normalize common non-JSON-native types
    if isinstance(o, (datetime, date)):
        return o.isoformat()
    raise TypeError(f"Type is not JSON serializable: {type(o).__name__}")


def dumps(obj: Any) -> str:
    """Serialize obj to a compact JSON string with stable key order.

    Stable ordering matters for stored filters: two equal filters must produce
    the same text so find-or-create lookups match.
    """
    return _orjson.dumps(obj, option=_orjson.OPT_SORT_KEYS, default=_default).decode("utf-8")


def loads_or_none(raw: Optional[str | bytes]) -> Any:
    """Parse JSON text, returning None for empty or malformed input."""
    if raw is None or raw == "" or raw == b"":
        return None
    try:
        return _orjson.loads(raw)
    except _orjson.JSONDecodeError:
        return None


def parse_tags(raw: Any) -> list[str]:
    """Return the tag list stored on an event.

    Tags are persisted as a JSON array in a text column. Anything that does
    not parse to a list of strings yields an empty list.
    """
    if isinstance(raw, list):
        value = raw
    else:
        value = loads_or_none(raw)
    if not isinstance(value, list):
        return []
    return [t for t in value if isinstance(t, str)]
