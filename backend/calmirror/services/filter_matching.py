"""Filter predicates for subscription filters.

Shared by filter subscription creation, event publish hooks and the sync
orchestrator. Pure functions: no database access, no exceptions for bad
input. A stored filter that cannot be parsed matches nothing.
"""

from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any, Iterable, Optional, TypeVar

from pydantic import ValidationError

from ..schemas.filters import Filter, FilterStats
from ..utils.json import loads_or_none, parse_tags

T = TypeVar("T")


def parse_filter(raw: Any) -> Optional[Filter]:
    """Parse a stored filter (JSON text or dict) into a :class:`Filter`."""
    if isinstance(raw, Filter):
        return raw
    if isinstance(raw, (str, bytes)):
        raw = loads_or_none(raw)
    if not isinstance(raw, dict):
        return None
    try:
        return Filter.model_validate(raw)
    except ValidationError:
        return None


def is_filter_empty(flt: Filter) -> bool:
    dr = flt.date_range
    return (
        not flt.tags
        and not flt.country
        and not flt.region
        and not flt.city
        and not flt.source
        and (dr is None or (not dr.start and not dr.end))
    )


def _parse_bound(value: str) -> Optional[datetime | date]:
    """Parse a date-range bound.

    ``YYYY-MM-DD`` yields a ``date`` (compared by calendar day); anything
    else must be an ISO timestamp and is normalized to naive UTC.
    """
    value = value.strip()
    if len(value) == 10:
        try:
            return date.fromisoformat(value)
        except ValueError:
            return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def _before(moment: datetime, bound: datetime | date) -> bool:
    if isinstance(bound, datetime):
        return moment < bound
    return moment.date() < bound


def _after(moment: datetime, bound: datetime | date) -> bool:
    if isinstance(bound, datetime):
        return moment > bound
    return moment.date() > bound


def _matches(event: Any, flt: Filter) -> bool:
    if flt.tags:
        event_tags = parse_tags(getattr(event, "tags", None))
        if not any(tag in event_tags for tag in flt.tags):
            return False

    if flt.country and getattr(event, "country", None) != flt.country:
        return False

    if flt.region and getattr(event, "region", None) != flt.region:
        return False

    if flt.city:
        city = getattr(event, "city", None)
        if not city or flt.city.lower() not in city.lower():
            return False

    if flt.source and getattr(event, "source", None) != flt.source:
        return False

    dr = flt.date_range
    if dr is not None:
        if dr.start:
            bound = _parse_bound(dr.start)
            if bound is None or _before(event.start, bound):
                return False
        if dr.end:
            bound = _parse_bound(dr.end)
            if bound is None or _after(event.end, bound):
                return False

    return True


def matches(event: Any, flt: Any) -> bool:
    """Return True when ``event`` satisfies every clause of ``flt``.

    ``flt`` may be a :class:`Filter`, a dict or stored JSON text.
    """
    parsed = parse_filter(flt)
    if parsed is None:
        return False
    try:
        return _matches(event, parsed)
    except (TypeError, AttributeError):
        # Event rows missing start/end or carrying odd types never match.
        return False


def matching_events(events: Iterable[T], flt: Any) -> list[T]:
    parsed = parse_filter(flt)
    if parsed is None:
        return []
    return [e for e in events if matches(e, parsed)]


def stats(events: Iterable[Any], flt: Any) -> FilterStats:
    """Match count, total and rounded percentage of ``events`` matching ``flt``."""
    events = list(events)
    total = len(events)
    count = len(matching_events(events, flt))
    percentage = int(count * 100 / total + 0.5) if total else 0
    return FilterStats(match_count=count, total_count=total, percentage=percentage)


def is_large_filter(result: FilterStats, threshold_percent: int) -> bool:
    return result.total_count > 0 and result.percentage >= threshold_percent


def describe_filter(flt: Filter) -> str:
    """Human-readable summary, e.g. ``Tags: ctv • Country: US``."""
    parts: list[str] = []
    if flt.tags:
        parts.append(f"Tags: {', '.join(flt.tags)}")
    if flt.country:
        parts.append(f"Country: {flt.country}")
    if flt.region:
        parts.append(f"Region: {flt.region}")
    if flt.city:
        parts.append(f"City: {flt.city}")
    if flt.source:
        parts.append(f"Source: {flt.source}")
    dr = flt.date_range
    if dr is not None:
        if dr.start and dr.end:
            parts.append(f"Date: {dr.start} to {dr.end}")
        elif dr.start:
            parts.append(f"From: {dr.start}")
        elif dr.end:
            parts.append(f"Until: {dr.end}")
    return " • ".join(parts) if parts else "All events"
