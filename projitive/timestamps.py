"""ISO-8601 helpers shared by the ledger, ranking and lint code."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional


def now_iso() -> str:
    """Current UTC time with millisecond precision and a ``Z`` suffix."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse ``value`` into a UTC datetime, or None when it is not a timestamp.

    Naive values are read as UTC. Values that cannot be expressed in UTC
    count as unparseable.
    """
    if not isinstance(value, str):
        return None
    text = value.strip()
    if not text:
        return None
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    try:
        return parsed.astimezone(timezone.utc)
    except OverflowError:
        # offset pushes the instant outside the datetime range
        return None


def is_parseable(value: Optional[str]) -> bool:
    return parse_iso(value) is not None


def to_epoch_ms(value: Optional[str]) -> int:
    """Milliseconds since the epoch, or 0 for unparseable input."""
    parsed = parse_iso(value)
    if parsed is None:
        return 0
    return int(parsed.timestamp() * 1000)
