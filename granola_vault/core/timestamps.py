"""Timestamp parsing shared by the converter, the index and the orchestrator.

Remote documents carry ISO 8601 strings; preambles read back through YAML
may surface them as ``datetime``/``date`` objects instead. Everything is
normalised to timezone-aware UTC.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def parse_timestamp(value: str | int | float | datetime | date | None) -> datetime | None:
    """Parse a timestamp from the formats that reach us.

    Args:
        value: ISO string, epoch seconds, datetime/date, or None

    Returns:
        UTC-aware datetime, or None if the value cannot be interpreted
    """
    if value is None:
        return None

    try:
        if isinstance(value, datetime):
            return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
        if isinstance(value, date):
            return datetime(value.year, value.month, value.day, tzinfo=timezone.utc)
        if isinstance(value, (int, float)):
            return datetime.fromtimestamp(float(value), tz=timezone.utc)
        if isinstance(value, str):
            text = value.strip()
            if not text:
                return None
            if text.replace(".", "").isdigit():
                return datetime.fromtimestamp(float(text), tz=timezone.utc)
            try:
                parsed = datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=timezone.utc)
            return parsed
    except (ValueError, OSError, OverflowError):
        pass

    return None


def format_timestamp(value: str | datetime | date | None) -> str:
    """Render a preamble timestamp back to the string the remote service used."""
    if value is None:
        return ""
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat().replace("+00:00", "Z")
    if isinstance(value, date):
        return value.isoformat()
    return str(value).strip()


def is_newer(candidate: str | datetime | None, baseline: str | datetime | None) -> bool:
    """True when ``candidate`` is strictly later than ``baseline``.

    Unparseable values never count as newer.
    """
    left = parse_timestamp(candidate)
    right = parse_timestamp(baseline)
    if left is None or right is None:
        return False
    return left > right


def utc_now() -> datetime:
    return datetime.now(tz=timezone.utc)


def backup_stamp(moment: datetime | None = None) -> str:
    """Filesystem-safe timestamp used in backup filenames."""
    moment = moment or utc_now()
    return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z").replace(":", "-").replace(".", "-")
