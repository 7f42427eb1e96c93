"""Utility methods used by multiple components."""

from __future__ import annotations

import datetime

__all__ = [
    "now_factory",
    "normalize_datetime",
    "parse_instant",
    "isoformat",
]


MIDNIGHT = datetime.time()


def now_factory() -> datetime.datetime:
    """Factory method for the current time to facilitate mocking."""
    return datetime.datetime.now(tz=datetime.UTC)


def normalize_datetime(
    value: datetime.date | datetime.datetime, tzinfo: datetime.tzinfo | None = None
) -> datetime.datetime:
    """Convert date or datetime to a value that can be used for comparison.

    A date is the start of that day and a naive datetime is assumed to be
    in `tzinfo`, which is UTC when not specified.
    """
    if not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, MIDNIGHT)
    if value.tzinfo is None:
        value = value.replace(tzinfo=tzinfo or datetime.UTC)
    return value


def parse_instant(
    value: str | datetime.date | None,
    tzinfo: datetime.tzinfo | None = None,
    end_of_day: bool = False,
) -> datetime.datetime | None:
    """Coerce a str, date or datetime into an aware datetime.

    A date is the start of that day, or the last instant of that day when
    `end_of_day` is set. Returns None when the value is missing or is not a
    valid instant.
    """
    if value is None:
        return None
    if isinstance(value, str):
        text = value.strip()
        if text.endswith(("Z", "z")):
            text = f"{text[:-1]}+00:00"
        try:
            if "T" in text or " " in text:
                value = datetime.datetime.fromisoformat(text)
            else:
                value = datetime.date.fromisoformat(text)
        except ValueError:
            return None
    if not isinstance(value, datetime.date):
        return None
    if end_of_day and not isinstance(value, datetime.datetime):
        value = datetime.datetime.combine(value, datetime.time.max)
    return normalize_datetime(value, tzinfo)


def isoformat(value: datetime.datetime) -> str:
    """Return the UTC ISO-8601 form of an instant with millisecond precision."""
    text = value.astimezone(datetime.UTC).isoformat(timespec="milliseconds")
    return text.replace("+00:00", "Z")
