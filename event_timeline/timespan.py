"""A timespan is the closed interval of a display window.

Views such as a month calendar ask for all occurrences that start between
two instants, where both ends are inclusive. A timespan is always aligned to
a timezone so comparisons against event instants are unambiguous.

A `Timespan` is usually created with `Timespan.of`, which accepts the loose
bound types a caller may hand to the expander and returns None when either
bound is not a valid instant. A date as the end bound includes that whole day.
"""

from __future__ import annotations

import datetime
from typing import Any

from .util import isoformat, parse_instant

__all__ = ["Timespan"]


class Timespan:
    """An unambiguous definition of a start and end time.

    Both the start and the end are inclusive.
    """

    def __init__(self, start: datetime.datetime, end: datetime.datetime) -> None:
        """Initialize Timespan."""
        self._start = start
        self._end = end
        if not self._start.tzinfo:
            raise ValueError(f"Start time did not have a timezone: {self._start}")
        if not self._end.tzinfo:
            raise ValueError(f"End time did not have a timezone: {self._end}")
        if self._end < self._start:
            raise ValueError(f"End time {self._end} is before start {self._start}")

    @classmethod
    def of(  # pylint: disable=invalid-name
        cls,
        start: str | datetime.date | None,
        end: str | datetime.date | None,
        tzinfo: datetime.tzinfo | None = None,
    ) -> Timespan | None:
        """Create a Timespan for the specified range or None if it is invalid."""
        if (start_value := parse_instant(start, tzinfo)) is None:
            return None
        if (end_value := parse_instant(end, tzinfo, end_of_day=True)) is None:
            return None
        if end_value < start_value:
            return None
        return Timespan(start_value, end_value)

    @property
    def start(self) -> datetime.datetime:
        """Return the timespan start as a datetime."""
        return self._start

    @property
    def end(self) -> datetime.datetime:
        """Return the timespan end as a datetime."""
        return self._end

    @property
    def duration(self) -> datetime.timedelta:
        """Return the timespan duration."""
        return self.end - self.start

    def contains(self, instant: datetime.datetime) -> bool:
        """Return True if the instant is within this timespan, inclusive."""
        return self.start <= instant <= self.end

    def overlaps(self, start: datetime.datetime, end: datetime.datetime) -> bool:
        """Return True if the closed interval [start, end] overlaps this timespan."""
        return start <= self.end and end >= self.start

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, Timespan):
            return NotImplemented
        return (self._start, self._end) == (other.start, other.end)

    def __hash__(self) -> int:
        return hash((self._start, self._end))

    def __repr__(self) -> str:
        return f"Timespan({isoformat(self._start)}, {isoformat(self._end)})"
