"""A Timeline is the set of occurrences of events within a display window.

The timeline expands a finite set of event definitions, some of which are
recurring, into concrete occurrences that start within a closed interval.
Recurring events are walked forward from their own start in fixed steps, and
every instance after the first is given a synthetic id that is reproducible
across independent expansions of the same definition.

The main entry point is `expand` which returns occurrences in the order of
the input definitions, for example:

```python
import datetime
from event_timeline.model import EventDefinition
from event_timeline.timeline import expand

definition = EventDefinition(
    id="e1",
    start_time=datetime.datetime(2024, 1, 1, 10, tzinfo=datetime.UTC),
    end_time=datetime.datetime(2024, 1, 1, 11, tzinfo=datetime.UTC),
    recurrence_pattern="WEEKLY",
    recurrence_end_date=datetime.datetime(2024, 1, 31, tzinfo=datetime.UTC),
)
for occurrence in expand([definition], "2024-01-08", "2024-01-15"):
    print(occurrence.id, occurrence.start_time)
```

Malformed input never raises: an invalid window produces no occurrences and
a definition with an invalid start is skipped. Use `Timeline` when the
occurrences are needed in chronological order.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Iterator

from .iter import (
    MergedIterable,
    RecurIterable,
    RecurrenceSteps,
    SortableItem,
    SortableItemValue,
)
from .model import EventDefinition, Occurrence
from .timespan import Timespan
from .util import isoformat, normalize_datetime, now_factory

__all__ = [
    "SYNTHETIC_ID_SEPARATOR",
    "Timeline",
    "expand",
    "is_relevant",
    "iter_occurrences",
    "synthetic_id",
    "upcoming",
]

_LOGGER = logging.getLogger(__name__)

SYNTHETIC_ID_SEPARATOR = "::"

Bound = str | datetime.date | None


def synthetic_id(definition_id: str, dtstart: datetime.datetime) -> str:
    """Return the id of a non-base occurrence of a definition."""
    return f"{definition_id}{SYNTHETIC_ID_SEPARATOR}{isoformat(dtstart)}"


class OccurrenceAdapter:
    """An adapter that creates an Occurrence of a definition at a start time.

    The definition is copied with its start, end and id replaced so that each
    occurrence acts as a flattened instance of the event.
    """

    def __init__(self, definition: EventDefinition) -> None:
        """Initialize the OccurrenceAdapter."""
        self._definition = definition
        self._duration = definition.duration

    def get(self, dtstart: datetime.datetime) -> Occurrence:
        """Return the occurrence starting at the specified time."""
        definition = self._definition
        updates = {
            "start_time": dtstart,
            "end_time": dtstart + self._duration if self._duration is not None else None,
            "original_event_id": definition.original_event_id,
        }
        if dtstart != definition.start_time:
            updates["id"] = synthetic_id(definition.id, dtstart)
        return Occurrence.model_validate({**dict(definition), **updates})


def iter_occurrences(
    definition: EventDefinition, timespan: Timespan
) -> Iterator[Occurrence]:
    """Return an iterator over the occurrences of a definition in the timespan.

    Occurrences are created lazily so a caller that stops early never walks
    the rest of the series.
    """
    if (dtstart := definition.start_time) is None:
        return
    adapter = OccurrenceAdapter(definition)
    if not definition.recurring or definition.recurrence_pattern is None:
        if timespan.contains(dtstart):
            yield adapter.get(dtstart)
        return

    until = definition.recurrence_end_date
    if until is None or until < timespan.start:
        return
    steps = RecurrenceSteps(
        dtstart, definition.recurrence_pattern, until, duration=definition.duration
    )
    for occurrence in RecurIterable(adapter.get, _within(steps, timespan)):
        yield occurrence


def _within(
    steps: Iterable[datetime.datetime], timespan: Timespan
) -> Iterator[datetime.datetime]:
    """Return the steps inside the timespan, stopping after its end."""
    for value in steps:
        if value > timespan.end:
            return
        if value >= timespan.start:
            yield value


def _occurrences(definition: EventDefinition, timespan: Timespan) -> list[Occurrence]:
    """Return all occurrences of a definition, or none if it is malformed."""
    if definition.start_time is None:
        _LOGGER.warning(
            "Skipping event %s with invalid start time", definition.id
        )
        return []
    return list(iter_occurrences(definition, timespan))


def expand(
    definitions: Iterable[EventDefinition],
    range_start: Bound,
    range_end: Bound,
    tzinfo: datetime.tzinfo | None = None,
) -> list[Occurrence]:
    """Return all occurrences of the definitions that start within the range.

    Both ends of the range are inclusive, and a `datetime.date` bound covers
    that whole day in `tzinfo` (UTC by default). The result follows the order
    of the input definitions and is not sorted by time.
    """
    if (timespan := Timespan.of(range_start, range_end, tzinfo)) is None:
        _LOGGER.debug("Invalid range (%s, %s)", range_start, range_end)
        return []
    results: list[Occurrence] = []
    for definition in definitions:
        results.extend(_occurrences(definition, timespan))
    return results


def _may_overlap(definition: EventDefinition, timespan: Timespan) -> bool:
    """Return True if the definition could have an occurrence in the timespan."""
    if (dtstart := definition.start_time) is None:
        return False
    if timespan.contains(dtstart):
        return True
    if not definition.recurring or definition.recurrence_end_date is None:
        return False
    return timespan.overlaps(dtstart, definition.recurrence_end_date)


def is_relevant(
    definition: EventDefinition,
    range_start: Bound,
    range_end: Bound,
    tzinfo: datetime.tzinfo | None = None,
) -> bool:
    """Return True if the definition has an occurrence within the range.

    This agrees with `expand`: a definition is relevant exactly when expanding
    it alone over the same range is non-empty. The window overlap test is
    checked first so most definitions are rejected without walking the series,
    and otherwise the walk stops at the first occurrence found.
    """
    if (timespan := Timespan.of(range_start, range_end, tzinfo)) is None:
        return False
    if not _may_overlap(definition, timespan):
        return False
    return next(iter_occurrences(definition, timespan), None) is not None


class Timeline(Iterable[Occurrence]):
    """The occurrences of a set of definitions within a timespan.

    Iterating over a timeline returns occurrences in chronological order by
    start time.
    """

    def __init__(
        self, definitions: Iterable[EventDefinition], timespan: Timespan
    ) -> None:
        """Initialize Timeline."""
        self._definitions = list(definitions)
        self._timespan = timespan

    @property
    def timespan(self) -> Timespan:
        """Return the window covered by this timeline."""
        return self._timespan

    def _sorted_items(self) -> Iterable[SortableItem[datetime.datetime, Occurrence]]:
        return MergedIterable(
            [
                [
                    SortableItemValue(occurrence.start_time, occurrence)
                    for occurrence in _occurrences(definition, self._timespan)
                ]
                for definition in self._definitions
            ]
        )

    def __iter__(self) -> Iterator[Occurrence]:
        """Return an iterator as a traversal over occurrences in chronological order."""
        for item in self._sorted_items():
            yield item.item

    def start_after(self, instant: datetime.datetime) -> Iterator[Occurrence]:
        """Return an iterator containing occurrences starting at or after the instant."""
        instant_value = normalize_datetime(instant)
        for item in self._sorted_items():
            if item.key >= instant_value:
                yield item.item

    def on_date(
        self, day: datetime.date, tzinfo: datetime.tzinfo | None = None
    ) -> Iterator[Occurrence]:
        """Return an iterator containing occurrences starting on the specified day."""
        start = normalize_datetime(day, tzinfo)
        end = normalize_datetime(day + datetime.timedelta(days=1), tzinfo)
        for item in self._sorted_items():
            if item.key >= end:
                break
            if item.key >= start:
                yield item.item


def upcoming(
    definitions: Iterable[EventDefinition],
    range_end: Bound,
    now: datetime.datetime | None = None,
    tzinfo: datetime.tzinfo | None = None,
) -> list[Occurrence]:
    """Return occurrences from now until the end of the range, in chronological order."""
    now = now or now_factory()
    if (timespan := Timespan.of(now, range_end, tzinfo)) is None:
        return []
    return list(Timeline(definitions, timespan).start_after(now))
