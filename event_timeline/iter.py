"""Library for iterators used in event_timeline.

These iterators are used for implementing recurring events where an object
should be returned for a series of date/times, with some modification based
on that date/time. Additionally, the occurrences of multiple definitions are
merged together into a single chronological view.

Most of the things in this library should not be consumed directly, but
instead support the timeline behind the scenes.
"""

from __future__ import annotations

import datetime
import heapq
import logging
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable, Iterator
from typing import Any, Generic, TypeVar, cast

from dateutil.relativedelta import relativedelta

from .model import RecurrencePattern

__all__ = [
    "MAX_ITERATIONS",
    "RecurrenceSteps",
    "RecurIterable",
    "SortableItem",
    "SortableItemValue",
    "MergedIterable",
    "ItemAdapter",
]

_LOGGER = logging.getLogger(__name__)

MAX_ITERATIONS = 1000
"""Upper bound on the number of steps walked for a single recurring event."""

T = TypeVar("T")
K = TypeVar("K")

ItemAdapter = Callable[[datetime.datetime], T]
"""An adapter for an object in a sorted container (iterator).

The adapter is invoked with the date/time of the current instance and
the callback returns an object at that time (e.g. an occurrence with updated
start and end times).
"""


class SortableItem(Generic[K, T], ABC):
    """A SortableItem is used to sort an item by an arbitrary key.

    This object is used as a holder of the actual occurrence such that the
    sort key used is independent of the occurrence, avoiding comparisons of a
    large model object.
    """

    def __init__(self, key: K) -> None:
        """Initialize SortableItem."""
        self._key = key

    @property
    def key(self) -> K:
        """Return the sort key."""
        return self._key

    @property
    @abstractmethod
    def item(self) -> T:
        """Return the underlying item."""

    def __lt__(self, other: Any) -> bool:
        """Compare sortable items together."""
        if not isinstance(other, SortableItem):
            return NotImplemented
        return cast(bool, self._key < other.key)


class SortableItemValue(SortableItem[K, T]):
    """Concrete value implementation of SortableItem."""

    def __init__(self, key: K, value: T) -> None:
        """Initialize SortableItemValue."""
        super().__init__(key)
        self._value = value

    @property
    def item(self) -> T:
        """Return the underlying item."""
        return self._value


def _step(pattern: RecurrencePattern, index: int) -> datetime.timedelta | relativedelta:
    """Return the offset of the nth instance from the start of the series."""
    if pattern == RecurrencePattern.DAILY:
        return datetime.timedelta(days=index)
    if pattern == RecurrencePattern.WEEKLY:
        return datetime.timedelta(weeks=index)
    # Offsets are computed from the original start rather than the previous
    # instance so a series on the 31st returns to the 31st after a short month.
    return relativedelta(months=index)


def _check_representable(
    value: datetime.datetime, duration: datetime.timedelta | None
) -> None:
    """Raise OverflowError if the instance or its end has no UTC form."""
    value.astimezone(datetime.UTC)
    if duration is not None:
        (value + duration).astimezone(datetime.UTC)


class RecurrenceSteps(Iterable[datetime.datetime]):
    """The start times of a recurring event in chronological order.

    Iteration starts at `dtstart` and stops after `until` or after
    `max_iterations` instances, whichever comes first. The series also ends
    at the first instance that can't be represented, either because it falls
    past the largest supported date or because an occurrence lasting
    `duration` would end past it.
    """

    def __init__(
        self,
        dtstart: datetime.datetime,
        pattern: RecurrencePattern,
        until: datetime.datetime,
        max_iterations: int = MAX_ITERATIONS,
        duration: datetime.timedelta | None = None,
    ) -> None:
        """Initialize RecurrenceSteps."""
        self._dtstart = dtstart
        self._pattern = pattern
        self._until = until
        self._max_iterations = max_iterations
        self._duration = duration

    def __iter__(self) -> Iterator[datetime.datetime]:
        """Return an iterator as a traversal over instances in chronological order."""
        for index in range(self._max_iterations):
            try:
                value = self._dtstart + _step(self._pattern, index)
                _check_representable(value, self._duration)
            except (OverflowError, ValueError) as err:
                _LOGGER.debug("Ending %s at instance %d: %s", self, index, err)
                return
            if value > self._until:
                return
            yield value
        _LOGGER.debug("Reached iteration limit for %s", self)

    def __repr__(self) -> str:
        return (
            f"RecurrenceSteps(dtstart={self._dtstart}, pattern={self._pattern.value}, "
            f"until={self._until}, max_iterations={self._max_iterations})"
        )


class RecurIterable(Iterable[T]):
    """A series of items from a recurring event.

    The inputs are a callback that creates objects at a specific date/time, and an iterable
    of all the relevant date/times (typically a `RecurrenceSteps`).
    """

    def __init__(
        self,
        item_cb: ItemAdapter[T],
        recur: Iterable[datetime.datetime],
    ) -> None:
        """Initialize RecurIterable."""
        self._item_cb = item_cb
        self._recur = recur

    def __iter__(self) -> Iterator[T]:
        """Return an iterator as a traversal over items in chronological order."""
        for dtvalue in self._recur:
            yield self._item_cb(dtvalue)


class MergedIterator(Iterator[T]):
    """An iterator with a merged sorted view of the underlying sorted iterators."""

    def __init__(self, iters: list[Iterator[T]]):
        """Initialize MergedIterator."""
        self._iters = iters
        self._heap: list[tuple[T, int]] | None = None

    def __iter__(self) -> Iterator[T]:
        """Return this iterator."""
        return self

    def _make_heap(self) -> None:
        self._heap = []
        for iter_index, iterator in enumerate(self._iters):
            try:
                next_item = next(iterator)
            except StopIteration:
                pass
            else:
                heapq.heappush(self._heap, (next_item, iter_index))

    def __next__(self) -> T:
        """Produce the next item from the merged set."""

        if self._heap is None:
            self._make_heap()

        if not self._heap:
            raise StopIteration()

        (item, iter_index) = heapq.heappop(self._heap)
        iterator = self._iters[iter_index]
        try:
            next_item = next(iterator)
        except StopIteration:
            pass  # Iterator not added back to heap
        else:
            heapq.heappush(self._heap, (next_item, iter_index))
        return item


class MergedIterable(Iterable[T]):
    """An iterator that merges results from underlying sorted iterables."""

    def __init__(self, iters: list[Iterable[T]]) -> None:
        """Initialize MergedIterable."""
        self._iters = iters

    def __iter__(self) -> Iterator[T]:
        return MergedIterator([iter(it) for it in self._iters])
