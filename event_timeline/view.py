"""The state behind a time-bounded view of events such as a calendar.

A `TimelineView` owns the `DisplaySet` for the window currently shown. It
selects a window, bulk fetches the definitions for it through an injected
async fetcher, applies live deltas as they arrive, and expands the known
definitions into occurrences on every render.

All methods are expected to be called from a single event loop, so no
locking is done. A newer `load` supersedes an in-flight one: the older
fetch is cancelled and its response is never merged. Deltas that arrive
while a fetch is in flight are applied right away and replayed on top of the
fetched definitions once they arrive.
"""

from __future__ import annotations

import asyncio
import datetime
import enum
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any

from dateutil.relativedelta import relativedelta

from .delta import Delta, parse_delta
from .exceptions import DeltaParseError
from .model import EventDefinition, Occurrence
from .store import DisplaySet, load, reconcile, reconcile_all
from .timeline import Bound, expand, upcoming
from .timespan import Timespan
from .util import MIDNIGHT, normalize_datetime, now_factory

__all__ = [
    "Fetcher",
    "TimelineView",
    "ViewMode",
    "view_range",
]

_LOGGER = logging.getLogger(__name__)

Fetcher = Callable[[Timespan], Awaitable[Iterable[EventDefinition]]]
"""Fetches the definitions for a window from the remote API."""


class ViewMode(str, enum.Enum):
    """The size of the window shown by a view."""

    MONTH = "month"
    WEEK = "week"
    DAY = "day"


def view_range(
    mode: ViewMode,
    day: datetime.date,
    tzinfo: datetime.tzinfo | None = None,
) -> Timespan:
    """Return the window of the specified mode that contains the day.

    Weeks start on Sunday. The window ends at the last instant of its last day.
    """
    tzinfo = tzinfo or datetime.UTC
    if isinstance(day, datetime.datetime):
        day = normalize_datetime(day, tzinfo).astimezone(tzinfo).date()
    if mode == ViewMode.MONTH:
        first = day.replace(day=1)
        last = first + relativedelta(months=1, days=-1)
    elif mode == ViewMode.WEEK:
        first = day - datetime.timedelta(days=(day.weekday() + 1) % 7)
        last = first + datetime.timedelta(days=6)
    else:
        first = last = day
    return Timespan(
        datetime.datetime.combine(first, MIDNIGHT, tzinfo=tzinfo),
        datetime.datetime.combine(last, datetime.time.max, tzinfo=tzinfo),
    )


class TimelineView:
    """Explicit state for a view of events over a window.

    Here is an example of driving a month view:

    ```python
    async def fetch(timespan: Timespan) -> list[EventDefinition]:
        response = await client.get("/api/events", params=range_params(timespan))
        return parse_event_list(response.json())

    view = TimelineView(fetch)
    await view.show(ViewMode.MONTH, datetime.date(2024, 1, 1))
    for message in feed:
        view.handle_message(message)
    occurrences = view.occurrences()
    ```
    """

    def __init__(
        self,
        fetcher: Fetcher,
        tzinfo: datetime.tzinfo | None = None,
        now_fn: Callable[[], datetime.datetime] = lambda: now_factory(),
    ) -> None:
        """Initialize TimelineView."""
        self._fetcher = fetcher
        self._tzinfo = tzinfo or datetime.UTC
        self._now_fn = now_fn
        self._timespan: Timespan | None = None
        self._display_set: DisplaySet = {}
        self._fetch_task: asyncio.Task[list[EventDefinition]] | None = None
        self._pending: list[Delta] = []

    @property
    def timespan(self) -> Timespan | None:
        """Return the window currently shown."""
        return self._timespan

    @property
    def display_set(self) -> Mapping[str, EventDefinition]:
        """Return the definitions known for the window."""
        return self._display_set

    @property
    def loading(self) -> bool:
        """Return True while a bulk fetch is in flight."""
        return self._fetch_task is not None

    def _bounds(self) -> tuple[Bound, Bound]:
        if self._timespan is None:
            return (None, None)
        return (self._timespan.start, self._timespan.end)

    async def _fetch(self, timespan: Timespan) -> list[EventDefinition]:
        return list(await self._fetcher(timespan))

    async def show(self, mode: ViewMode, day: datetime.date) -> bool:
        """Show the window of the specified mode containing the day."""
        timespan = view_range(mode, day, self._tzinfo)
        return await self.load(timespan.start, timespan.end)

    async def load(self, range_start: Bound, range_end: Bound) -> bool:
        """Select a new window and replace the display set with a bulk fetch.

        Returns False when the fetch was superseded by a newer call, in which
        case its response is discarded. An invalid window clears the view.
        """
        if self._fetch_task is not None:
            _LOGGER.debug("Cancelling fetch for superseded range %s", self._timespan)
            self._fetch_task.cancel()
            self._fetch_task = None
        self._pending = []

        timespan = Timespan.of(range_start, range_end, self._tzinfo)
        self._timespan = timespan
        if timespan is None:
            _LOGGER.warning("Invalid range (%s, %s)", range_start, range_end)
            self._display_set = {}
            return False

        task = asyncio.create_task(self._fetch(timespan))
        self._fetch_task = task
        try:
            definitions = await task
        except asyncio.CancelledError:
            if self._fetch_task is not task:
                _LOGGER.debug("Discarding cancelled fetch for %s", timespan)
                return False
            self._fetch_task = None
            raise
        except Exception:
            if self._fetch_task is task:
                self._fetch_task = None
                self._pending = []
            raise

        if self._fetch_task is not task:
            _LOGGER.debug("Discarding stale fetch for %s", timespan)
            return False
        self._fetch_task = None
        pending, self._pending = self._pending, []
        _LOGGER.debug(
            "Loaded %d events for %s, replaying %d deltas",
            len(definitions),
            timespan,
            len(pending),
        )
        self._display_set = reconcile_all(
            load(definitions), pending, timespan.start, timespan.end
        )
        return True

    def apply(self, delta: Delta) -> None:
        """Apply a live delta to the display set."""
        range_start, range_end = self._bounds()
        self._display_set = reconcile(self._display_set, delta, range_start, range_end)
        if self._fetch_task is not None:
            self._pending.append(delta)

    def handle_message(self, message: Mapping[str, Any]) -> None:
        """Apply a message from the live feed, ignoring unrelated messages."""
        try:
            delta = parse_delta(message)
        except DeltaParseError as err:
            _LOGGER.warning("Dropping malformed message: %s", err.message)
            _LOGGER.debug("Malformed message detail: %s", err.detailed_error)
            return
        if delta is not None:
            self.apply(delta)

    def occurrences(self) -> list[Occurrence]:
        """Return the occurrences within the window, expanded from scratch."""
        range_start, range_end = self._bounds()
        return expand(self._display_set.values(), range_start, range_end)

    def upcoming(self, now: datetime.datetime | None = None) -> list[Occurrence]:
        """Return occurrences from now until the end of the window in time order."""
        if self._timespan is None:
            return []
        return upcoming(
            self._display_set.values(), self._timespan.end, now or self._now_fn()
        )
