"""Library for keeping a client-held set of definitions consistent.

A view holds a `DisplaySet`, a mapping from id to `EventDefinition`, backing
the window it renders. The set is replaced by a bulk fetch and then kept up
to date by applying live deltas in arrival order with `reconcile`:

```python
from event_timeline.delta import parse_delta
from event_timeline.store import load, reconcile

display_set = load(fetched_definitions)
delta = parse_delta(message)
display_set = reconcile(display_set, delta, range_start, range_end)
```

Reconciling never fetches or expands occurrences; the view expands the
updated definitions again on its next render. Every function returns a new
mapping and leaves its input untouched, so applying the same created or
deleted delta twice has the same result as applying it once.
"""

from __future__ import annotations

import datetime
import logging
from collections.abc import Iterable, Mapping

from .delta import Delta, EventCreated, EventDeleted, EventUpdated
from .model import EventDefinition
from .timeline import Bound, is_relevant

__all__ = [
    "DisplaySet",
    "load",
    "reconcile",
    "reconcile_all",
]

_LOGGER = logging.getLogger(__name__)

DisplaySet = dict[str, EventDefinition]
"""Definitions known to the client, by id."""


def load(definitions: Iterable[EventDefinition]) -> DisplaySet:
    """Return a display set replacing all prior state with a bulk fetch result."""
    return {definition.id: definition for definition in definitions}


def _upsert(display_set: Mapping[str, EventDefinition], event: EventDefinition) -> DisplaySet:
    return {**display_set, event.id: event}


def reconcile(
    display_set: Mapping[str, EventDefinition],
    delta: Delta | None,
    range_start: Bound,
    range_end: Bound,
    tzinfo: datetime.tzinfo | None = None,
) -> DisplaySet:
    """Return the display set with a live delta applied.

    A created definition is only added when it has an occurrence within the
    range. An updated definition always replaces a known one, since the edit
    may move it in or out of range, and is otherwise added like a created one.
    A delete removes the definition if it is known.
    """
    if isinstance(delta, EventCreated):
        event = delta.event
        if not is_relevant(event, range_start, range_end, tzinfo):
            _LOGGER.debug("Ignoring created event %s outside of range", event.id)
            return dict(display_set)
        return _upsert(display_set, event)

    if isinstance(delta, EventUpdated):
        event = delta.event
        if event.id in display_set:
            return _upsert(display_set, event)
        if not is_relevant(event, range_start, range_end, tzinfo):
            _LOGGER.debug("Ignoring updated event %s outside of range", event.id)
            return dict(display_set)
        return _upsert(display_set, event)

    if isinstance(delta, EventDeleted):
        if delta.event_id not in display_set:
            _LOGGER.debug("Ignoring delete of unknown event %s", delta.event_id)
        return {
            key: value for key, value in display_set.items() if key != delta.event_id
        }

    _LOGGER.debug("Ignoring unsupported delta: %s", delta)
    return dict(display_set)


def reconcile_all(
    display_set: Mapping[str, EventDefinition],
    deltas: Iterable[Delta | None],
    range_start: Bound,
    range_end: Bound,
    tzinfo: datetime.tzinfo | None = None,
) -> DisplaySet:
    """Return the display set with a sequence of deltas applied in order."""
    result = dict(display_set)
    for delta in deltas:
        result = reconcile(result, delta, range_start, range_end, tzinfo)
    return result
