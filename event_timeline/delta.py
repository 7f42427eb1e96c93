"""Live feed notifications about changes to event definitions.

The live feed is an ordered stream of typed messages pushed by the server,
each with a `type` and a `data` payload:

```json
{"type": "event:created", "data": {"event": {"id": "e1", "startTime": "..."}}}
{"type": "event:updated", "data": {"event": {"id": "e1", "startTime": "..."}}}
{"type": "event:deleted", "data": {"eventId": "e1"}}
```

The `event:` prefix is optional. Messages of any other type (attendance,
likes, heartbeats, or types added in the future) are ignored.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from .exceptions import DeltaParseError
from .model import EventDefinition
from .timespan import Timespan
from .util import isoformat

__all__ = [
    "Delta",
    "EventCreated",
    "EventUpdated",
    "EventDeleted",
    "parse_delta",
    "parse_event_list",
    "range_params",
]

_LOGGER = logging.getLogger(__name__)

TYPE_PREFIX = "event:"


class _DeltaModel(BaseModel):
    """Base model for a single live notification."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventCreated(_DeltaModel):
    """A definition was created."""

    type: Literal["created"] = "created"
    event: EventDefinition


class EventUpdated(_DeltaModel):
    """A definition was updated, the event is the full new definition."""

    type: Literal["updated"] = "updated"
    event: EventDefinition


class EventDeleted(_DeltaModel):
    """A definition was deleted."""

    type: Literal["deleted"] = "deleted"
    event_id: str


Delta = Annotated[
    Union[EventCreated, EventUpdated, EventDeleted], Field(discriminator="type")
]

_DELTA_ADAPTER: TypeAdapter[Delta] = TypeAdapter(Delta)


def parse_delta(message: Mapping[str, Any]) -> Delta | None:
    """Parse a live feed message into a Delta.

    Returns None for message types that are not about event definitions.
    Raises a `DeltaParseError` when a known message type has an invalid
    payload.
    """
    kind = message.get("type")
    if not isinstance(kind, str):
        _LOGGER.debug("Ignoring message without a type: %s", message)
        return None
    kind = kind.removeprefix(TYPE_PREFIX)
    if kind not in ("created", "updated", "deleted"):
        _LOGGER.debug("Ignoring message of type %s", message["type"])
        return None

    data = message.get("data")
    if not isinstance(data, Mapping):
        raise DeltaParseError(f"Message '{message['type']}' has no data")
    payload = {**data, "type": kind}
    if kind == "deleted" and not payload.get("eventId"):
        payload["eventId"] = payload.get("externalId")
    try:
        return _DELTA_ADAPTER.validate_python(payload)
    except ValidationError as err:
        raise DeltaParseError(
            f"Invalid '{message['type']}' message", detailed_error=str(err)
        ) from err


def parse_event_list(payload: Mapping[str, Any]) -> list[EventDefinition]:
    """Parse the definitions in a bulk fetch response.

    Records that are not valid definitions (e.g. without an id) are skipped.
    """
    definitions: list[EventDefinition] = []
    for record in payload.get("events") or ():
        try:
            definitions.append(EventDefinition.model_validate(record))
        except ValidationError as err:
            _LOGGER.warning("Skipping invalid event record: %s", err)
    return definitions


def range_params(timespan: Timespan) -> dict[str, str]:
    """Return the bulk fetch request parameters for the timespan."""
    return {
        "rangeStart": isoformat(timespan.start),
        "rangeEnd": isoformat(timespan.end),
    }
