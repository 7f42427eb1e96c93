"""Pydantic models for event definitions and their occurrences.

An `EventDefinition` is the authoritative record for one logical event as
stored by the remote API, recurring or not. An `Occurrence` is one concrete
instance of a definition produced by the timeline for a display window.

Definitions arrive from a bulk fetch or a live feed in their camelCase wire
form, and may be created directly in Python with snake_case field names:

```python
from event_timeline.model import EventDefinition

definition = EventDefinition.model_validate(
    {
        "id": "e1",
        "startTime": "2024-01-01T10:00:00Z",
        "endTime": "2024-01-01T11:00:00Z",
        "recurrencePattern": "WEEKLY",
        "recurrenceEndDate": "2024-01-31T23:59:59Z",
        "title": "Standup",
    }
)
```

Fields not known to the model (e.g. `title`) are preserved on the definition
and on every occurrence. Instants that can't be parsed do not fail
validation; they are recorded in `malformed` so that the timeline can skip
the record instead of aborting a whole view.
"""

from __future__ import annotations

import datetime
import enum
import logging
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .util import parse_instant

__all__ = [
    "RecurrencePattern",
    "EventDefinition",
    "Occurrence",
]

_LOGGER = logging.getLogger(__name__)

# Instant fields that are parsed leniently
INSTANT_FIELDS = ("start_time", "end_time", "recurrence_end_date")


class RecurrencePattern(str, enum.Enum):
    """The frequency of a recurring event."""

    DAILY = "DAILY"
    """Repeats every day."""

    WEEKLY = "WEEKLY"
    """Repeats every 7 days."""

    MONTHLY = "MONTHLY"
    """Repeats on the same day of every calendar month."""

    @property
    def label(self) -> str:
        """Return a human readable label for the pattern."""
        return self.value.capitalize()


class EventDefinition(BaseModel):
    """A single stored event, possibly recurring.

    A definition is recurring only when it has both a `recurrence_pattern`
    and a `recurrence_end_date`. When either is missing the definition is
    treated as a single event.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="allow",
    )

    id: str
    """Opaque identifier, unique among definitions."""

    start_time: Optional[datetime.datetime] = None
    """Start of the event, or of the first instance of a recurring event."""

    end_time: Optional[datetime.datetime] = None
    """End of the event, or of the first instance of a recurring event."""

    recurrence_pattern: Optional[RecurrencePattern] = None
    """Frequency of a recurring event."""

    recurrence_end_date: Optional[datetime.datetime] = None
    """No instance of a recurring event starts after this instant."""

    original_event_id: Optional[str] = None
    """Identity anchor shared by every occurrence, defaults to the `id`."""

    malformed: frozenset[str] = Field(
        default_factory=frozenset, exclude=True, repr=False
    )
    """Names of instant fields that were present but not valid instants."""

    @property
    def recurring(self) -> bool:
        """Return true if this definition produces a series of occurrences."""
        return self.recurrence_pattern is not None and (
            self.recurrence_end_date is not None
            or "recurrence_end_date" in self.malformed
        )

    @property
    def duration(self) -> datetime.timedelta | None:
        """Return the length of each occurrence, or None without an end time."""
        if self.start_time is None or self.end_time is None:
            return None
        return self.end_time - self.start_time

    @field_validator("id", "original_event_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        """Accept numeric identifiers from the remote API."""
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @model_validator(mode="before")
    @classmethod
    def _parse_instants(cls, values: Any) -> Any:
        """Parse instant fields, recording the ones that are not valid."""
        if not isinstance(values, dict):
            return values
        values = dict(values)
        malformed = set(values.get("malformed") or ())
        for name in INSTANT_FIELDS:
            alias = to_camel(name)
            key = alias if alias in values else name
            if key not in values:
                continue
            if (raw := values[key]) is None or raw == "":
                values[key] = None
                continue
            if (parsed := parse_instant(raw)) is None:
                _LOGGER.debug("Invalid instant for %s: %r", name, raw)
                malformed.add(name)
            values[key] = parsed
        values["malformed"] = frozenset(malformed)
        return values

    @model_validator(mode="after")
    def _default_original_event_id(self) -> EventDefinition:
        """A plain definition is its own identity anchor."""
        if self.original_event_id is None:
            self.original_event_id = self.id
        return self


class Occurrence(EventDefinition):
    """A materialized, display-ready instance of an `EventDefinition`.

    The `start_time` and `end_time` are the instants of this occurrence. The
    first occurrence of a definition keeps the definition `id` and every other
    occurrence has a synthetic id derived from the definition id and the
    occurrence start. The `original_event_id` always refers back to the
    source definition.
    """
