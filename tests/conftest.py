"""Test fixtures."""

from collections.abc import Callable
from typing import Any

import pytest

from event_timeline.model import EventDefinition


@pytest.fixture(name="make_definition")
def mock_make_definition() -> Callable[..., EventDefinition]:
    """Fixture that creates definitions from wire-format fields."""

    def _func(**data: Any) -> EventDefinition:
        return EventDefinition.model_validate(data)

    return _func


@pytest.fixture(name="weekly_definition")
def mock_weekly_definition(
    make_definition: Callable[..., EventDefinition],
) -> EventDefinition:
    """Fixture for a one hour weekly event during January 2024."""
    return make_definition(
        id="e1",
        startTime="2024-01-01T10:00:00Z",
        endTime="2024-01-01T11:00:00Z",
        recurrencePattern="WEEKLY",
        recurrenceEndDate="2024-01-31T23:59:59Z",
    )
