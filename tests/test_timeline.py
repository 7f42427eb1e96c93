"""Tests for the timeline library."""

from __future__ import annotations

from collections.abc import Callable
import datetime
import logging
import zoneinfo
from unittest.mock import patch

import pytest

from event_timeline.iter import MAX_ITERATIONS
from event_timeline.model import EventDefinition
from event_timeline.timeline import (
    OccurrenceAdapter,
    Timeline,
    expand,
    is_relevant,
    synthetic_id,
    upcoming,
)
from event_timeline.timespan import Timespan

TZ = zoneinfo.ZoneInfo("America/New_York")


def utc(*args: int) -> datetime.datetime:
    """Return a datetime in UTC."""
    return datetime.datetime(*args, tzinfo=datetime.UTC)


def test_weekly_occurrences(weekly_definition: EventDefinition) -> None:
    """Test expanding a weekly event within a window."""
    occurrences = expand(
        [weekly_definition], datetime.date(2024, 1, 8), datetime.date(2024, 1, 15)
    )
    assert [occurrence.id for occurrence in occurrences] == [
        "e1::2024-01-08T10:00:00.000Z",
        "e1::2024-01-15T10:00:00.000Z",
    ]
    assert [occurrence.start_time for occurrence in occurrences] == [
        utc(2024, 1, 8, 10),
        utc(2024, 1, 15, 10),
    ]
    for occurrence in occurrences:
        assert occurrence.end_time
        assert occurrence.start_time
        assert occurrence.end_time - occurrence.start_time == datetime.timedelta(
            hours=1
        )
        assert occurrence.original_event_id == "e1"


def test_base_occurrence_keeps_id(weekly_definition: EventDefinition) -> None:
    """Test the first occurrence of a series has the definition id."""
    occurrences = expand([weekly_definition], "2024-01-01", "2024-01-10")
    assert [occurrence.id for occurrence in occurrences] == [
        "e1",
        "e1::2024-01-08T10:00:00.000Z",
    ]
    assert occurrences[0].start_time == weekly_definition.start_time
    assert occurrences[0].end_time == weekly_definition.end_time


def test_past_recurrence_end(weekly_definition: EventDefinition) -> None:
    """Test a series that ended before the window."""
    assert expand([weekly_definition], "2024-02-01", "2024-02-28") == []
    assert not is_relevant(weekly_definition, "2024-02-01", "2024-02-28")


def test_whole_series(weekly_definition: EventDefinition) -> None:
    """Test the series stops at the recurrence end date."""
    occurrences = expand([weekly_definition], "2023-12-01", "2024-12-31")
    assert [occurrence.start_time for occurrence in occurrences] == [
        utc(2024, 1, 1, 10),
        utc(2024, 1, 8, 10),
        utc(2024, 1, 15, 10),
        utc(2024, 1, 22, 10),
        utc(2024, 1, 29, 10),
    ]


def test_non_recurring(make_definition: Callable[..., EventDefinition]) -> None:
    """Test an event without recurrence appears exactly once."""
    definition = make_definition(id="e2", startTime="2024-03-05T09:00:00Z")
    occurrences = expand([definition], "2024-03-01", "2024-03-31")
    assert len(occurrences) == 1
    assert occurrences[0].id == "e2"
    assert occurrences[0].original_event_id == "e2"
    assert occurrences[0].start_time == utc(2024, 3, 5, 9)
    assert occurrences[0].end_time is None

    assert expand([definition], "2024-04-01", "2024-04-30") == []


def test_range_is_inclusive(make_definition: Callable[..., EventDefinition]) -> None:
    """Test events exactly at either end of the window are included."""
    first = make_definition(id="first", startTime="2024-03-01T00:00:00Z")
    last = make_definition(id="last", startTime="2024-03-31T12:00:00Z")
    occurrences = expand([first, last], utc(2024, 3, 1), utc(2024, 3, 31, 12))
    assert [occurrence.id for occurrence in occurrences] == ["first", "last"]


@pytest.mark.parametrize(
    "range_start,range_end",
    [
        ("2024-05-10", "2024-05-01"),
        (utc(2024, 5, 10), utc(2024, 5, 1)),
        ("not-a-date", "2024-05-01"),
        ("2024-05-01", "not-a-date"),
        (None, "2024-05-01"),
        ("2024-05-01", None),
    ],
)
def test_invalid_range(
    weekly_definition: EventDefinition,
    make_definition: Callable[..., EventDefinition],
    range_start: str | datetime.datetime | None,
    range_end: str | datetime.datetime | None,
) -> None:
    """Test an invalid window never produces occurrences."""
    definitions = [
        weekly_definition,
        make_definition(id="e2", startTime="2024-05-05T09:00:00Z"),
    ]
    assert expand(definitions, range_start, range_end) == []


def test_invalid_start_is_skipped(
    make_definition: Callable[..., EventDefinition],
    caplog: pytest.LogCaptureFixture,
) -> None:
    """Test a definition with an invalid start does not abort the expansion."""
    definitions = [
        make_definition(id="bad", startTime="garbage"),
        make_definition(id="missing"),
        make_definition(id="good", startTime="2024-03-05T09:00:00Z"),
    ]
    with caplog.at_level(logging.WARNING):
        occurrences = expand(definitions, "2024-03-01", "2024-03-31")
    assert [occurrence.id for occurrence in occurrences] == ["good"]
    assert "Skipping event bad with invalid start time" in caplog.text
    assert "Skipping event missing with invalid start time" in caplog.text


def test_invalid_recurrence_end(
    make_definition: Callable[..., EventDefinition],
) -> None:
    """Test a series with an invalid end date produces nothing."""
    definition = make_definition(
        id="e3",
        startTime="2024-03-05T09:00:00Z",
        recurrencePattern="DAILY",
        recurrenceEndDate="garbage",
    )
    assert expand([definition], "2024-03-01", "2024-03-31") == []
    assert not is_relevant(definition, "2024-03-01", "2024-03-31")


def test_incomplete_recurrence_is_single_event(
    make_definition: Callable[..., EventDefinition],
) -> None:
    """Test recurrence requires both a pattern and an end date."""
    definitions = [
        make_definition(
            id="pattern-only",
            startTime="2024-03-05T09:00:00Z",
            recurrencePattern="DAILY",
        ),
        make_definition(
            id="end-only",
            startTime="2024-03-06T09:00:00Z",
            recurrenceEndDate="2024-03-31T00:00:00Z",
        ),
    ]
    occurrences = expand(definitions, "2024-03-01", "2024-03-31")
    assert [occurrence.id for occurrence in occurrences] == ["pattern-only", "end-only"]


def test_monthly_end_of_month(make_definition: Callable[..., EventDefinition]) -> None:
    """Test a monthly event on the 31st in months with fewer days."""
    definition = make_definition(
        id="rent",
        startTime="2024-01-31T09:00:00Z",
        recurrencePattern="MONTHLY",
        recurrenceEndDate="2024-05-31T23:59:59Z",
    )
    occurrences = expand([definition], "2024-01-01", "2024-12-31")
    assert [occurrence.id for occurrence in occurrences] == [
        "rent",
        "rent::2024-02-29T09:00:00.000Z",
        "rent::2024-03-31T09:00:00.000Z",
        "rent::2024-04-30T09:00:00.000Z",
        "rent::2024-05-31T09:00:00.000Z",
    ]


def test_daily_keeps_local_time(make_definition: Callable[..., EventDefinition]) -> None:
    """Test a daily event keeps its wall clock time across a DST change."""
    definition = make_definition(
        id="walk",
        startTime=datetime.datetime(2024, 3, 9, 9, tzinfo=TZ),
        endTime=datetime.datetime(2024, 3, 9, 9, 30, tzinfo=TZ),
        recurrencePattern="DAILY",
        recurrenceEndDate=datetime.datetime(2024, 3, 11, 23, tzinfo=TZ),
    )
    occurrences = expand([definition], "2024-03-01", "2024-03-31", tzinfo=TZ)
    assert [occurrence.id for occurrence in occurrences] == [
        "walk",
        "walk::2024-03-10T13:00:00.000Z",
        "walk::2024-03-11T13:00:00.000Z",
    ]
    for occurrence in occurrences:
        assert occurrence.start_time
        assert occurrence.start_time.hour == 9


def test_iteration_limit(make_definition: Callable[..., EventDefinition]) -> None:
    """Test the number of occurrences of a series is bounded."""
    definition = make_definition(
        id="e4",
        startTime="2020-01-01T08:00:00Z",
        recurrencePattern="DAILY",
        recurrenceEndDate="2030-01-01T00:00:00Z",
    )
    occurrences = expand([definition], "2020-01-01", "2029-12-31")
    assert len(occurrences) == MAX_ITERATIONS
    assert occurrences[-1].start_time == utc(2020, 1, 1, 8) + datetime.timedelta(
        days=MAX_ITERATIONS - 1
    )

    # The limit counts steps from the start of the series, not the window
    assert expand([definition], "2024-01-01", "2024-01-31") == []
    assert not is_relevant(definition, "2024-01-01", "2024-01-31")


def test_out_of_range_series(
    make_definition: Callable[..., EventDefinition],
) -> None:
    """Test a series ends at the largest date instead of failing the expansion."""
    definitions = [
        make_definition(
            id="monthly",
            startTime="9999-12-15T00:00:00Z",
            recurrencePattern="MONTHLY",
            recurrenceEndDate="9999-12-31T00:00:00Z",
        ),
        make_definition(
            id="daily",
            startTime="9999-12-29T12:00:00Z",
            endTime="9999-12-30T12:00:00Z",
            recurrencePattern="DAILY",
            recurrenceEndDate="9999-12-31T23:00:00Z",
        ),
        make_definition(id="single", startTime="9999-12-20T00:00:00Z"),
    ]
    occurrences = expand(definitions, "9999-12-01", "9999-12-31")
    assert [(occurrence.id, occurrence.end_time) for occurrence in occurrences] == [
        ("monthly", None),
        ("daily", utc(9999, 12, 30, 12)),
        ("daily::9999-12-30T12:00:00.000Z", utc(9999, 12, 31, 12)),
        ("single", None),
    ]
    for definition in definitions:
        assert is_relevant(definition, "9999-12-01", "9999-12-31"), definition.id


def test_payload_is_copied(make_definition: Callable[..., EventDefinition]) -> None:
    """Test payload fields are copied onto every occurrence."""
    definition = make_definition(
        id="e5",
        startTime="2024-01-01T10:00:00Z",
        recurrencePattern="DAILY",
        recurrenceEndDate="2024-01-03T10:00:00Z",
        title="Standup",
    )
    occurrences = expand([definition], "2024-01-01", "2024-01-31")
    assert len(occurrences) == 3
    assert [occurrence.title for occurrence in occurrences] == ["Standup"] * 3  # type: ignore[attr-defined]
    # The definition is not modified
    assert definition.start_time == utc(2024, 1, 1, 10)


def test_original_event_id_anchor(
    make_definition: Callable[..., EventDefinition],
) -> None:
    """Test occurrences keep the anchor of a definition."""
    definition = make_definition(
        id="e6",
        originalEventId="series-1",
        startTime="2024-01-01T10:00:00Z",
        recurrencePattern="DAILY",
        recurrenceEndDate="2024-01-02T10:00:00Z",
    )
    occurrences = expand([definition], "2024-01-01", "2024-01-31")
    assert [occurrence.id for occurrence in occurrences] == [
        "e6",
        "e6::2024-01-02T10:00:00.000Z",
    ]
    assert {occurrence.original_event_id for occurrence in occurrences} == {"series-1"}


def test_synthetic_ids_are_reproducible(weekly_definition: EventDefinition) -> None:
    """Test independent expansions produce the same ids."""
    first = expand([weekly_definition], "2024-01-01", "2024-01-31")
    second = expand(
        [weekly_definition.model_copy()], utc(2024, 1, 5), "2024-01-31"
    )
    assert [occurrence.id for occurrence in first][1:] == [
        occurrence.id for occurrence in second
    ]
    assert synthetic_id("e1", utc(2024, 1, 8, 10)) == "e1::2024-01-08T10:00:00.000Z"


@pytest.mark.parametrize("pattern", ["DAILY", "WEEKLY", "MONTHLY"])
def test_duration_is_preserved(
    make_definition: Callable[..., EventDefinition], pattern: str
) -> None:
    """Test every occurrence has the duration of its definition."""
    with_end = make_definition(
        id="with-end",
        startTime="2024-01-01T10:00:00Z",
        endTime="2024-01-01T11:30:00Z",
        recurrencePattern=pattern,
        recurrenceEndDate="2024-12-31T00:00:00Z",
    )
    without_end = make_definition(
        id="without-end",
        startTime="2024-01-01T10:00:00Z",
        recurrencePattern=pattern,
        recurrenceEndDate="2024-12-31T00:00:00Z",
    )
    occurrences = expand([with_end, without_end], "2024-01-01", "2024-12-31")
    assert occurrences
    for occurrence in occurrences:
        if occurrence.original_event_id == "with-end":
            assert occurrence.end_time
            assert occurrence.start_time
            assert occurrence.end_time - occurrence.start_time == datetime.timedelta(
                minutes=90
            )
        else:
            assert occurrence.end_time is None


def test_input_order(make_definition: Callable[..., EventDefinition]) -> None:
    """Test expansion follows the input order while a timeline is sorted."""
    definitions = [
        make_definition(
            id="daily",
            startTime="2024-01-02T12:00:00Z",
            recurrencePattern="DAILY",
            recurrenceEndDate="2024-01-04T12:00:00Z",
        ),
        make_definition(id="single", startTime="2024-01-01T08:00:00Z"),
        make_definition(id="later", startTime="2024-01-03T08:00:00Z"),
    ]
    occurrences = expand(definitions, "2024-01-01", "2024-01-31")
    assert [occurrence.id for occurrence in occurrences] == [
        "daily",
        "daily::2024-01-03T12:00:00.000Z",
        "daily::2024-01-04T12:00:00.000Z",
        "single",
        "later",
    ]

    timespan = Timespan.of("2024-01-01", "2024-01-31")
    assert timespan
    timeline = Timeline(definitions, timespan)
    assert [occurrence.id for occurrence in timeline] == [
        "single",
        "daily",
        "later",
        "daily::2024-01-03T12:00:00.000Z",
        "daily::2024-01-04T12:00:00.000Z",
    ]
    assert [occurrence.id for occurrence in timeline.on_date(datetime.date(2024, 1, 3))] == [
        "later",
        "daily::2024-01-03T12:00:00.000Z",
    ]
    assert [
        occurrence.id for occurrence in timeline.start_after(utc(2024, 1, 3, 12))
    ] == [
        "daily::2024-01-03T12:00:00.000Z",
        "daily::2024-01-04T12:00:00.000Z",
    ]


def test_upcoming(weekly_definition: EventDefinition) -> None:
    """Test occurrences from now until the end of a window."""
    occurrences = upcoming(
        [weekly_definition], "2024-01-31", now=utc(2024, 1, 10, 12)
    )
    assert [occurrence.start_time for occurrence in occurrences] == [
        utc(2024, 1, 15, 10),
        utc(2024, 1, 22, 10),
        utc(2024, 1, 29, 10),
    ]
    assert upcoming([weekly_definition], "2024-01-01", now=utc(2024, 1, 10)) == []


@pytest.mark.parametrize(
    "range_start,range_end",
    [
        ("2024-01-01", "2024-01-01"),
        ("2024-01-02", "2024-01-07"),
        ("2024-01-08", "2024-01-08"),
        ("2024-01-09", "2024-01-14"),
        ("2023-12-01", "2023-12-31"),
        ("2024-01-29", "2024-02-28"),
        ("2024-01-30", "2024-02-28"),
        ("2024-02-01", "2024-02-28"),
        ("2024-03-01", "2024-03-31"),
        ("2024-02-15", "2024-02-01"),
        ("garbage", "2024-02-01"),
    ],
)
def test_relevance_agrees_with_expansion(
    make_definition: Callable[..., EventDefinition],
    weekly_definition: EventDefinition,
    range_start: str,
    range_end: str,
) -> None:
    """Test a definition is relevant exactly when it has occurrences."""
    definitions = [
        weekly_definition,
        make_definition(id="single", startTime="2024-03-05T09:00:00Z"),
        make_definition(
            id="monthly",
            startTime="2024-01-31T09:00:00Z",
            recurrencePattern="MONTHLY",
            recurrenceEndDate="2024-03-31T09:00:00Z",
        ),
        make_definition(
            id="ends-before-start",
            startTime="2024-01-08T09:00:00Z",
            recurrencePattern="DAILY",
            recurrenceEndDate="2024-01-01T00:00:00Z",
        ),
        make_definition(id="invalid", startTime="garbage"),
    ]
    for definition in definitions:
        assert is_relevant(definition, range_start, range_end) == bool(
            expand([definition], range_start, range_end)
        ), definition.id


def test_relevance_of_gap(weekly_definition: EventDefinition) -> None:
    """Test a window between two instances of a series is not relevant."""
    assert not is_relevant(weekly_definition, "2024-01-02", "2024-01-07")
    assert is_relevant(weekly_definition, "2024-01-02", "2024-01-08")


def test_relevance_stops_at_first_occurrence(
    make_definition: Callable[..., EventDefinition],
) -> None:
    """Test relevance of a long series does not expand the whole window."""
    definition = make_definition(
        id="daily",
        startTime="2024-01-01T09:00:00Z",
        recurrencePattern="DAILY",
        recurrenceEndDate="2030-01-01T00:00:00Z",
    )
    with patch.object(
        OccurrenceAdapter, "get", autospec=True, side_effect=OccurrenceAdapter.get
    ) as mock_get:
        assert is_relevant(definition, "2024-06-01", "2026-12-31")
    assert mock_get.call_count == 1
