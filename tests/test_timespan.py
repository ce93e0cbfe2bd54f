from datetime import datetime, timedelta, timezone

import pytest
from dateutil import tz

from conftest import FixedClock, ts
from fiftyshades.errors import ParseError
from fiftyshades.timespan import (
    TimeRange,
    TimespanResolver,
    format_timestamp,
    parse_timestamp,
)


@pytest.fixture
def resolver(clock):
    # 2024-03-15 is a Friday
    return TimespanResolver(clock=clock)


def test_yesterday_is_previous_utc_day(resolver):
    time_range = resolver.resolve("yesterday")
    assert time_range.start == ts("2024-03-14T00:00:00Z")
    assert time_range.end == ts("2024-03-15T00:00:00Z")


def test_unparseable_phrase_names_the_phrase(resolver):
    with pytest.raises(ParseError) as excinfo:
        resolver.resolve("blorp")
    assert excinfo.value.phrase == "blorp"
    assert "blorp" in str(excinfo.value)


@pytest.mark.parametrize("phrase", ["", "   ", "last 2 blorps", "zero hours ago", "25:00", "42", "since", "2 hours", "10 minutes", "15m", "3 days"])
def test_invalid_phrases_raise(resolver, phrase):
    with pytest.raises(ParseError):
        resolver.resolve(phrase)


def test_bare_duration_suggests_relative_phrases(resolver):
    with pytest.raises(ParseError) as excinfo:
        resolver.resolve_bounds("10 minutes", "now")
    assert "last 10 minutes" in str(excinfo.value)
    assert "10 minutes ago" in str(excinfo.value)


def test_last_n_hours_ends_now(resolver):
    time_range = resolver.resolve("last 2 hours")
    assert time_range.start == ts("2024-03-15T08:00:00Z")
    assert time_range.end == ts("2024-03-15T10:00:00Z")


@pytest.mark.parametrize(
    "phrase, start",
    [
        ("last hour", "2024-03-15T09:00:00Z"),
        ("past 15 minutes", "2024-03-15T09:45:00Z"),
        ("last three days", "2024-03-12T10:00:00Z"),
        ("last 1 month", "2024-02-15T10:00:00Z"),
        ("30m ago", "2024-03-15T09:30:00Z"),
        ("an hour ago", "2024-03-15T09:00:00Z"),
        ("2 weeks ago", "2024-03-01T10:00:00Z"),
    ],
)
def test_relative_phrases_extend_to_now(resolver, phrase, start):
    time_range = resolver.resolve(phrase)
    assert time_range.start == ts(start)
    assert time_range.end == ts("2024-03-15T10:00:00Z")


def test_today_covers_whole_day(resolver):
    time_range = resolver.resolve("Today")
    assert time_range.start == ts("2024-03-15T00:00:00Z")
    assert time_range.end == ts("2024-03-16T00:00:00Z")


def test_since_weekday_with_time(resolver):
    time_range = resolver.resolve("since monday 9am")
    assert time_range.start == ts("2024-03-11T09:00:00Z")
    assert time_range.end == ts("2024-03-15T10:00:00Z")


def test_weekday_matching_today_is_today(resolver):
    assert resolver.resolve("friday").start == ts("2024-03-15T00:00:00Z")
    assert resolver.resolve("last friday").start == ts("2024-03-08T00:00:00Z")


def test_time_of_day_alone_is_open_ended(resolver):
    time_range = resolver.resolve("9:30")
    assert time_range.start == ts("2024-03-15T09:30:00Z")
    assert time_range.end == ts("2024-03-15T10:00:00Z")


def test_future_instant_is_rejected(resolver):
    with pytest.raises(ParseError):
        resolver.resolve("9pm")


def test_this_week_starts_monday(resolver):
    time_range = resolver.resolve("this week")
    assert time_range.start == ts("2024-03-11T00:00:00Z")
    assert time_range.end == ts("2024-03-18T00:00:00Z")


def test_explicit_range_phrase(resolver):
    time_range = resolver.resolve("from yesterday 08:00 to yesterday noon")
    assert time_range.start == ts("2024-03-14T08:00:00Z")
    assert time_range.end == ts("2024-03-14T12:00:00Z")


def test_between_phrase(resolver):
    time_range = resolver.resolve("between monday and tuesday")
    assert time_range.start == ts("2024-03-11T00:00:00Z")
    assert time_range.end == ts("2024-03-13T00:00:00Z")


def test_resolve_bounds_uses_start_and_end_of_each_phrase(resolver):
    time_range = resolver.resolve_bounds("yesterday", "yesterday")
    assert time_range.start == ts("2024-03-14T00:00:00Z")
    assert time_range.end == ts("2024-03-15T00:00:00Z")

    time_range = resolver.resolve_bounds("last 15 minutes", "now")
    assert time_range.start == ts("2024-03-15T09:45:00Z")
    assert time_range.end == ts("2024-03-15T10:00:00Z")


def test_resolve_bounds_rejects_reversed_range(resolver):
    with pytest.raises(ParseError):
        resolver.resolve_bounds("today", "yesterday")


def test_iso_dates_and_datetimes(resolver):
    day = resolver.resolve("2024-03-01")
    assert day.start == ts("2024-03-01T00:00:00Z")
    assert day.end == ts("2024-03-02T00:00:00Z")

    instant = resolver.resolve("2024-03-15T08:00:00+02:00")
    assert instant.start == ts("2024-03-15T06:00:00Z")
    assert instant.end == ts("2024-03-15T10:00:00Z")


def test_free_form_absolute_date(resolver):
    time_range = resolver.resolve("March 1 2024")
    assert time_range.start == ts("2024-03-01T00:00:00Z")
    assert time_range.end == ts("2024-03-02T00:00:00Z")


def test_resolve_start_for_follow(resolver):
    assert resolver.resolve_start("now") == ts("2024-03-15T10:00:00Z")
    assert resolver.resolve_start("5 minutes ago") == ts("2024-03-15T09:55:00Z")


def test_calendar_phrases_use_resolver_time_zone():
    clock = FixedClock(ts("2024-03-15T10:00:00Z"))
    resolver = TimespanResolver(clock=clock, tz=tz.gettz("Europe/Berlin"))
    time_range = resolver.resolve("yesterday")
    # Berlin is UTC+1 in March before the DST switch
    assert time_range.start == ts("2024-03-13T23:00:00Z")
    assert time_range.end == ts("2024-03-14T23:00:00Z")
    assert time_range.start.tzinfo == timezone.utc


def test_clock_is_read_at_resolution_time(resolver, clock):
    first = resolver.resolve("since today")
    clock.advance(timedelta(minutes=5))
    second = resolver.resolve("since today")
    assert second.end - first.end == timedelta(minutes=5)


def test_time_range_requires_start_before_end():
    instant = ts("2024-03-15T10:00:00Z")
    with pytest.raises(ParseError):
        TimeRange(instant, instant)
    with pytest.raises(ValueError):
        TimeRange(datetime(2024, 3, 15), datetime(2024, 3, 16))


def test_time_range_is_half_open():
    time_range = TimeRange(ts("2024-03-15T09:00:00Z"), ts("2024-03-15T10:00:00Z"))
    assert time_range.contains(ts("2024-03-15T09:00:00Z"))
    assert not time_range.contains(ts("2024-03-15T10:00:00Z"))


def test_format_timestamp_millisecond_precision():
    value = datetime(2024, 3, 15, 10, 0, 0, 123456, tzinfo=timezone.utc)
    assert format_timestamp(value) == "2024-03-15T10:00:00.123Z"


@pytest.mark.parametrize(
    "value, expected",
    [
        ("2024-03-15T10:00:00.123Z", datetime(2024, 3, 15, 10, 0, 0, 123000, tzinfo=timezone.utc)),
        ("2024-03-15T12:00:00+02:00", datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)),
        ("2024-03-15T10:00:00", datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)),
        (1710496800000, datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)),
        (1710496800, datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)),
    ],
)
def test_parse_timestamp(value, expected):
    assert parse_timestamp(value) == expected


@pytest.mark.parametrize("value", [None, True, "yesterday", {}, ""])
def test_parse_timestamp_rejects_garbage(value):
    assert parse_timestamp(value) is None
