# Natural-language timespan resolution
#
# Phrases such as "yesterday", "last 2 hours" or "since monday 9am" are
# resolved against an injectable clock into absolute UTC ranges.

import re
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from typing import Any, Callable, NamedTuple, Optional

from dateutil import parser as dt_parser
from dateutil.relativedelta import relativedelta

from .errors import ParseError

Clock = Callable[[], datetime]


def utc_now() -> datetime:
	return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
	"""Format as ISO 8601 UTC with millisecond precision, e.g. 2024-03-15T10:00:00.000Z."""
	return value.astimezone(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"


def parse_timestamp(value: Any) -> Optional[datetime]:
	"""Parse a backend timestamp (ISO string or epoch number) into an aware UTC datetime."""
	if value is None or isinstance(value, bool):
		return None
	if isinstance(value, (int, float)):
		# Epoch milliseconds are the norm for date fields; fall back to seconds
		seconds = value / 1000.0 if abs(value) > 1e11 else value
		try:
			return datetime.fromtimestamp(seconds, tz=timezone.utc)
		except (OverflowError, OSError, ValueError):
			return None
	if isinstance(value, str):
		try:
			parsed = dt_parser.isoparse(value.strip())
		except (ValueError, OverflowError):
			return None
		if parsed.tzinfo is None:
			parsed = parsed.replace(tzinfo=timezone.utc)
		return parsed.astimezone(timezone.utc)
	return None


@dataclass(frozen=True)
class TimeRange:
	"""Half-open UTC interval [start, end)."""

	start: datetime
	end: datetime

	def __post_init__(self):
		if self.start.tzinfo is None or self.end.tzinfo is None:
			raise ValueError("TimeRange bounds must be timezone-aware")
		object.__setattr__(self, "start", self.start.astimezone(timezone.utc))
		object.__setattr__(self, "end", self.end.astimezone(timezone.utc))
		if not self.start < self.end:
			raise ParseError(
				f"{format_timestamp(self.start)} to {format_timestamp(self.end)}",
				"start of range must be before its end",
			)

	def contains(self, value: datetime) -> bool:
		return self.start <= value < self.end

	def __str__(self):
		return f"[{format_timestamp(self.start)}, {format_timestamp(self.end)})"


class Span(NamedTuple):
	"""Resolved extent of a single phrase. Instants have start == end."""

	start: datetime
	end: datetime

	@property
	def is_instant(self) -> bool:
		return self.start == self.end


_UNITS = {
	"s": "second", "sec": "second", "secs": "second", "second": "second", "seconds": "second",
	"m": "minute", "min": "minute", "mins": "minute", "minute": "minute", "minutes": "minute",
	"h": "hour", "hr": "hour", "hrs": "hour", "hour": "hour", "hours": "hour",
	"d": "day", "day": "day", "days": "day",
	"w": "week", "wk": "week", "wks": "week", "week": "week", "weeks": "week",
	"month": "month", "months": "month",
	"y": "year", "yr": "year", "yrs": "year", "year": "year", "years": "year",
}

_NUMBER_WORDS = {
	"a": 1, "an": 1, "one": 1, "two": 2, "three": 3, "four": 4, "five": 5, "six": 6,
	"seven": 7, "eight": 8, "nine": 9, "ten": 10, "eleven": 11, "twelve": 12,
}

_WEEKDAYS = {
	"monday": 0, "mon": 0,
	"tuesday": 1, "tue": 1, "tues": 1,
	"wednesday": 2, "wed": 2,
	"thursday": 3, "thu": 3, "thur": 3, "thurs": 3,
	"friday": 4, "fri": 4,
	"saturday": 5, "sat": 5,
	"sunday": 6, "sun": 6,
}

_BETWEEN_RE = re.compile(r"^between\s+(?P<a>.+?)\s+and\s+(?P<b>.+)$")
_RANGE_RE = re.compile(r"^(?:from\s+)?(?P<a>.+?)\s+(?:to|until|till)\s+(?P<b>.+)$")
_SINCE_RE = re.compile(r"^since\s+(?P<a>.+)$")
_LAST_RE = re.compile(r"^(?:last|past|previous)\s+(?:(?P<n>\S+)\s+)?(?P<unit>[a-z]+)$")
_AGO_RE = re.compile(r"^(?:(?P<num>\d+)\s*|(?P<word>[a-z]+)\s+)(?P<unit>[a-z]+)\s+ago$")
_THIS_RE = re.compile(r"^this\s+(?P<unit>[a-z]+)$")
_DAY_TIME_RE = re.compile(r"^(?P<day>(?:last\s+)?[a-z]+)\s+(?:at\s+)?(?P<time>.+)$")
_TIME_RE = re.compile(
	r"^(?P<hour>\d{1,2})(?::(?P<minute>\d{2}))?(?::(?P<second>\d{2}))?\s*(?P<meridiem>am|pm)?$"
)
_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_DURATION_RE = re.compile(r"^(?P<n>\d+)\s*(?P<unit>[a-z]+)$")


def _delta(unit: str, count: int) -> relativedelta:
	return relativedelta(**{f"{unit}s": count})


class TimespanResolver:
	"""Resolve English timespan phrases into UTC ranges.

	Calendar phrases ("today", "monday 9am") are interpreted in ``tz``;
	every result is converted to UTC. ``clock`` is the single source of
	"now" and must return an aware datetime.
	"""

	def __init__(self, clock: Clock = utc_now, tz=timezone.utc):
		self.clock = clock
		self.tz = tz

	def now(self) -> datetime:
		return self.clock().astimezone(self.tz)

	def resolve(self, phrase: str) -> TimeRange:
		"""Resolve a single phrase. Instants and "since" phrases extend to now."""
		now = self.now()
		span = self._span(phrase, now)
		end = now if span.is_instant else span.end
		return self._range(phrase, span.start, end)

	def resolve_bounds(self, start_phrase: str, end_phrase: str) -> TimeRange:
		"""Resolve an explicit pair: from the start of one phrase to the end of the other."""
		now = self.now()
		start = self._span(start_phrase, now).start
		end = self._span(end_phrase, now).end
		return self._range(f"{start_phrase} to {end_phrase}", start, end)

	def resolve_start(self, phrase: str) -> datetime:
		"""Resolve the instant a phrase begins at, in UTC."""
		return self._span(phrase, self.now()).start.astimezone(timezone.utc)

	def span(self, phrase: str) -> Span:
		span = self._span(phrase, self.now())
		return Span(span.start.astimezone(timezone.utc), span.end.astimezone(timezone.utc))

	def _range(self, phrase, start, end) -> TimeRange:
		if not start < end:
			raise ParseError(phrase, "the resolved range is empty or lies in the future")
		return TimeRange(start, end)

	def _span(self, phrase: str, now: datetime) -> Span:
		if not isinstance(phrase, str):
			raise ParseError(str(phrase), "not a string")
		text = " ".join(phrase.strip().lower().split())
		if not text:
			raise ParseError(phrase, "empty expression")

		match = _BETWEEN_RE.match(text) or _RANGE_RE.match(text)
		if match:
			first = self._simple(match.group("a"), now, phrase)
			second = self._simple(match.group("b"), now, phrase)
			return Span(first.start, second.end)

		match = _SINCE_RE.match(text)
		if match:
			return Span(self._simple(match.group("a"), now, phrase).start, now)

		return self._simple(text, now, phrase)

	def _simple(self, text: str, now: datetime, phrase: str) -> Span:
		text = text.strip()
		if text == "now":
			return Span(now, now)

		day = self._day(text, now)
		if day is not None:
			return Span(day, day + timedelta(days=1))

		match = _THIS_RE.match(text)
		if match:
			unit = self._unit(match.group("unit"), phrase)
			start = self._truncate(now, unit)
			return Span(start, start + _delta(unit, 1))

		match = _LAST_RE.match(text)
		if match and match.group("unit") not in _WEEKDAYS:
			unit = self._unit(match.group("unit"), phrase)
			count = self._count(match.group("n"), phrase) if match.group("n") else 1
			return Span(now - _delta(unit, count), now)

		match = _AGO_RE.match(text)
		if match:
			unit = self._unit(match.group("unit"), phrase)
			count = int(match.group("num")) if match.group("num") else self._count(match.group("word"), phrase)
			instant = now - _delta(unit, count)
			return Span(instant, instant)

		clock_time = self._time_of_day(text)
		if clock_time is not None:
			instant = self._at(now, clock_time)
			return Span(instant, instant)

		match = _DAY_TIME_RE.match(text)
		if match:
			day = self._day(match.group("day"), now)
			clock_time = self._time_of_day(match.group("time"))
			if day is not None and clock_time is not None:
				instant = self._at(day, clock_time)
				return Span(instant, instant)

		return self._absolute(text, now, phrase)

	def _day(self, text: str, now: datetime) -> Optional[datetime]:
		midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
		if text == "today":
			return midnight
		if text == "yesterday":
			return midnight - timedelta(days=1)
		strict = False
		if text.startswith("last "):
			strict = True
			text = text[len("last "):]
		weekday = _WEEKDAYS.get(text)
		if weekday is None:
			return None
		offset = (midnight.weekday() - weekday) % 7
		if strict and offset == 0:
			offset = 7
		return midnight - timedelta(days=offset)

	def _time_of_day(self, text: str) -> Optional[time]:
		text = text.strip()
		if text == "noon":
			return time(12, 0)
		if text == "midnight":
			return time(0, 0)
		match = _TIME_RE.match(text)
		if not match:
			return None
		meridiem = match.group("meridiem")
		if match.group("minute") is None and meridiem is None:
			# A bare number is not a time of day
			return None
		hour = int(match.group("hour"))
		minute = int(match.group("minute") or 0)
		second = int(match.group("second") or 0)
		if meridiem:
			if not 1 <= hour <= 12:
				return None
			hour = hour % 12 + (12 if meridiem == "pm" else 0)
		if hour > 23 or minute > 59 or second > 59:
			return None
		return time(hour, minute, second)

	def _at(self, day: datetime, clock_time: time) -> datetime:
		return datetime.combine(day.date(), clock_time, tzinfo=self.tz)

	def _absolute(self, text: str, now: datetime, phrase: str) -> Span:
		if not any(ch.isdigit() for ch in text):
			raise ParseError(phrase)
		if text.isdigit():
			raise ParseError(phrase, "a bare number is ambiguous")
		match = _DURATION_RE.match(text)
		if match and match.group("unit") in _UNITS:
			n, unit = match.group("n"), match.group("unit")
			raise ParseError(phrase, f"did you mean 'last {n} {unit}' or '{n} {unit} ago'?")
		if _ISO_DATE_RE.match(text) or "t" in text and text[:4].isdigit():
			try:
				value = dt_parser.isoparse(text.upper())
			except (ValueError, OverflowError) as e:
				raise ParseError(phrase, str(e))
			value = self._localize(value)
			if _ISO_DATE_RE.match(text):
				return Span(value, value + timedelta(days=1))
			return Span(value, value)

		default = now.replace(hour=0, minute=0, second=0, microsecond=0, tzinfo=None)
		try:
			value = dt_parser.parse(text, default=default)
		except (ValueError, OverflowError) as e:
			raise ParseError(phrase, str(e))
		value = self._localize(value)
		has_time = ":" in text or re.search(r"\d\s*(am|pm)\b", text) is not None
		if has_time:
			return Span(value, value)
		return Span(value, value + timedelta(days=1))

	def _localize(self, value: datetime) -> datetime:
		if value.tzinfo is None:
			return value.replace(tzinfo=self.tz)
		return value

	def _truncate(self, now: datetime, unit: str) -> datetime:
		start = now.replace(microsecond=0)
		if unit == "second":
			return start
		start = start.replace(second=0)
		if unit == "minute":
			return start
		start = start.replace(minute=0)
		if unit == "hour":
			return start
		start = start.replace(hour=0)
		if unit == "day":
			return start
		if unit == "week":
			return start - timedelta(days=start.weekday())
		start = start.replace(day=1)
		if unit == "month":
			return start
		return start.replace(month=1)

	def _unit(self, word: str, phrase: str) -> str:
		unit = _UNITS.get(word)
		if unit is None:
			raise ParseError(phrase, f"unknown unit '{word}'")
		return unit

	def _count(self, word: str, phrase: str) -> int:
		if word.isdigit():
			count = int(word)
		elif word in _NUMBER_WORDS:
			count = _NUMBER_WORDS[word]
		else:
			raise ParseError(phrase, f"not a number: '{word}'")
		if count < 1:
			raise ParseError(phrase, "count must be positive")
		return count
