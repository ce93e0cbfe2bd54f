# Normalized query and result types shared by all backends

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from .timespan import TimeRange, format_timestamp

# Elasticsearch's default index.max_result_window; Graylog accepts it as well.
MAX_RESULTS_LIMIT = 10000
DEFAULT_QUERY = "*"


class BackendType(str, Enum):
	GRAYLOG = "graylog"
	ELASTIC = "elastic"


class Sort(str, Enum):
	ASCENDING = "asc"
	DESCENDING = "desc"


@dataclass(frozen=True)
class Node:
	"""One configured, named backend endpoint."""

	name: str
	url: str
	backend_type: BackendType
	user: Optional[str] = None
	timestamp_field: Optional[str] = None


@dataclass(frozen=True)
class Query:
	raw_expression: str
	time_range: TimeRange
	limit: int = MAX_RESULTS_LIMIT
	sort: Sort = Sort.DESCENDING

	def __post_init__(self):
		if self.limit < 1:
			raise ValueError(f"limit must be at least 1, got {self.limit}")
		object.__setattr__(self, "limit", min(int(self.limit), MAX_RESULTS_LIMIT))
		if not (self.raw_expression or "").strip():
			object.__setattr__(self, "raw_expression", DEFAULT_QUERY)


@dataclass(frozen=True)
class LogEntry:
	timestamp: datetime
	id: str
	fields: Dict[str, Any] = field(default_factory=dict)
	raw_source: Any = None

	def record(self) -> Dict[str, Any]:
		"""Return the key-value record handed to templates."""
		record = dict(self.fields)
		record["_id"] = self.id
		record["_timestamp"] = format_timestamp(self.timestamp)
		return record


def sort_key(entry: LogEntry):
	return (entry.timestamp, entry.id)


def arrange_entries(entries: Iterable[LogEntry], query: Query) -> List[LogEntry]:
	"""Clip entries to the query window and limit, returned in chronological order.

	Descending queries keep the most recent ``limit`` entries, ascending
	queries the oldest, regardless of the order the backend answered in.
	"""
	in_range = [entry for entry in entries if query.time_range.contains(entry.timestamp)]
	descending = query.sort == Sort.DESCENDING
	in_range.sort(key=sort_key, reverse=descending)
	selected = in_range[:query.limit]
	if descending:
		selected.reverse()
	return selected
