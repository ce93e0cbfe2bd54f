# Query orchestration: one-shot queries and the follow (tail -f) loop

import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, FrozenSet, Iterable, List, Optional, Tuple

from .errors import TransientError
from .log import log
from .models import MAX_RESULTS_LIMIT, LogEntry, Query, Sort, sort_key
from .timespan import Clock, TimeRange, format_timestamp, utc_now


def execute_query(adapter, query: Query) -> List[LogEntry]:
	"""Run one request/response cycle; entries come back in adapter order."""
	return adapter.execute(query)


def run_query(adapter, expression: str, time_range: TimeRange, limit: int = MAX_RESULTS_LIMIT) -> List[LogEntry]:
	"""Run a one-shot query returning the most recent ``limit`` entries, oldest first."""
	query = Query(raw_expression=expression, time_range=time_range, limit=limit, sort=Sort.DESCENDING)
	return execute_query(adapter, query)


@dataclass(frozen=True)
class FollowCursor:
	"""Latest emitted timestamp and the ids already emitted at it."""

	last_timestamp: datetime
	seen_ids: FrozenSet[str] = frozenset()


def advance_cursor(cursor: FollowCursor, entries: Iterable[LogEntry]) -> Tuple[List[LogEntry], FollowCursor]:
	"""Pick the entries not yet emitted and compute the next cursor.

	The lower bound of every poll window is inclusive, so entries at
	``cursor.last_timestamp`` may come back again and are filtered by id.
	"""
	emitted: List[LogEntry] = []
	batch_ids = set()
	for entry in sorted(entries, key=sort_key):
		if entry.timestamp < cursor.last_timestamp:
			continue
		if entry.timestamp == cursor.last_timestamp and entry.id in cursor.seen_ids:
			continue
		key = (entry.timestamp, entry.id)
		if key in batch_ids:
			continue
		batch_ids.add(key)
		emitted.append(entry)

	if not emitted:
		return emitted, cursor

	last_timestamp = emitted[-1].timestamp
	seen_ids = {entry.id for entry in emitted if entry.timestamp == last_timestamp}
	if last_timestamp == cursor.last_timestamp:
		seen_ids |= cursor.seen_ids
	return emitted, FollowCursor(last_timestamp, frozenset(seen_ids))


class FollowState(Enum):
	POLLING = "polling"
	SLEEPING = "sleeping"
	TERMINATED = "terminated"


class Follower:
	"""Poll a backend on a sliding window and hand out each entry exactly once.

	Only one request is in flight at a time and the cursor is touched only
	between completed polls. ``stop()`` may be called from a signal handler;
	it wakes a sleeping loop immediately and discards the result of a poll
	that was in flight.
	"""

	def __init__(
		self,
		adapter,
		expression: str,
		start: datetime,
		limit: int = MAX_RESULTS_LIMIT,
		poll_interval: float = 2.0,
		latency: float = 0.0,
		clock: Clock = utc_now,
	):
		self.adapter = adapter
		self.expression = expression
		self.limit = limit
		self.poll_interval = poll_interval
		self.latency = timedelta(seconds=latency)
		self.clock = clock
		self.cursor = FollowCursor(start)
		self.state = FollowState.POLLING
		self.consecutive_errors = 0
		self._stop = threading.Event()

	def stop(self) -> None:
		self._stop.set()

	@property
	def stopped(self) -> bool:
		return self._stop.is_set()

	def window(self) -> Optional[TimeRange]:
		end = self.clock() - self.latency
		if end <= self.cursor.last_timestamp:
			return None
		return TimeRange(self.cursor.last_timestamp, end)

	def poll(self) -> List[LogEntry]:
		"""Run one poll and return the entries not emitted before."""
		window = self.window()
		if window is None:
			log.debug("Poll window is empty, cursor=%s", format_timestamp(self.cursor.last_timestamp))
			return []
		query = Query(raw_expression=self.expression, time_range=window, limit=self.limit, sort=Sort.ASCENDING)
		log.debug("Polling %s", window)
		try:
			entries = execute_query(self.adapter, query)
		except TransientError as e:
			self.consecutive_errors += 1
			log.warning("%s (attempt %d, retrying in %ss)", e, self.consecutive_errors, self.poll_interval)
			return []
		self.consecutive_errors = 0
		if self.stopped:
			log.debug("Discarding %d entries received after stop", len(entries))
			return []
		emitted, self.cursor = advance_cursor(self.cursor, entries)
		log.debug("Received %d entries, %d new", len(entries), len(emitted))
		return emitted

	def run(self, emit: Callable[[LogEntry], None]) -> None:
		"""Poll until stopped, passing new entries to ``emit`` in timestamp order."""
		while not self.stopped:
			self.state = FollowState.POLLING
			for entry in self.poll():
				emit(entry)
			if self.stopped:
				break
			self.state = FollowState.SLEEPING
			self._stop.wait(self.poll_interval)
		self.state = FollowState.TERMINATED
