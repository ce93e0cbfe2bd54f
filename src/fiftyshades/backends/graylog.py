# Graylog backend: universal absolute search API

from typing import Any, Dict, List

from ..errors import MalformedResponseError
from ..log import log
from ..models import LogEntry, Node, Query, arrange_entries
from ..timespan import format_timestamp, parse_timestamp
from .client import HttpClient

SEARCH_PATH = "/search/universal/absolute"
TIMESTAMP_FIELD = "timestamp"


def _error_detail(payload: Dict[str, Any]) -> str:
	return payload["message"]


def build_params(query: Query) -> Dict[str, str]:
	return {
		"query": query.raw_expression,
		"from": format_timestamp(query.time_range.start),
		"to": format_timestamp(query.time_range.end),
		"limit": str(query.limit),
		"sort": f"{TIMESTAMP_FIELD}:{query.sort.value}",
	}


def _message_to_entry(item: Any, position: int) -> LogEntry:
	if not isinstance(item, dict) or not isinstance(item.get("message"), dict):
		raise MalformedResponseError(f"Graylog message #{position} has no 'message' object: {item!r}")
	message = item["message"]
	entry_id = message.get("_id") or message.get("id")
	if entry_id is None:
		raise MalformedResponseError(f"Graylog message #{position} has no '_id'")
	timestamp = parse_timestamp(message.get(TIMESTAMP_FIELD))
	if timestamp is None:
		raise MalformedResponseError(
			f"Graylog message #{position} has an invalid timestamp: {message.get(TIMESTAMP_FIELD)!r}"
		)
	return LogEntry(timestamp=timestamp, id=str(entry_id), fields=message, raw_source=item)


def parse_response(response: Any) -> List[LogEntry]:
	if not isinstance(response, dict):
		raise MalformedResponseError(f"Graylog search returned {type(response).__name__}, expected an object")
	messages = response.get("messages")
	if not isinstance(messages, list):
		raise MalformedResponseError("Graylog search response has no 'messages' list")
	return [_message_to_entry(item, position) for position, item in enumerate(messages)]


class GraylogAdapter:
	"""Search a Graylog node through its REST API."""

	def __init__(self, node: Node, secret=None, timeout=30):
		self.node = node
		self.client = HttpClient(
			node.url,
			user=node.user,
			password=secret,
			timeout=timeout,
			error_detail=_error_detail,
		)

	def execute(self, query: Query) -> List[LogEntry]:
		response = self.client.get(SEARCH_PATH, params=build_params(query))
		entries = parse_response(response)
		total = response.get("total_results")
		if isinstance(total, int) and total > len(entries):
			log.warning("Showing %d of %d matching messages from %s", len(entries), total, self.node.name)
		return arrange_entries(entries, query)
