# Elasticsearch backend: index-pattern scoped _search with the query DSL

from typing import Any, Dict, List, Optional

from ..errors import MalformedResponseError
from ..log import log
from ..models import LogEntry, Node, Query, arrange_entries
from ..timespan import format_timestamp, parse_timestamp
from .client import HttpClient

SEARCH_PATH = "/_search"
DEFAULT_TIMESTAMP_FIELD = "@timestamp"


def _error_detail(payload: Dict[str, Any]) -> str:
	error = payload["error"]
	if isinstance(error, dict):
		return f"{error['type']}: {error['reason']}"
	return str(error)


def build_body(query: Query, timestamp_field: str = DEFAULT_TIMESTAMP_FIELD) -> Dict[str, Any]:
	return {
		"size": query.limit,
		"sort": [{timestamp_field: {"order": query.sort.value}}],
		"query": {
			"bool": {
				"must": [{"query_string": {"query": query.raw_expression}}],
				"filter": [
					{
						"range": {
							timestamp_field: {
								"gte": format_timestamp(query.time_range.start),
								"lt": format_timestamp(query.time_range.end),
								"format": "strict_date_optional_time",
							}
						}
					}
				],
			}
		},
	}


def _total_hits(hits: Dict[str, Any]) -> Optional[int]:
	total = hits.get("total")
	# Elasticsearch 7+ reports {"value": n, "relation": "eq"}; older versions a bare number
	if isinstance(total, dict):
		total = total.get("value")
	return total if isinstance(total, int) else None


def _hit_to_entry(hit: Any, position: int, timestamp_field: str) -> LogEntry:
	if not isinstance(hit, dict):
		raise MalformedResponseError(f"Elasticsearch hit #{position} is {type(hit).__name__}: {hit!r}")
	source = hit.get("_source")
	if not isinstance(source, dict):
		raise MalformedResponseError(f"Elasticsearch hit #{position} has no '_source' object")
	if hit.get("_id") is None:
		raise MalformedResponseError(f"Elasticsearch hit #{position} has no '_id'")
	timestamp = parse_timestamp(source.get(timestamp_field))
	if timestamp is None:
		raise MalformedResponseError(
			f"Elasticsearch hit #{position} has an invalid '{timestamp_field}': {source.get(timestamp_field)!r}"
		)
	return LogEntry(timestamp=timestamp, id=str(hit["_id"]), fields=source, raw_source=hit)


def parse_response(response: Any, timestamp_field: str = DEFAULT_TIMESTAMP_FIELD) -> List[LogEntry]:
	if not isinstance(response, dict):
		raise MalformedResponseError(f"Elasticsearch search returned {type(response).__name__}, expected an object")
	hits = response.get("hits")
	if not isinstance(hits, dict) or not isinstance(hits.get("hits"), list):
		raise MalformedResponseError("Elasticsearch search response has no 'hits.hits' list")
	return [_hit_to_entry(hit, position, timestamp_field) for position, hit in enumerate(hits["hits"])]


class ElasticAdapter:
	"""Search an Elasticsearch index pattern; the pattern is the last segment of the node URL."""

	def __init__(self, node: Node, secret=None, timeout=30):
		self.node = node
		self.timestamp_field = node.timestamp_field or DEFAULT_TIMESTAMP_FIELD
		self.client = HttpClient(
			node.url,
			user=node.user,
			password=secret,
			timeout=timeout,
			error_detail=_error_detail,
		)

	def execute(self, query: Query) -> List[LogEntry]:
		response = self.client.post(SEARCH_PATH, build_body(query, self.timestamp_field))
		entries = parse_response(response, self.timestamp_field)
		total = _total_hits(response["hits"])
		if total is not None and total > len(entries):
			log.warning("Showing %d of %d matching documents from %s", len(entries), total, self.node.name)
		return arrange_entries(entries, query)
