# HTTP transport shared by the backend adapters - using stdlib urllib for fast imports

import http.client
import json
import socket
import urllib.error
import urllib.parse
import urllib.request
from base64 import b64encode

from ..errors import (
	AuthError,
	BackendError,
	MalformedResponseError,
	NotFoundError,
	TransientError,
)
from ..log import log


def _snippet(text, size=200):
	text = text.strip()
	return text if len(text) <= size else text[:size] + "..."


class HttpClient:
	"""Minimal JSON-over-HTTP client with optional Basic auth."""

	def __init__(self, base_url, user=None, password=None, timeout=30, error_detail=None):
		self.base_url = base_url.rstrip("/")
		self.timeout = timeout
		# Backend-specific extraction of an error message from an error body
		self.error_detail = error_detail
		self.headers = {
			"Accept": "application/json",
			"Content-Type": "application/json",
		}
		if user is not None:
			# Pre-compute auth header
			credentials = b64encode(f"{user}:{password or ''}".encode("utf-8")).decode("ascii")
			self.headers["Authorization"] = f"Basic {credentials}"

	def url(self, path, params=None):
		url = f"{self.base_url}{path}"
		if params:
			url += "?" + urllib.parse.urlencode(params, quote_via=urllib.parse.quote)
		return url

	def get(self, path, params=None):
		return self._request("GET", path, params=params)

	def post(self, path, body, params=None):
		return self._request("POST", path, body=body, params=params)

	def _request(self, method, path, body=None, params=None):
		"""Make an HTTP request and decode the JSON response."""
		url = self.url(path, params)
		data = json.dumps(body).encode("utf-8") if body is not None else None
		req = urllib.request.Request(url, data=data, headers=self.headers, method=method)
		log.debug("%s %s", method, url)
		try:
			with urllib.request.urlopen(req, timeout=self.timeout) as resp:
				raw = resp.read()
		except urllib.error.HTTPError as e:
			raise self._http_error(e, url)
		except urllib.error.URLError as e:
			raise TransientError(f"Cannot connect to {self.base_url}: {e.reason}")
		except (socket.timeout, TimeoutError):
			raise TransientError(f"Request to {self.base_url} timed out after {self.timeout}s")
		except ConnectionError as e:
			raise TransientError(f"Connection to {self.base_url} failed: {e}")
		except http.client.HTTPException as e:
			raise TransientError(f"Connection to {self.base_url} broke off: {type(e).__name__}: {e}")
		return self._decode(raw, url)

	def _decode(self, raw, url):
		try:
			text = raw.decode("utf-8")
		except UnicodeDecodeError as e:
			raise MalformedResponseError(f"Response from {url} is not valid UTF-8: {e}")
		if not text.strip():
			raise MalformedResponseError(f"Empty response body from {url}")
		try:
			return json.loads(text)
		except ValueError as e:
			raise MalformedResponseError(f"Response from {url} is not JSON ({e}): {_snippet(text)}")

	def _http_error(self, e, url):
		try:
			body = e.read().decode("utf-8", errors="replace")
		except (OSError, ValueError):
			body = ""
		detail = self._error_detail(body) or e.reason or "No details given"
		if e.code in (401, 403):
			return AuthError(f"Authentication failed for {self.base_url} (HTTP {e.code})")
		if e.code == 404:
			return NotFoundError(f"Not found: {url} (HTTP 404): {detail}")
		if e.code >= 500:
			return TransientError(f"Server error from {self.base_url} (HTTP {e.code}): {detail}")
		return BackendError(f"HTTP {e.code}: {detail}")

	def _error_detail(self, body):
		if not body or self.error_detail is None:
			return None
		try:
			payload = json.loads(body)
		except ValueError:
			return _snippet(body)
		try:
			return self.error_detail(payload)
		except (AttributeError, KeyError, TypeError):
			return None
