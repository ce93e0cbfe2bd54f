# Line templates for rendering log entries, using Jinja2
#
# Fields of the entry record are template variables, e.g.
# "{{ _timestamp }} {{ level }} {{ message }}". Nested documents are reached
# with attribute or item access ({{ kubernetes.pod_name }}).

from typing import Any, Mapping

import jinja2
from jinja2 import meta

from .errors import RenderError

DEFAULT_TEMPLATE = "[{{ container_name | default('-') }}] {{ message }}"


def _default(value: Any, fallback: Any = "") -> Any:
	"""Replace an undefined or null value with ``fallback``; other falsy values are kept."""
	if isinstance(value, jinja2.Undefined) or value is None:
		return fallback
	return value


def _environment() -> jinja2.Environment:
	env = jinja2.Environment(
		undefined=jinja2.StrictUndefined,
		autoescape=False,
		keep_trailing_newline=True,
	)
	env.filters["default"] = _default
	env.filters["d"] = _default
	return env


_ENV = _environment()


class TemplateRenderer:
	"""Render records with a template compiled at construction time."""

	def __init__(self, template: str):
		self.template = template
		try:
			ast = _ENV.parse(template)
			self.variables = meta.find_undeclared_variables(ast)
			self._compiled = _ENV.from_string(template)
		except jinja2.TemplateSyntaxError as e:
			raise RenderError(f"Invalid template {template!r}: {e.message} (line {e.lineno})") from e

	def render(self, record: Mapping[str, Any]) -> str:
		"""Render one record; values are inserted unchanged."""
		try:
			return self._compiled.render(dict(record))
		except jinja2.UndefinedError as e:
			raise RenderError(f"Missing field: {e.message}") from e
		except (jinja2.TemplateError, AttributeError, IndexError, KeyError, TypeError, ValueError) as e:
			raise RenderError(f"Could not format line: {type(e).__name__}: {e}") from e


def render(template: str, record: Mapping[str, Any]) -> str:
	return TemplateRenderer(template).render(record)
