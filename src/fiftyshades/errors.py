# Error taxonomy for 50shades


class ShadesError(Exception):
	"""Base exception for 50shades errors with user-friendly messages."""
	pass


class ParseError(ShadesError):
	"""Raised when a timespan expression cannot be interpreted."""

	def __init__(self, phrase, reason=None):
		self.phrase = phrase
		self.reason = reason
		message = f"Could not interpret timespan '{phrase}'"
		if reason:
			message += f": {reason}"
		super().__init__(message)


class BackendError(ShadesError):
	"""Raised when a backend rejects a search request."""
	pass


class AuthError(BackendError):
	"""Raised when authentication fails (HTTP 401/403)."""
	pass


class NotFoundError(BackendError):
	"""Raised when the node or index does not exist."""
	pass


class TransientError(BackendError):
	"""Raised on timeouts, connection failures and 5xx responses. May be retried."""
	pass


class MalformedResponseError(BackendError):
	"""Raised when the backend answers with an unexpected JSON shape."""
	pass


class RenderError(ShadesError):
	"""Raised when a template is invalid or a record lacks a required field."""
	pass


class ConfigError(ShadesError):
	"""Raised when the configuration file cannot be used."""
	pass


class NoConfigError(ConfigError):
	"""Raised when the configuration file does not exist."""

	def __init__(self, path):
		self.path = path
		super().__init__(
			f"Could not find configuration file at {path}\n"
			f"Run '50shades init' to create it."
		)


class MissingNodeError(ConfigError):
	"""Raised when a node name is not configured."""

	def __init__(self, name):
		self.name = name
		super().__init__(f"Node {name} is not configured")


class MissingTemplateError(ConfigError):
	"""Raised when a template name is not configured."""

	def __init__(self, name):
		self.name = name
		super().__init__(f"Template {name} is not configured")


class CredentialError(ShadesError):
	"""Raised when the keyring cannot be read or written."""
	pass


class CredentialNotFoundError(CredentialError):
	"""Raised when no secret is stored for a node."""

	def __init__(self, node_name):
		self.node_name = node_name
		super().__init__(
			f"No password found for node {node_name}.\n"
			f"Run '50shades login --node {node_name}' to fix this issue."
		)
