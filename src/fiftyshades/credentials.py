# Node passwords stored in the OS keyring

import keyring
from keyring.errors import KeyringError

from .errors import CredentialError, CredentialNotFoundError

SERVICE_PREFIX = "50shades"


def service_name(node_name: str) -> str:
	return f"{SERVICE_PREFIX}:{node_name}"


def get_secret(node_name: str, user: str) -> str:
	"""Return the stored password for ``user`` at ``node_name``."""
	try:
		secret = keyring.get_password(service_name(node_name), user)
	except KeyringError as e:
		raise CredentialError(f"Could not obtain password: {e}") from e
	if secret is None:
		raise CredentialNotFoundError(node_name)
	return secret


def set_secret(node_name: str, user: str, secret: str) -> None:
	try:
		keyring.set_password(service_name(node_name), user, secret)
	except KeyringError as e:
		raise CredentialError(f"Could not store password: {e}") from e
