# Configuration loading for 50shades
#
# Runtime settings come from environment variables (optionally via a .env
# file); nodes and templates live in a YAML file under the user's config dir.

import os
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional

import click
import yaml
from dotenv import find_dotenv, load_dotenv

from .errors import ConfigError, MissingNodeError, MissingTemplateError, NoConfigError
from .models import BackendType, Node
from .template import DEFAULT_TEMPLATE

APP_NAME = "50shades"

_dotenv_loaded = False
_custom_dotenv_path = None


def _getenv(name, default):
	value = os.getenv(name)
	return value if value else default


def default_config_path() -> str:
	return os.path.join(click.get_app_dir(APP_NAME), "config.yaml")


class ShadesConfig:
	"""Loads configuration from environment variables and provides defaults."""
	def __init__(self):
		self.config_path = _getenv("FIFTYSHADES_CONFIG", default_config_path())
		self.timeout = float(_getenv("FIFTYSHADES_TIMEOUT", "30"))
		self.poll_interval = float(_getenv("FIFTYSHADES_POLL_INTERVAL", "2"))
		self.latency = float(_getenv("FIFTYSHADES_LATENCY", "0"))
		self.limit = int(_getenv("FIFTYSHADES_LIMIT", "500"))


def set_dotenv_path(path: str):
	"""Set a custom .env file path to load. Must be called before load_config()."""
	global _custom_dotenv_path, _dotenv_loaded
	_custom_dotenv_path = path
	_dotenv_loaded = False  # Reset to force reload with new path


def load_config() -> ShadesConfig:
	"""Return a config object with all settings loaded."""
	global _dotenv_loaded, _custom_dotenv_path
	if not _dotenv_loaded:
		dotenv_path = os.getenv("DOTENV_PATH") or _custom_dotenv_path
		if dotenv_path:
			# Explicitly selected files take precedence over the environment
			load_dotenv(dotenv_path, override=True)
		else:
			dotenv_path = find_dotenv(usecwd=True)
			if dotenv_path:
				load_dotenv(dotenv_path)
		_dotenv_loaded = True
	return ShadesConfig()


@dataclass
class Config:
	nodes: Dict[str, Node] = field(default_factory=dict)
	templates: Dict[str, str] = field(default_factory=lambda: {"default": DEFAULT_TEMPLATE})

	def node(self, name: str) -> Node:
		try:
			return self.nodes[name]
		except KeyError:
			raise MissingNodeError(name) from None

	def template(self, name: str) -> str:
		try:
			return self.templates[name]
		except KeyError:
			raise MissingTemplateError(name) from None


def parse_node(name: str, data: Any) -> Node:
	if not isinstance(data, Mapping):
		raise ConfigError(f"Node {name} must be a mapping")
	node_type = data.get("type")
	try:
		backend_type = BackendType(node_type)
	except ValueError:
		raise ConfigError(f"Unsupported node type for {name}: {node_type}") from None
	url = data.get("url")
	if not isinstance(url, str) or not url.startswith(("http://", "https://")):
		raise ConfigError(f"Node {name} needs an http(s) url, got {url!r}")
	user = data.get("user") or None
	if backend_type == BackendType.GRAYLOG and user is None:
		raise ConfigError(f"Graylog node {name} requires a user")
	return Node(
		name=name,
		url=url,
		backend_type=backend_type,
		user=str(user) if user is not None else None,
		timestamp_field=data.get("timestamp_field") or None,
	)


def parse_config(data: Any) -> Config:
	if data is None:
		data = {}
	if not isinstance(data, Mapping):
		raise ConfigError("Configuration must be a mapping with 'nodes' and 'templates'")
	nodes_data = data.get("nodes") or {}
	templates_data = data.get("templates") or {}
	if not isinstance(nodes_data, Mapping) or not isinstance(templates_data, Mapping):
		raise ConfigError("'nodes' and 'templates' must be mappings")
	config = Config()
	config.nodes = {str(name): parse_node(str(name), value) for name, value in nodes_data.items()}
	for name, template in templates_data.items():
		if not isinstance(template, str):
			raise ConfigError(f"Template {name} must be a string")
		config.templates[str(name)] = template
	return config


def read_config_file(path: Optional[str] = None) -> Config:
	"""Read nodes and templates from the YAML configuration file."""
	path = path or load_config().config_path
	try:
		with open(path, encoding="utf-8") as f:
			data = yaml.safe_load(f)
	except FileNotFoundError:
		raise NoConfigError(path) from None
	except yaml.YAMLError as e:
		raise ConfigError(f"Couldn't load configuration file {path}: {e}") from e
	return parse_config(data)


def dump_config(config: Config) -> Dict[str, Any]:
	nodes = {}
	for name, node in config.nodes.items():
		entry: Dict[str, Any] = {"type": node.backend_type.value, "url": node.url}
		if node.user:
			entry["user"] = node.user
		if node.timestamp_field:
			entry["timestamp_field"] = node.timestamp_field
		nodes[name] = entry
	return {"nodes": nodes, "templates": dict(config.templates)}


def write_config_file(path: str, config: Config) -> None:
	parent = os.path.dirname(path)
	if parent:
		os.makedirs(parent, exist_ok=True)
	with open(path, "w", encoding="utf-8") as f:
		yaml.safe_dump(dump_config(config), f, allow_unicode=True, sort_keys=False)
