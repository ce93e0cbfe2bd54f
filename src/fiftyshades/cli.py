import signal
import sys

# Handle Ctrl+C gracefully before any other imports
signal.signal(signal.SIGINT, lambda *_: sys.exit(130))

import os
import urllib.parse
from datetime import timezone
from typing import List, Optional

import click
import typer
from dateutil import tz

from .backends import create_adapter
from .config import (
	Config,
	load_config,
	parse_node,
	read_config_file,
	set_dotenv_path,
	write_config_file,
)
from .credentials import get_secret, set_secret
from .engine import Follower, run_query
from .errors import ConfigError, RenderError, ShadesError
from .log import configure_logging, log
from .models import BackendType
from .template import TemplateRenderer
from .timespan import TimespanResolver

app = typer.Typer()

_options = {"config_path": None}


def _fail(error):
	typer.echo(typer.style(f"Error: {error}", fg=typer.colors.RED), err=True)
	raise typer.Exit(1)


def _config_path(cfg):
	return _options["config_path"] or cfg.config_path


def _join(expression):
	return " ".join(expression or [])


def _resolver(local):
	return TimespanResolver(tz=tz.tzlocal() if local else timezone.utc)


def _connect(cfg, node_name, template_name):
	"""Load the node, its template and its password; return an adapter and a renderer."""
	try:
		file_config = read_config_file(_config_path(cfg))
		node = file_config.node(node_name)
		renderer = TemplateRenderer(file_config.template(template_name))
		secret = get_secret(node.name, node.user) if node.user else None
	except ShadesError as e:
		_fail(e)
	log.debug("Using %s node '%s' at %s", node.backend_type.value, node.name, node.url)
	return create_adapter(node, secret=secret, timeout=cfg.timeout), renderer


def _print_entry(entry, renderer):
	try:
		line = renderer.render(entry.record())
	except RenderError as e:
		log.warning("Skipping entry %s: %s", entry.id, e)
		return
	typer.echo(line)


@app.callback()
def main_options(
	env: str = typer.Option(None, "--env", help="Path to a .env file with FIFTYSHADES_* settings"),
	config_path: str = typer.Option(None, "--config", "-c", help="Path to the node configuration file"),
	verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose output"),
):
	"""Query Graylog and Elasticsearch logs from the command line."""
	if env:
		set_dotenv_path(env)
	_options["config_path"] = config_path
	configure_logging(verbose)


@app.command()
def query(
	expression: Optional[List[str]] = typer.Argument(None, help="Query in the backend's native syntax (default: *)"),
	node: str = typer.Option("default", "--node", "-n", help="Configured node to query"),
	template: str = typer.Option("default", "--template", "-t", help="Configured template for each line"),
	since: str = typer.Option("last 15 minutes", "--from", "-f", help="Start of the search, e.g. 'yesterday'"),
	until: str = typer.Option("now", "--to", help="End of the search, e.g. 'today 9am'"),
	limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Maximum number of entries"),
	local: bool = typer.Option(False, "--local", help="Interpret dates in local time instead of UTC"),
):
	"""Search logs once and print the matching entries, oldest first."""
	cfg = load_config()
	try:
		time_range = _resolver(local).resolve_bounds(since, until)
	except ShadesError as e:
		_fail(e)
	adapter, renderer = _connect(cfg, node, template)
	log.debug("Searching %s", time_range)
	try:
		entries = run_query(adapter, _join(expression), time_range, limit=limit or cfg.limit)
	except ShadesError as e:
		_fail(e)

	if not entries:
		typer.echo(typer.style("No logs found.", dim=True), err=True)
	for entry in entries:
		_print_entry(entry, renderer)


@app.command()
def follow(
	expression: Optional[List[str]] = typer.Argument(None, help="Query in the backend's native syntax (default: *)"),
	node: str = typer.Option("default", "--node", "-n", help="Configured node to query"),
	template: str = typer.Option("default", "--template", "-t", help="Configured template for each line"),
	since: str = typer.Option("now", "--from", "-f", help="Where to start following, e.g. '5 minutes ago'"),
	poll: Optional[float] = typer.Option(None, "--poll", "-p", min=0.1, help="Seconds between polls"),
	latency: Optional[float] = typer.Option(None, "--latency", min=0, help="Seconds to stay behind now, for indexing delay"),
	limit: Optional[int] = typer.Option(None, "--limit", "-l", min=1, help="Maximum number of entries per poll"),
	local: bool = typer.Option(False, "--local", help="Interpret dates in local time instead of UTC"),
):
	"""Continuously poll for new log entries, like tail -f."""
	cfg = load_config()
	try:
		start = _resolver(local).resolve_start(since)
	except ShadesError as e:
		_fail(e)
	adapter, renderer = _connect(cfg, node, template)
	follower = Follower(
		adapter,
		_join(expression),
		start,
		limit=limit or cfg.limit,
		poll_interval=cfg.poll_interval if poll is None else poll,
		latency=cfg.latency if latency is None else latency,
	)

	previous_handler = signal.signal(signal.SIGINT, lambda *_: follower.stop())
	try:
		follower.run(lambda entry: _print_entry(entry, renderer))
	except ShadesError as e:
		_fail(e)
	finally:
		signal.signal(signal.SIGINT, previous_handler)


@app.command()
def login(
	node: str = typer.Option("default", "--node", "-n", help="Configured node to store the password for"),
):
	"""Store the password for a node in the system keyring."""
	cfg = load_config()
	try:
		selected = read_config_file(_config_path(cfg)).node(node)
		if not selected.user:
			raise ConfigError(f"No username set for node {node}")
		password = typer.prompt(f"Please provide the password for {selected.user} at {node}", hide_input=True)
		set_secret(node, selected.user, password)
	except ShadesError as e:
		_fail(e)
	typer.echo(f"Password for {selected.user} at {node} stored.")


def _prompt_url(label):
	while True:
		url = typer.prompt(label).strip()
		parsed = urllib.parse.urlparse(url)
		if parsed.scheme in ("http", "https") and parsed.netloc:
			return url
		typer.echo("Not a valid URL.")


@app.command()
def init(
	node: str = typer.Option("default", "--node", "-n", help="Name of the node to set up"),
):
	"""Create a configuration file with one node (interactive)."""
	cfg = load_config()
	path = _config_path(cfg)
	if os.path.exists(path):
		_fail(f"Config file {path} does already exist. Not overwriting.")

	typer.echo(f"We'll set up a new configuration file at {path}.")
	backend = typer.prompt(
		"Node type",
		type=click.Choice([backend_type.value for backend_type in BackendType]),
		default=BackendType.GRAYLOG.value,
	)
	if backend == BackendType.GRAYLOG.value:
		typer.echo("Graylog's API endpoint is usually exposed as /api, e.g. https://graylog.example.com/api.")
		url = _prompt_url("Graylog API URL")
		user = typer.prompt("Username")
	else:
		typer.echo("Include the index pattern in the URL, e.g. http://localhost:9200/logs-*.")
		url = _prompt_url("Elasticsearch URL")
		user = typer.prompt("Username (leave empty for no authentication)", default="", show_default=False)

	try:
		new_node = parse_node(node, {"type": backend, "url": url, "user": user})
		password = typer.prompt("Password (not echoed)", hide_input=True) if new_node.user else None
		typer.echo("Storing configuration...")
		write_config_file(path, Config(nodes={node: new_node}))
		if password is not None:
			typer.echo("Storing password in your keyring...")
			set_secret(node, new_node.user, password)
	except ShadesError as e:
		_fail(e)
	typer.echo(
		f"Done. Edit {path} to add more nodes and templates, "
		f"and run '50shades login --node <name>' to store their passwords."
	)


def main():
	if len(sys.argv) == 1:
		# No arguments: show help
		command = typer.main.get_command(app)
		ctx = click.Context(command)
		typer.echo(command.get_help(ctx), err=True)
		return 0
	try:
		app()
	except typer.Exit:
		raise
	except Exception as e:
		typer.echo(typer.style(
			f"Fatal error: {type(e).__name__}: {e}",
			fg=typer.colors.RED
		), err=True)
		sys.exit(1)

if __name__ == "__main__":
	main()
