# Logging setup: diagnostics go to stderr, styled by level

import logging

import typer

log = logging.getLogger("fiftyshades")

_LEVEL_STYLES = {
	logging.DEBUG: {"dim": True},
	logging.INFO: {},
	logging.WARNING: {"fg": typer.colors.YELLOW},
	logging.ERROR: {"fg": typer.colors.RED},
	logging.CRITICAL: {"fg": typer.colors.RED, "bold": True},
}


class TyperHandler(logging.Handler):
	"""Write log records to stderr through typer so they never mix with rendered lines."""

	def emit(self, record):
		try:
			message = self.format(record)
			style = _LEVEL_STYLES.get(record.levelno, {})
			typer.echo(typer.style(message, **style) if style else message, err=True)
		except Exception:
			self.handleError(record)


def configure_logging(verbose: bool = False) -> None:
	"""Configure the 50shades logger. Verbose mode adds debug output."""
	handler = TyperHandler()
	if verbose:
		handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", datefmt="%H:%M:%S"))
	else:
		handler.setFormatter(logging.Formatter("%(levelname)s: %(message)s"))
	log.handlers.clear()
	log.addHandler(handler)
	log.setLevel(logging.DEBUG if verbose else logging.INFO)
	log.propagate = False
