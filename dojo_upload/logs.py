"""Coloured ``[INFO]`` / ``[WARN]`` / ``[ERROR]`` log lines on stderr."""

import logging

import click

_PREFIXES = {
    logging.DEBUG:    ("[DEBUG]", "cyan"),
    logging.INFO:     ("[INFO]",  "green"),
    logging.WARNING:  ("[WARN]",  "yellow"),
    logging.ERROR:    ("[ERROR]", "red"),
    logging.CRITICAL: ("[ERROR]", "red"),
}


class ClickFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        prefix, colour = _PREFIXES.get(record.levelno, ("[INFO]", "green"))
        return f"{click.style(prefix, fg=colour)} {super().format(record)}"


class ClickHandler(logging.Handler):
    """Route records through ``click.echo`` so colours are stripped when not a TTY."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            click.echo(self.format(record), err=True)
        except Exception:
            self.handleError(record)


def setup(verbose: bool = False) -> None:
    """Attach a single stderr handler to the ``dojo_upload`` logger."""
    logger = logging.getLogger("dojo_upload")
    for handler in list(logger.handlers):
        if isinstance(handler, ClickHandler):
            logger.removeHandler(handler)

    handler = ClickHandler()
    handler.setFormatter(ClickFormatter("%(message)s"))
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
