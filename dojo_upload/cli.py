"""CLI entry point — command definitions using Click.

Commands:
    init      Generate a template config file
    upload    Push scanner results into a DefectDojo engagement
    tunnel    Expose a local DefectDojo through ngrok
"""

import functools
import json
import logging
import sys
from typing import Any

import click

from dojo_upload import __version__, logs
from dojo_upload.tunnel import DEFAULT_PORT

_LOG = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Helpers shared by all commands
# ---------------------------------------------------------------------------

def _make_client(ctx: click.Context):
    """Load config and return a ready DojoClient. Exits on error."""
    from dojo_upload.client import DojoClient
    from dojo_upload.config import ConfigError, load

    try:
        config = load(ctx.obj["config_path"])
    except ConfigError as exc:
        _LOG.error("%s", exc)
        sys.exit(1)

    _LOG.debug("Connecting to %s", config.url)
    return config, DojoClient(url=config.url, token=config.token)


def _emit_json(data: Any, ctx: click.Context) -> None:
    """Write JSON to stdout or to the file specified by --output."""
    obj = ctx.obj
    indent = 2 if obj["pretty"] else None
    text = json.dumps(data, indent=indent, ensure_ascii=False)

    output_path: str | None = obj["output_path"]
    if output_path:
        with open(output_path, "w", encoding="utf-8") as f:
            f.write(text)
        _LOG.info("Report written to '%s'", output_path)
    else:
        click.echo(text)


def _handle_client_errors(func):
    """Decorator that turns fatal upload/client exceptions into exit code 1."""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        from dojo_upload.client import (
            AuthenticationError,
            DojoClientError,
            NetworkError,
            NotFoundError,
        )
        from dojo_upload.upload import UploadError

        try:
            return func(*args, **kwargs)
        except UploadError as exc:
            _LOG.error("%s", exc)
        except AuthenticationError as exc:
            _LOG.error("Authentication error: %s", exc)
        except NotFoundError as exc:
            _LOG.error("Not found: %s", exc)
        except NetworkError as exc:
            _LOG.error("Network error: %s", exc)
        except DojoClientError as exc:
            _LOG.error("DefectDojo error: %s", exc)
        sys.exit(1)

    return wrapper


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------

@click.group()
@click.option("--config", "config_path", default=None,
              help="Optional YAML config file; environment variables override it.")
@click.option("--output", "output_path", default=None,
              help="Write the JSON run summary to a file instead of stdout.")
@click.option("--pretty", is_flag=True, default=False,
              help="Pretty-print the JSON output.")
@click.option("--verbose", is_flag=True, default=False,
              help="Enable debug logging.")
@click.version_option(__version__, prog_name="dojo-upload")
@click.pass_context
def cli(ctx: click.Context, config_path: str | None, output_path: str | None,
        pretty: bool, verbose: bool) -> None:
    """DefectDojo CI helpers — upload scan results and tunnel a local instance."""
    logs.setup(verbose)
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config_path
    ctx.obj["output_path"] = output_path
    ctx.obj["pretty"] = pretty
    ctx.obj["verbose"] = verbose


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------

@cli.command("init")
@click.option("--output", "output_path", default="dojo-config.yaml", show_default=True,
              help="Path where the template config file will be written.")
def init_command(output_path: str) -> None:
    """Generate a template dojo-config.yaml file."""
    from dojo_upload.config import ConfigError, generate_template
    try:
        generate_template(output_path)
        click.echo(f"Template written to '{output_path}'.")
        click.echo("Edit it with your server URL, token and product details.")
    except ConfigError as exc:
        _LOG.error("%s", exc)
        sys.exit(1)


# ---------------------------------------------------------------------------
# upload
# ---------------------------------------------------------------------------

@cli.command("upload")
@click.option("--scan-dir", default=".", show_default=True,
              type=click.Path(file_okay=False, path_type=str),
              help="Directory holding the scanner result files.")
@click.pass_context
@_handle_client_errors
def upload_command(ctx: click.Context, scan_dir: str) -> None:
    """Find-or-create the product, open an engagement, import scans, close it."""
    from dojo_upload.upload import run_upload

    config, client = _make_client(ctx)
    report = run_upload(client, config, scan_dir=scan_dir)
    _emit_json(report, ctx)


# ---------------------------------------------------------------------------
# tunnel
# ---------------------------------------------------------------------------

@cli.command("tunnel")
@click.argument("port", type=click.IntRange(1, 65535), default=DEFAULT_PORT, required=False)
@click.argument("domain", required=False)
@click.option("--dry-run", is_flag=True, default=False,
              help="Print the ngrok command instead of running it.")
def tunnel_command(port: int, domain: str | None, dry_run: bool) -> None:
    """Expose DefectDojo on PORT (default 8080), optionally on a static DOMAIN."""
    from dojo_upload import tunnel

    try:
        ngrok = tunnel.find_ngrok()
    except tunnel.TunnelError as exc:
        _LOG.error("%s", exc)
        sys.exit(1)

    tunnel.probe(port)
    argv = tunnel.build_command(port, domain, ngrok=ngrok)

    for line in tunnel.banner(port, domain):
        click.echo(line, err=True)

    if dry_run:
        click.echo(" ".join(argv))
        return

    try:
        tunnel.launch(argv)
    except tunnel.TunnelError as exc:
        _LOG.error("%s", exc)
        sys.exit(1)
