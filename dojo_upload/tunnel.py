"""ngrok tunnel that exposes a local DefectDojo to CI runners.

Functions:
    find_ngrok()                    -> str    path of the ngrok binary
    probe(port)                     -> bool   is DefectDojo answering locally?
    build_command(port, domain)     -> list   argv for ngrok
    banner(port, domain)            -> list   lines shown before exec
    launch(argv)                    -> never returns
"""

import logging
import os
import shutil

import requests

NGROK = "ngrok"
DEFAULT_PORT = 8080
PROBE_TIMEOUT = 5

INSTALL_HINTS = (
    "Install it from: https://ngrok.com/download",
    "  Linux:   sudo snap install ngrok",
    "  macOS:   brew install ngrok",
    "  Manual:  https://ngrok.com/download",
)

_LOG = logging.getLogger(__name__)


class TunnelError(Exception):
    """Raised when the tunnel cannot be started."""


def find_ngrok() -> str:
    path = shutil.which(NGROK)
    if path is None:
        raise TunnelError("ngrok is not installed.\n" + "\n".join(INSTALL_HINTS))
    return path


def probe(port: int, timeout: float = PROBE_TIMEOUT) -> bool:
    """Best-effort check that something answers on ``localhost:port``.

    Tries the API root first, then the site root. Any status below 400
    counts as reachable. Never raises.
    """
    _LOG.info("Checking if DefectDojo is running on port %s...", port)
    for url in (f"http://localhost:{port}/api/v2/", f"http://localhost:{port}"):
        try:
            response = requests.get(url, timeout=timeout)
        except requests.exceptions.RequestException as exc:
            _LOG.debug("Probe of %s failed: %s", url, exc)
            continue
        if response.status_code < 400:
            _LOG.info("DefectDojo is running on port %s", port)
            return True
        _LOG.debug("Probe of %s returned %s", url, response.status_code)

    _LOG.warning("Cannot reach DefectDojo at http://localhost:%s", port)
    _LOG.warning("Make sure DefectDojo is running (docker compose up -d)")
    _LOG.warning("Continuing anyway...")
    return False


def build_command(port: int, domain: str | None = None, ngrok: str = NGROK) -> list[str]:
    if domain:
        _LOG.info("Using static domain: %s", domain)
        return [ngrok, "http", f"--domain={domain}", str(port)]
    return [ngrok, "http", str(port)]


def banner(port: int, domain: str | None = None) -> list[str]:
    """Human-facing instructions printed before ngrok takes over the terminal."""
    lines = [
        "",
        "========================================",
        " Starting ngrok tunnel",
        "========================================",
        "",
        f"Local:  http://localhost:{port}",
    ]
    if domain:
        lines += [
            f"Public: https://{domain}",
            "",
            "Set this as your GitHub Secret:",
            f"  DEFECTDOJO_URL = https://{domain}",
        ]
    else:
        lines += [
            "Public: Check ngrok dashboard or terminal output for the URL",
            "",
            "After ngrok starts, set the public URL as your GitHub Secret:",
            "  DEFECTDOJO_URL = https://<random-id>.ngrok-free.app",
        ]
    lines += [
        "",
        "Tip: Get a free static domain at https://dashboard.ngrok.com/domains",
        "     so the URL doesn't change between restarts.",
        "",
        "Press Ctrl+C to stop the tunnel.",
        "",
    ]
    return lines


def launch(argv: list[str]) -> None:
    """Replace the current process with ngrok."""
    try:
        os.execvp(argv[0], argv)
    except OSError as exc:
        raise TunnelError(f"Failed to start {argv[0]}: {exc}") from exc
