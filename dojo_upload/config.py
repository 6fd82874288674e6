"""Configuration loading and validation.

Usage:
    config = load()                        # environment only
    config = load("dojo-config.yaml")      # file, overridden by environment
    generate_template("dojo-config.yaml")  # writes example file to disk

Raises ConfigError on bad or incomplete configuration.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path

import yaml

from dojo_upload.models import DEFAULT_SCANS, ScanFile

DEFAULT_PRODUCT_NAME = "OWASP Juice Shop"
DEFAULT_PRODUCT_DESCRIPTION = "OWASP Juice Shop - Automated DevSecOps Pipeline"
DEFAULT_ENGAGEMENT_NAME = "CI/CD Run"
DEFAULT_PRODUCT_TYPE = 1


# ---------------------------------------------------------------------------
# Exceptions
# ---------------------------------------------------------------------------

class ConfigError(Exception):
    """Raised when the configuration is missing or invalid."""


# ---------------------------------------------------------------------------
# Config dataclass
# ---------------------------------------------------------------------------

@dataclass
class Config:
    url: str
    token: str
    product_name: str = DEFAULT_PRODUCT_NAME
    product_description: str = DEFAULT_PRODUCT_DESCRIPTION
    product_type: int = DEFAULT_PRODUCT_TYPE
    engagement_name: str = DEFAULT_ENGAGEMENT_NAME
    build_id: str = ""
    commit_hash: str = ""
    branch_tag: str = ""
    source_code_management_uri: str = ""
    scans: list[ScanFile] = field(default_factory=lambda: list(DEFAULT_SCANS))

    def engagement_url(self, engagement_id: int) -> str:
        return f"{self.url.rstrip('/')}/engagement/{engagement_id}"


# ---------------------------------------------------------------------------
# Loader
# ---------------------------------------------------------------------------

# (environment variable, section, key)
_ENV_OVERRIDES = (
    ("DEFECTDOJO_URL",             "server",     "url"),
    ("DEFECTDOJO_API_TOKEN",       "server",     "token"),
    ("PRODUCT_NAME",               "product",    "name"),
    ("PRODUCT_DESCRIPTION",        "product",    "description"),
    ("ENGAGEMENT_NAME",            "engagement", "name"),
    ("BUILD_ID",                   "engagement", "build_id"),
    ("COMMIT_HASH",                "engagement", "commit_hash"),
    ("BRANCH_TAG",                 "engagement", "branch_tag"),
    ("SOURCE_CODE_MANAGEMENT_URI", "engagement", "source_code_management_uri"),
)


def load(config_path: str | None = None) -> Config:
    """Build the configuration from an optional YAML file and the environment.

    Environment variables take precedence over file values; empty variables
    are treated as unset.

    Raises:
        ConfigError: if the file is missing or malformed, or if the server
                     URL or API token is absent.
    """
    raw = _read_file(config_path) if config_path else {}

    sections: dict[str, dict] = {}
    for name in ("server", "product", "engagement"):
        section = raw.get(name) or {}
        if not isinstance(section, dict):
            raise ConfigError(f"'{name}' must be a mapping.")
        sections[name] = dict(section)

    for env_name, section, key in _ENV_OVERRIDES:
        value = os.environ.get(env_name)
        if value:
            sections[section][key] = value

    server, product, engagement = sections["server"], sections["product"], sections["engagement"]

    config = Config(
        url=_str(server.get("url")),
        token=_str(server.get("token")),
        product_name=_str(product.get("name")) or DEFAULT_PRODUCT_NAME,
        product_description=_str(product.get("description")) or DEFAULT_PRODUCT_DESCRIPTION,
        product_type=_product_type(product.get("type", DEFAULT_PRODUCT_TYPE)),
        engagement_name=_str(engagement.get("name")) or DEFAULT_ENGAGEMENT_NAME,
        build_id=_str(engagement.get("build_id")),
        commit_hash=_str(engagement.get("commit_hash")),
        branch_tag=_str(engagement.get("branch_tag")),
        source_code_management_uri=_str(engagement.get("source_code_management_uri")),
        scans=_scans(raw.get("scans")),
    )
    _validate(config)
    return config


def _read_file(config_path: str) -> dict:
    path = Path(config_path)
    if not path.exists():
        raise ConfigError(
            f"Config file not found: '{config_path}'\n"
            "Run `dojo-upload init` to generate a template."
        )

    try:
        with path.open(encoding="utf-8") as f:
            raw = yaml.safe_load(f)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse '{config_path}': {exc}") from exc

    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ConfigError(f"'{config_path}' must be a YAML mapping at the top level.")
    return raw


def _str(value) -> str:
    return "" if value is None else str(value).strip()


def _product_type(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"'product.type' must be an integer, got {value!r}") from exc


def _scans(entries) -> list[ScanFile]:
    """Parse the optional ``scans`` list; fall back to the default six."""
    if entries is None:
        return list(DEFAULT_SCANS)
    if not isinstance(entries, list):
        raise ConfigError("'scans' must be a list of {file, scan_type, name} entries.")

    scans: list[ScanFile] = []
    for i, entry in enumerate(entries):
        if not isinstance(entry, dict) or not entry.get("file") or not entry.get("scan_type"):
            raise ConfigError(f"'scans[{i}]' needs at least 'file' and 'scan_type'.")
        scans.append(ScanFile(
            path=str(entry["file"]),
            scan_type=str(entry["scan_type"]),
            name=str(entry.get("name") or entry["scan_type"]),
        ))
    return scans


def _validate(config: Config) -> None:
    """Raise ConfigError if required fields are missing."""
    errors: list[str] = []

    if not config.url:
        errors.append(
            "  - 'server.url' is missing (or set the DEFECTDOJO_URL environment variable)"
        )
    if not config.token:
        errors.append(
            "  - 'server.token' is missing (or set the DEFECTDOJO_API_TOKEN environment variable)"
        )

    if errors:
        raise ConfigError("Missing required settings:\n" + "\n".join(errors))


# ---------------------------------------------------------------------------
# Template generator (used by `init` command)
# ---------------------------------------------------------------------------

TEMPLATE = """\
server:
  url: "https://my-sub.ngrok-free.app"   # or set DEFECTDOJO_URL
  token: "xxxxxxxxxxxx"                  # or set DEFECTDOJO_API_TOKEN

product:
  name: "OWASP Juice Shop"
  description: "OWASP Juice Shop - Automated DevSecOps Pipeline"
  type: 1                                # DefectDojo product type id

engagement:
  name: "CI/CD Run"
  # build_id, commit_hash, branch_tag and source_code_management_uri are
  # usually filled from BUILD_ID, COMMIT_HASH, BRANCH_TAG and
  # SOURCE_CODE_MANAGEMENT_URI in CI.

# Omit to import the default scanner outputs.
scans:
  - {file: "semgrep-results.json",        scan_type: "Semgrep JSON Report",   name: "Semgrep"}
  - {file: "bandit-results.json",         scan_type: "Bandit Scan",           name: "Bandit"}
  - {file: "trivy-fs-results.json",       scan_type: "Trivy Scan",            name: "Trivy Filesystem"}
  - {file: "trivy-image-results.json",    scan_type: "Trivy Scan",            name: "Trivy Image"}
  - {file: "zap-results.json",            scan_type: "ZAP Scan",              name: "OWASP ZAP"}
  - {file: "dependency-check-report.xml", scan_type: "Dependency Check Scan", name: "OWASP Dependency-Check"}
"""


def generate_template(output_path: str = "dojo-config.yaml") -> None:
    """Write a template dojo-config.yaml to *output_path*.

    Raises:
        ConfigError: if the file already exists (to avoid overwriting secrets).
    """
    path = Path(output_path)
    if path.exists():
        raise ConfigError(
            f"'{output_path}' already exists. Remove it first or choose a different path."
        )
    path.write_text(TEMPLATE, encoding="utf-8")
