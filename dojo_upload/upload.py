"""Upload scanner results into a DefectDojo engagement.

Functions:
    find_or_create_product(client, config)          -> int
    create_engagement(client, config, product_id)   -> int
    import_scan(client, engagement_id, scan, ...)   -> ImportResult
    close_engagement(client, engagement_id)         -> bool
    run_upload(client, config, scan_dir)            -> dict

Product and engagement failures raise UploadError. Scan imports and the
final close only log a warning: a partial upload beats no upload.
"""

import logging
from datetime import date
from pathlib import Path
from typing import Any, Iterable

from dojo_upload.client import DojoClient, DojoClientError
from dojo_upload.config import Config
from dojo_upload.models import FAILED, IMPORTED, SKIPPED, STATUSES, ImportResult, ScanFile

ENGAGEMENT_TYPE = "CI/CD"
STATUS_IN_PROGRESS = "In Progress"
STATUS_COMPLETED = "Completed"
MINIMUM_SEVERITY = "Info"

_LOG = logging.getLogger(__name__)


class UploadError(Exception):
    """Raised when a product or engagement id cannot be obtained."""


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------

def find_or_create_product(client: DojoClient, config: Config) -> int:
    """Return the id of the product named ``config.product_name``, creating it if needed."""
    name = config.product_name
    _LOG.info("Checking if product '%s' exists...", name)

    response = client.get("products/", {"name": name})
    results = [r for r in (_field(response, "results") or []) if isinstance(r, dict)]
    if (_field(response, "count") or 0) > 0 and results:
        match = next((r for r in results if r.get("name") == name), results[0])
        product_id = match.get("id")
        if not _usable_id(product_id):
            # creating here would duplicate the existing product
            raise UploadError(f"Product '{name}' exists but has no usable ID. Response: {response}")
        _LOG.info("Product found with ID: %s", product_id)
        return product_id

    _LOG.info("Product not found. Creating new product...")
    payload = {
        "name":        name,
        "description": config.product_description,
        "prod_type":   config.product_type,
    }
    response = client.post("products/", payload)
    product_id = _field(response, "id")
    if not _usable_id(product_id):
        raise UploadError(f"Failed to create product. Response: {response}")

    _LOG.info("Product created with ID: %s", product_id)
    return product_id


def create_engagement(
    client: DojoClient,
    config: Config,
    product_id: int,
    today: date | None = None,
) -> int:
    """Open an in-progress CI/CD engagement for *product_id* and return its id."""
    day = (today or date.today()).isoformat()
    _LOG.info("Creating engagement for product ID: %s...", product_id)

    payload = {
        "name":                       config.engagement_name,
        "product":                    int(product_id),
        "engagement_type":            ENGAGEMENT_TYPE,
        "target_start":               day,
        "target_end":                 day,
        "status":                     STATUS_IN_PROGRESS,
        "build_id":                   config.build_id,
        "commit_hash":                config.commit_hash,
        "branch_tag":                 config.branch_tag,
        "source_code_management_uri": config.source_code_management_uri,
    }
    response = client.post("engagements/", payload)
    engagement_id = _field(response, "id")
    if not _usable_id(engagement_id):
        raise UploadError(f"Failed to create engagement. Response: {response}")

    _LOG.info("Engagement created with ID: %s", engagement_id)
    return engagement_id


def import_scan(
    client: DojoClient,
    engagement_id: int,
    scan: ScanFile,
    scan_dir: Path | str = ".",
    today: date | None = None,
) -> ImportResult:
    """Import one result file. Never raises for an unreadable file or an API error."""
    path = Path(scan_dir) / scan.path
    if not path.is_file():
        _LOG.warning("Scan file not found: %s - Skipping...", path)
        return ImportResult(scan.name, str(path), SKIPPED, detail="file not found")

    _LOG.info("Importing %s scan from: %s", scan.name, path)
    data = {
        "scan_type":        scan.scan_type,
        "engagement":       str(engagement_id),
        "minimum_severity": MINIMUM_SEVERITY,
        "active":           "true",
        "verified":         "false",
        "scan_date":        (today or date.today()).isoformat(),
    }
    try:
        with path.open("rb") as fh:
            response = client.post_multipart("import-scan/", data, {"file": (path.name, fh)})
    except (DojoClientError, OSError) as exc:
        _LOG.warning("Failed to import %s scan: %s", scan.name, exc)
        return ImportResult(scan.name, str(path), FAILED, detail=str(exc))

    test_id = _field(response, "test") or _field(response, "id")
    if not _usable_id(test_id):
        _LOG.warning("Failed to import %s scan. Response: %s", scan.name, response)
        return ImportResult(scan.name, str(path), FAILED, detail=f"no test id in {response}")

    _LOG.info("%s scan imported successfully (Test ID: %s)", scan.name, test_id)
    return ImportResult(scan.name, str(path), IMPORTED, test_id=test_id)


def close_engagement(client: DojoClient, engagement_id: int) -> bool:
    """Mark the engagement completed. Returns False (and warns) when not acknowledged."""
    _LOG.info("Closing engagement ID: %s...", engagement_id)
    try:
        response = client.patch(f"engagements/{engagement_id}/", {"status": STATUS_COMPLETED})
    except DojoClientError as exc:
        _LOG.warning("Failed to close engagement: %s", exc)
        return False

    if _field(response, "status") != STATUS_COMPLETED:
        _LOG.warning("Failed to close engagement. Response: %s", response)
        return False

    _LOG.info("Engagement closed successfully")
    return True


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------

def run_upload(
    client: DojoClient,
    config: Config,
    scan_dir: Path | str = ".",
    scans: Iterable[ScanFile] | None = None,
) -> dict[str, Any]:
    """Find-or-create product, open engagement, import scans, close engagement.

    Returns a JSON-serialisable summary of the run.
    """
    _LOG.info("Starting DefectDojo upload process...")

    product_id = find_or_create_product(client, config)
    engagement_id = create_engagement(client, config, product_id)

    _LOG.info("Importing scan results...")
    results = [
        import_scan(client, engagement_id, scan, scan_dir)
        for scan in (config.scans if scans is None else scans)
    ]

    closed = close_engagement(client, engagement_id)
    engagement_url = config.engagement_url(engagement_id)

    _LOG.info("DefectDojo upload process completed successfully!")
    _LOG.info("View results at: %s", engagement_url)

    return {
        "product_id":        product_id,
        "engagement_id":     engagement_id,
        "engagement_url":    engagement_url,
        "engagement_closed": closed,
        "summary":           _build_summary(results),
        "imports":           [r.to_dict() for r in results],
    }


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _field(response, key: str):
    """Return *key* from a JSON object body, or None for any other body."""
    return response.get(key) if isinstance(response, dict) else None


def _usable_id(value) -> bool:
    return value is not None and value != "" and value != "null"


def _build_summary(results: list[ImportResult]) -> dict:
    counts = {s: 0 for s in STATUSES}
    for r in results:
        counts[r.status] += 1
    return {"total": len(results), **counts}
