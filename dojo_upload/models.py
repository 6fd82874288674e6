"""Data models for the upload run.

    - ScanFile      one scanner result file to import
    - ImportResult  outcome of a single import
    - DEFAULT_SCANS the result files produced by the CI pipeline
"""

from dataclasses import asdict, dataclass

IMPORTED = "imported"
SKIPPED  = "skipped"
FAILED   = "failed"

STATUSES = (IMPORTED, SKIPPED, FAILED)


@dataclass(frozen=True)
class ScanFile:
    path: str
    scan_type: str   # DefectDojo parser name, e.g. "Bandit Scan"
    name: str        # label used in log output


@dataclass
class ImportResult:
    name: str
    path: str
    status: str
    test_id: int | None = None
    detail: str | None = None

    def to_dict(self) -> dict:
        return asdict(self)


DEFAULT_SCANS: tuple[ScanFile, ...] = (
    ScanFile("semgrep-results.json",        "Semgrep JSON Report",   "Semgrep"),
    ScanFile("bandit-results.json",         "Bandit Scan",           "Bandit"),
    ScanFile("trivy-fs-results.json",       "Trivy Scan",            "Trivy Filesystem"),
    ScanFile("trivy-image-results.json",    "Trivy Scan",            "Trivy Image"),
    ScanFile("zap-results.json",            "ZAP Scan",              "OWASP ZAP"),
    ScanFile("dependency-check-report.xml", "Dependency Check Scan", "OWASP Dependency-Check"),
)
