"""Filesystem persistence for rendered compliance reports."""

import logging
import re
from pathlib import Path

from retention_audit.compliance.models import ComplianceReport
from retention_audit.compliance.reports import DEFAULT_REVIEW_INTERVAL_DAYS, ReportGenerator

logger = logging.getLogger(__name__)

REPORT_PREFIX = "retention-compliance"

UNSAFE_FILENAME_CHARS = re.compile(r"[^A-Za-z0-9._-]")


def safe_filename_part(value: str) -> str:
    """Reduce a free-form label to characters safe in a single file name."""
    cleaned = UNSAFE_FILENAME_CHARS.sub("-", value)
    # Collapse dot runs so no part can read as '..'
    cleaned = re.sub(r"\.{2,}", "-", cleaned).strip(".")
    return cleaned or "unknown"


def report_basename(report: ComplianceReport) -> str:
    """Build a file stem embedding the environment and report timestamp."""
    stamp = report.timestamp.strftime("%Y%m%d_%H%M%S")
    return f"{REPORT_PREFIX}-{safe_filename_part(report.environment)}-{stamp}"


class ReportStore:
    """Writes JSON and HTML report artifacts to a directory."""

    def __init__(
        self,
        directory: str | Path,
        review_interval_days: int = DEFAULT_REVIEW_INTERVAL_DAYS,
    ):
        self.directory = Path(directory)
        self.review_interval_days = review_interval_days

    def save(self, report: ComplianceReport) -> dict[str, Path]:
        """Render and write the report.

        Returns:
            Mapping of format ('json', 'html') to the written path
        """
        self.directory.mkdir(parents=True, exist_ok=True)
        generator = ReportGenerator(report, review_interval_days=self.review_interval_days)
        stem = report_basename(report)

        artifacts = {
            "json": generator.to_json(),
            "html": generator.to_html(),
        }
        root = self.directory.resolve()
        written = {}
        for fmt, content in artifacts.items():
            path = self.directory / f"{stem}.{fmt}"
            if path.resolve().parent != root:
                raise ValueError(f"Report path {path} escapes {self.directory}")
            path.write_bytes(content)
            written[fmt] = path
            logger.info(f"Wrote {fmt.upper()} report: {path}")
        return written
