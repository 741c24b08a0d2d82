"""Report rendering for retention compliance runs.

Provides JSON and standalone HTML output. Both renderings are pure
functions of the report: the same report always yields the same bytes.
"""

import json
import logging
from datetime import timedelta
from typing import Any

from jinja2 import Environment, PackageLoader, StrictUndefined, select_autoescape

from retention_audit.compliance.models import (
    ComplianceReport,
    ComplianceStatus,
    Severity,
)

logger = logging.getLogger(__name__)

DEFAULT_REVIEW_INTERVAL_DAYS = 90
HTML_TEMPLATE = "retention_report.html"

_template_env = Environment(
    loader=PackageLoader("retention_audit", "templates"),
    autoescape=select_autoescape(["html"]),
    undefined=StrictUndefined,
    keep_trailing_newline=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


class RenderError(Exception):
    """Raised when a report is internally inconsistent and cannot be rendered."""


def check_consistency(report: ComplianceReport) -> None:
    """Verify report invariants before serializing.

    Raises:
        RenderError: If counts or per-resource statuses are inconsistent
    """
    if report.compliant_resources + report.non_compliant_resources != report.total_resources:
        raise RenderError(
            f"Inconsistent report: compliant ({report.compliant_resources}) + "
            f"non-compliant ({report.non_compliant_resources}) != "
            f"total ({report.total_resources})"
        )
    if len(report.resource_details) != report.total_resources:
        raise RenderError(
            f"Inconsistent report: {len(report.resource_details)} resource details "
            f"for {report.total_resources} total resources"
        )
    for result in report.resource_details:
        if (result.status == ComplianceStatus.COMPLIANT) != (not result.issues):
            raise RenderError(
                f"Inconsistent result for {result.resource.id}: status "
                f"{result.status.value} with {len(result.issues)} issue(s)"
            )


class ReportGenerator:
    """Generate report artifacts from a compliance report."""

    def __init__(
        self,
        report: ComplianceReport,
        review_interval_days: int = DEFAULT_REVIEW_INTERVAL_DAYS,
    ):
        """Initialize the report generator.

        Args:
            report: The compliance report to render
            review_interval_days: Days until the next review, shown in the HTML footer
        """
        self.report = report
        self.review_interval_days = review_interval_days

    def to_dict(self) -> dict[str, Any]:
        """Get the report as a JSON-compatible dict with data model field names."""
        return self.report.model_dump(mode="json", by_alias=True)

    def to_json(self) -> bytes:
        """Generate the JSON report.

        Raises:
            RenderError: If the report is inconsistent
        """
        check_consistency(self.report)
        text = json.dumps(self.to_dict(), indent=2, ensure_ascii=False)
        return (text + "\n").encode("utf-8")

    def to_html(self) -> bytes:
        """Generate a self-contained HTML report.

        Raises:
            RenderError: If the report is inconsistent
        """
        check_consistency(self.report)
        template = _template_env.get_template(HTML_TEMPLATE)
        return template.render(**self._html_context()).encode("utf-8")

    def get_severity_counts(self) -> dict[str, int]:
        """Count issues by severity across all resources."""
        counts = {severity.value: 0 for severity in Severity}
        for result in self.report.resource_details:
            for issue in result.issues:
                counts[issue.severity.value] += 1
        return counts

    def next_review_date(self) -> str:
        """Get the date the next compliance review is due."""
        due = self.report.timestamp + timedelta(days=self.review_interval_days)
        return due.date().isoformat()

    def _html_context(self) -> dict[str, Any]:
        report = self.report
        rows = [
            {
                "name": result.resource.name,
                "resource_id": result.resource.id,
                "kind": result.kind.value,
                "status": result.status.value,
                "status_class": "compliant" if result.is_compliant() else "non-compliant",
                "issues": [issue.describe() for issue in result.issues],
            }
            for result in report.resource_details
        ]
        return {
            "environment": report.environment,
            "timestamp": report.timestamp.isoformat(),
            "policy_version": report.policy_version,
            "compliance_rate": f"{report.compliance_rate_percent:.2f}",
            "total": report.total_resources,
            "compliant": report.compliant_resources,
            "non_compliant": report.non_compliant_resources,
            "severity_counts": self.get_severity_counts(),
            "rows": rows,
            "frameworks": list(report.compliance_frameworks),
            "next_review": self.next_review_date(),
            "review_interval_days": self.review_interval_days,
        }


def generate_report(
    report: ComplianceReport,
    format: str = "json",
    review_interval_days: int = DEFAULT_REVIEW_INTERVAL_DAYS,
) -> bytes:
    """Generate a report in the specified format.

    Args:
        report: The compliance report to render
        format: Output format ('json' or 'html')
        review_interval_days: Days until the next review

    Returns:
        Rendered report bytes

    Raises:
        ValueError: If an unsupported format is specified
    """
    generator = ReportGenerator(report, review_interval_days=review_interval_days)

    format_mapping = {
        "json": generator.to_json,
        "html": generator.to_html,
    }

    if format not in format_mapping:
        raise ValueError(
            f"Unsupported format: {format}. "
            f"Supported formats: {', '.join(format_mapping.keys())}"
        )

    return format_mapping[format]()
