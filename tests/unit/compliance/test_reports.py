"""Tests for report rendering."""

import json

import pytest

from retention_audit.compliance.aggregator import aggregate
from retention_audit.compliance.evaluator import evaluate
from retention_audit.compliance.models import (
    ComplianceReport,
    ResourceKind,
    ResourceRequirements,
)
from retention_audit.compliance.reports import RenderError, ReportGenerator, generate_report
from tests.fixtures import compliant_key_vault_snapshot, make_resource, make_snapshot


@pytest.fixture
def sample_report(policy, report_timestamp):
    """Report with one compliant vault and one non-compliant storage account."""
    results = [
        evaluate(
            make_resource("kv-audit-01"),
            ResourceKind.KEY_VAULT,
            compliant_key_vault_snapshot(),
            policy.requirements_for(ResourceKind.KEY_VAULT),
        ),
        evaluate(
            make_resource("stauditlogs01", "storageAccount"),
            ResourceKind.STORAGE_ACCOUNT,
            make_snapshot(
                logs={"StorageRead": (True, 30), "StorageWrite": (False, 180)},
                metrics={"Transaction": (True, 90)},
            ),
            policy.requirements_for(ResourceKind.STORAGE_ACCOUNT),
        ),
    ]
    return aggregate(
        results,
        environment="staging",
        policy_version=policy.version,
        compliance_frameworks=policy.compliance_frameworks,
        timestamp=report_timestamp,
    )


class TestJsonReport:
    """Tests for JSON rendering."""

    def test_uses_data_model_field_names(self, sample_report):
        """Test JSON keys mirror the camelCase data model."""
        data = json.loads(ReportGenerator(sample_report).to_json())

        assert set(data) == {
            "timestamp",
            "environment",
            "policyVersion",
            "complianceFrameworks",
            "totalResources",
            "compliantResources",
            "nonCompliantResources",
            "complianceRatePercent",
            "resourceDetails",
        }
        assert data["totalResources"] == 2
        assert data["complianceRatePercent"] == 50.0
        assert data["complianceFrameworks"] == ["ISO 27001", "SOC 2"]

        detail = data["resourceDetails"][1]
        assert detail["resource"]["rawType"] == "Microsoft.Storage/storageAccounts"
        assert detail["kind"] == "storageAccount"
        assert detail["status"] == "NonCompliant"
        assert detail["issues"][0] == {
            "category": "StorageRead",
            "issue": "InsufficientRetention",
            "expected": "180 days",
            "actual": "30 days",
            "severity": "Medium",
        }

    def test_resource_hint_not_serialized(self, policy, report_timestamp):
        """Test the classification hint stays out of the report."""
        result = evaluate(
            make_resource("func-ingest", "appService", hint="functionapp"),
            ResourceKind.FUNCTION_APP,
            make_snapshot(),
            policy.requirements_for(ResourceKind.FUNCTION_APP),
        )
        report = aggregate(
            [result], environment="dev", policy_version="1.0", timestamp=report_timestamp
        )
        data = json.loads(ReportGenerator(report).to_json())
        assert "hint" not in data["resourceDetails"][0]["resource"]

    def test_byte_identical_across_calls(self, sample_report):
        """Test rendering the same report twice yields the same bytes."""
        generator = ReportGenerator(sample_report)
        assert generator.to_json() == generator.to_json()
        assert ReportGenerator(sample_report).to_json() == generator.to_json()

    def test_returns_utf8_bytes(self, sample_report):
        """Test JSON output is UTF-8 encoded bytes."""
        output = ReportGenerator(sample_report).to_json()
        assert isinstance(output, bytes)
        assert output.endswith(b"\n")


class TestHtmlReport:
    """Tests for HTML rendering."""

    def test_summary_block(self, sample_report):
        """Test the summary shows environment, time, version and rate."""
        html = ReportGenerator(sample_report).to_html().decode("utf-8")

        assert "<strong>Environment:</strong> staging" in html
        assert "2024-05-01T12:30:00+00:00" in html
        assert "<strong>Policy version:</strong> 2024.1" in html
        assert "50.00%" in html

    def test_resource_table(self, sample_report):
        """Test every resource appears with kind, status and issues."""
        html = ReportGenerator(sample_report).to_html().decode("utf-8")

        assert "kv-audit-01" in html
        assert "stauditlogs01" in html
        assert "storageAccount" in html
        assert "NonCompliant" in html
        assert "StorageRead: InsufficientRetention" in html
        assert "StorageWrite: Disabled" in html

    def test_footer(self, sample_report):
        """Test the footer lists frameworks and the next review date."""
        html = ReportGenerator(sample_report, review_interval_days=30).to_html().decode("utf-8")

        assert "ISO 27001, SOC 2" in html
        assert "Next review due by 2024-05-31" in html

    def test_self_contained(self, sample_report):
        """Test the page references no external assets."""
        html = ReportGenerator(sample_report).to_html().decode("utf-8")

        assert "<link" not in html
        assert "<script" not in html
        assert "http://" not in html
        assert "https://" not in html

    def test_escapes_resource_names(self, report_timestamp):
        """Test resource names are HTML-escaped."""
        result = evaluate(
            make_resource("<script>alert(1)</script>"),
            ResourceKind.KEY_VAULT,
            make_snapshot(),
            ResourceRequirements(),
        )
        report = aggregate(
            [result], environment="dev", policy_version="1.0", timestamp=report_timestamp
        )
        html = ReportGenerator(report).to_html().decode("utf-8")

        assert "<script>alert(1)</script>" not in html
        assert "&lt;script&gt;" in html

    def test_empty_report(self, report_timestamp):
        """Test an empty run renders without a table."""
        report = aggregate([], environment="dev", policy_version="1.0", timestamp=report_timestamp)
        html = ReportGenerator(report).to_html().decode("utf-8")

        assert "No resources within policy scope were evaluated." in html
        assert "None declared" in html
        assert "0.00%" in html

    def test_byte_identical_across_calls(self, sample_report):
        """Test rendering the same report twice yields the same bytes."""
        assert ReportGenerator(sample_report).to_html() == ReportGenerator(sample_report).to_html()


class TestConsistencyChecks:
    """Tests for refusing to render inconsistent reports."""

    def test_inconsistent_totals_raise(self, sample_report):
        """Test a report whose totals do not add up raises RenderError."""
        broken = ComplianceReport.model_construct(
            **{**dict(sample_report), "compliant_resources": 2}
        )

        with pytest.raises(RenderError):
            ReportGenerator(broken).to_json()
        with pytest.raises(RenderError):
            ReportGenerator(broken).to_html()

    def test_detail_count_mismatch_raises(self, sample_report):
        """Test totals must match the number of resource details."""
        broken = ComplianceReport.model_construct(
            **{**dict(sample_report), "resource_details": sample_report.resource_details[:1]}
        )
        with pytest.raises(RenderError):
            ReportGenerator(broken).to_json()


class TestGenerateReport:
    """Tests for the format dispatcher."""

    def test_json_format(self, sample_report):
        """Test JSON dispatch matches the generator."""
        assert generate_report(sample_report, "json") == ReportGenerator(sample_report).to_json()

    def test_html_format(self, sample_report):
        """Test HTML dispatch honours the review interval."""
        output = generate_report(sample_report, "html", review_interval_days=30)
        assert b"2024-05-31" in output

    def test_unsupported_format(self, sample_report):
        """Test unknown formats are rejected."""
        with pytest.raises(ValueError, match="Unsupported format"):
            generate_report(sample_report, "pdf")


class TestSeverityCounts:
    """Tests for the severity summary."""

    def test_counts_by_severity(self, sample_report):
        """Test issues are counted per severity."""
        counts = ReportGenerator(sample_report).get_severity_counts()
        assert counts == {"High": 1, "Medium": 1, "Low": 0}
