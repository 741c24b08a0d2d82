"""Diagnostic retention compliance engine.

Loads a retention policy, classifies resources, evaluates their
diagnostic snapshots, aggregates results and renders reports:

   >>> from retention_audit.compliance import PolicyRepository, run_inventory
   >>> repository = PolicyRepository.load("config/retention-policy.json")
   >>> report = await run_inventory(repository.policy, inventory, environment="dev")
"""

from retention_audit.compliance.aggregator import aggregate, compliance_rate, sort_results
from retention_audit.compliance.classifier import classify, classify_resource
from retention_audit.compliance.evaluator import SEVERITY_MATRIX, evaluate, severity_for
from retention_audit.compliance.models import (
    CategorySetting,
    ComplianceIssue,
    ComplianceReport,
    ComplianceStatus,
    DiagnosticSnapshot,
    EntityKind,
    InventoryDocument,
    InventoryEntry,
    IssueKind,
    LogRequirement,
    MetricRequirement,
    RemediationOutcome,
    RemediationResult,
    ResourceComplianceResult,
    ResourceDescriptor,
    ResourceKind,
    ResourceRequirements,
    RetentionPolicy,
    Severity,
    TargetCategorySetting,
    TargetDiagnosticConfig,
)
from retention_audit.compliance.policy import PolicyRepository, PolicyValidationError
from retention_audit.compliance.remediation import (
    is_noop,
    pending_changes,
    plan_for_report,
    plan_remediation,
)
from retention_audit.compliance.reports import RenderError, ReportGenerator, generate_report
from retention_audit.compliance.runner import (
    ComplianceRunner,
    InventorySnapshotProvider,
    RemediationApplier,
    SnapshotProvider,
    apply_remediations,
    run_inventory,
)
from retention_audit.compliance.storage import ReportStore

__all__ = [
    # Models
    "CategorySetting",
    "ComplianceIssue",
    "ComplianceReport",
    "ComplianceStatus",
    "DiagnosticSnapshot",
    "EntityKind",
    "InventoryDocument",
    "InventoryEntry",
    "IssueKind",
    "LogRequirement",
    "MetricRequirement",
    "RemediationOutcome",
    "RemediationResult",
    "ResourceComplianceResult",
    "ResourceDescriptor",
    "ResourceKind",
    "ResourceRequirements",
    "RetentionPolicy",
    "Severity",
    "TargetCategorySetting",
    "TargetDiagnosticConfig",
    # Policy
    "PolicyRepository",
    "PolicyValidationError",
    # Engine
    "classify",
    "classify_resource",
    "evaluate",
    "severity_for",
    "SEVERITY_MATRIX",
    "aggregate",
    "compliance_rate",
    "sort_results",
    # Reporting
    "ReportGenerator",
    "RenderError",
    "generate_report",
    "ReportStore",
    # Remediation
    "plan_remediation",
    "pending_changes",
    "is_noop",
    "plan_for_report",
    # Orchestration
    "ComplianceRunner",
    "InventorySnapshotProvider",
    "SnapshotProvider",
    "RemediationApplier",
    "apply_remediations",
    "run_inventory",
]
