"""Pydantic models for diagnostic retention compliance.

Policy documents and inventory files use camelCase keys; every model
accepts either the camelCase alias or the snake_case field name and
serializes back to camelCase.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class ResourceKind(str, Enum):
    """Canonical resource kinds known to retention policies."""

    APP_SERVICE = "appService"
    FUNCTION_APP = "functionApp"
    SQL_DATABASE = "sqlDatabase"
    STORAGE_ACCOUNT = "storageAccount"
    KEY_VAULT = "keyVault"
    UNSUPPORTED = "unsupported"


class RetentionTierName(str, Enum):
    """Retention tiers a category requirement can belong to."""

    STANDARD = "standard"
    AUDIT = "audit"
    CRITICAL_AUDIT = "criticalAudit"


class EntityKind(str, Enum):
    """Kind of diagnostic entity a requirement applies to."""

    LOG = "log"
    METRIC = "metric"


class IssueKind(str, Enum):
    """Closed set of compliance findings."""

    MISSING_CATEGORY = "MissingCategory"
    DISABLED = "Disabled"
    INSUFFICIENT_RETENTION = "InsufficientRetention"


class Severity(str, Enum):
    """Finding severity levels."""

    HIGH = "High"
    MEDIUM = "Medium"
    LOW = "Low"


class ComplianceStatus(str, Enum):
    """Per-resource compliance verdict."""

    COMPLIANT = "Compliant"
    NON_COMPLIANT = "NonCompliant"


class RemediationOutcome(str, Enum):
    """Outcome reported by a remediation applier."""

    APPLIED = "applied"
    NO_OP = "no_op"
    FAILED = "failed"


class _FrozenModel(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)


# =============================================================================
# Policy
# =============================================================================


class CategoryRequirement(_FrozenModel):
    """Required state of a single diagnostic category."""

    category: str = Field(..., min_length=1)
    enabled: bool = True
    retention_days: int = Field(..., ge=0, alias="retentionDays")
    tier: RetentionTierName = RetentionTierName.STANDARD


class LogRequirement(CategoryRequirement):
    """Required state of a diagnostic log category."""


class MetricRequirement(CategoryRequirement):
    """Required state of a diagnostic metric category."""


class ResourceRequirements(_FrozenModel):
    """Ordered log and metric requirements for one resource kind."""

    logs: tuple[LogRequirement, ...] = ()
    metrics: tuple[MetricRequirement, ...] = ()

    @property
    def is_empty(self) -> bool:
        """Check if no category is required."""
        return not self.logs and not self.metrics


class RetentionTier(_FrozenModel):
    min_retention_days: int = Field(..., ge=0, alias="minRetentionDays")


class RetentionTiers(_FrozenModel):
    """Global retention floors."""

    standard: RetentionTier
    audit: RetentionTier
    critical_audit: RetentionTier = Field(..., alias="criticalAudit")

    def floor_for(self, tier: RetentionTierName) -> int:
        """Get the configured floor for a tier."""
        mapping = {
            RetentionTierName.STANDARD: self.standard,
            RetentionTierName.AUDIT: self.audit,
            RetentionTierName.CRITICAL_AUDIT: self.critical_audit,
        }
        return mapping[tier].min_retention_days


class ValidationRules(_FrozenModel):
    """Framework-level minimums applied when the policy is loaded."""

    minimum_retention_days: int = Field(..., ge=0, alias="minimumRetentionDays")
    audit_logs_minimum_retention: int = Field(..., ge=0, alias="auditLogsMinimumRetention")
    critical_audit_logs_minimum_retention: int = Field(
        ..., ge=0, alias="criticalAuditLogsMinimumRetention"
    )
    all_resources_must_have_diagnostics: bool = Field(
        ..., alias="allResourcesMustHaveDiagnostics"
    )

    def rule_for(self, tier: RetentionTierName) -> int:
        """Get the validation rule minimum matching a tier."""
        mapping = {
            RetentionTierName.STANDARD: self.minimum_retention_days,
            RetentionTierName.AUDIT: self.audit_logs_minimum_retention,
            RetentionTierName.CRITICAL_AUDIT: self.critical_audit_logs_minimum_retention,
        }
        return mapping[tier]


class RetentionPolicy(_FrozenModel):
    """Immutable retention policy for one audit run."""

    version: str = Field(..., min_length=1)
    compliance_frameworks: frozenset[str] = Field(..., alias="complianceFrameworks")
    retention_tiers: RetentionTiers = Field(..., alias="retentionTiers")
    resource_policies: dict[ResourceKind, ResourceRequirements] = Field(
        ..., alias="resourcePolicies"
    )
    validation_rules: ValidationRules = Field(..., alias="validationRules")

    @field_validator("resource_policies")
    @classmethod
    def reject_unsupported_kind(
        cls, v: dict[ResourceKind, ResourceRequirements]
    ) -> dict[ResourceKind, ResourceRequirements]:
        """The unsupported kind can never carry requirements."""
        if ResourceKind.UNSUPPORTED in v:
            raise ValueError("'unsupported' is not a valid policy resource kind")
        return v

    def effective_floor(self, tier: RetentionTierName) -> int:
        """Get the floor a category in the given tier must meet."""
        return max(
            self.retention_tiers.floor_for(tier),
            self.validation_rules.rule_for(tier),
        )

    def requirements_for(self, kind: ResourceKind) -> ResourceRequirements:
        """Get requirements for a kind; empty when the policy has none."""
        return self.resource_policies.get(kind, ResourceRequirements())

    @property
    def sorted_frameworks(self) -> list[str]:
        """Get compliance frameworks in a stable order."""
        return sorted(self.compliance_frameworks)


# =============================================================================
# Discovery inputs
# =============================================================================


class ResourceDescriptor(_FrozenModel):
    """A discovered cloud resource."""

    id: str
    raw_type: str = Field(..., alias="rawType")
    name: str
    hint: str | None = Field(None, exclude=True)


class CategorySetting(_FrozenModel):
    """Observed state of one diagnostic category."""

    enabled: bool
    retention_days: int = Field(0, ge=0, alias="retentionDays")


class DiagnosticSnapshot(_FrozenModel):
    """Observed diagnostic configuration of one resource."""

    logs: dict[str, CategorySetting] = Field(default_factory=dict)
    metrics: dict[str, CategorySetting] = Field(default_factory=dict)


class InventoryEntry(_FrozenModel):
    """One resource of an offline inventory document.

    `diagnostics` set to null means no diagnostic settings were found
    (or they could not be read).
    """

    id: str
    raw_type: str = Field(..., alias="type")
    name: str
    hint: str | None = Field(None, alias="kind")
    diagnostics: DiagnosticSnapshot | None = None

    def to_descriptor(self) -> ResourceDescriptor:
        """Convert to a resource descriptor."""
        return ResourceDescriptor(
            id=self.id, raw_type=self.raw_type, name=self.name, hint=self.hint
        )


class InventoryDocument(_FrozenModel):
    """Offline inventory: resources with their diagnostic snapshots."""

    environment: str | None = None
    resources: tuple[InventoryEntry, ...] = ()


# =============================================================================
# Results
# =============================================================================


class ComplianceIssue(_FrozenModel):
    """A single itemized finding."""

    category: str
    issue: IssueKind
    expected: str
    actual: str
    severity: Severity

    def describe(self) -> str:
        """Get a one-line human-readable description."""
        label = self.category or "diagnostic settings"
        return (
            f"[{self.severity.value}] {label}: {self.issue.value} "
            f"(expected {self.expected}, actual {self.actual})"
        )


class ResourceComplianceResult(_FrozenModel):
    """Compliance verdict for one resource."""

    resource: ResourceDescriptor
    kind: ResourceKind
    status: ComplianceStatus
    issues: tuple[ComplianceIssue, ...] = ()

    @model_validator(mode="after")
    def validate_status_matches_issues(self):
        """Compliant if and only if there are no issues."""
        if (self.status == ComplianceStatus.COMPLIANT) != (not self.issues):
            raise ValueError(
                f"status {self.status.value} is inconsistent with {len(self.issues)} issue(s)"
            )
        return self

    def is_compliant(self) -> bool:
        """Check if the resource is compliant."""
        return self.status == ComplianceStatus.COMPLIANT


class ComplianceReport(_FrozenModel):
    """Aggregate compliance report for one run."""

    timestamp: datetime
    environment: str
    policy_version: str = Field(..., alias="policyVersion")
    compliance_frameworks: tuple[str, ...] = Field((), alias="complianceFrameworks")
    total_resources: int = Field(..., ge=0, alias="totalResources")
    compliant_resources: int = Field(..., ge=0, alias="compliantResources")
    non_compliant_resources: int = Field(..., ge=0, alias="nonCompliantResources")
    compliance_rate_percent: float = Field(..., ge=0, le=100, alias="complianceRatePercent")
    resource_details: tuple[ResourceComplianceResult, ...] = Field((), alias="resourceDetails")

    @model_validator(mode="after")
    def validate_totals(self):
        """Compliant and non-compliant counts must add up to the total."""
        if self.compliant_resources + self.non_compliant_resources != self.total_resources:
            raise ValueError(
                f"compliant ({self.compliant_resources}) + non-compliant "
                f"({self.non_compliant_resources}) != total ({self.total_resources})"
            )
        return self

    @property
    def is_success(self) -> bool:
        """Check if every evaluated resource is compliant."""
        return self.non_compliant_resources == 0

    def get_non_compliant_results(self) -> list[ResourceComplianceResult]:
        """Get all non-compliant resource results."""
        return [r for r in self.resource_details if not r.is_compliant()]

    def get_summary(self) -> dict[str, Any]:
        """Get a summary of the report."""
        return {
            "timestamp": self.timestamp.isoformat(),
            "environment": self.environment,
            "policy_version": self.policy_version,
            "total": self.total_resources,
            "compliant": self.compliant_resources,
            "non_compliant": self.non_compliant_resources,
            "compliance_rate_percent": self.compliance_rate_percent,
            "is_success": self.is_success,
        }


# =============================================================================
# Remediation
# =============================================================================


class TargetCategorySetting(_FrozenModel):
    """Target state of one diagnostic category."""

    category: str
    enabled: bool = True
    retention_days: int = Field(..., ge=0, alias="retentionDays")


class TargetDiagnosticConfig(_FrozenModel):
    """Complete diagnostic configuration a resource should converge to."""

    kind: ResourceKind
    logs: tuple[TargetCategorySetting, ...] = ()
    metrics: tuple[TargetCategorySetting, ...] = ()


class RemediationResult(_FrozenModel):
    """Result of applying a remediation plan to one resource."""

    resource_id: str
    outcome: RemediationOutcome
    changed_logs: tuple[str, ...] = ()
    changed_metrics: tuple[str, ...] = ()
    message: str = ""

    def is_success(self) -> bool:
        """Check if the resource is now at its target state."""
        return self.outcome in (RemediationOutcome.APPLIED, RemediationOutcome.NO_OP)
