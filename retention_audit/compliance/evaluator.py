"""Compliance rules engine.

Compares a resource's observed diagnostic snapshot against the policy
requirements for its kind. Log failures outrank metric failures of the
same kind: logs carry the audit trail, metrics are operational telemetry.
"""

from collections.abc import Mapping

from retention_audit.compliance.models import (
    CategoryRequirement,
    CategorySetting,
    ComplianceIssue,
    ComplianceStatus,
    DiagnosticSnapshot,
    EntityKind,
    IssueKind,
    ResourceComplianceResult,
    ResourceDescriptor,
    ResourceKind,
    ResourceRequirements,
    Severity,
)

SEVERITY_MATRIX: dict[tuple[EntityKind, IssueKind], Severity] = {
    (EntityKind.LOG, IssueKind.MISSING_CATEGORY): Severity.HIGH,
    (EntityKind.LOG, IssueKind.DISABLED): Severity.HIGH,
    (EntityKind.LOG, IssueKind.INSUFFICIENT_RETENTION): Severity.MEDIUM,
    (EntityKind.METRIC, IssueKind.MISSING_CATEGORY): Severity.MEDIUM,
    (EntityKind.METRIC, IssueKind.DISABLED): Severity.MEDIUM,
    (EntityKind.METRIC, IssueKind.INSUFFICIENT_RETENTION): Severity.LOW,
}

NOT_CONFIGURED = "not configured"

MISSING_SNAPSHOT_ISSUE = ComplianceIssue(
    category="",
    issue=IssueKind.MISSING_CATEGORY,
    expected="diagnostic settings configured",
    actual=NOT_CONFIGURED,
    severity=Severity.HIGH,
)


def severity_for(entity: EntityKind, issue: IssueKind) -> Severity:
    """Look up the severity of an issue on a log or metric category."""
    return SEVERITY_MATRIX[(entity, issue)]


def check_category(
    entity: EntityKind,
    requirement: CategoryRequirement,
    observed: Mapping[str, CategorySetting],
) -> ComplianceIssue | None:
    """Check one required category against the observed settings."""
    setting = observed.get(requirement.category)

    if setting is None:
        issue = IssueKind.MISSING_CATEGORY
        expected = f"enabled, {requirement.retention_days} days"
        actual = NOT_CONFIGURED
    elif not setting.enabled:
        issue = IssueKind.DISABLED
        expected = "enabled"
        actual = "disabled"
    elif setting.retention_days < requirement.retention_days:
        issue = IssueKind.INSUFFICIENT_RETENTION
        expected = f"{requirement.retention_days} days"
        actual = f"{setting.retention_days} days"
    else:
        return None

    return ComplianceIssue(
        category=requirement.category,
        issue=issue,
        expected=expected,
        actual=actual,
        severity=severity_for(entity, issue),
    )


def find_issues(
    snapshot: DiagnosticSnapshot | None,
    requirements: ResourceRequirements,
) -> list[ComplianceIssue]:
    """Collect issues in policy-declared order, logs before metrics.

    An absent snapshot yields exactly one issue, no matter how many
    categories are required.
    """
    if snapshot is None:
        return [MISSING_SNAPSHOT_ISSUE]

    issues = []
    for requirement in requirements.logs:
        issue = check_category(EntityKind.LOG, requirement, snapshot.logs)
        if issue is not None:
            issues.append(issue)
    for requirement in requirements.metrics:
        issue = check_category(EntityKind.METRIC, requirement, snapshot.metrics)
        if issue is not None:
            issues.append(issue)
    return issues


def evaluate(
    resource: ResourceDescriptor,
    kind: ResourceKind,
    snapshot: DiagnosticSnapshot | None,
    requirements: ResourceRequirements,
) -> ResourceComplianceResult:
    """Evaluate one resource's diagnostic configuration."""
    issues = find_issues(snapshot, requirements)
    status = ComplianceStatus.NON_COMPLIANT if issues else ComplianceStatus.COMPLIANT
    return ResourceComplianceResult(
        resource=resource,
        kind=kind,
        status=status,
        issues=tuple(issues),
    )
