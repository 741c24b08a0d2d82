"""Remediation planning.

The planner is pure: it derives the complete target configuration for a
resource kind from policy alone. Appliers compare the target against live
state with `pending_changes` and only write the delta, so re-applying a
plan to a resource already at or above target is a no-op.
"""

from collections.abc import Mapping

from retention_audit.compliance.models import (
    CategoryRequirement,
    CategorySetting,
    ComplianceReport,
    DiagnosticSnapshot,
    ResourceKind,
    ResourceRequirements,
    RetentionPolicy,
    TargetCategorySetting,
    TargetDiagnosticConfig,
)


def _targets(requirements: tuple[CategoryRequirement, ...]) -> tuple[TargetCategorySetting, ...]:
    return tuple(
        TargetCategorySetting(
            category=requirement.category,
            enabled=True,
            retention_days=requirement.retention_days,
        )
        for requirement in requirements
    )


def plan_remediation(
    kind: ResourceKind, requirements: ResourceRequirements
) -> TargetDiagnosticConfig:
    """Compute the target diagnostic configuration for a resource kind."""
    return TargetDiagnosticConfig(
        kind=kind,
        logs=_targets(requirements.logs),
        metrics=_targets(requirements.metrics),
    )


def _needs_change(target: TargetCategorySetting, current: CategorySetting | None) -> bool:
    if current is None or not current.enabled:
        return True
    return current.retention_days < target.retention_days


def _changed(
    targets: tuple[TargetCategorySetting, ...],
    observed: Mapping[str, CategorySetting],
) -> tuple[TargetCategorySetting, ...]:
    return tuple(t for t in targets if _needs_change(t, observed.get(t.category)))


def pending_changes(
    target: TargetDiagnosticConfig, snapshot: DiagnosticSnapshot | None
) -> TargetDiagnosticConfig:
    """Get the part of a target not yet satisfied by the current snapshot.

    Categories already enabled with at least the target retention are
    dropped; an empty result means applying the plan is a no-op.
    """
    if snapshot is None:
        return target
    return TargetDiagnosticConfig(
        kind=target.kind,
        logs=_changed(target.logs, snapshot.logs),
        metrics=_changed(target.metrics, snapshot.metrics),
    )


def is_noop(delta: TargetDiagnosticConfig) -> bool:
    """Check if a delta contains nothing to apply."""
    return not delta.logs and not delta.metrics


def plan_for_report(
    report: ComplianceReport, policy: RetentionPolicy
) -> dict[str, TargetDiagnosticConfig]:
    """Plan remediation for every non-compliant resource in a report.

    Returns:
        Mapping of resource id to target configuration, in report order
    """
    return {
        result.resource.id: plan_remediation(result.kind, policy.requirements_for(result.kind))
        for result in report.get_non_compliant_results()
    }
