"""Folding per-resource results into a run-level compliance report."""

import logging
from collections.abc import Iterable
from datetime import UTC, datetime

from retention_audit.compliance.models import (
    ComplianceReport,
    ResourceComplianceResult,
    ResourceKind,
)

logger = logging.getLogger(__name__)


def compliance_rate(compliant: int, total: int) -> float:
    """Percentage of compliant resources, rounded to two decimals."""
    if total <= 0:
        return 0.0
    return round(compliant / total * 100, 2)


def sort_results(
    results: Iterable[ResourceComplianceResult],
) -> list[ResourceComplianceResult]:
    """Order results by resource name, then id, for stable reports."""
    return sorted(results, key=lambda r: (r.resource.name.lower(), r.resource.id))


def aggregate(
    results: Iterable[ResourceComplianceResult],
    *,
    environment: str,
    policy_version: str,
    compliance_frameworks: Iterable[str] = (),
    timestamp: datetime | None = None,
) -> ComplianceReport:
    """Build the compliance report for a run.

    Input order is preserved in resource_details; callers sort first when
    results arrived in a non-deterministic order.

    Args:
        results: Per-resource evaluation results
        environment: Environment the run audited
        policy_version: Version of the policy used
        compliance_frameworks: Frameworks referenced by the policy
        timestamp: Report time, defaults to now (UTC)
    """
    details = []
    for result in results:
        if result.kind == ResourceKind.UNSUPPORTED:
            logger.debug(f"Excluding unsupported resource {result.resource.id} from totals")
            continue
        details.append(result)

    total = len(details)
    compliant = sum(1 for r in details if r.is_compliant())

    return ComplianceReport(
        timestamp=timestamp or datetime.now(UTC),
        environment=environment,
        policy_version=policy_version,
        compliance_frameworks=tuple(sorted(set(compliance_frameworks))),
        total_resources=total,
        compliant_resources=compliant,
        non_compliant_resources=total - compliant,
        compliance_rate_percent=compliance_rate(compliant, total),
        resource_details=tuple(details),
    )
