"""Compliance runner - orchestrates a retention audit run.

Classifies discovered resources, fetches their diagnostic snapshots
concurrently with a bounded worker count and per-fetch timeout, evaluates
each one and aggregates the results into a report.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Protocol

from retention_audit.compliance.aggregator import aggregate, sort_results
from retention_audit.compliance.classifier import classify_resource
from retention_audit.compliance.evaluator import evaluate
from retention_audit.compliance.models import (
    ComplianceReport,
    DiagnosticSnapshot,
    InventoryDocument,
    RemediationResult,
    ResourceComplianceResult,
    ResourceDescriptor,
    ResourceKind,
    ResourceRequirements,
    RetentionPolicy,
    TargetDiagnosticConfig,
)
from retention_audit.compliance.remediation import plan_for_report

logger = logging.getLogger(__name__)


class SnapshotProvider(Protocol):
    """Source of observed diagnostic configuration."""

    async def fetch_snapshot(
        self, resource: ResourceDescriptor
    ) -> DiagnosticSnapshot | None:
        """Fetch a resource's snapshot; None when nothing is configured."""
        ...


class InventorySnapshotProvider:
    """Serves snapshots from an offline inventory document."""

    def __init__(self, inventory: InventoryDocument):
        self._snapshots = {entry.id: entry.diagnostics for entry in inventory.resources}
        self._resources = [entry.to_descriptor() for entry in inventory.resources]

    @property
    def resources(self) -> list[ResourceDescriptor]:
        """Get the inventory's resources in document order."""
        return list(self._resources)

    async def fetch_snapshot(
        self, resource: ResourceDescriptor
    ) -> DiagnosticSnapshot | None:
        return self._snapshots.get(resource.id)


class ComplianceRunner:
    """Runs a retention compliance audit over a set of resources."""

    def __init__(
        self,
        policy: RetentionPolicy,
        provider: SnapshotProvider,
        concurrency: int = 8,
        timeout_seconds: float = 30.0,
    ):
        """Initialize the runner.

        Args:
            policy: Validated retention policy
            provider: Snapshot source for discovered resources
            concurrency: Maximum number of concurrent snapshot fetches
            timeout_seconds: Timeout for each snapshot fetch
        """
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")
        self.policy = policy
        self.provider = provider
        self.concurrency = concurrency
        self.timeout_seconds = timeout_seconds

    def select_resources(
        self, resources: Iterable[ResourceDescriptor]
    ) -> list[tuple[ResourceDescriptor, ResourceKind, ResourceRequirements]]:
        """Classify resources and keep those within policy scope."""
        selected = []
        must_have_diagnostics = self.policy.validation_rules.all_resources_must_have_diagnostics

        for resource in resources:
            kind = classify_resource(resource)
            if kind == ResourceKind.UNSUPPORTED:
                continue

            requirements = self.policy.requirements_for(kind)
            if requirements.is_empty and not must_have_diagnostics:
                logger.info(
                    f"Skipping {resource.name}: no retention policy for kind {kind.value}"
                )
                continue

            selected.append((resource, kind, requirements))
        return selected

    async def _fetch_snapshot(
        self, resource: ResourceDescriptor, semaphore: asyncio.Semaphore
    ) -> DiagnosticSnapshot | None:
        """Fetch one snapshot; timeouts and errors count as not configured."""
        async with semaphore:
            try:
                return await asyncio.wait_for(
                    self.provider.fetch_snapshot(resource),
                    timeout=self.timeout_seconds,
                )
            except TimeoutError:
                logger.warning(
                    f"Diagnostic settings fetch for {resource.name} timed out after "
                    f"{self.timeout_seconds}s; treating as not configured"
                )
            except Exception as e:
                logger.warning(
                    f"Diagnostic settings unavailable for {resource.name} "
                    f"({type(e).__name__}: {e}); treating as not configured"
                )
            return None

    async def _evaluate_one(
        self,
        resource: ResourceDescriptor,
        kind: ResourceKind,
        requirements: ResourceRequirements,
        semaphore: asyncio.Semaphore,
    ) -> ResourceComplianceResult:
        snapshot = await self._fetch_snapshot(resource, semaphore)
        result = evaluate(resource, kind, snapshot, requirements)
        logger.debug(
            f"Evaluated {resource.name} ({kind.value}): {result.status.value}, "
            f"{len(result.issues)} issue(s)"
        )
        return result

    async def evaluate_resources(
        self, resources: Iterable[ResourceDescriptor]
    ) -> list[ResourceComplianceResult]:
        """Evaluate every in-scope resource, sorted by name then id."""
        selected = self.select_resources(resources)
        semaphore = asyncio.Semaphore(self.concurrency)

        logger.info(
            f"Evaluating {len(selected)} resources "
            f"(concurrency={self.concurrency}, timeout={self.timeout_seconds}s)"
        )
        results = await asyncio.gather(*(
            self._evaluate_one(resource, kind, requirements, semaphore)
            for resource, kind, requirements in selected
        ))
        return sort_results(results)

    async def run(
        self,
        resources: Iterable[ResourceDescriptor],
        environment: str,
        timestamp: datetime | None = None,
    ) -> ComplianceReport:
        """Run the audit and build the compliance report.

        Args:
            resources: Discovered resources in discovery order
            environment: Environment being audited
            timestamp: Report time, defaults to now (UTC)

        Returns:
            Complete ComplianceReport
        """
        results = await self.evaluate_resources(resources)
        report = aggregate(
            results,
            environment=environment,
            policy_version=self.policy.version,
            compliance_frameworks=self.policy.compliance_frameworks,
            timestamp=timestamp,
        )

        logger.info(
            f"Retention compliance run completed for {environment}: "
            f"{report.compliant_resources}/{report.total_resources} compliant "
            f"({report.compliance_rate_percent:.2f}%)"
        )
        return report


class RemediationApplier(SnapshotProvider, Protocol):
    """Applies target configurations against live resource state."""

    async def apply_remediation(
        self,
        resource: ResourceDescriptor,
        target: TargetDiagnosticConfig,
        snapshot: DiagnosticSnapshot | None,
    ) -> RemediationResult:
        ...


async def apply_remediations(
    report: ComplianceReport,
    policy: RetentionPolicy,
    applier: RemediationApplier,
) -> list[RemediationResult]:
    """Apply remediation plans to every non-compliant resource of a report.

    Live state is re-read right before each apply so the applier only
    writes when the resource is still below target.
    """
    plans = plan_for_report(report, policy)
    outcomes = []

    for result in report.get_non_compliant_results():
        resource = result.resource
        try:
            snapshot = await applier.fetch_snapshot(resource)
        except Exception as e:
            logger.warning(f"Could not re-read diagnostic settings for {resource.name}: {e}")
            snapshot = None

        outcome = await applier.apply_remediation(resource, plans[resource.id], snapshot)
        outcomes.append(outcome)

    failed = sum(1 for o in outcomes if not o.is_success())
    logger.info(
        f"Remediation finished: {len(outcomes) - failed} succeeded, {failed} failed"
    )
    return outcomes


async def run_inventory(
    policy: RetentionPolicy,
    inventory: InventoryDocument,
    environment: str,
    timestamp: datetime | None = None,
) -> ComplianceReport:
    """Audit an offline inventory document."""
    provider = InventorySnapshotProvider(inventory)
    runner = ComplianceRunner(policy, provider)
    return await runner.run(provider.resources, environment, timestamp=timestamp)
