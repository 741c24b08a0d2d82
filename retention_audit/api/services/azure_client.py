"""Azure SDK adapter for diagnostic settings discovery and remediation.

Implements the discovery collaborator (resource listing and diagnostic
snapshots) and the remediation applier on top of the Azure Resource
Manager and Azure Monitor management clients. Blocking SDK calls run in
worker threads so snapshot fetches can be fanned out by the runner.

Credential modes:
1. Service principal: settings.azure_tenant_id/client_id/client_secret
2. DefaultAzureCredential (Azure CLI, managed identity, environment)
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Any

from azure.identity import ClientSecretCredential, DefaultAzureCredential
from azure.mgmt.monitor import MonitorManagementClient
from azure.mgmt.monitor.models import (
    DiagnosticSettingsResource,
    LogSettings,
    MetricSettings,
    RetentionPolicy as MonitorRetentionPolicy,
)
from azure.mgmt.resource import ResourceManagementClient

from retention_audit.compliance.models import (
    CategorySetting,
    DiagnosticSnapshot,
    RemediationOutcome,
    RemediationResult,
    ResourceDescriptor,
    TargetDiagnosticConfig,
)
from retention_audit.compliance.remediation import is_noop, pending_changes
from retention_audit.core.config import Settings, get_settings
from retention_audit.core.retry import (
    DIAGNOSTIC_SNAPSHOT_POLICY,
    DIAGNOSTIC_WRITE_POLICY,
    RESOURCE_LIST_POLICY,
    retry_with_backoff,
)

logger = logging.getLogger(__name__)


def build_credential(settings: Settings):
    """Create an Azure credential from settings."""
    if settings.has_service_principal:
        return ClientSecretCredential(
            tenant_id=str(settings.azure_tenant_id),
            client_id=str(settings.azure_client_id),
            client_secret=str(settings.azure_client_secret),
        )
    return DefaultAzureCredential(exclude_interactive_browser_credential=True)


def _retention_days(entry: Any) -> int:
    policy = getattr(entry, "retention_policy", None)
    if policy is None:
        return 0
    return int(getattr(policy, "days", 0) or 0)


def _merge_category(
    merged: dict[str, CategorySetting], category: str, enabled: bool, days: int
) -> None:
    """Keep the strongest observed state of a category across settings."""
    current = merged.get(category)
    if (
        current is None
        or (enabled and not current.enabled)
        or (enabled == current.enabled and days > current.retention_days)
    ):
        merged[category] = CategorySetting(enabled=enabled, retention_days=days)


def snapshot_from_settings(settings: Iterable[Any]) -> DiagnosticSnapshot | None:
    """Merge Azure diagnostic settings of one resource into a snapshot.

    A category counts as enabled if any setting enables it; its retention
    is the longest among settings in the same enabled state.

    Returns:
        DiagnosticSnapshot, or None when the resource has no settings
    """
    settings = list(settings)
    if not settings:
        return None

    logs: dict[str, CategorySetting] = {}
    metrics: dict[str, CategorySetting] = {}

    for setting in settings:
        for entry in getattr(setting, "logs", None) or []:
            if not entry.category:
                # Category groups (allLogs, audit) are not expanded
                logger.debug(
                    f"Ignoring category group '{getattr(entry, 'category_group', None)}' "
                    f"in diagnostic setting {getattr(setting, 'name', '')}"
                )
                continue
            _merge_category(logs, entry.category, bool(entry.enabled), _retention_days(entry))

        for entry in getattr(setting, "metrics", None) or []:
            if not entry.category:
                continue
            _merge_category(metrics, entry.category, bool(entry.enabled), _retention_days(entry))

    return DiagnosticSnapshot(logs=logs, metrics=metrics)


def build_diagnostic_setting(
    target: TargetDiagnosticConfig, workspace_id: str
) -> DiagnosticSettingsResource:
    """Build the Azure Monitor diagnostic setting for a target configuration."""
    return DiagnosticSettingsResource(
        workspace_id=workspace_id,
        logs=[
            LogSettings(
                category=t.category,
                enabled=t.enabled,
                retention_policy=MonitorRetentionPolicy(enabled=True, days=t.retention_days),
            )
            for t in target.logs
        ],
        metrics=[
            MetricSettings(
                category=t.category,
                enabled=t.enabled,
                retention_policy=MonitorRetentionPolicy(enabled=True, days=t.retention_days),
            )
            for t in target.metrics
        ],
    )


class AzureDiagnosticsClient:
    """Discovery and remediation for one Azure subscription."""

    def __init__(
        self,
        subscription_id: str,
        settings: Settings | None = None,
        credential: Any | None = None,
        resource_client: ResourceManagementClient | None = None,
        monitor_client: MonitorManagementClient | None = None,
    ) -> None:
        self.subscription_id = subscription_id
        self._settings = settings or get_settings()
        self._credential = credential
        self._resource_client = resource_client
        self._monitor_client = monitor_client

    def _get_credential(self):
        if self._credential is None:
            self._credential = build_credential(self._settings)
        return self._credential

    @property
    def resource_client(self) -> ResourceManagementClient:
        if self._resource_client is None:
            self._resource_client = ResourceManagementClient(
                self._get_credential(), self.subscription_id
            )
        return self._resource_client

    @property
    def monitor_client(self) -> MonitorManagementClient:
        if self._monitor_client is None:
            self._monitor_client = MonitorManagementClient(
                self._get_credential(), self.subscription_id
            )
        return self._monitor_client

    @retry_with_backoff(RESOURCE_LIST_POLICY)
    async def list_resources(self) -> list[ResourceDescriptor]:
        """List every resource in the subscription, in discovery order."""
        items = await asyncio.to_thread(lambda: list(self.resource_client.resources.list()))
        resources = [
            ResourceDescriptor(
                id=item.id,
                raw_type=item.type,
                name=item.name,
                hint=getattr(item, "kind", None),
            )
            for item in items
        ]
        logger.info(
            f"Discovered {len(resources)} resources in subscription {self.subscription_id[:8]}..."
        )
        return resources

    def _list_diagnostic_settings(self, resource_id: str) -> list[Any]:
        response = self.monitor_client.diagnostic_settings.list(resource_id)
        # Older SDKs return a collection wrapper instead of a pager
        items = getattr(response, "value", response)
        return list(items or [])

    @retry_with_backoff(DIAGNOSTIC_SNAPSHOT_POLICY)
    async def fetch_snapshot(
        self, resource: ResourceDescriptor
    ) -> DiagnosticSnapshot | None:
        """Fetch the merged diagnostic snapshot of a resource."""
        settings = await asyncio.to_thread(self._list_diagnostic_settings, resource.id)
        return snapshot_from_settings(settings)

    @retry_with_backoff(DIAGNOSTIC_WRITE_POLICY)
    async def _write_setting(
        self, resource_id: str, parameters: DiagnosticSettingsResource
    ) -> None:
        await asyncio.to_thread(
            self.monitor_client.diagnostic_settings.create_or_update,
            resource_id,
            self._settings.diagnostic_setting_name,
            parameters,
        )

    async def apply_remediation(
        self,
        resource: ResourceDescriptor,
        target: TargetDiagnosticConfig,
        snapshot: DiagnosticSnapshot | None,
    ) -> RemediationResult:
        """Converge a resource to its target configuration.

        Nothing is written when the resource already meets the target.
        Failures are reported in the result, never raised.
        """
        if snapshot is None and is_noop(target):
            # An empty target cannot create the diagnostic setting the resource lacks
            message = (
                f"No retention requirements for {target.kind.value}; "
                "cannot create diagnostic settings from an empty target"
            )
            logger.error(f"Cannot remediate {resource.name}: {message}")
            return RemediationResult(
                resource_id=resource.id,
                outcome=RemediationOutcome.FAILED,
                message=message,
            )

        delta = pending_changes(target, snapshot)
        changed_logs = tuple(t.category for t in delta.logs)
        changed_metrics = tuple(t.category for t in delta.metrics)

        if is_noop(delta):
            logger.info(f"{resource.name} already meets its retention target; nothing to apply")
            return RemediationResult(resource_id=resource.id, outcome=RemediationOutcome.NO_OP)

        workspace_id = self._settings.log_analytics_workspace_id
        if not workspace_id:
            message = "No Log Analytics workspace configured (LOG_ANALYTICS_WORKSPACE_ID)"
            logger.error(f"Cannot remediate {resource.name}: {message}")
            return RemediationResult(
                resource_id=resource.id,
                outcome=RemediationOutcome.FAILED,
                changed_logs=changed_logs,
                changed_metrics=changed_metrics,
                message=message,
            )

        try:
            await self._write_setting(resource.id, build_diagnostic_setting(target, workspace_id))
        except Exception as e:
            logger.error(f"Failed to apply diagnostic settings to {resource.name}: {e}")
            return RemediationResult(
                resource_id=resource.id,
                outcome=RemediationOutcome.FAILED,
                changed_logs=changed_logs,
                changed_metrics=changed_metrics,
                message=str(e),
            )

        logger.info(
            f"Applied diagnostic settings to {resource.name}: "
            f"logs={list(changed_logs)}, metrics={list(changed_metrics)}"
        )
        return RemediationResult(
            resource_id=resource.id,
            outcome=RemediationOutcome.APPLIED,
            changed_logs=changed_logs,
            changed_metrics=changed_metrics,
        )
