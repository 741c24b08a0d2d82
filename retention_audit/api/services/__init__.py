"""External service adapters."""

from retention_audit.api.services.azure_client import (
    AzureDiagnosticsClient,
    build_credential,
    build_diagnostic_setting,
    snapshot_from_settings,
)

__all__ = [
    "AzureDiagnosticsClient",
    "build_credential",
    "build_diagnostic_setting",
    "snapshot_from_settings",
]
