"""Resource classification against the policy's resource kinds."""

import logging

from retention_audit.compliance.models import ResourceDescriptor, ResourceKind

logger = logging.getLogger(__name__)

# Lower-cased Azure resource type -> resource kind
RESOURCE_TYPE_MAP: dict[str, ResourceKind] = {
    "microsoft.web/sites": ResourceKind.APP_SERVICE,
    "microsoft.sql/servers/databases": ResourceKind.SQL_DATABASE,
    "microsoft.storage/storageaccounts": ResourceKind.STORAGE_ACCOUNT,
    "microsoft.keyvault/vaults": ResourceKind.KEY_VAULT,
}

FUNCTION_APP_HINT = "functionapp"
SQL_SYSTEM_DATABASE = "master"


def classify(raw_type: str, hint: str | None = None) -> ResourceKind:
    """Map a platform resource type to a resource kind.

    Args:
        raw_type: Platform type string, e.g. "Microsoft.Web/sites"
        hint: Optional platform sub-kind, e.g. "functionapp,linux"

    Returns:
        The matching kind, or ResourceKind.UNSUPPORTED
    """
    kind = RESOURCE_TYPE_MAP.get((raw_type or "").strip().lower(), ResourceKind.UNSUPPORTED)
    if kind == ResourceKind.APP_SERVICE and hint and FUNCTION_APP_HINT in hint.lower():
        return ResourceKind.FUNCTION_APP
    return kind


def classify_resource(resource: ResourceDescriptor) -> ResourceKind:
    """Classify a discovered resource, logging classification gaps."""
    kind = classify(resource.raw_type, resource.hint)

    # The SQL master database is platform-managed
    if kind == ResourceKind.SQL_DATABASE and resource.name.lower() == SQL_SYSTEM_DATABASE:
        kind = ResourceKind.UNSUPPORTED

    if kind == ResourceKind.UNSUPPORTED:
        logger.info(
            f"Skipping {resource.name} ({resource.raw_type}): no retention policy mapping"
        )
    return kind
