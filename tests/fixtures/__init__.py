"""Test fixtures for retention compliance audits."""

from .retention_fixtures import (
    POLICY_DOCUMENT,
    RESOURCE_TYPES,
    SUBSCRIPTION_ID,
    compliant_key_vault_snapshot,
    compliant_storage_snapshot,
    inventory_entry,
    make_resource,
    make_snapshot,
    policy_document,
    resource_id,
    sample_inventory,
)

__all__ = [
    "POLICY_DOCUMENT",
    "RESOURCE_TYPES",
    "SUBSCRIPTION_ID",
    "compliant_key_vault_snapshot",
    "compliant_storage_snapshot",
    "inventory_entry",
    "make_resource",
    "make_snapshot",
    "policy_document",
    "resource_id",
    "sample_inventory",
]
