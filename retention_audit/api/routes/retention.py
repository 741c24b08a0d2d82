"""Retention compliance API routes."""

import logging
from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import HTMLResponse, Response

from retention_audit.compliance.models import (
    InventoryDocument,
    ResourceKind,
    TargetDiagnosticConfig,
)
from retention_audit.compliance.policy import PolicyRepository, PolicyValidationError
from retention_audit.compliance.remediation import plan_remediation
from retention_audit.compliance.reports import ReportGenerator
from retention_audit.compliance.runner import run_inventory
from retention_audit.core.config import Settings, get_settings

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/api/v1/retention",
    tags=["retention"],
)


@lru_cache
def load_policy_repository(path: str, mandatory_kinds: tuple[str, ...]) -> PolicyRepository:
    """Load a policy once per path and mandatory kind set."""
    return PolicyRepository.load(path, mandatory_kinds=mandatory_kinds)


def get_policy_repository(
    settings: Settings = Depends(get_settings),
) -> PolicyRepository:
    """Dependency returning the configured policy repository."""
    try:
        return load_policy_repository(
            settings.policy_path, tuple(settings.mandatory_resource_kinds)
        )
    except PolicyValidationError as e:
        logger.error(f"Retention policy failed validation: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail={"error": "Invalid retention policy", "violations": e.violations},
        ) from e


async def _evaluate(
    inventory: InventoryDocument,
    repository: PolicyRepository,
    settings: Settings,
) -> ReportGenerator:
    environment = inventory.environment or settings.environment
    report = await run_inventory(repository.policy, inventory, environment)
    return ReportGenerator(report, review_interval_days=settings.report_review_interval_days)


@router.get("/policy")
async def get_policy_summary(
    repository: PolicyRepository = Depends(get_policy_repository),
) -> dict[str, Any]:
    """Get a summary of the active retention policy."""
    policy = repository.policy
    return {
        "version": policy.version,
        "complianceFrameworks": policy.sorted_frameworks,
        "retentionTiers": {
            tier: data["minRetentionDays"]
            for tier, data in policy.retention_tiers.model_dump(by_alias=True).items()
        },
        "resourceKinds": sorted(kind.value for kind in policy.resource_policies),
        "validationRules": policy.validation_rules.model_dump(by_alias=True),
    }


@router.post("/evaluate")
async def evaluate_inventory(
    inventory: InventoryDocument,
    repository: PolicyRepository = Depends(get_policy_repository),
    settings: Settings = Depends(get_settings),
) -> Response:
    """Evaluate an inventory and return the JSON compliance report."""
    generator = await _evaluate(inventory, repository, settings)
    return Response(content=generator.to_json(), media_type="application/json")


@router.post("/evaluate/html", response_class=HTMLResponse)
async def evaluate_inventory_html(
    inventory: InventoryDocument,
    repository: PolicyRepository = Depends(get_policy_repository),
    settings: Settings = Depends(get_settings),
) -> HTMLResponse:
    """Evaluate an inventory and return the standalone HTML report."""
    generator = await _evaluate(inventory, repository, settings)
    return HTMLResponse(content=generator.to_html())


@router.get("/remediation/{kind}", response_model=TargetDiagnosticConfig)
async def get_remediation_plan(
    kind: ResourceKind,
    repository: PolicyRepository = Depends(get_policy_repository),
) -> TargetDiagnosticConfig:
    """Get the target diagnostic configuration for a resource kind."""
    requirements = repository.requirements_for(kind)
    if kind == ResourceKind.UNSUPPORTED or requirements.is_empty:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"No retention policy for resource kind '{kind.value}'",
        )
    return plan_remediation(kind, requirements)
