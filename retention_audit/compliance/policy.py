"""Retention policy loading and validation.

The repository parses a JSON policy document, collects every structural
and semantic violation it can find, and either returns an immutable
RetentionPolicy or raises a PolicyValidationError listing all of them.
"""

import json
import logging
from collections.abc import Iterable
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from retention_audit.compliance.models import (
    CategoryRequirement,
    ResourceKind,
    ResourceRequirements,
    RetentionPolicy,
    RetentionTierName,
)

logger = logging.getLogger(__name__)

# Hard floors that no policy may go below
AUDIT_TIER_MINIMUM_DAYS = 180
CRITICAL_AUDIT_TIER_MINIMUM_DAYS = 365

REQUIRED_SECTIONS = (
    "version",
    "complianceFrameworks",
    "retentionTiers",
    "resourcePolicies",
    "validationRules",
)


class PolicyValidationError(Exception):
    """Raised when a retention policy is malformed or violates policy floors."""

    def __init__(self, violations: list[str], source: str | None = None):
        self.violations = list(violations)
        self.source = source
        where = f" in {source}" if source else ""
        summary = "; ".join(self.violations)
        super().__init__(
            f"Retention policy{where} has {len(self.violations)} violation(s): {summary}"
        )


def _format_location(loc: Iterable[Any]) -> str:
    return ".".join(str(part) for part in loc) or "<root>"


def _structural_violations(error: ValidationError) -> list[str]:
    violations = []
    for err in error.errors():
        location = _format_location(err.get("loc", ()))
        if err.get("type") == "missing":
            violations.append(f"{location}: required section is missing")
        else:
            violations.append(f"{location}: {err.get('msg', 'invalid value')}")
    return violations


def _category_violations(
    policy: RetentionPolicy,
    kind: ResourceKind,
    entity: str,
    requirements: tuple[CategoryRequirement, ...],
) -> list[str]:
    violations = []
    seen: set[str] = set()
    for index, requirement in enumerate(requirements):
        location = f"resourcePolicies.{kind.value}.{entity}.{index}"
        if requirement.category in seen:
            violations.append(
                f"{location}: duplicate category '{requirement.category}'"
            )
        seen.add(requirement.category)

        floor = policy.effective_floor(requirement.tier)
        if requirement.retention_days < floor:
            violations.append(
                f"{location}: category '{requirement.category}' retains "
                f"{requirement.retention_days} days, below the {requirement.tier.value} "
                f"tier floor of {floor} days"
            )
    return violations


def _semantic_violations(
    policy: RetentionPolicy,
    mandatory_kinds: Iterable[ResourceKind],
) -> list[str]:
    violations = []
    tiers = policy.retention_tiers
    rules = policy.validation_rules

    if tiers.audit.min_retention_days < AUDIT_TIER_MINIMUM_DAYS:
        violations.append(
            f"retentionTiers.audit.minRetentionDays: {tiers.audit.min_retention_days} "
            f"is below the required {AUDIT_TIER_MINIMUM_DAYS} days"
        )
    if tiers.critical_audit.min_retention_days < CRITICAL_AUDIT_TIER_MINIMUM_DAYS:
        violations.append(
            f"retentionTiers.criticalAudit.minRetentionDays: "
            f"{tiers.critical_audit.min_retention_days} is below the required "
            f"{CRITICAL_AUDIT_TIER_MINIMUM_DAYS} days"
        )

    rule_names = {
        RetentionTierName.STANDARD: "minimumRetentionDays",
        RetentionTierName.AUDIT: "auditLogsMinimumRetention",
        RetentionTierName.CRITICAL_AUDIT: "criticalAuditLogsMinimumRetention",
    }
    for tier, rule_name in rule_names.items():
        floor = tiers.floor_for(tier)
        rule = rules.rule_for(tier)
        if floor < rule:
            violations.append(
                f"retentionTiers.{tier.value}.minRetentionDays: {floor} is below "
                f"validationRules.{rule_name} ({rule})"
            )

    for kind, requirements in policy.resource_policies.items():
        violations.extend(_category_violations(policy, kind, "logs", requirements.logs))
        violations.extend(
            _category_violations(policy, kind, "metrics", requirements.metrics)
        )

    for kind in mandatory_kinds:
        if kind not in policy.resource_policies:
            violations.append(
                f"resourcePolicies.{kind.value}: mandatory resource kind has no policy"
            )

    return violations


def _parse_mandatory_kinds(kinds: Iterable[ResourceKind | str]) -> tuple[list[ResourceKind], list[str]]:
    parsed: list[ResourceKind] = []
    violations: list[str] = []
    for kind in kinds:
        try:
            parsed.append(ResourceKind(kind))
        except ValueError:
            violations.append(f"mandatory resource kind '{kind}' is not a known resource kind")
    return parsed, violations


class PolicyRepository:
    """Loads, validates and serves one immutable retention policy."""

    def __init__(self, policy: RetentionPolicy):
        self._policy = policy

    @property
    def policy(self) -> RetentionPolicy:
        return self._policy

    def requirements_for(self, kind: ResourceKind) -> ResourceRequirements:
        """Get requirements for a kind.

        Kinds absent from the policy get an empty requirements set, which
        callers interpret as "no policy applies".
        """
        return self._policy.requirements_for(kind)

    @classmethod
    def from_document(
        cls,
        document: Any,
        mandatory_kinds: Iterable[ResourceKind | str] = (),
        source: str | None = None,
    ) -> "PolicyRepository":
        """Validate an already-parsed policy document.

        Args:
            document: Parsed JSON policy
            mandatory_kinds: Resource kinds that must have a policy
            source: Where the document came from, for error messages

        Raises:
            PolicyValidationError: With every violation found
        """
        kinds, violations = _parse_mandatory_kinds(mandatory_kinds)

        if not isinstance(document, dict):
            raise PolicyValidationError(
                violations + ["<root>: policy document must be a JSON object"], source
            )

        try:
            policy = RetentionPolicy.model_validate(document)
        except ValidationError as e:
            violations.extend(_structural_violations(e))
            raise PolicyValidationError(violations, source) from e

        violations.extend(_semantic_violations(policy, kinds))
        if violations:
            raise PolicyValidationError(violations, source)

        logger.info(
            f"Loaded retention policy version {policy.version} "
            f"({len(policy.resource_policies)} resource kinds, "
            f"frameworks: {', '.join(policy.sorted_frameworks) or 'none'})"
        )
        return cls(policy)

    @classmethod
    def load(
        cls,
        source: str | Path,
        mandatory_kinds: Iterable[ResourceKind | str] = (),
    ) -> "PolicyRepository":
        """Load and validate a policy from a JSON file.

        Raises:
            PolicyValidationError: If the file cannot be read or parsed, or
                the policy is invalid
        """
        path = Path(source)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except OSError as e:
            raise PolicyValidationError([f"cannot read policy file: {e}"], str(path)) from e
        except json.JSONDecodeError as e:
            raise PolicyValidationError([f"invalid JSON: {e}"], str(path)) from e

        return cls.from_document(document, mandatory_kinds=mandatory_kinds, source=str(path))
