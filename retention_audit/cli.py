"""Command-line entry point for retention compliance audits.

Runs a validate-only audit (default) or a remediation pass, writes the
JSON and HTML reports and exits with a code suitable for CI/CD gates.

Usage:
    retention-audit [options]

Options:
    --policy PATH           Retention policy JSON (default: POLICY_PATH)
    --environment ENV       Environment label (default: ENVIRONMENT)
    --inventory FILE        Audit an offline inventory document
    --subscription ID       Audit an Azure subscription
    --output-dir DIR        Report directory (default: REPORT_OUTPUT_DIR)
    --json                  Print the JSON report to stdout
    --remediate             Apply remediation plans (Azure only)
    --mandatory-kind KIND   Resource kind the policy must cover (repeatable)
    --verbose               Enable verbose logging

Exit Codes:
    0   All resources compliant (or every remediation applied / no-op)
    1   One or more resources non-compliant (or a remediation failed)
    2   Invalid policy, invalid arguments or internal error

Examples:
    # Audit an exported inventory against the reference policy
    retention-audit --inventory inventory.json --environment staging

    # Audit a subscription and fix what is out of policy
    retention-audit --subscription 00000000-0000-0000-0000-000000000000 --remediate
"""

import argparse
import asyncio
import json
import logging
import sys

from pydantic import ValidationError

from retention_audit.api.services.azure_client import AzureDiagnosticsClient
from retention_audit.compliance.models import ComplianceReport, InventoryDocument
from retention_audit.compliance.policy import PolicyRepository, PolicyValidationError
from retention_audit.compliance.reports import ReportGenerator
from retention_audit.compliance.runner import (
    ComplianceRunner,
    InventorySnapshotProvider,
    apply_remediations,
)
from retention_audit.compliance.storage import ReportStore
from retention_audit.core.config import Settings, get_settings

logger = logging.getLogger(__name__)


class UsageError(Exception):
    """Invalid combination of command-line arguments or inputs."""


def build_parser() -> argparse.ArgumentParser:
    """Build the command-line argument parser."""
    parser = argparse.ArgumentParser(
        prog="retention-audit",
        description="Audit diagnostic-logging retention against a retention policy",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )

    parser.add_argument(
        "--policy",
        help="Path to the retention policy JSON file",
    )

    parser.add_argument(
        "--environment",
        help="Environment label recorded in the report",
    )

    source = parser.add_mutually_exclusive_group()
    source.add_argument(
        "--inventory",
        metavar="FILE",
        help="Audit an offline inventory document",
    )
    source.add_argument(
        "--subscription",
        metavar="ID",
        help="Audit an Azure subscription",
    )

    parser.add_argument(
        "--output-dir",
        help="Directory for the JSON and HTML reports",
    )

    parser.add_argument(
        "--json",
        action="store_true",
        help="Print the JSON report to stdout",
    )

    parser.add_argument(
        "--remediate",
        action="store_true",
        help="Apply remediation plans to non-compliant resources",
    )

    parser.add_argument(
        "--mandatory-kind",
        action="append",
        dest="mandatory_kinds",
        metavar="KIND",
        help="Resource kind the policy must cover (can be repeated)",
    )

    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    return parser


def load_inventory(path: str) -> InventoryDocument:
    """Read and validate an inventory document."""
    try:
        with open(path, encoding="utf-8") as f:
            return InventoryDocument.model_validate(json.load(f))
    except (OSError, json.JSONDecodeError, ValidationError) as e:
        raise UsageError(f"Cannot read inventory {path}: {e}") from e


async def run_audit(
    args: argparse.Namespace,
    settings: Settings,
    repository: PolicyRepository,
) -> int:
    """Run the audit described by the arguments and return the exit code."""
    policy = repository.policy
    environment = args.environment or settings.environment
    client = None

    if args.inventory:
        if args.remediate:
            raise UsageError("--remediate requires --subscription")
        inventory = load_inventory(args.inventory)
        provider = InventorySnapshotProvider(inventory)
        resources = provider.resources
        environment = args.environment or inventory.environment or settings.environment
    else:
        subscription_id = args.subscription or settings.azure_subscription_id
        if not subscription_id:
            raise UsageError(
                "Either --inventory or --subscription (or AZURE_SUBSCRIPTION_ID) is required"
            )
        client = AzureDiagnosticsClient(subscription_id, settings=settings)
        provider = client
        resources = await client.list_resources()

    logger.info(f"Auditing {len(resources)} discovered resources in {environment}")
    runner = ComplianceRunner(
        policy,
        provider,
        concurrency=settings.snapshot_fetch_concurrency,
        timeout_seconds=settings.snapshot_fetch_timeout_seconds,
    )
    report = await runner.run(resources, environment)

    store = ReportStore(
        args.output_dir or settings.report_output_dir,
        review_interval_days=settings.report_review_interval_days,
    )
    store.save(report)

    if args.json:
        sys.stdout.write(ReportGenerator(report).to_json().decode("utf-8"))
    else:
        print_summary(report)

    if not args.remediate:
        return 0 if report.is_success else 1

    outcomes = await apply_remediations(report, policy, client)
    for outcome in outcomes:
        line = f"  - {outcome.resource_id}: {outcome.outcome.value}"
        if outcome.message:
            line += f" ({outcome.message})"
        print(line)
    return 0 if all(o.is_success() for o in outcomes) else 1


def print_summary(report: ComplianceReport) -> None:
    """Print a human-readable report summary."""
    summary = report.get_summary()

    print("\n" + "=" * 60)
    print("RETENTION COMPLIANCE RESULTS")
    print("=" * 60)
    print(f"Environment: {summary['environment']}")
    print(f"Generated: {summary['timestamp']}")
    print(f"Policy version: {summary['policy_version']}")
    print()
    print(f"Compliant: {summary['compliant']}")
    print(f"Non-compliant: {summary['non_compliant']}")
    print(f"Total: {summary['total']}")
    print(f"Compliance rate: {summary['compliance_rate_percent']:.2f}%")
    print()

    if summary["is_success"]:
        print("All resources meet the retention policy.")
        return

    print("Non-compliant resources:")
    for result in report.get_non_compliant_results():
        print(f"  - {result.resource.name} ({result.kind.value})")
        for issue in result.issues:
            print(f"      {issue.describe()}")


def main(argv: list[str] | None = None) -> int:
    """Main entry point."""
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    settings = get_settings()
    mandatory_kinds = args.mandatory_kinds or settings.mandatory_resource_kinds

    try:
        repository = PolicyRepository.load(
            args.policy or settings.policy_path, mandatory_kinds=mandatory_kinds
        )
    except PolicyValidationError as e:
        print(f"Invalid retention policy ({e.source}):", file=sys.stderr)
        for violation in e.violations:
            print(f"  - {violation}", file=sys.stderr)
        return 2

    try:
        return asyncio.run(run_audit(args, settings, repository))

    except UsageError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2

    except KeyboardInterrupt:
        print("\nRetention audit interrupted by user", file=sys.stderr)
        return 2

    except Exception as e:
        print(f"Error running retention audit: {e}", file=sys.stderr)
        if args.verbose:
            import traceback
            traceback.print_exc()
        return 2


def run() -> None:
    """Console script wrapper propagating the exit code."""
    sys.exit(main())


if __name__ == "__main__":
    run()
