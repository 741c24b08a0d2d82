"""Tests for the retention-audit command line."""

import json

import pytest

from retention_audit import cli
from retention_audit.compliance.models import RemediationOutcome, RemediationResult
from tests.fixtures import (
    compliant_key_vault_snapshot,
    inventory_entry,
    make_resource,
    sample_inventory,
)


class FakeDiagnosticsClient:
    """Stand-in for AzureDiagnosticsClient with canned discovery data."""

    resources = []
    snapshots = {}
    outcome = RemediationOutcome.APPLIED
    instances = []

    def __init__(self, subscription_id, settings=None):
        self.subscription_id = subscription_id
        self.applied = []
        FakeDiagnosticsClient.instances.append(self)

    async def list_resources(self):
        return list(self.resources)

    async def fetch_snapshot(self, resource):
        return self.snapshots.get(resource.name)

    async def apply_remediation(self, resource, target, snapshot):
        self.applied.append(resource.id)
        return RemediationResult(resource_id=resource.id, outcome=self.outcome)


@pytest.fixture
def cli_settings(monkeypatch, test_settings):
    """Route the CLI to isolated test settings."""
    settings = test_settings.model_copy(update={"azure_subscription_id": None})
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    return settings


@pytest.fixture
def fake_azure(monkeypatch):
    """Replace the Azure adapter with a fake."""
    FakeDiagnosticsClient.resources = [
        make_resource("kv-audit-01"),
        make_resource("kv-audit-02"),
        make_resource("vnet-hub", "virtualNetwork"),
    ]
    FakeDiagnosticsClient.snapshots = {"kv-audit-01": compliant_key_vault_snapshot()}
    FakeDiagnosticsClient.outcome = RemediationOutcome.APPLIED
    FakeDiagnosticsClient.instances = []
    monkeypatch.setattr(cli, "AzureDiagnosticsClient", FakeDiagnosticsClient)
    return FakeDiagnosticsClient


def _write_inventory(tmp_path, document):
    path = tmp_path / "inventory.json"
    path.write_text(json.dumps(document), encoding="utf-8")
    return str(path)


class TestInventoryMode:
    """Tests for offline inventory audits."""

    def test_compliant_inventory_exits_zero(self, tmp_path, cli_settings):
        """Test a fully compliant inventory exits 0 and writes reports."""
        inventory = _write_inventory(tmp_path, {
            "environment": "prod",
            "resources": [inventory_entry("kv-audit-01", "keyVault", compliant_key_vault_snapshot())],
        })
        output_dir = tmp_path / "out"

        exit_code = cli.main(["--inventory", inventory, "--output-dir", str(output_dir)])

        assert exit_code == 0
        written = sorted(p.suffix for p in output_dir.iterdir())
        assert written == [".html", ".json"]
        assert all(p.name.startswith("retention-compliance-prod-") for p in output_dir.iterdir())

    def test_non_compliant_inventory_exits_one(self, tmp_path, cli_settings, capsys):
        """Test a non-compliant resource fails the run."""
        inventory = _write_inventory(tmp_path, sample_inventory())

        exit_code = cli.main(["--inventory", inventory])

        assert exit_code == 1
        out = capsys.readouterr().out
        assert "RETENTION COMPLIANCE RESULTS" in out
        assert "stauditlogs01" in out

    def test_json_output(self, tmp_path, cli_settings, capsys):
        """Test --json prints the JSON report."""
        inventory = _write_inventory(tmp_path, sample_inventory())

        cli.main(["--inventory", inventory, "--json", "--environment", "dev"])

        data = json.loads(capsys.readouterr().out)
        assert data["environment"] == "dev"
        assert data["totalResources"] == 2

    def test_remediate_requires_subscription(self, tmp_path, cli_settings, capsys):
        """Test remediation is refused for offline inventories."""
        inventory = _write_inventory(tmp_path, sample_inventory())

        exit_code = cli.main(["--inventory", inventory, "--remediate"])

        assert exit_code == 2
        assert "--remediate requires --subscription" in capsys.readouterr().err

    def test_unreadable_inventory(self, tmp_path, cli_settings, capsys):
        """Test a missing inventory file is an input error."""
        exit_code = cli.main(["--inventory", str(tmp_path / "absent.json")])

        assert exit_code == 2
        assert "Cannot read inventory" in capsys.readouterr().err


class TestPolicyErrors:
    """Tests for policy load failures."""

    def test_invalid_policy_exits_two(self, tmp_path, cli_settings, capsys):
        """Test policy violations are listed and exit with 2."""
        policy_path = tmp_path / "bad-policy.json"
        policy_path.write_text(json.dumps({"version": "1.0"}), encoding="utf-8")
        inventory = _write_inventory(tmp_path, sample_inventory())

        exit_code = cli.main(["--policy", str(policy_path), "--inventory", inventory])

        assert exit_code == 2
        err = capsys.readouterr().err
        assert "Invalid retention policy" in err
        assert "retentionTiers: required section is missing" in err

    def test_mandatory_kind_missing(self, tmp_path, cli_settings, capsys):
        """Test --mandatory-kind enforces policy coverage."""
        inventory = _write_inventory(tmp_path, sample_inventory())

        exit_code = cli.main([
            "--inventory", inventory,
            "--mandatory-kind", "keyVault",
            "--mandatory-kind", "sqlDatabase",
        ])

        assert exit_code == 2
        assert "resourcePolicies.sqlDatabase" in capsys.readouterr().err


class TestSubscriptionMode:
    """Tests for Azure subscription audits."""

    def test_requires_a_source(self, cli_settings, capsys):
        """Test a run without inventory or subscription is an input error."""
        exit_code = cli.main([])

        assert exit_code == 2
        assert "--inventory or --subscription" in capsys.readouterr().err

    def test_validate_only(self, cli_settings, fake_azure):
        """Test a subscription audit reports non-compliance with exit 1."""
        exit_code = cli.main(["--subscription", "sub-1"])

        assert exit_code == 1
        client = fake_azure.instances[0]
        assert client.subscription_id == "sub-1"
        assert client.applied == []

    def test_remediate_success(self, cli_settings, fake_azure):
        """Test successful remediation exits 0."""
        exit_code = cli.main(["--subscription", "sub-1", "--remediate"])

        assert exit_code == 0
        assert fake_azure.instances[0].applied == [make_resource("kv-audit-02").id]

    def test_remediate_failure(self, cli_settings, fake_azure):
        """Test a failed remediation exits 1."""
        fake_azure.outcome = RemediationOutcome.FAILED

        exit_code = cli.main(["--subscription", "sub-1", "--remediate"])

        assert exit_code == 1
