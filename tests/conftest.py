"""Shared test fixtures."""

import json
from datetime import UTC, datetime

import pytest
from fastapi.testclient import TestClient

from retention_audit.api.routes.retention import get_policy_repository, load_policy_repository
from retention_audit.compliance.policy import PolicyRepository
from retention_audit.core.config import Settings, get_settings
from tests.fixtures import policy_document as build_policy_document


@pytest.fixture
def policy_document():
    """Fresh copy of the test policy document."""
    return build_policy_document()


@pytest.fixture
def policy_repository(policy_document):
    """Validated repository for the test policy."""
    return PolicyRepository.from_document(policy_document)


@pytest.fixture
def policy(policy_repository):
    """The immutable test policy."""
    return policy_repository.policy


@pytest.fixture
def policy_file(tmp_path, policy_document):
    """Test policy written to disk."""
    path = tmp_path / "retention-policy.json"
    path.write_text(json.dumps(policy_document), encoding="utf-8")
    return path


@pytest.fixture
def report_timestamp():
    """Fixed report time for deterministic output."""
    return datetime(2024, 5, 1, 12, 30, 0, tzinfo=UTC)


@pytest.fixture
def test_settings(tmp_path, policy_file):
    """Settings isolated from the process environment and .env files."""
    return Settings(
        _env_file=None,
        environment="staging",
        policy_path=str(policy_file),
        report_output_dir=str(tmp_path / "reports"),
        snapshot_fetch_concurrency=4,
        snapshot_fetch_timeout_seconds=5.0,
    )


@pytest.fixture
def client(test_settings, policy_repository):
    """Test client with settings and policy dependencies overridden."""
    from retention_audit.main import app

    app.dependency_overrides[get_settings] = lambda: test_settings
    app.dependency_overrides[get_policy_repository] = lambda: policy_repository
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
    load_policy_repository.cache_clear()
