"""Shared pytest fixtures."""

import pytest

from addinsync.addins.models import RunStatistics
from addinsync.addins.simulated import SimulatedAddInManager, SimulatedDirectory

SALESFORCE_MANIFEST = "https://addins.contoso.com/salesforce/manifest.xml"
JIRA_MANIFEST = "https://addins.contoso.com/jira-cloud/manifest.xml"


@pytest.fixture
def mock_env_vars(monkeypatch):
    """Set mock environment variables for testing."""
    monkeypatch.setenv("MS_GRAPH_TENANT_ID", "test-tenant-id")
    monkeypatch.setenv("MS_GRAPH_CLIENT_ID", "test-client-id")
    monkeypatch.setenv("MS_GRAPH_CLIENT_SECRET", "test-client-secret")
    monkeypatch.setenv("EXCHANGE_ORGANIZATION", "contoso.onmicrosoft.com")
    monkeypatch.setenv("EXCHANGE_CERTIFICATE_THUMBPRINT", "ABC123")


@pytest.fixture
def stats():
    """Fresh run statistics."""
    return RunStatistics()


@pytest.fixture
def directory():
    """Simulated directory with one Salesforce group (alice, bob)."""
    directory = SimulatedDirectory()
    directory.add_user("u-alice", "alice@contoso.com")
    directory.add_user("u-bob", "Bob@Contoso.com")
    directory.add_group(
        "app-exchangeaddin-salesforce-prod",
        f"Salesforce for Outlook {SALESFORCE_MANIFEST}",
        ["u-alice", "u-bob"],
    )
    return directory


@pytest.fixture
def manager():
    """Simulated add-in manager that knows the Salesforce and Jira manifests."""
    return SimulatedAddInManager(
        manifests={
            SALESFORCE_MANIFEST: "Salesforce for Outlook",
            JIRA_MANIFEST: "Jira Cloud for Outlook",
        }
    )


@pytest.fixture
def snapshot_path(tmp_path):
    """Snapshot file location inside a temp directory."""
    return tmp_path / "state" / "addin_snapshot.json"
