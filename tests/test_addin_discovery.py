"""Tests for addinsync.addins.discovery."""

import logging
from unittest.mock import AsyncMock

import pytest

from addinsync.addins.discovery import GroupDiscovery, extract_manifest_url, parse_group_name
from addinsync.addins.models import DirectoryMember

SALESFORCE_MANIFEST = "https://addins.contoso.com/salesforce/manifest.xml"
JIRA_MANIFEST = "https://addins.contoso.com/jira-cloud/manifest.xml"

PREFIX = "app-exchangeaddin"


class TestParseGroupName:
    """Tests for parse_group_name."""

    def test_simple_name(self):
        assert parse_group_name("app-exchangeaddin-salesforce-prod", PREFIX) == (
            "salesforce",
            "prod",
        )

    def test_hyphenated_addin_id(self):
        assert parse_group_name("app-exchangeaddin-jira-cloud-test", PREFIX) == (
            "jira-cloud",
            "test",
        )

    def test_unknown_environment_accepted(self):
        assert parse_group_name("app-exchangeaddin-crm-staging2", PREFIX) == ("crm", "staging2")

    def test_regular_group_rejected(self):
        assert parse_group_name("regular-group", PREFIX) is None

    def test_prefix_only_rejected(self):
        assert parse_group_name("app-exchangeaddin-prod", PREFIX) is None

    def test_missing_environment_rejected(self):
        assert parse_group_name("app-exchangeaddin-salesforce-", PREFIX) is None

    def test_prefix_case_insensitive(self):
        assert parse_group_name("APP-ExchangeAddin-salesforce-prod", PREFIX) == (
            "salesforce",
            "prod",
        )

    def test_custom_prefix(self):
        assert parse_group_name("addin.assign-zoom-dev", "addin.assign") == ("zoom", "dev")
        # Dot in prefix is literal
        assert parse_group_name("addinXassign-zoom-dev", "addin.assign") is None


class TestExtractManifestUrl:
    """Tests for extract_manifest_url."""

    def test_url_only(self):
        assert extract_manifest_url(SALESFORCE_MANIFEST) == SALESFORCE_MANIFEST

    def test_url_inside_text(self):
        description = f"Salesforce for Outlook ({SALESFORCE_MANIFEST}). Owner: IT"
        assert extract_manifest_url(description) == SALESFORCE_MANIFEST

    def test_first_url_wins(self):
        description = f"{SALESFORCE_MANIFEST} {JIRA_MANIFEST}"
        assert extract_manifest_url(description) == SALESFORCE_MANIFEST

    def test_none(self):
        assert extract_manifest_url(None) is None

    def test_empty(self):
        assert extract_manifest_url("") is None

    def test_text_without_url(self):
        assert extract_manifest_url("Salesforce add-in group") is None


class TestGroupDiscovery:
    """Tests for GroupDiscovery.discover."""

    @pytest.mark.asyncio
    async def test_discovers_target(self, directory, stats):
        discovery = GroupDiscovery(directory, stats, PREFIX)
        targets = await discovery.discover("app-exchangeaddin-*")

        assert len(targets) == 1
        target = targets[0]
        assert target.group_name == "app-exchangeaddin-salesforce-prod"
        assert target.addin_id == "salesforce"
        assert target.environment == "prod"
        assert target.manifest_url == SALESFORCE_MANIFEST
        assert target.current_members == {"alice@contoso.com", "bob@contoso.com"}
        assert target.previous_members == set()
        assert stats.groups_found == 1

    @pytest.mark.asyncio
    async def test_preserves_directory_order(self, directory, stats):
        directory.add_user("u-carol", "carol@contoso.com")
        directory.add_group("app-exchangeaddin-jira-cloud-test", JIRA_MANIFEST, ["u-carol"])
        directory.add_group("app-exchangeaddin-adobe-dev", "https://a/adobe/m.xml", [])

        targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")

        assert [t.addin_id for t in targets] == ["salesforce", "jira-cloud", "adobe"]
        assert stats.groups_found == 3

    @pytest.mark.asyncio
    async def test_regular_group_filtered_silently(self, directory, stats, caplog):
        directory.add_group("regular-group", None, ["u-alice"])

        with caplog.at_level(logging.WARNING):
            targets = await GroupDiscovery(directory, stats, PREFIX).discover("*")

        assert [t.group_name for t in targets] == ["app-exchangeaddin-salesforce-prod"]
        assert "regular-group" not in caplog.text
        assert "manifest" not in caplog.text.lower()
        assert stats.errors == 0

    @pytest.mark.asyncio
    async def test_group_without_description_skipped(self, directory, stats, caplog):
        directory.add_group("app-exchangeaddin-legacy-prod", None, ["u-alice"])

        with caplog.at_level(logging.WARNING):
            targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")

        assert [t.addin_id for t in targets] == ["salesforce"]
        assert "app-exchangeaddin-legacy-prod" in caplog.text
        assert "manifest URL" in caplog.text
        assert stats.errors == 0
        assert stats.groups_found == 1

    @pytest.mark.asyncio
    async def test_description_without_url_skipped(self, directory, stats):
        directory.add_group("app-exchangeaddin-legacy-prod", "Legacy add-in", ["u-alice"])
        targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")
        assert len(targets) == 1

    @pytest.mark.asyncio
    async def test_non_user_members_ignored(self, directory, stats):
        directory.add_user("g-nested", "nested@contoso.com")
        directory.add_group(
            "app-exchangeaddin-jira-test",
            JIRA_MANIFEST,
            ["u-alice", DirectoryMember("g-nested", "group"), DirectoryMember("d1", "device")],
        )

        targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")

        assert targets[1].current_members == {"alice@contoso.com"}

    @pytest.mark.asyncio
    async def test_member_without_mail_skipped(self, directory, stats, caplog):
        directory.add_user("u-nomail", None)
        directory.add_group("app-exchangeaddin-jira-test", JIRA_MANIFEST, ["u-alice", "u-nomail"])

        with caplog.at_level(logging.WARNING):
            targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")

        assert targets[1].current_members == {"alice@contoso.com"}
        assert "u-nomail" in caplog.text
        assert stats.errors == 0

    @pytest.mark.asyncio
    async def test_member_lookup_error_skips_member(self, directory, stats, caplog):
        directory.add_group("app-exchangeaddin-jira-test", JIRA_MANIFEST, ["u-alice", "u-gone"])
        original = directory.resolve_user_address

        async def lookup(account_id):
            if account_id == "u-gone":
                raise RuntimeError("404 Request_ResourceNotFound")
            return await original(account_id)

        directory.resolve_user_address = lookup

        with caplog.at_level(logging.WARNING):
            discovery = GroupDiscovery(directory, stats, PREFIX)
            targets = await discovery.discover("app-*")

        assert [t.addin_id for t in targets] == ["salesforce", "jira"]
        assert targets[1].current_members == {"alice@contoso.com"}
        assert "u-gone" in caplog.text
        assert discovery.unresolved == []
        assert stats.errors == 0

    @pytest.mark.asyncio
    async def test_addresses_normalized(self, directory, stats):
        targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")
        assert "bob@contoso.com" in targets[0].current_members

    @pytest.mark.asyncio
    async def test_duplicate_members_collapse(self, directory, stats):
        directory.add_user("u-alice2", "ALICE@contoso.com")
        directory.add_group("app-exchangeaddin-jira-test", JIRA_MANIFEST, ["u-alice", "u-alice2"])

        targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")

        assert targets[1].current_members == {"alice@contoso.com"}

    @pytest.mark.asyncio
    async def test_directory_unreachable(self, directory, stats, caplog):
        directory.unreachable = True

        with caplog.at_level(logging.ERROR):
            targets = await GroupDiscovery(directory, stats, PREFIX).discover("app-*")

        assert targets == []
        assert stats.errors == 1
        assert stats.groups_found == 0
        assert "Failed to list groups" in caplog.text

    @pytest.mark.asyncio
    async def test_member_lookup_failure_skips_group(self, directory, stats):
        directory.add_group("app-exchangeaddin-jira-test", JIRA_MANIFEST, ["u-alice"])
        original = directory.list_group_members

        async def flaky(group):
            if group.name == "app-exchangeaddin-salesforce-prod":
                raise RuntimeError("throttled")
            return await original(group)

        directory.list_group_members = flaky

        discovery = GroupDiscovery(directory, stats, PREFIX)
        targets = await discovery.discover("app-*")

        assert [t.addin_id for t in targets] == ["jira"]
        assert stats.errors == 1
        assert discovery.unresolved == ["app-exchangeaddin-salesforce-prod"]

    @pytest.mark.asyncio
    async def test_passes_pattern_to_directory(self, stats):
        mock_directory = AsyncMock()
        mock_directory.list_groups.return_value = []

        await GroupDiscovery(mock_directory, stats, PREFIX).discover("app-exchangeaddin-*")

        mock_directory.list_groups.assert_awaited_once_with("app-exchangeaddin-*")
