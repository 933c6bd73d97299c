"""Entra ID directory lookups for add-in groups."""

import fnmatch
import logging

from kiota_abstractions.base_request_configuration import RequestConfiguration
from msgraph import GraphServiceClient
from msgraph.generated.groups.groups_request_builder import GroupsRequestBuilder
from msgraph.generated.models.group import Group
from msgraph.generated.users.item.user_item_request_builder import UserItemRequestBuilder

from addinsync.addins.models import DirectoryGroup, DirectoryMember
from addinsync.addins.services import DirectoryService
from addinsync.core.msgraph_client import get_graph_client

logger = logging.getLogger(__name__)

GRAPH_TYPE_PREFIX = "#microsoft.graph."


def build_group_filter(name_pattern: str) -> str:
    """Translate a group name pattern into an OData filter.

    Graph only supports prefix matching on displayName, so everything before
    the first ``*`` becomes a ``startswith`` filter. Patterns without a
    wildcard become an exact match.

    Args:
        name_pattern: Group name pattern, e.g. "app-exchangeaddin-*"

    Returns:
        OData $filter expression
    """
    prefix, wildcard, _ = name_pattern.partition("*")
    escaped = prefix.replace("'", "''")
    if wildcard:
        return f"startswith(displayName,'{escaped}')"
    return f"displayName eq '{escaped}'"


def matches_pattern(name: str, name_pattern: str) -> bool:
    """Case-insensitive shell-style match of a group name."""
    return fnmatch.fnmatchcase(name.lower(), name_pattern.lower())


def member_type_from_odata(odata_type: str | None) -> str:
    """Convert '#microsoft.graph.user' to 'user'."""
    if not odata_type:
        return "unknown"
    return odata_type.removeprefix(GRAPH_TYPE_PREFIX)


class EntraDirectory(DirectoryService):
    """Read add-in groups and their members from Entra ID."""

    def __init__(self, client: GraphServiceClient | None = None, tenant_id: str | None = None):
        """Initialize the directory.

        Args:
            client: Graph client to use. If None, one is created from env credentials.
            tenant_id: Tenant to authenticate against (overrides env config)
        """
        self.client: GraphServiceClient = client or get_graph_client(tenant_id=tenant_id)

    async def list_groups(self, name_pattern: str) -> list[DirectoryGroup]:
        """Fetch groups whose display name matches name_pattern.

        Args:
            name_pattern: Group name pattern, e.g. "app-exchangeaddin-*"

        Returns:
            List of DirectoryGroup objects
        """
        query_params = GroupsRequestBuilder.GroupsRequestBuilderGetQueryParameters(
            filter=build_group_filter(name_pattern),
            select=["id", "displayName", "description"],
            top=999,
        )
        config = RequestConfiguration(query_parameters=query_params)
        result = await self.client.groups.get(request_configuration=config)

        groups: list[DirectoryGroup] = []
        if result and result.value:
            groups.extend(self._to_directory_group(g) for g in result.value)

        # Handle pagination
        while result and result.odata_next_link:
            result = await self.client.groups.with_url(result.odata_next_link).get()
            if result and result.value:
                groups.extend(self._to_directory_group(g) for g in result.value)

        # The server filter is prefix-only; apply the rest of the pattern here
        groups = [g for g in groups if matches_pattern(g.name, name_pattern)]
        logger.info(f"Found {len(groups)} groups matching '{name_pattern}'")
        return groups

    def _to_directory_group(self, group: Group) -> DirectoryGroup:
        """Convert MS Graph Group to DirectoryGroup."""
        return DirectoryGroup(
            id=group.id or "",
            name=group.display_name or "",
            description=group.description,
        )

    async def list_group_members(self, group: DirectoryGroup) -> list[DirectoryMember]:
        """Get direct members of a group.

        Args:
            group: The group to enumerate

        Returns:
            Members with their directory object type
        """
        members_builder = self.client.groups.by_group_id(group.id).members
        result = await members_builder.get()

        members: list[DirectoryMember] = []
        while result:
            for obj in result.value or []:
                if obj.id:
                    members.append(
                        DirectoryMember(
                            account_id=obj.id,
                            member_type=member_type_from_odata(obj.odata_type),
                        )
                    )
            if not result.odata_next_link:
                break
            result = await members_builder.with_url(result.odata_next_link).get()

        return members

    async def resolve_user_address(self, account_id: str) -> str | None:
        """Get the mail address of a user.

        Args:
            account_id: Entra user object ID

        Returns:
            The user's mail attribute, or None if unset
        """
        query_params = UserItemRequestBuilder.UserItemRequestBuilderGetQueryParameters(
            select=["id", "mail"],
        )
        config = RequestConfiguration(query_parameters=query_params)
        user = await self.client.users.by_user_id(account_id).get(request_configuration=config)
        if user and user.mail:
            return user.mail
        return None
