"""Discovery of add-in groups in the directory.

Add-in assignment groups follow the naming convention
``<prefix>-<addin id>-<environment>`` and carry the add-in manifest URL in
their description, for example::

    app-exchangeaddin-salesforce-prod
    description: "Salesforce for Outlook https://addins.contoso.com/salesforce/manifest.xml"
"""

import logging
import re

from addinsync.addins.models import AddInTarget, DirectoryGroup, RunStatistics, normalize_address
from addinsync.addins.services import DirectoryService

logger = logging.getLogger(__name__)

MANIFEST_URL_PATTERN = re.compile(r"https?://[^\s\"'<>]+", re.IGNORECASE)


def parse_group_name(group_name: str, prefix: str) -> tuple[str, str] | None:
    """Split an add-in group name into add-in id and environment.

    The environment is the last hyphen-delimited segment. Everything between
    the prefix and the environment is the add-in id, hyphens included.

    Args:
        group_name: Directory group name
        prefix: Fixed group name prefix (e.g. "app-exchangeaddin")

    Returns:
        Tuple of (addin_id, environment), or None if the name doesn't match
    """
    pattern = rf"^{re.escape(prefix)}-(?P<addin>.+)-(?P<env>[^-]+)$"
    match = re.match(pattern, group_name.strip(), re.IGNORECASE)
    if not match:
        return None
    return match.group("addin"), match.group("env")


def extract_manifest_url(description: str | None) -> str | None:
    """Extract the first http(s) URL from a group description."""
    if not description:
        return None
    match = MANIFEST_URL_PATTERN.search(description)
    if not match:
        return None
    return match.group(0).rstrip(".,;)")


class GroupDiscovery:
    """Find add-in groups and resolve their current members."""

    def __init__(
        self,
        directory: DirectoryService,
        stats: RunStatistics,
        prefix: str,
    ) -> None:
        """Initialize group discovery.

        Args:
            directory: Directory service to query
            stats: Run statistics to update
            prefix: Fixed prefix of add-in group names
        """
        self.directory = directory
        self.stats = stats
        self.prefix = prefix
        # Groups found on the last discover() whose members could not be listed
        self.unresolved: list[str] = []

    async def discover(self, name_pattern: str) -> list[AddInTarget]:
        """Discover add-in targets for groups matching name_pattern.

        Directory failures while listing groups are logged and counted,
        and produce an empty result rather than raising.

        Args:
            name_pattern: Group name pattern passed to the directory service

        Returns:
            Targets in directory order, with current members resolved
        """
        logger.info(f"Discovering add-in groups matching '{name_pattern}'")
        self.unresolved = []

        try:
            groups = await self.directory.list_groups(name_pattern)
        except Exception as e:
            logger.error(f"Failed to list groups matching '{name_pattern}': {e}")
            self.stats.errors += 1
            return []

        targets = []
        for group in groups:
            target = await self._build_target(group)
            if target is not None:
                targets.append(target)

        self.stats.groups_found += len(targets)
        logger.info(f"Found {len(targets)} add-in groups")
        return targets

    async def _build_target(self, group: DirectoryGroup) -> AddInTarget | None:
        """Convert a directory group into a target, or None if it should be skipped."""
        parsed = parse_group_name(group.name, self.prefix)
        if parsed is None:
            # Shares the prefix but isn't an add-in group
            logger.debug(f"Ignoring group without add-in naming: {group.name}")
            return None

        addin_id, environment = parsed

        manifest_url = extract_manifest_url(group.description)
        if not manifest_url:
            logger.warning(f"Skipping {group.name}: no manifest URL in group description")
            return None

        try:
            members = await self._resolve_members(group)
        except Exception as e:
            logger.error(f"Failed to resolve members of {group.name}: {e}")
            self.stats.errors += 1
            self.unresolved.append(group.name)
            return None

        logger.info(f"  {group.name}: add-in '{addin_id}' ({environment}), {len(members)} members")
        return AddInTarget(
            group_name=group.name,
            addin_id=addin_id,
            environment=environment,
            manifest_url=manifest_url,
            current_members=members,
        )

    async def _resolve_members(self, group: DirectoryGroup) -> set[str]:
        """Resolve user members of a group to mail addresses."""
        addresses: set[str] = set()
        for member in await self.directory.list_group_members(group):
            if not member.is_user:
                continue

            try:
                address = await self.directory.resolve_user_address(member.account_id)
            except Exception as e:
                logger.warning(
                    f"Skipping member {member.account_id} of {group.name}: lookup failed: {e}"
                )
                continue

            if not address:
                logger.warning(f"Skipping member {member.account_id} of {group.name}: no mail")
                continue

            addresses.add(normalize_address(address))
        return addresses
