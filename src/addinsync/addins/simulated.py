"""In-memory directory and add-in backends.

Used by ``addin-sync --mode simulated`` to rehearse a run without a tenant,
and by the tests. State can be seeded from a JSON file::

    {
      "groups": [
        {
          "name": "app-exchangeaddin-salesforce-prod",
          "description": "https://addins.contoso.com/salesforce/manifest.xml",
          "members": ["u1", "u2", {"id": "d1", "type": "device"}]
        }
      ],
      "users": {"u1": "alice@contoso.com", "u2": null},
      "manifests": {
        "https://addins.contoso.com/salesforce/manifest.xml": "Salesforce for Outlook"
      },
      "installed": {
        "bob@contoso.com": [{"id": "app-1", "displayName": "Salesforce for Outlook"}]
      }
    }
"""

import fnmatch
import json
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path

from addinsync.addins.models import (
    DirectoryGroup,
    DirectoryMember,
    InstalledApp,
    OperationResult,
    OperationStatus,
    normalize_address,
)
from addinsync.addins.services import AddInManagementService, DirectoryService

logger = logging.getLogger(__name__)


class SimulatedDirectoryError(Exception):
    """Raised by the simulated directory when configured to be unreachable."""


@dataclass
class SimulatedDirectory(DirectoryService):
    """Directory backed by in-memory groups and users."""

    groups: list[DirectoryGroup] = field(default_factory=list)
    members: dict[str, list[DirectoryMember]] = field(default_factory=dict)
    users: dict[str, str | None] = field(default_factory=dict)
    unreachable: bool = False

    def add_group(
        self,
        name: str,
        description: str | None = None,
        members: list[str | DirectoryMember] | None = None,
    ) -> DirectoryGroup:
        """Add a group. Plain string members are user account IDs."""
        group_id = f"group-{len(self.groups) + 1}"
        group = DirectoryGroup(id=group_id, name=name, description=description)
        self.groups.append(group)
        self.members[group.id] = [
            m if isinstance(m, DirectoryMember) else DirectoryMember(m, "user")
            for m in members or []
        ]
        return group

    def add_user(self, account_id: str, address: str | None) -> None:
        """Add a user account with an optional mail address."""
        self.users[account_id] = address

    async def list_groups(self, name_pattern: str) -> list[DirectoryGroup]:
        if self.unreachable:
            raise SimulatedDirectoryError("directory unreachable")
        pattern = name_pattern.lower()
        return [g for g in self.groups if fnmatch.fnmatchcase(g.name.lower(), pattern)]

    async def list_group_members(self, group: DirectoryGroup) -> list[DirectoryMember]:
        return list(self.members.get(group.id, []))

    async def resolve_user_address(self, account_id: str) -> str | None:
        return self.users.get(account_id)


@dataclass
class SimulatedAddInManager(AddInManagementService):
    """Per-mailbox add-in registry that records every call.

    Install fails for users in ``failing_users`` and when the same manifest
    is already installed for the user.
    """

    installed: dict[str, list[InstalledApp]] = field(default_factory=dict)
    manifests: dict[str, str] = field(default_factory=dict)
    failing_users: set[str] = field(default_factory=set)
    calls: list[tuple[str, str, str]] = field(default_factory=list)
    _sources: dict[str, str] = field(default_factory=dict)

    def display_name_for(self, manifest_url: str) -> str:
        """Display name the platform would report for a manifest."""
        if manifest_url in self.manifests:
            return self.manifests[manifest_url]
        # Fall back to the path segment before the manifest file name
        parts = [p for p in manifest_url.split("/") if p]
        return parts[-2] if len(parts) >= 2 else manifest_url

    async def install_application(self, user: str, manifest_url: str) -> OperationResult:
        self.calls.append(("install", user, manifest_url))
        if user in self.failing_users:
            return OperationResult(OperationStatus.FAILED, user, message="simulated failure")

        apps = self.installed.setdefault(user, [])
        if any(self._sources.get(app.installation_id) == manifest_url for app in apps):
            return OperationResult(OperationStatus.FAILED, user, message="already installed")

        app = InstalledApp(
            installation_id=str(uuid.uuid4()),
            display_name=self.display_name_for(manifest_url),
        )
        self._sources[app.installation_id] = manifest_url
        apps.append(app)
        return OperationResult(OperationStatus.INSTALLED, user)

    async def remove_application(self, user: str, installation_id: str) -> OperationResult:
        self.calls.append(("remove", user, installation_id))
        if user in self.failing_users:
            return OperationResult(OperationStatus.FAILED, user, message="simulated failure")

        apps = self.installed.get(user, [])
        remaining = [app for app in apps if app.installation_id != installation_id]
        if len(remaining) == len(apps):
            return OperationResult(OperationStatus.FAILED, user, message="installation not found")

        self.installed[user] = remaining
        self._sources.pop(installation_id, None)
        return OperationResult(OperationStatus.REMOVED, user)

    async def list_installed_applications(self, user: str) -> list[InstalledApp] | None:
        self.calls.append(("list", user, ""))
        if user in self.failing_users:
            return None
        return list(self.installed.get(user, []))


def load_simulated_backends(
    path: Path | str | None,
) -> tuple[SimulatedDirectory, SimulatedAddInManager]:
    """Build simulated backends, seeded from a JSON file if given.

    Args:
        path: Seed file (see module docstring). If None, backends start empty.

    Returns:
        Tuple of (directory, add-in manager)
    """
    directory = SimulatedDirectory()
    manager = SimulatedAddInManager()
    if path is None:
        return directory, manager

    path = Path(path)
    with path.open(encoding="utf-8") as f:
        data = json.load(f)

    for account_id, address in data.get("users", {}).items():
        directory.add_user(account_id, address)

    for group_data in data.get("groups", []):
        members: list[str | DirectoryMember] = []
        for member in group_data.get("members", []):
            if isinstance(member, dict):
                members.append(DirectoryMember(member["id"], member.get("type", "user")))
            else:
                members.append(str(member))
        directory.add_group(group_data["name"], group_data.get("description"), members)

    manager.manifests.update(data.get("manifests", {}))
    for user, apps in data.get("installed", {}).items():
        manager.installed[normalize_address(user)] = [
            InstalledApp(installation_id=app["id"], display_name=app.get("displayName", ""))
            for app in apps
        ]

    logger.info(
        f"Loaded simulated data from {path}: {len(directory.groups)} groups, "
        f"{len(directory.users)} users"
    )
    return directory, manager
