"""Service interfaces consumed by the reconciliation core.

The core never talks to Graph or Exchange directly. Live and simulated
backends implement these interfaces and are injected at construction time.
"""

from abc import ABC, abstractmethod

from addinsync.addins.models import (
    DirectoryGroup,
    DirectoryMember,
    InstalledApp,
    OperationResult,
)


class DirectoryService(ABC):
    """Read-only access to directory groups and users."""

    @abstractmethod
    async def list_groups(self, name_pattern: str) -> list[DirectoryGroup]:
        """List groups whose name matches the pattern.

        Args:
            name_pattern: Group name, optionally ending in ``*`` for a prefix match

        Returns:
            Matching groups in directory order
        """
        ...

    @abstractmethod
    async def list_group_members(self, group: DirectoryGroup) -> list[DirectoryMember]:
        """List the direct members of a group."""
        ...

    @abstractmethod
    async def resolve_user_address(self, account_id: str) -> str | None:
        """Resolve a user account to its mail address, or None if it has none."""
        ...


class AddInManagementService(ABC):
    """Per-mailbox add-in management on the mail platform."""

    @abstractmethod
    async def install_application(self, user: str, manifest_url: str) -> OperationResult:
        """Install the add-in at manifest_url for a user."""
        ...

    @abstractmethod
    async def remove_application(self, user: str, installation_id: str) -> OperationResult:
        """Remove an installed add-in from a user's mailbox."""
        ...

    @abstractmethod
    async def list_installed_applications(self, user: str) -> list[InstalledApp] | None:
        """List add-ins installed for a user.

        Returns:
            Installed add-ins, or None if the lookup failed
        """
        ...
