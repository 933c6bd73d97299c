"""Install and remove add-ins for individual users."""

import logging

from addinsync.addins.models import (
    AddInTarget,
    InstalledApp,
    OperationResult,
    OperationStatus,
)
from addinsync.addins.services import AddInManagementService

logger = logging.getLogger(__name__)


def find_installed_app(apps: list[InstalledApp], addin_id: str) -> list[InstalledApp]:
    """Find installed add-ins whose display name contains addin_id.

    Matching is a case-insensitive substring check, so "salesforce" matches
    "Salesforce for Outlook" but also any other add-in with that word in its
    name.
    """
    needle = addin_id.lower()
    return [app for app in apps if needle in app.display_name.lower()]


class AddInOperator:
    """Apply add-in installs and removals through the management service."""

    def __init__(self, manager: AddInManagementService, dry_run: bool = False) -> None:
        """Initialize the operator.

        Args:
            manager: Mail platform add-in management service
            dry_run: If True, log intended actions without calling the service
        """
        self.manager = manager
        self.dry_run = dry_run

    async def install(self, user: str, target: AddInTarget) -> OperationResult:
        """Install the target's add-in for a user."""
        if self.dry_run:
            logger.info(f"Would install {target.addin_id} for {user}")
            return OperationResult(OperationStatus.DRY_RUN, user, target.addin_id)

        try:
            result = await self.manager.install_application(user, target.manifest_url)
        except Exception as e:
            result = OperationResult(OperationStatus.FAILED, user, message=str(e))

        result.addin_id = target.addin_id
        if result.failed:
            logger.error(f"Failed to install {target.addin_id} for {user}: {result.message}")
        else:
            logger.info(f"Installed {target.addin_id} for {user}")
        return result

    async def remove(self, user: str, target: AddInTarget) -> OperationResult:
        """Remove the target's add-in from a user's mailbox.

        An add-in that is already absent counts as removed without error.
        """
        if self.dry_run:
            logger.info(f"Would remove {target.addin_id} from {user}")
            return OperationResult(OperationStatus.DRY_RUN, user, target.addin_id)

        try:
            result = await self._remove(user, target)
        except Exception as e:
            result = OperationResult(OperationStatus.FAILED, user, message=str(e))

        result.addin_id = target.addin_id
        if result.failed:
            logger.error(f"Failed to remove {target.addin_id} from {user}: {result.message}")
        elif result.status == OperationStatus.REMOVED:
            logger.info(f"Removed {target.addin_id} from {user}")
        return result

    async def _remove(self, user: str, target: AddInTarget) -> OperationResult:
        apps = await self.manager.list_installed_applications(user)
        if apps is None:
            return OperationResult(
                OperationStatus.FAILED, user, message="could not list installed add-ins"
            )

        matches = find_installed_app(apps, target.addin_id)
        if not matches:
            logger.warning(f"Add-in {target.addin_id} not found for removal from {user}")
            return OperationResult(
                OperationStatus.NOT_FOUND, user, message="not found for removal"
            )

        if len(matches) > 1:
            names = ", ".join(app.display_name for app in matches)
            logger.warning(
                f"Multiple add-ins match '{target.addin_id}' for {user} ({names}), "
                f"removing {matches[0].display_name}"
            )

        return await self.manager.remove_application(user, matches[0].installation_id)
