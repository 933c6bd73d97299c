"""CLI script to sync Outlook add-in installations from Entra group membership.

Each Entra group named ``<prefix>-<addin id>-<environment>`` assigns one
add-in; its description holds the manifest URL. Members added since the last
run get the add-in installed, departed members get it removed.

Prerequisites for live mode:
1. MS_GRAPH_* credentials with Group.Read.All and User.Read.All
2. PowerShell 7+ with ExchangeOnlineManagement module
3. EXCHANGE_* certificate credentials for app-only Exchange access
"""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from addinsync.addins.reconcile import AddInSync, AddInSyncResult
from addinsync.addins.services import AddInManagementService, DirectoryService
from addinsync.addins.simulated import load_simulated_backends
from addinsync.core.logging_setup import configure_logging
from addinsync.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)


def print_result(result: AddInSyncResult, dry_run: bool = False) -> None:
    """Print sync results in a readable format."""
    logger.info("")
    logger.info("=" * 50)
    logger.info("Results")
    logger.info("=" * 50)

    for target_result in result.results:
        if not target_result.has_changes:
            logger.debug(f"{target_result.group_name}: No changes needed")
            continue

        logger.info(f"\n{target_result.group_name}:")
        if target_result.to_add:
            action = "Would install for" if dry_run else "Install for"
            logger.info(f"  {action}: {', '.join(target_result.to_add)}")
        if target_result.to_remove:
            action = "Would remove from" if dry_run else "Remove from"
            logger.info(f"  {action}: {', '.join(target_result.to_remove)}")
        for error in target_result.errors:
            logger.error(f"  Error: {error.user}: {error.message}")

    result.stats.log_summary(dry_run=dry_run)


def build_backends(
    settings: Settings,
    tenant_id: str | None = None,
    client_id: str | None = None,
    organization: str | None = None,
) -> tuple[DirectoryService, AddInManagementService]:
    """Create directory and add-in backends for the selected mode."""
    if settings.mode == "simulated":
        return load_simulated_backends(settings.simulated_data)

    # Live clients pull in the Graph SDK; import only when needed
    from addinsync.entra.groups import EntraDirectory
    from addinsync.exchange.client import ExchangeOnlineClient

    directory = EntraDirectory(tenant_id=tenant_id)
    manager = ExchangeOnlineClient(organization=organization, client_id=client_id)
    return directory, manager


async def run_sync(
    settings: Settings,
    tenant_id: str | None = None,
    client_id: str | None = None,
    organization: str | None = None,
) -> int:
    """Run one add-in sync pass.

    Per-user failures are reported in the summary but do not change the
    exit code; only an error escaping the sync itself does.

    Returns:
        Exit code
    """
    logger.info("=" * 50)
    logger.info("Add-in Sync")
    logger.info("=" * 50)
    logger.info(f"Mode: {settings.mode}")
    logger.info(f"Group pattern: {settings.effective_group_pattern}")
    logger.info(f"Snapshot: {settings.snapshot_path}")

    try:
        directory, manager = build_backends(settings, tenant_id, client_id, organization)
        sync = AddInSync(
            directory=directory,
            manager=manager,
            snapshot_path=settings.snapshot_path,
            prefix=settings.group_prefix,
            dry_run=settings.dry_run,
        )
        result = await sync.run(settings.effective_group_pattern)
    except Exception as e:
        logger.exception(f"Add-in sync failed: {e}")
        return 1

    print_result(result, dry_run=settings.dry_run)
    return 0


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description="Sync Outlook add-in installations from Entra group membership",
    )
    parser.add_argument(
        "--mode",
        choices=["live", "simulated"],
        help="Use the live tenant or in-memory simulated backends (default: live)",
    )
    parser.add_argument("--tenant-id", help="Entra tenant ID (overrides MS_GRAPH_TENANT_ID)")
    parser.add_argument("--client-id", help="Exchange app client ID (overrides env config)")
    parser.add_argument(
        "--organization",
        help="Exchange organization domain (overrides EXCHANGE_ORGANIZATION)",
    )
    parser.add_argument("--pattern", help="Group name pattern (default: '<prefix>-*')")
    parser.add_argument("--prefix", help="Add-in group name prefix (default: app-exchangeaddin)")
    parser.add_argument("--snapshot", type=Path, help="Snapshot file path")
    parser.add_argument("--log-dir", type=Path, help="Directory for daily log files")
    parser.add_argument(
        "--simulated-data",
        type=Path,
        help="JSON seed file for --mode simulated",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Show what would be done without making changes (snapshot is not updated)",
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser.parse_args(argv)


def apply_overrides(settings: Settings, args: argparse.Namespace) -> Settings:
    """Return settings with CLI flags applied on top of environment values."""
    overrides = {
        "mode": args.mode,
        "group_pattern": args.pattern,
        "group_prefix": args.prefix,
        "snapshot_path": args.snapshot,
        "log_dir": args.log_dir,
        "simulated_data": args.simulated_data,
    }
    update = {key: value for key, value in overrides.items() if value is not None}
    if args.dry_run:
        update["dry_run"] = True
    return settings.model_copy(update=update)


def main(argv: list[str] | None = None):
    """CLI entry point."""
    args = parse_args(argv)
    settings = apply_overrides(get_settings(), args)

    configure_logging(settings.log_dir, verbose=args.verbose)

    exit_code = asyncio.run(
        run_sync(
            settings,
            tenant_id=args.tenant_id,
            client_id=args.client_id,
            organization=args.organization,
        )
    )
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
