"""Reconcile add-in installations with group membership.

A run discovers add-in groups, attaches each group's membership from the
previous snapshot, installs the add-in for new members, removes it from
departed members, and saves the new snapshot. One failed install or removal
never stops the rest of the run.
"""

import logging
from dataclasses import dataclass, field
from pathlib import Path

from addinsync.addins.discovery import GroupDiscovery
from addinsync.addins.models import (
    AddInTarget,
    OperationResult,
    OperationStatus,
    RunStatistics,
)
from addinsync.addins.operator import AddInOperator
from addinsync.addins.services import AddInManagementService, DirectoryService
from addinsync.addins.state import StateStore

logger = logging.getLogger(__name__)


@dataclass
class TargetResult:
    """Result of reconciling a single add-in group."""

    group_name: str
    addin_id: str
    to_add: list[str] = field(default_factory=list)
    to_remove: list[str] = field(default_factory=list)
    operations: list[OperationResult] = field(default_factory=list)

    @property
    def has_changes(self) -> bool:
        """Check if the group needed any installs or removals."""
        return bool(self.to_add) or bool(self.to_remove)

    @property
    def errors(self) -> list[OperationResult]:
        """Operations that failed."""
        return [op for op in self.operations if op.failed]


@dataclass
class AddInSyncResult:
    """Result of a full sync run."""

    targets: list[AddInTarget] = field(default_factory=list)
    results: list[TargetResult] = field(default_factory=list)
    stats: RunStatistics = field(default_factory=RunStatistics)
    snapshot_saved: bool = False


class ReconciliationEngine:
    """Apply membership diffs for discovered targets."""

    def __init__(self, operator: AddInOperator, stats: RunStatistics) -> None:
        """Initialize the engine.

        Args:
            operator: Performs individual installs and removals
            stats: Run statistics to update
        """
        self.operator = operator
        self.stats = stats

    async def reconcile(self, targets: list[AddInTarget]) -> list[TargetResult]:
        """Reconcile every target in discovery order.

        Within a target, all installs run before any removal.
        """
        return [await self.reconcile_target(target) for target in targets]

    async def reconcile_target(self, target: AddInTarget) -> TargetResult:
        """Install for added members and remove for departed members of one target."""
        diff = target.diff()
        result = TargetResult(
            group_name=target.group_name,
            addin_id=target.addin_id,
            to_add=sorted(diff.to_add),
            to_remove=sorted(diff.to_remove),
        )

        self.stats.users_to_add += len(diff.to_add)
        self.stats.users_to_remove += len(diff.to_remove)

        if not diff.has_changes:
            logger.debug(f"{target.group_name}: no membership changes")
            return result

        logger.info(
            f"{target.group_name}: {len(diff.to_add)} to add, {len(diff.to_remove)} to remove"
        )

        for user in result.to_add:
            result.operations.append(await self._apply(self.operator.install, user, target))

        for user in result.to_remove:
            result.operations.append(await self._apply(self.operator.remove, user, target))

        return result

    async def _apply(self, operation, user: str, target: AddInTarget) -> OperationResult:
        try:
            result = await operation(user, target)
        except Exception as e:
            logger.error(f"Unexpected error for {user} in {target.group_name}: {e}")
            result = OperationResult(OperationStatus.FAILED, user, target.addin_id, str(e))

        self._record(result)
        return result

    def _record(self, result: OperationResult) -> None:
        if result.status == OperationStatus.INSTALLED:
            self.stats.installs_performed += 1
        elif result.status == OperationStatus.REMOVED:
            self.stats.removes_performed += 1
        elif result.status == OperationStatus.FAILED:
            self.stats.errors += 1


class AddInSync:
    """Run discovery, reconciliation and snapshot persistence end to end."""

    def __init__(
        self,
        directory: DirectoryService,
        manager: AddInManagementService,
        snapshot_path: Path | str,
        prefix: str,
        dry_run: bool = False,
    ) -> None:
        """Initialize the sync.

        Args:
            directory: Directory service holding the add-in groups
            manager: Mail platform add-in management service
            snapshot_path: Snapshot file from the previous run
            prefix: Fixed prefix of add-in group names
            dry_run: If True, don't install or remove anything
        """
        self.stats = RunStatistics()
        self.dry_run = dry_run
        self.discovery = GroupDiscovery(directory, self.stats, prefix)
        self.state = StateStore(snapshot_path, self.stats)
        self.engine = ReconciliationEngine(AddInOperator(manager, dry_run=dry_run), self.stats)

    async def run(self, name_pattern: str) -> AddInSyncResult:
        """Run one sync pass for groups matching name_pattern."""
        if self.dry_run:
            logger.info("DRY RUN - no changes will be made")

        targets = await self.discovery.discover(name_pattern)
        self.state.load(targets)
        results = await self.engine.reconcile(targets)

        # A dry run must leave the baseline untouched for the next live run
        if self.dry_run:
            logger.info(f"Dry run: snapshot {self.state.path} not updated")
            saved = False
        else:
            saved = self.state.save(targets, carry_forward=self.discovery.unresolved)

        return AddInSyncResult(
            targets=targets,
            results=results,
            stats=self.stats,
            snapshot_saved=saved,
        )
