"""Outlook add-in assignment from directory group membership."""

from addinsync.addins.discovery import GroupDiscovery, extract_manifest_url, parse_group_name
from addinsync.addins.models import (
    AddInTarget,
    InstalledApp,
    MemberDiff,
    OperationResult,
    OperationStatus,
    RunStatistics,
    SnapshotEntry,
)
from addinsync.addins.operator import AddInOperator
from addinsync.addins.reconcile import AddInSync, AddInSyncResult, ReconciliationEngine
from addinsync.addins.state import StateStore

__all__ = [
    "AddInOperator",
    "AddInSync",
    "AddInSyncResult",
    "AddInTarget",
    "GroupDiscovery",
    "InstalledApp",
    "MemberDiff",
    "OperationResult",
    "OperationStatus",
    "ReconciliationEngine",
    "RunStatistics",
    "SnapshotEntry",
    "StateStore",
    "extract_manifest_url",
    "parse_group_name",
]
