"""Snapshot persistence between sync runs.

The snapshot is a JSON array with one entry per add-in group, rewritten in
full at the end of every run::

    [
      {
        "groupName": "app-exchangeaddin-salesforce-prod",
        "addInId": "salesforce",
        "environment": "prod",
        "manifestUrl": "https://addins.contoso.com/salesforce/manifest.xml",
        "members": ["b@contoso.com", "c@contoso.com"],
        "lastUpdated": "2026-10-16T06:00:00+00:00"
      }
    ]

Groups that are not discovered on a run are dropped from the next snapshot.
A group that was found but whose members could not be listed keeps its
previous entry.
"""

import json
import logging
import os
from datetime import UTC, datetime
from pathlib import Path

from pydantic import ValidationError

from addinsync.addins.models import AddInTarget, RunStatistics, SnapshotEntry, normalize_address

logger = logging.getLogger(__name__)


class StateStore:
    """Load and save the membership snapshot file."""

    def __init__(self, path: Path | str, stats: RunStatistics) -> None:
        """Initialize the state store.

        Args:
            path: Snapshot file location
            stats: Run statistics to update on save failures
        """
        self.path = Path(path)
        self.stats = stats
        # Entries read by the last load(), reused when carrying groups forward
        self.previous: dict[str, SnapshotEntry] = {}

    def read_entries(self) -> dict[str, SnapshotEntry]:
        """Read snapshot entries keyed by group name.

        A missing, unreadable or malformed file yields an empty mapping.
        Entries that fail validation are skipped with a warning.
        """
        if not self.path.exists():
            logger.info(f"No snapshot at {self.path}, treating as first run")
            return {}

        try:
            with self.path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"Could not read snapshot {self.path}, using empty baseline: {e}")
            return {}

        if not isinstance(data, list):
            logger.warning(
                f"Snapshot {self.path} is not a JSON array "
                f"(got {type(data).__name__}), using empty baseline"
            )
            return {}

        known_keys = SnapshotEntry.known_keys()
        entries: dict[str, SnapshotEntry] = {}
        for index, item in enumerate(data):
            try:
                entry = SnapshotEntry.model_validate(item)
            except ValidationError as e:
                logger.warning(f"Skipping invalid snapshot entry #{index}: {e}")
                continue

            unknown = set(item) - known_keys
            if unknown:
                logger.warning(
                    f"Snapshot entry {entry.group_name} has unknown fields: "
                    f"{', '.join(sorted(unknown))}"
                )

            if entry.group_name in entries:
                logger.warning(f"Duplicate snapshot entry for {entry.group_name}, keeping last")
            entries[entry.group_name] = entry

        return entries

    def load(self, targets: list[AddInTarget]) -> None:
        """Attach previous membership from the snapshot to each target.

        Targets without a snapshot entry get an empty previous membership.
        """
        entries = self.read_entries()
        self.previous = entries
        matched = 0
        for target in targets:
            entry = entries.get(target.group_name)
            if entry is None:
                target.previous_members = set()
                continue
            target.previous_members = {normalize_address(m) for m in entry.members if m.strip()}
            matched += 1

        logger.info(f"Loaded previous membership for {matched} of {len(targets)} groups")

    def save(self, targets: list[AddInTarget], carry_forward: list[str] | None = None) -> bool:
        """Write current membership of all targets, replacing the snapshot.

        Args:
            targets: Groups reconciled on this run
            carry_forward: Groups that were found but whose members could not
                be read. Their previous entries are written back unchanged.

        Returns:
            True if the snapshot was written
        """
        timestamp = datetime.now(UTC)
        entries = [SnapshotEntry.from_target(t, timestamp) for t in targets]
        for group_name in carry_forward or []:
            entry = self.previous.get(group_name)
            if entry is not None:
                logger.info(f"Keeping previous snapshot entry for {group_name}")
                entries.append(entry)
        data = [e.model_dump(mode="json", by_alias=True) for e in entries]

        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with tmp_path.open("w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError as e:
            logger.error(f"Failed to save snapshot {self.path}: {e}")
            self.stats.errors += 1
            tmp_path.unlink(missing_ok=True)
            return False

        logger.info(f"Saved snapshot of {len(entries)} groups to {self.path}")
        return True
