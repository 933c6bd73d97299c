"""Data models for add-in membership reconciliation."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    """Normalize a mail address for set comparison."""
    return address.strip().lower()


@dataclass
class DirectoryGroup:
    """A group returned by the directory service."""

    id: str
    name: str
    description: str | None = None


@dataclass
class DirectoryMember:
    """A group member entry returned by the directory service."""

    account_id: str
    member_type: str  # "user", "group", "device", ...

    @property
    def is_user(self) -> bool:
        """Check if this member is a user account."""
        return self.member_type.lower() == "user"


@dataclass
class MemberDiff:
    """Membership changes computed for one target."""

    to_add: set[str] = field(default_factory=set)
    to_remove: set[str] = field(default_factory=set)

    @property
    def has_changes(self) -> bool:
        """Check if anything needs to be installed or removed."""
        return bool(self.to_add) or bool(self.to_remove)


@dataclass
class AddInTarget:
    """One discovered add-in group and its membership.

    The group name ``app-exchangeaddin-salesforce-prod`` maps to add-in
    ``salesforce`` in environment ``prod``. Current members come from the
    directory on this run; previous members come from the last snapshot.
    """

    group_name: str
    addin_id: str
    environment: str
    manifest_url: str
    current_members: set[str] = field(default_factory=set)
    previous_members: set[str] = field(default_factory=set)

    def diff(self) -> MemberDiff:
        """Compute installs and removals needed to converge membership."""
        return MemberDiff(
            to_add=self.current_members - self.previous_members,
            to_remove=self.previous_members - self.current_members,
        )


class SnapshotEntry(BaseModel):
    """Persisted membership record for one group.

    Field names follow the JSON layout of the snapshot file.
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    group_name: str = Field(alias="groupName", min_length=1)
    addin_id: str = Field(alias="addInId")
    environment: str
    manifest_url: str | None = Field(default=None, alias="manifestUrl")
    members: list[str] = Field(default_factory=list)
    last_updated: datetime = Field(alias="lastUpdated")

    @classmethod
    def from_target(cls, target: AddInTarget, timestamp: datetime) -> "SnapshotEntry":
        """Build a snapshot entry from a target's current membership."""
        return cls(
            group_name=target.group_name,
            addin_id=target.addin_id,
            environment=target.environment,
            manifest_url=target.manifest_url,
            members=sorted(target.current_members),
            last_updated=timestamp,
        )

    @classmethod
    def known_keys(cls) -> set[str]:
        """Return the JSON keys understood by this model."""
        return {f.alias or name for name, f in cls.model_fields.items()}


class OperationStatus(Enum):
    """Outcome of a single install or remove operation."""

    INSTALLED = "installed"
    REMOVED = "removed"
    DRY_RUN = "dry_run"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass
class OperationResult:
    """Result of an install or remove call for one user."""

    status: OperationStatus
    user: str
    addin_id: str = ""
    message: str = ""

    @property
    def failed(self) -> bool:
        """Check if the operation failed."""
        return self.status == OperationStatus.FAILED


@dataclass
class InstalledApp:
    """An add-in installed in a user's mailbox."""

    installation_id: str
    display_name: str


@dataclass
class RunStatistics:
    """Counters accumulated over a single sync run."""

    groups_found: int = 0
    users_to_add: int = 0
    users_to_remove: int = 0
    installs_performed: int = 0
    removes_performed: int = 0
    errors: int = 0

    def log_summary(self, dry_run: bool = False) -> None:
        """Write the end-of-run statistics to the log."""
        logger.info("")
        logger.info("-" * 50)
        logger.info("Summary:" + (" (dry run)" if dry_run else ""))
        logger.info(f"  Groups found: {self.groups_found}")
        logger.info(f"  Users to add: {self.users_to_add}")
        logger.info(f"  Users to remove: {self.users_to_remove}")
        logger.info(f"  Installs performed: {self.installs_performed}")
        logger.info(f"  Removes performed: {self.removes_performed}")
        if self.errors:
            logger.info(f"  Errors: {self.errors}")
