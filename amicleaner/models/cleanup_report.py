"""Cleanup report model.

Outcome of one policy group run in one region, with a record per image the
retention rule made deletable.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional


class DeletionStatus(Enum):
    """Individual image deletion status."""

    SUCCEEDED = "succeeded"
    FAILED = "failed"


class ReportStatus(Enum):
    """Aggregate run status."""

    COMPLETED = "completed"
    PARTIAL = "partial"
    FAILED = "failed"


@dataclass
class ImageDeletionRecord:
    """Deletion record entity.

    Validation rules:
        - status=failed: requires error_code
        - status=succeeded: no error_code

    Attributes:
        image_id: Deregistered (or attempted) image
        creation_date: Image creation instant
        snapshot_ids: Snapshots the image owned
        status: Deletion outcome
        error_code: AWS error code if failed (optional)
        error_message: Human-readable error if failed (optional)
        skipped_snapshot_ids: Snapshots left to another image that still references them
    """

    image_id: str
    creation_date: datetime
    snapshot_ids: list[str]
    status: DeletionStatus
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    skipped_snapshot_ids: list[str] = field(default_factory=list)

    def validate(self) -> bool:
        """Validate record invariants.

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if self.status == DeletionStatus.FAILED:
            if not self.error_code:
                raise ValueError("Failed status requires error_code")
        elif self.error_code:
            raise ValueError("Succeeded status cannot have error_code")
        return True


@dataclass
class CleanupReport:
    """Cleanup run for one policy group and region.

    Attributes:
        policy_name: Policy group label
        region: AWS region (None for the session default)
        dry_run: Whether mutations were only validated
        timestamp: Reference instant of the run
        candidate_count: Images matched by the selector
        used_count: Candidates protected because they are in use
        records: One record per deletable image
    """

    policy_name: str
    region: Optional[str]
    dry_run: bool
    timestamp: datetime
    candidate_count: int = 0
    used_count: int = 0
    records: list[ImageDeletionRecord] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.SUCCEEDED)

    @property
    def failed_count(self) -> int:
        return sum(1 for r in self.records if r.status == DeletionStatus.FAILED)

    @property
    def retained_count(self) -> int:
        return self.candidate_count - len(self.records)

    @property
    def status(self) -> ReportStatus:
        if self.failed_count > 0:
            if self.succeeded_count > 0:
                return ReportStatus.PARTIAL
            return ReportStatus.FAILED
        return ReportStatus.COMPLETED

    def to_dict(self) -> dict[str, Any]:
        """Serialize for YAML report output."""
        return {
            "policy": self.policy_name,
            "region": self.region,
            "dry_run": self.dry_run,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status.value,
            "candidate_count": self.candidate_count,
            "used_count": self.used_count,
            "retained_count": self.retained_count,
            "succeeded_count": self.succeeded_count,
            "failed_count": self.failed_count,
            "records": [
                {
                    "image_id": record.image_id,
                    "creation_date": record.creation_date.isoformat(),
                    "snapshot_ids": list(record.snapshot_ids),
                    "skipped_snapshot_ids": list(record.skipped_snapshot_ids),
                    "status": record.status.value,
                    "error_code": record.error_code,
                    "error_message": record.error_message,
                }
                for record in self.records
            ],
        }
