"""Image cleaner for retention runs.

Main orchestrator for one policy group in one region, with preview and
execution modes.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from botocore.exceptions import ClientError

from amicleaner.aws.errors import error_code, error_message
from amicleaner.models.cleanup_report import CleanupReport, DeletionStatus, ImageDeletionRecord
from amicleaner.models.image import Image
from amicleaner.models.policy import Policy
from amicleaner.retire.deleter import ImageDeleter
from amicleaner.retire.retention import select_deletable
from amicleaner.retire.selector import retrieve_images
from amicleaner.retire.usage import UsageResolver, Used

logger = logging.getLogger(__name__)


class ImageCleaner:
    """Image cleaner orchestrator.

    Coordinates usage resolution, candidate selection, retention evaluation
    and deletion for one policy group. Create one instance per policy group
    and region; the usage maps are never shared between instances.

    Attributes:
        ec2_client: boto3 EC2 client for the region
        policy: Active policy group
        region: Region of ``ec2_client`` (for reporting)
        now: Reference instant for age-based retention
        used: Image id -> usage entry, filled by the usage resolver
        resolved_aliases: Alias token -> image id, filled by the usage resolver
    """

    def __init__(
        self,
        ec2_client: Any,
        policy: Policy,
        region: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """Initialize image cleaner.

        Args:
            ec2_client: boto3 EC2 client
            policy: Policy group to apply
            region: Region name for reports (optional)
            now: Reference instant, current UTC time when None; naive values are read as UTC
        """
        self.ec2_client = ec2_client
        self.policy = policy
        self.region = region
        if now is not None and now.tzinfo is None:
            # Naive instants are taken as UTC
            now = now.replace(tzinfo=timezone.utc)
        self.now = now or datetime.now(timezone.utc)
        self.used: dict[str, Used] = {}
        self.resolved_aliases: dict[str, str] = {}
        self._candidates: list[Image] = []

    def set_used(self) -> None:
        """Populate ``used`` and ``resolved_aliases``.

        Skipped when the policy neither checks usage nor resolves aliases.

        Raises:
            ClientError: If any usage query fails
            AliasResolutionError: If an alias resolves to nothing
        """
        if not (self.policy.check_usage or self.policy.resolve_aliases):
            logger.debug(f"Usage protection disabled for policy {self.policy.name}")
            return

        resolver = UsageResolver(
            ec2_client=self.ec2_client,
            resolve_aliases=self.policy.resolve_aliases,
            used=self.used,
            resolved_aliases=self.resolved_aliases,
        )
        resolver.resolve()

    def retrieve_candidate_images(self) -> list[Image]:
        """Return the images the policy allows to delete, newest first.

        Uses whatever ``used`` currently holds; call ``set_used`` first.
        """
        self._candidates = retrieve_images(self.ec2_client, self.policy.selector)
        deletable = select_deletable(self._candidates, self.used, self.policy.retention, self.now)

        logger.info(
            f"Policy {self.policy.name}: {len(self._candidates)} candidates, "
            f"{len(deletable)} deletable ({self.policy.retention.describe()})"
        )
        return deletable

    def delete_image(self, image: Image, retained_snapshots: frozenset[str] = frozenset()) -> list[str]:
        """Deregister one image and delete its snapshots.

        Returns:
            Snapshot ids skipped because another image still references them

        Raises:
            ClientError: On a genuine (non dry-run, not already gone) failure
        """
        deleter = ImageDeleter(self.ec2_client, dry_run=self.policy.dry_run)
        return deleter.delete_image(image, retained_snapshots)

    def preview(self) -> list[Image]:
        """Resolve usage and return deletable images without deleting anything."""
        self.set_used()
        return self.retrieve_candidate_images()

    def run(self) -> CleanupReport:
        """Apply the policy.

        Discovery failures propagate and nothing is deleted. Deletion failures
        are recorded and the remaining images are still processed.

        Returns:
            CleanupReport with one record per deletable image
        """
        deletable = self.preview()

        deletable_ids = {image.image_id for image in deletable}
        retained_snapshots = frozenset(
            snapshot_id
            for image in self._candidates
            if image.image_id not in deletable_ids
            for snapshot_id in image.snapshot_ids
        )

        report = CleanupReport(
            policy_name=self.policy.name,
            region=self.region,
            dry_run=self.policy.dry_run,
            timestamp=self.now,
            candidate_count=len(self._candidates),
            used_count=sum(1 for image in self._candidates if image.image_id in self.used),
        )

        for index, image in enumerate(deletable):
            # Shared snapshots go with the last deletable image referencing them
            pending = frozenset(s for later in deletable[index + 1 :] for s in later.snapshot_ids)
            record = ImageDeletionRecord(
                image_id=image.image_id,
                creation_date=image.creation_date,
                snapshot_ids=image.snapshot_ids,
                status=DeletionStatus.SUCCEEDED,
            )
            try:
                record.skipped_snapshot_ids = self.delete_image(image, retained_snapshots | pending)
            except ClientError as e:
                record.status = DeletionStatus.FAILED
                record.error_code = error_code(e)
                record.error_message = error_message(e)
                logger.warning(f"Failed to delete {image.image_id}: {record.error_code} - {record.error_message}")
            report.records.append(record)

        return report
