"""Image deletion.

Deregisters an AMI and deletes the EBS snapshots backing it. Dry-run
rejections and already-deleted resources count as success; any other error
propagates and stops the remaining work for that image.
"""

from __future__ import annotations

import logging
from collections.abc import Container
from typing import Any

from botocore.exceptions import ClientError

from amicleaner.aws.errors import error_code, is_already_gone, is_dry_run_success
from amicleaner.models.image import Image

logger = logging.getLogger(__name__)


class ImageDeleter:
    """Deletes one image at a time.

    No retries are attempted: a genuine failure is raised once to the caller.

    Attributes:
        ec2_client: boto3 EC2 client
        dry_run: Send DryRun=True with every mutation
    """

    def __init__(self, ec2_client: Any, dry_run: bool = False) -> None:
        self.ec2_client = ec2_client
        self.dry_run = dry_run

    def delete_image(self, image: Image, retained_snapshots: Container[str] = frozenset()) -> list[str]:
        """Deregister an image and delete its snapshots.

        Args:
            image: Image to delete
            retained_snapshots: Snapshot ids still referenced by other images

        Returns:
            Snapshot ids that were skipped because another image references them

        Raises:
            ClientError: On any failure other than dry-run or not-found
        """
        prefix = "[dry-run] " if self.dry_run else ""

        self._call(self.ec2_client.deregister_image, image.image_id, ImageId=image.image_id, DryRun=self.dry_run)
        logger.info(f"{prefix}Deregistered {image.image_id}")

        skipped = []
        for snapshot_id in image.snapshot_ids:
            if snapshot_id in retained_snapshots:
                logger.info(f"Keeping {snapshot_id} of {image.image_id}: still referenced by another image")
                skipped.append(snapshot_id)
                continue

            self._call(self.ec2_client.delete_snapshot, snapshot_id, SnapshotId=snapshot_id, DryRun=self.dry_run)
            logger.info(f"{prefix}Deleted {snapshot_id} of {image.image_id}")

        return skipped

    def _call(self, method: Any, resource_id: str, **params: Any) -> None:
        try:
            method(**params)
        except ClientError as e:
            if is_dry_run_success(e):
                return
            if is_already_gone(e):
                logger.info(f"{resource_id} already deleted")
                return
            logger.debug(f"Failed to delete {resource_id}: {error_code(e)}")
            raise
