"""Image model.

Read-only view of an AMI as returned by ``describe_images``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

CREATION_DATE_FORMAT = "%Y-%m-%dT%H:%M:%S.%fZ"


def parse_creation_date(value: str) -> datetime:
    """Parse an EC2 creation date into an aware UTC datetime.

    Args:
        value: Timestamp such as ``2016-08-01T15:04:05.000Z``

    Returns:
        Timezone-aware datetime in UTC

    Raises:
        ValueError: If the timestamp is not in EC2 format
    """
    try:
        parsed = datetime.strptime(value, CREATION_DATE_FORMAT)
    except ValueError:
        # Some older images carry no fractional seconds
        parsed = datetime.strptime(value, "%Y-%m-%dT%H:%M:%SZ")
    return parsed.replace(tzinfo=timezone.utc)


@dataclass(frozen=True)
class BlockDeviceMapping:
    """Single block device mapping of an image.

    Attributes:
        device_name: Device name (e.g., /dev/xvda), empty if not reported
        snapshot_id: Backing EBS snapshot, None for ephemeral devices
    """

    device_name: str = ""
    snapshot_id: Optional[str] = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> BlockDeviceMapping:
        ebs = data.get("Ebs") or {}
        return cls(device_name=data.get("DeviceName", ""), snapshot_id=ebs.get("SnapshotId"))


@dataclass(frozen=True)
class Image:
    """Amazon Machine Image candidate.

    Attributes:
        image_id: AMI identifier (ami-...)
        creation_date: Creation instant (aware, UTC)
        name: Image name (optional)
        block_device_mappings: Device mappings in API order
        tags: Image tags
    """

    image_id: str
    creation_date: datetime
    name: Optional[str] = None
    block_device_mappings: tuple[BlockDeviceMapping, ...] = field(default_factory=tuple)
    tags: dict[str, str] = field(default_factory=dict, compare=False, hash=False)

    @property
    def snapshot_ids(self) -> list[str]:
        """Snapshot ids owned by this image, in mapping order."""
        return [m.snapshot_id for m in self.block_device_mappings if m.snapshot_id]

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> Image:
        """Build an Image from a ``describe_images`` entry.

        Args:
            data: One element of the ``Images`` list

        Returns:
            Image instance
        """
        tags = {tag["Key"]: tag["Value"] for tag in data.get("Tags", [])}
        return cls(
            image_id=data["ImageId"],
            creation_date=parse_creation_date(data["CreationDate"]),
            name=data.get("Name"),
            block_device_mappings=tuple(
                BlockDeviceMapping.from_api(m) for m in data.get("BlockDeviceMappings", [])
            ),
            tags=tags,
        )
