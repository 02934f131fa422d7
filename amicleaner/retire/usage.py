"""Image usage discovery.

Finds images referenced by launch template versions or by live instances so
that retention never deletes an image that infrastructure still points at.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger(__name__)

ALIAS_PREFIX = "resolve:ssm:"

# Terminated instances no longer pin their image
LIVE_INSTANCE_STATES = ["pending", "running", "shutting-down", "stopping", "stopped"]


class UsageType(Enum):
    """Kind of resource referencing an image."""

    LAUNCH_TEMPLATE = "launch-template"
    INSTANCE = "instance"


@dataclass(frozen=True)
class Used:
    """Usage entry for one image.

    Attributes:
        usage_type: Kind of referencing resource
        resource_id: Launch template id or instance id
    """

    usage_type: UsageType
    resource_id: str


class AliasResolutionError(Exception):
    """Raised when a launch template image alias cannot be resolved."""


def is_alias(image_id: str) -> bool:
    return image_id.startswith(ALIAS_PREFIX)


class UsageResolver:
    """Usage resolver for one cleanup run.

    Fills the caller-owned ``used`` and ``resolved_aliases`` maps. Any API
    failure propagates; the maps must then be discarded.

    Attributes:
        ec2_client: boto3 EC2 client
        resolve_aliases: Resolve ``resolve:ssm:`` aliases to concrete image ids
        used: Image id -> first usage found
        resolved_aliases: Alias token -> resolved image id
    """

    def __init__(
        self,
        ec2_client: Any,
        resolve_aliases: bool,
        used: dict[str, Used],
        resolved_aliases: dict[str, str],
    ) -> None:
        self.ec2_client = ec2_client
        self.resolve_aliases = resolve_aliases
        self.used = used
        self.resolved_aliases = resolved_aliases

    def resolve(self) -> dict[str, Used]:
        """Run every usage source.

        Returns:
            The ``used`` map
        """
        self.set_launch_template_used()
        self.set_instance_used()
        logger.debug(f"{len(self.used)} images in use ({len(self.resolved_aliases)} aliases resolved)")
        return self.used

    def set_launch_template_used(self) -> None:
        """Mark every image referenced by any launch template version."""
        paginator = self.ec2_client.get_paginator("describe_launch_templates")

        for page in paginator.paginate():
            for template in page.get("LaunchTemplates", []):
                self._scan_template(template["LaunchTemplateId"])

    def set_instance_used(self) -> None:
        """Mark the image of every non-terminated instance."""
        paginator = self.ec2_client.get_paginator("describe_instances")
        filters = [{"Name": "instance-state-name", "Values": LIVE_INSTANCE_STATES}]

        for page in paginator.paginate(Filters=filters):
            for reservation in page.get("Reservations", []):
                for instance in reservation.get("Instances", []):
                    image_id = instance.get("ImageId")
                    if image_id:
                        self._mark(image_id, UsageType.INSTANCE, instance["InstanceId"])

    def _scan_template(self, template_id: str) -> None:
        paginator = self.ec2_client.get_paginator("describe_launch_template_versions")

        for page in paginator.paginate(LaunchTemplateId=template_id):
            for version in page.get("LaunchTemplateVersions", []):
                image_id = version.get("LaunchTemplateData", {}).get("ImageId")
                if not image_id:
                    continue

                if self.resolve_aliases and is_alias(image_id):
                    image_id = self._resolve_alias(template_id, version["VersionNumber"], image_id)

                self._mark(image_id, UsageType.LAUNCH_TEMPLATE, template_id)

    def _resolve_alias(self, template_id: str, version_number: int, alias: str) -> str:
        """Resolve an alias once per run.

        Args:
            template_id: Launch template holding the alias
            version_number: Version holding the alias
            alias: ``resolve:ssm:`` token

        Returns:
            Concrete image id

        Raises:
            AliasResolutionError: If the resolved version carries no image id
        """
        cached: Optional[str] = self.resolved_aliases.get(alias)
        if cached is not None:
            return cached

        response = self.ec2_client.describe_launch_template_versions(
            LaunchTemplateId=template_id,
            Versions=[str(version_number)],
            ResolveAlias=True,
        )
        versions = response.get("LaunchTemplateVersions", [])
        image_id = versions[0].get("LaunchTemplateData", {}).get("ImageId") if versions else None
        if not image_id:
            raise AliasResolutionError(
                f"Could not resolve {alias} for launch template {template_id} version {version_number}"
            )

        logger.debug(f"Resolved {alias} to {image_id}")
        self.resolved_aliases[alias] = image_id
        return image_id

    def _mark(self, image_id: str, usage_type: UsageType, resource_id: str) -> None:
        if image_id not in self.used:
            self.used[image_id] = Used(usage_type=usage_type, resource_id=resource_id)
