"""Candidate image selection."""

from __future__ import annotations

import logging
from typing import Any

from amicleaner.models.image import Image
from amicleaner.models.policy import IDENTIFIER_TAG, IdentifierSelector, Selector, TagSelector

logger = logging.getLogger(__name__)


def build_image_filters(selector: Selector) -> list[dict[str, Any]]:
    """Build ``describe_images`` filters for a selector.

    Args:
        selector: Tag or identifier selector

    Returns:
        List of EC2 filter dictionaries

    Raises:
        ValueError: If the selector kind is unknown
    """
    if isinstance(selector, TagSelector):
        return [{"Name": f"tag:{key}", "Values": [value]} for key, value in selector.tags.items()]
    if isinstance(selector, IdentifierSelector):
        return [{"Name": f"tag:{IDENTIFIER_TAG}", "Values": [selector.identifier]}]
    raise ValueError(f"Unknown selector: {selector!r}")


def retrieve_images(ec2_client: Any, selector: Selector) -> list[Image]:
    """Retrieve the candidate pool for a selector.

    The result is not filtered by usage or retention.

    Args:
        ec2_client: boto3 EC2 client
        selector: Tag or identifier selector

    Returns:
        Images in the order the provider returned them
    """
    filters = build_image_filters(selector)
    paginator = ec2_client.get_paginator("describe_images")

    images = []
    for page in paginator.paginate(Filters=filters):
        for data in page.get("Images", []):
            images.append(Image.from_api(data))

    logger.debug(f"Found {len(images)} images matching {selector.describe()}")
    return images
