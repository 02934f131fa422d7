"""Retention rule evaluation."""

from __future__ import annotations

from collections.abc import Container
from datetime import datetime, timedelta

from amicleaner.models.image import Image
from amicleaner.models.policy import KeepDays, KeepReleases, Retention


def sort_newest_first(images: list[Image]) -> list[Image]:
    """Sort images by creation date, newest first.

    ``sorted`` is stable, so images created at the same instant keep their
    input order.
    """
    return sorted(images, key=lambda image: image.creation_date, reverse=True)


def select_deletable(
    images: list[Image],
    used: Container[str],
    retention: Retention,
    now: datetime,
) -> list[Image]:
    """Return the images a retention rule allows to delete.

    Images in ``used`` are always protected and do not count as releases.

    Args:
        images: Candidate pool
        used: Image ids referenced by infrastructure
        retention: KeepReleases or KeepDays rule
        now: Reference instant for age-based retention

    Returns:
        Deletable images, newest first

    Raises:
        ValueError: If the retention kind is unknown
    """
    unused = sort_newest_first([image for image in images if image.image_id not in used])

    if isinstance(retention, KeepReleases):
        return unused[retention.count :]

    if isinstance(retention, KeepDays):
        max_age = timedelta(days=retention.days)
        return [image for image in unused if now - image.creation_date > max_age]

    raise ValueError(f"Unknown retention rule: {retention!r}")
