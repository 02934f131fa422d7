"""Retention policy model.

A policy group couples an image selector with a retention rule. Both are
tagged unions: exactly one selector kind and exactly one retention kind.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Union

# Tag carrying the management identifier of an image
IDENTIFIER_TAG = "Amazon_AMI_Management_Identifier"


@dataclass(frozen=True)
class TagSelector:
    """Select images carrying every given tag."""

    tags: dict[str, str]

    def describe(self) -> str:
        return ", ".join(f"{k}={v}" for k, v in self.tags.items())


@dataclass(frozen=True)
class IdentifierSelector:
    """Select images by management identifier."""

    identifier: str

    def describe(self) -> str:
        return f"{IDENTIFIER_TAG}={self.identifier}"


@dataclass(frozen=True)
class KeepReleases:
    """Keep the ``count`` newest images."""

    count: int

    def describe(self) -> str:
        return f"keep {self.count} releases"


@dataclass(frozen=True)
class KeepDays:
    """Keep images created within the last ``days`` days."""

    days: int

    def describe(self) -> str:
        return f"keep {self.days} days"


Selector = Union[TagSelector, IdentifierSelector]
Retention = Union[KeepReleases, KeepDays]


@dataclass
class Policy:
    """Policy group entity.

    Attributes:
        name: Label used in logs and reports
        selector: Which images are candidates
        retention: Which candidates are protected
        dry_run: Validate mutations without executing them
        resolve_aliases: Resolve ``resolve:ssm:`` launch template image aliases
        check_usage: Protect images referenced by launch templates and instances
        regions: Regions to clean (empty means the session default)
    """

    name: str
    selector: Selector
    retention: Retention
    dry_run: bool = False
    resolve_aliases: bool = False
    check_usage: bool = True
    regions: list[str] = field(default_factory=list)

    def validate(self) -> bool:
        """Validate policy invariants.

        Validation rules:
            - tag selector must name at least one tag
            - identifier selector must be non-empty
            - keep_releases / keep_days must be positive

        Returns:
            True if validation passes

        Raises:
            ValueError: If any validation rule fails
        """
        if isinstance(self.selector, TagSelector):
            if not self.selector.tags:
                raise ValueError("Tag selector requires at least one tag")
        elif isinstance(self.selector, IdentifierSelector):
            if not self.selector.identifier:
                raise ValueError("Identifier selector requires a non-empty identifier")
        else:
            raise ValueError(f"Unknown selector: {self.selector!r}")

        if isinstance(self.retention, KeepReleases):
            if self.retention.count < 1:
                raise ValueError("keep_releases must be greater than 0")
        elif isinstance(self.retention, KeepDays):
            if self.retention.days < 1:
                raise ValueError("keep_days must be greater than 0")
        else:
            raise ValueError(f"Unknown retention rule: {self.retention!r}")

        return True
