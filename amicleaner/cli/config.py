"""Configuration loading.

Configuration is a YAML file holding global settings and a list of policy
groups::

    aws_profile: default
    log_level: INFO
    policies:
      - name: web
        identifier: web-server
        keep_releases: 3
        regions: [us-east-1, eu-west-1]
        resolve_aliases: true
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import yaml

from ..models.policy import IdentifierSelector, KeepDays, KeepReleases, Policy, Retention, Selector, TagSelector

CONFIG_ENV_VAR = "AMICLEANER_CONFIG"
DEFAULT_CONFIG_PATH = Path.home() / ".amicleaner.yaml"

POLICY_KEYS = {
    "name",
    "identifier",
    "tags",
    "keep_releases",
    "keep_days",
    "dry_run",
    "resolve_aliases",
    "check_usage",
    "regions",
}


class ConfigError(ValueError):
    """Raised when the configuration is invalid."""


@dataclass
class Config:
    """Application configuration.

    Attributes:
        aws_profile: AWS profile name (optional)
        log_level: Default log level
        policies: Policy groups to apply
        source: File the configuration was read from (optional)
    """

    aws_profile: Optional[str] = None
    log_level: str = "INFO"
    policies: list[Policy] = field(default_factory=list)
    source: Optional[Path] = None

    @classmethod
    def load(cls, path: Optional[str] = None) -> Config:
        """Load configuration.

        The file is taken from ``path``, then ``$AMICLEANER_CONFIG``, then
        ``~/.amicleaner.yaml``. A missing default file yields an empty
        configuration; a missing explicit file is an error.

        Args:
            path: Explicit configuration file (optional)

        Returns:
            Config instance

        Raises:
            ConfigError: If the file is missing, unreadable or invalid
        """
        explicit = path or os.environ.get(CONFIG_ENV_VAR)
        config_path = Path(explicit).expanduser() if explicit else DEFAULT_CONFIG_PATH

        if not config_path.exists():
            if explicit:
                raise ConfigError(f"Config file not found: {config_path}")
            return cls(aws_profile=os.environ.get("AWS_PROFILE"))

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {config_path}: {e}")

        config = cls.from_dict(data)
        config.source = config_path
        return config

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Config:
        """Build configuration from parsed YAML.

        Raises:
            ConfigError: If any policy is invalid
        """
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a mapping")

        policies_data = data.get("policies") or []
        if not isinstance(policies_data, list):
            raise ConfigError("'policies' must be a list")

        policies = [parse_policy(entry, index) for index, entry in enumerate(policies_data)]

        names = [p.name for p in policies]
        duplicates = sorted({n for n in names if names.count(n) > 1})
        if duplicates:
            raise ConfigError(f"Duplicate policy names: {', '.join(duplicates)}")

        return cls(
            aws_profile=data.get("aws_profile") or os.environ.get("AWS_PROFILE"),
            log_level=str(data.get("log_level", "INFO")).upper(),
            policies=policies,
        )


def build_selector(identifier: Optional[str], tags: Optional[dict[str, str]]) -> Selector:
    """Build a selector from exactly one of ``identifier`` or ``tags``.

    Raises:
        ConfigError: If both or neither are given
    """
    if identifier and tags:
        raise ConfigError("identifier and tags cannot be set at the same time")
    if tags:
        return TagSelector(tags={str(k): str(v) for k, v in tags.items()})
    if identifier:
        return IdentifierSelector(identifier=str(identifier))
    raise ConfigError("identifier or tags must be set")


def build_retention(keep_releases: Optional[int], keep_days: Optional[int]) -> Retention:
    """Build a retention rule from exactly one of ``keep_releases`` or ``keep_days``.

    Zero means unset.

    Raises:
        ConfigError: If both or neither are set, or a value is negative
    """
    keep_releases = keep_releases or 0
    keep_days = keep_days or 0

    if keep_releases < 0 or keep_days < 0:
        raise ConfigError("keep_releases and keep_days cannot be negative")
    if keep_releases and keep_days:
        raise ConfigError("keep_releases and keep_days cannot be set at the same time")
    if keep_releases:
        return KeepReleases(count=keep_releases)
    if keep_days:
        return KeepDays(days=keep_days)
    raise ConfigError("keep_releases or keep_days must be greater than 0")


def parse_policy(data: Any, index: int = 0) -> Policy:
    """Parse one policy group.

    Args:
        data: Mapping from the ``policies`` list
        index: Position in the list, for error messages

    Returns:
        Validated Policy

    Raises:
        ConfigError: If the entry is invalid
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Policy #{index + 1} must be a mapping")

    name = str(data.get("name") or data.get("identifier") or f"policy-{index + 1}")

    unknown = sorted(set(data) - POLICY_KEYS)
    if unknown:
        raise ConfigError(f"Policy '{name}': unknown keys {', '.join(unknown)}")

    tags = data.get("tags")
    if tags is not None and not isinstance(tags, dict):
        raise ConfigError(f"Policy '{name}': tags must be a mapping")

    regions = data.get("regions") or []
    if isinstance(regions, str):
        regions = [regions]

    try:
        policy = Policy(
            name=name,
            selector=build_selector(data.get("identifier"), tags),
            retention=build_retention(_as_int(data.get("keep_releases")), _as_int(data.get("keep_days"))),
            dry_run=_as_bool(data.get("dry_run"), False),
            resolve_aliases=_as_bool(data.get("resolve_aliases"), False),
            check_usage=_as_bool(data.get("check_usage"), True),
            regions=[str(r) for r in regions],
        )
        policy.validate()
    except ValueError as e:
        raise ConfigError(f"Policy '{name}': {e}")

    return policy


def _as_int(value: Any) -> Optional[int]:
    if value is None:
        return None
    if isinstance(value, bool):
        raise ConfigError(f"Expected an integer, got {value!r}")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ConfigError(f"Expected an integer, got {value!r}")


def _as_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    raise ConfigError(f"Expected a boolean, got {value!r}")
