"""Main CLI entry point using Typer."""

import dataclasses
import logging
import sys
from pathlib import Path
from typing import List, Optional

import typer
import yaml
from botocore.exceptions import BotoCoreError, ClientError
from rich.console import Console
from rich.table import Table

from ..aws.client import create_boto_client
from ..models.cleanup_report import CleanupReport, DeletionStatus, ReportStatus
from ..models.policy import Policy
from ..retire.cleaner import ImageCleaner
from ..retire.usage import AliasResolutionError
from ..utils.logging import setup_logging
from .config import Config, ConfigError, build_retention, build_selector

logger = logging.getLogger(__name__)

# Create Typer app
app = typer.Typer(
    name="amicleaner",
    help="AMI Cleaner - retire stale AMIs and their snapshots by retention policy",
    add_completion=False,
)

# Create Rich console for output
console = Console()

# Global config
config: Optional[Config] = None

DISCOVERY_ERRORS = (ClientError, BotoCoreError, AliasResolutionError)


@app.callback()
def main(
    profile: Optional[str] = typer.Option(None, "--profile", "-p", help="AWS profile name"),
    config_file: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Config file (default: $AMICLEANER_CONFIG or ~/.amicleaner.yaml)",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Suppress output except errors"),
    no_color: bool = typer.Option(False, "--no-color", help="Disable colored output"),
):
    """AMI Cleaner - retire stale AMIs and their snapshots by retention policy."""
    global config

    # Load configuration
    try:
        config = Config.load(config_file)
    except ConfigError as e:
        console.print(f"✗ Config error: {e}", style="bold red")
        raise typer.Exit(code=1)

    # Override with CLI options
    if profile:
        config.aws_profile = profile

    # Setup logging
    log_level = "ERROR" if quiet else ("DEBUG" if verbose else config.log_level)
    setup_logging(level=log_level, verbose=verbose)

    # Disable colors if requested
    if no_color:
        console.no_color = True


@app.command()
def version():
    """Show version information."""
    import boto3

    from .. import __version__

    console.print(f"amicleaner version {__version__}")
    console.print(f"Python {sys.version.split()[0]}")
    console.print(f"boto3 {boto3.__version__}")


def parse_tags(tags: List[str]) -> dict:
    """Parse repeated ``Key=Value`` options into a tag map."""
    parsed = {}
    for item in tags:
        if "=" not in item:
            console.print(f"✗ Invalid tag '{item}', expected Key=Value", style="bold red")
            raise typer.Exit(code=1)
        key, value = item.split("=", 1)
        parsed[key.strip()] = value.strip()
    return parsed


def resolve_policies(
    identifier: Optional[str],
    tags: List[str],
    keep_releases: Optional[int],
    keep_days: Optional[int],
    regions: List[str],
    policy_names: List[str],
    dry_run: bool,
    resolve_aliases: bool,
    check_usage: bool,
) -> list[Policy]:
    """Build the policies to run from command line options or the config file.

    Command line selector options define a single ad-hoc policy. Otherwise the
    config file policies are used, optionally narrowed by ``--policy``.

    Raises:
        ConfigError: If the options or config do not yield any valid policy
    """
    if identifier or tags:
        selector = build_selector(identifier, parse_tags(tags))
        policy = Policy(
            name=identifier or "cli",
            selector=selector,
            retention=build_retention(keep_releases, keep_days),
            dry_run=dry_run,
            resolve_aliases=resolve_aliases,
            check_usage=check_usage,
            regions=list(regions),
        )
        try:
            policy.validate()
        except ValueError as e:
            raise ConfigError(str(e))
        return [policy]

    if keep_releases is not None or keep_days is not None:
        raise ConfigError("--keep-releases/--keep-days require --identifier or --tag")

    policies = list(config.policies) if config else []
    if policy_names:
        missing = sorted(set(policy_names) - {p.name for p in policies})
        if missing:
            raise ConfigError(f"Unknown policies: {', '.join(missing)}")
        policies = [p for p in policies if p.name in policy_names]

    if not policies:
        raise ConfigError("No policies configured. Use --identifier/--tag or a config file.")

    overrides = {}
    if dry_run:
        overrides["dry_run"] = True
    if resolve_aliases:
        overrides["resolve_aliases"] = True
    if not check_usage:
        overrides["check_usage"] = False
    if regions:
        overrides["regions"] = list(regions)

    return [dataclasses.replace(p, **overrides) for p in policies]


def _ec2_client(region: Optional[str]):
    return create_boto_client("ec2", region_name=region, profile_name=config.aws_profile if config else None)


def _targets(policies: list[Policy]):
    for policy in policies:
        for region in policy.regions or [None]:
            yield policy, region


def _print_report(report: CleanupReport) -> None:
    title = f"{report.policy_name} ({report.region or 'default region'})"
    if report.dry_run:
        title += " (dry-run)"

    table = Table(title=title, show_header=True, header_style="bold magenta")
    table.add_column("Image", style="cyan")
    table.add_column("Created")
    table.add_column("Snapshots")
    table.add_column("Status")
    table.add_column("Error", style="red")

    for record in report.records:
        status_style = "green" if record.status == DeletionStatus.SUCCEEDED else "red"
        snapshots = ", ".join(record.snapshot_ids) or "-"
        if record.skipped_snapshot_ids:
            snapshots += f" (kept: {', '.join(record.skipped_snapshot_ids)})"
        table.add_row(
            record.image_id,
            record.creation_date.strftime("%Y-%m-%d %H:%M"),
            snapshots,
            f"[{status_style}]{record.status.value}[/{status_style}]",
            f"{record.error_code}: {record.error_message}" if record.error_code else "",
        )

    console.print(table)
    console.print(
        f"{report.candidate_count} candidates, {report.used_count} in use, "
        f"{report.retained_count} retained, {report.succeeded_count} deleted, {report.failed_count} failed"
    )


@app.command()
def clean(
    identifier: Optional[str] = typer.Option(None, "--identifier", "-i", help="Image management identifier"),
    tags: List[str] = typer.Option([], "--tag", "-t", help="Image tag filter Key=Value (repeatable)"),
    keep_releases: Optional[int] = typer.Option(None, "--keep-releases", help="Number of newest images to keep"),
    keep_days: Optional[int] = typer.Option(None, "--keep-days", help="Keep images younger than this many days"),
    regions: List[str] = typer.Option([], "--region", "-r", help="Region to clean (repeatable)"),
    policy_names: List[str] = typer.Option([], "--policy", help="Only run these config policies (repeatable)"),
    dry_run: bool = typer.Option(False, "--dry-run", help="Validate deletions without performing them"),
    resolve_aliases: bool = typer.Option(
        False, "--resolve-aliases", help="Resolve resolve:ssm: image aliases in launch templates"
    ),
    check_usage: bool = typer.Option(
        True, "--check-usage/--no-check-usage", help="Protect images used by launch templates and instances"
    ),
    report_file: Optional[Path] = typer.Option(None, "--report-file", help="Write a YAML report to this file"),
):
    """Deregister stale AMIs and delete their snapshots.

    Examples:
        # Keep the 3 newest images tagged with identifier "web"
        amicleaner clean --identifier web --keep-releases 3

        # Preview deletion of images older than 30 days
        amicleaner clean --tag Team=platform --keep-days 30 --dry-run

        # Run every policy from the config file
        amicleaner --config policies.yaml clean
    """
    try:
        policies = resolve_policies(
            identifier, tags, keep_releases, keep_days, regions, policy_names, dry_run, resolve_aliases, check_usage
        )
    except ConfigError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)

    reports = []
    discovery_failed = False

    for policy, region in _targets(policies):
        try:
            cleaner = ImageCleaner(_ec2_client(region), policy, region=region)
            report = cleaner.run()
        except DISCOVERY_ERRORS as e:
            discovery_failed = True
            logger.debug("Discovery failed", exc_info=True)
            console.print(f"✗ Policy {policy.name} ({region or 'default region'}): {e}", style="bold red")
            continue

        reports.append(report)
        _print_report(report)

    if report_file:
        with open(report_file, "w") as f:
            yaml.safe_dump({"reports": [r.to_dict() for r in reports]}, f, sort_keys=False)
        console.print(f"Report written to {report_file}")

    if discovery_failed:
        raise typer.Exit(code=2)
    if any(r.status != ReportStatus.COMPLETED for r in reports):
        raise typer.Exit(code=1)


@app.command()
def plan(
    identifier: Optional[str] = typer.Option(None, "--identifier", "-i", help="Image management identifier"),
    tags: List[str] = typer.Option([], "--tag", "-t", help="Image tag filter Key=Value (repeatable)"),
    keep_releases: Optional[int] = typer.Option(None, "--keep-releases", help="Number of newest images to keep"),
    keep_days: Optional[int] = typer.Option(None, "--keep-days", help="Keep images younger than this many days"),
    regions: List[str] = typer.Option([], "--region", "-r", help="Region to inspect (repeatable)"),
    policy_names: List[str] = typer.Option([], "--policy", help="Only run these config policies (repeatable)"),
    resolve_aliases: bool = typer.Option(
        False, "--resolve-aliases", help="Resolve resolve:ssm: image aliases in launch templates"
    ),
    check_usage: bool = typer.Option(
        True, "--check-usage/--no-check-usage", help="Protect images used by launch templates and instances"
    ),
):
    """List the AMIs a clean run would delete, without calling any mutation."""
    try:
        policies = resolve_policies(
            identifier, tags, keep_releases, keep_days, regions, policy_names, False, resolve_aliases, check_usage
        )
    except ConfigError as e:
        console.print(f"✗ {e}", style="bold red")
        raise typer.Exit(code=1)

    discovery_failed = False

    for policy, region in _targets(policies):
        try:
            cleaner = ImageCleaner(_ec2_client(region), policy, region=region)
            deletable = cleaner.preview()
        except DISCOVERY_ERRORS as e:
            discovery_failed = True
            console.print(f"✗ Policy {policy.name} ({region or 'default region'}): {e}", style="bold red")
            continue

        table = Table(
            title=f"{policy.name} ({region or 'default region'}): {policy.retention.describe()}",
            show_header=True,
            header_style="bold magenta",
        )
        table.add_column("Image", style="cyan")
        table.add_column("Name")
        table.add_column("Created")
        table.add_column("Snapshots")

        for image in deletable:
            table.add_row(
                image.image_id,
                image.name or "",
                image.creation_date.strftime("%Y-%m-%d %H:%M"),
                ", ".join(image.snapshot_ids) or "-",
            )

        console.print(table)
        console.print(f"{len(deletable)} images would be deleted, {len(cleaner.used)} images in use")

    if discovery_failed:
        raise typer.Exit(code=2)


def cli_main():
    """Entry point for console script."""
    app()


if __name__ == "__main__":
    cli_main()
