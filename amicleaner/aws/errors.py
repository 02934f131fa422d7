"""Classification of EC2 client errors."""

from __future__ import annotations

from botocore.exceptions import ClientError

# Returned instead of performing a mutation when DryRun=True would have succeeded
DRY_RUN_OPERATION = "DryRunOperation"

ALREADY_GONE_CODES = frozenset(
    {
        "InvalidAMIID.NotFound",
        "InvalidAMIID.Unavailable",
        "InvalidSnapshot.NotFound",
    }
)


def error_code(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Code", "Unknown")


def error_message(error: ClientError) -> str:
    return error.response.get("Error", {}).get("Message", str(error))


def is_dry_run_success(error: ClientError) -> bool:
    """Return True if the provider signals that a dry-run request would have succeeded."""
    return error_code(error) == DRY_RUN_OPERATION


def is_already_gone(error: ClientError) -> bool:
    """Return True if the target resource no longer exists."""
    return error_code(error) in ALREADY_GONE_CODES
