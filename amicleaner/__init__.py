"""AMI Cleaner - retire stale AMIs and their EBS snapshots by retention policy."""

__version__ = "0.3.0"
