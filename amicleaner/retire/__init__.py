"""Image retirement module.

This module selects candidate AMIs, protects the ones still in use or kept by
the retention rule, and deregisters the rest along with their snapshots.

Classes:
    ImageCleaner: Main orchestrator for one policy group in one region
    UsageResolver: Launch template and instance usage discovery
    ImageDeleter: Deregistration and snapshot deletion with dry-run support
"""

from __future__ import annotations

__all__ = [
    "ImageCleaner",
    "UsageResolver",
    "ImageDeleter",
]
