"""Data models for images, policies and cleanup reports."""
