"""Tests for CleanupReport model."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from amicleaner.models.cleanup_report import CleanupReport, DeletionStatus, ImageDeletionRecord, ReportStatus

NOW = datetime(2016, 8, 11, 11, 0, 0, tzinfo=timezone.utc)
CREATED = datetime(2016, 7, 29, 15, 4, 5, tzinfo=timezone.utc)


def _record(image_id: str, status: DeletionStatus, error_code=None) -> ImageDeletionRecord:
    return ImageDeletionRecord(
        image_id=image_id,
        creation_date=CREATED,
        snapshot_ids=["snap-001"],
        status=status,
        error_code=error_code,
    )


class TestImageDeletionRecord:
    """Test suite for ImageDeletionRecord validation."""

    def test_failed_requires_error_code(self) -> None:
        with pytest.raises(ValueError, match="requires error_code"):
            _record("ami-001", DeletionStatus.FAILED).validate()

    def test_succeeded_cannot_have_error(self) -> None:
        with pytest.raises(ValueError, match="cannot have error_code"):
            _record("ami-001", DeletionStatus.SUCCEEDED, error_code="Boom").validate()

    def test_valid_records(self) -> None:
        assert _record("ami-001", DeletionStatus.SUCCEEDED).validate() is True
        assert _record("ami-001", DeletionStatus.FAILED, error_code="UnauthorizedOperation").validate() is True


class TestCleanupReport:
    """Test suite for CleanupReport aggregation."""

    def test_empty_report_is_completed(self) -> None:
        """Test no deletable images means a completed run."""
        report = CleanupReport(policy_name="web", region="us-east-1", dry_run=False, timestamp=NOW, candidate_count=2)

        assert report.status == ReportStatus.COMPLETED
        assert report.retained_count == 2

    @pytest.mark.parametrize(
        "statuses, expected",
        [
            ([DeletionStatus.SUCCEEDED, DeletionStatus.SUCCEEDED], ReportStatus.COMPLETED),
            ([DeletionStatus.SUCCEEDED, DeletionStatus.FAILED], ReportStatus.PARTIAL),
            ([DeletionStatus.FAILED, DeletionStatus.FAILED], ReportStatus.FAILED),
        ],
    )
    def test_status(self, statuses, expected) -> None:
        """Test aggregate status from record outcomes."""
        report = CleanupReport(policy_name="web", region=None, dry_run=False, timestamp=NOW, candidate_count=3)
        for index, status in enumerate(statuses):
            error_code = "Boom" if status == DeletionStatus.FAILED else None
            report.records.append(_record(f"ami-00{index}", status, error_code))

        assert report.status == expected
        assert report.retained_count == 1

    def test_to_dict(self) -> None:
        """Test serialization for YAML output."""
        report = CleanupReport(
            policy_name="web", region="us-east-1", dry_run=True, timestamp=NOW, candidate_count=3, used_count=1
        )
        report.records.append(_record("ami-001", DeletionStatus.SUCCEEDED))

        data = report.to_dict()

        assert data["policy"] == "web"
        assert data["dry_run"] is True
        assert data["status"] == "completed"
        assert data["timestamp"] == "2016-08-11T11:00:00+00:00"
        assert data["used_count"] == 1
        assert data["retained_count"] == 2
        assert data["records"] == [
            {
                "image_id": "ami-001",
                "creation_date": "2016-07-29T15:04:05+00:00",
                "snapshot_ids": ["snap-001"],
                "skipped_snapshot_ids": [],
                "status": "succeeded",
                "error_code": None,
                "error_message": None,
            }
        ]
