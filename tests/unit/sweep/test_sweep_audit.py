"""Tests for AuditStorage."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

from awsweeper.models.deletion_task import ErrorKind
from awsweeper.models.report import Report, RunMode
from awsweeper.models.run_result import RunResult, RunStatus
from awsweeper.sweep.audit import AuditStorage


def _report(run_id: str, started_at: datetime) -> Report:
    return Report(
        mode=RunMode.APPLY,
        results=(
            RunResult(resource_type="subnet", resource_id="subnet-1", status=RunStatus.DELETED, attempts=1),
            RunResult(
                resource_type="vpc",
                resource_id="vpc-1",
                status=RunStatus.FAILED,
                reason="retry budget exhausted",
                error_kind=ErrorKind.RETRY_EXHAUSTED,
                attempts=10,
                dependency_rank=6,
            ),
        ),
        list_errors=(("instance", "AccessDenied: nope"),),
        run_id=run_id,
        started_at=started_at,
        completed_at=started_at + timedelta(seconds=42),
        criteria={"subnet": "(all resources)", "vpc": "(all resources)"},
    )


class TestAuditStorage:
    """Test suite for AuditStorage."""

    @pytest.fixture
    def storage(self, tmp_path: Path) -> AuditStorage:
        """Create audit storage in a temporary directory."""
        return AuditStorage(storage_dir=str(tmp_path / "audit"))

    def test_log_report_layout(self, storage: AuditStorage) -> None:
        """Test that logs are stored under year/month."""
        started = datetime(2026, 3, 14, 12, 0, tzinfo=timezone.utc)

        audit_file = storage.log_report(_report("run_1", started), account_id="123456789012", region="us-east-1")

        assert audit_file == storage.storage_dir / "2026" / "03" / "run-run_1.yaml"
        assert audit_file.exists()

    def test_get_run(self, storage: AuditStorage) -> None:
        """Test reading a logged run back."""
        storage.log_report(_report("run_1", datetime(2026, 3, 14, tzinfo=timezone.utc)), region="us-east-1")

        data = storage.get_run("run_1")

        assert data["metadata"]["log_type"] == "sweep_run"
        assert data["run"]["mode"] == "apply"
        assert data["run"]["region"] == "us-east-1"
        assert data["run"]["duration_seconds"] == 42.0
        assert data["run"]["list_errors"] == {"instance": "AccessDenied: nope"}
        assert data["run"]["counts"]["failed"] == 1
        assert [r["id"] for r in data["results"]] == ["subnet-1", "vpc-1"]
        assert data["results"][1]["error_kind"] == "retry-exhausted"

    def test_get_missing_run(self, storage: AuditStorage) -> None:
        """Test lookup of an unknown run."""
        assert storage.get_run("run_missing") is None

    def test_query_runs_by_date(self, storage: AuditStorage) -> None:
        """Test filtering runs by start time."""
        storage.log_report(_report("run_jan", datetime(2026, 1, 10, tzinfo=timezone.utc)))
        storage.log_report(_report("run_feb", datetime(2026, 2, 10, tzinfo=timezone.utc)))
        storage.log_report(_report("run_mar", datetime(2026, 3, 10, tzinfo=timezone.utc)))

        runs = storage.query_runs(
            since=datetime(2026, 2, 1, tzinfo=timezone.utc),
            until=datetime(2026, 2, 28, tzinfo=timezone.utc),
        )

        assert [r["run"]["run_id"] for r in runs] == ["run_feb"]
        assert len(storage.query_runs()) == 3
