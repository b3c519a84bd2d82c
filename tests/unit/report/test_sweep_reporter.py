"""Tests for SweepReporter."""

from __future__ import annotations

import csv
import json
from pathlib import Path

import pytest

from awsweeper.models.deletion_task import ErrorKind
from awsweeper.models.report import Report, RunMode
from awsweeper.models.run_result import RunResult, RunStatus
from awsweeper.report.reporter import SweepReporter


@pytest.fixture
def apply_report() -> Report:
    """Create an apply report with mixed outcomes."""
    return Report(
        mode=RunMode.APPLY,
        results=(
            RunResult(
                resource_type="load-balancer",
                resource_id="lb-foo",
                status=RunStatus.DELETED,
                tags={"foo": "bar"},
                attempts=1,
                dependency_rank=1,
            ),
            RunResult(resource_type="subnet", resource_id="subnet-1", status=RunStatus.ALREADY_GONE, attempts=1),
            RunResult(
                resource_type="vpc",
                resource_id="vpc-1",
                status=RunStatus.FAILED,
                reason="retry budget exhausted after 10 attempts",
                error_kind=ErrorKind.RETRY_EXHAUSTED,
                attempts=10,
                dependency_rank=6,
            ),
        ),
        list_errors=(("instance", "AccessDenied: nope"),),
        run_id="run_123",
    )


class TestSweepReporter:
    """Test suite for SweepReporter."""

    def test_format_terminal(self, apply_report: Report) -> None:
        """Test terminal rendering includes every result."""
        output = SweepReporter().format_terminal(apply_report)

        assert "Deletion results" in output
        assert "lb-foo" in output
        assert "foo=bar" in output
        assert "already-gone" in output
        assert "failed" in output

    def test_format_terminal_empty(self) -> None:
        """Test rendering of a report without results."""
        output = SweepReporter().format_terminal(Report(mode=RunMode.PLAN, results=()))

        assert output == "No matching resources found."

    def test_plan_table_title(self) -> None:
        """Test the plan table title."""
        report = Report(
            mode=RunMode.PLAN,
            results=(RunResult(resource_type="vpc", resource_id="vpc-1", status=RunStatus.SKIPPED_DRY_RUN),),
        )

        assert SweepReporter().build_table(report).title == "Planned deletions"

    def test_generate_summary(self, apply_report: Report) -> None:
        """Test summary counts."""
        summary = SweepReporter().generate_summary(apply_report)

        assert summary == {
            "mode": "apply",
            "total": 3,
            "deleted_count": 1,
            "already_gone_count": 1,
            "failed_count": 1,
            "skipped_count": 0,
            "list_error_count": 1,
            "cancelled": False,
        }

    def test_export_json(self, apply_report: Report, tmp_path: Path) -> None:
        """Test JSON export."""
        output_file = tmp_path / "out" / "report.json"

        SweepReporter().export_json(apply_report, str(output_file))

        data = json.loads(output_file.read_text())
        assert data["run_id"] == "run_123"
        assert data["summary"]["failed_count"] == 1
        assert data["results"][0] == {
            "type": "load-balancer",
            "id": "lb-foo",
            "tags": {"foo": "bar"},
            "status": "deleted",
            "error": None,
            "error_kind": None,
            "attempts": 1,
        }

    def test_export_csv(self, apply_report: Report, tmp_path: Path) -> None:
        """Test CSV export."""
        output_file = tmp_path / "report.csv"

        SweepReporter().export_csv(apply_report, str(output_file))

        with open(output_file, newline="") as f:
            rows = list(csv.DictReader(f))

        assert [row["id"] for row in rows] == ["lb-foo", "subnet-1", "vpc-1"]
        assert rows[0]["tags"] == "foo=bar"
        assert rows[2]["status"] == "failed"
        assert rows[2]["error"].startswith("retry budget exhausted")
        assert rows[2]["attempts"] == "10"
