"""Tests for Report model."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from awsweeper.models.report import Report, RunMode
from awsweeper.models.run_result import RunResult, RunStatus


def _result(resource_type: str, resource_id: str, status: RunStatus, rank: int = 0, reason=None) -> RunResult:
    return RunResult(
        resource_type=resource_type,
        resource_id=resource_id,
        status=status,
        reason=reason,
        dependency_rank=rank,
    )


class TestReport:
    """Test suite for Report."""

    def test_results_sorted_by_rank_type_id(self) -> None:
        """Test deterministic result ordering."""
        report = Report(
            mode=RunMode.APPLY,
            results=(
                _result("vpc", "vpc-1", RunStatus.DELETED, rank=6),
                _result("subnet", "subnet-b", RunStatus.DELETED, rank=5),
                _result("subnet", "subnet-a", RunStatus.DELETED, rank=5),
                _result("instance", "i-1", RunStatus.DELETED, rank=2),
            ),
        )

        assert report.matched() == [
            ("instance", "i-1"),
            ("subnet", "subnet-a"),
            ("subnet", "subnet-b"),
            ("vpc", "vpc-1"),
        ]

    def test_equality_ignores_run_identity(self) -> None:
        """Test that two runs over the same state compare equal."""
        now = datetime.now(timezone.utc)
        results = (_result("vpc", "vpc-1", RunStatus.SKIPPED_DRY_RUN),)

        first = Report(mode=RunMode.PLAN, results=results, run_id="run_a", started_at=now)
        second = Report(mode=RunMode.PLAN, results=results, run_id="run_b", started_at=now + timedelta(seconds=5))

        assert first == second

    def test_plan_report_only_skipped(self) -> None:
        """Test validation of plan reports."""
        with pytest.raises(ValueError, match="Plan report"):
            Report(mode=RunMode.PLAN, results=(_result("vpc", "vpc-1", RunStatus.DELETED),))

    def test_apply_report_no_skipped(self) -> None:
        """Test validation of apply reports."""
        with pytest.raises(ValueError, match="Apply report"):
            Report(mode=RunMode.APPLY, results=(_result("vpc", "vpc-1", RunStatus.SKIPPED_DRY_RUN),))

    def test_has_failures(self) -> None:
        """Test failure detection from results and listing errors."""
        clean = Report(mode=RunMode.APPLY, results=(_result("vpc", "vpc-1", RunStatus.ALREADY_GONE),))
        failed = Report(
            mode=RunMode.APPLY,
            results=(_result("vpc", "vpc-1", RunStatus.FAILED, reason="AccessDenied"),),
        )
        list_error = Report(mode=RunMode.PLAN, results=(), list_errors=(("subnet", "Throttling"),))

        assert not clean.has_failures
        assert failed.has_failures
        assert failed.failed[0].resource_id == "vpc-1"
        assert list_error.has_failures

    def test_counts(self) -> None:
        """Test counting results by status."""
        report = Report(
            mode=RunMode.APPLY,
            results=(
                _result("vpc", "vpc-1", RunStatus.DELETED),
                _result("vpc", "vpc-2", RunStatus.DELETED),
                _result("vpc", "vpc-3", RunStatus.FAILED, reason="x"),
            ),
        )

        assert report.counts() == {"deleted": 2, "already-gone": 0, "failed": 1, "skipped-dry-run": 0}

    def test_duration(self) -> None:
        """Test duration calculation."""
        start = datetime(2026, 1, 1, tzinfo=timezone.utc)
        report = Report(mode=RunMode.PLAN, results=(), started_at=start, completed_at=start + timedelta(seconds=3))

        assert report.duration_seconds == 3.0
        assert Report(mode=RunMode.PLAN, results=()).duration_seconds is None

    def test_to_dict(self) -> None:
        """Test serialization."""
        report = Report(
            mode=RunMode.PLAN,
            results=(_result("vpc", "vpc-1", RunStatus.SKIPPED_DRY_RUN),),
            list_errors=(("subnet", "Throttling: slow down"),),
            run_id="run_1",
            criteria={"vpc": "(all resources)"},
        )

        data = report.to_dict()

        assert data["run_id"] == "run_1"
        assert data["mode"] == "plan"
        assert data["list_errors"] == {"subnet": "Throttling: slow down"}
        assert data["results"][0]["status"] == "skipped-dry-run"
        assert data["counts"]["skipped-dry-run"] == 1
