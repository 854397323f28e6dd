"""
Tests for Statistics

Tests covering:
1. Completion rate rounding
2. Overall counts for every status
3. Dashboard figures scoped to the caller's files
"""

from __future__ import annotations

import pytest

from core.exceptions import Forbidden
from core.schema import FileStatus
from core.stats import StatsService, completion_rate


@pytest.fixture
def stats(database):
    return StatsService(database)


@pytest.fixture
def workload(engine, staff, make_file, advance):
    """One completed file, one in data entry, one in validation, one for someone else."""
    completed = make_file()
    advance(completed, FileStatus.COMPLETED)
    entering = make_file()
    advance(entering, FileStatus.DATA_ENTRY)
    make_file()
    engine.create_file(
        staff.other_coordinator,
        {"property_address": "2 Hill Road", "owner_name": "Sita"},
        staff.other_validator.id, staff.other_key_in.id,
    )
    return staff


@pytest.mark.parametrize(
    "completed,total,expected",
    [(0, 0, 0), (1, 3, 33), (2, 3, 67), (1, 8, 13), (1, 200, 1), (1, 1, 100)],
)
def test_completion_rate(completed, total, expected):
    assert completion_rate(completed, total) == expected


class TestOverall:
    """System-wide counts."""

    def test_counts_every_status(self, stats, workload):
        result = stats.overall(workload.admin)
        assert result["total_files"] == 4
        assert result["total_users"] == 9
        assert result["completed_files"] == 1
        assert result["data_entry_files"] == 1
        assert result["validation_files"] == 2
        assert result["ready_to_print_files"] == 0
        assert result["on_hold_files"] == 0
        assert result["pending_files"] == 0

    def test_coordinator_allowed(self, stats, workload):
        assert stats.overall(workload.coordinator)["total_files"] == 4

    def test_validator_forbidden(self, stats, workload):
        with pytest.raises(Forbidden):
            stats.overall(workload.validator)


class TestDashboard:
    """Per-role figures over visible files."""

    def test_coordinator(self, stats, workload):
        result = stats.dashboard(workload.coordinator)
        assert result["total_assigned"] == 3
        assert result["pending_tasks"] == 0
        assert result["completion_rate"] == 33
        assert result["status_distribution"] == {
            "completed": 1, "data-entry": 1, "validation": 1,
        }
        assert result["recent_activity"] == 3

    def test_validator_pending_is_validation_work(self, stats, workload):
        result = stats.dashboard(workload.validator)
        assert result["total_assigned"] == 3
        assert result["pending_tasks"] == 1

    def test_key_in_pending_is_data_entry_work(self, stats, workload):
        assert stats.dashboard(workload.key_in)["pending_tasks"] == 1

    def test_empty_dashboard(self, stats, staff):
        result = stats.dashboard(staff.other_officer)
        assert result["total_assigned"] == 0
        assert result["completion_rate"] == 0
        assert result["status_distribution"] == {}
