"""Tests for critical path computation."""

import pytest

from buildcast.critical_path import CriticalPathCalculator, calculate_critical_path
from buildcast.exceptions import GraphCycleError
from buildcast.models import Task


class TestCriticalPathCalculator:
    """Test the longest-path relaxation over task graphs."""

    @pytest.fixture
    def calculator(self):
        return CriticalPathCalculator()

    def test_empty_task_list(self, calculator):
        """No tasks yields an empty path."""
        result = calculator.calculate([])
        assert result.task_ids == []
        assert result.total_duration == 0
        assert len(result) == 0

    def test_linear_chain(self, calculator):
        """A(5) -> B(10) -> C(7) is the whole path."""
        tasks = [
            Task(id="A", duration=5),
            Task(id="B", duration=10, depends_on=["A"]),
            Task(id="C", duration=7, depends_on=["B"]),
        ]
        result = calculator.calculate(tasks)

        assert result.task_ids == ["A", "B", "C"]
        assert result.total_duration == 22
        assert list(result) == ["A", "B", "C"]

    def test_diamond_takes_longer_branch(self, calculator):
        tasks = [
            Task(id="A", duration=2),
            Task(id="B", duration=5, depends_on=["A"]),
            Task(id="C", duration=3, depends_on=["A"]),
            Task(id="D", duration=1, depends_on=["B", "C"]),
        ]
        result = calculator.calculate(tasks)

        assert result.task_ids == ["A", "B", "D"]
        assert result.total_duration == 8
        assert result.longest_path["C"] == 5

    def test_independent_tasks_pick_longest(self, calculator):
        """Without dependencies the path is the single longest task."""
        tasks = [
            Task(id="short", duration=2),
            Task(id="long", duration=9),
            Task(id="medium", duration=4),
        ]
        result = calculator.calculate(tasks)

        assert result.task_ids == ["long"]
        assert result.total_duration == 9

    def test_ties_resolved_by_input_order(self, calculator):
        tasks = [
            Task(id="first", duration=3),
            Task(id="second", duration=3),
        ]
        assert calculator.calculate(tasks).task_ids == ["first"]

        tasks.reverse()
        assert calculator.calculate(tasks).task_ids == ["second"]

    def test_equal_branches_keep_first_predecessor(self, calculator):
        tasks = [
            Task(id="A", duration=2),
            Task(id="B", duration=3, depends_on=["A"]),
            Task(id="C", duration=3, depends_on=["A"]),
            Task(id="D", duration=1, depends_on=["B", "C"]),
        ]
        assert calculator.calculate(tasks).task_ids == ["A", "B", "D"]

    def test_total_matches_longest_source_to_sink(self, calculator):
        """Total equals the maximum sum over all source-to-sink paths."""
        tasks = [
            Task(id="foundation", duration=10),
            Task(id="framing", duration=15, depends_on=["foundation"]),
            Task(id="plumbing", duration=8, depends_on=["framing"]),
            Task(id="electrical", duration=12, depends_on=["framing"]),
            Task(id="permits", duration=30),
            Task(id="drywall", duration=6, depends_on=["plumbing", "electrical"]),
            Task(id="inspection", duration=2, depends_on=["drywall", "permits"]),
        ]
        result = calculator.calculate(tasks)

        # foundation 10 + framing 15 + electrical 12 + drywall 6 + inspection 2
        assert result.total_duration == 45
        assert result.task_ids == [
            "foundation", "framing", "electrical", "drywall", "inspection"
        ]

    def test_duplicate_dependencies_are_ignored(self, calculator):
        tasks = [
            Task(id="A", duration=4),
            Task(id="B", duration=6, depends_on=["A", "A"]),
        ]
        result = calculator.calculate(tasks)
        assert result.task_ids == ["A", "B"]
        assert result.total_duration == 10

    def test_cycle_raises(self, calculator):
        tasks = [
            Task(id="root", duration=1),
            Task(id="A", duration=2, depends_on=["B"]),
            Task(id="B", duration=3, depends_on=["A"]),
        ]
        with pytest.raises(GraphCycleError) as exc_info:
            calculator.calculate(tasks)

        assert set(exc_info.value.unresolved) == {"A", "B"}
        assert exc_info.value.http_status == 500

    def test_dangling_dependency_raises(self, calculator):
        tasks = [Task(id="A", duration=2, depends_on=["missing"])]
        with pytest.raises(GraphCycleError):
            calculator.calculate(tasks)

    def test_all_zero_durations_yield_empty_path(self, calculator):
        tasks = [
            Task(id="A", duration=0),
            Task(id="B", duration=0, depends_on=["A"]),
        ]
        result = calculator.calculate(tasks)
        assert result.task_ids == []
        assert result.total_duration == 0

    def test_inputs_not_modified(self, calculator):
        tasks = [
            Task(id="A", duration=5),
            Task(id="B", duration=10, depends_on=["A"]),
        ]
        calculator.calculate(tasks)

        assert tasks[0].duration == 5
        assert tasks[1].depends_on == ["A"]

    def test_convenience_wrapper(self):
        tasks = [Task(id="A", duration=5), Task(id="B", duration=1, depends_on=["A"])]
        assert calculate_critical_path(tasks).task_ids == ["A", "B"]
