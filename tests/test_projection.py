"""Tests for completion date projection."""

from datetime import date

from buildcast.models import Holiday, Task
from buildcast.projection import CompletionProjector
from buildcast.work_calendar import CalendarOracle, StaticHolidaySource


class TestCompletionProjector:
    """Test walking the critical path through the calendar."""

    def test_walks_path_in_order(self):
        projector = CompletionProjector(CalendarOracle())
        tasks = [Task(id="A", duration=2), Task(id="B", duration=3)]

        result = projector.project(["A", "B"], tasks, start_date=date(2024, 1, 1))

        # Mon + 2 -> Wed, Wed + 3 -> next Mon
        assert result.completion_date == date(2024, 1, 8)
        assert result.total_working_days == 5

    def test_zero_duration_does_not_move_cursor(self):
        projector = CompletionProjector(CalendarOracle())
        tasks = [
            Task(id="done", duration=0, completed=True),
            Task(id="B", duration=1),
        ]

        result = projector.project(["done", "B"], tasks, start_date=date(2024, 1, 5))

        assert result.completion_date == date(2024, 1, 8)
        assert result.total_working_days == 1

    def test_missing_task_skipped(self):
        projector = CompletionProjector(CalendarOracle())

        result = projector.project(["ghost"], [], start_date=date(2024, 1, 1))

        assert result.completion_date == date(2024, 1, 1)
        assert result.total_working_days == 0

    def test_region_holidays_push_completion(self):
        source = StaticHolidaySource([
            Holiday(region="AT", date=date(2024, 1, 2), name="Closure"),
        ])
        projector = CompletionProjector(CalendarOracle(source))
        tasks = [Task(id="A", duration=1)]

        assert projector.project(
            ["A"], tasks, start_date=date(2024, 1, 1), region="AT"
        ).completion_date == date(2024, 1, 3)
        assert projector.project(
            ["A"], tasks, start_date=date(2024, 1, 1)
        ).completion_date == date(2024, 1, 2)

    def test_defaults_to_today(self):
        projector = CompletionProjector(CalendarOracle())

        result = projector.project([], [])

        assert result.completion_date == date.today()
