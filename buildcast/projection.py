"""Walk the critical path through the working-day calendar."""

from dataclasses import dataclass
from datetime import date
from typing import Optional, Sequence

from .models import Task
from .work_calendar import CalendarOracle


@dataclass
class Projection:
    """Projected completion date and the working days it took to get there."""
    completion_date: date
    total_working_days: int


class CompletionProjector:
    """Project a completion date from adjusted durations along the critical path."""

    def __init__(self, calendar: CalendarOracle):
        self.calendar = calendar

    def project(self, critical_path: Sequence[str], adjusted_tasks: Sequence[Task],
                start_date: Optional[date] = None,
                region: Optional[str] = None) -> Projection:
        """Advance a cursor from ``start_date`` by each critical task's adjusted duration.

        Tasks with zero adjusted duration do not move the cursor. Ids on
        the path that are missing from ``adjusted_tasks`` are skipped.
        """
        by_id = {task.id: task for task in adjusted_tasks}
        cursor = start_date or date.today()
        total = 0

        for task_id in critical_path:
            task = by_id.get(task_id)
            if task is None or task.duration <= 0:
                continue
            cursor = self.calendar.add_working_days(cursor, task.duration, region)
            total += task.duration

        return Projection(completion_date=cursor, total_working_days=total)
