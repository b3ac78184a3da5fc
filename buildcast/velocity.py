"""Velocity-adjusted remaining-duration estimates."""

import math
import statistics
from typing import List, Sequence

from .models import ProgressEntry, Task


class VelocityAdjuster:
    """Scale remaining task durations by recent progress velocity.

    The multiplier is derived from the mean progress percentage of the
    most recent ``history_window`` updates and only applies once more
    than ``min_history`` updates exist.
    """

    def __init__(self, history_window: int = 10, min_history: int = 5):
        self.history_window = history_window
        self.min_history = min_history

    def velocity_multiplier(self, history: Sequence[ProgressEntry]) -> float:
        """Derive the velocity multiplier from oldest-first history."""
        if len(history) <= self.min_history:
            return 1.0

        recent = history[-self.history_window:]
        mean_progress = statistics.mean(entry.progress for entry in recent)

        if mean_progress < 30:
            return 1.3   # slow team, inflate
        elif mean_progress < 50:
            return 1.15
        elif mean_progress > 80:
            return 0.9   # fast team, deflate
        return 1.0

    def adjusted_duration(self, task: Task, multiplier: float) -> int:
        """Remaining working days for a single task."""
        if task.completed:
            return 0
        remaining = task.duration * multiplier * (1 - task.progress / 100)
        # Guard float noise such as 10 * 1.15 * 0.2 = 2.3000000000000003
        return max(0, math.ceil(round(remaining, 9)))

    def adjust(self, tasks: Sequence[Task], history: Sequence[ProgressEntry]) -> List[Task]:
        """Return new tasks with durations replaced by adjusted remaining days.

        The input tasks are left untouched so the raw durations remain
        available for critical path computation.
        """
        multiplier = self.velocity_multiplier(history)
        return [task.with_duration(self.adjusted_duration(task, multiplier)) for task in tasks]
