"""Risk classification, confidence scoring and forecast explanations."""

import math
import statistics
from datetime import date
from typing import List, Optional, Sequence

from .models import ProgressEntry, RiskLevel, Task


class RiskAssessor:
    """Classify schedule risk and score forecast confidence."""

    HIGH_GAP_DAYS = 30
    MEDIUM_GAP_DAYS = 14

    def assess_risk(self, projected: date, planned: Optional[date],
                    tasks: Sequence[Task]) -> RiskLevel:
        """Classify risk from the schedule gap, then from task progress.

        Args:
            projected: Projected completion date
            planned: Planned completion date, if the project has one
            tasks: All project tasks with their current progress

        Returns:
            RiskLevel
        """
        if planned is None:
            return RiskLevel.MEDIUM

        gap = (projected - planned).days
        if gap > self.HIGH_GAP_DAYS:
            return RiskLevel.HIGH
        elif gap > self.MEDIUM_GAP_DAYS:
            return RiskLevel.MEDIUM

        incomplete = [task for task in tasks if not task.completed]
        if not incomplete:
            return RiskLevel.LOW

        mean_progress = statistics.mean(task.progress for task in incomplete)
        if mean_progress < 30 and len(incomplete) > 5:
            return RiskLevel.HIGH
        elif mean_progress < 50:
            return RiskLevel.MEDIUM

        return RiskLevel.LOW

    def calculate_confidence(self, history: Sequence[ProgressEntry],
                             tasks: Sequence[Task]) -> int:
        """Score confidence 0-100 from history depth and completed ratio."""
        confidence = 50

        if len(history) > 20:
            confidence += 30
        elif len(history) > 10:
            confidence += 20
        elif len(history) > 5:
            confidence += 10

        if tasks:
            completed_ratio = sum(1 for task in tasks if task.completed) / len(tasks)
            # Half up, so 2.5 scores 3
            confidence += math.floor(completed_ratio * 20 + 0.5)

        return max(0, min(100, confidence))

    def explain(self, projected: date, planned: Optional[date], risk: RiskLevel,
                confidence: int, critical_path: Sequence[str], total_days: int) -> str:
        """Build the human-readable explanation sentence sequence."""
        parts: List[str] = [f"Estimated completion: {projected.isoformat()}."]

        if planned is not None:
            delta = (projected - planned).days
            if delta > 0:
                parts.append(f"{delta} days later than planned.")
            elif delta < 0:
                parts.append(f"{abs(delta)} days ahead of plan.")
            else:
                parts.append("On schedule.")

        parts.append(f"Risk: {risk.value.upper()}.")
        parts.append(f"Critical path: {len(critical_path)} tasks, {total_days} working days.")
        parts.append(f"Confidence: {confidence}%.")

        return " ".join(parts)
