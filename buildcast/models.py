"""Data models consumed and produced by the forecasting engine."""

from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import Enum
from typing import Dict, List, Optional, Any
import json

from .utils import parse_date


class RiskLevel(Enum):
    """Schedule risk classification."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class DayReason(Enum):
    """Why a date is not a working day."""
    WEEKEND = "weekend"
    HOLIDAY = "holiday"


@dataclass
class Task:
    """A schedulable task as seen by the forecaster.

    ``duration`` is the estimated duration in working days and
    ``depends_on`` lists predecessor task ids in insertion order.
    """
    id: str
    duration: int
    progress: int = 0
    completed: bool = False
    depends_on: List[str] = field(default_factory=list)
    name: Optional[str] = None
    project_id: Optional[str] = None

    def with_duration(self, duration: int) -> 'Task':
        """Return a copy carrying a different duration."""
        return replace(self, duration=duration, depends_on=list(self.depends_on))


@dataclass(frozen=True)
class DependencyEdge:
    """``task_id`` depends on ``depends_on_id``; both in one project."""
    task_id: str
    depends_on_id: str


@dataclass(frozen=True)
class ProgressEntry:
    """Immutable progress update for a task."""
    timestamp: datetime
    progress: int
    task_id: Optional[str] = None


@dataclass(frozen=True)
class NonWorkingDay:
    """A date excluded from scheduling."""
    date: date
    reason: DayReason
    holiday_name: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {'date': self.date.isoformat(), 'reason': self.reason.value}
        if self.holiday_name:
            data['holiday_name'] = self.holiday_name
        return data


@dataclass
class Holiday:
    """A configured regional holiday."""
    region: str
    date: date
    name: str
    is_recurring: bool = False
    id: Optional[int] = None
    created_at: Optional[datetime] = None


@dataclass
class Project:
    """The slice of a project the forecaster needs."""
    id: str
    name: str
    owner_id: Optional[str] = None
    location: Optional[str] = None
    start_date: Optional[date] = None
    planned_completion_date: Optional[date] = None


@dataclass
class Forecast:
    """Derived completion forecast for a project at a point in time."""
    project_id: str
    estimated_completion_date: date
    risk_level: RiskLevel
    confidence: int
    explanation: str
    critical_path: List[str]
    total_estimated_days: int
    generated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert forecast to a JSON-friendly dictionary."""
        return {
            'project_id': self.project_id,
            'estimated_completion_date': self.estimated_completion_date.isoformat(),
            'risk_level': self.risk_level.value,
            'confidence': self.confidence,
            'explanation': self.explanation,
            'critical_path': list(self.critical_path),
            'total_estimated_days': self.total_estimated_days,
            'generated_at': self.generated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Forecast':
        """Create forecast from dictionary."""
        critical_path = data.get('critical_path') or []
        if isinstance(critical_path, str):
            critical_path = json.loads(critical_path)

        return cls(
            project_id=data['project_id'],
            estimated_completion_date=parse_date(data['estimated_completion_date']),
            risk_level=RiskLevel(data['risk_level']),
            confidence=int(data['confidence']),
            explanation=data['explanation'],
            critical_path=list(critical_path),
            total_estimated_days=int(data.get('total_estimated_days', 0)),
            generated_at=datetime.fromisoformat(data['generated_at']),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, payload: str) -> 'Forecast':
        return cls.from_dict(json.loads(payload))
