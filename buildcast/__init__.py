"""
Buildcast: construction project completion forecasting.

Computes the critical path of a project's task graph, adjusts remaining
durations by recent progress velocity, walks the working-day calendar
and reports a completion date with risk and confidence.
"""

__version__ = "1.0.0"
__license__ = "MIT"

from .exceptions import BuildcastError, NotFound, ValidationError, GraphCycleError, CacheError
from .models import Task, ProgressEntry, Holiday, Project, Forecast, RiskLevel
from .work_calendar import CalendarOracle
from .critical_path import CriticalPathCalculator
from .velocity import VelocityAdjuster
from .projection import CompletionProjector
from .risk import RiskAssessor
from .cache import ForecastCache, MemoryCacheBackend
from .forecast import ForecastService

__all__ = [
    "BuildcastError", "NotFound", "ValidationError", "GraphCycleError", "CacheError",
    "Task", "ProgressEntry", "Holiday", "Project", "Forecast", "RiskLevel",
    "CalendarOracle", "CriticalPathCalculator", "VelocityAdjuster",
    "CompletionProjector", "RiskAssessor", "ForecastCache", "MemoryCacheBackend",
    "ForecastService",
]
