"""Forecast orchestration: cache check, pipeline run, persistence and caching."""

import threading
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from .cache import ForecastCache
from .critical_path import CriticalPathCalculator
from .exceptions import NotFound, ValidationError
from .models import Forecast, ProgressEntry, Project, Task
from .projection import CompletionProjector
from .risk import RiskAssessor
from .utils import logger
from .velocity import VelocityAdjuster
from .work_calendar import CalendarOracle


class ProjectRepository(ABC):
    """Data source the orchestrator reads projects and tasks from."""

    @abstractmethod
    def get_project(self, project_id: str, user_id: str) -> Optional[Project]:
        """Return the project if it exists and ``user_id`` may access it."""

    @abstractmethod
    def tasks_for_project(self, project_id: str) -> List[Task]:
        """Return all tasks of a project with their dependency ids."""

    @abstractmethod
    def progress_history(self, project_id: str) -> List[ProgressEntry]:
        """Return progress updates for the project's tasks, oldest first."""

    @abstractmethod
    def store_forecast(self, forecast: Forecast, user_id: str,
                       cache_expires_at: Optional[datetime] = None) -> None:
        """Append a forecast to the persisted forecast log."""


class ForecastService:
    """Entry point for generating and invalidating project forecasts."""

    def __init__(
        self,
        repository: ProjectRepository,
        calendar: Optional[CalendarOracle] = None,
        cache: Optional[ForecastCache] = None,
        path_calculator: Optional[CriticalPathCalculator] = None,
        adjuster: Optional[VelocityAdjuster] = None,
        assessor: Optional[RiskAssessor] = None,
        single_flight: bool = True
    ):
        """Initialize the forecast service.

        Args:
            repository: Project/task data source and forecast log
            calendar: Working-day calendar; defaults to weekends only
            cache: Forecast cache; defaults to an in-memory cache
            path_calculator: Critical path calculator
            adjuster: Velocity adjuster
            assessor: Risk and confidence assessor
            single_flight: Serialize cache-miss computation per project
        """
        self.repository = repository
        self.calendar = calendar or CalendarOracle()
        self.cache = cache or ForecastCache()
        self.path_calculator = path_calculator or CriticalPathCalculator()
        self.adjuster = adjuster or VelocityAdjuster()
        self.assessor = assessor or RiskAssessor()
        self.projector = CompletionProjector(self.calendar)
        self.single_flight = single_flight

        self._locks: Dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    def generate_forecast(self, project_id: str, user_id: str) -> Forecast:
        """Return the current forecast for a project.

        Args:
            project_id: Project to forecast
            user_id: Requesting user, checked for project access

        Returns:
            Cached forecast if fresh, otherwise a newly computed one

        Raises:
            NotFound: project missing or not accessible to the user
            ValidationError: project has no tasks
            GraphCycleError: task dependencies cannot be resolved
        """
        project = self.repository.get_project(project_id, user_id)
        if project is None:
            raise NotFound(f"Project {project_id} not found")

        cached = self.cache.get(project_id)
        if cached is not None:
            logger.info(f"Returning cached forecast for project {project_id}")
            return cached

        if not self.single_flight:
            return self._compute(project, user_id)

        with self._lock_for(project_id):
            # Another request may have filled the cache while we waited
            cached = self.cache.get(project_id)
            if cached is not None:
                logger.info(f"Returning cached forecast for project {project_id}")
                return cached
            return self._compute(project, user_id)

    def invalidate_forecast(self, project_id: str) -> None:
        """Mark the project's forecast stale. Never raises."""
        try:
            if self.cache.invalidate(project_id):
                logger.info(f"Forecast cache invalidated for project {project_id}")
        except Exception as e:
            logger.error(f"Failed to invalidate forecast for project {project_id}: {e}")

    def _compute(self, project: Project, user_id: str) -> Forecast:
        tasks = self.repository.tasks_for_project(project.id)
        if not tasks:
            raise ValidationError(f"Project {project.id} has no tasks to forecast")

        # Path shape comes from raw durations, date math from adjusted ones
        critical_path = self.path_calculator.calculate(tasks)
        history = self.repository.progress_history(project.id)
        adjusted = self.adjuster.adjust(tasks, history)

        projection = self.projector.project(
            critical_path.task_ids,
            adjusted,
            start_date=project.start_date,
            region=project.location
        )

        planned = project.planned_completion_date
        risk = self.assessor.assess_risk(projection.completion_date, planned, tasks)
        confidence = self.assessor.calculate_confidence(history, tasks)
        explanation = self.assessor.explain(
            projection.completion_date,
            planned,
            risk,
            confidence,
            critical_path.task_ids,
            projection.total_working_days
        )

        forecast = Forecast(
            project_id=project.id,
            estimated_completion_date=projection.completion_date,
            risk_level=risk,
            confidence=confidence,
            explanation=explanation,
            critical_path=list(critical_path.task_ids),
            total_estimated_days=projection.total_working_days,
            generated_at=datetime.now()
        )

        expires_at = forecast.generated_at + timedelta(seconds=self.cache.ttl)
        self.repository.store_forecast(forecast, user_id, cache_expires_at=expires_at)
        self.cache.set(forecast)

        logger.info(
            f"Generated forecast for project {project.id}: "
            f"{forecast.estimated_completion_date.isoformat()} "
            f"(risk={risk.value}, confidence={confidence}%)"
        )
        return forecast

    def _lock_for(self, project_id: str) -> threading.Lock:
        with self._locks_guard:
            lock = self._locks.get(project_id)
            if lock is None:
                lock = self._locks[project_id] = threading.Lock()
            return lock
