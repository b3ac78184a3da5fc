"""
SQLite-backed project store.
Provides tasks, dependencies, progress history and holidays to the
forecaster, and records every generated forecast.
"""

import sqlite3
import json
import uuid
from contextlib import contextmanager
from datetime import date, datetime
from pathlib import Path
from typing import Callable, Dict, List, Optional, Any, Iterable

import networkx as nx

from .exceptions import NotFound, ValidationError
from .forecast import ProjectRepository
from .models import DependencyEdge, Forecast, Holiday, ProgressEntry, Project, Task
from .utils import ensure_directory, logger, parse_date
from .work_calendar import HolidaySource

InvalidationListener = Callable[[str], None]

ADMIN_ROLE = "Admin"

SCHEMA = [
    """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        role TEXT NOT NULL DEFAULT 'Team_Member'
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS projects (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        owner_id TEXT,
        location TEXT,
        start_date TEXT,
        planned_completion_date TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS project_team_members (
        project_id TEXT NOT NULL,
        user_id TEXT NOT NULL,
        role TEXT,
        PRIMARY KEY (project_id, user_id),
        FOREIGN KEY (project_id) REFERENCES projects(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS tasks (
        id TEXT PRIMARY KEY,
        project_id TEXT NOT NULL,
        name TEXT NOT NULL,
        estimated_duration_days INTEGER NOT NULL,
        progress_percentage INTEGER NOT NULL DEFAULT 0,
        is_completed INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        FOREIGN KEY (project_id) REFERENCES projects(id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_dependencies (
        task_id TEXT NOT NULL,
        depends_on_task_id TEXT NOT NULL,
        created_by TEXT,
        created_at TEXT NOT NULL,
        PRIMARY KEY (task_id, depends_on_task_id),
        CHECK (task_id <> depends_on_task_id)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS task_progress_history (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        task_id TEXT NOT NULL,
        progress_percentage INTEGER NOT NULL
            CHECK (progress_percentage >= 0 AND progress_percentage <= 100),
        notes TEXT,
        updated_by TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS holidays (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        region TEXT NOT NULL,
        date TEXT NOT NULL,
        name TEXT NOT NULL,
        is_recurring INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        UNIQUE (region, date)
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS audit_logs (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        user_id TEXT,
        action TEXT NOT NULL,
        entity_type TEXT NOT NULL,
        entity_id TEXT,
        details TEXT,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS forecasts (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        project_id TEXT NOT NULL,
        estimated_completion_date TEXT NOT NULL,
        risk_level TEXT NOT NULL CHECK (risk_level IN ('low', 'medium', 'high')),
        confidence INTEGER NOT NULL CHECK (confidence >= 0 AND confidence <= 100),
        explanation TEXT NOT NULL,
        critical_path_task_ids TEXT NOT NULL,
        total_estimated_days INTEGER NOT NULL,
        generated_by TEXT,
        cache_expires_at TEXT,
        created_at TEXT NOT NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_tasks_project ON tasks(project_id)",
    "CREATE INDEX IF NOT EXISTS idx_history_task ON task_progress_history(task_id, created_at)",
    "CREATE INDEX IF NOT EXISTS idx_holidays_region_date ON holidays(region, date)",
    "CREATE INDEX IF NOT EXISTS idx_forecasts_project ON forecasts(project_id, created_at)",
]


class ProjectStore(ProjectRepository, HolidaySource):
    """Persistent storage for projects, tasks, holidays and forecasts."""

    def __init__(self, db_path: Optional[Path] = None):
        """Initialize project store.

        Args:
            db_path: Path to SQLite database file
        """
        if db_path is None:
            db_path = Path.home() / ".buildcast" / "buildcast.db"

        self.db_path = Path(db_path)
        ensure_directory(self.db_path.parent)
        self._listeners: List[InvalidationListener] = []

        self._init_database()

    def _init_database(self):
        """Initialize database schema."""
        with self._connect() as conn:
            for statement in SCHEMA:
                conn.execute(statement)

    @contextmanager
    def _connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    # -- invalidation -----------------------------------------------------

    def add_invalidation_listener(self, listener: InvalidationListener) -> None:
        """Register a callback run with the project id after every mutation."""
        self._listeners.append(listener)

    def _notify(self, project_id: str) -> None:
        for listener in self._listeners:
            try:
                listener(project_id)
            except Exception as e:
                logger.error(f"Invalidation listener failed for project {project_id}: {e}")

    # -- users and projects -----------------------------------------------

    def create_user(self, user_id: str, name: str, role: str = "Team_Member") -> None:
        with self._connect() as conn:
            conn.execute(
                "INSERT INTO users (id, name, role) VALUES (?, ?, ?)",
                (user_id, name, role)
            )

    def create_project(self, name: str, owner_id: Optional[str] = None,
                       location: Optional[str] = None,
                       start_date: Optional[date] = None,
                       planned_completion_date: Optional[date] = None,
                       project_id: Optional[str] = None) -> Project:
        project = Project(
            id=project_id or str(uuid.uuid4()),
            name=name,
            owner_id=owner_id,
            location=location,
            start_date=parse_date(start_date),
            planned_completion_date=parse_date(planned_completion_date)
        )

        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO projects (id, name, owner_id, location, start_date,
                                      planned_completion_date, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    project.id, project.name, project.owner_id, project.location,
                    _iso(project.start_date), _iso(project.planned_completion_date),
                    datetime.now().isoformat()
                )
            )

        logger.debug(f"Created project: {project.id} - {project.name}")
        return project

    def add_member(self, project_id: str, user_id: str, role: Optional[str] = None) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO project_team_members (project_id, user_id, role)
                VALUES (?, ?, ?)
                """,
                (project_id, user_id, role)
            )

    def get_project(self, project_id: str, user_id: str) -> Optional[Project]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT p.* FROM projects p
                WHERE p.id = ?
                AND (
                    p.owner_id = ?
                    OR EXISTS (SELECT 1 FROM project_team_members ptm
                               WHERE ptm.project_id = p.id AND ptm.user_id = ?)
                    OR EXISTS (SELECT 1 FROM users u WHERE u.id = ? AND u.role = ?)
                )
                """,
                (project_id, user_id, user_id, user_id, ADMIN_ROLE)
            ).fetchone()

        if row is None:
            return None

        return Project(
            id=row['id'],
            name=row['name'],
            owner_id=row['owner_id'],
            location=row['location'],
            start_date=parse_date(row['start_date']),
            planned_completion_date=parse_date(row['planned_completion_date'])
        )

    # -- tasks ------------------------------------------------------------

    def create_task(self, project_id: str, name: str, duration: int,
                    progress: int = 0, depends_on: Optional[Iterable[str]] = None,
                    task_id: Optional[str] = None,
                    user_id: Optional[str] = None) -> Task:
        """Create a task and its dependencies."""
        if duration < 0:
            raise ValidationError("Estimated duration must be non-negative")
        _check_progress(progress)

        task_id = task_id or str(uuid.uuid4())
        # Task row and edges commit together or not at all
        with self._connect() as conn:
            if not conn.execute("SELECT 1 FROM projects WHERE id = ?", (project_id,)).fetchone():
                raise NotFound(f"Project {project_id} not found")
            conn.execute(
                """
                INSERT INTO tasks (id, project_id, name, estimated_duration_days,
                                   progress_percentage, is_completed, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (task_id, project_id, name, duration, progress,
                 int(progress == 100), datetime.now().isoformat())
            )
            for dep_id in depends_on or []:
                self._insert_dependency(conn, task_id, dep_id, user_id)

        logger.info(f"Task created: {task_id} in project {project_id}")
        self._notify(project_id)
        return self.get_task(task_id)

    def get_task(self, task_id: str) -> Task:
        with self._connect() as conn:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (task_id,)).fetchone()
            if row is None:
                raise NotFound(f"Task {task_id} not found")
            deps = [
                r['depends_on_task_id'] for r in conn.execute(
                    "SELECT depends_on_task_id FROM task_dependencies "
                    "WHERE task_id = ? ORDER BY rowid",
                    (task_id,)
                )
            ]
        return _task_from_row(row, deps)

    def update_task(self, task_id: str, name: Optional[str] = None,
                    duration: Optional[int] = None) -> Task:
        """Update task name and/or estimated duration."""
        task = self.get_task(task_id)
        if duration is not None and duration < 0:
            raise ValidationError("Estimated duration must be non-negative")

        with self._connect() as conn:
            conn.execute(
                "UPDATE tasks SET name = ?, estimated_duration_days = ? WHERE id = ?",
                (
                    name if name is not None else task.name,
                    duration if duration is not None else task.duration,
                    task_id
                )
            )

        logger.info(f"Task updated: {task_id}")
        self._notify(task.project_id)
        return self.get_task(task_id)

    def delete_task(self, task_id: str) -> None:
        """Delete a task together with its edges and history."""
        task = self.get_task(task_id)
        with self._connect() as conn:
            conn.execute(
                "DELETE FROM task_dependencies WHERE task_id = ? OR depends_on_task_id = ?",
                (task_id, task_id)
            )
            conn.execute("DELETE FROM task_progress_history WHERE task_id = ?", (task_id,))
            conn.execute("DELETE FROM tasks WHERE id = ?", (task_id,))

        logger.info(f"Task deleted: {task_id}")
        self._notify(task.project_id)

    def tasks_for_project(self, project_id: str) -> List[Task]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM tasks WHERE project_id = ? ORDER BY rowid",
                (project_id,)
            ).fetchall()
            edges = conn.execute(
                """
                SELECT td.task_id, td.depends_on_task_id
                FROM task_dependencies td
                JOIN tasks t ON td.task_id = t.id
                WHERE t.project_id = ?
                ORDER BY td.rowid
                """,
                (project_id,)
            ).fetchall()

        deps: Dict[str, List[str]] = {}
        for edge in edges:
            deps.setdefault(edge['task_id'], []).append(edge['depends_on_task_id'])

        return [_task_from_row(row, deps.get(row['id'], [])) for row in rows]

    # -- dependencies -----------------------------------------------------

    def add_dependency(self, task_id: str, depends_on_id: str,
                       user_id: Optional[str] = None) -> DependencyEdge:
        """Record that ``task_id`` depends on ``depends_on_id``.

        Raises:
            ValidationError: self edge, duplicate, cross-project or cyclic edge
            NotFound: either task does not exist
        """
        with self._connect() as conn:
            project_id = self._insert_dependency(conn, task_id, depends_on_id, user_id)

        logger.info(f"Task dependency added: {task_id} -> {depends_on_id}")
        self._notify(project_id)
        return DependencyEdge(task_id, depends_on_id)

    def _insert_dependency(self, conn: sqlite3.Connection, task_id: str,
                           depends_on_id: str, user_id: Optional[str]) -> str:
        """Validate and insert one edge on an open connection; returns the project id."""
        if task_id == depends_on_id:
            raise ValidationError("A task cannot depend on itself")

        rows = conn.execute(
            "SELECT id, project_id FROM tasks WHERE id IN (?, ?)",
            (task_id, depends_on_id)
        ).fetchall()
        if len(rows) != 2:
            raise NotFound("One or both tasks not found")

        projects = {row['project_id'] for row in rows}
        if len(projects) != 1:
            raise ValidationError(
                "Tasks must belong to the same project to create a dependency"
            )
        project_id = projects.pop()

        exists = conn.execute(
            "SELECT 1 FROM task_dependencies WHERE task_id = ? AND depends_on_task_id = ?",
            (task_id, depends_on_id)
        ).fetchone()
        if exists:
            raise ValidationError("Dependency already exists")

        if self._would_create_cycle(conn, project_id, task_id, depends_on_id):
            raise ValidationError(
                "Cannot add dependency: would create a circular dependency"
            )

        conn.execute(
            """
            INSERT INTO task_dependencies (task_id, depends_on_task_id, created_by, created_at)
            VALUES (?, ?, ?, ?)
            """,
            (task_id, depends_on_id, user_id, datetime.now().isoformat())
        )
        return project_id

    def remove_dependency(self, task_id: str, depends_on_id: str) -> None:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT t.project_id FROM task_dependencies td
                JOIN tasks t ON td.task_id = t.id
                WHERE td.task_id = ? AND td.depends_on_task_id = ?
                """,
                (task_id, depends_on_id)
            ).fetchone()
            if row is None:
                raise NotFound("Dependency not found")
            conn.execute(
                "DELETE FROM task_dependencies WHERE task_id = ? AND depends_on_task_id = ?",
                (task_id, depends_on_id)
            )

        logger.info(f"Task dependency removed: {task_id} -> {depends_on_id}")
        self._notify(row['project_id'])

    def _would_create_cycle(self, conn: sqlite3.Connection, project_id: str,
                            task_id: str, depends_on_id: str) -> bool:
        graph = nx.DiGraph()
        graph.add_nodes_from([task_id, depends_on_id])
        graph.add_edges_from(
            (edge['task_id'], edge['depends_on_task_id'])
            for edge in conn.execute(
                """
                SELECT td.task_id, td.depends_on_task_id
                FROM task_dependencies td
                JOIN tasks t ON td.task_id = t.id
                WHERE t.project_id = ?
                """,
                (project_id,)
            )
        )
        # The new edge closes a cycle if depends_on already reaches task
        return nx.has_path(graph, depends_on_id, task_id)

    # -- progress ---------------------------------------------------------

    def update_progress(self, task_id: str, progress: int,
                        user_id: Optional[str] = None, notes: Optional[str] = None,
                        timestamp: Optional[datetime] = None) -> ProgressEntry:
        """Set task progress and append a history entry."""
        _check_progress(progress)
        task = self.get_task(task_id)
        timestamp = timestamp or datetime.now()

        with self._connect() as conn:
            conn.execute(
                "UPDATE tasks SET progress_percentage = ?, is_completed = ? WHERE id = ?",
                (progress, int(progress == 100), task_id)
            )
            conn.execute(
                """
                INSERT INTO task_progress_history (task_id, progress_percentage, notes,
                                                   updated_by, created_at)
                VALUES (?, ?, ?, ?, ?)
                """,
                (task_id, progress, notes, user_id, timestamp.isoformat())
            )

        logger.info(f"Task progress updated: {task_id} -> {progress}%")
        self._notify(task.project_id)
        return ProgressEntry(timestamp=timestamp, progress=progress, task_id=task_id)

    def progress_history(self, project_id: str) -> List[ProgressEntry]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT tph.task_id, tph.progress_percentage, tph.created_at
                FROM task_progress_history tph
                JOIN tasks t ON tph.task_id = t.id
                WHERE t.project_id = ?
                ORDER BY tph.created_at ASC, tph.id ASC
                """,
                (project_id,)
            ).fetchall()

        return [
            ProgressEntry(
                timestamp=datetime.fromisoformat(row['created_at']),
                progress=row['progress_percentage'],
                task_id=row['task_id']
            )
            for row in rows
        ]

    # -- holidays ---------------------------------------------------------

    def configure_holidays(self, region: str, holidays: List[Dict[str, Any]],
                           user_id: Optional[str] = None) -> List[int]:
        """Insert or update holidays for a region.

        Args:
            region: Region identifier
            holidays: Dicts with ``date``, ``name`` and optional ``is_recurring``
            user_id: User performing the change, for the audit log

        Returns:
            Ids of the created or updated holidays
        """
        if not region or not region.strip():
            raise ValidationError("Region is required")
        if not holidays:
            raise ValidationError("At least one holiday must be provided")

        for holiday in holidays:
            if not (holiday.get('name') or '').strip():
                raise ValidationError("Holiday name is required")
            if not holiday.get('date'):
                raise ValidationError("Holiday date is required")

        ids = []
        with self._connect() as conn:
            for holiday in holidays:
                holiday_date = parse_date(holiday['date']).isoformat()
                conn.execute(
                    """
                    INSERT INTO holidays (region, date, name, is_recurring, created_at)
                    VALUES (?, ?, ?, ?, ?)
                    ON CONFLICT (region, date) DO UPDATE SET
                        name = excluded.name,
                        is_recurring = excluded.is_recurring,
                        created_at = excluded.created_at
                    """,
                    (region, holiday_date, holiday['name'].strip(),
                     int(bool(holiday.get('is_recurring', False))),
                     datetime.now().isoformat())
                )
                row = conn.execute(
                    "SELECT id FROM holidays WHERE region = ? AND date = ?",
                    (region, holiday_date)
                ).fetchone()
                ids.append(row['id'])

            self._audit(conn, user_id, 'configure_holidays', 'holidays', region,
                        {'region': region, 'count': len(holidays)})

        logger.info(f"Configured {len(holidays)} holidays for region {region}")
        return ids

    def holidays_for_region(self, region: str, start: date, end: date) -> List[Holiday]:
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM holidays
                WHERE region = ? AND date BETWEEN ? AND ?
                ORDER BY date ASC
                """,
                (region, start.isoformat(), end.isoformat())
            ).fetchall()
        return [_holiday_from_row(row) for row in rows]

    def all_holidays_for_region(self, region: str) -> List[Holiday]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT * FROM holidays WHERE region = ? ORDER BY date ASC",
                (region,)
            ).fetchall()
        return [_holiday_from_row(row) for row in rows]

    def delete_holiday(self, holiday_id: int, user_id: Optional[str] = None) -> None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT region, date, name FROM holidays WHERE id = ?",
                (holiday_id,)
            ).fetchone()
            if row is None:
                raise NotFound(f"Holiday {holiday_id} not found")

            conn.execute("DELETE FROM holidays WHERE id = ?", (holiday_id,))
            self._audit(conn, user_id, 'delete_holiday', 'holidays', str(holiday_id),
                        {'region': row['region'], 'date': row['date'], 'name': row['name']})

        logger.info(f"Deleted holiday {holiday_id}")

    def configured_regions(self) -> List[str]:
        with self._connect() as conn:
            rows = conn.execute(
                "SELECT DISTINCT region FROM holidays ORDER BY region ASC"
            ).fetchall()
        return [row['region'] for row in rows]

    def _audit(self, conn: sqlite3.Connection, user_id: Optional[str], action: str,
               entity_type: str, entity_id: str, details: Dict[str, Any]) -> None:
        conn.execute(
            """
            INSERT INTO audit_logs (user_id, action, entity_type, entity_id, details, created_at)
            VALUES (?, ?, ?, ?, ?, ?)
            """,
            (user_id, action, entity_type, entity_id, json.dumps(details),
             datetime.now().isoformat())
        )

    # -- forecasts --------------------------------------------------------

    def store_forecast(self, forecast: Forecast, user_id: str,
                       cache_expires_at: Optional[datetime] = None) -> None:
        with self._connect() as conn:
            conn.execute(
                """
                INSERT INTO forecasts (project_id, estimated_completion_date, risk_level,
                                       confidence, explanation, critical_path_task_ids,
                                       total_estimated_days, generated_by,
                                       cache_expires_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    forecast.project_id,
                    forecast.estimated_completion_date.isoformat(),
                    forecast.risk_level.value,
                    forecast.confidence,
                    forecast.explanation,
                    json.dumps(forecast.critical_path),
                    forecast.total_estimated_days,
                    user_id,
                    cache_expires_at.isoformat() if cache_expires_at else None,
                    forecast.generated_at.isoformat()
                )
            )

    def forecast_history(self, project_id: str, limit: int = 20) -> List[Forecast]:
        """Return persisted forecasts for a project, newest first."""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM forecasts WHERE project_id = ?
                ORDER BY created_at DESC, id DESC
                LIMIT ?
                """,
                (project_id, limit)
            ).fetchall()

        return [
            Forecast.from_dict({
                'project_id': row['project_id'],
                'estimated_completion_date': row['estimated_completion_date'],
                'risk_level': row['risk_level'],
                'confidence': row['confidence'],
                'explanation': row['explanation'],
                'critical_path': row['critical_path_task_ids'],
                'total_estimated_days': row['total_estimated_days'],
                'generated_at': row['created_at'],
            })
            for row in rows
        ]


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


def _check_progress(progress: int) -> None:
    if progress < 0 or progress > 100:
        raise ValidationError("Progress percentage must be between 0 and 100")


def _task_from_row(row: sqlite3.Row, deps: List[str]) -> Task:
    return Task(
        id=row['id'],
        name=row['name'],
        project_id=row['project_id'],
        duration=row['estimated_duration_days'],
        progress=row['progress_percentage'],
        completed=bool(row['is_completed']),
        depends_on=list(deps)
    )


def _holiday_from_row(row: sqlite3.Row) -> Holiday:
    return Holiday(
        id=row['id'],
        region=row['region'],
        date=parse_date(row['date']),
        name=row['name'],
        is_recurring=bool(row['is_recurring']),
        created_at=datetime.fromisoformat(row['created_at'])
    )
