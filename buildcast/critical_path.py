"""Critical path computation over a project's task-dependency graph."""

from collections import deque
from dataclasses import dataclass, field
from typing import Dict, List, Sequence

from .exceptions import GraphCycleError
from .models import Task
from .utils import logger


@dataclass
class CriticalPath:
    """Longest dependency chain by cumulative duration."""
    task_ids: List[str] = field(default_factory=list)
    total_duration: int = 0
    longest_path: Dict[str, int] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.task_ids)

    def __iter__(self):
        return iter(self.task_ids)


class CriticalPathCalculator:
    """Topological longest-path relaxation (Kahn's algorithm).

    Ties are resolved by input order: the ready queue is FIFO, a
    predecessor is only replaced by a strictly longer candidate, and
    the end of the path is the first task (in input order) holding
    the maximum value.
    """

    def calculate(self, tasks: Sequence[Task]) -> CriticalPath:
        """Compute the critical path for one project's tasks.

        Args:
            tasks: Tasks with raw (unadjusted) durations

        Returns:
            CriticalPath ordered start to finish

        Raises:
            GraphCycleError: if some tasks never become ready
        """
        if not tasks:
            return CriticalPath()

        duration: Dict[str, int] = {}
        in_degree: Dict[str, int] = {}
        longest: Dict[str, int] = {}
        predecessor: Dict[str, str] = {}
        dependents: Dict[str, List[str]] = {task.id: [] for task in tasks}

        for task in tasks:
            deps = list(dict.fromkeys(task.depends_on))
            duration[task.id] = task.duration
            in_degree[task.id] = len(deps)
            longest[task.id] = 0
            for dep_id in deps:
                dependents.setdefault(dep_id, []).append(task.id)

        queue = deque()
        for task in tasks:
            if in_degree[task.id] == 0:
                queue.append(task.id)
                longest[task.id] = task.duration

        # Every task is dequeued at most once in a DAG
        max_iterations = len(tasks)
        processed = 0

        while queue:
            if processed >= max_iterations:
                break
            current = queue.popleft()
            processed += 1

            for dependent in dependents.get(current, []):
                candidate = longest[current] + duration[dependent]
                if candidate > longest[dependent]:
                    longest[dependent] = candidate
                    predecessor[dependent] = current

                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    queue.append(dependent)

        unresolved = [task_id for task_id, degree in in_degree.items() if degree > 0]
        if unresolved or processed < len(tasks):
            logger.error(
                f"Dependency graph invariant breach: {len(unresolved)} task(s) "
                f"could not be scheduled (cycle or dangling dependency): {unresolved}"
            )
            raise GraphCycleError(
                f"Dependency graph contains a cycle involving {len(unresolved)} task(s)",
                unresolved=unresolved
            )

        end_task = None
        max_length = 0
        for task in tasks:
            if longest[task.id] > max_length:
                max_length = longest[task.id]
                end_task = task.id

        path = []
        current = end_task
        while current:
            path.append(current)
            current = predecessor.get(current)
        path.reverse()

        return CriticalPath(task_ids=path, total_duration=max_length, longest_path=longest)


def calculate_critical_path(tasks: Sequence[Task]) -> CriticalPath:
    """Convenience wrapper around ``CriticalPathCalculator``."""
    return CriticalPathCalculator().calculate(tasks)
