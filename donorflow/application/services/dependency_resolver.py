"""Dependency resolution over a status snapshot.

Pure functions: callers fetch the snapshot, these decide. A dependency id
missing from the snapshot (deleted or never existed) counts as unsatisfied,
so a task can never be released by a dangling reference.
"""

from collections.abc import Iterable, Mapping, Sequence

from donorflow.domain.entities.task import Task
from donorflow.domain.enums import TaskStatus


def unsatisfied_dependencies(
    task: Task, status_by_id: Mapping[str, TaskStatus]
) -> list[str]:
    """Dependency ids of `task` that are not completed in the snapshot."""
    return [
        dep_id
        for dep_id in task.dependencies
        if status_by_id.get(dep_id) is not TaskStatus.COMPLETED
    ]


def is_satisfied(task: Task, status_by_id: Mapping[str, TaskStatus]) -> bool:
    """True iff the task has no dependencies or all of them are completed."""
    return not unsatisfied_dependencies(task, status_by_id)


def initial_status(dependencies: Sequence[str]) -> TaskStatus:
    """Status a freshly instantiated task starts in."""
    return TaskStatus.BLOCKED if dependencies else TaskStatus.PENDING


def find_violations(tasks: Iterable[Task]) -> list[str]:
    """Ids of tasks past `blocked` while some dependency is not completed.

    Completed tasks are exempt: a dependency may legitimately be reopened
    only by a reset, which replaces the whole task set.
    """
    task_list = list(tasks)
    snapshot = {t.id: t.status for t in task_list}
    return [
        t.id
        for t in task_list
        if t.status in (TaskStatus.PENDING, TaskStatus.IN_PROGRESS)
        and not is_satisfied(t, snapshot)
    ]
