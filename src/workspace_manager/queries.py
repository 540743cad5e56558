"""Read-only projections over workspace tasks.

Every function here takes plain sequences of tasks and returns new
structures; nothing in this module mutates its input.
"""

from collections.abc import Iterable, Sequence
from dataclasses import dataclass
from datetime import date, datetime

from workspace_manager.models import TASK_STATUSES, Task


@dataclass
class GanttRow:
    """One bar of a gantt chart."""

    task_id: str
    title: str
    start: datetime
    end: datetime
    progress: float
    dependencies: list[str]


@dataclass
class ProjectStats:
    """Summary numbers for one project."""

    project_id: str
    total: int
    by_status: dict[str, int]
    completed: int
    average_progress: float

    @property
    def completion_rate(self) -> float:
        return self.completed / self.total if self.total else 0.0


def filter_tasks(
    tasks: Iterable[Task],
    project_id: str | None = None,
    status: str | None = None,
    priority: str | None = None,
    assignee: str | None = None,
    tag: str | None = None,
) -> list[Task]:
    """Tasks matching every criterion given; None means "any"."""
    result = []
    for task in tasks:
        if project_id is not None and task.project_id != project_id:
            continue
        if status is not None and task.status != status:
            continue
        if priority is not None and task.priority != priority:
            continue
        if assignee is not None and task.assignee != assignee:
            continue
        if tag is not None and tag not in task.tags:
            continue
        result.append(task)
    return result


def count_by_status(tasks: Iterable[Task]) -> dict[str, int]:
    """Number of tasks in each status, including statuses with none."""
    counts = dict.fromkeys(TASK_STATUSES, 0)
    for task in tasks:
        counts[task.status] = counts.get(task.status, 0) + 1
    return counts


def group_by_status(tasks: Iterable[Task]) -> dict[str, list[Task]]:
    """Kanban columns in status order, tasks in their original order."""
    columns: dict[str, list[Task]] = {status: [] for status in TASK_STATUSES}
    for task in tasks:
        columns.setdefault(task.status, []).append(task)
    return columns


def calendar_buckets(tasks: Iterable[Task], field: str = "due_date") -> dict[date, list[Task]]:
    """Tasks keyed by the calendar day of ``field``, days in ascending order.

    Tasks without a value for the field are left out.
    """
    if field not in ("due_date", "start_date"):
        raise ValueError(f"Unsupported date field: {field}")
    buckets: dict[date, list[Task]] = {}
    for task in tasks:
        value = getattr(task, field)
        if value is None:
            continue
        buckets.setdefault(value.date(), []).append(task)
    return dict(sorted(buckets.items()))


def gantt_rows(tasks: Iterable[Task]) -> list[GanttRow]:
    """Spans for a gantt chart, ordered by start.

    A task with only one of its dates gets a zero-length bar on that date; a
    task with neither is skipped. Reversed dates are kept as entered.
    """
    rows = []
    for task in tasks:
        start = task.start_date or task.due_date
        end = task.due_date or task.start_date
        if start is None or end is None:
            continue
        rows.append(
            GanttRow(
                task_id=task.id,
                title=task.title,
                start=start,
                end=end,
                progress=task.progress,
                dependencies=list(task.dependencies),
            )
        )
    rows.sort(key=lambda row: row.start)
    return rows


def project_stats(tasks: Iterable[Task], project_id: str) -> ProjectStats:
    """Counts and average progress for the tasks of one project."""
    members = filter_tasks(tasks, project_id=project_id)
    by_status = count_by_status(members)
    average = sum(task.progress for task in members) / len(members) if members else 0.0
    return ProjectStats(
        project_id=project_id,
        total=len(members),
        by_status=by_status,
        completed=by_status["done"],
        average_progress=average,
    )


def overdue_tasks(tasks: Iterable[Task], now: datetime) -> list[Task]:
    """Unfinished tasks whose due date has passed, most overdue first."""
    late = [task for task in tasks if task.due_date is not None and task.due_date < now and task.status != "done"]
    late.sort(key=lambda task: task.due_date)
    return late


def _strongly_connected(graph: dict[str, list[str]]) -> list[list[str]]:
    """Tarjan's algorithm with an explicit stack, so deep chains are fine."""
    index_of: dict[str, int] = {}
    low: dict[str, int] = {}
    stack: list[str] = []
    on_stack: set[str] = set()
    components: list[list[str]] = []

    def enter(node: str) -> None:
        index_of[node] = low[node] = len(index_of)
        stack.append(node)
        on_stack.add(node)

    for root in graph:
        if root in index_of:
            continue
        enter(root)
        work = [(root, iter(graph[root]))]
        while work:
            node, deps = work[-1]
            for dep in deps:
                if dep not in graph:
                    continue
                if dep not in index_of:
                    enter(dep)
                    work.append((dep, iter(graph[dep])))
                    break
                if dep in on_stack:
                    low[node] = min(low[node], index_of[dep])
            else:
                work.pop()
                if work:
                    parent = work[-1][0]
                    low[parent] = min(low[parent], low[node])
                if low[node] == index_of[node]:
                    component = []
                    while True:
                        member = stack.pop()
                        on_stack.discard(member)
                        component.append(member)
                        if member == node:
                            break
                    components.append(component)
    return components


def find_dependency_cycles(tasks: Sequence[Task]) -> list[list[str]]:
    """Groups of tasks that depend on each other in a circle.

    Each group is reported once, starting from its first task in input order
    and following dependencies from there; a task depending on itself is a
    group of one. Dependencies on unknown task ids are ignored.
    """
    graph = {task.id: list(task.dependencies) for task in tasks}
    order = {task_id: index for index, task_id in enumerate(graph)}
    cycles: list[list[str]] = []

    for component in _strongly_connected(graph):
        start = component[0]
        if len(component) == 1 and start not in graph[start]:
            continue
        members = set(component)
        start = min(component, key=order.__getitem__)
        path = [start]
        visited = {start}
        node = start
        while True:
            node = next((dep for dep in graph[node] if dep in members and dep not in visited), None)
            if node is None:
                break
            path.append(node)
            visited.add(node)
        path.extend(sorted(members - visited, key=order.__getitem__))
        cycles.append(path)

    cycles.sort(key=lambda cycle: order[cycle[0]])
    return cycles
