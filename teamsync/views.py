from collections.abc import Iterable
from dataclasses import dataclass
from typing import Optional

from teamsync.model import EntityModel, Task
from teamsync.utils import StrEnum


ALL = 'all'
UNASSIGNED = 'Unassigned'
NO_PROJECT = 'No Project'
DONE_STATUS = 'done'
IMPORTANT_PRIORITIES = ('critical', 'high')
# number of earliest distinct due dates considered urgent
NUM_URGENT_DATES = 2


class GroupBy(StrEnum):
    """Task attribute by which board columns are formed."""
    status = 'status'
    priority = 'priority'
    assignee = 'assignee'
    project = 'project'

    @property
    def task_field(self) -> str:
        """Gets the name of the task field holding the group's ID."""
        return f'{self.value}_id'


@dataclass(frozen=True)
class Column:
    """A board column: tasks whose grouping field equals the column ID belong to it."""
    id: str
    title: str


def columns(model: EntityModel, group_by: GroupBy) -> list[Column]:
    """Gets the board columns for a grouping.
    Grouping by assignee or project ends with a column (with empty ID) for tasks having none."""
    if group_by == GroupBy.status:
        return [Column(s.id, s.name) for s in model.statuses]
    if group_by == GroupBy.priority:
        return [Column(p.id, p.name) for p in model.priorities]
    if group_by == GroupBy.assignee:
        return [Column(u.id, u.name) for u in model.users] + [Column('', UNASSIGNED)]
    return [Column(p.id, p.name) for p in model.projects] + [Column('', NO_PROJECT)]


def group_tasks(model: EntityModel, group_by: GroupBy, tasks: Optional[Iterable[Task]] = None) -> list[tuple[Column, list[Task]]]:
    """Partitions tasks into board columns, preserving task order within each column.
    Tasks whose grouping field matches no column are omitted."""
    tasks = model.tasks if (tasks is None) else list(tasks)
    fld = group_by.task_field
    return [(col, [task for task in tasks if getattr(task, fld) == col.id]) for col in columns(model, group_by)]


def move_changes(group_by: GroupBy, column_id: str) -> dict[str, str]:
    """Gets the field changes to apply to a task moved into a column."""
    return {group_by.task_field: column_id}


@dataclass
class TaskFilter:
    """Filter on tasks. A constraint of None or 'all' matches anything."""
    project: Optional[str] = None
    assignee: Optional[str] = None
    status: Optional[str] = None
    priority: Optional[str] = None
    search: str = ''

    def matches(self, task: Task) -> bool:
        """Returns True if the task satisfies every constraint."""
        for (constraint, val) in [
            (self.project, task.project_id),
            (self.assignee, task.assignee_id),
            (self.status, task.status_id),
            (self.priority, task.priority_id),
        ]:
            if (constraint not in (None, ALL)) and (constraint != val):
                return False
        return self.search.strip().lower() in task.title.lower()

    def __call__(self, tasks: Iterable[Task]) -> list[Task]:
        return [task for task in tasks if self.matches(task)]


##############
# EISENHOWER #
##############

class Quadrant(StrEnum):
    """Quadrant of the Eisenhower (urgent/important) matrix."""
    do_first = 'do_first'
    schedule = 'schedule'
    delegate = 'delegate'
    eliminate = 'eliminate'

    @property
    def heading(self) -> str:
        return {
            Quadrant.do_first: 'Do First',
            Quadrant.schedule: 'Schedule',
            Quadrant.delegate: 'Delegate',
            Quadrant.eliminate: "Don't Do",
        }[self]

    @property
    def subtitle(self) -> str:
        return {
            Quadrant.do_first: 'Urgent & Important',
            Quadrant.schedule: 'Not Urgent & Important',
            Quadrant.delegate: 'Urgent & Not Important',
            Quadrant.eliminate: 'Not Urgent & Not Important',
        }[self]

    @classmethod
    def classify(cls, urgent: bool, important: bool) -> 'Quadrant':
        if important:
            return cls.do_first if urgent else cls.schedule
        return cls.delegate if urgent else cls.eliminate


def is_done(model: EntityModel, task: Task) -> bool:
    """Returns True if the task's status is named 'Done' (case-insensitive)."""
    status = model.find_status(task.status_id)
    name = status.name if status else task.status_id
    return name.strip().lower() == DONE_STATUS

def is_important(model: EntityModel, task: Task) -> bool:
    """Returns True if the task's priority is named 'Critical' or 'High' (case-insensitive)."""
    priority = model.find_priority(task.priority_id)
    name = priority.name if priority else task.priority_id
    return name.strip().lower() in IMPORTANT_PRIORITIES

def eisenhower(model: EntityModel, tasks: Optional[Iterable[Task]] = None) -> dict[Quadrant, list[Task]]:
    """Sorts tasks that are not done into the four Eisenhower quadrants.
    A task is urgent if its due date is among the earliest two distinct due dates of those tasks.
    Each quadrant is sorted by due date."""
    active = [task for task in (model.tasks if (tasks is None) else tasks) if not is_done(model, task)]
    urgent_dates = sorted({task.due_date for task in active})[:NUM_URGENT_DATES]
    quadrants: dict[Quadrant, list[Task]] = {quadrant: [] for quadrant in Quadrant}
    for task in active:
        quadrant = Quadrant.classify(task.due_date in urgent_dates, is_important(model, task))
        quadrants[quadrant].append(task)
    for quad_tasks in quadrants.values():
        quad_tasks.sort(key=lambda task: task.due_date)
    return quadrants
