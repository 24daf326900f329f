from collections.abc import Iterable
from dataclasses import asdict
from datetime import date
import json
from typing import Any, Optional, TypeVar, cast

from pydantic import BaseModel, Field
from rich import print
from rich.table import Table

from teamsync.config import Config
from teamsync.model import DefaultColor, EntityModel, Task, name_style, task_id_style
from teamsync.reconcile import ReconcileReport
from teamsync.utils import style_str
from teamsync.views import GroupBy, Quadrant, TaskFilter, eisenhower, group_tasks


M = TypeVar('M', bound=BaseModel)


###################
# PRETTY PRINTING #
###################

def _render_cell(val: Any) -> str:
    if val is None:
        return '-'
    return str(val)

def make_table(tp: type[M], rows: Iterable[M], **kwargs: Any) -> Table:
    """Given a BaseModel type and a list of elements of that type, creates a Table displaying the data."""
    rows = list(rows)
    table = Table(**kwargs)
    flags = []  # indicates whether each field has any nontrivial element
    for (name, info) in tp.model_fields.items():
        flag = any(getattr(row, name) is not None for row in rows)
        flags.append(flag)
        if flag:  # skip column if all values are trivial
            title = info.title or name
            kw = cast(dict, info.json_schema_extra) or {}
            table.add_column(title, **kw)
    for row in rows:
        vals = [_render_cell(val) for (flag, (_, val)) in zip(flags, row) if flag]
        table.add_row(*vals)
    return table


class TaskRow(BaseModel):
    """A display table row summarizing a task.
    These rows are presented in the board and matrix views."""
    id: str = Field(justify='right')  # type: ignore[call-arg]
    title: str = Field(min_width=15)  # type: ignore[call-arg]
    assignee: Optional[str]
    project: Optional[str]
    due: str


def _render_due(due: date, date_format: str) -> str:
    return due.strftime(date_format)

def task_row(task: Task, date_format: str) -> TaskRow:
    """Creates a display row for a task."""
    return TaskRow(
        id=task_id_style(task.id, bold=True),
        title=task.title,
        assignee=task.assignee_id or None,
        project=task.project_id or None,
        due=_render_due(task.due_date, date_format),
    )

def _empty(msg: str) -> str:
    return style_str(f'\\[{msg}]', DefaultColor.faint, bold=True)


#########
# VIEWS #
#########

def show_board(model: EntityModel, group_by: GroupBy = GroupBy.status, task_filter: Optional[TaskFilter] = None, date_format: str = '%b %d') -> None:
    """Displays the tasks as a table with one column per group."""
    tasks = (task_filter or TaskFilter())(model.tasks)
    table = Table(title=f'Tasks by {group_by}', title_style='bold italic blue')
    subtables: list[Table | str] = []
    for (col, col_tasks) in group_tasks(model, group_by, tasks):
        table.add_column(f'{col.title} ({len(col_tasks)})', justify='center')
        subtables.append(make_table(TaskRow, [task_row(task, date_format) for task in col_tasks]) if col_tasks else '')
    if any(subtables):
        table.add_row(*subtables)
        print(table)
    else:
        print(_empty('No tasks matching criteria'))

def show_matrix(model: EntityModel, date_format: str = '%b %d') -> None:
    """Displays the tasks that are not done in an urgent/important grid."""
    quadrants = eisenhower(model)
    grid = Table(title='Eisenhower Matrix', title_style='bold italic blue', show_lines=True)
    grid.add_column('Important', justify='center')
    grid.add_column('Not Important', justify='center')

    def _cell(quadrant: Quadrant) -> Table | str:
        quad_tasks = quadrants[quadrant]
        if not quad_tasks:
            return f'[bold]{quadrant.heading}[/]\n{quadrant.subtitle}\n\n{_empty("No tasks")}'
        return make_table(TaskRow, [task_row(task, date_format) for task in quad_tasks], title=f'[bold]{quadrant.heading}[/]\n{quadrant.subtitle}')

    grid.add_row(_cell(Quadrant.do_first), _cell(Quadrant.delegate))
    grid.add_row(_cell(Quadrant.schedule), _cell(Quadrant.eliminate))
    print(grid)

def show_task(model: EntityModel, task: Task, date_format: str = '%b %d') -> None:
    """Displays the details of a task."""
    grid = Table.grid(padding=(0, 2))
    grid.add_column(style=f'bold {DefaultColor.faint}')
    grid.add_column()
    status = model.find_status(task.status_id)
    priority = model.find_priority(task.priority_id)
    grid.add_row('ID', task_id_style(task.id, bold=True))
    grid.add_row('Title', name_style(task.title))
    if task.description:
        grid.add_row('Description', task.description)
    grid.add_row('Status', status.name if status else task.status_id)
    grid.add_row('Priority', priority.name if priority else task.priority_id)
    grid.add_row('Due', _render_due(task.due_date, date_format))
    grid.add_row('Assignee', style_str(task.assignee_id, DefaultColor.user) if task.assignee_id else '-')
    grid.add_row('Project', style_str(task.project_id, DefaultColor.project) if task.project_id else '-')
    for (label, items) in [
        ('Links', [f'{link.title}: {link.url}' for link in task.links]),
        ('Subtasks', [f'- {subtask}' for subtask in task.subtasks]),
        ('Activity', list(reversed(task.activity))),
    ]:
        if items:
            grid.add_row(label, '\n'.join(items))
    print(grid)

def show_report(model: EntityModel, report: ReconcileReport) -> None:
    """Displays a summary of a pull."""
    print(f'Pulled {len(model.tasks)} task(s), {len(model.projects)} project(s), {len(model.users)} team member(s)')
    if report.discovered_projects:
        print(f'New project(s) from task references: {", ".join(map(name_style, report.discovered_projects))}')
    if report.discovered_users:
        print(f'New team member(s) from task references: {", ".join(map(name_style, report.discovered_users))}')
    if report.num_skipped:
        print(style_str(f'Skipped {report.num_skipped} blank or unnamed row(s)', DefaultColor.faint))

def show_config(config: Config, indent: int = 2) -> None:
    """Prints out the configurations as JSON."""
    print(json.dumps(asdict(config), indent=indent))
