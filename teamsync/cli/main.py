#!/usr/bin/env python3

from datetime import date
from pathlib import Path
from typing import Annotated, Any, Optional

from rich import print
import typer

from teamsync import __version__, logger
from teamsync.cli import APP_KWARGS, AppState, get_state, open_store, run
import teamsync.cli.config
from teamsync.config import get_config
from teamsync.interface import show_board, show_matrix, show_report, show_task
from teamsync.model import DEFAULT_PROJECT_COLOR, name_style, task_id_style
from teamsync.sheet import SheetBook, WorkbookError
from teamsync.utils import UserInputError, parse_date
from teamsync.views import GroupBy, TaskFilter


APP = typer.Typer(**APP_KWARGS)

APP.add_typer(
    teamsync.cli.config.APP,
    name='config',
    help='Manage configurations.',
    short_help='manage configurations',
)

TASK_APP = typer.Typer(**APP_KWARGS)
APP.add_typer(TASK_APP, name='task', help='Manage tasks.', short_help='manage tasks')

PROJECT_APP = typer.Typer(**APP_KWARGS)
APP.add_typer(PROJECT_APP, name='project', help='Manage projects.', short_help='manage projects')

MEMBER_APP = typer.Typer(**APP_KWARGS)
APP.add_typer(MEMBER_APP, name='member', help='Manage team members.', short_help='manage team members')


TaskIdArg = Annotated[str, typer.Argument(metavar='TASK_ID', show_default=False, help='Task ID')]
DescriptionOpt = Annotated[Optional[str], typer.Option('--description', '-d', show_default=False, help='Task description')]
StatusOpt = Annotated[Optional[str], typer.Option('--status', '-s', show_default=False, help='Status name')]
PriorityOpt = Annotated[Optional[str], typer.Option('--priority', '-p', show_default=False, help='Priority name')]
AssigneeOpt = Annotated[Optional[str], typer.Option('--assignee', '-a', show_default=False, help='Assigned team member (empty to unassign)')]
ProjectOpt = Annotated[Optional[str], typer.Option('--project', show_default=False, help='Project name (empty for none)')]
DueOpt = Annotated[Optional[str], typer.Option('--due', show_default=False, help='Due date (e.g. 2025-03-01)')]


def _parse_due(s: str) -> date:
    if (due := parse_date(s)) is None:
        raise UserInputError(f'Invalid due date {s!r}')
    return due

def _task_fields(**kwargs: Any) -> dict[str, Any]:
    """Converts command-line options to task fields, omitting those not provided."""
    names = {'status': 'status_id', 'priority': 'priority_id', 'assignee': 'assignee_id', 'project': 'project_id', 'due': 'due_date'}
    fields = {}
    for (key, val) in kwargs.items():
        if val is None:
            continue
        if key == 'due':
            val = _parse_due(val)
        elif isinstance(val, str) and (key != 'description'):
            val = val.strip()
        fields[names.get(key, key)] = val
    return fields


#########
# BOARD #
#########

@APP.command(short_help='pull and summarize the remote data')
def pull(
    ctx: typer.Context,
    publish: Annotated[bool, typer.Option('--publish', help='push projects and team members discovered from task references')] = False,
) -> None:
    """Pull the remote data and summarize it."""
    async def _pull() -> None:
        async with open_store(get_state(ctx), pull=False) as store:
            if (result := await store.pull()) is None:
                raise typer.Exit(1)
            show_report(result.model, result.report)
            if publish:
                count = store.publish_discovered(result.report)
                logger.info(f'Publishing {count} discovered entit{"y" if (count == 1) else "ies"}')
    run(_pull())

@APP.command(short_help='display the task board')
def board(
    ctx: typer.Context,
    group_by: Annotated[Optional[GroupBy], typer.Option('--group-by', '-g', show_default=False, help='Attribute to group tasks by')] = None,
    project: Annotated[Optional[str], typer.Option('--project', show_default=False, help='Only show tasks in this project')] = None,
    assignee: Annotated[Optional[str], typer.Option('--assignee', '-a', show_default=False, help='Only show tasks assigned to this member')] = None,
    status: Annotated[Optional[str], typer.Option('--status', '-s', show_default=False, help='Only show tasks with this status')] = None,
    priority: Annotated[Optional[str], typer.Option('--priority', '-p', show_default=False, help='Only show tasks with this priority')] = None,
    search: Annotated[str, typer.Option('--search', show_default=False, help='Only show tasks whose title contains this text')] = '',
) -> None:
    """Display the task board."""
    task_filter = TaskFilter(project=project, assignee=assignee, status=status, priority=priority, search=search)
    async def _board() -> None:
        display = get_config().display
        async with open_store(get_state(ctx)) as store:
            show_board(store.model, group_by or GroupBy(display.group_by), task_filter, date_format=display.date_format)
    run(_board())

@APP.command(short_help='display the Eisenhower matrix')
def matrix(ctx: typer.Context) -> None:
    """Display unfinished tasks in an urgent/important matrix."""
    async def _matrix() -> None:
        async with open_store(get_state(ctx)) as store:
            show_matrix(store.model, date_format=get_config().display.date_format)
    run(_matrix())

@APP.command(short_help='write a starter workbook')
def template(
    output_file: Annotated[Path, typer.Option('-o', '--output-file', help='Output .xlsx file')] = Path('teamsync.xlsx'),
    force: Annotated[bool, typer.Option('--force', '-f', help='overwrite an existing file')] = False,
) -> None:
    """Write a starter workbook with the expected sheets and some sample rows."""
    if output_file.exists() and (not force):
        logger.exit_with_error(f'File {output_file} already exists (use --force to overwrite)')
    with logger.catch_errors(WorkbookError):
        SheetBook.template().save_workbook(output_file)
    logger.info(f'Saved template to {output_file}')
    logger.done()


#########
# TASKS #
#########

@TASK_APP.command('new', short_help='create a new task')
def task_new(
    ctx: typer.Context,
    title: Annotated[str, typer.Argument(show_default=False, help='Task title')],
    description: DescriptionOpt = None,
    status: StatusOpt = None,
    priority: PriorityOpt = None,
    assignee: AssigneeOpt = None,
    project: ProjectOpt = None,
    due: DueOpt = None,
) -> None:
    """Create a new task."""
    async def _new() -> None:
        fields = _task_fields(description=description, status=status, priority=priority, assignee=assignee, project=project, due=due)
        async with open_store(get_state(ctx)) as store:
            task = store.add_task(title, **fields)
            print(f'Created new task {name_style(task.title)} with ID {task_id_style(task.id)}')
    run(_new())

@TASK_APP.command('set', short_help='modify a task')
def task_set(
    ctx: typer.Context,
    task_id: TaskIdArg,
    title: Annotated[Optional[str], typer.Option('--title', '-t', show_default=False, help='Task title')] = None,
    description: DescriptionOpt = None,
    status: StatusOpt = None,
    priority: PriorityOpt = None,
    assignee: AssigneeOpt = None,
    project: ProjectOpt = None,
    due: DueOpt = None,
) -> None:
    """Modify fields of a task."""
    async def _set() -> None:
        fields = _task_fields(title=title, description=description, status=status, priority=priority, assignee=assignee, project=project, due=due)
        if not fields:
            raise UserInputError('No changes were given')
        async with open_store(get_state(ctx)) as store:
            task = store.update_task(task_id, **fields)
            print(f'Updated task {name_style(task.title)} [not bold]\\[{task_id_style(task.id)}][/]')
    run(_set())

@TASK_APP.command('move', short_help='move a task to a board column')
def task_move(
    ctx: typer.Context,
    task_id: TaskIdArg,
    column: Annotated[str, typer.Argument(show_default=False, help='Column to move to (status, priority, member, or project name)')],
    group_by: Annotated[GroupBy, typer.Option('--group-by', '-g', help='Attribute the columns are grouped by')] = GroupBy.status,
) -> None:
    """Move a task to a column of the board."""
    async def _move() -> None:
        async with open_store(get_state(ctx)) as store:
            task = store.move_task(task_id, group_by, column.strip())
            print(f'Moved task {name_style(task.title)} to {column!r}')
    run(_move())

@TASK_APP.command('log', short_help='add an activity entry to a task')
def task_log(
    ctx: typer.Context,
    task_id: TaskIdArg,
    text: Annotated[str, typer.Argument(show_default=False, help='Activity text')],
) -> None:
    """Append a dated entry to a task's activity log."""
    async def _log() -> None:
        async with open_store(get_state(ctx)) as store:
            task = store.log_activity(task_id, text)
            print(f'Logged activity: {task.activity[-1]}')
    run(_log())

@TASK_APP.command('link', short_help='attach a reference link to a task')
def task_link(
    ctx: typer.Context,
    task_id: TaskIdArg,
    url: Annotated[str, typer.Argument(show_default=False, help='Link URL')],
    title: Annotated[Optional[str], typer.Option('--title', '-t', show_default=False, help='Link title (defaults to the URL)')] = None,
) -> None:
    """Attach a reference link to a task."""
    async def _link() -> None:
        async with open_store(get_state(ctx)) as store:
            task = store.add_link(task_id, url, title=title)
            print(f'Added link to task {name_style(task.title)}')
    run(_link())

@TASK_APP.command('subtask', short_help='add a subtask to a task')
def task_subtask(
    ctx: typer.Context,
    task_id: TaskIdArg,
    title: Annotated[str, typer.Argument(show_default=False, help='Subtask title')],
) -> None:
    """Append a subtask to a task."""
    async def _subtask() -> None:
        async with open_store(get_state(ctx)) as store:
            task = store.add_subtask(task_id, title)
            print(f'Added subtask to task {name_style(task.title)}')
    run(_subtask())

@TASK_APP.command('delete', short_help='delete a task')
def task_delete(ctx: typer.Context, task_id: TaskIdArg) -> None:
    """Delete a task."""
    async def _delete() -> None:
        async with open_store(get_state(ctx)) as store:
            task = store.delete_task(task_id)
            print(f'Deleted task {name_style(task.title)} with ID {task_id_style(task.id)}')
    run(_delete())

@TASK_APP.command('show', short_help='show task details')
def task_show(ctx: typer.Context, task_id: TaskIdArg) -> None:
    """Show the details of a task."""
    async def _show() -> None:
        async with open_store(get_state(ctx)) as store:
            show_task(store.model, store.model.get_task(task_id), date_format=get_config().display.date_format)
    run(_show())


######################
# PROJECTS & MEMBERS #
######################

@PROJECT_APP.command('new', short_help='create a new project')
def project_new(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(show_default=False, help='Project name')],
    color: Annotated[str, typer.Option('--color', '-c', help='Color token')] = DEFAULT_PROJECT_COLOR,
    description: Annotated[str, typer.Option('--description', '-d', help='Project description')] = '',
) -> None:
    """Create a new project."""
    async def _new() -> None:
        async with open_store(get_state(ctx)) as store:
            project = store.add_project(name, color=color, description=description)
            print(f'Created new project {name_style(project.name)}')
    run(_new())

@MEMBER_APP.command('new', short_help='add a new team member')
def member_new(
    ctx: typer.Context,
    name: Annotated[str, typer.Argument(show_default=False, help='Member name')],
    email: Annotated[str, typer.Option('--email', '-e', help='Email address')] = '',
) -> None:
    """Add a new team member."""
    async def _new() -> None:
        async with open_store(get_state(ctx)) as store:
            user = store.add_member(name, email=email)
            print(f'Added team member {name_style(user.name)}')
    run(_new())


@APP.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    version: Annotated[bool, typer.Option('--version', help='show version number')] = False,
    book: Annotated[Optional[Path], typer.Option('--book', '-b', show_default=False, help='local .xlsx workbook to use in place of the remote bridge')] = None,
    verbose: Annotated[bool, typer.Option('--verbose', '-v', help='show debug messages')] = False,
) -> None:
    """Sync a team task board with a spreadsheet."""
    logger.set_verbosity(verbose)
    ctx.obj = AppState(book_path=book)
    if ctx.invoked_subcommand is None:
        if version:
            print(__version__)
        else:
            print(ctx.get_help())


if __name__ == '__main__':
    APP()
