from collections.abc import Iterable
from dataclasses import fields
from datetime import date, datetime
import itertools
import time
from typing import Annotated, Any, Optional, TypeVar
from urllib.parse import quote

from fancy_dataclass import JSONBaseDataclass
from pydantic import Field
from pydantic.dataclasses import dataclass
from typing_extensions import Self, TypeAlias

from teamsync.utils import StrEnum, TeamSyncError, get_current_time, get_today, style_str


T = TypeVar('T')

AVATAR_URL_TEMPLATE = 'https://ui-avatars.com/api/?name={name}&background=random'
DEFAULT_PROJECT_COLOR = 'bg-gray-100'
DEFAULT_PRIORITY_COLOR = 'bg-gray-100 text-gray-800'


################
# TYPE ALIASES #
################

Id: TypeAlias = Annotated[str, Field(min_length=1)]

# empty string means "unassigned" or "no project"
OptionalId: TypeAlias = str


##################
# ERROR HANDLING #
##################

class EntityNotFoundError(TeamSyncError):
    """Error that occurs when an entity ID is not found."""
    kind = 'entity'

    def __init__(self, id_: str) -> None:
        self.id = id_
        super().__init__(f'{self.kind.capitalize()} with id {id_!r} not found')

class TaskNotFoundError(EntityNotFoundError):
    """Error that occurs when a task ID is not found."""
    kind = 'task'

class ProjectNotFoundError(EntityNotFoundError):
    """Error that occurs when a project ID is not found."""
    kind = 'project'

class UserNotFoundError(EntityNotFoundError):
    """Error that occurs when a user ID is not found."""
    kind = 'user'

class DuplicateEntityError(TeamSyncError):
    """Error that occurs when an entity is added whose ID is already taken."""


##########
# STYLES #
##########

class DefaultColor(StrEnum):
    """Enum for default color map."""
    name = 'magenta'
    task_id = 'dark_orange3'
    project = 'purple4'
    user = 'dodger_blue2'
    faint = 'bright_black'

def name_style(name: str) -> str:
    """Renders a task/project/user name as a rich-styled string."""
    return style_str(name, DefaultColor.name)

def task_id_style(id_: str, bold: bool = False) -> str:
    """Renders a task ID as a rich-styled string."""
    return style_str(id_, DefaultColor.task_id, bold=bold)


#########
# MODEL #
#########

class Model(JSONBaseDataclass, suppress_none=True, store_type='off'):
    """Base class for entities."""

    def _replace(self, **kwargs: Any) -> Self:
        d = {fld.name: getattr(self, fld.name) for fld in fields(self)}  # type: ignore[arg-type]
        for (key, val) in kwargs.items():
            if key in d:
                d[key] = val
            else:
                raise TypeError(f'Unknown field {key!r}')
        return type(self)(**d)


@dataclass(frozen=True)
class Status(Model):
    """A workflow stage a task can be in."""
    id: Id = Field(description='Status ID (same as its name)')
    name: str = Field(description='Display name')


@dataclass(frozen=True)
class Priority(Model):
    """A priority level a task can have."""
    id: Id = Field(description='Priority ID (same as its name)')
    name: str = Field(description='Display name')
    color: str = Field(
        default=DEFAULT_PRIORITY_COLOR,
        description='Presentation color token'
    )


@dataclass(frozen=True)
class Project(Model):
    """A project associated with multiple tasks."""
    id: Id = Field(description='Project ID (same as its name)')
    name: str = Field(description='Project name')
    color: str = Field(
        default=DEFAULT_PROJECT_COLOR,
        description='Presentation color token'
    )
    description: str = Field(
        default='',
        description='Project description'
    )

    @classmethod
    def placeholder(cls, name: str) -> Self:
        """Creates a minimal project from a name referenced by a task."""
        return cls(id=name, name=name)


def avatar_url(name: str) -> str:
    """Gets a generated avatar image URL for a user's name."""
    return AVATAR_URL_TEMPLATE.format(name=quote(name, safe=''))


@dataclass(frozen=True)
class User(Model):
    """A team member to whom tasks can be assigned."""
    id: Id = Field(description='User ID (same as their name)')
    name: str = Field(description='Display name')
    email: str = Field(default='', description='Email address')
    avatar: str = Field(default='', description='Avatar image URL')

    @classmethod
    def placeholder(cls, name: str) -> Self:
        """Creates a minimal user from a name referenced by a task."""
        return cls(id=name, name=name, avatar=avatar_url(name))


@dataclass(frozen=True)
class ReferenceLink(Model):
    """A titled link attached to a task."""
    title: str
    url: str


@dataclass(frozen=True)
class Task(Model):
    """A task to be performed."""
    id: Id = Field(description='Task ID')
    title: str = Field(description='Task title')
    status_id: Id = Field(description='Status ID')
    priority_id: Id = Field(description='Priority ID')
    description: str = Field(
        default='',
        description='Task description'
    )
    assignee_id: OptionalId = Field(
        default='',
        description='ID of assigned user (empty if unassigned)'
    )
    project_id: OptionalId = Field(
        default='',
        description='Project ID (empty if no project)'
    )
    due_date: date = Field(
        default_factory=get_today,
        description='Date the task is due'
    )
    links: list[ReferenceLink] = Field(
        default_factory=list,
        description='Reference links'
    )
    activity: list[str] = Field(
        default_factory=list,
        description='Activity log (append-only)'
    )
    subtasks: list[str] = Field(
        default_factory=list,
        description='Subtask titles'
    )
    updated_at: datetime = Field(
        default_factory=get_current_time,
        description='Time the task was last updated'
    )

    def with_activity(self, entry: str) -> Self:
        """Returns a new version of the task with an entry appended to its activity log."""
        return self._replace(activity=[*self.activity, entry], updated_at=get_current_time())


# statuses and priorities used until the remote configuration sheets are authored
DEFAULT_STATUSES = [Status(id=name, name=name) for name in ['To Do', 'In Progress', 'Review', 'Done']]

DEFAULT_PRIORITIES = [
    Priority(id='Low', name='Low', color='bg-gray-100 text-gray-700 border-gray-200'),
    Priority(id='Medium', name='Medium', color='bg-blue-100 text-blue-700 border-blue-200'),
    Priority(id='High', name='High', color='bg-orange-100 text-orange-700 border-orange-200'),
    Priority(id='Critical', name='Critical', color='bg-red-100 text-red-700 border-red-200'),
]


def _find(items: Iterable[T], id_: str) -> Optional[T]:
    return next((item for item in items if item.id == id_), None)  # type: ignore[attr-defined]


@dataclass
class EntityModel(Model):
    """The in-memory entity graph: tasks along with the users, projects, statuses, and priorities they reference."""
    tasks: list[Task] = Field(default_factory=list)
    users: list[User] = Field(default_factory=list)
    projects: list[Project] = Field(default_factory=list)
    statuses: list[Status] = Field(default_factory=lambda: list(DEFAULT_STATUSES))
    priorities: list[Priority] = Field(default_factory=lambda: list(DEFAULT_PRIORITIES))

    def snapshot(self) -> 'EntityModel':
        """Gets a copy of the model whose lists are independent of this one."""
        return EntityModel(
            tasks=list(self.tasks),
            users=list(self.users),
            projects=list(self.projects),
            statuses=list(self.statuses),
            priorities=list(self.priorities),
        )

    @property
    def first_status_id(self) -> str:
        """Gets the ID of the first status, used as the default for new tasks."""
        return (self.statuses or DEFAULT_STATUSES)[0].id

    @property
    def first_priority_id(self) -> str:
        """Gets the ID of the first priority."""
        return (self.priorities or DEFAULT_PRIORITIES)[0].id

    @property
    def default_priority_id(self) -> str:
        """Gets the ID of the priority assigned to newly created tasks (the second one, if available)."""
        priorities = self.priorities or DEFAULT_PRIORITIES
        return priorities[1].id if (len(priorities) > 1) else priorities[0].id

    # TASKS

    def new_task_id(self) -> str:
        """Gets an unused task ID derived from the current time."""
        base = f't{int(time.time() * 1000)}'
        candidates = itertools.chain([base], (f'{base}-{i}' for i in itertools.count(1)))
        return next(id_ for id_ in candidates if self.find_task(id_) is None)

    def find_task(self, task_id: str) -> Optional[Task]:
        """Gets a task with the given ID, or None if there is none."""
        return _find(self.tasks, task_id)

    def get_task(self, task_id: str) -> Task:
        """Gets a task with the given ID."""
        if (task := self.find_task(task_id)) is None:
            raise TaskNotFoundError(task_id)
        return task

    def add_task(self, task: Task) -> None:
        """Adds a new task."""
        if self.find_task(task.id) is not None:
            raise DuplicateEntityError(f'Duplicate task id {task.id!r}')
        self.tasks.append(task)

    def replace_task(self, task: Task) -> None:
        """Replaces the task having the same ID as the given one, preserving its position."""
        for (i, t) in enumerate(self.tasks):
            if t.id == task.id:
                self.tasks[i] = task
                return
        raise TaskNotFoundError(task.id)

    def remove_task(self, task_id: str) -> Task:
        """Removes the task with the given ID, returning it."""
        task = self.get_task(task_id)
        self.tasks.remove(task)
        return task

    # PROJECTS

    def find_project(self, project_id: str) -> Optional[Project]:
        """Gets a project with the given ID, or None if there is none."""
        return _find(self.projects, project_id)

    def get_project(self, project_id: str) -> Project:
        """Gets a project with the given ID."""
        if (project := self.find_project(project_id)) is None:
            raise ProjectNotFoundError(project_id)
        return project

    def add_project(self, project: Project) -> None:
        """Adds a new project."""
        if self.find_project(project.id) is not None:
            raise DuplicateEntityError(f'Duplicate project name {project.id!r}')
        self.projects.append(project)

    # USERS

    def find_user(self, user_id: str) -> Optional[User]:
        """Gets a user with the given ID, or None if there is none."""
        return _find(self.users, user_id)

    def get_user(self, user_id: str) -> User:
        """Gets a user with the given ID."""
        if (user := self.find_user(user_id)) is None:
            raise UserNotFoundError(user_id)
        return user

    def add_user(self, user: User) -> None:
        """Adds a new user."""
        if self.find_user(user.id) is not None:
            raise DuplicateEntityError(f'Duplicate team member name {user.id!r}')
        self.users.append(user)

    # LOOKUPS

    def find_status(self, status_id: str) -> Optional[Status]:
        """Gets a status with the given ID, or None if there is none."""
        return _find(self.statuses, status_id)

    def find_priority(self, priority_id: str) -> Optional[Priority]:
        """Gets a priority with the given ID, or None if there is none."""
        return _find(self.priorities, priority_id)

    def dangling_references(self) -> list[tuple[str, str, str]]:
        """Gets a list of (task ID, field, value) for every non-empty project/assignee reference with no matching entity."""
        dangling = []
        for task in self.tasks:
            if task.project_id and (self.find_project(task.project_id) is None):
                dangling.append((task.id, 'project_id', task.project_id))
            if task.assignee_id and (self.find_user(task.assignee_id) is None):
                dangling.append((task.id, 'assignee_id', task.assignee_id))
        return dangling
