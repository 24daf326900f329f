"""Application-level store which owns the entity model and keeps it synchronized with the bridge.

Reads go through `Store.model`, which a pull replaces wholesale (never mutating the old one).
Mutations update the model immediately, then push the affected row to the bridge in the background."""

from collections.abc import Awaitable
from datetime import date
from typing import Any, Optional, Protocol

from pydantic import BaseModel, Field
import httpx

from teamsync import logger
from teamsync.bridge import BridgeClient, BridgeError
from teamsync.codec import Collection
from teamsync.config import Config, get_config
from teamsync.dispatch import Dispatcher, OutboxDispatcher, SyncStatus
from teamsync.model import DEFAULT_PROJECT_COLOR, EntityModel, Project, ReferenceLink, Task, User, avatar_url
from teamsync.reconcile import ReconcileReport, Reconciliation, reconcile
from teamsync.utils import TeamSyncError, UserInputError, get_current_time, get_today, render_date
from teamsync.views import GroupBy, move_changes


DEFAULT_TASK_TITLE = 'New Task'


class TaskDraft(BaseModel):
    """Best-effort partial task extracted from free text."""
    title: str
    description: str = ''
    due_date: Optional[date] = Field(default=None, description='due date (today if unset)')


class TaskParser(Protocol):
    """Service turning free text into a task draft.
    It may return None or raise if it cannot produce one."""

    def __call__(self, text: str) -> Awaitable[Optional[TaskDraft]]: ...


class SubtaskSuggester(Protocol):
    """Service suggesting subtask titles for a task, given its title and description."""

    def __call__(self, title: str, description: str) -> Awaitable[list[str]]: ...


def activity_entry(text: str, day: Optional[date] = None) -> str:
    """Formats an entry of a task's activity log."""
    return f'{render_date(day or get_today())} - {text}'


class Store:
    """Owner of the entity model, the bridge client, and the dispatcher."""

    def __init__(self, client: BridgeClient, dispatcher: Optional[Dispatcher] = None, model: Optional[EntityModel] = None) -> None:
        self.client = client
        self.dispatcher = Dispatcher(client) if (dispatcher is None) else dispatcher
        self._model = EntityModel() if (model is None) else model

    @classmethod
    def from_config(cls, config: Optional[Config] = None, url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> 'Store':
        """Creates a store from configurations.
        If a URL is given, it overrides the configured one."""
        config = config or get_config()
        client = BridgeClient(url or config.bridge_url, timeout=config.bridge.timeout, transport=transport)
        dispatcher: Dispatcher
        if config.sync.mode == 'outbox':
            dispatcher = OutboxDispatcher(client, maxsize=config.sync.outbox_size, max_attempts=config.sync.max_attempts, backoff=config.sync.backoff)
        else:
            dispatcher = Dispatcher(client)
        return cls(client, dispatcher=dispatcher)

    @property
    def model(self) -> EntityModel:
        """Gets the current entity model."""
        return self._model

    @property
    def status(self) -> SyncStatus:
        """Gets the synchronization status."""
        return self.dispatcher.status

    def snapshot(self) -> EntityModel:
        """Gets a copy of the current entity model which is unaffected by later changes."""
        return self._model.snapshot()

    # SYNC

    async def pull(self) -> Optional[Reconciliation]:
        """Pulls a snapshot from the bridge and replaces the model with its reconciliation.
        On failure, logs an error, leaves the model unchanged, and returns None."""
        self.status.in_flight += 1
        try:
            snapshot = await self.client.fetch_snapshot()
        except BridgeError as e:
            logger.error(f'Could not sync. Check your bridge URL. ({e})')
            self.status.mark_failure(e)
            return None
        finally:
            self.status.in_flight -= 1
        result = reconcile(snapshot, previous=self._model)
        self._model = result.model
        self.status.mark_success()
        logger.debug(f'Pulled {len(result.model.tasks)} task(s)')
        return result

    async def drain(self) -> None:
        """Waits for all pending pushes to complete."""
        await self.dispatcher.drain()

    def publish_discovered(self, report: ReconcileReport) -> int:
        """Pushes the projects and team members created from task references during a pull, returning the number of pushes."""
        count = 0
        for name in report.discovered_projects:
            if (project := self._model.find_project(name)) is not None:
                self.dispatcher.upsert(project)
                count += 1
        for name in report.discovered_users:
            if (user := self._model.find_user(name)) is not None:
                self.dispatcher.upsert(user)
                count += 1
        return count

    # TASKS

    def _check_references(self, fields: dict[str, Any]) -> None:
        """Checks that any status, priority, project, or assignee being assigned to a task exists."""
        model = self._model
        if 'status_id' in fields:
            if not (status_id := fields['status_id']):
                raise UserInputError('Status cannot be empty')
            if model.find_status(status_id) is None:
                raise UserInputError(f'Unknown status {status_id!r}')
        if 'priority_id' in fields:
            if not (priority_id := fields['priority_id']):
                raise UserInputError('Priority cannot be empty')
            if model.find_priority(priority_id) is None:
                raise UserInputError(f'Unknown priority {priority_id!r}')
        if project_id := fields.get('project_id'):
            model.get_project(project_id)
        if assignee_id := fields.get('assignee_id'):
            model.get_user(assignee_id)

    def add_task(self, title: str = DEFAULT_TASK_TITLE, **kwargs: Any) -> Task:
        """Creates a new task and pushes it.
        Unspecified fields default to the first status, the second priority, and a due date of today."""
        if not title.strip():
            raise UserInputError('Task title cannot be empty')
        fields = {
            'status_id': self._model.first_status_id,
            'priority_id': self._model.default_priority_id,
            **kwargs,
        }
        self._check_references(fields)
        task = Task(id=self._model.new_task_id(), title=title.strip(), **fields)
        self._model.add_task(task)
        self.dispatcher.upsert(task)
        return task

    async def add_task_from_text(self, text: str, parser: TaskParser) -> Task:
        """Creates a new task from free text using a parsing service.
        If the parser fails or produces nothing, the text itself becomes the title, due today."""
        if not text.strip():
            raise UserInputError('Task text cannot be empty')
        draft: Optional[TaskDraft]
        try:
            draft = await parser(text)
        except Exception as e:  # noqa: BLE001
            logger.warning(f'Could not parse task text, using it as the title: {e}')
            draft = None
        if (draft is None) or (not draft.title.strip()):
            draft = TaskDraft(title=text.strip())
        return self.add_task(draft.title, description=draft.description, due_date=draft.due_date or get_today())

    def update_task(self, task_id: str, **changes: Any) -> Task:
        """Modifies fields of a task, marks it as updated, and pushes it."""
        if 'id' in changes:
            raise TeamSyncError("Cannot modify a task's id")
        if 'title' in changes:
            if not (title := changes['title'].strip()):
                raise UserInputError('Task title cannot be empty')
            changes['title'] = title
        self._check_references(changes)
        task = self._model.get_task(task_id)
        changes.setdefault('updated_at', get_current_time())
        return self._save_task(task._replace(**changes))

    def _save_task(self, task: Task) -> Task:
        self._model.replace_task(task)
        self.dispatcher.upsert(task)
        return task

    def move_task(self, task_id: str, group_by: GroupBy, column_id: str) -> Task:
        """Moves a task into a board column, updating its grouping field."""
        return self.update_task(task_id, **move_changes(group_by, column_id))

    def log_activity(self, task_id: str, text: str) -> Task:
        """Appends a dated entry to a task's activity log."""
        if not text.strip():
            raise UserInputError('Activity text cannot be empty')
        task = self._model.get_task(task_id)
        return self._save_task(task.with_activity(activity_entry(text.strip())))

    def add_link(self, task_id: str, url: str, title: Optional[str] = None) -> Task:
        """Attaches a reference link to a task.
        If no title is given, the URL is used."""
        if not url.strip():
            raise UserInputError('Link URL cannot be empty')
        task = self._model.get_task(task_id)
        link = ReferenceLink(title=(title or url).strip(), url=url.strip())
        return self.update_task(task_id, links=[*task.links, link])

    def add_subtask(self, task_id: str, title: str) -> Task:
        """Appends a subtask to a task."""
        if not title.strip():
            raise UserInputError('Subtask title cannot be empty')
        task = self._model.get_task(task_id)
        return self.update_task(task_id, subtasks=[*task.subtasks, title.strip()])

    async def suggest_subtasks(self, task_id: str, suggester: SubtaskSuggester) -> Task:
        """Appends subtasks proposed by a suggestion service to a task.
        If the service fails, the task is left unchanged."""
        task = self._model.get_task(task_id)
        try:
            suggestions = await suggester(task.title, task.description)
        except Exception as e:  # noqa: BLE001
            logger.warning(f'Could not generate subtasks: {e}')
            return task
        subtasks = [s.strip() for s in suggestions if s.strip()]
        if not subtasks:
            return task
        return self.update_task(task_id, subtasks=[*task.subtasks, *subtasks])

    def delete_task(self, task_id: str) -> Task:
        """Removes a task and pushes its deletion."""
        task = self._model.remove_task(task_id)
        self.dispatcher.delete(Collection.tasks, task_id)
        return task

    # PROJECTS & MEMBERS

    def add_project(self, name: str, color: str = DEFAULT_PROJECT_COLOR, description: str = '') -> Project:
        """Creates a new project and pushes it."""
        if not (name := name.strip()):
            raise UserInputError('Project name cannot be empty')
        project = Project(id=name, name=name, color=color, description=description)
        self._model.add_project(project)
        self.dispatcher.upsert(project)
        return project

    def add_member(self, name: str, email: str = '', avatar: Optional[str] = None) -> User:
        """Creates a new team member and pushes it.
        If no avatar URL is given, a generated one is used."""
        if not (name := name.strip()):
            raise UserInputError('Member name cannot be empty')
        user = User(id=name, name=name, email=email.strip(), avatar=avatar or avatar_url(name))
        self._model.add_user(user)
        self.dispatcher.upsert(user)
        return user
