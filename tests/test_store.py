from datetime import date

import httpx
import pytest

from teamsync.bridge import BridgeClient
from teamsync.config import Config, SyncConfig
from teamsync.dispatch import OutboxDispatcher
from teamsync.model import DuplicateEntityError, Project, ProjectNotFoundError, TaskNotFoundError, UserNotFoundError, avatar_url
from teamsync.store import Store, TaskDraft
from teamsync.utils import TeamSyncError, UserInputError, get_today, render_date
from teamsync.views import GroupBy

from .conftest import BRIDGE_URL


class TestPull:

    async def test_pull(self, store):
        old_model = store.model
        result = await store.pull()
        assert result is not None
        assert store.model is result.model
        assert store.model is not old_model
        assert [t.id for t in store.model.tasks] == ['t1']
        assert [p.id for p in store.model.projects] == ['Website Redesign', 'Mobile App']
        assert store.status.last_synced is not None
        assert not store.status.is_syncing

    async def test_pull_failure_keeps_model(self, store, caplog):
        await store.pull()
        model = store.model
        store.client = BridgeClient(BRIDGE_URL, transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        assert await store.pull() is None
        assert store.model is model
        assert store.status.failed
        errors = [rec for rec in caplog.records if rec.levelname == 'ERROR']
        assert len(errors) == 1
        assert 'Could not sync' in errors[0].getMessage()

    async def test_pull_bad_snapshot(self, store):
        store.client = BridgeClient(BRIDGE_URL, transport=httpx.MockTransport(lambda request: httpx.Response(200, json={'tasks': 'oops'})))
        model = store.model
        assert await store.pull() is None
        assert store.model is model

    async def test_discovered_not_pushed(self, book, store, sent):
        book.add_sheet('Projects', ['Name', 'ColorHex', 'Description'])
        result = await store.pull()
        assert result.report.discovered_projects == ['Website Redesign']
        await store.drain()
        assert sent == []
        # explicit publishing pushes the placeholders
        assert store.publish_discovered(result.report) == 1
        await store.drain()
        assert sent[0]['targetSheet'] == 'Projects'
        assert sent[0]['data']['Name'] == 'Website Redesign'
        assert 'Website Redesign' in [row['Name'] for row in book.snapshot()['projects']]

    async def test_snapshot_is_independent(self, store):
        await store.pull()
        snap = store.snapshot()
        store.add_task('Another')
        assert len(snap.tasks) == 1
        assert len(store.model.tasks) == 2
        await store.drain()


class TestTaskMutations:

    async def test_due_date_edit(self, store, sent):
        """Editing a task's due date pushes the full row to the Tasks sheet."""
        await store.pull()
        task = store.update_task('t1', due_date=date(2025, 3, 1))
        assert task.due_date == date(2025, 3, 1)
        await store.drain()
        assert len(sent) == 1
        body = sent[0]
        assert body['targetSheet'] == 'Tasks'
        assert body['action'] == 'upsert'
        assert body['idColumn'] == 'ID'
        assert body['data']['ID'] == 't1'
        assert body['data']['DueDate'] == '2025-03-01'
        assert body['data']['Title'] == 'Sample Task'

    async def test_add_task(self, book, store, sent):
        await store.pull()
        task = store.add_task('Write docs', project_id='Mobile App')
        assert store.model.tasks[-1] == task
        assert task.status_id == 'To Do'
        assert task.priority_id == 'Medium'
        assert task.due_date == get_today()
        assert task.id.startswith('t')
        await store.drain()
        assert sent[0]['data']['Title'] == 'Write docs'
        assert book.snapshot()['tasks'][-1]['ID'] == task.id
        # remote now has the evolved column
        assert 'UpdatedAt' in book['Tasks'].headers

    async def test_add_task_invalid(self, store, sent):
        await store.pull()
        with pytest.raises(UserInputError, match='empty'):
            store.add_task('  ')
        with pytest.raises(UserInputError, match='Unknown status'):
            store.add_task('x', status_id='Blocked')
        with pytest.raises(ProjectNotFoundError):
            store.add_task('x', project_id='Nope')
        with pytest.raises(UserNotFoundError):
            store.add_task('x', assignee_id='Nobody')
        await store.drain()
        assert sent == []
        assert len(store.model.tasks) == 1

    async def test_empty_status_priority(self, store, sent):
        await store.pull()
        with pytest.raises(UserInputError, match='Status cannot be empty'):
            store.add_task('x', status_id='')
        with pytest.raises(UserInputError, match='Status cannot be empty'):
            store.update_task('t1', status_id='')
        with pytest.raises(UserInputError, match='Status cannot be empty'):
            store.move_task('t1', GroupBy.status, '')
        with pytest.raises(UserInputError, match='Priority cannot be empty'):
            store.move_task('t1', GroupBy.priority, '')
        await store.drain()
        assert sent == []
        task = store.model.get_task('t1')
        assert (task.status_id, task.priority_id) == ('To Do', 'Medium')

    async def test_update_title(self, store, sent):
        await store.pull()
        with pytest.raises(UserInputError, match='Task title cannot be empty'):
            store.update_task('t1', title='   ')
        assert store.model.get_task('t1').title == 'Sample Task'
        task = store.update_task('t1', title='  Renamed ')
        assert task.title == 'Renamed'
        await store.drain()
        assert [body['data']['Title'] for body in sent] == ['Renamed']

    async def test_update_missing_task(self, store):
        await store.pull()
        with pytest.raises(TaskNotFoundError):
            store.update_task('t404', title='x')
        with pytest.raises(TeamSyncError, match="Cannot modify a task's id"):
            store.update_task('t1', id='t2')

    async def test_move_task(self, store, sent):
        await store.pull()
        task = store.move_task('t1', GroupBy.status, 'Done')
        assert task.status_id == 'Done'
        task = store.move_task('t1', GroupBy.assignee, '')
        assert task.assignee_id == ''
        await store.drain()
        assert len(sent) == 2

    async def test_activity_links_subtasks(self, store, book):
        await store.pull()
        store.log_activity('t1', 'Kicked off')
        await store.drain()
        store.add_link('t1', 'https://example.com/spec?a=1|2', title='Spec')
        await store.drain()
        store.add_subtask('t1', 'Subtask 3')
        task = store.model.get_task('t1')
        assert task.activity[-1] == f'{render_date(get_today())} - Kicked off'
        assert task.links[-1].title == 'Spec'
        assert task.subtasks == ['Subtask 1', 'Subtask 2', 'Subtask 3']
        await store.drain()
        # the remote row decodes back to the same task
        await store.pull()
        assert store.model.get_task('t1') == task

    async def test_delete_task(self, store, book, sent):
        await store.pull()
        store.delete_task('t1')
        assert store.model.tasks == []
        await store.drain()
        assert sent == [{'targetSheet': 'Tasks', 'action': 'delete', 'idColumn': 'ID', 'data': {'id': 't1'}}]
        assert book.snapshot()['tasks'] == []

    async def test_push_failure_keeps_local_change(self, store):
        await store.pull()
        store.client = BridgeClient(BRIDGE_URL, transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        store.dispatcher.client = store.client
        store.update_task('t1', title='Offline edit')
        await store.drain()
        assert store.status.failed
        assert store.model.get_task('t1').title == 'Offline edit'


class TestAssistantBoundary:

    async def test_parsed(self, store):
        async def parser(text):
            return TaskDraft(title='Call Bob', description='about the launch', due_date=date(2025, 3, 1))
        task = await store.add_task_from_text('call bob about the launch on march 1', parser)
        assert (task.title, task.description, task.due_date) == ('Call Bob', 'about the launch', date(2025, 3, 1))
        await store.drain()

    @pytest.mark.parametrize('outcome', ['none', 'error'])
    async def test_fallback(self, store, outcome):
        async def parser(text):
            if outcome == 'error':
                raise RuntimeError('service unavailable')
            return None
        task = await store.add_task_from_text('  buy milk ', parser)
        assert task.title == 'buy milk'
        assert task.due_date == get_today()
        await store.drain()

    async def test_suggest_subtasks(self, store):
        await store.pull()
        async def suggester(title, description):
            return ['Outline', ' ', 'Draft']
        task = await store.suggest_subtasks('t1', suggester)
        assert task.subtasks[-2:] == ['Outline', 'Draft']
        async def broken(title, description):
            raise RuntimeError('down')
        assert await store.suggest_subtasks('t1', broken) == task
        await store.drain()


class TestReferenceMutations:

    async def test_add_project(self, store, book, sent):
        await store.pull()
        project = store.add_project(' Launch ', color='bg-red-100')
        assert project == Project(id='Launch', name='Launch', color='bg-red-100')
        with pytest.raises(DuplicateEntityError):
            store.add_project('Launch')
        await store.drain()
        assert len(sent) == 1
        assert book.snapshot()['projects'][-1]['Name'] == 'Launch'

    async def test_add_member(self, store, book):
        await store.pull()
        user = store.add_member('Dana', email='dana@example.com')
        assert user.avatar == avatar_url('Dana')
        with pytest.raises(UserInputError):
            store.add_member(' ')
        await store.drain()
        assert book.snapshot()['members'][-1]['Name'] == 'Dana'


class TestFromConfig:

    def test_outbox_mode(self):
        config = Config(sync=SyncConfig(mode='outbox', outbox_size=5))
        store = Store.from_config(config, url=BRIDGE_URL)
        assert isinstance(store.dispatcher, OutboxDispatcher)
        assert store.dispatcher.maxsize == 5

    def test_direct_mode(self):
        store = Store.from_config(Config(), url=BRIDGE_URL)
        assert type(store.dispatcher).__name__ == 'Dispatcher'
