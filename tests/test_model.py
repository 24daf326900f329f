from datetime import date, datetime, timezone

from pydantic import ValidationError
import pytest

from teamsync.model import DEFAULT_PRIORITIES, DEFAULT_STATUSES, DuplicateEntityError, EntityModel, Priority, Project, ProjectNotFoundError, Status, Task, TaskNotFoundError, User, UserNotFoundError, avatar_url


def _task(id_, **kwargs):
    return Task(id=id_, title=kwargs.pop('title', id_), status_id='To Do', priority_id='Medium', **kwargs)


class TestEntities:

    def test_empty_id(self):
        with pytest.raises(ValidationError):
            _ = Task(id='', title='x', status_id='To Do', priority_id='Medium')
        with pytest.raises(ValidationError):
            _ = Project(id='', name='')

    def test_replace(self):
        task = _task('t1', due_date=date(2025, 3, 1))
        new = task._replace(title='New title')
        assert new.title == 'New title'
        assert new.due_date == date(2025, 3, 1)
        assert task.title == 't1'
        with pytest.raises(TypeError, match="Unknown field 'bogus'"):
            _ = task._replace(bogus=1)

    def test_with_activity(self):
        task = _task('t1', activity=['2025-01-01 - Created'])
        new = task.with_activity('2025-01-02 - Started')
        assert new.activity == ['2025-01-01 - Created', '2025-01-02 - Started']
        assert task.activity == ['2025-01-01 - Created']
        assert new.updated_at >= task.updated_at

    def test_placeholders(self):
        assert Project.placeholder('Launch') == Project(id='Launch', name='Launch', color='bg-gray-100', description='')
        user = User.placeholder('Ana María')
        assert (user.id, user.name, user.email) == ('Ana María', 'Ana María', '')
        assert user.avatar == avatar_url('Ana María')
        assert 'name=Ana%20Mar%C3%ADa' in user.avatar


class TestEntityModel:

    def test_defaults(self):
        model = EntityModel()
        assert model.statuses == DEFAULT_STATUSES
        assert model.priorities == DEFAULT_PRIORITIES
        assert model.first_status_id == 'To Do'
        assert model.first_priority_id == 'Low'
        assert model.default_priority_id == 'Medium'

    def test_default_ids_fall_back(self):
        model = EntityModel(statuses=[], priorities=[Priority(id='Only', name='Only')])
        assert model.first_status_id == 'To Do'
        assert model.default_priority_id == 'Only'
        model = EntityModel(statuses=[Status(id='Open', name='Open')])
        assert model.first_status_id == 'Open'

    def test_tasks(self):
        model = EntityModel()
        model.add_task(_task('a'))
        model.add_task(_task('b'))
        with pytest.raises(DuplicateEntityError, match="Duplicate task id 'a'"):
            model.add_task(_task('a'))
        model.replace_task(_task('a', title='A2'))
        assert [t.title for t in model.tasks] == ['A2', 'b']
        with pytest.raises(TaskNotFoundError):
            model.replace_task(_task('c'))
        assert model.remove_task('a').title == 'A2'
        assert model.find_task('a') is None
        with pytest.raises(TaskNotFoundError, match="Task with id 'a' not found"):
            _ = model.get_task('a')

    def test_new_task_id(self, monkeypatch):
        monkeypatch.setattr('teamsync.model.time.time', lambda: 1700000000.0)
        model = EntityModel()
        assert model.new_task_id() == 't1700000000000'
        model.add_task(_task('t1700000000000'))
        model.add_task(_task('t1700000000000-1'))
        assert model.new_task_id() == 't1700000000000-2'

    def test_references(self):
        model = EntityModel(users=[User(id='Alice', name='Alice')])
        model.add_project(Project(id='Launch', name='Launch'))
        with pytest.raises(DuplicateEntityError):
            model.add_project(Project(id='Launch', name='Launch'))
        with pytest.raises(DuplicateEntityError):
            model.add_user(User(id='Alice', name='Alice'))
        assert model.get_project('Launch').name == 'Launch'
        assert model.get_user('Alice').name == 'Alice'
        with pytest.raises(ProjectNotFoundError):
            _ = model.get_project('Nope')
        with pytest.raises(UserNotFoundError):
            _ = model.get_user('Nobody')
        assert model.find_status('Done').name == 'Done'
        assert model.find_priority('Urgent') is None

    def test_dangling_references(self):
        model = EntityModel(
            tasks=[_task('a', project_id='Launch', assignee_id='Bob'), _task('b', project_id='Gone'), _task('c')],
            users=[User(id='Alice', name='Alice')],
            projects=[Project(id='Launch', name='Launch')],
        )
        assert model.dangling_references() == [('a', 'assignee_id', 'Bob'), ('b', 'project_id', 'Gone')]

    def test_snapshot(self):
        model = EntityModel(tasks=[_task('a')])
        snap = model.snapshot()
        assert snap == model
        model.add_task(_task('b'))
        model.projects.append(Project(id='P', name='P'))
        assert [t.id for t in snap.tasks] == ['a']
        assert snap.projects == []
