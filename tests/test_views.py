from datetime import date

import pytest

from teamsync.model import DEFAULT_PRIORITIES, DEFAULT_STATUSES, EntityModel, Project, Task, User
from teamsync.views import NO_PROJECT, UNASSIGNED, Column, GroupBy, Quadrant, TaskFilter, columns, eisenhower, group_tasks, move_changes


def _task(id_, due, priority='Medium', status='To Do', **kwargs):
    return Task(id=id_, title=kwargs.pop('title', id_), status_id=status, priority_id=priority, due_date=due, **kwargs)


@pytest.fixture
def model() -> EntityModel:
    tasks = [
        _task('a', date(2025, 3, 1), priority='Critical', project_id='Launch', assignee_id='Alice', title='Write brief'),
        _task('b', date(2025, 3, 2), priority='Low', title='Book venue'),
        _task('c', date(2025, 3, 5), priority='High', assignee_id='Alice'),
        _task('d', date(2025, 3, 9), priority='Low', project_id='Launch'),
        _task('e', date(2025, 2, 1), priority='High', status='Done'),
        _task('f', date(2025, 3, 1), priority='Medium', status='Review'),
    ]
    return EntityModel(
        tasks=tasks,
        users=[User(id='Alice', name='Alice')],
        projects=[Project(id='Launch', name='Launch')],
        statuses=list(DEFAULT_STATUSES),
        priorities=list(DEFAULT_PRIORITIES),
    )


class TestBoard:

    def test_columns(self, model):
        assert [col.id for col in columns(model, GroupBy.status)] == ['To Do', 'In Progress', 'Review', 'Done']
        assert [col.id for col in columns(model, GroupBy.priority)] == ['Low', 'Medium', 'High', 'Critical']
        assert columns(model, GroupBy.assignee) == [Column('Alice', 'Alice'), Column('', UNASSIGNED)]
        assert columns(model, GroupBy.project) == [Column('Launch', 'Launch'), Column('', NO_PROJECT)]

    def test_group_tasks(self, model):
        groups = {col.id: [t.id for t in tasks] for (col, tasks) in group_tasks(model, GroupBy.assignee)}
        assert groups == {'Alice': ['a', 'c'], '': ['b', 'd', 'e', 'f']}
        groups = {col.id: [t.id for t in tasks] for (col, tasks) in group_tasks(model, GroupBy.status)}
        assert groups['Done'] == ['e']
        assert groups['In Progress'] == []

    @pytest.mark.parametrize(['group_by', 'column_id', 'changes'], [
        (GroupBy.status, 'Done', {'status_id': 'Done'}),
        (GroupBy.priority, 'High', {'priority_id': 'High'}),
        (GroupBy.assignee, '', {'assignee_id': ''}),
        (GroupBy.project, 'Launch', {'project_id': 'Launch'}),
    ])
    def test_move_changes(self, group_by, column_id, changes):
        assert move_changes(group_by, column_id) == changes

    def test_filter(self, model):
        assert [t.id for t in TaskFilter()(model.tasks)] == ['a', 'b', 'c', 'd', 'e', 'f']
        assert [t.id for t in TaskFilter(project='Launch')(model.tasks)] == ['a', 'd']
        assert [t.id for t in TaskFilter(project='all', assignee='Alice', priority='High')(model.tasks)] == ['c']
        assert [t.id for t in TaskFilter(search='VENUE')(model.tasks)] == ['b']
        assert TaskFilter(status='In Progress')(model.tasks) == []


class TestEisenhower:

    def test_quadrants(self, model):
        quadrants = eisenhower(model)
        ids = {quadrant: [t.id for t in tasks] for (quadrant, tasks) in quadrants.items()}
        # earliest two distinct due dates among unfinished tasks are 3/1 and 3/2
        assert ids == {
            Quadrant.do_first: ['a'],
            Quadrant.schedule: ['c'],
            Quadrant.delegate: ['f', 'b'],
            Quadrant.eliminate: ['d'],
        }

    def test_sorted_by_due_date(self):
        model = EntityModel(tasks=[
            _task('late', date(2025, 1, 3), priority='High'),
            _task('early', date(2025, 1, 1), priority='High'),
            _task('mid', date(2025, 1, 2), priority='High'),
        ])
        quadrants = eisenhower(model)
        assert [t.id for t in quadrants[Quadrant.do_first]] == ['early', 'mid']
        assert [t.id for t in quadrants[Quadrant.schedule]] == ['late']

    def test_classify(self):
        assert Quadrant.classify(urgent=True, important=True) == Quadrant.do_first
        assert Quadrant.classify(urgent=False, important=True) == Quadrant.schedule
        assert Quadrant.classify(urgent=True, important=False) == Quadrant.delegate
        assert Quadrant.classify(urgent=False, important=False) == Quadrant.eliminate
        assert Quadrant.eliminate.heading == "Don't Do"
