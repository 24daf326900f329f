"""Rebuilding the entity model from a pulled snapshot.

Reconciliation never mutates the previous model: it always produces a brand-new one, so that callers can swap it in with a single assignment."""

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

from teamsync import logger
from teamsync.bridge import Snapshot
from teamsync.codec import Collection, DecodeContext, Row, decode_row, is_blank_row
from teamsync.model import DEFAULT_PRIORITIES, DEFAULT_STATUSES, EntityModel, Model, Project, Task, User


@dataclass
class ReconcileReport:
    """Summary of anomalies encountered while reconciling a snapshot."""
    # names of entities created from task references
    discovered_projects: list[str] = field(default_factory=list)
    discovered_users: list[str] = field(default_factory=list)
    # number of rows skipped (blank, or lacking an identifier)
    skipped_rows: dict[Collection, int] = field(default_factory=dict)
    # identifiers appearing more than once (later rows are dropped)
    duplicate_ids: dict[Collection, list[str]] = field(default_factory=dict)
    # columns not recognized by the collection's schema
    unknown_columns: dict[Collection, list[str]] = field(default_factory=dict)
    # collections whose previous contents were kept because the snapshot had none
    retained: list[Collection] = field(default_factory=list)

    @property
    def num_skipped(self) -> int:
        """Gets the total number of skipped rows."""
        return sum(self.skipped_rows.values())

    def _skip(self, collection: Collection) -> None:
        self.skipped_rows[collection] = self.skipped_rows.get(collection, 0) + 1

    def _add_unknown(self, collection: Collection, columns: Iterable[str]) -> None:
        known = self.unknown_columns.setdefault(collection, [])
        known.extend(col for col in columns if col not in known)
        if not known:
            del self.unknown_columns[collection]


@dataclass
class Reconciliation:
    """Result of reconciling a snapshot: the new model, along with a report."""
    model: EntityModel
    report: ReconcileReport


def _decode_rows(collection: Collection, rows: list[Row], ctx: DecodeContext, report: ReconcileReport) -> list[Model]:
    """Decodes the rows of one collection, skipping blank and unidentified rows and dropping duplicate IDs."""
    entities: dict[str, Model] = {}
    for row in rows:
        if is_blank_row(row):
            report._skip(collection)
            continue
        decoded = decode_row(collection, row, ctx)
        report._add_unknown(collection, decoded.unknown_columns)
        entity = decoded.entity
        if entity is None:
            report._skip(collection)
        elif entity.id in entities:  # type: ignore[attr-defined]
            report.duplicate_ids.setdefault(collection, []).append(entity.id)  # type: ignore[attr-defined]
        else:
            entities[entity.id] = entity  # type: ignore[attr-defined]
    if (dups := report.duplicate_ids.get(collection)):
        logger.warning(f'Dropped {len(dups)} duplicate row(s) from the {collection.sheet_name!r} sheet: {", ".join(map(repr, dups))}')
    if (unknown := report.unknown_columns.get(collection)):
        logger.debug(f'Ignoring unknown column(s) in the {collection.sheet_name!r} sheet: {", ".join(unknown)}')
    return list(entities.values())


def reconcile(snapshot: Snapshot, previous: Optional[EntityModel] = None, today: Optional[date] = None, now: Optional[datetime] = None) -> Reconciliation:
    """Builds a new entity model from a snapshot.

    Statuses and priorities are taken in snapshot order; if the snapshot has none, those of the previous model are kept (or the defaults, if there is no previous model).
    Projects and users are replaced wholesale.
    Any project or assignee referenced by a task which has no corresponding entity gets a placeholder entity, appended in order of first reference.

    Args:
        snapshot: snapshot pulled from the bridge
        previous: model being replaced, if any
        today: date used for tasks lacking a due date (defaults to the current date)
        now: time used for tasks lacking an update time (defaults to the current time)

    Returns:
        A Reconciliation containing the new model and a report of anomalies"""
    report = ReconcileReport()
    ctx = DecodeContext(today=today, now=now)
    statuses = _decode_rows(Collection.status, snapshot.rows(Collection.status), ctx, report)
    if not statuses:
        statuses = list(previous.statuses if previous else DEFAULT_STATUSES)
        report.retained.append(Collection.status)
    priorities = _decode_rows(Collection.priority, snapshot.rows(Collection.priority), ctx, report)
    if not priorities:
        priorities = list(previous.priorities if previous else DEFAULT_PRIORITIES)
        report.retained.append(Collection.priority)
    projects: dict[str, Project] = {p.id: p for p in _decode_rows(Collection.projects, snapshot.rows(Collection.projects), ctx, report)}  # type: ignore[attr-defined]
    users: dict[str, User] = {u.id: u for u in _decode_rows(Collection.members, snapshot.rows(Collection.members), ctx, report)}  # type: ignore[attr-defined]
    ctx = DecodeContext(
        fallback_status_id=statuses[0].id,  # type: ignore[attr-defined]
        fallback_priority_id=priorities[0].id,  # type: ignore[attr-defined]
        today=today,
        now=now,
    )
    tasks: list[Task] = _decode_rows(Collection.tasks, snapshot.rows(Collection.tasks), ctx, report)  # type: ignore[assignment]
    for task in tasks:
        if task.project_id and (task.project_id not in projects):
            projects[task.project_id] = Project.placeholder(task.project_id)
            report.discovered_projects.append(task.project_id)
        if task.assignee_id and (task.assignee_id not in users):
            users[task.assignee_id] = User.placeholder(task.assignee_id)
            report.discovered_users.append(task.assignee_id)
    if report.discovered_projects:
        logger.info(f'Discovered project(s) referenced by tasks: {", ".join(map(repr, report.discovered_projects))}')
    if report.discovered_users:
        logger.info(f'Discovered team member(s) referenced by tasks: {", ".join(map(repr, report.discovered_users))}')
    model = EntityModel(
        tasks=tasks,
        users=list(users.values()),
        projects=list(projects.values()),
        statuses=statuses,  # type: ignore[arg-type]
        priorities=priorities,  # type: ignore[arg-type]
    )
    return Reconciliation(model, report)
