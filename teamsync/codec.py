"""Conversion between flat spreadsheet rows and typed entities.

A row is a mapping from column name to a scalar cell value, as emitted or accepted by the bridge.
Each known collection (sheet) has a schema describing its name, identifying column, columns, and a pair of encode/decode functions.

Decoding is total: a malformed or incomplete row always produces a best-effort entity, since the remote data is a human-editable document.
Encoding is total and only ever emits strings."""

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime
import time
from typing import Any, Callable, Generic, Optional, TypeVar
import uuid

from teamsync.model import DEFAULT_PRIORITIES, DEFAULT_PRIORITY_COLOR, DEFAULT_PROJECT_COLOR, DEFAULT_STATUSES, Model, Priority, Project, ReferenceLink, Status, Task, User
from teamsync.utils import StrEnum, cell_text, get_current_time, get_today, parse_date, parse_timestamp, render_date, render_timestamp, single_line, split_lines


E = TypeVar('E', bound=Model)

Row = Mapping[str, Any]
EncodedRow = dict[str, str]

LIST_DELIMITER = '\n'
LINK_DELIMITER = '|'
# replaces the link delimiter within link titles so that decoding stays unambiguous
LINK_TITLE_DELIMITER_SUB = '¦'
LEGACY_LINK_TITLE = 'Link'
UNTITLED = 'Untitled'


@dataclass(frozen=True)
class DecodeContext:
    """Fallback values used when decoding rows with missing fields."""
    fallback_status_id: str = DEFAULT_STATUSES[0].id
    fallback_priority_id: str = DEFAULT_PRIORITIES[0].id
    today: Optional[date] = None
    now: Optional[datetime] = None


@dataclass
class Decoded(Generic[E]):
    """Result of decoding a row: the entity (None if the row lacks an identifier), plus any columns not recognized by the collection's schema."""
    entity: Optional[E]
    unknown_columns: list[str] = field(default_factory=list)


##########
# VALUES #
##########

def _text(row: Row, column: str) -> str:
    return cell_text(row.get(column))

def _key(row: Row, column: str) -> str:
    return cell_text(row.get(column)).strip()

def is_blank_row(row: Row) -> bool:
    """Returns True if every cell in the row is empty."""
    return not any(cell_text(val).strip() for val in row.values())

def encode_list(items: list[str]) -> str:
    """Encodes a list of strings as a newline-joined string."""
    return LIST_DELIMITER.join(single_line(item) for item in items)

def decode_list(val: Any) -> list[str]:
    """Decodes a newline-joined string into a list of strings, dropping empty lines."""
    return split_lines(cell_text(val))

def encode_link(link: ReferenceLink) -> str:
    """Encodes a reference link as a single 'title|url' line."""
    title = single_line(link.title).replace(LINK_DELIMITER, LINK_TITLE_DELIMITER_SUB)
    return f'{title}{LINK_DELIMITER}{single_line(link.url)}'

def decode_link(line: str) -> ReferenceLink:
    """Decodes a single 'title|url' line into a reference link.
    Only the first delimiter is significant, so URLs may contain the delimiter.
    A line with no delimiter is a bare URL (the legacy format), which gets a placeholder title."""
    (title, sep, url) = line.partition(LINK_DELIMITER)
    if not sep:
        return ReferenceLink(title=LEGACY_LINK_TITLE, url=line)
    return ReferenceLink(title=title, url=url)

def encode_links(links: list[ReferenceLink]) -> str:
    """Encodes a list of reference links as a newline-joined string."""
    return LIST_DELIMITER.join(map(encode_link, links))

def decode_links(val: Any) -> list[ReferenceLink]:
    """Decodes a newline-joined string into a list of reference links."""
    return [decode_link(line) for line in decode_list(val)]

def generate_task_id() -> str:
    """Generates a task ID for a row which lacks one."""
    return f't{int(time.time() * 1000)}-{uuid.uuid4().hex[:8]}'


#########
# TASKS #
#########

TASK_COLUMNS = ('ID', 'Title', 'Description', 'Status', 'Priority', 'DueDate', 'Assignee', 'Project', 'RefLinks', 'ActivityTrail', 'Subtasks', 'UpdatedAt')

def decode_task(row: Row, ctx: Optional[DecodeContext] = None) -> Decoded[Task]:
    """Decodes a row of the Tasks sheet."""
    ctx = ctx or DecodeContext()
    title = _text(row, 'Title')
    due_date = parse_date(row.get('DueDate'))
    updated_at = parse_timestamp(row.get('UpdatedAt'))
    task = Task(
        id=_key(row, 'ID') or generate_task_id(),
        title=title if title.strip() else UNTITLED,
        description=_text(row, 'Description'),
        status_id=_key(row, 'Status') or ctx.fallback_status_id,
        priority_id=_key(row, 'Priority') or ctx.fallback_priority_id,
        assignee_id=_key(row, 'Assignee'),
        project_id=_key(row, 'Project'),
        due_date=due_date or ctx.today or get_today(),
        links=decode_links(row.get('RefLinks')),
        activity=decode_list(row.get('ActivityTrail')),
        subtasks=decode_list(row.get('Subtasks')),
        updated_at=updated_at or ctx.now or get_current_time(),
    )
    return Decoded(task, _unknown_columns(row, TASK_COLUMNS))

def encode_task(task: Task) -> EncodedRow:
    """Encodes a task as a row of the Tasks sheet."""
    return {
        'ID': task.id,
        'Title': task.title,
        'Description': task.description,
        'Status': task.status_id,
        'Priority': task.priority_id,
        'DueDate': render_date(task.due_date),
        'Assignee': task.assignee_id,
        'Project': task.project_id,
        'RefLinks': encode_links(task.links),
        'ActivityTrail': encode_list(task.activity),
        'Subtasks': encode_list(task.subtasks),
        'UpdatedAt': render_timestamp(task.updated_at),
    }


###################
# REFERENCE ROWS #
###################

PROJECT_COLUMNS = ('Name', 'ColorHex', 'Description')
MEMBER_COLUMNS = ('Name', 'Email', 'AvatarUrl')
STATUS_COLUMNS = ('Name',)
PRIORITY_COLUMNS = ('Name', 'ColorClass')

def _unknown_columns(row: Row, columns: tuple[str, ...]) -> list[str]:
    return [col for col in row if col and (col not in columns)]

def decode_project(row: Row, ctx: Optional[DecodeContext] = None) -> Decoded[Project]:
    """Decodes a row of the Projects sheet."""
    unknown = _unknown_columns(row, PROJECT_COLUMNS)
    if not (name := _key(row, 'Name')):
        return Decoded(None, unknown)
    project = Project(
        id=name,
        name=name,
        color=_key(row, 'ColorHex') or DEFAULT_PROJECT_COLOR,
        description=_text(row, 'Description'),
    )
    return Decoded(project, unknown)

def encode_project(project: Project) -> EncodedRow:
    """Encodes a project as a row of the Projects sheet."""
    return {'Name': project.name, 'ColorHex': project.color, 'Description': project.description}

def decode_user(row: Row, ctx: Optional[DecodeContext] = None) -> Decoded[User]:
    """Decodes a row of the Team Members sheet."""
    unknown = _unknown_columns(row, MEMBER_COLUMNS)
    if not (name := _key(row, 'Name')):
        return Decoded(None, unknown)
    user = User(id=name, name=name, email=_key(row, 'Email'), avatar=_key(row, 'AvatarUrl'))
    return Decoded(user, unknown)

def encode_user(user: User) -> EncodedRow:
    """Encodes a user as a row of the Team Members sheet."""
    return {'Name': user.name, 'Email': user.email, 'AvatarUrl': user.avatar}

def decode_status(row: Row, ctx: Optional[DecodeContext] = None) -> Decoded[Status]:
    """Decodes a row of the Status sheet."""
    unknown = _unknown_columns(row, STATUS_COLUMNS)
    if not (name := _key(row, 'Name')):
        return Decoded(None, unknown)
    return Decoded(Status(id=name, name=name), unknown)

def encode_status(status: Status) -> EncodedRow:
    """Encodes a status as a row of the Status sheet."""
    return {'Name': status.name}

def decode_priority(row: Row, ctx: Optional[DecodeContext] = None) -> Decoded[Priority]:
    """Decodes a row of the Priority sheet."""
    unknown = _unknown_columns(row, PRIORITY_COLUMNS)
    if not (name := _key(row, 'Name')):
        return Decoded(None, unknown)
    priority = Priority(id=name, name=name, color=_key(row, 'ColorClass') or DEFAULT_PRIORITY_COLOR)
    return Decoded(priority, unknown)

def encode_priority(priority: Priority) -> EncodedRow:
    """Encodes a priority as a row of the Priority sheet."""
    return {'Name': priority.name, 'ColorClass': priority.color}


###############
# COLLECTIONS #
###############

@dataclass(frozen=True)
class CollectionSchema(Generic[E]):
    """Schema of one remote collection (sheet)."""
    key: str  # key in the pulled snapshot
    sheet_name: str  # target sheet name for pushes
    id_column: str
    columns: tuple[str, ...]
    entity_type: type[E]
    decode: Callable[[Row, Optional[DecodeContext]], Decoded[E]]
    encode: Callable[[E], EncodedRow]


class Collection(StrEnum):
    """Enumeration of the known remote collections, keyed by their snapshot name."""
    tasks = 'tasks'
    members = 'members'
    projects = 'projects'
    status = 'status'
    priority = 'priority'

    @property
    def schema(self) -> CollectionSchema:
        """Gets the schema of the collection."""
        return SCHEMAS[self]

    @property
    def sheet_name(self) -> str:
        """Gets the name of the remote sheet holding the collection."""
        return self.schema.sheet_name

    @property
    def id_column(self) -> str:
        """Gets the name of the column identifying rows of the collection."""
        return self.schema.id_column

    @classmethod
    def for_entity(cls, entity: Model) -> 'Collection':
        """Gets the collection holding entities of the given type."""
        for coll in cls:
            if isinstance(entity, coll.schema.entity_type):
                return coll
        raise TypeError(f'No collection for entity of type {type(entity).__name__}')


SCHEMAS: dict[Collection, CollectionSchema] = {
    Collection.tasks: CollectionSchema('tasks', 'Tasks', 'ID', TASK_COLUMNS, Task, decode_task, encode_task),
    Collection.members: CollectionSchema('members', 'Team Members', 'Name', MEMBER_COLUMNS, User, decode_user, encode_user),
    Collection.projects: CollectionSchema('projects', 'Projects', 'Name', PROJECT_COLUMNS, Project, decode_project, encode_project),
    Collection.status: CollectionSchema('status', 'Status', 'Name', STATUS_COLUMNS, Status, decode_status, encode_status),
    Collection.priority: CollectionSchema('priority', 'Priority', 'Name', PRIORITY_COLUMNS, Priority, decode_priority, encode_priority),
}


def decode_row(collection: Collection, row: Row, ctx: Optional[DecodeContext] = None) -> Decoded:
    """Decodes a row belonging to the given collection."""
    return collection.schema.decode(row, ctx)

def encode_entity(entity: Model) -> EncodedRow:
    """Encodes an entity as a row of the collection it belongs to."""
    return Collection.for_entity(entity).schema.encode(entity)
