"""Reference implementation of the spreadsheet bridge.

A SheetBook holds named sheets, each with a header row and data rows.
It answers snapshot (GET) and write (POST) requests exactly as the deployed bridge script does, including its schema evolution: an upsert carrying a column the sheet lacks appends that column to the header.

Books can be loaded from and saved to .xlsx workbooks, so a local file can stand in for the remote spreadsheet."""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date, datetime, time
import json
from pathlib import Path
from typing import Any, Optional
import zipfile

import httpx
import openpyxl
from openpyxl.utils.exceptions import InvalidFileException
from openpyxl.worksheet.worksheet import Worksheet

from teamsync import logger
from teamsync.bridge import Action, BridgeError, BridgeRequest
from teamsync.codec import Collection
from teamsync.utils import TeamSyncError, cell_text, get_today, render_date


SUCCESS_REPLY = 'Success'


class WorkbookError(TeamSyncError):
    """Error reading or writing a workbook file."""


def _json_cell(val: Any) -> Any:
    """Converts a cell value to a JSON-serializable value, rendering dates and times as ISO strings."""
    if isinstance(val, (datetime, date, time)):
        return val.isoformat()
    return '' if (val is None) else val

def _cells_equal(cell: Any, val: Any) -> bool:
    """Compares a cell value with a payload value loosely, so that e.g. 1 matches '1'."""
    if val is None:
        return False
    return cell_text(cell) == cell_text(val)


def _append_text_row(ws: Worksheet, values: Sequence[Any]) -> None:
    """Appends a row to a worksheet, storing strings beginning with '=' as text rather than formulas."""
    ws.append(list(values))
    for cell in ws[ws.max_row]:
        if isinstance(cell.value, str) and cell.value.startswith('='):
            cell.data_type = 's'


@dataclass
class Sheet:
    """A single sheet: a header row followed by data rows."""
    name: str
    headers: list[str] = field(default_factory=list)
    rows: list[list[Any]] = field(default_factory=list)

    def records(self) -> list[dict[str, Any]]:
        """Gets the data rows as mappings from header to cell value."""
        width = len(self.headers)
        return [dict(zip(self.headers, list(row) + [''] * (width - len(row)))) for row in self.rows]

    def add_columns(self, names: Sequence[str]) -> list[str]:
        """Appends any of the given column names missing from the header, returning those added.
        Existing rows get an empty cell for each new column."""
        added = []
        for name in names:
            if name not in self.headers:
                self.headers.append(name)
                added.append(name)
        if added:
            width = len(self.headers)
            for row in self.rows:
                row.extend([''] * (width - len(row)))
        return added

    def find_row(self, column: str, val: Any) -> Optional[int]:
        """Gets the index of the first data row whose value in the given column matches, or None if there is none."""
        if column not in self.headers:
            return None
        idx = self.headers.index(column)
        for (i, row) in enumerate(self.rows):
            if (idx < len(row)) and _cells_equal(row[idx], val):
                return i
        return None


class SheetBook:
    """A collection of named sheets which behaves like the spreadsheet bridge."""

    def __init__(self, sheets: Optional[Sequence[Sheet]] = None) -> None:
        self.sheets: dict[str, Sheet] = {sheet.name: sheet for sheet in (sheets or [])}
        # number of write requests applied
        self.revision = 0

    def __contains__(self, name: str) -> bool:
        return name in self.sheets

    def __getitem__(self, name: str) -> Sheet:
        return self.sheets[name]

    def add_sheet(self, name: str, headers: Sequence[str] = (), rows: Sequence[Sequence[Any]] = ()) -> Sheet:
        """Adds a new sheet (replacing any existing one of the same name)."""
        sheet = Sheet(name, list(headers), [list(row) for row in rows])
        self.sheets[name] = sheet
        return sheet

    def records(self, name: str) -> list[dict[str, Any]]:
        """Gets the data rows of a sheet (empty if there is no such sheet)."""
        sheet = self.sheets.get(name)
        return sheet.records() if sheet else []

    # BRIDGE CONTRACT

    def snapshot(self) -> dict[str, list[dict[str, Any]]]:
        """Gets a snapshot of every known collection, as returned by a GET request."""
        return {
            str(coll): [{key: _json_cell(val) for (key, val) in record.items()} for record in self.records(coll.sheet_name)]
            for coll in Collection
        }

    def _upsert(self, sheet: Sheet, request: BridgeRequest) -> str:
        added = sheet.add_columns([key for key in request.data if key])
        if added:
            logger.debug(f'Added column(s) to {sheet.name!r}: {", ".join(added)}')
        if request.id_column not in sheet.headers:
            return 'Error: ID Column not found'
        values = [request.data.get(header, '') for header in sheet.headers]
        values = ['' if (val is None) else val for val in values]
        idx = sheet.find_row(request.id_column, request.data.get(request.id_column))
        if idx is None:
            sheet.rows.append(values)
        else:
            sheet.rows[idx] = values
        return SUCCESS_REPLY

    def _delete(self, sheet: Sheet, request: BridgeRequest) -> str:
        idx = sheet.find_row(request.id_column, request.data.get('id'))
        if idx is not None:
            del sheet.rows[idx]
        return SUCCESS_REPLY

    def apply(self, request: BridgeRequest) -> str:
        """Applies a write request, returning the bridge's textual reply.
        Problems with the request are reported in the reply (beginning with 'Error'), never raised."""
        sheet = self.sheets.get(request.target_sheet)
        if sheet is None:
            return 'Error: Sheet not found'
        if request.action == Action.upsert:
            reply = self._upsert(sheet, request)
        else:
            reply = self._delete(sheet, request)
        if reply == SUCCESS_REPLY:
            self.revision += 1
        return reply

    def handle(self, request: httpx.Request) -> httpx.Response:
        """Handles an HTTP request to the bridge endpoint."""
        if request.method == 'GET':
            return httpx.Response(200, json=self.snapshot())
        if request.method == 'POST':
            try:
                req = BridgeRequest.from_json_obj(json.loads(request.content))
            except (ValueError, BridgeError) as e:
                return httpx.Response(200, text=f'Error: {e}')
            return httpx.Response(200, text=self.apply(req))
        return httpx.Response(405, text='Error: Method not allowed')

    def transport(self, on_request: Optional[Callable[[httpx.Request], None]] = None) -> httpx.MockTransport:
        """Gets an HTTP transport that routes requests to this book.
        If on_request is given, it is called with each request before it is handled."""
        def _handler(request: httpx.Request) -> httpx.Response:
            if on_request is not None:
                on_request(request)
            return self.handle(request)
        return httpx.MockTransport(_handler)

    # TEMPLATE

    @classmethod
    def template(cls, today: Optional[date] = None) -> 'SheetBook':
        """Creates the starter book, with the expected sheets, headers, and some sample rows."""
        due = render_date(today or get_today())
        book = cls()
        book.add_sheet(
            'Tasks',
            ['ID', 'Title', 'Description', 'Status', 'Priority', 'DueDate', 'Assignee', 'Project', 'RefLinks', 'ActivityTrail', 'Subtasks'],
            [['t1', 'Sample Task', 'Description of the task', 'To Do', 'Medium', due, 'Alice Johnson', 'Website Redesign', 'Google|http://google.com', f'{due} - Created', 'Subtask 1\nSubtask 2']]
        )
        book.add_sheet(
            'Team Members',
            ['Name', 'Email', 'AvatarUrl'],
            [['Alice Johnson', 'alice@example.com', ''], ['Bob Smith', 'bob@example.com', '']]
        )
        book.add_sheet(
            'Projects',
            ['Name', 'ColorHex', 'Description'],
            [['Website Redesign', 'bg-blue-100', ''], ['Mobile App', 'bg-green-100', '']]
        )
        book.add_sheet('Status', ['Name'], [['To Do'], ['In Progress'], ['Review'], ['Done']])
        book.add_sheet(
            'Priority',
            ['Name', 'ColorClass'],
            [['Low', 'bg-gray-100'], ['Medium', 'bg-blue-100'], ['High', 'bg-orange-100'], ['Critical', 'bg-red-100']]
        )
        return book

    # WORKBOOK I/O

    @classmethod
    def load_workbook(cls, path: Path) -> 'SheetBook':
        """Loads a book from an .xlsx workbook.
        The first row of each worksheet is its header; fully empty rows are skipped."""
        try:
            wb = openpyxl.load_workbook(path, data_only=True)
        except (OSError, InvalidFileException, zipfile.BadZipFile, KeyError) as e:
            raise WorkbookError(f'Could not load workbook {path}: {e}') from None
        book = cls()
        for ws in wb.worksheets:
            rows = [list(row) for row in ws.iter_rows(values_only=True)]
            if not rows:
                book.add_sheet(ws.title)
                continue
            headers = [cell_text(val) for val in rows[0]]
            while headers and (not headers[-1]):
                headers.pop()
            data = [
                ['' if (val is None) else val for val in row[:len(headers)]]
                for row in rows[1:] if any((val is not None) and (val != '') for val in row)
            ]
            book.add_sheet(ws.title, headers, data)
        wb.close()
        return book

    def save_workbook(self, path: Path) -> None:
        """Saves the book to an .xlsx workbook."""
        wb = openpyxl.Workbook()
        if self.sheets:
            wb.remove(wb.active)
        for sheet in self.sheets.values():
            ws = wb.create_sheet(sheet.name)
            if sheet.headers:
                _append_text_row(ws, sheet.headers)
            for row in sheet.rows:
                _append_text_row(ws, row)
        try:
            wb.save(path)
        except OSError as e:
            raise WorkbookError(f'Could not save workbook {path}: {e}') from None
