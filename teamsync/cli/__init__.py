import asyncio
from collections.abc import AsyncIterator, Coroutine
from contextlib import asynccontextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Optional, TypeVar

import typer

from teamsync import logger
from teamsync.config import get_config
from teamsync.sheet import SheetBook
from teamsync.store import Store
from teamsync.utils import TeamSyncError


T = TypeVar('T')

# default settings for typer app
APP_KWARGS: dict[str, Any] = {
    'add_completion': False,
    'context_settings': {
        'help_option_names': ['-h', '--help']
    },
    # if True, display "pretty" (but very verbose) exceptions
    'pretty_exceptions_enable': False
}

# placeholder endpoint for a bridge backed by a local workbook
LOCAL_BOOK_URL = 'http://workbook.local/'


@dataclass
class AppState:
    """State shared by all subcommands."""
    book_path: Optional[Path] = None


def get_state(ctx: typer.Context) -> AppState:
    """Gets the shared state from a command context."""
    return ctx.obj if isinstance(ctx.obj, AppState) else AppState()


def run(coro: Coroutine[Any, Any, T]) -> T:
    """Runs a coroutine to completion, exiting with an error message if it raises a TeamSyncError."""
    with logger.catch_errors(TeamSyncError):
        return asyncio.run(coro)
    return None  # type: ignore[return-value]


@asynccontextmanager
async def open_store(state: AppState, pull: bool = True) -> AsyncIterator[Store]:
    """Opens a store connected either to the configured bridge or to a local workbook.
    By default, pulls first (exiting if this fails).
    On exit, waits for pending pushes, and saves the workbook if it was modified."""
    config = get_config()
    book: Optional[SheetBook] = None
    if state.book_path is None:
        store = Store.from_config(config)
    else:
        book = SheetBook.load_workbook(state.book_path)
        store = Store.from_config(config, url=LOCAL_BOOK_URL, transport=book.transport())
    if pull and (await store.pull() is None):
        raise typer.Exit(1)
    try:
        yield store
    finally:
        await store.drain()
        if (book is not None) and book.revision:
            assert state.book_path is not None
            book.save_workbook(state.book_path)
            logger.info(f'Saved workbook {state.book_path}')
        if store.status.failed:
            logger.warning(f'Some changes could not be synced: {store.status.last_error}')
