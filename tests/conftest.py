from datetime import date
import json
from pathlib import Path

import httpx
import pytest

from teamsync.bridge import BridgeClient
from teamsync.config import BRIDGE_URL_ENV_VAR
from teamsync.sheet import SheetBook
from teamsync.store import Store


BRIDGE_URL = 'https://bridge.example.com/exec'
TODAY = date(2025, 2, 20)


@pytest.fixture(scope='session', autouse=True)
def _tmp_home_dir(tmp_path_factory):
    """Sets the user's home directory to a temporary path."""
    home_dir = tmp_path_factory.mktemp('home')
    with pytest.MonkeyPatch.context() as ctx:
        ctx.setattr(Path, 'home', lambda: home_dir)
        yield

@pytest.fixture(autouse=True)
def _no_bridge_url_env(monkeypatch):
    """Ensures the bridge URL environment variable is not set."""
    monkeypatch.delenv(BRIDGE_URL_ENV_VAR, raising=False)

@pytest.fixture
def book() -> SheetBook:
    """Fixture returning the starter book."""
    return SheetBook.template(today=TODAY)

@pytest.fixture
def sent() -> list[dict]:
    """Fixture collecting the JSON bodies of write requests routed to the book."""
    return []

@pytest.fixture
def client(book, sent) -> BridgeClient:
    """Fixture returning a bridge client routed to the book."""
    def _record(request: httpx.Request) -> None:
        if request.method == 'POST':
            sent.append(json.loads(request.content))
    return BridgeClient(BRIDGE_URL, transport=book.transport(on_request=_record))

@pytest.fixture
def store(client) -> Store:
    """Fixture returning a store whose bridge is the book."""
    return Store(client)
