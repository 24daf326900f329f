from dataclasses import dataclass, field
from typing import Annotated, Any, Optional

import httpx
from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError

from teamsync.codec import Collection, Row
from teamsync.utils import StrEnum, TeamSyncError


##########
# ERRORS #
##########

class BridgeError(TeamSyncError):
    """Error communicating with the spreadsheet bridge."""

class BridgeNotConfiguredError(BridgeError):
    """Error that occurs when no valid bridge URL is configured."""

class TransportError(BridgeError):
    """Error that occurs when a request fails (network error or unsuccessful HTTP status)."""

class SnapshotFormatError(BridgeError):
    """Error that occurs when a pulled snapshot does not have the expected shape."""


############
# SNAPSHOT #
############

def _parse_rows(obj: Any) -> Any:
    return [] if (obj is None) else obj

RowList = Annotated[list[dict[str, Any]], BeforeValidator(_parse_rows)]


class Snapshot(BaseModel):
    """Full contents of the remote spreadsheet: one list of rows per collection.
    Absent collections are empty."""
    model_config = ConfigDict(extra='ignore')

    tasks: RowList = Field(default_factory=list, description='rows of the Tasks sheet')
    members: RowList = Field(default_factory=list, description='rows of the Team Members sheet')
    projects: RowList = Field(default_factory=list, description='rows of the Projects sheet')
    status: RowList = Field(default_factory=list, description='rows of the Status sheet')
    priority: RowList = Field(default_factory=list, description='rows of the Priority sheet')

    def rows(self, collection: Collection) -> list[Row]:
        """Gets the rows of the given collection."""
        return getattr(self, collection.value)


############
# REQUESTS #
############

class Action(StrEnum):
    """Operations the bridge can apply to a sheet."""
    upsert = 'upsert'
    delete = 'delete'


@dataclass(frozen=True)
class BridgeRequest:
    """A single write request sent to the bridge."""
    target_sheet: str
    action: Action
    id_column: str
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def entity_key(self) -> tuple[str, str]:
        """Gets a (sheet, identifier) pair identifying the row the request applies to."""
        if self.action == Action.delete:
            val = self.data.get('id')
        else:
            val = self.data.get(self.id_column)
        return (self.target_sheet, '' if (val is None) else str(val))

    def to_json_obj(self) -> dict[str, Any]:
        """Converts the request to the JSON body expected by the bridge."""
        return {
            'targetSheet': self.target_sheet,
            'action': str(self.action),
            'idColumn': self.id_column,
            'data': dict(self.data),
        }

    @classmethod
    def from_json_obj(cls, obj: Any) -> 'BridgeRequest':
        """Parses a request from a JSON body.
        If the identifying column is absent, it defaults to 'ID'."""
        if not isinstance(obj, dict):
            raise BridgeError('Request body must be a JSON object')
        try:
            action = Action(obj.get('action'))
        except ValueError:
            raise BridgeError(f'Invalid action {obj.get("action")!r}') from None
        data = obj.get('data')
        if not isinstance(data, dict):
            raise BridgeError('Request data must be a JSON object')
        return cls(
            target_sheet=str(obj.get('targetSheet', '')),
            action=action,
            id_column=str(obj.get('idColumn') or 'ID'),
            data=data,
        )


##########
# CLIENT #
##########

class BridgeClient:
    """Asynchronous HTTP client for the spreadsheet bridge.
    A GET to the endpoint returns a snapshot of all sheets; a POST applies a single write request.
    Each call uses its own connection, so concurrent calls are independent."""

    def __init__(self, url: Optional[str], timeout: Optional[float] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        if (not url) or (not url.startswith(('http://', 'https://'))):
            raise BridgeNotConfiguredError("No bridge URL is configured.\nRun 'teamsync config url [URL]' to set one.")
        self.url = url
        self.timeout = timeout
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {'follow_redirects': True}
        if self.timeout is not None:
            kwargs['timeout'] = self.timeout
        if self.transport is not None:
            kwargs['transport'] = self.transport
        return httpx.AsyncClient(**kwargs)

    async def fetch_snapshot(self) -> Snapshot:
        """Pulls a full snapshot of the remote spreadsheet."""
        try:
            async with self._client() as client:
                response = await client.get(self.url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f'Pull failed: {e}') from e
        try:
            data = response.json()
        except ValueError:
            raise SnapshotFormatError('Bridge response is not valid JSON') from None
        try:
            return Snapshot.model_validate(data)
        except ValidationError as e:
            raise SnapshotFormatError(f'Unexpected snapshot format: {e.error_count()} error(s)') from None

    async def send(self, request: BridgeRequest) -> None:
        """Sends a write request to the bridge.
        The response body is not interpreted; only the transport outcome matters."""
        try:
            async with self._client() as client:
                response = await client.post(self.url, json=request.to_json_obj())
                response.raise_for_status()
        except httpx.HTTPError as e:
            raise TransportError(f'Push to {request.target_sheet!r} failed: {e}') from e
