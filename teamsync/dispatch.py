"""Pushing local entity changes to the bridge.

Each change is serialized into a single bridge request and sent without blocking the caller.
A failed push is logged and recorded in the shared sync status, but never raised: the local model keeps the optimistic change."""

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from teamsync import logger
from teamsync.bridge import Action, BridgeClient, BridgeError, BridgeRequest
from teamsync.codec import Collection
from teamsync.model import Model
from teamsync.utils import get_current_time


def upsert_request(entity: Model, collection: Optional[Collection] = None) -> BridgeRequest:
    """Creates a request to insert or replace the row for an entity."""
    collection = collection or Collection.for_entity(entity)
    return BridgeRequest(
        target_sheet=collection.sheet_name,
        action=Action.upsert,
        id_column=collection.id_column,
        data=collection.schema.encode(entity),
    )

def delete_request(collection: Collection, id_: str) -> BridgeRequest:
    """Creates a request to delete the row with the given identifier."""
    return BridgeRequest(
        target_sheet=collection.sheet_name,
        action=Action.delete,
        id_column=collection.id_column,
        data={'id': id_},
    )


@dataclass
class SyncStatus:
    """Observable state of synchronization with the bridge."""
    last_synced: Optional[datetime] = None
    failed: bool = False
    last_error: Optional[str] = None
    in_flight: int = 0

    @property
    def is_syncing(self) -> bool:
        """Returns True if any request is in flight."""
        return self.in_flight > 0

    def mark_success(self) -> None:
        """Records a successful exchange with the bridge."""
        self.last_synced = get_current_time()
        self.failed = False
        self.last_error = None

    def mark_failure(self, error: object) -> None:
        """Records a failed exchange with the bridge."""
        self.failed = True
        self.last_error = str(error)


class Dispatcher:
    """Sends each request as an independent asyncio task, with no queueing, ordering, or retry.

    Requires a running event loop."""

    def __init__(self, client: BridgeClient, status: Optional[SyncStatus] = None) -> None:
        self.client = client
        self.status = SyncStatus() if (status is None) else status
        self._pending: set[asyncio.Future[bool]] = set()

    @property
    def num_pending(self) -> int:
        """Gets the number of dispatches not yet completed."""
        return len(self._pending)

    def _track(self, fut: 'asyncio.Future[bool]') -> 'asyncio.Future[bool]':
        self._pending.add(fut)
        fut.add_done_callback(self._pending.discard)
        return fut

    async def _attempt(self, request: BridgeRequest) -> Optional[BridgeError]:
        """Sends a request once, returning the error if it failed."""
        self.status.in_flight += 1
        try:
            await self.client.send(request)
        except BridgeError as e:
            return e
        finally:
            self.status.in_flight -= 1
        self.status.mark_success()
        return None

    async def _send(self, request: BridgeRequest) -> bool:
        if (err := await self._attempt(request)) is None:
            return True
        logger.error(f'Could not sync change to {request.target_sheet!r}: {err}')
        self.status.mark_failure(err)
        return False

    def dispatch(self, request: BridgeRequest) -> 'asyncio.Future[bool]':
        """Schedules a request to be sent, returning a future which resolves to True if it was delivered."""
        logger.debug(f'Dispatching {request.action} to {request.target_sheet!r}')
        return self._track(asyncio.ensure_future(self._send(request)))

    def upsert(self, entity: Model) -> 'asyncio.Future[bool]':
        """Schedules an upsert of an entity's row."""
        return self.dispatch(upsert_request(entity))

    def delete(self, collection: Collection, id_: str) -> 'asyncio.Future[bool]':
        """Schedules a deletion of an entity's row."""
        return self.dispatch(delete_request(collection, id_))

    async def drain(self) -> None:
        """Waits until all dispatched requests have completed."""
        while self._pending:
            await asyncio.gather(*list(self._pending))


class OutboxDispatcher(Dispatcher):
    """Dispatcher holding a bounded, ordered outbox of requests per entity.

    Requests for the same entity are sent one at a time in the order they were made; requests for different entities proceed concurrently.
    A failed send is retried with exponential backoff; a request is dropped (and the failure recorded) once its attempts are exhausted, or if the outbox is full when it is made.
    A pending upsert that has not started sending is superseded by a later upsert of the same entity."""

    def __init__(self, client: BridgeClient, status: Optional[SyncStatus] = None, maxsize: int = 100, max_attempts: int = 3, backoff: float = 0.5) -> None:
        if max_attempts < 1:
            raise ValueError(f'max_attempts must be at least 1, got {max_attempts}')
        if maxsize < 1:
            raise ValueError(f'maxsize must be at least 1, got {maxsize}')
        super().__init__(client, status=status)
        self.maxsize = maxsize
        self.max_attempts = max_attempts
        self.backoff = backoff
        self._queues: dict[tuple[str, str], deque[BridgeRequest]] = {}
        self._workers: dict[tuple[str, str], asyncio.Future[bool]] = {}

    @property
    def size(self) -> int:
        """Gets the number of requests in the outbox (including those being sent)."""
        return sum(map(len, self._queues.values()))

    async def _send(self, request: BridgeRequest) -> bool:
        for attempt in range(1, self.max_attempts + 1):
            if (err := await self._attempt(request)) is None:
                return True
            if attempt < self.max_attempts:
                delay = self.backoff * 2 ** (attempt - 1)
                logger.warning(f'Sync to {request.target_sheet!r} failed (attempt {attempt}/{self.max_attempts}), retrying in {delay:g}s: {err}')
                await asyncio.sleep(delay)
        logger.error(f'Could not sync change to {request.target_sheet!r} after {self.max_attempts} attempt(s): {err}')
        self.status.mark_failure(err)
        return False

    async def _run_queue(self, key: tuple[str, str]) -> bool:
        queue = self._queues[key]
        delivered = True
        while queue:
            delivered = (await self._send(queue[0])) and delivered
            queue.popleft()
        del self._queues[key]
        del self._workers[key]
        return delivered

    async def _rejected(self) -> bool:
        return False

    def dispatch(self, request: BridgeRequest) -> 'asyncio.Future[bool]':
        """Adds a request to the outbox, returning a future which resolves to True if every request queued for the same entity was delivered."""
        key = request.entity_key
        queue = self._queues.get(key)
        if queue and (len(queue) > 1) and (queue[-1].action == request.action == Action.upsert):
            logger.debug(f'Superseding pending upsert to {request.target_sheet!r}')
            queue[-1] = request
            return self._workers[key]
        if self.size >= self.maxsize:
            msg = f'Outbox is full ({self.maxsize} pending changes), dropping change to {request.target_sheet!r}'
            logger.error(msg)
            self.status.mark_failure(msg)
            return asyncio.ensure_future(self._rejected())
        if queue is None:
            self._queues[key] = deque([request])
            self._workers[key] = self._track(asyncio.ensure_future(self._run_queue(key)))
        else:
            queue.append(request)
        return self._workers[key]
