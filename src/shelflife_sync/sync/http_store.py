"""Document store adapter over ``DocumentStoreClient``.

The blocking HTTP client runs in worker threads via ``run_sync_limited``;
results resume on the event loop, which is the repository's execution
context.  Large id sets are split into ``max_batch_size`` chunks fetched
concurrently.  The REST API has no push channel, so ``watch`` and
``watch_all`` poll the watched id set or the whole collection and deliver a
snapshot whenever its content changes.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from typing import TypeVar

import requests

from ..core.async_utils import gather_limited, run_sync_limited
from ..core.client import DocumentStoreClient
from .errors import NotFound, RemoteReadFailure, RemoteWriteFailure
from .models import Entity
from .store import (
    ErrorCallback,
    RemoteDocumentStore,
    SnapshotCallback,
    SubscriptionHandle,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


def snapshot_fingerprint(entities: list[E]) -> str:
    """Order-independent digest of a snapshot's content."""
    documents = sorted(
        (e.to_document() for e in entities), key=lambda d: d["uid"]
    )
    return json.dumps(documents, sort_keys=True, default=str)


class HttpDocumentStore(RemoteDocumentStore[E]):
    """``RemoteDocumentStore`` backed by the REST document API.

    Args:
        client: Shared blocking client (safe to share between stores).
        entity_type: Entity class used to decode documents.
        collection: Collection path.
        poll_interval: Seconds between watch polls.
    """

    def __init__(
        self,
        client: DocumentStoreClient,
        entity_type: type[E],
        collection: str,
        *,
        poll_interval: float = 2.0,
    ) -> None:
        super().__init__(entity_type, collection)
        self.client = client
        self.poll_interval = poll_interval
        self._poll_tasks: set[asyncio.Task] = set()

    async def fetch(self, uid: str) -> E:
        """Fetch a single entity with one document read.

        Raises:
            NotFound: If no document exists for *uid*.
            RemoteReadFailure: On transport or decoding error.
        """
        try:
            document = await run_sync_limited(
                self.client.get_document, self.collection, uid
            )
        except (requests.RequestException, ValueError) as exc:
            raise RemoteReadFailure(
                f"Failed to fetch '{self.collection}/{uid}': {exc}"
            ) from exc
        if document is None:
            raise NotFound([uid])
        return self.decode(document)

    async def _fetch_many(self, uids: frozenset[str]) -> list[E]:
        ids = sorted(uids)
        size = self.client.config.max_batch_size
        try:
            chunks = await gather_limited(
                [
                    run_sync_limited(
                        self.client.batch_get,
                        self.collection,
                        ids[start : start + size],
                    )
                    for start in range(0, len(ids), size)
                ]
            )
        except (requests.RequestException, ValueError) as exc:
            raise RemoteReadFailure(
                f"Failed to fetch {len(uids)} document(s) from "
                f"'{self.collection}': {exc}"
            ) from exc
        return [self.decode(document) for chunk in chunks for document in chunk]

    async def _fetch_all(self) -> list[E]:
        try:
            documents = await run_sync_limited(
                self.client.list_documents, self.collection
            )
        except (requests.RequestException, ValueError) as exc:
            raise RemoteReadFailure(
                f"Failed to list '{self.collection}': {exc}"
            ) from exc
        return [self.decode(document) for document in documents]

    async def _put(self, entity: E) -> None:
        try:
            await run_sync_limited(
                self.client.put_document,
                self.collection,
                entity.uid,
                entity.to_document(),
            )
        except (requests.RequestException, ValueError) as exc:
            raise RemoteWriteFailure(
                f"Failed to write '{self.collection}/{entity.uid}': {exc}"
            ) from exc

    async def _delete(self, uid: str) -> None:
        try:
            await run_sync_limited(
                self.client.delete_document, self.collection, uid
            )
        except (requests.RequestException, ValueError) as exc:
            raise RemoteWriteFailure(
                f"Failed to delete '{self.collection}/{uid}': {exc}"
            ) from exc

    def _watch(
        self,
        uids: frozenset[str],
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        return self._start_poll(
            lambda: self._fetch_many(uids), on_snapshot, on_error
        )

    def _watch_all(
        self,
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        return self._start_poll(self._fetch_all, on_snapshot, on_error)

    def _start_poll(
        self,
        read: Callable[[], Awaitable[list[E]]],
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        task = asyncio.get_running_loop().create_task(
            self._poll(read, on_snapshot, on_error),
            name=f"watch:{self.collection}",
        )
        self._poll_tasks.add(task)
        task.add_done_callback(self._poll_tasks.discard)
        return SubscriptionHandle(on_cancel=task.cancel)

    async def _poll(
        self,
        read: Callable[[], Awaitable[list[E]]],
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> None:
        last: str | None = None
        while True:
            try:
                entities = await read()
            except RemoteReadFailure as exc:
                logger.warning(
                    "Watch on '%s' failed, stopping: %s", self.collection, exc
                )
                on_error(exc)
                return
            fingerprint = snapshot_fingerprint(entities)
            if fingerprint != last:
                last = fingerprint
                on_snapshot(entities)
            await asyncio.sleep(self.poll_interval)

    async def close(self) -> None:
        """Cancel every polling watch opened by this store."""
        tasks = list(self._poll_tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
