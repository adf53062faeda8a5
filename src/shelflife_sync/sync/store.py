"""Remote document store boundary.

``RemoteDocumentStore`` is the only interface the synchronization core
depends on; any document database that can fetch by id set or whole
collection, upsert, delete and push snapshots of a watched set is
interchangeable.

Implementations provide the ``_fetch_many``/``_fetch_all``/``_put``/
``_delete``/``_watch``/``_watch_all`` hooks; the public methods enforce the
shared contract (empty id sets never reach the backend, ``delete`` of an
absent uid is not an error).

This module also ships ``InMemoryDocumentStore``, a dict-backed store that
behaves like a remote one: it keeps encoded documents and delivers watch
snapshots asynchronously on the running event loop.
"""

from __future__ import annotations

import asyncio
import logging
import secrets
import string
from abc import ABC, abstractmethod
from collections.abc import Callable, Collection
from typing import Any, Generic, TypeVar

from pydantic import ValidationError

from .errors import NotFound, RemoteReadFailure
from .models import Entity

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)

SnapshotCallback = Callable[[list[E]], None]
ErrorCallback = Callable[[Exception], None]

_AUTO_ID_ALPHABET = string.ascii_letters + string.digits
AUTO_ID_LENGTH = 20


def auto_id() -> str:
    """Return a 20-character random alphanumeric document id."""
    return "".join(
        secrets.choice(_AUTO_ID_ALPHABET) for _ in range(AUTO_ID_LENGTH)
    )


class SubscriptionHandle:
    """Cancellable handle for one live watch.

    Args:
        on_cancel: Called once, on the first ``cancel()``.
    """

    def __init__(self, on_cancel: Callable[[], None] | None = None) -> None:
        self._on_cancel = on_cancel
        self._cancelled = False

    @classmethod
    def inert(cls) -> SubscriptionHandle:
        """Return a handle for a watch that never went live."""
        handle = cls()
        handle._cancelled = True
        return handle

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop delivery.  Idempotent."""
        if self._cancelled:
            return
        self._cancelled = True
        if self._on_cancel is not None:
            self._on_cancel()


class RemoteDocumentStore(ABC, Generic[E]):
    """Adapter interface to one remote document collection.

    Args:
        entity_type: Entity class used to decode documents.
        collection: Collection path (e.g. ``recipes`` or
            ``foodItems/<household>/items``).
    """

    def __init__(self, entity_type: type[E], collection: str) -> None:
        self.entity_type = entity_type
        self.collection = collection

    def new_uid(self) -> str:
        """Generate an identifier unique within the remote store."""
        return auto_id()

    async def fetch_many(self, uids: Collection[str]) -> list[E]:
        """Fetch the entities for *uids*.

        Missing documents are simply absent from the result.

        Raises:
            RemoteReadFailure: On transport or decoding error.
        """
        if not uids:
            return []
        return await self._fetch_many(frozenset(uids))

    async def fetch(self, uid: str) -> E:
        """Fetch a single entity.

        Raises:
            NotFound: If no document exists for *uid*.
            RemoteReadFailure: On transport or decoding error.
        """
        found = await self.fetch_many({uid})
        if not found:
            raise NotFound([uid])
        return found[0]

    async def fetch_all(self) -> list[E]:
        """Fetch every entity in the collection.

        Raises:
            RemoteReadFailure: On transport or decoding error.
        """
        return await self._fetch_all()

    async def put(self, entity: E) -> None:
        """Upsert *entity*.

        Raises:
            RemoteWriteFailure: If the write did not succeed.
        """
        await self._put(entity)

    async def delete(self, uid: str) -> None:
        """Delete the document for *uid*; absent documents are ignored.

        Raises:
            RemoteWriteFailure: If the delete did not succeed.
        """
        await self._delete(uid)

    def watch(
        self,
        uids: Collection[str],
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        """Push a full snapshot of *uids* whenever a watched document changes.

        An empty id set delivers an empty snapshot immediately and returns
        an inert handle without opening a live subscription.
        """
        if not uids:
            on_snapshot([])
            return SubscriptionHandle.inert()
        return self._watch(frozenset(uids), on_snapshot, on_error)

    def watch_all(
        self,
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        """Push a full snapshot of the collection whenever any document in
        it is added, changed or removed."""
        return self._watch_all(on_snapshot, on_error)

    def decode(self, document: dict[str, Any]) -> E:
        """Decode *document* into ``entity_type``.

        Raises:
            RemoteReadFailure: If the document is not a valid entity.
        """
        try:
            return self.entity_type.from_document(document)
        except ValidationError as exc:
            raise RemoteReadFailure(
                f"Invalid {self.entity_type.__name__} document in "
                f"'{self.collection}': {exc}"
            ) from exc

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    @abstractmethod
    async def _fetch_many(self, uids: frozenset[str]) -> list[E]: ...

    @abstractmethod
    async def _fetch_all(self) -> list[E]: ...

    @abstractmethod
    async def _put(self, entity: E) -> None: ...

    @abstractmethod
    async def _delete(self, uid: str) -> None: ...

    @abstractmethod
    def _watch(
        self,
        uids: frozenset[str],
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle: ...

    @abstractmethod
    def _watch_all(
        self,
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle: ...


class _Watcher(Generic[E]):
    """One watch; ``uids`` of ``None`` watches the whole collection."""

    def __init__(
        self,
        uids: frozenset[str] | None,
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> None:
        self.uids = uids
        self.on_snapshot = on_snapshot
        self.on_error = on_error
        self.handle = SubscriptionHandle()


class InMemoryDocumentStore(RemoteDocumentStore[E]):
    """Dict-backed document store with asynchronous watch delivery.

    Documents are stored encoded (``Entity.to_document()``) and decoded on
    every read, so values handed out are never shared with the caller.

    Args:
        entity_type: Entity class used to decode documents.
        collection: Collection path, informational only.
        documents: Optional initial documents keyed by uid.
    """

    def __init__(
        self,
        entity_type: type[E],
        collection: str = "documents",
        documents: dict[str, dict[str, Any]] | None = None,
    ) -> None:
        super().__init__(entity_type, collection)
        self.documents: dict[str, dict[str, Any]] = dict(documents or {})
        self._watchers: list[_Watcher[E]] = []

    @classmethod
    def seeded(
        cls,
        entity_type: type[E],
        entities: Collection[E],
        collection: str = "documents",
    ) -> InMemoryDocumentStore[E]:
        """Build a store already holding *entities*."""
        return cls(
            entity_type,
            collection,
            {e.uid: e.to_document() for e in entities},
        )

    @property
    def active_watchers(self) -> int:
        return sum(1 for w in self._watchers if not w.handle.cancelled)

    async def _fetch_many(self, uids: frozenset[str]) -> list[E]:
        return self._read(uids)

    async def _fetch_all(self) -> list[E]:
        return self._read(None)

    async def _put(self, entity: E) -> None:
        self.documents[entity.uid] = entity.to_document()
        self._changed(entity.uid)

    async def _delete(self, uid: str) -> None:
        if self.documents.pop(uid, None) is not None:
            self._changed(uid)

    def _watch(
        self,
        uids: frozenset[str],
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        return self._add_watcher(_Watcher(uids, on_snapshot, on_error))

    def _watch_all(
        self,
        on_snapshot: SnapshotCallback[E],
        on_error: ErrorCallback,
    ) -> SubscriptionHandle:
        return self._add_watcher(_Watcher(None, on_snapshot, on_error))

    def fail_watchers(self, exc: Exception) -> None:
        """Terminate every active watch by delivering *exc* to it."""
        loop = asyncio.get_running_loop()
        watchers, self._watchers = self._watchers, []
        for watcher in watchers:
            if watcher.handle.cancelled:
                continue
            loop.call_soon(self._deliver_error, watcher, exc)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _add_watcher(self, watcher: _Watcher[E]) -> SubscriptionHandle:
        self._watchers.append(watcher)
        self._schedule(watcher)
        return watcher.handle

    def _read(self, uids: Collection[str] | None) -> list[E]:
        return [
            self.decode(document)
            for uid, document in self.documents.items()
            if uids is None or uid in uids
        ]

    def _changed(self, uid: str) -> None:
        self._watchers = [w for w in self._watchers if not w.handle.cancelled]
        for watcher in self._watchers:
            if watcher.uids is None or uid in watcher.uids:
                self._schedule(watcher)

    def _schedule(self, watcher: _Watcher[E]) -> None:
        asyncio.get_running_loop().call_soon(self._deliver, watcher)

    def _deliver(self, watcher: _Watcher[E]) -> None:
        if watcher.handle.cancelled:
            return
        try:
            entities = self._read(watcher.uids)
        except RemoteReadFailure as exc:
            self._deliver_error(watcher, exc)
            return
        watcher.on_snapshot(entities)

    def _deliver_error(self, watcher: _Watcher[E], exc: Exception) -> None:
        if watcher.handle.cancelled:
            return
        watcher.handle.cancel()
        logger.debug("Watch on '%s' terminated: %s", self.collection, exc)
        watcher.on_error(exc)
