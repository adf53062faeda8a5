"""Optimistic, listener-backed repository for one entity collection.

``SyncRepository`` keeps an ``ObservableCache`` consistent with a
``RemoteDocumentStore``:

1. Mutators (``add``/``update``/``delete``) apply their change to the cache
   synchronously, then return a task that performs the remote write.
2. When the write fails the cache change is rolled back; when it succeeds
   nothing else happens.
3. An active watch subscription replaces the cache wholesale with every
   snapshot the store delivers, so server state always wins eventually.

All cache access happens on the event loop that calls the repository.
Remote completions resume on that same loop, so no locking is needed
around the cache itself.

Mutation sequencing
-------------------
With ``serialize_per_uid=True`` (the default) mutations on one uid are sent
to the store in issue order.  Each active uid has a slot holding the
*baseline*, the last state known to be stored remotely.  A failed mutation
restores the baseline, but only if no later mutation on that uid is still
pending; the later mutation then owns the outcome.

With ``serialize_per_uid=False`` every mutation captures the cached value
at issue time and restores it on failure, even if a later mutation on the
same uid has already been applied.  Remote completions may then interleave
and a late rollback can overwrite a newer optimistic value until the next
listener snapshot arrives.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Collection
from typing import Generic, TypeVar

from .cache import CacheState, ObservableCache
from .errors import RemoteReadFailure, RemoteWriteFailure
from .models import Entity, MutationKind, MutationResult
from .store import (
    ErrorCallback,
    RemoteDocumentStore,
    SnapshotCallback,
    SubscriptionHandle,
)

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


class _UidSlot(Generic[E]):
    """Sequencing state for one uid with pending mutations."""

    def __init__(self, baseline: E | None) -> None:
        self.baseline = baseline
        self.pending = 0
        self.lock = asyncio.Lock()


class SyncRepository(Generic[E]):
    """Local-cache-first repository for one collection.

    Args:
        store: Remote store for the collection.
        cache: Cache to drive.  A fresh ``ObservableCache`` by default.
        serialize_per_uid: Queue mutations per uid (see module docstring).
    """

    def __init__(
        self,
        store: RemoteDocumentStore[E],
        cache: ObservableCache[E] | None = None,
        *,
        serialize_per_uid: bool = True,
    ) -> None:
        self.store = store
        self._cache: ObservableCache[E] = (
            cache if cache is not None else ObservableCache()
        )
        self.serialize_per_uid = serialize_per_uid
        self._slots: dict[str, _UidSlot[E]] = {}
        self._tasks: set[asyncio.Task[MutationResult]] = set()
        self._handle: SubscriptionHandle | None = None
        self._generation = 0
        self._label = f"{store.entity_type.__name__} ({store.collection})"

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    @property
    def cache(self) -> ObservableCache[E]:
        """The cache this repository drives.  Read it; never write it."""
        return self._cache

    def snapshot(self) -> tuple[E, ...]:
        return self._cache.snapshot()

    def selected(self) -> E | None:
        return self._cache.selected()

    def subscribe(
        self, observer: Callable[[CacheState[E]], None]
    ) -> Callable[[], None]:
        return self._cache.subscribe(observer)

    def new_uid(self) -> str:
        """Identifier to assign to an entity before calling ``add``."""
        return self.store.new_uid()

    def pending(self) -> int:
        """Number of mutations whose remote write has not completed."""
        return len(self._tasks)

    # ------------------------------------------------------------------
    # Initialization and selection
    # ------------------------------------------------------------------

    async def initialize(
        self, uids: Collection[str], selected_uid: str | None = None
    ) -> None:
        """Replace the cache with the entities for *uids*.

        A full resynchronization, not a merge.  Read failures are logged
        and leave the cache empty; this method never raises them.

        Args:
            uids: Identifiers to load.  Empty clears the cache.
            selected_uid: Entity to select once loaded, if present.
        """
        wanted = frozenset(uids)
        if not wanted:
            logger.debug("No %s ids provided, clearing cache", self._label)
            self._clear()
            return

        try:
            entities = await self.store.fetch_many(wanted)
        except RemoteReadFailure as exc:
            logger.error("Error initializing %s: %s", self._label, exc)
            self._clear()
            return

        missing = wanted - {entity.uid for entity in entities}
        if missing:
            logger.debug(
                "%d of %d %s not found: %s",
                len(missing),
                len(wanted),
                self._label,
                ", ".join(sorted(missing)),
            )

        self._install(entities, selected_uid)

    async def initialize_collection(self, selected_uid: str | None = None) -> None:
        """Replace the cache with every entity in the store's collection.

        Same rules as ``initialize``: read failures are logged and leave
        the cache empty.
        """
        try:
            entities = await self.store.fetch_all()
        except RemoteReadFailure as exc:
            logger.error("Error initializing %s: %s", self._label, exc)
            self._clear()
            return
        self._install(entities, selected_uid)

    def select(self, entity: E | None) -> None:
        """Select *entity* locally.  Never touches the remote store."""
        self._cache.select(entity)

    def _install(self, entities: list[E], selected_uid: str | None) -> None:
        self._cache.replace(entities)
        self._cache.select(
            self._cache.get(selected_uid) if selected_uid else None
        )
        logger.debug("Initialized %s with %d entities", self._label, len(entities))

    def _clear(self) -> None:
        self._cache.clear()

    # ------------------------------------------------------------------
    # Optimistic mutations
    # ------------------------------------------------------------------

    def add(self, entity: E) -> asyncio.Task[MutationResult]:
        """Show *entity* immediately and write it to the store.

        ``entity.uid`` must come from ``new_uid()`` and must not already be
        cached.  On failure the entity is removed again.

        Returns:
            Task resolving to the ``MutationResult``.
        """
        return self._mutate(MutationKind.ADD, entity.uid, entity)

    def update(self, entity: E) -> asyncio.Task[MutationResult]:
        """Replace the cached entity with *entity* and write it.

        On failure the previous value is restored, or the entity removed if
        it was not cached before.
        """
        return self._mutate(MutationKind.UPDATE, entity.uid, entity)

    def delete(self, uid: str) -> asyncio.Task[MutationResult]:
        """Remove *uid* from the cache and delete it remotely.

        Clears the selection if the deleted entity was selected.  On failure
        the entity is re-inserted; the selection is not restored.
        """
        return self._mutate(MutationKind.DELETE, uid, None)

    def _mutate(
        self, kind: MutationKind, uid: str, entity: E | None
    ) -> asyncio.Task[MutationResult]:
        loop = asyncio.get_running_loop()
        previous = self._cache.get(uid)
        slot = self._claim_slot(uid, previous)

        if entity is None:
            self._cache.remove(uid)
            if self._cache.selected_uid == uid:
                self._cache.select(None)
        else:
            self._cache.upsert(entity)

        task = loop.create_task(
            self._commit(kind, uid, entity, previous, slot),
            name=f"{kind.value}:{uid}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _commit(
        self,
        kind: MutationKind,
        uid: str,
        entity: E | None,
        previous: E | None,
        slot: _UidSlot[E] | None,
    ) -> MutationResult:
        try:
            if slot is None:
                error = await self._send(kind, uid, entity)
                if error is not None:
                    self._rollback_captured(kind, uid, previous)
            else:
                async with slot.lock:
                    error = await self._send(kind, uid, entity)
                if error is None:
                    slot.baseline = entity
                elif slot.pending == 1:
                    self._restore(uid, slot.baseline)
                else:
                    logger.info(
                        "Not rolling back %s %s: a newer mutation is pending",
                        kind.value,
                        uid,
                    )
        finally:
            if slot is not None:
                self._release_slot(uid, slot)

        return MutationResult(
            kind=kind,
            uid=uid,
            committed=error is None,
            error=str(error) if error is not None else None,
        )

    async def _send(
        self, kind: MutationKind, uid: str, entity: E | None
    ) -> RemoteWriteFailure | None:
        try:
            if entity is None:
                await self.store.delete(uid)
            else:
                await self.store.put(entity)
        except RemoteWriteFailure as exc:
            logger.error(
                "Error during %s of %s %s, rolling back: %s",
                kind.value,
                self._label,
                uid,
                exc,
            )
            return exc
        logger.debug("Committed %s of %s %s", kind.value, self._label, uid)
        return None

    def _rollback_captured(
        self, kind: MutationKind, uid: str, previous: E | None
    ) -> None:
        if kind is MutationKind.ADD:
            self._cache.remove(uid)
        elif previous is not None:
            self._cache.upsert(previous)
        elif kind is MutationKind.UPDATE:
            self._cache.remove(uid)

    def _restore(self, uid: str, baseline: E | None) -> None:
        if baseline is None:
            self._cache.remove(uid)
        else:
            self._cache.upsert(baseline)

    def _claim_slot(self, uid: str, previous: E | None) -> _UidSlot[E] | None:
        if not self.serialize_per_uid:
            return None
        slot = self._slots.get(uid)
        if slot is None:
            slot = self._slots[uid] = _UidSlot(previous)
        slot.pending += 1
        return slot

    def _release_slot(self, uid: str, slot: _UidSlot[E]) -> None:
        slot.pending -= 1
        if slot.pending == 0 and self._slots.get(uid) is slot:
            del self._slots[uid]

    # ------------------------------------------------------------------
    # Listener lifecycle
    # ------------------------------------------------------------------

    @property
    def listening(self) -> bool:
        return self._handle is not None and not self._handle.cancelled

    def start_listening(self, uids: Collection[str]) -> None:
        """Subscribe to remote snapshots of *uids*.

        Cancels any active subscription first.  An empty id set clears the
        cache without subscribing.
        """
        self.stop_listening()
        wanted = frozenset(uids)
        if not wanted:
            logger.debug("No %s ids to watch, clearing cache", self._label)
            self._clear()
            return

        self._subscribe(
            lambda on_snapshot, on_error: self.store.watch(
                wanted, on_snapshot, on_error
            )
        )
        logger.debug("Listening for %d %s", len(wanted), self._label)

    def start_listening_collection(self) -> None:
        """Subscribe to snapshots of the store's whole collection.

        Cancels any active subscription first.
        """
        self.stop_listening()
        self._subscribe(self.store.watch_all)
        logger.debug("Listening for every %s", self._label)

    def _subscribe(
        self,
        open_watch: Callable[
            [SnapshotCallback[E], ErrorCallback], SubscriptionHandle
        ],
    ) -> None:
        generation = self._generation
        self._handle = open_watch(
            lambda entities: self._on_snapshot(generation, entities),
            lambda exc: self._on_error(generation, exc),
        )

    def stop_listening(self) -> None:
        """Cancel the active subscription, if any.  Idempotent."""
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
            logger.debug("Stopped listening for %s", self._label)

    def _on_snapshot(self, generation: int, entities: list[E]) -> None:
        if generation != self._generation:
            logger.debug("Dropping stale %s snapshot", self._label)
            return
        if self._slots:
            by_uid = {entity.uid: entity for entity in entities}
            for uid, slot in self._slots.items():
                slot.baseline = by_uid.get(uid)
        self._cache.replace(entities)

    def _on_error(self, generation: int, exc: Exception) -> None:
        if generation != self._generation:
            return
        logger.error("Error listening for %s: %s", self._label, exc)
        self._generation += 1
        handle, self._handle = self._handle, None
        if handle is not None:
            handle.cancel()
        self._clear()

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self) -> None:
        """Stop listening and wait for in-flight mutations to finish."""
        self.stop_listening()
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
