"""In-memory observable cache of one entity collection.

The cache holds the snapshot the UI currently sees plus an optional
selection.  It performs no I/O and knows nothing about the remote store;
``SyncRepository`` is the only writer.

Key design choices:

* **uid-keyed dict** -- at most one entity per uid; insertion order is kept
  and ``upsert`` of a known uid keeps its position.
* **Selection by uid** -- ``selected()`` resolves the stored uid against the
  live snapshot on every read, so removing an entity can never leave a
  stale selection behind.
* **Synchronous notification** -- observers run inline after every change
  and receive an immutable ``CacheState``.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from typing import Generic, TypeVar

from .models import Entity

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=Entity)


@dataclass(frozen=True)
class CacheState(Generic[E]):
    """Immutable view of the cache handed to observers."""

    entities: tuple[E, ...]
    selected: E | None


Observer = Callable[[CacheState[E]], None]


class ObservableCache(Generic[E]):
    """Current snapshot and selection for one collection."""

    def __init__(self) -> None:
        self._entities: dict[str, E] = {}
        self._selected_uid: str | None = None
        self._observers: list[Observer[E]] = []

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self) -> tuple[E, ...]:
        """Return the current collection."""
        return tuple(self._entities.values())

    def get(self, uid: str) -> E | None:
        """Return the entity for *uid*, or ``None`` if absent."""
        return self._entities.get(uid)

    def selected(self) -> E | None:
        """Return the selected entity if it is still in the snapshot."""
        if self._selected_uid is None:
            return None
        return self._entities.get(self._selected_uid)

    @property
    def selected_uid(self) -> str | None:
        """The last selected uid, whether or not it is still present."""
        return self._selected_uid

    def state(self) -> CacheState[E]:
        return CacheState(entities=self.snapshot(), selected=self.selected())

    def __contains__(self, uid: object) -> bool:
        return uid in self._entities

    def __len__(self) -> int:
        return len(self._entities)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def replace(self, entities: Iterable[E]) -> None:
        """Atomically replace the whole snapshot.

        Duplicate uids collapse to the last occurrence.
        """
        self._entities = {entity.uid: entity for entity in entities}
        self._notify()

    def clear(self) -> None:
        """Empty the snapshot and drop the selection, notifying once."""
        self._entities = {}
        self._selected_uid = None
        self._notify()

    def upsert(self, entity: E) -> None:
        """Insert *entity*, or replace the entity with the same uid."""
        self._entities[entity.uid] = entity
        self._notify()

    def remove(self, uid: str) -> E | None:
        """Remove and return the entity for *uid*.

        No-op (and no notification) if not present.
        """
        removed = self._entities.pop(uid, None)
        if removed is not None:
            self._notify()
        return removed

    def select(self, entity: E | None) -> None:
        """Select *entity* by uid, or clear the selection."""
        self._selected_uid = entity.uid if entity is not None else None
        self._notify()

    # ------------------------------------------------------------------
    # Observation
    # ------------------------------------------------------------------

    def subscribe(self, observer: Observer[E]) -> Callable[[], None]:
        """Register *observer* for every snapshot or selection change.

        Returns:
            A callable that unregisters the observer.  Calling it more than
            once is harmless.
        """
        self._observers.append(observer)

        def unsubscribe() -> None:
            try:
                self._observers.remove(observer)
            except ValueError:
                pass

        return unsubscribe

    def _notify(self) -> None:
        if not self._observers:
            return
        state = self.state()
        for observer in list(self._observers):
            try:
                observer(state)
            except Exception:
                logger.exception("Cache observer %r failed", observer)
