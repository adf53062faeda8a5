"""Local-cache-first synchronization layer.

Keeps an in-memory, observable cache of entity collections consistent with
a remote document store, applying every mutation optimistically and rolling
it back when the remote write fails.

Architecture
------------
The UI reads only the cache.  Writes go through a ``SyncRepository``,
which changes the cache first and the remote store second.  An optional
watch subscription replaces the cache with every server snapshot, so the
server is authoritative whenever a listener is active.

Modules:

- ``models``      -- ``Entity``, ``MutationKind``, ``MutationResult``.
- ``errors``      -- ``SyncError`` and the read/write/not-found failures.
- ``cache``       -- ``ObservableCache``: snapshot, selection, observers.
- ``store``       -- ``RemoteDocumentStore`` boundary, ``SubscriptionHandle``
  and the dict-backed ``InMemoryDocumentStore``.
- ``http_store``  -- ``HttpDocumentStore`` over the REST client, with a
  polling watch.
- ``repository``  -- ``SyncRepository``: optimistic mutations, rollback,
  per-uid sequencing, listener lifecycle.
- ``reporter``    -- Human-readable and JSON snapshot formatting.

Usage example
-------------
::

    from shelflife_sync.domain import Recipe
    from shelflife_sync.sync import InMemoryDocumentStore, SyncRepository

    repo = SyncRepository(InMemoryDocumentStore(Recipe, "recipes"))
    await repo.initialize(["r1", "r2"])

    recipe = Recipe(uid=repo.new_uid(), name="Pasta")
    task = repo.add(recipe)       # visible in repo.snapshot() already
    result = await task
    if not result:
        print(f"rolled back: {result.error}")

    repo.start_listening(["r1", "r2", recipe.uid])
    ...
    await repo.close()
"""

from .cache import CacheState, ObservableCache
from .errors import NotFound, RemoteReadFailure, RemoteWriteFailure, SyncError
from .http_store import HttpDocumentStore
from .models import Entity, MutationKind, MutationResult
from .reporter import format_mutation_result, format_snapshot, snapshot_to_json
from .repository import SyncRepository
from .store import (
    InMemoryDocumentStore,
    RemoteDocumentStore,
    SubscriptionHandle,
    auto_id,
)

__all__ = [
    "CacheState",
    "Entity",
    "HttpDocumentStore",
    "InMemoryDocumentStore",
    "MutationKind",
    "MutationResult",
    "NotFound",
    "ObservableCache",
    "RemoteDocumentStore",
    "RemoteReadFailure",
    "RemoteWriteFailure",
    "SubscriptionHandle",
    "SyncError",
    "SyncRepository",
    "auto_id",
    "format_mutation_result",
    "format_snapshot",
    "snapshot_to_json",
]
