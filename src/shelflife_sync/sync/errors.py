"""Error taxonomy for the synchronization layer.

Read failures are recovered inside the repository by degrading the cache to
empty; write failures trigger a rollback. Neither is raised to callers of
``SyncRepository``; both are raised by ``RemoteDocumentStore``
implementations.
"""

from __future__ import annotations

from collections.abc import Iterable


class SyncError(Exception):
    """Base class for synchronization errors."""


class RemoteReadFailure(SyncError):
    """A get, query or watch against the remote store failed."""


class RemoteWriteFailure(SyncError):
    """A put or delete against the remote store failed."""


class NotFound(SyncError):
    """A lookup returned fewer entities than requested.

    Attributes:
        uids: The identifiers that were requested but not returned.
    """

    def __init__(self, uids: Iterable[str]) -> None:
        self.uids = frozenset(uids)
        super().__init__(
            "Not found: " + ", ".join(sorted(self.uids))
        )
