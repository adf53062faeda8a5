"""Store client and event-loop helpers shared by the CLI and repositories."""

from .async_utils import run_sync, run_sync_limited
from .client import DocumentStoreClient

__all__ = ["DocumentStoreClient", "run_sync", "run_sync_limited"]
