import logging
import threading
from typing import Any

import requests

from ..config import Config
from ..validators import validate_collection_path, validate_uid

logger = logging.getLogger(__name__)

CONNECT_TIMEOUT = 10


class DocumentStoreClient:
    """Blocking client for a generic document-collection REST API.

    Layout, relative to ``config.store_url``::

        GET    /                          -> {"version": "..."}
        GET    /{collection}              -> {"documents": [...]}
        GET    /{collection}/{id}         -> document | 404
        POST   /{collection}:batchGet     {"ids": [...]} -> {"documents": [...]}
        PUT    /{collection}/{id}         document
        DELETE /{collection}/{id}         (404 is treated as success)

    Every method raises ``requests.RequestException`` on transport or HTTP
    errors and ``ValueError`` on invalid ids or malformed responses.  Use
    ``run_sync_limited`` to call it from the event loop.
    """

    def __init__(self, config: Config):
        self.config = config
        self._thread_local = threading.local()
        self._sessions: list[requests.Session] = []
        self._sessions_lock = threading.Lock()
        self.base_url = config.store_url.rstrip("/")

    @property
    def session(self) -> requests.Session:
        """The current thread's session."""
        return self._get_session()

    def _get_session(self) -> requests.Session:
        """Get or create a thread-local requests.Session."""
        if not hasattr(self._thread_local, "session"):
            self._thread_local.session = self._create_session()
        return self._thread_local.session

    def _create_session(self) -> requests.Session:
        session = requests.Session()
        session.verify = not self.config.insecure
        session.headers["Accept"] = "application/json"
        if self.config.api_token:
            session.headers["Authorization"] = (
                f"Bearer {self.config.api_token}"
            )
        with self._sessions_lock:
            self._sessions.append(session)
        return session

    def close(self) -> None:
        """Close every session opened by any thread."""
        with self._sessions_lock:
            sessions, self._sessions = self._sessions, []
        for session in sessions:
            session.close()
        self._thread_local = threading.local()

    def _url(self, collection: str, doc_id: str | None = None) -> str:
        is_valid, error_msg = validate_collection_path(collection)
        if not is_valid:
            raise ValueError(f"Invalid collection: {error_msg}")
        if doc_id is None:
            return f"{self.base_url}/{collection}"
        is_valid, error_msg = validate_uid(doc_id)
        if not is_valid:
            raise ValueError(f"Invalid document id: {error_msg}")
        return f"{self.base_url}/{collection}/{doc_id}"

    def _request(
        self,
        method: str,
        url: str,
        *,
        allow_not_found: bool = False,
        **kwargs: Any,
    ) -> requests.Response | None:
        """Send a request; returns ``None`` on 404 when *allow_not_found*."""
        response = self._get_session().request(
            method,
            url,
            timeout=(CONNECT_TIMEOUT, self.config.request_timeout),
            **kwargs,
        )
        if allow_not_found and response.status_code == 404:
            return None
        response.raise_for_status()
        return response

    @staticmethod
    def _json_object(response: requests.Response) -> dict[str, Any]:
        data = response.json()
        if not isinstance(data, dict):
            raise ValueError(
                f"Expected a JSON object from {response.url}, "
                f"got {type(data).__name__}"
            )
        return data

    def _documents(
        self, response: requests.Response, collection: str
    ) -> list[dict[str, Any]]:
        documents = self._json_object(response).get("documents", [])
        if not isinstance(documents, list):
            raise ValueError(f"Malformed document list for '{collection}'")
        return documents

    def validate_connection(self) -> str:
        """
        Check the store is reachable.
        Returns the server version string if successful.
        """
        response = self._request("GET", f"{self.base_url}/")
        data = self._json_object(response)
        return str(data.get("version", ""))

    def get_document(
        self, collection: str, doc_id: str
    ) -> dict[str, Any] | None:
        """
        Fetch one document, or ``None`` if it does not exist.
        """
        response = self._request(
            "GET", self._url(collection, doc_id), allow_not_found=True
        )
        if response is None:
            return None
        return self._json_object(response)

    def list_documents(self, collection: str) -> list[dict[str, Any]]:
        """
        Fetch every document in a collection.
        """
        response = self._request("GET", self._url(collection))
        documents = self._documents(response, collection)
        logger.debug("list %s: found %d", collection, len(documents))
        return documents

    def batch_get(
        self, collection: str, doc_ids: list[str]
    ) -> list[dict[str, Any]]:
        """
        Fetch documents by id in one request.

        Missing documents are omitted from the result.  Callers keep
        *doc_ids* within ``config.max_batch_size``.
        """
        for doc_id in doc_ids:
            is_valid, error_msg = validate_uid(doc_id)
            if not is_valid:
                raise ValueError(f"Invalid document id: {error_msg}")

        response = self._request(
            "POST", f"{self._url(collection)}:batchGet", json={"ids": doc_ids}
        )
        documents = self._documents(response, collection)
        logger.debug(
            "batchGet %s: requested %d, found %d",
            collection,
            len(doc_ids),
            len(documents),
        )
        return documents

    def put_document(
        self, collection: str, doc_id: str, document: dict[str, Any]
    ) -> None:
        """
        Create or overwrite a document.
        """
        self._request("PUT", self._url(collection, doc_id), json=document)

    def delete_document(self, collection: str, doc_id: str) -> None:
        """
        Delete a document.  Deleting a missing document is not an error.
        """
        self._request(
            "DELETE", self._url(collection, doc_id), allow_not_found=True
        )
