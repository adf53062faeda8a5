"""Tests for shelflife_sync.sync.http_store.HttpDocumentStore.

The blocking client is a MagicMock; calls still go through worker threads
via run_sync_limited, exactly as in production.
"""

import asyncio
from dataclasses import replace

import pytest
import requests

from shelflife_sync.domain import Recipe
from shelflife_sync.sync import (
    HttpDocumentStore,
    NotFound,
    RemoteReadFailure,
    RemoteWriteFailure,
)
from shelflife_sync.sync.http_store import snapshot_fingerprint


def _doc(uid: str, name: str) -> dict:
    return Recipe(uid=uid, name=name).to_document()


@pytest.fixture
def store(mock_store_client):
    return HttpDocumentStore(
        mock_store_client, Recipe, "recipes", poll_interval=0.01
    )


class TestReads:
    async def test_fetch_many_decodes_documents(self, store, mock_store_client):
        mock_store_client.batch_get.return_value = [
            _doc("r1", "Soup"),
            _doc("r2", "Bread"),
        ]

        found = await store.fetch_many({"r2", "r1"})

        assert [r.name for r in found] == ["Soup", "Bread"]
        mock_store_client.batch_get.assert_called_once_with(
            "recipes", ["r1", "r2"]
        )

    async def test_fetch_many_splits_into_batches(
        self, mock_store_client, mock_config
    ):
        mock_store_client.config = replace(mock_config, max_batch_size=2)
        mock_store_client.batch_get.side_effect = lambda _c, ids: [
            _doc(uid, uid) for uid in ids
        ]
        store = HttpDocumentStore(mock_store_client, Recipe, "recipes")

        found = await store.fetch_many(["a", "b", "c"])

        assert sorted(r.uid for r in found) == ["a", "b", "c"]
        chunks = [call.args[1] for call in mock_store_client.batch_get.call_args_list]
        assert sorted(chunks) == [["a", "b"], ["c"]]

    async def test_empty_id_set_skips_request(self, store, mock_store_client):
        assert await store.fetch_many([]) == []
        mock_store_client.batch_get.assert_not_called()

    @pytest.mark.parametrize(
        "error",
        [requests.ConnectionError("refused"), ValueError("Malformed")],
    )
    async def test_errors_map_to_read_failure(
        self, store, mock_store_client, error
    ):
        mock_store_client.batch_get.side_effect = error

        with pytest.raises(RemoteReadFailure, match="recipes"):
            await store.fetch_many(["r1"])

    async def test_invalid_document_maps_to_read_failure(
        self, store, mock_store_client
    ):
        mock_store_client.batch_get.return_value = [{"uid": "r1"}]

        with pytest.raises(RemoteReadFailure, match="Invalid Recipe"):
            await store.fetch_many(["r1"])

    async def test_fetch_single_reads_one_document(self, store, mock_store_client):
        mock_store_client.get_document.return_value = _doc("r1", "Soup")

        found = await store.fetch("r1")

        assert found.name == "Soup"
        mock_store_client.get_document.assert_called_once_with("recipes", "r1")
        mock_store_client.batch_get.assert_not_called()

    async def test_fetch_single_missing_raises_not_found(
        self, store, mock_store_client
    ):
        mock_store_client.get_document.return_value = None

        with pytest.raises(NotFound):
            await store.fetch("r1")

    async def test_fetch_single_error_maps_to_read_failure(
        self, store, mock_store_client
    ):
        mock_store_client.get_document.side_effect = requests.Timeout()

        with pytest.raises(RemoteReadFailure, match="recipes/r1"):
            await store.fetch("r1")

    async def test_fetch_all_lists_collection(self, mock_store_client):
        mock_store_client.list_documents.return_value = [
            _doc("f1", "Milk"),
            _doc("f2", "Eggs"),
        ]
        store = HttpDocumentStore(mock_store_client, Recipe, "foodItems/h1/items")

        found = await store.fetch_all()

        assert [r.uid for r in found] == ["f1", "f2"]
        mock_store_client.list_documents.assert_called_once_with(
            "foodItems/h1/items"
        )

    async def test_fetch_all_error_maps_to_read_failure(
        self, store, mock_store_client
    ):
        mock_store_client.list_documents.side_effect = requests.ConnectionError()

        with pytest.raises(RemoteReadFailure, match="Failed to list 'recipes'"):
            await store.fetch_all()


class TestWrites:
    async def test_put_sends_encoded_document(self, store, mock_store_client):
        recipe = Recipe(uid="r1", name="Soup", servings=2)

        await store.put(recipe)

        mock_store_client.put_document.assert_called_once_with(
            "recipes", "r1", recipe.to_document()
        )

    async def test_put_error_maps_to_write_failure(
        self, store, mock_store_client
    ):
        mock_store_client.put_document.side_effect = requests.HTTPError("503")

        with pytest.raises(RemoteWriteFailure, match="recipes/r1"):
            await store.put(Recipe(uid="r1", name="Soup"))

    async def test_delete(self, store, mock_store_client):
        await store.delete("r1")
        mock_store_client.delete_document.assert_called_once_with(
            "recipes", "r1"
        )

    async def test_delete_error_maps_to_write_failure(
        self, store, mock_store_client
    ):
        mock_store_client.delete_document.side_effect = requests.Timeout()

        with pytest.raises(RemoteWriteFailure):
            await store.delete("r1")


class TestPollingWatch:
    async def test_delivers_only_on_content_change(self, store, mock_store_client):
        responses = [
            [_doc("r1", "Soup")],
            [_doc("r1", "Soup")],
            [_doc("r1", "Stew")],
        ]
        mock_store_client.batch_get.side_effect = lambda _c, _ids: (
            responses.pop(0) if len(responses) > 1 else responses[0]
        )
        snapshots = []
        two_seen = asyncio.Event()

        def on_snapshot(entities):
            snapshots.append([r.name for r in entities])
            if len(snapshots) == 2:
                two_seen.set()

        handle = store.watch(["r1"], on_snapshot, pytest.fail)
        await asyncio.wait_for(two_seen.wait(), timeout=5)
        handle.cancel()

        assert snapshots == [["Soup"], ["Stew"]]

    async def test_read_failure_calls_on_error_and_stops(
        self, store, mock_store_client
    ):
        mock_store_client.batch_get.side_effect = requests.ConnectionError("down")
        errors = []
        failed = asyncio.Event()

        def on_error(exc):
            errors.append(exc)
            failed.set()

        store.watch(["r1"], pytest.fail, on_error)
        await asyncio.wait_for(failed.wait(), timeout=5)
        await asyncio.sleep(0.05)

        assert len(errors) == 1
        assert isinstance(errors[0], RemoteReadFailure)
        assert mock_store_client.batch_get.call_count == 1

    async def test_cancel_stops_polling(self, store, mock_store_client):
        mock_store_client.batch_get.return_value = [_doc("r1", "Soup")]
        delivered = asyncio.Event()

        handle = store.watch(["r1"], lambda _e: delivered.set(), pytest.fail)
        await asyncio.wait_for(delivered.wait(), timeout=5)
        handle.cancel()
        await asyncio.sleep(0.05)
        calls = mock_store_client.batch_get.call_count
        await asyncio.sleep(0.05)

        assert mock_store_client.batch_get.call_count == calls

    async def test_watch_all_picks_up_new_documents(self, store, mock_store_client):
        responses = [[_doc("r1", "Soup")], [_doc("r1", "Soup"), _doc("r2", "Pie")]]
        mock_store_client.list_documents.side_effect = lambda _c: (
            responses.pop(0) if len(responses) > 1 else responses[0]
        )
        snapshots = []
        two_seen = asyncio.Event()

        def on_snapshot(entities):
            snapshots.append(sorted(r.uid for r in entities))
            if len(snapshots) == 2:
                two_seen.set()

        handle = store.watch_all(on_snapshot, pytest.fail)
        await asyncio.wait_for(two_seen.wait(), timeout=5)
        handle.cancel()

        assert snapshots == [["r1"], ["r1", "r2"]]
        mock_store_client.batch_get.assert_not_called()

    async def test_watch_all_failure_calls_on_error(self, store, mock_store_client):
        mock_store_client.list_documents.side_effect = requests.HTTPError("500")
        failed = asyncio.Event()
        errors = []

        def on_error(exc):
            errors.append(exc)
            failed.set()

        store.watch_all(pytest.fail, on_error)
        await asyncio.wait_for(failed.wait(), timeout=5)

        assert isinstance(errors[0], RemoteReadFailure)
        await store.close()

    async def test_close_cancels_every_watch(self, store, mock_store_client):
        mock_store_client.batch_get.return_value = []
        store.watch(["r1"], lambda _e: None, pytest.fail)
        store.watch(["r2"], lambda _e: None, pytest.fail)

        await store.close()

        assert store._poll_tasks == set()


class TestSnapshotFingerprint:
    def test_order_independent(self):
        a = Recipe(uid="a", name="A")
        b = Recipe(uid="b", name="B")
        assert snapshot_fingerprint([a, b]) == snapshot_fingerprint([b, a])

    def test_detects_field_change(self):
        before = [Recipe(uid="a", name="A")]
        after = [Recipe(uid="a", name="A2")]
        assert snapshot_fingerprint(before) != snapshot_fingerprint(after)
