"""Tests for shelflife_sync.sync.store.

Covers the shared RemoteDocumentStore contract, SubscriptionHandle and
the dict-backed InMemoryDocumentStore.
"""

import asyncio
import string

import pytest

from shelflife_sync.domain import Recipe
from shelflife_sync.sync import (
    InMemoryDocumentStore,
    NotFound,
    RemoteReadFailure,
    SubscriptionHandle,
    auto_id,
)


async def settle():
    for _ in range(5):
        await asyncio.sleep(0)


def _store(*recipes: Recipe) -> InMemoryDocumentStore:
    return InMemoryDocumentStore.seeded(Recipe, recipes, "recipes")


class TestAutoId:
    def test_shape(self):
        uid = auto_id()
        assert len(uid) == 20
        assert set(uid) <= set(string.ascii_letters + string.digits)

    def test_unique(self):
        assert len({auto_id() for _ in range(100)}) == 100

    def test_store_new_uid(self):
        assert len(_store().new_uid()) == 20


class TestSubscriptionHandle:
    def test_cancel_calls_callback_once(self):
        calls = []
        handle = SubscriptionHandle(on_cancel=lambda: calls.append(1))
        handle.cancel()
        handle.cancel()
        assert calls == [1]
        assert handle.cancelled

    def test_inert_handle_is_cancelled(self):
        handle = SubscriptionHandle.inert()
        assert handle.cancelled
        handle.cancel()


class TestReads:
    async def test_fetch_many_returns_found_entities(self):
        store = _store(Recipe(uid="r1", name="Soup"), Recipe(uid="r2", name="Bread"))
        found = await store.fetch_many({"r1", "missing"})
        assert [r.name for r in found] == ["Soup"]

    async def test_fetch_many_empty_input(self):
        assert await _store(Recipe(uid="r1", name="Soup")).fetch_many([]) == []

    async def test_fetch_single(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        assert (await store.fetch("r1")).name == "Soup"

    async def test_fetch_missing_raises_not_found(self):
        with pytest.raises(NotFound) as exc_info:
            await _store().fetch("nope")
        assert exc_info.value.uids == frozenset({"nope"})
        assert "nope" in str(exc_info.value)

    async def test_fetch_all_returns_whole_collection(self):
        store = _store(Recipe(uid="r1", name="Soup"), Recipe(uid="r2", name="Bread"))
        found = await store.fetch_all()
        assert sorted(r.uid for r in found) == ["r1", "r2"]

    async def test_fetch_all_empty_collection(self):
        assert await _store().fetch_all() == []

    async def test_undecodable_document_is_read_failure(self):
        store = InMemoryDocumentStore(
            Recipe, "recipes", {"bad": {"uid": "bad", "servings": "lots"}}
        )
        with pytest.raises(RemoteReadFailure, match="Invalid Recipe document"):
            await store.fetch_many(["bad"])

    async def test_reads_return_copies(self):
        store = _store()
        original = Recipe(uid="r1", name="Soup")
        await store.put(original)
        fetched = await store.fetch("r1")
        assert fetched.same_as(original)
        assert fetched is not original


class TestWrites:
    async def test_put_stores_encoded_document(self):
        store = _store()
        await store.put(Recipe(uid="r1", name="Soup"))
        assert store.documents["r1"]["name"] == "Soup"

    async def test_put_overwrites(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        await store.put(Recipe(uid="r1", name="Stew"))
        assert (await store.fetch("r1")).name == "Stew"

    async def test_delete_removes(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        await store.delete("r1")
        assert store.documents == {}

    async def test_delete_absent_is_not_an_error(self):
        await _store().delete("nope")


class TestWatch:
    async def test_initial_snapshot_is_delivered_asynchronously(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        snapshots = []
        store.watch(["r1"], snapshots.append, pytest.fail)
        assert snapshots == []
        await settle()
        assert [[r.name for r in s] for s in snapshots] == [["Soup"]]

    async def test_change_to_watched_uid_delivers(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        snapshots = []
        store.watch(["r1"], snapshots.append, pytest.fail)
        await settle()

        await store.put(Recipe(uid="r1", name="Stew"))
        await settle()

        assert snapshots[-1][0].name == "Stew"
        assert len(snapshots) == 2

    async def test_change_to_other_uid_does_not_deliver(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        snapshots = []
        store.watch(["r1"], snapshots.append, pytest.fail)
        await settle()

        await store.put(Recipe(uid="r2", name="Bread"))
        await settle()

        assert len(snapshots) == 1

    async def test_cancelled_watch_stops_delivery(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        snapshots = []
        handle = store.watch(["r1"], snapshots.append, pytest.fail)
        handle.cancel()

        await store.delete("r1")
        await settle()

        assert snapshots == []
        assert store.active_watchers == 0

    async def test_empty_watch_delivers_empty_snapshot_immediately(self):
        snapshots = []
        handle = _store().watch([], snapshots.append, pytest.fail)
        assert snapshots == [[]]
        assert handle.cancelled

    async def test_fail_watchers_delivers_error_once(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        errors = []
        handle = store.watch(["r1"], lambda _s: None, errors.append)
        await settle()

        store.fail_watchers(RemoteReadFailure("revoked"))
        await settle()

        assert [str(e) for e in errors] == ["revoked"]
        assert handle.cancelled
        assert store.active_watchers == 0

    async def test_watch_all_delivers_on_any_change(self):
        store = _store(Recipe(uid="r1", name="Soup"))
        snapshots = []
        store.watch_all(snapshots.append, pytest.fail)
        assert snapshots == []
        await settle()

        await store.put(Recipe(uid="r2", name="Bread"))
        await settle()
        await store.delete("r1")
        await settle()

        assert [sorted(r.uid for r in s) for s in snapshots] == [
            ["r1"],
            ["r1", "r2"],
            ["r2"],
        ]

    async def test_watch_all_of_empty_collection_goes_live(self):
        store = _store()
        snapshots = []
        handle = store.watch_all(snapshots.append, pytest.fail)
        await settle()

        assert snapshots == [[]]
        assert not handle.cancelled
        assert store.active_watchers == 1
