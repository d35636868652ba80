"""Tests for ordering, deduplication and unread accounting in the store."""

from __future__ import annotations

import asyncio
import random

import pytest

from fakes import FakeApi, make_notification, settle
from notification_center.application.use_cases.notifications import (
    MergeResult,
    NotificationStore,
)
from notification_center.domain.errors import ReadMutationError


def _ids(store: NotificationStore) -> list[str]:
    return [notification.id for notification in store.snapshot().notifications]


def test_merge_orders_by_created_at_descending_with_id_tiebreak(api: FakeApi) -> None:
    """Newest first; equal timestamps are ordered by id."""

    store = NotificationStore(api)
    store.merge(make_notification("a", minutes=0))
    store.merge(make_notification("b", minutes=5))
    store.merge(make_notification("c", minutes=5))

    assert _ids(store) == ["c", "b", "a"]
    assert store.unread_count == 3


def test_merge_same_id_replaces_instead_of_duplicating(api: FakeApi) -> None:
    """A pushed copy of a backlog record keeps a single entry."""

    store = NotificationStore(api)
    assert store.merge(make_notification("1")) is MergeResult.INSERTED
    assert store.merge(make_notification("1", message="pushed")) is MergeResult.UPDATED

    snapshot = store.snapshot()
    assert len(snapshot.notifications) == 1
    assert snapshot.notifications[0].message == "pushed"
    assert snapshot.unread_count == 1


def test_merge_ignores_older_copy(api: FakeApi) -> None:
    store = NotificationStore(api)
    store.merge(make_notification("1", minutes=5, message="newer"))

    assert store.merge(make_notification("1", minutes=0, message="older")) is MergeResult.STALE
    assert store.get("1").message == "newer"


def test_merge_newer_copy_moves_entry(api: FakeApi) -> None:
    store = NotificationStore(api)
    store.merge(make_notification("1", minutes=0))
    store.merge(make_notification("2", minutes=1))

    store.merge(make_notification("1", minutes=2))

    assert _ids(store) == ["1", "2"]


def test_merge_adjusts_unread_on_read_transition(api: FakeApi) -> None:
    store = NotificationStore(api)
    store.merge(make_notification("1"))
    store.merge(make_notification("1", read=True))

    assert store.unread_count == 0
    store.merge(make_notification("1", read=False))
    assert store.unread_count == 1


def test_store_evicts_oldest_beyond_capacity(api: FakeApi) -> None:
    """Only the most recent ``capacity`` notifications are retained."""

    store = NotificationStore(api, capacity=3)
    for minute in range(4):
        store.merge(make_notification(f"n{minute}", minutes=minute))

    assert _ids(store) == ["n3", "n2", "n1"]
    assert store.unread_count == 3

    assert store.merge(make_notification("ancient", minutes=-10)) is MergeResult.EVICTED
    assert "ancient" not in store
    assert store.unread_count == 3


def test_store_rejects_non_positive_capacity(api: FakeApi) -> None:
    with pytest.raises(ValueError):
        NotificationStore(api, capacity=0)


def test_mark_read_persists_and_decrements(api: FakeApi) -> None:
    store = NotificationStore(api)
    store.merge(make_notification("1"))

    assert asyncio.run(store.mark_read("1")) is True

    assert store.get("1").read is True
    assert store.unread_count == 0
    assert api.read_calls == ["1"]


def test_mark_read_rolls_back_on_server_failure(api: FakeApi) -> None:
    """The optimistic flag is visible during the write and reverted afterwards."""

    api.failing.add("1")
    store = NotificationStore(api)
    store.merge(make_notification("1"))
    observed: list[int] = []

    async def scenario() -> None:
        api.write_gate = asyncio.Event()
        task = asyncio.create_task(store.mark_read("1"))
        await settle()
        observed.append(store.unread_count)
        assert store.get("1").read is True
        api.write_gate.set()
        with pytest.raises(ReadMutationError):
            await task

    asyncio.run(scenario())

    assert observed == [0]
    assert store.get("1").read is False
    assert store.unread_count == 1


def test_mark_read_drops_notification_missing_on_server(api: FakeApi) -> None:
    api.not_found.add("1")
    store = NotificationStore(api)
    store.merge(make_notification("1"))
    store.merge(make_notification("2", minutes=1))

    assert asyncio.run(store.mark_read("1")) is True

    assert "1" not in store
    assert _ids(store) == ["2"]
    assert store.unread_count == 1


def test_mark_read_ignores_unknown_and_already_read(api: FakeApi) -> None:
    store = NotificationStore(api)
    store.merge(make_notification("read", read=True))

    assert asyncio.run(store.mark_read("missing")) is False
    assert asyncio.run(store.mark_read("read")) is False
    assert api.read_calls == []


def test_stale_unread_echo_does_not_undo_pending_mark_read(api: FakeApi) -> None:
    """A backlog refresh racing a mark-read keeps the local read flag."""

    store = NotificationStore(api)
    store.merge(make_notification("1"))

    async def scenario() -> None:
        api.write_gate = asyncio.Event()
        task = asyncio.create_task(store.mark_read("1"))
        await settle()
        store.merge(make_notification("1", read=False))
        assert store.get("1").read is True
        assert store.unread_count == 0
        api.write_gate.set()
        await task

    asyncio.run(scenario())

    assert store.unread_count == 0


def test_mark_all_read_rolls_back_only_failed_entries(api: FakeApi) -> None:
    api.failing.add("2")
    store = NotificationStore(api)
    for index in range(3):
        store.merge(make_notification(str(index), minutes=index))
    store.merge(make_notification("old", minutes=-1, read=True))

    failed = asyncio.run(store.mark_all_read())

    assert failed == ["2"]
    assert store.get("2").read is False
    assert store.get("0").read is True
    assert store.unread_count == 1 == store.recount()
    assert sorted(api.read_calls) == ["0", "1", "2"]


def test_mark_all_read_drops_entries_missing_on_server(api: FakeApi) -> None:
    api.not_found.add("1")
    store = NotificationStore(api)
    store.merge(make_notification("1"))
    store.merge(make_notification("2", minutes=1))

    assert asyncio.run(store.mark_all_read()) == []
    assert _ids(store) == ["2"]
    assert store.unread_count == 0


def test_unread_counter_matches_recount_for_random_operations(api: FakeApi) -> None:
    """The incremental counter always equals a full recount."""

    rng = random.Random(20240301)
    api.failing.update({"3", "7"})
    api.not_found.add("5")
    store = NotificationStore(api, capacity=6)

    async def scenario() -> None:
        for _ in range(300):
            notification_id = str(rng.randrange(10))
            operation = rng.random()
            if operation < 0.6:
                store.merge(
                    make_notification(
                        notification_id,
                        minutes=rng.randrange(20),
                        read=rng.random() < 0.3,
                    )
                )
            elif operation < 0.9:
                try:
                    await store.mark_read(notification_id)
                except ReadMutationError:
                    pass
            else:
                await store.mark_all_read()
            assert store.unread_count == store.recount()
            assert len(store) <= store.capacity
            assert len({n.id for n in store.snapshot().notifications}) == len(store)

    asyncio.run(scenario())


def test_store_notifies_listener_on_mutation(api: FakeApi) -> None:
    calls: list[int] = []
    store = NotificationStore(api, on_change=lambda: calls.append(1))

    store.merge(make_notification("1"))
    store.merge(make_notification("1", minutes=-5))
    store.clear()

    assert len(calls) == 2
    assert store.snapshot().unread_count == 0


def test_evicted_merge_does_not_notify_listener(api: FakeApi) -> None:
    calls: list[int] = []
    store = NotificationStore(api, capacity=1, on_change=lambda: calls.append(1))
    store.merge(make_notification("new", minutes=5))

    assert store.merge(make_notification("old", minutes=0)) is MergeResult.EVICTED

    assert len(calls) == 1
    assert _ids(store) == ["new"]
