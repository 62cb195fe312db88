"""Tests for duet.store: dispatch, subscriptions, shared actions, binder."""

import inspect

import pytest

from duet.location import Location
from duet.store import (
    SHARED_ACTIONS,
    StoreChange,
    bind_store,
    create_store,
    merge_actions,
)


def _increment(state, step):
    return {**state, "count": state["count"] + (step or 1)}


class TestDispatch:
    def test_action_replaces_state(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        store.actions["increment"](2)
        assert store.get_state() == {"count": 2}

    def test_dispatch_returns_new_state(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        assert store.actions["increment"]() == {"count": 1}

    def test_actions_are_read_only(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        with pytest.raises(TypeError):
            store.actions["other"] = _increment  # type: ignore[index]

    def test_initial_state_copied(self) -> None:
        initial = {"count": 0}
        store = create_store({}, initial)
        assert store.get_state() == initial
        assert store.get_state() is not initial


class TestSubscribe:
    def test_listener_receives_change(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        changes: list[StoreChange] = []
        store.subscribe(changes.append)

        store.actions["increment"](3)

        assert len(changes) == 1
        change = changes[0]
        assert change.action_type == "increment"
        assert change.payload == 3
        assert change.previous_state == {"count": 0}
        assert change.current_state == {"count": 3}

    def test_unsubscribe_stops_notifications(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        changes: list[StoreChange] = []
        unsubscribe = store.subscribe(changes.append)

        unsubscribe()
        unsubscribe()
        store.actions["increment"]()

        assert changes == []

    def test_listeners_in_subscription_order(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        order: list[str] = []
        store.subscribe(lambda change: order.append("first"))
        store.subscribe(lambda change: order.append("second"))

        store.actions["increment"]()
        assert order == ["first", "second"]

    def test_replace_state_notifies(self) -> None:
        store = create_store({}, {"count": 0})
        changes: list[StoreChange] = []
        store.subscribe(changes.append)

        store.replace_state({"count": 9})

        assert store.get_state() == {"count": 9}
        assert changes[0].action_type == "replace_state"


class TestSharedActions:
    def test_page_did_back_sets_location_without_key(self) -> None:
        store = create_store(merge_actions(None), {"location": None})
        store.actions["page_did_back"](Location.from_url("/back?x=1", key="k1"))

        location = store.get_state()["location"]
        assert location["raw"] == "/back?x=1"
        assert "key" not in location

    def test_update_state_merges(self) -> None:
        store = create_store(merge_actions(None), {"a": 1, "b": 2})
        store.actions["update_state"]({"b": 3})
        assert store.get_state() == {"a": 1, "b": 3}

    def test_update_input_value_nested(self) -> None:
        initial = {"form": {"email": "", "tags": ["x", "y"]}}
        store = create_store(merge_actions(None), initial)

        store.actions["update_input_value"]({"name": "form.email", "value": "a@b.c"})
        store.actions["update_input_value"]({"name": "form.tags.1", "value": "z"})

        assert store.get_state() == {"form": {"email": "a@b.c", "tags": ["x", "z"]}}
        assert initial == {"form": {"email": "", "tags": ["x", "y"]}}

    def test_controller_actions_win_on_collision(self) -> None:
        def custom_update(state, patch):
            return {**state, "custom": True}

        merged = merge_actions({"update_state": custom_update, "own": _increment})

        assert merged["update_state"] is custom_update
        assert merged["own"] is _increment
        assert merged["page_did_back"] is SHARED_ACTIONS["page_did_back"]


class TestBindStore:
    def test_refresh_then_hook(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        calls: list[object] = []

        bind_store(store, lambda: calls.append("refresh"), calls.append)
        store.actions["increment"]()

        assert calls == ["refresh", {"count": 1}]

    def test_disposer_unbinds(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        calls: list[str] = []

        dispose = bind_store(store, lambda: calls.append("refresh"))
        dispose()
        store.actions["increment"]()

        assert calls == []

    def test_async_hook_needs_spawn(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})

        async def hook(state):
            pass

        bind_store(store, lambda: None, hook)
        with pytest.raises(RuntimeError, match="spawn"):
            store.actions["increment"]()

    @pytest.mark.anyio
    async def test_async_hook_handed_to_spawn(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        spawned: list[object] = []
        seen: list[object] = []

        async def hook(state):
            seen.append(state)

        bind_store(store, lambda: None, hook, spawn=spawned.append)
        store.actions["increment"]()

        assert len(spawned) == 1
        assert seen == []
        await spawned[0]()
        assert seen == [{"count": 1}]

    def test_coroutine_closed_when_spawn_fails(self) -> None:
        store = create_store({"increment": _increment}, {"count": 0})
        pending: list[object] = []

        async def hook(state):
            pass

        def start(state):
            coroutine = hook(state)
            pending.append(coroutine)
            return coroutine

        def refuse(func):
            raise RuntimeError("no task group")

        bind_store(store, lambda: None, start, spawn=refuse)
        with pytest.raises(RuntimeError, match="no task group"):
            store.actions["increment"]()

        assert inspect.getcoroutinestate(pending[0]) == inspect.CORO_CLOSED
