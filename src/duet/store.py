"""State store and the binder that wires it to a view.

A store owns the page state. Actions are pure functions
``fn(state, payload) -> new_state``; the store exposes them as bound
dispatchers in ``store.actions``. Every dispatch replaces the state and
synchronously notifies subscribers with a ``StoreChange``.

Components:

- ``StoreChange``: Passed to listeners after each dispatch.
- ``Store`` / ``create_store()``: The state container.
- ``SHARED_ACTIONS`` / ``merge_actions()``: Actions every page gets.
- ``bind_store()``: Subscribe a view-refresh callback plus the optional
  ``state_did_change`` hook.
"""

from __future__ import annotations

import inspect
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from types import MappingProxyType
from typing import Any

type State = dict[str, Any]
type Action = Callable[[State, Any], State]
type Listener = Callable[["StoreChange"], object]


# ---------------------------------------------------------------------------
# Change notifications
# ---------------------------------------------------------------------------

@dataclass(frozen=True, slots=True)
class StoreChange:
    """Emitted by a store after an action ran.

    Attributes:
        action_type: Name of the dispatched action.
        payload: The payload passed to the dispatcher.
        previous_state: State before the action.
        current_state: State after the action.
    """

    action_type: str
    payload: Any
    previous_state: State
    current_state: State


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------

class Store:
    """Single-owner state container with bound action dispatchers.

    Thread-safe for subscription bookkeeping. Listeners run in the
    dispatching thread, in subscription order, and must not re-enter
    ``Controller.init()``.
    """

    __slots__ = ("_actions", "_listeners", "_lock", "_state")

    def __init__(self, actions: Mapping[str, Action], initial_state: State) -> None:
        self._state: State = dict(initial_state)
        self._listeners: list[Listener] = []
        self._lock = threading.Lock()
        self._actions = MappingProxyType(
            {name: self._make_dispatcher(name, fn) for name, fn in actions.items()}
        )

    @property
    def actions(self) -> Mapping[str, Callable[..., State]]:
        """Bound dispatchers, keyed by action name. Read-only."""
        return self._actions

    def get_state(self) -> State:
        """Return the current state snapshot."""
        return self._state

    def subscribe(self, listener: Listener) -> Callable[[], None]:
        """Register *listener* and return its disposer.

        The disposer is idempotent.
        """
        with self._lock:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            with self._lock:
                if listener in self._listeners:
                    self._listeners.remove(listener)

        return unsubscribe

    def replace_state(self, state: State, *, action_type: str = "replace_state") -> State:
        """Swap in *state* wholesale and notify listeners."""
        return self._commit(action_type, state, state)

    def _make_dispatcher(self, name: str, fn: Action) -> Callable[..., State]:
        def dispatch(payload: Any = None) -> State:
            next_state = fn(self._state, payload)
            return self._commit(name, payload, next_state)

        dispatch.__name__ = name
        dispatch.__qualname__ = f"Store.actions.{name}"
        return dispatch

    def _commit(self, action_type: str, payload: Any, next_state: State) -> State:
        previous = self._state
        self._state = next_state
        with self._lock:
            listeners = list(self._listeners)
        change = StoreChange(
            action_type=action_type,
            payload=payload,
            previous_state=previous,
            current_state=next_state,
        )
        for listener in listeners:
            listener(change)
        return next_state

    def __repr__(self) -> str:
        return f"<Store actions={sorted(self._actions)} listeners={len(self._listeners)}>"


def create_store(actions: Mapping[str, Action], initial_state: State) -> Store:
    """Create a store from an action table and its initial state."""
    return Store(actions, initial_state)


# ---------------------------------------------------------------------------
# Shared actions
# ---------------------------------------------------------------------------

def page_did_back(state: State, location: Any) -> State:
    """The page was re-activated from history; record its location."""
    if hasattr(location, "to_state"):
        location = location.to_state()
    return {**state, "location": location}


def update_state(state: State, patch: Mapping[str, Any] | None) -> State:
    """Shallow-merge *patch* into the state."""
    if not patch:
        return state
    return {**state, **patch}


def update_input_value(state: State, payload: Mapping[str, Any]) -> State:
    """Set a nested value addressed by a dotted ``name``.

    ``{"name": "form.email", "value": "a@b.c"}`` sets
    ``state["form"]["email"]``, copying every dict along the path.
    """
    path = str(payload["name"]).split(".")
    return _set_in(state, path, payload.get("value"))


def _set_in(node: Any, path: list[str], value: Any) -> Any:
    head, rest = path[0], path[1:]
    if isinstance(node, list):
        index = int(head)
        items = list(node)
        items[index] = _set_in(items[index], rest, value) if rest else value
        return items
    current = dict(node) if isinstance(node, Mapping) else {}
    current[head] = _set_in(current.get(head, {}), rest, value) if rest else value
    return current


SHARED_ACTIONS: Mapping[str, Action] = MappingProxyType({
    "page_did_back": page_did_back,
    "update_state": update_state,
    "update_input_value": update_input_value,
})


def merge_actions(actions: Mapping[str, Action] | None) -> dict[str, Action]:
    """Merge controller actions over the shared set.

    Controller actions win on a name collision.
    """
    return {**SHARED_ACTIONS, **(actions or {})}


# ---------------------------------------------------------------------------
# Binder
# ---------------------------------------------------------------------------

def bind_store(
    store: Store,
    on_change: Callable[[], object],
    state_did_change: Callable[[State], object] | None = None,
    *,
    spawn: Callable[[Callable[[], Any]], None] | None = None,
) -> Callable[[], None]:
    """Subscribe a view refresh (and optional hook) to *store*.

    ``on_change()`` runs first, then ``state_did_change(new_state)``.
    If the hook is async, its coroutine is handed to *spawn* so the
    synchronous notification never blocks on it.

    Returns:
        The subscription's disposer.
    """

    def listener(change: StoreChange) -> None:
        on_change()
        if state_did_change is None:
            return
        result = state_did_change(change.current_state)
        if inspect.isawaitable(result):
            if spawn is None:
                if inspect.iscoroutine(result):
                    result.close()
                msg = "an async state_did_change hook needs an environment that can spawn tasks"
                raise RuntimeError(msg)

            async def settle() -> None:
                await result

            try:
                spawn(settle)
            except BaseException:
                if inspect.iscoroutine(result):
                    result.close()
                raise

    return store.subscribe(listener)
