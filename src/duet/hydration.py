"""One-shot server-to-client state transfer.

The server render puts the composed state into a ``HydrationChannel``
and embeds it in the page (``state_script``). The first controller that
initializes on the client reads it with ``peek_and_clear()`` and reuses
it instead of re-running its data hooks. Every later controller on the
same page (client-side navigation) finds the channel empty.

One channel exists per request (server) or per page session (client);
it is injected through the environment, never held in a global.
"""

from __future__ import annotations

import json
import threading
from typing import Any

# Characters that could close or confuse an inline <script> block
_SCRIPT_ESCAPES = {
    "<": "\\u003c",
    ">": "\\u003e",
    "&": "\\u0026",
    "\u2028": "\\u2028",
    "\u2029": "\\u2029",
}


def serialize_state(state: dict[str, Any]) -> str:
    """Serialize *state* deterministically for embedding in HTML.

    Keys are sorted and separators are compact, so identical state
    always produces identical bytes (stable ETags). Output is safe to
    place inside a ``<script>`` element.
    """
    text = json.dumps(state, sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    for char, escaped in _SCRIPT_ESCAPES.items():
        text = text.replace(char, escaped)
    return text


def state_script(state: dict[str, Any], *, var: str = "__INITIAL_STATE__") -> str:
    """Return the ``<script>`` tag a server render embeds for hydration."""
    return f'<script data-duet="hydration">window.{var} = {serialize_state(state)}</script>'


class HydrationChannel:
    """Holds at most one pending state blob. Read-once.

    Thread-safe: ``peek_and_clear()`` takes and clears the blob under a
    lock, so no two readers can observe the same blob.
    """

    __slots__ = ("_lock", "_state")

    def __init__(self, state: dict[str, Any] | None = None) -> None:
        self._state = state
        self._lock = threading.Lock()

    @classmethod
    def from_payload(cls, payload: str | None) -> HydrationChannel:
        """Build a client channel from the serialized blob in the page."""
        if not payload:
            return cls()
        return cls(json.loads(payload))

    @property
    def pending(self) -> bool:
        """Whether a blob is waiting to be consumed."""
        return self._state is not None

    def put(self, state: dict[str, Any]) -> None:
        """Store *state* for transfer, replacing any previous blob."""
        with self._lock:
            self._state = state

    def peek_and_clear(self) -> dict[str, Any] | None:
        """Return the pending blob and empty the channel.

        Returns ``None`` when the channel is empty.
        """
        with self._lock:
            state, self._state = self._state, None
        return state

    def __repr__(self) -> str:
        return f"<HydrationChannel pending={self.pending}>"
