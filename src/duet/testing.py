"""In-memory adapters for testing controllers without a browser.

Usage::

    history = MemoryHistory()
    env = ClientEnvironment(history, cookies=MemoryCookieJar())
    controller = MyController(Location.from_url("/detail?id=1"), env)
    view = await controller.init()
    assert history.replaced == []
"""

from collections.abc import Callable
from typing import Any


class MemoryHistory:
    """Records navigation and keeps listeners in plain lists."""

    def __init__(self) -> None:
        self.replaced: list[str] = []
        self.before_listeners: list[Callable[..., Any]] = []
        self.unload_listeners: list[Callable[..., Any]] = []

    def replace(self, url: str) -> None:
        self.replaced.append(url)

    def listen_before(self, hook: Callable[..., Any]) -> Callable[[], None]:
        return self._listen(self.before_listeners, hook)

    def listen_before_unload(self, hook: Callable[..., Any]) -> Callable[[], None]:
        return self._listen(self.unload_listeners, hook)

    @staticmethod
    def _listen(listeners: list[Callable[..., Any]], hook: Callable[..., Any]) -> Callable[[], None]:
        listeners.append(hook)

        def unlisten() -> None:
            if hook in listeners:
                listeners.remove(hook)

        return unlisten

    def leave(self, *args: Any) -> list[Any]:
        """Simulate navigating away; returns each listener's result."""
        return [hook(*args) for hook in list(self.before_listeners)]


class MemoryCookieJar:
    """Dict-backed client cookie jar. Keeps the last options per key."""

    def __init__(self, cookies: dict[str, str] | None = None) -> None:
        self.cookies: dict[str, str] = dict(cookies or {})
        self.options: dict[str, dict[str, Any]] = {}

    def get(self, key: str) -> str | None:
        return self.cookies.get(key)

    def set(self, key: str, value: str, **options: Any) -> None:
        self.cookies[key] = value
        self.options[key] = options

    def remove(self, key: str, **options: Any) -> None:
        self.cookies.pop(key, None)
        self.options.pop(key, None)
