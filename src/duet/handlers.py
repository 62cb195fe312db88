"""Explicit event-handler registry.

Controllers declare the handlers their view may call with the
``@handler`` decorator. ``collect_handlers()`` binds the declared set to
an instance and exposes it as a read-only mapping; nothing is inferred
from member names.

Usage::

    class CartController(Controller):
        @handler
        def handle_add(self, sku: str) -> None:
            self.store.actions["add_item"](sku)

        @handler("remove")
        def _remove(self, sku: str) -> None:
            ...

    # controller.handlers == {"handle_add": <bound>, "remove": <bound>}
"""

from __future__ import annotations

from collections.abc import Callable, Iterator, Mapping
from typing import Any, overload

_HANDLER_ATTR = "__duet_handler__"


@overload
def handler[F: Callable[..., Any]](func: F, /) -> F: ...


@overload
def handler[F: Callable[..., Any]](name: str, /) -> Callable[[F], F]: ...


def handler(func_or_name: Any, /) -> Any:
    """Mark a method as a view event handler.

    Use bare to expose the method under its own name, or pass a string
    to expose it under a different one.
    """
    if isinstance(func_or_name, str):
        name = func_or_name

        def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
            setattr(func, _HANDLER_ATTR, name)
            return func

        return decorator

    setattr(func_or_name, _HANDLER_ATTR, func_or_name.__name__)
    return func_or_name


def declared_handlers(cls: type) -> dict[str, str]:
    """Map exposed handler names to attribute names for *cls*.

    Walks the MRO base-first so subclass declarations win.
    """
    found: dict[str, str] = {}
    for klass in reversed(cls.__mro__):
        for attr, value in vars(klass).items():
            name = getattr(value, _HANDLER_ATTR, None)
            if isinstance(name, str):
                found[name] = attr
    return found


class Handlers(Mapping[str, Callable[..., Any]]):
    """Read-only dispatch table handed to the view layer."""

    __slots__ = ("_table",)

    def __init__(self, table: Mapping[str, Callable[..., Any]] | None = None) -> None:
        self._table: dict[str, Callable[..., Any]] = dict(table or {})

    def __getitem__(self, name: str) -> Callable[..., Any]:
        return self._table[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._table)

    def __len__(self) -> int:
        return len(self._table)

    def merged(self, other: Mapping[str, Callable[..., Any]]) -> Handlers:
        """Return a new table with *other* layered on top."""
        return Handlers({**self._table, **other})

    def __repr__(self) -> str:
        return f"<Handlers {sorted(self._table)}>"


def collect_handlers(obj: object) -> dict[str, Callable[..., Any]]:
    """Bind every ``@handler`` method declared on ``type(obj)`` to *obj*."""
    return {
        name: getattr(obj, attr)
        for name, attr in declared_handlers(type(obj)).items()
    }


def handlers_from_source(
    source: object,
    bind_to: object,
    *,
    prefix: str,
) -> dict[str, Callable[..., Any]]:
    """Collect handlers from an arbitrary *source* and bind them to *bind_to*.

    Mappings contribute callables whose key starts with *prefix*; any
    other object contributes its ``@handler`` declarations. Functions
    are bound as methods of *bind_to*.
    """
    if isinstance(source, Mapping):
        candidates = {
            key: value
            for key, value in source.items()
            if isinstance(key, str) and key.startswith(prefix) and callable(value)
        }
    else:
        candidates = {
            name: getattr(type(source), attr, None) or getattr(source, attr)
            for name, attr in declared_handlers(type(source)).items()
        }
    bound: dict[str, Callable[..., Any]] = {}
    for name, func in candidates.items():
        func = getattr(func, "__func__", func)
        bind = getattr(func, "__get__", None)
        bound[name] = bind(bind_to, type(bind_to)) if bind is not None else func
    return bound
