"""Disposer list: idempotent bulk teardown of subscriptions.

Collects the zero-argument callables returned by store subscriptions
and history listeners. ``dispose_all()`` runs each one exactly once, in
insertion order, and empties the list, so a second call is a no-op.
"""

from collections.abc import Callable, Iterator

type Disposer = Callable[[], object]


class DisposerList:
    """Ordered collection of disposers with idempotent teardown.

    Usage::

        disposers = DisposerList()
        disposers.add(store.subscribe(listener))
        disposers.add(history.listen_before(hook))
        ...
        disposers.dispose_all()  # runs both, in order
        disposers.dispose_all()  # nothing left to run
    """

    __slots__ = ("_items",)

    def __init__(self) -> None:
        self._items: list[Disposer] = []

    def add(self, disposer: Disposer) -> Disposer:
        """Register *disposer* for the next teardown and return it."""
        self._items.append(disposer)
        return disposer

    def dispose_all(self) -> int:
        """Run and forget every registered disposer.

        The list is detached before any disposer runs, so a disposer
        that re-enters ``dispose_all()`` cannot run anything twice.
        If disposers raise, the remaining ones still run and the first
        error is re-raised afterwards.

        Returns:
            The number of disposers that were run.
        """
        items, self._items = self._items, []
        first_error: Exception | None = None
        for disposer in items:
            try:
                disposer()
            except Exception as exc:
                if first_error is None:
                    first_error = exc
        if first_error is not None:
            raise first_error
        return len(items)

    def __len__(self) -> int:
        return len(self._items)

    def __bool__(self) -> bool:
        return bool(self._items)

    def __iter__(self) -> Iterator[Disposer]:
        return iter(tuple(self._items))

    def __repr__(self) -> str:
        return f"<DisposerList pending={len(self._items)}>"
