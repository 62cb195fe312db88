"""Invoke helpers: call sync or async hooks uniformly.

Controller hooks can be ``def`` or ``async def``. Any code that calls a
user-provided hook must handle both cases. This module keeps the
sync/async check in exactly one place, next to the task-group helper
that runs hooks concurrently.

Usage::

    from duet._internal.invoke import invoke, run_concurrently

    result = await invoke(hook, *args)
    await run_concurrently([fetch_a, fetch_b])
"""

import inspect
from collections.abc import Awaitable, Callable, Iterable
from typing import Any

import anyio


async def invoke(hook: Any, *args: Any, **kwargs: Any) -> Any:
    """Call a hook and await the result if it's awaitable.

    Works with both sync and async callables::

        # sync: returns immediately
        def should_component_create(self):
            return self.location.query.get("id") is not None

        # async: awaited automatically
        async def should_component_create(self):
            return await self.get("/session") is not None
    """
    result = hook(*args, **kwargs)
    if inspect.isawaitable(result):
        result = await result
    return result


async def run_concurrently(jobs: Iterable[Callable[[], Awaitable[Any]]]) -> None:
    """Run zero-argument async callables in one task group.

    Returns once every job has settled. If any job fails the remaining
    ones are cancelled and the first failure is re-raised as itself
    rather than wrapped in an ``ExceptionGroup``.
    """
    jobs = list(jobs)
    if not jobs:
        return
    try:
        async with anyio.create_task_group() as tg:
            for job in jobs:
                tg.start_soon(job)
    except ExceptionGroup as group:
        raise first_leaf(group) from None


def first_leaf(group: BaseExceptionGroup) -> BaseException:
    """Return the first non-group exception nested inside *group*."""
    exc: BaseException = group
    while isinstance(exc, BaseExceptionGroup):
        exc = exc.exceptions[0]
    return exc
