"""Preload resources: named text assets fetched ahead of render.

A controller declares ``preload = {"style": "/css/page.css"}``. Before
the page renders, every resource not already in the request's
``PreloadCache`` is fetched concurrently and stored by name, so the view
can inline it and the same name is never fetched twice.

Stylesheets have their carriage returns stripped: server-rendered and
client-computed content must hash identically for conditional
responses to keep working.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator, Mapping
from typing import TYPE_CHECKING

import anyio
import httpx

from duet._internal.invoke import run_concurrently
from duet._internal.urls import strip_query
from duet.errors import PreloadError

if TYPE_CHECKING:
    from duet.environment import Environment

logger = logging.getLogger("duet.preload")


class PreloadCache(Mapping[str, str]):
    """Write-once mapping of resource name to content.

    The first stored value for a name wins; later stores are ignored.
    Scoped to one request (server) or one page session (client).
    """

    __slots__ = ("_entries", "_lock")

    def __init__(self, entries: Mapping[str, str] | None = None) -> None:
        self._entries: dict[str, str] = dict(entries or {})
        self._lock = threading.Lock()

    def store(self, name: str, content: str) -> bool:
        """Store *content* under *name* unless already present.

        Returns:
            ``True`` if this call created the entry.
        """
        with self._lock:
            if name in self._entries:
                return False
            self._entries[name] = content
            return True

    def __getitem__(self, name: str) -> str:
        return self._entries[name]

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._entries))

    def __len__(self) -> int:
        return len(self._entries)

    def as_dict(self) -> dict[str, str]:
        """Plain copy, for templates and serialization."""
        return dict(self._entries)

    def __repr__(self) -> str:
        return f"<PreloadCache {sorted(self._entries)}>"


def is_stylesheet(url: str, suffixes: tuple[str, ...]) -> bool:
    """Whether *url* (query and fragment ignored) names a stylesheet."""
    path = strip_query(url).lower()
    return path.endswith(tuple(suffix.lower() for suffix in suffixes))


def normalize_content(url: str, content: str, suffixes: tuple[str, ...]) -> str:
    """Strip carriage returns from stylesheet content."""
    if is_stylesheet(url, suffixes):
        return content.replace("\r", "")
    return content


async def fetch_preload(
    preload: Mapping[str, str],
    env: Environment,
    *,
    client: httpx.AsyncClient | None = None,
) -> list[str]:
    """Fetch every resource in *preload* missing from ``env.preload``.

    All fetches run concurrently. The call returns once all of them
    have settled and fails as soon as any one fails; partial success is
    never reported.

    Args:
        preload: Resource name to absolute or environment-relative path.
        env: The environment resolving paths and owning the cache.
        client: HTTP client; defaults to ``env.http`` or a throwaway one.

    Returns:
        Names fetched by this call, in declaration order.

    Raises:
        PreloadError: A resource answered with a non-2xx status.
        TimeoutError: A fetch exceeded ``config.preload_timeout``.
    """
    cache = env.preload
    pending = {name: path for name, path in preload.items() if name not in cache}
    if not pending:
        return []

    client = client or env.http
    if client is None:
        async with httpx.AsyncClient() as owned:
            return await _fetch_all(pending, env, owned)
    return await _fetch_all(pending, env, client)


async def _fetch_all(
    pending: dict[str, str],
    env: Environment,
    client: httpx.AsyncClient,
) -> list[str]:
    config = env.config

    async def fetch_one(name: str, url: str) -> None:
        with anyio.fail_after(config.preload_timeout):
            response = await client.get(url)
        if not response.is_success:
            raise PreloadError(name, url, response.status_code)
        content = normalize_content(url, response.text, config.stylesheet_suffixes)
        env.preload.store(name, content)
        logger.debug("preloaded %s from %s (%d chars)", name, url, len(content))

    jobs = []
    for name, path in pending.items():
        url = env.resolve_preload_url(path)
        jobs.append(lambda name=name, url=url: fetch_one(name, url))

    await run_concurrently(jobs)
    return list(pending)
