"""Navigation descriptor.

A ``Location`` describes one navigation. Its ``key`` is a one-time
random string used for history identity. The key must never reach
composed state: server output has to be byte-identical for identical
requests so responses can be cached and answered with 304.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any
from urllib.parse import parse_qsl, urlsplit


@dataclass(frozen=True, slots=True)
class Location:
    """A parsed navigation target.

    Attributes:
        pathname: Path relative to ``basename`` (e.g. ``/detail``).
        search: Query string including the leading ``?`` (or ``""``).
        hash: Fragment including the leading ``#`` (or ``""``).
        raw: ``pathname + search + hash``, the history-relative URL.
        basename: Deployment prefix this location was resolved under.
        params: Path parameters extracted by the router.
        query: Parsed query string.
        key: One-time history key. Kept out of state.
    """

    pathname: str = "/"
    search: str = ""
    hash: str = ""
    raw: str = "/"
    basename: str = ""
    params: dict[str, str] = field(default_factory=dict)
    query: dict[str, str] = field(default_factory=dict)
    key: str | None = None

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key: str | None = None,
        basename: str = "",
        params: dict[str, str] | None = None,
    ) -> Location:
        """Parse a history-relative URL into a Location."""
        parts = urlsplit(url)
        pathname = parts.path or "/"
        search = f"?{parts.query}" if parts.query else ""
        fragment = f"#{parts.fragment}" if parts.fragment else ""
        return cls(
            pathname=pathname,
            search=search,
            hash=fragment,
            raw=pathname + search + fragment,
            basename=basename,
            params=dict(params or {}),
            query=dict(parse_qsl(parts.query, keep_blank_values=True)),
            key=key,
        )

    def without_key(self) -> Location:
        """Return a copy with the history key removed."""
        if self.key is None:
            return self
        return replace(self, key=None)

    def to_state(self) -> dict[str, Any]:
        """Plain dict form stored in controller state. Never includes ``key``."""
        return {
            "pathname": self.pathname,
            "search": self.search,
            "hash": self.hash,
            "raw": self.raw,
            "basename": self.basename,
            "params": dict(self.params),
            "query": dict(self.query),
        }
