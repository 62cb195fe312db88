"""Execution environments: one strategy per side of the render.

A controller never branches on ad hoc ``is_server`` flags. It is handed
one ``Environment`` at construction and calls its capabilities:

- ``ServerEnvironment``: one request, one render. Resolves preload
  resources against the server-local base URL, forwards the incoming
  ``Cookie`` header on outgoing fetches, records redirects and
  ``Set-Cookie`` directives on a ``ServerResponse``. Never binds
  subscriptions.
- ``ClientEnvironment``: a long-lived interactive session. Owns the
  ``History`` adapter, a ``CookieJar``, the view-refresh callback, and
  an optional task group used to run async store hooks.

Both carry the per-request (or per-page-session) ``PreloadCache`` and
``HydrationChannel`` plus the controller id sequence, so nothing is
shared across requests through module globals.
"""

from __future__ import annotations

import itertools
import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from email.utils import format_datetime
from typing import TYPE_CHECKING, Any, ClassVar, Protocol

import httpx

from duet._internal.urls import is_absolute_url
from duet.config import ControllerConfig
from duet.errors import ConfigurationError
from duet.hydration import HydrationChannel
from duet.preload import PreloadCache

if TYPE_CHECKING:
    from anyio.abc import TaskGroup

    from duet.view import PageView

logger = logging.getLogger("duet.environment")

type Disposer = Callable[[], object]
type NavigationHook = Callable[..., object]


# ---------------------------------------------------------------------------
# Cookies
# ---------------------------------------------------------------------------

def parse_cookies(header: str) -> dict[str, str]:
    """Parse a ``Cookie`` header value into a name-value dict.

    Returns an empty dict for empty or missing headers.
    """
    if not header:
        return {}
    cookies: dict[str, str] = {}
    for pair in header.split(";"):
        pair = pair.strip()
        if "=" in pair:
            key, _, value = pair.partition("=")
            cookies[key.strip()] = value.strip()
    return cookies


def check_cookie_options(options: Mapping[str, Any]) -> None:
    """Reject cookie options that cannot be honored on both sides.

    Raises:
        ConfigurationError: ``expires`` is set but is not a ``datetime``.
    """
    expires = options.get("expires")
    if expires is not None and not isinstance(expires, datetime):
        msg = f"cookie 'expires' must be a datetime instance, not {expires!r}"
        raise ConfigurationError(msg)


@dataclass(frozen=True, slots=True)
class SetCookie:
    """A ``Set-Cookie`` (or deletion) directive recorded by the server."""

    name: str
    value: str
    expires: datetime | None = None
    max_age: int | None = None
    path: str = "/"
    domain: str | None = None
    secure: bool = False
    httponly: bool = False
    samesite: str | None = None

    def to_header_value(self) -> str:
        """Serialize to a ``Set-Cookie`` header value string."""
        parts = [f"{self.name}={self.value}"]
        if self.expires is not None:
            expires = self.expires
            if expires.tzinfo is None:
                expires = expires.replace(tzinfo=UTC)
            parts.append(f"Expires={format_datetime(expires.astimezone(UTC), usegmt=True)}")
        if self.max_age is not None:
            parts.append(f"Max-Age={self.max_age}")
        if self.path:
            parts.append(f"Path={self.path}")
        if self.domain:
            parts.append(f"Domain={self.domain}")
        if self.secure:
            parts.append("Secure")
        if self.httponly:
            parts.append("HttpOnly")
        if self.samesite:
            parts.append(f"SameSite={self.samesite}")
        return "; ".join(parts)


_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Server-side request/response handles
# ---------------------------------------------------------------------------

@dataclass(slots=True)
class ServerRequest:
    """The incoming request, as far as a controller needs to see it.

    Attributes:
        method: HTTP method.
        path: Request path after root-path stripping.
        headers: Lower-cased header names to values.
        root_path: Deployment prefix stripped by ``ShareRoot``.
    """

    method: str = "GET"
    path: str = "/"
    headers: dict[str, str] = field(default_factory=dict)
    root_path: str = ""

    @property
    def cookies(self) -> dict[str, str]:
        """Cookies parsed from the ``Cookie`` header."""
        return parse_cookies(self.headers.get("cookie", ""))

    @classmethod
    def from_scope(cls, scope: Mapping[str, Any]) -> ServerRequest:
        """Build from a raw ASGI HTTP scope."""
        headers = {
            key.decode("latin-1").lower(): value.decode("latin-1")
            for key, value in scope.get("headers", ())
        }
        return cls(
            method=scope.get("method", "GET"),
            path=scope.get("path", "/"),
            headers=headers,
            root_path=scope.get("root_path", ""),
        )


@dataclass(slots=True)
class ServerResponse:
    """Collects the side effects a server render wants to send back."""

    redirect_url: str | None = None
    cookies: list[SetCookie] = field(default_factory=list)

    def redirect(self, url: str) -> None:
        self.redirect_url = url

    def set_cookie(self, cookie: SetCookie) -> None:
        self.cookies.append(cookie)

    def clear_cookie(self, name: str, **options: Any) -> None:
        options.pop("expires", None)
        options.pop("max_age", None)
        self.cookies.append(SetCookie(name, "", expires=_EPOCH, max_age=0, **options))

    def headers(self) -> list[tuple[str, str]]:
        """Headers to attach to the outgoing response."""
        result = [("set-cookie", cookie.to_header_value()) for cookie in self.cookies]
        if self.redirect_url is not None:
            result.append(("location", self.redirect_url))
        return result


# ---------------------------------------------------------------------------
# Client-side adapters
# ---------------------------------------------------------------------------

class History(Protocol):
    """The client's navigation history, as the controller uses it."""

    def replace(self, url: str) -> None: ...

    def listen_before(self, hook: NavigationHook) -> Disposer: ...

    def listen_before_unload(self, hook: NavigationHook) -> Disposer: ...


class CookieJar(Protocol):
    """Client cookie storage."""

    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str, **options: Any) -> None: ...

    def remove(self, key: str, **options: Any) -> None: ...


# ---------------------------------------------------------------------------
# Environments
# ---------------------------------------------------------------------------

class Environment(ABC):
    """Capabilities shared by both sides of the render.

    Subclasses implement the side-specific operations; the base class
    owns the request- or session-scoped state. Instantiating a subclass
    that leaves one of them out raises ``TypeError``.
    """

    is_server: ClassVar[bool] = False
    is_client: ClassVar[bool] = False

    def __init__(
        self,
        config: ControllerConfig | None = None,
        *,
        preload: PreloadCache | None = None,
        hydration: HydrationChannel | None = None,
        http: httpx.AsyncClient | None = None,
        first_id: int = 0,
    ) -> None:
        self.config = config or ControllerConfig()
        self.preload = preload if preload is not None else PreloadCache()
        self.hydration = hydration if hydration is not None else HydrationChannel()
        self.http = http
        self._ids = itertools.count(first_id)

    def next_id(self) -> int:
        """Next controller id in this request or page session."""
        return next(self._ids)

    @property
    def basename(self) -> str:
        return self.config.basename

    @property
    def public_path(self) -> str:
        return self.config.public_path

    @property
    def restapi(self) -> str:
        return self.config.restapi

    @property
    def can_bind(self) -> bool:
        """Whether store subscriptions and history listeners may be bound."""
        return False

    @abstractmethod
    def preload_base(self) -> str:
        """Base URL relative preload paths resolve against."""

    def resolve_preload_url(self, path: str) -> str:
        """Absolute URLs pass through; relative ones get this side's base."""
        if is_absolute_url(path):
            return path
        return self.preload_base() + path

    def prepend_basename(self, pathname: str) -> str:
        if is_absolute_url(pathname):
            return pathname
        return self.basename + pathname

    def take_hydration(self) -> dict[str, Any] | None:
        """Consume server-rendered state, if this side receives any."""
        return self.hydration.peek_and_clear()

    def request_headers(self, credentials: str) -> dict[str, str]:
        """Extra headers for outgoing fetches."""
        return {}

    @abstractmethod
    def redirect(self, url: str, *, raw: bool = False) -> None: ...

    @abstractmethod
    def get_cookie(self, key: str) -> str | None: ...

    @abstractmethod
    def set_cookie(self, key: str, value: str, **options: Any) -> None: ...

    @abstractmethod
    def remove_cookie(self, key: str, **options: Any) -> None: ...

    @abstractmethod
    def listen_before(self, hook: NavigationHook) -> Disposer: ...

    @abstractmethod
    def listen_before_unload(self, hook: NavigationHook) -> Disposer: ...

    def refresh(self, view: PageView) -> None:
        """Deliver a re-rendered view. Only meaningful on the client."""

    def spawn(self, func: Callable[[], Awaitable[Any]]) -> None:
        msg = f"{type(self).__name__} cannot run background tasks"
        raise RuntimeError(msg)

    def __repr__(self) -> str:
        return f"<{type(self).__name__} basename={self.basename!r}>"


class ServerEnvironment(Environment):
    """One request, rendered once."""

    is_server: ClassVar[bool] = True

    def __init__(
        self,
        request: ServerRequest | None = None,
        response: ServerResponse | None = None,
        config: ControllerConfig | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config, **kwargs)
        self.request = request or ServerRequest()
        self.response = response or ServerResponse()

    @property
    def basename(self) -> str:
        return self.request.root_path or self.config.basename

    def preload_base(self) -> str:
        return self.config.server_public_path

    def take_hydration(self) -> None:
        # Filled by render() for the client; never read back here.
        return None

    def request_headers(self, credentials: str) -> dict[str, str]:
        # Server fetches carry no ambient cookies; forward the caller's.
        if credentials == "include":
            return {"Cookie": self.request.headers.get("cookie", "")}
        return {}

    def redirect(self, url: str, *, raw: bool = False) -> None:
        if not raw:
            url = self.prepend_basename(url)
        logger.debug("server redirect to %s", url)
        self.response.redirect(url)

    def get_cookie(self, key: str) -> str | None:
        return self.request.cookies.get(key)

    def set_cookie(self, key: str, value: str, **options: Any) -> None:
        self.response.set_cookie(SetCookie(key, value, **options))

    def remove_cookie(self, key: str, **options: Any) -> None:
        self.response.clear_cookie(key, **options)

    def listen_before(self, hook: NavigationHook) -> Disposer:
        msg = "navigation listeners are not available during a server render"
        raise RuntimeError(msg)

    listen_before_unload = listen_before


class ClientEnvironment(Environment):
    """A long-lived interactive session."""

    is_client: ClassVar[bool] = True

    def __init__(
        self,
        history: History,
        config: ControllerConfig | None = None,
        *,
        cookies: CookieJar | None = None,
        navigate: Callable[[str], object] | None = None,
        on_refresh: Callable[[PageView], object] | None = None,
        task_group: TaskGroup | None = None,
        **kwargs: Any,
    ) -> None:
        super().__init__(config, **kwargs)
        self.history = history
        self.cookies = cookies
        self.navigate = navigate
        self.on_refresh = on_refresh
        self.task_group = task_group

    @property
    def can_bind(self) -> bool:
        return True

    def preload_base(self) -> str:
        return self.config.public_path

    def redirect(self, url: str, *, raw: bool = False) -> None:
        if raw or is_absolute_url(url):
            if self.navigate is None:
                msg = f"cannot leave the application for {url!r}: no navigate callback"
                raise ConfigurationError(msg)
            self.navigate(url)
        else:
            self.history.replace(url)

    def _jar(self) -> CookieJar:
        if self.cookies is None:
            msg = "ClientEnvironment has no cookie jar"
            raise ConfigurationError(msg)
        return self.cookies

    def get_cookie(self, key: str) -> str | None:
        return self._jar().get(key)

    def set_cookie(self, key: str, value: str, **options: Any) -> None:
        self._jar().set(key, value, **options)

    def remove_cookie(self, key: str, **options: Any) -> None:
        self._jar().remove(key, **options)

    def listen_before(self, hook: NavigationHook) -> Disposer:
        return self.history.listen_before(hook)

    def listen_before_unload(self, hook: NavigationHook) -> Disposer:
        return self.history.listen_before_unload(hook)

    def refresh(self, view: PageView) -> None:
        if self.on_refresh is not None:
            self.on_refresh(view)

    def spawn(self, func: Callable[[], Awaitable[Any]]) -> None:
        if self.task_group is None:
            super().spawn(func)
            return
        self.task_group.start_soon(func)
