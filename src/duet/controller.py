"""The page controller: one per navigation.

Binds a store to a view, runs the lifecycle hooks in a fixed order,
assembles the view's event handlers, and wraps fetch, cookies, and
redirects so the same controller code runs on the server and on the
client.

Lifecycle::

    Created -> init() -> PageView (server render or client ready)
                      -> Fallback (server render suppressed by SSR)
                      -> None     (should_component_create said no)
    ClientReady -> destroy() -> restore() -> ClientReady

``init()`` on the client first consumes the hydration channel. If the
server already rendered this page, its state is reused and the guard,
data, and preload hooks are skipped (fast path). Otherwise the guard
runs, then ``component_will_create`` and the preload fetch run
concurrently, and the store is bound once both have finished (full
path).

Hooks are optional methods on a subclass. Each may be ``def`` or
``async def``::

    class DetailController(Controller):
        View = "detail.html"
        preload = {"style": "/css/detail.css"}
        initial_state = {"item": None}
        actions = {"set_item": lambda state, item: {**state, "item": item}}

        async def should_component_create(self):
            if "id" not in self.location.query:
                self.redirect("/")
                return False
            return True

        async def component_will_create(self):
            item = await self.get("/items", {"id": self.location.query["id"]})
            self.store.actions["set_item"](item)
"""

from __future__ import annotations

import json as jsonlib
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, ClassVar
from urllib.parse import urlencode

import anyio
import httpx

from duet._internal.invoke import invoke, run_concurrently
from duet._internal.urls import is_absolute_url
from duet.disposers import DisposerList
from duet.environment import Environment, check_cookie_options
from duet.errors import FetchError
from duet.handlers import Handlers, collect_handlers, handler, handlers_from_source
from duet.location import Location
from duet.preload import fetch_preload
from duet.store import Action, State, Store, bind_store, create_store, merge_actions
from duet.view import EMPTY_VIEW, Fallback, PageView

logger = logging.getLogger("duet.controller")


@dataclass(slots=True)
class ControllerMeta:
    """Identity and teardown bookkeeping for one controller.

    Attributes:
        id: Unique within the request or page session.
        key: History key taken off the location at construction.
        is_destroyed: Set by ``destroy()``, cleared by ``restore()``.
        had_mounted: Set by the view layer once the view is mounted.
        unsubscribe_list: Disposers for every live subscription.
    """

    id: int
    key: str | None = None
    is_destroyed: bool = False
    had_mounted: bool = False
    unsubscribe_list: DisposerList = field(default_factory=DisposerList)


class Controller:
    """Base class for page controllers.

    Class attributes a subclass may declare:

    - ``View`` / ``Loading``: template names for the page and for the
      suppressed-SSR fallback.
    - ``Model``: mapping with an ``initial_state`` entry plus actions;
      used when neither ``initial_state`` nor ``actions`` is declared.
    - ``initial_state``: dict, or a method ``(location, env) -> dict``.
    - ``actions``: action table ``name -> fn(state, payload)``.
    - ``preload``: resource name -> path, fetched before first render.
    - ``API``: shortcut name -> URL for ``fetch``/``get``/``post``.
    - ``SSR``: ``False`` (or a guard returning ``False``) skips server
      rendering and returns the ``Loading`` fallback.
    - ``restapi``: overrides the environment's REST base URL.
    """

    View: ClassVar[str | None] = EMPTY_VIEW
    Loading: ClassVar[str | None] = None
    Model: ClassVar[Mapping[str, Any] | None] = None
    API: ClassVar[Mapping[str, str] | None] = None
    SSR: Any = True

    initial_state: Any = None
    actions: Mapping[str, Action] | None = None
    preload: Mapping[str, str] | None = None
    restapi: str | None = None

    # Hooks
    should_component_create: Callable[[], Any] | None = None
    component_will_create: Callable[[], Any] | None = None
    get_initial_state: Callable[[State], Any] | None = None
    state_did_reuse: Callable[[State], Any] | None = None
    get_final_actions: Callable[[Mapping[str, Action] | None], Any] | None = None
    state_did_change: Callable[[State], Any] | None = None
    page_will_leave: Callable[..., Any] | None = None
    window_will_unload: Callable[..., Any] | None = None
    page_did_back: Callable[[Location, Environment], Any] | None = None

    def __init__(
        self,
        location: Location | None,
        env: Environment,
        *,
        controller_id: int | None = None,
    ) -> None:
        location = location or Location()
        self.meta = ControllerMeta(
            id=env.next_id() if controller_id is None else controller_id,
            key=location.key,
        )
        # History keys never reach state.
        self.location = location.without_key()
        self.env = env
        self.handlers = Handlers()
        self.store: Store | None = None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} id={self.meta.id} raw={self.location.raw!r}>"

    # -- Lifecycle --

    async def init(self) -> PageView | Fallback | None:
        """Run the initialization lifecycle.

        Returns:
            The rendered ``PageView``; a ``Fallback`` when server
            rendering is suppressed; ``None`` when
            ``should_component_create`` aborted creation.

        Raises:
            Exception: Whatever a data hook or preload fetch raised.
                Partial success is never reported.
        """
        env, location = self.env, self.location

        if env.is_server and not await self._server_render_allowed():
            logger.debug("%r: server render suppressed, returning fallback", self)
            return Fallback(self.Loading or EMPTY_VIEW)

        initial_state, actions = self.initial_state, self.actions
        if self.Model is not None and initial_state is None and actions is None:
            model = dict(self.Model)
            initial_state = model.pop("initial_state", None)
            actions = model
            self.initial_state, self.actions = initial_state, actions
        if callable(initial_state):
            initial_state = await invoke(initial_state, location, env)

        global_state = env.take_hydration()

        final_state: State = {
            **(initial_state or {}),
            **(global_state or {}),
            "location": location.to_state(),
            "basename": env.basename,
            "public_path": env.public_path,
            "restapi": env.restapi,
        }

        if global_state is None and self.get_initial_state is not None:
            final_state = await invoke(self.get_initial_state, final_state)

        if global_state is not None and self.state_did_reuse is not None:
            await invoke(self.state_did_reuse, final_state)

        if self.get_final_actions is not None:
            actions = await invoke(self.get_final_actions, actions)

        self.store = create_store(merge_actions(actions), final_state)
        self.handlers = self.handlers.merged(collect_handlers(self))

        if global_state is not None:
            # The server already ran the guard, data, and preload hooks.
            logger.debug("%r: reusing server state", self)
            self.bind_store_with_view()
            return self.render()

        if self.should_component_create is not None:
            should_create = await invoke(self.should_component_create)
            if should_create is False:
                logger.debug("%r: should_component_create returned False", self)
                return None

        jobs = []
        if self.component_will_create is not None:
            jobs.append(lambda: invoke(self.component_will_create))
        if self.preload:
            jobs.append(self.fetch_preload)
        await run_concurrently(jobs)

        self.bind_store_with_view()
        return self.render()

    async def _server_render_allowed(self) -> bool:
        ssr = self.SSR
        if callable(ssr):
            ssr = await invoke(ssr, self.location, self.env)
        return ssr is not False

    def bind_store_with_view(self) -> None:
        """Subscribe the view and navigation hooks. Client only.

        A no-op on the server and on a destroyed controller, which
        covers hooks that finish after ``destroy()`` was called.
        """
        env, meta = self.env, self.meta
        if not env.can_bind or meta.is_destroyed:
            return

        if self.store is not None:
            meta.unsubscribe_list.add(
                bind_store(self.store, self.refresh_view, self.state_did_change, spawn=env.spawn)
            )

        if self.page_will_leave is not None:
            meta.unsubscribe_list.add(env.listen_before(self.page_will_leave))

        if self.window_will_unload is not None:
            meta.unsubscribe_list.add(env.listen_before_unload(self.window_will_unload))

    def destroy(self) -> None:
        """Tear down every subscription. Safe to call repeatedly."""
        meta = self.meta
        try:
            count = meta.unsubscribe_list.dispose_all()
        finally:
            meta.is_destroyed = True
        if count:
            logger.debug("%r: destroyed, %d disposers run", self, count)

    async def restore(self, location: Location, env: Environment | None = None) -> PageView:
        """Re-activate a destroyed controller on back-navigation.

        The existing store is kept; only its location is updated through
        the shared ``page_did_back`` action. Precondition: ``init()``
        has built the store.
        """
        meta, store = self.meta, self.store
        meta.is_destroyed = False
        store.actions["page_did_back"](location.without_key())

        if self.page_did_back is not None:
            await invoke(self.page_did_back, location, env or self.env)

        logger.debug("%r: restored", self)
        self.bind_store_with_view()
        return self.render()

    def render(self) -> PageView:
        """Snapshot the current state for the view layer.

        On the server the state is also queued on the hydration channel
        for the page to embed.
        """
        store, env = self.store, self.env
        state = store.get_state()
        if env.is_server:
            env.hydration.put(state)
        return PageView(
            key=f"[{self.meta.id}]{self.location.raw}",
            view=self.View,
            state=state,
            actions=store.actions,
            handlers=self.handlers,
            preload=env.preload.as_dict(),
            location=self.location.to_state(),
        )

    def refresh_view(self) -> None:
        """Push a fresh render to the environment after a store change."""
        self.env.refresh(self.render())

    def mark_mounted(self) -> None:
        """Called by the view layer once the view is on screen."""
        self.meta.had_mounted = True

    def reload(self) -> None:
        """Navigate to the current location again."""
        self.env.redirect(self.location.raw)

    # -- Handlers --

    def combine_handlers(self, source: object) -> None:
        """Add handlers from *source*, bound to this controller.

        Objects contribute their ``@handler`` methods; mappings
        contribute callables named with ``config.handler_prefix``.
        """
        extra = handlers_from_source(source, self, prefix=self.env.config.handler_prefix)
        self.handlers = self.handlers.merged(extra)

    @handler
    def handle_input_change(self, name: str, value: Any) -> State:
        """Write an input's value into state at the dotted path *name*."""
        return self.store.actions["update_input_value"]({"name": name, "value": value})

    # -- Preload --

    async def fetch_preload(self, preload: Mapping[str, str] | None = None) -> list[str]:
        """Fetch this controller's preload resources into the shared cache."""
        preload = preload or self.preload or {}
        return await fetch_preload(preload, self.env)

    # -- URLs --

    def prepend_basename(self, pathname: str) -> str:
        return self.env.prepend_basename(pathname)

    def prepend_public_path(self, pathname: str) -> str:
        if is_absolute_url(pathname):
            return pathname
        return self.env.public_path + pathname

    def prepend_restapi(self, url: str) -> str:
        """Resolve *url* against the REST base.

        Absolute URLs pass through. ``/mock/`` URLs get the basename
        instead.
        """
        if is_absolute_url(url):
            return url
        if url.startswith("/mock/"):
            return self.prepend_basename(url)
        return (self.restapi or self.env.restapi) + url

    def redirect(self, url: str, raw: bool = False) -> None:
        """Redirect on either side. ``raw`` skips basename prefixing."""
        self.env.redirect(url, raw=raw)

    # -- Cookies --

    def cookie(self, key: str, value: str | None = None, **options: Any) -> str | None:
        """Read a cookie, or write it when *value* is given."""
        if value is None:
            return self.get_cookie(key)
        self.set_cookie(key, value, **options)
        return None

    def get_cookie(self, key: str) -> str | None:
        return self.env.get_cookie(key)

    def set_cookie(self, key: str, value: str, **options: Any) -> None:
        check_cookie_options(options)
        self.env.set_cookie(key, value, **options)

    def remove_cookie(self, key: str, **options: Any) -> None:
        self.env.remove_cookie(key, **options)

    # -- HTTP --

    def _api_url(self, url: str) -> str:
        api = self.API
        if api is not None and url in api:
            return api[url]
        return url

    async def fetch(
        self,
        url: str,
        *,
        method: str = "GET",
        json: bool = True,
        raw: bool = False,
        timeout: float | None = None,
        headers: Mapping[str, str] | None = None,
        body: str | bytes | None = None,
        credentials: str = "include",
    ) -> Any:
        """Fetch *url* relative to the REST base.

        Args:
            url: A URL or an ``API`` shortcut name.
            json: Decode the body as JSON. With ``False`` the raw
                ``httpx.Response`` is returned.
            raw: Use *url* as-is, without the REST base.
            timeout: Seconds before ``TimeoutError``; defaults to
                ``config.fetch_timeout``.
            credentials: ``"include"`` forwards the incoming request's
                cookies during a server render.

        Raises:
            FetchError: Non-2xx response while decoding JSON.
            TimeoutError: The request exceeded *timeout*.
        """
        env = self.env
        url = self._api_url(url)
        if not raw:
            url = self.prepend_restapi(url)

        final_headers = {
            "Content-Type": "application/json",
            **(headers or {}),
            **env.request_headers(credentials),
        }
        if timeout is None:
            timeout = env.config.fetch_timeout

        with anyio.fail_after(timeout):
            if env.http is None:
                async with httpx.AsyncClient() as client:
                    response = await client.request(method, url, headers=final_headers, content=body)
            else:
                response = await env.http.request(method, url, headers=final_headers, content=body)

        if not json:
            return response
        if not response.is_success:
            raise FetchError(url, response.status_code, response.text)
        return response.json()

    async def get(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        **options: Any,
    ) -> Any:
        """``GET`` with *params* encoded into the query string."""
        url = self._api_url(url)
        if params:
            prefix = "&" if "?" in url else "?"
            url += prefix + urlencode(params, doseq=True)
        options["method"] = "GET"
        return await self.fetch(url, **options)

    async def post(self, url: str, data: Any = None, **options: Any) -> Any:
        """``POST`` *data* as a JSON body."""
        options["method"] = "POST"
        options["body"] = jsonlib.dumps(data)
        return await self.fetch(url, **options)
