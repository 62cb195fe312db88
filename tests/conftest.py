"""Shared fixtures: environments wired to an in-memory HTTP transport."""

from collections.abc import Callable

import httpx
import pytest

from duet.config import ControllerConfig
from duet.environment import ClientEnvironment, ServerEnvironment, ServerRequest
from duet.testing import MemoryCookieJar, MemoryHistory

type Routes = dict[str, str | httpx.Response]


def make_transport(routes: Routes, calls: list[str] | None = None) -> httpx.MockTransport:
    """Serve ``routes`` (full URL -> body or Response); 404 otherwise."""

    def handle(request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        if calls is not None:
            calls.append(url)
        body = routes.get(url)
        if body is None:
            return httpx.Response(404, text="missing")
        if isinstance(body, httpx.Response):
            return body
        return httpx.Response(200, text=body)

    return httpx.MockTransport(handle)


@pytest.fixture
def config() -> ControllerConfig:
    return ControllerConfig(
        basename="/app",
        public_path="https://cdn.example.com",
        server_public_path="http://127.0.0.1:3000",
        restapi="https://api.example.com",
    )


@pytest.fixture
def server_env(config: ControllerConfig) -> Callable[..., ServerEnvironment]:
    def build(routes: Routes | None = None, *, calls: list[str] | None = None, **kwargs) -> ServerEnvironment:
        http = httpx.AsyncClient(transport=make_transport(routes or {}, calls))
        kwargs.setdefault("request", ServerRequest(headers={"cookie": "sid=abc; theme=dark"}))
        return ServerEnvironment(config=config, http=http, **kwargs)

    return build


@pytest.fixture
def client_env(config: ControllerConfig) -> Callable[..., ClientEnvironment]:
    def build(routes: Routes | None = None, *, calls: list[str] | None = None, **kwargs) -> ClientEnvironment:
        http = httpx.AsyncClient(transport=make_transport(routes or {}, calls))
        kwargs.setdefault("cookies", MemoryCookieJar())
        history = kwargs.pop("history", None) or MemoryHistory()
        return ClientEnvironment(history, config, http=http, **kwargs)

    return build
