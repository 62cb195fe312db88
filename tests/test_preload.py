"""Tests for duet.preload: concurrent, cached, normalized resource fetches."""

import anyio
import httpx
import pytest

from duet.config import ControllerConfig
from duet.environment import ServerEnvironment
from duet.errors import PreloadError
from duet.preload import PreloadCache, fetch_preload, is_stylesheet, normalize_content

SERVER = "http://127.0.0.1:3000"
CDN = "https://cdn.example.com"


class TestPreloadCache:
    def test_first_write_wins(self) -> None:
        cache = PreloadCache()
        assert cache.store("a", "one") is True
        assert cache.store("a", "two") is False
        assert cache["a"] == "one"

    def test_mapping_interface(self) -> None:
        cache = PreloadCache({"a": "1"})
        assert "a" in cache
        assert cache.get("b") is None
        assert len(cache) == 1
        assert cache.as_dict() == {"a": "1"}


class TestNormalize:
    def test_stylesheet_detection_ignores_query(self) -> None:
        assert is_stylesheet("/a.css?v=2", (".css",))
        assert is_stylesheet("/A.CSS", (".css",))
        assert not is_stylesheet("/a.css.map", (".css",))
        assert not is_stylesheet("/a.png", (".css",))

    def test_only_stylesheets_lose_carriage_returns(self) -> None:
        assert normalize_content("/a.css", "a{}\r\nb{}\r\n", (".css",)) == "a{}\nb{}\n"
        assert normalize_content("/a.txt", "x\r\n", (".css",)) == "x\r\n"


class TestFetchPreload:
    @pytest.mark.anyio
    async def test_fetches_and_strips_stylesheets(self, server_env) -> None:
        env = server_env({
            f"{SERVER}/x.css": "body{}\r\n\r\np{}",
            f"{SERVER}/y.png": "png\r\ndata",
        })

        fetched = await fetch_preload({"a": "/x.css", "b": "/y.png"}, env)

        assert fetched == ["a", "b"]
        assert set(env.preload) == {"a", "b"}
        assert "\r" not in env.preload["a"]
        assert env.preload["a"] == "body{}\n\np{}"
        assert env.preload["b"] == "png\r\ndata"

    @pytest.mark.anyio
    async def test_client_uses_public_path(self, client_env) -> None:
        calls: list[str] = []
        env = client_env({f"{CDN}/x.css": "a{}"}, calls=calls)

        await fetch_preload({"a": "/x.css"}, env)

        assert calls == [f"{CDN}/x.css"]

    @pytest.mark.anyio
    async def test_absolute_url_unchanged(self, server_env) -> None:
        calls: list[str] = []
        env = server_env({"https://other.example.com/z.css": "z{}"}, calls=calls)

        await fetch_preload({"z": "https://other.example.com/z.css"}, env)

        assert calls == ["https://other.example.com/z.css"]
        assert env.preload["z"] == "z{}"

    @pytest.mark.anyio
    async def test_cached_names_not_refetched(self, server_env) -> None:
        calls: list[str] = []
        env = server_env({f"{SERVER}/x.css": "new"}, calls=calls)
        env.preload.store("a", "old")

        fetched = await fetch_preload({"a": "/x.css"}, env)

        assert fetched == []
        assert calls == []
        assert env.preload["a"] == "old"

    @pytest.mark.anyio
    async def test_empty_descriptor(self, server_env) -> None:
        env = server_env()
        assert await fetch_preload({}, env) == []

    @pytest.mark.anyio
    async def test_missing_resource_fails_whole_call(self, server_env) -> None:
        env = server_env({f"{SERVER}/x.css": "a{}"})

        with pytest.raises(PreloadError) as excinfo:
            await fetch_preload({"a": "/x.css", "gone": "/gone.css"}, env)

        assert excinfo.value.name == "gone"
        assert excinfo.value.status == 404
        assert excinfo.value.url == f"{SERVER}/gone.css"

    @pytest.mark.anyio
    async def test_fetches_run_concurrently(self) -> None:
        in_flight = 0
        peak = 0

        async def handle(request: httpx.Request) -> httpx.Response:
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await anyio.sleep(0.01)
            in_flight -= 1
            return httpx.Response(200, text="ok")

        env = ServerEnvironment(
            config=ControllerConfig(server_public_path="http://local"),
            http=httpx.AsyncClient(transport=httpx.MockTransport(handle)),
        )
        await fetch_preload({"a": "/a.css", "b": "/b.css", "c": "/c.css"}, env)

        assert peak == 3

    @pytest.mark.anyio
    async def test_timeout_propagates(self) -> None:
        async def handle(request: httpx.Request) -> httpx.Response:
            await anyio.sleep(1)
            return httpx.Response(200, text="late")

        env = ServerEnvironment(
            config=ControllerConfig(server_public_path="http://local", preload_timeout=0.01),
            http=httpx.AsyncClient(transport=httpx.MockTransport(handle)),
        )
        with pytest.raises(TimeoutError):
            await fetch_preload({"a": "/a.css"}, env)
        assert "a" not in env.preload
