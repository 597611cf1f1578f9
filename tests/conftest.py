"""Shared test fixtures — fake clock, cache, and a REST client on a mock transport."""

import json
import os
from dataclasses import dataclass

import httpx
import pytest

# Set required env vars before any wp_shared imports
os.environ.setdefault("WORDPRESS_URL", "https://blog.test")
os.environ.setdefault("WORDPRESS_USERNAME", "admin")
os.environ.setdefault("WORDPRESS_APP_PASSWORD", "abcd efgh ijkl mnop")

from wp_shared.clients.rest_api import WordPressRestClient  # noqa: E402
from wp_shared.core.cache import ResponseCache  # noqa: E402


@dataclass
class FakeClock:
    now: float = 1000.0

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def cache(clock):
    return ResponseCache(enabled=True, ttl_seconds=300, check_period=120, clock=clock)


class RecordingHandler:
    """httpx.MockTransport handler that records requests and serves canned JSON.

    `routes` maps "METHOD path" to a JSON body or an httpx.Response.
    """

    def __init__(self, routes: dict | None = None):
        self.routes = routes or {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        route = self.routes.get(f"{request.method} {request.url.path}")
        if isinstance(route, httpx.Response):
            return route
        if route is None:
            return httpx.Response(404, json={"code": "rest_no_route", "message": "No route was found"})
        return httpx.Response(200, content=json.dumps(route).encode(), headers={"Content-Type": "application/json"})

    def count(self, method: str, path: str) -> int:
        return sum(1 for r in self.requests if r.method == method and r.url.path == path)


@pytest.fixture
def make_client(cache):
    """Build a WordPressRestClient whose HTTP traffic goes to a RecordingHandler."""

    def _make(routes: dict | None = None, **kwargs):
        handler = RecordingHandler(routes)
        client = WordPressRestClient(
            url="https://blog.test/",
            username="admin",
            app_password="abcd efgh ijkl mnop",
            cache=kwargs.pop("cache", cache),
            transport=httpx.MockTransport(handler),
            **kwargs,
        )
        return client, handler

    return _make
