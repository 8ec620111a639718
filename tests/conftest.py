from __future__ import annotations

from typing import Callable, Union

import httpx
import pytest

from imageclient.services.api import ImageServiceClient

BASE_URL = "http://api.test"

Responder = Union[httpx.Response, Callable[[httpx.Request], httpx.Response]]


class FakeImageService:
    """Routes requests to canned responses and records every call.

    Routes match on method and URL without its query string; tests inspect
    ``request.url.params`` for the query.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self._routes: dict[tuple[str, str], list[Responder]] = {}

    def route(self, method: str, url: str, *responses: Responder) -> None:
        """Register responses for ``method url``; the last one repeats."""

        self._routes[(method, _absolute(url))] = list(responses)

    def requests_to(self, method: str, url: str) -> list[httpx.Request]:
        target = _absolute(url)
        return [r for r in self.calls if r.method == method and _without_query(r.url) == target]

    def count(self, method: str, url: str) -> int:
        return len(self.requests_to(method, url))

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        queue = self._routes.get((request.method, _without_query(request.url)))
        if not queue:
            return httpx.Response(404, text=f"No route for {request.method} {request.url}")
        responder = queue.pop(0) if len(queue) > 1 else queue[0]
        return responder(request) if callable(responder) else responder


def _absolute(url: str) -> str:
    return url if url.startswith("http") else f"{BASE_URL}{url}"


def _without_query(url: httpx.URL) -> str:
    return str(url).split("?", 1)[0]


@pytest.fixture
def service() -> FakeImageService:
    return FakeImageService()


@pytest.fixture
def transport(service: FakeImageService) -> httpx.MockTransport:
    return httpx.MockTransport(service)


@pytest.fixture
def client(transport: httpx.MockTransport) -> ImageServiceClient:
    return ImageServiceClient(base_url=BASE_URL, transport=transport)


@pytest.fixture
def png_file(tmp_path):
    """A 2048-byte file named photo.png."""

    path = tmp_path / "photo.png"
    path.write_bytes(b"\x89PNG\r\n\x1a\n" + b"\0" * 2040)
    return path
