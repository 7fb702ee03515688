"""Shared fixtures: scripted upstream services and a controllable clock."""
from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import pytest

from extp.config import Settings

GRAFANA_URL = "http://grafana.test"
PROVISION_URL = "http://provision.test"


class FakeClock:
    """Monotonic clock that only moves when told to."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeUpstream:
    """
    Scripted HTTP responses for Grafana and the provision service.

    Responses are queued per (method, path). Each request consumes the
    first queued response; the last one is reused once the queue is down
    to a single entry. Unscripted requests get a 404.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], list[dict[str, Any]]] = {}
        self.requests: list[httpx.Request] = []

    def on(
        self,
        method: str,
        path: str,
        status: int = 200,
        json_body: Any = None,
        content: Optional[bytes] = None,
        error: Optional[type[httpx.HTTPError]] = None,
    ) -> "FakeUpstream":
        self.routes.setdefault((method, path), []).append({
            "status": status,
            "json": json_body,
            "content": content,
            "error": error,
        })
        return self

    def calls(self, method: Optional[str] = None, path: Optional[str] = None) -> list[httpx.Request]:
        return [
            r for r in self.requests
            if (method is None or r.method == method) and (path is None or r.url.path == path)
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": "Not found"})
        reply = queue.pop(0) if len(queue) > 1 else queue[0]

        if reply["error"] is not None:
            raise reply["error"]("connection refused", request=request)
        if reply["content"] is not None:
            return httpx.Response(reply["status"], content=reply["content"])
        return httpx.Response(reply["status"], json=reply["json"] if reply["json"] is not None else {})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


def request_json(request: httpx.Request) -> Any:
    return json.loads(request.content)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def test_settings() -> Settings:
    s = Settings()
    s.GF_LOCATION = GRAFANA_URL
    s.GF_ADMIN_USER = "admin"
    s.GF_ADMIN_PASSWORD = "admin-secret"
    s.PROVISION_SERVICE = PROVISION_URL
    s.REQUIRE_ACCESS_KEY = True
    s.REDIS_URL = ""
    return s
