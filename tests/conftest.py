from __future__ import annotations

import sys
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import httpx
import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from logicmaster.gateway import RequestGateway  # noqa: E402
from logicmaster.session import SessionFacade  # noqa: E402
from logicmaster.token_store import TokenStore  # noqa: E402

BASE_URL = "http://backend.test/api"

USER = {
    "id": 7,
    "username": "ada",
    "email": "ada@example.com",
    "subscription_type": "premium",
}


def question_payload(qid: str = "q-101", category: str = "weaken") -> Dict[str, Any]:
    return {
        "id": qid,
        "type": category,
        "question": "Planners argue a new bridge will cut commute times. Which weakens this?",
        "options": [
            "A) The bridge is scenic",
            "B) Most commuters work from home",
            "C) Tolls will be low",
            "D) Construction ends early",
        ],
        "correct_answer": "B",
        "explanation": "If commuters stay home, the bridge cannot cut their commute.",
        "difficulty": 2,
    }


class FakeKeyValue:
    """In-memory stand-in for the async redis commands the token store uses."""

    def __init__(self, data: Optional[Dict[str, str]] = None):
        self.data: Dict[str, str] = dict(data or {})
        self.fail = False
        self.reads = 0

    def _check(self) -> None:
        if self.fail:
            raise RedisConnectionError("storage unavailable")

    async def get(self, key: str) -> Optional[str]:
        self.reads += 1
        self._check()
        return self.data.get(key)

    async def set(self, key: str, value: str) -> None:
        self._check()
        self.data[key] = value

    async def delete(self, key: str) -> None:
        self._check()
        self.data.pop(key, None)


class FakeBackend:
    """Scripted question service served through ``httpx.MockTransport``."""

    def __init__(self):
        self.routes: Dict[Tuple[str, str], Tuple[int, Any, Optional[Exception]]] = {}
        self.requests: List[httpx.Request] = []
        self.offline = False

    def on(
        self,
        method: str,
        path: str,
        status: int = 200,
        json: Any = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.routes[(method, path)] = (status, json, error)

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [
            r
            for r in self.requests
            if r.method == method and r.url.path == f"/api{path}"
        ]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.offline:
            raise httpx.ConnectError("connection refused", request=request)
        path = request.url.path[len("/api"):]
        route = self.routes.get((request.method, path))
        if route is None:
            return httpx.Response(404, json={"error": "not found"})
        status, body, error = route
        if error is not None:
            raise error
        return httpx.Response(status, json=body)


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture
def kv() -> FakeKeyValue:
    return FakeKeyValue()


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def token_store(kv: FakeKeyValue) -> TokenStore:
    return TokenStore(kv)


@pytest.fixture
def gateway(token_store: TokenStore, backend: FakeBackend) -> RequestGateway:
    client = httpx.AsyncClient(transport=httpx.MockTransport(backend.handler))
    return RequestGateway(token_store, base_url=BASE_URL, client=client)


@pytest.fixture
def facade(token_store: TokenStore, gateway: RequestGateway) -> SessionFacade:
    return SessionFacade(token_store, gateway)
