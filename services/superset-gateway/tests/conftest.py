"""
Shared fixtures: settings and an in-memory Superset served through httpx.MockTransport
"""

from typing import Callable, Dict, List, Tuple, Union

import httpx
import pytest

from app.config import Settings
from app.services import session_cache

BASE_URL = "https://superset.example.com"

LOGIN_HTML = (
    '<form method="post"><input id="csrf_token" name="csrf_token" '
    'type="hidden" value="seed-token"></form>'
)

Responder = Callable[[httpx.Request], Union[httpx.Response, Exception]]


class FakeSuperset:
    """Routes requests by (method, path) to canned responses and records them"""

    def __init__(self):
        self.requests: List[httpx.Request] = []
        self.routes: Dict[Tuple[str, str], Responder] = {
            ("GET", "/login/"): lambda request: httpx.Response(
                200, text=LOGIN_HTML, headers={"set-cookie": "session=initial; HttpOnly; Path=/"}
            ),
            ("POST", "/login/"): lambda request: httpx.Response(
                302,
                headers={
                    "location": "/superset/welcome/",
                    "set-cookie": "session=authenticated; HttpOnly; Path=/",
                },
            ),
            ("GET", "/api/v1/security/csrf_token/"): lambda request: httpx.Response(
                200, json={"result": "api-csrf"}
            ),
            ("POST", "/api/v1/security/login"): lambda request: httpx.Response(
                200, json={"access_token": "bearer-123"}
            ),
            ("POST", "/api/v1/sqllab/execute/"): lambda request: httpx.Response(
                200, json={"data": [{"a": 1}]}
            ),
            ("POST", "/api/v1/explore/form_data"): lambda request: httpx.Response(
                201, json={"key": "abc"}
            ),
            ("POST", "/api/v1/explore/permalink"): lambda request: httpx.Response(
                201, json={"key": "perma", "url": f"{BASE_URL}/superset/explore/p/perma/"}
            ),
        }

    def respond(self, method: str, path: str, responder: Responder) -> None:
        self.routes[(method, path)] = responder

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        responder = self.routes.get((request.method, request.url.path))
        if responder is None:
            return httpx.Response(404, json={"message": "Not found"})
        result = responder(request)
        if isinstance(result, Exception):
            raise result
        return result

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method and r.url.path == path]

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handle))


@pytest.fixture
def fake_superset():
    return FakeSuperset()


@pytest.fixture
def gateway_settings():
    return Settings(
        SUPERSET_BASE_URL=BASE_URL,
        SUPERSET_USERNAME="admin",
        SUPERSET_PASSWORD="s3cret",
        SUPERSET_TIMEOUT=5.0,
        SUPERSET_SESSION_TTL=0,
    )


@pytest.fixture(autouse=True)
def reset_session_cache():
    """Each test starts without a cached Superset session"""
    session_cache._cache = None
    yield
    session_cache._cache = None
