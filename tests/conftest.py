import base64
import json
from typing import List

import httpx
import pytest
from tortoise import Tortoise

from helpers.ghl_client import GHLClient
from helpers.ghl_oauth import GHLOAuth
from helpers.token_store import Credential, MemoryTokenStore
from helpers.tortoise_config import MODEL_MODULES

API = "https://services.leadconnectorhq.com"


@pytest.fixture(autouse=True)
def _env(monkeypatch):
    monkeypatch.setenv("GHL_APP_CLIENT_ID", "client-id")
    monkeypatch.setenv("GHL_APP_CLIENT_SECRET", "client-secret")
    monkeypatch.setenv("GHL_API_DOMAIN", API)
    monkeypatch.setenv("APP_BASE_URL", "https://app.example.com")
    monkeypatch.setenv("JWT_SECRET", "test-secret")
    monkeypatch.setenv("PROMPT_SCHED_ENABLED", "false")
    for key in ("OPENAI_API_KEY", "ANTHROPIC_API_KEY", "OPENROUTER_API_KEY", "AI_DEFAULT_PROVIDER"):
        monkeypatch.delenv(key, raising=False)


@pytest.fixture
async def db():
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODEL_MODULES}, use_tz=True)
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


def fake_jwt(claims: dict) -> str:
    """Unsigned token in the shape GHL hands out; only the payload segment matters here."""
    def seg(obj):
        return base64.urlsafe_b64encode(json.dumps(obj).encode()).rstrip(b"=").decode()
    return f'{seg({"alg": "HS256", "typ": "JWT"})}.{seg(claims)}.signature'


class Upstream:
    """
    Scripted GHL. Each route is (method, path) -> list of responses served in order;
    every request that reaches the transport is recorded.
    """

    def __init__(self):
        self.routes = {}
        self.requests: List[httpx.Request] = []

    def on(self, method: str, path: str, *responses):
        self.routes.setdefault((method.upper(), path), []).extend(responses)
        return self

    def calls(self, method: str, path: str) -> List[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        queue = self.routes.get((request.method, request.url.path))
        if not queue:
            return httpx.Response(404, json={"message": f"no route {request.method} {request.url.path}"})
        item = queue.pop(0) if len(queue) > 1 else queue[0]
        if callable(item):
            return item(request)
        return item


@pytest.fixture
def upstream() -> Upstream:
    return Upstream()


@pytest.fixture
def http(upstream):
    return httpx.AsyncClient(transport=httpx.MockTransport(upstream.handler))


@pytest.fixture
def store():
    return MemoryTokenStore()


@pytest.fixture
def client(store, http) -> GHLClient:
    return GHLClient(store, oauth=GHLOAuth(http), http=http)


@pytest.fixture
async def seeded(store):
    """One location tenant with a refreshable token."""
    await store.set("loc1", Credential(
        tenant_id="loc1",
        access_token="old-token",
        refresh_token="refresh-1",
        location_id="loc1",
        user_type="Location",
    ))
    return store
