import json
from typing import Callable, Dict

import httpx
import pytest

from integrations.truelayer.config import Environment
from integrations.truelayer.credentials import Credential, CredentialStore

NOW = 1_600_000_000
AUTH_HOST = "auth.truelayer-sandbox.com"
API_HOST = "api.truelayer-sandbox.com"


class RoutingTransport(httpx.BaseTransport):
    """Dispatch requests by host to canned handlers and record every call."""

    def __init__(self, routes: Dict[str, Callable[[httpx.Request], httpx.Response]] | None = None):
        self.routes = dict(routes or {})
        self.requests: list[httpx.Request] = []

    def handle_request(self, request):  # type: ignore[override]
        self.requests.append(request)
        handler = self.routes.get(request.url.host)
        if handler is None:
            return httpx.Response(599, text="unexpected host")
        return handler(request)

    def calls(self, host: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.host == host]


def respond(status: int, payload) -> Callable[[httpx.Request], httpx.Response]:
    def _handler(request):
        if isinstance(payload, str):
            return httpx.Response(status, text=payload)
        return httpx.Response(status, json=payload)

    return _handler


def form(request: httpx.Request) -> dict:
    from urllib.parse import parse_qsl

    return dict(parse_qsl(request.content.decode()))


@pytest.fixture()
def environment() -> Environment:
    return Environment(
        name="sandbox",
        host="truelayer-sandbox.com",
        client_id="cid",
        client_secret="csecret",
    )


@pytest.fixture()
def store(tmp_path) -> CredentialStore:
    return CredentialStore(tmp_path / ".tlob_tokens_sandbox.json")


@pytest.fixture()
def make_credential() -> Callable[..., Credential]:
    def _make(**kw) -> Credential:
        values = {
            "access_token": "acc-1",
            "expiry": NOW + 3600,
            "refresh_token": "ref-1",
            "scope": "info accounts balance transactions cards offline_access",
        }
        values.update(kw)
        return Credential(**values)

    return _make


@pytest.fixture()
def cli_env(tmp_path, monkeypatch):
    """Point config and token locations at tmp_path with a valid sandbox.cfg."""
    monkeypatch.setenv("TLOB_CONFIG_DIR", str(tmp_path))
    monkeypatch.setenv("TLOB_TOKENS_DIR", str(tmp_path))
    for var in ("TLOB_SANDBOX_CLIENT_ID", "TLOB_SANDBOX_CLIENT_SECRET", "TLOB_LIVE_CLIENT_ID", "TLOB_LIVE_CLIENT_SECRET"):
        monkeypatch.delenv(var, raising=False)
    (tmp_path / "sandbox.cfg").write_text(json.dumps({"client_id": "cid", "client_secret": "csecret"}))
    return tmp_path
