"""Shared test fixtures for port-sdk.

Provides a scripted fake Port API built on :class:`httpx.MockTransport`,
factories for resolved configurations, and an isolated environment so no
test reads the developer's real ``PORT_*`` variables.
"""

from __future__ import annotations

import json
from typing import Any, Optional

import httpx
import pytest

from port_sdk.config import resolve_config
from port_sdk.models import ResolvedConfig

BASE_URL = "https://api.port.io"
TOKEN_PATH = "/v1/auth/access_token"

OAUTH_ENV = {
    "PORT_CLIENT_ID": "client-id",
    "PORT_CLIENT_SECRET": "client-secret",
}


# ---------------------------------------------------------------------------
# Environment isolation
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _isolate_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Strip every variable the SDK reads from the process environment."""
    for name in (
        "PORT_CLIENT_ID",
        "PORT_CLIENT_SECRET",
        "PORT_ACCESS_TOKEN",
        "PORT_BASE_URL",
        "PORT_REGION",
        "PORT_TIMEOUT",
        "PORT_MAX_RETRIES",
        "PORT_LOG_LEVEL",
        "PORT_VERBOSE",
        "HTTP_PROXY",
        "HTTPS_PROXY",
        "NO_PROXY",
        "http_proxy",
        "https_proxy",
        "no_proxy",
        "PROXY_AUTH_USERNAME",
        "PROXY_AUTH_PASSWORD",
    ):
        monkeypatch.delenv(name, raising=False)


# ---------------------------------------------------------------------------
# Config factories
# ---------------------------------------------------------------------------


def make_config(**overrides: Any) -> ResolvedConfig:
    """Resolve an OAuth configuration against an empty environment."""
    config: dict[str, Any] = {
        "credentials": {"client_id": "client-id", "client_secret": "client-secret"},
        "base_url": BASE_URL,
    }
    config.update(overrides)
    return resolve_config(config, environ={})


def make_token_config(token: str = "static-token", **overrides: Any) -> ResolvedConfig:
    return make_config(credentials={"access_token": token}, **overrides)


# ---------------------------------------------------------------------------
# Fake Port API
# ---------------------------------------------------------------------------


def json_response(data: Any, status_code: int = 200, **kwargs: Any) -> httpx.Response:
    return httpx.Response(status_code, json=data, **kwargs)


class FakePortAPI:
    """Scripted stand-in for the Port API.

    Token exchanges are answered from :attr:`token_responses` (issuing
    ``token-1``, ``token-2`` ... by default). Every other request pops the
    next entry from :attr:`responses`; an entry may be an
    :class:`httpx.Response`, an exception instance to raise, or a callable
    taking the request.
    """

    def __init__(self, *responses: Any, expires_in: int = 3600) -> None:
        self.responses: list[Any] = list(responses)
        self.token_responses: list[Any] = []
        self.expires_in = expires_in
        self.token_requests: list[httpx.Request] = []
        self.requests: list[httpx.Request] = []

    @property
    def exchange_count(self) -> int:
        return len(self.token_requests)

    def _token(self, request: httpx.Request) -> httpx.Response:
        self.token_requests.append(request)
        if self.token_responses:
            return _resolve(self.token_responses.pop(0), request)
        return json_response(
            {
                "accessToken": f"token-{len(self.token_requests)}",
                "expiresIn": self.expires_in,
                "tokenType": "Bearer",
            }
        )

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.path == TOKEN_PATH:
            return self._token(request)
        self.requests.append(request)
        if not self.responses:
            return json_response({"ok": True})
        return _resolve(self.responses.pop(0), request)

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def auth_headers(self) -> list[Optional[str]]:
        return [r.headers.get("Authorization") for r in self.requests]

    def bodies(self) -> list[Any]:
        return [json.loads(r.content) if r.content else None for r in self.requests]


def _resolve(entry: Any, request: httpx.Request) -> httpx.Response:
    if isinstance(entry, BaseException):
        raise entry
    if isinstance(entry, httpx.Response):
        return entry
    if callable(entry):
        return entry(request)
    raise TypeError(f"Unsupported scripted response: {entry!r}")


@pytest.fixture
def api() -> FakePortAPI:
    return FakePortAPI()
