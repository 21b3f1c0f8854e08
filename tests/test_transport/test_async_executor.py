"""Tests for the async request executor."""

from __future__ import annotations

import asyncio
import time
from typing import Any

import httpx
import pytest

from conftest import FakePortAPI, json_response, make_config, make_token_config
from port_sdk.cancellation import CancellationSignal
from port_sdk.exceptions import (
    AuthError,
    NetworkError,
    NotFoundError,
    PortError,
    RateLimitError,
    RequestCancelledError,
    RequestTimeoutError,
    ServerError,
    ValidationError,
)
from port_sdk.transport.async_executor import AsyncRequestExecutor
from port_sdk.transport.request import RequestDescriptor


@pytest.fixture
def sleeps(monkeypatch: pytest.MonkeyPatch) -> list[float]:
    """Record retry waits (in seconds) instead of sleeping."""
    recorded: list[float] = []

    async def fake_sleep(seconds: float, signal: Any, context: Any) -> None:
        recorded.append(seconds)

    monkeypatch.setattr("port_sdk.transport.async_executor._cancellable_sleep", fake_sleep)
    return recorded


def _executor(api: FakePortAPI, **overrides: Any) -> AsyncRequestExecutor:
    return AsyncRequestExecutor(make_config(**overrides), transport=api.transport())


def _slow(seconds: float, response: httpx.Response | None = None):
    async def handler(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(seconds)
        return response or json_response({"ok": True})

    return handler


# ---------------------------------------------------------------------------
# Success path
# ---------------------------------------------------------------------------


class TestSuccess:
    @pytest.mark.asyncio
    async def test_payload_returned(self) -> None:
        api = FakePortAPI(json_response({"blueprint": {"identifier": "service"}}))
        async with _executor(api) as executor:
            result = await executor.get("/v1/blueprints/service")
        assert result == {"blueprint": {"identifier": "service"}}

    @pytest.mark.asyncio
    async def test_bearer_token_injected(self) -> None:
        api = FakePortAPI()
        async with _executor(api) as executor:
            await executor.get("/v1/blueprints")
        assert api.auth_headers() == ["Bearer token-1"]
        assert api.requests[0].headers["User-Agent"].startswith("port-sdk-python/")

    @pytest.mark.asyncio
    async def test_static_token_used_without_exchange(self) -> None:
        api = FakePortAPI()
        executor = AsyncRequestExecutor(make_token_config("static"), transport=api.transport())
        async with executor:
            await executor.get("/v1/blueprints")
        assert api.auth_headers() == ["Bearer static"]
        assert api.exchange_count == 0

    @pytest.mark.asyncio
    async def test_token_reused_across_calls(self) -> None:
        api = FakePortAPI()
        async with _executor(api) as executor:
            await executor.get("/v1/blueprints")
            await executor.get("/v1/blueprints")
        assert api.exchange_count == 1

    @pytest.mark.asyncio
    async def test_body_and_query_sent(self) -> None:
        api = FakePortAPI()
        async with _executor(api) as executor:
            await executor.post(
                "/v1/blueprints/service/entities",
                {"identifier": "api"},
                query={"upsert": True},
            )
        request = api.requests[0]
        assert request.method == "POST"
        assert request.url.params["upsert"] == "true"
        assert api.bodies() == [{"identifier": "api"}]

    @pytest.mark.asyncio
    async def test_path_query_string_kept_alongside_query(self) -> None:
        api = FakePortAPI()
        async with _executor(api) as executor:
            await executor.get("/v1/entities?exclude=a&limit=1", query={"limit": 5})
        sent = api.requests[0].url
        assert sent.path == "/v1/entities"
        assert sent.params["exclude"] == "a"
        assert sent.params["limit"] == "5"
        assert sent.query.count(b"limit=") == 1

    @pytest.mark.asyncio
    async def test_error_context_has_absolute_url(self) -> None:
        api = FakePortAPI(json_response({}, 500))
        async with _executor(api, max_retries=0) as executor:
            with pytest.raises(ServerError) as exc_info:
                await executor.get("/v1/blueprints", query={"limit": 1})
        assert exc_info.value.context.url == "https://api.port.io/v1/blueprints?limit=1"

    @pytest.mark.asyncio
    async def test_no_content_returns_none(self) -> None:
        api = FakePortAPI(httpx.Response(204))
        async with _executor(api) as executor:
            assert await executor.delete("/v1/blueprints/service") is None

    @pytest.mark.asyncio
    async def test_not_open_raises(self) -> None:
        executor = _executor(FakePortAPI())
        with pytest.raises(PortError, match="not open"):
            await executor.get("/v1/blueprints")

    @pytest.mark.asyncio
    async def test_invalid_descriptor_rejected_before_io(self) -> None:
        api = FakePortAPI()
        async with _executor(api) as executor:
            with pytest.raises(ValidationError):
                await executor.execute(RequestDescriptor("GET", "v1/no-slash"))
        assert api.requests == []
        assert api.exchange_count == 0


# ---------------------------------------------------------------------------
# Retry behaviour
# ---------------------------------------------------------------------------


class TestRetry:
    @pytest.mark.asyncio
    async def test_server_errors_retried_with_backoff(self, sleeps: list[float]) -> None:
        api = FakePortAPI(
            json_response({}, 503),
            json_response({}, 503),
            json_response({}, 503),
            json_response({"ok": True}),
        )
        async with _executor(api) as executor:
            result = await executor.get("/v1/blueprints")
        assert result == {"ok": True}
        assert len(api.requests) == 4
        assert sleeps == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    async def test_retry_budget_exhausted(self, sleeps: list[float]) -> None:
        api = FakePortAPI(*(json_response({"message": "down"}, 503) for _ in range(5)))
        async with _executor(api, max_retries=2) as executor:
            with pytest.raises(ServerError) as exc_info:
                await executor.get("/v1/blueprints")
        assert exc_info.value.status_code == 503
        assert len(api.requests) == 3
        assert sleeps == [1.0, 2.0]

    @pytest.mark.asyncio
    async def test_validation_error_not_retried(self, sleeps: list[float]) -> None:
        api = FakePortAPI(
            json_response(
                {"message": "Invalid", "errors": [{"field": "title", "message": "Required"}]},
                422,
            )
        )
        async with _executor(api) as executor:
            with pytest.raises(ValidationError) as exc_info:
                await executor.post("/v1/blueprints", {"identifier": "x"})
        assert exc_info.value.field_errors[0].field == "title"
        assert len(api.requests) == 1
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_non_string_validation_message_stays_typed(self, sleeps: list[float]) -> None:
        api = FakePortAPI(json_response({"message": ["title", "missing"]}, 422))
        async with _executor(api) as executor:
            with pytest.raises(ValidationError) as exc_info:
                await executor.post("/v1/blueprints", {"identifier": "x"})
        assert exc_info.value.message == "['title', 'missing']"
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_rate_limit_honours_retry_after(self, sleeps: list[float]) -> None:
        api = FakePortAPI(
            json_response({}, 429, headers={"Retry-After": "2"}),
            json_response({"ok": True}),
        )
        async with _executor(api, retry_delay_ms=100) as executor:
            assert await executor.get("/v1/blueprints") == {"ok": True}
        assert sleeps[0] >= 2.0

    @pytest.mark.asyncio
    async def test_rate_limit_surfaces_after_budget(self, sleeps: list[float]) -> None:
        api = FakePortAPI(json_response({}, 429, headers={"Retry-After": "1"}))
        async with _executor(api, max_retries=0) as executor:
            with pytest.raises(RateLimitError) as exc_info:
                await executor.get("/v1/blueprints")
        assert exc_info.value.retry_after == 1

    @pytest.mark.asyncio
    async def test_network_error_retried_then_raised(self, sleeps: list[float]) -> None:
        api = FakePortAPI(*(httpx.ConnectError("refused") for _ in range(4)))
        async with _executor(api) as executor:
            with pytest.raises(NetworkError) as exc_info:
                await executor.get("/v1/blueprints")
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert len(api.requests) == 4

    @pytest.mark.asyncio
    async def test_skip_retry(self, sleeps: list[float]) -> None:
        api = FakePortAPI(json_response({}, 500), json_response({"ok": True}))
        async with _executor(api) as executor:
            with pytest.raises(ServerError):
                await executor.get("/v1/blueprints", skip_retry=True)
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_body_resent_on_every_attempt(self, sleeps: list[float]) -> None:
        api = FakePortAPI(json_response({}, 502), json_response({"ok": True}))
        async with _executor(api) as executor:
            await executor.patch("/v1/blueprints/service", {"title": "Service"})
        assert api.bodies() == [{"title": "Service"}, {"title": "Service"}]

    @pytest.mark.asyncio
    async def test_not_found_identifies_target(self, sleeps: list[float]) -> None:
        api = FakePortAPI(json_response({"message": "missing"}, 404))
        async with _executor(api) as executor:
            with pytest.raises(NotFoundError) as exc_info:
                await executor.get("/v1/blueprints/service")
        assert exc_info.value.resource == "blueprint"
        assert exc_info.value.identifier == "service"
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_malformed_success_body_not_retried(self, sleeps: list[float]) -> None:
        api = FakePortAPI(httpx.Response(200, text="<html>oops</html>"))
        async with _executor(api) as executor:
            with pytest.raises(PortError) as exc_info:
                await executor.get("/v1/blueprints")
        assert exc_info.value.code == "INVALID_RESPONSE"
        assert sleeps == []


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_exchange_failure_stops_call(self) -> None:
        api = FakePortAPI()
        api.token_responses.append(json_response({"message": "bad client"}, 401))
        async with _executor(api) as executor:
            with pytest.raises(AuthError) as exc_info:
                await executor.get("/v1/blueprints")
        assert exc_info.value.status_code == 401
        assert api.requests == []

    @pytest.mark.asyncio
    async def test_401_invalidates_cached_token(self, sleeps: list[float]) -> None:
        api = FakePortAPI(json_response({"message": "expired"}, 401), json_response({"ok": True}))
        async with _executor(api) as executor:
            with pytest.raises(AuthError):
                await executor.get("/v1/blueprints")
            assert executor.token_manager.token is None
            await executor.get("/v1/blueprints")
        assert api.auth_headers() == ["Bearer token-1", "Bearer token-2"]
        assert sleeps == []


# ---------------------------------------------------------------------------
# Timeout and cancellation
# ---------------------------------------------------------------------------


class TestTimeoutAndCancellation:
    @pytest.mark.asyncio
    async def test_attempt_timeout(self) -> None:
        api = FakePortAPI(_slow(1.0))
        async with _executor(api, max_retries=0) as executor:
            started = time.monotonic()
            with pytest.raises(RequestTimeoutError) as exc_info:
                await executor.get("/v1/blueprints", timeout_ms=50)
        assert time.monotonic() - started < 0.9
        assert exc_info.value.timeout_ms == 50
        assert not isinstance(exc_info.value, RequestCancelledError)

    @pytest.mark.asyncio
    async def test_timeout_is_retried(self, sleeps: list[float]) -> None:
        api = FakePortAPI(_slow(1.0), json_response({"ok": True}))
        async with _executor(api, max_retries=1) as executor:
            assert await executor.get("/v1/blueprints", timeout_ms=50) == {"ok": True}
        assert len(api.requests) == 2

    @pytest.mark.asyncio
    async def test_zero_timeout_disables_attempt_timer(self) -> None:
        api = FakePortAPI(_slow(0.1))
        async with _executor(api, max_retries=0) as executor:
            assert await executor.get("/v1/blueprints", timeout_ms=0) == {"ok": True}

    @pytest.mark.asyncio
    async def test_cancel_before_start(self) -> None:
        api = FakePortAPI()
        signal = CancellationSignal()
        signal.cancel("never mind")
        async with _executor(api) as executor:
            with pytest.raises(RequestCancelledError) as exc_info:
                await executor.get("/v1/blueprints", signal=signal)
        assert exc_info.value.reason == "never mind"
        assert api.requests == []
        assert api.exchange_count == 0

    @pytest.mark.asyncio
    async def test_cancel_during_dispatch(self) -> None:
        api = FakePortAPI(_slow(5.0))
        signal = CancellationSignal()
        async with _executor(api) as executor:
            asyncio.get_running_loop().call_later(0.05, signal.cancel)
            started = time.monotonic()
            with pytest.raises(RequestCancelledError):
                await executor.get("/v1/blueprints", signal=signal)
        assert time.monotonic() - started < 1.0
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_cancel_during_retry_wait(self) -> None:
        api = FakePortAPI(*(json_response({}, 503) for _ in range(4)))
        signal = CancellationSignal()
        async with _executor(api, retry_delay_ms=10_000) as executor:
            asyncio.get_running_loop().call_later(0.05, signal.cancel, "shutdown")
            started = time.monotonic()
            with pytest.raises(RequestCancelledError) as exc_info:
                await executor.get("/v1/blueprints", signal=signal)
        assert time.monotonic() - started < 1.0
        assert exc_info.value.reason == "shutdown"
        assert len(api.requests) == 1

    @pytest.mark.asyncio
    async def test_cancelled_call_is_not_retried(self, sleeps: list[float]) -> None:
        api = FakePortAPI(_slow(5.0))
        signal = CancellationSignal()
        async with _executor(api) as executor:
            asyncio.get_running_loop().call_later(0.05, signal.cancel)
            with pytest.raises(RequestCancelledError):
                await executor.get("/v1/blueprints", signal=signal)
        assert sleeps == []

    @pytest.mark.asyncio
    async def test_native_task_cancellation_propagates(self) -> None:
        api = FakePortAPI(_slow(5.0))
        async with _executor(api) as executor:
            task = asyncio.create_task(executor.get("/v1/blueprints"))
            await asyncio.sleep(0.05)
            task.cancel()
            with pytest.raises(asyncio.CancelledError):
                await task
