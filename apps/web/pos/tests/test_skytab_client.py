"""Tests for SkyTabClient - auth, rate limiting, timeouts and retries."""

import asyncio
import json
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, patch

import httpx
import pytest
import respx

from orderhub_schemas import AccessToken

from apps.web.pos.adapters.skytab.client import (
    PRODUCTION_URL,
    SANDBOX_URL,
    TOKEN_PATH,
    SkyTabClient,
    SlidingWindowRateLimiter,
)
from apps.web.pos.exceptions import (
    POSAPIError,
    POSAuthError,
    POSRateLimitError,
    POSTimeoutError,
)

TOKEN_URL = f"{SANDBOX_URL}{TOKEN_PATH}"
MENU_PATH = "/api/rest/v1/pos/locations/loc-1/menu"
MENU_URL = f"{SANDBOX_URL}{MENU_PATH}"


def _token_response(token: str = "tok-1", expires_in: int = 3600) -> httpx.Response:
    return httpx.Response(
        200,
        json={
            "result": {
                "accessToken": token,
                "expiresIn": expires_in,
                "tokenType": "Bearer",
            }
        },
    )


@pytest.fixture
def client() -> SkyTabClient:
    return SkyTabClient(api_key="key", api_secret="secret", retry_base_delay=0)


# =============================================================================
# Configuration
# =============================================================================


class TestConfiguration:
    def test_sandbox_is_default(self) -> None:
        assert SkyTabClient("k", "s").base_url == SANDBOX_URL

    def test_production_url(self) -> None:
        assert SkyTabClient("k", "s", environment="production").base_url == (
            PRODUCTION_URL
        )

    def test_from_settings(self, settings) -> None:
        settings.SKYTAB_API_KEY = "from-env"
        settings.SKYTAB_API_SECRET = "secret-env"
        settings.SKYTAB_ENVIRONMENT = "production"
        settings.POS_MAX_RETRIES = 2
        settings.POS_RATE_LIMIT_REQUESTS = 10

        client = SkyTabClient.from_settings()

        assert client.api_key == "from-env"
        assert client.base_url == PRODUCTION_URL
        assert client.max_retries == 2
        assert client.rate_limiter.max_requests == 10

    @pytest.mark.asyncio
    async def test_close_closes_injected_http_client(self) -> None:
        http_client = httpx.AsyncClient()
        client = SkyTabClient("k", "s", http_client=http_client)

        await client.close()

        assert http_client.is_closed

    @pytest.mark.asyncio
    async def test_close_without_injected_client(self) -> None:
        await SkyTabClient("k", "s").close()



# =============================================================================
# Authentication
# =============================================================================


class TestAccessToken:
    @pytest.mark.asyncio
    @respx.mock
    async def test_fetches_token_with_credentials(self, client: SkyTabClient) -> None:
        route = respx.post(TOKEN_URL).mock(return_value=_token_response())

        token = await client.get_access_token()

        assert token == "tok-1"
        request = route.calls.last.request
        assert request.headers["InterfaceVersion"] == "4.0"
        assert json.loads(request.content) == {
            "credential": {"apiKey": "key", "apiSecret": "secret"}
        }

    @pytest.mark.asyncio
    @respx.mock
    async def test_token_is_cached(self, client: SkyTabClient) -> None:
        route = respx.post(TOKEN_URL).mock(return_value=_token_response())

        await client.get_access_token()
        await client.get_access_token()

        assert route.call_count == 1

    @pytest.mark.asyncio
    @respx.mock
    async def test_refreshes_token_inside_buffer(self, client: SkyTabClient) -> None:
        client._token = AccessToken(
            value="old", expires_at=datetime.now(UTC) + timedelta(minutes=4)
        )
        respx.post(TOKEN_URL).mock(return_value=_token_response("new"))

        assert await client.get_access_token() == "new"

    @pytest.mark.asyncio
    @respx.mock
    async def test_concurrent_callers_share_one_refresh(
        self, client: SkyTabClient
    ) -> None:
        route = respx.post(TOKEN_URL).mock(return_value=_token_response())

        tokens = await asyncio.gather(*(client.get_access_token() for _ in range(5)))

        assert set(tokens) == {"tok-1"}
        assert route.call_count == 1

    @pytest.mark.asyncio
    async def test_missing_credentials(self) -> None:
        client = SkyTabClient(api_key="", api_secret="")

        with pytest.raises(POSAuthError, match="not configured"):
            await client.get_access_token()

    @pytest.mark.asyncio
    @respx.mock
    async def test_rejected_credentials(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(403))

        with pytest.raises(POSAuthError, match="403"):
            await client.get_access_token()

    @pytest.mark.asyncio
    @respx.mock
    async def test_response_without_token(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(
            return_value=httpx.Response(200, json={"result": {}})
        )

        with pytest.raises(POSAuthError, match="No access token"):
            await client.get_access_token()

    @pytest.mark.asyncio
    @respx.mock
    async def test_test_connection_never_raises(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=httpx.Response(401))

        assert await client.test_connection() is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_test_connection_success(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=_token_response())

        assert await client.test_connection() is True


# =============================================================================
# Requests and retries
# =============================================================================


class TestRequest:
    @pytest.mark.asyncio
    @respx.mock
    async def test_sends_auth_headers(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(
            return_value=httpx.Response(200, json={"result": {"menu": {}}})
        )

        data = await client.get(MENU_PATH)

        assert data == {"result": {"menu": {}}}
        headers = route.calls.last.request.headers
        assert headers["AccessToken"] == "tok-1"
        assert headers["InterfaceVersion"] == "4.0"
        assert headers["InterfaceName"] == client.interface_name

    @pytest.mark.asyncio
    @respx.mock
    async def test_retries_server_errors(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(
            side_effect=[
                httpx.Response(500),
                httpx.Response(502),
                httpx.Response(200, json={"ok": True}),
            ]
        )

        assert await client.get(MENU_PATH) == {"ok": True}
        assert route.call_count == 3

    @pytest.mark.asyncio
    @respx.mock
    async def test_gives_up_after_max_retries(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(
            return_value=httpx.Response(
                503,
                json={"error": {"code": "SERVICE_UNAVAILABLE", "message": "Down"}},
            )
        )

        with pytest.raises(POSAPIError) as exc_info:
            await client.get(MENU_PATH)

        assert route.call_count == client.max_retries + 1
        assert exc_info.value.code == "SERVICE_UNAVAILABLE"
        assert exc_info.value.status_code == 503
        assert exc_info.value.message == "Down"

    @pytest.mark.asyncio
    @respx.mock
    async def test_client_errors_are_not_retried(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(
            return_value=httpx.Response(
                400,
                json={
                    "error": {
                        "code": "INVALID_REQUEST",
                        "message": "Bad location",
                        "details": {"field": "guid"},
                    }
                },
            )
        )

        with pytest.raises(POSAPIError) as exc_info:
            await client.get(MENU_PATH)

        assert route.call_count == 1
        assert exc_info.value.code == "INVALID_REQUEST"
        assert exc_info.value.details == {"field": "guid"}
        assert exc_info.value.is_retryable is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_unauthorized_clears_token(self, client: SkyTabClient) -> None:
        token_route = respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(return_value=httpx.Response(401))

        with pytest.raises(POSAPIError) as exc_info:
            await client.get(MENU_PATH)

        assert exc_info.value.status_code == 401
        assert route.call_count == 1
        assert client._token is None

        route.mock(return_value=httpx.Response(200, json={}))
        await client.get(MENU_PATH)
        assert token_route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_exponential_backoff(self) -> None:
        client = SkyTabClient("key", "secret", max_retries=3, retry_base_delay=1.0)
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        respx.get(MENU_URL).mock(return_value=httpx.Response(500))

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(POSAPIError):
                await client.get(MENU_PATH)

        assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0, 4.0]

    @pytest.mark.asyncio
    @respx.mock
    async def test_backoff_is_capped(self) -> None:
        client = SkyTabClient("key", "secret", max_retries=2, retry_base_delay=20.0)
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        respx.get(MENU_URL).mock(return_value=httpx.Response(500))

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            with pytest.raises(POSAPIError):
                await client.get(MENU_PATH)

        assert [call.args[0] for call in sleep.await_args_list] == [20.0, 30.0]

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limited_honours_retry_after(self) -> None:
        client = SkyTabClient("key", "secret", max_retries=1, retry_base_delay=1.0)
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(
            side_effect=[
                httpx.Response(429, headers={"Retry-After": "7"}),
                httpx.Response(200, json={}),
            ]
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await client.get(MENU_PATH)

        sleep.assert_awaited_once_with(7.0)
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_rate_limit_error_after_retries(self, client: SkyTabClient) -> None:
        client.max_retries = 0
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        respx.get(MENU_URL).mock(
            return_value=httpx.Response(429, headers={"Retry-After": "3"})
        )

        with pytest.raises(POSRateLimitError) as exc_info:
            await client.get(MENU_PATH)

        assert exc_info.value.retry_after == 3.0
        assert exc_info.value.status_code == 429

    @pytest.mark.asyncio
    @respx.mock
    async def test_retry_after_as_http_date(self) -> None:
        client = SkyTabClient("key", "secret", max_retries=1, retry_base_delay=1.0)
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(
            side_effect=[
                httpx.Response(
                    429, headers={"Retry-After": "Wed, 21 Oct 2015 07:28:00 GMT"}
                ),
                httpx.Response(200, json={}),
            ]
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await client.get(MENU_PATH)

        # A date already in the past means retry now
        sleep.assert_awaited_once_with(0.0)
        assert route.call_count == 2

    @pytest.mark.asyncio
    @respx.mock
    async def test_future_http_date_is_converted_to_seconds(
        self, client: SkyTabClient
    ) -> None:
        client.max_retries = 0
        retry_at = datetime.now(UTC) + timedelta(seconds=120)
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        respx.get(MENU_URL).mock(
            return_value=httpx.Response(
                429,
                headers={
                    "Retry-After": retry_at.strftime("%a, %d %b %Y %H:%M:%S GMT")
                },
            )
        )

        with pytest.raises(POSRateLimitError) as exc_info:
            await client.get(MENU_PATH)

        assert 100 < exc_info.value.retry_after <= 120

    @pytest.mark.asyncio
    @respx.mock
    async def test_unparseable_retry_after_falls_back_to_backoff(self) -> None:
        client = SkyTabClient("key", "secret", max_retries=1, retry_base_delay=1.0)
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        respx.get(MENU_URL).mock(
            side_effect=[
                httpx.Response(429, headers={"Retry-After": "soon"}),
                httpx.Response(200, json={}),
            ]
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await client.get(MENU_PATH)

        sleep.assert_awaited_once_with(1.0)


    @pytest.mark.asyncio
    @respx.mock
    async def test_timeout_is_retried_then_raised(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        route = respx.get(MENU_URL).mock(side_effect=httpx.ReadTimeout("slow"))

        with pytest.raises(POSTimeoutError) as exc_info:
            await client.get(MENU_PATH)

        assert route.call_count == client.max_retries + 1
        assert exc_info.value.code == "TIMEOUT"

    @pytest.mark.asyncio
    @respx.mock
    async def test_network_error(self, client: SkyTabClient) -> None:
        client.max_retries = 0
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        respx.get(MENU_URL).mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(POSAPIError) as exc_info:
            await client.get(MENU_PATH)

        assert exc_info.value.code == "NETWORK_ERROR"
        assert exc_info.value.status_code is None
        assert exc_info.value.is_retryable is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_empty_success_body(self, client: SkyTabClient) -> None:
        respx.post(TOKEN_URL).mock(return_value=_token_response())
        respx.delete(MENU_URL).mock(return_value=httpx.Response(204))

        assert await client.delete(MENU_PATH) == {}


# =============================================================================
# Rate limiter
# =============================================================================


class TestSlidingWindowRateLimiter:
    @pytest.mark.asyncio
    async def test_allows_requests_under_limit(self) -> None:
        limiter = SlidingWindowRateLimiter(max_requests=3, window_seconds=10)

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            for _ in range(3):
                await limiter.acquire()

        sleep.assert_not_awaited()
        assert limiter.in_window == 3

    @pytest.mark.asyncio
    async def test_waits_for_oldest_request_to_expire(self) -> None:
        now = [100.0]
        limiter = SlidingWindowRateLimiter(
            max_requests=2, window_seconds=10, clock=lambda: now[0]
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()
            now[0] = 103.0
            await limiter.acquire()
            now[0] = 104.0
            await limiter.acquire()

        sleep.assert_awaited_once_with(6.0)

    @pytest.mark.asyncio
    async def test_window_slides(self) -> None:
        now = [0.0]
        limiter = SlidingWindowRateLimiter(
            max_requests=1, window_seconds=5, clock=lambda: now[0]
        )

        with patch("asyncio.sleep", new_callable=AsyncMock) as sleep:
            await limiter.acquire()
            now[0] = 5.0
            await limiter.acquire()

        sleep.assert_not_awaited()
