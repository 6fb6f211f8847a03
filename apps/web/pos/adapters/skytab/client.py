"""
SkyTab (Shift4 Conecto) API client.

Owns the access-token lifecycle, client-side rate limiting, per-attempt
timeouts and retry/backoff for every outbound call to one SkyTab account.
"""

import asyncio
import logging
import time
from collections import deque
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime, timedelta
from email.utils import parsedate_to_datetime
from typing import Any

import httpx
from django.conf import settings

from orderhub_schemas import AccessToken

from apps.web.pos.exceptions import (
    POSAPIError,
    POSAuthError,
    POSRateLimitError,
    POSTimeoutError,
)

logger = logging.getLogger(__name__)

PROVIDER = "skytab"

SANDBOX_URL = "https://conecto-api-sandbox.shift4payments.com"
PRODUCTION_URL = "https://conecto-api.shift4payments.com"
TOKEN_PATH = "/api/rest/v1/credentials/accesstoken"
INTERFACE_VERSION = "4.0"

# Refresh tokens this long before they expire
TOKEN_REFRESH_BUFFER = timedelta(minutes=5)
MAX_BACKOFF_SECONDS = 30.0


def _loop_lock(holder: Any, attr: str) -> asyncio.Lock:
    """
    Return an asyncio.Lock bound to the running loop.

    Sync callers drive the client through ``asyncio.run``, so each call may
    bring a fresh loop; a lock created on an earlier loop cannot be reused.
    """
    loop = asyncio.get_running_loop()
    cached: tuple[asyncio.AbstractEventLoop, asyncio.Lock] | None = getattr(
        holder, attr, None
    )
    if cached is None or cached[0] is not loop:
        cached = (loop, asyncio.Lock())
        setattr(holder, attr, cached)
    return cached[1]


def _parse_retry_after(value: str | None) -> float | None:
    """
    Seconds to wait from a ``Retry-After`` header.

    Accepts delta-seconds or an HTTP-date; anything else yields None so the
    caller falls back to its own backoff.
    """
    if not value:
        return None
    try:
        return max(0.0, float(value))
    except ValueError:
        pass
    try:
        retry_at = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        logger.warning("Ignoring unparseable Retry-After header: %r", value)
        return None
    if retry_at.tzinfo is None:
        retry_at = retry_at.replace(tzinfo=UTC)
    return max(0.0, (retry_at - datetime.now(UTC)).total_seconds())


class SlidingWindowRateLimiter:

    """
    Client-side throttle: at most ``max_requests`` per ``window_seconds``.

    When the window is full, ``acquire`` sleeps until the oldest request
    ages out of it.
    """

    def __init__(
        self,
        max_requests: int = 60,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.max_requests = max_requests
        self.window_seconds = window_seconds
        self._clock = clock
        self._timestamps: deque[float] = deque()

    def _prune(self, now: float) -> None:
        while self._timestamps and now - self._timestamps[0] >= self.window_seconds:
            self._timestamps.popleft()

    @property
    def in_window(self) -> int:
        self._prune(self._clock())
        return len(self._timestamps)

    async def acquire(self) -> None:
        """Wait until a request can be made within rate limits."""
        async with _loop_lock(self, "_lock"):
            now = self._clock()
            self._prune(now)
            if len(self._timestamps) >= self.max_requests:
                wait = self._timestamps[0] + self.window_seconds - now
                if wait > 0:
                    logger.info("SkyTab rate limit reached, waiting %.2fs", wait)
                    await asyncio.sleep(wait)
                # The oldest request has now left the window
                self._timestamps.popleft()
                now = self._clock()
            self._timestamps.append(now)


class SkyTabClient:
    """
    Authenticated HTTP transport to the SkyTab API.

    One instance per SkyTab account; it is the only owner of its token cache
    and rate-limit window.

    Usage:
        client = SkyTabClient.from_settings()
        data = await client.get(f"/api/rest/v1/pos/locations/{guid}/menu")
    """

    def __init__(
        self,
        api_key: str,
        api_secret: str,
        environment: str = "sandbox",
        interface_name: str = "Orderhub Online Ordering",
        timeout: float = 30.0,
        max_retries: int = 3,
        retry_base_delay: float = 1.0,
        rate_limiter: SlidingWindowRateLimiter | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the SkyTab client.

        Args:
            api_key: SkyTab API key.
            api_secret: SkyTab API secret.
            environment: "sandbox" or "production".
            interface_name: Value for the InterfaceName header.
            timeout: Per-attempt timeout in seconds.
            max_retries: Retries after the first attempt.
            retry_base_delay: Base delay in seconds for exponential backoff.
            rate_limiter: Shared limiter (defaults to 60 requests / minute).
            http_client: Optional HTTP client for dependency injection (testing).
        """
        self.api_key = api_key
        self.api_secret = api_secret
        self.environment = environment
        self.interface_name = interface_name
        self.timeout = timeout
        self.max_retries = max_retries
        self.retry_base_delay = retry_base_delay
        self.rate_limiter = rate_limiter or SlidingWindowRateLimiter()
        self._http_client = http_client
        self._token: AccessToken | None = None

    @classmethod
    def from_settings(cls) -> "SkyTabClient":
        """Build a client from Django settings."""
        return cls(
            api_key=settings.SKYTAB_API_KEY,
            api_secret=settings.SKYTAB_API_SECRET,
            environment=settings.SKYTAB_ENVIRONMENT,
            interface_name=settings.SKYTAB_INTERFACE_NAME,
            timeout=settings.POS_REQUEST_TIMEOUT_SECONDS,
            max_retries=settings.POS_MAX_RETRIES,
            retry_base_delay=settings.POS_RETRY_BASE_DELAY_SECONDS,
            rate_limiter=SlidingWindowRateLimiter(
                max_requests=settings.POS_RATE_LIMIT_REQUESTS,
                window_seconds=settings.POS_RATE_LIMIT_WINDOW_SECONDS,
            ),
        )

    @property
    def base_url(self) -> str:
        return PRODUCTION_URL if self.environment == "production" else SANDBOX_URL

    @property
    def has_credentials(self) -> bool:
        return bool(self.api_key and self.api_secret)

    @asynccontextmanager
    async def _http(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._http_client is not None:
            yield self._http_client
        else:
            async with httpx.AsyncClient() as client:
                yield client

    async def close(self) -> None:
        """Close the injected HTTP client; per-call clients close themselves."""
        if self._http_client is not None:
            await self._http_client.aclose()


    # =========================================================================
    # Authentication
    # =========================================================================

    async def get_access_token(self) -> str:
        """
        Return a token valid for at least TOKEN_REFRESH_BUFFER.

        Concurrent callers share one refresh.

        Raises:
            POSAuthError: If credentials are missing or rejected.
        """
        if self._token and self._token.is_valid(TOKEN_REFRESH_BUFFER):
            return self._token.value

        async with _loop_lock(self, "_token_lock"):
            # Another caller may have refreshed while we waited
            if self._token and self._token.is_valid(TOKEN_REFRESH_BUFFER):
                return self._token.value
            self._token = await self._fetch_access_token()
            return self._token.value

    async def _fetch_access_token(self) -> AccessToken:
        if not self.has_credentials:
            raise POSAuthError(
                "SkyTab API credentials not configured", provider=PROVIDER
            )

        logger.info("Requesting SkyTab access token")
        try:
            async with self._http() as http:
                response = await http.post(
                    f"{self.base_url}{TOKEN_PATH}",
                    json={
                        "credential": {
                            "apiKey": self.api_key,
                            "apiSecret": self.api_secret,
                        }
                    },
                    headers=self._base_headers(),
                    timeout=self.timeout,
                )
        except httpx.HTTPError as e:
            raise POSAuthError(
                f"SkyTab authentication request failed: {e}",
                provider=PROVIDER,
            ) from e

        if not response.is_success:
            raise POSAuthError(
                f"SkyTab authentication failed: {response.status_code}",
                provider=PROVIDER,
            )

        result = response.json().get("result", {})
        access_token = result.get("accessToken")
        if not access_token:
            raise POSAuthError("No access token in SkyTab response", provider=PROVIDER)

        expires_in = int(result.get("expiresIn", 3600))
        logger.info("Obtained SkyTab access token (expires in %ss)", expires_in)
        return AccessToken(
            value=access_token,
            expires_at=datetime.now(UTC) + timedelta(seconds=expires_in),
        )

    def clear_token(self) -> None:
        """Drop the cached token so the next call re-authenticates."""
        self._token = None

    async def test_connection(self) -> bool:
        """Attempt token acquisition. Never raises."""
        try:
            await self.get_access_token()
        except Exception as e:
            logger.warning("SkyTab connection test failed: %s", e)
            return False
        return True

    # =========================================================================
    # HTTP Helpers
    # =========================================================================

    def _base_headers(self) -> dict[str, str]:
        return {
            "Content-Type": "application/json",
            "InterfaceVersion": INTERFACE_VERSION,
            "InterfaceName": self.interface_name,
        }

    async def _send(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None,
        params: dict[str, Any] | None,
        timeout: float,
    ) -> httpx.Response:
        token = await self.get_access_token()
        headers = {**self._base_headers(), "AccessToken": token}
        async with self._http() as http:
            return await http.request(
                method,
                f"{self.base_url}{path}",
                json=json,
                params=params,
                headers=headers,
                timeout=timeout,
            )

    def _error_from_response(self, response: httpx.Response) -> POSAPIError:
        """Build a typed error from a non-2xx response."""
        code = f"HTTP_{response.status_code}"
        message = f"SkyTab API error: {response.status_code}"
        details: dict[str, Any] = {}
        try:
            body = response.json()
        except ValueError:
            body = None
        if isinstance(body, dict) and isinstance(body.get("error"), dict):
            error = body["error"]
            code = error.get("code") or code
            message = error.get("message") or message
            details = error.get("details") or {}

        if response.status_code == 429:
            retry_after = response.headers.get("Retry-After")
            return POSRateLimitError(
                message,
                provider=PROVIDER,
                retry_after=_parse_retry_after(retry_after),
                code=code,
                details=details,
            )
        return POSAPIError(
            message,
            provider=PROVIDER,
            code=code,
            status_code=response.status_code,
            details=details,
            response_body=response.text[:2000],
        )

    def _backoff(self, error: POSAPIError, attempt: int, base_delay: float) -> float:
        if isinstance(error, POSRateLimitError) and error.retry_after is not None:
            return error.retry_after
        return min(base_delay * 2**attempt, MAX_BACKOFF_SECONDS)

    async def request(
        self,
        method: str,
        path: str,
        json: dict[str, Any] | None = None,
        params: dict[str, Any] | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        retry_base_delay: float | None = None,
    ) -> dict[str, Any]:
        """
        Make an API request with rate limiting, timeout and retry logic.

        Retries 5xx, 429 (honouring Retry-After), timeouts and network errors
        up to ``max_retries`` times after the first attempt. Other 4xx
        responses fail immediately; a 401 also drops the cached token.

        Args:
            method: HTTP method (GET, POST, etc.)
            path: API path, starting with "/".
            json: Optional JSON body.
            params: Optional query parameters.
            timeout: Per-attempt timeout override in seconds.
            max_retries: Retry count override.
            retry_base_delay: Backoff base override in seconds.

        Returns:
            Decoded JSON response body.

        Raises:
            POSAuthError: If a token cannot be obtained.
            POSTimeoutError: If the last attempt timed out.
            POSRateLimitError: If the last attempt was rate limited.
            POSAPIError: For any other failed request.
        """
        timeout = self.timeout if timeout is None else timeout
        max_retries = self.max_retries if max_retries is None else max_retries
        base_delay = (
            self.retry_base_delay if retry_base_delay is None else retry_base_delay
        )
        attempts = max_retries + 1
        last_error: POSAPIError | None = None

        for attempt in range(attempts):
            await self.rate_limiter.acquire()

            try:
                response = await asyncio.wait_for(
                    self._send(method, path, json, params, timeout), timeout
                )
            except (TimeoutError, httpx.TimeoutException):
                last_error = POSTimeoutError(
                    f"SkyTab request timed out after {timeout}s: {method} {path}",
                    provider=PROVIDER,
                )
            except httpx.RequestError as e:
                last_error = POSAPIError(
                    f"SkyTab network error: {e}",
                    provider=PROVIDER,
                    code="NETWORK_ERROR",
                )
            else:
                if response.is_success:
                    if not response.content:
                        return {}
                    data: dict[str, Any] = response.json()
                    return data

                error = self._error_from_response(response)
                if response.status_code == 401:
                    self.clear_token()
                    raise error
                if not error.is_retryable:
                    raise error
                last_error = error

            if attempt < attempts - 1:
                delay = self._backoff(last_error, attempt, base_delay)
                logger.warning(
                    "SkyTab %s %s failed (attempt %d/%d), retry in %.1fs: %s",
                    method,
                    path,
                    attempt + 1,
                    attempts,
                    delay,
                    last_error,
                )
                await asyncio.sleep(delay)

        assert last_error is not None
        logger.error(
            "SkyTab %s %s failed after %d attempts: %s",
            method,
            path,
            attempts,
            last_error,
        )
        raise last_error

    async def get(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("GET", path, **kwargs)

    async def post(
        self, path: str, json: dict[str, Any] | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        return await self.request("POST", path, json=json, **kwargs)

    async def put(
        self, path: str, json: dict[str, Any] | None = None, **kwargs: Any
    ) -> dict[str, Any]:
        return await self.request("PUT", path, json=json, **kwargs)

    async def delete(self, path: str, **kwargs: Any) -> dict[str, Any]:
        return await self.request("DELETE", path, **kwargs)
