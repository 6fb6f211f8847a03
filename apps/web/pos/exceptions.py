"""POS integration exceptions."""

from typing import Any


class POSError(Exception):
    """Base exception for POS integration errors."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        self.message = message
        self.provider = provider
        super().__init__(message)


class POSAuthError(POSError):
    """Authentication failed with POS provider."""


class POSConfigurationError(POSError):
    """POS integration is missing required configuration."""


class ProviderNotFoundError(POSConfigurationError):
    """No adapter is registered for the requested POS vendor."""


class POSAPIError(POSError):
    """
    API request to POS provider failed.

    ``code`` is the vendor's error code when the response carried one.
    ``status_code`` is None for transport-level failures.
    """

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        code: str = "UNKNOWN_ERROR",
        status_code: int | None = None,
        details: dict[str, Any] | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message, provider)
        self.code = code
        self.status_code = status_code
        self.details = details or {}
        self.response_body = response_body

    @property
    def is_retryable(self) -> bool:
        """Transport failures, timeouts, 429 and 5xx are worth retrying."""
        if self.code == "SERVICE_UNAVAILABLE":
            return True
        if self.status_code is None:
            return True
        return self.status_code in (408, 429) or self.status_code >= 500


class POSTimeoutError(POSAPIError):
    """POS provider did not answer within the request timeout."""

    def __init__(self, message: str, provider: str | None = None) -> None:
        super().__init__(message, provider, code="TIMEOUT", status_code=408)


class POSRateLimitError(POSAPIError):
    """Rate limit exceeded with POS provider."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        retry_after: float | None = None,
        code: str = "RATE_LIMITED",
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, provider, code=code, status_code=429, details=details)
        self.retry_after = retry_after


class POSWebhookError(POSError):
    """Webhook validation or processing failed."""


class POSSignatureError(POSWebhookError):
    """Webhook signature did not match the shared secret."""


class POSOrderError(POSError):
    """Order creation or processing failed."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        order_id: str | None = None,
    ) -> None:
        super().__init__(message, provider)
        self.order_id = order_id


class MenuSyncError(POSError):
    """Menu sync failed; ``sync_log_id`` points at the failed SyncLog row."""

    def __init__(
        self,
        message: str,
        provider: str | None = None,
        sync_log_id: int | None = None,
    ) -> None:
        super().__init__(message, provider)
        self.sync_log_id = sync_log_id
