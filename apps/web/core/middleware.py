"""
Client middleware - attaches current client to request.
"""

from collections.abc import Callable
from typing import TYPE_CHECKING

from django.http import HttpRequest, HttpResponse

if TYPE_CHECKING:
    from .models import Client


class ClientMiddleware:
    """
    Middleware that attaches the current client to the request.

    Client is determined by (in order):
    1. X-Client-ID header (platform staff only; ignored for everyone else)
    2. User's assigned client (for restaurant staff)

    Anonymous requests never resolve a client.

    Sets request.client (None when unresolved). Admin and inbound POS
    webhooks are vendor/operator traffic and skip resolution.
    """

    def __init__(self, get_response: Callable[[HttpRequest], HttpResponse]) -> None:
        self.get_response = get_response

    def __call__(self, request: HttpRequest) -> HttpResponse:
        if request.path.startswith("/admin/") or request.path.endswith("/webhook"):
            request.client = None  # type: ignore[attr-defined]
            return self.get_response(request)

        request.client = self._get_client(request)  # type: ignore[attr-defined]
        return self.get_response(request)

    def _get_client(self, request: HttpRequest) -> "Client | None":
        """Resolve client from request."""
        # Lazy import to avoid circular dependency
        from .models import Client

        user = request.user
        if not user.is_authenticated:
            return None

        # 1. Header, only platform staff may act on behalf of a client
        client_id = request.headers.get("X-Client-ID")
        if client_id and user.is_staff:
            try:
                return Client.objects.get(slug=client_id, is_active=True)
            except Client.DoesNotExist:
                return None

        # 2. User's client
        return getattr(user, "client", None)
