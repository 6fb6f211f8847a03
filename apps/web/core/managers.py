"""
Custom managers for multi-tenancy and auditing.

ClientScopedManager filters queries by the current client.
"""

from typing import TYPE_CHECKING, Any, TypeVar

from django.db import models

if TYPE_CHECKING:
    from django.http import HttpRequest

    from .models import AuditLog, Client, ClientScopedModel

_T = TypeVar("_T", bound="ClientScopedModel")


class ClientScopedManager(models.Manager[_T]):
    """
    Manager that filters by client.

    Usage in views:
        # Automatically scoped to request.client
        locations = Location.objects.for_client(request).all()

    SECURITY: Always use for_client() in views, never raw querysets.
    """

    def for_client(self, request: "HttpRequest") -> models.QuerySet[_T]:
        """
        Filter queryset by the client attached to the request.

        Platform staff (``is_staff``) see every client's rows.

        Args:
            request: HttpRequest with .client attribute (set by ClientMiddleware)

        Returns:
            QuerySet filtered to the request's client

        Raises:
            ValueError: If request has no client attached
        """
        user: Any = getattr(request, "user", None)
        if user is not None and user.is_authenticated and user.is_staff:
            return self.all()
        client: Any = getattr(request, "client", None)
        if client is None:
            msg = "Request has no client attached. Is ClientMiddleware enabled?"
            raise ValueError(msg)
        return self.filter(client=client)


class AuditLogManager(models.Manager["AuditLog"]):
    """Write-side helper for the append-only audit log."""

    def record(
        self,
        action: str,
        entity_type: str,
        entity_id: str | int = "",
        changes: dict[str, Any] | None = None,
        client: "Client | None" = None,
    ) -> "AuditLog":
        """Append one audit entry."""
        return self.create(
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            changes=changes or {},
            client=client,
        )
