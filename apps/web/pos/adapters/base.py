"""Base POS adapter protocol - interface for all POS integrations."""

from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from orderhub_schemas import (
    MenuSyncResult,
    POSOrder,
    POSOrderResult,
    POSOrderStatus,
    POSProvider,
    POSWebhookEvent,
)


@runtime_checkable
class POSAdapter(Protocol):
    """
    Protocol defining the interface for POS system integrations.

    All POS adapters (SkyTab, Mock) must implement this interface.
    Methods are async to support non-blocking I/O with external APIs.
    """

    @property
    def provider(self) -> POSProvider:
        """The POS provider this adapter connects to."""
        ...

    @property
    def signature_header(self) -> str:
        """HTTP header carrying the webhook signature."""
        ...

    # =========================================================================
    # Authentication
    # =========================================================================

    async def authenticate(self) -> bool:
        """
        Check that the configured credentials are accepted.

        Returns:
            True if the provider accepted the credentials. Never raises.
        """
        ...

    # =========================================================================
    # Menu Operations (read)
    # =========================================================================

    async def sync_full_menu(self, location_id: str) -> MenuSyncResult:
        """
        Fetch the complete catalog for a location.

        Mapping only: nothing is persisted here.

        Args:
            location_id: POS location identifier.

        Returns:
            Categories, items and modifiers in the neutral shape.

        Raises:
            POSAPIError: If the API request fails.
            POSConfigurationError: If no location id is available.
        """
        ...

    async def sync_menu_updates(
        self, location_id: str, since: datetime
    ) -> MenuSyncResult:
        """
        Fetch catalog changes since ``since``.

        Deleted vendor ids are returned, not applied; reconciling them is
        the caller's job.

        Raises:
            POSAPIError: If the API request fails.
        """
        ...

    async def get_unavailable_items(self, location_id: str) -> list[str]:
        """
        List vendor item ids currently 86'd at a location.

        Raises:
            POSAPIError: If the API request fails.
        """
        ...

    # =========================================================================
    # Order Operations (write)
    # =========================================================================

    async def send_order(self, order: POSOrder) -> POSOrderResult:
        """
        Create a ticket in the POS system.

        Args:
            order: Order details to submit.

        Returns:
            Result with POS order ID.

        Raises:
            POSOrderError: If the POS rejects the order.
            POSAPIError: If the API request fails.
        """
        ...

    async def get_order_status(self, pos_order_id: str) -> POSOrderStatus:
        """
        Get current status of a ticket.

        Unknown vendor statuses map to ``pending``.

        Raises:
            POSAPIError: If the API request fails or ticket not found.
        """
        ...

    async def cancel_order(self, pos_order_id: str) -> bool:
        """
        Cancel a ticket.

        Returns True when the ticket is (or already was) inactive.

        Raises:
            POSAPIError: For failures other than "already gone".
        """
        ...

    async def update_item_availability(
        self, item_id: str, is_available: bool, location_id: str | None = None
    ) -> bool:
        """
        86 or restore an item at the POS.

        Raises:
            POSAPIError: If the API request fails.
        """
        ...

    # =========================================================================
    # Webhook Handling
    # =========================================================================

    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: str
    ) -> bool:
        """
        Verify the authenticity of a webhook payload.

        Args:
            payload: Raw webhook payload bytes.
            signature: Signature header from the webhook request.
            secret: Webhook secret for this integration.

        Returns:
            True if signature is valid, False otherwise.
        """
        ...

    def parse_webhook(self, payload: dict[str, Any]) -> POSWebhookEvent:
        """
        Parse a webhook payload into a typed event.

        Raises:
            POSWebhookError: If payload cannot be parsed.
        """
        ...
