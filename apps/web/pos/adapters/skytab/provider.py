"""SkyTab POS adapter - maps SkyTab's catalog and ticket API onto the POSAdapter protocol."""

import functools
import logging
from collections.abc import Awaitable, Callable
from datetime import datetime
from decimal import Decimal
from typing import Any, ParamSpec, TypeVar

from orderhub_schemas import (
    MenuSyncResult,
    POSMenuCategory,
    POSMenuItem,
    POSModifier,
    POSOrder,
    POSOrderResult,
    POSOrderStatus,
    POSProvider,
    POSWebhookEvent,
)

from apps.web.pos.adapters.events import parse_event_envelope, verify_hmac_signature
from apps.web.pos.adapters.mapping import map_order_type, map_vendor_status
from apps.web.pos.adapters.skytab.client import PROVIDER, SkyTabClient
from apps.web.pos.exceptions import POSAPIError, POSConfigurationError, POSError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")

API_PREFIX = "/api/rest/v1/pos"

# Vendor error codes meaning the ticket is already inactive
CANCEL_NOOP_CODES = ("TICKET_NOT_FOUND", "INVALID_TICKET_STATUS")


def _wrap_errors(
    code: str,
) -> Callable[[Callable[P, Awaitable[R]]], Callable[P, Awaitable[R]]]:
    """Re-raise anything that is not already a POSError as POSAPIError(code)."""

    def decorator(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
        @functools.wraps(func)
        async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
            try:
                return await func(*args, **kwargs)
            except POSError:
                raise
            except Exception as e:
                logger.exception("SkyTab %s failed", func.__name__)
                raise POSAPIError(
                    f"SkyTab {func.__name__} failed: {e}",
                    provider=PROVIDER,
                    code=code,
                    status_code=500,
                ) from e

        return wrapper

    return decorator


def _parse_datetime(value: str | None) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


class SkyTabAdapter:
    """
    SkyTab POS adapter implementing the POSAdapter protocol.

    Supports:
    - Full and incremental menu sync
    - Ticket creation, status polling and cancellation
    - Item availability (86'd items)
    - Webhook verification and parsing

    All transport concerns (auth, rate limiting, retries) live in SkyTabClient.
    """

    signature_header = "X-SkyTab-Signature"

    def __init__(self, client: SkyTabClient, location_guid: str | None = None) -> None:
        """
        Initialize the SkyTab adapter.

        Args:
            client: Authenticated transport for one SkyTab account.
            location_guid: Default location for calls that take no location id.
        """
        self.client = client
        self.location_guid = location_guid or ""

    @property
    def provider(self) -> POSProvider:
        """The POS provider this adapter connects to."""
        return POSProvider.SKYTAB

    def _location(self, location_id: str | None) -> str:
        guid = location_id or self.location_guid
        if not guid:
            raise POSConfigurationError(
                "SkyTab location GUID not configured", provider=PROVIDER
            )
        return guid

    # =========================================================================
    # Authentication
    # =========================================================================

    async def authenticate(self) -> bool:
        return await self.client.test_connection()

    # =========================================================================
    # Data Mapping
    # =========================================================================

    def _map_category(self, data: dict[str, Any]) -> POSMenuCategory:
        return POSMenuCategory(
            id=data["guid"],
            name=data.get("name", ""),
            description=data.get("description") or "",
            is_active=data.get("isActive", True),
            sort_order=data.get("sortOrder") or 0,
        )

    def _map_item(self, data: dict[str, Any]) -> POSMenuItem:
        return POSMenuItem(
            id=data["guid"],
            name=data.get("name", ""),
            description=data.get("description") or "",
            price=Decimal(str(data.get("price", 0))),
            category_id=data.get("categoryGuid") or "",
            sku=data.get("sku") or "",
            # Inactive items are never orderable, whatever the stock says
            is_available=bool(data.get("isActive", True) and data.get("isAvailable", True)),
        )

    def _map_modifiers(self, groups: list[dict[str, Any]]) -> list[POSModifier]:
        modifiers: list[POSModifier] = []
        for group in groups:
            for modifier in group.get("modifiers", []):
                modifiers.append(
                    POSModifier(
                        id=modifier["guid"],
                        name=modifier.get("name", ""),
                        price=Decimal(str(modifier.get("price", 0))),
                        group_id=modifier.get("groupGuid") or group.get("guid", ""),
                        group_name=group.get("name", ""),
                        is_available=modifier.get("isAvailable", True),
                    )
                )
        return modifiers

    def _build_ticket(self, order: POSOrder) -> dict[str, Any]:
        """Build the SkyTab ticket body from a POSOrder."""
        return {
            "ticket": {
                "externalReference": order.external_order_id,
                "orderNumber": order.order_number,
                "orderType": map_order_type(order.order_type),
                "customer": {
                    "name": order.customer_name,
                    "phone": order.customer_phone,
                },
                "items": [
                    {
                        "itemGuid": item.menu_item_id,
                        "quantity": item.quantity,
                        "specialInstructions": item.special_instructions or None,
                        "modifiers": [
                            {"modifierGuid": mod.modifier_id, "quantity": mod.quantity}
                            for mod in item.modifiers
                        ],
                    }
                    for item in order.items
                ],
                "subtotal": float(order.subtotal),
                "tax": float(order.tax),
                "total": float(order.total),
                "scheduledFor": (
                    order.scheduled_for.isoformat() if order.scheduled_for else None
                ),
                "specialInstructions": order.special_instructions or None,
            }
        }

    # =========================================================================
    # Menu Operations (read)
    # =========================================================================

    @_wrap_errors("MENU_SYNC_FAILED")
    async def sync_full_menu(self, location_id: str) -> MenuSyncResult:
        guid = self._location(location_id)
        logger.info("Starting SkyTab full menu sync for location %s", guid)

        data = await self.client.get(f"{API_PREFIX}/locations/{guid}/menu")
        menu = data.get("result", {}).get("menu", {})

        result = MenuSyncResult(
            categories=[self._map_category(c) for c in menu.get("categories", [])],
            items=[self._map_item(i) for i in menu.get("items", [])],
            modifiers=self._map_modifiers(menu.get("modifierGroups", [])),
        )
        logger.info(
            "SkyTab full menu sync for %s: %d items, %d modifiers",
            guid,
            result.item_count,
            result.modifier_count,
        )
        return result

    @_wrap_errors("MENU_SYNC_FAILED")
    async def sync_menu_updates(
        self, location_id: str, since: datetime
    ) -> MenuSyncResult:
        guid = self._location(location_id)
        logger.info("SkyTab incremental menu sync for %s since %s", guid, since)

        data = await self.client.get(
            f"{API_PREFIX}/locations/{guid}/menu/updates",
            params={"since": since.isoformat()},
        )
        updates = data.get("result", {}).get("updates", {})

        return MenuSyncResult(
            categories=[self._map_category(c) for c in updates.get("categories", [])],
            items=[self._map_item(i) for i in updates.get("items", [])],
            modifiers=self._map_modifiers(updates.get("modifierGroups", [])),
            deleted_item_ids=updates.get("deletedItemGuids", []),
            deleted_modifier_group_ids=updates.get("deletedModifierGroupGuids", []),
            deleted_category_ids=updates.get("deletedCategoryGuids", []),
        )

    @_wrap_errors("STOCK_STATUS_FAILED")
    async def get_unavailable_items(self, location_id: str) -> list[str]:
        guid = self._location(location_id)
        data = await self.client.get(f"{API_PREFIX}/locations/{guid}/stock")
        items = data.get("result", {}).get("items", [])
        return [item["itemGuid"] for item in items if item.get("isAvailable") is False]

    # =========================================================================
    # Order Operations (write)
    # =========================================================================

    @_wrap_errors("ORDER_SUBMIT_FAILED")
    async def send_order(self, order: POSOrder) -> POSOrderResult:
        logger.info(
            "Sending order %s to SkyTab (%d items)",
            order.order_number,
            len(order.items),
        )
        data = await self.client.post(
            f"{API_PREFIX}/tickets", json=self._build_ticket(order)
        )
        ticket = data.get("result", {}).get("ticket", {})
        ticket_guid = ticket.get("guid")
        if not ticket_guid:
            raise POSAPIError(
                "No ticket id in SkyTab response",
                provider=PROVIDER,
                code="ORDER_SUBMIT_FAILED",
                status_code=500,
            )

        logger.info("SkyTab accepted order %s as ticket %s", order.order_number, ticket_guid)
        return POSOrderResult(
            pos_order_id=ticket_guid,
            success=True,
            status=map_vendor_status(ticket.get("status")),
        )

    @_wrap_errors("ORDER_STATUS_FAILED")
    async def get_order_status(self, pos_order_id: str) -> POSOrderStatus:
        data = await self.client.get(f"{API_PREFIX}/tickets/{pos_order_id}/status")
        ticket = data.get("result", {}).get("ticket", {})
        return POSOrderStatus(
            order_id=ticket.get("guid") or pos_order_id,
            status=map_vendor_status(ticket.get("status")),
            estimated_ready_time=_parse_datetime(ticket.get("estimatedReadyTime")),
        )

    @_wrap_errors("ORDER_CANCEL_FAILED")
    async def cancel_order(self, pos_order_id: str) -> bool:
        try:
            data = await self.client.post(
                f"{API_PREFIX}/tickets/{pos_order_id}/cancel",
                json={"reason": "Cancelled by online ordering"},
            )
        except POSAPIError as e:
            if e.code in CANCEL_NOOP_CODES:
                logger.info(
                    "SkyTab ticket %s already inactive (%s)", pos_order_id, e.code
                )
                return True
            raise
        return bool(data.get("result", {}).get("success", True))

    @_wrap_errors("STOCK_UPDATE_FAILED")
    async def update_item_availability(
        self, item_id: str, is_available: bool, location_id: str | None = None
    ) -> bool:
        guid = self._location(location_id)
        data = await self.client.put(
            f"{API_PREFIX}/locations/{guid}/stock",
            json={"itemGuid": item_id, "isAvailable": is_available},
        )
        return bool(data.get("result", {}).get("success", True))

    # =========================================================================
    # Webhook Handling
    # =========================================================================

    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: str
    ) -> bool:
        return verify_hmac_signature(payload, signature, secret)

    def parse_webhook(self, payload: dict[str, Any]) -> POSWebhookEvent:
        return parse_event_envelope(payload, POSProvider.SKYTAB)
