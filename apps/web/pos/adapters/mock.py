"""Mock POS adapter for development and testing."""

import asyncio
import logging
import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from decimal import Decimal
from typing import Any

from orderhub_schemas import (
    MenuSyncResult,
    OrderStatus,
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
from apps.web.pos.exceptions import POSAPIError, POSOrderError

logger = logging.getLogger(__name__)

# Seconds after submission at which a mock ticket advances
PREPARING_AFTER = 2.0
READY_AFTER = 10.0


def _default_catalog() -> MenuSyncResult:
    """Generate the default sample catalog."""
    return MenuSyncResult(
        categories=[
            POSMenuCategory(id="pizzas", name="Pizzas", sort_order=1),
        ],
        items=[
            POSMenuItem(
                id="pos-item-1",
                name="Margherita Pizza",
                description="Fresh mozzarella, basil, and tomato sauce",
                price=Decimal("12.99"),
                category_id="pizzas",
                sku="PIZZA-MARG",
            ),
            POSMenuItem(
                id="pos-item-2",
                name="Pepperoni Pizza",
                description="Classic pepperoni with mozzarella",
                price=Decimal("14.99"),
                category_id="pizzas",
                sku="PIZZA-PEP",
            ),
        ],
        modifiers=[
            POSModifier(
                id="pos-mod-1",
                name="Extra Cheese",
                price=Decimal("2.00"),
                group_id="toppings",
                group_name="Toppings",
            ),
            POSModifier(
                id="pos-mod-2",
                name="Mushrooms",
                price=Decimal("1.50"),
                group_id="toppings",
                group_name="Toppings",
            ),
        ],
    )


@dataclass
class _MockTicket:
    submitted_at: float
    estimated_ready_time: datetime
    cancelled: bool = False


class MockPOSAdapter:
    """
    Mock POS adapter for development and testing.

    Simulates a POS without network access. Submitted tickets advance
    confirmed -> preparing -> ready based on elapsed time since submission.

    Usage in tests:
        adapter = MockPOSAdapter(
            unavailable_items={"pos-item-1"},
            fail_orders=True,
        )
    """

    signature_header = "X-POS-Signature"

    def __init__(
        self,
        catalog: MenuSyncResult | None = None,
        unavailable_items: set[str] | None = None,
        fail_orders: bool = False,
        fail_auth: bool = False,
        api_delay_ms: int = 0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """
        Initialize mock adapter.

        Args:
            catalog: Custom catalog to return. Uses the sample pizza menu if None.
            unavailable_items: Set of item ids to mark as 86'd.
            fail_orders: If True, order submission fails with a retryable error.
            fail_auth: If True, authentication reports failure.
            api_delay_ms: Simulated API delay in milliseconds.
            clock: Monotonic clock used for ticket progression.
        """
        self._catalog = catalog if catalog is not None else _default_catalog()
        self._unavailable_items = set(unavailable_items or ())
        self.fail_orders = fail_orders
        self.fail_auth = fail_auth
        self._api_delay_ms = api_delay_ms
        self._clock = clock
        self._tickets: dict[str, _MockTicket] = {}

    @property
    def provider(self) -> POSProvider:
        """The POS provider this adapter connects to."""
        return POSProvider.MOCK

    async def _delay(self) -> None:
        if self._api_delay_ms > 0:
            await asyncio.sleep(self._api_delay_ms / 1000)

    # =========================================================================
    # Configuration methods (for test setup)
    # =========================================================================

    def set_item_unavailable(self, item_id: str) -> None:
        """Mark an item as 86'd (unavailable)."""
        self._unavailable_items.add(item_id)

    def set_item_available(self, item_id: str) -> None:
        """Mark an item as available."""
        self._unavailable_items.discard(item_id)

    @property
    def submitted_order_ids(self) -> list[str]:
        return list(self._tickets)

    # =========================================================================
    # Authentication
    # =========================================================================

    async def authenticate(self) -> bool:
        await self._delay()
        if self.fail_auth:
            logger.warning("Mock POS: authentication failed")
            return False
        logger.info("Mock POS: authentication successful")
        return True

    # =========================================================================
    # Menu Operations
    # =========================================================================

    async def sync_full_menu(self, location_id: str) -> MenuSyncResult:
        await self._delay()
        logger.info("Mock POS: full menu sync requested for %s", location_id)
        items = [
            item.model_copy(
                update={"is_available": item.id not in self._unavailable_items}
            )
            for item in self._catalog.items
        ]
        return self._catalog.model_copy(update={"items": items})

    async def sync_menu_updates(
        self, location_id: str, since: datetime
    ) -> MenuSyncResult:
        await self._delay()
        logger.info(
            "Mock POS: incremental menu sync requested for %s since %s",
            location_id,
            since,
        )
        return MenuSyncResult()

    async def get_unavailable_items(self, location_id: str) -> list[str]:  # noqa: ARG002
        await self._delay()
        return sorted(self._unavailable_items)

    async def update_item_availability(
        self,
        item_id: str,
        is_available: bool,
        location_id: str | None = None,  # noqa: ARG002
    ) -> bool:
        await self._delay()
        if is_available:
            self.set_item_available(item_id)
        else:
            self.set_item_unavailable(item_id)
        logger.info("Mock POS: item %s availability set to %s", item_id, is_available)
        return True

    # =========================================================================
    # Order Operations
    # =========================================================================

    async def send_order(self, order: POSOrder) -> POSOrderResult:
        await self._delay()

        if self.fail_orders:
            raise POSAPIError(
                "Mock POS unavailable",
                provider="mock",
                code="SERVICE_UNAVAILABLE",
                status_code=503,
            )

        # Check if any items are unavailable
        for item in order.items:
            if item.menu_item_id in self._unavailable_items:
                raise POSOrderError(
                    f"Item is unavailable: {item.menu_item_id}",
                    provider="mock",
                    order_id=order.external_order_id,
                )

        pos_order_id = f"POS-{uuid.uuid4().hex[:12].upper()}"
        estimated_ready = datetime.now(UTC) + timedelta(minutes=20)
        self._tickets[pos_order_id] = _MockTicket(
            submitted_at=self._clock(),
            estimated_ready_time=estimated_ready,
        )
        logger.info(
            "Mock POS: order %s accepted as %s", order.order_number, pos_order_id
        )
        return POSOrderResult(
            pos_order_id=pos_order_id,
            status=OrderStatus.CONFIRMED,
            estimated_ready_time=estimated_ready,
        )

    async def get_order_status(self, pos_order_id: str) -> POSOrderStatus:
        await self._delay()
        ticket = self._tickets.get(pos_order_id)
        if ticket is None:
            return POSOrderStatus(order_id=pos_order_id, status=OrderStatus.PENDING)

        if ticket.cancelled:
            status = OrderStatus.CANCELLED
        else:
            elapsed = self._clock() - ticket.submitted_at
            if elapsed >= READY_AFTER:
                status = OrderStatus.READY
            elif elapsed >= PREPARING_AFTER:
                status = OrderStatus.PREPARING
            else:
                status = OrderStatus.CONFIRMED

        return POSOrderStatus(
            order_id=pos_order_id,
            status=status,
            estimated_ready_time=ticket.estimated_ready_time,
        )

    async def cancel_order(self, pos_order_id: str) -> bool:
        await self._delay()
        ticket = self._tickets.get(pos_order_id)
        if ticket is not None:
            ticket.cancelled = True
        logger.info("Mock POS: order %s cancelled", pos_order_id)
        return True

    # =========================================================================
    # Webhook Handling
    # =========================================================================

    def verify_webhook_signature(
        self, payload: bytes, signature: str, secret: str
    ) -> bool:
        """Verify webhook signature using HMAC-SHA256."""
        return verify_hmac_signature(payload, signature, secret)

    def parse_webhook(self, payload: dict[str, Any]) -> POSWebhookEvent:
        return parse_event_envelope(payload, POSProvider.MOCK)
