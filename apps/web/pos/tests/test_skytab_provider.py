"""Tests for SkyTabAdapter - catalog mapping, tickets, stock and webhooks."""

import json
from datetime import UTC, datetime
from decimal import Decimal

import httpx
import pytest
import respx

from orderhub_schemas import (
    OrderStatus,
    OrderType,
    POSOrder,
    POSOrderItem,
    POSOrderModifier,
    POSProvider,
    StockUpdatedEvent,
    TicketStatusChangedEvent,
)

from apps.web.pos.adapters.base import POSAdapter
from apps.web.pos.adapters.skytab import SkyTabAdapter, SkyTabClient
from apps.web.pos.adapters.skytab.client import SANDBOX_URL
from apps.web.pos.exceptions import POSAPIError, POSConfigurationError
from apps.web.pos.tests.helpers import (
    SKYTAB_LOCATION_GUID,
    encode,
    make_envelope,
    sign,
)

API = f"{SANDBOX_URL}/api/rest/v1/pos"
LOCATION_API = f"{API}/locations/{SKYTAB_LOCATION_GUID}"

# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def skytab_menu_response() -> dict:
    """Sample SkyTab menu response."""
    return {
        "result": {
            "menu": {
                "categories": [
                    {
                        "guid": "cat-1",
                        "name": "Pizzas",
                        "description": "Wood fired",
                        "isActive": True,
                        "sortOrder": 1,
                    },
                    {"guid": "cat-2", "name": "Retired", "isActive": False},
                ],
                "items": [
                    {
                        "guid": "item-1",
                        "name": "Margherita",
                        "description": None,
                        "price": 12.5,
                        "categoryGuid": "cat-1",
                        "sku": "MARG",
                        "isActive": True,
                        "isAvailable": True,
                    },
                    {
                        "guid": "item-2",
                        "name": "Calzone",
                        "price": 14,
                        "categoryGuid": "cat-1",
                        "isActive": True,
                        "isAvailable": False,
                    },
                    {
                        "guid": "item-3",
                        "name": "Seasonal",
                        "price": 9.99,
                        "categoryGuid": "cat-2",
                        "isActive": False,
                        "isAvailable": True,
                    },
                ],
                "modifierGroups": [
                    {
                        "guid": "grp-1",
                        "name": "Toppings",
                        "modifiers": [
                            {"guid": "mod-1", "name": "Basil", "price": 0.5},
                            {
                                "guid": "mod-2",
                                "name": "Burrata",
                                "price": 4,
                                "isAvailable": False,
                            },
                        ],
                    }
                ],
            }
        }
    }


@pytest.fixture
def pos_order() -> POSOrder:
    return POSOrder(
        external_order_id="42",
        order_number="ORD-42",
        customer_name="Jamie Doe",
        customer_phone="555-0100",
        order_type=OrderType.DELIVERY,
        items=[
            POSOrderItem(
                menu_item_id="item-1",
                quantity=2,
                special_instructions="Well done",
                modifiers=[POSOrderModifier(modifier_id="mod-1")],
            )
        ],
        subtotal=Decimal("25.00"),
        tax=Decimal("2.00"),
        total=Decimal("27.00"),
    )


# =============================================================================
# Protocol
# =============================================================================


def test_implements_protocol(skytab_adapter: SkyTabAdapter) -> None:
    assert isinstance(skytab_adapter, POSAdapter)
    assert skytab_adapter.provider == POSProvider.SKYTAB


@pytest.mark.asyncio
async def test_location_guid_required(skytab_client: SkyTabClient) -> None:
    adapter = SkyTabAdapter(skytab_client)

    with pytest.raises(POSConfigurationError):
        await adapter.get_unavailable_items("")


# =============================================================================
# Menu
# =============================================================================


class TestMenuSync:
    """Catalog reads are mapped into the neutral shape without side effects."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_full_menu(
        self, skytab_adapter: SkyTabAdapter, skytab_menu_response: dict
    ) -> None:
        respx.get(f"{LOCATION_API}/menu").mock(
            return_value=httpx.Response(200, json=skytab_menu_response)
        )

        result = await skytab_adapter.sync_full_menu(SKYTAB_LOCATION_GUID)

        assert [c.id for c in result.categories] == ["cat-1", "cat-2"]
        assert result.categories[0].sort_order == 1
        assert result.categories[1].is_active is False

        items = {i.id: i for i in result.items}
        assert items["item-1"].price == Decimal("12.5")
        assert items["item-1"].description == ""
        assert items["item-1"].category_id == "cat-1"
        assert items["item-1"].is_available is True
        assert items["item-2"].is_available is False
        # Inactive items are unavailable even when in stock
        assert items["item-3"].is_available is False

        assert result.modifier_count == 2
        basil, burrata = result.modifiers
        assert basil.group_id == "grp-1"
        assert basil.group_name == "Toppings"
        assert basil.price == Decimal("0.5")
        assert burrata.is_available is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_full_menu_uses_default_location(
        self, skytab_adapter: SkyTabAdapter
    ) -> None:
        route = respx.get(f"{LOCATION_API}/menu").mock(
            return_value=httpx.Response(200, json={"result": {"menu": {}}})
        )

        result = await skytab_adapter.sync_full_menu("")

        assert route.called
        assert result.item_count == 0

    @pytest.mark.asyncio
    @respx.mock
    async def test_menu_updates(self, skytab_adapter: SkyTabAdapter) -> None:
        route = respx.get(f"{LOCATION_API}/menu/updates").mock(
            return_value=httpx.Response(
                200,
                json={
                    "result": {
                        "updates": {
                            "items": [
                                {"guid": "item-9", "name": "New", "price": 5}
                            ],
                            "deletedItemGuids": ["item-2"],
                            "deletedModifierGroupGuids": ["grp-old"],
                            "deletedCategoryGuids": ["cat-old"],
                        }
                    }
                },
            )
        )
        since = datetime(2025, 1, 1, tzinfo=UTC)

        result = await skytab_adapter.sync_menu_updates(SKYTAB_LOCATION_GUID, since)

        assert route.calls.last.request.url.params["since"] == since.isoformat()
        assert [i.id for i in result.items] == ["item-9"]
        assert result.deleted_item_ids == ["item-2"]
        assert result.deleted_modifier_group_ids == ["grp-old"]
        assert result.deleted_category_ids == ["cat-old"]

    @pytest.mark.asyncio
    @respx.mock
    async def test_malformed_menu_wrapped(self, skytab_adapter: SkyTabAdapter) -> None:
        respx.get(f"{LOCATION_API}/menu").mock(
            return_value=httpx.Response(
                200, json={"result": {"menu": {"items": [{"name": "no guid"}]}}}
            )
        )

        with pytest.raises(POSAPIError) as exc_info:
            await skytab_adapter.sync_full_menu(SKYTAB_LOCATION_GUID)

        assert exc_info.value.code == "MENU_SYNC_FAILED"

    @pytest.mark.asyncio
    @respx.mock
    async def test_unavailable_items(self, skytab_adapter: SkyTabAdapter) -> None:
        respx.get(f"{LOCATION_API}/stock").mock(
            return_value=httpx.Response(
                200,
                json={
                    "result": {
                        "items": [
                            {"itemGuid": "item-1", "isAvailable": True},
                            {"itemGuid": "item-2", "isAvailable": False},
                            {"itemGuid": "item-3"},
                        ]
                    }
                },
            )
        )

        assert await skytab_adapter.get_unavailable_items(SKYTAB_LOCATION_GUID) == [
            "item-2"
        ]


# =============================================================================
# Orders
# =============================================================================


class TestOrders:
    """Ticket creation, polling and cancellation."""

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_order(
        self, skytab_adapter: SkyTabAdapter, pos_order: POSOrder
    ) -> None:
        route = respx.post(f"{API}/tickets").mock(
            return_value=httpx.Response(
                200,
                json={"result": {"ticket": {"guid": "tkt-1", "status": "CONFIRMED"}}},
            )
        )

        result = await skytab_adapter.send_order(pos_order)

        assert result.pos_order_id == "tkt-1"
        assert result.status == OrderStatus.CONFIRMED

        ticket = json.loads(route.calls.last.request.content)["ticket"]
        assert ticket["externalReference"] == "42"
        assert ticket["orderType"] == "DELIVERY"
        assert ticket["customer"] == {"name": "Jamie Doe", "phone": "555-0100"}
        assert ticket["items"] == [
            {
                "itemGuid": "item-1",
                "quantity": 2,
                "specialInstructions": "Well done",
                "modifiers": [{"modifierGuid": "mod-1", "quantity": 1}],
            }
        ]
        assert ticket["total"] == 27.0
        assert ticket["scheduledFor"] is None

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_order_without_ticket_id(
        self, skytab_adapter: SkyTabAdapter, pos_order: POSOrder
    ) -> None:
        respx.post(f"{API}/tickets").mock(
            return_value=httpx.Response(200, json={"result": {"ticket": {}}})
        )

        with pytest.raises(POSAPIError) as exc_info:
            await skytab_adapter.send_order(pos_order)

        assert exc_info.value.code == "ORDER_SUBMIT_FAILED"

    @pytest.mark.asyncio
    @respx.mock
    async def test_send_order_rejected(
        self, skytab_adapter: SkyTabAdapter, pos_order: POSOrder
    ) -> None:
        respx.post(f"{API}/tickets").mock(
            return_value=httpx.Response(
                422,
                json={"error": {"code": "ITEM_UNAVAILABLE", "message": "86'd"}},
            )
        )

        with pytest.raises(POSAPIError) as exc_info:
            await skytab_adapter.send_order(pos_order)

        assert exc_info.value.code == "ITEM_UNAVAILABLE"
        assert exc_info.value.is_retryable is False

    @pytest.mark.asyncio
    @respx.mock
    async def test_order_status(self, skytab_adapter: SkyTabAdapter) -> None:
        respx.get(f"{API}/tickets/tkt-1/status").mock(
            return_value=httpx.Response(
                200,
                json={
                    "result": {
                        "ticket": {
                            "guid": "tkt-1",
                            "status": "READY",
                            "estimatedReadyTime": "2025-01-15T12:30:00Z",
                        }
                    }
                },
            )
        )

        status = await skytab_adapter.get_order_status("tkt-1")

        assert status.order_id == "tkt-1"
        assert status.status == OrderStatus.READY
        assert status.estimated_ready_time == datetime(2025, 1, 15, 12, 30, tzinfo=UTC)

    @pytest.mark.asyncio
    @respx.mock
    async def test_unknown_status_is_pending(
        self, skytab_adapter: SkyTabAdapter
    ) -> None:
        respx.get(f"{API}/tickets/tkt-1/status").mock(
            return_value=httpx.Response(
                200, json={"result": {"ticket": {"status": "ON_HOLD"}}}
            )
        )

        status = await skytab_adapter.get_order_status("tkt-1")

        assert status.status == OrderStatus.PENDING
        assert status.order_id == "tkt-1"

    @pytest.mark.asyncio
    @respx.mock
    async def test_cancel_order(self, skytab_adapter: SkyTabAdapter) -> None:
        route = respx.post(f"{API}/tickets/tkt-1/cancel").mock(
            return_value=httpx.Response(200, json={"result": {"success": True}})
        )

        assert await skytab_adapter.cancel_order("tkt-1") is True
        assert json.loads(route.calls.last.request.content) == {
            "reason": "Cancelled by online ordering"
        }

    @pytest.mark.asyncio
    @respx.mock
    @pytest.mark.parametrize("code", ["TICKET_NOT_FOUND", "INVALID_TICKET_STATUS"])
    async def test_cancel_already_inactive(
        self, skytab_adapter: SkyTabAdapter, code: str
    ) -> None:
        respx.post(f"{API}/tickets/tkt-1/cancel").mock(
            return_value=httpx.Response(
                409, json={"error": {"code": code, "message": "Gone"}}
            )
        )

        assert await skytab_adapter.cancel_order("tkt-1") is True

    @pytest.mark.asyncio
    @respx.mock
    async def test_cancel_other_error_raises(
        self, skytab_adapter: SkyTabAdapter
    ) -> None:
        respx.post(f"{API}/tickets/tkt-1/cancel").mock(
            return_value=httpx.Response(
                400, json={"error": {"code": "INVALID_REQUEST", "message": "No"}}
            )
        )

        with pytest.raises(POSAPIError) as exc_info:
            await skytab_adapter.cancel_order("tkt-1")

        assert exc_info.value.code == "INVALID_REQUEST"


# =============================================================================
# Stock
# =============================================================================


@pytest.mark.asyncio
@respx.mock
async def test_update_item_availability(skytab_adapter: SkyTabAdapter) -> None:
    route = respx.put(f"{LOCATION_API}/stock").mock(
        return_value=httpx.Response(200, json={"result": {"success": True}})
    )

    assert await skytab_adapter.update_item_availability("item-1", False) is True
    assert json.loads(route.calls.last.request.content) == {
        "itemGuid": "item-1",
        "isAvailable": False,
    }


# =============================================================================
# Webhooks
# =============================================================================


class TestWebhooks:
    def test_verify_signature(self, skytab_adapter: SkyTabAdapter) -> None:
        body = b'{"eventType": "ticket.updated"}'

        verify = skytab_adapter.verify_webhook_signature

        assert verify(body, sign(body, "s3cret"), "s3cret")
        assert not verify(body, sign(body, "other"), "s3cret")
        assert not verify(body, "", "s3cret")

    def test_parse_ticket_status(self, skytab_adapter: SkyTabAdapter) -> None:
        payload = make_envelope(
            "ticket.status_changed",
            {"ticketGuid": "tkt-1", "externalReference": "42", "status": "PREPARING"},
        )

        event = skytab_adapter.parse_webhook(payload)

        assert isinstance(event, TicketStatusChangedEvent)
        assert event.provider == POSProvider.SKYTAB
        assert event.status == OrderStatus.PREPARING
        assert event.location_id == SKYTAB_LOCATION_GUID

    def test_parse_stock_update(self, skytab_adapter: SkyTabAdapter) -> None:
        payload = make_envelope(
            "stock.updated", {"items": [{"itemGuid": "item-1", "isAvailable": False}]}
        )

        event = skytab_adapter.parse_webhook(json.loads(encode(payload)))

        assert isinstance(event, StockUpdatedEvent)
        assert event.items[0].item_id == "item-1"
        assert event.items[0].is_available is False
