"""Orderhub Schemas - Pydantic models for data contracts."""

from typing import Any

from pydantic import TypeAdapter

from orderhub_schemas.pos import (
    AccessToken,
    AvailabilityUpdateRequest,
    FailedRequestPayload,
    LocationHoursChangedEvent,
    MenuSyncResult,
    MenuUpdatedEvent,
    OrderCancelRequest,
    OrderStatus,
    OrderSubmitRequest,
    OrderType,
    POSMenuCategory,
    POSMenuItem,
    POSModifier,
    POSOrder,
    POSOrderItem,
    POSOrderModifier,
    POSOrderResult,
    POSOrderStatus,
    POSProvider,
    POSSyncStatus,
    POSWebhookEvent,
    StockLevel,
    StockUpdatedEvent,
    TicketCancelledEvent,
    TicketStatusChangedEvent,
    UnknownEvent,
)

_failed_request_adapter: TypeAdapter[Any] = TypeAdapter(FailedRequestPayload)


def parse_failed_request_payload(data: dict[str, Any]) -> Any:
    """
    Parse a stored failed-request payload into its typed variant.

    Raises:
        pydantic.ValidationError: If ``request_type`` is unknown or the
            payload does not match the variant's shape.
    """
    return _failed_request_adapter.validate_python(data)


__all__ = [
    "AccessToken",
    "AvailabilityUpdateRequest",
    "FailedRequestPayload",
    "LocationHoursChangedEvent",
    "MenuSyncResult",
    "MenuUpdatedEvent",
    "OrderCancelRequest",
    "OrderStatus",
    "OrderSubmitRequest",
    "OrderType",
    "POSMenuCategory",
    "POSMenuItem",
    "POSModifier",
    "POSOrder",
    "POSOrderItem",
    "POSOrderModifier",
    "POSOrderResult",
    "POSOrderStatus",
    "POSProvider",
    "POSSyncStatus",
    "POSWebhookEvent",
    "StockLevel",
    "StockUpdatedEvent",
    "TicketCancelledEvent",
    "TicketStatusChangedEvent",
    "UnknownEvent",
    "parse_failed_request_payload",
]
