"""Translation tables between vendor tokens and the platform's enums."""

import logging

from orderhub_schemas import OrderStatus, OrderType

logger = logging.getLogger(__name__)

# Ticket status reported by the POS -> local order status. Used for both
# polled status and webhook events so the two paths never disagree.
VENDOR_STATUS_MAP: dict[str, OrderStatus] = {
    "PENDING": OrderStatus.PENDING,
    "CONFIRMED": OrderStatus.CONFIRMED,
    "PREPARING": OrderStatus.PREPARING,
    "READY": OrderStatus.READY,
    "OUT_FOR_DELIVERY": OrderStatus.OUT_FOR_DELIVERY,
    "COMPLETED": OrderStatus.COMPLETED,
    "CANCELLED": OrderStatus.CANCELLED,
}

ORDER_TYPE_MAP: dict[OrderType, str] = {
    OrderType.DELIVERY: "DELIVERY",
    OrderType.PICKUP: "PICKUP",
    OrderType.DINE_IN: "DINE_IN",
}


def map_vendor_status(vendor_status: str | None) -> OrderStatus:
    """Map a vendor ticket status to OrderStatus; unknown values become PENDING."""
    status = VENDOR_STATUS_MAP.get((vendor_status or "").upper())
    if status is None:
        logger.warning("Unrecognized POS ticket status %r, using pending", vendor_status)
        return OrderStatus.PENDING
    return status


def map_order_type(order_type: OrderType | str) -> str:
    """Map an OrderType to the vendor token, defaulting to PICKUP."""
    if not isinstance(order_type, OrderType):
        order_type = order_type.replace("-", "_")
    try:
        return ORDER_TYPE_MAP[OrderType(order_type)]
    except ValueError:
        return "PICKUP"
