"""
POS order submission helpers - converts the local order aggregate to POSOrder.

The submission flow itself lives in POSService.send_order_to_pos; this module
holds the pieces it shares with the retry queue and the views.
"""

import logging
from typing import TYPE_CHECKING

from orderhub_schemas import OrderType, POSOrder, POSOrderItem, POSOrderModifier

if TYPE_CHECKING:
    from apps.web.restaurant.models import Order


logger = logging.getLogger(__name__)


class OrderSubmissionError(Exception):
    """
    Error during order submission to POS.

    ``queued_request_id`` is set when the submission was parked in the
    failed-request queue for a later retry.
    """

    def __init__(
        self,
        message: str,
        order_id: int | None = None,
        is_retryable: bool = True,
        queued_request_id: int | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.order_id = order_id
        self.is_retryable = is_retryable
        self.queued_request_id = queued_request_id

    @property
    def queued(self) -> bool:
        return self.queued_request_id is not None


def build_pos_order(order: "Order") -> POSOrder:
    """
    Convert internal Order model to POSOrder format.

    Items and modifiers are referenced by their POS ids; lines whose menu
    item was never synced from the POS fall back to the local primary key.

    Args:
        order: Django Order model.

    Returns:
        POSOrder ready for submission to a POS adapter.
    """
    items: list[POSOrderItem] = []

    order_items = order.items.select_related("menu_item").prefetch_related(
        "modifiers__modifier"
    )
    for order_item in order_items:
        modifiers = [
            POSOrderModifier(
                modifier_id=line.modifier.pos_modifier_id or str(line.modifier_id),
                quantity=line.quantity,
            )
            for line in order_item.modifiers.all()
        ]
        if not order_item.menu_item.pos_item_id:
            logger.warning(
                "Order %s item %s has no POS id, sending local id",
                order.order_number,
                order_item.menu_item_id,
            )
        items.append(
            POSOrderItem(
                menu_item_id=order_item.menu_item.pos_item_id
                or str(order_item.menu_item_id),
                quantity=order_item.quantity,
                special_instructions=order_item.special_instructions,
                modifiers=modifiers,
            )
        )

    return POSOrder(
        external_order_id=str(order.pk),
        order_number=order.order_number,
        customer_name=order.customer_name,
        customer_email=order.customer_email,
        customer_phone=order.customer_phone,
        order_type=OrderType(order.order_type),
        scheduled_for=order.scheduled_for,
        special_instructions=order.special_instructions,
        items=items,
        subtotal=order.subtotal,
        tax=order.tax,
        tip=order.tip,
        total=order.total,
    )
