"""POS integration schemas - vendor-neutral data contracts for Point of Sale systems."""

from datetime import UTC, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal

from pydantic import BaseModel, Field

# =============================================================================
# Enums
# =============================================================================


class POSProvider(str, Enum):
    """Supported POS providers."""

    SKYTAB = "skytab"
    MOCK = "mock"


class OrderType(str, Enum):
    """Order fulfillment type."""

    PICKUP = "pickup"
    DELIVERY = "delivery"
    DINE_IN = "dine_in"


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out_for_delivery"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class POSSyncStatus(str, Enum):
    """Whether a local order has reached the POS."""

    PENDING = "pending"
    SYNCED = "synced"
    FAILED = "failed"


# =============================================================================
# Authentication
# =============================================================================


class AccessToken(BaseModel):
    """
    Bearer token issued by a POS vendor's credential exchange.

    Held in memory by a single client instance and never persisted.
    """

    value: str
    expires_at: datetime

    def is_valid(self, buffer: timedelta, now: datetime | None = None) -> bool:
        """True while the token stays usable for at least ``buffer`` longer."""
        now = now or datetime.now(UTC)
        return now + buffer < self.expires_at


# =============================================================================
# Menu Data
# =============================================================================


class POSMenuCategory(BaseModel):
    """A menu category from the POS system."""

    id: str = Field(description="ID in the POS system")
    name: str
    description: str = ""
    is_active: bool = True
    sort_order: int = 0


class POSMenuItem(BaseModel):
    """A menu item from the POS system."""

    id: str = Field(description="ID in the POS system")
    name: str
    description: str = ""
    price: Decimal
    category_id: str = ""
    sku: str = ""
    is_available: bool = True


class POSModifier(BaseModel):
    """A modifier option from the POS system."""

    id: str = Field(description="ID in the POS system")
    name: str
    price: Decimal = Field(default=Decimal("0.00"))
    group_id: str = ""
    group_name: str = ""
    is_available: bool = True


class MenuSyncResult(BaseModel):
    """Catalog snapshot (full sync) or delta (incremental sync) from the POS."""

    categories: list[POSMenuCategory] = Field(default_factory=list)
    items: list[POSMenuItem] = Field(default_factory=list)
    modifiers: list[POSModifier] = Field(default_factory=list)
    deleted_item_ids: list[str] = Field(default_factory=list)
    deleted_modifier_group_ids: list[str] = Field(default_factory=list)
    deleted_category_ids: list[str] = Field(default_factory=list)

    @property
    def item_count(self) -> int:
        return len(self.items)

    @property
    def modifier_count(self) -> int:
        return len(self.modifiers)


# =============================================================================
# Orders
# =============================================================================


class POSOrderModifier(BaseModel):
    """Selected modifier for an order item."""

    modifier_id: str
    quantity: int = 1


class POSOrderItem(BaseModel):
    """Line item in a POS order."""

    menu_item_id: str
    quantity: int = 1
    special_instructions: str = ""
    modifiers: list[POSOrderModifier] = Field(default_factory=list)


class POSOrder(BaseModel):
    """Order to submit to the POS system."""

    external_order_id: str = Field(description="Local order reference")
    order_number: str

    # Customer info
    customer_name: str
    customer_phone: str = ""
    customer_email: str = ""

    # Order details
    order_type: OrderType
    scheduled_for: datetime | None = None
    special_instructions: str = ""

    # Items
    items: list[POSOrderItem]

    # Pricing (calculated before submission)
    subtotal: Decimal
    tax: Decimal = Decimal("0.00")
    tip: Decimal = Decimal("0.00")
    total: Decimal


class POSOrderResult(BaseModel):
    """Result of creating an order in the POS system."""

    pos_order_id: str = Field(description="Order ID in the POS system")
    success: bool = True
    status: OrderStatus = OrderStatus.PENDING
    estimated_ready_time: datetime | None = None


class POSOrderStatus(BaseModel):
    """Current status of an order in the POS system."""

    order_id: str
    status: OrderStatus
    estimated_ready_time: datetime | None = None


# =============================================================================
# Webhooks
# =============================================================================


class POSWebhookEventBase(BaseModel):
    """Base for all POS webhook events."""

    provider: POSProvider
    event_id: str
    occurred_at: datetime
    location_id: str = ""


class TicketStatusChangedEvent(POSWebhookEventBase):
    """A ticket was created or changed status in the POS system."""

    event_type: Literal[
        "ticket.created", "ticket.updated", "ticket.status_changed"
    ] = "ticket.status_changed"
    ticket_id: str
    external_reference: str = ""
    status: OrderStatus
    vendor_status: str = ""
    previous_status: str = ""
    estimated_ready_time: datetime | None = None


class TicketCancelledEvent(POSWebhookEventBase):
    """A ticket was cancelled at the POS."""

    event_type: Literal["ticket.cancelled"] = "ticket.cancelled"
    ticket_id: str
    external_reference: str = ""
    reason: str = ""


class MenuUpdatedEvent(POSWebhookEventBase):
    """Menu configuration changed in the POS system."""

    event_type: Literal["menu.updated", "menu.item_availability_changed"] = (
        "menu.updated"
    )
    menu_id: str = ""
    changed_item_ids: list[str] = Field(default_factory=list)


class StockLevel(BaseModel):
    """Availability of a single item in a stock update."""

    item_id: str
    is_available: bool
    stock_level: int | None = None


class StockUpdatedEvent(POSWebhookEventBase):
    """Item availability (86'd status) changed for one or more items."""

    event_type: Literal["stock.updated"] = "stock.updated"
    items: list[StockLevel] = Field(default_factory=list)


class LocationHoursChangedEvent(POSWebhookEventBase):
    """Operating hours changed for a location."""

    event_type: Literal["location.hours_changed"] = "location.hours_changed"
    is_open: bool | None = None
    next_open_time: datetime | None = None
    next_close_time: datetime | None = None


class UnknownEvent(POSWebhookEventBase):
    """An event type this integration does not act on."""

    event_type: Literal["unknown"] = "unknown"
    raw_event_type: str


# Union type for all webhook events
POSWebhookEvent = (
    TicketStatusChangedEvent
    | TicketCancelledEvent
    | MenuUpdatedEvent
    | StockUpdatedEvent
    | LocationHoursChangedEvent
    | UnknownEvent
)


# =============================================================================
# Failed request payloads
# =============================================================================


class OrderSubmitRequest(BaseModel):
    """Replay of an order submission."""

    request_type: Literal["order_submit"] = "order_submit"
    order_id: int


class OrderCancelRequest(BaseModel):
    """Replay of an order cancellation."""

    request_type: Literal["order_cancel"] = "order_cancel"
    order_id: int


class AvailabilityUpdateRequest(BaseModel):
    """Replay of an item availability push."""

    request_type: Literal["availability_update"] = "availability_update"
    item_id: int
    is_available: bool


FailedRequestPayload = Annotated[
    OrderSubmitRequest | OrderCancelRequest | AvailabilityUpdateRequest,
    Field(discriminator="request_type"),
]
