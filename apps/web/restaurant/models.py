"""
Restaurant models - Locations, menus, items, modifiers, and orders.

All models follow the multi-tenancy pattern with ClientScopedModel.
POS-synced models carry a pos_*_id field for provider ID mapping; the
querysets below are the repository interface the POS integration uses.
"""

from django.db import models
from django.db.models import Q
from django.utils import timezone

from apps.web.core.models import ClientScopedModel
from apps.web.core.managers import ClientScopedManager


class POSProvider(models.TextChoices):
    """Supported POS providers."""

    SKYTAB = "skytab", "SkyTab"
    MOCK = "mock", "Mock (no live POS)"


# =============================================================================
# Locations
# =============================================================================


class LocationQuerySet(models.QuerySet["Location"]):
    def for_pos(self, pos_location_id: str) -> "LocationQuerySet":
        """Locations mapped to a vendor location id."""
        return self.filter(pos_location_id=pos_location_id)

    def with_pos(self) -> "LocationQuerySet":
        return self.exclude(pos_provider="").exclude(pos_location_id="")


class Location(ClientScopedModel):
    """
    A physical restaurant location.

    Links a Client's storefront to the POS installation that runs its kitchen.
    """

    name = models.CharField(max_length=200)
    slug = models.SlugField()
    is_active = models.BooleanField(default=True)

    # POS Integration
    pos_provider = models.CharField(
        max_length=20,
        choices=POSProvider.choices,
        blank=True,
        help_text="Connected POS system (blank = no POS)",
    )
    pos_location_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Location GUID in the POS system",
    )
    pos_connected_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When POS was connected",
    )

    objects = ClientScopedManager.from_queryset(LocationQuerySet)()

    class Meta:
        ordering = ["name"]
        constraints = [
            models.UniqueConstraint(
                fields=["client", "slug"],
                name="unique_location_slug_per_client",
            ),
        ]
        indexes = [
            models.Index(fields=["pos_location_id"]),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def has_pos(self) -> bool:
        """Check if POS is connected."""
        return bool(self.pos_provider and self.pos_location_id)


# =============================================================================
# Menus
# =============================================================================


class Menu(ClientScopedModel):
    """
    A menu served at a location (e.g., Lunch, Dinner, Drinks).
    """

    location = models.ForeignKey(
        Location,
        on_delete=models.CASCADE,
        related_name="menus",
    )
    pos_menu_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="ID in the POS system",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)
    last_sync_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Last successful POS sync (null = needs re-sync)",
    )

    class Meta:
        ordering = ["display_order", "name"]
        indexes = [
            models.Index(fields=["location", "is_active"]),
        ]

    def __str__(self) -> str:
        return self.name


class MenuCategory(ClientScopedModel):
    """
    Category within a menu (e.g., Appetizers, Entrees, Desserts).
    """

    menu = models.ForeignKey(
        Menu,
        on_delete=models.CASCADE,
        related_name="categories",
    )
    pos_category_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="ID in the POS system",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["display_order", "name"]
        verbose_name_plural = "menu categories"
        indexes = [
            models.Index(fields=["menu", "display_order"]),
            models.Index(fields=["pos_category_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.menu.name} > {self.name}"


class MenuItemQuerySet(models.QuerySet["MenuItem"]):
    def at_location(self, location: Location) -> "MenuItemQuerySet":
        return self.filter(category__menu__location=location)

    def by_pos_ids(self, pos_item_ids: list[str]) -> "MenuItemQuerySet":
        return self.filter(pos_item_id__in=[i for i in pos_item_ids if i])

    def unavailable(self) -> "MenuItemQuerySet":
        return self.filter(Q(is_available=False) | Q(is_86ed=True))


class MenuItem(ClientScopedModel):
    """
    Individual menu item.

    ``is_available`` follows the POS catalog (inactive or unavailable);
    ``is_86ed`` is the temporary out-of-stock flag pushed by stock updates.
    """

    category = models.ForeignKey(
        MenuCategory,
        on_delete=models.CASCADE,
        related_name="items",
    )
    pos_item_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="ID in the POS system",
    )
    name = models.CharField(max_length=200)
    description = models.TextField(blank=True)
    price = models.DecimalField(max_digits=10, decimal_places=2)
    sku = models.CharField(max_length=100, blank=True)

    # Availability
    is_available = models.BooleanField(default=True)
    is_86ed = models.BooleanField(
        default=False,
        help_text="True = 86'd (temporarily out of stock)",
    )
    availability_updated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When availability was last changed",
    )
    pos_updated_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="When the POS last reported a change for this item",
    )

    # Display
    display_order = models.PositiveIntegerField(default=0)

    objects = ClientScopedManager.from_queryset(MenuItemQuerySet)()

    class Meta:
        ordering = ["display_order", "name"]
        indexes = [
            models.Index(fields=["client", "category"]),
            models.Index(fields=["client", "is_available"]),
            models.Index(fields=["pos_item_id"]),
        ]

    def __str__(self) -> str:
        return self.name

    @property
    def is_orderable(self) -> bool:
        return self.is_available and not self.is_86ed


class ModifierGroup(ClientScopedModel):
    """
    Group of modifiers (e.g., "Choose your crust", "Add toppings").

    POS modifier groups are shared across a menu rather than owned by one item.
    """

    menu = models.ForeignKey(
        Menu,
        on_delete=models.CASCADE,
        related_name="modifier_groups",
    )
    pos_group_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="ID in the POS system",
    )
    name = models.CharField(max_length=200)
    min_selections = models.PositiveIntegerField(
        default=0,
        help_text="Minimum required (0 = optional)",
    )
    max_selections = models.PositiveIntegerField(
        default=1,
        help_text="Maximum allowed (1 = single choice)",
    )
    is_active = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["display_order", "name"]
        indexes = [
            models.Index(fields=["menu", "display_order"]),
            models.Index(fields=["pos_group_id"]),
        ]

    def __str__(self) -> str:
        return f"{self.menu.name} > {self.name}"

    @property
    def is_required(self) -> bool:
        """Check if at least one selection is required."""
        return self.min_selections > 0


class Modifier(ClientScopedModel):
    """
    Individual modifier option within a group.

    Can have a price adjustment (positive or negative).
    """

    group = models.ForeignKey(
        ModifierGroup,
        on_delete=models.CASCADE,
        related_name="modifiers",
    )
    pos_modifier_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="ID in the POS system",
    )
    name = models.CharField(max_length=200)
    price_adjustment = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        default=0,
        help_text="Price change when selected (can be negative)",
    )
    is_available = models.BooleanField(default=True)
    display_order = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ["display_order", "name"]
        indexes = [
            models.Index(fields=["group", "display_order"]),
            models.Index(fields=["pos_modifier_id"]),
        ]

    def __str__(self) -> str:
        if self.price_adjustment:
            sign = "+" if self.price_adjustment > 0 else ""
            return f"{self.name} ({sign}${self.price_adjustment})"
        return self.name


# =============================================================================
# Orders
# =============================================================================


class OrderStatus(models.TextChoices):
    """Order lifecycle status."""

    PENDING = "pending", "Pending"
    CONFIRMED = "confirmed", "Confirmed"
    PREPARING = "preparing", "Preparing"
    READY = "ready", "Ready"
    OUT_FOR_DELIVERY = "out_for_delivery", "Out for delivery"
    COMPLETED = "completed", "Completed"
    CANCELLED = "cancelled", "Cancelled"


class OrderType(models.TextChoices):
    """Order fulfillment type."""

    PICKUP = "pickup", "Pickup"
    DELIVERY = "delivery", "Delivery"
    DINE_IN = "dine_in", "Dine in"


class POSSyncStatus(models.TextChoices):
    """Whether the order has reached the POS."""

    PENDING = "pending", "Pending"
    SYNCED = "synced", "Synced"
    FAILED = "failed", "Failed"


# Status -> timestamp field stamped when the order enters that status
_STATUS_TIMESTAMPS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.COMPLETED: "completed_at",
    OrderStatus.CANCELLED: "cancelled_at",
}


class OrderQuerySet(models.QuerySet["Order"]):
    def find_by_pos_reference(
        self, pos_order_id: str, external_reference: str = ""
    ) -> "Order | None":
        """
        Locate an order by POS ticket id, falling back to our own reference.

        ``external_reference`` is what we sent to the POS: the order's
        primary key, or its order number for older tickets.
        """
        if pos_order_id:
            order = self.filter(pos_order_id=pos_order_id).first()
            if order:
                return order
        if not external_reference:
            return None
        lookup = Q(order_number=external_reference)
        if external_reference.isdigit():
            lookup |= Q(pk=int(external_reference))
        return self.filter(lookup).first()


class Order(ClientScopedModel):
    """
    Customer order.

    Tracks order lifecycle and POS synchronization.
    """

    location = models.ForeignKey(
        Location,
        on_delete=models.PROTECT,
        related_name="orders",
    )
    order_number = models.CharField(
        max_length=20,
        unique=True,
        help_text="Customer-facing order number",
    )

    # Customer information
    customer_name = models.CharField(max_length=200)
    customer_email = models.EmailField(blank=True)
    customer_phone = models.CharField(max_length=20, blank=True)

    # Order details
    status = models.CharField(
        max_length=20,
        choices=OrderStatus.choices,
        default=OrderStatus.PENDING,
    )
    order_type = models.CharField(
        max_length=20,
        choices=OrderType.choices,
    )
    scheduled_for = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Requested pickup/delivery time (null = ASAP)",
    )
    special_instructions = models.TextField(blank=True)
    delivery_address = models.TextField(blank=True)

    # Pricing
    subtotal = models.DecimalField(max_digits=10, decimal_places=2)
    tax = models.DecimalField(max_digits=10, decimal_places=2)
    delivery_fee = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    tip = models.DecimalField(max_digits=10, decimal_places=2, default=0)
    total = models.DecimalField(max_digits=10, decimal_places=2)

    # POS synchronization
    pos_order_id = models.CharField(
        max_length=255,
        blank=True,
        help_text="Ticket ID in the POS system",
    )
    pos_sync_status = models.CharField(
        max_length=20,
        choices=POSSyncStatus.choices,
        default=POSSyncStatus.PENDING,
    )
    pos_synced_at = models.DateTimeField(null=True, blank=True)
    pos_error_message = models.TextField(blank=True)

    # Timestamps
    estimated_ready_at = models.DateTimeField(
        null=True,
        blank=True,
        help_text="Estimated time order will be ready",
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)
    ready_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    objects = ClientScopedManager.from_queryset(OrderQuerySet)()

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["client", "status"]),
            models.Index(fields=["location", "created_at"]),
            models.Index(fields=["pos_order_id"]),
            models.Index(fields=["pos_sync_status"]),
        ]

    def __str__(self) -> str:
        return f"Order {self.order_number} - {self.customer_name}"

    def record_status(
        self,
        status: str,
        note: str = "",
        changed_by: str = "system",
        extra_fields: list[str] | None = None,
    ) -> "OrderStatusHistory":
        """
        Move the order to ``status`` and append a status-history row.

        Stamps the matching lifecycle timestamp and saves ``status`` together
        with any ``extra_fields`` the caller already assigned on the instance.
        """
        previous = self.status
        self.status = status
        update_fields = ["status", "updated_at", *(extra_fields or [])]

        stamp_field = _STATUS_TIMESTAMPS.get(OrderStatus(status))
        if stamp_field and getattr(self, stamp_field) is None:
            setattr(self, stamp_field, timezone.now())
            update_fields.append(stamp_field)

        self.save(update_fields=list(dict.fromkeys(update_fields)))
        return OrderStatusHistory.objects.create(
            order=self,
            status=status,
            previous_status=previous,
            note=note,
            changed_by=changed_by,
        )


class OrderItem(ClientScopedModel):
    """
    Line item in an order.

    Stores a snapshot of the item at order time.
    """

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="items",
    )
    menu_item = models.ForeignKey(
        MenuItem,
        on_delete=models.PROTECT,
        related_name="order_items",
    )

    # Snapshot of item at order time
    item_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(default=1)
    unit_price = models.DecimalField(max_digits=10, decimal_places=2)
    special_instructions = models.TextField(blank=True)

    # Calculated line total
    line_total = models.DecimalField(
        max_digits=10,
        decimal_places=2,
        help_text="unit_price * quantity + modifier adjustments",
    )

    class Meta:
        ordering = ["pk"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.item_name}"


class OrderItemModifier(models.Model):
    """Modifier selected on an order line."""

    order_item = models.ForeignKey(
        OrderItem,
        on_delete=models.CASCADE,
        related_name="modifiers",
    )
    modifier = models.ForeignKey(
        Modifier,
        on_delete=models.PROTECT,
        related_name="order_item_modifiers",
    )
    modifier_name = models.CharField(max_length=200)
    quantity = models.PositiveIntegerField(default=1)
    price_adjustment = models.DecimalField(max_digits=10, decimal_places=2, default=0)

    class Meta:
        ordering = ["pk"]

    def __str__(self) -> str:
        return f"{self.quantity}x {self.modifier_name}"


class OrderStatusHistory(models.Model):
    """Append-only log of an order's status changes."""

    order = models.ForeignKey(
        Order,
        on_delete=models.CASCADE,
        related_name="status_history",
    )
    status = models.CharField(max_length=20, choices=OrderStatus.choices)
    previous_status = models.CharField(max_length=20, blank=True)
    note = models.TextField(blank=True)
    changed_by = models.CharField(
        max_length=100,
        default="system",
        help_text="'system' for POS-originated changes, else a username",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at", "pk"]
        verbose_name_plural = "order status history"

    def __str__(self) -> str:
        return f"{self.order_id}: {self.previous_status} -> {self.status}"
