"""Admin registration for restaurant models."""

from django.contrib import admin

from apps.web.restaurant.models import (
    Location,
    Menu,
    MenuCategory,
    MenuItem,
    Modifier,
    ModifierGroup,
    Order,
    OrderItem,
    OrderStatusHistory,
)


class MenuCategoryInline(admin.TabularInline):
    """Inline for categories within a menu."""

    model = MenuCategory
    extra = 0
    fields = ["name", "pos_category_id", "is_active", "display_order"]


class MenuItemInline(admin.TabularInline):
    """Inline for items within a category."""

    model = MenuItem
    extra = 0
    fields = ["name", "pos_item_id", "price", "is_available", "is_86ed"]


class ModifierInline(admin.TabularInline):
    """Inline for modifiers within a group."""

    model = Modifier
    extra = 0
    fields = ["name", "pos_modifier_id", "price_adjustment", "is_available"]


class OrderItemInline(admin.TabularInline):
    """Inline for items within an order."""

    model = OrderItem
    extra = 0
    fields = ["item_name", "quantity", "unit_price", "line_total"]
    readonly_fields = ["item_name", "quantity", "unit_price", "line_total"]


class OrderStatusHistoryInline(admin.TabularInline):
    """Read-only status timeline for an order."""

    model = OrderStatusHistory
    extra = 0
    fields = ["created_at", "previous_status", "status", "note", "changed_by"]
    readonly_fields = fields
    can_delete = False


@admin.register(Location)
class LocationAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "client", "pos_provider", "pos_location_id", "is_active"]
    list_filter = ["pos_provider", "is_active"]
    search_fields = ["name", "client__name", "pos_location_id"]


@admin.register(Menu)
class MenuAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "location", "is_active", "last_sync_at"]
    list_filter = ["is_active"]
    inlines = [MenuCategoryInline]


@admin.register(MenuCategory)
class MenuCategoryAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "menu", "pos_category_id", "is_active"]
    inlines = [MenuItemInline]


@admin.register(MenuItem)
class MenuItemAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "category", "price", "is_available", "is_86ed"]
    list_filter = ["is_available", "is_86ed"]
    search_fields = ["name", "pos_item_id", "sku"]


@admin.register(ModifierGroup)
class ModifierGroupAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = ["name", "menu", "pos_group_id", "min_selections"]
    inlines = [ModifierInline]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):  # type: ignore[type-arg]
    list_display = [
        "order_number",
        "location",
        "customer_name",
        "status",
        "pos_sync_status",
        "pos_order_id",
        "created_at",
    ]
    list_filter = ["status", "order_type", "pos_sync_status"]
    search_fields = ["order_number", "customer_name", "pos_order_id"]
    readonly_fields = ["pos_synced_at", "pos_error_message", "created_at"]
    inlines = [OrderItemInline, OrderStatusHistoryInline]
    date_hierarchy = "created_at"
