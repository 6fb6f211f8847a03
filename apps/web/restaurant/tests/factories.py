"""Factory classes for restaurant models."""

from decimal import Decimal

import factory

from apps.web.core.models import Client
from apps.web.restaurant.models import (
    Location,
    Menu,
    MenuCategory,
    MenuItem,
    Modifier,
    ModifierGroup,
    Order,
    OrderItem,
    OrderItemModifier,
    OrderStatus,
    OrderType,
)

# Child rows inherit the tenant of the row they hang off
SAME_CLIENT = factory.SelfAttribute("..client")


class ClientFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = Client

    slug = factory.Sequence(lambda n: f"kitchen-{n}")
    name = factory.Faker("company")
    email = factory.LazyAttribute(lambda obj: f"{obj.slug}@example.com")


class ClientScopedFactory(factory.django.DjangoModelFactory):
    """Base for tenant-owned rows."""

    class Meta:
        abstract = True

    client = factory.SubFactory(ClientFactory)


class LocationFactory(ClientScopedFactory):
    """A storefront connected to SkyTab by default."""

    class Meta:
        model = Location

    name = factory.Sequence(lambda n: f"Location {n}")
    slug = factory.Sequence(lambda n: f"location-{n}")
    pos_provider = "skytab"
    pos_location_id = factory.Sequence(lambda n: f"loc-guid-{n:04d}")


class MenuFactory(ClientScopedFactory):
    class Meta:
        model = Menu

    location = factory.SubFactory(LocationFactory, client=SAME_CLIENT)
    name = factory.Sequence(lambda n: f"Menu {n}")
    description = factory.Faker("sentence")
    display_order = factory.Sequence(lambda n: n)


class MenuCategoryFactory(ClientScopedFactory):
    class Meta:
        model = MenuCategory

    menu = factory.SubFactory(MenuFactory, client=SAME_CLIENT)
    name = factory.Sequence(lambda n: f"Category {n}")
    display_order = factory.Sequence(lambda n: n)


class MenuItemFactory(ClientScopedFactory):
    """A sellable item; ``pos_item_id`` stays blank until a sync maps it."""

    class Meta:
        model = MenuItem

    category = factory.SubFactory(MenuCategoryFactory, client=SAME_CLIENT)
    name = factory.Sequence(lambda n: f"Item {n}")
    description = factory.Faker("sentence")
    price = Decimal("12.99")
    display_order = factory.Sequence(lambda n: n)


class ModifierGroupFactory(ClientScopedFactory):
    class Meta:
        model = ModifierGroup

    menu = factory.SubFactory(MenuFactory, client=SAME_CLIENT)
    name = factory.Sequence(lambda n: f"Modifier Group {n}")
    max_selections = 1


class ModifierFactory(ClientScopedFactory):
    class Meta:
        model = Modifier

    group = factory.SubFactory(ModifierGroupFactory, client=SAME_CLIENT)
    name = factory.Sequence(lambda n: f"Modifier {n}")
    price_adjustment = Decimal("0.00")


class OrderFactory(ClientScopedFactory):
    """A confirmed pickup order that has not reached the POS yet."""

    class Meta:
        model = Order

    location = factory.SubFactory(LocationFactory, client=SAME_CLIENT)
    order_number = factory.Sequence(lambda n: f"ORD{n:06d}")
    customer_name = factory.Faker("name")
    customer_email = factory.Faker("email")
    customer_phone = "5551234567"
    status = OrderStatus.CONFIRMED
    order_type = OrderType.PICKUP
    subtotal = Decimal("25.00")
    tax = Decimal("2.06")
    total = Decimal("27.06")


class OrderItemFactory(ClientScopedFactory):
    class Meta:
        model = OrderItem

    order = factory.SubFactory(OrderFactory, client=SAME_CLIENT)
    menu_item = factory.SubFactory(MenuItemFactory, client=SAME_CLIENT)
    item_name = factory.LazyAttribute(lambda obj: obj.menu_item.name)
    unit_price = factory.LazyAttribute(lambda obj: obj.menu_item.price)
    line_total = factory.LazyAttribute(lambda obj: obj.unit_price * obj.quantity)
    quantity = 1


class OrderItemModifierFactory(factory.django.DjangoModelFactory):
    class Meta:
        model = OrderItemModifier

    order_item = factory.SubFactory(OrderItemFactory)
    modifier = factory.SubFactory(
        ModifierFactory, client=factory.SelfAttribute("..order_item.client")
    )
    modifier_name = factory.LazyAttribute(lambda obj: obj.modifier.name)
    price_adjustment = factory.LazyAttribute(lambda obj: obj.modifier.price_adjustment)
