"""Tests for restaurant models."""

from django.db import IntegrityError

import pytest

from apps.web.restaurant.models import (
    Location,
    MenuItem,
    Order,
    OrderStatus,
    OrderStatusHistory,
)
from apps.web.restaurant.tests.factories import (
    ClientFactory,
    LocationFactory,
    MenuItemFactory,
    OrderFactory,
)


@pytest.mark.django_db
class TestLocation:
    """Tests for Location model."""

    def test_has_pos_false_when_no_provider(self) -> None:
        location = LocationFactory(pos_provider="", pos_location_id="")

        assert location.has_pos is False

    def test_has_pos_true_when_configured(self) -> None:
        location = LocationFactory(pos_provider="skytab", pos_location_id="loc-123")

        assert location.has_pos is True

    def test_unique_slug_per_client(self) -> None:
        client = ClientFactory()
        LocationFactory(client=client, slug="downtown")

        with pytest.raises(IntegrityError):
            LocationFactory(client=client, slug="downtown")

    def test_with_pos_excludes_unconfigured(self) -> None:
        connected = LocationFactory()
        LocationFactory(pos_provider="")

        assert list(Location.objects.with_pos()) == [connected]


@pytest.mark.django_db
class TestMenuItemQueries:
    """Tests for the menu item repository helpers."""

    def test_unavailable_includes_86ed_and_inactive(self) -> None:
        client = ClientFactory()
        inactive = MenuItemFactory(client=client, is_available=False)
        eighty_sixed = MenuItemFactory(client=client, is_86ed=True)
        MenuItemFactory(client=client)

        assert set(MenuItem.objects.unavailable()) == {inactive, eighty_sixed}

    def test_by_pos_ids_ignores_blank_ids(self) -> None:
        client = ClientFactory()
        item = MenuItemFactory(client=client, pos_item_id="item-1")
        MenuItemFactory(client=client, pos_item_id="")

        assert list(MenuItem.objects.by_pos_ids(["item-1", ""])) == [item]

    def test_is_orderable(self) -> None:
        item = MenuItemFactory(is_available=True, is_86ed=True)

        assert item.is_orderable is False


@pytest.mark.django_db
class TestOrderLookup:
    """Tests for locating orders from POS references."""

    def test_find_by_pos_order_id(self) -> None:
        order = OrderFactory(pos_order_id="ticket-1")

        assert Order.objects.find_by_pos_reference("ticket-1") == order

    def test_falls_back_to_primary_key_reference(self) -> None:
        order = OrderFactory()

        found = Order.objects.find_by_pos_reference("unknown-ticket", str(order.pk))

        assert found == order

    def test_falls_back_to_order_number(self) -> None:
        order = OrderFactory(order_number="A-1001")

        assert Order.objects.find_by_pos_reference("", "A-1001") == order

    def test_returns_none_when_nothing_matches(self) -> None:
        OrderFactory()

        assert Order.objects.find_by_pos_reference("nope", "also-nope") is None


@pytest.mark.django_db
class TestOrderRecordStatus:
    """Tests for Order.record_status()."""

    def test_appends_history_and_stamps_timestamp(self) -> None:
        order = OrderFactory(status=OrderStatus.PREPARING)

        entry = order.record_status(OrderStatus.READY, note="Kitchen done")

        order.refresh_from_db()
        assert order.status == OrderStatus.READY
        assert order.ready_at is not None
        assert entry.previous_status == OrderStatus.PREPARING
        assert entry.changed_by == "system"
        assert OrderStatusHistory.objects.filter(order=order).count() == 1

    def test_saves_extra_fields(self) -> None:
        order = OrderFactory()
        order.pos_order_id = "ticket-9"

        order.record_status(OrderStatus.PREPARING, extra_fields=["pos_order_id"])

        order.refresh_from_db()
        assert order.pos_order_id == "ticket-9"

    def test_cancelled_sets_cancelled_at(self) -> None:
        order = OrderFactory()

        order.record_status(OrderStatus.CANCELLED, note="Customer called")

        order.refresh_from_db()
        assert order.cancelled_at is not None
