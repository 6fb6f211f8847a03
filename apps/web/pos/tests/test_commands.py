"""Tests for the POS management commands."""

from io import StringIO
from unittest.mock import AsyncMock

from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

import pytest

from orderhub_schemas import OrderSubmitRequest

from apps.web.pos.exceptions import POSAPIError
from apps.web.pos.models import (
    FailedRequest,
    FailedRequestStatus,
    WebhookStatus,
)
from apps.web.pos.services import enqueue_failed_request, record_webhook
from apps.web.pos.tests.helpers import SKYTAB_LOCATION_GUID, make_envelope
from apps.web.restaurant.models import POSSyncStatus
from apps.web.restaurant.tests.factories import (
    LocationFactory,
    MenuItemFactory,
    OrderFactory,
    OrderItemFactory,
)


@pytest.fixture
def location():
    return LocationFactory(
        slug="downtown", pos_provider="mock", pos_location_id="mock-1"
    )


def _run(name: str, *args: str) -> tuple[str, str]:
    out, err = StringIO(), StringIO()
    call_command(name, *args, stdout=out, stderr=err)
    return out.getvalue(), err.getvalue()


@pytest.mark.django_db
class TestRetryPOSRequests:
    def test_once_replays_due_requests(self, pos_service, location):
        menu_item = MenuItemFactory(
            client=location.client,
            category__menu__location=location,
            pos_item_id="pos-item-1",
        )
        order = OrderFactory(
            client=location.client,
            location=location,
            pos_sync_status=POSSyncStatus.FAILED,
        )
        OrderItemFactory(client=location.client, order=order, menu_item=menu_item)
        failed = enqueue_failed_request(
            OrderSubmitRequest(order_id=order.pk), "timeout", location=location
        )
        FailedRequest.objects.filter(pk=failed.pk).update(next_retry_at=timezone.now())

        out, _ = _run("retry_pos_requests", "--once")

        assert "Starting POS retry worker..." in out
        assert "Retried 1 requests: 1 succeeded, 0 failed" in out
        failed.refresh_from_db()
        assert failed.status == FailedRequestStatus.COMPLETED

    def test_once_with_empty_queue(self, pos_service):
        out, _ = _run("retry_pos_requests", "--once")

        assert "Retried" not in out


@pytest.mark.django_db
class TestProcessPOSWebhooks:
    def test_once_processes_pending(self, pos_service):
        LocationFactory(pos_location_id=SKYTAB_LOCATION_GUID)
        webhook, _ = record_webhook(
            "skytab", make_envelope("location.hours_changed", {"isOpen": False})
        )

        out, _ = _run("process_pos_webhooks", "--once")

        assert "Processed 1 webhooks" in out
        webhook.refresh_from_db()
        assert webhook.status == WebhookStatus.PROCESSED

    def test_nothing_pending(self, pos_service):
        out, _ = _run("process_pos_webhooks", "--once")

        assert out.strip() == "Starting POS webhook processor..."


@pytest.mark.django_db
class TestSyncPOSMenus:
    """Menu pulls for every POS-connected location."""

    def test_syncs_every_active_location(self, pos_service, location):
        LocationFactory(
            slug="closed", pos_provider="mock", pos_location_id="m-2", is_active=False
        )
        LocationFactory(slug="offline", pos_provider="", pos_location_id="")

        out, _ = _run("sync_pos_menus")

        assert "downtown: 2 items, 2 modifiers, 0 deactivated" in out
        assert "closed" not in out
        assert "offline" not in out

    @pytest.mark.parametrize("by", ["slug", "pk"])
    def test_single_location(self, pos_service, location, by):
        LocationFactory(slug="uptown", pos_provider="mock", pos_location_id="m-2")

        out, _ = _run("sync_pos_menus", "--location", str(getattr(location, by)))

        assert "downtown:" in out
        assert "uptown" not in out

    def test_unknown_location(self, pos_service, location):
        with pytest.raises(CommandError, match="No POS-connected location"):
            _run("sync_pos_menus", "--location", "nowhere")

    def test_incremental_without_history_falls_back_to_full(
        self, pos_service, location
    ):
        out, _ = _run("sync_pos_menus", "--incremental")

        assert "downtown: 2 items" in out

    def test_failure_is_reported(
        self, pos_service, mock_adapter, location, monkeypatch
    ):
        error = POSAPIError("POS down", provider="mock", code="SERVICE_UNAVAILABLE")
        monkeypatch.setattr(
            mock_adapter, "sync_full_menu", AsyncMock(side_effect=error)
        )
        err = StringIO()

        with pytest.raises(CommandError, match="1 location"):
            call_command("sync_pos_menus", stdout=StringIO(), stderr=err)

        assert "downtown: sync failed" in err.getvalue()
